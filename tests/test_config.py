"""Tests for engine configuration."""

import json

from lead_assignment_engine.core.config import (
    DEFAULT_ASSIGNABLE_ROLES,
    EngineConfig,
    EngineConfigManager,
)


class TestEngineConfigManager:
    """Tests for EngineConfigManager."""

    def test_defaults_when_missing(self, temp_data_dir):
        manager = EngineConfigManager(temp_data_dir / "missing.json")
        assert manager.config.assignable_roles == DEFAULT_ASSIGNABLE_ROLES
        assert manager.config.fallback_label == "round_robin_fallback"

    def test_defaults_when_unreadable(self, temp_data_dir):
        path = temp_data_dir / "engine_config.json"
        path.write_text("{broken")
        assert EngineConfigManager(path).config.open_statuses == EngineConfig().open_statuses

    def test_set_assignable_roles_persists(self, temp_data_dir):
        path = temp_data_dir / "engine_config.json"
        EngineConfigManager(path).set_assignable_roles(["sales_rep"])

        assert json.loads(path.read_text())["assignable_roles"] == ["sales_rep"]
        assert EngineConfigManager(path).config.assignable_roles == ["sales_rep"]

    def test_brackets_and_windows_round_trip(self, temp_data_dir):
        path = temp_data_dir / "engine_config.json"
        manager = EngineConfigManager(path)
        manager.config.value_brackets = {"tiny": (0, 100), "huge": (100, None)}
        manager.config.time_windows = {"business_hours": (8, 16)}
        manager.save_config()

        config = EngineConfigManager(path).config
        assert config.value_brackets == {"tiny": (0, 100), "huge": (100, None)}
        assert config.time_windows == {"business_hours": (8, 16)}

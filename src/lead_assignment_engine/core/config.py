"""Engine configuration: workload statuses, assignable roles, brackets and time windows."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


DEFAULT_OPEN_STATUSES = ["new", "contacted", "qualified", "proposal"]
DEFAULT_ASSIGNABLE_ROLES = ["admin", "manager", "executive", "sales_rep", "sales_manager"]

# (lower inclusive, upper exclusive) in the branch's base currency unit
DEFAULT_VALUE_BRACKETS: Dict[str, Tuple[float, Optional[float]]] = {
    "small": (0, 50_000),
    "medium": (50_000, 500_000),
    "large": (500_000, 2_500_000),
    "enterprise": (2_500_000, None),
}

# (start hour inclusive, end hour exclusive)
DEFAULT_TIME_WINDOWS: Dict[str, Tuple[int, int]] = {
    "morning": (9, 12),
    "afternoon": (12, 17),
    "evening": (17, 20),
    "business_hours": (9, 18),
}


@dataclass
class EngineConfig:
    """Tunable knobs for assignment decisions."""

    # Lead statuses that count towards an employee's workload
    open_statuses: List[str] = field(default_factory=lambda: list(DEFAULT_OPEN_STATUSES))

    # Only these roles make up the candidate pool
    assignable_roles: List[str] = field(default_factory=lambda: list(DEFAULT_ASSIGNABLE_ROLES))

    value_brackets: Dict[str, Tuple[float, Optional[float]]] = field(
        default_factory=lambda: dict(DEFAULT_VALUE_BRACKETS)
    )
    time_windows: Dict[str, Tuple[int, int]] = field(
        default_factory=lambda: dict(DEFAULT_TIME_WINDOWS)
    )

    # Label stored on the lead for the fallback path
    fallback_label: str = "round_robin_fallback"

    updated_at: datetime = field(default_factory=datetime.now)


class EngineConfigManager:
    """Load and persist engine configuration."""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or Path.home() / ".lead-assignment-engine" / "engine_config.json"
        self.config = self._load_config()

    def _load_config(self) -> EngineConfig:
        """Load configuration from file, falling back to defaults."""
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                return EngineConfig(
                    open_statuses=data.get("open_statuses", list(DEFAULT_OPEN_STATUSES)),
                    assignable_roles=data.get("assignable_roles", list(DEFAULT_ASSIGNABLE_ROLES)),
                    value_brackets={
                        name: (bounds[0], bounds[1])
                        for name, bounds in data.get("value_brackets", {}).items()
                    } or dict(DEFAULT_VALUE_BRACKETS),
                    time_windows={
                        name: (int(bounds[0]), int(bounds[1]))
                        for name, bounds in data.get("time_windows", {}).items()
                    } or dict(DEFAULT_TIME_WINDOWS),
                    fallback_label=data.get("fallback_label", "round_robin_fallback"),
                )
            except (OSError, ValueError, TypeError, IndexError) as e:
                logger.error(f"Error loading engine config: {e}")

        return EngineConfig()

    def save_config(self):
        """Save configuration to file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "open_statuses": self.config.open_statuses,
            "assignable_roles": self.config.assignable_roles,
            "value_brackets": {k: list(v) for k, v in self.config.value_brackets.items()},
            "time_windows": {k: list(v) for k, v in self.config.time_windows.items()},
            "fallback_label": self.config.fallback_label,
            "updated_at": self.config.updated_at.isoformat(),
        }
        with open(self.config_path, 'w') as f:
            json.dump(data, f, indent=2)

    def set_assignable_roles(self, roles: List[str]):
        """Replace the roles eligible to receive leads."""
        self.config.assignable_roles = list(roles)
        self.config.updated_at = datetime.now()
        self.save_config()

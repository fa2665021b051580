"""Environment-based configuration for the API service."""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class Settings:
    """API configuration loaded from environment variables."""

    def __init__(self):
        self.host = os.getenv("LEAD_ENGINE_HOST", "0.0.0.0")
        self.port = int(os.getenv("LEAD_ENGINE_PORT", "8000"))
        self.db_path = os.getenv(
            "LEAD_ENGINE_DB_PATH",
            str(Path.home() / ".lead-assignment-engine" / "assignments.db"),
        )
        self.config_path = os.getenv("LEAD_ENGINE_CONFIG_PATH") or None
        self.log_level = os.getenv("LEAD_ENGINE_LOG_LEVEL", "INFO").upper()
        self.debug = os.getenv("LEAD_ENGINE_ENV", "production") != "production"

        timeout = os.getenv("LEAD_ENGINE_ASSIGN_TIMEOUT", "")
        self.assign_timeout = float(timeout) if timeout else None

        # CORS
        origins = os.getenv("LEAD_ENGINE_ALLOWED_ORIGINS", "")
        self.allowed_origins = [o.strip() for o in origins.split(",") if o.strip()] or [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]


_settings = None


def _get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


class _SettingsProxy:
    """Lazy proxy so settings aren't loaded until first access."""

    def __getattr__(self, name):
        return getattr(_get_settings(), name)


settings = _SettingsProxy()

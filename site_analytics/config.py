import os
from typing import Any, Dict, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings

from .errors import ConfigurationError


class Settings(BaseSettings):
    """Analytics settings, read from ANALYTICS_* environment variables"""

    # Reporting target
    entity_id: str = Field(default="")
    credentials_path: Optional[str] = Field(default=None)

    # Cache configuration
    cache_backend: str = Field(default="none")
    redis_url: str = Field(default="redis://localhost:6379/0")
    cache_lifetime_in_minutes: int = Field(default=0, ge=0)
    realtime_cache_lifetime_in_seconds: int = Field(default=0, ge=0)

    class Config:
        env_prefix = "ANALYTICS_"
        env_file = ".env"
        case_sensitive = False


def _resolve_config_path() -> Optional[str]:
    return os.getenv("ANALYTICS_CONFIG_PATH")


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Load settings from the environment, overlaid with a YAML file if present.

    The YAML file's ``analytics:`` section takes precedence over environment
    values. Without ``config_path`` the ANALYTICS_CONFIG_PATH variable is used.
    """
    cfg_path = config_path or _resolve_config_path()
    overrides: Dict[str, Any] = {}

    if cfg_path:
        if not os.path.exists(cfg_path):
            raise ConfigurationError(f"Analytics config not found: {cfg_path}")
        with open(cfg_path, "r") as f:
            cfg = yaml.safe_load(f) or {}
        overrides = cfg.get("analytics") or {}

    return Settings(**overrides)

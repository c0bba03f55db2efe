"""
Configuration management for the log relay client.

Uses Pydantic Settings for environment variable handling and validation,
with an optional YAML config file providing defaults.
"""

import json
import os
import yaml
from functools import lru_cache
from typing import Any, Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


def load_config_file(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    if config_path is None:
        # Look for config.yaml in common locations
        possible_paths = [
            "config.yaml",  # Current directory
            "logrelay.yaml",
        ]

        for path in possible_paths:
            if os.path.exists(path):
                config_path = path
                break
        else:
            return {}

    if os.path.exists(config_path):
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
            return config_data
    return {}


class BatchSettings(BaseSettings):
    """Batching configuration for the shared server logger."""

    # Max batch size based on the ingestion stream's batch limit
    batch_size: int = Field(default=500, ge=1, description="Entries per immediate batch")
    batch_time_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Send a partial batch after this long without new entries",
    )

    class Config:
        env_prefix = "LOGRELAY_BATCH_"


class RateLimitSettings(BaseSettings):
    """Per-client sliding window rate limit."""

    max_count: int = Field(default=100, ge=0, description="Entries admitted per window")
    window_seconds: float = Field(default=60.0, gt=0, description="Sliding window span")

    class Config:
        env_prefix = "LOGRELAY_RATE_LIMIT_"


class ThrottleSettings(BaseSettings):
    """Duplicate entry throttling."""

    window_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Identical entries are sent at most once per window",
    )

    class Config:
        env_prefix = "LOGRELAY_THROTTLE_"


class TransportSettings(BaseSettings):
    """HTTP transport configuration."""

    timeout_seconds: float = Field(default=30.0, gt=0, description="Request timeout")
    exit_timeout_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Timeout for the best-effort send made while shutting down",
    )
    user_agent: str = Field(default="logrelay/0.1.0", description="User-Agent header")

    class Config:
        env_prefix = "LOGRELAY_TRANSPORT_"


class HostSettings(BaseSettings):
    """Host attributes exposed to the server logger."""

    provisioning_url: Optional[str] = Field(
        default=None,
        description="URL returning the current ingestion endpoint",
    )
    location: Optional[str] = Field(
        default=None,
        description="Location reported with every entry",
    )

    @field_validator("provisioning_url", "location", mode="before")
    def empty_as_none(cls, v: Any) -> Any:
        """Treat blank values from env or config file as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    class Config:
        env_prefix = "LOGRELAY_HOST_"


class Settings(BaseSettings):
    """Main client settings."""

    log_level: str = Field(default="INFO", description="Log level")

    # Component settings
    batch: BatchSettings = Field(default_factory=BatchSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    throttle: ThrottleSettings = Field(default_factory=ThrottleSettings)
    transport: TransportSettings = Field(default_factory=TransportSettings)
    host: HostSettings = Field(default_factory=HostSettings)

    class Config:
        env_prefix = "LOGRELAY_"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance with config file and env support."""

    # Load config file data
    config_data = load_config_file()

    # Config file provides defaults, env vars override
    if config_data:
        _set_env_from_config(config_data)

    settings = Settings()
    return settings


def _set_env_from_config(config_data: Dict[str, Any]) -> None:
    """Set environment variables from config file if not already set."""
    mappings = {
        ("logging", "log_level"): "LOGRELAY_LOG_LEVEL",
        ("batch", "batch_size"): "LOGRELAY_BATCH_BATCH_SIZE",
        ("batch", "batch_time_seconds"): "LOGRELAY_BATCH_BATCH_TIME_SECONDS",
        ("rate_limit", "max_count"): "LOGRELAY_RATE_LIMIT_MAX_COUNT",
        ("rate_limit", "window_seconds"): "LOGRELAY_RATE_LIMIT_WINDOW_SECONDS",
        ("throttle", "window_seconds"): "LOGRELAY_THROTTLE_WINDOW_SECONDS",
        ("transport", "timeout_seconds"): "LOGRELAY_TRANSPORT_TIMEOUT_SECONDS",
        ("transport", "exit_timeout_seconds"): "LOGRELAY_TRANSPORT_EXIT_TIMEOUT_SECONDS",
        ("transport", "user_agent"): "LOGRELAY_TRANSPORT_USER_AGENT",
        ("host", "provisioning_url"): "LOGRELAY_HOST_PROVISIONING_URL",
        ("host", "location"): "LOGRELAY_HOST_LOCATION",
    }

    for (section, key), env_var in mappings.items():
        if env_var not in os.environ:
            value = (config_data.get(section) or {}).get(key)
            if value is not None:
                os.environ[env_var] = value if isinstance(value, str) else json.dumps(value)


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()

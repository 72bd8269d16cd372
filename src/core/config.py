"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, SecretStr

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"
    # JSON-lines audit file for final delivery outcomes; empty disables it.
    delivery_log_file: str = ""


class DispatchConfig(BaseModel):
    """Channel send retry / timeout policy."""

    max_attempts: int = Field(default=3, ge=1)
    backoff_base_secs: float = 1.0
    backoff_factor: float = 4.0
    send_timeout_secs: float = 10.0


class StoreRetryConfig(BaseModel):
    """Retry policy for notification writes that hit an unavailable store."""

    max_attempts: int = Field(default=3, ge=1)
    backoff_base_secs: float = 0.5
    backoff_factor: float = 4.0


class EmailConfig(BaseModel):
    """Transactional email HTTP API."""

    enabled: bool = False
    api_url: str = ""
    api_key: SecretStr = SecretStr("")
    sender: str = "alerts@example.com"


class SMSConfig(BaseModel):
    """SMS gateway HTTP API."""

    enabled: bool = False
    gateway_url: str = ""
    auth_token: SecretStr = SecretStr("")
    from_number: str = ""


class SlackConfig(BaseModel):
    """Slack incoming webhook."""

    enabled: bool = False
    webhook_url: SecretStr = SecretStr("")


class PushConfig(BaseModel):
    """Mobile push gateway HTTP API."""

    enabled: bool = False
    gateway_url: str = ""
    api_key: SecretStr = SecretStr("")


class ChannelsConfig(BaseModel):
    """Container for all external channel configurations."""

    email: EmailConfig = EmailConfig()
    sms: SMSConfig = SMSConfig()
    slack: SlackConfig = SlackConfig()
    push: PushConfig = PushConfig()


class DirectoryUserConfig(BaseModel):
    """One user entry in the static recipient directory."""

    email: str = ""
    phone: str = ""
    slack: str = ""
    push_token: str = ""
    roles: list[str] = []


class DirectoryConfig(BaseModel):
    users: dict[str, DirectoryUserConfig] = {}


class ApiConfig(BaseModel):
    """HTTP API server configuration."""

    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8080
    admin_token: SecretStr = SecretStr("")


class SimulatorConfig(BaseModel):
    """Random event generator (demo / load harness)."""

    enabled: bool = False
    interval_secs: float = 5.0
    seed: int | None = None
    event_types: list[str] = []


class Settings(BaseModel):
    """Root settings container."""

    logging: LoggingConfig = LoggingConfig()
    dispatch: DispatchConfig = DispatchConfig()
    store_retry: StoreRetryConfig = StoreRetryConfig()
    channels: ChannelsConfig = ChannelsConfig()
    directory: DirectoryConfig = DirectoryConfig()
    api: ApiConfig = ApiConfig()
    simulator: SimulatorConfig = SimulatorConfig()
    rules: list[dict[str, Any]] = []


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None

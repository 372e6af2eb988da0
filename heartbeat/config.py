"""Configuration management for the heartbeat service."""

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class HeartbeatConfig(BaseModel):
    """Settings shared by the API server, the checker and the key CLI."""

    # Storage
    db_path: str = Field(default="data/heartbeat.db", description="SQLite database file")

    # Notification sink
    telegram_bot_token: str = Field(default="", description="Telegram bot token")
    telegram_chat_id: str = Field(default="", description="Telegram chat receiving all alerts")
    http_timeout_seconds: float = Field(default=15.0, description="Timeout for one sink request")

    # Check cycle
    check_interval_seconds: int = Field(default=60, ge=1, description="Seconds between check cycles")
    cycle_budget_seconds: Optional[float] = Field(default=50.0, description="Wall-clock budget for one cycle")

    # HTTP API
    host: str = Field(default="0.0.0.0", description="Bind address for the API server")
    port: int = Field(default=3000, description="Bind port for the API server")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="console or json")

    def telegram_configured(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)


_ENV_OVERRIDES = {
    "db_path": "HEARTBEAT_DB_PATH",
    "telegram_bot_token": "TELEGRAM_BOT_TOKEN",
    "telegram_chat_id": "TELEGRAM_CHAT_ID",
    "check_interval_seconds": "HEARTBEAT_CHECK_INTERVAL",
    "cycle_budget_seconds": "HEARTBEAT_CYCLE_BUDGET",
    "http_timeout_seconds": "HEARTBEAT_HTTP_TIMEOUT",
    "host": "HEARTBEAT_HOST",
    "port": "HEARTBEAT_PORT",
    "log_level": "LOG_LEVEL",
    "log_format": "LOG_FORMAT",
}


def load_config(config_path: Optional[str] = None) -> HeartbeatConfig:
    """Load configuration from a YAML file, then apply environment overrides."""
    if config_path is None:
        config_path = os.getenv("HEARTBEAT_CONFIG", "config/heartbeat.yaml")

    config_data = {}

    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}

    # Pydantic converts the raw strings to the declared field types.
    for key, env_name in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is not None and value.strip():
            config_data[key] = value.strip()

    return HeartbeatConfig(**config_data)

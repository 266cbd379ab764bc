"""Configuration management for servicewatch."""

import os
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field


DEFAULT_CONFIG_PATH = "config/servicewatch.yaml"


class TargetConfig(BaseModel):
    """A service to monitor, used to seed the target repository."""
    id: int = Field(description="Stable target identifier")
    name: str = Field(description="Human readable service name")
    url: str = Field(description="URL probed by the uptime and TLS checks")
    active: bool = Field(default=True, description="Inactive targets are never probed")
    headers: Dict[str, str] = Field(default_factory=dict, description="Extra request headers")


class SchedulerConfig(BaseModel):
    """Job runner settings."""
    tick_interval_seconds: float = Field(default=60.0, gt=0, description="Seconds between scheduler ticks")
    worker_pool_size: int = Field(default=5, ge=1, description="Concurrent job executions")
    shutdown_timeout_seconds: float = Field(default=10.0, ge=0, description="Graceful drain timeout")
    allow_overlap: bool = Field(default=False, description="Allow a job to start while a previous run is in flight")


class MonitoringSettings(BaseModel):
    """Probe and monitoring job settings."""
    uptime_schedule: str = Field(default="*/5 * * * *", description="Schedule for uptime checks")
    tls_schedule: str = Field(
        default="0 */6 * * *",
        description="Schedule for TLS certificate checks; the default runs hourly at minute 0, hour field ignored",
    )
    timeout_seconds: float = Field(default=10.0, gt=0, description="Per-request probe timeout")
    max_retries: int = Field(default=3, ge=1, description="Attempts per uptime probe on network failure")
    retry_delay_seconds: float = Field(default=5.0, ge=0, description="Delay between uptime attempts")
    probe_pool_size: int = Field(default=20, ge=1, description="Concurrent probes per batch")
    tls_expiry_threshold_days: int = Field(default=30, ge=0, description="Warn when fewer days remain")
    down_status_codes: List[int] = Field(default_factory=list, description="HTTP codes treated as DOWN")
    user_agent: str = Field(default="servicewatch/0.1.0", description="User-Agent sent with uptime probes")


class NotificationConfig(BaseModel):
    """Alert delivery settings."""
    console: bool = Field(default=True, description="Log every alert")
    telegram_bot_token: Optional[str] = Field(default=None, description="Telegram bot token")
    telegram_chat_id: Optional[str] = Field(default=None, description="Telegram chat receiving alerts")


class ApiConfig(BaseModel):
    """Read-only status API settings."""
    enabled: bool = Field(default=False, description="Serve the status API while running")
    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8000, description="Bind port")


class ServiceWatchConfig(BaseModel):
    """Main configuration for servicewatch."""

    environment: str = Field(default="production", description="Deployment environment name")
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="console or json")

    # Empty path keeps everything in memory
    database_path: str = Field(default="", description="SQLite database file")

    targets: List[TargetConfig] = Field(default_factory=list)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)


def load_config(config_path: Optional[str] = None) -> ServiceWatchConfig:
    """Load configuration from file, then apply environment overrides."""
    if config_path is None:
        config_path = os.getenv("SERVICEWATCH_CONFIG", DEFAULT_CONFIG_PATH)

    config_data = {}

    if os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}
        if not isinstance(config_data, dict):
            raise ValueError(f"Config YAML must be a mapping: {config_path}")

    env_overrides = {
        "environment": os.getenv("SERVICEWATCH_ENV"),
        "log_level": os.getenv("LOG_LEVEL"),
        "database_path": os.getenv("SERVICEWATCH_DB_PATH"),
    }
    for key, value in env_overrides.items():
        if value is not None:
            config_data[key] = value

    workers = os.getenv("SERVICEWATCH_WORKERS")
    if workers is not None:
        config_data.setdefault("scheduler", {})["worker_pool_size"] = int(workers)

    notifications = config_data.setdefault("notifications", {})
    bot_token = os.getenv("TELEGRAM_BOT_TOKEN")
    chat_id = os.getenv("TELEGRAM_CHAT_ID")
    if bot_token:
        notifications["telegram_bot_token"] = bot_token
    if chat_id:
        notifications["telegram_chat_id"] = chat_id

    return ServiceWatchConfig(**config_data)

"""Application configuration loaded from environment and config files."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class RunnerConfig(BaseSettings):
    """Batch orchestrator configuration."""

    model_config = {"env_prefix": "NUDGE_RUNNER_"}

    batch_size: int = 10
    batch_delay_seconds: float = 1.0
    entity_timeout_seconds: float = 30.0
    rules_path: str | None = None


class NotificationConfig(BaseSettings):
    """Notification store and lifecycle configuration."""

    model_config = {"env_prefix": "NUDGE_NOTIFICATION_"}

    dedup_window_hours: int = 24
    default_expiry_days: int = 30
    retention_days: int = 90
    scheduled_batch_size: int = 50
    cleanup_batch_size: int = 100
    default_list_limit: int = 20
    top_categories: int = 5


class DeliveryConfig(BaseSettings):
    """Delivery transport configuration."""

    model_config = {"env_prefix": "NUDGE_DELIVERY_"}

    transport: str = "log"
    webhook_url: str | None = None
    timeout_seconds: float = 10.0


class SchedulerConfig(BaseSettings):
    """Periodic job intervals."""

    model_config = {"env_prefix": "NUDGE_SCHEDULER_"}

    nudge_interval_seconds: int = 24 * 60 * 60
    sweep_interval_seconds: int = 5 * 60
    cleanup_interval_seconds: int = 24 * 60 * 60
    tick_seconds: float = 30.0


class DatabaseConfig(BaseSettings):
    """Database configuration. In-memory stores are used when no URL is set."""

    model_config = {"env_prefix": "NUDGE_DB_"}

    database_url: str | None = None
    echo: bool = False
    pool_size: int = 5


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "NUDGE_"}

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    notification: NotificationConfig = Field(default_factory=NotificationConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    db: DatabaseConfig = Field(default_factory=DatabaseConfig)

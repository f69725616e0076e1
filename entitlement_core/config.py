"""
Centralized configuration management for the Entitlement Core library.

This module provides a unified configuration system with support for:
- Environment variables
- Feature flags
- Governance tuning (default tier, conflict retry, reconciliation)
- Validation using Pydantic
"""

import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import EnvironmentVariable, LogLevel, QueueName
from .enums import TierName


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class DatabaseConfig(BaseModel):
    """
    Database connection configuration.

    Read by ``db.db_config.get_production_config``; without a connection
    string the ``DB_*`` host variables are used instead.
    """

    connection_string: Optional[str] = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.DATABASE_URL.value) or None,
        description="Full SQLAlchemy URL (DATABASE_URL)",
    )
    pool_size: int = Field(
        default_factory=lambda: int(os.getenv("DB_POOL_SIZE", "5")),
        description="Connection pool size",
    )
    max_overflow: int = Field(
        default_factory=lambda: int(os.getenv("DB_MAX_OVERFLOW", "10")),
        description="Maximum overflow connections",
    )
    pool_timeout: int = Field(
        default_factory=lambda: int(os.getenv("DB_POOL_TIMEOUT", "30")),
        description="Pool timeout in seconds",
    )
    echo: bool = Field(
        default_factory=lambda: os.getenv("DB_ECHO", "false").lower() == "true",
        description="Echo SQL statements",
    )


class QueueConfig(BaseModel):
    """Queue configuration for Azure Storage Queues."""

    connection_string: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.AZURE_STORAGE_CONNECTION.value, ""),
        description="Azure Storage connection string",
    )
    logs_queue_name: str = Field(default=QueueName.LOGS.value, description="Logs queue name")
    audit_queue_name: str = Field(
        default=QueueName.USAGE_AUDIT.value, description="Usage audit queue name"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(validate_default=True)

    level: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.LOG_LEVEL.value, LogLevel.INFO.value),
        description="Logging level",
    )
    queue_batch_size: int = Field(default=10, description="Log entries per queue flush")

    @field_validator("level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class FeatureFlags(BaseModel):
    """Feature flags for controlling library behavior."""

    enable_logs_queue: bool = Field(
        default_factory=lambda: _env_flag(EnvironmentVariable.ENABLE_LOGS_QUEUE.value),
        description="Ship log entries to the Azure logs queue",
    )
    enable_audit_queue: bool = Field(
        default_factory=lambda: _env_flag(EnvironmentVariable.ENABLE_AUDIT_QUEUE.value),
        description="Publish applied usage records to the Azure audit queue",
    )
    enable_operation_context: bool = Field(
        default=True, description="Enable operation context tracking"
    )


class GovernanceConfig(BaseModel):
    """Tuning for quota governance."""

    model_config = ConfigDict(validate_default=True)

    default_tier: TierName = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.DEFAULT_TIER.value, TierName.BASIC.value
        ),
        description="Tier assigned to tenants created without an explicit tier",
    )
    conflict_retry_attempts: int = Field(
        default=3, ge=1, description="Attempts made by retry_on_conflict"
    )
    conflict_retry_backoff_ms: int = Field(
        default=50, ge=0, description="Base backoff between conflict retries (milliseconds)"
    )
    reconciliation_batch_size: int = Field(
        default=100, ge=1, description="Tenants loaded per batch by reconcile_all"
    )

    @field_validator("default_tier", mode="before")
    def validate_default_tier(cls, v: Any) -> TierName:
        """Reject unknown tier names early."""
        tier = TierName.parse(v)
        if tier is None:
            valid_tiers = [t.value for t in TierName]
            raise ValueError(f"Invalid default tier: {v}. Must be one of {valid_tiers}")
        return tier


class AppConfig(BaseModel):
    """Main application configuration."""

    environment: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.APP_ENV.value, "development"),
        description="Application environment",
    )
    debug: bool = Field(
        default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true",
        description="Debug mode",
    )

    # Sub-configurations
    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Database configuration"
    )
    queue: QueueConfig = Field(default_factory=QueueConfig, description="Queue configuration")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    features: FeatureFlags = Field(default_factory=FeatureFlags, description="Feature flags")
    governance: GovernanceConfig = Field(
        default_factory=GovernanceConfig, description="Governance configuration"
    )

    # Custom configuration
    custom: Dict[str, Any] = Field(default_factory=dict, description="Custom configuration values")

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls()

    def get_custom(self, key: str, default: Any = None) -> Any:
        """Get a custom configuration value."""
        return self.custom.get(key, default)

    def set_custom(self, key: str, value: Any) -> None:
        """Set a custom configuration value."""
        self.custom[key] = value


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None

"""
Constants for the Entitlement Core library.

This module centralizes the magic strings used throughout the library
to ensure consistency and maintainability.
"""

from enum import Enum


class QueueName(str, Enum):
    """Standard queue names used by the library."""

    LOGS = "logs-queue"
    USAGE_AUDIT = "usage-audit-queue"


class OperationStatus(str, Enum):
    """Status values for operations."""

    SUCCESS = "success"
    ERROR = "error"


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    AZURE_STORAGE_CONNECTION = "AzureWebJobsStorage"
    DATABASE_URL = "DATABASE_URL"
    APP_ENV = "APP_ENV"
    LOG_LEVEL = "LOG_LEVEL"
    DEFAULT_TIER = "DEFAULT_TIER"
    ENABLE_LOGS_QUEUE = "ENABLE_LOGS_QUEUE"
    ENABLE_AUDIT_QUEUE = "ENABLE_AUDIT_QUEUE"


class LedgerSource(str, Enum):
    """Origin labels written on usage ledger records."""

    USAGE = "usage"
    CALL_COMPLETED = "call_completed"
    CREDIT = "credit"


# Postgres SQLSTATE codes that mean "retry the whole transaction"
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01", "55P03"})

# SQLite reports lock contention through the error message only
RETRYABLE_SQLITE_MESSAGES = ("database is locked", "database table is locked")

MAX_IDEMPOTENCY_KEY_LENGTH = 200

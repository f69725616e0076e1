"""Utility modules for Entitlement Core."""

from .json_utils import dumps, loads
from .logger import (
    AzureQueueHandler,
    ContextAwareLogger,
    TenantContextFilter,
    configure_logging,
    get_logger,
)

__all__ = [
    "AzureQueueHandler",
    "ContextAwareLogger",
    "TenantContextFilter",
    "configure_logging",
    "dumps",
    "get_logger",
    "loads",
]

"""Data access for tenants, the usage ledger and resource slots."""

from .base_repository import BaseRepository, is_retryable_db_error
from .interfaces import AuditSink, ResourceCensus, TenantStore
from .slot_repository import SlotRepository
from .tenant_repository import TenantRepository
from .usage_repository import UsageRepository

__all__ = [
    "AuditSink",
    "BaseRepository",
    "ResourceCensus",
    "SlotRepository",
    "TenantRepository",
    "TenantStore",
    "UsageRepository",
    "is_retryable_db_error",
]

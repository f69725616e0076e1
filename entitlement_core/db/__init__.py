"""
SQLAlchemy models and database configuration.

This module provides a common entry point for all governance models.
"""

from .db_base import JSON, TimestampMixin, UUIDMixin, ensure_utc, utc_now
from .db_config import (
    Base,
    DatabaseConfig,
    DatabaseManager,
    close_db,
    get_db_manager,
    get_development_config,
    get_production_config,
    import_all_models,
    initialize_db,
    set_db_manager,
)
from .db_slot_models import ResourceSlot
from .db_tenant_models import Tenant
from .db_usage_models import UsageRecord

__all__ = [
    # Base definitions
    "Base",
    "JSON",
    "TimestampMixin",
    "UUIDMixin",
    "ensure_utc",
    "utc_now",
    # Configuration
    "DatabaseConfig",
    "DatabaseManager",
    "close_db",
    "get_db_manager",
    "get_development_config",
    "get_production_config",
    "import_all_models",
    "initialize_db",
    "set_db_manager",
    # Models
    "ResourceSlot",
    "Tenant",
    "UsageRecord",
]

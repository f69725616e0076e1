"""
Interfaces the governance components depend on.

The quota enforcer and feature gate only need a tenant store and a resource
census, so hosts can plug in their own sources (e.g. counting agents in
their own tables) while the SQLAlchemy implementations serve as defaults.
"""

from abc import ABC, abstractmethod

from ..db.db_tenant_models import Tenant
from ..enums import ResourceKind
from ..schemas.entitlement_schema import UsageRecordRead


class TenantStore(ABC):
    """Read access to tenant records."""

    @abstractmethod
    def get_by_tenant_id(self, tenant_id: str) -> Tenant:
        """
        Load a tenant.

        Raises:
            TenantNotFoundError: If no tenant has this id
        """


class ResourceCensus(ABC):
    """Counts live resources (agents, campaigns, concurrent calls) for a tenant."""

    @abstractmethod
    def count_live(self, tenant_id: str, kind: ResourceKind) -> int:
        """Number of resources of ``kind`` the tenant currently holds."""


class AuditSink(ABC):
    """Receives every applied usage record after it is committed."""

    @abstractmethod
    def publish(self, record: UsageRecordRead) -> None:
        """Publish one record. Failures are the caller's to log, not to raise."""

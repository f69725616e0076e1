"""
Factory Boy factories for generating consistent test data.

Limit columns default to None so tenants inherit their tier; tests set
overrides explicitly when they need them.
"""

import factory

from entitlement_core.constants import LedgerSource
from entitlement_core.db import ResourceSlot, Tenant, UsageRecord
from entitlement_core.enums import ResourceKind, TierName

# ==================== BASE FACTORIES ====================


class BaseFactory(factory.alchemy.SQLAlchemyModelFactory):
    """Base factory with common patterns."""

    class Meta:
        abstract = True
        sqlalchemy_session_persistence = "commit"


# ==================== TENANT FACTORIES ====================


class TenantFactory(BaseFactory):
    """Factory for creating test tenants."""

    class Meta:
        model = Tenant

    tenant_id = factory.Sequence(lambda n: f"tenant-{n}")
    name = factory.Faker("company")
    tier = TierName.BASIC.value
    max_agents = None
    max_campaigns = None
    max_concurrent_calls = None
    max_minutes = None
    minutes_used = 0
    allowed_features = factory.LazyFunction(dict)
    is_active = True
    subscription_expires_at = None
    created_by = "test-admin"


class PremiumTenantFactory(TenantFactory):
    tier = TierName.PREMIUM.value


class EnterpriseTenantFactory(TenantFactory):
    tier = TierName.ENTERPRISE.value


# ==================== LEDGER AND SLOT FACTORIES ====================


class UsageRecordFactory(BaseFactory):
    class Meta:
        model = UsageRecord

    tenant_id = "tenant-0"
    minutes_delta = 10
    idempotency_key = factory.Sequence(lambda n: f"call-{n}")
    source = LedgerSource.USAGE.value


class ResourceSlotFactory(BaseFactory):
    class Meta:
        model = ResourceSlot

    tenant_id = "tenant-0"
    resource_kind = ResourceKind.AGENT.value
    slot_index = factory.Sequence(lambda n: n)
    resource_ref = factory.Sequence(lambda n: f"agent-{n}")


# ==================== FACTORY CONFIGURATION ====================


def configure_factories(session):
    """Configure all factories to use the provided session."""
    factories = [
        TenantFactory,
        PremiumTenantFactory,
        EnterpriseTenantFactory,
        UsageRecordFactory,
        ResourceSlotFactory,
    ]

    for factory_class in factories:
        factory_class._meta.sqlalchemy_session = session

"""
Read models produced by the governance components.

All of them are immutable values; checks return them instead of raising.
"""

from datetime import datetime
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..enums import Feature, QuotaReason, ResourceKind, TenantStatus
from .tenant_schema import TenantRead


class EffectiveEntitlements(BaseModel):
    """Tier defaults merged with tenant overrides, resolved once per request."""

    tenant_id: str
    tier: str
    status: TenantStatus
    is_active: bool
    subscription_expired: bool = False
    max_agents: int = Field(ge=0)
    max_campaigns: int = Field(ge=0)
    max_concurrent_calls: int = Field(ge=0)
    max_minutes: int = Field(ge=0)
    minutes_used: int = Field(ge=0)
    minutes_remaining: int = Field(ge=0)
    features: FrozenSet[Feature] = frozenset()

    model_config = ConfigDict(frozen=True)

    @property
    def can_operate(self) -> bool:
        """Whether any gate may open at all for this tenant."""
        return self.is_active and not self.subscription_expired

    def has_feature(self, feature) -> bool:
        parsed = Feature.parse(feature)
        return parsed is not None and parsed in self.features

    def limit_for(self, kind: ResourceKind) -> int:
        return {
            ResourceKind.AGENT: self.max_agents,
            ResourceKind.CAMPAIGN: self.max_campaigns,
            ResourceKind.CALL: self.max_concurrent_calls,
        }[ResourceKind(kind)]


class QuotaCheckResult(BaseModel):
    """Outcome of a quota check. A denial is a value, not an exception."""

    allowed: bool
    reason: QuotaReason
    current: int = 0
    max: int = 0
    remaining: int = 0
    resource: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class FeatureCheckResult(BaseModel):
    """Outcome of a feature gate check."""

    allowed: bool
    reason: QuotaReason
    feature: str

    model_config = ConfigDict(frozen=True)


class UsageResult(BaseModel):
    """
    Result of recording usage.

    ``applied`` is False for an idempotent replay; ``minutes_used`` is then
    the tenant's current balance and nothing changed.
    """

    tenant_id: str
    minutes_used: int
    applied: bool
    sequence: Optional[int] = None

    model_config = ConfigDict(frozen=True)


class UsageRecordRead(BaseModel):
    sequence: int
    tenant_id: str
    minutes_delta: int
    idempotency_key: str
    source: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)


class UsageBalance(BaseModel):
    tenant_id: str
    minutes_used: int
    max_minutes: int
    remaining: int
    status: TenantStatus


class ReconciliationResult(BaseModel):
    """Stored balance compared with the balance replayed from the ledger."""

    tenant_id: str
    stored_minutes_used: int
    ledger_minutes_used: int
    record_count: int
    corrected: bool = False

    @property
    def drift(self) -> int:
        return self.stored_minutes_used - self.ledger_minutes_used

    @property
    def in_sync(self) -> bool:
        return self.drift == 0


class SlotReservation(BaseModel):
    """A held slot for one counted resource."""

    tenant_id: str
    resource_kind: ResourceKind
    slot_index: int
    resource_ref: str
    created_at: Optional[datetime] = None
    reused: bool = False

    model_config = ConfigDict(from_attributes=True)


class TenantOverview(BaseModel):
    """Admin dashboard view of one tenant."""

    tenant: TenantRead
    entitlements: EffectiveEntitlements
    agents_used: int
    campaigns_used: int
    concurrent_calls: int
    minutes_remaining: int


class SystemUsageStats(BaseModel):
    """Aggregate numbers across every tenant."""

    total_tenants: int = 0
    active_tenants: int = 0
    inactive_tenants: int = 0
    tenants_by_tier: Dict[str, int] = Field(default_factory=dict)
    total_minutes_used: int = 0
    total_minutes_allowed: int = 0

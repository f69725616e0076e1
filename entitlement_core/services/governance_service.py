"""
Governance facade.

Wires the quota enforcer, feature gate, usage ledger, slot admission and
admin overrides behind one object. Every call runs inside
``tenant_context(tenant_id)`` so logs and errors carry the tenant.
"""

from typing import List, Optional, Union

from sqlalchemy.orm import Session

from ..constants import LedgerSource
from ..context.tenant_context import tenant_aware, tenant_context
from ..enums import Feature, ResourceKind, TierName
from ..governance.entitlement_resolver import resolve_entitlements
from ..repositories.interfaces import AuditSink, ResourceCensus
from ..repositories.slot_repository import SlotRepository
from ..repositories.tenant_repository import TenantRepository
from ..schemas.entitlement_schema import (
    EffectiveEntitlements,
    FeatureCheckResult,
    QuotaCheckResult,
    SlotReservation,
    TenantOverview,
    UsageResult,
)
from ..schemas.tenant_schema import FeaturesUpdate, LimitsUpdate, TenantCreate, TenantRead
from ..utils.audit_sink import build_audit_sink
from .admin_override_service import AdminOverrideService
from .base_service import SessionManagedService
from .feature_gate import FeatureGate
from .quota_enforcer import QuotaEnforcer
from .resource_slot_service import ResourceSlotService
from .usage_ledger_service import UsageLedgerService


class GovernanceService(SessionManagedService):
    """
    Library entry point for entitlement governance.

    Args:
        session: Caller-managed session; without one every call commits on
            the thread's session from the global DatabaseManager
        census: Source of live agent/campaign/call counts (default: slot table)
        audit_sink: Receiver of applied usage records (default: from config)
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        census: Optional[ResourceCensus] = None,
        audit_sink: Optional[AuditSink] = None,
        logger=None,
    ):
        super().__init__(session=session, logger=logger)
        # Sub-services take the thread's session themselves unless the caller injected one
        shared_session = None if self.owns_session else self.session

        self.tenant_repository = TenantRepository(self.session, self.logger)
        self.census = census or SlotRepository(self.session, self.logger)
        self.quota_enforcer = QuotaEnforcer(self.tenant_repository, self.census, self.logger)
        self.feature_gate = FeatureGate(self.tenant_repository, self.logger)

        self.usage_ledger = UsageLedgerService(
            session=shared_session,
            audit_sink=audit_sink or build_audit_sink(),
            logger=self.logger,
        )
        self.slots = ResourceSlotService(session=shared_session, logger=self.logger)
        self.admin = AdminOverrideService(session=shared_session, logger=self.logger)

    # ==================== CHECKS ====================

    @tenant_aware
    def can_create_agent(self, tenant_id: str) -> QuotaCheckResult:
        with self.transaction():
            return self.quota_enforcer.can_create_agent(tenant_id)

    @tenant_aware
    def can_create_campaign(self, tenant_id: str) -> QuotaCheckResult:
        with self.transaction():
            return self.quota_enforcer.can_create_campaign(tenant_id)

    @tenant_aware
    def can_start_concurrent_call(self, tenant_id: str) -> QuotaCheckResult:
        with self.transaction():
            return self.quota_enforcer.can_start_concurrent_call(tenant_id)

    @tenant_aware
    def has_minutes_remaining(self, tenant_id: str) -> QuotaCheckResult:
        with self.transaction():
            return self.quota_enforcer.has_minutes_remaining(tenant_id)

    @tenant_aware
    def can_access_feature(self, tenant_id: str, feature: Union[Feature, str]) -> FeatureCheckResult:
        with self.transaction():
            return self.feature_gate.can_access_feature(tenant_id, feature)

    @tenant_aware
    def get_effective_entitlements(self, tenant_id: str) -> EffectiveEntitlements:
        with self.transaction():
            return resolve_entitlements(self.tenant_repository.get_by_tenant_id(tenant_id))

    @tenant_aware
    def get_tenant_overview(self, tenant_id: str) -> TenantOverview:
        """Entitlements plus live counts, for admin dashboards."""
        with self.transaction():
            tenant = self.tenant_repository.get_by_tenant_id(tenant_id)
            entitlements = resolve_entitlements(tenant)
            return TenantOverview(
                tenant=TenantRead.model_validate(tenant),
                entitlements=entitlements,
                agents_used=self.census.count_live(tenant_id, ResourceKind.AGENT),
                campaigns_used=self.census.count_live(tenant_id, ResourceKind.CAMPAIGN),
                concurrent_calls=self.census.count_live(tenant_id, ResourceKind.CALL),
                minutes_remaining=entitlements.minutes_remaining,
            )

    # ==================== USAGE ====================

    @tenant_aware
    def record_usage(
        self,
        tenant_id: str,
        minutes_delta: int,
        idempotency_key: str,
        source: str = LedgerSource.USAGE.value,
    ) -> UsageResult:
        return self.usage_ledger.record_usage(tenant_id, minutes_delta, idempotency_key, source=source)

    @tenant_aware
    def credit_minutes(self, tenant_id: str, minutes: int, idempotency_key: str) -> UsageResult:
        return self.usage_ledger.credit_minutes(tenant_id, minutes, idempotency_key)

    # ==================== ADMISSION ====================

    @tenant_aware
    def acquire_slot(self, tenant_id: str, kind: ResourceKind, resource_ref: str) -> SlotReservation:
        return self.slots.acquire_slot(tenant_id, kind, resource_ref)

    @tenant_aware
    def release_slot(self, tenant_id: str, kind: ResourceKind, resource_ref: str) -> bool:
        return self.slots.release_slot(tenant_id, kind, resource_ref)

    # ==================== ADMIN ====================

    def create_tenant(self, tenant_data: TenantCreate) -> TenantRead:
        with tenant_context(tenant_data.tenant_id):
            return self.admin.create_tenant(tenant_data)

    @tenant_aware
    def update_limits(self, tenant_id: str, limits: LimitsUpdate) -> TenantRead:
        return self.admin.update_limits(tenant_id, limits)

    @tenant_aware
    def update_features(self, tenant_id: str, update: FeaturesUpdate) -> TenantRead:
        return self.admin.update_features(tenant_id, update)

    @tenant_aware
    def set_active(self, tenant_id: str, active: bool) -> TenantRead:
        return self.admin.set_active(tenant_id, active)

    @tenant_aware
    def change_tier(self, tenant_id: str, new_tier: Union[TierName, str]) -> TenantRead:
        return self.admin.change_tier(tenant_id, new_tier)

    def list_tenants(self, limit: int = 100, offset: int = 0) -> List[TenantRead]:
        return self.admin.list_tenants(limit=limit, offset=offset)

"""
Quota checks for counted resources and the minute budget.

A check is a hint for UIs and fast paths: the count it reads may be stale
by the time the caller creates anything. ``ResourceSlotService`` is the
authoritative admission path.
"""

from typing import Optional

from ..enums import QuotaReason, ResourceKind
from ..governance.entitlement_resolver import resolve_entitlements
from ..repositories.interfaces import ResourceCensus, TenantStore
from ..schemas.entitlement_schema import EffectiveEntitlements, QuotaCheckResult
from ..utils.logger import get_logger


def inactive_reason(entitlements: EffectiveEntitlements) -> Optional[QuotaReason]:
    """Reason every gate is closed for this tenant, or None if it may operate."""
    if not entitlements.is_active:
        return QuotaReason.TENANT_INACTIVE
    if entitlements.subscription_expired:
        return QuotaReason.SUBSCRIPTION_EXPIRED
    return None


class QuotaEnforcer:
    """Answers "may this tenant have one more X?" without raising for a denial."""

    def __init__(self, tenant_store: TenantStore, census: ResourceCensus, logger=None):
        self.tenant_store = tenant_store
        self.census = census
        self.logger = logger or get_logger()

    def can_create_agent(self, tenant_id: str) -> QuotaCheckResult:
        return self.check_resource(tenant_id, ResourceKind.AGENT)

    def can_create_campaign(self, tenant_id: str) -> QuotaCheckResult:
        return self.check_resource(tenant_id, ResourceKind.CAMPAIGN)

    def can_start_concurrent_call(self, tenant_id: str) -> QuotaCheckResult:
        return self.check_resource(tenant_id, ResourceKind.CALL)

    def check_resource(self, tenant_id: str, kind: ResourceKind) -> QuotaCheckResult:
        """
        Compare the tenant's live count of ``kind`` with its effective limit.

        Raises:
            TenantNotFoundError: If the tenant does not exist
        """
        kind = ResourceKind(kind)
        entitlements = resolve_entitlements(self.tenant_store.get_by_tenant_id(tenant_id))

        reason = inactive_reason(entitlements)
        if reason is not None:
            return self._deny(tenant_id, kind.value, reason)

        limit = entitlements.limit_for(kind)
        current = self.census.count_live(tenant_id, kind)
        return self._evaluate(tenant_id, kind.value, current, limit)

    def has_minutes_remaining(self, tenant_id: str) -> QuotaCheckResult:
        entitlements = resolve_entitlements(self.tenant_store.get_by_tenant_id(tenant_id))

        reason = inactive_reason(entitlements)
        if reason is not None:
            return self._deny(tenant_id, "minutes", reason, current=entitlements.minutes_used)

        return self._evaluate(
            tenant_id, "minutes", entitlements.minutes_used, entitlements.max_minutes
        )

    def _evaluate(self, tenant_id: str, resource: str, current: int, limit: int) -> QuotaCheckResult:
        if current < limit:
            return QuotaCheckResult(
                allowed=True,
                reason=QuotaReason.OK,
                current=current,
                max=limit,
                remaining=limit - current,
                resource=resource,
            )
        return self._deny(tenant_id, resource, QuotaReason.LIMIT_EXCEEDED, current=current, limit=limit)

    def _deny(
        self,
        tenant_id: str,
        resource: str,
        reason: QuotaReason,
        current: int = 0,
        limit: int = 0,
    ) -> QuotaCheckResult:
        self.logger.debug(
            f"Quota denied for {resource}: {reason.value}",
            extra={
                "tenant_id": tenant_id,
                "resource": resource,
                "reason": reason.value,
                "current": current,
                "max": limit,
            },
        )
        return QuotaCheckResult(
            allowed=False,
            reason=reason,
            current=current,
            max=limit,
            remaining=0,
            resource=resource,
        )

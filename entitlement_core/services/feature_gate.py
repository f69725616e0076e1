"""Feature gate: is a tenant entitled to a named capability right now."""

from typing import Union

from ..enums import Feature, QuotaReason
from ..exceptions import FeatureNotAllowedError
from ..governance.entitlement_resolver import resolve_entitlements
from ..repositories.interfaces import TenantStore
from ..schemas.entitlement_schema import EffectiveEntitlements, FeatureCheckResult
from ..utils.logger import get_logger
from .quota_enforcer import inactive_reason


def evaluate_feature(
    entitlements: EffectiveEntitlements, feature: Union[Feature, str]
) -> FeatureCheckResult:
    """Check an already resolved entitlement set; unknown names are simply not allowed."""
    parsed = Feature.parse(feature)
    name = parsed.value if parsed is not None else str(feature)

    reason = inactive_reason(entitlements)
    if reason is not None:
        return FeatureCheckResult(allowed=False, reason=reason, feature=name)

    if parsed is not None and parsed in entitlements.features:
        return FeatureCheckResult(allowed=True, reason=QuotaReason.OK, feature=name)
    return FeatureCheckResult(allowed=False, reason=QuotaReason.FEATURE_NOT_ALLOWED, feature=name)


class FeatureGate:
    def __init__(self, tenant_store: TenantStore, logger=None):
        self.tenant_store = tenant_store
        self.logger = logger or get_logger()

    def can_access_feature(self, tenant_id: str, feature: Union[Feature, str]) -> FeatureCheckResult:
        """
        Args:
            tenant_id: Tenant to check
            feature: ``Feature`` member or its string value

        Raises:
            TenantNotFoundError: If the tenant does not exist
        """
        entitlements = resolve_entitlements(self.tenant_store.get_by_tenant_id(tenant_id))
        result = evaluate_feature(entitlements, feature)
        if not result.allowed:
            self.logger.debug(
                f"Feature '{result.feature}' denied: {result.reason.value}",
                extra={"tenant_id": tenant_id, "feature": result.feature, "reason": result.reason.value},
            )
        return result

    def require_feature(self, tenant_id: str, feature: Union[Feature, str]) -> None:
        """Like ``can_access_feature`` but raises ``FeatureNotAllowedError`` on denial."""
        result = self.can_access_feature(tenant_id, feature)
        if not result.allowed:
            raise FeatureNotAllowedError(tenant_id, result.feature, reason=result.reason.value)

"""
Entitlement resolution.

Combines a tenant's tier defaults with its per-tenant overrides into one
immutable ``EffectiveEntitlements`` value. Pure: no I/O beyond logging.
"""

from datetime import datetime
from typing import Any, Optional, Set

from ..db.db_base import ensure_utc, utc_now
from ..enums import Feature, TenantStatus
from ..schemas.entitlement_schema import EffectiveEntitlements
from ..utils.logger import get_logger
from .tier_catalog import resolve_tier_defaults


def _override(value: Optional[int], default: int) -> int:
    return default if value is None else value


def is_subscription_expired(tenant: Any, now: Optional[datetime] = None) -> bool:
    expires_at = ensure_utc(getattr(tenant, "subscription_expires_at", None))
    if expires_at is None:
        return False
    return expires_at <= (now or utc_now())


def derive_status(is_active: bool, minutes_used: int, max_minutes: int) -> TenantStatus:
    """
    Derive the tenant status.

    ``suspended`` is not stored anywhere: an active tenant is suspended
    exactly while its balance has reached the minute limit.
    """
    if not is_active:
        return TenantStatus.DEACTIVATED
    if minutes_used >= max_minutes:
        return TenantStatus.SUSPENDED
    return TenantStatus.ACTIVE


def resolve_features(tier_features, overrides) -> Set[Feature]:
    """Apply feature -> bool overrides to the tier's feature set."""
    features = set(tier_features)
    for key, enabled in (overrides or {}).items():
        feature = Feature.parse(key)
        if feature is None:
            get_logger().warning(
                f"Ignoring unknown feature override '{key}'", extra={"feature": key}
            )
            continue
        if enabled:
            features.add(feature)
        else:
            features.discard(feature)
    return features


def resolve_entitlements(tenant: Any, now: Optional[datetime] = None) -> EffectiveEntitlements:
    """
    Resolve the effective limits and features of a tenant.

    Args:
        tenant: ORM ``Tenant`` or ``TenantRead``
        now: Clock used for subscription expiry (default: current UTC time)

    Returns:
        EffectiveEntitlements; a deactivated or expired tenant resolves to
        zero limits and no features so every gate fails closed.
    """
    tier = resolve_tier_defaults(tenant.tier)
    minutes_used = max(tenant.minutes_used or 0, 0)
    is_active = bool(tenant.is_active)
    expired = is_subscription_expired(tenant, now)

    max_agents = _override(tenant.max_agents, tier.max_agents)
    max_campaigns = _override(tenant.max_campaigns, tier.max_campaigns)
    max_concurrent_calls = _override(tenant.max_concurrent_calls, tier.max_concurrent_calls)
    max_minutes = _override(tenant.max_minutes, tier.max_minutes)
    features = resolve_features(tier.features, tenant.allowed_features)

    if not is_active or expired:
        max_agents = max_campaigns = max_concurrent_calls = max_minutes = 0
        features = set()

    # An expired but active tenant has no minutes left, so it reads as suspended
    status = derive_status(is_active, minutes_used, max_minutes)

    return EffectiveEntitlements(
        tenant_id=tenant.tenant_id,
        tier=tier.name.value,
        status=status,
        is_active=is_active,
        subscription_expired=expired,
        max_agents=max_agents,
        max_campaigns=max_campaigns,
        max_concurrent_calls=max_concurrent_calls,
        max_minutes=max_minutes,
        minutes_used=minutes_used,
        minutes_remaining=max(max_minutes - minutes_used, 0),
        features=frozenset(features),
    )

"""Pure governance logic: tier catalog and entitlement resolution."""

from .entitlement_resolver import derive_status, resolve_entitlements
from .tier_catalog import TierDefinition, all_tiers, is_known_tier, resolve_tier_defaults

__all__ = [
    "TierDefinition",
    "all_tiers",
    "derive_status",
    "is_known_tier",
    "resolve_entitlements",
    "resolve_tier_defaults",
]

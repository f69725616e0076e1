"""
Subscription tier catalog.

A single immutable table maps every ``TierName`` to its default limits and
feature set. Adding a tier means adding the enum member and one entry here;
the coverage check below fails at import if the two drift apart.
"""

from types import MappingProxyType
from typing import FrozenSet, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field

from ..enums import Feature, TierName
from ..utils.logger import get_logger


class TierDefinition(BaseModel):
    """Default limits and features for one subscription tier."""

    name: TierName
    max_agents: int = Field(ge=0)
    max_campaigns: int = Field(ge=0)
    max_concurrent_calls: int = Field(ge=0)
    max_minutes: int = Field(ge=0)
    features: FrozenSet[Feature] = frozenset()

    model_config = ConfigDict(frozen=True)


_BASIC_FEATURES = frozenset({Feature.BASIC_CALLING})

_TIERS: Mapping[TierName, TierDefinition] = MappingProxyType(
    {
        TierName.BASIC: TierDefinition(
            name=TierName.BASIC,
            max_agents=1,
            max_campaigns=1,
            max_concurrent_calls=1,
            max_minutes=100,
            features=_BASIC_FEATURES,
        ),
        TierName.PREMIUM: TierDefinition(
            name=TierName.PREMIUM,
            max_agents=5,
            max_campaigns=5,
            max_concurrent_calls=3,
            max_minutes=500,
            features=frozenset(
                {
                    Feature.BASIC_CALLING,
                    Feature.ADVANCED_ANALYTICS,
                    Feature.CUSTOM_VOICES,
                    Feature.PRIORITY_SUPPORT,
                    Feature.CALL_RECORDING,
                }
            ),
        ),
        TierName.ENTERPRISE: TierDefinition(
            name=TierName.ENTERPRISE,
            max_agents=20,
            max_campaigns=25,
            max_concurrent_calls=10,
            max_minutes=2000,
            features=frozenset(Feature),
        ),
        # Custom tenants start from basic; admins shape them with overrides
        TierName.CUSTOM: TierDefinition(
            name=TierName.CUSTOM,
            max_agents=1,
            max_campaigns=1,
            max_concurrent_calls=1,
            max_minutes=100,
            features=_BASIC_FEATURES,
        ),
    }
)

FALLBACK_TIER = TierName.BASIC


def _check_catalog_coverage() -> None:
    missing = set(TierName) - set(_TIERS)
    if missing:
        raise RuntimeError(f"Tier catalog missing entries for: {sorted(t.value for t in missing)}")
    for key, definition in _TIERS.items():
        if definition.name is not key:
            raise RuntimeError(f"Tier catalog entry {key.value} is named {definition.name.value}")


_check_catalog_coverage()


def is_known_tier(tier_name: Union[str, TierName, None]) -> bool:
    return TierName.parse(tier_name) is not None


def resolve_tier_defaults(tier_name: Union[str, TierName, None]) -> TierDefinition:
    """
    Look up the defaults for a tier.

    Unknown or missing names resolve to the basic tier with a warning; this
    function never raises. Admin paths that must reject unknown tiers check
    ``is_known_tier`` first.
    """
    tier = TierName.parse(tier_name)
    if tier is None:
        get_logger().warning(
            f"Unknown tier '{tier_name}', falling back to {FALLBACK_TIER.value}",
            extra={"tier": tier_name},
        )
        tier = FALLBACK_TIER
    return _TIERS[tier]


def all_tiers() -> Mapping[TierName, TierDefinition]:
    """Read-only view of the whole catalog."""
    return _TIERS

"""
Domain enumerations for entitlement governance.

Tier names, feature identifiers and check outcomes are closed sets; using
enums keeps lookups exhaustive and typo-free instead of free-form strings.
"""

from enum import Enum
from typing import Optional


class TierName(str, Enum):
    """Subscription tiers known to the tier catalog."""

    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value) -> Optional["TierName"]:
        """Return the matching tier or None for unknown names."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class Feature(str, Enum):
    """Gated capabilities a tenant may be entitled to."""

    BASIC_CALLING = "basic_calling"
    ADVANCED_ANALYTICS = "advanced_analytics"
    CUSTOM_VOICES = "custom_voices"
    API_ACCESS = "api_access"
    PRIORITY_SUPPORT = "priority_support"
    WHITE_LABEL = "white_label"
    CALL_RECORDING = "call_recording"
    DATA_EXPORT = "data_export"
    WEBHOOKS = "webhooks"

    @classmethod
    def parse(cls, value) -> Optional["Feature"]:
        """Return the matching feature or None for unknown names."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class ResourceKind(str, Enum):
    """Counted resources governed by quotas."""

    AGENT = "agent"
    CAMPAIGN = "campaign"
    CALL = "call"


class QuotaReason(str, Enum):
    """Outcome reasons reported by quota and feature checks."""

    OK = "ok"
    TENANT_INACTIVE = "tenant_inactive"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    LIMIT_EXCEEDED = "limit_exceeded"
    FEATURE_NOT_ALLOWED = "feature_not_allowed"


class TenantStatus(str, Enum):
    """
    Derived tenant status.

    Only ``is_active`` is stored; ``SUSPENDED`` is read off the minute balance
    so it can never drift from the ledger.
    """

    ACTIVE = "active"
    SUSPENDED = "suspended"
    DEACTIVATED = "deactivated"

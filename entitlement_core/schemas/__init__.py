"""Pydantic schemas for governance inputs and results."""

from .entitlement_schema import (
    EffectiveEntitlements,
    FeatureCheckResult,
    QuotaCheckResult,
    ReconciliationResult,
    SlotReservation,
    SystemUsageStats,
    TenantOverview,
    UsageBalance,
    UsageRecordRead,
    UsageResult,
)
from .tenant_schema import FeaturesUpdate, LimitsUpdate, TenantCreate, TenantRead

__all__ = [
    "EffectiveEntitlements",
    "FeatureCheckResult",
    "FeaturesUpdate",
    "LimitsUpdate",
    "QuotaCheckResult",
    "ReconciliationResult",
    "SlotReservation",
    "SystemUsageStats",
    "TenantCreate",
    "TenantOverview",
    "TenantRead",
    "UsageBalance",
    "UsageRecordRead",
    "UsageResult",
]

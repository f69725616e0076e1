"""
Pydantic schemas for tenant provisioning and admin overrides.

This module defines validation schemas for tenant-related data transfer.
"""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..enums import Feature, TierName
from ..exceptions import InvalidTierError, validation_failed


def _validate_feature_keys(features: Optional[Dict[str, Optional[bool]]]):
    """Normalize feature keys and reject names the catalog does not know."""
    if not features:
        return {}
    if not isinstance(features, dict):
        return features
    normalized = {}
    for key, value in features.items():
        feature = Feature.parse(key)
        if feature is None:
            raise validation_failed("allowed_features", key, f"unknown feature '{key}'")
        normalized[feature.value] = value
    return normalized


class TenantCreate(BaseModel):
    """
    Schema for provisioning a new tenant.

    Limit fields left as None inherit the tier default.
    """

    tenant_id: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=200)
    tier: Optional[TierName] = Field(
        default=None, description="Subscription tier; config default when omitted"
    )

    max_agents: Optional[int] = Field(default=None, ge=0)
    max_campaigns: Optional[int] = Field(default=None, ge=0)
    max_concurrent_calls: Optional[int] = Field(default=None, ge=0)
    max_minutes: Optional[int] = Field(default=None, ge=0)

    allowed_features: Dict[str, bool] = Field(default_factory=dict)
    is_active: bool = Field(default=True)
    subscription_expires_at: Optional[datetime] = None
    created_by: Optional[str] = Field(default=None, max_length=100)

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    @field_validator("tenant_id")
    def strip_tenant_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise validation_failed("tenant_id", v, "must not be blank")
        return v

    @field_validator("tier", mode="before")
    def validate_tier(cls, v):
        if v is None:
            return None
        tier = TierName.parse(v)
        if tier is None:
            raise InvalidTierError(v)
        return tier

    @field_validator("allowed_features", mode="before")
    def validate_features(cls, v):
        return _validate_feature_keys(v)


class TenantRead(BaseModel):
    """Tenant as stored, overrides included (None = inherited)."""

    id: str
    tenant_id: str
    name: str
    tier: str
    max_agents: Optional[int] = None
    max_campaigns: Optional[int] = None
    max_concurrent_calls: Optional[int] = None
    max_minutes: Optional[int] = None
    minutes_used: int = 0
    allowed_features: Dict[str, bool] = Field(default_factory=dict)
    is_active: bool = True
    subscription_expires_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("allowed_features", mode="before")
    def none_to_empty(cls, v):
        return v or {}


class LimitsUpdate(BaseModel):
    """
    Admin limit overrides.

    Only fields explicitly present are applied; an explicit None clears the
    override so the tenant inherits the tier default again. ``minutes_used``
    is not writable here.
    """

    max_agents: Optional[int] = Field(default=None, ge=0)
    max_campaigns: Optional[int] = Field(default=None, ge=0)
    max_concurrent_calls: Optional[int] = Field(default=None, ge=0)
    max_minutes: Optional[int] = Field(default=None, ge=0)

    model_config = ConfigDict(extra="forbid")

    def provided_changes(self) -> Dict[str, Optional[int]]:
        """Fields the caller actually set, mapped to their new values."""
        return {field: getattr(self, field) for field in self.model_fields_set}


class FeaturesUpdate(BaseModel):
    """
    Admin feature overrides, merged into the tenant's current overrides.

    True grants, False revokes, None removes the override (tier decides).
    """

    features: Dict[str, Optional[bool]]

    model_config = ConfigDict(extra="forbid")

    @field_validator("features", mode="before")
    def validate_features(cls, v):
        return _validate_feature_keys(v)

"""
Tests for entitlement resolution.

Resolution is pure, so tenants here are plain attribute bags rather than
database rows.
"""

from datetime import timedelta
from types import SimpleNamespace

import pytest

from entitlement_core.db import utc_now
from entitlement_core.enums import Feature, ResourceKind, TenantStatus, TierName
from entitlement_core.governance import derive_status, resolve_entitlements
from entitlement_core.governance.entitlement_resolver import (
    is_subscription_expired,
    resolve_features,
)


def make_tenant(**overrides):
    values = dict(
        tenant_id="tenant-a",
        tier=TierName.BASIC.value,
        max_agents=None,
        max_campaigns=None,
        max_concurrent_calls=None,
        max_minutes=None,
        minutes_used=0,
        allowed_features={},
        is_active=True,
        subscription_expires_at=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class TestLimitResolution:
    def test_inherits_tier_defaults(self):
        entitlements = resolve_entitlements(make_tenant(tier="premium"))

        assert entitlements.tier == "premium"
        assert entitlements.max_agents == 5
        assert entitlements.max_campaigns == 5
        assert entitlements.max_concurrent_calls == 3
        assert entitlements.max_minutes == 500

    def test_overrides_win_over_tier(self):
        entitlements = resolve_entitlements(make_tenant(max_agents=7, max_minutes=50))

        assert entitlements.max_agents == 7
        assert entitlements.max_minutes == 50
        assert entitlements.max_campaigns == 1

    def test_zero_override_is_not_treated_as_missing(self):
        entitlements = resolve_entitlements(make_tenant(tier="enterprise", max_agents=0))
        assert entitlements.max_agents == 0

    def test_unknown_stored_tier_resolves_as_basic(self):
        entitlements = resolve_entitlements(make_tenant(tier="legacy-gold"))

        assert entitlements.tier == "basic"
        assert entitlements.max_minutes == 100

    def test_limit_for(self):
        entitlements = resolve_entitlements(make_tenant(tier="enterprise"))

        assert entitlements.limit_for(ResourceKind.AGENT) == 20
        assert entitlements.limit_for("campaign") == 25
        assert entitlements.limit_for(ResourceKind.CALL) == 10


class TestMinutes:
    @pytest.mark.parametrize(
        "used,limit,remaining",
        [(0, 100, 100), (95, 100, 5), (100, 100, 0), (105, 100, 0)],
    )
    def test_minutes_remaining_never_negative(self, used, limit, remaining):
        entitlements = resolve_entitlements(make_tenant(minutes_used=used, max_minutes=limit))
        assert entitlements.minutes_remaining == remaining


class TestStatus:
    @pytest.mark.parametrize(
        "is_active,used,limit,expected",
        [
            (True, 0, 100, TenantStatus.ACTIVE),
            (True, 99, 100, TenantStatus.ACTIVE),
            (True, 100, 100, TenantStatus.SUSPENDED),
            (True, 150, 100, TenantStatus.SUSPENDED),
            (False, 0, 100, TenantStatus.DEACTIVATED),
            (False, 150, 100, TenantStatus.DEACTIVATED),
        ],
    )
    def test_derive_status(self, is_active, used, limit, expected):
        assert derive_status(is_active, used, limit) == expected

    def test_status_reported_on_entitlements(self):
        entitlements = resolve_entitlements(make_tenant(minutes_used=100))
        assert entitlements.status == TenantStatus.SUSPENDED


class TestFeatures:
    def test_tier_features(self):
        entitlements = resolve_entitlements(make_tenant())

        assert entitlements.has_feature(Feature.BASIC_CALLING)
        assert not entitlements.has_feature("advanced_analytics")

    def test_grant_and_revoke_overrides(self):
        tenant = make_tenant(
            tier="premium",
            allowed_features={"white_label": True, "call_recording": False},
        )
        entitlements = resolve_entitlements(tenant)

        assert entitlements.has_feature(Feature.WHITE_LABEL)
        assert not entitlements.has_feature(Feature.CALL_RECORDING)
        assert entitlements.has_feature(Feature.CUSTOM_VOICES)

    def test_unknown_override_keys_are_ignored(self):
        features = resolve_features({Feature.BASIC_CALLING}, {"teleportation": True})
        assert features == {Feature.BASIC_CALLING}

    def test_none_overrides(self):
        assert resolve_features({Feature.WEBHOOKS}, None) == {Feature.WEBHOOKS}

    def test_unknown_feature_name_is_never_granted(self):
        entitlements = resolve_entitlements(make_tenant(tier="enterprise"))
        assert not entitlements.has_feature("teleportation")


class TestFailClosed:
    def test_deactivated_tenant_has_nothing(self):
        entitlements = resolve_entitlements(make_tenant(tier="enterprise", is_active=False))

        assert not entitlements.can_operate
        assert entitlements.max_agents == 0
        assert entitlements.max_minutes == 0
        assert entitlements.minutes_remaining == 0
        assert entitlements.features == frozenset()
        assert entitlements.status == TenantStatus.DEACTIVATED

    def test_expired_subscription_has_nothing(self):
        tenant = make_tenant(
            tier="premium", subscription_expires_at=utc_now() - timedelta(days=1)
        )
        entitlements = resolve_entitlements(tenant)

        assert entitlements.subscription_expired
        assert entitlements.is_active
        assert not entitlements.can_operate
        assert entitlements.max_concurrent_calls == 0
        assert entitlements.features == frozenset()

    def test_expired_subscription_reads_as_suspended(self):
        tenant = make_tenant(minutes_used=0, subscription_expires_at=utc_now() - timedelta(hours=1))
        entitlements = resolve_entitlements(tenant)

        assert entitlements.status == TenantStatus.SUSPENDED
        assert entitlements.max_minutes == 0

    def test_future_expiry_is_not_expired(self):
        tenant = make_tenant(subscription_expires_at=utc_now() + timedelta(days=30))
        entitlements = resolve_entitlements(tenant)

        assert not entitlements.subscription_expired
        assert entitlements.can_operate

    def test_naive_expiry_is_treated_as_utc(self):
        naive_past = (utc_now() - timedelta(hours=1)).replace(tzinfo=None)
        assert is_subscription_expired(make_tenant(subscription_expires_at=naive_past))

    def test_explicit_clock(self):
        expires = utc_now()
        tenant = make_tenant(subscription_expires_at=expires)

        assert not is_subscription_expired(tenant, now=expires - timedelta(seconds=1))
        assert is_subscription_expired(tenant, now=expires)

    def test_entitlements_are_immutable(self):
        entitlements = resolve_entitlements(make_tenant())
        with pytest.raises(Exception):
            entitlements.max_agents = 10

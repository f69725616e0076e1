"""Tests for the subscription tier catalog."""

import pytest

from entitlement_core.enums import Feature, TierName
from entitlement_core.governance import all_tiers, is_known_tier, resolve_tier_defaults
from entitlement_core.governance.tier_catalog import FALLBACK_TIER


class TestTierCatalog:
    """Test default limits per tier."""

    @pytest.mark.parametrize(
        "tier,agents,campaigns,calls,minutes",
        [
            (TierName.BASIC, 1, 1, 1, 100),
            (TierName.PREMIUM, 5, 5, 3, 500),
            (TierName.ENTERPRISE, 20, 25, 10, 2000),
            (TierName.CUSTOM, 1, 1, 1, 100),
        ],
    )
    def test_tier_defaults(self, tier, agents, campaigns, calls, minutes):
        definition = resolve_tier_defaults(tier)

        assert definition.name == tier
        assert definition.max_agents == agents
        assert definition.max_campaigns == campaigns
        assert definition.max_concurrent_calls == calls
        assert definition.max_minutes == minutes

    def test_every_tier_has_an_entry(self):
        assert set(all_tiers()) == set(TierName)

    def test_basic_features(self):
        assert resolve_tier_defaults("basic").features == frozenset({Feature.BASIC_CALLING})

    def test_premium_features(self):
        features = resolve_tier_defaults(TierName.PREMIUM).features

        assert Feature.ADVANCED_ANALYTICS in features
        assert Feature.CALL_RECORDING in features
        assert Feature.WHITE_LABEL not in features

    def test_enterprise_has_every_feature(self):
        assert resolve_tier_defaults(TierName.ENTERPRISE).features == frozenset(Feature)

    def test_lookup_is_case_insensitive(self):
        assert resolve_tier_defaults(" Premium ").name == TierName.PREMIUM

    @pytest.mark.parametrize("tier_name", ["platinum", "", None, 42])
    def test_unknown_tier_falls_back_to_basic(self, tier_name):
        assert resolve_tier_defaults(tier_name).name == FALLBACK_TIER
        assert FALLBACK_TIER == TierName.BASIC

    def test_is_known_tier(self):
        assert is_known_tier("enterprise")
        assert is_known_tier(TierName.CUSTOM)
        assert not is_known_tier("gold")
        assert not is_known_tier(None)

    def test_catalog_is_read_only(self):
        with pytest.raises(TypeError):
            all_tiers()[TierName.BASIC] = None

    def test_definitions_are_frozen(self):
        definition = resolve_tier_defaults(TierName.BASIC)
        with pytest.raises(Exception):
            definition.max_agents = 99

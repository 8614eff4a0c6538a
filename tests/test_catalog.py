"""Tests for the rule catalog, built-in tables and threshold config."""

from __future__ import annotations

import dataclasses
from datetime import date

import pytest

from claims_compliance.rules.catalog import (
    AgeRestriction,
    FrequencyHorizon,
    FrequencyRule,
    GenderRestriction,
    NecessityKind,
    NecessityRule,
    RuleCatalog,
)
from claims_compliance.rules.claim import PayerType
from claims_compliance.rules.models import CategoryStatus, ComplianceCategory, RiskLevel
from claims_compliance.rules.thresholds import ThresholdConfig


class TestRuleCatalogLookups:
    """Tests for indexed catalog lookups."""

    def test_codes_normalized(self):
        catalog = RuleCatalog(
            necessity_rules=(
                NecessityRule("R1", "required", {" g0439 "}, (r"Z00\.0",)),
            ),
            prior_auth_required={"72148 "},
        )
        assert catalog.necessity_rules_for("G0439")[0].rule_id == "R1"
        assert catalog.necessity_rules_for("g0439")[0].kind is NecessityKind.REQUIRED
        assert catalog.requires_prior_auth("72148")

    def test_unknown_codes(self, catalog):
        assert catalog.necessity_rules_for("00000") == ()
        assert catalog.age_restriction_for("00000") is None
        assert catalog.gender_restriction_for("00000") is None
        assert catalog.frequency_rules_for("00000") == ()
        assert not catalog.requires_prior_auth("99213")

    def test_first_gender_restriction_wins(self):
        catalog = RuleCatalog(
            gender_restrictions=(
                GenderRestriction({"77067"}, "female"),
                GenderRestriction({"77067"}, "M"),
            )
        )
        assert catalog.gender_restriction_for("77067").required_gender == "F"

    def test_frequency_rules_grouped(self, catalog):
        horizons = [rule.horizon for rule in catalog.frequency_rules_for("77067")]
        assert horizons[0] is FrequencyHorizon.ANNUAL
        assert horizons.count(FrequencyHorizon.AGE_BANDED) == 3

    def test_payer_lookups_tolerate_none(self, catalog):
        assert catalog.filing_limit_for(None) is None
        assert catalog.payer_rule_for(None) is None
        assert catalog.enrollment_policy_for("") is None

    def test_enrollment_status_case_insensitive(self, catalog):
        assert catalog.enrollment_policy_for(" Suspended ").can_bill is False

    def test_shortest_filing_limit(self, catalog, empty_catalog):
        assert catalog.shortest_filing_limit().payer_type is PayerType.WORKERS_COMP
        assert empty_catalog.shortest_filing_limit() is None


class TestRuleObjects:
    """Tests for individual rule value objects."""

    def test_pattern_matches_from_start(self):
        rule = NecessityRule("R1", NecessityKind.EXCLUDED, {"96413"}, (r"Z51\.(0|1)",))
        assert rule.matches_diagnosis("z51.11")
        assert not rule.matches_diagnosis("C50.Z51.1")

    def test_age_restriction_bounds_inclusive(self):
        restriction = AgeRestriction("82270", 50, 75)
        assert restriction.allows(50)
        assert restriction.allows(75)
        assert not restriction.allows(76)
        assert restriction.range_label == "50-75"
        assert AgeRestriction("90715", 7).range_label == "7-unlimited"

    def test_frequency_windows(self):
        service = date(2025, 3, 10)
        annual = FrequencyRule("99213", 12, "annual")
        daily = FrequencyRule("97110", 4, FrequencyHorizon.DAILY)
        lifetime = FrequencyRule("27447", 2, FrequencyHorizon.LIFETIME)

        assert annual.window_contains(date(2025, 1, 2), service)
        assert not annual.window_contains(date(2024, 12, 31), service)
        assert daily.window_contains(service, service)
        assert not daily.window_contains(date(2025, 3, 9), service)
        assert lifetime.window_contains(date(1999, 1, 1), service)
        assert not lifetime.window_contains(date(2025, 3, 11), service)

    def test_age_gating(self):
        assert FrequencyRule("77067", 1, "age_banded", min_age=40).is_age_gated
        assert not FrequencyRule("99213", 12, "annual").is_age_gated


class TestDefaultCatalog:
    """Tests for the built-in reference tables."""

    def test_version(self, catalog):
        assert catalog.version == "2025.1"

    def test_covers_every_payer_type_with_filing_limit(self, catalog):
        covered = {rule.payer_type for rule in catalog.filing_limits}
        assert covered == set(PayerType) - {PayerType.SELF_PAY}

    def test_is_immutable(self, catalog):
        """Test that catalog contents cannot be changed in place."""
        with pytest.raises(dataclasses.FrozenInstanceError):
            catalog.version = "other"
        with pytest.raises(AttributeError):
            catalog.prior_auth_required.add("99213")
        rule = catalog.payer_rule_for(PayerType.MEDICARE)
        with pytest.raises(TypeError):
            rule.field_formats["provider_npi"] = ".*"

    def test_fresh_instances_equal(self, catalog):
        from claims_compliance.rules.defaults import default_catalog

        assert default_catalog() == catalog


class TestThresholdConfig:
    """Tests for threshold configuration."""

    def test_risk_levels(self, thresholds):
        assert thresholds.risk_level(0) == RiskLevel.LOW
        assert thresholds.risk_level(20) == RiskLevel.MEDIUM
        assert thresholds.risk_level(50) == RiskLevel.HIGH
        assert thresholds.risk_level(80) == RiskLevel.CRITICAL

    def test_default_weights_sum_to_one(self, thresholds):
        assert sum(thresholds.weight_for(category) for category in ComplianceCategory) == pytest.approx(1.0)

    def test_from_dict_merges_tables(self):
        config = ThresholdConfig.from_dict({"status_penalties": {"warning": 5}, "medium_risk_min": 15})
        assert config.penalty_for(CategoryStatus.WARNING) == 5
        assert config.penalty_for(CategoryStatus.FAILED) == 30
        assert config.risk_level(15) == RiskLevel.MEDIUM

    def test_from_dict_rejects_unknown(self):
        with pytest.raises(ValueError, match="panic_level"):
            ThresholdConfig.from_dict({"panic_level": 1})

    def test_completeness_status(self, thresholds):
        assert thresholds.completeness_status(90.0) == CategoryStatus.PASS
        assert thresholds.completeness_status(70.0) == CategoryStatus.WARNING
        assert thresholds.completeness_status(69.9) == CategoryStatus.FAILED

    def test_clamp_score(self):
        assert ThresholdConfig.clamp_score(130) == 100
        assert ThresholdConfig.clamp_score(-5) == 0

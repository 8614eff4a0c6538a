"""Tests for frequency limit rules."""

from __future__ import annotations

from datetime import date

from claims_compliance.rules.catalog import FrequencyHorizon, FrequencyRule, RuleCatalog
from claims_compliance.rules.categories.frequency_rules import frequency_limit_validator
from claims_compliance.rules.claim import HistoricalProcedure, ProcedureLine
from claims_compliance.rules.models import CategoryStatus


def _catalog(*rules: FrequencyRule) -> RuleCatalog:
    return RuleCatalog(frequency_rules=rules)


def _line(code: str, units: int = 1) -> ProcedureLine:
    return ProcedureLine(code, units=units, diagnosis_pointers=(1,), charge=50.0)


class TestAnnualLimits:
    """Tests for per-calendar-year limits."""

    def test_limit_exceeded_with_history(self, make_claim, make_context):
        """Test that three prior services plus one more exceed a 3-per-year cap."""
        catalog = _catalog(FrequencyRule("97530", 3, FrequencyHorizon.ANNUAL))
        claim = make_claim(
            procedures=(_line("97530"),),
            procedure_history=(
                HistoricalProcedure("97530", date(2025, 1, 10)),
                HistoricalProcedure("97530", date(2025, 2, 3)),
                HistoricalProcedure("97530", date(2025, 2, 20)),
            ),
        )
        result = frequency_limit_validator(make_context(claim, rule_catalog=catalog))
        assert result.status == CategoryStatus.FAILED
        issue = result.issues[0]
        assert issue.rule_id == "FREQUENCY_LIMIT_EXCEEDED"
        assert issue.metadata["prior_units"] == 3
        assert issue.metadata["limit"] == 3

    def test_prior_year_history_ignored(self, make_claim, make_context):
        """Test that services in an earlier calendar year do not count."""
        catalog = _catalog(FrequencyRule("97530", 3, FrequencyHorizon.ANNUAL))
        claim = make_claim(
            procedures=(_line("97530"),),
            procedure_history=(
                HistoricalProcedure("97530", date(2024, 11, 10)),
                HistoricalProcedure("97530", date(2024, 12, 3)),
                HistoricalProcedure("97530", date(2024, 12, 20)),
            ),
        )
        result = frequency_limit_validator(make_context(claim, rule_catalog=catalog))
        assert result.status == CategoryStatus.PASS
        assert result.metrics["frequency_analysis"][0]["remaining"] == 2

    def test_history_after_service_date_ignored(self, make_claim, make_context):
        """Test that history dated after the service date is not counted."""
        catalog = _catalog(FrequencyRule("97530", 1, FrequencyHorizon.ANNUAL))
        claim = make_claim(
            procedures=(_line("97530"),),
            procedure_history=(HistoricalProcedure("97530", date(2025, 6, 1)),),
        )
        result = frequency_limit_validator(make_context(claim, rule_catalog=catalog))
        assert result.issues == ()

    def test_approaching_limit_warns(self, make_claim, make_context):
        """Test that reaching the warning ratio of the limit warns."""
        catalog = _catalog(FrequencyRule("99213", 10, FrequencyHorizon.ANNUAL))
        claim = make_claim(
            procedures=(_line("99213"),),
            procedure_history=tuple(
                HistoricalProcedure("99213", date(2025, 1, day)) for day in range(1, 9)
            ),
        )
        result = frequency_limit_validator(make_context(claim, rule_catalog=catalog))
        assert result.status == CategoryStatus.WARNING
        assert result.warnings[0].rule_id == "FREQUENCY_LIMIT_APPROACHING"


class TestDailyAndLifetimeLimits:
    """Tests for same-day and lifetime limits."""

    def test_units_across_lines_aggregate(self, make_claim, make_context):
        """Test that units for the same code on several lines count together."""
        claim = make_claim(procedures=(_line("97110", 3), _line("97110", 2)))
        result = frequency_limit_validator(make_context(claim))
        assert result.status == CategoryStatus.FAILED
        assert result.issues[0].metadata["units_billed"] == 5

    def test_same_day_history_counts(self, make_claim, make_context):
        """Test that a daily limit counts other services on the same date only."""
        claim = make_claim(
            procedures=(_line("90834"),),
            procedure_history=(
                HistoricalProcedure("90834", date(2025, 3, 9)),
                HistoricalProcedure("90834", date(2025, 3, 10)),
            ),
        )
        result = frequency_limit_validator(make_context(claim))
        assert result.status == CategoryStatus.FAILED
        assert result.issues[0].metadata["prior_units"] == 1

    def test_lifetime_limit(self, make_claim, make_context):
        """Test that lifetime limits count all prior history."""
        claim = make_claim(
            procedures=(_line("27447"),),
            procedure_history=(
                HistoricalProcedure("27447", date(2009, 5, 1)),
                HistoricalProcedure("27447", date(2016, 8, 12)),
            ),
        )
        result = frequency_limit_validator(make_context(claim))
        assert result.status == CategoryStatus.FAILED
        assert "Lifetime limit exceeded" in result.issues[0].description


class TestAgeBandedLimits:
    """Tests for limits that apply only to an age band."""

    def test_band_matching_age_applies(self, make_claim, make_context):
        """Test that only the rule for the patient's age band is evaluated."""
        catalog = _catalog(
            FrequencyRule("77067", 1, FrequencyHorizon.AGE_BANDED, min_age=40, max_age=49),
            FrequencyRule("77067", 2, FrequencyHorizon.AGE_BANDED, min_age=50, max_age=74),
        )
        claim = make_claim(
            procedures=(_line("77067"),),
            procedure_history=(HistoricalProcedure("77067", date(2025, 1, 20)),),
        )
        result = frequency_limit_validator(make_context(claim, rule_catalog=catalog))
        analysis = result.metrics["frequency_analysis"]
        assert [entry["limit"] for entry in analysis] == [2]
        assert result.issues == ()

    def test_unknown_age_skips_banded_rules(self, make_claim, make_context):
        """Test that banded rules are skipped when the patient's age is unknown."""
        catalog = _catalog(
            FrequencyRule("77067", 1, FrequencyHorizon.AGE_BANDED, min_age=40, max_age=49),
        )
        claim = make_claim(procedures=(_line("77067", 3),), patient__date_of_birth=None)
        result = frequency_limit_validator(make_context(claim, rule_catalog=catalog))
        assert result.status == CategoryStatus.PASS
        assert result.metrics["frequency_analysis"] == []

    def test_no_rule_for_code_passes(self, make_claim, make_context, empty_catalog):
        """Test that codes without frequency rules are unrestricted."""
        claim = make_claim(procedures=(_line("97110", 40),))
        result = frequency_limit_validator(make_context(claim, rule_catalog=empty_catalog))
        assert result.status == CategoryStatus.PASS

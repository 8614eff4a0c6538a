"""Tests for the rule catalog loader."""

from __future__ import annotations

import json
import logging
from datetime import date

import pytest
import yaml

from claims_compliance.rules.catalog import FrequencyHorizon, NecessityKind
from claims_compliance.rules.claim import PayerType
from claims_compliance.rules.loader import (
    CatalogLoader,
    CatalogValidationError,
    build_engine,
    load_catalog,
    select_effective,
)
from claims_compliance.rules.models import CategoryStatus, RiskLevel


@pytest.fixture
def catalog_document() -> dict:
    return {
        "version": 2025.2,
        "effective_date": "2025-07-01",
        "necessity_rules": [
            {
                "rule_id": "SCREENING_MAMMOGRAPHY_DX",
                "kind": "required",
                "procedure_codes": ["77067"],
                "diagnosis_patterns": ["Z12\\.3", "Z80\\.3"],
                "requirement": "Screening diagnosis required",
            }
        ],
        "age_restrictions": [{"procedure_code": "82270", "min_age": 45, "max_age": 75}],
        "gender_restrictions": [{"procedure_codes": ["77067"], "required_gender": "F"}],
        "prior_auth_required": ["72148"],
        "filing_limits": [
            {"payer_type": "medicare", "limit_days": 365},
            {"payer_type": "Workers Comp", "limit_days": 60},
        ],
        "frequency_rules": [
            {"procedure_code": "97110", "max_units": 4, "horizon": "daily"},
            {"procedure_code": "77067", "max_units": 1, "horizon": "age_banded", "min_age": 40},
        ],
        "enrollment_policies": [
            {"status": "Active", "can_bill": True},
            {"status": "pending", "can_bill": False, "on_hold": True, "reason": "Under review"},
        ],
        "payer_rules": [
            {
                "payer_type": "Commercial",
                "required_fields": ["group_number"],
                "field_formats": {"provider_npi": "\\d{10}"},
                "required_modifiers": [{"procedure_code": "99214", "modifier": "25"}],
            }
        ],
        "completeness_elements": [
            {"field": "facility_npi", "label": "Facility", "weight": 2},
            {"field": "referring_provider_npi"},
        ],
        "thresholds": {"filing_warning_days": 20, "category_weights": {"timely_filing": 0.2}},
    }


def _write_yaml(path, document):
    path.write_text(yaml.safe_dump(document))
    return path


class TestLoadFile:
    """Tests for loading single catalog files."""

    def test_load_yaml(self, tmp_path, catalog_document):
        """Test that a YAML catalog becomes an indexed RuleCatalog."""
        path = _write_yaml(tmp_path / "catalog.yaml", catalog_document)
        catalog = CatalogLoader(tmp_path).load_file(path)

        assert catalog.version == "2025.2"
        assert catalog.effective_date == date(2025, 7, 1)
        assert catalog.necessity_rules_for("77067")[0].kind == NecessityKind.REQUIRED
        assert catalog.age_restriction_for("82270").min_age == 45
        assert catalog.gender_restriction_for("77067").required_gender == "F"
        assert catalog.requires_prior_auth("72148")
        assert catalog.filing_limit_for(PayerType.WORKERS_COMP).limit_days == 60
        assert catalog.frequency_rules_for("77067")[0].horizon == FrequencyHorizon.AGE_BANDED
        assert catalog.enrollment_policy_for("ACTIVE").can_bill is True
        assert catalog.payer_rule_for(PayerType.COMMERCIAL).required_modifiers[0].modifier == "25"
        assert catalog.completeness_elements[1].label == "referring_provider_npi"

    def test_load_json(self, tmp_path, catalog_document):
        """Test that JSON catalogs load the same way."""
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps(catalog_document))
        catalog = CatalogLoader().load_file(path)
        assert catalog.version == "2025.2"
        assert catalog.shortest_filing_limit().limit_days == 60

    def test_load_logged(self, tmp_path, catalog_document, caplog):
        path = _write_yaml(tmp_path / "catalog.yml", catalog_document)
        with caplog.at_level(logging.INFO, logger="claims_compliance.rules.loader"):
            CatalogLoader().load_file(path)
        assert "Loaded rule catalog 2025.2" in caplog.text

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            CatalogLoader().load_file(tmp_path / "missing.yaml")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "catalog.toml"
        path.write_text("version = 1")
        with pytest.raises(ValueError, match="Unsupported catalog format"):
            CatalogLoader().load_file(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(CatalogValidationError):
            CatalogLoader().load_file(path)

    def test_validation_errors_collected(self, tmp_path, catalog_document):
        """Test that every schema problem is reported with its location."""
        catalog_document["filing_limits"][0]["payer_type"] = "Barter"
        catalog_document["frequency_rules"][0]["max_units"] = 0
        catalog_document["necessity_rules"][0]["diagnosis_patterns"] = ["Z12.("]
        path = _write_yaml(tmp_path / "catalog.yaml", catalog_document)

        with pytest.raises(CatalogValidationError) as exc_info:
            CatalogLoader().load_file(path)

        fields = {error["field"] for error in exc_info.value.errors}
        assert "filing_limits.0.payer_type" in fields
        assert "frequency_rules.0.max_units" in fields
        assert "necessity_rules.0.diagnosis_patterns" in fields

    def test_age_band_needs_bounds(self, tmp_path, catalog_document):
        catalog_document["frequency_rules"][1].pop("min_age")
        path = _write_yaml(tmp_path / "catalog.yaml", catalog_document)
        with pytest.raises(CatalogValidationError):
            CatalogLoader().load_file(path)


class TestLoadThresholds:
    """Tests for the thresholds section."""

    def test_thresholds_merged_over_defaults(self, tmp_path, catalog_document):
        path = _write_yaml(tmp_path / "catalog.yaml", catalog_document)
        thresholds = CatalogLoader().load_thresholds(path)
        assert thresholds.filing_warning_days == 20
        assert thresholds.category_weights["timely_filing"] == 0.2
        assert thresholds.category_weights["medical_necessity"] == 0.25
        assert thresholds.high_risk_min == 50

    def test_missing_section_gives_defaults(self, tmp_path, catalog_document):
        del catalog_document["thresholds"]
        path = _write_yaml(tmp_path / "catalog.yaml", catalog_document)
        assert CatalogLoader().load_thresholds(path).filing_warning_days == 10

    def test_unknown_threshold_rejected(self, tmp_path, catalog_document):
        catalog_document["thresholds"]["panic_level"] = 3
        path = _write_yaml(tmp_path / "catalog.yaml", catalog_document)
        with pytest.raises(CatalogValidationError):
            CatalogLoader().load_thresholds(path)

    @pytest.mark.parametrize(
        "section, field",
        [
            ({"medium_risk_min": 60}, "high_risk_min"),
            ({"high_risk_min": 90}, "critical_risk_min"),
            ({"completeness_warning_min": 95}, "completeness_pass_min"),
        ],
    )
    def test_bands_out_of_order_rejected(self, tmp_path, catalog_document, section, field):
        """Test that risk and completeness bands must stay in ascending order."""
        catalog_document["thresholds"] = section
        path = _write_yaml(tmp_path / "catalog.yaml", catalog_document)
        with pytest.raises(CatalogValidationError) as exc_info:
            CatalogLoader().load_thresholds(path)
        assert field in exc_info.value.errors[0]["error"]

    @pytest.mark.parametrize(
        "section",
        [
            {"category_weights": {"coding_accuracy": 0.1}},
            {"status_penalties": {"denied": 40}},
            {"status_credits": {"passed": 1.0}},
        ],
    )
    def test_unknown_table_keys_rejected(self, tmp_path, catalog_document, section):
        """Test that weight, penalty and credit tables only name known categories and statuses."""
        catalog_document["thresholds"] = section
        path = _write_yaml(tmp_path / "catalog.yaml", catalog_document)
        with pytest.raises(CatalogValidationError, match="Invalid thresholds"):
            CatalogLoader().load_thresholds(path)

    def test_consistent_bands_accepted(self, tmp_path, catalog_document):
        catalog_document["thresholds"] = {"medium_risk_min": 30, "high_risk_min": 60, "critical_risk_min": 90}
        path = _write_yaml(tmp_path / "catalog.yaml", catalog_document)
        assert CatalogLoader().load_thresholds(path).high_risk_min == 60


class TestLoadDirectory:
    """Tests for catalog directories and effective-date selection."""

    def test_sorted_by_effective_date(self, tmp_path, catalog_document):
        newer = dict(catalog_document, version="2026.1", effective_date="2026-01-01")
        older = dict(catalog_document, version="2024.1", effective_date="2024-01-01")
        _write_yaml(tmp_path / "a.yaml", newer)
        _write_yaml(tmp_path / "b.yaml", older)
        (tmp_path / "notes.txt").write_text("ignored")

        catalogs = CatalogLoader(tmp_path).load_directory()
        assert [c.version for c in catalogs] == ["2024.1", "2026.1"]

    def test_errors_from_all_files(self, tmp_path, catalog_document):
        _write_yaml(tmp_path / "good.yaml", catalog_document)
        (tmp_path / "bad.json").write_text("{not json")
        _write_yaml(tmp_path / "invalid.yaml", {"version": ""})

        with pytest.raises(CatalogValidationError) as exc_info:
            CatalogLoader(tmp_path).load_directory()
        files = {error["file"] for error in exc_info.value.errors}
        assert files == {str(tmp_path / "bad.json"), str(tmp_path / "invalid.yaml")}

    def test_missing_directory(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING, logger="claims_compliance.rules.loader"):
            assert CatalogLoader(tmp_path / "nope").load_directory() == []
        assert "does not exist" in caplog.text

    def test_select_effective(self, tmp_path, catalog_document):
        _write_yaml(tmp_path / "a.yaml", dict(catalog_document, version="2024.1", effective_date="2024-01-01"))
        _write_yaml(tmp_path / "b.yaml", dict(catalog_document, version="2025.2"))
        catalogs = CatalogLoader(tmp_path).load_directory()

        assert select_effective(catalogs, date(2025, 3, 1)).version == "2024.1"
        assert select_effective(catalogs, date(2025, 7, 1)).version == "2025.2"
        assert select_effective(catalogs, date(2023, 12, 31)) is None

    def test_load_catalog_from_directory(self, tmp_path, catalog_document):
        _write_yaml(tmp_path / "a.yaml", dict(catalog_document, version="2024.1", effective_date="2024-01-01"))
        _write_yaml(tmp_path / "b.yaml", dict(catalog_document, version="2099.1", effective_date="2099-01-01"))
        assert load_catalog(tmp_path).version == "2024.1"


class TestBuildEngine:
    """Tests for building an engine from configuration."""

    def test_default_catalog_when_unconfigured(self, monkeypatch):
        monkeypatch.setattr("claims_compliance.config.RULE_CATALOG_PATH", None)
        engine = build_engine()
        assert engine.catalog.version == "2025.1"

    def test_catalog_and_thresholds_from_file(self, tmp_path, catalog_document, make_claim):
        path = _write_yaml(tmp_path / "catalog.yaml", catalog_document)
        engine = build_engine(path)
        assert engine.catalog.version == "2025.2"
        assert engine.thresholds.filing_warning_days == 20

        report = engine.validate(make_claim(provider__enrollment_status="pending"))
        assert report.category("provider_enrollment").status == CategoryStatus.WARNING
        assert report.risk_assessment.overall_risk == RiskLevel.LOW

"""Pytest configuration and fixtures."""

from __future__ import annotations

import dataclasses
from datetime import date, datetime, timezone
from typing import Any, Callable

import pytest

from claims_compliance.rules.catalog import RuleCatalog
from claims_compliance.rules.claim import (
    ClaimSnapshot,
    DiagnosisCode,
    PatientRef,
    PayerRef,
    ProcedureLine,
    ProviderRef,
)
from claims_compliance.rules.defaults import default_catalog
from claims_compliance.rules.models import ValidationContext
from claims_compliance.rules.thresholds import ThresholdConfig

FIXED_NOW = datetime(2025, 4, 1, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest.fixture
def sample_claim() -> ClaimSnapshot:
    """Medicare office visit that passes every category of the built-in catalog."""
    return ClaimSnapshot(
        claim_id="CLM-1001",
        patient=PatientRef(
            patient_id="PAT-1",
            date_of_birth=date(1970, 5, 15),
            gender="F",
            address="12 Main St",
            city="Springfield",
            state="IL",
            zip_code="62701",
        ),
        provider=ProviderRef(
            provider_id="PRV-1",
            npi="1234567893",
            enrollment_status="active",
            enrollment_effective_date=date(2020, 1, 1),
            taxonomy_code="207Q00000X",
        ),
        payer=PayerRef(payer_id="PAY-1", name="Medicare Part B", payer_type="Medicare"),
        service_date=date(2025, 3, 10),
        submission_date=date(2025, 3, 20),
        procedures=(
            ProcedureLine(procedure_code="99213", units=1, diagnosis_pointers=(1,), charge=125.0),
        ),
        diagnoses=(DiagnosisCode(code="E11.9", pointer=1),),
        total_charge=125.0,
        rendering_provider_npi="1234567893",
        referring_provider_npi="1987654321",
        place_of_service="11",
        facility_npi="1112223334",
        payer_fields={"patient_medicare_number": "1EG4TE5MK73"},
    )


@pytest.fixture
def make_claim(sample_claim: ClaimSnapshot) -> Callable[..., ClaimSnapshot]:
    """Copy the sample claim with top-level fields and nested refs overridden.

    Nested overrides use ``patient__gender="M"`` style keyword names.
    """

    def _make(**overrides: Any) -> ClaimSnapshot:
        nested: dict[str, dict[str, Any]] = {}
        top: dict[str, Any] = {}
        for key, value in overrides.items():
            if "__" in key:
                ref, attr = key.split("__", 1)
                nested.setdefault(ref, {})[attr] = value
            else:
                top[key] = value
        for ref, changes in nested.items():
            top[ref] = dataclasses.replace(top.get(ref, getattr(sample_claim, ref)), **changes)
        return dataclasses.replace(sample_claim, **top)

    return _make


@pytest.fixture
def catalog() -> RuleCatalog:
    """Built-in rule catalog."""
    return default_catalog()


@pytest.fixture
def empty_catalog() -> RuleCatalog:
    """Catalog without any rule entries."""
    return RuleCatalog.empty()


@pytest.fixture
def thresholds() -> ThresholdConfig:
    return ThresholdConfig()


@pytest.fixture
def make_context(catalog: RuleCatalog, thresholds: ThresholdConfig):
    """Build a ValidationContext for a single validator call."""

    def _make(
        claim: ClaimSnapshot,
        rule_catalog: RuleCatalog | None = None,
        as_of: date = FIXED_NOW.date(),
        config: ThresholdConfig | None = None,
    ) -> ValidationContext:
        return ValidationContext(
            claim=claim,
            catalog=rule_catalog if rule_catalog is not None else catalog,
            thresholds=config or thresholds,
            as_of=as_of,
        )

    return _make


@pytest.fixture
def claim_payload() -> dict[str, Any]:
    """Raw claim payload as a host application would send it."""
    return {
        "claim_id": "CLM-2001",
        "patient": {
            "patient_id": "PAT-9",
            "date_of_birth": "05/15/1970",
            "gender": "F",
            "address": "12 Main St",
            "city": "Springfield",
            "state": "IL",
            "zip_code": "62701",
        },
        "provider": {
            "provider_id": "PRV-9",
            "npi": "1234567893",
            "enrollment_status": "active",
            "enrollment_effective_date": "2020-01-01",
        },
        "payer": {"payer_id": "PAY-9", "name": "Blue Cross PPO"},
        "service_date": "2025-03-10",
        "submission_date": "20250320",
        "procedures": [
            {
                "procedure_code": "99213",
                "units": 1,
                "diagnosis_pointers": "AB",
                "modifiers": ["25", "", None],
                "charge": 125.0,
            }
        ],
        "diagnoses": ["E11.9", "I10"],
        "total_charge": 125.0,
        "place_of_service": "11",
        "prior_authorization_number": "  ",
        "payer_fields": {"group_number": "GRP-100", "patient_member_id": "MBR-77"},
    }


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Engine clock frozen at FIXED_NOW."""
    return fixed_clock

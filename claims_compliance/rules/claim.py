"""Immutable claim snapshot consumed by the validation engine."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

from claims_compliance.utils.date_parser import calculate_age


class PayerType(str, Enum):
    """Payer families with distinct filing and documentation rules."""

    MEDICARE = "Medicare"
    MEDICAID = "Medicaid"
    COMMERCIAL = "Commercial"
    TRICARE = "TRICARE"
    WORKERS_COMP = "WorkersComp"
    SELF_PAY = "SelfPay"

    @classmethod
    def parse(cls, value: str | PayerType | None) -> PayerType | None:
        """Resolve a payer type label, tolerating case and separators."""
        if value is None:
            return None
        if isinstance(value, PayerType):
            return value
        key = "".join(ch for ch in str(value).lower() if ch.isalnum())
        return _PAYER_TYPE_ALIASES.get(key)


_PAYER_TYPE_ALIASES = {
    "medicare": PayerType.MEDICARE,
    "medicaid": PayerType.MEDICAID,
    "commercial": PayerType.COMMERCIAL,
    "tricare": PayerType.TRICARE,
    "champus": PayerType.TRICARE,
    "workerscomp": PayerType.WORKERS_COMP,
    "workerscompensation": PayerType.WORKERS_COMP,
    "selfpay": PayerType.SELF_PAY,
}


def infer_payer_type(payer_name: str | None) -> PayerType | None:
    """Infer the payer type from an insurance name.

    Named payers that match no government program are Commercial.
    """
    if not payer_name or not payer_name.strip():
        return None

    name = payer_name.lower()
    if "medicare" in name:
        return PayerType.MEDICARE
    if "medicaid" in name:
        return PayerType.MEDICAID
    if "tricare" in name or "champus" in name:
        return PayerType.TRICARE
    if "workers" in name or "comp" in name:
        return PayerType.WORKERS_COMP
    if "self pay" in name or "self-pay" in name:
        return PayerType.SELF_PAY
    return PayerType.COMMERCIAL


def as_date(value: Any) -> Any:
    """Truncate datetimes to their date; other values pass through."""
    if isinstance(value, datetime):
        return value.date()
    return value


def is_populated(value: Any) -> bool:
    """True when a claim value carries data (non-blank, non-empty)."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, frozenset, Mapping)):
        return len(value) > 0
    return True


@dataclass(frozen=True)
class PatientRef:
    patient_id: str
    date_of_birth: date | None = None
    gender: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "date_of_birth", as_date(self.date_of_birth))


@dataclass(frozen=True)
class ProviderRef:
    provider_id: str
    npi: str | None = None
    enrollment_status: str | None = None
    enrollment_effective_date: date | None = None
    enrollment_termination_date: date | None = None
    taxonomy_code: str | None = None

    def __post_init__(self) -> None:
        for name in ("enrollment_effective_date", "enrollment_termination_date"):
            object.__setattr__(self, name, as_date(getattr(self, name)))


@dataclass(frozen=True)
class PayerRef:
    payer_id: str
    name: str | None = None
    payer_type: str | None = None

    @property
    def resolved_type(self) -> PayerType | None:
        """Declared payer type, or one inferred from the name if none declared.

        A declared but unrecognized type resolves to None (unknown).
        """
        if self.payer_type is not None and str(self.payer_type).strip():
            return PayerType.parse(self.payer_type)
        return infer_payer_type(self.name)

    @property
    def type_label(self) -> str:
        resolved = self.resolved_type
        if resolved is not None:
            return resolved.value
        return str(self.payer_type or self.name or "unknown")


@dataclass(frozen=True)
class ProcedureLine:
    procedure_code: str
    units: int = 1
    diagnosis_pointers: tuple[int, ...] = ()
    modifiers: tuple[str, ...] = ()
    charge: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "diagnosis_pointers", tuple(self.diagnosis_pointers))
        object.__setattr__(self, "modifiers", tuple(self.modifiers))


@dataclass(frozen=True)
class DiagnosisCode:
    code: str
    pointer: int


@dataclass(frozen=True)
class HistoricalProcedure:
    """A previously billed procedure for the same patient."""

    procedure_code: str
    service_date: date
    units: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "service_date", as_date(self.service_date))


@dataclass(frozen=True)
class ClaimSnapshot:
    """A fully materialized claim, assembled by the caller before validation.

    Structured fields cover everything the validators know about; the
    ``payer_fields`` extension map holds only payer-specific extras such as
    member numbers or group numbers.
    """

    claim_id: str
    patient: PatientRef
    provider: ProviderRef
    payer: PayerRef
    service_date: date
    submission_date: date | None = None
    procedures: tuple[ProcedureLine, ...] = ()
    diagnoses: tuple[DiagnosisCode, ...] = ()
    procedure_history: tuple[HistoricalProcedure, ...] = ()
    total_charge: float | None = None
    prior_authorization_number: str | None = None
    rendering_provider_npi: str | None = None
    referring_provider_npi: str | None = None
    place_of_service: str | None = None
    facility_npi: str | None = None
    payer_fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "service_date", as_date(self.service_date))
        object.__setattr__(self, "submission_date", as_date(self.submission_date))
        object.__setattr__(self, "procedures", tuple(self.procedures))
        object.__setattr__(self, "diagnoses", tuple(self.diagnoses))
        object.__setattr__(self, "procedure_history", tuple(self.procedure_history))
        object.__setattr__(
            self, "payer_fields", MappingProxyType(dict(self.payer_fields or {}))
        )

    def diagnosis_at(self, pointer: int) -> DiagnosisCode | None:
        for diagnosis in self.diagnoses:
            if diagnosis.pointer == pointer:
                return diagnosis
        return None

    def diagnoses_for(self, line: ProcedureLine) -> list[DiagnosisCode]:
        """Diagnoses linked to a procedure line through its pointers."""
        linked = []
        for pointer in line.diagnosis_pointers:
            diagnosis = self.diagnosis_at(pointer)
            if diagnosis is not None:
                linked.append(diagnosis)
        return linked

    def patient_age(self) -> int | None:
        return calculate_age(self.patient.date_of_birth, self.service_date)

    def field_value(self, name: str) -> Any:
        """Look up a named claim field.

        Structured fields are resolved first; unknown names fall back to the
        payer-specific extension map.
        """
        getter = STRUCTURED_FIELDS.get(name)
        if getter is not None:
            value = getter(self)
            if is_populated(value):
                return value
        return self.payer_fields.get(name)

    def has_value(self, name: str) -> bool:
        return is_populated(self.field_value(name))


def _all_lines_have_pointers(claim: ClaimSnapshot) -> bool | None:
    if claim.procedures and all(line.diagnosis_pointers for line in claim.procedures):
        return True
    return None


def _all_lines_have_charges(claim: ClaimSnapshot) -> bool | None:
    if claim.procedures and all(
        line.charge is not None and line.charge > 0 for line in claim.procedures
    ):
        return True
    return None


def _patient_address(claim: ClaimSnapshot) -> str | None:
    patient = claim.patient
    parts = (patient.address, patient.city, patient.state)
    if all(is_populated(part) for part in parts):
        return ", ".join(str(part).strip() for part in parts)
    return None


STRUCTURED_FIELDS: dict[str, Callable[[ClaimSnapshot], Any]] = {
    "claim_id": lambda c: c.claim_id,
    "patient_id": lambda c: c.patient.patient_id,
    "date_of_birth": lambda c: c.patient.date_of_birth,
    "gender": lambda c: c.patient.gender,
    "patient_address": _patient_address,
    "provider_id": lambda c: c.provider.provider_id,
    "provider_npi": lambda c: c.provider.npi,
    "taxonomy_code": lambda c: c.provider.taxonomy_code,
    "payer_id": lambda c: c.payer.payer_id,
    "insurance_name": lambda c: c.payer.name,
    "service_date": lambda c: c.service_date,
    "submission_date": lambda c: c.submission_date,
    "service_lines": lambda c: c.procedures,
    "diagnosis_codes": lambda c: tuple(d.code for d in c.diagnoses),
    "diagnosis_pointers": _all_lines_have_pointers,
    "line_charges": _all_lines_have_charges,
    "total_charge": lambda c: c.total_charge,
    "prior_authorization_number": lambda c: c.prior_authorization_number,
    "authorization_number": lambda c: c.prior_authorization_number,
    "rendering_provider_npi": lambda c: c.rendering_provider_npi,
    "referring_provider_npi": lambda c: c.referring_provider_npi,
    "place_of_service": lambda c: c.place_of_service,
    "facility_npi": lambda c: c.facility_npi,
}

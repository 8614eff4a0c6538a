"""Pydantic schemas for claim payloads handed to the engine."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from claims_compliance.rules.claim import (
    ClaimSnapshot,
    DiagnosisCode,
    HistoricalProcedure,
    PatientRef,
    PayerRef,
    ProcedureLine,
    ProviderRef,
)
from claims_compliance.rules.models import ValidationInputError
from claims_compliance.utils.date_parser import parse_flexible_date

# CMS-1500 diagnosis pointers are letters A-L
POINTER_LETTERS = "ABCDEFGHIJKL"


def _coerce_date(value: Any) -> Any:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        parsed = parse_flexible_date(value)
        if parsed is None:
            raise ValueError(f"Unrecognized date: {value!r}")
        return parsed
    return value


def _coerce_pointer(value: Any) -> int:
    if isinstance(value, int):
        return value
    text = str(value).strip().upper()
    if text.isdigit():
        return int(text)
    if len(text) == 1 and text in POINTER_LETTERS:
        return POINTER_LETTERS.index(text) + 1
    raise ValueError(f"Invalid diagnosis pointer: {value!r}")


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class PatientSchema(BaseModel):
    patient_id: str = Field(..., min_length=1)
    date_of_birth: date | None = None
    gender: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> Any:
        return _coerce_date(v)


class ProviderSchema(BaseModel):
    provider_id: str = Field(..., min_length=1)
    npi: str | None = None
    enrollment_status: str | None = None
    enrollment_effective_date: date | None = None
    enrollment_termination_date: date | None = None
    taxonomy_code: str | None = None

    @field_validator("enrollment_effective_date", "enrollment_termination_date", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> Any:
        return _coerce_date(v)


class PayerSchema(BaseModel):
    payer_id: str = Field(..., min_length=1)
    name: str | None = None
    payer_type: str | None = None


class ProcedureLineSchema(BaseModel):
    procedure_code: str = Field(..., min_length=1, max_length=10)
    units: int = Field(1, ge=1)
    diagnosis_pointers: list[int] = Field(default_factory=list)
    modifiers: list[str] = Field(default_factory=list, max_length=4)
    charge: float | None = Field(None, ge=0)

    @field_validator("procedure_code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("diagnosis_pointers", mode="before")
    @classmethod
    def parse_pointers(cls, v: Any) -> list[int]:
        """Accept a list, a single pointer, or a compact string like "AB" or "1,2"."""
        if v is None or v == "":
            return []
        if isinstance(v, str):
            text = v.replace(" ", "")
            parts = text.split(",") if "," in text else list(text) if text.isalpha() else [text]
            return [_coerce_pointer(part) for part in parts if part]
        if isinstance(v, (list, tuple)):
            return [_coerce_pointer(part) for part in v]
        return [_coerce_pointer(v)]

    @field_validator("modifiers", mode="before")
    @classmethod
    def drop_blank_modifiers(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, (list, tuple)):
            return [str(m).strip().upper() for m in v if m is not None and str(m).strip()]
        return v


class DiagnosisSchema(BaseModel):
    code: str = Field(..., min_length=3, max_length=8)
    pointer: int = Field(..., ge=1, le=12)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("pointer", mode="before")
    @classmethod
    def parse_pointer(cls, v: Any) -> int:
        return _coerce_pointer(v)


class HistoricalProcedureSchema(BaseModel):
    procedure_code: str = Field(..., min_length=1)
    service_date: date
    units: int = Field(1, ge=1)

    @field_validator("service_date", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> Any:
        return _coerce_date(v)


class ClaimSnapshotSchema(BaseModel):
    """Request model for a claim snapshot."""

    claim_id: str = Field(..., min_length=1)
    patient: PatientSchema
    provider: ProviderSchema
    payer: PayerSchema
    service_date: date
    submission_date: date | None = None
    procedures: list[ProcedureLineSchema] = Field(default_factory=list)
    diagnoses: list[DiagnosisSchema] = Field(default_factory=list)
    procedure_history: list[HistoricalProcedureSchema] = Field(default_factory=list)
    total_charge: float | None = Field(None, ge=0)
    prior_authorization_number: str | None = None
    rendering_provider_npi: str | None = None
    referring_provider_npi: str | None = None
    place_of_service: str | None = None
    facility_npi: str | None = None
    payer_fields: dict[str, Any] = Field(default_factory=dict)

    @field_validator("service_date", "submission_date", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> Any:
        return _coerce_date(v)

    @field_validator(
        "prior_authorization_number",
        "rendering_provider_npi",
        "referring_provider_npi",
        "place_of_service",
        "facility_npi",
        mode="before",
    )
    @classmethod
    def blank_strings(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("diagnoses", mode="before")
    @classmethod
    def number_plain_codes(cls, v: Any) -> Any:
        """Plain diagnosis code strings get pointers in list order."""
        if isinstance(v, list):
            return [
                {"code": item, "pointer": idx} if isinstance(item, str) else item
                for idx, item in enumerate(v, start=1)
            ]
        return v

    @model_validator(mode="after")
    def check_dates(self) -> ClaimSnapshotSchema:
        if self.submission_date and self.submission_date < self.service_date:
            raise ValueError("submission_date cannot be before service_date")
        return self

    def to_snapshot(self) -> ClaimSnapshot:
        return ClaimSnapshot(
            claim_id=self.claim_id,
            patient=PatientRef(**self.patient.model_dump()),
            provider=ProviderRef(**self.provider.model_dump()),
            payer=PayerRef(**self.payer.model_dump()),
            service_date=self.service_date,
            submission_date=self.submission_date,
            procedures=tuple(
                ProcedureLine(
                    procedure_code=line.procedure_code,
                    units=line.units,
                    diagnosis_pointers=tuple(line.diagnosis_pointers),
                    modifiers=tuple(line.modifiers),
                    charge=line.charge,
                )
                for line in self.procedures
            ),
            diagnoses=tuple(DiagnosisCode(code=d.code, pointer=d.pointer) for d in self.diagnoses),
            procedure_history=tuple(
                HistoricalProcedure(**entry.model_dump()) for entry in self.procedure_history
            ),
            total_charge=self.total_charge,
            prior_authorization_number=self.prior_authorization_number,
            rendering_provider_npi=self.rendering_provider_npi,
            referring_provider_npi=self.referring_provider_npi,
            place_of_service=self.place_of_service,
            facility_npi=self.facility_npi,
            payer_fields=self.payer_fields,
        )


def parse_claim(payload: Mapping[str, Any] | str | bytes) -> ClaimSnapshot:
    """Parse a dict or JSON document into a ClaimSnapshot.

    Raises:
        ValidationInputError: If the payload is malformed
    """
    try:
        if isinstance(payload, (str, bytes)):
            schema = ClaimSnapshotSchema.model_validate_json(payload)
        else:
            schema = ClaimSnapshotSchema.model_validate(dict(payload))
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in error["loc"]) or "claim", "error": error["msg"]}
            for error in e.errors()
        ]
        raise ValidationInputError(
            f"Claim payload failed validation with {len(errors)} error(s)", errors=errors
        ) from e
    return schema.to_snapshot()

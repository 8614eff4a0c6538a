"""Pydantic schemas for rule catalog files."""

from __future__ import annotations

import re
from datetime import date
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from claims_compliance.rules.catalog import (
    AgeRestriction,
    CompletenessElement,
    EnrollmentPolicy,
    FilingLimitRule,
    FrequencyHorizon,
    FrequencyRule,
    GenderRestriction,
    ModifierRule,
    NecessityKind,
    NecessityRule,
    PayerRule,
    RuleCatalog,
)
from claims_compliance.rules.claim import PayerType
from claims_compliance.rules.models import CategoryStatus, ComplianceCategory
from claims_compliance.rules.thresholds import ThresholdConfig


def _parse_payer_type(v: Any) -> PayerType:
    payer_type = PayerType.parse(v)
    if payer_type is None:
        raise ValueError(f"Invalid payer type: {v}. Valid: {[t.value for t in PayerType]}")
    return payer_type


def _check_pattern(pattern: str) -> str:
    try:
        re.compile(pattern)
    except re.error as e:
        raise ValueError(f"Invalid pattern {pattern!r}: {e}") from e
    return pattern


class NecessityRuleSchema(BaseModel):
    rule_id: str = Field(..., min_length=1)
    kind: NecessityKind
    procedure_codes: list[str] = Field(..., min_length=1)
    diagnosis_patterns: list[str] = Field(..., min_length=1)
    requirement: str = ""
    severity: str = "high"

    @field_validator("diagnosis_patterns")
    @classmethod
    def validate_patterns(cls, v: list[str]) -> list[str]:
        return [_check_pattern(pattern) for pattern in v]


class AgeRestrictionSchema(BaseModel):
    procedure_code: str = Field(..., min_length=1)
    min_age: int | None = Field(None, ge=0)
    max_age: int | None = Field(None, ge=0)
    requirement: str = ""

    @model_validator(mode="after")
    def check_range(self) -> AgeRestrictionSchema:
        if self.min_age is None and self.max_age is None:
            raise ValueError("Age restriction needs min_age or max_age")
        if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
            raise ValueError("min_age cannot exceed max_age")
        return self


class GenderRestrictionSchema(BaseModel):
    procedure_codes: list[str] = Field(..., min_length=1)
    required_gender: str = Field(..., pattern=r"^[MFmf]")
    requirement: str = ""


class FilingLimitSchema(BaseModel):
    payer_type: PayerType
    limit_days: int = Field(..., ge=1)
    description: str = ""
    exceptions: list[str] = Field(default_factory=list)

    @field_validator("payer_type", mode="before")
    @classmethod
    def parse_payer_type(cls, v: Any) -> PayerType:
        return _parse_payer_type(v)


class FrequencyRuleSchema(BaseModel):
    procedure_code: str = Field(..., min_length=1)
    max_units: int = Field(..., ge=1)
    horizon: FrequencyHorizon
    min_age: int | None = Field(None, ge=0)
    max_age: int | None = Field(None, ge=0)
    description: str = ""

    @model_validator(mode="after")
    def check_age_band(self) -> FrequencyRuleSchema:
        if self.horizon is FrequencyHorizon.AGE_BANDED and self.min_age is None and self.max_age is None:
            raise ValueError("age_banded frequency rules need min_age or max_age")
        return self


class EnrollmentPolicySchema(BaseModel):
    status: str = Field(..., min_length=1)
    can_bill: bool
    reason: str = ""
    on_hold: bool = False


class ModifierRuleSchema(BaseModel):
    procedure_code: str = Field(..., min_length=1)
    modifier: str = Field(..., min_length=2, max_length=2)
    reason: str = ""


class PayerRuleSchema(BaseModel):
    payer_type: PayerType
    required_fields: list[str] = Field(default_factory=list)
    field_formats: dict[str, str] = Field(default_factory=dict)
    required_modifiers: list[ModifierRuleSchema] = Field(default_factory=list)
    prohibited_modifiers: list[ModifierRuleSchema] = Field(default_factory=list)

    @field_validator("payer_type", mode="before")
    @classmethod
    def parse_payer_type(cls, v: Any) -> PayerType:
        return _parse_payer_type(v)

    @field_validator("field_formats")
    @classmethod
    def validate_patterns(cls, v: dict[str, str]) -> dict[str, str]:
        return {name: _check_pattern(pattern) for name, pattern in v.items()}


class CompletenessElementSchema(BaseModel):
    field: str = Field(..., min_length=1)
    label: str = ""
    weight: float = Field(1.0, gt=0)


class RuleCatalogSchema(BaseModel):
    """File representation of a rule catalog."""

    version: str = Field(..., min_length=1)
    effective_date: date | None = None
    necessity_rules: list[NecessityRuleSchema] = Field(default_factory=list)
    age_restrictions: list[AgeRestrictionSchema] = Field(default_factory=list)
    gender_restrictions: list[GenderRestrictionSchema] = Field(default_factory=list)
    prior_auth_required: list[str] = Field(default_factory=list)
    filing_limits: list[FilingLimitSchema] = Field(default_factory=list)
    frequency_rules: list[FrequencyRuleSchema] = Field(default_factory=list)
    enrollment_policies: list[EnrollmentPolicySchema] = Field(default_factory=list)
    payer_rules: list[PayerRuleSchema] = Field(default_factory=list)
    completeness_elements: list[CompletenessElementSchema] = Field(default_factory=list)

    @field_validator("version", mode="before")
    @classmethod
    def stringify_version(cls, v: Any) -> Any:
        # YAML reads versions like 2025.1 as floats
        if isinstance(v, (int, float)):
            return str(v)
        return v

    def to_catalog(self) -> RuleCatalog:
        return RuleCatalog(
            version=self.version,
            effective_date=self.effective_date,
            necessity_rules=tuple(
                NecessityRule(
                    rule_id=rule.rule_id,
                    kind=rule.kind,
                    procedure_codes=frozenset(rule.procedure_codes),
                    diagnosis_patterns=tuple(rule.diagnosis_patterns),
                    requirement=rule.requirement,
                    severity=rule.severity,
                )
                for rule in self.necessity_rules
            ),
            age_restrictions=tuple(AgeRestriction(**r.model_dump()) for r in self.age_restrictions),
            gender_restrictions=tuple(
                GenderRestriction(
                    procedure_codes=frozenset(r.procedure_codes),
                    required_gender=r.required_gender,
                    requirement=r.requirement,
                )
                for r in self.gender_restrictions
            ),
            prior_auth_required=frozenset(self.prior_auth_required),
            filing_limits=tuple(
                FilingLimitRule(
                    payer_type=r.payer_type,
                    limit_days=r.limit_days,
                    description=r.description,
                    exceptions=tuple(r.exceptions),
                )
                for r in self.filing_limits
            ),
            frequency_rules=tuple(FrequencyRule(**r.model_dump()) for r in self.frequency_rules),
            enrollment_policies=tuple(
                EnrollmentPolicy(**p.model_dump()) for p in self.enrollment_policies
            ),
            payer_rules=tuple(
                PayerRule(
                    payer_type=r.payer_type,
                    required_fields=tuple(r.required_fields),
                    field_formats=dict(r.field_formats),
                    required_modifiers=tuple(
                        ModifierRule(**m.model_dump()) for m in r.required_modifiers
                    ),
                    prohibited_modifiers=tuple(
                        ModifierRule(**m.model_dump()) for m in r.prohibited_modifiers
                    ),
                )
                for r in self.payer_rules
            ),
            completeness_elements=tuple(
                CompletenessElement(field=e.field, label=e.label or e.field, weight=e.weight)
                for e in self.completeness_elements
            ),
        )


class ThresholdSchema(BaseModel):
    """Optional ``thresholds`` section of a catalog file."""

    model_config = {"extra": "forbid"}

    filing_warning_days: int | None = Field(None, ge=0)
    frequency_warning_ratio: float | None = Field(None, gt=0, le=1)
    age_boundary_grace_days: int | None = Field(None, ge=0)
    completeness_pass_min: float | None = Field(None, ge=0, le=100)
    completeness_warning_min: float | None = Field(None, ge=0, le=100)
    medium_risk_min: int | None = Field(None, ge=0, le=100)
    high_risk_min: int | None = Field(None, ge=0, le=100)
    critical_risk_min: int | None = Field(None, ge=0, le=100)
    escalate_blocking_failures: bool | None = None
    status_penalties: dict[str, int] | None = None
    status_credits: dict[str, float] | None = None
    category_weights: dict[str, float] | None = None
    max_recommendations: int | None = Field(None, ge=0)

    @model_validator(mode="after")
    def check_consistency(self) -> ThresholdSchema:
        defaults = ThresholdConfig()

        def value(name: str) -> Any:
            own = getattr(self, name)
            return own if own is not None else getattr(defaults, name)

        bands = ("medium_risk_min", "high_risk_min", "critical_risk_min")
        for lower, upper in zip(bands, bands[1:]):
            if value(lower) > value(upper):
                raise ValueError(f"{lower} cannot exceed {upper}")
        if value("completeness_warning_min") > value("completeness_pass_min"):
            raise ValueError("completeness_warning_min cannot exceed completeness_pass_min")

        statuses = {status.value for status in CategoryStatus}
        categories = {category.value for category in ComplianceCategory}
        for name, valid in (
            ("status_penalties", statuses),
            ("status_credits", statuses),
            ("category_weights", categories),
        ):
            unknown = sorted(set(getattr(self, name) or {}) - valid)
            if unknown:
                raise ValueError(f"Unknown {name} key(s): {', '.join(unknown)}. Valid: {sorted(valid)}")
        return self

"""Immutable rule catalog: the reference data every validator reads.

A catalog is a value. Reloading reference data means building a new
``RuleCatalog`` and handing it to the engine; nothing here is mutated after
construction.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Any

from .claim import PayerType


class NecessityKind(str, Enum):
    REQUIRED = "required"
    EXCLUDED = "excluded"


class FrequencyHorizon(str, Enum):
    DAILY = "daily"
    ANNUAL = "annual"
    LIFETIME = "lifetime"
    AGE_BANDED = "age_banded"


def _normalize_code(code: str) -> str:
    return str(code).strip().upper()


@dataclass(frozen=True)
class NecessityRule:
    """Pairs procedure codes with diagnosis patterns.

    ``required`` rules demand at least one linked diagnosis matching a
    pattern; ``excluded`` rules flag any linked diagnosis that matches.
    Patterns are regular expressions matched from the start of the
    diagnosis code.
    """

    rule_id: str
    kind: NecessityKind
    procedure_codes: frozenset[str]
    diagnosis_patterns: tuple[str, ...]
    requirement: str = ""
    severity: str = "high"

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", NecessityKind(self.kind))
        object.__setattr__(
            self,
            "procedure_codes",
            frozenset(_normalize_code(code) for code in self.procedure_codes),
        )
        object.__setattr__(self, "diagnosis_patterns", tuple(self.diagnosis_patterns))

    def matches_diagnosis(self, diagnosis_code: str) -> bool:
        code = _normalize_code(diagnosis_code)
        return any(re.match(pattern, code) for pattern in self.diagnosis_patterns)


@dataclass(frozen=True)
class AgeRestriction:
    procedure_code: str
    min_age: int | None = None
    max_age: int | None = None
    requirement: str = ""

    def allows(self, age: int) -> bool:
        if self.min_age is not None and age < self.min_age:
            return False
        if self.max_age is not None and age > self.max_age:
            return False
        return True

    @property
    def range_label(self) -> str:
        low = self.min_age if self.min_age is not None else 0
        high = self.max_age if self.max_age is not None else "unlimited"
        return f"{low}-{high}"


@dataclass(frozen=True)
class GenderRestriction:
    procedure_codes: frozenset[str]
    required_gender: str
    requirement: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "procedure_codes",
            frozenset(_normalize_code(code) for code in self.procedure_codes),
        )
        object.__setattr__(self, "required_gender", normalize_gender(self.required_gender))


def normalize_gender(value: str | None) -> str | None:
    if value is None or not str(value).strip():
        return None
    return str(value).strip()[0].upper()


@dataclass(frozen=True)
class FilingLimitRule:
    payer_type: PayerType
    limit_days: int
    description: str = ""
    exceptions: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "payer_type", PayerType(self.payer_type))
        object.__setattr__(self, "exceptions", tuple(self.exceptions))


@dataclass(frozen=True)
class FrequencyRule:
    """Ceiling on billed units of a procedure within a time horizon."""

    procedure_code: str
    max_units: int
    horizon: FrequencyHorizon
    min_age: int | None = None
    max_age: int | None = None
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "procedure_code", _normalize_code(self.procedure_code))
        object.__setattr__(self, "horizon", FrequencyHorizon(self.horizon))

    @property
    def is_age_gated(self) -> bool:
        return (
            self.horizon is FrequencyHorizon.AGE_BANDED
            or self.min_age is not None
            or self.max_age is not None
        )

    def applies_to_age(self, age: int) -> bool:
        if self.min_age is not None and age < self.min_age:
            return False
        if self.max_age is not None and age > self.max_age:
            return False
        return True

    def window_contains(self, history_date: date, service_date: date) -> bool:
        """Whether a prior service falls within this rule's counting window."""
        if history_date > service_date:
            return False
        if self.horizon is FrequencyHorizon.DAILY:
            return history_date == service_date
        if self.horizon is FrequencyHorizon.LIFETIME:
            return True
        # Annual and age-banded limits count the service's calendar year
        return history_date.year == service_date.year


@dataclass(frozen=True)
class EnrollmentPolicy:
    status: str
    can_bill: bool
    reason: str = ""
    on_hold: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", self.status.strip().lower())


@dataclass(frozen=True)
class ModifierRule:
    procedure_code: str
    modifier: str
    reason: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "procedure_code", _normalize_code(self.procedure_code))
        object.__setattr__(self, "modifier", _normalize_code(self.modifier))


@dataclass(frozen=True)
class PayerRule:
    payer_type: PayerType
    required_fields: tuple[str, ...] = ()
    field_formats: Mapping[str, str] = field(default_factory=dict)
    required_modifiers: tuple[ModifierRule, ...] = ()
    prohibited_modifiers: tuple[ModifierRule, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "payer_type", PayerType(self.payer_type))
        object.__setattr__(self, "required_fields", tuple(self.required_fields))
        object.__setattr__(
            self, "field_formats", MappingProxyType(dict(self.field_formats or {}))
        )
        object.__setattr__(self, "required_modifiers", tuple(self.required_modifiers))
        object.__setattr__(self, "prohibited_modifiers", tuple(self.prohibited_modifiers))


@dataclass(frozen=True)
class CompletenessElement:
    field: str
    label: str
    weight: float = 1.0


def _index(items: Iterable[Any], key) -> Mapping[Any, Any]:
    index: dict[Any, Any] = {}
    for item in items:
        index.setdefault(key(item), item)
    return MappingProxyType(index)


def _group(items: Iterable[Any], keys) -> Mapping[Any, tuple[Any, ...]]:
    grouped: dict[Any, list[Any]] = {}
    for item in items:
        for key in keys(item):
            grouped.setdefault(key, []).append(item)
    return MappingProxyType({key: tuple(value) for key, value in grouped.items()})


@dataclass(frozen=True)
class RuleCatalog:
    """Versioned, read-only rule tables for all validation categories."""

    version: str = "unversioned"
    effective_date: date | None = None
    necessity_rules: tuple[NecessityRule, ...] = ()
    age_restrictions: tuple[AgeRestriction, ...] = ()
    gender_restrictions: tuple[GenderRestriction, ...] = ()
    prior_auth_required: frozenset[str] = frozenset()
    filing_limits: tuple[FilingLimitRule, ...] = ()
    frequency_rules: tuple[FrequencyRule, ...] = ()
    enrollment_policies: tuple[EnrollmentPolicy, ...] = ()
    payer_rules: tuple[PayerRule, ...] = ()
    completeness_elements: tuple[CompletenessElement, ...] = ()

    _necessity_by_code: Mapping[str, tuple[NecessityRule, ...]] = field(
        init=False, repr=False, compare=False
    )
    _age_by_code: Mapping[str, AgeRestriction] = field(
        init=False, repr=False, compare=False
    )
    _gender_by_code: Mapping[str, GenderRestriction] = field(
        init=False, repr=False, compare=False
    )
    _filing_by_payer: Mapping[PayerType, FilingLimitRule] = field(
        init=False, repr=False, compare=False
    )
    _frequency_by_code: Mapping[str, tuple[FrequencyRule, ...]] = field(
        init=False, repr=False, compare=False
    )
    _enrollment_by_status: Mapping[str, EnrollmentPolicy] = field(
        init=False, repr=False, compare=False
    )
    _payer_by_type: Mapping[PayerType, PayerRule] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        for name in (
            "necessity_rules",
            "age_restrictions",
            "gender_restrictions",
            "filing_limits",
            "frequency_rules",
            "enrollment_policies",
            "payer_rules",
            "completeness_elements",
        ):
            object.__setattr__(self, name, tuple(getattr(self, name)))
        object.__setattr__(
            self,
            "prior_auth_required",
            frozenset(_normalize_code(code) for code in self.prior_auth_required),
        )

        setattr_ = object.__setattr__
        setattr_(
            self,
            "_necessity_by_code",
            _group(self.necessity_rules, lambda rule: sorted(rule.procedure_codes)),
        )
        setattr_(
            self,
            "_age_by_code",
            _index(self.age_restrictions, lambda r: _normalize_code(r.procedure_code)),
        )
        setattr_(
            self,
            "_gender_by_code",
            MappingProxyType(
                {
                    code: restriction
                    for restriction in reversed(self.gender_restrictions)
                    for code in restriction.procedure_codes
                }
            ),
        )
        setattr_(self, "_filing_by_payer", _index(self.filing_limits, lambda r: r.payer_type))
        setattr_(
            self,
            "_frequency_by_code",
            _group(self.frequency_rules, lambda rule: [rule.procedure_code]),
        )
        setattr_(self, "_enrollment_by_status", _index(self.enrollment_policies, lambda p: p.status))
        setattr_(self, "_payer_by_type", _index(self.payer_rules, lambda r: r.payer_type))

    @classmethod
    def empty(cls, version: str = "empty") -> RuleCatalog:
        """A catalog with no rules; every category treats claims as unrestricted."""
        return cls(version=version)

    def necessity_rules_for(self, procedure_code: str) -> tuple[NecessityRule, ...]:
        return self._necessity_by_code.get(_normalize_code(procedure_code), ())

    def age_restriction_for(self, procedure_code: str) -> AgeRestriction | None:
        return self._age_by_code.get(_normalize_code(procedure_code))

    def gender_restriction_for(self, procedure_code: str) -> GenderRestriction | None:
        return self._gender_by_code.get(_normalize_code(procedure_code))

    def requires_prior_auth(self, procedure_code: str) -> bool:
        return _normalize_code(procedure_code) in self.prior_auth_required

    def filing_limit_for(self, payer_type: PayerType | None) -> FilingLimitRule | None:
        if payer_type is None:
            return None
        return self._filing_by_payer.get(payer_type)

    def shortest_filing_limit(self) -> FilingLimitRule | None:
        """Most conservative known filing limit (ties keep catalog order)."""
        if not self.filing_limits:
            return None
        return min(self.filing_limits, key=lambda rule: rule.limit_days)

    def frequency_rules_for(self, procedure_code: str) -> tuple[FrequencyRule, ...]:
        return self._frequency_by_code.get(_normalize_code(procedure_code), ())

    def enrollment_policy_for(self, status: str | None) -> EnrollmentPolicy | None:
        if not status:
            return None
        return self._enrollment_by_status.get(status.strip().lower())

    def payer_rule_for(self, payer_type: PayerType | None) -> PayerRule | None:
        if payer_type is None:
            return None
        return self._payer_by_type.get(payer_type)

"""Threshold configuration for category statuses, risk levels and scoring."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .models import CategoryStatus, ComplianceCategory, RiskLevel


def _default_penalties() -> dict[str, int]:
    return {
        CategoryStatus.FAILED.value: 30,
        CategoryStatus.REVIEW_REQUIRED.value: 20,
        CategoryStatus.WARNING.value: 10,
        CategoryStatus.PASS.value: 0,
    }


def _default_credits() -> dict[str, float]:
    return {
        CategoryStatus.PASS.value: 1.0,
        CategoryStatus.WARNING.value: 0.7,
        CategoryStatus.REVIEW_REQUIRED.value: 0.4,
        CategoryStatus.FAILED.value: 0.0,
    }


def _default_weights() -> dict[str, float]:
    return {
        ComplianceCategory.MEDICAL_NECESSITY.value: 0.25,
        ComplianceCategory.TIMELY_FILING.value: 0.15,
        ComplianceCategory.PROVIDER_ENROLLMENT.value: 0.20,
        ComplianceCategory.FREQUENCY_LIMITS.value: 0.15,
        ComplianceCategory.PAYER_COMPLIANCE.value: 0.15,
        ComplianceCategory.CLAIM_COMPLETENESS.value: 0.10,
    }


@dataclass(frozen=True)
class ThresholdConfig:
    # Category statuses
    filing_warning_days: int = 10
    frequency_warning_ratio: float = 0.9
    age_boundary_grace_days: int = 30
    completeness_pass_min: float = 90.0
    completeness_warning_min: float = 70.0

    # Risk aggregation
    medium_risk_min: int = 20
    high_risk_min: int = 50
    critical_risk_min: int = 80
    escalate_blocking_failures: bool = True
    status_penalties: Mapping[str, int] = field(default_factory=_default_penalties)

    # Compliance scoring
    status_credits: Mapping[str, float] = field(default_factory=_default_credits)
    category_weights: Mapping[str, float] = field(default_factory=_default_weights)

    max_recommendations: int = 10

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ThresholdConfig:
        """Build a config from a mapping, merging partial tables over defaults."""
        if not data:
            return cls()
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown threshold setting(s): {', '.join(unknown)}")

        values = dict(data)
        for name, defaults in (
            ("status_penalties", _default_penalties()),
            ("status_credits", _default_credits()),
            ("category_weights", _default_weights()),
        ):
            if name in values:
                values[name] = {**defaults, **dict(values[name])}
        return cls(**values)

    def risk_level(self, score: float) -> RiskLevel:
        if score >= self.critical_risk_min:
            return RiskLevel.CRITICAL
        if score >= self.high_risk_min:
            return RiskLevel.HIGH
        if score >= self.medium_risk_min:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def penalty_for(self, status: CategoryStatus) -> int:
        return int(self.status_penalties.get(CategoryStatus(status).value, 0))

    def credit_for(self, status: CategoryStatus) -> float:
        return float(self.status_credits.get(CategoryStatus(status).value, 0.0))

    def weight_for(self, category: ComplianceCategory) -> float:
        return float(self.category_weights.get(ComplianceCategory(category).value, 0.0))

    def completeness_status(self, percentage: float) -> CategoryStatus:
        if percentage >= self.completeness_pass_min:
            return CategoryStatus.PASS
        if percentage >= self.completeness_warning_min:
            return CategoryStatus.WARNING
        return CategoryStatus.FAILED

    @staticmethod
    def clamp_score(score: float) -> float:
        if score < 0:
            return 0
        if score > 100:
            return 100
        return score

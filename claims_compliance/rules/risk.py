"""Risk aggregation across category results."""

from __future__ import annotations

from collections.abc import Mapping

from .models import (
    CATEGORY_PRIORITY,
    CategoryResult,
    CategoryStatus,
    ComplianceCategory,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
)
from .thresholds import ThresholdConfig

_STATUS_REASONS = {
    CategoryStatus.FAILED: "Validation failed",
    CategoryStatus.REVIEW_REQUIRED: "Manual review required",
    CategoryStatus.WARNING: "Minor issues detected",
}


def _priority(category: ComplianceCategory) -> int:
    try:
        return CATEGORY_PRIORITY.index(category)
    except ValueError:
        return len(CATEGORY_PRIORITY)


def _factor_reason(result: CategoryResult) -> str:
    findings = result.issues or result.warnings
    if findings:
        return findings[0].description
    return _STATUS_REASONS.get(result.status, result.status.value)


class RiskAggregator:
    """Turns category statuses into a penalty-based risk score and level."""

    def __init__(self, thresholds: ThresholdConfig | None = None) -> None:
        self.thresholds = thresholds or ThresholdConfig()

    def aggregate(
        self, results: Mapping[ComplianceCategory, CategoryResult]
    ) -> RiskAssessment:
        thresholds = self.thresholds
        total = 0
        factors: list[RiskFactor] = []

        for category, result in results.items():
            penalty = thresholds.penalty_for(result.status)
            total += penalty
            if result.status is CategoryStatus.PASS:
                continue
            factors.append(
                RiskFactor(
                    category=category,
                    status=result.status,
                    penalty=penalty,
                    reason=_factor_reason(result),
                )
            )

        factors.sort(key=lambda factor: (-factor.penalty, _priority(factor.category)))

        risk_score = int(thresholds.clamp_score(total))
        overall_risk = thresholds.risk_level(risk_score)

        if thresholds.escalate_blocking_failures and overall_risk.rank < RiskLevel.HIGH.rank:
            # A blocking failure means a near-certain denial, whatever the sum says
            if any(
                result.blocking and result.status is CategoryStatus.FAILED
                for result in results.values()
            ):
                overall_risk = RiskLevel.HIGH

        return RiskAssessment(
            overall_risk=overall_risk,
            risk_score=risk_score,
            risk_factors=tuple(factors),
        )

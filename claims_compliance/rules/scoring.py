"""Weighted compliance scoring."""

from __future__ import annotations

from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal

from .models import CategoryResult, ComplianceCategory, ComplianceScore
from .thresholds import ThresholdConfig


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class ComplianceScorer:
    """Computes the 0-100 compliance score from category results.

    Each category contributes ``weight x credit``; the completeness category
    uses its completeness percentage as the credit instead of its status.
    """

    def __init__(self, thresholds: ThresholdConfig | None = None) -> None:
        self.thresholds = thresholds or ThresholdConfig()

    def category_credit(self, result: CategoryResult) -> float:
        if result.category is ComplianceCategory.CLAIM_COMPLETENESS:
            percentage = result.metrics.get("completeness_percentage")
            if percentage is not None:
                return min(max(float(percentage) / 100, 0.0), 1.0)
        return self.thresholds.credit_for(result.status)

    def score(self, results: Mapping[ComplianceCategory, CategoryResult]) -> ComplianceScore:
        contributions: dict[str, float] = {}
        weighted = 0.0

        for category, result in results.items():
            contribution = self.thresholds.weight_for(category) * self.category_credit(result)
            contributions[category.value] = round(contribution * 100, 2)
            weighted += contribution

        value = int(self.thresholds.clamp_score(round_half_up(weighted * 100)))
        return ComplianceScore(value=value, contributions=contributions)

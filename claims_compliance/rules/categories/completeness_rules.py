"""Claim completeness rules."""

from __future__ import annotations

from claims_compliance.rules.models import (
    CategoryResult,
    ComplianceCategory,
    Finding,
    ValidationContext,
)

CATEGORY = ComplianceCategory.CLAIM_COMPLETENESS


def claim_completeness_validator(context: ValidationContext) -> CategoryResult:
    """Score how many expected (but not payer-required) elements are populated.

    Missing elements are warnings only; the category lowers the compliance
    score but never blocks submission.
    """
    claim = context.claim
    elements = context.catalog.completeness_elements
    warnings: list[Finding] = []
    missing: list[str] = []

    total_weight = 0.0
    completed_weight = 0.0
    for element in elements:
        total_weight += element.weight
        if claim.has_value(element.field):
            completed_weight += element.weight
            continue
        missing.append(element.field)
        warnings.append(
            Finding(
                rule_id="COMPLETENESS_MISSING_ELEMENT",
                description=f"Missing or incomplete: {element.label}",
                severity="low",
                metadata={"field": element.field, "weight": element.weight},
            )
        )

    if total_weight > 0:
        percentage = completed_weight * 100 / total_weight
    else:
        percentage = 100.0

    status = context.thresholds.completeness_status(percentage)

    recommendations: list[str] = []
    if missing:
        recommendations.append("Complete missing claim elements for optimal processing")

    return CategoryResult(
        category=CATEGORY,
        status=status,
        warnings=tuple(warnings),
        metrics={
            "completeness_percentage": round(percentage, 1),
            "missing_elements": missing,
            "elements_evaluated": len(elements),
        },
        recommendations=tuple(recommendations),
        blocking=False,
    )

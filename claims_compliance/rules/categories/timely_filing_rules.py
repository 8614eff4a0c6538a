"""Timely filing rules."""

from __future__ import annotations

from datetime import timedelta

from claims_compliance.rules.models import (
    CategoryResult,
    CategoryStatus,
    ComplianceCategory,
    Finding,
    ValidationContext,
    status_from_findings,
)

CATEGORY = ComplianceCategory.TIMELY_FILING


def timely_filing_validator(context: ValidationContext) -> CategoryResult:
    """Check if the claim is (or would be) submitted within the payer's filing deadline."""
    claim = context.claim
    payer_type = claim.payer.resolved_type
    submission_date = context.submission_date
    issues: list[Finding] = []
    warnings: list[Finding] = []

    rule = context.catalog.filing_limit_for(payer_type)
    fallback_applied = False
    if rule is None and payer_type is None:
        rule = context.catalog.shortest_filing_limit()
        if rule is not None:
            fallback_applied = True
            warnings.append(
                Finding(
                    rule_id="TIMELY_FILING_FALLBACK",
                    description=f"Unknown payer type '{claim.payer.type_label}'; applying shortest known filing limit of {rule.limit_days} days ({rule.payer_type.value})",
                    severity="low",
                    citation="Payer Timely Filing Policy",
                    metadata={
                        "declared_payer_type": claim.payer.payer_type,
                        "fallback_payer_type": rule.payer_type.value,
                        "filing_limit": rule.limit_days,
                    },
                )
            )

    days_elapsed = (submission_date - claim.service_date).days
    metrics = {
        "payer_type": claim.payer.type_label,
        "limit_days": None,
        "days_elapsed": days_elapsed,
        "filing_deadline": None,
        "days_until_deadline": None,
        "submitted": claim.submission_date is not None,
        "fallback_applied": fallback_applied,
        "exceptions": [],
    }

    if rule is None:
        # No filing limit configured for this payer type
        return CategoryResult(category=CATEGORY, status=CategoryStatus.PASS, metrics=metrics)

    limit_days = rule.limit_days
    filing_deadline = claim.service_date + timedelta(days=limit_days)
    days_until_deadline = (filing_deadline - submission_date).days
    metrics.update(
        {
            "limit_days": limit_days,
            "filing_deadline": filing_deadline.isoformat(),
            "days_until_deadline": days_until_deadline,
            "exceptions": list(rule.exceptions),
        }
    )

    if days_elapsed > limit_days:
        issues.append(
            Finding(
                rule_id="TIMELY_FILING_LATE",
                description=f"Claim filed {days_elapsed} days after service, exceeds {limit_days}-day {rule.payer_type.value} filing limit",
                severity="critical",
                citation="Payer Timely Filing Policy",
                metadata={
                    "days_elapsed": days_elapsed,
                    "filing_limit": limit_days,
                    "days_overdue": days_elapsed - limit_days,
                    "service_date": claim.service_date.isoformat(),
                    "submission_date": submission_date.isoformat(),
                },
            )
        )
    elif days_elapsed >= limit_days - context.thresholds.filing_warning_days:
        warnings.append(
            Finding(
                rule_id="TIMELY_FILING_WARNING",
                description=f"Claim filed {days_elapsed} days after service, approaching {limit_days}-day limit",
                severity="low",
                citation="Payer Timely Filing Policy",
                metadata={
                    "days_elapsed": days_elapsed,
                    "filing_limit": limit_days,
                    "days_until_deadline": days_until_deadline,
                },
            )
        )

    recommendations: list[str] = []
    if issues:
        recommendations.append("Check for applicable exceptions to timely filing")
        recommendations.append("Document any good cause for late filing")
        recommendations.append("Consider appeal process if claim is denied")
    elif any(w.rule_id == "TIMELY_FILING_WARNING" for w in warnings):
        recommendations.append("Submit claim immediately to meet filing deadline")
    if fallback_applied:
        recommendations.append("Confirm the payer type to apply the correct filing limit")

    return CategoryResult(
        category=CATEGORY,
        status=status_from_findings(issues, warnings),
        issues=tuple(issues),
        warnings=tuple(warnings),
        metrics=metrics,
        recommendations=tuple(recommendations),
    )

"""Frequency and quantity limit rules."""

from __future__ import annotations

from typing import Any

from claims_compliance.rules.models import (
    CategoryResult,
    ComplianceCategory,
    Finding,
    ValidationContext,
    status_from_findings,
)

CATEGORY = ComplianceCategory.FREQUENCY_LIMITS


def frequency_limit_validator(context: ValidationContext) -> CategoryResult:
    """Check billed units against every daily, annual, lifetime and age-banded ceiling."""
    claim = context.claim
    patient_age = claim.patient_age()
    warning_ratio = context.thresholds.frequency_warning_ratio
    issues: list[Finding] = []
    warnings: list[Finding] = []
    analysis: list[dict[str, Any]] = []

    # Units for the same code on several lines count together
    units_by_code: dict[str, int] = {}
    for line in claim.procedures:
        code = line.procedure_code.strip().upper()
        units_by_code[code] = units_by_code.get(code, 0) + max(line.units, 0)

    for code, units in units_by_code.items():
        for rule in context.catalog.frequency_rules_for(code):
            if rule.is_age_gated and (patient_age is None or not rule.applies_to_age(patient_age)):
                continue

            prior_units = sum(
                max(entry.units, 0)
                for entry in claim.procedure_history
                if entry.procedure_code.strip().upper() == code
                and rule.window_contains(entry.service_date, claim.service_date)
            )
            total = prior_units + units
            analysis.append(
                {
                    "procedure_code": code,
                    "horizon": rule.horizon.value,
                    "prior_units": prior_units,
                    "units_billed": units,
                    "limit": rule.max_units,
                    "remaining": max(0, rule.max_units - total),
                }
            )
            metadata = {
                "procedure_code": code,
                "horizon": rule.horizon.value,
                "prior_units": prior_units,
                "units_billed": units,
                "limit": rule.max_units,
                "patient_age": patient_age if rule.is_age_gated else None,
            }

            if total > rule.max_units:
                issues.append(
                    Finding(
                        rule_id="FREQUENCY_LIMIT_EXCEEDED",
                        description=f"{rule.horizon.value.replace('_', '-').capitalize()} limit exceeded for {code}: {total} total units, limit is {rule.max_units}",
                        severity="high",
                        citation="Payer Frequency Limits",
                        metadata=metadata,
                    )
                )
            elif total >= rule.max_units * warning_ratio:
                warnings.append(
                    Finding(
                        rule_id="FREQUENCY_LIMIT_APPROACHING",
                        description=f"{code} at {total} of {rule.max_units} {rule.horizon.value.replace('_', '-')} units",
                        severity="low",
                        citation="Payer Frequency Limits",
                        metadata=metadata,
                    )
                )

    recommendations: list[str] = []
    if issues:
        recommendations.append("Review medical necessity for frequency limit exceptions")
        recommendations.append("Document clinical rationale for exceeding limits")
    elif warnings:
        recommendations.append("Check payer-specific frequency guidelines before scheduling further services")

    return CategoryResult(
        category=CATEGORY,
        status=status_from_findings(issues, warnings),
        issues=tuple(issues),
        warnings=tuple(warnings),
        metrics={"frequency_analysis": analysis},
        recommendations=tuple(recommendations),
    )

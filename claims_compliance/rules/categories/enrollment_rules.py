"""Provider enrollment rules."""

from __future__ import annotations

from claims_compliance.rules.models import (
    CategoryResult,
    ComplianceCategory,
    Finding,
    ValidationContext,
    status_from_findings,
)

CATEGORY = ComplianceCategory.PROVIDER_ENROLLMENT


def provider_enrollment_validator(context: ValidationContext) -> CategoryResult:
    """Check that the provider was enrolled on the date of service and may bill."""
    claim = context.claim
    provider = claim.provider
    service_date = claim.service_date
    effective_date = provider.enrollment_effective_date
    termination_date = provider.enrollment_termination_date
    status_label = (provider.enrollment_status or "").strip().lower() or None
    issues: list[Finding] = []
    warnings: list[Finding] = []

    # Enrollment dates outrank the status label
    within_window: bool | None = None
    if effective_date or termination_date:
        within_window = True
        if effective_date and service_date < effective_date:
            within_window = False
            issues.append(
                Finding(
                    rule_id="ENROLLMENT_BEFORE_EFFECTIVE",
                    description=f"Service date {service_date.isoformat()} is before provider enrollment effective date {effective_date.isoformat()}",
                    severity="critical",
                    citation="Provider Enrollment Policy",
                    metadata={
                        "provider_npi": provider.npi,
                        "effective_date": effective_date.isoformat(),
                    },
                )
            )
        if termination_date and service_date > termination_date:
            within_window = False
            issues.append(
                Finding(
                    rule_id="ENROLLMENT_AFTER_TERMINATION",
                    description=f"Service date {service_date.isoformat()} is after provider enrollment termination date {termination_date.isoformat()}",
                    severity="critical",
                    citation="Provider Enrollment Policy",
                    metadata={
                        "provider_npi": provider.npi,
                        "termination_date": termination_date.isoformat(),
                    },
                )
            )

    policy = context.catalog.enrollment_policy_for(status_label)
    if policy is not None and not policy.can_bill:
        if policy.on_hold:
            warnings.append(
                Finding(
                    rule_id="ENROLLMENT_ON_HOLD",
                    description=f"Provider enrollment is {status_label}: {policy.reason}",
                    severity="medium",
                    citation="Provider Enrollment Policy",
                    metadata={"provider_npi": provider.npi, "enrollment_status": status_label},
                )
            )
        else:
            issues.append(
                Finding(
                    rule_id="ENROLLMENT_CANNOT_BILL",
                    description=f"Provider cannot bill - enrollment status: {status_label} ({policy.reason})",
                    severity="critical",
                    citation="Provider Enrollment Policy",
                    metadata={
                        "provider_npi": provider.npi,
                        "enrollment_status": status_label,
                        "reason": policy.reason,
                    },
                )
            )

    recommendations: list[str] = []
    if issues:
        recommendations.append("Verify provider enrollment status with payer")
        recommendations.append("Ensure services are within enrollment period")
    elif warnings:
        recommendations.append("Hold claim until provider enrollment is approved")

    return CategoryResult(
        category=CATEGORY,
        status=status_from_findings(issues, warnings),
        issues=tuple(issues),
        warnings=tuple(warnings),
        metrics={
            "enrollment_status": status_label,
            "can_bill": policy.can_bill if policy is not None else None,
            "enrollment_effective_date": effective_date.isoformat() if effective_date else None,
            "enrollment_termination_date": termination_date.isoformat() if termination_date else None,
            "within_enrollment_window": within_window,
        },
        recommendations=tuple(recommendations),
    )

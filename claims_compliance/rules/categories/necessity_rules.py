"""Medical necessity rules."""

from __future__ import annotations

from datetime import date, timedelta

from claims_compliance.rules.catalog import AgeRestriction, NecessityKind, normalize_gender
from claims_compliance.rules.claim import PayerType
from claims_compliance.rules.models import (
    CategoryResult,
    ComplianceCategory,
    Finding,
    ValidationContext,
    status_from_findings,
)
from claims_compliance.utils.date_parser import add_years

CATEGORY = ComplianceCategory.MEDICAL_NECESSITY


def medical_necessity_validator(context: ValidationContext) -> CategoryResult:
    """Check every procedure line against necessity, authorization, age and gender rules."""
    claim = context.claim
    catalog = context.catalog
    payer_type = claim.payer.resolved_type
    patient_age = claim.patient_age()
    patient_gender = normalize_gender(claim.patient.gender)
    has_authorization = claim.has_value("prior_authorization_number")
    issues: list[Finding] = []
    warnings: list[Finding] = []
    auth_missing: list[str] = []

    for idx, line in enumerate(claim.procedures):
        code = line.procedure_code.strip().upper()
        linked = claim.diagnoses_for(line)
        necessity_rules = catalog.necessity_rules_for(code)

        # Pointers only matter where a diagnosis pairing rule applies
        if necessity_rules and not line.diagnosis_pointers:
            warnings.append(
                Finding(
                    rule_id="NECESSITY_MISSING_POINTER",
                    description=f"Procedure {code} has no diagnosis pointer",
                    severity="low",
                    citation="CMS-1500 Item 24E",
                    metadata={"line_index": idx, "procedure_code": code},
                )
            )
            # Without pointers every claim diagnosis is considered for pairing
            linked = list(claim.diagnoses)
        elif necessity_rules and len(linked) < len(line.diagnosis_pointers):
            unresolved = [p for p in line.diagnosis_pointers if claim.diagnosis_at(p) is None]
            warnings.append(
                Finding(
                    rule_id="NECESSITY_UNRESOLVED_POINTER",
                    description=f"Procedure {code} points to missing diagnosis position(s) {unresolved}",
                    severity="low",
                    citation="CMS-1500 Item 24E",
                    metadata={
                        "line_index": idx,
                        "procedure_code": code,
                        "unresolved_pointers": unresolved,
                    },
                )
            )

        linked_codes = [diagnosis.code.strip().upper() for diagnosis in linked]

        for rule in necessity_rules:
            if rule.kind is NecessityKind.REQUIRED:
                if not any(rule.matches_diagnosis(dx) for dx in linked_codes):
                    issues.append(
                        Finding(
                            rule_id="NECESSITY_NOT_ESTABLISHED",
                            description=f"Medical necessity not established for {code}: no linked diagnosis supports it",
                            severity=rule.severity,
                            citation="CMS LCD/NCD",
                            metadata={
                                "line_index": idx,
                                "procedure_code": code,
                                "necessity_rule": rule.rule_id,
                                "linked_diagnoses": linked_codes,
                                "requirement": rule.requirement,
                            },
                        )
                    )
                continue

            for dx in linked_codes:
                if rule.matches_diagnosis(dx):
                    issues.append(
                        Finding(
                            rule_id="NECESSITY_EXCLUDED_COMBINATION",
                            description=f"Procedure {code} with diagnosis {dx} is an excluded combination",
                            severity=rule.severity,
                            citation="CMS LCD/NCD",
                            metadata={
                                "line_index": idx,
                                "procedure_code": code,
                                "diagnosis_code": dx,
                                "necessity_rule": rule.rule_id,
                                "requirement": rule.requirement,
                            },
                        )
                    )

        if (
            catalog.requires_prior_auth(code)
            and not has_authorization
            and payer_type is not PayerType.SELF_PAY
        ):
            auth_missing.append(code)
            issues.append(
                Finding(
                    rule_id="NECESSITY_PRIOR_AUTH_MISSING",
                    description=f"Prior authorization required for {code} but none recorded",
                    severity="high",
                    citation="Payer Prior Authorization Policy",
                    metadata={"line_index": idx, "procedure_code": code},
                )
            )

        age_restriction = catalog.age_restriction_for(code)
        if age_restriction is not None:
            if patient_age is None:
                warnings.append(
                    Finding(
                        rule_id="NECESSITY_AGE_UNVERIFIED",
                        description=f"Cannot verify age restriction for {code}: patient date of birth missing",
                        severity="low",
                        metadata={"line_index": idx, "procedure_code": code},
                    )
                )
            elif not age_restriction.allows(patient_age):
                issues.append(
                    Finding(
                        rule_id="NECESSITY_AGE_RESTRICTION",
                        description=f"Age restriction violation for {code}: patient age {patient_age}, allowed {age_restriction.range_label}",
                        severity="medium",
                        citation="CMS LCD/NCD",
                        metadata={
                            "line_index": idx,
                            "procedure_code": code,
                            "patient_age": patient_age,
                            "required_age_range": age_restriction.range_label,
                            "requirement": age_restriction.requirement,
                        },
                    )
                )
            elif _near_age_boundary(
                age_restriction,
                claim.patient.date_of_birth,
                claim.service_date,
                context.thresholds.age_boundary_grace_days,
            ):
                warnings.append(
                    Finding(
                        rule_id="NECESSITY_AGE_BOUNDARY",
                        description=f"Patient age {patient_age} is within {context.thresholds.age_boundary_grace_days} days of the {age_restriction.range_label} age limit for {code}",
                        severity="low",
                        metadata={
                            "line_index": idx,
                            "procedure_code": code,
                            "patient_age": patient_age,
                            "required_age_range": age_restriction.range_label,
                        },
                    )
                )

        gender_restriction = catalog.gender_restriction_for(code)
        if gender_restriction is not None:
            if patient_gender is None:
                warnings.append(
                    Finding(
                        rule_id="NECESSITY_GENDER_UNVERIFIED",
                        description=f"Cannot verify gender restriction for {code}: patient gender missing",
                        severity="low",
                        metadata={"line_index": idx, "procedure_code": code},
                    )
                )
            elif patient_gender != gender_restriction.required_gender:
                issues.append(
                    Finding(
                        rule_id="NECESSITY_GENDER_RESTRICTION",
                        description=f"Gender restriction violation for {code}: requires {gender_restriction.required_gender}, patient is {patient_gender}",
                        severity="high",
                        citation="CMS LCD/NCD",
                        metadata={
                            "line_index": idx,
                            "procedure_code": code,
                            "patient_gender": patient_gender,
                            "required_gender": gender_restriction.required_gender,
                            "requirement": gender_restriction.requirement,
                        },
                    )
                )

    recommendations: list[str] = []
    if issues:
        recommendations.append("Review medical necessity documentation")
        recommendations.append("Verify diagnosis-procedure code relationships")
    if auth_missing:
        recommendations.append("Obtain and record prior authorization before submission")
    if any(w.rule_id.endswith("_POINTER") for w in warnings):
        recommendations.append("Link every service line to a supporting diagnosis")

    return CategoryResult(
        category=CATEGORY,
        status=status_from_findings(issues, warnings),
        issues=tuple(issues),
        warnings=tuple(warnings),
        metrics={
            "procedures_evaluated": len(claim.procedures),
            "patient_age": patient_age,
            "prior_auth_missing": auth_missing,
        },
        recommendations=tuple(recommendations),
    )


def _near_age_boundary(
    restriction: AgeRestriction,
    date_of_birth: date | None,
    service_date: date,
    grace_days: int,
) -> bool:
    """Whether an allowed age sits within ``grace_days`` of a range boundary."""
    if date_of_birth is None or grace_days <= 0:
        return False
    grace = timedelta(days=grace_days)
    if restriction.min_age is not None:
        boundary = add_years(date_of_birth, restriction.min_age)
        if boundary <= service_date < boundary + grace:
            return True
    if restriction.max_age is not None:
        boundary = add_years(date_of_birth, restriction.max_age + 1)
        if boundary - grace <= service_date < boundary:
            return True
    return False

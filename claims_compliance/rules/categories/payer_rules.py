"""Payer-specific compliance rules (required fields, formats, modifiers)."""

from __future__ import annotations

import re
from typing import Any

from claims_compliance.rules.claim import is_populated
from claims_compliance.rules.models import (
    CategoryResult,
    CategoryStatus,
    ComplianceCategory,
    Finding,
    ValidationContext,
)

CATEGORY = ComplianceCategory.PAYER_COMPLIANCE


def _field_values(value: Any) -> list[str]:
    if isinstance(value, (list, tuple, set, frozenset)):
        return [str(item).strip() for item in value if is_populated(item)]
    return [str(value).strip()]


def payer_compliance_validator(context: ValidationContext) -> CategoryResult:
    """Check the payer's required fields, field formats and modifier rules."""
    claim = context.claim
    payer_label = claim.payer.type_label
    rule = context.catalog.payer_rule_for(claim.payer.resolved_type)

    if rule is None:
        return CategoryResult(
            category=CATEGORY,
            status=CategoryStatus.PASS,
            metrics={"payer_type": payer_label, "rule_applied": False, "missing_fields": []},
        )

    blocking: list[Finding] = []
    review: list[Finding] = []

    missing_fields = [name for name in rule.required_fields if not claim.has_value(name)]
    for name in missing_fields:
        blocking.append(
            Finding(
                rule_id="PAYER_MISSING_REQUIRED_FIELD",
                description=f"Required field missing for {payer_label}: {name}",
                severity="high",
                citation=f"{payer_label} Claim Requirements",
                metadata={"field": name, "payer_type": payer_label},
            )
        )

    invalid_fields: list[str] = []
    for name, pattern in rule.field_formats.items():
        value = claim.field_value(name)
        if not is_populated(value):
            continue
        bad_values = [item for item in _field_values(value) if not re.fullmatch(pattern, item)]
        if bad_values:
            invalid_fields.append(name)
            review.append(
                Finding(
                    rule_id="PAYER_INVALID_FORMAT",
                    description=f"Field {name} does not match the {payer_label} format",
                    severity="medium",
                    citation=f"{payer_label} Claim Requirements",
                    metadata={"field": name, "pattern": pattern, "invalid_values": bad_values},
                )
            )

    for idx, line in enumerate(claim.procedures):
        code = line.procedure_code.strip().upper()
        modifiers = {modifier.strip().upper() for modifier in line.modifiers if modifier.strip()}

        for modifier_rule in rule.required_modifiers:
            if modifier_rule.procedure_code == code and modifier_rule.modifier not in modifiers:
                review.append(
                    Finding(
                        rule_id="PAYER_MISSING_MODIFIER",
                        description=f"Required modifier {modifier_rule.modifier} missing for {code}: {modifier_rule.reason}",
                        severity="medium",
                        citation=f"{payer_label} Modifier Policy",
                        metadata={
                            "line_index": idx,
                            "procedure_code": code,
                            "required_modifier": modifier_rule.modifier,
                        },
                    )
                )

        for modifier_rule in rule.prohibited_modifiers:
            if modifier_rule.procedure_code == code and modifier_rule.modifier in modifiers:
                blocking.append(
                    Finding(
                        rule_id="PAYER_PROHIBITED_MODIFIER",
                        description=f"Prohibited modifier {modifier_rule.modifier} used with {code}: {modifier_rule.reason}",
                        severity="high",
                        citation=f"{payer_label} Modifier Policy",
                        metadata={
                            "line_index": idx,
                            "procedure_code": code,
                            "prohibited_modifier": modifier_rule.modifier,
                        },
                    )
                )

    if blocking:
        status = CategoryStatus.FAILED
    elif review:
        status = CategoryStatus.REVIEW_REQUIRED
    else:
        status = CategoryStatus.PASS

    recommendations: list[str] = []
    if missing_fields:
        recommendations.append(f"Complete missing required fields for {payer_label}")
    if invalid_fields:
        recommendations.append(f"Correct field formats for {payer_label}: {', '.join(invalid_fields)}")
    if any(f.rule_id.endswith("_MODIFIER") for f in blocking + review):
        recommendations.append("Review modifier usage for payer compliance")

    return CategoryResult(
        category=CATEGORY,
        status=status,
        issues=tuple(blocking + review),
        metrics={
            "payer_type": payer_label,
            "rule_applied": True,
            "missing_fields": missing_fields,
            "invalid_fields": invalid_fields,
        },
        recommendations=tuple(recommendations),
    )

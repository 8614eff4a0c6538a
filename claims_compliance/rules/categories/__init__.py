"""Claim compliance validators, one per category."""

from __future__ import annotations

from claims_compliance.rules.models import ComplianceCategory
from claims_compliance.rules.registry import ValidatorRegistry

from .completeness_rules import claim_completeness_validator
from .enrollment_rules import provider_enrollment_validator
from .frequency_rules import frequency_limit_validator
from .necessity_rules import medical_necessity_validator
from .payer_rules import payer_compliance_validator
from .timely_filing_rules import timely_filing_validator


def register_default_validators(registry: ValidatorRegistry) -> ValidatorRegistry:
    """Register the six category validators in report order."""
    registry.extend(
        [
            (ComplianceCategory.MEDICAL_NECESSITY, medical_necessity_validator),
            (ComplianceCategory.TIMELY_FILING, timely_filing_validator),
            (ComplianceCategory.PROVIDER_ENROLLMENT, provider_enrollment_validator),
            (ComplianceCategory.FREQUENCY_LIMITS, frequency_limit_validator),
            (ComplianceCategory.PAYER_COMPLIANCE, payer_compliance_validator),
            (ComplianceCategory.CLAIM_COMPLETENESS, claim_completeness_validator),
        ]
    )
    return registry


__all__ = [
    "register_default_validators",
    "medical_necessity_validator",
    "timely_filing_validator",
    "provider_enrollment_validator",
    "frequency_limit_validator",
    "payer_compliance_validator",
    "claim_completeness_validator",
]

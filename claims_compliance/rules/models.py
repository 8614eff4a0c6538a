"""Data models for the validation engine."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .catalog import RuleCatalog
    from .claim import ClaimSnapshot
    from .thresholds import ThresholdConfig


class ComplianceCategory(str, Enum):
    MEDICAL_NECESSITY = "medical_necessity"
    TIMELY_FILING = "timely_filing"
    PROVIDER_ENROLLMENT = "provider_enrollment"
    FREQUENCY_LIMITS = "frequency_limits"
    PAYER_COMPLIANCE = "payer_compliance"
    CLAIM_COMPLETENESS = "claim_completeness"


# Denial impact order, used to break ties between equally penalized categories
CATEGORY_PRIORITY: tuple[ComplianceCategory, ...] = (
    ComplianceCategory.MEDICAL_NECESSITY,
    ComplianceCategory.PROVIDER_ENROLLMENT,
    ComplianceCategory.PAYER_COMPLIANCE,
    ComplianceCategory.TIMELY_FILING,
    ComplianceCategory.FREQUENCY_LIMITS,
    ComplianceCategory.CLAIM_COMPLETENESS,
)


class CategoryStatus(str, Enum):
    PASS = "pass"
    WARNING = "warning"
    FAILED = "failed"
    REVIEW_REQUIRED = "review_required"


# Severity order for rolling category statuses up into an overall status
STATUS_SEVERITY: dict[CategoryStatus, int] = {
    CategoryStatus.PASS: 0,
    CategoryStatus.WARNING: 1,
    CategoryStatus.REVIEW_REQUIRED: 2,
    CategoryStatus.FAILED: 3,
}


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _RISK_RANK[self]


_RISK_RANK = {
    RiskLevel.LOW: 0,
    RiskLevel.MEDIUM: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.CRITICAL: 3,
}


class ValidationInputError(ValueError):
    """Raised when a claim is missing the identity data validation depends on."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


@dataclass(frozen=True)
class Finding:
    """A single issue or warning raised by a category validator."""

    rule_id: str
    description: str
    severity: str = "medium"
    citation: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "description": self.description,
            "severity": self.severity,
            "citation": self.citation,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class CategoryResult:
    """Outcome of one validation category.

    ``issues`` block submission; ``warnings`` do not. Non-blocking categories
    (claim completeness) lower the score but never stop a claim.
    """

    category: ComplianceCategory
    status: CategoryStatus
    issues: tuple[Finding, ...] = ()
    warnings: tuple[Finding, ...] = ()
    metrics: dict[str, Any] = field(default_factory=dict)
    recommendations: tuple[str, ...] = ()
    blocking: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.status, CategoryStatus):
            object.__setattr__(self, "status", CategoryStatus(self.status))
        object.__setattr__(self, "issues", tuple(self.issues))
        object.__setattr__(self, "warnings", tuple(self.warnings))
        object.__setattr__(self, "recommendations", tuple(self.recommendations))

    @property
    def has_findings(self) -> bool:
        return bool(self.issues or self.warnings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "status": self.status.value,
            "issues": [issue.to_dict() for issue in self.issues],
            "warnings": [warning.to_dict() for warning in self.warnings],
            "metrics": dict(self.metrics),
            "recommendations": list(self.recommendations),
            "blocking": self.blocking,
        }


def status_from_findings(
    issues: list[Finding], warnings: list[Finding]
) -> CategoryStatus:
    if issues:
        return CategoryStatus.FAILED
    if warnings:
        return CategoryStatus.WARNING
    return CategoryStatus.PASS


@dataclass(frozen=True)
class RiskFactor:
    category: ComplianceCategory
    status: CategoryStatus
    penalty: int
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "status": self.status.value,
            "penalty": self.penalty,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class RiskAssessment:
    overall_risk: RiskLevel
    risk_score: int
    risk_factors: tuple[RiskFactor, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall_risk": self.overall_risk.value,
            "risk_score": self.risk_score,
            "risk_factors": [factor.to_dict() for factor in self.risk_factors],
        }


@dataclass(frozen=True)
class ComplianceScore:
    value: int
    contributions: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "contributions": dict(self.contributions)}


@dataclass(frozen=True)
class ValidationReport:
    claim_id: str
    categories: Mapping[ComplianceCategory, CategoryResult]
    risk_assessment: RiskAssessment
    compliance_score: ComplianceScore
    timestamp: datetime
    overall_status: CategoryStatus
    recommendations: tuple[str, ...] = ()
    catalog_version: str | None = None

    def category(self, category: ComplianceCategory | str) -> CategoryResult:
        return self.categories[ComplianceCategory(category)]

    @property
    def blocking_failures(self) -> list[ComplianceCategory]:
        """Failed categories that should stop submission in the calling workflow."""
        return [
            category
            for category, result in self.categories.items()
            if result.blocking and result.status is CategoryStatus.FAILED
        ]

    def to_dict(self, include_timestamp: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "claim_id": self.claim_id,
            "overall_status": self.overall_status.value,
            "categories": {
                category.value: result.to_dict()
                for category, result in self.categories.items()
            },
            "risk_assessment": self.risk_assessment.to_dict(),
            "compliance_score": self.compliance_score.to_dict(),
            "recommendations": list(self.recommendations),
            "catalog_version": self.catalog_version,
        }
        if include_timestamp:
            data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass(frozen=True)
class BatchValidationResult:
    """Outcome of validating several claims in one call.

    Claims rejected with ``ValidationInputError`` are listed in ``errors``
    and do not stop the rest of the batch.
    """

    reports: tuple[ValidationReport, ...] = ()
    errors: tuple[dict[str, Any], ...] = ()
    summary: Mapping[str, int] = field(default_factory=dict)

    @property
    def total_claims(self) -> int:
        return len(self.reports) + len(self.errors)

    @property
    def completed(self) -> int:
        return len(self.reports)

    @property
    def failed(self) -> int:
        return len(self.errors)

    def to_dict(self, include_timestamp: bool = True) -> dict[str, Any]:
        return {
            "total_claims": self.total_claims,
            "completed": self.completed,
            "failed": self.failed,
            "summary": dict(self.summary),
            "validation_results": [
                report.to_dict(include_timestamp=include_timestamp) for report in self.reports
            ],
            "errors": [dict(error) for error in self.errors],
        }


@dataclass(frozen=True)
class ValidationContext:
    """Inputs shared by every category validator for one validation call."""

    claim: ClaimSnapshot
    catalog: RuleCatalog
    thresholds: ThresholdConfig
    as_of: date

    @property
    def submission_date(self) -> date:
        """Submission date, or the evaluation date for unsubmitted claims."""
        return self.claim.submission_date or self.as_of

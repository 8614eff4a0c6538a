"""Compliance rules engine for pre-submission claim validation."""

from .catalog import RuleCatalog
from .claim import ClaimSnapshot, PayerType
from .defaults import default_catalog
from .engine import ValidationEngine, validate_claim
from .models import (
    BatchValidationResult,
    CategoryResult,
    CategoryStatus,
    ComplianceCategory,
    RiskLevel,
    ValidationInputError,
    ValidationReport,
)
from .thresholds import ThresholdConfig

__all__ = [
    "ValidationEngine",
    "validate_claim",
    "default_catalog",
    "BatchValidationResult",
    "CategoryResult",
    "CategoryStatus",
    "ClaimSnapshot",
    "ComplianceCategory",
    "PayerType",
    "RiskLevel",
    "RuleCatalog",
    "ThresholdConfig",
    "ValidationInputError",
    "ValidationReport",
]

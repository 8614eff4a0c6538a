"""Validation orchestrator: the engine's public entry point."""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from typing import Any

from .catalog import RuleCatalog
from .categories import register_default_validators
from .claim import ClaimSnapshot, as_date, is_populated
from .defaults import default_catalog
from .models import (
    STATUS_SEVERITY,
    BatchValidationResult,
    CategoryResult,
    CategoryStatus,
    ComplianceCategory,
    ValidationContext,
    ValidationInputError,
    ValidationReport,
)
from .registry import ValidatorRegistry
from .risk import RiskAggregator
from .scoring import ComplianceScorer
from .thresholds import ThresholdConfig

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def check_claim_preconditions(claim: Any) -> None:
    """Raise ValidationInputError when a claim lacks the identity validation needs."""
    if not isinstance(claim, ClaimSnapshot):
        raise ValidationInputError(
            f"Expected ClaimSnapshot, got {type(claim).__name__}",
            errors=[{"field": "claim", "error": "Not a claim snapshot"}],
        )

    errors: list[dict[str, Any]] = []
    if not is_populated(claim.claim_id):
        errors.append({"field": "claim_id", "error": "Claim identifier is required"})

    for field_name, ref, id_attr in (
        ("patient", claim.patient, "patient_id"),
        ("provider", claim.provider, "provider_id"),
        ("payer", claim.payer, "payer_id"),
    ):
        if ref is None:
            errors.append({"field": field_name, "error": f"{field_name.capitalize()} reference is required"})
        elif not is_populated(getattr(ref, id_attr, None)):
            errors.append({"field": f"{field_name}.{id_attr}", "error": f"{field_name.capitalize()} identifier is required"})

    if not isinstance(claim.service_date, date):
        errors.append({"field": "service_date", "error": "Service date is required"})

    if errors:
        raise ValidationInputError(
            f"Claim {claim.claim_id or '<unidentified>'} is missing required identity data",
            errors=errors,
        )


def determine_overall_status(results: Mapping[ComplianceCategory, CategoryResult]) -> CategoryStatus:
    overall = CategoryStatus.PASS
    for result in results.values():
        if STATUS_SEVERITY[result.status] > STATUS_SEVERITY[overall]:
            overall = result.status
    return overall


def collect_recommendations(
    results: Mapping[ComplianceCategory, CategoryResult], limit: int = 10
) -> tuple[str, ...]:
    """Failed-category recommendations first, de-duplicated, capped at ``limit``."""
    priority: list[str] = []
    others: list[str] = []
    for result in results.values():
        target = priority if result.status is CategoryStatus.FAILED else others
        target.extend(result.recommendations)
    return tuple(dict.fromkeys(priority + others))[:limit]


class ValidationEngine:
    """Runs the category validators over a claim snapshot and builds the report.

    The engine holds a single reference to an immutable ``RuleCatalog``.
    ``reload_rule_catalog`` swaps that reference; each ``validate`` call reads
    it once, so in-flight validations keep the catalog they started with.
    """

    def __init__(
        self,
        catalog: RuleCatalog | None = None,
        thresholds: ThresholdConfig | None = None,
        registry: ValidatorRegistry | None = None,
        parallel: bool = False,
        max_workers: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._catalog = catalog if catalog is not None else default_catalog()
        self._catalog_lock = threading.Lock()
        self.thresholds = thresholds or ThresholdConfig()
        self.registry = registry or register_default_validators(ValidatorRegistry())
        self.parallel = parallel
        self.max_workers = max_workers
        self._clock = clock
        self._aggregator = RiskAggregator(self.thresholds)
        self._scorer = ComplianceScorer(self.thresholds)

    @property
    def catalog(self) -> RuleCatalog:
        return self._catalog

    def reload_rule_catalog(self, catalog: RuleCatalog) -> RuleCatalog:
        """Swap in a new catalog and return the one it replaced."""
        if not isinstance(catalog, RuleCatalog):
            raise TypeError(f"Expected RuleCatalog, got {type(catalog).__name__}")
        with self._catalog_lock:
            previous = self._catalog
            self._catalog = catalog
        logger.info(f"Rule catalog reloaded: {previous.version} -> {catalog.version}")
        return previous

    def validate(self, claim: ClaimSnapshot, as_of: date | None = None) -> ValidationReport:
        """Validate a claim snapshot.

        Args:
            claim: Fully materialized claim snapshot
            as_of: Evaluation date used in place of a missing submission
                date. Defaults to today (UTC).

        Returns:
            ValidationReport with all category results

        Raises:
            ValidationInputError: If claim, patient, provider or payer identity is missing
        """
        try:
            check_claim_preconditions(claim)
        except ValidationInputError as e:
            logger.warning(f"Rejected claim for validation: {e} {e.errors}")
            raise

        catalog = self._catalog
        timestamp = self._clock()
        context = ValidationContext(
            claim=claim,
            catalog=catalog,
            thresholds=self.thresholds,
            as_of=as_date(as_of) or timestamp.date(),
        )

        results = self._run_validators(context)
        risk_assessment = self._aggregator.aggregate(results)
        compliance_score = self._scorer.score(results)

        report = ValidationReport(
            claim_id=claim.claim_id,
            categories=results,
            risk_assessment=risk_assessment,
            compliance_score=compliance_score,
            timestamp=timestamp,
            overall_status=determine_overall_status(results),
            recommendations=collect_recommendations(
                results, self.thresholds.max_recommendations
            ),
            catalog_version=catalog.version,
        )

        logger.debug(
            f"Validated claim {claim.claim_id}: status={report.overall_status.value} "
            f"risk={risk_assessment.overall_risk.value} score={compliance_score.value}"
        )
        return report

    def validate_batch(
        self, claims: Iterable[ClaimSnapshot], as_of: date | None = None
    ) -> BatchValidationResult:
        """Validate several claims, continuing past claims with bad input.

        Returns:
            BatchValidationResult with the reports, one error entry per
            rejected claim and report counts per overall status
        """
        reports: list[ValidationReport] = []
        errors: list[dict[str, Any]] = []
        summary = {status.value: 0 for status in CategoryStatus}

        for index, claim in enumerate(claims):
            try:
                report = self.validate(claim, as_of=as_of)
            except ValidationInputError as e:
                errors.append(
                    {
                        "index": index,
                        "claim_id": getattr(claim, "claim_id", None),
                        "error": str(e),
                        "errors": list(e.errors),
                    }
                )
                continue
            reports.append(report)
            summary[report.overall_status.value] += 1

        logger.info(
            f"Validated batch of {len(reports) + len(errors)} claims: "
            f"{len(reports)} completed, {len(errors)} rejected"
        )
        return BatchValidationResult(
            reports=tuple(reports), errors=tuple(errors), summary=summary
        )

    def _run_validators(
        self, context: ValidationContext
    ) -> dict[ComplianceCategory, CategoryResult]:
        validators = self.registry.active_validators()

        if self.parallel and len(validators) > 1:
            with ThreadPoolExecutor(
                max_workers=self.max_workers or len(validators),
                thread_name_prefix="claim-validator",
            ) as executor:
                futures = [
                    (category, executor.submit(validator, context))
                    for category, validator in validators
                ]
                return {category: future.result() for category, future in futures}

        return {category: validator(context) for category, validator in validators}


def validate_claim(
    claim: ClaimSnapshot,
    catalog: RuleCatalog | None = None,
    thresholds: ThresholdConfig | None = None,
    as_of: date | None = None,
) -> ValidationReport:
    """Validate a claim with a one-off engine."""
    engine = ValidationEngine(catalog=catalog, thresholds=thresholds)
    return engine.validate(claim, as_of=as_of)

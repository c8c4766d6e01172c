# WORKFLOW: Compliance pipeline orchestrating one record evaluation.
# Used by: /evaluate endpoints, CSV batch ingestion, tests
# Functions:
# 1. evaluate() - Deterministic evaluation: normalize -> detectors -> reconcile
# 2. evaluate_async() - evaluate() plus the optional advisory classifier merge
# 3. stats() - ComplianceStats for a reconciled result
# 4. run() / run_async() - Result plus stats as an EvaluationReport
# 5. evaluate_with_snapshot() - Evaluation against a caller-held snapshot (batches)
#
# Pipeline flow: RawRecord -> FieldNormalizer -> Structural/Rules/Content/Destination -> Reconciler
# Refresh flow: fields without rules > threshold -> repository.refresh() -> one re-evaluation pass
# Advisory flow: reconciled deterministic findings -> adapter (bounded, absorbing) -> reconcile again

"""
Shipment compliance pipeline.

The caller contract is ``evaluate(record) -> ReconciledResult`` and
``stats(result) -> ComplianceStats``. Everything else is convenience.
"""

import logging
from typing import List, Optional, Tuple

from compliance.content_scanner import ContentRestrictionScanner
from compliance.destination_resolver import DestinationProfileResolver
from compliance.models import (
    ComplianceStats,
    ComplianceStatus,
    Detector,
    EvaluationReport,
    Finding,
    NormalizationResult,
    RawRecord,
    ReconciledResult,
    RuleSnapshot,
    parse_source,
)
from compliance.normalizer import FieldNormalizer
from compliance.reconciler import ResultReconciler
from compliance.rule_evaluator import RuleRepositoryEvaluator, missing_rule_count
from compliance.stats import calculate_stats
from compliance.validators import StructuralValidator
from core.config import settings
from db.repository import RuleRepository

logger = logging.getLogger(__name__)


class CompliancePipeline:
    """Evaluate shipment records against the active rule snapshot."""

    def __init__(
        self,
        repository: RuleRepository,
        advisory=None,
        normalizer: Optional[FieldNormalizer] = None,
        refresh_threshold: Optional[int] = None,
    ):
        self.repository = repository
        self.advisory = advisory
        self.normalizer = normalizer or FieldNormalizer()
        self.structural_validator = StructuralValidator()
        self.rule_evaluator = RuleRepositoryEvaluator()
        self.content_scanner = ContentRestrictionScanner()
        self.destination_resolver = DestinationProfileResolver(settings.high_value_threshold)
        self.reconciler = ResultReconciler()
        self.refresh_threshold = (
            settings.missing_rule_refresh_threshold if refresh_threshold is None else refresh_threshold
        )

    def evaluate(self, record: RawRecord) -> ReconciledResult:
        """
        Evaluate a record with the deterministic detectors.

        Args:
            record: Incoming shipment record

        Returns:
            ReconciledResult

        Raises:
            UnknownSourceError: If the record's source tag is not recognized
        """
        parse_source(record.source)

        result, missing = self.evaluate_with_snapshot(record, self.repository.snapshot())
        if missing > self.refresh_threshold:
            logger.info(
                f"{missing} fields without rules (threshold {self.refresh_threshold}); "
                "refreshing rule repository and re-evaluating once"
            )
            snapshot = self.repository.refresh()
            result, _ = self.evaluate_with_snapshot(record, snapshot)
            result = result.model_copy(update={"refreshed": True})
        return result

    def evaluate_with_snapshot(self, record: RawRecord, snapshot: RuleSnapshot) -> Tuple[ReconciledResult, int]:
        """
        Evaluate a record against a specific snapshot, without refreshing.

        Returns:
            Tuple of (result, number of populated fields without rules)
        """
        normalization = self.normalizer.normalize(record)
        findings = self._collect_findings(record, normalization, snapshot)
        unruled = self.rule_evaluator.missing_rule_findings(normalization.fields, snapshot.rules)
        missing = missing_rule_count(unruled)

        result = ReconciledResult(
            findings=self.reconciler.reconcile(findings),
            source=record.source,
            base_confidence=self._base_confidence(record),
            fields=normalization.fields,
            unresolved_keys=normalization.unresolved_keys,
            unruled_fields=[finding.field_key for finding in unruled],
            snapshot_version=snapshot.version,
        )
        return result, missing

    async def evaluate_async(self, record: RawRecord) -> ReconciledResult:
        """Deterministic evaluation followed by the advisory classifier, if configured."""
        result = self.evaluate(record)
        return await self.apply_advisory(result)

    async def apply_advisory(self, result: ReconciledResult) -> ReconciledResult:
        """Merge advisory findings into a deterministic result; unchanged on any advisory failure."""
        if self.advisory is None:
            return result

        outcome = await self.advisory.advise(result.fields, result.findings)
        if not outcome.applied:
            return result

        merged = self.reconciler.reconcile(list(result.findings) + list(outcome.findings))
        logger.info(f"Advisory classifier contributed {len(outcome.findings)} findings")
        return result.model_copy(update={"findings": merged, "advisory_applied": True})

    def stats(self, result: ReconciledResult, record: Optional[RawRecord] = None) -> ComplianceStats:
        """ComplianceStats for a result; base confidence is carried on the result itself."""
        return calculate_stats(result)

    def run(self, record: RawRecord) -> EvaluationReport:
        result = self.evaluate(record)
        return self.report(record, result)

    async def run_async(self, record: RawRecord) -> EvaluationReport:
        result = await self.evaluate_async(record)
        return self.report(record, result)

    def report(self, record: RawRecord, result: ReconciledResult) -> EvaluationReport:
        return EvaluationReport(
            result=result,
            stats=self.stats(result),
            filename=record.metadata.filename,
            row_index=record.metadata.row_index,
        )

    def _collect_findings(
        self,
        record: RawRecord,
        normalization: NormalizationResult,
        snapshot: RuleSnapshot,
    ) -> List[Finding]:
        fields = normalization.fields
        profiles = snapshot.country_profiles

        findings: List[Finding] = []
        findings.extend(self.structural_validator.validate(fields))
        findings.extend(self.rule_evaluator.evaluate(fields, snapshot.rules))
        findings.extend(self.content_scanner.scan(
            fields,
            snapshot.restricted_terms,
            destination_code=self.destination_resolver.destination_code(fields, profiles),
        ))
        findings.extend(self.destination_resolver.resolve(fields, profiles))

        confidence = record.metadata.confidence
        if confidence is not None and confidence < settings.low_confidence_threshold:
            findings.append(Finding(
                field_key="processingConfidence",
                value=f"{confidence:.2f}",
                status=ComplianceStatus.WARNING,
                message=f"Low extraction confidence ({confidence:.0%}); verify fields manually",
                origin_detector=Detector.STRUCTURAL,
            ))

        return findings

    def _base_confidence(self, record: RawRecord) -> float:
        if record.metadata.confidence is not None:
            return record.metadata.confidence
        return settings.default_confidence.get(record.source.value, 0.5)


# Factory function
def create_pipeline(repository: Optional[RuleRepository] = None, advisory=None) -> CompliancePipeline:
    """Create a pipeline over the configured rule repository and advisory adapter."""
    from db.repository import create_rule_repository
    from services.advisory_classifier import create_advisory_adapter

    return CompliancePipeline(
        repository=repository or create_rule_repository(),
        advisory=advisory if advisory is not None else create_advisory_adapter(),
    )

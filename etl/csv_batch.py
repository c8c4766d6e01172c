# WORKFLOW: CSV batch ingestion fanning the compliance pipeline out per row.
# Used by: /evaluate/batch endpoint, offline batch runs
# Functions:
# 1. read_batch_csv() - Parse CSV text or file into batch-row RawRecords (pandas)
# 2. evaluate_batch() - Evaluate rows concurrently against one rule snapshot
# 3. order_reports() - Non-compliant first, then warnings, then by compliance rate
# 4. summarize_batch() - Aggregate counts for a batch
#
# Batch flow: CSV -> DataFrame -> validate_batch_frame() -> RawRecords -> per-row pipeline -> ordered reports
# The snapshot is loaded once per batch; rows over the missing-rule threshold get one pass on a refreshed snapshot.

import asyncio
import io
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from compliance.models import EvaluationReport, RawRecord, RecordMetadata, SourceType
from compliance.pipeline import CompliancePipeline
from core.config import settings
from etl.validators import validate_batch_frame

logger = logging.getLogger(__name__)


def read_batch_csv(source: Union[str, Path], filename: Optional[str] = None) -> List[RawRecord]:
    """
    Read a CSV batch into RawRecords.

    Args:
        source: CSV text, or a Path to a CSV file
        filename: Name recorded in each record's metadata

    Returns:
        One batch-row RawRecord per non-empty row
    """
    if isinstance(source, Path):
        path = source
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        filename = filename or path.name
    else:
        if not source.strip():
            logger.warning(f"Empty batch upload {filename or ''}".rstrip())
            return []
        df = pd.read_csv(io.StringIO(source), dtype=str, keep_default_na=False)

    df.columns = [str(col).strip() for col in df.columns]
    df = df[~(df.apply(lambda row: all(not str(v).strip() for v in row), axis=1))] if not df.empty else df

    is_valid, issues = validate_batch_frame(df)
    if not is_valid:
        logger.warning(f"Batch data quality issues in {filename or 'upload'}: {issues}")

    records = []
    for position, (_, row) in enumerate(df.iterrows()):
        records.append(RawRecord(
            source=SourceType.BATCH_ROW,
            content={column: row[column] for column in df.columns},
            metadata=RecordMetadata(filename=filename, row_index=position),
        ))

    logger.info(f"Read {len(records)} rows from {filename or 'CSV upload'}")
    return records


def order_reports(reports: List[EvaluationReport]) -> List[EvaluationReport]:
    """Non-compliant rows first, then rows with warnings, then by ascending compliance rate."""
    return sorted(
        reports,
        key=lambda report: (
            not report.has_non_compliant,
            not report.has_warnings,
            report.stats.compliance_rate,
            report.row_index if report.row_index is not None else 0,
        ),
    )


async def evaluate_batch(
    pipeline: CompliancePipeline,
    records: List[RawRecord],
    concurrency: Optional[int] = None,
    use_advisory: bool = True,
) -> List[EvaluationReport]:
    """
    Evaluate batch rows independently and concurrently.

    Args:
        pipeline: Compliance pipeline
        records: Batch rows
        concurrency: Maximum rows in flight (defaults to settings.batch_concurrency)
        use_advisory: Whether to run the advisory classifier per row

    Returns:
        Ordered evaluation reports
    """
    if not records:
        return []

    snapshot = pipeline.repository.snapshot()
    semaphore = asyncio.Semaphore(concurrency or settings.batch_concurrency)

    async def _evaluate_row(record: RawRecord, row_snapshot) -> tuple:
        async with semaphore:
            result, missing = pipeline.evaluate_with_snapshot(record, row_snapshot)
            if use_advisory:
                result = await pipeline.apply_advisory(result)
            return record, result, missing

    outcomes = await asyncio.gather(*(_evaluate_row(record, snapshot) for record in records))

    over_threshold = [record for record, _, missing in outcomes if missing > pipeline.refresh_threshold]
    results = {id(record): result for record, result, _ in outcomes}

    if over_threshold:
        logger.info(f"{len(over_threshold)} rows exceeded the missing-rule threshold; refreshing once")
        refreshed = pipeline.repository.refresh()
        retried = await asyncio.gather(*(_evaluate_row(record, refreshed) for record in over_threshold))
        for record, result, _ in retried:
            results[id(record)] = result.model_copy(update={"refreshed": True})

    reports = [pipeline.report(record, results[id(record)]) for record in records]
    return order_reports(reports)


def summarize_batch(reports: List[EvaluationReport]) -> Dict[str, Any]:
    """
    Aggregate batch statistics.

    Args:
        reports: Evaluation reports for one batch

    Returns:
        Summary dictionary
    """
    total_findings = sum(report.stats.total for report in reports)
    compliant_findings = sum(report.stats.compliant for report in reports)

    return {
        'rows': len(reports),
        'rows_non_compliant': sum(1 for report in reports if report.has_non_compliant),
        'rows_with_warnings': sum(1 for report in reports if report.has_warnings and not report.has_non_compliant),
        'rows_compliant': sum(1 for report in reports if not report.has_warnings and not report.has_non_compliant),
        'total_findings': total_findings,
        'compliance_rate': round(compliant_findings / total_findings, 4) if total_findings else 0.0,
        'average_confidence': (
            round(sum(report.stats.confidence_score for report in reports) / len(reports), 4) if reports else 0.0
        ),
    }

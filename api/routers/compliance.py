# WORKFLOW: Compliance endpoints evaluating shipment records against the active rules.
# Used by: Scanning clients, manual entry forms, CSV batch uploads, operators
# Endpoints:
# 1. /evaluate - Evaluate one record (deterministic detectors + optional advisory)
# 2. /evaluate/batch - Evaluate a CSV batch, rows ordered worst first
# 3. /rules/refresh - Reload the rule repository (optionally reseeding SQL tables first)
# 4. /rules/snapshot - Describe the active rule snapshot
#
# Request flow: HTTP POST -> RawRecord validation -> CompliancePipeline -> EvaluateResponse
# Unknown source tags fail fast with 422; advisory failures never fail a request.

from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import ValidationError
from sqlalchemy.orm import Session
import logging

from api.schemas.request import BatchEvaluateRequest, EvaluateRequest
from api.schemas.response import (
    BatchEvaluateResponse,
    BatchSummary,
    EvaluateResponse,
    RefreshResponse,
    SnapshotResponse,
)
from compliance.exceptions import RuleRepositoryError, UnknownSourceError
from compliance.models import RawRecord, RecordMetadata
from compliance.pipeline import CompliancePipeline, create_pipeline
from core.config import settings
from db.session import get_db
from etl.csv_batch import evaluate_batch, read_batch_csv, summarize_batch
from etl.rule_loader import load_rule_data, seed_database

logger = logging.getLogger(__name__)

router = APIRouter(tags=["compliance"])


def get_reseed_db(reseed: bool = False):
    """Rule database session for a SQL reseed; None for every other refresh."""
    if not (reseed and settings.rule_source == "sql"):
        yield None
        return
    yield from get_db()


@lru_cache(maxsize=1)
def get_pipeline() -> CompliancePipeline:
    """One pipeline per process over the configured repository."""
    return create_pipeline()


@router.post("/evaluate", response_model=EvaluateResponse)
async def evaluate_record(
    request: EvaluateRequest,
    pipeline: CompliancePipeline = Depends(get_pipeline),
):
    """
    Evaluate a single shipment record.

    Findings are deduplicated per (field, value) and sorted non-compliant first.
    """
    try:
        record = RawRecord(
            source=request.source,
            content=request.content,
            metadata=RecordMetadata(confidence=request.confidence, filename=request.filename),
        )
        logger.info(f"Evaluate request: source={record.source.value}, filename={request.filename}")

        if request.use_advisory:
            report = await pipeline.run_async(record)
        else:
            report = pipeline.run(record)

        logger.info(
            f"Evaluation complete: {report.stats.total} findings, "
            f"{report.stats.non_compliant} non-compliant, snapshot {report.result.snapshot_version}"
        )
        return EvaluateResponse.from_report(report)

    except (UnknownSourceError, ValidationError) as e:
        logger.error(f"Invalid record: {e}")
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except Exception as e:
        logger.error(f"Evaluation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to evaluate record: {str(e)}",
        )


@router.post("/evaluate/batch", response_model=BatchEvaluateResponse)
async def evaluate_csv_batch(
    request: BatchEvaluateRequest,
    pipeline: CompliancePipeline = Depends(get_pipeline),
):
    """Evaluate every row of a CSV batch independently."""
    try:
        records = read_batch_csv(request.csv_text, filename=request.filename)
    except ValueError as e:
        # pandas parser errors derive from ValueError
        logger.error(f"Unreadable CSV batch: {e}")
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    try:
        reports = await evaluate_batch(pipeline, records, use_advisory=request.use_advisory)
        summary = summarize_batch(reports)
        logger.info(f"Batch evaluation complete: {summary}")
        return BatchEvaluateResponse(
            summary=BatchSummary(**summary),
            reports=[EvaluateResponse.from_report(report) for report in reports],
        )
    except Exception as e:
        logger.error(f"Batch evaluation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to evaluate batch: {str(e)}",
        )


@router.post("/rules/refresh", response_model=RefreshResponse)
async def refresh_rules(
    reseed: bool = False,
    pipeline: CompliancePipeline = Depends(get_pipeline),
    db: Optional[Session] = Depends(get_reseed_db),
):
    """
    Reload rule data; the previous snapshot stays active if loading fails.

    With reseed=true and the SQL rule source, the rule data file is written to the
    tables as the new active version before the reload.
    """
    if db is not None:
        try:
            version = seed_database(db, load_rule_data(settings.rules_data_path))
            logger.info(f"Reseeded rule tables with version {version}")
        except RuleRepositoryError as e:
            logger.error(f"Rule reseed failed: {e}")
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    try:
        previous = pipeline.repository.snapshot()
    except RuleRepositoryError:
        previous = None

    try:
        snapshot = pipeline.repository.refresh()
    except RuleRepositoryError as e:
        logger.error(f"Rule refresh failed: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return RefreshResponse(
        previous_version=previous.version if previous else None,
        snapshot=SnapshotResponse.from_snapshot(snapshot),
        changed=snapshot is not previous,
    )


@router.get("/rules/snapshot", response_model=SnapshotResponse)
async def get_rule_snapshot(pipeline: CompliancePipeline = Depends(get_pipeline)):
    try:
        return SnapshotResponse.from_snapshot(pipeline.repository.snapshot())
    except RuleRepositoryError as e:
        logger.error(f"No rule snapshot available: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

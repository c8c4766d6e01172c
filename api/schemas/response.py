# WORKFLOW: Pydantic response schemas for the compliance endpoints.
# Used by: Compliance router, API tests
# Schemas include:
# 1. EvaluateResponse - Reconciled findings plus stats for one record
# 2. BatchEvaluateResponse - Ordered per-row reports plus a batch summary
# 3. SnapshotResponse - Counts and version of the active rule snapshot
# 4. RefreshResponse - Outcome of a rule repository refresh
#
# Response flow: EvaluationReport -> from_report() -> JSON response

from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime

from compliance.models import ComplianceStats, EvaluationReport, Finding, RuleSnapshot


class EvaluateResponse(BaseModel):
    findings: List[Finding] = Field(default_factory=list)
    stats: ComplianceStats
    source: str
    fields: Dict[str, str] = Field(default_factory=dict)
    unresolved_keys: List[str] = Field(default_factory=list)
    unruled_fields: List[str] = Field(default_factory=list)
    snapshot_version: str
    refreshed: bool = False
    advisory_applied: bool = False
    filename: Optional[str] = None
    row_index: Optional[int] = None

    @classmethod
    def from_report(cls, report: EvaluationReport) -> "EvaluateResponse":
        result = report.result
        return cls(
            findings=result.findings,
            stats=report.stats,
            source=result.source.value,
            fields=result.fields,
            unresolved_keys=result.unresolved_keys,
            unruled_fields=result.unruled_fields,
            snapshot_version=result.snapshot_version,
            refreshed=result.refreshed,
            advisory_applied=result.advisory_applied,
            filename=report.filename,
            row_index=report.row_index,
        )


class BatchSummary(BaseModel):
    rows: int
    rows_non_compliant: int
    rows_with_warnings: int
    rows_compliant: int
    total_findings: int
    compliance_rate: float
    average_confidence: float


class BatchEvaluateResponse(BaseModel):
    summary: BatchSummary
    reports: List[EvaluateResponse] = Field(default_factory=list)


class SnapshotResponse(BaseModel):
    version: str
    loaded_at: datetime
    rules: int
    country_profiles: int
    restricted_terms: int

    @classmethod
    def from_snapshot(cls, snapshot: RuleSnapshot) -> "SnapshotResponse":
        return cls(
            version=snapshot.version,
            loaded_at=snapshot.loaded_at,
            rules=len(snapshot.rules),
            country_profiles=len(snapshot.country_profiles),
            restricted_terms=len(snapshot.restricted_terms),
        )


class RefreshResponse(BaseModel):
    previous_version: Optional[str] = None
    snapshot: SnapshotResponse
    changed: bool

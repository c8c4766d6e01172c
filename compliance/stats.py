# WORKFLOW: Aggregate statistics and confidence score for a reconciled result.
# Used by: CompliancePipeline.stats(), CSV batch ordering, API responses
# Functions:
# 1. calculate_stats() - Status counts, compliance rate, confidence score
# 2. decay_confidence() - Apply per-finding decay with a floor
#
# Confidence flow: base confidence -> -0.2 per non-compliant -> -0.1 per warning (floor 0.2)
# Decay only ever lowers the score; a base already under the floor is left unchanged.

from typing import Iterable, Optional

from compliance.models import ComplianceStats, ComplianceStatus, Finding, ReconciledResult
from core.config import settings


def decay_confidence(
    base: float,
    non_compliant: int,
    warning: int,
    non_compliant_decay: Optional[float] = None,
    warning_decay: Optional[float] = None,
    floor: Optional[float] = None,
) -> float:
    """
    Apply the fixed decay per non-compliant and per warning finding.

    Args:
        base: Ingestion confidence of the record
        non_compliant: Number of non-compliant findings
        warning: Number of warning findings

    Returns:
        Confidence score, never above base
    """
    non_compliant_decay = settings.confidence_decay_non_compliant if non_compliant_decay is None else non_compliant_decay
    warning_decay = settings.confidence_decay_warning if warning_decay is None else warning_decay
    floor = settings.confidence_floor if floor is None else floor

    score = base
    for decay in [non_compliant_decay] * non_compliant + [warning_decay] * warning:
        if score > floor:
            score = max(floor, score - decay)
    return round(score, 4)


def count_statuses(findings: Iterable[Finding]) -> dict:
    counts = {status: 0 for status in ComplianceStatus}
    for finding in findings:
        counts[finding.status] += 1
    return counts


def calculate_stats(result: ReconciledResult) -> ComplianceStats:
    """Derive ComplianceStats from a reconciled result."""
    counts = count_statuses(result.findings)
    total = len(result.findings)
    compliant = counts[ComplianceStatus.COMPLIANT]
    warning = counts[ComplianceStatus.WARNING]
    non_compliant = counts[ComplianceStatus.NON_COMPLIANT]

    return ComplianceStats(
        total=total,
        compliant=compliant,
        warning=warning,
        non_compliant=non_compliant,
        compliance_rate=round(compliant / total, 4) if total else 0.0,
        confidence_score=decay_confidence(result.base_confidence, non_compliant, warning),
    )

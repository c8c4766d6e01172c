# WORKFLOW: Merge detector findings into one deduplicated, precedence-ordered result.
# Used by: CompliancePipeline.evaluate(), advisory merge, tests
# Functions:
# 1. reconcile() - Group, pick survivors, sort
# 2. _merge_group() - Severity precedence, detector specificity, message concatenation
# 3. _check_floor() - Fail loudly if a prohibited-content finding was lost
#
# Merge flow: Findings -> Group by (normalized field key, normalized value) -> Survivor -> Sort
# Sort order: severity descending, then field key, then value.
# Reconciling an already reconciled list returns the same list.

"""
Finding reconciliation.

Identity is computed on the normalized field key and value, so two detectors
reporting ``PackageContents`` and ``packageContents`` for ``"AK-47 parts "``
land in the same group.
"""

import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Tuple

from compliance.exceptions import FloorViolationError
from compliance.models import Finding
from compliance.reference_data import canonical_for

logger = logging.getLogger(__name__)

MESSAGE_SEPARATOR = "; "


def _rank(finding: Finding) -> Tuple[int, int, int]:
    return (finding.status.severity, int(finding.floor), finding.origin_detector.specificity)


def _merge_group(group: List[Finding]) -> Finding:
    """Pick the surviving finding of a group and fold in the other messages."""
    ordered = sorted(group, key=lambda f: (_rank(f), f.id), reverse=True)
    survivor = ordered[0]

    # Messages from findings that tie with the survivor on severity, plus every
    # restricted-term match so a lower tier is never lost under a higher one
    fragments: List[str] = []
    for finding in ordered:
        if finding.status != survivor.status and not finding.matched_term:
            continue
        for fragment in finding.message.split(MESSAGE_SEPARATOR):
            fragment = fragment.strip()
            if fragment and fragment not in fragments:
                fragments.append(fragment)

    floor = any(finding.floor for finding in group)
    matched_term = survivor.matched_term or next((f.matched_term for f in ordered if f.matched_term), None)

    return survivor.model_copy(update={
        "field_key": canonical_for(survivor.field_key) or survivor.field_key,
        "message": MESSAGE_SEPARATOR.join(fragments),
        "floor": floor,
        "matched_term": matched_term,
    })


def _check_floor(findings: List[Finding], merged: List[Finding]) -> None:
    survivors = {finding.group_key: finding for finding in merged}
    for finding in findings:
        if not finding.floor:
            continue
        survivor = survivors.get(finding.group_key)
        if survivor is None or not survivor.floor or survivor.status.severity < finding.status.severity:
            raise FloorViolationError(
                f"Prohibited-content finding for {finding.field_key}='{finding.value}' was not preserved"
            )


def reconcile(findings: Iterable[Finding]) -> List[Finding]:
    """
    Merge findings from all detectors.

    Args:
        findings: Unordered union of detector findings

    Returns:
        At most one finding per (field key, value), sorted by severity then field key
    """
    findings = list(findings)
    groups: Dict[Tuple[str, str], List[Finding]] = OrderedDict()
    for finding in findings:
        groups.setdefault(finding.group_key, []).append(finding)

    merged = [_merge_group(group) for group in groups.values()]
    merged.sort(key=lambda f: (-f.status.severity, f.field_key, f.group_key[1]))

    _check_floor(findings, merged)
    logger.debug(f"Reconciled {len(findings)} findings into {len(merged)}")
    return merged


class ResultReconciler:
    """Object wrapper around reconcile() for injection into the pipeline."""

    def reconcile(self, findings: Iterable[Finding]) -> List[Finding]:
        return reconcile(findings)

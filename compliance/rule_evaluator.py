# WORKFLOW: Evaluate canonical fields against repository rule definitions.
# Used by: CompliancePipeline.evaluate() (single refresh-and-retry pass lives in the pipeline)
# Functions:
# 1. evaluate() - Apply every active rule to the canonical field set (verdict findings only)
# 2. check_constraint() - min / max / equal / pattern / custom constraint checks
# 3. missing_rule_findings() - "No validation rules found for field" warnings (refresh signal)
# 4. missing_rule_count() - Count of missing-rule findings (refresh trigger)
#
# Evaluation flow: Snapshot rules -> Required check -> Constraint check -> Rule findings
# Missing-rule flow: Populated fields without rules -> warnings -> count vs refresh threshold
# Stateless per call. An empty rule set yields no findings: no opinion, never a verdict.

import logging
import re
from typing import Callable, Dict, Iterable, List, Optional

from compliance.models import (
    ComplianceStatus,
    ConstraintType,
    Detector,
    Finding,
    RuleDefinition,
    field_value,
    normalize_field_key,
)
from compliance.reference_data import is_unknown_key

logger = logging.getLogger(__name__)

MISSING_RULE_PREFIX = "No validation rules found for field:"

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def _first_number(value: str) -> Optional[float]:
    match = _NUMBER.search(value.replace(",", ""))
    return float(match.group()) if match else None


def _is_numeric(value: str) -> bool:
    return bool(re.match(r"^[$€£]?\s*-?\d+(?:[.,]\d+)*\s*([A-Za-z]{3})?$", value.strip()))


CUSTOM_CHECKS: Dict[str, Callable[[str], bool]] = {
    "non_empty": lambda value: bool(value.strip()),
    "numeric": _is_numeric,
    "uppercase": lambda value: value == value.upper(),
    "no_po_box": lambda value: not re.search(r"\bp\.?\s*o\.?\s*box\b", value, re.IGNORECASE),
}


class RuleRepositoryEvaluator:
    """Stateless evaluator for configurable rule definitions."""

    def __init__(self, custom_checks: Optional[Dict[str, Callable[[str], bool]]] = None):
        self.custom_checks = dict(CUSTOM_CHECKS)
        if custom_checks:
            self.custom_checks.update(custom_checks)

    def evaluate(self, fields: Dict[str, str], rules: Iterable[RuleDefinition]) -> List[Finding]:
        """
        Evaluate canonical fields against a rule set.

        Args:
            fields: Canonical field set
            rules: Active rule definitions from the current snapshot

        Returns:
            Findings for the rules that apply; fields without rules are reported by
            missing_rule_findings() and never judged here
        """
        rules = list(rules)
        findings: List[Finding] = []

        for rule in rules:
            finding = self._apply_rule(rule, fields)
            if finding is not None:
                findings.append(finding)

        logger.debug(f"Rule evaluation: {len(rules)} rules, {len(findings)} findings")
        return findings

    def _apply_rule(self, rule: RuleDefinition, fields: Dict[str, str]) -> Optional[Finding]:
        key = normalize_field_key(rule.field_key)
        value = field_value(fields, key)

        if not value:
            if not rule.required:
                return None
            return Finding(
                field_key=key,
                value="",
                status=rule.severity_on_violation,
                message=rule.message or f"Required field missing: {key}",
                origin_detector=Detector.RULE_REPOSITORY,
            )

        if rule.constraint is None:
            passed = True
        else:
            passed = self.check_constraint(rule, value)
            if passed is None:
                return None

        if passed:
            return Finding(
                field_key=key,
                value=value,
                status=ComplianceStatus.COMPLIANT,
                message=f"{key} satisfies rule {rule.id}",
                origin_detector=Detector.RULE_REPOSITORY,
            )

        return Finding(
            field_key=key,
            value=value,
            status=rule.severity_on_violation,
            message=rule.message or f"{key} violates rule {rule.id}",
            origin_detector=Detector.RULE_REPOSITORY,
        )

    def check_constraint(self, rule: RuleDefinition, value: str) -> Optional[bool]:
        """
        Check a single rule constraint.

        Returns:
            True/False for pass/fail, None when the rule itself is unusable
        """
        constraint = rule.constraint
        try:
            if constraint.type in (ConstraintType.MIN, ConstraintType.MAX):
                number = _first_number(value)
                if number is None:
                    return False
                limit = float(constraint.value)
                return number >= limit if constraint.type == ConstraintType.MIN else number <= limit

            if constraint.type == ConstraintType.EQUAL:
                return value.strip().lower() == str(constraint.value).strip().lower()

            if constraint.type == ConstraintType.PATTERN:
                return re.fullmatch(str(constraint.value), value) is not None

            check = self.custom_checks.get(str(constraint.value))
            if check is None:
                logger.warning(f"Rule {rule.id} references unknown custom check '{constraint.value}'")
                return None
            return check(value)

        except (re.error, TypeError, ValueError) as e:
            logger.error(f"Rule {rule.id} could not be evaluated: {e}")
            return None

    def missing_rule_findings(self, fields: Dict[str, str], rules: Iterable[RuleDefinition]) -> List[Finding]:
        """
        Warn for every populated canonical field with no rule covering it.

        The warnings feed the refresh decision and ReconciledResult.unruled_fields;
        they never enter the reconciled findings.
        """
        covered = {normalize_field_key(rule.field_key) for rule in rules}
        findings = []
        for key, raw in fields.items():
            value = raw.strip() if isinstance(raw, str) else ""
            if not value or is_unknown_key(key) or key in covered:
                continue
            findings.append(Finding(
                field_key=key,
                value=value,
                status=ComplianceStatus.WARNING,
                message=f"{MISSING_RULE_PREFIX} {key}",
                origin_detector=Detector.RULE_REPOSITORY,
            ))
        return findings


def missing_rule_count(findings: Iterable[Finding]) -> int:
    """Number of missing-rule warnings in a finding list."""
    return sum(1 for finding in findings if finding.message.startswith(MISSING_RULE_PREFIX))

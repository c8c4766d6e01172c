# WORKFLOW: Tests for repository rule evaluation.
# Used by: CI/CD pipelines, development testing
# Test scenarios:
# 1. Required rules on missing fields
# 2. min / max / equal / pattern / custom constraints
# 3. Unusable rules produce no finding
# 4. Missing-rule warnings and their count, kept apart from rule findings

from compliance.models import ComplianceStatus, Detector, RuleConstraint, RuleDefinition
from compliance.rule_evaluator import (
    MISSING_RULE_PREFIX,
    RuleRepositoryEvaluator,
    missing_rule_count,
)


def _rule(rule_id, field_key, constraint_type=None, value=None, **kwargs):
    constraint = RuleConstraint(type=constraint_type, value=value) if constraint_type else None
    return RuleDefinition(id=rule_id, field_key=field_key, constraint=constraint, **kwargs)


class TestRuleRepositoryEvaluator:

    def setup_method(self):
        self.evaluator = RuleRepositoryEvaluator()

    def test_required_rule_on_missing_field(self):
        rule = _rule("TRK-001", "trackingNumber", required=True,
                     severity_on_violation="non-compliant", message="Tracking number is required")
        findings = self.evaluator.evaluate({}, [rule])

        assert len(findings) == 1
        assert findings[0].status == ComplianceStatus.NON_COMPLIANT
        assert findings[0].value == ""
        assert findings[0].message == "Tracking number is required"
        assert findings[0].origin_detector == Detector.RULE_REPOSITORY

    def test_optional_rule_on_missing_field_is_silent(self):
        assert self.evaluator.evaluate({}, [_rule("WGT-001", "weight", "min", 0.1)]) == []

    def test_min_and_max_constraints(self):
        rules = [
            _rule("WGT-001", "weight", "min", 0.1, severity_on_violation="non-compliant"),
            _rule("WGT-002", "weight", "max", 1000),
        ]
        light = self.evaluator.evaluate({"weight": "0.05 kg"}, rules)
        heavy = self.evaluator.evaluate({"weight": "1,200 kg"}, rules)

        assert [f.status for f in light] == [ComplianceStatus.NON_COMPLIANT, ComplianceStatus.COMPLIANT]
        assert [f.status for f in heavy] == [ComplianceStatus.COMPLIANT, ComplianceStatus.WARNING]

    def test_non_numeric_value_fails_numeric_bound(self):
        findings = self.evaluator.evaluate({"weight": "heavy"}, [_rule("WGT-001", "weight", "min", 0.1)])

        assert findings[0].status == ComplianceStatus.WARNING

    def test_equal_is_case_insensitive(self):
        rule = _rule("CUR-001", "currency", "equal", "EUR")

        assert self.evaluator.evaluate({"currency": "eur"}, [rule])[0].status == ComplianceStatus.COMPLIANT
        assert self.evaluator.evaluate({"currency": "USD"}, [rule])[0].status == ComplianceStatus.WARNING

    def test_pattern_must_match_whole_value(self):
        rule = _rule("HS-001", "hsTariffNumber", "pattern", r"[0-9]{4,10}")

        assert self.evaluator.evaluate({"hsTariffNumber": "610910"}, [rule])[0].status == ComplianceStatus.COMPLIANT
        assert self.evaluator.evaluate({"hsTariffNumber": "6109X"}, [rule])[0].status == ComplianceStatus.WARNING

    def test_custom_checks(self):
        rule = _rule("RCP-002", "recipientAddress", "custom", "no_po_box")

        ok = self.evaluator.evaluate({"recipientAddress": "1 Main St"}, [rule])
        po_box = self.evaluator.evaluate({"recipientAddress": "P.O. Box 12"}, [rule])

        assert ok[0].status == ComplianceStatus.COMPLIANT
        assert po_box[0].status == ComplianceStatus.WARNING

    def test_unusable_rules_produce_no_finding(self):
        rules = [
            _rule("BAD-001", "notes", "custom", "no_such_check"),
            _rule("BAD-002", "notes", "pattern", "([unclosed"),
        ]

        assert self.evaluator.evaluate({"notes": "fragile"}, rules) == []

    def test_rule_field_keys_are_normalized(self):
        rule = _rule("CNT-001", "Package Contents", "custom", "non_empty")
        findings = self.evaluator.evaluate({"packageContents": "books"}, [rule])

        assert len(findings) == 1
        assert findings[0].field_key == "packageContents"
        assert findings[0].status == ComplianceStatus.COMPLIANT


def test_missing_rule_warnings():
    evaluator = RuleRepositoryEvaluator()
    fields = {"weight": "2 kg", "notes": "fragile", "carrier": "", "unknown:misc": "x"}
    rules = [_rule("WGT-001", "weight", "min", 0.1)]

    missing = evaluator.missing_rule_findings(fields, rules)

    assert [f.field_key for f in missing] == ["notes"]
    assert missing[0].status == ComplianceStatus.WARNING
    assert missing[0].value == "fragile"
    assert missing[0].message.startswith(MISSING_RULE_PREFIX)
    assert missing_rule_count(missing) == 1
    assert missing_rule_count(evaluator.evaluate(fields, rules)) == 0


def test_empty_rule_set_has_no_opinion():
    evaluator = RuleRepositoryEvaluator()
    fields = {"weight": "2 kg", "notes": "fragile"}

    assert evaluator.evaluate(fields, []) == []
    assert missing_rule_count(evaluator.missing_rule_findings(fields, [])) == 2

# WORKFLOW: Tests for finding reconciliation.
# Used by: CI/CD pipelines, development testing
# Test scenarios:
# 1. Severity precedence for the same (field, value)
# 2. Idempotence of repeated reconciliation
# 3. Message concatenation (including lower-tier term matches), detector specificity and ordering
# 4. Prohibited-content floor preservation

import pytest

from compliance.content_scanner import ContentRestrictionScanner
from compliance.exceptions import FloorViolationError
from compliance.models import ComplianceStatus, Detector, Finding
from compliance.reconciler import _check_floor, reconcile
from compliance.validators import StructuralValidator


def _finding(field_key, value, status, detector, message="msg", **kwargs):
    return Finding(
        field_key=field_key,
        value=value,
        status=ComplianceStatus(status),
        message=message,
        origin_detector=detector,
        **kwargs,
    )


def test_severity_precedence_for_ak47_parts(snapshot):
    """Structural 'format is valid' and a prohibited content match collapse to one non-compliant finding."""
    fields = {"packageContents": "AK-47 parts"}
    findings = StructuralValidator().validate(fields) + ContentRestrictionScanner().scan(
        fields, snapshot.restricted_terms
    )
    contents = [f for f in reconcile(findings) if f.field_key == "packageContents"]

    assert len(contents) == 1
    assert contents[0].status == ComplianceStatus.NON_COMPLIANT
    assert contents[0].floor
    assert contents[0].matched_term == "ak-47"
    assert contents[0].origin_detector == Detector.CONTENT_SCANNER


def test_groups_on_normalized_key_and_value():
    findings = [
        _finding("packageContents", "AK-47 parts", "compliant", Detector.STRUCTURAL),
        _finding("PackageContents", "ak-47  parts.", "non-compliant", Detector.CONTENT_SCANNER, floor=True),
    ]
    merged = reconcile(findings)

    assert len(merged) == 1
    assert merged[0].field_key == "packageContents"
    assert merged[0].status == ComplianceStatus.NON_COMPLIANT


def test_reconcile_is_idempotent():
    findings = [
        _finding("trackingNumber", "", "non-compliant", Detector.STRUCTURAL, "Required field missing: trackingNumber"),
        _finding("trackingNumber", "", "non-compliant", Detector.RULE_REPOSITORY, "Tracking number is required"),
        _finding("weight", "2 kg", "compliant", Detector.STRUCTURAL),
        _finding("weight", "2 kg", "warning", Detector.RULE_REPOSITORY, "Weight out of range"),
        _finding("recipientCountry", "KP", "non-compliant", Detector.DESTINATION_RESOLVER, "Embargoed; no shipments"),
    ]
    once = reconcile(findings)
    twice = reconcile(once)

    assert twice == once


def test_same_severity_messages_are_concatenated():
    merged = reconcile([
        _finding("trackingNumber", "", "non-compliant", Detector.STRUCTURAL, "Required field missing: trackingNumber"),
        _finding("trackingNumber", "", "non-compliant", Detector.RULE_REPOSITORY, "Tracking number is required"),
        _finding("trackingNumber", "", "non-compliant", Detector.RULE_REPOSITORY, "Tracking number is required"),
    ])

    assert len(merged) == 1
    assert merged[0].origin_detector == Detector.RULE_REPOSITORY
    assert merged[0].message == "Tracking number is required; Required field missing: trackingNumber"


def test_restricted_match_survives_under_prohibited_match(snapshot):
    fields = {"packageContents": "handgun and alcohol"}
    findings = StructuralValidator().validate(fields) + ContentRestrictionScanner().scan(
        fields, snapshot.restricted_terms
    )
    contents = [f for f in reconcile(findings) if f.field_key == "packageContents"]

    assert len(contents) == 1
    assert contents[0].status == ComplianceStatus.NON_COMPLIANT
    assert "Prohibited item detected: 'handgun'" in contents[0].message
    assert "Restricted item detected: 'alcohol'" in contents[0].message
    assert "format is valid" not in contents[0].message
    assert reconcile(reconcile(findings)) == reconcile(findings)


def test_lower_severity_messages_are_dropped():
    merged = reconcile([
        _finding("weight", "2 kg", "compliant", Detector.STRUCTURAL, "weight format is valid"),
        _finding("weight", "2 kg", "warning", Detector.RULE_REPOSITORY, "Weight out of range"),
    ])

    assert merged[0].status == ComplianceStatus.WARNING
    assert merged[0].message == "Weight out of range"


def test_different_values_are_not_merged():
    merged = reconcile([
        _finding("recipientCountry", "KP", "non-compliant", Detector.DESTINATION_RESOLVER),
        _finding("recipientCountry", "US", "compliant", Detector.STRUCTURAL),
    ])

    assert len(merged) == 2


def test_sorted_by_severity_then_field_key():
    merged = reconcile([
        _finding("weight", "2 kg", "compliant", Detector.STRUCTURAL),
        _finding("notes", "x", "warning", Detector.RULE_REPOSITORY),
        _finding("shipperName", "", "non-compliant", Detector.STRUCTURAL),
        _finding("dimensions", "1x2", "warning", Detector.RULE_REPOSITORY),
    ])

    assert [(f.status.value, f.field_key) for f in merged] == [
        ("non-compliant", "shipperName"),
        ("warning", "dimensions"),
        ("warning", "notes"),
        ("compliant", "weight"),
    ]


def test_floor_survives_softer_findings():
    merged = reconcile([
        _finding("packageContents", "firearm", "non-compliant", Detector.CONTENT_SCANNER,
                 floor=True, matched_term="firearm"),
        _finding("packageContents", "firearm", "compliant", Detector.ADVISORY),
    ])

    assert len(merged) == 1
    assert merged[0].status == ComplianceStatus.NON_COMPLIANT
    assert merged[0].floor


def test_floor_check_raises_when_floor_is_lost():
    floor = _finding("packageContents", "firearm", "non-compliant", Detector.CONTENT_SCANNER, floor=True)

    with pytest.raises(FloorViolationError):
        _check_floor([floor], [])


def test_empty_input():
    assert reconcile([]) == []

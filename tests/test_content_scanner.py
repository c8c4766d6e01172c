# WORKFLOW: Tests for the restricted content scanner.
# Used by: CI/CD pipelines, development testing
# Test scenarios:
# 1. Tier A (prohibited) and Tier B (restricted) matches
# 2. Content field selection by key-name heuristic (and its recall gap)
# 3. Country-specific terms
# 4. "Content verified" finding when nothing matches

from compliance.content_scanner import ContentRestrictionScanner
from compliance.models import ComplianceStatus, ContentTier, Detector, RestrictedContentTerm

TERMS = [
    RestrictedContentTerm(term="firearm", tier=ContentTier.PROHIBITED, message="Firearms cannot be shipped"),
    RestrictedContentTerm(term="ak-47", tier=ContentTier.PROHIBITED),
    RestrictedContentTerm(term="lithium", tier=ContentTier.RESTRICTED, message="Dangerous goods declaration"),
    RestrictedContentTerm(term="alcohol", tier=ContentTier.RESTRICTED),
    RestrictedContentTerm(term="alcohol", tier=ContentTier.PROHIBITED, applies_to=("SA",)),
]


class TestContentRestrictionScanner:

    def setup_method(self):
        self.scanner = ContentRestrictionScanner()

    def test_prohibited_term_is_non_compliant_with_floor(self):
        findings = self.scanner.scan({"packageContents": "Vintage firearm"}, TERMS)

        assert len(findings) == 1
        finding = findings[0]
        assert finding.status == ComplianceStatus.NON_COMPLIANT
        assert finding.floor
        assert finding.matched_term == "firearm"
        assert finding.field_key == "packageContents"
        assert finding.value == "Vintage firearm"
        assert finding.message == "Prohibited item detected: 'firearm'. Firearms cannot be shipped"
        assert finding.origin_detector == Detector.CONTENT_SCANNER

    def test_restricted_term_is_warning(self):
        findings = self.scanner.scan({"packageContents": "lithium batteries and books"}, TERMS)

        assert [f.status for f in findings] == [ComplianceStatus.WARNING]
        assert not findings[0].floor
        assert findings[0].message.startswith("Restricted item detected: 'lithium'")

    def test_no_match_reports_verified_contents(self):
        findings = self.scanner.scan({"packageContents": "Cotton T-Shirts"}, TERMS)

        assert len(findings) == 1
        assert findings[0].status == ComplianceStatus.COMPLIANT
        assert findings[0].message == (
            "Package contents verified: no restricted items found in 'cotton t-shirts'"
        )

    def test_no_content_fields_means_no_findings(self):
        assert self.scanner.scan({"recipientName": "Jane Doe"}, TERMS) == []
        assert self.scanner.scan({}, TERMS) == []

    def test_content_keys_beyond_package_contents(self):
        fields = {
            "packageContents": "books",
            "unknown:item_details": "replica AK-47 stock",
            "recipientAddress": "1 Firearm Lane",
        }
        findings = self.scanner.scan(fields, TERMS)

        assert len(findings) == 1
        assert findings[0].field_key == "unknown:item_details"
        assert findings[0].matched_term == "ak-47"

    def test_unrecognised_key_name_is_not_scanned(self):
        """Content under a key like 'misc' is missed by the key-name heuristic."""
        findings = self.scanner.scan({"unknown:misc": "firearm"}, TERMS)

        assert findings == []

    def test_country_specific_terms(self):
        fields = {"packageContents": "Bottle of alcohol"}

        default = self.scanner.scan(fields, TERMS, destination_code="US")
        saudi = self.scanner.scan(fields, TERMS, destination_code="SA")

        assert [f.status for f in default] == [ComplianceStatus.WARNING]
        assert [f.status for f in saudi] == [ComplianceStatus.NON_COMPLIANT]

    def test_build_corpus_skips_repeated_values(self):
        corpus = self.scanner.build_corpus([
            ("packageContents", "Books"),
            ("unknown:goods", "books"),
            ("unknown:item", "Pens"),
        ])

        assert corpus == "books pens"

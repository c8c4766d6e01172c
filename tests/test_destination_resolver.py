# WORKFLOW: Tests for destination profile resolution.
# Used by: CI/CD pipelines, development testing
# Test scenarios:
# 1. Embargoed / sanctioned / controlled / unrestricted destinations
# 2. Code, name, alias, containment and group-membership matching
# 3. Required document warnings and the insurance advisory

import pytest

from compliance.destination_resolver import DestinationProfileResolver
from compliance.models import ComplianceStatus, Detector


@pytest.fixture
def profiles(snapshot):
    return snapshot.country_profiles


@pytest.fixture
def resolver():
    return DestinationProfileResolver(high_value_threshold=1000.0)


def test_embargoed_destination_is_non_compliant(resolver, profiles):
    findings = resolver.resolve({"recipientCountry": "KP"}, profiles)

    assert len(findings) == 1
    finding = findings[0]
    assert finding.status == ComplianceStatus.NON_COMPLIANT
    assert finding.field_key == "recipientCountry"
    assert finding.value == "KP"
    assert finding.message.startswith("Destination North Korea is embargoed")
    assert finding.origin_detector == Detector.DESTINATION_RESOLVER


def test_sanctioned_destination_is_non_compliant(resolver, profiles):
    findings = resolver.resolve({"recipientCountry": "Iran"}, profiles)

    assert findings[0].status == ComplianceStatus.NON_COMPLIANT
    assert "sanctioned" in findings[0].message


def test_controlled_destination_warns_and_lists_documents(resolver, profiles):
    findings = resolver.resolve({"recipientCountry": "Russian Federation", "hsTariffNumber": "850760"}, profiles)

    assert findings[0].status == ComplianceStatus.WARNING
    assert "controlled" in findings[0].message
    docs = [f for f in findings[1:]]
    assert [f.field_key for f in docs] == ["declaredValue"]
    assert docs[0].status == ComplianceStatus.WARNING
    assert docs[0].message == "declaredValue is required for shipments to Russia"


@pytest.mark.parametrize("destination", ["GB", "UK", "Great Britain", "united kingdom"])
def test_united_kingdom_variants(resolver, profiles, destination):
    findings = resolver.resolve({"recipientCountry": destination}, profiles)

    assert findings[0].status == ComplianceStatus.COMPLIANT
    assert findings[0].message == "Destination United Kingdom has no shipping restrictions"
    assert {f.field_key for f in findings[1:]} == {
        "eoriNumber", "hsTariffNumber", "originCountry", "declaredValue",
    }


def test_member_country_matches_group_profile(resolver, profiles):
    profile = resolver.match_profile("Germany", profiles)

    assert profile is not None
    assert profile.country_code == "EU"


def test_destination_named_inside_free_text(resolver, profiles):
    profile = resolver.match_profile("Pyongyang, North Korea", profiles)

    assert profile.country_code == "KP"


def test_unknown_or_missing_destination_yields_nothing(resolver, profiles):
    assert resolver.resolve({"recipientCountry": "Atlantis"}, profiles) == []
    assert resolver.resolve({"recipientName": "Jane Doe"}, profiles) == []


def test_destination_key_hint_on_unresolved_field(resolver, profiles):
    findings = resolver.resolve({"unknown:final_delivery_country": "Cuba"}, profiles)

    assert findings[0].field_key == "unknown:final_delivery_country"
    assert findings[0].status == ComplianceStatus.NON_COMPLIANT


def test_destination_code(resolver, profiles):
    assert resolver.destination_code({"recipientCountry": "North Korea"}, profiles) == "KP"
    assert resolver.destination_code({"recipientCountry": "uk"}, profiles) == "GB"
    assert resolver.destination_code({}, profiles) is None


class TestInsuranceAdvisory:

    def setup_method(self):
        self.resolver = DestinationProfileResolver(high_value_threshold=1000.0)
        self.documented = {
            "hsTariffNumber": "610910",
            "originCountry": "US",
            "declaredValue": "2,500 USD",
        }

    def test_high_value_international_shipment(self, profiles):
        fields = {"shipperCountry": "US", "recipientCountry": "CA", **self.documented}
        findings = self.resolver.resolve(fields, profiles)

        insurance = [f for f in findings if f.field_key == "declaredValue"]
        assert len(insurance) == 1
        assert insurance[0].status == ComplianceStatus.WARNING
        assert "consider insurance" in insurance[0].message

    def test_domestic_shipment_has_no_insurance_advice(self, profiles):
        fields = {"shipperCountry": "US", "recipientCountry": "USA", **self.documented}
        findings = self.resolver.resolve(fields, profiles)

        assert [f.field_key for f in findings] == ["recipientCountry"]

    def test_low_value_has_no_insurance_advice(self, profiles):
        fields = {"shipperCountry": "US", "recipientCountry": "CA", **self.documented, "declaredValue": "80"}
        findings = self.resolver.resolve(fields, profiles)

        assert [f.field_key for f in findings] == ["recipientCountry"]

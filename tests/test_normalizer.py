# WORKFLOW: Tests for field normalization and the alias table.
# Used by: CI/CD pipelines, development testing
# Test scenarios:
# 1. Alias, case-insensitive and contained-alias key resolution
# 2. Idempotence on already canonical field sets
# 3. Tie rule for conflicting values, unknown key passthrough
# 4. JSON, key/value lines, CSV rows and free-text label content
# 5. Malformed content and alias table conflicts

import pytest

from compliance.exceptions import AliasConflictError
from compliance.models import build_record
from compliance.normalizer import FieldNormalizer, normalize
from compliance.reference_data import FieldAliasTable, default_alias_table


class TestKeyResolution:
    """Raw key variants resolve to canonical fields."""

    def setup_method(self):
        self.normalizer = FieldNormalizer()

    def test_common_aliases(self):
        result = self.normalizer.normalize_fields({
            "Tracking No": "1Z999AA10123456784",
            "Ship To": "Jane Doe",
            "Consignee Address": "1 Main St, Springfield",
            "Country": "US",
            "Contents": "books",
        })

        assert result.fields == {
            "trackingNumber": "1Z999AA10123456784",
            "recipientName": "Jane Doe",
            "recipientAddress": "1 Main St, Springfield",
            "recipientCountry": "US",
            "packageContents": "books",
        }
        assert result.unresolved_keys == []
        assert result.is_structured

    def test_case_and_separator_insensitive_canonical(self):
        assert self.normalizer.resolve_key("TRACKING_NUMBER") == "trackingNumber"
        assert self.normalizer.resolve_key("recipient-name") == "recipientName"
        assert self.normalizer.resolve_key("hs.tariff.number") == "hsTariffNumber"

    def test_contained_alias_prefers_longest(self):
        assert self.normalizer.resolve_key("shipper_address_line") == "shipperAddress"
        assert self.normalizer.resolve_key("Gross Weight (kg)") == "weight"

    def test_unresolved_key_kept_as_unknown(self):
        result = self.normalizer.normalize_fields({"misc": "firearm"})

        assert result.fields == {"unknown:misc": "firearm"}
        assert result.unresolved_keys == ["misc"]

    def test_unknown_prefixed_key_passes_through(self):
        result = self.normalizer.normalize_fields({"unknown:misc": "books"})

        assert result.fields == {"unknown:misc": "books"}


def test_normalize_is_idempotent_on_canonical_fields():
    """Normalizing an already canonical field set yields the same set."""
    normalizer = FieldNormalizer()
    first = normalizer.normalize_fields({
        "AWB": "AB123456789",
        "Sender": "ACME Ltd",
        "Receiver": "Jane Doe",
        "Destination": "Germany",
        "Weight": "2 kg",
        "mystery": "value",
    })
    second = normalizer.normalize_fields(first.fields)

    assert second.fields == first.fields


def test_first_non_empty_value_wins_on_conflict():
    normalizer = FieldNormalizer()
    result = normalizer.normalize_fields({"recipientName": "Jane Doe", "Consignee": "John Roe"})

    assert result.fields["recipientName"] == "Jane Doe"
    assert "conflict:Consignee->recipientName" in result.unresolved_keys


def test_empty_value_is_replaced_by_later_alias():
    normalizer = FieldNormalizer()
    result = normalizer.normalize_fields({"recipientName": "", "Consignee": "John Roe"})

    assert result.fields["recipientName"] == "John Roe"


def test_json_string_content():
    result = normalize(build_record("scan", '{"tracking number": "ABC12345", "to": "Jane Doe"}'))

    assert result.fields["trackingNumber"] == "ABC12345"
    assert result.fields["recipientName"] == "Jane Doe"
    assert result.is_structured


def test_key_value_lines_are_structured():
    content = "Tracking: ABC12345\nShipper: ACME Ltd\nContents: books"
    result = normalize(build_record("manual", content))

    assert result.is_structured
    assert result.fields == {
        "trackingNumber": "ABC12345",
        "shipperName": "ACME Ltd",
        "packageContents": "books",
    }


def test_csv_row_content_for_batch_rows():
    content = "trackingNumber,recipientName\nABC12345,Jane Doe"
    result = normalize(build_record("batch-row", content))

    assert result.fields == {"trackingNumber": "ABC12345", "recipientName": "Jane Doe"}


def test_free_text_label_extraction():
    label = (
        "ACME Corp warehouse label\n"
        "Tracking Number: 1Z999AA10123456784\n"
        "Contents: two lithium batteries\n"
        "Weight: 2.5 kg\n"
    )
    result = normalize(build_record("scan", label))

    assert not result.is_structured
    assert result.raw_text == label
    assert result.fields["trackingNumber"] == "1Z999AA10123456784"
    assert result.fields["packageContents"] == "two lithium batteries"
    assert result.fields["weight"] == "2.5 kg"


@pytest.mark.parametrize("content", ["", "   ", 42, None])
def test_unparseable_content_yields_empty_field_set(content):
    result = normalize(build_record("manual", content))

    assert result.fields == {}


def test_malformed_list_content_reports_visible_keys():
    result = normalize(build_record("manual", [{"recipient": "Jane"}, ("weight", "2kg")]))

    assert result.fields == {}
    assert result.unresolved_keys == ["recipient", "weight"]


class TestFieldAliasTable:
    """The alias table is append-only."""

    def test_extend_adds_alias(self):
        table = default_alias_table()
        table.extend("recipientName", ["delivery contact"])

        assert table.lookup("Delivery_Contact") == "recipientName"
        assert "delivery contact" in table

    def test_rebinding_alias_raises(self):
        table = default_alias_table()

        with pytest.raises(AliasConflictError):
            table.extend("shipperName", ["consignee"])

        assert table.lookup("consignee") == "recipientName"

    def test_extending_with_existing_binding_is_allowed(self):
        table = FieldAliasTable({"recipientName": ["consignee"]})
        table.extend("recipientName", ["consignee"])

        assert len(table) == 1

    def test_unknown_canonical_field_raises(self):
        with pytest.raises(AliasConflictError):
            FieldAliasTable({"favouriteColour": ["colour"]})

# WORKFLOW: Reference data for shipment field normalization and validation.
# Used by: FieldNormalizer, StructuralValidator, ContentRestrictionScanner, DestinationProfileResolver
# Contents:
# 1. CANONICAL_FIELDS - Fixed canonical field vocabulary
# 2. FieldAliasTable - Append-only raw-key -> canonical-key alias table
# 3. FREE_TEXT_PATTERNS - Regex extraction patterns for unstructured label text
# 4. CONTENT_KEY_KEYWORDS - Key-name heuristic for content-bearing fields
# 5. COUNTRY_NAME_CODES / EU_MEMBER_CODES - Country name lookup tables
#
# Alias flow: raw key -> normalize_key() -> alias index -> canonical key
# Restricted terms and country profiles are rule data, not reference data (see data/).

"""Reference data for shipment field normalization.

Alias maps are keyed on the separator-insensitive form of a field name, so
``"Recipient_Name"``, ``"recipient name"`` and ``"recipient-name"`` all resolve
through the same entry.
"""

import re
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from compliance.exceptions import AliasConflictError

CANONICAL_FIELDS: Tuple[str, ...] = (
    "trackingNumber",
    "orderNumber",
    "shipDate",
    "shippingService",
    "carrier",
    "shipperName",
    "shipperAddress",
    "shipperCountry",
    "recipientName",
    "recipientAddress",
    "recipientCountry",
    "originCountry",
    "weight",
    "dimensions",
    "packageType",
    "packageContents",
    "quantity",
    "declaredValue",
    "currency",
    "hsTariffNumber",
    "eoriNumber",
    "naccsCode",
    "chinaCustomsCode",
    "abnNumber",
    "phoneNumber",
    "email",
    "notes",
)

UNKNOWN_PREFIX = "unknown:"

# Shortest alias considered for substring containment; shorter ones ("to", "wt") match too much.
MIN_CONTAINED_ALIAS_LENGTH = 4

_SEPARATORS = re.compile(r"[\s_\-.#/]+")


def normalize_key(key: str) -> str:
    """Lowercase a field name and strip separators (spaces, underscores, hyphens, dots, '#', '/')."""
    return _SEPARATORS.sub("", str(key)).lower()


_CANONICAL_BY_NORMALIZED: Dict[str, str] = {normalize_key(field): field for field in CANONICAL_FIELDS}


def canonical_for(key: str) -> Optional[str]:
    """Case/separator-insensitive match against the canonical vocabulary."""
    return _CANONICAL_BY_NORMALIZED.get(normalize_key(key))


def is_unknown_key(key: str) -> bool:
    return key.startswith(UNKNOWN_PREFIX)


def unknown_key(raw_key: str) -> str:
    return f"{UNKNOWN_PREFIX}{raw_key}"


DEFAULT_FIELD_ALIASES: Dict[str, List[str]] = {
    "trackingNumber": [
        "tracking", "tracking no", "tracking id", "tracking code", "tracking num",
        "track no", "awb", "awb number", "air waybill", "waybill", "waybill number",
        "consignment number", "consignment no", "shipment id", "parcel id", "tracking #",
    ],
    "orderNumber": ["order", "order no", "order id", "order ref", "reference", "ref no", "po number"],
    "shipDate": ["ship date", "shipment date", "shipping date", "date shipped", "dispatch date", "date"],
    "shippingService": ["service", "service level", "shipping method", "delivery service", "ship via"],
    "carrier": ["courier", "carrier name", "shipping carrier"],
    "shipperName": [
        "shipper", "sender", "sender name", "from", "from name", "consignor", "consignor name",
        "exporter", "exporter name", "shipper full name",
    ],
    "shipperAddress": [
        "sender address", "from address", "consignor address", "exporter address",
        "origin address", "return address", "shipper addr",
    ],
    "shipperCountry": ["sender country", "from country", "consignor country", "exporter country"],
    "recipientName": [
        "recipient", "receiver", "receiver name", "to", "to name", "consignee", "consignee name",
        "addressee", "importer", "importer name", "ship to", "ship to name", "deliver to",
    ],
    "recipientAddress": [
        "receiver address", "to address", "consignee address", "delivery address",
        "ship to address", "shipping address", "destination address", "address", "recipient addr",
    ],
    "recipientCountry": [
        "destination", "destination country", "dest country", "receiver country", "to country",
        "consignee country", "ship to country", "delivery country", "country", "importer country",
    ],
    "originCountry": ["origin", "origin country", "country of origin", "made in", "coo"],
    "weight": ["wt", "gross weight", "gross wt", "net weight", "package weight", "weight kg", "mass"],
    "dimensions": ["size", "measurements", "lwh", "dims", "package dimensions", "box size"],
    "packageType": ["package type", "parcel type", "packaging", "container type"],
    "packageContents": [
        "contents", "content", "items", "goods", "description", "item description",
        "goods description", "commodity", "commodity description", "product description",
        "merchandise", "cargo",
    ],
    "quantity": ["qty", "pieces", "piece count", "units", "number of items"],
    "declaredValue": [
        "value", "customs value", "declared value", "invoice value", "goods value", "total value",
    ],
    "currency": ["currency code", "curr"],
    "hsTariffNumber": [
        "hs code", "hs", "hts", "hts code", "tariff code", "tariff number", "harmonized code",
        "commodity code",
    ],
    "eoriNumber": ["eori", "eori no", "eori code"],
    "naccsCode": ["naccs", "naccs number"],
    "chinaCustomsCode": ["china customs code", "ciq code"],
    "abnNumber": ["abn", "australian business number"],
    "phoneNumber": [
        "phone", "telephone", "tel", "mobile", "contact number",
        "recipient phone", "receiver phone", "consignee phone", "shipper phone", "sender phone",
    ],
    "email": ["e mail", "email address", "recipient email", "shipper email", "sender email"],
    "notes": ["remarks", "comments", "special instructions", "instructions"],
}


class FieldAliasTable:
    """Append-only mapping from raw field-name variants to canonical keys."""

    def __init__(self, aliases: Optional[Dict[str, Iterable[str]]] = None):
        self._index: Dict[str, str] = {}
        for canonical, variants in (aliases or {}).items():
            self.extend(canonical, variants)

    def extend(self, canonical: str, aliases: Iterable[str]) -> None:
        """
        Register aliases for a canonical field.

        Args:
            canonical: Canonical field name (must be in CANONICAL_FIELDS)
            aliases: Raw key variants

        Raises:
            AliasConflictError: If an alias is already bound to another canonical field
        """
        if canonical not in CANONICAL_FIELDS:
            raise AliasConflictError(f"Unknown canonical field: {canonical}")

        for alias in aliases:
            normalized = normalize_key(alias)
            if not normalized:
                continue
            bound = self._index.get(normalized)
            if bound is not None and bound != canonical:
                raise AliasConflictError(
                    f"Alias '{alias}' already maps to {bound}, cannot re-point to {canonical}"
                )
            self._index[normalized] = canonical

    def lookup(self, raw_key: str) -> Optional[str]:
        """Exact (separator-insensitive) alias lookup."""
        return self._index.get(normalize_key(raw_key))

    def find_contained(self, raw_key: str) -> Optional[str]:
        """
        Find the canonical field whose alias (or canonical name) is contained in the raw key.

        The longest contained alias wins so that compound keys such as
        ``shipper_address_line`` prefer ``shipperaddress`` over ``shipper``.
        """
        normalized = normalize_key(raw_key)
        best: Optional[Tuple[int, str]] = None
        candidates = list(self._index.items()) + list(_CANONICAL_BY_NORMALIZED.items())
        for alias, canonical in candidates:
            if len(alias) < MIN_CONTAINED_ALIAS_LENGTH or alias not in normalized:
                continue
            if best is None or len(alias) > best[0]:
                best = (len(alias), canonical)
        return best[1] if best else None

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(sorted(self._index.items()))

    def __contains__(self, raw_key: str) -> bool:
        return normalize_key(raw_key) in self._index

    def __len__(self) -> int:
        return len(self._index)


def default_alias_table() -> FieldAliasTable:
    """Build a fresh alias table seeded with DEFAULT_FIELD_ALIASES."""
    return FieldAliasTable(DEFAULT_FIELD_ALIASES)


# Free-text extraction patterns for scanned labels (no key/value structure).
FREE_TEXT_PATTERNS: Dict[str, List[str]] = {
    "trackingNumber": [
        r"tracking(?:\s+(?:number|no\.?|id))?[:\s#]+([A-Z0-9]{8,})",
        r"(?:awb|waybill)(?:\s+(?:number|no\.?))?[:\s#]+([A-Z0-9]{8,})",
    ],
    "shipperName": [
        r"\b(?:shipper|from|sender)[:\s]+([A-Za-z][A-Za-z\s\-'.]{1,}?)(?:\r?\n|,)",
    ],
    "recipientName": [
        r"\b(?:recipient|to|addressee|consignee)[:\s]+([A-Za-z][A-Za-z\s\-'.]{1,}?)(?:\r?\n|,)",
    ],
    "recipientAddress": [
        r"\b(?:address|destination)[:\s]+([^,\r\n]+(?:,\s*[^,\r\n]+){2,})",
    ],
    "recipientCountry": [
        r"(?:destination\s+country|ship\s+to\s+country|country)[:\s]+([A-Za-z][A-Za-z\s\-.]{1,40}?)\s*(?:\r?\n|,)",
    ],
    "weight": [
        r"weight[:\s]+([0-9.]+\s*(?:kg|g|lbs|lb|oz))\b",
    ],
    "dimensions": [
        r"dimensions?[:\s]+([0-9.]+\s*[x×*]\s*[0-9.]+\s*[x×*]\s*[0-9.]+\s*(?:cm|mm|m|in|ft)?)",
    ],
    "packageType": [
        r"(?:package|parcel)\s+type[:\s]+(\w+)",
    ],
    "packageContents": [
        r"(?:contents?|items?|goods)[:\s]+([^\r\n]+?)\s*(?:\r?\n)",
    ],
    "declaredValue": [
        r"(?:declared\s+)?value[:\s]+([$€£]?\s*[0-9][0-9.,]*(?:\s*[A-Z]{3})?)",
    ],
    "hsTariffNumber": [
        r"(?:hs|tariff)\s*(?:code|number)?[:\s#]+([0-9][0-9.\s]{2,12}[0-9])",
    ],
}

# Key-name fragments that mark a field as content-bearing.
CONTENT_KEY_KEYWORDS: Tuple[str, ...] = (
    "content", "item", "product", "goods", "cargo", "package", "description",
    "commodit", "merchandise", "gun", "weapon", "firearm", "ammunition",
)

# Key-name fragments that exclude a field from the content heuristic.
NON_CONTENT_KEY_KEYWORDS: Tuple[str, ...] = (
    "shipper", "sender", "recipient", "receiver", "consignee", "address", "country",
    "tracking", "number", "type",
)

COUNTRY_NAME_CODES: Dict[str, str] = {
    "united states": "US",
    "united states of america": "US",
    "usa": "US",
    "u.s.": "US",
    "u.s.a.": "US",
    "america": "US",
    "united kingdom": "GB",
    "uk": "GB",
    "great britain": "GB",
    "britain": "GB",
    "england": "GB",
    "canada": "CA",
    "mexico": "MX",
    "germany": "DE",
    "deutschland": "DE",
    "france": "FR",
    "italy": "IT",
    "spain": "ES",
    "netherlands": "NL",
    "holland": "NL",
    "belgium": "BE",
    "ireland": "IE",
    "poland": "PL",
    "sweden": "SE",
    "china": "CN",
    "japan": "JP",
    "india": "IN",
    "pakistan": "PK",
    "australia": "AU",
    "brazil": "BR",
    "north korea": "KP",
    "dprk": "KP",
    "democratic people's republic of korea": "KP",
    "south korea": "KR",
    "korea": "KR",
    "cuba": "CU",
    "iran": "IR",
    "syria": "SY",
    "sudan": "SD",
    "belarus": "BY",
    "russia": "RU",
    "russian federation": "RU",
    "venezuela": "VE",
    "myanmar": "MM",
    "burma": "MM",
    "iraq": "IQ",
    "libya": "LY",
    "zimbabwe": "ZW",
    "democratic republic of the congo": "CD",
    "afghanistan": "AF",
}

# Codes treated as equivalent when matching profiles.
COUNTRY_CODE_EQUIVALENTS: Dict[str, str] = {"UK": "GB"}

EU_MEMBER_CODES: Tuple[str, ...] = (
    "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR", "DE", "GR", "HU", "IE",
    "IT", "LV", "LT", "LU", "MT", "NL", "PL", "PT", "RO", "SK", "SI", "ES", "SE",
)


def country_code_for(value: str) -> Optional[str]:
    """
    Resolve a country field value to an ISO-2 code where possible.

    Args:
        value: Country code or country name

    Returns:
        Upper-case code, or None if the value is not recognisable
    """
    if not value:
        return None
    cleaned = value.strip()
    if re.match(r"^[A-Za-z]{2}$", cleaned):
        code = cleaned.upper()
        return COUNTRY_CODE_EQUIVALENTS.get(code, code)
    return COUNTRY_NAME_CODES.get(cleaned.lower())

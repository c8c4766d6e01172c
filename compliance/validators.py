# WORKFLOW: Structural validation of canonical shipment fields.
# Used by: CompliancePipeline.evaluate(), etl.validators (code/country format checks)
# Functions:
# 1. validate_hs_code() - Validate HS tariff number format
# 2. validate_country_code() - Validate ISO country code format
# 3. validate_country() - Country code or recognisable country name
# 4. StructuralValidator.validate() - Presence/format findings per field specification
# 5. StructuralValidator.check_data_quality() - Short values, multi-value names
#
# Validation flow: Canonical fields -> Required check -> Format check -> Data quality -> Findings
# Missing is evaluated after normalization, so any alias that resolved to a field counts.

"""
Structural validation of canonical shipment fields against built-in specifications.
"""

import logging
import re
from datetime import datetime
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel

from compliance.models import ComplianceStatus, Detector, Finding, field_value
from compliance.reference_data import COUNTRY_NAME_CODES, is_unknown_key

logger = logging.getLogger(__name__)


def validate_hs_code(hs_code: str) -> bool:
    """
    Validate HS code format.

    Args:
        hs_code: HS code to validate

    Returns:
        True if valid, False otherwise
    """
    if not hs_code or not isinstance(hs_code, str):
        return False

    # HS codes are 4-10 digits once dots and spaces are removed
    return bool(re.match(r'^\d{4,10}$', re.sub(r'[\s.]', '', hs_code)))


def validate_country_code(country_code: str) -> bool:
    """
    Validate country code format.

    Args:
        country_code: Country code to validate

    Returns:
        True if valid, False otherwise
    """
    if not country_code or not isinstance(country_code, str):
        return False

    # Country codes should be 2-3 characters
    return bool(re.match(r'^[A-Z]{2,3}$', country_code.strip()))


def validate_country(value: str) -> bool:
    """Accept an ISO code or a country name."""
    cleaned = value.strip()
    if validate_country_code(cleaned.upper()) and len(cleaned) == 2:
        return True
    if cleaned.lower() in COUNTRY_NAME_CODES:
        return True
    return bool(re.match(r"^[A-Za-z][A-Za-z\s\-.']{2,}$", cleaned))


def normalize_ship_date(value: str) -> Optional[str]:
    """Rewrite common date layouts to YYYY-MM-DD, or None if unparseable."""
    for layout in ("%Y-%m-%d", "%d/%m/%Y", "%m/%d/%Y", "%d.%m.%Y", "%Y/%m/%d", "%d-%m-%Y"):
        try:
            return datetime.strptime(value.strip(), layout).strftime("%Y-%m-%d")
        except ValueError:
            continue
    return None


class FieldSpecification(BaseModel):
    field_key: str
    required: bool = False
    pattern: Optional[str] = None
    critical: bool = False
    description: str = ""


def _pattern_check(pattern: str, transform: Callable[[str], str] = lambda v: v) -> Callable[[str], bool]:
    compiled = re.compile(pattern, re.IGNORECASE)
    return lambda value: bool(compiled.match(transform(value)))


FIELD_SPECIFICATIONS: Dict[str, FieldSpecification] = {
    spec.field_key: spec
    for spec in [
        FieldSpecification(field_key="trackingNumber", required=True, critical=True,
                           pattern=r"^[A-Z0-9]{8,}$",
                           description="at least 8 alphanumeric characters"),
        FieldSpecification(field_key="shipperName", required=True,
                           pattern=r"^[A-Za-z0-9\s\-'.,&]{2,}$",
                           description="a name of at least 2 characters"),
        FieldSpecification(field_key="shipperAddress", required=True, pattern=r"^.{5,}$",
                           description="an address of at least 5 characters"),
        FieldSpecification(field_key="recipientName", required=True,
                           pattern=r"^[A-Za-z\s\-'.,]{2,}$",
                           description="a name of at least 2 letters"),
        FieldSpecification(field_key="recipientAddress", required=True, pattern=r"^.{5,}$",
                           description="an address of at least 5 characters"),
        FieldSpecification(field_key="weight", pattern=r"^\d+(\.\d+)?\s*(kg|g|lb|lbs|oz)$",
                           description="a number with unit (kg, g, lb, lbs, oz)"),
        FieldSpecification(field_key="dimensions",
                           pattern=r"^\d+(\.\d+)?\s*[x×*]\s*\d+(\.\d+)?\s*[x×*]\s*\d+(\.\d+)?\s*(cm|mm|m|in|ft)?$",
                           description="L x W x H with optional unit"),
        FieldSpecification(field_key="shipperCountry", critical=True,
                           description="a country code or country name"),
        FieldSpecification(field_key="recipientCountry", critical=True,
                           description="a country code or country name"),
        FieldSpecification(field_key="originCountry", critical=True,
                           description="a country code or country name"),
        FieldSpecification(field_key="hsTariffNumber", critical=True,
                           description="4-10 digits"),
        FieldSpecification(field_key="shipDate", description="a date (YYYY-MM-DD)"),
        FieldSpecification(field_key="declaredValue",
                           pattern=r"^[$€£]?\s*\d+([.,]\d+)*\s*([A-Z]{3})?$",
                           description="a number with optional currency"),
        FieldSpecification(field_key="packageType", pattern=r"^(box|envelope|tube|pallet|other)$",
                           description="box, envelope, tube, pallet or other"),
        FieldSpecification(field_key="packageContents", pattern=r"^.{2,}$",
                           description="a description of at least 2 characters"),
        FieldSpecification(field_key="eoriNumber", critical=True, pattern=r"^[A-Z]{2}[A-Z0-9]{1,15}$",
                           description="country prefix followed by up to 15 characters"),
    ]
}

_FORMAT_CHECKS: Dict[str, Callable[[str], bool]] = {
    "trackingNumber": _pattern_check(r"^[A-Z0-9]{8,}$", lambda v: re.sub(r"\s", "", v).upper()),
    "shipperCountry": validate_country,
    "recipientCountry": validate_country,
    "originCountry": validate_country,
    "hsTariffNumber": validate_hs_code,
    "shipDate": lambda value: normalize_ship_date(value) is not None,
    "eoriNumber": _pattern_check(r"^[A-Z]{2}[A-Z0-9]{1,15}$", lambda v: re.sub(r"\s", "", v).upper()),
}

# Fields too short by nature to flag as suspicious.
SHORT_VALUE_EXEMPT = {
    "shipperCountry", "recipientCountry", "originCountry", "currency", "quantity",
    "weight", "declaredValue", "packageType",
}

NAME_FIELDS = ("shipperName", "recipientName")


def required_fields() -> List[str]:
    return [key for key, spec in FIELD_SPECIFICATIONS.items() if spec.required]


class StructuralValidator:
    """Presence and format checks against FIELD_SPECIFICATIONS."""

    def __init__(self, specifications: Optional[Dict[str, FieldSpecification]] = None):
        self.specifications = specifications or FIELD_SPECIFICATIONS

    def validate(self, fields: Dict[str, str]) -> List[Finding]:
        """
        Validate canonical fields.

        Args:
            fields: Canonical field set

        Returns:
            One finding per specified field that is required or present,
            plus data quality findings
        """
        findings: List[Finding] = []

        for key, spec in self.specifications.items():
            value = field_value(fields, key)

            if not value:
                if spec.required:
                    findings.append(Finding(
                        field_key=key,
                        value="",
                        status=ComplianceStatus.NON_COMPLIANT,
                        message=f"Required field missing: {key}",
                        origin_detector=Detector.STRUCTURAL,
                    ))
                continue

            if self._is_valid(key, spec, value):
                findings.append(Finding(
                    field_key=key,
                    value=value,
                    status=ComplianceStatus.COMPLIANT,
                    message=f"{key} format is valid",
                    origin_detector=Detector.STRUCTURAL,
                ))
            else:
                status = ComplianceStatus.NON_COMPLIANT if spec.critical else ComplianceStatus.WARNING
                findings.append(Finding(
                    field_key=key,
                    value=value,
                    status=status,
                    message=f"{key} has invalid format: expected {spec.description}",
                    origin_detector=Detector.STRUCTURAL,
                ))

        findings.extend(self.check_data_quality(fields))
        logger.debug(f"Structural validation produced {len(findings)} findings")
        return findings

    def check_data_quality(self, fields: Dict[str, str]) -> List[Finding]:
        """Flag suspiciously short values and names that look like several values."""
        findings: List[Finding] = []

        for key, raw in fields.items():
            value = raw.strip() if isinstance(raw, str) else ""
            if not value or is_unknown_key(key):
                continue

            if key not in SHORT_VALUE_EXEMPT and len(value) < 3:
                findings.append(Finding(
                    field_key=key,
                    value=value,
                    status=ComplianceStatus.WARNING,
                    message=f"{key} value is suspiciously short",
                    origin_detector=Detector.STRUCTURAL,
                ))

            if key in NAME_FIELDS and "," in value:
                findings.append(Finding(
                    field_key=key,
                    value=value,
                    status=ComplianceStatus.WARNING,
                    message=f"{key} may contain multiple values",
                    origin_detector=Detector.STRUCTURAL,
                ))

        return findings

    def _is_valid(self, key: str, spec: FieldSpecification, value: str) -> bool:
        check = _FORMAT_CHECKS.get(key)
        if check is not None:
            return check(value)
        if spec.pattern:
            return bool(re.match(spec.pattern, value, re.IGNORECASE))
        return True

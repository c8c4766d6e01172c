# WORKFLOW: Destination country resolution against embargo/sanction/documentation profiles.
# Used by: CompliancePipeline.evaluate(), ContentRestrictionScanner (country-specific terms)
# Functions:
# 1. find_destination() - First non-empty destination-like field
# 2. match_profile() - Exact code -> name alias -> profile alias -> name containment -> group membership
# 3. resolve() - Restriction finding, missing document warnings, insurance advice
# 4. destination_code() - Resolved ISO code for downstream detectors
#
# Resolution flow: Fields -> Destination value -> CountryProfile -> Findings
# No destination (or no matching profile) produces no finding.

import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from compliance.models import (
    ComplianceStatus,
    CountryProfile,
    Detector,
    Finding,
    RestrictionType,
    field_value,
)
from compliance.reference_data import COUNTRY_CODE_EQUIVALENTS, country_code_for, normalize_key

logger = logging.getLogger(__name__)

DESTINATION_FIELDS = ("recipientCountry", "destinationCountry")
DESTINATION_KEY_HINTS = ("recipientcountry", "destinationcountry", "deliverycountry", "shiptocountry")
ORIGIN_FIELDS = ("shipperCountry", "originCountry")

_RESTRICTION_STATUS = {
    RestrictionType.EMBARGOED: ComplianceStatus.NON_COMPLIANT,
    RestrictionType.SANCTIONED: ComplianceStatus.NON_COMPLIANT,
    RestrictionType.CONTROLLED: ComplianceStatus.WARNING,
    RestrictionType.NONE: ComplianceStatus.COMPLIANT,
}


def _equivalent(code: str) -> str:
    code = code.strip().upper()
    return COUNTRY_CODE_EQUIVALENTS.get(code, code)


class DestinationProfileResolver:
    """Resolve the shipment destination and apply its country profile."""

    def __init__(self, high_value_threshold: float = 1000.0):
        self.high_value_threshold = high_value_threshold

    def find_destination(self, fields: Dict[str, str]) -> Optional[Tuple[str, str]]:
        """Return (field_key, value) of the first non-empty destination-like field."""
        for key in DESTINATION_FIELDS:
            value = field_value(fields, key)
            if value:
                return key, value

        for key, value in fields.items():
            raw = key.split(":", 1)[1] if key.startswith("unknown:") else key
            if any(hint in normalize_key(raw) for hint in DESTINATION_KEY_HINTS):
                if isinstance(value, str) and value.strip():
                    return key, value.strip()
        return None

    def match_profile(self, value: str, profiles: Iterable[CountryProfile]) -> Optional[CountryProfile]:
        """
        Find the country profile for a destination value.

        Args:
            value: Destination code or name as written on the record
            profiles: Country profiles from the active snapshot

        Returns:
            Matching profile, or None
        """
        profiles = list(profiles)
        lowered = value.strip().lower()
        code = country_code_for(value)

        if code:
            for profile in profiles:
                if _equivalent(profile.country_code) == _equivalent(code):
                    return profile

        for profile in profiles:
            if lowered == profile.country_name.lower() or lowered in (a.lower() for a in profile.aliases):
                return profile

        for profile in profiles:
            names = [profile.country_name] + list(profile.aliases)
            for name in names:
                if len(name) >= 4 and re.search(rf"\b{re.escape(name.lower())}\b", lowered):
                    return profile

        if code:
            for profile in profiles:
                if _equivalent(code) in {_equivalent(member) for member in profile.member_codes}:
                    return profile
        return None

    def destination_code(self, fields: Dict[str, str], profiles: Iterable[CountryProfile]) -> Optional[str]:
        destination = self.find_destination(fields)
        if destination is None:
            return None
        code = country_code_for(destination[1])
        if code:
            return _equivalent(code)
        profile = self.match_profile(destination[1], profiles)
        return profile.country_code if profile else None

    def resolve(self, fields: Dict[str, str], profiles: Iterable[CountryProfile]) -> List[Finding]:
        """
        Evaluate the destination against the country profiles.

        Args:
            fields: Canonical field set
            profiles: Country profiles from the active snapshot

        Returns:
            Restriction finding plus one warning per missing required document field
        """
        destination = self.find_destination(fields)
        if destination is None:
            return []

        field_key, value = destination
        profile = self.match_profile(value, profiles)
        if profile is None:
            logger.debug(f"No country profile for destination '{value}'")
            return []

        findings = [self._restriction_finding(field_key, value, profile)]

        for doc_field in profile.required_doc_fields:
            if not field_value(fields, doc_field):
                findings.append(Finding(
                    field_key=doc_field,
                    value="",
                    status=ComplianceStatus.WARNING,
                    message=f"{doc_field} is required for shipments to {profile.country_name}",
                    origin_detector=Detector.DESTINATION_RESOLVER,
                ))

        insurance = self._insurance_finding(fields, value)
        if insurance is not None:
            findings.append(insurance)

        return findings

    def _restriction_finding(self, field_key: str, value: str, profile: CountryProfile) -> Finding:
        status = _RESTRICTION_STATUS[profile.restriction_type]
        if profile.restriction_type == RestrictionType.NONE:
            message = f"Destination {profile.country_name} has no shipping restrictions"
        else:
            message = f"Destination {profile.country_name} is {profile.restriction_type.value}"
            if profile.notes:
                message = f"{message}: {profile.notes}"

        return Finding(
            field_key=field_key,
            value=value,
            status=status,
            message=message,
            origin_detector=Detector.DESTINATION_RESOLVER,
        )

    def _insurance_finding(self, fields: Dict[str, str], destination: str) -> Optional[Finding]:
        declared = field_value(fields, "declaredValue")
        if not declared:
            return None
        match = re.search(r"\d+(?:\.\d+)?", declared.replace(",", ""))
        if not match or float(match.group()) <= self.high_value_threshold:
            return None

        origin = next((field_value(fields, key) for key in ORIGIN_FIELDS if field_value(fields, key)), "")
        origin_code = country_code_for(origin)
        destination_code = country_code_for(destination)
        if not origin_code or not destination_code or _equivalent(origin_code) == _equivalent(destination_code):
            return None

        return Finding(
            field_key="declaredValue",
            value=declared,
            status=ComplianceStatus.WARNING,
            message=(
                f"High-value international shipment (over {self.high_value_threshold:g}); "
                "consider insurance"
            ),
            origin_detector=Detector.DESTINATION_RESOLVER,
        )

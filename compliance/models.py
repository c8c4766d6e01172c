# WORKFLOW: Pydantic data model for the compliance engine.
# Used by: All compliance modules, rule repository, API schemas, CSV batch ingestion
# Models include:
# 1. RawRecord/RecordMetadata - Immutable input record (scan, batch-row, manual)
# 2. NormalizationResult - Canonical field set plus unresolved raw keys
# 3. RuleDefinition/RuleConstraint - Repository rule definitions
# 4. CountryProfile/RestrictedContentTerm - Destination and content rule data
# 5. RuleSnapshot - Immutable bundle of the active rule data
# 6. Finding - One content-addressed compliance observation
# 7. ReconciledResult/ComplianceStats/EvaluationReport - Evaluation outputs
#
# Identity flow: (field key, value, detector) -> normalize -> sha1 -> Finding.id
# Findings for the same logical issue always hash to the same id.

import hashlib
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from compliance.exceptions import UnknownSourceError
from compliance.reference_data import canonical_for, default_alias_table, is_unknown_key, normalize_key


class SourceType(str, Enum):
    SCAN = "scan"
    BATCH_ROW = "batch-row"
    MANUAL = "manual"


SOURCE_ALIASES = {
    "vision": SourceType.SCAN,
    "ocr": SourceType.SCAN,
    "csv": SourceType.BATCH_ROW,
    "batch_row": SourceType.BATCH_ROW,
}


def parse_source(value: Any) -> SourceType:
    """
    Resolve a source tag to a SourceType.

    Raises:
        UnknownSourceError: If the tag is not a recognized source
    """
    if isinstance(value, SourceType):
        return value
    if isinstance(value, str):
        tag = value.strip().lower()
        if tag in SOURCE_ALIASES:
            return SOURCE_ALIASES[tag]
        try:
            return SourceType(tag)
        except ValueError:
            pass
    raise UnknownSourceError(value)


class ComplianceStatus(str, Enum):
    COMPLIANT = "compliant"
    WARNING = "warning"
    NON_COMPLIANT = "non-compliant"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    ComplianceStatus.COMPLIANT: 0,
    ComplianceStatus.WARNING: 1,
    ComplianceStatus.NON_COMPLIANT: 2,
}


class Detector(str, Enum):
    STRUCTURAL = "structural"
    RULE_REPOSITORY = "rule_repository"
    CONTENT_SCANNER = "content_scanner"
    DESTINATION_RESOLVER = "destination_resolver"
    ADVISORY = "advisory"

    @property
    def specificity(self) -> int:
        return _SPECIFICITY[self]


# Content and destination detectors outrank generic structural checks.
_SPECIFICITY = {
    Detector.STRUCTURAL: 0,
    Detector.RULE_REPOSITORY: 1,
    Detector.ADVISORY: 2,
    Detector.CONTENT_SCANNER: 3,
    Detector.DESTINATION_RESOLVER: 3,
}


class ConstraintType(str, Enum):
    MIN = "min"
    MAX = "max"
    EQUAL = "equal"
    PATTERN = "pattern"
    CUSTOM = "custom"


class RestrictionType(str, Enum):
    NONE = "none"
    CONTROLLED = "controlled"
    SANCTIONED = "sanctioned"
    EMBARGOED = "embargoed"


class ContentTier(str, Enum):
    PROHIBITED = "prohibited"
    RESTRICTED = "restricted"


# --- Identity helpers ---------------------------------------------------------

_alias_table = default_alias_table()
_WHITESPACE = re.compile(r"\s+")


def normalize_field_key(key: str) -> str:
    """Map a detector's field key onto the canonical vocabulary, else its separator-free form."""
    if is_unknown_key(key):
        return key
    canonical = canonical_for(key) or _alias_table.lookup(key)
    return canonical or normalize_key(key)


def normalize_value(value: Any) -> str:
    """Lowercase, collapse whitespace and strip surrounding punctuation."""
    if value is None:
        return ""
    text = _WHITESPACE.sub(" ", str(value)).strip().lower()
    return text.strip(" .,;:!?'\"()[]{}")


def finding_id(field_key: str, value: Any, origin_detector: Union["Detector", str]) -> str:
    detector = origin_detector.value if isinstance(origin_detector, Detector) else str(origin_detector)
    material = f"{normalize_field_key(field_key)}|{normalize_value(value)}|{detector}"
    return hashlib.sha1(material.encode("utf-8")).hexdigest()[:16]


def field_value(fields: Dict[str, str], key: str) -> str:
    """Stripped value of a field, or '' when missing."""
    value = fields.get(key)
    return value.strip() if isinstance(value, str) else ""


# --- Input records ------------------------------------------------------------

class RecordMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    filename: Optional[str] = None
    row_index: Optional[int] = None


class RawRecord(BaseModel):
    """Shipment record as received. Content is either label text or a key/value map."""

    model_config = ConfigDict(frozen=True)

    source: SourceType
    content: Any = ""
    metadata: RecordMetadata = Field(default_factory=RecordMetadata)

    @field_validator("source", mode="before")
    @classmethod
    def _parse_source(cls, value):
        return parse_source(value)


def build_record(source: Any, content: Any, **metadata) -> RawRecord:
    """Build a RawRecord, raising UnknownSourceError (not a pydantic error) for bad sources."""
    return RawRecord(source=parse_source(source), content=content, metadata=RecordMetadata(**metadata))


class NormalizationResult(BaseModel):
    fields: Dict[str, str] = Field(default_factory=dict)
    unresolved_keys: List[str] = Field(default_factory=list)
    raw_text: Optional[str] = None
    is_structured: bool = False


# --- Rule data ----------------------------------------------------------------

class RuleConstraint(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ConstraintType
    value: Any = None


class RuleDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    field_key: str
    category: str = "general"
    required: bool = False
    constraint: Optional[RuleConstraint] = None
    severity_on_violation: ComplianceStatus = ComplianceStatus.WARNING
    message: str = ""
    version: str = "1"

    @field_validator("severity_on_violation")
    @classmethod
    def _violation_is_not_compliant(cls, value):
        if value == ComplianceStatus.COMPLIANT:
            raise ValueError("severity_on_violation must be warning or non-compliant")
        return value


class CountryProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    country_code: str
    country_name: str
    restriction_type: RestrictionType = RestrictionType.NONE
    required_doc_fields: Tuple[str, ...] = ()
    notes: str = ""
    aliases: Tuple[str, ...] = ()
    member_codes: Tuple[str, ...] = ()

    @field_validator("country_code")
    @classmethod
    def _upper_code(cls, value):
        return value.strip().upper()


class RestrictedContentTerm(BaseModel):
    model_config = ConfigDict(frozen=True)

    term: str
    tier: ContentTier
    message: str = ""
    applies_to: Tuple[str, ...] = ()

    @field_validator("term")
    @classmethod
    def _lower_term(cls, value):
        return value.strip().lower()

    @property
    def severity(self) -> ComplianceStatus:
        if self.tier == ContentTier.PROHIBITED:
            return ComplianceStatus.NON_COMPLIANT
        return ComplianceStatus.WARNING


class RuleSnapshot(BaseModel):
    """Immutable view of the active rule data. Refresh builds a new snapshot."""

    model_config = ConfigDict(frozen=True)

    version: str = "empty"
    rules: Tuple[RuleDefinition, ...] = ()
    country_profiles: Tuple[CountryProfile, ...] = ()
    restricted_terms: Tuple[RestrictedContentTerm, ...] = ()
    loaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# --- Findings and results -----------------------------------------------------

class Finding(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    field_key: str
    value: str = ""
    status: ComplianceStatus
    message: str
    origin_detector: Detector
    floor: bool = False
    matched_term: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _content_address(cls, data):
        if isinstance(data, dict) and not data.get("id"):
            data = dict(data)
            data["id"] = finding_id(
                data.get("field_key", ""), data.get("value", ""), data.get("origin_detector", "")
            )
        return data

    @property
    def group_key(self) -> Tuple[str, str]:
        return normalize_field_key(self.field_key), normalize_value(self.value)


class ReconciledResult(BaseModel):
    findings: List[Finding] = Field(default_factory=list)
    source: SourceType = SourceType.MANUAL
    base_confidence: float = 0.5
    fields: Dict[str, str] = Field(default_factory=dict)
    unresolved_keys: List[str] = Field(default_factory=list)
    unruled_fields: List[str] = Field(default_factory=list)
    snapshot_version: str = "empty"
    refreshed: bool = False
    advisory_applied: bool = False


class ComplianceStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int
    compliant: int
    warning: int
    non_compliant: int
    compliance_rate: float
    confidence_score: float


class EvaluationReport(BaseModel):
    result: ReconciledResult
    stats: ComplianceStats
    filename: Optional[str] = None
    row_index: Optional[int] = None

    @property
    def has_non_compliant(self) -> bool:
        return self.stats.non_compliant > 0

    @property
    def has_warnings(self) -> bool:
        return self.stats.warning > 0

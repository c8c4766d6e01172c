# WORKFLOW: Field normalizer mapping heterogeneous shipment keys onto canonical fields.
# Used by: CompliancePipeline.evaluate(), CSV batch ingestion, tests
# Functions:
# 1. normalize() - RawRecord -> NormalizationResult (pure, never raises on content)
# 2. normalize_fields() - Key/value map -> NormalizationResult
# 3. resolve_key() - Cascading raw key resolution
# 4. extract_free_text() - Regex extraction from unstructured label text
# 5. parse_content() - Detect JSON / key-value lines / CSV / free text
#
# Resolution cascade (first match wins):
# exact canonical -> alias table -> case-insensitive canonical -> contained alias -> free-text patterns
# Conflicting populated values keep the first one; the later key is recorded as unresolved.

import io
import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from compliance.models import NormalizationResult, RawRecord, SourceType
from compliance.reference_data import (
    CANONICAL_FIELDS,
    FREE_TEXT_PATTERNS,
    FieldAliasTable,
    canonical_for,
    default_alias_table,
    is_unknown_key,
    unknown_key,
)

logger = logging.getLogger(__name__)

_KEY_VALUE_LINE = re.compile(r"^\s*([^:\r\n]{1,40}?)\s*:\s*(.*?)\s*$")


class FieldNormalizer:
    """Resolve raw record keys to the canonical field vocabulary."""

    def __init__(self, alias_table: Optional[FieldAliasTable] = None):
        self.alias_table = alias_table or default_alias_table()
        self._patterns = {
            field: [re.compile(pattern, re.IGNORECASE) for pattern in patterns]
            for field, patterns in FREE_TEXT_PATTERNS.items()
        }

    def normalize(self, record: RawRecord) -> NormalizationResult:
        """
        Normalize a raw record into a canonical field set.

        Args:
            record: Incoming shipment record

        Returns:
            NormalizationResult with canonical fields and unresolved keys
        """
        content = record.content

        if isinstance(content, dict):
            return self.normalize_fields(content)

        if isinstance(content, str):
            parsed, raw_text = self.parse_content(content, record.source)
            if parsed is not None:
                result = self.normalize_fields(parsed)
                return result.model_copy(update={"raw_text": raw_text})
            return self.extract_free_text(content)

        logger.warning(f"Unparseable record content of type {type(content).__name__}")
        return NormalizationResult(unresolved_keys=_visible_keys(content), is_structured=False)

    def normalize_fields(self, raw: Dict[Any, Any]) -> NormalizationResult:
        """Resolve every key of a structured record."""
        fields: Dict[str, str] = {}
        unresolved: List[str] = []

        for raw_key, raw_value in raw.items():
            key = str(raw_key)
            value = _clean_value(raw_value)

            if is_unknown_key(key):
                fields.setdefault(key, value)
                unresolved.append(key[len("unknown:"):])
                continue

            canonical = self.resolve_key(key)
            if canonical is None:
                fields.setdefault(unknown_key(key), value)
                unresolved.append(key)
                continue

            existing = fields.get(canonical)
            if existing is None or not existing.strip():
                fields[canonical] = value
            elif value and value != existing:
                logger.debug(f"Conflicting values for {canonical}: keeping first, '{key}' recorded")
                unresolved.append(f"conflict:{key}->{canonical}")

        return NormalizationResult(fields=fields, unresolved_keys=unresolved, is_structured=True)

    def resolve_key(self, raw_key: str) -> Optional[str]:
        """
        Resolve a raw key through the cascade.

        Args:
            raw_key: Field name as received

        Returns:
            Canonical field name, or None if unresolved
        """
        if raw_key in CANONICAL_FIELDS:
            return raw_key

        aliased = self.alias_table.lookup(raw_key)
        if aliased:
            return aliased

        canonical = canonical_for(raw_key)
        if canonical:
            return canonical

        return self.alias_table.find_contained(raw_key)

    def extract_free_text(self, text: str) -> NormalizationResult:
        """Pull candidate values out of unstructured label text."""
        fields: Dict[str, str] = {}
        padded = text + "\n"

        for field, patterns in self._patterns.items():
            for pattern in patterns:
                match = pattern.search(padded)
                if match and match.group(1).strip():
                    fields[field] = match.group(1).strip()
                    break

        logger.info(f"Free-text extraction resolved {len(fields)} fields")
        return NormalizationResult(fields=fields, raw_text=text, is_structured=False)

    def parse_content(self, content: str, source: SourceType) -> Tuple[Optional[Dict[str, Any]], str]:
        """
        Detect structure in string content.

        Returns:
            Tuple of (parsed key/value map or None for free text, original text)
        """
        stripped = content.strip()
        if not stripped:
            return None, content

        if stripped.startswith("{"):
            try:
                data = json.loads(stripped)
                if isinstance(data, dict):
                    return data, content
            except ValueError:
                logger.debug("Content looks like JSON but failed to parse")

        if source == SourceType.BATCH_ROW:
            row = _parse_csv_row(stripped)
            if row is not None:
                return row, content

        lines = [line for line in stripped.splitlines() if line.strip()]
        pairs = [_KEY_VALUE_LINE.match(line) for line in lines]
        if lines and all(pairs):
            return {match.group(1): match.group(2) for match in pairs}, content

        return None, content


def _clean_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value != value:  # NaN from pandas
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value).strip()


def _parse_csv_row(text: str) -> Optional[Dict[str, str]]:
    """Parse 'header\\nvalues' CSV text for a single batch row."""
    if "\n" not in text or "," not in text.splitlines()[0]:
        return None
    try:
        frame = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False, nrows=1)
    except Exception as e:
        logger.debug(f"Batch-row content is not CSV: {e}")
        return None
    if frame.empty:
        return None
    return {str(column): frame.iloc[0][column] for column in frame.columns}


def _visible_keys(content: Any) -> List[str]:
    """Raw keys recoverable from malformed content (dict-like items in a list)."""
    keys: List[str] = []
    if isinstance(content, (list, tuple)):
        for item in content:
            if isinstance(item, dict):
                keys.extend(str(key) for key in item.keys())
            elif isinstance(item, (list, tuple)) and len(item) == 2:
                keys.append(str(item[0]))
    return keys


# Default normalizer for module-level use
field_normalizer = FieldNormalizer()


def normalize(record: RawRecord) -> NormalizationResult:
    """Convenience function to normalize a record with the default alias table."""
    return field_normalizer.normalize(record)

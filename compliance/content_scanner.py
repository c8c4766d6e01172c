# WORKFLOW: Keyword scan of content-bearing fields for prohibited and restricted goods.
# Used by: CompliancePipeline.evaluate()
# Functions:
# 1. content_fields() - Select packageContents and keys matching the content-keyword heuristic
# 2. build_corpus() - Lowercase corpus with repeated values removed
# 3. scan() - Tier A (prohibited) and Tier B (restricted) term matching
#
# Scan flow: Canonical fields -> Content fields -> Corpus -> Tier A terms -> Tier B terms -> Findings
# Tier A matches are literal substrings with no negation handling and carry the hard floor.
# Key-name heuristic: a field named e.g. "misc" is never scanned (known recall gap).

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from compliance.models import (
    ComplianceStatus,
    ContentTier,
    Detector,
    Finding,
    RestrictedContentTerm,
)
from compliance.reference_data import CONTENT_KEY_KEYWORDS, NON_CONTENT_KEY_KEYWORDS, normalize_key

logger = logging.getLogger(__name__)

PRIMARY_CONTENT_FIELD = "packageContents"
CORPUS_PREVIEW_LENGTH = 200


class ContentRestrictionScanner:
    """Literal substring scanner over a tiered restricted-term list."""

    def content_fields(self, fields: Dict[str, str]) -> List[Tuple[str, str]]:
        """
        Select content-bearing fields in field order, packageContents first.

        Args:
            fields: Canonical field set (unknown passthrough keys included)

        Returns:
            List of (field_key, value) pairs with non-empty values
        """
        selected = []
        primary = fields.get(PRIMARY_CONTENT_FIELD, "")
        if isinstance(primary, str) and primary.strip():
            selected.append((PRIMARY_CONTENT_FIELD, primary.strip()))

        for key, value in fields.items():
            if key == PRIMARY_CONTENT_FIELD or not isinstance(value, str) or not value.strip():
                continue
            if _is_content_key(key):
                selected.append((key, value.strip()))
        return selected

    def build_corpus(self, contents: Iterable[Tuple[str, str]]) -> str:
        """Join content values, skipping any value already contained in the corpus."""
        corpus = ""
        for _, value in contents:
            lowered = value.lower()
            if lowered in corpus:
                continue
            corpus = f"{corpus} {lowered}".strip()
        return corpus

    def scan(
        self,
        fields: Dict[str, str],
        terms: Iterable[RestrictedContentTerm],
        destination_code: Optional[str] = None,
    ) -> List[Finding]:
        """
        Scan content fields against restricted terms.

        Args:
            fields: Canonical field set
            terms: Restricted content terms from the active snapshot
            destination_code: Resolved destination country, for country-specific terms

        Returns:
            One finding per matched (tier, term), or a single "content verified"
            finding when content exists and nothing matched
        """
        contents = self.content_fields(fields)
        if not contents:
            return []

        corpus = self.build_corpus(contents)
        findings: List[Finding] = []
        matched_prohibited: List[str] = []
        seen = set()

        applicable = [term for term in terms if _applies(term, destination_code)]
        tiers = (ContentTier.PROHIBITED, ContentTier.RESTRICTED)

        for tier in tiers:
            for term in (t for t in applicable if t.tier == tier):
                if (tier, term.term) in seen or not term.term:
                    continue
                if tier == ContentTier.RESTRICTED and any(term.term in hit for hit in matched_prohibited):
                    continue

                if term.term not in corpus:
                    continue
                location = _locate(term.term, contents) or contents[0]

                seen.add((tier, term.term))
                field_key, value = location
                prohibited = tier == ContentTier.PROHIBITED
                if prohibited:
                    matched_prohibited.append(term.term)

                label = "Prohibited item detected" if prohibited else "Restricted item detected"
                message = f"{label}: '{term.term}'"
                if term.message:
                    message = f"{message}. {term.message}"

                findings.append(Finding(
                    field_key=field_key,
                    value=value,
                    status=term.severity,
                    message=message,
                    origin_detector=Detector.CONTENT_SCANNER,
                    floor=prohibited,
                    matched_term=term.term,
                ))

        if findings:
            logger.info(f"Content scan matched {len(findings)} restricted terms")
            return findings

        field_key, value = contents[0]
        return [Finding(
            field_key=field_key,
            value=value,
            status=ComplianceStatus.COMPLIANT,
            message=f"Package contents verified: no restricted items found in '{corpus[:CORPUS_PREVIEW_LENGTH]}'",
            origin_detector=Detector.CONTENT_SCANNER,
        )]


def _is_content_key(key: str) -> bool:
    raw = key.split(":", 1)[1] if key.startswith("unknown:") else key
    normalized = normalize_key(raw)
    if any(word in normalized for word in NON_CONTENT_KEY_KEYWORDS):
        return False
    return any(word in normalized for word in CONTENT_KEY_KEYWORDS)


def _applies(term: RestrictedContentTerm, destination_code: Optional[str]) -> bool:
    if not term.applies_to:
        return True
    return destination_code is not None and destination_code.upper() in {c.upper() for c in term.applies_to}


def _locate(term: str, contents: List[Tuple[str, str]]) -> Optional[Tuple[str, str]]:
    for key, value in contents:
        if term in value.lower():
            return key, value
    return None


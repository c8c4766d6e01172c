# WORKFLOW: Optional advisory classifier with a deterministic fallback.
# Used by: CompliancePipeline.evaluate_async(), /evaluate endpoint
# Functions:
# 1. OllamaAdvisoryClassifier.classify() - Ask the LLM for extra findings (async client, JSON, schema-checked)
# 2. AdvisoryClassifierAdapter.advise() - Timeout, error absorption, hard-floor guard
# 3. apply_floor_guard() - Drop advisory findings that would soften a prohibited-content match
# 4. create_advisory_adapter() - Factory honouring settings.advisory_enabled
#
# Advisory flow: Deterministic findings -> LLM prompt -> JSON -> Schema validation -> Floor guard -> Merge
# Failure flow: Timeout / network / malformed payload -> logged degraded mode -> no advisory findings
# A timeout cancels the in-flight HTTP request; nothing keeps running after advise() returns.
# The deterministic findings are complete before this runs; advisory output is strictly additive.

import asyncio
import json
import logging
from typing import Dict, List, Optional

import ollama
from pydantic import BaseModel, Field

from api.schemas.validation import validate_advisory_payload
from compliance.models import (
    ComplianceStatus,
    Detector,
    Finding,
    normalize_value,
)
from core.config import settings

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """
You review shipment records for customs compliance issues that keyword rules miss,
such as euphemistic descriptions of restricted goods.

Shipment fields:
{fields}

Findings already produced by deterministic checks:
{findings}

Return ONLY a JSON object of the form
{{"findings": [{{"field_key": "...", "value": "...", "status": "compliant|warning|non-compliant", "message": "..."}}]}}
Use an empty list when you have nothing to add. Do not restate existing findings.
"""


class AdvisoryOutcome(BaseModel):
    applied: bool = False
    findings: List[Finding] = Field(default_factory=list)
    error: Optional[str] = None


class AdvisoryClassifier:
    """Interface for external semantic classifiers."""

    async def classify(self, fields: Dict[str, str], prior_findings: List[Finding]) -> List[Finding]:
        raise NotImplementedError


class OllamaAdvisoryClassifier(AdvisoryClassifier):
    """Advisory classifier backed by a local Ollama model."""

    def __init__(self, client=None, model: Optional[str] = None):
        self.client = client or ollama.AsyncClient(
            host=settings.ollama_url,
            timeout=settings.advisory_timeout_seconds,
        )
        self.model = model or settings.llm_model

    async def classify(self, fields: Dict[str, str], prior_findings: List[Finding]) -> List[Finding]:
        """
        Classify a shipment record.

        Args:
            fields: Canonical field set
            prior_findings: Reconciled deterministic findings

        Returns:
            Advisory findings

        Raises:
            Any transport, decoding or schema error; the adapter absorbs them
        """
        prompt = self._build_prompt(fields, prior_findings)
        response = await self._call_llm(prompt)
        payload = json.loads(response['response'])
        validate_advisory_payload(payload)

        return [
            Finding(
                field_key=item["field_key"],
                value=item.get("value", ""),
                status=ComplianceStatus(item["status"]),
                message=f"Advisory: {item['message']}",
                origin_detector=Detector.ADVISORY,
            )
            for item in payload["findings"]
        ]

    def _build_prompt(self, fields: Dict[str, str], prior_findings: List[Finding]) -> str:
        field_lines = "\n".join(f"- {key}: {value}" for key, value in fields.items() if value)
        finding_lines = "\n".join(
            f"- [{finding.status.value}] {finding.field_key}: {finding.message}" for finding in prior_findings
        )
        return PROMPT_TEMPLATE.format(fields=field_lines or "(none)", findings=finding_lines or "(none)")

    async def _call_llm(self, prompt: str):
        return await self.client.generate(
            model=self.model,
            prompt=prompt,
            format="json",
            options={
                "temperature": 0.0,  # Deterministic output for repeatable reviews
                "num_predict": 800,
            },
        )


def apply_floor_guard(advisory: List[Finding], prior_findings: List[Finding]) -> List[Finding]:
    """
    Drop advisory findings that disagree with a prohibited-content match.

    An advisory finding is dropped when it is less severe than a floor finding
    and its value overlaps the floor finding's value or matched term.
    """
    floors = [finding for finding in prior_findings if finding.floor]
    kept = []
    for finding in advisory:
        value = normalize_value(finding.value)
        softened = False
        for floor in floors:
            if finding.status.severity >= floor.status.severity:
                continue
            floor_value = normalize_value(floor.value)
            overlaps = (
                value == floor_value
                or (value and (value in floor_value or floor_value in value))
                or (floor.matched_term and floor.matched_term in value)
            )
            if overlaps:
                softened = True
                break
        if softened:
            logger.warning(f"Advisory finding on {finding.field_key}='{finding.value}' ignored: prohibited item floor")
            continue
        kept.append(finding)
    return kept


class AdvisoryClassifierAdapter:
    """Bounded, failure-absorbing wrapper around an AdvisoryClassifier."""

    def __init__(
        self,
        classifier: Optional[AdvisoryClassifier] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.classifier = classifier
        self.timeout_seconds = timeout_seconds or settings.advisory_timeout_seconds

    @property
    def enabled(self) -> bool:
        return self.classifier is not None

    async def advise(self, fields: Dict[str, str], prior_findings: List[Finding]) -> AdvisoryOutcome:
        """
        Run the classifier with a timeout.

        Args:
            fields: Canonical field set
            prior_findings: Reconciled deterministic findings

        Returns:
            AdvisoryOutcome; applied=False on any failure or when disabled
        """
        if self.classifier is None:
            return AdvisoryOutcome(applied=False)

        try:
            findings = await asyncio.wait_for(
                self.classifier.classify(fields, prior_findings),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Advisory classifier timed out after {self.timeout_seconds}s; degraded mode")
            return AdvisoryOutcome(applied=False, error="timeout")
        except Exception as e:
            logger.warning(f"Advisory classifier unavailable; degraded mode: {e}")
            return AdvisoryOutcome(applied=False, error=str(e) or type(e).__name__)

        # Advisory findings never carry a floor
        advisory = [
            Finding(
                field_key=finding.field_key,
                value=finding.value,
                status=finding.status,
                message=finding.message,
                origin_detector=Detector.ADVISORY,
            )
            for finding in findings
        ]
        return AdvisoryOutcome(applied=True, findings=apply_floor_guard(advisory, prior_findings))


# Factory function
def create_advisory_adapter() -> AdvisoryClassifierAdapter:
    """Create the advisory adapter; a disabled adapter when advisory review is switched off."""
    if not settings.advisory_enabled:
        return AdvisoryClassifierAdapter()
    return AdvisoryClassifierAdapter(OllamaAdvisoryClassifier())

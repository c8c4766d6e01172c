# WORKFLOW: JSON Schema validation module (gate for external classifier payloads).
# Used by: Advisory classifier service, testing
# Functions:
# 1. SchemaValidator.validate_payload() - Validate a dictionary against a JSON schema (raises)
# 2. validate_advisory_payload() - Convenience wrapper for advisory classifier payloads
#
# Validation flow: LLM response -> JSON decode -> Schema validation -> Pass/Fail
# Advisory findings never reach the reconciler without passing this gate.

import json
import jsonschema
from pathlib import Path
from typing import Dict, Any
import logging

logger = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).parent.parent.parent / "schema"


class SchemaValidator:
    """JSON Schema validator for one schema file under schema/."""

    def __init__(self, schema_name: str):
        self.schema_path = SCHEMA_DIR / schema_name
        self.schema = self._load_schema()

    def _load_schema(self) -> Dict[str, Any]:
        """Load the JSON schema from file."""
        try:
            with open(self.schema_path, 'r') as f:
                return json.load(f)
        except Exception as e:
            logger.error(f"Failed to load JSON schema {self.schema_path}: {e}")
            raise

    def validate_payload(self, payload: Dict[str, Any]) -> bool:
        """
        Validate payload against the JSON schema.

        Args:
            payload: Decoded payload to validate

        Returns:
            True if valid, raises ValidationError if invalid
        """
        try:
            jsonschema.validate(instance=payload, schema=self.schema)
            return True
        except jsonschema.ValidationError as e:
            logger.warning(f"Schema validation failed: {e.message}")
            raise


# Global validator instance
advisory_validator = SchemaValidator("advisory_findings.schema.json")


def validate_advisory_payload(payload: Dict[str, Any]) -> bool:
    """
    Convenience function to validate an advisory classifier payload.

    Args:
        payload: Decoded classifier payload

    Returns:
        True if valid, raises ValidationError if invalid
    """
    return advisory_validator.validate_payload(payload)

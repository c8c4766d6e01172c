# WORKFLOW: Pydantic request schemas for API input validation.
# Used by: FastAPI endpoints for request validation and documentation
# Schemas include:
# 1. EvaluateRequest - For /evaluate endpoint
# 2. BatchEvaluateRequest - For /evaluate/batch endpoint
#
# Validation flow: HTTP request -> Pydantic validation -> Endpoint processing
# The source tag is checked by RawRecord so unknown tags fail with 422.

from pydantic import BaseModel, Field
from typing import Any, Optional


class EvaluateRequest(BaseModel):
    """Request schema for single record evaluation."""
    source: str = Field(..., description="Source tag: scan, batch-row or manual")
    content: Any = Field("", description="Field mapping, JSON/CSV/free text, or nested structure")
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0, description="Ingestion confidence")
    filename: Optional[str] = Field(None, description="Originating file name")
    use_advisory: bool = Field(True, description="Run the advisory classifier when it is enabled")


class BatchEvaluateRequest(BaseModel):
    """Request schema for CSV batch evaluation."""
    csv_text: str = Field(..., description="CSV document with a header row")
    filename: Optional[str] = Field(None, description="Name recorded on every row")
    use_advisory: bool = Field(False, description="Run the advisory classifier per row")

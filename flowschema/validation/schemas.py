"""Validation API schemas."""

from typing import Any, Dict, List

from pydantic import BaseModel, Field


class FixWorkflowResponse(BaseModel):
    """Outcome of applying the experimental fixes to a workflow."""
    workflow: Any = Field(..., description="Fixed workflow document")
    fixed: bool = Field(..., description="Whether any fix changed the workflow")
    warnings: List[str] = Field(default_factory=list, description="Description of each change")
    validation: Dict[str, Any] = Field(..., description="Validation result of the fixed workflow")

"""Validation API routes."""

import json
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from flowschema.exceptions import ValidationError
from flowschema.metrics import record_validation
from flowschema.nodes.dependencies import get_node_validator, get_workflow_validator
from flowschema.schema.common import common_types, workflow_json_schema
from flowschema.validation.fixer import apply_experimental_fixes
from flowschema.validation.node import NodeValidator
from flowschema.validation.schemas import FixWorkflowResponse
from flowschema.validation.workflow import WorkflowValidator

router = APIRouter(prefix="/api/v1", tags=["Validation"])


class InvalidJSONBody(ValidationError):
    """Raised when a request body is not valid JSON."""

    def __init__(self, details: str):
        super().__init__(details)
        self.details = details


async def _read_json(request: Request) -> Any:
    body = await request.body()
    try:
        return json.loads(body)
    except ValueError as e:
        raise InvalidJSONBody(str(e))


async def invalid_json_handler(request: Request, exc: InvalidJSONBody) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Invalid JSON", "details": exc.details})


@router.post("/validate/node")
async def validate_node(
    request: Request,
    validator: NodeValidator = Depends(get_node_validator),
) -> Dict[str, Any]:
    """Validate a single node instance."""
    node = await _read_json(request)
    result = validator.validate(node)
    record_validation("node", result)
    return result.to_response()


@router.post("/validate/workflow")
async def validate_workflow(
    request: Request,
    validator: WorkflowValidator = Depends(get_workflow_validator),
) -> Dict[str, Any]:
    """Validate a workflow document."""
    workflow = await _read_json(request)
    result = validator.validate(workflow)
    record_validation("workflow", result)
    return result.to_response()


@router.post("/fix/workflow", response_model=FixWorkflowResponse)
async def fix_workflow(
    request: Request,
    validator: WorkflowValidator = Depends(get_workflow_validator),
) -> FixWorkflowResponse:
    """Apply the experimental fixes, then validate the result."""
    workflow = await _read_json(request)
    fixed, result = apply_experimental_fixes(workflow)
    return FixWorkflowResponse(
        workflow=fixed,
        fixed=result.fixed,
        warnings=result.warnings,
        validation=validator.validate(fixed).to_response(),
    )


@router.get("/workflow")
async def get_workflow_schema() -> Dict[str, Any]:
    """Draft-07 JSON Schema of a workflow document."""
    return workflow_json_schema()


@router.get("/types")
async def get_common_types() -> Dict[str, Any]:
    """Shapes shared across node types."""
    return common_types()

"""Node-independent shapes: the filter value, common types and the workflow schema."""

from typing import Any, Dict, List

from flowschema.descriptors.base import ParameterType

from .models import FilterSchema

FILTER_REQUIRED_FIELDS = ["options", "conditions", "combinator"]
FILTER_OPTION_FIELDS = ["caseSensitive", "leftValue", "typeValidation"]
FILTER_TYPE_VALIDATIONS = ["strict", "loose"]
FILTER_COMBINATORS = ["and", "or"]
FILTER_OPERATOR_TYPES = ["string", "number", "boolean", "dateTime", "object", "array"]

NODE_TYPE_PATTERN = r"^[\w@/-]+\.[\w]+$"
NODE_REQUIRED_FIELDS = ["type", "typeVersion", "position", "parameters"]
ON_ERROR_VALUES = ["stopWorkflow", "continueRegularOutput", "continueErrorOutput"]
SAVE_DATA_VALUES = ["all", "none"]
EXECUTION_ORDER_VALUES = ["v0", "v1"]

# Optional execution-control fields of a node instance and their JSON types.
NODE_SETTING_TYPES: Dict[str, str] = {
    "id": "string",
    "name": "string",
    "credentials": "object",
    "disabled": "boolean",
    "notes": "string",
    "notesInFlow": "boolean",
    "retryOnFail": "boolean",
    "maxTries": "number",
    "waitBetweenTries": "number",
    "alwaysOutputData": "boolean",
    "executeOnce": "boolean",
    "continueOnFail": "boolean",
    "onError": "string",
    "webhookId": "string",
}

NODE_SETTING_MINIMUMS: Dict[str, float] = {"maxTries": 1, "waitBetweenTries": 0}

WORKFLOW_SETTING_TYPES: Dict[str, str] = {
    "saveManualExecutions": "boolean",
    "saveDataErrorExecution": "string",
    "saveDataSuccessExecution": "string",
    "saveExecutionProgress": "boolean",
    "executionTimeout": "number",
    "errorWorkflow": "string",
    "timezone": "string",
    "executionOrder": "string",
    "callerPolicy": "string",
}

WORKFLOW_SETTING_ENUMS: Dict[str, List[str]] = {
    "saveDataErrorExecution": SAVE_DATA_VALUES,
    "saveDataSuccessExecution": SAVE_DATA_VALUES,
    "executionOrder": EXECUTION_ORDER_VALUES,
}

WORKFLOW_SETTING_MINIMUMS: Dict[str, float] = {"executionTimeout": -1}

EXPRESSION_PATTERN = r"^={{.*}}$"
EXPRESSION_VARIABLES = [
    "$json", "$node", "$input", "$now", "$env", "$execution", "$workflow", "$itemIndex",
]


def is_expression(value: Any) -> bool:
    """Expressions are strings starting with ``=`` and are never checked statically."""
    return isinstance(value, str) and value.startswith("=")


def json_type_matches(value: Any, expected: str) -> bool:
    if expected == "string":
        return isinstance(value, str)
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == "object":
        return isinstance(value, dict)
    if expected == "array":
        return isinstance(value, list)
    return True


def json_type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def build_filter_schema(fields: List[str]) -> FilterSchema:
    return FilterSchema(
        required_fields=list(FILTER_REQUIRED_FIELDS),
        options_schema={
            "caseSensitive": {"type": "boolean", "default": True},
            "leftValue": {"type": "string", "default": ""},
            "typeValidation": {
                "type": "string",
                "enum": list(FILTER_TYPE_VALIDATIONS),
                "default": "strict",
            },
            "version": {"type": "number"},
        },
        condition_schema={
            "leftValue": {"type": "string"},
            "rightValue": {"type": "string"},
            "operator": {
                "type": {"type": "string", "enum": list(FILTER_OPERATOR_TYPES)},
                "operation": {"type": "string"},
            },
        },
        combinator={"type": "string", "enum": list(FILTER_COMBINATORS), "default": "and"},
        fields=fields,
    )


def common_types() -> Dict[str, Any]:
    """Reference shapes shared across node types."""
    return {
        "FilterValue": {
            "type": "object",
            "required": list(FILTER_REQUIRED_FIELDS),
            "properties": {
                "options": {
                    "type": "object",
                    "properties": {
                        "caseSensitive": {"type": "boolean", "default": True},
                        "leftValue": {"type": "string", "default": ""},
                        "typeValidation": {"type": "string", "enum": list(FILTER_TYPE_VALIDATIONS)},
                        "version": {"type": "number"},
                    },
                },
                "conditions": {"type": "array"},
                "combinator": {"type": "string", "enum": list(FILTER_COMBINATORS)},
            },
        },
        "Expression": {
            "pattern": EXPRESSION_PATTERN,
            "variables": list(EXPRESSION_VARIABLES),
            "examples": [
                "={{ $json.field }}",
                '={{ $node["Name"].json }}',
                '={{ $now.format("yyyy-MM-dd") }}',
            ],
        },
        "ParameterTypes": [
            ParameterType.STRING.value,
            ParameterType.NUMBER.value,
            ParameterType.BOOLEAN.value,
            ParameterType.JSON.value,
            ParameterType.OPTIONS.value,
            ParameterType.MULTI_OPTIONS.value,
            ParameterType.COLLECTION.value,
            ParameterType.FIXED_COLLECTION.value,
            ParameterType.FILTER.value,
            ParameterType.RESOURCE_LOCATOR.value,
        ],
    }


def workflow_json_schema() -> Dict[str, Any]:
    """Draft-07 JSON Schema describing a workflow document."""
    node_properties: Dict[str, Any] = {
        "id": {"type": "string"},
        "name": {"type": "string"},
        "type": {"type": "string", "pattern": NODE_TYPE_PATTERN},
        "typeVersion": {"type": "number", "minimum": 1},
        "position": {
            "type": "array",
            "items": {"type": "number"},
            "minItems": 2,
            "maxItems": 2,
        },
        "parameters": {"type": "object"},
    }
    for name, json_type in NODE_SETTING_TYPES.items():
        node_properties.setdefault(name, {"type": json_type})
    node_properties["maxTries"]["minimum"] = NODE_SETTING_MINIMUMS["maxTries"]
    node_properties["waitBetweenTries"]["minimum"] = NODE_SETTING_MINIMUMS["waitBetweenTries"]
    node_properties["onError"]["enum"] = list(ON_ERROR_VALUES)

    settings_properties: Dict[str, Any] = {
        name: {"type": json_type} for name, json_type in WORKFLOW_SETTING_TYPES.items()
    }
    for name, values in WORKFLOW_SETTING_ENUMS.items():
        settings_properties[name]["enum"] = list(values)
    settings_properties["executionTimeout"]["minimum"] = WORKFLOW_SETTING_MINIMUMS["executionTimeout"]

    return {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "title": "Workflow",
        "type": "object",
        "required": ["nodes", "connections"],
        "properties": {
            "id": {"type": "string"},
            "name": {"type": "string"},
            "active": {"type": "boolean", "default": False},
            "nodes": {"type": "array", "items": {"$ref": "#/definitions/Node"}},
            "connections": {
                "type": "object",
                "additionalProperties": {"$ref": "#/definitions/NodeConnections"},
            },
            "settings": {"$ref": "#/definitions/Settings"},
            "staticData": {"type": ["object", "null"]},
            "pinData": {"type": "object"},
            "tags": {"type": "array"},
            "meta": {"type": "object"},
        },
        "definitions": {
            "Node": {
                "type": "object",
                "required": list(NODE_REQUIRED_FIELDS),
                "properties": node_properties,
            },
            "NodeConnections": {
                "type": "object",
                "additionalProperties": {
                    "type": "array",
                    "items": {
                        "type": ["array", "null"],
                        "items": {"$ref": "#/definitions/Connection"},
                    },
                },
            },
            "Connection": {
                "type": "object",
                "required": ["node", "type", "index"],
                "properties": {
                    "node": {"type": "string"},
                    "type": {"type": "string"},
                    "index": {"type": "number"},
                },
            },
            "Settings": {"type": "object", "properties": settings_properties},
        },
    }

"""Node-level validation.

Runs the presence and shape checks on a node instance, then validates its
parameters against the schema of its type and version. Nothing here raises
past the validator; every finding is returned as a ``ValidationIssue``.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog

from flowschema.schema.common import (
    NODE_SETTING_MINIMUMS,
    NODE_SETTING_TYPES,
    ON_ERROR_VALUES,
    json_type_matches,
    json_type_name,
)
from flowschema.schema.models import NodeSchema

from .issues import IssueCode, Severity, ValidationIssue, ValidationResult, make_issue
from .parameters import ParameterValidator

logger = structlog.get_logger()

DEFAULT_TYPE_PREFIXES = ["n8n-nodes-base", "n8n-nodes-langchain", "@n8n/n8n-nodes-langchain"]
DEPRECATED_PREFIX = "nodes-base."


def _join(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _format_version(value: Any) -> str:
    return f"{value:g}" if _is_number(value) else str(value)


def node_location(node: Dict[str, Any], index: Optional[int] = None) -> Dict[str, Any]:
    """Location fields identifying ``node`` in an issue."""
    location: Dict[str, Any] = {"node_index": index}
    for key, field in (("name", "node_name"), ("id", "node_id"), ("type", "node_type")):
        if isinstance(node.get(key), str):
            location[field] = node[key]
    return location


def check_structure(
    node: Any,
    path: str = "",
    index: Optional[int] = None,
    valid_prefixes: Sequence[str] = DEFAULT_TYPE_PREFIXES,
) -> Tuple[List[ValidationIssue], List[str]]:
    """Presence and shape checks that need no schema.

    Returns the issues and the node-type messages, which are also reported
    separately in ``nodeTypeIssues``.
    """
    if not isinstance(node, dict):
        return [make_issue(
            IssueCode.INVALID_NODE_TYPE,
            "Node must be a JSON object",
            path=path or None,
            value=json_type_name(node),
            expected="object",
            node_index=index,
        )], []

    issues: List[ValidationIssue] = []
    type_issues: List[str] = []
    location = node_location(node, index)
    label = node.get("name") if isinstance(node.get("name"), str) and node.get("name") else "unnamed"

    node_type = node.get("type")
    if node_type is None:
        issues.append(make_issue(
            IssueCode.MISSING_NODE_TYPE,
            f'Node "{label}" is missing required property "type"',
            path=_join(path, "type"),
            **location,
        ))
    elif not isinstance(node_type, str):
        issues.append(make_issue(
            IssueCode.INVALID_NODE_TYPE_FORMAT,
            f'Node "{label}" has a non-string type',
            path=_join(path, "type"),
            value=node_type,
            expected="string",
            **location,
        ))
    else:
        type_issue = _check_type_format(node_type, label, valid_prefixes)
        if type_issue is not None:
            code, message = type_issue
            type_issues.append(message)
            issues.append(make_issue(
                code,
                message,
                severity=Severity.WARNING,
                path=_join(path, "type"),
                value=node_type,
                **location,
            ))

    name = node.get("name")
    if not isinstance(name, str) or not name:
        issues.append(make_issue(
            IssueCode.MISSING_NODE_NAME,
            "Node is missing a name",
            severity=Severity.WARNING,
            path=_join(path, "name"),
            value=name,
            **location,
        ))

    if "typeVersion" not in node:
        issues.append(make_issue(
            IssueCode.MISSING_TYPE_VERSION,
            f'Node "{label}" is missing required property "typeVersion"',
            path=_join(path, "typeVersion"),
            **location,
        ))
    elif not _is_number(node["typeVersion"]):
        issues.append(make_issue(
            IssueCode.INVALID_TYPE_VERSION,
            f'Node "{label}" has a non-numeric typeVersion',
            path=_join(path, "typeVersion"),
            value=node["typeVersion"],
            expected="number",
            **location,
        ))

    position = node.get("position")
    if "position" not in node:
        issues.append(make_issue(
            IssueCode.MISSING_POSITION,
            f'Node "{label}" is missing required property "position"',
            path=_join(path, "position"),
            **location,
        ))
    elif not (isinstance(position, list) and len(position) == 2 and all(_is_number(p) for p in position)):
        issues.append(make_issue(
            IssueCode.INVALID_POSITION,
            f'Node "{label}" position must be an array of two numbers',
            path=_join(path, "position"),
            value=position,
            expected=[0, 0],
            **location,
        ))

    if "parameters" not in node:
        issues.append(make_issue(
            IssueCode.MISSING_PARAMETERS,
            f'Node "{label}" is missing required property "parameters"',
            path=_join(path, "parameters"),
            **location,
        ))
    elif not isinstance(node["parameters"], dict):
        issues.append(make_issue(
            IssueCode.INVALID_PARAMETERS,
            f'Node "{label}" parameters must be an object',
            path=_join(path, "parameters"),
            value=json_type_name(node["parameters"]),
            expected="object",
            **location,
        ))

    issues.extend(_check_settings(node, label, path, location))
    return issues, type_issues


def _check_type_format(
    node_type: str, label: str, valid_prefixes: Sequence[str]
) -> Optional[Tuple[IssueCode, str]]:
    if "." not in node_type:
        return (
            IssueCode.INVALID_NODE_TYPE_FORMAT,
            f'Node "{label}" has invalid type "{node_type}" - must include package prefix '
            '(e.g., "n8n-nodes-base.webhook")',
        )
    if node_type.startswith(DEPRECATED_PREFIX):
        return (
            IssueCode.DEPRECATED_NODE_TYPE_PREFIX,
            f'Node "{label}" uses deprecated type prefix "nodes-base." - '
            f'use "n8n-nodes-base.{node_type[len(DEPRECATED_PREFIX):]}"',
        )
    prefix = node_type.rsplit(".", 1)[0]
    if prefix not in valid_prefixes:
        return (
            IssueCode.INVALID_NODE_TYPE_FORMAT,
            f'Node "{label}" has unrecognized type prefix "{prefix}" '
            f"(expected one of: {', '.join(valid_prefixes)})",
        )
    return None


def _check_settings(
    node: Dict[str, Any], label: str, path: str, location: Dict[str, Any]
) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    for key, expected in NODE_SETTING_TYPES.items():
        value = node.get(key)
        if value is None:
            continue
        problem = None
        if not json_type_matches(value, expected):
            problem = f"must be of type {expected}, got {json_type_name(value)}"
        elif key in NODE_SETTING_MINIMUMS and value < NODE_SETTING_MINIMUMS[key]:
            problem = f"must be at least {NODE_SETTING_MINIMUMS[key]:g}"
        elif key == "onError" and value not in ON_ERROR_VALUES:
            problem = f"must be one of: {', '.join(ON_ERROR_VALUES)}"
        if problem:
            issues.append(make_issue(
                IssueCode.INVALID_NODE_SETTING,
                f'Node "{label}" setting "{key}" {problem}',
                path=_join(path, key),
                value=value,
                expected=ON_ERROR_VALUES if key == "onError" else expected,
                **location,
            ))
    return issues


def check_against_schema(
    node: Dict[str, Any],
    schema: NodeSchema,
    parameter_validator: ParameterValidator,
    path: str = "",
    index: Optional[int] = None,
) -> List[ValidationIssue]:
    """Version membership and parameter checks for a node with a known schema."""
    issues: List[ValidationIssue] = []
    location = node_location(node, index)
    version = node.get("typeVersion")
    if not _is_number(version):
        version = None
    elif schema.available_versions and version not in schema.available_versions:
        latest = schema.latest_version
        issues.append(make_issue(
            IssueCode.INVALID_TYPE_VERSION,
            f"Invalid typeVersion: {_format_version(version)}",
            path=_join(path, "typeVersion"),
            value=version,
            expected=list(schema.available_versions),
            hint=f"Use {_format_version(latest)} (latest)",
            valid_alternatives=list(schema.available_versions),
            **location,
        ))
        version = None

    parameters = node.get("parameters")
    if isinstance(parameters, dict):
        issues.extend(parameter_validator.validate(
            parameters,
            schema,
            version=version,
            path=_join(path, "parameters"),
            location=location,
        ))
    return issues


def validate_node(
    node: Any,
    schema: NodeSchema,
    unknown_parameter_policy: str = "warn",
    max_depth: int = 3,
    valid_prefixes: Sequence[str] = DEFAULT_TYPE_PREFIXES,
) -> List[ValidationIssue]:
    """Validate one node instance against an already selected schema."""
    issues, _ = check_structure(node, valid_prefixes=valid_prefixes)
    if not isinstance(node, dict):
        return issues
    validator = ParameterValidator(unknown_parameter_policy, max_depth)
    issues.extend(check_against_schema(node, schema, validator))
    return issues


class NodeValidator:
    """Validates node instances against the schemas held by a registry."""

    def __init__(
        self,
        registry,
        unknown_parameter_policy: str = "warn",
        valid_prefixes: Optional[Sequence[str]] = None,
        max_depth: int = 3,
    ):
        self.registry = registry
        self.parameters = ParameterValidator(unknown_parameter_policy, max_depth)
        self.valid_prefixes = list(valid_prefixes or DEFAULT_TYPE_PREFIXES)
        self.logger = logger.bind(component="node_validator")

    def collect(
        self, node: Any, path: str = "", index: Optional[int] = None
    ) -> Tuple[List[ValidationIssue], List[str]]:
        """Issues and node-type messages for one node."""
        issues, type_issues = check_structure(node, path, index, self.valid_prefixes)
        if not isinstance(node, dict):
            return issues, type_issues

        node_type = node.get("type")
        if not isinstance(node_type, str):
            return issues, type_issues

        schema = self.registry.get_schema(node_type)
        if schema is None:
            issues.append(make_issue(
                IssueCode.UNKNOWN_NODE_TYPE,
                f"Unknown node type: {node_type}",
                severity=Severity.WARNING,
                path=_join(path, "type"),
                value=node_type,
                **node_location(node, index),
            ))
            return issues, type_issues

        version = node.get("typeVersion")
        if _is_number(version) and version in schema.available_versions:
            schema = self.registry.get_schema(node_type, version) or schema

        issues.extend(check_against_schema(node, schema, self.parameters, path, index))
        self.logger.debug(
            "Node validated", node_type=node_type, issues=len(issues)
        )
        return issues, type_issues

    def validate(self, node: Any) -> ValidationResult:
        issues, type_issues = self.collect(node)
        return ValidationResult.from_issues(issues, type_issues)

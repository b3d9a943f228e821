"""Workflow-level validation."""

from collections import Counter
from typing import Any, Dict, List, Set

import structlog

from flowschema.schema.common import (
    WORKFLOW_SETTING_ENUMS,
    WORKFLOW_SETTING_MINIMUMS,
    WORKFLOW_SETTING_TYPES,
    json_type_matches,
    json_type_name,
)

from .issues import IssueCode, ValidationIssue, ValidationResult, make_issue
from .node import NodeValidator

logger = structlog.get_logger()


class WorkflowValidator:
    """Validates whole workflow documents.

    Structural problems with ``nodes`` or ``connections`` skip the checks
    that need them; everything else is always checked and reported.
    """

    def __init__(self, node_validator: NodeValidator):
        self.node_validator = node_validator
        self.logger = logger.bind(component="workflow_validator")

    def validate(self, document: Any) -> ValidationResult:
        if not isinstance(document, dict):
            return ValidationResult.from_issues([make_issue(
                IssueCode.INVALID_JSON_TYPE,
                "Workflow must be a JSON object",
                value=json_type_name(document),
                expected="object",
            )])

        issues: List[ValidationIssue] = []
        type_issues: List[str] = []

        nodes = document.get("nodes")
        nodes_valid = isinstance(nodes, list)
        if "nodes" not in document:
            issues.append(make_issue(
                IssueCode.MISSING_PROPERTY,
                "Missing required property: nodes",
                path="nodes",
            ))
        elif not nodes_valid:
            issues.append(make_issue(
                IssueCode.INVALID_TYPE,
                'Property "nodes" must be an array',
                path="nodes",
                value=json_type_name(nodes),
                expected="array",
            ))

        connections = document.get("connections")
        connections_valid = isinstance(connections, dict)
        if "connections" not in document:
            issues.append(make_issue(
                IssueCode.MISSING_PROPERTY,
                "Missing required property: connections",
                path="connections",
            ))
        elif isinstance(connections, list):
            issues.append(make_issue(
                IssueCode.INVALID_TYPE,
                'Property "connections" must be an object, not an array',
                path="connections",
                value="array",
                expected="object",
            ))
        elif not connections_valid:
            issues.append(make_issue(
                IssueCode.INVALID_TYPE,
                'Property "connections" must be an object',
                path="connections",
                value=json_type_name(connections),
                expected="object",
            ))

        if "settings" in document:
            issues.extend(self._check_settings(document["settings"]))

        if nodes_valid:
            for index, node in enumerate(nodes):
                node_issues, node_type_issues = self.node_validator.collect(
                    node, path=f"nodes[{index}]", index=index
                )
                issues.extend(node_issues)
                type_issues.extend(node_type_issues)

            names = [
                node["name"] for node in nodes
                if isinstance(node, dict) and isinstance(node.get("name"), str)
            ]
            duplicates = [name for name, count in Counter(names).items() if count > 1]
            if duplicates:
                issues.append(make_issue(
                    IssueCode.DUPLICATE_NODE_NAME,
                    f"Duplicate node names: {', '.join(duplicates)}",
                    path="nodes",
                    value=duplicates,
                    hint="Node names must be unique within a workflow",
                ))

            if connections_valid:
                issues.extend(self._check_connections(connections, set(names)))

        result = ValidationResult.from_issues(issues, type_issues)
        self.logger.info(
            "Workflow validated",
            valid=result.valid,
            errors=len(result.errors),
            warnings=len(result.warnings),
        )
        return result

    def _check_settings(self, settings: Any) -> List[ValidationIssue]:
        if not isinstance(settings, dict):
            return [make_issue(
                IssueCode.INVALID_WORKFLOW_SETTING,
                'Property "settings" must be an object',
                path="settings",
                value=json_type_name(settings),
                expected="object",
            )]

        issues: List[ValidationIssue] = []
        for key, expected in WORKFLOW_SETTING_TYPES.items():
            value = settings.get(key)
            if value is None:
                continue
            if not json_type_matches(value, expected):
                message = f"must be of type {expected}, got {json_type_name(value)}"
                allowed: Any = expected
            elif key in WORKFLOW_SETTING_ENUMS and value not in WORKFLOW_SETTING_ENUMS[key]:
                allowed = WORKFLOW_SETTING_ENUMS[key]
                message = f"must be one of: {', '.join(allowed)}"
            elif key in WORKFLOW_SETTING_MINIMUMS and value < WORKFLOW_SETTING_MINIMUMS[key]:
                allowed = WORKFLOW_SETTING_MINIMUMS[key]
                message = f"must be at least {allowed:g}"
            else:
                continue
            issues.append(make_issue(
                IssueCode.INVALID_WORKFLOW_SETTING,
                f'Workflow setting "{key}" {message}',
                path=f"settings.{key}",
                value=value,
                expected=allowed,
            ))
        return issues

    def _check_connections(
        self, connections: Dict[str, Any], names: Set[str]
    ) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        for source, outputs in connections.items():
            source_path = f"connections.{source}"
            if source not in names:
                issues.append(make_issue(
                    IssueCode.DANGLING_CONNECTION_SOURCE,
                    f"Connection references non-existent node: {source}",
                    path=source_path,
                    value=source,
                    node_name=source,
                ))
            if not isinstance(outputs, dict):
                issues.append(make_issue(
                    IssueCode.INVALID_CONNECTION,
                    f"Connections of {source} must be an object keyed by output type",
                    path=source_path,
                    value=json_type_name(outputs),
                    expected="object",
                ))
                continue

            for output_type, slots in outputs.items():
                output_path = f"{source_path}.{output_type}"
                if not isinstance(slots, list):
                    issues.append(make_issue(
                        IssueCode.INVALID_CONNECTION,
                        f"Output {output_type} of {source} must be an array of slots",
                        path=output_path,
                        value=json_type_name(slots),
                        expected="array",
                    ))
                    continue
                for slot_index, slot in enumerate(slots):
                    if slot is None:
                        continue
                    slot_path = f"{output_path}[{slot_index}]"
                    if not isinstance(slot, list):
                        issues.append(make_issue(
                            IssueCode.INVALID_CONNECTION,
                            f"Output slot {slot_index} of {source} must be an array of connections",
                            path=slot_path,
                            value=json_type_name(slot),
                            expected="array",
                        ))
                        continue
                    for edge_index, edge in enumerate(slot):
                        issues.extend(self._check_edge(
                            edge, source, f"{slot_path}[{edge_index}]", names
                        ))
        return issues

    def _check_edge(self, edge: Any, source: str, path: str, names: Set[str]) -> List[ValidationIssue]:
        if not isinstance(edge, dict) or not isinstance(edge.get("node"), str):
            return [make_issue(
                IssueCode.INVALID_CONNECTION,
                f"Connection from {source} must be an object with a target node",
                path=path,
                value=edge,
                expected={"node": "", "type": "main", "index": 0},
            )]
        target = edge["node"]
        if target not in names:
            return [make_issue(
                IssueCode.DANGLING_CONNECTION_TARGET,
                f"Connection targets non-existent node: {target}",
                path=f"{path}.node",
                value=target,
                node_name=source,
            )]
        return []

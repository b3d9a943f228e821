"""Parameter-level validation.

Checks a node's parameter tree against its schema: required fields,
enumerations, bounds, and the nested shapes of collections, fixed
collections, filters and resource locators. Nested lists are validated with
the same rules as the top level, bounded by ``max_depth``.
"""

import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

import structlog

from flowschema.descriptors.base import ParameterDescriptor, ParameterType
from flowschema.exceptions import ConfigurationError
from flowschema.schema.common import (
    FILTER_COMBINATORS,
    FILTER_OPERATOR_TYPES,
    FILTER_OPTION_FIELDS,
    FILTER_TYPE_VALIDATIONS,
    is_expression,
    json_type_matches,
    json_type_name,
)
from flowschema.schema.defaults import evaluate_parameters
from flowschema.schema.models import NodeSchema
from flowschema.schema.resolver import is_required, resolve_effective_fields, values_equal

from .issues import IssueCode, Severity, ValidationIssue, make_issue

logger = structlog.get_logger()

UNKNOWN_PARAMETER_POLICIES = ("warn", "error")

# Types checked against a plain JSON type, with the severity of a mismatch.
SCALAR_TYPES = {
    ParameterType.NUMBER.value: ("number", Severity.ERROR),
    ParameterType.BOOLEAN.value: ("boolean", Severity.ERROR),
    ParameterType.STRING.value: ("string", Severity.WARNING),
    ParameterType.DATE_TIME.value: ("string", Severity.WARNING),
    ParameterType.COLOR.value: ("string", Severity.WARNING),
}


def _is_empty(value: Any) -> bool:
    if value is None or value == "" or value == [] or value == {}:
        return True
    if isinstance(value, dict) and value.get("__rl") and value.get("value") in (None, ""):
        return True
    return False


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


class ParameterValidator:
    """Validates parameter trees against node schemas."""

    def __init__(self, unknown_parameter_policy: str = "warn", max_depth: int = 3):
        if unknown_parameter_policy not in UNKNOWN_PARAMETER_POLICIES:
            raise ConfigurationError(f"Unknown parameter policy: {unknown_parameter_policy}")
        self.unknown_parameter_policy = unknown_parameter_policy
        self.max_depth = max_depth

    @property
    def unknown_severity(self) -> Severity:
        return Severity.ERROR if self.unknown_parameter_policy == "error" else Severity.WARNING

    def validate(
        self,
        parameters: Mapping[str, Any],
        schema: NodeSchema,
        version: Optional[float] = None,
        path: str = "parameters",
        location: Optional[Dict[str, Any]] = None,
    ) -> List[ValidationIssue]:
        """Validate ``parameters`` and return every issue found.

        An unexpected failure while evaluating the tree is reported as a
        single issue instead of propagating.
        """
        issues: List[ValidationIssue] = []
        location = location or {}
        version = version if version is not None else schema.type_version
        try:
            self._validate_level(
                schema.properties, parameters, path, version, None, 0, issues, location
            )
        except Exception as e:
            logger.debug("Parameter evaluation failed", node_type=schema.name, error=str(e))
            issues.append(make_issue(
                IssueCode.N8N_PARAMETER_VALIDATION_ERROR,
                str(e) or "Parameter validation error",
                path=path,
                value=dict(parameters),
                **location,
            ))
        return issues

    def _validate_level(
        self,
        descriptors: Sequence[ParameterDescriptor],
        values: Mapping[str, Any],
        path: str,
        version: Optional[float],
        root: Optional[Mapping[str, Any]],
        depth: int,
        issues: List[ValidationIssue],
        location: Dict[str, Any],
    ) -> None:
        context = evaluate_parameters(descriptors, values, version, root)
        root = root if root is not None else context
        resolved = resolve_effective_fields(descriptors, context, version, root)
        declared = [d.name for d in descriptors]

        for name, candidates in resolved.ambiguous.items():
            issues.append(make_issue(
                IssueCode.AMBIGUOUS_PARAMETER,
                f'Parameter "{name}" has {len(candidates)} matching declarations '
                "for the current configuration; the last one applies",
                severity=Severity.WARNING,
                path=_join(path, name),
                **location,
            ))

        for key in values:
            if key in resolved.fields:
                continue
            if key not in declared:
                issues.append(make_issue(
                    IssueCode.UNKNOWN_PARAMETER,
                    f"Unknown parameter: {key}",
                    severity=self.unknown_severity,
                    path=_join(path, key),
                    value=values[key],
                    valid_alternatives=declared,
                    **location,
                ))
            else:
                issues.append(make_issue(
                    IssueCode.INACTIVE_PARAMETER,
                    f'Parameter "{key}" is not used with the current configuration',
                    severity=Severity.WARNING,
                    path=_join(path, key),
                    value=values[key],
                    **location,
                ))

        for name, descriptor in resolved.fields.items():
            if not is_required(descriptor, context, root, version):
                continue
            if name in values:
                missing = descriptor.required is True and _is_empty(values[name])
            else:
                missing = not descriptor.has_default or _is_empty(context.get(name))
            if missing:
                issues.append(make_issue(
                    IssueCode.N8N_PARAMETER_ISSUE,
                    f'Parameter "{descriptor.display_name or name}" is required.',
                    path=_join(path, name),
                    **location,
                ))

        for key, value in values.items():
            descriptor = resolved.fields.get(key)
            if descriptor is not None:
                self._check_value(
                    descriptor, value, _join(path, key), version, root, depth, issues, location
                )

    def _check_value(
        self,
        descriptor: ParameterDescriptor,
        value: Any,
        path: str,
        version: Optional[float],
        root: Mapping[str, Any],
        depth: int,
        issues: List[ValidationIssue],
        location: Dict[str, Any],
    ) -> None:
        if value is None or is_expression(value):
            return
        kind = descriptor.type

        if kind in SCALAR_TYPES:
            expected, severity = SCALAR_TYPES[kind]
            if not json_type_matches(value, expected):
                issues.append(self._type_mismatch(descriptor, value, expected, path, severity, location))
                return
            if kind == ParameterType.NUMBER.value:
                self._check_number(descriptor, value, path, issues, location)
            elif kind == ParameterType.STRING.value:
                self._check_string(descriptor, value, path, issues, location)
        elif kind == ParameterType.OPTIONS.value:
            self._check_enum(descriptor, value, path, issues, location)
        elif kind == ParameterType.MULTI_OPTIONS.value:
            if not isinstance(value, list):
                issues.append(self._type_mismatch(descriptor, value, "array", path, Severity.ERROR, location))
                return
            for item in value:
                if not is_expression(item):
                    self._check_enum(descriptor, item, path, issues, location)
        elif kind == ParameterType.COLLECTION.value:
            self._check_collection(descriptor, value, path, version, root, depth, issues, location)
        elif kind == ParameterType.FIXED_COLLECTION.value:
            self._check_fixed_collection(descriptor, value, path, version, root, depth, issues, location)
        elif kind == ParameterType.FILTER.value:
            self._check_filter(descriptor, value, path, version, issues, location)
        elif kind == ParameterType.RESOURCE_LOCATOR.value:
            self._check_resource_locator(descriptor, value, path, issues, location)

    def _type_mismatch(
        self,
        descriptor: ParameterDescriptor,
        value: Any,
        expected: str,
        path: str,
        severity: Severity,
        location: Dict[str, Any],
    ) -> ValidationIssue:
        return make_issue(
            IssueCode.PARAMETER_TYPE_MISMATCH,
            f'Parameter "{descriptor.name}" must be of type {expected}, got {json_type_name(value)}',
            severity=severity,
            path=path,
            value=value,
            expected=expected,
            **location,
        )

    def _check_enum(
        self,
        descriptor: ParameterDescriptor,
        value: Any,
        path: str,
        issues: List[ValidationIssue],
        location: Dict[str, Any],
    ) -> None:
        allowed = descriptor.enum_values
        if not allowed or any(values_equal(value, option) for option in allowed):
            return
        issues.append(make_issue(
            IssueCode.INVALID_ENUM_VALUE,
            f"Invalid value for {descriptor.name}: {value!r}",
            path=path,
            value=value,
            expected=allowed,
            hint=f"Valid options: {', '.join(str(option) for option in allowed)}",
            valid_alternatives=allowed,
            **location,
        ))

    def _check_number(
        self,
        descriptor: ParameterDescriptor,
        value: float,
        path: str,
        issues: List[ValidationIssue],
        location: Dict[str, Any],
    ) -> None:
        bounds = descriptor.type_options
        if bounds is None:
            return
        problem = None
        if bounds.min_value is not None and value < bounds.min_value:
            problem = f"must be at least {bounds.min_value:g}"
        elif bounds.max_value is not None and value > bounds.max_value:
            problem = f"must be at most {bounds.max_value:g}"
        elif bounds.multiple_of:
            quotient = value / bounds.multiple_of
            if abs(quotient - round(quotient)) > 1e-9:
                problem = f"must be a multiple of {bounds.multiple_of:g}"
        if problem:
            issues.append(make_issue(
                IssueCode.CONSTRAINT_VIOLATION,
                f'Parameter "{descriptor.name}" {problem}',
                path=path,
                value=value,
                **location,
            ))

    def _check_string(
        self,
        descriptor: ParameterDescriptor,
        value: str,
        path: str,
        issues: List[ValidationIssue],
        location: Dict[str, Any],
    ) -> None:
        bounds = descriptor.type_options
        if bounds is None:
            return
        problem = None
        if bounds.min_length is not None and len(value) < bounds.min_length:
            problem = f"must be at least {bounds.min_length} characters long"
        elif bounds.max_length is not None and len(value) > bounds.max_length:
            problem = f"must be at most {bounds.max_length} characters long"
        elif bounds.pattern:
            try:
                pattern = re.compile(bounds.pattern)
            except re.error:
                logger.debug("Ignoring invalid pattern", parameter=descriptor.name, pattern=bounds.pattern)
                return
            if pattern.search(value) is None:
                problem = f"must match pattern {bounds.pattern}"
        if problem:
            issues.append(make_issue(
                IssueCode.CONSTRAINT_VIOLATION,
                f'Parameter "{descriptor.name}" {problem}',
                path=path,
                value=value,
                **location,
            ))

    def _check_collection(
        self,
        descriptor: ParameterDescriptor,
        value: Any,
        path: str,
        version: Optional[float],
        root: Mapping[str, Any],
        depth: int,
        issues: List[ValidationIssue],
        location: Dict[str, Any],
    ) -> None:
        if not isinstance(value, dict):
            issues.append(make_issue(
                IssueCode.INVALID_COLLECTION,
                f'Parameter "{descriptor.name}" must be an object',
                path=path,
                value=value,
                expected={},
                **location,
            ))
            return
        if depth >= self.max_depth:
            return

        options: Dict[str, ParameterDescriptor] = {}
        for option in descriptor.collection_options:
            options[option.name] = option
        for key, item in value.items():
            option = options.get(key)
            if option is None:
                issues.append(make_issue(
                    IssueCode.UNKNOWN_PARAMETER,
                    f"Unknown option for {descriptor.name}: {key}",
                    severity=self.unknown_severity,
                    path=_join(path, key),
                    value=item,
                    valid_alternatives=list(options),
                    **location,
                ))
                continue
            self._check_value(option, item, _join(path, key), version, root, depth + 1, issues, location)

    def _check_fixed_collection(
        self,
        descriptor: ParameterDescriptor,
        value: Any,
        path: str,
        version: Optional[float],
        root: Mapping[str, Any],
        depth: int,
        issues: List[ValidationIssue],
        location: Dict[str, Any],
    ) -> None:
        if not isinstance(value, dict):
            issues.append(make_issue(
                IssueCode.INVALID_FIXED_COLLECTION,
                f'Parameter "{descriptor.name}" must be an object',
                path=path,
                value=value,
                expected={name: [] for name in descriptor.option_names},
                **location,
            ))
            return

        groups = dict(descriptor.fixed_collection_groups)
        valid_options = list(groups)
        for key, group_value in value.items():
            group_path = _join(path, key)
            if key not in groups:
                issues.append(make_issue(
                    IssueCode.INVALID_FIXED_COLLECTION,
                    f"Invalid fixedCollection option: {key}",
                    path=group_path,
                    value=key,
                    expected=valid_options,
                    hint=f"Valid options for {descriptor.name}: {', '.join(valid_options)}",
                    valid_alternatives=valid_options,
                    **location,
                ))
                continue
            if depth >= self.max_depth or is_expression(group_value):
                continue

            group = groups[key]
            if descriptor.multiple_values:
                if not isinstance(group_value, list):
                    issues.append(make_issue(
                        IssueCode.INVALID_FIXED_COLLECTION,
                        f"Option {key} of {descriptor.name} must be a list of entries",
                        path=group_path,
                        value=group_value,
                        expected="array",
                        **location,
                    ))
                    continue
                entries = [(f"{group_path}[{index}]", item) for index, item in enumerate(group_value)]
            else:
                entries = [(group_path, group_value)]

            for entry_path, entry in entries:
                if not isinstance(entry, dict):
                    issues.append(make_issue(
                        IssueCode.INVALID_FIXED_COLLECTION,
                        f"Entry of {descriptor.name}.{key} must be an object",
                        path=entry_path,
                        value=entry,
                        expected="object",
                        **location,
                    ))
                    continue
                self._validate_level(
                    group, entry, entry_path, version, root, depth + 1, issues, location
                )

    def _check_filter(
        self,
        descriptor: ParameterDescriptor,
        value: Any,
        path: str,
        version: Optional[float],
        issues: List[ValidationIssue],
        location: Dict[str, Any],
    ) -> None:
        if not isinstance(value, dict):
            issues.append(make_issue(
                IssueCode.INVALID_FILTER,
                "Filter must be an object",
                path=path,
                value=value,
                expected={"options": {}, "conditions": [], "combinator": "and"},
                **location,
            ))
            return

        type_options = descriptor.type_options
        filter_version = (type_options.filter_version_for(version) if type_options else None) or 1
        needs_version = filter_version >= 2

        options = value.get("options")
        if not isinstance(options, dict):
            expected_options: Dict[str, Any] = {
                "caseSensitive": True,
                "leftValue": "",
                "typeValidation": "strict",
            }
            hint = "options must be inside the filter object"
            if needs_version:
                expected_options["version"] = filter_version
                hint += f" and carry version {filter_version:g} for this node version"
            issues.append(make_issue(
                IssueCode.INVALID_FILTER,
                'Filter missing required "options" object',
                path=_join(path, "options"),
                value=options,
                expected=expected_options,
                hint=hint,
                **location,
            ))
        else:
            self._check_filter_options(options, _join(path, "options"), filter_version, issues, location)

        conditions = value.get("conditions")
        if not isinstance(conditions, list):
            issues.append(make_issue(
                IssueCode.INVALID_FILTER,
                'Filter missing required "conditions" array',
                path=_join(path, "conditions"),
                value=conditions,
                expected=[],
                **location,
            ))
        else:
            for index, condition in enumerate(conditions):
                self._check_condition(condition, f"{path}.conditions[{index}]", issues, location)

        combinator = value.get("combinator")
        if not combinator:
            issues.append(make_issue(
                IssueCode.INVALID_FILTER,
                'Filter missing required "combinator"',
                path=_join(path, "combinator"),
                expected=FILTER_COMBINATORS,
                hint='Add combinator: "and" or "or"',
                **location,
            ))
        elif combinator not in FILTER_COMBINATORS:
            issues.append(make_issue(
                IssueCode.INVALID_FILTER,
                f"Invalid combinator: {combinator}",
                path=_join(path, "combinator"),
                value=combinator,
                expected=FILTER_COMBINATORS,
                valid_alternatives=FILTER_COMBINATORS,
                **location,
            ))

    def _check_filter_options(
        self,
        options: Dict[str, Any],
        path: str,
        filter_version: float,
        issues: List[ValidationIssue],
        location: Dict[str, Any],
    ) -> None:
        for name in FILTER_OPTION_FIELDS:
            if name not in options:
                issues.append(make_issue(
                    IssueCode.INVALID_FILTER,
                    f'Filter options missing required "{name}"',
                    path=_join(path, name),
                    **location,
                ))

        case_sensitive = options.get("caseSensitive")
        if "caseSensitive" in options and not isinstance(case_sensitive, bool) and not is_expression(case_sensitive):
            issues.append(make_issue(
                IssueCode.INVALID_FILTER,
                "Filter option caseSensitive must be a boolean",
                path=_join(path, "caseSensitive"),
                value=case_sensitive,
                expected="boolean",
                **location,
            ))

        type_validation = options.get("typeValidation")
        if (
            "typeValidation" in options
            and type_validation not in FILTER_TYPE_VALIDATIONS
            and not is_expression(type_validation)
        ):
            issues.append(make_issue(
                IssueCode.INVALID_FILTER,
                f"Invalid typeValidation: {type_validation}",
                path=_join(path, "typeValidation"),
                value=type_validation,
                expected=FILTER_TYPE_VALIDATIONS,
                valid_alternatives=FILTER_TYPE_VALIDATIONS,
                **location,
            ))

        if filter_version >= 2 and "version" not in options:
            issues.append(make_issue(
                IssueCode.INVALID_FILTER,
                'Filter options missing required "version"',
                path=_join(path, "version"),
                expected=filter_version,
                hint=f"Add version: {filter_version:g} to the filter options",
                **location,
            ))

    def _check_condition(
        self,
        condition: Any,
        path: str,
        issues: List[ValidationIssue],
        location: Dict[str, Any],
    ) -> None:
        if not isinstance(condition, dict):
            issues.append(make_issue(
                IssueCode.INVALID_FILTER,
                "Filter condition must be an object",
                path=path,
                value=condition,
                expected={"leftValue": "", "rightValue": "", "operator": {"type": "string", "operation": "equals"}},
                **location,
            ))
            return

        operator = condition.get("operator")
        if not isinstance(operator, dict):
            issues.append(make_issue(
                IssueCode.INVALID_FILTER,
                'Filter condition missing required "operator" object',
                path=_join(path, "operator"),
                value=operator,
                expected={"type": "string", "operation": "equals"},
                **location,
            ))
            return

        operator_type = operator.get("type")
        if operator_type not in FILTER_OPERATOR_TYPES:
            issues.append(make_issue(
                IssueCode.INVALID_FILTER,
                f"Invalid operator type: {operator_type}",
                path=_join(path, "operator.type"),
                value=operator_type,
                expected=FILTER_OPERATOR_TYPES,
                valid_alternatives=FILTER_OPERATOR_TYPES,
                **location,
            ))
        if not isinstance(operator.get("operation"), str) or not operator.get("operation"):
            issues.append(make_issue(
                IssueCode.INVALID_FILTER,
                'Filter operator missing required "operation"',
                path=_join(path, "operator.operation"),
                value=operator.get("operation"),
                **location,
            ))

    def _check_resource_locator(
        self,
        descriptor: ParameterDescriptor,
        value: Any,
        path: str,
        issues: List[ValidationIssue],
        location: Dict[str, Any],
    ) -> None:
        modes = descriptor.resource_locator_modes
        expected = {"__rl": True, "mode": modes[0] if modes else "id", "value": ""}

        if isinstance(value, str):
            issues.append(make_issue(
                IssueCode.INVALID_RESOURCE_LOCATOR,
                f'Parameter "{descriptor.name}" should be a resource locator object',
                severity=Severity.WARNING,
                path=path,
                value=value,
                expected=expected,
                **location,
            ))
            return
        if not isinstance(value, dict):
            issues.append(make_issue(
                IssueCode.INVALID_RESOURCE_LOCATOR,
                f'Parameter "{descriptor.name}" must be a resource locator object',
                path=path,
                value=value,
                expected=expected,
                **location,
            ))
            return

        if "value" not in value:
            issues.append(make_issue(
                IssueCode.INVALID_RESOURCE_LOCATOR,
                f'Resource locator "{descriptor.name}" missing required "value"',
                path=_join(path, "value"),
                expected=expected,
                **location,
            ))
        mode = value.get("mode")
        if mode is None:
            issues.append(make_issue(
                IssueCode.INVALID_RESOURCE_LOCATOR,
                f'Resource locator "{descriptor.name}" missing required "mode"',
                path=_join(path, "mode"),
                expected=modes or None,
                **location,
            ))
        elif modes and mode not in modes:
            issues.append(make_issue(
                IssueCode.INVALID_RESOURCE_LOCATOR,
                f"Invalid resource locator mode: {mode}",
                path=_join(path, "mode"),
                value=mode,
                expected=modes,
                hint=f"Valid modes: {', '.join(modes)}",
                valid_alternatives=modes,
                **location,
            ))

"""Conditional field resolution.

Decides which descriptors are active for a given set of already chosen
sibling values. A key missing from the context counts as "not decided yet"
and never hides a descriptor, so adding a value can only affect descriptors
gated on that very key.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from flowschema.descriptors.base import ParameterDescriptor

from .constraints import ROOT_KEY_PREFIX, VERSION_KEY

Context = Mapping[str, Any]


def values_equal(actual: Any, expected: Any) -> bool:
    """Equality that keeps booleans apart from the numbers 0 and 1."""
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    return actual == expected


def _ordered(actual: Any, bound: Any) -> bool:
    numbers = (int, float)
    if isinstance(actual, bool) or isinstance(bound, bool):
        return False
    if isinstance(actual, numbers) and isinstance(bound, numbers):
        return True
    return isinstance(actual, str) and isinstance(bound, str)


def _match_condition(actual: Any, condition: Dict[str, Any]) -> bool:
    """Evaluate an operator condition such as ``{"_cnd": {"gte": 2}}``."""
    for operator, operand in condition.items():
        if operator == "eq":
            return values_equal(actual, operand)
        if operator == "not":
            return not values_equal(actual, operand)
        if operator in ("gte", "gt", "lte", "lt"):
            if not _ordered(actual, operand):
                return False
            return {
                "gte": actual >= operand,
                "gt": actual > operand,
                "lte": actual <= operand,
                "lt": actual < operand,
            }[operator]
        if operator == "between":
            low, high = operand.get("from"), operand.get("to")
            return _ordered(actual, low) and _ordered(actual, high) and low <= actual <= high
        if operator == "startsWith":
            return isinstance(actual, str) and actual.startswith(operand)
        if operator == "endsWith":
            return isinstance(actual, str) and actual.endswith(operand)
        if operator == "includes":
            return isinstance(actual, str) and operand in actual
        if operator == "regex":
            return isinstance(actual, str) and re.search(operand, actual) is not None
        if operator == "exists":
            return actual is not None and actual != ""
    return False


def _unwrap(value: Any) -> Any:
    # Resource locator values are matched on their inner value.
    if isinstance(value, dict) and value.get("__rl"):
        return value.get("value")
    return value


def matches(actual: Any, allowed: Sequence[Any]) -> bool:
    """True when ``actual`` (or any element of it) is one of ``allowed``."""
    actual = _unwrap(actual)
    candidates = actual if isinstance(actual, list) else [actual]
    for candidate in candidates:
        for expected in allowed:
            if isinstance(expected, dict) and "_cnd" in expected:
                if _match_condition(candidate, expected["_cnd"]):
                    return True
            elif values_equal(candidate, expected):
                return True
    return False


def _lookup(
    key: str,
    context: Context,
    root_context: Optional[Context],
    version: Optional[float],
) -> tuple:
    """Return (decided, value) for a display-option key."""
    if key == VERSION_KEY:
        return (version is not None, version)
    if key.startswith("@"):
        return (False, None)
    if key.startswith(ROOT_KEY_PREFIX):
        source = root_context if root_context is not None else context
        key = key[len(ROOT_KEY_PREFIX):]
    else:
        source = context
    if key in source:
        return (True, source[key])
    return (False, None)


def is_visible(
    descriptor: ParameterDescriptor,
    context: Context,
    root_context: Optional[Context] = None,
    version: Optional[float] = None,
) -> bool:
    """Visibility of one descriptor under a context."""
    options = descriptor.display_options
    if options is None:
        return True
    for key, allowed in options.show.items():
        decided, value = _lookup(key, context, root_context, version)
        if decided and not matches(value, allowed):
            return False
    for key, denied in options.hide.items():
        decided, value = _lookup(key, context, root_context, version)
        if decided and matches(value, denied):
            return False
    return True


def is_fully_specified(
    descriptor: ParameterDescriptor,
    context: Context,
    root_context: Optional[Context] = None,
    version: Optional[float] = None,
) -> bool:
    """True when every gating key of the descriptor has a concrete value."""
    options = descriptor.display_options
    if options is None:
        return True
    return all(
        _lookup(key, context, root_context, version)[0]
        for key in options.referenced_fields()
    )


def _unpack(source: Any, version: Optional[float]) -> tuple:
    if isinstance(source, (list, tuple)):
        return list(source), version
    return list(source.properties), version if version is not None else source.type_version


def resolve_visible_fields(
    source: Any,
    context: Context,
    version: Optional[float] = None,
    root_context: Optional[Context] = None,
) -> List[ParameterDescriptor]:
    """Descriptors visible under ``context``, in declaration order.

    ``source`` is a ``NodeSchema`` or a plain descriptor list.
    """
    descriptors, version = _unpack(source, version)
    return [d for d in descriptors if is_visible(d, context, root_context, version)]


@dataclass
class ResolvedFields:
    """Effective parameter set for one context."""

    fields: Dict[str, ParameterDescriptor] = field(default_factory=dict)
    ambiguous: Dict[str, List[ParameterDescriptor]] = field(default_factory=dict)
    hidden: List[str] = field(default_factory=list)

    def __contains__(self, name: str) -> bool:
        return name in self.fields


def resolve_effective_fields(
    source: Any,
    context: Context,
    version: Optional[float] = None,
    root_context: Optional[Context] = None,
) -> ResolvedFields:
    """Pick one descriptor per name.

    When several same-named descriptors are visible the last declared one
    wins. The clash is recorded as ambiguous only when the context decides
    every gating key of the competing candidates.
    """
    descriptors, version = _unpack(source, version)
    candidates: Dict[str, List[ParameterDescriptor]] = {}
    declared: List[str] = []
    for descriptor in descriptors:
        if descriptor.name not in declared:
            declared.append(descriptor.name)
        if is_visible(descriptor, context, root_context, version):
            candidates.setdefault(descriptor.name, []).append(descriptor)

    resolved = ResolvedFields()
    for name in declared:
        visible = candidates.get(name)
        if not visible:
            resolved.hidden.append(name)
            continue
        resolved.fields[name] = visible[-1]
        if len(visible) > 1 and all(
            is_fully_specified(d, context, root_context, version) for d in visible
        ):
            resolved.ambiguous[name] = visible
    return resolved


def is_required(
    descriptor: ParameterDescriptor,
    context: Context,
    root_context: Optional[Context] = None,
    version: Optional[float] = None,
) -> bool:
    """Required-ness re-derived for a context.

    Visible and either explicitly required or without a default. An
    explicit ``required: false`` always wins.
    """
    if not descriptor.carries_value:
        return False
    if not is_visible(descriptor, context, root_context, version):
        return False
    if descriptor.required is not None:
        return descriptor.required
    return not descriptor.has_default


def required_fields(
    source: Any,
    context: Context,
    version: Optional[float] = None,
    root_context: Optional[Context] = None,
) -> List[str]:
    """Names of the fields required under ``context``."""
    resolved = resolve_effective_fields(source, context, version, root_context)
    _, version = _unpack(source, version)
    return [
        name
        for name, descriptor in resolved.fields.items()
        if is_required(descriptor, context, root_context, version)
    ]

"""Default-value evaluation.

Values are evaluated progressively in declaration order: each descriptor is
checked for visibility against the values emitted so far, so a ``resource``
default decides which of several ``operation`` declarations contributes
its default. User supplied values are never replaced.
"""

import copy
from typing import Any, Dict, Mapping, Optional, Sequence

from flowschema.descriptors.base import ParameterDescriptor, ParameterType
from flowschema.exceptions import DescriptorError

from .resolver import is_visible


def _default_for(
    descriptor: ParameterDescriptor,
    root_context: Mapping[str, Any],
    version: Optional[float],
) -> Any:
    value = copy.deepcopy(descriptor.default)

    if descriptor.type == ParameterType.COLLECTION.value:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise DescriptorError(f"Collection '{descriptor.name}' has a non-object default")
        return value

    if descriptor.type == ParameterType.FIXED_COLLECTION.value:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise DescriptorError(f"Fixed collection '{descriptor.name}' has a non-object default")
        groups = dict(descriptor.fixed_collection_groups)
        for group_name, group_value in value.items():
            group = groups.get(group_name)
            if group is None:
                continue
            if descriptor.multiple_values:
                if not isinstance(group_value, list):
                    raise DescriptorError(
                        f"Fixed collection '{descriptor.name}.{group_name}' expects a list default"
                    )
                value[group_name] = [
                    evaluate_parameters(group, item, version, root_context)
                    for item in group_value
                ]
            elif isinstance(group_value, dict):
                value[group_name] = evaluate_parameters(group, group_value, version, root_context)
            else:
                raise DescriptorError(
                    f"Fixed collection '{descriptor.name}.{group_name}' expects an object default"
                )
        return value

    return value


def evaluate_parameters(
    descriptors: Sequence[ParameterDescriptor],
    values: Optional[Mapping[str, Any]] = None,
    version: Optional[float] = None,
    root_context: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Fill in the defaults of every visible descriptor missing from ``values``.

    ``root_context`` holds the top-level values when evaluating a nested
    list; it defaults to the values being built.
    """
    if values is not None and not isinstance(values, Mapping):
        raise DescriptorError("Parameter values must be an object")

    result: Dict[str, Any] = dict(values or {})
    given = set(result)

    for descriptor in descriptors:
        if not descriptor.carries_value or descriptor.name in given:
            continue
        root = root_context if root_context is not None else result
        if not is_visible(descriptor, result, root, version):
            continue
        if not descriptor.has_default:
            continue
        result[descriptor.name] = _default_for(descriptor, root, version)

    return result


def compute_defaults(
    descriptors: Sequence[ParameterDescriptor],
    version: Optional[float] = None,
) -> Dict[str, Any]:
    """Value tree a node gets when created with no parameters."""
    return evaluate_parameters(descriptors, {}, version)

"""Constraint-tree utilities shared by the builder and the validators."""

from typing import Any, Dict, Iterable, List, Optional, Sequence

from flowschema.descriptors.base import ParameterDescriptor, ParameterType

from .models import ConditionalField, FieldConstraints, ValidationRule

# Display-option keys that do not name a sibling parameter.
VERSION_KEY = "@version"
ROOT_KEY_PREFIX = "/"

NESTED_TYPES = (ParameterType.COLLECTION.value, ParameterType.FIXED_COLLECTION.value)


def is_rule_required(descriptor: ParameterDescriptor) -> bool:
    """Context-free required flag.

    Explicitly required, or carrying neither a default nor a visibility
    condition. Display-only types such as notices never hold a value.
    """
    if not descriptor.carries_value:
        return False
    if descriptor.required is True:
        return True
    return not descriptor.has_default and not descriptor.has_display_options


def build_constraints(descriptor: ParameterDescriptor) -> FieldConstraints:
    """Build the constraint tree of a descriptor, recursing into nested groups."""
    values: Dict[str, Any] = {"type": descriptor.type, "default": descriptor.default}

    if descriptor.enum_values:
        values["enum_values"] = descriptor.enum_values

    type_options = descriptor.type_options
    if type_options is not None:
        for key in ("min_value", "max_value", "min_length", "max_length", "multiple_of", "pattern"):
            bound = getattr(type_options, key)
            if bound is not None:
                values[key] = bound
        if type_options.multiple_values:
            values["item_type"] = "object" if descriptor.type in NESTED_TYPES else descriptor.type

    if descriptor.type in NESTED_TYPES and descriptor.options:
        properties: Dict[str, FieldConstraints] = {}
        required: List[str] = []
        if descriptor.type == ParameterType.FIXED_COLLECTION.value:
            for group_name, group in descriptor.fixed_collection_groups:
                properties[group_name] = FieldConstraints(
                    type="object",
                    properties={child.name: build_constraints(child) for child in group},
                )
                required.extend(
                    f"{group_name}.{child.name}" for child in group if child.required
                )
        else:
            for child in descriptor.collection_options:
                properties[child.name] = build_constraints(child)
                if child.required:
                    required.append(child.name)
        values["properties"] = properties
        values["required_properties"] = required

    return FieldConstraints(**values)


def find_dependencies(descriptor: ParameterDescriptor) -> List[str]:
    """Names of the fields a descriptor's visibility depends on."""
    if descriptor.display_options is None:
        return []
    return descriptor.display_options.referenced_fields()


def build_rule(descriptor: ParameterDescriptor) -> ValidationRule:
    depends_on = find_dependencies(descriptor)
    return ValidationRule(
        field=descriptor.name,
        type=descriptor.type,
        required=is_rule_required(descriptor),
        constraints=build_constraints(descriptor),
        display_options=(
            descriptor.display_options.to_dict() if descriptor.has_display_options else None
        ),
        depends_on=depends_on or None,
    )


def extract_rules(descriptors: Iterable[ParameterDescriptor]) -> List[ValidationRule]:
    return [build_rule(descriptor) for descriptor in descriptors]


def extract_conditional_fields(descriptors: Iterable[ParameterDescriptor]) -> List[ConditionalField]:
    return [
        ConditionalField(
            field=descriptor.name,
            condition=descriptor.display_options.to_dict(),
            depends_on_fields=find_dependencies(descriptor),
        )
        for descriptor in descriptors
        if descriptor.has_display_options
    ]


def parameter_types(descriptors: Iterable[ParameterDescriptor]) -> Dict[str, str]:
    """Map of field name to type; the first declaration of a name wins."""
    types: Dict[str, str] = {}
    for descriptor in descriptors:
        types.setdefault(descriptor.name, descriptor.type)
    return types


def check_display_references(
    descriptors: Sequence[ParameterDescriptor],
    root: Optional[Sequence[ParameterDescriptor]] = None,
    path: str = "",
) -> List[str]:
    """Report display-option keys that name no sibling descriptor.

    Keys starting with ``/`` are resolved against the root list and
    ``@``-prefixed keys refer to node metadata. Nested collection and
    fixedCollection lists are checked against their own siblings.
    """
    root = descriptors if root is None else root
    siblings = {d.name for d in descriptors}
    root_names = {d.name for d in root}
    issues: List[str] = []

    for descriptor in descriptors:
        location = f"{path}{descriptor.name}"
        for key in find_dependencies(descriptor):
            if key.startswith("@"):
                continue
            if key.startswith(ROOT_KEY_PREFIX):
                if key[1:] not in root_names:
                    issues.append(
                        f"{location}: display condition references unknown root field '{key[1:]}'"
                    )
            elif key not in siblings:
                issues.append(
                    f"{location}: display condition references unknown field '{key}'"
                )

        if descriptor.type == ParameterType.COLLECTION.value:
            issues.extend(
                check_display_references(descriptor.collection_options, root, f"{location}.")
            )
        elif descriptor.type == ParameterType.FIXED_COLLECTION.value:
            for group_name, group in descriptor.fixed_collection_groups:
                issues.extend(
                    check_display_references(group, root, f"{location}.{group_name}.")
                )

    return issues


def find_filter_fields(
    descriptors: Sequence[ParameterDescriptor], path: str = ""
) -> List[str]:
    """Paths of every filter-typed field, including nested ones."""
    found: List[str] = []
    for descriptor in descriptors:
        location = f"{path}{descriptor.name}"
        if descriptor.type == ParameterType.FILTER.value:
            found.append(location)
        elif descriptor.type == ParameterType.COLLECTION.value:
            found.extend(find_filter_fields(descriptor.collection_options, f"{location}."))
        elif descriptor.type == ParameterType.FIXED_COLLECTION.value:
            for group_name, group in descriptor.fixed_collection_groups:
                found.extend(find_filter_fields(group, f"{location}.{group_name}."))
    return found

"""Schema model builder.

Turns raw plugin descriptions into canonical ``NodeSchema`` objects. The
build is best effort: a node that cannot be built is logged, counted and
skipped, and a node whose defaults cannot be evaluated keeps an empty
default tree.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import structlog

from flowschema import __version__
from flowschema.descriptors.base import DisplayOptions, ParameterDescriptor, ParameterType, parse_descriptors
from flowschema.descriptors.provider import DescriptorProvider, NodeSource, VersionedNodeType
from flowschema.exceptions import DescriptorError, SchemaBuildError

from .common import build_filter_schema
from .constraints import (
    check_display_references,
    extract_conditional_fields,
    extract_rules,
    find_filter_fields,
    parameter_types,
)
from .defaults import compute_defaults
from .models import (
    CredentialSchema,
    ExtractionStats,
    FixedCollectionSchema,
    NodeSchema,
    ResourceOperations,
    ValidationRule,
)
from .resolver import matches

logger = structlog.get_logger()


@dataclass
class BuildResult:
    """Everything produced by one schema refresh."""

    schemas: Dict[str, NodeSchema] = field(default_factory=dict)
    credentials: Dict[str, CredentialSchema] = field(default_factory=dict)
    sources: Dict[str, NodeSource] = field(default_factory=dict)
    stats: ExtractionStats = field(default_factory=ExtractionStats)


def partition_parameters(rules: List[ValidationRule]) -> Tuple[List[str], List[str]]:
    """Split names into required and optional under the empty context.

    Only declarations without display options can be required here; every
    other name is optional. A name never lands in both lists.
    """
    required: List[str] = []
    for rule in rules:
        if rule.required and not rule.display_options and rule.field not in required:
            required.append(rule.field)
    optional: List[str] = []
    for rule in rules:
        if rule.field not in required and rule.field not in optional:
            optional.append(rule.field)
    return required, optional


def extract_resource_operations(
    descriptors: List[ParameterDescriptor],
) -> Dict[str, ResourceOperations]:
    """Map each resource value to its operations and their gated fields."""
    resource_props = [d for d in descriptors if d.name == "resource"]
    operation_props = [d for d in descriptors if d.name == "operation"]
    if not resource_props or not operation_props:
        return {}

    resources: List[Any] = []
    for prop in resource_props:
        for value in prop.enum_values:
            if value not in resources:
                resources.append(value)

    result: Dict[str, ResourceOperations] = {}
    for resource in resources:
        operations: List[str] = []
        fields_per_operation: Dict[str, List[str]] = {}

        for operation_prop in operation_props:
            for option in operation_prop.options or []:
                if "value" not in option:
                    continue
                display = (
                    DisplayOptions.model_validate(option["displayOptions"])
                    if option.get("displayOptions")
                    else operation_prop.display_options
                )
                if display is not None and not display.is_empty:
                    if not matches(resource, display.show.get("resource", [])):
                        continue

                operation = option["value"]
                if operation in operations:
                    continue
                operations.append(operation)

                gated = []
                for descriptor in descriptors:
                    if descriptor.display_options is None:
                        continue
                    show = descriptor.display_options.show
                    if matches(resource, show.get("resource", [])) and matches(
                        operation, show.get("operation", [])
                    ):
                        if descriptor.name not in gated:
                            gated.append(descriptor.name)
                fields_per_operation[operation] = gated

        if operations:
            result[resource] = ResourceOperations(
                operations=operations, fields_per_operation=fields_per_operation
            )

    return result


def extract_fixed_collections(
    descriptors: List[ParameterDescriptor],
) -> Dict[str, FixedCollectionSchema]:
    collections: Dict[str, FixedCollectionSchema] = {}
    for descriptor in descriptors:
        if descriptor.type != ParameterType.FIXED_COLLECTION.value:
            continue
        groups = descriptor.fixed_collection_groups
        valid_options = [name for name, _ in groups]
        option_schemas = {name: extract_rules(group) for name, group in groups}

        existing = collections.get(descriptor.name)
        if existing is not None:
            valid_options = existing.valid_options + [
                name for name in valid_options if name not in existing.valid_options
            ]
            option_schemas = {**existing.option_schemas, **option_schemas}

        collections[descriptor.name] = FixedCollectionSchema(
            name=descriptor.name,
            valid_options=valid_options,
            option_schemas=option_schemas,
            multiple_values=descriptor.multiple_values,
        )
    return collections


class SchemaBuilder:
    """Builds node and credential schemas from a descriptor provider."""

    def __init__(self, package: str = "n8n-nodes-base"):
        self.package = package
        self.logger = logger.bind(component="schema_builder")

    def build(self, provider: DescriptorProvider) -> Dict[str, NodeSchema]:
        """Build the default-version schema of every node type."""
        return self.build_all(provider).schemas

    def build_all(self, provider: DescriptorProvider) -> BuildResult:
        result = BuildResult(stats=ExtractionStats(engine_version=__version__))
        stats = result.stats

        try:
            names = provider.node_type_names()
        except Exception as e:
            self.logger.error("Failed to list node types", error=str(e))
            names = []

        for name in names:
            try:
                source = provider.get_node_type(name)
                schema, partial = self._build_node(name, source)
            except Exception as e:
                stats.failed_nodes += 1
                stats.failed_names.append(name)
                self.logger.warning("Failed to build node schema", node_type=name, error=str(e))
                continue

            result.schemas[schema.name] = schema
            result.sources[schema.name] = source
            stats.total_nodes += 1
            stats.total_versions += len(schema.available_versions)
            if schema.has_versions:
                stats.versioned_nodes += 1
            if partial:
                stats.partial_failures += 1

        result.credentials = self.build_credentials(provider)
        stats.credential_types = len(result.credentials)

        self.logger.info(
            "Schema build completed",
            nodes=stats.total_nodes,
            versioned=stats.versioned_nodes,
            credentials=stats.credential_types,
            failed=stats.failed_nodes,
            partial=stats.partial_failures,
        )
        return result

    def build_node(
        self, name: str, source: NodeSource, version: Optional[float] = None
    ) -> NodeSchema:
        """Build the schema of one node type at ``version`` (default version if omitted)."""
        try:
            schema, _ = self._build_node(name, source, version)
        except Exception as e:
            raise SchemaBuildError(f"Cannot build {name} version {version}: {e}") from e
        return schema

    def _build_node(
        self, name: str, source: NodeSource, version: Optional[float] = None
    ) -> Tuple[NodeSchema, bool]:
        default_version = source.default_version
        target_version = version if version is not None else default_version
        description = source.get_node_type(target_version)
        if not isinstance(description, dict):
            raise DescriptorError(f"Node type {name!r} has no description")

        node_name = description.get("name") or name
        descriptors = parse_descriptors(description.get("properties", []))

        partial = False
        try:
            defaults = compute_defaults(descriptors, target_version)
        except Exception as e:
            defaults = {}
            partial = True
            self.logger.warning(
                "Default evaluation failed", node_type=node_name, version=target_version, error=str(e)
            )

        rules = extract_rules(descriptors)
        required, optional = partition_parameters(rules)

        display_issues = check_display_references(descriptors)
        if display_issues:
            self.logger.warning(
                "Display options reference unknown fields",
                node_type=node_name,
                issues=display_issues,
            )

        filter_fields = find_filter_fields(descriptors)

        schema = NodeSchema(
            name=node_name,
            node_type=description.get("nodeType") or f"{self.package}.{node_name}",
            display_name=description.get("displayName") or node_name,
            description=description.get("description") or "",
            group=list(description.get("group") or []),
            version=description.get("version"),
            type_version=target_version,
            default_version=default_version,
            available_versions=source.available_versions,
            has_versions=isinstance(source, VersionedNodeType),
            inputs=list(description.get("inputs") or ["main"]),
            outputs=list(description.get("outputs") or ["main"]),
            credentials=list(description.get("credentials") or []),
            properties=descriptors,
            computed_defaults=defaults,
            required_parameters=required,
            optional_parameters=optional,
            parameter_types=parameter_types(descriptors),
            validation_rules=rules,
            conditional_fields=extract_conditional_fields(descriptors),
            resource_operations=extract_resource_operations(descriptors),
            fixed_collections=extract_fixed_collections(descriptors),
            filter_schema=build_filter_schema(filter_fields) if filter_fields else None,
            display_option_issues=display_issues,
        )
        return schema, partial

    def build_credentials(self, provider: DescriptorProvider) -> Dict[str, CredentialSchema]:
        credentials: Dict[str, CredentialSchema] = {}
        try:
            names = provider.credential_type_names()
        except Exception as e:
            self.logger.error("Failed to list credential types", error=str(e))
            return credentials

        for name in names:
            try:
                credential = self.build_credential(name, provider.get_credential_type(name))
            except Exception as e:
                self.logger.warning("Failed to build credential schema", credential_type=name, error=str(e))
                continue
            credentials[credential.name] = credential
        return credentials

    def build_credential(self, name: str, raw: Dict[str, Any]) -> CredentialSchema:
        if not isinstance(raw, dict):
            raise DescriptorError(f"Credential type {name!r} must be an object")
        return CredentialSchema(
            name=raw.get("name") or name,
            display_name=raw.get("displayName") or name,
            documentation_url=raw.get("documentationUrl"),
            extends=list(raw.get("extends") or []),
            properties=parse_descriptors(raw.get("properties", [])),
            authenticate=bool(raw.get("authenticate")),
        )

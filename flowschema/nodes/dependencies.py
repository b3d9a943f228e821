"""Registry and validator dependencies for dependency injection."""

from functools import lru_cache

from flowschema.config import settings
from flowschema.descriptors.provider import create_provider
from flowschema.nodes.registry import SchemaRegistry
from flowschema.schema.builder import SchemaBuilder
from flowschema.validation.node import NodeValidator
from flowschema.validation.workflow import WorkflowValidator


@lru_cache()
def get_schema_registry() -> SchemaRegistry:
    """Get the global schema registry, built on first use."""
    provider = create_provider(settings.plugin_paths, settings.include_builtin_nodes)
    registry = SchemaRegistry(provider, SchemaBuilder(package=settings.default_package))
    registry.refresh()
    return registry


@lru_cache()
def get_node_validator() -> NodeValidator:
    """Get the global node validator."""
    return NodeValidator(
        get_schema_registry(),
        unknown_parameter_policy=settings.unknown_parameter_policy,
        valid_prefixes=settings.valid_type_prefixes,
        max_depth=settings.max_nesting_depth,
    )


@lru_cache()
def get_workflow_validator() -> WorkflowValidator:
    """Get the global workflow validator."""
    return WorkflowValidator(get_node_validator())

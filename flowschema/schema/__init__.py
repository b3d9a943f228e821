"""Schema model: building, resolving and serializing node schemas."""

from .builder import BuildResult, SchemaBuilder
from .defaults import compute_defaults, evaluate_parameters
from .models import (
    ConditionalField,
    CredentialSchema,
    ExtractionStats,
    FieldConstraints,
    FilterSchema,
    FixedCollectionSchema,
    NodeSchema,
    ResourceOperations,
    ValidationRule,
)
from .resolver import (
    is_required,
    is_visible,
    required_fields,
    resolve_effective_fields,
    resolve_visible_fields,
)

__all__ = [
    "BuildResult",
    "ConditionalField",
    "CredentialSchema",
    "ExtractionStats",
    "FieldConstraints",
    "FilterSchema",
    "FixedCollectionSchema",
    "NodeSchema",
    "ResourceOperations",
    "SchemaBuilder",
    "ValidationRule",
    "compute_defaults",
    "evaluate_parameters",
    "is_required",
    "is_visible",
    "required_fields",
    "resolve_effective_fields",
    "resolve_visible_fields",
]

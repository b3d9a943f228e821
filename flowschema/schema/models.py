"""Canonical schema models produced by the builder."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from flowschema.descriptors.base import ParameterDescriptor

Version = Union[int, float]


class SchemaModel(BaseModel):
    """Immutable model serialized in camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class FieldConstraints(SchemaModel):
    """Constraint tree for one field."""
    type: str
    enum_values: Optional[List[Any]] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    multiple_of: Optional[float] = None
    pattern: Optional[str] = None
    default: Any = None
    item_type: Optional[str] = None
    properties: Optional[Dict[str, "FieldConstraints"]] = None
    required_properties: Optional[List[str]] = None


class ValidationRule(SchemaModel):
    """Flattened validation rule for one declared field."""
    field: str
    type: str
    required: bool
    constraints: FieldConstraints
    display_options: Optional[Dict[str, Dict[str, List[Any]]]] = None
    depends_on: Optional[List[str]] = None


class ConditionalField(SchemaModel):
    """A field whose visibility depends on sibling values."""
    field: str
    condition: Dict[str, Dict[str, List[Any]]]
    depends_on_fields: List[str]


class ResourceOperations(SchemaModel):
    """Operations valid for one resource and the fields each one activates."""
    operations: List[str] = Field(default_factory=list)
    fields_per_operation: Dict[str, List[str]] = Field(default_factory=dict)


class FixedCollectionSchema(SchemaModel):
    """Valid sub-groups of a fixedCollection field."""
    name: str
    valid_options: List[str]
    option_schemas: Dict[str, List[ValidationRule]] = Field(default_factory=dict)
    multiple_values: bool = False


class FilterSchema(SchemaModel):
    """Fixed shape of filter-typed values, shared by every node."""
    type: str = "filter"
    required_fields: List[str]
    options_schema: Dict[str, Dict[str, Any]]
    condition_schema: Dict[str, Any]
    combinator: Dict[str, Any]
    fields: List[str] = Field(default_factory=list, description="Paths of filter-typed fields")


class NodeSchema(SchemaModel):
    """Resolved schema of one node type at one version."""

    name: str
    node_type: str
    display_name: str
    description: str = ""
    group: List[str] = Field(default_factory=list)
    version: Any = None
    type_version: Version
    default_version: Optional[Version] = None
    available_versions: List[Version] = Field(default_factory=list)
    has_versions: bool = False
    inputs: List[Any] = Field(default_factory=lambda: ["main"])
    outputs: List[Any] = Field(default_factory=lambda: ["main"])
    credentials: List[Dict[str, Any]] = Field(default_factory=list)

    properties: List[ParameterDescriptor] = Field(default_factory=list)
    computed_defaults: Dict[str, Any] = Field(default_factory=dict)
    required_parameters: List[str] = Field(default_factory=list)
    optional_parameters: List[str] = Field(default_factory=list)
    parameter_types: Dict[str, str] = Field(default_factory=dict)
    validation_rules: List[ValidationRule] = Field(default_factory=list)
    conditional_fields: List[ConditionalField] = Field(default_factory=list)
    resource_operations: Dict[str, ResourceOperations] = Field(default_factory=dict)
    fixed_collections: Dict[str, FixedCollectionSchema] = Field(default_factory=dict)
    filter_schema: Optional[FilterSchema] = None
    display_option_issues: List[str] = Field(default_factory=list)

    @property
    def latest_version(self) -> Version:
        return self.available_versions[-1] if self.available_versions else self.type_version

    @property
    def categories(self) -> List[str]:
        return self.group or ["other"]

    def descriptors_named(self, name: str) -> List[ParameterDescriptor]:
        """All candidate descriptors declared under ``name``, in order."""
        return [d for d in self.properties if d.name == name]

    def to_artifact(self) -> Dict[str, Any]:
        """Serializable form with descriptors in their declared shape."""
        data = self.model_dump(
            by_alias=True,
            exclude={"properties", "computed_defaults", "validation_rules"},
            exclude_none=True,
        )
        data["defaults"] = self.computed_defaults
        data["properties"] = [d.to_dict() for d in self.properties]
        return data

    def to_validation_artifact(self) -> Dict[str, Any]:
        """Validation-rule document for external tooling."""
        return {
            "nodeType": self.node_type,
            "displayName": self.display_name,
            "version": self.version,
            "defaultVersion": self.default_version,
            "category": self.group,
            "requiredParameters": self.required_parameters,
            "optionalParameters": self.optional_parameters,
            "validationRules": [
                rule.model_dump(by_alias=True, exclude_none=True) for rule in self.validation_rules
            ],
            "computedDefaults": self.computed_defaults,
            "conditionalFields": [
                field.model_dump(by_alias=True) for field in self.conditional_fields
            ],
            "resourceOperations": {
                resource: ops.model_dump(by_alias=True)
                for resource, ops in self.resource_operations.items()
            } or None,
            "fixedCollections": [
                fc.model_dump(by_alias=True, exclude_none=True)
                for fc in self.fixed_collections.values()
            ],
            "filterSchema": (
                self.filter_schema.model_dump(by_alias=True) if self.filter_schema else None
            ),
        }


class CredentialSchema(SchemaModel):
    """Schema of one credential type."""
    name: str
    display_name: str
    documentation_url: Optional[str] = None
    extends: List[str] = Field(default_factory=list)
    properties: List[ParameterDescriptor] = Field(default_factory=list)
    authenticate: bool = False

    def to_artifact(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude={"properties"}, exclude_none=True)
        data["properties"] = [d.to_dict() for d in self.properties]
        return data


class ExtractionStats(BaseModel):
    """Batch-level outcome of one schema build."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_nodes: int = 0
    versioned_nodes: int = 0
    total_versions: int = 0
    credential_types: int = 0
    failed_nodes: int = 0
    partial_failures: int = 0
    failed_names: List[str] = Field(default_factory=list)
    extracted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    engine_version: str = "0.1.0"

"""Test schema building."""

import pytest

from flowschema.descriptors.base import parse_descriptors
from flowschema.descriptors.provider import StaticDescriptorProvider, UnversionedNodeType
from flowschema.exceptions import SchemaBuildError
from flowschema.schema.builder import (
    SchemaBuilder,
    extract_fixed_collections,
    extract_resource_operations,
    partition_parameters,
)
from flowschema.schema.constraints import (
    build_constraints,
    check_display_references,
    extract_rules,
    is_rule_required,
)


@pytest.fixture
def crm_schema(static_provider):
    return SchemaBuilder().build(static_provider)["crm"]


@pytest.mark.unit
class TestRules:
    """Test validation rule extraction."""

    def test_rule_required(self):
        explicit, bare, gated, defaulted = parse_descriptors([
            {"name": "a", "required": True, "default": ""},
            {"name": "b"},
            {"name": "c", "displayOptions": {"show": {"a": ["x"]}}},
            {"name": "d", "default": 0},
        ])
        assert is_rule_required(explicit)
        assert is_rule_required(bare)
        assert not is_rule_required(gated)
        assert not is_rule_required(defaulted)

    def test_notice_never_required(self):
        notice, = parse_descriptors([{"name": "hint", "type": "notice", "displayName": "Heads up"}])
        assert not is_rule_required(notice)

        required, _ = partition_parameters(extract_rules([notice]))
        assert "hint" not in required

    def test_constraints_tree(self):
        descriptor = parse_descriptors([{
            "name": "options",
            "type": "collection",
            "default": {},
            "options": [
                {"name": "timeout", "type": "number", "default": 10, "typeOptions": {"minValue": 1}},
                {"name": "mode", "type": "options", "default": "a", "required": True,
                 "options": [{"name": "A", "value": "a"}]},
            ],
        }])[0]

        constraints = build_constraints(descriptor)

        assert set(constraints.properties) == {"timeout", "mode"}
        assert constraints.properties["timeout"].min_value == 1
        assert constraints.properties["mode"].enum_values == ["a"]
        assert constraints.required_properties == ["mode"]

    def test_partition_is_disjoint(self, resource_descriptors):
        required, optional = partition_parameters(extract_rules(parse_descriptors(resource_descriptors)))

        assert required == ["name"]
        assert optional == ["resource", "operation", "email", "contactId", "amount"]
        assert not set(required) & set(optional)

    def test_builtin_partitions_cover_ungated_fields(self, registry):
        for schema in registry.list_schemas():
            required = set(schema.required_parameters)
            optional = set(schema.optional_parameters)
            ungated = {d.name for d in schema.properties if not d.has_display_options}

            assert not required & optional, schema.name
            assert ungated <= required | optional, schema.name

    def test_display_reference_check(self):
        descriptors = parse_descriptors([
            {"name": "a", "displayOptions": {"show": {"missing": [1], "@version": [1]}}},
            {"name": "b", "type": "collection", "default": {},
             "options": [{"name": "c", "displayOptions": {"show": {"/a": [1], "d": [1]}}}]},
        ])

        assert check_display_references(descriptors) == [
            "a: display condition references unknown field 'missing'",
            "b.c: display condition references unknown field 'd'",
        ]


@pytest.mark.unit
class TestResourceOperations:
    """Test resource/operation extraction."""

    def test_crm(self, resource_descriptors):
        operations = extract_resource_operations(parse_descriptors(resource_descriptors))

        assert operations["contact"].operations == ["create", "get"]
        assert operations["contact"].fields_per_operation == {
            "create": ["email"],
            "get": ["contactId"],
        }
        assert operations["deal"].operations == ["close"]
        assert operations["deal"].fields_per_operation == {"close": []}

    def test_no_resource_field(self):
        assert extract_resource_operations(parse_descriptors([{"name": "operation"}])) == {}

    def test_slack(self, registry):
        operations = registry.get_schema("slack").resource_operations

        assert operations["channel"].operations == ["archive", "create", "get"]
        assert operations["channel"].fields_per_operation == {
            "archive": [],
            "create": ["channelName"],
            "get": [],
        }
        assert operations["message"].fields_per_operation == {
            "delete": ["ts"],
            "post": ["select", "channelId", "text", "otherOptions"],
            "update": ["text", "ts"],
        }
        assert operations["user"].operations == ["info", "getPresence"]


@pytest.mark.unit
class TestSchemaBuilder:
    """Test building whole node schemas."""

    def test_crm_schema(self, crm_schema):
        assert crm_schema.node_type == "n8n-nodes-base.crm"
        assert crm_schema.display_name == "CRM"
        assert crm_schema.available_versions == [1]
        assert crm_schema.has_versions is False
        assert crm_schema.computed_defaults == {
            "resource": "contact",
            "operation": "create",
            "email": "",
        }
        assert crm_schema.parameter_types["amount"] == "number"
        assert [field.field for field in crm_schema.conditional_fields] == [
            "operation", "operation", "email", "contactId", "amount",
        ]

    def test_custom_package(self, static_provider):
        schema = SchemaBuilder(package="acme-nodes").build(static_provider)["crm"]
        assert schema.node_type == "acme-nodes.crm"

    def test_versioned_schema(self, registry):
        schema = registry.get_schema("switch")

        assert schema.has_versions is True
        assert schema.type_version == 3.2
        assert schema.computed_defaults == {"mode": "rules", "rules": {}, "options": {}}
        assert schema.required_parameters == []
        assert schema.filter_schema.fields == ["rules.values.conditions"]
        assert schema.fixed_collections["rules"].valid_options == ["values"]
        assert schema.fixed_collections["rules"].multiple_values is True

    def test_fixed_collection_groups(self, registry):
        schema = registry.get_schema("if", 1)
        collections = extract_fixed_collections(schema.properties)

        assert collections["conditions"].valid_options == ["boolean", "number", "string"]
        assert schema.filter_schema is None

    def test_required_parameters(self, registry):
        assert registry.get_schema("httpRequest").required_parameters == ["url"]

    def test_partial_failure_keeps_schema(self):
        provider = StaticDescriptorProvider(nodes={
            "odd": {"description": {
                "name": "odd",
                "properties": [
                    {"name": "options", "type": "collection", "default": "not an object"},
                ],
            }},
        })

        result = SchemaBuilder().build_all(provider)

        assert result.schemas["odd"].computed_defaults == {}
        assert result.stats.partial_failures == 1
        assert result.stats.failed_nodes == 0

    def test_failed_node_is_skipped(self, static_provider):
        provider = StaticDescriptorProvider(nodes={
            "broken": {"description": {"name": "broken"}, "nodeVersions": "oops"},
            "crm": static_provider.get_node_type("crm"),
        })

        result = SchemaBuilder().build_all(provider)

        assert list(result.schemas) == ["crm"]
        assert result.stats.total_nodes == 1
        assert result.stats.failed_nodes == 1
        assert result.stats.failed_names == ["broken"]

    def test_build_node_wraps_errors(self):
        source = UnversionedNodeType({"name": "odd", "properties": "broken"})

        with pytest.raises(SchemaBuildError, match="odd"):
            SchemaBuilder().build_node("odd", source)

    def test_credentials(self, static_provider, registry):
        credentials = SchemaBuilder().build_credentials(static_provider)

        assert credentials["crmApi"].display_name == "CRM API"
        assert credentials["crmApi"].authenticate is False
        assert registry.get_credential("slackApi").authenticate is True

    def test_artifact_shape(self, crm_schema):
        artifact = crm_schema.to_artifact()

        assert artifact["nodeType"] == "n8n-nodes-base.crm"
        assert artifact["defaults"] == crm_schema.computed_defaults
        assert artifact["properties"][0]["name"] == "resource"
        assert "resourceOperations" in artifact

        validation = crm_schema.to_validation_artifact()
        assert validation["requiredParameters"] == ["name"]
        assert validation["resourceOperations"]["contact"]["fieldsPerOperation"] == {
            "create": ["email"],
            "get": ["contactId"],
        }

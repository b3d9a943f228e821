"""Test the schema registry."""

import pytest

from flowschema.descriptors.provider import BUILTIN_PATH, DirectoryDescriptorProvider, StaticDescriptorProvider
from flowschema.nodes.registry import SchemaRegistry
from flowschema.schema.builder import SchemaBuilder


@pytest.mark.unit
class TestSchemaRegistry:
    """Test registry lookups and refresh."""

    def test_not_initialized_before_refresh(self, static_provider):
        registry = SchemaRegistry(static_provider)

        assert registry.is_initialized is False
        assert registry.node_names() == []
        assert registry.get_schema("crm") is None

    def test_builtin_stats(self, registry):
        stats = registry.stats

        assert registry.is_initialized is True
        assert registry.node_names() == [
            "code", "httpRequest", "if", "scheduleTrigger", "set", "slack", "switch", "webhook",
        ]
        assert stats.total_nodes == 8
        assert stats.versioned_nodes == 2
        assert stats.credential_types == 2
        assert stats.failed_nodes == 0

    @pytest.mark.parametrize("node_type", ["if", "n8n-nodes-base.if", "custom-package.if"])
    def test_resolve_name(self, registry, node_type):
        assert registry.resolve_name(node_type) == "if"

    def test_unknown_names(self, registry):
        assert registry.resolve_name("n8n-nodes-base.nothing") is None
        assert registry.resolve_name("") is None
        assert registry.has_node("nothing") is False

    def test_versions(self, registry):
        default = registry.get_schema("if")
        oldest = registry.get_schema("if", 1)

        assert default.type_version == 2.2
        assert default.available_versions == [1, 2, 2.1, 2.2]
        assert oldest.type_version == 1
        assert "combineOperation" in oldest.parameter_types
        assert registry.get_schema("if", 3) is None

    def test_version_cache(self, registry):
        assert registry.get_schema("if", 2.1) is registry.get_schema("if", 2.1)
        assert registry.get_schema("if", 2) is not registry.get_schema("if", 2.1)

    def test_integer_and_float_versions_match(self, registry):
        assert registry.get_schema("if", 2) is registry.get_schema("if", 2.0)

    def test_categories_and_search(self, registry):
        categories = registry.categories()

        assert categories["trigger"] == ["scheduleTrigger", "webhook"]
        assert registry.get_nodes_by_category("missing") == []
        assert [schema.name for schema in registry.search("SLACK")] == ["slack"]
        assert len(registry.search("e", limit=2)) == 2

    def test_credentials(self, registry):
        assert registry.credential_names() == ["httpBasicAuth", "slackApi"]
        assert registry.get_credential("slackApi").display_name
        assert registry.get_credential("missing") is None

    def test_refresh_swaps_result(self, static_provider):
        registry = SchemaRegistry(static_provider)
        registry.refresh()
        first = registry.result

        registry.refresh()

        assert registry.result is not first
        assert registry.get_schema("crm").name == "crm"

    def test_failed_version_build_returns_none(self):
        provider = StaticDescriptorProvider(nodes={
            "odd": {
                "description": {"name": "odd", "defaultVersion": 2},
                "nodeVersions": {
                    "1": {"version": 1, "properties": "broken"},
                    "2": {"version": 2, "properties": []},
                },
            },
        })
        registry = SchemaRegistry(provider)
        registry.refresh()

        assert registry.get_schema("odd") is not None
        assert registry.get_schema("odd", 1) is None

    def test_custom_package(self):
        registry = SchemaRegistry(
            DirectoryDescriptorProvider(BUILTIN_PATH), SchemaBuilder(package="acme-nodes")
        )
        registry.refresh()

        assert registry.get_schema("acme-nodes.webhook").node_type == "acme-nodes.webhook"

"""Test descriptor models and providers."""

import json

import pytest

from flowschema.descriptors.base import DisplayOptions, ParameterDescriptor, parse_descriptors
from flowschema.descriptors.provider import (
    BUILTIN_PATH,
    ChainedDescriptorProvider,
    DirectoryDescriptorProvider,
    ModulePluginProvider,
    StaticDescriptorProvider,
    UnversionedNodeType,
    VersionedNodeType,
    create_provider,
    node_source_from_dict,
)
from flowschema.exceptions import ConfigurationError, DescriptorError, NodeTypeNotFoundError


@pytest.mark.unit
class TestParameterDescriptor:
    """Test descriptor parsing."""

    def test_camel_case_keys(self):
        descriptor = ParameterDescriptor.model_validate({
            "displayName": "Timeout",
            "name": "timeout",
            "type": "number",
            "default": 10,
            "typeOptions": {"minValue": 1, "maxValue": 60},
            "displayOptions": {"show": {"mode": ["advanced"]}},
        })

        assert descriptor.display_name == "Timeout"
        assert descriptor.type_options.min_value == 1
        assert descriptor.type_options.max_value == 60
        assert descriptor.display_options.show == {"mode": ["advanced"]}

    def test_default_presence_is_tracked(self):
        with_null = ParameterDescriptor.model_validate({"name": "a", "default": None})
        without = ParameterDescriptor.model_validate({"name": "b"})

        assert with_null.has_default is True
        assert without.has_default is False

    def test_scalar_display_condition_is_normalized(self):
        options = DisplayOptions.model_validate({"show": {"mode": "rules"}, "hide": {"x": [1, 2]}})

        assert options.show == {"mode": ["rules"]}
        assert options.referenced_fields() == ["mode", "x"]

    def test_enum_values(self):
        descriptor = ParameterDescriptor.model_validate({
            "name": "method",
            "type": "options",
            "options": [{"name": "GET", "value": "GET"}, {"name": "POST", "value": "POST"}],
        })
        assert descriptor.enum_values == ["GET", "POST"]

    def test_dynamic_options_have_no_enum(self):
        descriptor = ParameterDescriptor.model_validate({
            "name": "channel",
            "type": "options",
            "typeOptions": {"loadOptionsMethod": "getChannels"},
            "options": [{"name": "General", "value": "general"}],
        })
        assert descriptor.enum_values == []

    def test_fixed_collection_groups(self):
        descriptor = ParameterDescriptor.model_validate({
            "name": "rules",
            "type": "fixedCollection",
            "typeOptions": {"multipleValues": True},
            "options": [
                {"name": "values", "values": [{"name": "outputKey", "type": "string", "default": ""}]},
            ],
        })

        groups = descriptor.fixed_collection_groups
        assert [name for name, _ in groups] == ["values"]
        assert groups[0][1][0].name == "outputKey"
        assert descriptor.multiple_values is True

    @pytest.mark.parametrize("declared, node_version, expected", [
        (2, None, 2),
        ("={{ $nodeVersion >= 3.2 ? 2 : 1 }}", 3.2, 2),
        ("={{ $nodeVersion >= 3.2 ? 2 : 1 }}", 3.1, 1),
        ("={{$nodeVersion < 2 ? 1 : 2}}", 2.2, 2),
        ("={{ $nodeVersion >= 3.2 ? 2 : 1 }}", None, None),
        ("={{ $parameter.mode === 'x' ? 2 : 1 }}", 3, None),
    ])
    def test_filter_version_for_node_version(self, declared, node_version, expected):
        descriptor = ParameterDescriptor.model_validate({
            "name": "conditions",
            "type": "filter",
            "typeOptions": {"filter": {"version": declared}},
        })
        assert descriptor.type_options.filter_version_for(node_version) == expected

    def test_notice_carries_no_value(self):
        descriptor = ParameterDescriptor.model_validate({"name": "hint", "type": "notice", "default": ""})
        assert descriptor.carries_value is False

    def test_to_dict_round_trips_declared_shape(self):
        raw = {"displayName": "Path", "name": "path", "type": "string", "default": "", "required": True}
        assert ParameterDescriptor.model_validate(raw).to_dict() == raw

    def test_parse_descriptors_skips_nameless_entries(self):
        descriptors = parse_descriptors([{"type": "string"}, {"name": "a"}, "junk"])
        assert [d.name for d in descriptors] == ["a"]

    def test_parse_descriptors_rejects_non_list(self):
        with pytest.raises(DescriptorError):
            parse_descriptors({"name": "a"})


@pytest.mark.unit
class TestNodeSources:
    """Test versioned and unversioned node sources."""

    def test_unversioned_versions(self):
        source = UnversionedNodeType(description={"name": "a", "version": [2, 1]})
        assert source.available_versions == [1, 2]
        assert source.default_version == 2

    def test_unversioned_defaults_to_version_one(self):
        source = UnversionedNodeType(description={"name": "a"})
        assert source.available_versions == [1]

    def test_versioned_lookup_by_key_and_list(self):
        source = node_source_from_dict({
            "description": {"name": "a", "displayName": "A", "defaultVersion": 2},
            "nodeVersions": {
                "1": {"version": [1, 1.1], "properties": []},
                "2": {"version": 2, "properties": [{"name": "x"}]},
            },
        })

        assert isinstance(source, VersionedNodeType)
        assert source.available_versions == [1, 1.1, 2]
        assert source.default_version == 2
        assert source.get_node_type(1.1)["version"] == [1, 1.1]
        merged = source.get_node_type()
        assert merged["displayName"] == "A"
        assert "defaultVersion" not in merged

    def test_versioned_default_is_latest(self):
        source = node_source_from_dict({
            "description": {"name": "a"},
            "nodeVersions": {"1": {"version": 1}, "3": {"version": 3}},
        })
        assert source.default_version == 3

    def test_unknown_version_raises(self):
        source = node_source_from_dict({"description": {"name": "a"}, "nodeVersions": {"1": {}}})
        with pytest.raises(DescriptorError):
            source.get_node_type(5)

    def test_versioned_without_versions_raises(self):
        with pytest.raises(DescriptorError):
            node_source_from_dict({"description": {"name": "a"}, "nodeVersions": {}})


@pytest.mark.unit
class TestProviders:
    """Test descriptor providers."""

    def test_static_provider(self, static_provider):
        assert static_provider.node_type_names() == ["crm"]
        assert isinstance(static_provider.get_node_type("crm"), UnversionedNodeType)
        assert static_provider.credential_type_names() == ["crmApi"]
        with pytest.raises(NodeTypeNotFoundError):
            static_provider.get_node_type("missing")

    def test_builtin_directory(self):
        provider = DirectoryDescriptorProvider(BUILTIN_PATH)

        names = provider.node_type_names()
        assert {"if", "switch", "slack", "httpRequest", "webhook"} <= set(names)
        assert isinstance(provider.get_node_type("switch"), VersionedNodeType)
        assert "slackApi" in provider.credential_type_names()

    def test_directory_skips_underscore_files(self, tmp_path):
        (tmp_path / "nodes").mkdir()
        (tmp_path / "nodes" / "_index.json").write_text("{}")
        (tmp_path / "nodes" / "noop.json").write_text(json.dumps({"description": {"name": "noop"}}))

        provider = DirectoryDescriptorProvider(tmp_path)
        assert provider.node_type_names() == ["noop"]
        assert provider.credential_type_names() == []

    def test_directory_reports_unreadable_file(self, tmp_path):
        (tmp_path / "nodes").mkdir()
        (tmp_path / "nodes" / "broken.json").write_text("{not json")

        provider = DirectoryDescriptorProvider(tmp_path)
        with pytest.raises(DescriptorError):
            provider.get_node_type("broken")

    def test_module_plugin_provider(self, tmp_path):
        plugin = tmp_path / "greeting.py"
        plugin.write_text(
            "class GreetingNode:\n"
            "    description = {\n"
            "        'name': 'greeting',\n"
            "        'displayName': 'Greeting',\n"
            "        'properties': [{'name': 'text', 'type': 'string', 'default': 'hi'}],\n"
            "    }\n"
            "\n"
            "class GreetingApi:\n"
            "    name = 'greetingApi'\n"
            "    properties = [{'name': 'token', 'type': 'string', 'default': ''}]\n"
        )

        provider = ModulePluginProvider([tmp_path])
        assert provider.node_type_names() == ["greeting"]
        assert provider.get_node_type("greeting").description["displayName"] == "Greeting"
        assert provider.credential_type_names() == ["greetingApi"]

    def test_module_plugin_provider_survives_broken_module(self, tmp_path):
        (tmp_path / "broken.py").write_text("raise RuntimeError('boom')\n")
        provider = ModulePluginProvider([tmp_path])
        assert provider.node_type_names() == []

    def test_chained_provider_first_wins(self, static_provider):
        override = StaticDescriptorProvider(nodes={"crm": {"description": {"name": "crm", "displayName": "Override"}}})
        chained = ChainedDescriptorProvider([override, static_provider])

        assert chained.node_type_names() == ["crm"]
        assert chained.get_node_type("crm").description["displayName"] == "Override"
        assert chained.credential_type_names() == ["crmApi"]

    def test_create_provider(self, tmp_path):
        (tmp_path / "plugin.py").write_text("X = 1\n")

        assert isinstance(create_provider([], include_builtin=True), DirectoryDescriptorProvider)
        chained = create_provider([tmp_path], include_builtin=True)
        assert isinstance(chained, ChainedDescriptorProvider)
        assert isinstance(chained.providers[0], ModulePluginProvider)
        assert isinstance(chained.providers[1], DirectoryDescriptorProvider)

    def test_create_provider_missing_path(self, tmp_path):
        with pytest.raises(ConfigurationError, match="does not exist"):
            create_provider([tmp_path / "missing"])

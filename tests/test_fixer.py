"""Test experimental workflow fixes."""

import pytest

from flowschema.validation.fixer import (
    DEFAULT_FIXES,
    ExperimentalFix,
    apply_experimental_fixes,
    fix_invalid_options_fields,
)


@pytest.fixture
def workflow(make_node):
    return {
        "nodes": [
            make_node("Check", node_type="n8n-nodes-base.if", type_version=2.2,
                      parameters={"conditions": {}, "options": {}}),
            make_node("Route", node_type="n8n-nodes-base.switch", type_version=3.2,
                      parameters={"options": {"ignoreCase": True}}),
            make_node("Edit", parameters={"options": {}}),
        ],
        "connections": {},
    }


@pytest.mark.unit
class TestExperimentalFixes:
    """Test fix application."""

    def test_removes_empty_options_from_if_and_switch(self, workflow):
        fixed, result = apply_experimental_fixes(workflow)

        assert result.fixed is True
        assert result.warnings == [
            "Fixed node \"Check\": Removed invalid empty 'options' field from parameters root",
        ]
        assert fixed["nodes"][0]["parameters"] == {"conditions": {}}
        assert fixed["nodes"][1]["parameters"] == {"options": {"ignoreCase": True}}
        assert fixed["nodes"][2]["parameters"] == {"options": {}}

    def test_input_is_not_modified(self, workflow):
        apply_experimental_fixes(workflow)
        assert workflow["nodes"][0]["parameters"] == {"conditions": {}, "options": {}}

    def test_nothing_to_fix(self, make_node):
        workflow = {"nodes": [make_node("Edit")], "connections": {}}

        fixed, result = fix_invalid_options_fields(workflow)

        assert result.fixed is False
        assert result.warnings == []
        assert fixed == workflow

    def test_non_object_is_returned_unchanged(self):
        fixed, result = apply_experimental_fixes(["not", "a", "workflow"])

        assert fixed == ["not", "a", "workflow"]
        assert result.fixed is False

    def test_custom_fix_list(self, workflow):
        def rename(document):
            document["name"] = "renamed"
            return ["renamed workflow"]

        fixed, result = apply_experimental_fixes(
            workflow, [ExperimentalFix(id="rename", description="Rename", apply=rename)]
        )

        assert fixed["name"] == "renamed"
        assert result.warnings == ["renamed workflow"]
        assert fixed["nodes"][0]["parameters"]["options"] == {}

    def test_registered_fixes(self):
        assert [fix.id for fix in DEFAULT_FIXES] == ["empty-options-if-switch"]

"""Test conditional field resolution."""

import pytest

from flowschema.descriptors.base import parse_descriptors
from flowschema.schema.resolver import (
    is_required,
    is_visible,
    matches,
    required_fields,
    resolve_effective_fields,
    resolve_visible_fields,
    values_equal,
)


def _descriptor(**kwargs):
    return parse_descriptors([kwargs])[0]


@pytest.mark.unit
class TestMatching:
    """Test value matching."""

    def test_booleans_are_not_numbers(self):
        assert values_equal(True, True)
        assert not values_equal(True, 1)
        assert not values_equal(0, False)
        assert values_equal(2, 2.0)

    def test_list_values_match_any_element(self):
        assert matches(["a", "b"], ["b"])
        assert not matches(["a"], ["c"])

    def test_resource_locator_is_unwrapped(self):
        assert matches({"__rl": True, "value": "channel", "mode": "list"}, ["channel"])

    @pytest.mark.parametrize("condition,actual,expected", [
        ({"gte": 2}, 2.1, True),
        ({"gte": 2}, 1, False),
        ({"lt": 3}, 2, True),
        ({"eq": "x"}, "x", True),
        ({"not": "x"}, "y", True),
        ({"between": {"from": 1, "to": 2}}, 1.5, True),
        ({"startsWith": "ab"}, "abc", True),
        ({"includes": "b"}, "abc", True),
        ({"regex": "^a.c$"}, "abc", True),
        ({"exists": True}, "", False),
        ({"gte": 1}, "2", False),
    ])
    def test_operator_conditions(self, condition, actual, expected):
        assert matches(actual, [{"_cnd": condition}]) is expected


@pytest.mark.unit
class TestVisibility:
    """Test visibility of single descriptors."""

    def test_undecided_key_is_visible(self):
        descriptor = _descriptor(name="a", displayOptions={"show": {"mode": ["x"]}})
        assert is_visible(descriptor, {})

    def test_show_and_hide(self):
        descriptor = _descriptor(
            name="a",
            displayOptions={"show": {"mode": ["x"]}, "hide": {"flag": [True]}},
        )
        assert is_visible(descriptor, {"mode": "x"})
        assert not is_visible(descriptor, {"mode": "y"})
        assert not is_visible(descriptor, {"mode": "x", "flag": True})
        assert is_visible(descriptor, {"mode": "x", "flag": 1})

    def test_version_condition(self):
        descriptor = _descriptor(
            name="a", displayOptions={"show": {"@version": [{"_cnd": {"gte": 2.1}}]}}
        )
        assert is_visible(descriptor, {}, version=2.2)
        assert not is_visible(descriptor, {}, version=2)
        assert is_visible(descriptor, {})

    def test_root_key_uses_root_context(self):
        descriptor = _descriptor(name="a", displayOptions={"show": {"/mode": ["rules"]}})
        assert is_visible(descriptor, {}, root_context={"mode": "rules"})
        assert not is_visible(descriptor, {"mode": "rules"}, root_context={"mode": "expression"})

    def test_adding_unrelated_value_keeps_visibility(self, resource_descriptors):
        descriptors = parse_descriptors(resource_descriptors)
        before = [d.name for d in resolve_visible_fields(descriptors, {"resource": "deal"})]
        after = [
            d.name for d in resolve_visible_fields(descriptors, {"resource": "deal", "unrelated": 1})
        ]
        assert before == after


@pytest.mark.unit
class TestEffectiveFields:
    """Test picking one descriptor per name."""

    def test_last_visible_candidate_wins(self, resource_descriptors):
        descriptors = parse_descriptors(resource_descriptors)

        resolved = resolve_effective_fields(descriptors, {"resource": "deal"})

        assert resolved.fields["operation"].enum_values == ["close"]
        assert "email" in resolved.hidden
        assert "amount" in resolved
        assert resolved.ambiguous == {}

    def test_undecided_clash_is_not_ambiguous(self, resource_descriptors):
        descriptors = parse_descriptors(resource_descriptors)

        resolved = resolve_effective_fields(descriptors, {})

        assert resolved.fields["operation"].enum_values == ["close"]
        assert resolved.ambiguous == {}

    def test_decided_clash_is_ambiguous(self):
        descriptors = parse_descriptors([
            {"name": "mode", "type": "options", "default": "a"},
            {"name": "x", "default": 1, "displayOptions": {"show": {"mode": ["a"]}}},
            {"name": "x", "default": 2, "displayOptions": {"show": {"mode": ["a", "b"]}}},
        ])

        resolved = resolve_effective_fields(descriptors, {"mode": "a"})

        assert list(resolved.ambiguous) == ["x"]
        assert resolved.fields["x"].default == 2


@pytest.mark.unit
class TestRequired:
    """Test context-dependent required-ness."""

    def test_explicit_false_wins(self):
        assert not is_required(_descriptor(name="a", required=False), {})

    def test_missing_default_is_required(self):
        assert is_required(_descriptor(name="a"), {})
        assert not is_required(_descriptor(name="a", default=""), {})

    def test_hidden_is_never_required(self):
        descriptor = _descriptor(name="a", required=True, displayOptions={"show": {"mode": ["x"]}})
        assert not is_required(descriptor, {"mode": "y"})

    def test_notice_is_never_required(self):
        assert not is_required(_descriptor(name="a", type="notice"), {})

    def test_required_fields_follow_context(self, resource_descriptors):
        descriptors = parse_descriptors(resource_descriptors)

        assert required_fields(descriptors, {"resource": "contact", "operation": "create"}) == [
            "email", "name",
        ]
        assert required_fields(descriptors, {"resource": "contact", "operation": "get"}) == [
            "contactId", "name",
        ]

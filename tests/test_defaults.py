"""Test default-value evaluation."""

import pytest

from flowschema.descriptors.base import parse_descriptors
from flowschema.exceptions import DescriptorError
from flowschema.schema.defaults import compute_defaults, evaluate_parameters


@pytest.mark.unit
class TestComputeDefaults:
    """Test the default tree of a new node."""

    def test_progressive_resource_operation(self, resource_descriptors):
        defaults = compute_defaults(parse_descriptors(resource_descriptors))

        assert defaults == {"resource": "contact", "operation": "create", "email": ""}

    def test_user_values_are_kept(self, resource_descriptors):
        descriptors = parse_descriptors(resource_descriptors)

        values = evaluate_parameters(descriptors, {"resource": "deal", "amount": 5})

        assert values == {"resource": "deal", "operation": "close", "amount": 5}

    def test_user_value_survives_later_declaration(self):
        descriptors = parse_descriptors([
            {"name": "x", "default": 1},
            {"name": "x", "default": 2},
        ])
        assert evaluate_parameters(descriptors, {"x": 7}) == {"x": 7}
        assert compute_defaults(descriptors) == {"x": 2}

    def test_version_gated_default(self, registry):
        latest = registry.get_schema("if")
        older = registry.get_schema("if", 2)

        assert latest.computed_defaults == {
            "conditions": {},
            "looseTypeValidation": False,
            "options": {},
        }
        assert "looseTypeValidation" not in older.computed_defaults

    def test_collection_default_is_object(self):
        descriptors = parse_descriptors([{"name": "options", "type": "collection", "default": None}])
        assert compute_defaults(descriptors) == {"options": {}}

    def test_nested_fixed_collection_defaults(self, registry):
        schema = registry.get_schema("scheduleTrigger")

        assert schema.computed_defaults == {
            "rule": {"interval": [{"field": "days", "daysInterval": 1, "triggerAtHour": 0}]},
        }

    def test_defaults_are_copies(self):
        descriptors = parse_descriptors([{"name": "list", "type": "json", "default": {"a": []}}])

        first = compute_defaults(descriptors)
        first["list"]["a"].append(1)

        assert compute_defaults(descriptors) == {"list": {"a": []}}

    def test_invalid_collection_default_raises(self):
        descriptors = parse_descriptors([{"name": "options", "type": "collection", "default": "x"}])
        with pytest.raises(DescriptorError):
            compute_defaults(descriptors)

    def test_non_mapping_values_raise(self):
        with pytest.raises(DescriptorError):
            evaluate_parameters([], ["a"])

"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient

from flowschema.descriptors.provider import BUILTIN_PATH, DirectoryDescriptorProvider, StaticDescriptorProvider
from flowschema.main import app
from flowschema.nodes.dependencies import (
    get_node_validator,
    get_schema_registry,
    get_workflow_validator,
)
from flowschema.nodes.registry import SchemaRegistry
from flowschema.validation.node import NodeValidator
from flowschema.validation.workflow import WorkflowValidator


@pytest.fixture(scope="session")
def registry() -> SchemaRegistry:
    """Registry built from the bundled descriptors."""
    registry = SchemaRegistry(DirectoryDescriptorProvider(BUILTIN_PATH))
    registry.refresh()
    return registry


@pytest.fixture
def node_validator(registry) -> NodeValidator:
    return NodeValidator(registry)


@pytest.fixture
def strict_node_validator(registry) -> NodeValidator:
    return NodeValidator(registry, unknown_parameter_policy="error")


@pytest.fixture
def workflow_validator(node_validator) -> WorkflowValidator:
    return WorkflowValidator(node_validator)


@pytest.fixture
def resource_descriptors():
    """Resource/operation style descriptors with a duplicated field name."""
    return [
        {
            "displayName": "Resource",
            "name": "resource",
            "type": "options",
            "options": [
                {"name": "Contact", "value": "contact"},
                {"name": "Deal", "value": "deal"},
            ],
            "default": "contact",
        },
        {
            "displayName": "Operation",
            "name": "operation",
            "type": "options",
            "displayOptions": {"show": {"resource": ["contact"]}},
            "options": [
                {"name": "Create", "value": "create"},
                {"name": "Get", "value": "get"},
            ],
            "default": "create",
        },
        {
            "displayName": "Operation",
            "name": "operation",
            "type": "options",
            "displayOptions": {"show": {"resource": ["deal"]}},
            "options": [
                {"name": "Close", "value": "close"},
            ],
            "default": "close",
        },
        {
            "displayName": "Email",
            "name": "email",
            "type": "string",
            "default": "",
            "required": True,
            "displayOptions": {"show": {"resource": ["contact"], "operation": ["create"]}},
        },
        {
            "displayName": "Contact ID",
            "name": "contactId",
            "type": "string",
            "displayOptions": {"show": {"resource": ["contact"], "operation": ["get"]}},
        },
        {
            "displayName": "Amount",
            "name": "amount",
            "type": "number",
            "default": 0,
            "typeOptions": {"minValue": 0, "maxValue": 1000000},
            "displayOptions": {"show": {"resource": ["deal"]}},
        },
        {
            "displayName": "Name",
            "name": "name",
            "type": "string",
        },
    ]


@pytest.fixture
def static_provider(resource_descriptors) -> StaticDescriptorProvider:
    return StaticDescriptorProvider(
        nodes={
            "crm": {
                "description": {
                    "name": "crm",
                    "displayName": "CRM",
                    "group": ["output"],
                    "version": 1,
                    "properties": resource_descriptors,
                }
            },
        },
        credentials={
            "crmApi": {
                "name": "crmApi",
                "displayName": "CRM API",
                "properties": [{"name": "apiKey", "type": "string", "default": "", "required": True}],
            },
        },
    )


@pytest.fixture
def client(registry) -> TestClient:
    """Test client with the bundled registry injected."""
    node_validator = NodeValidator(registry)
    app.dependency_overrides[get_schema_registry] = lambda: registry
    app.dependency_overrides[get_node_validator] = lambda: node_validator
    app.dependency_overrides[get_workflow_validator] = lambda: WorkflowValidator(node_validator)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_node():
    """Factory for node instances; defaults to an Edit Fields node."""
    def _make_node(name, node_type="n8n-nodes-base.set", type_version=3.3, parameters=None, **extra):
        node = {
            "id": f"id-{name}",
            "name": name,
            "type": node_type,
            "typeVersion": type_version,
            "position": [0, 0],
            "parameters": {} if parameters is None else parameters,
        }
        node.update(extra)
        return node

    return _make_node

"""Node catalogue API routes."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from flowschema.nodes.dependencies import get_schema_registry
from flowschema.nodes.registry import SchemaRegistry
from flowschema.nodes.schemas import (
    CredentialListResponse,
    NodeDefaultsResponse,
    NodeListResponse,
    NodeSearchResponse,
    NodeSummaryResponse,
    ReloadResponse,
)
from flowschema.schema.models import NodeSchema

router = APIRouter(prefix="/api/v1/nodes", tags=["Nodes"])
credentials_router = APIRouter(prefix="/api/v1/credentials", tags=["Credentials"])


def _summary(schema: NodeSchema) -> NodeSummaryResponse:
    return NodeSummaryResponse(
        name=schema.name,
        node_type=schema.node_type,
        display_name=schema.display_name,
        description=schema.description,
        categories=schema.categories,
        default_version=schema.default_version,
        available_versions=schema.available_versions,
    )


def _get_schema(registry: SchemaRegistry, name: str, version: Optional[float]) -> NodeSchema:
    schema = registry.get_schema(name, version)
    if schema is None:
        if registry.has_node(name):
            raise HTTPException(status_code=404, detail=f"Version {version} of {name} not found")
        raise HTTPException(status_code=404, detail=f"Node type {name} not found")
    return schema


@router.get("", response_model=NodeListResponse)
async def list_nodes(
    category: Optional[str] = Query(None, description="Filter by category"),
    registry: SchemaRegistry = Depends(get_schema_registry),
) -> NodeListResponse:
    """List all node types."""
    schemas = registry.list_schemas()
    if category:
        names = set(registry.get_nodes_by_category(category))
        schemas = [schema for schema in schemas if schema.name in names]
    return NodeListResponse(
        total=len(schemas),
        nodes=[_summary(schema) for schema in schemas],
        categories=registry.categories(),
    )


@router.get("/search", response_model=NodeSearchResponse)
async def search_nodes(
    q: Optional[str] = Query(None, description="Search query"),
    limit: int = Query(50, ge=1, le=50, description="Maximum results"),
    registry: SchemaRegistry = Depends(get_schema_registry),
) -> NodeSearchResponse:
    """Search node types by name, display name or description."""
    if not q:
        raise HTTPException(status_code=400, detail="Query parameter 'q' is required")
    results = registry.search(q, limit=limit)
    return NodeSearchResponse(
        query=q,
        results=[_summary(schema) for schema in results],
        total=len(results),
    )


@router.post("/reload", response_model=ReloadResponse)
async def reload_nodes(
    registry: SchemaRegistry = Depends(get_schema_registry),
) -> ReloadResponse:
    """Rebuild every schema from the descriptor provider."""
    stats = registry.refresh()
    return ReloadResponse(
        total_nodes=stats.total_nodes,
        versioned_nodes=stats.versioned_nodes,
        credential_types=stats.credential_types,
        failed_nodes=stats.failed_nodes,
        partial_failures=stats.partial_failures,
        failed_names=stats.failed_names,
    )


@router.get("/{name}")
async def get_node(
    name: str,
    version: Optional[float] = Query(None, description="Type version"),
    registry: SchemaRegistry = Depends(get_schema_registry),
) -> Dict[str, Any]:
    """Full schema document of a node type."""
    return _get_schema(registry, name, version).to_artifact()


@router.get("/{name}/defaults", response_model=NodeDefaultsResponse)
async def get_node_defaults(
    name: str,
    version: Optional[float] = Query(None, description="Type version"),
    registry: SchemaRegistry = Depends(get_schema_registry),
) -> NodeDefaultsResponse:
    """Parameter values a new node of this type starts with."""
    schema = _get_schema(registry, name, version)
    return NodeDefaultsResponse(
        name=schema.name,
        type_version=schema.type_version,
        defaults=schema.computed_defaults,
    )


@router.get("/{name}/validation")
async def get_node_validation(
    name: str,
    version: Optional[float] = Query(None, description="Type version"),
    registry: SchemaRegistry = Depends(get_schema_registry),
) -> Dict[str, Any]:
    """Validation-rule document of a node type."""
    return _get_schema(registry, name, version).to_validation_artifact()


@credentials_router.get("", response_model=CredentialListResponse)
async def list_credentials(
    registry: SchemaRegistry = Depends(get_schema_registry),
) -> CredentialListResponse:
    """List all credential types."""
    names = registry.credential_names()
    return CredentialListResponse(total=len(names), credentials=names)


@credentials_router.get("/{name}")
async def get_credential(
    name: str,
    registry: SchemaRegistry = Depends(get_schema_registry),
) -> Dict[str, Any]:
    """Schema document of a credential type."""
    credential = registry.get_credential(name)
    if credential is None:
        raise HTTPException(status_code=404, detail=f"Credential type {name} not found")
    return credential.to_artifact()

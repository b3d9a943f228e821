"""Node catalogue API schemas."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class NodeSummaryResponse(BaseModel):
    """Node type summary."""
    name: str = Field(..., description="Schema name")
    node_type: str = Field(..., description="Full node type string")
    display_name: str = Field(..., description="Node display name")
    description: str = Field(default="", description="Node description")
    categories: List[str] = Field(default_factory=list, description="Node categories")
    default_version: Optional[Union[int, float]] = Field(None, description="Default type version")
    available_versions: List[Union[int, float]] = Field(
        default_factory=list, description="Available type versions"
    )


class NodeListResponse(BaseModel):
    """Node list response."""
    total: int
    nodes: List[NodeSummaryResponse]
    categories: Dict[str, List[str]] = Field(default_factory=dict)


class NodeSearchResponse(BaseModel):
    """Node search response."""
    query: str
    results: List[NodeSummaryResponse]
    total: int


class NodeDefaultsResponse(BaseModel):
    """Computed defaults of a node type."""
    name: str
    type_version: Union[int, float]
    defaults: Dict[str, Any]


class ReloadResponse(BaseModel):
    """Registry refresh outcome."""
    total_nodes: int
    versioned_nodes: int
    credential_types: int
    failed_nodes: int
    partial_failures: int
    failed_names: List[str] = Field(default_factory=list)


class CredentialListResponse(BaseModel):
    """Credential list response."""
    total: int
    credentials: List[str]

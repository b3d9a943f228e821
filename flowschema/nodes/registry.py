"""Schema registry.

Holds the schemas of one refresh cycle. A refresh builds a complete new set
and swaps it in at once; nothing in the set is mutated afterwards, so
lookups need no locking. Schemas for non-default versions are built on first
request and cached per (type, version).
"""

import threading
from typing import Dict, List, Optional, Tuple

import structlog

from flowschema.descriptors.provider import DescriptorProvider
from flowschema.exceptions import SchemaBuildError
from flowschema.metrics import record_registry
from flowschema.schema.builder import BuildResult, SchemaBuilder
from flowschema.schema.models import CredentialSchema, ExtractionStats, NodeSchema

logger = structlog.get_logger()


class SchemaRegistry:
    """Read-only schema store with per-version caching."""

    def __init__(self, provider: DescriptorProvider, builder: Optional[SchemaBuilder] = None):
        self.provider = provider
        self.builder = builder or SchemaBuilder()
        self._result = BuildResult()
        self._version_cache: Dict[Tuple[str, float], NodeSchema] = {}
        self._cache_lock = threading.Lock()
        self.is_initialized = False
        self.logger = logger.bind(component="schema_registry")

    def refresh(self) -> ExtractionStats:
        """Rebuild every schema from the provider."""
        result = self.builder.build_all(self.provider)
        with self._cache_lock:
            self._result = result
            self._version_cache = {}
        self.is_initialized = True
        record_registry(result.stats)
        self.logger.info(
            "Schema registry refreshed",
            nodes=result.stats.total_nodes,
            failed=result.stats.failed_nodes,
        )
        return result.stats

    @property
    def result(self) -> BuildResult:
        return self._result

    @property
    def stats(self) -> ExtractionStats:
        return self._result.stats

    def node_names(self) -> List[str]:
        return sorted(self._result.schemas)

    def has_node(self, node_type: str) -> bool:
        return self.resolve_name(node_type) is not None

    def resolve_name(self, node_type: str) -> Optional[str]:
        """Map a full type string such as ``pkg.httpRequest`` to a schema name."""
        if not isinstance(node_type, str) or not node_type:
            return None
        schemas = self._result.schemas
        if node_type in schemas:
            return node_type
        for name, schema in schemas.items():
            if schema.node_type == node_type:
                return name
        if "." in node_type:
            short = node_type.rsplit(".", 1)[1]
            if short in schemas:
                return short
        return None

    def get_schema(self, node_type: str, version: Optional[float] = None) -> Optional[NodeSchema]:
        """Schema of ``node_type`` at ``version``, or at its default version.

        Returns ``None`` for unknown types and for versions the type does not
        offer.
        """
        result = self._result
        name = self.resolve_name(node_type)
        if name is None:
            return None
        schema = result.schemas[name]
        if version is None or version == schema.type_version:
            return schema
        if version not in schema.available_versions:
            return None

        key = (name, version)
        with self._cache_lock:
            cached = self._version_cache.get(key)
        if cached is not None:
            return cached

        try:
            built = self.builder.build_node(name, result.sources[name], version)
        except SchemaBuildError as e:
            self.logger.warning(
                "Failed to build versioned schema", node_type=name, version=version, error=str(e)
            )
            return None

        with self._cache_lock:
            if result is self._result:
                built = self._version_cache.setdefault(key, built)
        return built

    def list_schemas(self) -> List[NodeSchema]:
        return [self._result.schemas[name] for name in self.node_names()]

    def categories(self) -> Dict[str, List[str]]:
        """Category to sorted node names."""
        categories: Dict[str, List[str]] = {}
        for name, schema in self._result.schemas.items():
            for category in schema.categories:
                categories.setdefault(category, []).append(name)
        return {category: sorted(names) for category, names in sorted(categories.items())}

    def get_nodes_by_category(self, category: str) -> List[str]:
        return self.categories().get(category, [])

    def search(self, query: str, limit: int = 50) -> List[NodeSchema]:
        """Search by name, display name or description."""
        query_lower = query.lower()
        matches = [
            schema
            for schema in self.list_schemas()
            if query_lower in schema.name.lower()
            or query_lower in schema.display_name.lower()
            or query_lower in schema.description.lower()
        ]
        return matches[:limit]

    def credential_names(self) -> List[str]:
        return sorted(self._result.credentials)

    def get_credential(self, name: str) -> Optional[CredentialSchema]:
        return self._result.credentials.get(name)

"""Plugin descriptor providers.

A provider hands raw node and credential descriptions to the schema builder.
The builder treats everything returned here as read-only and tolerates any
single entry raising or being malformed.
"""

import importlib.util
import inspect
import json
import os
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import structlog

from flowschema.exceptions import ConfigurationError, DescriptorError, NodeTypeNotFoundError

logger = structlog.get_logger()

BUILTIN_PATH = Path(__file__).parent / "builtin"


def _as_versions(value: Any) -> List[float]:
    if value is None:
        return []
    values = value if isinstance(value, (list, tuple)) else [value]
    versions = []
    for item in values:
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            raise DescriptorError(f"Invalid version number: {item!r}")
        versions.append(item)
    return versions


def _version_key(value: Union[str, int, float]) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise DescriptorError(f"Invalid version key: {value!r}") from e


@dataclass(frozen=True)
class UnversionedNodeType:
    """A node type with a single description."""

    description: Dict[str, Any]

    @property
    def available_versions(self) -> List[float]:
        return sorted(set(_as_versions(self.description.get("version", 1))))

    @property
    def latest_version(self) -> float:
        versions = self.available_versions
        return versions[-1] if versions else 1

    @property
    def default_version(self) -> float:
        explicit = self.description.get("defaultVersion")
        return explicit if explicit is not None else self.latest_version

    def get_node_type(self, version: Optional[float] = None) -> Dict[str, Any]:
        return self.description


@dataclass(frozen=True)
class VersionedNodeType:
    """A logical node type exposing one description per version."""

    description: Dict[str, Any]
    node_versions: Dict[float, Dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.node_versions:
            raise DescriptorError(
                f"Versioned node type {self.description.get('name')!r} declares no versions"
            )

    @property
    def available_versions(self) -> List[float]:
        versions = set(self.node_versions)
        for version_description in self.node_versions.values():
            versions.update(_as_versions(version_description.get("version")))
        return sorted(versions)

    @property
    def latest_version(self) -> float:
        return self.available_versions[-1]

    @property
    def default_version(self) -> float:
        explicit = self.description.get("defaultVersion")
        return explicit if explicit is not None else self.latest_version

    def get_node_type(self, version: Optional[float] = None) -> Dict[str, Any]:
        """Return the merged description serving ``version``."""
        if version is None:
            version = self.default_version
        concrete = self.node_versions.get(version)
        if concrete is None:
            for version_description in self.node_versions.values():
                if version in _as_versions(version_description.get("version")):
                    concrete = version_description
                    break
        if concrete is None:
            raise DescriptorError(
                f"Node type {self.description.get('name')!r} has no version {version}"
            )
        merged = dict(self.description)
        merged.update(concrete)
        merged.pop("defaultVersion", None)
        return merged


NodeSource = Union[UnversionedNodeType, VersionedNodeType]


def node_source_from_dict(data: Dict[str, Any]) -> NodeSource:
    """Build a node source from its serialized form.

    A mapping carrying ``nodeVersions`` is versioned; anything else is taken
    as a plain description.
    """
    if not isinstance(data, dict):
        raise DescriptorError("Node description must be a JSON object")
    if "nodeVersions" in data:
        versions = data["nodeVersions"]
        if not isinstance(versions, dict):
            raise DescriptorError("nodeVersions must be a mapping of version to description")
        return VersionedNodeType(
            description=data.get("description") or {},
            node_versions={_version_key(k): v for k, v in versions.items()},
        )
    return UnversionedNodeType(description=data.get("description", data))


class DescriptorProvider(ABC):
    """Source of raw node and credential descriptions."""

    @abstractmethod
    def node_type_names(self) -> List[str]:
        """List the node type names this provider knows."""

    @abstractmethod
    def get_node_type(self, name: str) -> NodeSource:
        """Return the node source for ``name``."""

    def credential_type_names(self) -> List[str]:
        return []

    def get_credential_type(self, name: str) -> Dict[str, Any]:
        raise NodeTypeNotFoundError(f"Credential type not found: {name}")


class StaticDescriptorProvider(DescriptorProvider):
    """In-memory provider, mostly useful for embedding and tests."""

    def __init__(
        self,
        nodes: Optional[Dict[str, Union[NodeSource, Dict[str, Any]]]] = None,
        credentials: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        self._nodes = dict(nodes or {})
        self._credentials = dict(credentials or {})

    def node_type_names(self) -> List[str]:
        return list(self._nodes)

    def get_node_type(self, name: str) -> NodeSource:
        if name not in self._nodes:
            raise NodeTypeNotFoundError(f"Node type not found: {name}")
        source = self._nodes[name]
        if isinstance(source, (UnversionedNodeType, VersionedNodeType)):
            return source
        return node_source_from_dict(source)

    def credential_type_names(self) -> List[str]:
        return list(self._credentials)

    def get_credential_type(self, name: str) -> Dict[str, Any]:
        if name not in self._credentials:
            raise NodeTypeNotFoundError(f"Credential type not found: {name}")
        return self._credentials[name]


class DirectoryDescriptorProvider(DescriptorProvider):
    """Reads ``nodes/*.json`` and ``credentials/*.json`` under a root directory."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.logger = logger.bind(component="descriptor_provider", root=str(self.root))

    def _files(self, kind: str) -> Dict[str, Path]:
        directory = self.root / kind
        if not directory.is_dir():
            return {}
        return {
            path.stem: path
            for path in sorted(directory.glob("*.json"))
            if not path.name.startswith("_")
        }

    def _load(self, path: Path) -> Any:
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise DescriptorError(f"Cannot read descriptor {path.name}: {e}") from e

    def node_type_names(self) -> List[str]:
        return list(self._files("nodes"))

    def get_node_type(self, name: str) -> NodeSource:
        path = self._files("nodes").get(name)
        if path is None:
            raise NodeTypeNotFoundError(f"Node type not found: {name}")
        return node_source_from_dict(self._load(path))

    def credential_type_names(self) -> List[str]:
        return list(self._files("credentials"))

    def get_credential_type(self, name: str) -> Dict[str, Any]:
        path = self._files("credentials").get(name)
        if path is None:
            raise NodeTypeNotFoundError(f"Credential type not found: {name}")
        data = self._load(path)
        if not isinstance(data, dict):
            raise DescriptorError(f"Credential descriptor {name} must be a JSON object")
        return data


class ModulePluginProvider(DescriptorProvider):
    """Discovers node and credential classes in Python plugin files.

    A node class exposes a ``description`` mapping and, when versioned, a
    ``node_versions`` mapping of version to description. A credential class
    exposes ``name`` and ``properties`` without a ``description``.
    """

    def __init__(self, plugin_paths: Iterable[Union[str, Path]]):
        self.plugin_paths = [Path(p) for p in plugin_paths]
        self.logger = logger.bind(component="descriptor_provider")
        self._nodes: Optional[Dict[str, NodeSource]] = None
        self._credentials: Dict[str, Dict[str, Any]] = {}

    def _get_module_name(self, file_path: Path, base_path: Path) -> Optional[str]:
        try:
            relative_path = file_path.relative_to(base_path)
            return "flowschema_plugins." + str(relative_path.with_suffix("")).replace(os.sep, ".")
        except ValueError:
            return None

    def _discover(self) -> Dict[str, NodeSource]:
        if self._nodes is not None:
            return self._nodes

        nodes: Dict[str, NodeSource] = {}
        for plugin_path in self.plugin_paths:
            if not plugin_path.exists():
                self.logger.warning("Plugin path does not exist", path=str(plugin_path))
                continue

            files = [plugin_path] if plugin_path.is_file() else sorted(plugin_path.rglob("*.py"))
            base = plugin_path.parent if plugin_path.is_file() else plugin_path
            for py_file in files:
                if py_file.name.startswith("__"):
                    continue
                module_name = self._get_module_name(py_file, base)
                if not module_name:
                    continue

                try:
                    spec = importlib.util.spec_from_file_location(module_name, py_file)
                    if not spec or not spec.loader:
                        continue
                    module = importlib.util.module_from_spec(spec)
                    sys.modules[module_name] = module
                    spec.loader.exec_module(module)
                except Exception as e:
                    self.logger.warning("Failed to load plugin module", module=module_name, error=str(e))
                    continue

                for _, obj in inspect.getmembers(module, inspect.isclass):
                    if obj.__module__ != module_name:
                        continue
                    try:
                        self._collect(obj, nodes)
                    except Exception as e:
                        self.logger.warning(
                            "Failed to read plugin class", plugin_class=obj.__name__, error=str(e)
                        )

        self._nodes = nodes
        self.logger.info(
            "Discovered plugin descriptors", nodes=len(nodes), credentials=len(self._credentials)
        )
        return nodes

    def _collect(self, cls: type, nodes: Dict[str, NodeSource]) -> None:
        description = getattr(cls, "description", None)
        if isinstance(description, dict):
            versions = getattr(cls, "node_versions", None)
            if versions:
                source: NodeSource = VersionedNodeType(
                    description=description,
                    node_versions={_version_key(k): v for k, v in versions.items()},
                )
            else:
                source = UnversionedNodeType(description=description)
            name = description.get("name") or cls.__name__
            nodes[name] = source
        elif isinstance(getattr(cls, "properties", None), list) and getattr(cls, "name", None):
            self._credentials[cls.name] = {
                "name": cls.name,
                "displayName": getattr(cls, "display_name", cls.name),
                "documentationUrl": getattr(cls, "documentation_url", None),
                "properties": cls.properties,
                "authenticate": getattr(cls, "authenticate", None),
            }

    def node_type_names(self) -> List[str]:
        return list(self._discover())

    def get_node_type(self, name: str) -> NodeSource:
        nodes = self._discover()
        if name not in nodes:
            raise NodeTypeNotFoundError(f"Node type not found: {name}")
        return nodes[name]

    def credential_type_names(self) -> List[str]:
        self._discover()
        return list(self._credentials)

    def get_credential_type(self, name: str) -> Dict[str, Any]:
        self._discover()
        if name not in self._credentials:
            raise NodeTypeNotFoundError(f"Credential type not found: {name}")
        return self._credentials[name]


class ChainedDescriptorProvider(DescriptorProvider):
    """Combines providers; the first provider knowing a name wins."""

    def __init__(self, providers: List[DescriptorProvider]):
        self.providers = providers

    def _owner(self, name: str, credentials: bool = False) -> DescriptorProvider:
        for provider in self.providers:
            names = provider.credential_type_names() if credentials else provider.node_type_names()
            if name in names:
                return provider
        kind = "Credential" if credentials else "Node"
        raise NodeTypeNotFoundError(f"{kind} type not found: {name}")

    def _names(self, credentials: bool) -> List[str]:
        names: List[str] = []
        for provider in self.providers:
            for name in provider.credential_type_names() if credentials else provider.node_type_names():
                if name not in names:
                    names.append(name)
        return names

    def node_type_names(self) -> List[str]:
        return self._names(credentials=False)

    def get_node_type(self, name: str) -> NodeSource:
        return self._owner(name).get_node_type(name)

    def credential_type_names(self) -> List[str]:
        return self._names(credentials=True)

    def get_credential_type(self, name: str) -> Dict[str, Any]:
        return self._owner(name, credentials=True).get_credential_type(name)


def create_provider(
    plugin_paths: Iterable[Union[str, Path]] = (),
    include_builtin: bool = True,
) -> DescriptorProvider:
    """Create the provider described by configuration.

    Paths holding Python files are loaded as plugin modules, anything else
    as a JSON descriptor directory. Bundled descriptors come last so that
    plugins can override them.
    """
    providers: List[DescriptorProvider] = []
    for raw_path in plugin_paths:
        path = Path(raw_path)
        if not path.exists():
            raise ConfigurationError(f"Plugin path does not exist: {path}")
        if path.suffix == ".py" or (path.is_dir() and any(path.rglob("*.py"))):
            providers.append(ModulePluginProvider([path]))
        else:
            providers.append(DirectoryDescriptorProvider(path))
    if include_builtin:
        providers.append(DirectoryDescriptorProvider(BUILTIN_PATH))
    if len(providers) == 1:
        return providers[0]
    return ChainedDescriptorProvider(providers)

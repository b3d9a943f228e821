"""Plugin descriptors and the providers that supply them."""

from .base import (
    DisplayOptions,
    ParameterDescriptor,
    ParameterType,
    TypeOptions,
    parse_descriptors,
)
from .provider import (
    BUILTIN_PATH,
    ChainedDescriptorProvider,
    DescriptorProvider,
    DirectoryDescriptorProvider,
    ModulePluginProvider,
    NodeSource,
    StaticDescriptorProvider,
    UnversionedNodeType,
    VersionedNodeType,
    create_provider,
    node_source_from_dict,
)

__all__ = [
    "BUILTIN_PATH",
    "ChainedDescriptorProvider",
    "DescriptorProvider",
    "DirectoryDescriptorProvider",
    "DisplayOptions",
    "ModulePluginProvider",
    "NodeSource",
    "ParameterDescriptor",
    "ParameterType",
    "StaticDescriptorProvider",
    "TypeOptions",
    "UnversionedNodeType",
    "VersionedNodeType",
    "create_provider",
    "node_source_from_dict",
    "parse_descriptors",
]

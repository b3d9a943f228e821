"""Schema registry and the node catalogue API."""

from .registry import SchemaRegistry

__all__ = ["SchemaRegistry"]

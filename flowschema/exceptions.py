"""Base exceptions for FlowSchema."""


class FlowSchemaException(Exception):
    """Base exception for all FlowSchema errors."""
    pass


class ConfigurationError(FlowSchemaException):
    """Raised when there's a configuration error."""
    pass


class DescriptorError(FlowSchemaException):
    """Raised when a plugin descriptor is missing or malformed."""
    pass


class SchemaBuildError(FlowSchemaException):
    """Raised when a node schema cannot be built."""
    pass


class NodeTypeNotFoundError(FlowSchemaException):
    """Raised when a node or credential type is not known."""
    pass


class ValidationError(FlowSchemaException):
    """Raised when a document cannot be validated at all."""
    pass

"""FlowSchema - schema extraction and validation for workflow documents."""

__version__ = "0.1.0"

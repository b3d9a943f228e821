"""Node and workflow instance validation."""

from .fixer import ExperimentalFix, FixResult, apply_experimental_fixes, fix_invalid_options_fields
from .issues import IssueCode, Severity, ValidationIssue, ValidationResult
from .node import NodeValidator, validate_node
from .parameters import ParameterValidator
from .workflow import WorkflowValidator

__all__ = [
    "ExperimentalFix",
    "FixResult",
    "IssueCode",
    "NodeValidator",
    "ParameterValidator",
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    "WorkflowValidator",
    "apply_experimental_fixes",
    "fix_invalid_options_fields",
    "validate_node",
]

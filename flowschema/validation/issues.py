"""Validation issues and results.

Issues are plain data. Validators accumulate them and never raise them.
"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Severity(str, Enum):
    """Issue severity."""
    ERROR = "error"
    WARNING = "warning"


class IssueCode(str, Enum):
    """Closed taxonomy of issue kinds."""

    # Document structure
    INVALID_JSON_TYPE = "INVALID_JSON_TYPE"
    MISSING_PROPERTY = "MISSING_PROPERTY"
    INVALID_TYPE = "INVALID_TYPE"
    INVALID_WORKFLOW_SETTING = "INVALID_WORKFLOW_SETTING"

    # Node identity and shape
    INVALID_NODE_TYPE = "INVALID_NODE_TYPE"
    MISSING_NODE_TYPE = "MISSING_NODE_TYPE"
    INVALID_NODE_TYPE_FORMAT = "INVALID_NODE_TYPE_FORMAT"
    DEPRECATED_NODE_TYPE_PREFIX = "DEPRECATED_NODE_TYPE_PREFIX"
    UNKNOWN_NODE_TYPE = "UNKNOWN_NODE_TYPE"
    MISSING_NODE_NAME = "MISSING_NODE_NAME"
    MISSING_TYPE_VERSION = "MISSING_TYPE_VERSION"
    INVALID_TYPE_VERSION = "INVALID_TYPE_VERSION"
    MISSING_POSITION = "MISSING_POSITION"
    INVALID_POSITION = "INVALID_POSITION"
    MISSING_PARAMETERS = "MISSING_PARAMETERS"
    INVALID_PARAMETERS = "INVALID_PARAMETERS"
    INVALID_NODE_SETTING = "INVALID_NODE_SETTING"

    # Parameters
    N8N_PARAMETER_VALIDATION_ERROR = "N8N_PARAMETER_VALIDATION_ERROR"
    N8N_PARAMETER_ISSUE = "N8N_PARAMETER_ISSUE"
    INVALID_ENUM_VALUE = "INVALID_ENUM_VALUE"
    PARAMETER_TYPE_MISMATCH = "PARAMETER_TYPE_MISMATCH"
    CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"
    UNKNOWN_PARAMETER = "UNKNOWN_PARAMETER"
    INACTIVE_PARAMETER = "INACTIVE_PARAMETER"
    AMBIGUOUS_PARAMETER = "AMBIGUOUS_PARAMETER"

    # Nested shapes
    INVALID_FILTER = "INVALID_FILTER"
    INVALID_FIXED_COLLECTION = "INVALID_FIXED_COLLECTION"
    INVALID_COLLECTION = "INVALID_COLLECTION"
    INVALID_RESOURCE_LOCATOR = "INVALID_RESOURCE_LOCATOR"

    # Graph
    DUPLICATE_NODE_NAME = "DUPLICATE_NODE_NAME"
    DANGLING_CONNECTION_SOURCE = "DANGLING_CONNECTION_SOURCE"
    DANGLING_CONNECTION_TARGET = "DANGLING_CONNECTION_TARGET"
    INVALID_CONNECTION = "INVALID_CONNECTION"


class IssueModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


class IssueLocation(IssueModel):
    """Where an issue was found."""
    node_name: Optional[str] = None
    node_id: Optional[str] = None
    node_type: Optional[str] = None
    node_index: Optional[int] = None
    path: Optional[str] = None


class IssueContext(IssueModel):
    """What was observed and what was expected."""
    value: Any = None
    expected: Any = None
    hint: Optional[str] = None
    valid_alternatives: Optional[List[Any]] = None


class ValidationIssue(IssueModel):
    """One finding."""
    code: IssueCode
    severity: Severity
    message: str
    location: IssueLocation = Field(default_factory=IssueLocation)
    context: IssueContext = Field(default_factory=IssueContext)

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR.value

    @property
    def path(self) -> Optional[str]:
        return self.location.path


class ValidationResult(IssueModel):
    """Response of node and workflow validation.

    ``errors`` and ``warnings`` are flattened projections of ``issues``.
    """
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    issues: List[ValidationIssue] = Field(default_factory=list)
    node_type_issues: Optional[List[str]] = None

    @classmethod
    def from_issues(
        cls, issues: List[ValidationIssue], node_type_issues: Optional[List[str]] = None
    ) -> "ValidationResult":
        errors = [issue.message for issue in issues if issue.is_error]
        warnings = [issue.message for issue in issues if not issue.is_error]
        return cls(
            valid=not errors,
            errors=errors,
            warnings=warnings,
            issues=issues,
            node_type_issues=node_type_issues or None,
        )

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


def make_issue(
    code: IssueCode,
    message: str,
    severity: Severity = Severity.ERROR,
    path: Optional[str] = None,
    value: Any = None,
    expected: Any = None,
    hint: Optional[str] = None,
    valid_alternatives: Optional[List[Any]] = None,
    **location: Any,
) -> ValidationIssue:
    return ValidationIssue(
        code=code,
        severity=severity,
        message=message,
        location=IssueLocation(path=path, **location),
        context=IssueContext(
            value=value,
            expected=expected,
            hint=hint,
            valid_alternatives=valid_alternatives,
        ),
    )

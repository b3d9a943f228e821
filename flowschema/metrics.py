"""Prometheus metrics for the service."""

from prometheus_client import Counter, Gauge, Histogram

from flowschema.schema.models import ExtractionStats
from flowschema.validation.issues import ValidationResult

REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"]
)
REQUEST_DURATION = Histogram(
    "http_request_duration_seconds", "HTTP request duration", ["method", "endpoint"]
)
VALIDATIONS = Counter(
    "flowschema_validations_total", "Validated documents", ["kind", "outcome"]
)
VALIDATION_ISSUES = Counter(
    "flowschema_validation_issues_total", "Issues reported by validation", ["kind", "code", "severity"]
)
SCHEMA_NODES = Gauge(
    "flowschema_schema_nodes", "Node schemas held by the registry", ["state"]
)


def record_validation(kind: str, result: ValidationResult) -> None:
    """Count one validated ``node`` or ``workflow`` document and its issues."""
    VALIDATIONS.labels(kind=kind, outcome="valid" if result.valid else "invalid").inc()
    for issue in result.issues:
        VALIDATION_ISSUES.labels(kind=kind, code=issue.code, severity=issue.severity).inc()


def record_registry(stats: ExtractionStats) -> None:
    SCHEMA_NODES.labels(state="built").set(stats.total_nodes)
    SCHEMA_NODES.labels(state="failed").set(stats.failed_nodes)
    SCHEMA_NODES.labels(state="partial").set(stats.partial_failures)

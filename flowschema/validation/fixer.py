"""Experimental workflow fixes.

Each fix works on a deep copy of the workflow and reports what it changed.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import structlog

logger = structlog.get_logger()

OPTIONS_FIX_NODE_TYPES = ("if", "switch")


@dataclass(frozen=True)
class ExperimentalFix:
    """A named fix that edits a workflow in place and returns warning messages."""

    id: str
    description: str
    apply: Callable[[Dict[str, Any]], List[str]]


@dataclass
class FixResult:
    fixed: bool = False
    warnings: List[str] = field(default_factory=list)


def _short_type(node_type: Any) -> Optional[str]:
    if not isinstance(node_type, str):
        return None
    return node_type.rsplit(".", 1)[-1]


def _remove_empty_options(workflow: Dict[str, Any]) -> List[str]:
    warnings = []
    for node in workflow.get("nodes") or []:
        if not isinstance(node, dict) or _short_type(node.get("type")) not in OPTIONS_FIX_NODE_TYPES:
            continue
        parameters = node.get("parameters")
        if isinstance(parameters, dict) and parameters.get("options") == {}:
            del parameters["options"]
            warnings.append(
                f"Fixed node \"{node.get('name', 'unnamed')}\": "
                "Removed invalid empty 'options' field from parameters root"
            )
    return warnings


EMPTY_OPTIONS_FIX = ExperimentalFix(
    id="empty-options-if-switch",
    description="Remove an empty root-level options object from If and Switch nodes",
    apply=_remove_empty_options,
)

DEFAULT_FIXES: List[ExperimentalFix] = [EMPTY_OPTIONS_FIX]


def apply_experimental_fixes(
    workflow: Any, fixes: Optional[Sequence[ExperimentalFix]] = None
) -> Tuple[Any, FixResult]:
    """Apply ``fixes`` (all registered fixes by default) to a copy of ``workflow``."""
    if not isinstance(workflow, dict):
        return workflow, FixResult()

    fixed = copy.deepcopy(workflow)
    result = FixResult()
    for fix in DEFAULT_FIXES if fixes is None else fixes:
        warnings = fix.apply(fixed)
        if warnings:
            logger.info("Experimental fix applied", fix=fix.id, changes=len(warnings))
            result.warnings.extend(warnings)
    result.fixed = bool(result.warnings)
    return fixed, result


def fix_invalid_options_fields(workflow: Any) -> Tuple[Any, FixResult]:
    return apply_experimental_fixes(workflow, [EMPTY_OPTIONS_FIX])

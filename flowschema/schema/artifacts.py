"""Serialized schema artifacts.

Every document is written only when its content changed, so repeated
extractions leave untouched files alone and the change set can be reported.
"""

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

import structlog

from .builder import BuildResult
from .common import common_types, workflow_json_schema

logger = structlog.get_logger()


@dataclass
class ChangeStats:
    """Outcome of one artifact write pass."""

    created: int = 0
    updated: int = 0
    unchanged: int = 0
    changed_files: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.created + self.updated + self.unchanged


def _md5(content: str) -> str:
    return hashlib.md5(content.encode("utf-8")).hexdigest()


def _dumps(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str) + "\n"


def _file_name(name: str) -> str:
    return name.replace("/", "_").replace("\\", "_")


class ArtifactWriter:
    """Writes node, validation, credential and workflow documents to disk."""

    def __init__(self, output_dir: Union[str, Path], force: bool = False):
        self.output_dir = Path(output_dir)
        self.force = force
        self.stats = ChangeStats()
        self.logger = logger.bind(component="artifact_writer", output_dir=str(self.output_dir))

    def write_if_changed(self, relative_path: str, data: Any) -> bool:
        """Write ``data`` as JSON unless the file already holds the same content."""
        path = self.output_dir / relative_path
        content = _dumps(data)

        if path.exists():
            if not self.force and _md5(path.read_text(encoding="utf-8")) == _md5(content):
                self.stats.unchanged += 1
                return False
            self.stats.updated += 1
        else:
            self.stats.created += 1

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        self.stats.changed_files.append(str(path))
        return True

    def write(self, result: BuildResult) -> ChangeStats:
        """Write every artifact for one build."""
        self.stats = ChangeStats()
        self._write_nodes(result)
        self._write_credentials(result)
        self.write_if_changed("workflow/workflow.json", workflow_json_schema())
        self.write_if_changed("common/types.json", common_types())
        self.write_if_changed("_meta.json", {
            "extractedAt": result.stats.extracted_at.isoformat(),
            "version": result.stats.engine_version,
            "nodeCount": result.stats.total_nodes,
            "credentialCount": result.stats.credential_types,
            "failedNodes": result.stats.failed_nodes,
        })

        self.logger.info(
            "Artifacts written",
            created=self.stats.created,
            updated=self.stats.updated,
            unchanged=self.stats.unchanged,
        )
        return self.stats

    def _write_nodes(self, result: BuildResult) -> None:
        categories: Dict[str, List[str]] = {}
        with_filters: List[str] = []
        with_fixed_collections: List[str] = []
        with_resource_operations: List[str] = []

        for name, schema in result.schemas.items():
            file_name = _file_name(name)
            self.write_if_changed(f"nodes/{file_name}.json", schema.to_artifact())
            self.write_if_changed(
                f"nodes/validation/{file_name}.json", schema.to_validation_artifact()
            )
            for category in schema.categories:
                categories.setdefault(category, []).append(name)
            if schema.filter_schema is not None:
                with_filters.append(name)
            if schema.fixed_collections:
                with_fixed_collections.append(name)
            if schema.resource_operations:
                with_resource_operations.append(name)

        for category, names in categories.items():
            self.write_if_changed(
                f"nodes/by-category/{_file_name(category.lower())}.json",
                {"category": category, "count": len(names), "nodes": sorted(names)},
            )

        all_nodes = sorted(result.schemas)
        self.write_if_changed("nodes/_index.json", {
            "totalNodes": len(all_nodes),
            "categories": sorted(categories),
            "nodes": all_nodes,
            "byCategory": {category: sorted(names) for category, names in categories.items()},
        })
        self.write_if_changed("nodes/validation/_index.json", {
            "total": len(all_nodes),
            "nodes": all_nodes,
            "withFilters": sorted(with_filters),
            "withFixedCollections": sorted(with_fixed_collections),
            "withResourceOperations": sorted(with_resource_operations),
        })

    def _write_credentials(self, result: BuildResult) -> None:
        for name, credential in result.credentials.items():
            self.write_if_changed(f"credentials/{_file_name(name)}.json", credential.to_artifact())
        self.write_if_changed("credentials/_index.json", {
            "total": len(result.credentials),
            "credentials": sorted(result.credentials),
        })

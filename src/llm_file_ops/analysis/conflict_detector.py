"""Conflict detection between operations of one batch.

This module provides the ConflictDetector class that scans operation pairs
for targets that collide. Detection is best-effort: only the checks listed in
``ConflictDetector.CHECKS`` are run, and callers receive that list alongside
the conflicts so an empty result is never read as "no conflicts possible".
"""

import json
import logging
from typing import ClassVar

import yaml

from llm_file_ops.core.models import Conflict, ConflictType, FileOperation, OperationType
from llm_file_ops.utils.text import normalize_content

logger = logging.getLogger(__name__)

RESOLUTION_MERGE = "Merge operations or apply sequentially"
RESOLUTION_DUPLICATE = "Operations are duplicates; keep one"
RESOLUTION_DROP_MOVE = "Remove the move operation"


class ConflictDetector:
    """Detects conflicts between file operations."""

    CHECKS: ClassVar[tuple[str, ...]] = ("same_target", "move_of_deleted_file")

    def detect_conflicts(self, operations: list[FileOperation]) -> list[Conflict]:
        """Scan every pair of operations for conflicts.

        Returns:
            Conflicts in pair order; at most one conflict per pair.
        """
        conflicts: list[Conflict] = []
        for i, first in enumerate(operations):
            for second in operations[i + 1 :]:
                conflict = self.check_pair(first, second)
                if conflict is not None:
                    conflicts.append(conflict)

        conflicts.extend(self.detect_circular_dependencies(operations))

        if conflicts:
            logger.info(
                "Detected %d conflicts among %d operations", len(conflicts), len(operations)
            )
        return conflicts

    def check_pair(self, first: FileOperation, second: FileOperation) -> Conflict | None:
        """Return the conflict between two operations, if any."""
        if first.target_path == second.target_path:
            return self._same_target_conflict(first, second)

        for move, delete in ((first, second), (second, first)):
            if (
                move.type is OperationType.MOVE
                and delete.type is OperationType.DELETE
                and move.source_path == delete.target_path
            ):
                return Conflict(
                    type=ConflictType.FILE,
                    operation_ids=(move.id, delete.id),
                    description=f"Cannot move {move.source_path}: the file is being deleted",
                    resolution=RESOLUTION_DROP_MOVE,
                )
        return None

    def detect_circular_dependencies(self, operations: list[FileOperation]) -> list[Conflict]:
        """Extension point for import-cycle detection.

        Not implemented: always returns an empty list and is not listed in
        ``CHECKS``.
        """
        return []

    def detect_overlap(self, first: FileOperation, second: FileOperation) -> str | None:
        """Classify the overlap between two operations' line ranges.

        Returns:
            ``"exact"``, ``"major"``, ``"partial"`` or ``"minor"``, or None
            when either operation has no range or the ranges are disjoint.
        """
        if first.line_range is None or second.line_range is None:
            return None
        start1, end1 = first.line_range.start, first.line_range.end
        start2, end2 = second.line_range.start, second.line_range.end

        if start1 == start2 and end1 == end2:
            return "exact"

        if end1 < start2 or end2 < start1:
            return None

        overlap_size = min(end1, end2) - max(start1, start2) + 1
        total_size = max(end1, end2) - min(start1, start2) + 1
        overlap_percentage = (overlap_size / total_size) * 100

        if overlap_percentage >= 80:
            return "major"
        elif overlap_percentage >= 50:
            return "partial"
        else:
            return "minor"

    def is_semantic_duplicate(self, first: FileOperation, second: FileOperation) -> bool:
        """Check if two operations carry the same type and equivalent content."""
        if first.type is not second.type:
            return False
        if first.content is None or second.content is None:
            return first.content is None and second.content is None

        if normalize_content(first.content) == normalize_content(second.content):
            return True

        if self._is_structured_content(first.content) and self._is_structured_content(
            second.content
        ):
            return self._compare_structured_content(first.content, second.content)

        return False

    def _same_target_conflict(self, first: FileOperation, second: FileOperation) -> Conflict:
        ids = (first.id, second.id)
        if self.is_semantic_duplicate(first, second):
            return Conflict(
                type=ConflictType.FILE,
                operation_ids=ids,
                description=f"Both operations make the same change to {first.target_path}",
                resolution=RESOLUTION_DUPLICATE,
            )

        description = f"Both operations target {first.target_path}"
        overlap = self.detect_overlap(first, second)
        if overlap is not None:
            description += f" with {overlap} line-range overlap"
        return Conflict(
            type=ConflictType.FILE,
            operation_ids=ids,
            description=description,
            resolution=RESOLUTION_MERGE,
        )

    def _is_structured_content(self, content: str) -> bool:
        """Check if content appears to be structured (JSON, YAML, etc.)."""
        content = content.strip()
        return (content.startswith(("{", "[")) and content.endswith(("}", "]"))) or (
            ":" in content and ("-" in content or "|" in content)
        )

    def _compare_structured_content(self, content1: str, content2: str) -> bool:
        """Compare structured content for semantic equivalence."""
        try:
            return bool(json.loads(content1) == json.loads(content2))
        except (json.JSONDecodeError, TypeError, RecursionError):
            pass

        try:
            return bool(yaml.safe_load(content1) == yaml.safe_load(content2))
        except (yaml.YAMLError, TypeError, RecursionError):
            pass

        return False

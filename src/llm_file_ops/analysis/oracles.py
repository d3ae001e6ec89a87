"""Read-only workspace oracles consulted by the safety analyzer.

An oracle answers questions about the workspace the operations will be
applied to: does a file exist, which files import it, which files look alike,
which tests cover it. The analyzer only ever awaits these calls; any
``OracleError`` they raise turns the affected analysis inconclusive.

``FilesystemOracle`` answers from a directory on disk. Scans run in a worker
thread so the event loop stays responsive on large workspaces.
"""

from __future__ import annotations

import asyncio
import logging
import os
import posixpath
import re
from collections.abc import Iterator
from pathlib import Path
from typing import Protocol, runtime_checkable

from llm_file_ops.exceptions import OracleError, WorkspaceError
from llm_file_ops.utils.path_utils import relative_to_workspace, resolve_file_path

logger = logging.getLogger(__name__)

SKIPPED_DIRECTORIES: frozenset[str] = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        "node_modules",
        ".venv",
        "venv",
        "env",
        "__pycache__",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        ".tox",
        "dist",
        "build",
        ".next",
        "coverage",
    }
)

SOURCE_EXTENSIONS: frozenset[str] = frozenset(
    {".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".vue", ".svelte", ".py"}
)

# Files larger than this are not read when searching for imports.
MAX_SCAN_BYTES = 1024 * 1024

DEFAULT_SIMILAR_LIMIT = 10


@runtime_checkable
class WorkspaceOracle(Protocol):
    """Asynchronous, read-only view of the workspace.

    Paths passed in and returned are workspace-relative POSIX strings.
    Implementations raise ``OracleError`` when they cannot answer.
    """

    async def exists(self, path: str) -> bool:
        """Return whether ``path`` exists in the workspace."""
        ...

    async def find_dependents(self, path: str) -> list[str]:
        """Return files whose imports reference ``path``."""
        ...

    async def find_similar_files(self, path: str, limit: int = DEFAULT_SIMILAR_LIMIT) -> list[str]:
        """Return other files whose names contain the stem of ``path``."""
        ...

    async def find_related_tests(self, path: str) -> list[str]:
        """Return test files that appear to cover ``path``."""
        ...


def _stem(path: str) -> str:
    name = posixpath.basename(path)
    stem, _ = posixpath.splitext(name)
    return stem or name


def _dependent_patterns(stem: str) -> tuple[re.Pattern[str], ...]:
    name = re.escape(stem)
    return (
        re.compile(rf"from\s+['\"][^'\"]*\b{name}['\"]"),
        re.compile(rf"require\(\s*['\"][^'\"]*\b{name}['\"]\s*\)"),
        re.compile(rf"^\s*import\b[^\n]*\b{name}\b", re.MULTILINE),
        re.compile(rf"^\s*from\s+[\w.]*\b{name}\s+import\b", re.MULTILINE),
    )


def _is_related_test(relative: str, stem: str) -> bool:
    name = posixpath.basename(relative)
    parts = relative.split("/")[:-1]
    return (
        name.startswith((f"{stem}.test.", f"{stem}.spec."))
        or name in (f"test_{stem}.py", f"{stem}_test.py")
        or (posixpath.splitext(name)[0] == stem and ("__tests__" in parts or "test" in parts))
    )


class FilesystemOracle:
    """Workspace oracle backed by a local directory.

    Args:
        workspace_root: Directory the operations' relative paths refer to.

    Raises:
        WorkspaceError: If workspace_root does not exist or is not a directory.

    Example:
        >>> oracle = FilesystemOracle(Path("."))
        >>> asyncio.run(oracle.exists("pyproject.toml"))
        True
    """

    def __init__(self, workspace_root: Path | str) -> None:
        """Initialize the oracle and validate the workspace root."""
        root = Path(workspace_root)
        if not root.exists():
            raise WorkspaceError(f"workspace_root does not exist: {root}")
        if not root.is_dir():
            raise WorkspaceError(f"workspace_root is not a directory: {root}")
        self.workspace_root = root.resolve()

    async def exists(self, path: str) -> bool:
        """Return whether ``path`` exists in the workspace."""
        return await asyncio.to_thread(self._exists, path)

    async def find_dependents(self, path: str) -> list[str]:
        """Return source files whose import statements reference ``path``'s stem."""
        return await asyncio.to_thread(self._find_dependents, path)

    async def find_similar_files(self, path: str, limit: int = DEFAULT_SIMILAR_LIMIT) -> list[str]:
        """Return up to ``limit`` other files whose names contain ``path``'s stem."""
        return await asyncio.to_thread(self._find_similar_files, path, limit)

    async def find_related_tests(self, path: str) -> list[str]:
        """Return ``stem.test.*``, ``stem.spec.*``, ``test_stem.py`` style test files."""
        return await asyncio.to_thread(self._find_related_tests, path)

    def locate_file(self, name: str, extension: str) -> str | None:
        """Return the first workspace file named ``name + extension``.

        Synchronous, so it can be handed to the synthesizer as a file locator.
        """
        wanted = f"{name}{extension}"
        try:
            for file_path in self._iter_files():
                if file_path.name == wanted:
                    return self._relative(file_path)
        except OSError as e:
            logger.warning("Failed to search workspace for %s: %s", wanted, e)
        return None

    def _resolve(self, path: str) -> Path:
        try:
            return resolve_file_path(path, self.workspace_root)
        except ValueError as e:
            raise OracleError(str(e), {"path": path}) from e

    def _relative(self, file_path: Path) -> str:
        return relative_to_workspace(file_path, self.workspace_root)

    def _iter_files(self) -> Iterator[Path]:
        for dirpath, dirnames, filenames in os.walk(self.workspace_root, onerror=self._walk_error):
            dirnames[:] = sorted(
                name
                for name in dirnames
                if name not in SKIPPED_DIRECTORIES and not name.endswith(".egg-info")
            )
            for filename in sorted(filenames):
                yield Path(dirpath) / filename

    @staticmethod
    def _walk_error(error: OSError) -> None:
        raise error

    def _exists(self, path: str) -> bool:
        resolved = self._resolve(path)
        try:
            return resolved.exists()
        except OSError as e:
            raise OracleError(f"Failed to stat {path}: {e}", {"path": path}) from e

    def _find_dependents(self, path: str) -> list[str]:
        target = self._resolve(path)
        patterns = _dependent_patterns(_stem(path))
        dependents = []
        try:
            for file_path in self._iter_files():
                if file_path.suffix not in SOURCE_EXTENSIONS or file_path == target:
                    continue
                if file_path.stat().st_size > MAX_SCAN_BYTES:
                    logger.debug("Skipping large file %s", file_path)
                    continue
                content = file_path.read_text(encoding="utf-8", errors="ignore")
                if any(pattern.search(content) for pattern in patterns):
                    dependents.append(self._relative(file_path))
        except OSError as e:
            raise OracleError(f"Failed to search dependents of {path}: {e}", {"path": path}) from e
        return dependents

    def _find_similar_files(self, path: str, limit: int) -> list[str]:
        target = self._resolve(path)
        stem = _stem(path).lower()
        similar = []
        try:
            for file_path in self._iter_files():
                if len(similar) >= limit:
                    break
                if file_path == target or stem not in file_path.name.lower():
                    continue
                similar.append(self._relative(file_path))
        except OSError as e:
            message = f"Failed to search files similar to {path}: {e}"
            raise OracleError(message, {"path": path}) from e
        return similar

    def _find_related_tests(self, path: str) -> list[str]:
        target = self._resolve(path)
        stem = _stem(path)
        try:
            return [
                self._relative(file_path)
                for file_path in self._iter_files()
                if file_path != target and _is_related_test(self._relative(file_path), stem)
            ]
        except OSError as e:
            raise OracleError(f"Failed to search tests for {path}: {e}", {"path": path}) from e

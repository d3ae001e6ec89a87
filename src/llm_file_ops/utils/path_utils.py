"""Path resolution utilities for workspace-relative operation targets."""

import posixpath
from pathlib import Path


def normalize_target_path(path: str) -> str:
    """Normalize a target path as written by the model.

    Strips surrounding whitespace, quotes and backticks, converts backslashes to
    forward slashes and collapses ``./`` segments. The result is used as the
    grouping key for operations, so ``./src/a.ts`` and ``src/a.ts`` name the
    same target.

    Example:
        >>> normalize_target_path("`./src\\\\a.ts`")
        'src/a.ts'
    """
    cleaned = path.strip().strip("`'\"").replace("\\", "/")
    if not cleaned:
        return cleaned
    normalized = posixpath.normpath(cleaned)
    return "" if normalized == "." else normalized


def resolve_file_path(path: str, workspace_root: Path, allow_absolute: bool = False) -> Path:
    """Resolve a target path relative to workspace_root.

    Handles both absolute and relative paths:
    - Absolute paths are resolved as-is
    - Relative paths are resolved against workspace_root

    Args:
        path: File path to resolve (can be absolute or relative).
        workspace_root: Base directory for resolving relative paths.
        allow_absolute: If False (default), resolved paths must be within workspace_root.

    Returns:
        Path: Resolved absolute Path object.

    Raises:
        ValueError: If path is empty or whitespace-only, or resolves outside
            workspace_root when allow_absolute=False.

    Example:
        >>> from pathlib import Path
        >>> resolve_file_path("src/a.ts", Path("/workspace"))
        PosixPath('/workspace/src/a.ts')
    """
    if not isinstance(path, str):
        raise ValueError("path must be a string")
    if not path or not path.strip():
        raise ValueError("path cannot be empty or whitespace-only")

    workspace_root_resolved = workspace_root.resolve()

    path_obj = Path(path)
    if path_obj.is_absolute():
        resolved = path_obj.resolve(strict=False)
    else:
        resolved = (workspace_root_resolved / path_obj).resolve(strict=False)

    if not allow_absolute and not resolved.is_relative_to(workspace_root_resolved):
        raise ValueError(f"Path '{path}' resolves outside workspace_root: {workspace_root}")

    return resolved


def relative_to_workspace(path: Path, workspace_root: Path) -> str:
    """Return ``path`` relative to ``workspace_root`` in POSIX form.

    Paths outside the workspace are returned as absolute POSIX strings.
    """
    try:
        return path.resolve().relative_to(workspace_root.resolve()).as_posix()
    except ValueError:
        return path.as_posix()

"""Exception hierarchy for llm-file-ops.

Recoverable pipeline conditions are reported as Diagnostic records rather than
raised. The exceptions below cover the few places where control flow must
stop: an oracle call that could not produce an answer (caught by the safety
analyzer and turned into an inconclusive impact), a cancelled turn, and an
unusable workspace root.
"""

from typing import Any


class FileOpsError(Exception):
    """Base exception for all llm-file-ops errors.

    Args:
        message: Human-readable error message.
        details: Optional structured context for logging.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize the error with a message and optional details."""
        super().__init__(message)
        self.details = details or {}


class OracleError(FileOpsError):
    """Raised by a workspace oracle when a lookup cannot be completed."""


class PipelineCancelledError(FileOpsError):
    """Raised when a cancelled pipeline is fed or finalized."""


class WorkspaceError(ValueError):
    """Exception raised when workspace_root is invalid or inaccessible.

    Indicates that the provided workspace_root path does not exist, is not a
    directory, or cannot be accessed.
    """

"""Configuration exceptions for llm-file-ops.

Kept in their own module so the runtime configuration and its callers can
import them without circular dependencies.
"""

from llm_file_ops.exceptions import FileOpsError


class ConfigError(FileOpsError):
    """Exception raised for configuration errors."""

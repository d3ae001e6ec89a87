"""Configuration management.

This module provides configuration management through:
- RuntimeConfig: Runtime configuration from env vars, files, and CLI flags
- ConfigError: Exception for configuration errors
"""

from llm_file_ops.config.exceptions import ConfigError
from llm_file_ops.config.runtime_config import RuntimeConfig

__all__ = ["ConfigError", "RuntimeConfig"]

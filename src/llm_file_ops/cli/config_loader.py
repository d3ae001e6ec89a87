"""Runtime configuration loading for CLI commands.

Precedence: CLI flags > environment variables > config file > defaults.
"""

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Any

from llm_file_ops.config.exceptions import ConfigError
from llm_file_ops.config.runtime_config import ENV_PREFIX, RuntimeConfig

logger = logging.getLogger(__name__)

ENV_VAR_MAP: dict[str, str] = {
    "log_level": ENV_PREFIX + "LOG_LEVEL",
    "log_file": ENV_PREFIX + "LOG_FILE",
    "strip_instruction_comments": ENV_PREFIX + "STRIP_INSTRUCTION_COMMENTS",
    "normalize_indentation": ENV_PREFIX + "NORMALIZE_INDENTATION",
    "mark_partial_updates": ENV_PREFIX + "MARK_PARTIAL_UPDATES",
    "derive_move_instructions": ENV_PREFIX + "DERIVE_MOVES",
    "todo_threshold": ENV_PREFIX + "TODO_THRESHOLD",
    "large_update_lines": ENV_PREFIX + "LARGE_UPDATE_LINES",
    "extra_critical_paths": ENV_PREFIX + "CRITICAL_PATHS",
}


def load_runtime_config(
    config_path: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> RuntimeConfig:
    """Build the effective RuntimeConfig for a CLI invocation.

    Only environment variables that are actually set override values from
    the config file, so a file setting is not clobbered by an env default.

    Args:
        config_path: Optional YAML/TOML configuration file.
        cli_overrides: Values from CLI flags; None entries are ignored.

    Returns:
        The merged configuration.

    Raises:
        ConfigError: If the file, an environment variable or a flag is invalid.
    """
    if config_path:
        runtime_config = RuntimeConfig.from_file(Path(config_path))
        logger.debug("Loaded configuration from %s", config_path)
    else:
        runtime_config = RuntimeConfig.from_defaults()

    env_fields = [name for name, env_var in ENV_VAR_MAP.items() if env_var in os.environ]
    if env_fields:
        env_config = RuntimeConfig.from_env()
        try:
            runtime_config = replace(
                runtime_config, **{name: getattr(env_config, name) for name in env_fields}
            )
        except TypeError as e:
            raise ConfigError(f"Failed to apply environment overrides: {e}") from e
        logger.debug("Applied environment overrides: %s", ", ".join(sorted(env_fields)))

    return runtime_config.merge_with_cli(**(cli_overrides or {}))

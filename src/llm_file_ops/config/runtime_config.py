"""Runtime configuration management with environment variable and file support.

This module provides the RuntimeConfig system for tuning the pipeline from
multiple sources: defaults, config files (YAML/TOML), environment variables,
and CLI flags. Configuration precedence: CLI flags > env vars > config file > defaults.
"""

import logging
import os
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from llm_file_ops.config.exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "LFO_"


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    """Runtime configuration for the response-to-operations pipeline.

    This immutable configuration dataclass is shared by the synthesizer, the
    safety analyzer and the CLI. All fields are validated during initialization.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to log file. If None, logs to stderr only.
        strip_instruction_comments: Remove ``// TODO:``-style instruction
            comments from synthesized content.
        normalize_indentation: Remove common leading whitespace from content.
        mark_partial_updates: Prefix line-ranged updates with a provenance marker.
        derive_move_instructions: Turn prose "rename/move a to b" instructions
            into Move operations.
        todo_threshold: TODO markers above this count produce a style impact.
        large_update_lines: Updates longer than this suggest splitting.
        extra_critical_paths: Additional path fragments treated as critical.

    Example:
        >>> config = RuntimeConfig.from_env()
        >>> config = config.merge_with_cli(log_level="DEBUG", todo_threshold=5)
        >>> print(f"Level: {config.log_level}, TODOs: {config.todo_threshold}")
        Level: DEBUG, TODOs: 5
    """

    log_level: str = "INFO"
    log_file: str | None = None
    strip_instruction_comments: bool = True
    normalize_indentation: bool = True
    mark_partial_updates: bool = True
    derive_move_instructions: bool = False
    todo_threshold: int = 3
    large_update_lines: int = 100
    extra_critical_paths: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate configuration after initialization.

        Raises:
            ConfigError: If any configuration value is invalid.
        """
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.log_level not in valid_levels:
            raise ConfigError(f"Invalid log level: {self.log_level}. Must be one of {valid_levels}")

        if self.todo_threshold < 0:
            raise ConfigError(f"todo_threshold must be >= 0, got {self.todo_threshold}")

        if self.large_update_lines < 1:
            raise ConfigError(f"large_update_lines must be >= 1, got {self.large_update_lines}")

        if not isinstance(self.extra_critical_paths, tuple):
            raise ConfigError(
                "extra_critical_paths must be a tuple, "
                f"got {type(self.extra_critical_paths).__name__}"
            )
        if any(not fragment.strip() for fragment in self.extra_critical_paths):
            raise ConfigError("extra_critical_paths must not contain empty entries")

        if not self.strip_instruction_comments and not self.normalize_indentation:
            logger.debug("Content cleaning disabled; block bodies are used verbatim")

    @classmethod
    def from_defaults(cls) -> "RuntimeConfig":
        """Create configuration with default values.

        Returns:
            RuntimeConfig with safe default values.

        Example:
            >>> config = RuntimeConfig.from_defaults()
            >>> assert config.strip_instruction_comments is True
            >>> assert config.derive_move_instructions is False
        """
        return cls()

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        """Create configuration from environment variables.

        Loads configuration from environment variables with LFO_ prefix:
        - LFO_LOG_LEVEL: Logging level (default: "INFO")
        - LFO_LOG_FILE: Log file path (default: None)
        - LFO_STRIP_INSTRUCTION_COMMENTS: Strip instruction comments (default: "true")
        - LFO_NORMALIZE_INDENTATION: Remove common indentation (default: "true")
        - LFO_MARK_PARTIAL_UPDATES: Add partial-update markers (default: "true")
        - LFO_DERIVE_MOVES: Derive Move operations from prose (default: "false")
        - LFO_TODO_THRESHOLD: TODO count tolerated before a style impact (default: "3")
        - LFO_LARGE_UPDATE_LINES: Line count above which splitting is suggested
          (default: "100")
        - LFO_CRITICAL_PATHS: Comma-separated extra critical path fragments

        Returns:
            RuntimeConfig loaded from environment variables.

        Raises:
            ConfigError: If environment variable has invalid value.

        Example:
            >>> os.environ["LFO_DERIVE_MOVES"] = "true"
            >>> config = RuntimeConfig.from_env()
            >>> assert config.derive_move_instructions is True
        """
        defaults = cls.from_defaults()

        def parse_bool(name: str, default: bool) -> bool:
            """Parse boolean environment variable."""
            env_var = ENV_PREFIX + name
            value = os.getenv(env_var, str(default)).lower()
            if value in ("true", "1", "yes", "on"):
                return True
            if value in ("false", "0", "no", "off"):
                return False
            raise ConfigError(
                f"Invalid {env_var}='{value}'. Must be true/false, 1/0, yes/no, or on/off"
            )

        def parse_int(name: str, default: int, min_value: int = 0) -> int:
            """Parse integer environment variable."""
            env_var = ENV_PREFIX + name
            value_str = os.getenv(env_var, str(default))
            try:
                value = int(value_str)
            except ValueError as e:
                raise ConfigError(f"Invalid {env_var}='{value_str}'. Must be an integer") from e
            if value < min_value:
                raise ConfigError(f"{env_var}={value} must be >= {min_value}")
            return value

        critical_env = os.getenv(ENV_PREFIX + "CRITICAL_PATHS", "")
        extra_critical_paths = tuple(
            fragment.strip() for fragment in critical_env.split(",") if fragment.strip()
        )

        return cls(
            log_level=os.getenv(ENV_PREFIX + "LOG_LEVEL", defaults.log_level).upper(),
            log_file=os.getenv(ENV_PREFIX + "LOG_FILE") or defaults.log_file,
            strip_instruction_comments=parse_bool(
                "STRIP_INSTRUCTION_COMMENTS", defaults.strip_instruction_comments
            ),
            normalize_indentation=parse_bool(
                "NORMALIZE_INDENTATION", defaults.normalize_indentation
            ),
            mark_partial_updates=parse_bool("MARK_PARTIAL_UPDATES", defaults.mark_partial_updates),
            derive_move_instructions=parse_bool("DERIVE_MOVES", defaults.derive_move_instructions),
            todo_threshold=parse_int("TODO_THRESHOLD", defaults.todo_threshold),
            large_update_lines=parse_int(
                "LARGE_UPDATE_LINES", defaults.large_update_lines, min_value=1
            ),
            extra_critical_paths=extra_critical_paths or defaults.extra_critical_paths,
        )

    @classmethod
    def from_file(cls, config_path: Path) -> "RuntimeConfig":
        """Load configuration from YAML or TOML file.

        Supports both YAML (.yaml, .yml) and TOML (.toml) formats.

        Args:
            config_path: Path to configuration file (YAML or TOML).

        Returns:
            RuntimeConfig loaded from file.

        Raises:
            ConfigError: If file doesn't exist, has invalid format, or contains invalid values.

        Example:
            >>> config = RuntimeConfig.from_file(Path("llm-file-ops.yaml"))
        """
        try:
            config_path = Path(config_path).resolve()
        except (OSError, ValueError) as e:
            raise ConfigError(f"Invalid config file path: {e}") from e

        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        if not config_path.is_file():
            raise ConfigError(f"Config path is not a file: {config_path}")

        suffix = config_path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            return cls._load_from_yaml(config_path)
        elif suffix == ".toml":
            return cls._load_from_toml(config_path)
        else:
            raise ConfigError(
                f"Unsupported config file format: {suffix}. Must be .yaml, .yml, or .toml"
            )

    @classmethod
    def _load_from_yaml(cls, config_path: Path) -> "RuntimeConfig":
        """Load configuration from YAML file.

        Raises:
            ConfigError: If YAML is malformed or contains invalid values.
        """
        import yaml

        try:
            with config_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read {config_path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file must contain a mapping/dict, got {type(data).__name__}")

        return cls._from_dict(data, config_path)

    @classmethod
    def _load_from_toml(cls, config_path: Path) -> "RuntimeConfig":
        """Load configuration from TOML file.

        Raises:
            ConfigError: If TOML is malformed or contains invalid values.
        """
        # Python 3.11+ has tomllib built-in, otherwise use tomli
        if sys.version_info >= (3, 11):  # noqa: UP036
            import tomllib
        else:
            import tomli as tomllib

        try:
            with config_path.open("rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read {config_path}: {e}") from e

        return cls._from_dict(data, config_path)

    @classmethod
    def _from_dict(cls, data: dict[str, Any], source: Path) -> "RuntimeConfig":
        """Create RuntimeConfig from dictionary (internal helper).

        Expected layout::

            logging:   {level, file}
            synthesis: {strip_instruction_comments, normalize_indentation,
                        mark_partial_updates, derive_move_instructions}
            analysis:  {todo_threshold, large_update_lines, critical_paths}

        Args:
            data: Dictionary with configuration values.
            source: Source file path (for error messages).

        Returns:
            RuntimeConfig from dictionary.

        Raises:
            ConfigError: If dictionary contains invalid values.
        """
        defaults = cls.from_defaults()

        def section(name: str) -> dict[str, Any]:
            value = data.get(name, {})
            if not isinstance(value, dict):
                raise ConfigError(f"Invalid {name} type in {source}: {type(value).__name__}")
            return value

        logging_config = section("logging")
        synthesis = section("synthesis")
        analysis = section("analysis")

        critical_paths = analysis.get("critical_paths", list(defaults.extra_critical_paths))
        if not isinstance(critical_paths, list):
            raise ConfigError(
                f"analysis.critical_paths in {source} must be a list, "
                f"got {type(critical_paths).__name__}"
            )

        try:
            todo_threshold = int(analysis.get("todo_threshold", defaults.todo_threshold))
            large_update_lines = int(
                analysis.get("large_update_lines", defaults.large_update_lines)
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid analysis thresholds in {source}: {e}") from e

        log_file = logging_config.get("file", defaults.log_file)

        return cls(
            log_level=str(logging_config.get("level", defaults.log_level)).upper(),
            log_file=str(log_file) if log_file else None,
            strip_instruction_comments=bool(
                synthesis.get("strip_instruction_comments", defaults.strip_instruction_comments)
            ),
            normalize_indentation=bool(
                synthesis.get("normalize_indentation", defaults.normalize_indentation)
            ),
            mark_partial_updates=bool(
                synthesis.get("mark_partial_updates", defaults.mark_partial_updates)
            ),
            derive_move_instructions=bool(
                synthesis.get("derive_move_instructions", defaults.derive_move_instructions)
            ),
            todo_threshold=todo_threshold,
            large_update_lines=large_update_lines,
            extra_critical_paths=tuple(str(fragment) for fragment in critical_paths),
        )

    def merge_with_cli(self, **overrides: Any) -> "RuntimeConfig":  # noqa: ANN401
        """Create new config with CLI flag overrides.

        CLI flags take precedence over environment variables and config files.
        Only non-None values are applied.

        Args:
            **overrides: Keyword arguments matching RuntimeConfig fields.
                        None values are ignored (no override).

        Returns:
            New RuntimeConfig with overrides applied.

        Raises:
            ConfigError: If override value is invalid.
        """
        filtered_overrides = {k: v for k, v in overrides.items() if v is not None}

        if "log_level" in filtered_overrides:
            filtered_overrides["log_level"] = str(filtered_overrides["log_level"]).upper()
        if "extra_critical_paths" in filtered_overrides:
            filtered_overrides["extra_critical_paths"] = tuple(
                filtered_overrides["extra_critical_paths"]
            )

        try:
            return replace(self, **filtered_overrides)
        except TypeError as e:
            raise ConfigError(f"Failed to apply CLI overrides: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary.

        Example:
            >>> data = RuntimeConfig.from_defaults().to_dict()
            >>> assert data["todo_threshold"] == 3
        """
        return {
            "log_level": self.log_level,
            "log_file": self.log_file,
            "strip_instruction_comments": self.strip_instruction_comments,
            "normalize_indentation": self.normalize_indentation,
            "mark_partial_updates": self.mark_partial_updates,
            "derive_move_instructions": self.derive_move_instructions,
            "todo_threshold": self.todo_threshold,
            "large_update_lines": self.large_update_lines,
            "extra_critical_paths": list(self.extra_critical_paths),
        }

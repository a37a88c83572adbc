"""
Configuration management for the watch-rebuild orchestrator.

Handles environment variables, configuration file loading, and provides
default settings with validation for the watch session and the pipeline it
drives.
"""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from watch_rebuild.models.exceptions import ConfigurationError


class LogLevel(str, Enum):
    """Logging level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class WatchConfig(BaseSettings):
    """
    Central configuration class for the watch-rebuild orchestrator.

    The same settings drive the one-shot ``generate`` command and the
    ``watch`` command, so a watch session always rebuilds with the arguments
    it was started with.
    """

    model_config = SettingsConfigDict(
        env_prefix="WATCH_REBUILD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        use_enum_values=True,
    )

    # === Pipeline Configuration ===
    input_dir: Path = Field(default=Path("."), description="Directory to watch and feed to the pipeline")
    output_dir: Path = Field(default=Path("output"), description="Directory the pipeline writes to")
    pipeline_command: str | None = Field(
        default=None, description="External build command template ({input_dir}, {output_dir}, option keys)"
    )
    pipeline_reference: str | None = Field(
        default=None, description="Python pipeline reference in 'module:function' form"
    )
    pipeline_options: dict[str, str] = Field(default_factory=dict, description="Options passed through to the pipeline")
    pipeline_timeout_seconds: float | None = Field(
        default=None, gt=0, description="Timeout for external build commands (no timeout if None)"
    )
    ignore_paths: list[Path] = Field(
        default_factory=list, description="Extra directories the pipeline writes to; changes under them never rebuild"
    )

    # === Watch Session Configuration ===
    observer_join_timeout_seconds: float = Field(
        default=5.0, ge=0.1, le=60.0, description="How long to wait for the observer thread on stop"
    )
    shutdown_timeout_seconds: float = Field(
        default=30.0, ge=0.1, le=3600.0, description="How long shutdown waits for an in-flight rebuild"
    )
    exit_on_initial_failure: bool = Field(
        default=True, description="End the watch session when the initial rebuild fails"
    )

    # === Logging Configuration ===
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_file: Path | None = Field(default=None, description="Log file path (stderr if None)")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s", description="Log message format"
    )

    # === Development Configuration ===
    debug_mode: bool = Field(default=False, description="Enable debug mode with verbose logging")

    @field_validator('input_dir', 'output_dir', mode='after')
    @classmethod
    def resolve_directory(cls, v):
        """Normalize directories to absolute paths."""
        return Path(v).expanduser().resolve()

    @field_validator('ignore_paths', mode='after')
    @classmethod
    def resolve_ignore_paths(cls, v):
        """Normalize ignored directories to absolute paths."""
        return [Path(p).expanduser().resolve() for p in v]

    @field_validator('pipeline_command', 'pipeline_reference', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        """Treat empty strings from the environment as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode='after')
    def validate_pipeline_source(self):
        """Ensure at most one pipeline source is configured."""
        if self.pipeline_command and self.pipeline_reference:
            raise ConfigurationError(
                "pipeline_command and pipeline_reference are mutually exclusive",
                config_key="pipeline_command",
                expected_type="exactly one of pipeline_command, pipeline_reference",
                actual_value=self.pipeline_reference,
            )
        return self

    @property
    def effective_log_level(self) -> str:
        """Get the log level, forced to DEBUG in debug mode."""
        if self.debug_mode:
            return LogLevel.DEBUG.value
        return LogLevel(self.log_level).value

    def get_pipeline_arguments(self) -> tuple[Path, Path, dict[str, str]]:
        """Get the arguments every pipeline invocation receives."""
        return self.input_dir, self.output_dir, dict(self.pipeline_options)

    def get_excluded_paths(self) -> list[Path]:
        """Get the directories the pipeline writes to, output directory first."""
        return [self.output_dir, *self.ignore_paths]

    def output_inside_input(self) -> bool:
        """Check if the output directory lies inside the watched input directory."""
        return self.input_dir in self.output_dir.parents

    def get_log_config(self) -> dict[str, Any]:
        """Get logging configuration dictionary."""
        level = self.effective_log_level
        config = {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"standard": {"format": self.log_format}},
            "handlers": {
                "default": {
                    "level": level,
                    "formatter": "standard",
                    "class": "logging.StreamHandler" if not self.log_file else "logging.FileHandler",
                }
            },
            "loggers": {"watch_rebuild": {"handlers": ["default"], "level": level, "propagate": False}},
        }

        if self.log_file:
            config["handlers"]["default"]["filename"] = str(self.log_file)

        return config


# Global configuration instance
_config: WatchConfig | None = None


def get_config() -> WatchConfig:
    """
    Get the global configuration instance.

    Creates a new instance on first call and reuses it for subsequent calls.
    """
    global _config
    if _config is None:
        _config = WatchConfig()
    return _config


def reload_config(**overrides: Any) -> WatchConfig:
    """
    Force reload the configuration from environment/files.

    Keyword overrides take precedence over environment values; the CLI uses
    this to apply its arguments.
    """
    global _config
    _config = WatchConfig(**overrides)
    return _config


def set_config(config: WatchConfig) -> None:
    """
    Set a custom configuration instance.

    Primarily used for testing or advanced configuration scenarios.
    """
    global _config
    _config = config

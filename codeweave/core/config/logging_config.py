"""Logging configuration models for CodeWeave."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _non_empty_path(v: str, label: str) -> str:
    if not v.strip():
        raise ValueError(f"{label} path cannot be empty")
    return v


class FileLoggingConfig(BaseModel):
    """Debug log file written alongside the console output."""

    enabled: bool = False
    path: str = Field(default="codeweave.log", description="Path to log file")
    level: str = Field(default="INFO", description="Minimum level written to the file")
    rotation: str = "10 MB"
    retention: str = "1 week"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        if v.upper() not in VALID_LEVELS:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: {', '.join(VALID_LEVELS)}"
            )
        return v.upper()

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        return _non_empty_path(v, "Log file")


class PerformanceLoggingConfig(BaseModel):
    """Per-run performance summary log (records bound with ``performance=True``)."""

    enabled: bool = False
    path: str = Field(
        default="codeweave-performance.log", description="Path to performance log file"
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        return _non_empty_path(v, "Performance log file")


class LoggingConfig(BaseModel):
    """Top-level logging configuration."""

    file: FileLoggingConfig = Field(default_factory=FileLoggingConfig)
    performance: PerformanceLoggingConfig = Field(default_factory=PerformanceLoggingConfig)

    @classmethod
    def extract_cli_overrides(cls, args: Any) -> dict[str, Any] | None:
        """Extract logging overrides from ``--log-file``, ``--log-level`` and
        ``--performance-log``.

        Returns:
            Nested overrides, or None if no logging flag was given
        """
        overrides: dict[str, Any] = {}

        file_overrides: dict[str, Any] = {}
        if getattr(args, "log_file", None):
            file_overrides["enabled"] = True
            file_overrides["path"] = args.log_file
        if getattr(args, "log_level", None):
            file_overrides["level"] = args.log_level
        if file_overrides:
            overrides["file"] = file_overrides

        if getattr(args, "performance_log", None):
            overrides["performance"] = {"enabled": True, "path": args.performance_log}

        return overrides or None

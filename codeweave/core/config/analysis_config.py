"""
Parallel analysis configuration for CodeWeave.

This module provides validated configuration for the chunk planner and the
worker pool, loadable from environment variables, CLI arguments and code.

Configuration Sources (in order of precedence):
1. CLI arguments
2. Environment variables (CODEWEAVE_ANALYSIS_*)
3. Default values
"""

import argparse
import os
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Self

from codeweave.core.constants import (
    CHUNK_SIZE_LOWER_MULTIPLIER,
    CHUNK_SIZE_UPPER_MULTIPLIER,
    DEFAULT_BASE_SIZE_WEIGHT,
    DEFAULT_CHUNK_SIZE_TARGET,
    DEFAULT_DEPENDENCY_LIMIT,
    DEFAULT_HIGH_PRIORITY_PATTERNS,
    DEFAULT_MEDIUM_PRIORITY_PATTERNS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_TYPE_MULTIPLIERS,
    DEFAULT_WORKER_STARTUP_TIMEOUT,
    MAX_WORKERS_LIMIT,
)
from codeweave.core.exceptions import ConfigurationError


def default_max_workers() -> int:
    """Host parallelism, clamped to the supported worker range."""
    return max(1, min(os.cpu_count() or 1, MAX_WORKERS_LIMIT))


class ComplexityThresholds(BaseModel):
    """Accumulated chunk complexity above which priority is raised."""

    medium: float = Field(default=5.0, ge=0.0)
    high: float = Field(default=10.0, ge=0.0)

    @model_validator(mode="after")
    def validate_order(self) -> Self:
        if self.high < self.medium:
            raise ValueError(
                f"high threshold ({self.high}) must not be below medium ({self.medium})"
            )
        return self


class PriorityPatterns(BaseModel):
    """Path substrings that mark a chunk as high or medium signal."""

    high: list[str] = Field(default_factory=lambda: list(DEFAULT_HIGH_PRIORITY_PATTERNS))
    medium: list[str] = Field(
        default_factory=lambda: list(DEFAULT_MEDIUM_PRIORITY_PATTERNS)
    )


class RedistributionConfig(BaseModel):
    """Bounds for the post-planning redistribution pass."""

    upper_multiplier: float = Field(default=CHUNK_SIZE_UPPER_MULTIPLIER, gt=0.0)
    lower_multiplier: float = Field(default=CHUNK_SIZE_LOWER_MULTIPLIER, ge=0.0)


class PlannerConfig(BaseModel):
    """Configuration for ChunkPlanner."""

    chunk_size_target: int = Field(
        default=DEFAULT_CHUNK_SIZE_TARGET,
        ge=1,
        description="Target number of files per chunk",
    )
    dependency_limit: int = Field(
        default=DEFAULT_DEPENDENCY_LIMIT,
        ge=0,
        description="Maximum dependencies reported per file by the default lookup",
    )
    base_size_weight: float = Field(
        default=DEFAULT_BASE_SIZE_WEIGHT,
        ge=0.0,
        description="Weight applied to log10(size/1000) when estimating complexity",
    )
    type_multipliers: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_TYPE_MULTIPLIERS),
        description="Complexity multiplier per file extension (e.g. '.ts': 1.5)",
    )
    complexity_thresholds: ComplexityThresholds = Field(
        default_factory=ComplexityThresholds
    )
    priority_patterns: PriorityPatterns = Field(default_factory=PriorityPatterns)
    redistribution: RedistributionConfig = Field(default_factory=RedistributionConfig)

    @field_validator("type_multipliers")
    @classmethod
    def validate_type_multipliers(cls, v: dict[str, float]) -> dict[str, float]:
        """Normalize extensions to a leading dot, lower case."""
        normalized: dict[str, float] = {}
        for ext, weight in v.items():
            if weight < 0:
                raise ValueError(f"Multiplier for '{ext}' must be >= 0, got {weight}")
            key = ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            normalized[key] = weight
        return normalized


class PoolConfig(BaseModel):
    """Configuration for WorkerPool."""

    max_workers: int = Field(
        default_factory=default_max_workers,
        ge=1,
        le=MAX_WORKERS_LIMIT,
        description="Number of concurrent execution slots",
    )
    retry_attempts: int = Field(
        default=DEFAULT_RETRY_ATTEMPTS,
        ge=0,
        description="Retries allowed per chunk before it is marked permanently failed",
    )
    worker_startup_timeout: float = Field(
        default=DEFAULT_WORKER_STARTUP_TIMEOUT,
        gt=0.0,
        description="Seconds to wait for a worker to come online",
    )


def build_config(model: type[BaseModel], config: Any = None, **overrides: Any) -> Any:
    """Build a config model, reporting invalid values as ConfigurationError.

    Args:
        model: Pydantic model class to build
        config: Optional existing instance used as the base
        **overrides: Field values that replace the base values (None is ignored)

    Returns:
        Validated model instance

    Raises:
        ConfigurationError: If any value fails validation
    """
    values = config.model_dump() if config is not None else {}
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return model(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {model.__name__}: {e}") from e


class AnalysisConfig(BaseSettings):
    """
    Parallel analysis configuration.

    Environment Variables:
        CODEWEAVE_ANALYSIS_POOL__MAX_WORKERS=8
        CODEWEAVE_ANALYSIS_POOL__RETRY_ATTEMPTS=2
        CODEWEAVE_ANALYSIS_PLANNER__CHUNK_SIZE_TARGET=50
    """

    model_config = SettingsConfigDict(
        env_prefix="CODEWEAVE_ANALYSIS_",
        env_nested_delimiter="__",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    planner: PlannerConfig = Field(default_factory=PlannerConfig)
    pool: PoolConfig = Field(default_factory=PoolConfig)

    @classmethod
    def add_cli_arguments(cls, parser: argparse.ArgumentParser) -> None:
        """Add analysis-related CLI arguments."""
        parser.add_argument(
            "--max-workers",
            type=int,
            help="Number of concurrent analysis workers (default: CPU count)",
        )

        parser.add_argument(
            "--chunk-size",
            type=int,
            help=f"Target files per chunk (default: {DEFAULT_CHUNK_SIZE_TARGET})",
        )

        parser.add_argument(
            "--retry-attempts",
            type=int,
            help=f"Retries per failed chunk (default: {DEFAULT_RETRY_ATTEMPTS})",
        )

        parser.add_argument(
            "--dependency-limit",
            type=int,
            help=f"Dependencies considered per file (default: {DEFAULT_DEPENDENCY_LIMIT})",
        )

    @classmethod
    def extract_cli_overrides(cls, args: Any) -> dict[str, Any]:
        """Extract analysis config from CLI arguments."""
        planner: dict[str, Any] = {}
        pool: dict[str, Any] = {}

        if getattr(args, "chunk_size", None) is not None:
            planner["chunk_size_target"] = args.chunk_size
        if getattr(args, "dependency_limit", None) is not None:
            planner["dependency_limit"] = args.dependency_limit
        if getattr(args, "max_workers", None) is not None:
            pool["max_workers"] = args.max_workers
        if getattr(args, "retry_attempts", None) is not None:
            pool["retry_attempts"] = args.retry_attempts

        overrides: dict[str, Any] = {}
        if planner:
            overrides["planner"] = planner
        if pool:
            overrides["pool"] = pool
        return overrides

    def with_overrides(self, overrides: dict[str, Any]) -> "AnalysisConfig":
        """Return a copy with nested overrides applied.

        Raises:
            ConfigurationError: If the result is invalid
        """
        planner = build_config(PlannerConfig, self.planner, **overrides.get("planner", {}))
        pool = build_config(PoolConfig, self.pool, **overrides.get("pool", {}))
        return self.model_copy(update={"planner": planner, "pool": pool})

    def __repr__(self) -> str:
        return (
            f"AnalysisConfig("
            f"max_workers={self.pool.max_workers}, "
            f"retry_attempts={self.pool.retry_attempts}, "
            f"chunk_size_target={self.planner.chunk_size_target})"
        )

"""Configuration models for CodeWeave."""

from .analysis_config import (
    AnalysisConfig,
    ComplexityThresholds,
    PlannerConfig,
    PoolConfig,
    PriorityPatterns,
    RedistributionConfig,
)
from .logging_config import FileLoggingConfig, LoggingConfig, PerformanceLoggingConfig

__all__ = [
    "AnalysisConfig",
    "ComplexityThresholds",
    "FileLoggingConfig",
    "LoggingConfig",
    "PerformanceLoggingConfig",
    "PlannerConfig",
    "PoolConfig",
    "PriorityPatterns",
    "RedistributionConfig",
]

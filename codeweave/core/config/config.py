"""Application configuration for CodeWeave."""

import argparse
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from codeweave.core.exceptions import ConfigurationError

from .analysis_config import AnalysisConfig
from .logging_config import LoggingConfig


class Config(BaseModel):
    """Aggregate configuration for a CodeWeave invocation."""

    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "Config":
        """Build configuration from environment defaults plus CLI overrides.

        Args:
            args: Parsed command line arguments

        Returns:
            Validated configuration

        Raises:
            ConfigurationError: If any resulting value is invalid
        """
        try:
            analysis = AnalysisConfig()
            logging_config = LoggingConfig()
            if logging_overrides := LoggingConfig.extract_cli_overrides(args):
                merged: dict[str, Any] = logging_config.model_dump()
                for section, values in logging_overrides.items():
                    merged[section].update(values)
                logging_config = LoggingConfig(**merged)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        analysis = analysis.with_overrides(AnalysisConfig.extract_cli_overrides(args))
        return cls(analysis=analysis, logging=logging_config)

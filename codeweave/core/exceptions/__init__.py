from .analysis import (
    AnalysisEngineError,
    ChunkProcessingError,
    ConfigurationError,
    WorkerStartupError,
)

__all__ = [
    "AnalysisEngineError",
    "ChunkProcessingError",
    "ConfigurationError",
    "WorkerStartupError",
]

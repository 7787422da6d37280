from .performance_tracker import (
    ChunkTiming,
    PerformanceMetrics,
    PerformanceTracker,
    StragglerChunk,
    compute_parallel_efficiency,
)

__all__ = [
    "ChunkTiming",
    "PerformanceMetrics",
    "PerformanceTracker",
    "StragglerChunk",
    "compute_parallel_efficiency",
]

"""Core data types for CodeWeave."""

from .analysis import (
    AnalysisError,
    AnalysisResult,
    Chunk,
    ChunkMetrics,
    ChunkPriority,
    CombinedResult,
    FailedChunk,
    GraphEdge,
    GraphNode,
    MergeConflict,
    Pattern,
)

__all__ = [
    "AnalysisError",
    "AnalysisResult",
    "Chunk",
    "ChunkMetrics",
    "ChunkPriority",
    "CombinedResult",
    "FailedChunk",
    "GraphEdge",
    "GraphNode",
    "MergeConflict",
    "Pattern",
]

"""Data model for the chunked parallel analysis engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal


class ChunkPriority(str, Enum):
    """Scheduling priority of a chunk."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def weight(self) -> int:
        """Sort weight used by the scheduler (higher runs first)."""
        return _PRIORITY_WEIGHTS[self]


_PRIORITY_WEIGHTS = {
    ChunkPriority.HIGH: 3,
    ChunkPriority.MEDIUM: 2,
    ChunkPriority.LOW: 1,
}


@dataclass(frozen=True)
class Chunk:
    """A bounded, dependency-grouped set of files analyzed as one unit."""

    id: str
    files: tuple[str, ...]
    priority: ChunkPriority = ChunkPriority.LOW
    estimated_complexity: float = 0.0
    dependencies: tuple[str, ...] = ()
    total_size: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "files": list(self.files),
            "priority": self.priority.value,
            "estimated_complexity": self.estimated_complexity,
            "dependencies": list(self.dependencies),
            "total_size": self.total_size,
        }


@dataclass
class GraphNode:
    id: str
    type: str
    name: str
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass
class GraphEdge:
    source: str
    target: str
    type: str
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str, str]:
        """Identity of the edge."""
        return (self.source, self.target, self.type)


@dataclass
class Pattern:
    type: str
    name: str
    file: str
    confidence: float
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str, str]:
        """Identity of the pattern."""
        return (self.type, self.name, self.file)


@dataclass
class ChunkMetrics:
    """Per-chunk statistics reported by the analyze capability."""

    files_processed: int = 0
    lines_analyzed: int = 0
    complexity_score: float = 0.0
    memory_used: float = 0.0
    cpu_time: float = 0.0
    io_time: float = 0.0


@dataclass
class AnalysisError:
    """A non-fatal problem found while analyzing a file inside a chunk.

    This is a record carried inside results, not an exception.
    """

    type: Literal["parse_error", "memory_error", "timeout_error", "dependency_error"]
    file: str
    message: str
    line: int | None = None
    column: int | None = None
    recoverable: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "file": self.file,
            "message": self.message,
            "line": self.line,
            "column": self.column,
            "recoverable": self.recoverable,
        }


@dataclass
class AnalysisResult:
    """Output of analyzing one chunk."""

    chunk_id: str
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    patterns: list[Pattern] = field(default_factory=list)
    metrics: ChunkMetrics = field(default_factory=ChunkMetrics)
    errors: list[AnalysisError] = field(default_factory=list)
    processing_time: float = 0.0


@dataclass(frozen=True)
class MergeConflict:
    """A deterministic resolution of two results disclosing the same entity."""

    kind: Literal["node_conflict", "edge_conflict"]
    entity_id: str
    conflicting_chunks: tuple[str, ...]
    resolution: Literal["merged"] = "merged"
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "entity_id": self.entity_id,
            "conflicting_chunks": list(self.conflicting_chunks),
            "resolution": self.resolution,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class FailedChunk:
    """A chunk that exhausted its retry budget.

    ``attempts`` counts the retries consumed, so a chunk that always fails is
    recorded with ``attempts == retry_attempts`` after ``retry_attempts + 1``
    invocations.
    """

    chunk: Chunk
    attempts: int
    last_error: str


@dataclass(frozen=True)
class CombinedResult:
    """Merged view over every successful chunk result of a run."""

    total_nodes: int
    total_edges: int
    total_patterns: int
    processing_time: float
    memory_usage: float
    parallel_efficiency: float
    errors: tuple[AnalysisError, ...] = ()
    merge_conflicts: tuple[MergeConflict, ...] = ()
    nodes: tuple[GraphNode, ...] = ()
    edges: tuple[GraphEdge, ...] = ()
    patterns: tuple[Pattern, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable summary (entities are not included)."""
        return {
            "total_nodes": self.total_nodes,
            "total_edges": self.total_edges,
            "total_patterns": self.total_patterns,
            "processing_time": round(self.processing_time, 4),
            "memory_usage": round(self.memory_usage, 2),
            "parallel_efficiency": round(self.parallel_efficiency, 4),
            "errors": [e.to_dict() for e in self.errors],
            "merge_conflicts": [c.to_dict() for c in self.merge_conflicts],
        }

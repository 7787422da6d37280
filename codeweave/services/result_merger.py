"""Result merger - folds per-chunk results into one CombinedResult.

Results are processed in input order. Nodes and edges that appear in more than
one result are merged with last-writer-wins properties and a MergeConflict
record; patterns keep the highest confidence and never produce a conflict.
The identity sets of the output do not depend on input order, the resolved
property values do.
"""

from collections.abc import Sequence
from dataclasses import replace

from loguru import logger

from codeweave.core.diagnostics import PerformanceTracker
from codeweave.core.types import (
    AnalysisError,
    AnalysisResult,
    CombinedResult,
    GraphEdge,
    GraphNode,
    MergeConflict,
    Pattern,
)


def edge_entity_id(edge: GraphEdge) -> str:
    return f"{edge.source}-{edge.target}-{edge.type}"


class ResultMerger:
    """Identity-keyed merge of successful chunk results."""

    def __init__(self, tracker: PerformanceTracker | None = None):
        """Initialize result merger.

        Args:
            tracker: Source of run-level memory and efficiency figures. Without
                one, both are reported as 0.
        """
        self.tracker = tracker

    def merge(self, results: Sequence[AnalysisResult]) -> CombinedResult:
        """Merge results into a CombinedResult without modifying the inputs."""
        nodes: dict[str, GraphNode] = {}
        node_origins: dict[str, list[str]] = {}
        edges: dict[tuple[str, str, str], GraphEdge] = {}
        edge_origins: dict[tuple[str, str, str], list[str]] = {}
        patterns: dict[tuple[str, str, str], Pattern] = {}

        conflicts: list[MergeConflict] = []
        errors: list[AnalysisError] = []
        processing_time = 0.0

        for result in results:
            for node in result.nodes:
                if node.id in nodes:
                    existing = nodes[node.id]
                    nodes[node.id] = replace(
                        existing, properties={**existing.properties, **node.properties}
                    )
                    conflicts.append(
                        MergeConflict(
                            kind="node_conflict",
                            entity_id=node.id,
                            conflicting_chunks=(*node_origins[node.id], result.chunk_id),
                            reason=f"Node {node.id} reported by multiple chunks",
                        )
                    )
                    node_origins[node.id].append(result.chunk_id)
                else:
                    nodes[node.id] = replace(node, properties=dict(node.properties))
                    node_origins[node.id] = [result.chunk_id]

            for edge in result.edges:
                key = edge.key
                if key in edges:
                    existing_edge = edges[key]
                    edges[key] = replace(
                        existing_edge,
                        properties={**existing_edge.properties, **edge.properties},
                    )
                    entity_id = edge_entity_id(edge)
                    conflicts.append(
                        MergeConflict(
                            kind="edge_conflict",
                            entity_id=entity_id,
                            conflicting_chunks=(*edge_origins[key], result.chunk_id),
                            reason=f"Edge {entity_id} reported by multiple chunks",
                        )
                    )
                    edge_origins[key].append(result.chunk_id)
                else:
                    edges[key] = replace(edge, properties=dict(edge.properties))
                    edge_origins[key] = [result.chunk_id]

            for pattern in result.patterns:
                key = pattern.key
                if key in patterns:
                    existing_pattern = patterns[key]
                    patterns[key] = replace(
                        existing_pattern,
                        confidence=max(existing_pattern.confidence, pattern.confidence),
                        properties={**existing_pattern.properties, **pattern.properties},
                    )
                else:
                    patterns[key] = replace(pattern, properties=dict(pattern.properties))

            errors.extend(result.errors)
            processing_time += result.processing_time

        memory_usage = 0.0
        parallel_efficiency = 0.0
        if self.tracker is not None:
            memory_usage = self.tracker.metrics.memory_peak_usage
            parallel_efficiency = self.tracker.metrics.parallel_efficiency

        logger.info(
            f"Merged {len(results)} results: {len(nodes)} nodes, {len(edges)} edges, "
            f"{len(patterns)} patterns, {len(conflicts)} conflicts"
        )

        return CombinedResult(
            total_nodes=len(nodes),
            total_edges=len(edges),
            total_patterns=len(patterns),
            processing_time=processing_time,
            memory_usage=memory_usage,
            parallel_efficiency=parallel_efficiency,
            errors=tuple(errors),
            merge_conflicts=tuple(conflicts),
            nodes=tuple(nodes.values()),
            edges=tuple(edges.values()),
            patterns=tuple(patterns.values()),
        )

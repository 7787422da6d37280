"""Service layer for the chunked parallel analysis engine."""

from .analysis_engine import AnalysisReport, DistributedAnalyzer
from .chunk_planner import ChunkPlanner, directory_dependency_lookup
from .result_merger import ResultMerger
from .worker_pool import AnalysisWorker, WorkerEvent, WorkerPool, prioritize_chunks

__all__ = [
    "AnalysisReport",
    "AnalysisWorker",
    "ChunkPlanner",
    "DistributedAnalyzer",
    "ResultMerger",
    "WorkerEvent",
    "WorkerPool",
    "directory_dependency_lookup",
    "prioritize_chunks",
]

"""Distributed analyzer - planner, worker pool and merger behind one facade."""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from codeweave.core.config import AnalysisConfig
from codeweave.core.diagnostics import PerformanceMetrics, PerformanceTracker
from codeweave.core.types import AnalysisResult, Chunk, CombinedResult, FailedChunk

from .chunk_planner import ChunkPlanner, DependencyLookup, SizeLookup, file_size
from .result_merger import ResultMerger
from .worker_pool import AnalysisWorker, AnalyzeChunk, WorkerFactory, WorkerPool


@dataclass
class AnalysisReport:
    """Everything a caller needs to report on one run."""

    combined: CombinedResult
    chunks: list[Chunk]
    failed_chunks: dict[str, FailedChunk]
    metrics: PerformanceMetrics
    succeeded_chunks: int = 0
    latency: dict[str, Any] = field(default_factory=dict)

    @property
    def total_chunks(self) -> int:
        return len(self.chunks)

    @property
    def skipped_chunks(self) -> int:
        """Chunks never dispatched because the run was cancelled."""
        return self.total_chunks - self.succeeded_chunks - len(self.failed_chunks)

    @property
    def summary_line(self) -> str:
        return f"{self.succeeded_chunks}/{self.total_chunks} chunks succeeded"

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary_line,
            "total_chunks": self.total_chunks,
            "succeeded_chunks": self.succeeded_chunks,
            "skipped_chunks": self.skipped_chunks,
            "result": self.combined.to_dict(),
            "failed_chunks": [
                {
                    "chunk_id": chunk_id,
                    "files": list(failed.chunk.files),
                    "attempts": failed.attempts,
                    "last_error": failed.last_error,
                }
                for chunk_id, failed in self.failed_chunks.items()
            ],
            "metrics": self.metrics.to_dict(),
            "chunks": [c.to_dict() for c in self.chunks],
        }


class DistributedAnalyzer:
    """Chunk, analyze in parallel and merge a file set.

    The analyzer shares one PerformanceTracker between the pool (which feeds
    it) and the merger (which reads memory and efficiency from it).
    """

    def __init__(
        self,
        analyze: AnalyzeChunk,
        config: AnalysisConfig | None = None,
        dependency_lookup: DependencyLookup | None = None,
        worker_factory: WorkerFactory = AnalysisWorker,
        size_of: SizeLookup = file_size,
    ):
        self.config = config or AnalysisConfig()
        self._analyze = analyze
        self.tracker = PerformanceTracker()
        self.planner = ChunkPlanner(self.config.planner, size_of=size_of)
        self.pool = WorkerPool(
            self.config.pool, tracker=self.tracker, worker_factory=worker_factory
        )
        self.merger = ResultMerger(tracker=self.tracker)
        self._dependency_lookup = dependency_lookup

        logger.debug(f"DistributedAnalyzer initialized: {self.config!r}")

    def subscribe(self, event: str, callback: Callable[..., Any]) -> Callable[[], None]:
        """Subscribe to a worker pool event (chunk_complete, chunk_error, progress)."""
        return self.pool.subscribe(event, callback)

    def cancel(self) -> None:
        self.pool.cancel()

    def create_chunks(self, files: Iterable[str]) -> list[Chunk]:
        return self.planner.create_chunks(files, self._dependency_lookup)

    async def analyze_in_parallel(self, chunks: Sequence[Chunk]) -> list[AnalysisResult]:
        return await self.pool.run_parallel(chunks, self._analyze)

    def merge_results(self, results: Sequence[AnalysisResult]) -> CombinedResult:
        return self.merger.merge(results)

    async def analyze(self, files: Iterable[str]) -> AnalysisReport:
        """Run the full pipeline over a file set.

        Raises:
            WorkerStartupError: If the worker pool cannot start
        """
        return await self.analyze_chunks(self.create_chunks(files))

    async def analyze_chunks(self, chunks: Sequence[Chunk]) -> AnalysisReport:
        """Run and merge already planned chunks."""
        chunks = list(chunks)
        results = await self.analyze_in_parallel(chunks)
        combined = self.merge_results(results)

        report = AnalysisReport(
            combined=combined,
            chunks=chunks,
            failed_chunks=dict(self.pool.failed_chunks),
            metrics=self.tracker.metrics,
            succeeded_chunks=len(results),
            latency=self.tracker.latency_summary(),
        )

        stragglers = report.latency.get("stragglers", [])
        if stragglers:
            logger.info(
                f"{len(stragglers)} straggler chunk(s): "
                + ", ".join(f"{s.chunk_id} ({s.latency:.2f}s)" for s in stragglers)
            )
        if report.skipped_chunks:
            logger.warning(f"{report.skipped_chunks} chunk(s) skipped after cancellation")
        logger.info(f"Analysis finished: {report.summary_line}")
        return report

"""Run-level performance tracking for the parallel analysis engine.

Timing is captured by the worker pool while it dispatches chunks; the tracker
only derives aggregate metrics from it and never feeds back into scheduling.
"""

import statistics
import time
from dataclasses import dataclass, field
from typing import Any

import psutil
from loguru import logger


@dataclass
class ChunkTiming:
    """Timing data for a single chunk invocation."""

    chunk_id: str
    worker_id: int
    start_time: float
    end_time: float | None = None
    succeeded: bool | None = None

    @property
    def latency(self) -> float:
        """Invocation latency in seconds."""
        if self.end_time is None:
            return 0.0
        return self.end_time - self.start_time


@dataclass
class StragglerChunk:
    """A chunk whose latency is an outlier for the run."""

    chunk_id: str
    latency: float
    z_score: float


@dataclass
class PerformanceMetrics:
    """Aggregate metrics for one run."""

    total_chunks: int = 0
    completed_chunks: int = 0
    failed_chunks: int = 0
    wall_clock_elapsed: float = 0.0
    average_chunk_time: float = 0.0
    parallel_efficiency: float = 0.0
    memory_peak_usage: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_chunks": self.total_chunks,
            "completed_chunks": self.completed_chunks,
            "failed_chunks": self.failed_chunks,
            "wall_clock_elapsed": round(self.wall_clock_elapsed, 4),
            "average_chunk_time": round(self.average_chunk_time, 4),
            "parallel_efficiency": round(self.parallel_efficiency, 4),
            "memory_peak_usage": round(self.memory_peak_usage, 2),
        }


def compute_parallel_efficiency(
    average_chunk_time: float, total_chunks: int, wall_clock_elapsed: float
) -> float:
    """Ratio of ideal to observed time, clamped to [0, 1]."""
    if wall_clock_elapsed <= 0:
        return 0.0 if total_chunks == 0 else 1.0
    ideal = average_chunk_time * total_chunks
    return min(1.0, max(0.0, ideal / wall_clock_elapsed))


@dataclass
class PerformanceTracker:
    """Tracks chunk counts, wall-clock time and memory peak for a run.

    ``average_chunk_time`` is wall-clock elapsed divided by the number of
    completed chunks, not the mean of individual chunk latencies.
    """

    outlier_sigma: float = 2.0
    timings: list[ChunkTiming] = field(default_factory=list)
    _metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics, repr=False)
    _run_start: float | None = field(default=None, repr=False)
    _active: dict[str, ChunkTiming] = field(default_factory=dict, repr=False)

    @property
    def metrics(self) -> PerformanceMetrics:
        return self._metrics

    def start_run(self, total_chunks: int) -> None:
        """Reset state and start the wall clock for a new run."""
        self.timings = []
        self._active = {}
        self._metrics = PerformanceMetrics(total_chunks=total_chunks)
        self._run_start = time.perf_counter()
        self.sample_memory()

    def chunk_started(self, chunk_id: str, worker_id: int) -> None:
        """Mark the start of one chunk invocation."""
        self._active[chunk_id] = ChunkTiming(
            chunk_id=chunk_id,
            worker_id=worker_id,
            start_time=time.perf_counter(),
        )

    def chunk_finished(self, chunk_id: str, succeeded: bool) -> None:
        """Mark the end of one chunk invocation and sample memory."""
        timing = self._active.pop(chunk_id, None)
        if timing is None:
            return
        timing.end_time = time.perf_counter()
        timing.succeeded = succeeded
        self.timings.append(timing)
        self.sample_memory()

    def sample_memory(self) -> float:
        """Sample process RSS in MB and keep the peak."""
        try:
            rss_mb = psutil.Process().memory_info().rss / 1024 / 1024
        except psutil.Error as e:
            logger.debug(f"Memory sampling failed: {e}")
            return self._metrics.memory_peak_usage
        if rss_mb > self._metrics.memory_peak_usage:
            self._metrics.memory_peak_usage = rss_mb
        return rss_mb

    def finish_run(self, completed_chunks: int, failed_chunks: int = 0) -> PerformanceMetrics:
        """Stop the wall clock and derive aggregate metrics."""
        elapsed = 0.0
        if self._run_start is not None:
            elapsed = time.perf_counter() - self._run_start
        self._run_start = None
        self._active = {}
        self.sample_memory()

        metrics = self._metrics
        metrics.completed_chunks = completed_chunks
        metrics.failed_chunks = failed_chunks
        metrics.wall_clock_elapsed = elapsed
        metrics.average_chunk_time = elapsed / max(completed_chunks, 1)
        metrics.parallel_efficiency = compute_parallel_efficiency(
            metrics.average_chunk_time, metrics.total_chunks, elapsed
        )

        logger.bind(performance=True).info(
            f"Analysis run: {completed_chunks}/{metrics.total_chunks} chunks in "
            f"{elapsed:.3f}s (avg {metrics.average_chunk_time:.3f}s, "
            f"efficiency {metrics.parallel_efficiency:.2f}, "
            f"peak memory {metrics.memory_peak_usage:.1f} MB)"
        )
        return metrics

    def latency_summary(self) -> dict[str, Any]:
        """Summarize individual chunk latencies and flag stragglers."""
        latencies = [t.latency for t in self.timings if t.end_time is not None]
        if not latencies:
            return {"count": 0, "mean": 0.0, "stdev": 0.0, "max": 0.0, "stragglers": []}

        mean = statistics.mean(latencies)
        stdev = statistics.stdev(latencies) if len(latencies) > 1 else 0.0

        stragglers: list[StragglerChunk] = []
        if stdev > 0:
            for timing in self.timings:
                z_score = (timing.latency - mean) / stdev
                if z_score > self.outlier_sigma:
                    stragglers.append(
                        StragglerChunk(timing.chunk_id, timing.latency, z_score)
                    )

        return {
            "count": len(latencies),
            "mean": mean,
            "stdev": stdev,
            "max": max(latencies),
            "stragglers": stragglers,
        }

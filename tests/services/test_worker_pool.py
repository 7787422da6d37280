"""Tests for WorkerPool scheduling, retries and cleanup."""

import asyncio
from unittest.mock import MagicMock

import pytest

from codeweave.core.diagnostics import PerformanceTracker
from codeweave.core.exceptions import ConfigurationError, WorkerStartupError
from codeweave.core.types import ChunkPriority
from codeweave.services.worker_pool import (
    AnalysisWorker,
    Running,
    Succeeded,
    WorkerPool,
    prioritize_chunks,
)
from tests.helpers.analysis_doubles import (
    GatedAnalyzer,
    RecordingAnalyzer,
    ThreadCountingAnalyzer,
    make_chunk,
    make_result,
)


class BrokenWorker(AnalysisWorker):
    """Worker whose execution slot cannot be acquired."""

    async def start(self, timeout: float) -> None:
        raise RuntimeError("no execution slot available")


class SilentWorker(AnalysisWorker):
    """Worker that never reports online."""

    async def _run(self) -> None:
        await asyncio.sleep(60)


class TestPoolConfiguration:
    """Eager validation of construction parameters."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"max_workers": 0},
            {"max_workers": 33},
            {"retry_attempts": -1},
            {"worker_startup_timeout": 0},
        ],
    )
    def test_invalid_parameters_raise_configuration_error(self, overrides):
        with pytest.raises(ConfigurationError):
            WorkerPool(**overrides)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            WorkerPool(max_workers=0)

    @pytest.mark.asyncio
    async def test_duplicate_chunk_ids_rejected_before_workers_start(self):
        factory = MagicMock()
        pool = WorkerPool(max_workers=2, worker_factory=factory)

        with pytest.raises(ConfigurationError, match="Duplicate chunk id 'chunk-0'"):
            await pool.run_parallel(
                [make_chunk("chunk-0"), make_chunk("chunk-0")], RecordingAnalyzer()
            )

        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_chunk_list_returns_empty_without_workers(self):
        factory = MagicMock()
        pool = WorkerPool(max_workers=2, worker_factory=factory)

        results = await pool.run_parallel([], RecordingAnalyzer())

        assert results == []
        factory.assert_not_called()


class TestScheduling:
    """Bounded concurrency and pull-based dispatch."""

    @pytest.mark.asyncio
    async def test_all_chunks_succeed(self, chunks):
        pool = WorkerPool(max_workers=2)
        analyzer = RecordingAnalyzer()

        results = await pool.run_parallel(chunks, analyzer)

        assert sorted(r.chunk_id for r in results) == sorted(c.id for c in chunks)
        assert pool.failed_chunks == {}

    @pytest.mark.asyncio
    async def test_in_flight_chunks_never_exceed_max_workers(self):
        pool = WorkerPool(max_workers=3)
        analyzer = RecordingAnalyzer(delay=0.02)
        many = [make_chunk(f"chunk-{i}") for i in range(12)]

        results = await pool.run_parallel(many, analyzer)

        assert len(results) == 12
        assert analyzer.max_in_flight <= 3
        assert analyzer.max_in_flight == 3

    @pytest.mark.asyncio
    async def test_next_chunk_dispatched_only_after_completion(self, chunks):
        """With two workers and five chunks, the third waits for a free slot."""
        pool = WorkerPool(max_workers=2)
        analyzer = GatedAnalyzer()

        task = asyncio.create_task(pool.run_parallel(chunks, analyzer))
        await analyzer.wait_started(2)
        await asyncio.sleep(0.05)

        assert analyzer.started == ["chunk-0", "chunk-1"]

        analyzer.release("chunk-0")
        await analyzer.wait_started(3)
        assert analyzer.started[2] == "chunk-2"

        for chunk in chunks:
            analyzer.release(chunk.id)
        results = await task

        assert len(results) == 5

    @pytest.mark.asyncio
    async def test_dispatch_order_follows_priority_then_complexity(self):
        pool = WorkerPool(max_workers=1)
        analyzer = RecordingAnalyzer(delay=0)
        planned = [
            make_chunk("low-simple", priority=ChunkPriority.LOW, complexity=1.0),
            make_chunk("high-complex", priority=ChunkPriority.HIGH, complexity=9.0),
            make_chunk("medium", priority=ChunkPriority.MEDIUM, complexity=2.0),
            make_chunk("high-simple", priority=ChunkPriority.HIGH, complexity=1.0),
        ]

        await pool.run_parallel(planned, analyzer)

        assert analyzer.calls == ["high-simple", "high-complex", "medium", "low-simple"]

    def test_prioritize_chunks_is_stable_for_ties(self):
        first = make_chunk("first", complexity=2.0)
        second = make_chunk("second", complexity=2.0)

        assert prioritize_chunks([first, second]) == [first, second]

    @pytest.mark.asyncio
    async def test_sync_analyze_runs_on_executor_threads(self, chunks):
        pool = WorkerPool(max_workers=2)
        analyzer = ThreadCountingAnalyzer()

        results = await pool.run_parallel(chunks, analyzer)

        assert len(results) == 5
        assert len(analyzer.thread_names) == 5
        assert all(name.startswith("analysis-worker") for name in analyzer.thread_names)

    @pytest.mark.asyncio
    async def test_concurrent_runs_on_same_pool_rejected(self, chunks):
        pool = WorkerPool(max_workers=1)
        analyzer = GatedAnalyzer()

        task = asyncio.create_task(pool.run_parallel(chunks, analyzer))
        await analyzer.wait_started(1)

        with pytest.raises(RuntimeError, match="already running"):
            await pool.run_parallel(chunks, RecordingAnalyzer())

        for chunk in chunks:
            analyzer.release(chunk.id)
        await task


class TestRetries:
    """Retry budget and permanent failure bookkeeping."""

    @pytest.mark.asyncio
    async def test_always_failing_chunk_is_invoked_retry_attempts_plus_one(self, chunks):
        pool = WorkerPool(max_workers=2, retry_attempts=2)
        analyzer = RecordingAnalyzer(fail_times={"chunk-2": -1})

        results = await pool.run_parallel(chunks, analyzer)

        assert sorted(r.chunk_id for r in results) == [
            "chunk-0",
            "chunk-1",
            "chunk-3",
            "chunk-4",
        ]
        assert analyzer.invocations("chunk-2") == 3
        failed = pool.failed_chunks["chunk-2"]
        assert failed.attempts == 2
        assert "boom in chunk-2" in failed.last_error
        assert failed.chunk.id == "chunk-2"

    @pytest.mark.asyncio
    async def test_chunk_error_emitted_once_per_failed_chunk(self, chunks):
        pool = WorkerPool(max_workers=2, retry_attempts=2)
        analyzer = RecordingAnalyzer(fail_times={"chunk-2": -1})
        errors: list[tuple[str, str]] = []
        pool.subscribe("chunk_error", lambda chunk_id, error: errors.append((chunk_id, error)))

        await pool.run_parallel(chunks, analyzer)

        assert [chunk_id for chunk_id, _ in errors] == ["chunk-2"]

    @pytest.mark.asyncio
    async def test_transient_failure_recovers(self, chunks):
        pool = WorkerPool(max_workers=2, retry_attempts=2)
        analyzer = RecordingAnalyzer(fail_times={"chunk-1": 1})

        results = await pool.run_parallel(chunks, analyzer)

        assert len(results) == 5
        assert analyzer.invocations("chunk-1") == 2
        assert pool.failed_chunks == {}

    @pytest.mark.asyncio
    async def test_zero_retry_attempts_fails_after_single_invocation(self, chunks):
        pool = WorkerPool(max_workers=2, retry_attempts=0)
        analyzer = RecordingAnalyzer(fail_times={"chunk-0": -1})

        results = await pool.run_parallel(chunks, analyzer)

        assert len(results) == 4
        assert analyzer.invocations("chunk-0") == 1
        assert pool.failed_chunks["chunk-0"].attempts == 0

    @pytest.mark.asyncio
    async def test_non_result_return_value_counts_as_failure(self):
        async def analyze(chunk):
            return None

        pool = WorkerPool(max_workers=1, retry_attempts=1)

        results = await pool.run_parallel([make_chunk("chunk-0")], analyze)

        assert results == []
        assert "expected AnalysisResult" in pool.failed_chunks["chunk-0"].last_error

    @pytest.mark.asyncio
    async def test_base_exception_from_analyze_fails_chunk_without_hanging(self):
        class AbortAnalysis(BaseException):
            pass

        async def analyze(chunk):
            if chunk.id == "chunk-0":
                raise AbortAnalysis("analysis aborted")
            return make_result(chunk.id, f"f:{chunk.id}")

        pool = WorkerPool(max_workers=1, retry_attempts=1)

        results = await asyncio.wait_for(
            pool.run_parallel([make_chunk("chunk-0"), make_chunk("chunk-1")], analyze),
            timeout=5,
        )

        assert [r.chunk_id for r in results] == ["chunk-1"]
        failed = pool.failed_chunks["chunk-0"]
        assert failed.attempts == 1
        assert failed.last_error == "analysis aborted"

    @pytest.mark.asyncio
    async def test_failed_snapshot_resets_between_runs(self, chunks):
        pool = WorkerPool(max_workers=2, retry_attempts=0)

        await pool.run_parallel(chunks, RecordingAnalyzer(fail_times={"chunk-0": -1}))
        assert set(pool.failed_chunks) == {"chunk-0"}

        await pool.run_parallel(chunks, RecordingAnalyzer())
        assert pool.failed_chunks == {}

    @pytest.mark.asyncio
    async def test_tracker_counts_completed_and_failed(self, chunks):
        tracker = PerformanceTracker()
        pool = WorkerPool(max_workers=2, retry_attempts=1, tracker=tracker)

        await pool.run_parallel(chunks, RecordingAnalyzer(fail_times={"chunk-3": -1}))

        metrics = tracker.metrics
        assert metrics.total_chunks == 5
        assert metrics.completed_chunks == 4
        assert metrics.failed_chunks == 1
        assert 0.0 <= metrics.parallel_efficiency <= 1.0
        # Two invocations for the failing chunk, one for each of the others
        assert len(tracker.timings) == 6

    def test_retry_falls_back_to_worker_zero_when_all_busy(self):
        pool = WorkerPool(max_workers=2)
        pool._workers = [MagicMock(), MagicMock()]

        pool._states = {"a": Running(0, 0.0), "b": Running(1, 0.0)}
        assert pool._find_available_worker() == 0

        pool._states = {"a": Running(0, 0.0)}
        assert pool._find_available_worker() == 1


class TestStartupFailure:
    """Worker startup failure aborts the run and cleans up."""

    @pytest.mark.asyncio
    async def test_startup_failure_aborts_run_and_stops_started_workers(self, chunks):
        created: list[AnalysisWorker] = []

        def factory(worker_id, analyze, events, executor):
            cls = BrokenWorker if worker_id == 1 else AnalysisWorker
            worker = cls(worker_id, analyze, events, executor)
            created.append(worker)
            return worker

        pool = WorkerPool(max_workers=3, worker_factory=factory)
        analyzer = RecordingAnalyzer()

        with pytest.raises(WorkerStartupError) as exc_info:
            await pool.run_parallel(chunks, analyzer)

        assert exc_info.value.worker_id == 1
        assert "no execution slot available" in str(exc_info.value)
        assert len(created) == 2
        assert not any(w.is_running for w in created)
        assert analyzer.calls == []
        assert pool.chunk_state("chunk-0") is None
        assert pool.failed_chunks == {}
        assert not pool.is_running

    @pytest.mark.asyncio
    async def test_worker_not_online_within_timeout(self, chunks):
        created: list[AnalysisWorker] = []

        def factory(worker_id, analyze, events, executor):
            worker = SilentWorker(worker_id, analyze, events, executor)
            created.append(worker)
            return worker

        pool = WorkerPool(
            max_workers=1, worker_startup_timeout=0.05, worker_factory=factory
        )

        with pytest.raises(WorkerStartupError, match="not online"):
            await pool.run_parallel(chunks, RecordingAnalyzer())

        assert not created[0].is_running

    @pytest.mark.asyncio
    async def test_factory_exception_wrapped_as_startup_error(self, chunks):
        def factory(worker_id, analyze, events, executor):
            raise OSError("resource exhausted")

        pool = WorkerPool(max_workers=1, worker_factory=factory)

        with pytest.raises(WorkerStartupError, match="resource exhausted"):
            await pool.run_parallel(chunks, RecordingAnalyzer())

    @pytest.mark.asyncio
    async def test_pool_is_reusable_after_startup_failure(self, chunks):
        attempts = {"count": 0}

        def factory(worker_id, analyze, events, executor):
            attempts["count"] += 1
            cls = BrokenWorker if attempts["count"] == 1 else AnalysisWorker
            return cls(worker_id, analyze, events, executor)

        pool = WorkerPool(max_workers=1, worker_factory=factory)

        with pytest.raises(WorkerStartupError):
            await pool.run_parallel(chunks, RecordingAnalyzer())

        results = await pool.run_parallel(chunks, RecordingAnalyzer())
        assert len(results) == 5


class TestCancellationAndEvents:
    """Cooperative cancellation and observer events."""

    @pytest.mark.asyncio
    async def test_cancel_stops_dispatch_but_finishes_assigned_chunks(self, chunks):
        pool = WorkerPool(max_workers=2)
        analyzer = GatedAnalyzer()

        task = asyncio.create_task(pool.run_parallel(chunks, analyzer))
        await analyzer.wait_started(2)

        pool.cancel()
        for chunk in chunks:
            analyzer.release(chunk.id)
        results = await task

        assert sorted(r.chunk_id for r in results) == ["chunk-0", "chunk-1"]
        assert analyzer.started == ["chunk-0", "chunk-1"]
        assert pool.failed_chunks == {}

    @pytest.mark.asyncio
    async def test_progress_and_completion_events(self, chunks):
        pool = WorkerPool(max_workers=2)
        progress: list[tuple[str, float]] = []
        completed: list[str] = []
        states_at_completion: list[object] = []

        def on_complete(result):
            completed.append(result.chunk_id)
            states_at_completion.append(pool.chunk_state(result.chunk_id))

        pool.subscribe("progress", lambda chunk_id, pct: progress.append((chunk_id, pct)))
        pool.subscribe("chunk_complete", on_complete)

        await pool.run_parallel(chunks, RecordingAnalyzer())

        assert sorted(completed) == sorted(c.id for c in chunks)
        assert all(isinstance(s, Succeeded) for s in states_at_completion)
        for chunk in chunks:
            assert (chunk.id, 0.0) in progress
            assert (chunk.id, 100.0) in progress

    @pytest.mark.asyncio
    async def test_chunk_is_running_while_progress_reported(self, chunks):
        pool = WorkerPool(max_workers=2)
        observed: list[object] = []
        pool.subscribe(
            "progress", lambda chunk_id, pct: observed.append(pool.chunk_state(chunk_id))
        )

        await pool.run_parallel(chunks, RecordingAnalyzer())

        assert observed
        assert all(isinstance(s, Running) for s in observed)

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_stall_run(self, chunks):
        pool = WorkerPool(max_workers=2)

        def broken(result):
            raise ValueError("subscriber bug")

        pool.subscribe("chunk_complete", broken)

        results = await pool.run_parallel(chunks, RecordingAnalyzer())

        assert len(results) == 5

    @pytest.mark.asyncio
    async def test_unsubscribe_removes_callback(self, chunks):
        pool = WorkerPool(max_workers=2)
        completed: list[str] = []
        unsubscribe = pool.subscribe("chunk_complete", lambda r: completed.append(r.chunk_id))

        unsubscribe()
        await pool.run_parallel(chunks, RecordingAnalyzer())

        assert completed == []

    def test_unknown_event_rejected(self):
        pool = WorkerPool(max_workers=1)

        with pytest.raises(ValueError, match="Unknown event"):
            pool.subscribe("chunk_started", lambda *args: None)

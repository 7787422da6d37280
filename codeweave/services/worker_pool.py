"""Worker pool for bounded, fault-tolerant parallel chunk analysis.

ARCHITECTURE:
- AnalysisWorker: one isolated execution unit (an asyncio task with a private
  inbox). It runs the analyze capability over one chunk at a time and reports
  back only through WorkerEvent messages on the shared completion queue.
- WorkerPool: the coordinator. A single loop consumes completion events and is
  the only code that mutates chunk state, so no locking is needed.

CRITICAL CONSTRAINTS:
- At most ``max_workers`` chunks are running at any time
- Each chunk is in exactly one state: Pending, Running, Retrying, Succeeded
  or PermanentlyFailed
- A failing chunk is invoked ``retry_attempts + 1`` times, then recorded as
  permanently failed without stopping the run
- Worker startup failure aborts the run; cleanup always terminates every
  worker and clears every registry
"""

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Literal, Protocol, Union

from loguru import logger

from codeweave.core.config.analysis_config import PoolConfig, build_config
from codeweave.core.diagnostics import PerformanceTracker
from codeweave.core.exceptions import (
    ChunkProcessingError,
    ConfigurationError,
    WorkerStartupError,
)
from codeweave.core.types import AnalysisResult, Chunk, FailedChunk

AnalyzeChunk = Callable[[Chunk], Union[AnalysisResult, Awaitable[AnalysisResult]]]

EVENT_CHUNK_COMPLETE = "chunk_complete"
EVENT_CHUNK_ERROR = "chunk_error"
EVENT_PROGRESS = "progress"
EVENTS = (EVENT_CHUNK_COMPLETE, EVENT_CHUNK_ERROR, EVENT_PROGRESS)


@dataclass(frozen=True)
class WorkerEvent:
    """Message posted by a worker to the coordinator."""

    kind: Literal["progress", "complete", "error"]
    worker_id: int
    chunk_id: str
    result: AnalysisResult | None = None
    error: str | None = None
    percent: float | None = None


# Chunk state variants. One map holds exactly one of these per chunk.


@dataclass(frozen=True)
class Pending:
    pass


@dataclass(frozen=True)
class Running:
    worker_id: int
    start_time: float
    retries: int = 0


@dataclass(frozen=True)
class Retrying:
    retries: int
    last_error: str


@dataclass(frozen=True)
class Succeeded:
    result: AnalysisResult


@dataclass(frozen=True)
class PermanentlyFailed:
    attempts: int
    last_error: str


ChunkState = Union[Pending, Running, Retrying, Succeeded, PermanentlyFailed]


def prioritize_chunks(chunks: Iterable[Chunk]) -> list[Chunk]:
    """Sort by priority weight descending, then estimated complexity ascending."""
    return sorted(chunks, key=lambda c: (-c.priority.weight, c.estimated_complexity))


def _is_async_callable(func: Any) -> bool:
    return inspect.iscoroutinefunction(func) or inspect.iscoroutinefunction(
        getattr(func, "__call__", None)
    )


class AnalysisWorker:
    """Isolated execution unit processing the chunks sent to its inbox.

    Synchronous analyze callables run on the pool's thread executor; coroutine
    functions are awaited inside the worker task. Anything raised while
    analyzing is reported as an ``error`` event. Cancellation and interpreter
    exits are reported and then re-raised; the worker keeps serving otherwise.
    """

    def __init__(
        self,
        worker_id: int,
        analyze: AnalyzeChunk,
        events: "asyncio.Queue[WorkerEvent]",
        executor: ThreadPoolExecutor | None = None,
    ):
        self.worker_id = worker_id
        self._analyze = analyze
        self._analyze_is_async = _is_async_callable(analyze)
        self._events = events
        self._executor = executor
        self._inbox: asyncio.Queue[Chunk] = asyncio.Queue()
        self._online = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, timeout: float) -> None:
        """Start the worker task and wait until it reports online.

        Raises:
            WorkerStartupError: If the worker is not online within ``timeout``
        """
        self._task = asyncio.create_task(
            self._run(), name=f"analysis-worker-{self.worker_id}"
        )
        try:
            await asyncio.wait_for(self._online.wait(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise WorkerStartupError(
                self.worker_id, f"not online after {timeout}s"
            ) from e
        logger.debug(f"Worker {self.worker_id} online")

    def assign(self, chunk: Chunk) -> None:
        """Queue a chunk for this worker."""
        self._inbox.put_nowait(chunk)

    async def stop(self) -> None:
        """Terminate the worker task and wait for it to exit."""
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning(f"Worker {self.worker_id} exited with error: {e}")
        finally:
            self._task = None

    async def _run(self) -> None:
        self._online.set()
        while True:
            chunk = await self._inbox.get()
            await self._process(chunk)

    async def _process(self, chunk: Chunk) -> None:
        self._post(WorkerEvent("progress", self.worker_id, chunk.id, percent=0.0))
        try:
            result = await self._invoke(chunk)
            if not isinstance(result, AnalysisResult):
                raise ChunkProcessingError(
                    chunk.id,
                    f"analyze returned {type(result).__name__}, expected AnalysisResult",
                )
        except (asyncio.CancelledError, KeyboardInterrupt, SystemExit) as e:
            # The coordinator must still see the chunk leave the running state
            self._post(
                WorkerEvent(
                    "error",
                    self.worker_id,
                    chunk.id,
                    error=f"worker interrupted ({type(e).__name__})",
                )
            )
            raise
        except BaseException as e:
            message = e.message if isinstance(e, ChunkProcessingError) else str(e)
            self._post(
                WorkerEvent(
                    "error",
                    self.worker_id,
                    chunk.id,
                    error=message or type(e).__name__,
                )
            )
            return

        self._post(WorkerEvent("progress", self.worker_id, chunk.id, percent=100.0))
        self._post(WorkerEvent("complete", self.worker_id, chunk.id, result=result))

    async def _invoke(self, chunk: Chunk) -> Any:
        if self._analyze_is_async:
            return await self._analyze(chunk)  # type: ignore[misc]

        loop = asyncio.get_running_loop()
        outcome = await loop.run_in_executor(self._executor, self._analyze, chunk)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return outcome

    def _post(self, event: WorkerEvent) -> None:
        self._events.put_nowait(event)


class WorkerFactory(Protocol):
    def __call__(
        self,
        worker_id: int,
        analyze: AnalyzeChunk,
        events: "asyncio.Queue[WorkerEvent]",
        executor: ThreadPoolExecutor | None,
    ) -> AnalysisWorker: ...


class WorkerPool:
    """Bounded pool of analysis workers with pull-based dispatch and retries.

    Observable events (subscribe before calling ``run_parallel``):
    - ``chunk_complete(result)``
    - ``chunk_error(chunk_id, error)`` - emitted once per permanently failed chunk
    - ``progress(chunk_id, percent)``
    """

    def __init__(
        self,
        config: PoolConfig | None = None,
        tracker: PerformanceTracker | None = None,
        worker_factory: WorkerFactory = AnalysisWorker,
        **overrides: Any,
    ):
        """Initialize worker pool.

        Args:
            config: Pool configuration (defaults used if omitted)
            tracker: Performance tracker fed with chunk timings
            worker_factory: Callable creating execution units
            **overrides: Individual PoolConfig fields overriding ``config``

        Raises:
            ConfigurationError: If the resulting configuration is invalid
        """
        self.config: PoolConfig = build_config(PoolConfig, config, **overrides)
        self.tracker = tracker or PerformanceTracker()
        self._worker_factory = worker_factory
        self._subscribers: dict[str, list[Callable[..., Any]]] = {e: [] for e in EVENTS}

        # Per-run registries, cleared by _cleanup
        self._workers: list[AnalysisWorker] = []
        self._executor: ThreadPoolExecutor | None = None
        self._events: asyncio.Queue[WorkerEvent] | None = None
        self._states: dict[str, ChunkState] = {}
        self._chunks: dict[str, Chunk] = {}
        self._queue: list[Chunk] = []
        self._next_index = 0
        self._results: list[AnalysisResult] = []

        self._cancel_requested = False
        self._running = False

        # Snapshot of permanently failed chunks from the last run
        self.failed_chunks: dict[str, FailedChunk] = {}

        logger.debug(f"WorkerPool initialized with {self.config.max_workers} workers")

    @property
    def max_workers(self) -> int:
        return self.config.max_workers

    @property
    def is_running(self) -> bool:
        return self._running

    def subscribe(self, event: str, callback: Callable[..., Any]) -> Callable[[], None]:
        """Register a callback for an engine event.

        Returns:
            Function that removes the subscription
        """
        if event not in self._subscribers:
            raise ValueError(f"Unknown event '{event}'. Must be one of: {', '.join(EVENTS)}")
        self._subscribers[event].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[event]:
                self._subscribers[event].remove(callback)

        return unsubscribe

    def cancel(self) -> None:
        """Stop dispatching new chunks; assigned chunks are allowed to finish."""
        if self._running and not self._cancel_requested:
            logger.info("Cancellation requested, no further chunks will be dispatched")
        self._cancel_requested = True

    def chunk_state(self, chunk_id: str) -> ChunkState | None:
        """Current state of a chunk in the active run."""
        return self._states.get(chunk_id)

    async def run_parallel(
        self, chunks: Sequence[Chunk], analyze: AnalyzeChunk
    ) -> list[AnalysisResult]:
        """Analyze chunks concurrently and return the successful results.

        Permanently failed chunks are reported through ``chunk_error`` events
        and the ``failed_chunks`` snapshot, not through the return value.

        Raises:
            ConfigurationError: If chunk ids are not unique
            WorkerStartupError: If any worker fails to start (run aborted)
        """
        if self._running:
            raise RuntimeError("WorkerPool is already running")

        chunk_list = list(chunks)
        self._validate_unique_ids(chunk_list)
        self.failed_chunks = {}

        if not chunk_list:
            logger.info("No chunks to analyze")
            return []

        logger.info(
            f"Starting parallel analysis of {len(chunk_list)} chunks "
            f"with {self.config.max_workers} workers"
        )

        self._running = True
        self._cancel_requested = False
        self.tracker.start_run(len(chunk_list))
        aborted = True
        try:
            await self._start_workers(analyze)

            self._queue = prioritize_chunks(chunk_list)
            self._chunks = {c.id: c for c in self._queue}
            self._states = {c.id: Pending() for c in self._queue}

            results = await self._dispatch_loop()
            aborted = False

            logger.info(
                f"Parallel analysis completed: {len(results)}/{len(chunk_list)} "
                f"chunks successful"
            )
            return results

        except Exception as e:
            logger.error(f"Parallel analysis failed: {e}")
            raise

        finally:
            self.failed_chunks = self._snapshot_failures()
            self.tracker.finish_run(len(self._results), len(self.failed_chunks))
            await self._cleanup(aborted)
            self._running = False

    def _validate_unique_ids(self, chunks: Sequence[Chunk]) -> None:
        seen: set[str] = set()
        for chunk in chunks:
            if chunk.id in seen:
                raise ConfigurationError(f"Duplicate chunk id '{chunk.id}' in run")
            seen.add(chunk.id)

    async def _start_workers(self, analyze: AnalyzeChunk) -> None:
        self._events = asyncio.Queue()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="analysis-worker",
        )

        for worker_id in range(self.config.max_workers):
            try:
                worker = self._worker_factory(
                    worker_id, analyze, self._events, self._executor
                )
                self._workers.append(worker)
                await worker.start(self.config.worker_startup_timeout)
            except WorkerStartupError:
                raise
            except Exception as e:
                raise WorkerStartupError(worker_id, str(e)) from e

        logger.debug(f"Initialized {len(self._workers)} analysis workers")

    async def _dispatch_loop(self) -> list[AnalysisResult]:
        assert self._events is not None

        for worker_id in range(min(len(self._workers), len(self._queue))):
            self._dispatch_next(worker_id)

        while self._running_count() > 0:
            event = await self._events.get()
            self._handle_event(event)

        return list(self._results)

    def _running_count(self) -> int:
        return sum(1 for s in self._states.values() if isinstance(s, Running))

    def _dispatch_next(self, worker_id: int) -> bool:
        """Assign the next pending chunk to a worker, if any."""
        if self._cancel_requested:
            return False

        while self._next_index < len(self._queue):
            chunk = self._queue[self._next_index]
            self._next_index += 1
            if isinstance(self._states[chunk.id], Pending):
                self._assign(worker_id, chunk, retries=0)
                return True
        return False

    def _assign(self, worker_id: int, chunk: Chunk, retries: int) -> None:
        self._states[chunk.id] = Running(worker_id, time.perf_counter(), retries)
        self.tracker.chunk_started(chunk.id, worker_id)
        self._workers[worker_id].assign(chunk)
        logger.debug(f"Assigned chunk {chunk.id} to worker {worker_id}")

    def _handle_event(self, event: WorkerEvent) -> None:
        state = self._states.get(event.chunk_id)
        if not isinstance(state, Running):
            logger.debug(
                f"Ignoring {event.kind} event for chunk {event.chunk_id} "
                f"in state {type(state).__name__}"
            )
            return

        if event.kind == "progress":
            self._handle_progress(event)
        elif event.kind == "complete":
            self._handle_chunk_complete(state, event)
        elif event.kind == "error":
            self._handle_chunk_error(state, event)

    def _handle_progress(self, event: WorkerEvent) -> None:
        logger.debug(f"Chunk {event.chunk_id} progress: {event.percent}%")
        self._emit(EVENT_PROGRESS, event.chunk_id, event.percent)

    def _handle_chunk_complete(self, state: Running, event: WorkerEvent) -> None:
        assert event.result is not None
        result = event.result
        self._states[event.chunk_id] = Succeeded(result)
        self._results.append(result)
        self.tracker.chunk_finished(event.chunk_id, succeeded=True)

        logger.debug(
            f"Chunk {event.chunk_id} completed in {result.processing_time:.3f}s"
        )
        self._emit(EVENT_CHUNK_COMPLETE, result)
        self._dispatch_next(state.worker_id)

    def _handle_chunk_error(self, state: Running, event: WorkerEvent) -> None:
        chunk_id = event.chunk_id
        error = event.error or "unknown error"
        self.tracker.chunk_finished(chunk_id, succeeded=False)

        if state.retries < self.config.retry_attempts:
            retries = state.retries + 1
            self._states[chunk_id] = Retrying(retries, error)
            worker_id = self._find_available_worker()
            logger.warning(
                f"Retrying chunk {chunk_id} (retry {retries}/"
                f"{self.config.retry_attempts}) on worker {worker_id}: {error}"
            )
            self._assign(worker_id, self._chunks[chunk_id], retries)
            return

        self._states[chunk_id] = PermanentlyFailed(state.retries, error)
        logger.error(
            f"Chunk {chunk_id} permanently failed after {state.retries} retries: {error}"
        )
        self._emit(EVENT_CHUNK_ERROR, chunk_id, error)
        self._dispatch_next(state.worker_id)

    def _find_available_worker(self) -> int:
        """First worker without a running chunk; falls back to worker 0."""
        busy = {s.worker_id for s in self._states.values() if isinstance(s, Running)}
        for worker_id in range(len(self._workers)):
            if worker_id not in busy:
                return worker_id
        # TODO: queue the retry instead of oversubscribing worker 0 once
        # per-chunk timeouts exist to bound how long that wait can be.
        logger.warning("No free worker for retry, falling back to worker 0")
        return 0

    def _emit(self, event: str, *args: Any) -> None:
        for callback in list(self._subscribers[event]):
            try:
                callback(*args)
            except Exception as e:
                logger.warning(f"Subscriber for '{event}' raised: {e}")

    def _snapshot_failures(self) -> dict[str, FailedChunk]:
        return {
            chunk_id: FailedChunk(self._chunks[chunk_id], state.attempts, state.last_error)
            for chunk_id, state in self._states.items()
            if isinstance(state, PermanentlyFailed)
        }

    async def _cleanup(self, aborted: bool) -> None:
        workers, self._workers = self._workers, []
        await asyncio.gather(*(w.stop() for w in workers), return_exceptions=True)

        if self._executor is not None:
            # Aborted runs do not wait for in-flight synchronous analysis
            self._executor.shutdown(wait=not aborted, cancel_futures=True)
            self._executor = None

        self._states.clear()
        self._chunks.clear()
        self._queue = []
        self._next_index = 0
        self._results = []
        self._events = None

        logger.debug("WorkerPool cleanup completed")

"""Analysis engine exceptions.

Chunk-level failures are recoverable and stay inside the worker pool until the
retry budget is exhausted. Worker startup failures and configuration errors
abort a run before (or while) it starts.

Note: merge conflicts are not errors. They are recorded as
``codeweave.core.types.analysis.MergeConflict`` entries.
"""


class AnalysisEngineError(Exception):
    """Base exception for the parallel analysis engine."""

    pass


class ChunkProcessingError(AnalysisEngineError):
    """Raised when analyzing a single chunk fails.

    This occurs when:
    - The analyze capability raises while processing a chunk
    - The analyze capability returns something that is not an AnalysisResult

    The pool retries the chunk up to ``retry_attempts`` times before recording
    it as permanently failed.
    """

    def __init__(self, chunk_id: str, message: str):
        self.chunk_id = chunk_id
        self.message = message
        super().__init__(f"Chunk {chunk_id} failed: {message}")


class WorkerStartupError(AnalysisEngineError):
    """Raised when an execution unit cannot be created or started.

    Fatal: the whole run is aborted, every worker is terminated and all
    coordinator registries are cleared before this propagates.
    """

    def __init__(self, worker_id: int, message: str):
        self.worker_id = worker_id
        self.message = message
        super().__init__(f"Worker {worker_id} failed to start: {message}")


class ConfigurationError(AnalysisEngineError, ValueError):
    """Raised for invalid engine construction parameters.

    This occurs when:
    - max_workers < 1, chunk_size_target < 1 or retry_attempts < 0
    - The same chunk id appears twice in a single run
    """

    pass

"""Chunk planner - partitions a file list into dependency-aware analysis chunks.

Chunks are grown breadth-first from a seed file along the edges reported by a
dependency lookup, so files that import each other tend to be analyzed by the
same worker. Every input file lands in exactly one chunk.
"""

import math
import os
from collections import defaultdict, deque
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import replace
from functools import partial
from typing import Any

from loguru import logger

from codeweave.core.config.analysis_config import PlannerConfig, build_config
from codeweave.core.constants import DEFAULT_DEPENDENCY_LIMIT
from codeweave.core.types import Chunk, ChunkPriority

DependencyLookup = Callable[[Sequence[str]], Mapping[str, Sequence[str]]]
SizeLookup = Callable[[str], int | None]


def file_size(path: str) -> int | None:
    """Return the size of a file in bytes, or None if it cannot be read."""
    try:
        return os.stat(path).st_size
    except OSError as e:
        logger.debug(f"Failed to stat file {path}: {e}")
        return None


def directory_dependency_lookup(
    files: Sequence[str], limit: int = DEFAULT_DEPENDENCY_LIMIT
) -> dict[str, list[str]]:
    """Advisory dependency heuristic: same directory or same basename stem.

    Args:
        files: Files to relate to each other
        limit: Maximum number of related files reported per file

    Returns:
        Mapping of file to related files (never includes the file itself)
    """
    by_dir: dict[str, list[str]] = defaultdict(list)
    by_stem: dict[str, list[str]] = defaultdict(list)
    for f in files:
        by_dir[os.path.dirname(f)].append(f)
        stem = os.path.splitext(os.path.basename(f))[0]
        if stem:
            by_stem[stem].append(f)

    dependencies: dict[str, list[str]] = {}
    for f in files:
        related: list[str] = []
        seen = {f}
        stem = os.path.splitext(os.path.basename(f))[0]
        candidates = [*by_dir[os.path.dirname(f)], *(by_stem[stem] if stem else [])]
        for candidate in candidates:
            if len(related) >= limit:
                break
            if candidate not in seen:
                seen.add(candidate)
                related.append(candidate)
        dependencies[f] = related
    return dependencies


class ChunkPlanner:
    """Turns a flat file list into bounded, prioritized chunks."""

    def __init__(
        self,
        config: PlannerConfig | None = None,
        size_of: SizeLookup = file_size,
        **overrides: Any,
    ):
        """Initialize chunk planner.

        Args:
            config: Planner configuration (defaults used if omitted)
            size_of: Callable returning a file's size in bytes or None if missing
            **overrides: Individual PlannerConfig fields overriding ``config``

        Raises:
            ConfigurationError: If the resulting configuration is invalid
        """
        self.config: PlannerConfig = build_config(PlannerConfig, config, **overrides)
        self._size_of = size_of
        self._size_cache: dict[str, int | None] = {}

    def default_dependency_lookup(self) -> DependencyLookup:
        """Directory/stem heuristic bound to the configured dependency limit."""
        return partial(directory_dependency_lookup, limit=self.config.dependency_limit)

    def create_chunks(
        self,
        files: Iterable[str],
        dependency_lookup: DependencyLookup | None = None,
    ) -> list[Chunk]:
        """Plan chunks for a file list.

        Args:
            files: Files to partition; duplicates are ignored
            dependency_lookup: Advisory file -> dependencies mapping provider

        Returns:
            Chunks sorted by estimated complexity (ascending)
        """
        ordered_files = list(dict.fromkeys(files))
        if not ordered_files:
            return []

        logger.info(f"Creating chunks for {len(ordered_files)} files")

        lookup = dependency_lookup or self.default_dependency_lookup()
        dependencies = lookup(ordered_files)
        known = set(ordered_files)
        processed: set[str] = set()
        self._size_cache = {}

        chunks: list[Chunk] = []
        for seed in ordered_files:
            if seed in processed:
                continue
            chunk = self._grow_chunk(
                seed, dependencies, known, processed, f"chunk-{len(chunks)}"
            )
            chunks.append(chunk)

        planned = self.redistribute(chunks)
        logger.info(f"Created {len(planned)} chunks")
        return planned

    def _grow_chunk(
        self,
        seed: str,
        dependencies: Mapping[str, Sequence[str]],
        known: set[str],
        processed: set[str],
        chunk_id: str,
    ) -> Chunk:
        target = self.config.chunk_size_target
        chunk_files: list[str] = []
        total_size = 0
        complexity = 0.0
        to_process: deque[str] = deque([seed])

        while to_process and len(chunk_files) < target:
            file = to_process.popleft()
            if file in processed:
                continue

            chunk_files.append(file)
            processed.add(file)

            for dep in dependencies.get(file, ()):
                if (
                    dep in known
                    and dep not in processed
                    and len(to_process) + len(chunk_files) < target
                ):
                    to_process.append(dep)

            size = self._cached_size(file)
            if size is None:
                continue
            total_size += size
            complexity += self.estimate_file_complexity(file, size)

        members = set(chunk_files)
        external = sorted(
            {
                dep
                for file in chunk_files
                for dep in dependencies.get(file, ())
                if dep not in members
            }
        )

        return Chunk(
            id=chunk_id,
            files=tuple(chunk_files),
            priority=self.determine_priority(chunk_files, complexity),
            estimated_complexity=complexity,
            dependencies=tuple(external),
            total_size=total_size,
        )

    def _cached_size(self, file: str) -> int | None:
        if file not in self._size_cache:
            self._size_cache[file] = self._size_of(file)
        return self._size_cache[file]

    def estimate_file_complexity(self, file: str, size: int) -> float:
        """Estimate complexity from size and extension, floored at 1."""
        if size <= 0:
            return 1.0
        ext = os.path.splitext(file)[1].lower()
        base = math.log10(size / 1000) * self.config.base_size_weight
        multiplier = self.config.type_multipliers.get(ext, 1.0)
        return max(1.0, base * multiplier)

    def determine_priority(self, files: Sequence[str], complexity: float) -> ChunkPriority:
        """Classify a chunk by path signal and accumulated complexity."""
        patterns = self.config.priority_patterns
        thresholds = self.config.complexity_thresholds

        has_high_signal = any(p in f for f in files for p in patterns.high)
        if has_high_signal or complexity > thresholds.high:
            return ChunkPriority.HIGH

        has_medium_signal = any(p in f for f in files for p in patterns.medium)
        if has_medium_signal or complexity > thresholds.medium:
            return ChunkPriority.MEDIUM

        return ChunkPriority.LOW

    def redistribute(self, chunks: Sequence[Chunk]) -> list[Chunk]:
        """Single balancing pass over chunks sorted by complexity.

        For each adjacent pair where the earlier chunk is oversized and the
        later one undersized, files beyond ``chunk_size_target`` move to the
        later chunk together with a proportional share of complexity and their
        sizes. Returns new chunk objects; the inputs are not modified.
        """
        ordered = sorted(chunks, key=lambda c: c.estimated_complexity)
        target = self.config.chunk_size_target
        upper = target * self.config.redistribution.upper_multiplier
        lower = target * self.config.redistribution.lower_multiplier

        for i in range(len(ordered) - 1):
            current, following = ordered[i], ordered[i + 1]
            if not (len(current.files) > upper and len(following.files) < lower):
                continue

            kept, moved = current.files[:target], current.files[target:]
            moved_complexity = current.estimated_complexity * len(moved) / len(current.files)
            moved_size = sum(self._cached_size(f) or 0 for f in moved)

            ordered[i] = replace(
                current,
                files=kept,
                estimated_complexity=current.estimated_complexity - moved_complexity,
                total_size=max(0, current.total_size - moved_size),
            )
            ordered[i + 1] = replace(
                following,
                files=following.files + moved,
                estimated_complexity=following.estimated_complexity + moved_complexity,
                total_size=following.total_size + moved_size,
            )
            logger.debug(
                f"Moved {len(moved)} files from {current.id} to {following.id}"
            )

        return ordered

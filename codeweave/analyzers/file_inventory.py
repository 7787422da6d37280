"""Default chunk analyzer: file inventory plus import graph.

For each file in a chunk it reports a ``file`` node, an ``imports`` edge per
imported module and an ``entry_point`` pattern for scripts that guard on
``__main__``. Unreadable files become AnalysisError records instead of
failing the chunk.
"""

import os
import time
from collections.abc import Sequence

from loguru import logger

from codeweave.core.types import (
    AnalysisError,
    AnalysisResult,
    Chunk,
    ChunkMetrics,
    GraphEdge,
    GraphNode,
    Pattern,
)

from .imports import extract_imports, resolve_import

_MAIN_GUARDS = ('if __name__ == "__main__"', "if __name__ == '__main__'")


def file_node_id(path: str) -> str:
    return f"file:{path}"


def module_node_id(specifier: str) -> str:
    return f"module:{specifier}"


def import_dependency_lookup(files: Sequence[str]) -> dict[str, list[str]]:
    """Resolve relative imports between files of the input set.

    Files that cannot be read have no dependencies.
    """
    by_normalized = {os.path.normpath(f): f for f in files}
    known = set(by_normalized)
    dependencies: dict[str, list[str]] = {}

    for f in files:
        try:
            with open(f, encoding="utf-8", errors="replace") as fh:
                source = fh.read()
        except OSError as e:
            logger.debug(f"Skipping dependency scan for {f}: {e}")
            dependencies[f] = []
            continue

        resolved: list[str] = []
        for specifier in extract_imports(f, source):
            target = resolve_import(os.path.normpath(f), specifier, known)
            if target is not None and by_normalized[target] != f:
                resolved.append(by_normalized[target])
        dependencies[f] = list(dict.fromkeys(resolved))

    return dependencies


class FileInventoryAnalyzer:
    """Synchronous analyze capability used by the CLI."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def __call__(self, chunk: Chunk) -> AnalysisResult:
        started = time.perf_counter()
        cpu_started = time.process_time()

        nodes: list[GraphNode] = []
        edges: list[GraphEdge] = []
        patterns: list[Pattern] = []
        errors: list[AnalysisError] = []
        modules: dict[str, GraphNode] = {}
        lines_analyzed = 0
        files_processed = 0
        io_time = 0.0

        for path in chunk.files:
            io_started = time.perf_counter()
            try:
                with open(path, encoding=self.encoding, errors="replace") as fh:
                    source = fh.read()
            except OSError as e:
                errors.append(
                    AnalysisError(
                        type="parse_error",
                        file=path,
                        message=f"Cannot read file: {e}",
                    )
                )
                continue
            finally:
                io_time += time.perf_counter() - io_started

            files_processed += 1
            line_count = source.count("\n") + (1 if source and not source.endswith("\n") else 0)
            lines_analyzed += line_count
            imports = extract_imports(path, source)

            nodes.append(
                GraphNode(
                    id=file_node_id(path),
                    type="file",
                    name=os.path.basename(path),
                    properties={
                        "path": path,
                        "extension": os.path.splitext(path)[1].lower(),
                        "lines": line_count,
                        "imports": len(imports),
                        "chunk": chunk.id,
                    },
                )
            )

            for specifier in imports:
                target_id = module_node_id(specifier)
                if target_id not in modules:
                    modules[target_id] = GraphNode(
                        id=target_id, type="module", name=specifier
                    )
                edges.append(
                    GraphEdge(
                        source=file_node_id(path),
                        target=target_id,
                        type="imports",
                    )
                )

            if any(guard in source for guard in _MAIN_GUARDS):
                patterns.append(
                    Pattern(
                        type="entry_point",
                        name="main_guard",
                        file=path,
                        confidence=0.9,
                    )
                )

        nodes.extend(modules.values())

        return AnalysisResult(
            chunk_id=chunk.id,
            nodes=nodes,
            edges=edges,
            patterns=patterns,
            metrics=ChunkMetrics(
                files_processed=files_processed,
                lines_analyzed=lines_analyzed,
                complexity_score=chunk.estimated_complexity,
                cpu_time=time.process_time() - cpu_started,
                io_time=io_time,
            ),
            errors=errors,
            processing_time=time.perf_counter() - started,
        )


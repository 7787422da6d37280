"""Analyze command module - runs the chunked parallel analysis over a directory."""

import argparse
import asyncio
import os
import signal
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from codeweave.analyzers import FileInventoryAnalyzer, import_dependency_lookup
from codeweave.core.exceptions import ConfigurationError, WorkerStartupError
from codeweave.services import AnalysisReport, DistributedAnalyzer

from ..utils.rich_output import RichOutputFormatter

if TYPE_CHECKING:
    from codeweave.core.config.config import Config

EXCLUDED_DIRS = frozenset(
    {".git", "node_modules", "__pycache__", ".venv", "venv", "env", "dist", "build"}
)


def discover_files(root: Path, extensions: Iterable[str]) -> list[str]:
    """Find source files under ``root`` with one of ``extensions``.

    Hidden directories and common dependency/build directories are skipped.
    Results are sorted for a stable chunk layout.
    """
    wanted = {e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions}
    found: list[str] = []

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [
            d for d in dirnames if d not in EXCLUDED_DIRS and not d.startswith(".")
        ]
        for filename in filenames:
            if os.path.splitext(filename)[1].lower() in wanted:
                found.append(os.path.join(dirpath, filename))

    return sorted(found)


async def analyze_command(args: argparse.Namespace, config: "Config") -> None:
    """Execute the analyze command.

    Args:
        args: Parsed command-line arguments
        config: Pre-validated configuration instance
    """
    formatter = RichOutputFormatter(verbose=getattr(args, "verbose", False))
    root = Path(getattr(args, "path", None) or ".").resolve()

    if not root.is_dir():
        formatter.error(f"Not a directory: {root}")
        sys.exit(1)

    extensions = args.ext or list(config.analysis.planner.type_multipliers)
    files = discover_files(root, extensions)
    if not files:
        formatter.warning(f"No files with extensions {', '.join(extensions)} under {root}")
        return

    formatter.verbose_info(f"Discovered {len(files)} files under {root}")

    dependency_lookup = (
        import_dependency_lookup if args.dependencies == "imports" else None
    )

    try:
        analyzer = DistributedAnalyzer(
            FileInventoryAnalyzer(),
            config=config.analysis,
            dependency_lookup=dependency_lookup,
        )
        chunks = analyzer.create_chunks(files)
        formatter.verbose_info(
            f"Planned {len(chunks)} chunks for {config.analysis.pool.max_workers} workers"
        )

        with formatter.create_progress_display() as progress:
            progress.add_task("chunks", "Analyzing chunks", total=len(chunks))
            analyzer.subscribe(
                "chunk_complete",
                lambda result: progress.update_task("chunks", info=result.chunk_id),
            )
            analyzer.subscribe(
                "chunk_error",
                lambda chunk_id, error: progress.update_task(
                    "chunks", info=f"{chunk_id} failed"
                ),
            )

            report = await _run_with_interrupt(analyzer, chunks)
            progress.finish_task("chunks")

    except (ConfigurationError, WorkerStartupError) as e:
        formatter.error(str(e))
        sys.exit(1)

    _print_report(formatter, report, len(files), json_output=args.json)


async def _run_with_interrupt(analyzer: DistributedAnalyzer, chunks) -> AnalysisReport:
    """Run the analysis, turning SIGINT into cooperative cancellation."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, analyzer.cancel)
        installed = True
    except (NotImplementedError, RuntimeError, ValueError):
        # Not supported on this platform or outside the main thread
        installed = False

    try:
        return await analyzer.analyze_chunks(chunks)
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


def _print_report(
    formatter: RichOutputFormatter,
    report: AnalysisReport,
    file_count: int,
    json_output: bool = False,
) -> None:
    if json_output:
        formatter.json_output(report.to_dict())
        return

    combined = report.combined
    formatter.completion_summary(
        {
            "succeeded_chunks": report.succeeded_chunks,
            "total_chunks": report.total_chunks,
            "files": file_count,
            "total_nodes": combined.total_nodes,
            "total_edges": combined.total_edges,
            "total_patterns": combined.total_patterns,
            "merge_conflicts": len(combined.merge_conflicts),
            "errors": len(combined.errors),
            "parallel_efficiency": combined.parallel_efficiency,
            "memory_usage": combined.memory_usage,
        },
        report.metrics.wall_clock_elapsed,
    )

    formatter.failed_chunks(report.failed_chunks)

    for error in combined.errors:
        formatter.verbose_info(f"{error.file}: {error.message}")

    if report.skipped_chunks:
        formatter.warning(f"{report.skipped_chunks} chunks skipped after cancellation")

    if report.failed_chunks or report.skipped_chunks:
        formatter.warning(report.summary_line)
    else:
        formatter.success(report.summary_line)
    logger.debug(f"Latency summary: {report.latency}")

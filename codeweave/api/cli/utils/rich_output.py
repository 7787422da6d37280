"""Rich-based output formatting utilities for CodeWeave CLI commands."""

import json
import os
import sys
from typing import Any

import rich.box
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.syntax import Syntax
from rich.table import Table

from codeweave.core.types import FailedChunk


class MessagePrefixes:
    """Constants for consistent message prefixes in fallback mode."""

    SUCCESS = "[SUCCESS]"
    WARN = "[WARN]"
    ERROR = "[ERROR]"
    DEBUG = "[DEBUG]"


class RichOutputFormatter:
    """Terminal UI formatter using Rich, with a plain-text fallback."""

    def __init__(self, verbose: bool = False):
        """Initialize Rich output formatter.

        Args:
            verbose: Whether to enable verbose output
        """
        self.verbose = verbose
        self._terminal_compatible = self._check_terminal_compatibility()
        self.console = Console() if self._terminal_compatible else None

    def _check_terminal_compatibility(self) -> bool:
        """Check if terminal supports Rich formatting."""
        if os.environ.get("CODEWEAVE_NO_RICH"):
            return False

        try:
            if not sys.stdout.isatty():
                return False
            if os.environ.get("TERM", "") in ["dumb", "unknown"]:
                return False
            return True
        except (AttributeError, ValueError):
            # Detached or closed stdout
            return False

    def _safe_print(self, message: str, prefix: str = "", style: str = "") -> None:
        """Print with Rich markup or fall back to plain text."""
        if self._terminal_compatible and self.console is not None:
            styled_prefix = f"[{style}]{escape(prefix)}[/{style}] " if prefix else ""
            self.console.print(f"{styled_prefix}{escape(message)}")
            return

        print(f"{prefix} {message}" if prefix else message)

    def success(self, message: str) -> None:
        """Print a success message."""
        self._safe_print(message, MessagePrefixes.SUCCESS, "green")

    def warning(self, message: str) -> None:
        """Print a warning message."""
        self._safe_print(message, MessagePrefixes.WARN, "yellow")

    def error(self, message: str) -> None:
        """Print an error message."""
        self._safe_print(message, MessagePrefixes.ERROR, "red")

    def verbose_info(self, message: str) -> None:
        """Print a verbose info message if verbose mode is enabled."""
        if self.verbose:
            self._safe_print(message, MessagePrefixes.DEBUG, "cyan")

    def json_output(self, data: dict[str, Any]) -> None:
        """Print data as formatted JSON."""
        json_str = json.dumps(data, indent=2, default=str)
        if self.console is not None:
            self.console.print(Syntax(json_str, "json", theme="monokai"))
        else:
            print(json_str)

    def failed_chunks(self, failed: dict[str, FailedChunk]) -> None:
        """List permanently failed chunks with their last error."""
        if not failed:
            return

        if self.console is None:
            print(f"Failed chunks ({len(failed)}):")
            for chunk_id, entry in failed.items():
                print(
                    f"  {chunk_id} ({len(entry.chunk.files)} files, "
                    f"{entry.attempts} retries): {entry.last_error}"
                )
            return

        table = Table(title=f"Failed Chunks ({len(failed)})", box=rich.box.ROUNDED)
        table.add_column("Chunk", style="red", no_wrap=True)
        table.add_column("Files", justify="right")
        table.add_column("Retries", justify="right")
        table.add_column("Last error", style="dim")
        for chunk_id, entry in failed.items():
            table.add_row(
                chunk_id,
                str(len(entry.chunk.files)),
                str(entry.attempts),
                escape(entry.last_error),
            )
        self.console.print(table)

    def completion_summary(self, stats: dict[str, Any], processing_time: float) -> None:
        """Display completion summary in a styled panel."""
        rows = [
            ("Chunks:", f"{stats.get('succeeded_chunks', 0)}/{stats.get('total_chunks', 0)} succeeded"),
            ("Files:", f"{stats.get('files', 0)}"),
            ("Nodes:", f"{stats.get('total_nodes', 0)}"),
            ("Edges:", f"{stats.get('total_edges', 0)}"),
            ("Patterns:", f"{stats.get('total_patterns', 0)}"),
            ("Merge conflicts:", f"{stats.get('merge_conflicts', 0)}"),
            ("File errors:", f"{stats.get('errors', 0)}"),
            ("Efficiency:", f"{stats.get('parallel_efficiency', 0.0):.2f}"),
            ("Peak memory:", f"{stats.get('memory_usage', 0.0):.1f} MB"),
            ("Time:", f"{processing_time:.2f}s"),
        ]

        if self.console is None:
            print("Analysis Complete")
            for key, value in rows:
                print(f"{key} {value}")
            return

        summary_table = Table.grid(padding=(0, 2))
        summary_table.add_column(style="cyan")
        summary_table.add_column()
        for key, value in rows:
            summary_table.add_row(key, value)

        self.console.print(
            Panel(
                summary_table,
                title="[bold green]Analysis Complete[/bold green]",
                border_style="green",
                padding=(1, 2),
            )
        )

    def create_progress_display(self) -> "ProgressManager | _NoRichProgressManager":
        """Create a progress display, or a no-op manager without a terminal."""
        if not self._terminal_compatible or self.console is None:
            return _NoRichProgressManager()

        progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            TextColumn("•"),
            TimeElapsedColumn(),
            TextColumn("{task.fields[info]}", style="dim"),
            console=self.console,
            expand=False,
            transient=False,
        )
        return ProgressManager(progress)


class ProgressManager:
    """Runs a Rich progress display and routes log output above it."""

    def __init__(self, progress: Progress):
        self.progress = progress
        self._tasks: dict[str, TaskID] = {}
        self._handler_id: int | None = None

    def __enter__(self) -> "ProgressManager":
        self.progress.start()
        self._handler_id = logger.add(
            self._print_log, level="WARNING", format="{level}: {message}"
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            self.progress.stop()
        finally:
            if self._handler_id is not None:
                logger.remove(self._handler_id)
                self._handler_id = None

    def _print_log(self, message: Any) -> None:
        self.progress.console.print(escape(str(message).rstrip()), style="dim")

    def add_task(self, name: str, description: str, total: int | None = None) -> TaskID:
        """Add a new progress task."""
        task_id = self.progress.add_task(description, total=total, info="")
        self._tasks[name] = task_id
        return task_id

    def update_task(self, name: str, advance: int = 1, info: str | None = None) -> None:
        """Advance a progress task."""
        if name not in self._tasks:
            return
        fields: dict[str, Any] = {"advance": advance}
        if info is not None:
            fields["info"] = info
        self.progress.update(self._tasks[name], **fields)

    def finish_task(self, name: str) -> None:
        """Mark a task as finished."""
        if name in self._tasks:
            task_id = self._tasks[name]
            task = self.progress.tasks[task_id]
            if task.total:
                self.progress.update(task_id, completed=task.total)


class _NoRichProgressManager:
    """No-op progress manager for non-TTY environments."""

    def __enter__(self) -> "_NoRichProgressManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    def add_task(self, *args, **kwargs) -> None:  # noqa: ANN001
        return None

    def update_task(self, *args, **kwargs) -> None:  # noqa: ANN001
        return None

    def finish_task(self, *args, **kwargs) -> None:  # noqa: ANN001
        return None

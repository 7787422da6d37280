"""Parser for analyze command - chunked parallel codebase analysis."""

import argparse
from pathlib import Path

from .common_arguments import add_common_arguments, add_config_arguments


def add_analyze_subparser(
    subparsers: argparse._SubParsersAction,
) -> argparse.ArgumentParser:
    """Add analyze command parser.

    Args:
        subparsers: Subparsers object from main parser

    Returns:
        The created parser
    """
    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze a codebase in parallel chunks",
        description=(
            "Partition the source files under PATH into dependency-aware chunks, "
            "analyze them concurrently and report the merged result."
        ),
    )

    analyze_parser.add_argument(
        "path",
        nargs="?",
        type=Path,
        default=Path("."),
        help="Directory to analyze (default: current directory)",
    )
    analyze_parser.add_argument(
        "--dependencies",
        choices=["directory", "imports"],
        default="directory",
        help=(
            "How related files are grouped: 'directory' uses same-directory and "
            "same-name heuristics, 'imports' resolves relative imports "
            "(default: directory)"
        ),
    )
    analyze_parser.add_argument(
        "--ext",
        action="append",
        metavar="EXT",
        help="File extension to include, repeatable (default: all known extensions)",
    )
    analyze_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON",
    )

    add_common_arguments(analyze_parser)
    add_config_arguments(analyze_parser, ["analysis"])

    return analyze_parser

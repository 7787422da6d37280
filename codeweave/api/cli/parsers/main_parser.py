"""Top-level argument parser for the CodeWeave CLI."""

import argparse

from codeweave import __version__

from .analyze_parser import add_analyze_subparser


def create_main_parser() -> argparse.ArgumentParser:
    """Create the top-level parser."""
    parser = argparse.ArgumentParser(
        prog="codeweave",
        description="Chunked parallel codebase analysis",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"codeweave {__version__}",
    )
    return parser


def setup_subparsers(parser: argparse.ArgumentParser) -> argparse._SubParsersAction:
    """Register all command subparsers."""
    subparsers = parser.add_subparsers(dest="command", title="commands")
    add_analyze_subparser(subparsers)
    return subparsers

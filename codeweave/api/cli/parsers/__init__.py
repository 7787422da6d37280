"""Argument parser utilities for CodeWeave CLI commands."""

from .analyze_parser import add_analyze_subparser
from .main_parser import create_main_parser, setup_subparsers

__all__ = [
    "add_analyze_subparser",
    "create_main_parser",
    "setup_subparsers",
]

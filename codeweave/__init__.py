"""CodeWeave - chunked parallel codebase analysis."""

__version__ = "0.1.0"

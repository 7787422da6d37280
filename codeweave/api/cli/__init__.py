"""Command line interface for CodeWeave."""

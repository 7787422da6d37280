"""Built-in analyze and dependency lookup capabilities."""

from .file_inventory import FileInventoryAnalyzer, import_dependency_lookup
from .imports import extract_imports, resolve_import

__all__ = [
    "FileInventoryAnalyzer",
    "extract_imports",
    "import_dependency_lookup",
    "resolve_import",
]

"""Lightweight import-statement extraction for Python and JS/TS sources.

This is a line-oriented scanner, not a parser: it recognizes the common import
forms and ignores anything it does not understand.
"""

import os
import re

PYTHON_EXTENSIONS = frozenset({".py", ".pyi"})
JS_EXTENSIONS = frozenset({".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".vue"})

_PY_IMPORT = re.compile(r"^\s*import\s+([\w.]+(?:\s*,\s*[\w.]+)*)", re.MULTILINE)
_PY_FROM = re.compile(r"^\s*from\s+(\.*[\w.]*)\s+import\s", re.MULTILINE)
_JS_FROM = re.compile(r"""(?:import|export)\s[^'"]*?\bfrom\s*['"]([^'"]+)['"]""")
_JS_BARE = re.compile(r"""^\s*import\s*['"]([^'"]+)['"]""", re.MULTILINE)
_JS_REQUIRE = re.compile(r"""\brequire\(\s*['"]([^'"]+)['"]\s*\)""")
_JS_DYNAMIC = re.compile(r"""\bimport\(\s*['"]([^'"]+)['"]\s*\)""")

_JS_RESOLVE_SUFFIXES = (
    "",
    ".ts",
    ".tsx",
    ".js",
    ".jsx",
    ".vue",
    "/index.ts",
    "/index.tsx",
    "/index.js",
    "/index.jsx",
)


def extract_imports(path: str, source: str) -> list[str]:
    """Return module specifiers imported by ``source`` in order of appearance.

    Specifiers are returned as written (``.models``, ``os.path``,
    ``./util``); duplicates are removed.
    """
    ext = os.path.splitext(path)[1].lower()
    found: list[tuple[int, str]] = []

    if ext in PYTHON_EXTENSIONS:
        for match in _PY_IMPORT.finditer(source):
            for name in match.group(1).split(","):
                found.append((match.start(), name.strip()))
        for match in _PY_FROM.finditer(source):
            found.append((match.start(), match.group(1)))
    elif ext in JS_EXTENSIONS:
        for pattern in (_JS_FROM, _JS_BARE, _JS_REQUIRE, _JS_DYNAMIC):
            for match in pattern.finditer(source):
                found.append((match.start(), match.group(1)))

    found.sort(key=lambda item: item[0])
    return list(dict.fromkeys(name for _, name in found if name))


def resolve_import(path: str, specifier: str, known_files: set[str]) -> str | None:
    """Resolve a relative import to a file in ``known_files``.

    Only relative imports are resolved (``./x`` for JS/TS, ``.x`` for
    Python); package imports return None.
    """
    ext = os.path.splitext(path)[1].lower()
    base_dir = os.path.dirname(path)

    if ext in PYTHON_EXTENSIONS:
        if not specifier.startswith("."):
            return None
        dots = len(specifier) - len(specifier.lstrip("."))
        target_dir = base_dir
        for _ in range(dots - 1):
            target_dir = os.path.dirname(target_dir)
        remainder = specifier[dots:]
        stem = os.path.join(target_dir, *remainder.split(".")) if remainder else target_dir
        candidates = [f"{stem}.py", f"{stem}.pyi", os.path.join(stem, "__init__.py")]
    elif ext in JS_EXTENSIONS:
        if not specifier.startswith("."):
            return None
        stem = os.path.normpath(os.path.join(base_dir, specifier))
        candidates = [f"{stem}{suffix}" for suffix in _JS_RESOLVE_SUFFIXES]
    else:
        return None

    for candidate in candidates:
        normalized = os.path.normpath(candidate)
        if normalized in known_files:
            return normalized
    return None

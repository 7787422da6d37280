"""Core constants for CodeWeave."""

# Chunk planning defaults
DEFAULT_CHUNK_SIZE_TARGET = 50
DEFAULT_DEPENDENCY_LIMIT = 3
DEFAULT_BASE_SIZE_WEIGHT = 0.1

DEFAULT_TYPE_MULTIPLIERS: dict[str, float] = {
    ".ts": 1.5,
    ".js": 1.0,
    ".jsx": 1.2,
    ".tsx": 1.7,
    ".vue": 1.3,
    ".py": 1.1,
    ".java": 1.4,
    ".cpp": 1.6,
    ".c": 1.3,
}

DEFAULT_HIGH_PRIORITY_PATTERNS = ["index.", "main.", "app.", "server.", "api.", "core."]
DEFAULT_MEDIUM_PRIORITY_PATTERNS = ["config", "package.json", "tsconfig", "webpack", "babel"]

# Redistribution thresholds (multipliers of chunk_size_target)
CHUNK_SIZE_UPPER_MULTIPLIER = 1.5
CHUNK_SIZE_LOWER_MULTIPLIER = 0.5

# Worker pool defaults
DEFAULT_RETRY_ATTEMPTS = 2
MAX_WORKERS_LIMIT = 32
DEFAULT_WORKER_STARTUP_TIMEOUT = 10.0

"""Centralized constants for sourcedex.

This module provides a single source of truth for file names inside the data
root, default limits, and the environment variables read at runtime.
"""

import os

# ============================================================================
# DATA ROOT LAYOUT
# ============================================================================

# Marker holding the last source root used against a data root
SRC_ROOT_MARKER = "SRC_ROOT"

# Index database
INDEX_DIR = "index"
INDEX_DB_NAME = "index.db"

# Cross-reference pages (the "html" auxiliary output)
XREF_DIR = "xref"

# Per-repository history caches
HISTORY_CACHE_DIR = "historycache"

# ============================================================================
# DEFAULTS
# ============================================================================

DEFAULT_URL_PREFIX = "/source/s?"
DEFAULT_INDEX_WORD_LIMIT = 60000
DEFAULT_CTAGS = "ctags"

# Names ignored by default when walking a source tree
DEFAULT_IGNORED_NAMES = frozenset({
    "SCCS",
    "CVS",
    "RCS",
    ".git",
    ".hg",
    ".svn",
    ".bzr",
    ".repo",
    "*.o",
    "*.so",
    "*.a",
    "*.class",
    "*.jar",
    "*.pyc",
    "*~",
    ".DS_Store",
})

# Maximum file size to index (default: 2MB)
DEFAULT_MAX_FILE_SIZE = 2 * 1024 * 1024

# Maintenance token dump: tokens seen more often than this are printed
FREQUENT_TOKEN_THRESHOLD = 5

# Connection timeout for configuration pushes, in seconds
DEFAULT_PUSH_TIMEOUT = 120.0

# Timeout for external tool checks (ctags --version), in seconds
DEFAULT_TOOL_TIMEOUT = 10

# Timeout for a single repository log extraction, in seconds
DEFAULT_HISTORY_TIMEOUT = 600

# ============================================================================
# ENVIRONMENT VARIABLES
# ============================================================================

ENV_CTAGS = "SOURCEDEX_CTAGS"
ENV_PUSH_TIMEOUT = "SOURCEDEX_PUSH_TIMEOUT"
ENV_TOOL_TIMEOUT = "SOURCEDEX_TOOL_TIMEOUT"
ENV_HISTORY_WORKERS = "SOURCEDEX_HISTORY_WORKERS"
ENV_HISTORY_TIMEOUT = "SOURCEDEX_HISTORY_TIMEOUT"


def env_float(name: str, default: float) -> float:
    """Read a float from the environment, falling back to default on junk."""
    try:
        return float(os.environ.get(name, default))
    except (ValueError, TypeError):
        return default


def env_int(name: str, default: int) -> int:
    """Read an int from the environment, falling back to default on junk."""
    try:
        return int(os.environ.get(name, default))
    except (ValueError, TypeError):
        return default

"""Indexer configuration - constants and patterns.

CRITICAL: This file should contain ONLY configuration constants.
"""

import re

from sourcedex.utils.constants import DEFAULT_MAX_FILE_SIZE

# =============================================================================
# FILE SYSTEM CONFIGURATION
# =============================================================================

# Directories never descended into, regardless of ignore patterns
SKIP_DIRS: set[str] = {
    ".git",
    ".hg",
    ".svn",
    ".bzr",
    "CVS",
    "SCCS",
}

MAX_FILE_SIZE = DEFAULT_MAX_FILE_SIZE

# Bytes sniffed to decide whether a file is text
TEXT_SNIFF_BYTES = 8192

# =============================================================================
# TOKENIZATION
# =============================================================================

# Identifiers and numbers; everything else separates tokens
TOKEN_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*|\d+")

# Tokens shorter than this are not indexed
MIN_TOKEN_LENGTH = 2

# =============================================================================
# DATABASE
# =============================================================================

# Rows per executemany() batch
DEFAULT_BATCH_SIZE = 500

SCHEMA = """
CREATE TABLE IF NOT EXISTS files (
    path TEXT PRIMARY KEY,
    sha256 TEXT NOT NULL,
    bytes INTEGER NOT NULL,
    indexed_at REAL NOT NULL
);
CREATE TABLE IF NOT EXISTS terms (
    term TEXT NOT NULL,
    path TEXT NOT NULL,
    freq INTEGER NOT NULL,
    PRIMARY KEY (term, path)
);
CREATE INDEX IF NOT EXISTS idx_terms_path ON terms(path);
"""

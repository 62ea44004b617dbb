"""sourcedex utilities package."""

from .constants import (
    DEFAULT_IGNORED_NAMES,
    DEFAULT_INDEX_WORD_LIMIT,
    DEFAULT_URL_PREFIX,
    HISTORY_CACHE_DIR,
    INDEX_DB_NAME,
    INDEX_DIR,
    SRC_ROOT_MARKER,
    XREF_DIR,
)
from .error_handler import handle_exceptions
from .exit_codes import ExitCodes
from .helpers import compute_file_hash, read_first_line, save_json_file
from .logging import configure_verbosity, logger

__all__ = [
    "DEFAULT_IGNORED_NAMES",
    "DEFAULT_INDEX_WORD_LIMIT",
    "DEFAULT_URL_PREFIX",
    "HISTORY_CACHE_DIR",
    "INDEX_DB_NAME",
    "INDEX_DIR",
    "SRC_ROOT_MARKER",
    "XREF_DIR",
    "handle_exceptions",
    "ExitCodes",
    "compute_file_hash",
    "read_first_line",
    "save_json_file",
    "configure_verbosity",
    "logger",
]

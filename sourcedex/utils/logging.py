"""Centralized logging configuration using Loguru.

Usage:
    from sourcedex.utils.logging import logger
    logger.info("Message")
    logger.debug("Debug message")  # Only shows if SOURCEDEX_LOG_LEVEL=DEBUG or -v

Environment Variables:
    SOURCEDEX_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default: INFO)
    SOURCEDEX_LOG_JSON: 0|1 (default: 0, human-readable)
    SOURCEDEX_LOG_FILE: path to log file (optional)
"""

import json
import os
import sys

from loguru import logger

# Remove default handler
logger.remove()

_log_level = os.environ.get("SOURCEDEX_LOG_LEVEL", "INFO").upper()
_json_mode = os.environ.get("SOURCEDEX_LOG_JSON", "0") == "1"
_log_file = os.environ.get("SOURCEDEX_LOG_FILE")


def _ndjson_record(record) -> str:
    entry = {
        "level": record["level"].name,
        "time": record["time"].isoformat(),
        "msg": record["message"],
        "pid": record["process"].id,
        "module": record["name"],
    }
    for key, value in record["extra"].items():
        entry[key] = value
    if record["exception"]:
        entry["err"] = {
            "type": record["exception"].type.__name__ if record["exception"].type else "Error",
            "message": str(record["exception"].value) if record["exception"].value else "",
        }
    return json.dumps(entry, default=str)


def ndjson_sink(message):
    """Write one JSON object per record to stderr.

    CRITICAL: Never call logger.* inside a sink - causes infinite recursion
    """
    sys.stderr.write(_ndjson_record(message.record) + "\n")
    sys.stderr.flush()


# Human-readable format (no emojis - Windows CP1252 compatibility)
_human_format = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<level>{message}</level>"
)

logger.level("DEBUG", color="<blue>")
logger.level("INFO", color="<white>")
logger.level("WARNING", color="<yellow>")
logger.level("ERROR", color="<red>")
logger.level("CRITICAL", color="<red><bold>")

_console_handler_id: int | None = None


def _add_console_handler(level: str) -> int:
    if _json_mode:
        return logger.add(ndjson_sink, level=level, colorize=False)
    return logger.add(
        sys.stderr,
        level=level,
        format=_human_format,
        colorize=None,  # Auto-detect: colors if TTY, plain if piped
    )


_console_handler_id = _add_console_handler(_log_level)

if _log_file:
    def _file_sink(message):
        """Append NDJSON records to the configured log file."""
        with open(_log_file, "a", encoding="utf-8") as f:
            f.write(_ndjson_record(message.record) + "\n")

    logger.add(_file_sink, level="DEBUG")


def configure_verbosity(verbose: bool) -> None:
    """Swap the console handler level for a verbose or quiet run.

    Verbose runs log at DEBUG; otherwise the level from SOURCEDEX_LOG_LEVEL
    applies. Safe to call more than once.
    """
    global _console_handler_id

    if _console_handler_id is not None:
        try:
            logger.remove(_console_handler_id)
        except ValueError:
            pass  # Already removed

    _console_handler_id = _add_console_handler("DEBUG" if verbose else _log_level)


__all__ = [
    "logger",
    "configure_verbosity",
]

"""Helper utility functions for sourcedex."""

import hashlib
import json
from pathlib import Path
from typing import Any

from .logging import logger


def compute_file_hash(file_path: Path) -> str:
    """
    Compute SHA256 hash of a file.

    Args:
        file_path: Path to the file

    Returns:
        Hex digest of SHA256 hash
    """
    sha256_hash = hashlib.sha256()
    with open(file_path, "rb") as f:
        for byte_block in iter(lambda: f.read(4096), b""):
            sha256_hash.update(byte_block)
    return sha256_hash.hexdigest()


def save_json_file(data: dict[str, Any], file_path: str | Path) -> None:
    """
    Save data as JSON to file.

    Args:
        data: Data to save
        file_path: Path to output file
    """
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True)
        f.write("\n")


def read_first_line(file_path: Path) -> str | None:
    """Return the first line of a text file without its newline, or None."""
    try:
        with open(file_path, encoding="utf-8") as f:
            line = f.readline()
    except OSError as e:
        logger.debug(f"Cannot read {file_path}: {e}")
        return None
    line = line.rstrip("\r\n")
    return line or None

"""Core functionality for source tree traversal and tokenization.

This module contains the FileWalker class, which yields the files an index
run should look at, and the helpers that turn one file into term counts and
an html cross-reference page.
"""

import fnmatch
import html
import os
from collections import Counter
from pathlib import Path
from typing import Any

from sourcedex.utils import compute_file_hash
from sourcedex.utils.logging import logger

from .config import MAX_FILE_SIZE, MIN_TOKEN_LENGTH, SKIP_DIRS, TEXT_SNIFF_BYTES, TOKEN_PATTERN


def is_text_file(file_path: Path) -> bool:
    """Check if file is text (not binary).

    Args:
        file_path: Path to the file to check

    Returns:
        True if file is text, False if binary
    """
    try:
        with open(file_path, "rb") as f:
            chunk = f.read(TEXT_SNIFF_BYTES)
            if b"\0" in chunk:
                return False
            try:
                chunk.decode("utf-8")
            except UnicodeDecodeError as e:
                # A multi-byte character cut off at the sniff boundary is still text
                return len(chunk) == TEXT_SNIFF_BYTES and e.start >= len(chunk) - 3
            return True
    except (FileNotFoundError, PermissionError, IsADirectoryError):
        return False


def count_terms(text: str, word_limit: int) -> Counter:
    """Count tokens in text, stopping after word_limit tokens."""
    counts: Counter = Counter()
    seen = 0
    for match in TOKEN_PATTERN.finditer(text):
        token = match.group(0)
        if len(token) < MIN_TOKEN_LENGTH:
            continue
        counts[token] += 1
        seen += 1
        if seen >= word_limit:
            break
    return counts


def render_xref(relative_path: str, text: str) -> str:
    """Render a source file as an html page with one anchor per line."""
    lines = text.splitlines()
    body = "\n".join(
        f'<a class="l" name="{n}" href="#{n}">{n}</a> {html.escape(line)}'
        for n, line in enumerate(lines, start=1)
    )
    title = html.escape(relative_path)
    return (
        "<!DOCTYPE html>\n"
        f"<html><head><meta charset=\"utf-8\"><title>{title}</title></head>\n"
        f"<body><pre>\n{body}\n</pre></body></html>\n"
    )


class FileWalker:
    """Walks a source root (or parts of it) honoring ignore patterns."""

    def __init__(self, root_path: Path, ignore_patterns: set[str] | None = None,
                 follow_symlinks: bool = False):
        """Initialize the file walker.

        Args:
            root_path: Source root; all yielded paths are relative to it
            ignore_patterns: Glob patterns matched against file and directory names
            follow_symlinks: Whether to follow symbolic links
        """
        self.root_path = Path(root_path).resolve()
        self.ignore_patterns = ignore_patterns or set()
        self.follow_symlinks = follow_symlinks

        self.stats = {
            "total_files": 0,
            "text_files": 0,
            "binary_files": 0,
            "large_files": 0,
            "ignored": 0,
        }

    def is_ignored(self, name: str) -> bool:
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.ignore_patterns)

    def process_file(self, file: Path) -> dict[str, Any] | None:
        """Return file info for an indexable file, or None to skip it."""
        try:
            if not self.follow_symlinks and file.is_symlink():
                return None
            file_size = file.stat().st_size
        except OSError:
            return None

        if file_size >= MAX_FILE_SIZE:
            self.stats["large_files"] += 1
            return None

        if not is_text_file(file):
            self.stats["binary_files"] += 1
            return None

        self.stats["text_files"] += 1
        return {
            "path": file.relative_to(self.root_path).as_posix(),
            "absolute": file,
            "sha256": compute_file_hash(file),
            "bytes": file_size,
        }

    def _walk_directory(self, directory: Path) -> list[dict[str, Any]]:
        files = []
        for dirpath, dirnames, filenames in os.walk(directory, followlinks=self.follow_symlinks):
            kept = [d for d in dirnames if d not in SKIP_DIRS and not self.is_ignored(d)]
            self.stats["ignored"] += len(dirnames) - len(kept)
            dirnames[:] = sorted(kept)

            for filename in sorted(filenames):
                self.stats["total_files"] += 1
                if self.is_ignored(filename):
                    self.stats["ignored"] += 1
                    continue
                file_info = self.process_file(Path(dirpath) / filename)
                if file_info:
                    files.append(file_info)
        return files

    def walk(self, sub_files: list[str] | None = None) -> tuple[list[dict], list[str]]:
        """Collect indexable files.

        Args:
            sub_files: Subtrees (files or directories) relative to the root;
                every file under the root when empty

        Returns:
            Tuple of (files sorted by path, subtree prefixes actually walked)
        """
        if not sub_files:
            files = self._walk_directory(self.root_path)
            files.sort(key=lambda x: x["path"])
            return files, [""]

        files: dict[str, dict] = {}
        scopes = []
        root = self.root_path
        for sub in sub_files:
            target = (root / sub.lstrip("/")).resolve()
            if not target.is_relative_to(root):
                logger.warning(f"Skipping {sub}: outside of {self.root_path}")
                continue
            if not target.exists():
                logger.warning(f"Could not find file or directory {sub} under {self.root_path}")
                continue
            relative = target.relative_to(root).as_posix()
            scopes.append("" if relative == "." else relative)
            if target.is_dir():
                found = self._walk_directory(target)
            else:
                self.stats["total_files"] += 1
                info = self.process_file(target)
                found = [info] if info else []
            for info in found:
                files[info["path"]] = info

        return sorted(files.values(), key=lambda x: x["path"]), scopes

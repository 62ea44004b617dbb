"""Index engine: build, update and maintain the index of a data root."""

import time
from pathlib import Path
from typing import Any

from sourcedex.utils.constants import (
    DEFAULT_IGNORED_NAMES,
    DEFAULT_INDEX_WORD_LIMIT,
    FREQUENT_TOKEN_THRESHOLD,
    INDEX_DB_NAME,
    INDEX_DIR,
    SRC_ROOT_MARKER,
    XREF_DIR,
)
from sourcedex.utils.logging import logger

from .core import FileWalker, count_terms, render_xref
from .database import IndexDatabase


def index_db_path(data_root: Path) -> Path:
    return data_root / INDEX_DIR / INDEX_DB_NAME


class IndexEngine:
    """Default engine over a SQLite term index.

    The orchestrator only needs run(); optimize(), list_files(),
    frequent_tokens() and unique_terms() back the maintenance flags.
    """

    def __init__(
        self,
        ignore_patterns: set[str] | None = None,
        index_word_limit: int = DEFAULT_INDEX_WORD_LIMIT,
    ):
        self.ignore_patterns = set(DEFAULT_IGNORED_NAMES) if ignore_patterns is None else ignore_patterns
        self.index_word_limit = index_word_limit

    def run(
        self,
        data_root: Path,
        source_root: Path,
        sub_files: list[str] | None = None,
        no_html: bool = False,
    ) -> dict[str, Any]:
        """Bring the index of data_root up to date with source_root.

        Only files whose content changed are re-tokenized. Entries for files
        that disappeared are dropped, limited to the subtrees being processed.

        Returns:
            Run statistics
        """
        start_time = time.time()
        walker = FileWalker(source_root, self.ignore_patterns)
        files, scopes = walker.walk(sub_files)

        added = updated = 0
        with IndexDatabase(index_db_path(data_root)) as db:
            stored = db.stored_hashes(scopes)

            for info in files:
                path = info["path"]
                previous = stored.pop(path, None)
                if previous == info["sha256"]:
                    continue

                text = info["absolute"].read_text(encoding="utf-8", errors="replace")
                db.replace_file(path, info["sha256"], info["bytes"],
                                count_terms(text, self.index_word_limit))
                if not no_html:
                    xref = data_root / XREF_DIR / f"{path}.html"
                    xref.parent.mkdir(parents=True, exist_ok=True)
                    xref.write_text(render_xref(path, text), encoding="utf-8")

                if previous is None:
                    added += 1
                else:
                    updated += 1

            removed = db.remove_files(stored)
            for path in stored:
                (data_root / XREF_DIR / f"{path}.html").unlink(missing_ok=True)

        (data_root / SRC_ROOT_MARKER).write_text(f"{source_root}\n", encoding="utf-8")

        elapsed = time.time() - start_time
        logger.debug(
            f"Indexed {source_root}: {added} added, {updated} updated, "
            f"{removed} removed ({elapsed:.1f}s)"
        )
        return {
            "added": added,
            "updated": updated,
            "removed": removed,
            "files": len(files),
            "stats": walker.stats,
            "elapsed": elapsed,
        }

    def optimize(self, data_root: Path) -> None:
        db = IndexDatabase(index_db_path(data_root))
        db.open(create=False)
        try:
            db.optimize()
        finally:
            db.close()
        logger.debug(f"Optimized index in {data_root}")

    def list_files(self, data_root: Path) -> list[str]:
        db = IndexDatabase(index_db_path(data_root))
        db.open(create=False)
        try:
            return db.list_files()
        finally:
            db.close()

    def frequent_tokens(
        self, data_root: Path, min_count: int = FREQUENT_TOKEN_THRESHOLD
    ) -> list[tuple[str, int]]:
        db = IndexDatabase(index_db_path(data_root))
        db.open(create=False)
        try:
            return db.frequent_terms(min_count)
        finally:
            db.close()

    def unique_terms(self, data_root: Path) -> list[tuple[str, str]]:
        """(term, path) for every term that occurs in exactly one indexed file."""
        db = IndexDatabase(index_db_path(data_root))
        db.open(create=False)
        try:
            return db.unique_terms()
        finally:
            db.close()

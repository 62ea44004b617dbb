"""SQLite storage for the inverted index."""

import sqlite3
import time
from collections import Counter
from collections.abc import Iterable
from pathlib import Path

from sourcedex.exceptions import IndexDatabaseError

from .config import DEFAULT_BATCH_SIZE, SCHEMA


def _in_scope(path: str, scopes: list[str]) -> bool:
    for scope in scopes:
        if scope == "" or path == scope or path.startswith(scope + "/"):
            return True
    return False


class IndexDatabase:
    """Thin wrapper around the index database of one data root."""

    def __init__(self, db_path: Path, batch_size: int = DEFAULT_BATCH_SIZE):
        self.db_path = db_path
        self.batch_size = batch_size
        self.conn: sqlite3.Connection | None = None

    def __enter__(self) -> "IndexDatabase":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close(commit=exc_type is None)

    def open(self, create: bool = True) -> None:
        if not create and not self.db_path.exists():
            raise IndexDatabaseError(f"No index found at {self.db_path}")
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path), timeout=60)
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA synchronous=NORMAL")
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self, commit: bool = True) -> None:
        if self.conn is None:
            return
        if commit:
            self.conn.commit()
        else:
            self.conn.rollback()
        self.conn.close()
        self.conn = None

    def _cursor(self) -> sqlite3.Cursor:
        if self.conn is None:
            raise IndexDatabaseError("Index database is not open")
        return self.conn.cursor()

    def stored_hashes(self, scopes: list[str]) -> dict[str, str]:
        """Return {path: sha256} for indexed files within the given scopes."""
        cursor = self._cursor()
        cursor.execute("SELECT path, sha256 FROM files")
        return {path: sha for path, sha in cursor.fetchall() if _in_scope(path, scopes)}

    def replace_file(self, path: str, sha256: str, size: int, counts: Counter) -> None:
        """Store (or overwrite) one file and its term counts."""
        cursor = self._cursor()
        cursor.execute("DELETE FROM terms WHERE path = ?", (path,))
        cursor.execute(
            "INSERT OR REPLACE INTO files (path, sha256, bytes, indexed_at) VALUES (?, ?, ?, ?)",
            (path, sha256, size, time.time()),
        )
        rows = [(term, path, freq) for term, freq in counts.items()]
        for start in range(0, len(rows), self.batch_size):
            cursor.executemany(
                "INSERT INTO terms (term, path, freq) VALUES (?, ?, ?)",
                rows[start:start + self.batch_size],
            )

    def remove_files(self, paths: Iterable[str]) -> int:
        cursor = self._cursor()
        removed = 0
        for path in paths:
            cursor.execute("DELETE FROM terms WHERE path = ?", (path,))
            cursor.execute("DELETE FROM files WHERE path = ?", (path,))
            removed += cursor.rowcount
        return removed

    def list_files(self) -> list[str]:
        cursor = self._cursor()
        cursor.execute("SELECT path FROM files ORDER BY path")
        return [row[0] for row in cursor.fetchall()]

    def frequent_terms(self, min_count: int) -> list[tuple[str, int]]:
        """Terms whose total frequency across all files exceeds min_count."""
        cursor = self._cursor()
        cursor.execute(
            "SELECT term, SUM(freq) AS total FROM terms GROUP BY term "
            "HAVING total > ? ORDER BY term",
            (min_count,),
        )
        return [(term, total) for term, total in cursor.fetchall()]

    def unique_terms(self) -> list[tuple[str, str]]:
        """Terms indexed for exactly one file, with that file's path."""
        cursor = self._cursor()
        cursor.execute(
            "SELECT term, MIN(path) FROM terms GROUP BY term "
            "HAVING COUNT(*) = 1 ORDER BY term"
        )
        return [(term, path) for term, path in cursor.fetchall()]

    def optimize(self) -> None:
        if self.conn is None:
            raise IndexDatabaseError("Index database is not open")
        self.conn.commit()
        self.conn.execute("ANALYZE")
        self.conn.execute("VACUUM")

"""sourcedex indexer package.

- FileWalker for source tree traversal with ignore patterns and subtrees
- IndexDatabase for SQLite storage of files and term counts
- IndexEngine, the entry point used by the orchestrator and the
  maintenance flags
"""

from .core import FileWalker
from .database import IndexDatabase
from .runner import IndexEngine, index_db_path

__all__ = [
    'FileWalker',
    'IndexDatabase',
    'IndexEngine',
    'index_db_path',
]

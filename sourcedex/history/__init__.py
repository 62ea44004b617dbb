"""Repository discovery and history caches."""

from .discovery import discover_repositories
from .refresh import RefreshReport, RefreshResult, refresh_history
from .repository import (
    GitRepository,
    MercurialRepository,
    Repository,
    SubversionRepository,
    cache_file_name,
    repository_from_dict,
)

__all__ = [
    "discover_repositories",
    "refresh_history",
    "RefreshReport",
    "RefreshResult",
    "Repository",
    "GitRepository",
    "MercurialRepository",
    "SubversionRepository",
    "cache_file_name",
    "repository_from_dict",
]

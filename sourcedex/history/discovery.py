"""Repository discovery under the source root."""

import fnmatch
import os
from pathlib import Path

from sourcedex.history.repository import MARKERS, Repository
from sourcedex.utils.logging import logger


def _repository_id(source_root: Path, directory: Path) -> str:
    relative = directory.relative_to(source_root).as_posix()
    return "/" if relative == "." else f"/{relative}"


def _is_ignored(name: str, ignore_patterns: set[str]) -> bool:
    return any(fnmatch.fnmatch(name, pattern) for pattern in ignore_patterns)


def discover_repositories(
    source_root: Path,
    ignore_patterns: set[str] | None = None,
) -> dict[str, Repository]:
    """Find every repository below source_root.

    A directory holding a VCS marker (.git, .hg, .svn) is registered and not
    descended into any further. Ignore patterns prune other directories but
    never hide a marker.

    Returns:
        Repositories keyed by "/"-prefixed id, in path order
    """
    ignore_patterns = ignore_patterns or set()
    found: dict[str, Repository] = {}

    for dirpath, dirnames, filenames in os.walk(source_root):
        current = Path(dirpath)

        present = set(dirnames)
        if ".git" in filenames:
            present.add(".git")  # worktrees and submodules use a .git file
        marker = next((m for m in sorted(MARKERS) if m in present), None)
        if marker is not None:
            repo_id = _repository_id(source_root, current)
            found[repo_id] = MARKERS[marker](repo_id, current)
            logger.debug(f"Found {MARKERS[marker].type_name} repository at {current}")
            dirnames.clear()
            continue

        dirnames[:] = sorted(
            d for d in dirnames
            if not _is_ignored(d, ignore_patterns) and not os.path.islink(os.path.join(dirpath, d))
        )

    return dict(sorted(found.items()))

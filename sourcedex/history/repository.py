"""Version-control repository handles and their history caches.

Each handle knows how to ask its VCS for the full change log and how to
turn that log into cache entries:

    {"revision": ..., "author": ..., "date": ..., "message": ..., "files": [...]}

The cache for one repository is a single JSON file under the cache root,
written by create_cache(). Handles are serialized into the runtime
configuration as {"type": ..., "directory": ...}.
"""

import subprocess
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any
from urllib.parse import quote

from sourcedex.exceptions import ConfigurationError, HistoryError
from sourcedex.utils.constants import (
    DEFAULT_HISTORY_TIMEOUT,
    ENV_HISTORY_TIMEOUT,
    env_int,
)
from sourcedex.utils.helpers import save_json_file
from sourcedex.utils.logging import logger

# Record and field separators for machine-readable log templates
_RS = "\x1e"
_US = "\x1f"


def cache_file_name(repo_id: str) -> str:
    """Map a repository id such as "/proj/sub" to "%2Fproj%2Fsub.json".

    Percent-encoding keeps distinct ids on distinct files; unquote() of the
    stem gives the id back.
    """
    return f"{quote(repo_id, safe='')}.json"


class Repository:
    """Base class for a repository discovered under the source root."""

    type_name = ""
    marker = ""

    def __init__(self, repo_id: str, directory: Path):
        self.repo_id = repo_id
        self.directory = Path(directory)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.repo_id!r}, {str(self.directory)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Repository):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.repo_id == other.repo_id
            and self.directory == other.directory
        )

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.repo_id, self.directory))

    def history_command(self) -> list[str]:
        raise NotImplementedError

    def parse_history(self, output: str) -> list[dict[str, Any]]:
        raise NotImplementedError

    def read_log(self) -> str:
        """Run the VCS log command and return its standard output."""
        cmd = self.history_command()
        timeout = env_int(ENV_HISTORY_TIMEOUT, DEFAULT_HISTORY_TIMEOUT)
        try:
            result = subprocess.run(
                cmd,
                cwd=self.directory,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise HistoryError(f"{cmd[0]} is not installed", repository=self.repo_id) from e
        except subprocess.TimeoutExpired as e:
            raise HistoryError(
                f"{cmd[0]} log timed out after {timeout}s", repository=self.repo_id
            ) from e

        if result.returncode != 0:
            raise HistoryError(
                f"{' '.join(cmd)} exited with {result.returncode}: {result.stderr.strip()}",
                repository=self.repo_id,
            )
        return result.stdout

    def create_cache(self, cache_root: Path) -> Path:
        """Build (or rebuild) this repository's history cache.

        Returns:
            Path of the written cache file

        Raises:
            HistoryError: If the log cannot be read or parsed
        """
        output = self.read_log()
        try:
            entries = self.parse_history(output)
        except (ValueError, ET.ParseError) as e:
            raise HistoryError(f"Unparseable log output: {e}", repository=self.repo_id) from e

        target = cache_root / cache_file_name(self.repo_id)
        save_json_file(
            {
                "repository": self.repo_id,
                "type": self.type_name,
                "directory": str(self.directory),
                "entries": entries,
            },
            target,
        )
        logger.debug(f"History cache for {self.repo_id}: {len(entries)} entries -> {target}")
        return target

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type_name, "directory": str(self.directory)}


class GitRepository(Repository):
    """Git working tree (marker: .git)."""

    type_name = "git"
    marker = ".git"

    def history_command(self) -> list[str]:
        return [
            "git",
            "log",
            "--no-color",
            "--name-only",
            "--date=iso-strict",
            f"--pretty=format:{_RS}%H{_US}%an{_US}%ad{_US}%B{_US}",
        ]

    def parse_history(self, output: str) -> list[dict[str, Any]]:
        entries = []
        for record in output.split(_RS):
            if not record.strip():
                continue
            parts = record.split(_US)
            if len(parts) < 5:
                raise ValueError(f"expected 5 fields, got {len(parts)}")
            revision, author, date, message, files_blob = parts[:5]
            entries.append({
                "revision": revision.strip(),
                "author": author,
                "date": date,
                "message": message.strip(),
                "files": [line.strip() for line in files_blob.splitlines() if line.strip()],
            })
        return entries


class MercurialRepository(Repository):
    """Mercurial working copy (marker: .hg)."""

    type_name = "hg"
    marker = ".hg"

    def history_command(self) -> list[str]:
        template = (
            f"{{node}}{_US}{{author}}{_US}{{date|isodate}}{_US}{{desc}}{_US}"
            f"{{files % '{{file}}\\n'}}{_RS}"
        )
        return ["hg", "log", "--template", template]

    def parse_history(self, output: str) -> list[dict[str, Any]]:
        entries = []
        for record in output.split(_RS):
            if not record.strip():
                continue
            parts = record.split(_US)
            if len(parts) != 5:
                raise ValueError(f"expected 5 fields, got {len(parts)}")
            revision, author, date, message, files_blob = parts
            entries.append({
                "revision": revision.strip(),
                "author": author,
                "date": date,
                "message": message.strip(),
                "files": [line for line in files_blob.splitlines() if line],
            })
        return entries


class SubversionRepository(Repository):
    """Subversion working copy (marker: .svn)."""

    type_name = "svn"
    marker = ".svn"

    def history_command(self) -> list[str]:
        return ["svn", "log", "--xml", "--verbose", "--non-interactive"]

    def parse_history(self, output: str) -> list[dict[str, Any]]:
        if not output.strip():
            return []
        root = ET.fromstring(output)
        entries = []
        for logentry in root.iter("logentry"):
            entries.append({
                "revision": logentry.get("revision", ""),
                "author": logentry.findtext("author", default=""),
                "date": logentry.findtext("date", default=""),
                "message": (logentry.findtext("msg", default="") or "").strip(),
                "files": [p.text for p in logentry.iter("path") if p.text],
            })
        return entries


REPOSITORY_TYPES: dict[str, type[Repository]] = {
    cls.type_name: cls for cls in (GitRepository, MercurialRepository, SubversionRepository)
}

MARKERS: dict[str, type[Repository]] = {cls.marker: cls for cls in REPOSITORY_TYPES.values()}


def repository_from_dict(repo_id: str, data: dict[str, Any]) -> Repository:
    """Rebuild a repository handle from its serialized form."""
    try:
        repo_cls = REPOSITORY_TYPES[data["type"]]
        directory = Path(data["directory"])
    except (KeyError, TypeError) as e:
        raise ConfigurationError(f"Invalid repository entry {repo_id!r}: {data!r}") from e
    return repo_cls(repo_id, directory)

"""Runtime configuration for sourcedex - one explicit object per run.

The configuration is created at process start (or loaded from a file with
-R), mutated by the run's stages in order, and discarded at exit. It is
never shared between runs.

Serialized form is JSON:

    {
      "source_root": "/src",
      "data_root": "/data",
      "verbose": false,
      "generate_html": true,
      "quick_context_scan": true,
      "ctags": "ctags",
      "url_prefix": "/source/s?",
      "index_word_limit": 60000,
      "ignore_patterns": ["*.o", ".git", ...],
      "repositories": {"/proj": {"type": "git", "directory": "/src/proj"}},
      "projects": [{"name": "proj", "path": "/proj", "description": "proj"}],
      "default_project": "/proj"
    }
"""

import copy
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sourcedex.exceptions import ConfigurationError
from sourcedex.history.repository import Repository, repository_from_dict
from sourcedex.projects import Project, select_default_project
from sourcedex.utils.constants import (
    DEFAULT_CTAGS,
    DEFAULT_IGNORED_NAMES,
    DEFAULT_INDEX_WORD_LIMIT,
    DEFAULT_URL_PREFIX,
    ENV_CTAGS,
)


def _default_ctags() -> str:
    return os.environ.get(ENV_CTAGS, DEFAULT_CTAGS)


def normalize_url_prefix(webapp: str) -> str:
    """Turn a web-app root into the search URL prefix.

    "foo", "/foo" and "/foo/" all become "/foo/s?"; absolute http(s) URLs
    keep their scheme and host.
    """
    if not (webapp.startswith("/") or webapp.startswith("http")):
        webapp = "/" + webapp
    if webapp.endswith("/"):
        return webapp + "s?"
    return webapp + "/s?"


@dataclass
class RuntimeConfiguration:
    """Process-wide settings for a single indexing run."""

    source_root: Path | None = None
    data_root: Path | None = None
    verbose: bool = False
    generate_html: bool = True
    quick_context_scan: bool = True
    ctags: str = field(default_factory=_default_ctags)
    url_prefix: str = DEFAULT_URL_PREFIX
    index_word_limit: int = DEFAULT_INDEX_WORD_LIMIT
    ignore_patterns: set[str] = field(default_factory=lambda: set(DEFAULT_IGNORED_NAMES))
    repositories: dict[str, Repository] = field(default_factory=dict)
    projects: list[Project] = field(default_factory=list)
    default_project: Project | None = None

    def copy(self) -> "RuntimeConfiguration":
        """Deep copy, so a fold can work on its own instance."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_root": str(self.source_root) if self.source_root else None,
            "data_root": str(self.data_root) if self.data_root else None,
            "verbose": self.verbose,
            "generate_html": self.generate_html,
            "quick_context_scan": self.quick_context_scan,
            "ctags": self.ctags,
            "url_prefix": self.url_prefix,
            "index_word_limit": self.index_word_limit,
            "ignore_patterns": sorted(self.ignore_patterns),
            "repositories": {
                repo_id: repo.to_dict() for repo_id, repo in sorted(self.repositories.items())
            },
            "projects": [project.to_dict() for project in self.projects],
            "default_project": self.default_project.path if self.default_project else None,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RuntimeConfiguration":
        """Build a configuration from its serialized form.

        Missing keys keep their defaults and unknown keys are ignored.

        Raises:
            ConfigurationError: If a known key holds a value of the wrong type
        """
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration must be a JSON object, got {type(data).__name__}")

        config = cls()

        for key in ("source_root", "data_root"):
            value = data.get(key)
            if value is not None:
                setattr(config, key, Path(_expect(key, value, str)))

        for key in ("verbose", "generate_html", "quick_context_scan"):
            if key in data:
                setattr(config, key, _expect(key, data[key], bool))

        for key in ("ctags", "url_prefix"):
            if key in data:
                setattr(config, key, _expect(key, data[key], str))

        if "index_word_limit" in data:
            limit = data["index_word_limit"]
            if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
                raise ConfigurationError(f"index_word_limit must be a positive integer, got {limit!r}")
            config.index_word_limit = limit

        if "ignore_patterns" in data:
            patterns = _expect("ignore_patterns", data["ignore_patterns"], list)
            config.ignore_patterns = {str(p) for p in patterns}

        repositories = _expect("repositories", data.get("repositories") or {}, dict)
        config.repositories = {
            repo_id: repository_from_dict(repo_id, entry)
            for repo_id, entry in repositories.items()
        }

        projects = _expect("projects", data.get("projects") or [], list)
        try:
            config.projects = [Project.from_dict(entry) for entry in projects]
        except (KeyError, TypeError, AttributeError) as e:
            raise ConfigurationError(f"Invalid project entry: {e}") from e

        default_path = data.get("default_project")
        if default_path is not None:
            config.default_project = select_default_project(config.projects, default_path)

        return config

    @classmethod
    def from_json(cls, text: str | bytes) -> "RuntimeConfiguration":
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Invalid configuration payload: {e}") from e
        return cls.from_dict(data)


def _expect(key: str, value: Any, kind: type) -> Any:
    if not isinstance(value, kind):
        raise ConfigurationError(
            f"{key} must be of type {kind.__name__}, got {type(value).__name__}"
        )
    return value


def load_configuration(path: Path) -> RuntimeConfiguration:
    """Read a configuration file written by write_configuration().

    Raises:
        ConfigurationError: If the file is missing, unreadable or malformed
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e
    return RuntimeConfiguration.from_json(text)

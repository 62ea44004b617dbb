"""Project catalog: top-level source-root directories exposed as projects."""

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from sourcedex.utils.logging import logger


@dataclass(frozen=True)
class Project:
    """A path-identified grouping of source files.

    `path` is the identity and is always "/"-prefixed relative to the
    source root. `description` drives display ordering.
    """

    name: str
    path: str
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        return cls(
            name=data["name"],
            path=data["path"],
            description=data.get("description"),
        )


def project_sort_key(project: Project) -> tuple[bool, str]:
    """Order by description; a missing description sorts after all others."""
    return (project.description is None, project.description or "")


def sort_projects(projects: list[Project]) -> list[Project]:
    """Return projects sorted by description, missing descriptions last.

    The sort is stable, so two projects without a description keep their
    relative order.
    """
    return sorted(projects, key=project_sort_key)


def rebuild_projects(source_root: Path) -> list[Project]:
    """Build one project per immediate, non-hidden subdirectory of source_root."""
    projects = []
    for entry in source_root.iterdir():
        if entry.name.startswith("."):
            continue
        if not entry.is_dir():
            continue
        projects.append(Project(name=entry.name, path=f"/{entry.name}", description=entry.name))

    logger.debug(f"Found {len(projects)} projects under {source_root}")
    return sort_projects(projects)


def select_default_project(projects: list[Project], path: str) -> Project | None:
    """Return the project whose path equals `path`, or None.

    An unmatched path is not an error and is not reported.
    """
    for project in projects:
        if project.path == path:
            return project
    return None

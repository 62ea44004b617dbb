"""History cache refresh across all known repositories.

Fan-out/fan-in: one unit of work per repository, bounded by a worker limit,
each producing its own RefreshResult. A unit that fails is logged with its
repository id and recorded as failed; it never cancels or blocks the others,
and the stage itself never raises.
"""

import asyncio
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from sourcedex.pipeline.structures import TaskStatus
from sourcedex.utils.constants import ENV_HISTORY_WORKERS, env_int
from sourcedex.utils.logging import logger


class CacheBuilder(Protocol):
    """Anything that can build a history cache under a cache root."""

    def create_cache(self, cache_root: Path) -> Path | None: ...


@dataclass
class RefreshResult:
    """Outcome of one repository's cache build."""

    repository: str
    status: TaskStatus
    elapsed: float = 0.0
    cache_file: Path | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status == TaskStatus.SUCCESS


@dataclass
class RefreshReport:
    """All per-repository outcomes of one refresh stage, in repository order."""

    results: list[RefreshResult] = field(default_factory=list)

    @property
    def failed(self) -> list[RefreshResult]:
        return [r for r in self.results if not r.success]

    @property
    def succeeded(self) -> list[RefreshResult]:
        return [r for r in self.results if r.success]


def default_worker_count() -> int:
    return max(1, env_int(ENV_HISTORY_WORKERS, min(8, os.cpu_count() or 1)))


async def _refresh_one(
    repo_id: str,
    repository: CacheBuilder,
    cache_root: Path,
    semaphore: asyncio.Semaphore,
    verbose: bool,
) -> RefreshResult:
    async with semaphore:
        start = time.time()
        try:
            cache_file = await asyncio.to_thread(repository.create_cache, cache_root)
        except Exception as e:
            # Traceback only in verbose mode; the repository id is always named
            logger.opt(exception=e if verbose else None).error(
                f"Failed to generate history cache for {repo_id}: {e}"
            )
            return RefreshResult(
                repository=repo_id,
                status=TaskStatus.FAILED,
                elapsed=time.time() - start,
                error=f"{type(e).__name__}: {e}",
            )

        elapsed = time.time() - start
        logger.debug(f"History cache for {repo_id} done in {elapsed:.1f}s")
        return RefreshResult(
            repository=repo_id,
            status=TaskStatus.SUCCESS,
            elapsed=elapsed,
            cache_file=cache_file,
        )


async def refresh_history_async(
    repositories: dict[str, CacheBuilder],
    cache_root: Path,
    workers: int,
    verbose: bool = False,
) -> RefreshReport:
    """Run every repository's cache build concurrently, at most `workers` at a time."""
    semaphore = asyncio.Semaphore(max(1, workers))
    repo_ids = list(repositories)
    tasks = [
        _refresh_one(repo_id, repositories[repo_id], cache_root, semaphore, verbose)
        for repo_id in repo_ids
    ]
    outcomes = await asyncio.gather(*tasks, return_exceptions=True)

    report = RefreshReport()
    for repo_id, outcome in zip(repo_ids, outcomes):
        if isinstance(outcome, BaseException):
            logger.error(f"History refresh for {repo_id} aborted: {outcome!r}")
            report.results.append(RefreshResult(
                repository=repo_id,
                status=TaskStatus.FAILED,
                error=repr(outcome),
            ))
        else:
            report.results.append(outcome)
    return report


def refresh_history(
    repositories: dict[str, CacheBuilder],
    cache_root: Path,
    workers: int | None = None,
    verbose: bool = False,
) -> RefreshReport:
    """Refresh the history cache of every repository; never raises for a repository."""
    if not repositories:
        logger.debug("No repositories known, nothing to refresh")
        return RefreshReport()

    if workers is None:
        workers = default_worker_count()

    report = asyncio.run(refresh_history_async(repositories, cache_root, workers, verbose))

    if report.failed:
        logger.warning(
            f"History refresh: {len(report.failed)} of {len(report.results)} repositories failed"
        )
    return report

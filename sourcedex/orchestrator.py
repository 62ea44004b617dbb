"""Run orchestration: option resolution, bootstrap, and the optional stages.

Stage order is fixed:

    ParseOptions (+ LoadConfigFile) -> ApplyOptions -> ResolveRoots ->
    ValidateTagTool -> [RepositoryDiscovery] -> [ProjectCatalog] ->
    [PersistConfigLocally] -> [RefreshHistory] -> [RunIndex] ->
    [PushConfigToHost ...]

Exit status policy:
  - usage errors propagate as UsageError (the CLI prints the usage text)
  - configuration load and bootstrap errors end the run with FAILURE
  - after bootstrap, an exception from discovery, the catalog, persistence
    or indexing is caught at the top level and ends the run with FAILURE
  - history refresh and configuration push failures are recovered per
    repository / per target and do not change the exit status
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from sourcedex.bootstrap import resolve_roots, validate_tag_tool
from sourcedex.config_runtime import RuntimeConfiguration
from sourcedex.distribute import PushResult, Sender, distribute, send_payload, write_configuration
from sourcedex.exceptions import BootstrapError, ConfigurationError
from sourcedex.history.discovery import discover_repositories
from sourcedex.history.refresh import RefreshReport, refresh_history
from sourcedex.indexer import IndexEngine
from sourcedex.options import OptionSet, resolve_options
from sourcedex.pipeline.structures import StageResult, TaskStatus
from sourcedex.pipeline.ui import console, print_plain, print_status_panel
from sourcedex.projects import rebuild_projects, select_default_project
from sourcedex.utils.constants import HISTORY_CACHE_DIR
from sourcedex.utils.exit_codes import ExitCodes
from sourcedex.utils.logging import configure_verbosity, logger


class Engine(Protocol):
    """What the orchestrator needs from an index engine."""

    def run(self, data_root: Path, source_root: Path, sub_files: list[str] | None = None,
            no_html: bool = False) -> Any: ...

    def optimize(self, data_root: Path) -> None: ...

    def list_files(self, data_root: Path) -> list[str]: ...

    def frequent_tokens(self, data_root: Path) -> list[tuple[str, int]]: ...

    def unique_terms(self, data_root: Path) -> list[tuple[str, str]]: ...


EngineFactory = Callable[[RuntimeConfiguration], Engine]


def default_engine_factory(config: RuntimeConfiguration) -> Engine:
    return IndexEngine(config.ignore_patterns, config.index_word_limit)


@dataclass
class RunOutcome:
    """Everything a run produced; exit_code is what the process returns."""

    exit_code: int
    options: OptionSet | None = None
    config: RuntimeConfiguration | None = None
    stages: list[StageResult] = field(default_factory=list)
    history: RefreshReport | None = None
    pushes: list[PushResult] = field(default_factory=list)

    def stage(self, name: str) -> StageResult | None:
        for result in self.stages:
            if result.name == name:
                return result
        return None

    @property
    def executed(self) -> list[str]:
        """Names of the stages that actually ran, in order."""
        return [s.name for s in self.stages if s.status != TaskStatus.SKIPPED]


class Orchestrator:
    """Drives one run from a flag vector to an exit status."""

    def __init__(
        self,
        engine_factory: EngineFactory = default_engine_factory,
        tag_tool_check: Callable[[RuntimeConfiguration], Any] = validate_tag_tool,
        sender: Sender = send_payload,
        history_workers: int | None = None,
        initial_config: RuntimeConfiguration | None = None,
    ):
        self.engine_factory = engine_factory
        self.tag_tool_check = tag_tool_check
        self.sender = sender
        self.history_workers = history_workers
        self.initial_config = initial_config

    def execute(self, argv: list[str]) -> RunOutcome:
        """Resolve argv and run the full sequence.

        Raises:
            UsageError: For a malformed command line or a missing data root
        """
        try:
            options, config = resolve_options(argv, self.initial_config)
        except ConfigurationError as e:
            logger.error(f"Error: [main] {e}")
            return RunOutcome(ExitCodes.FAILURE)
        return self.run(options, config)

    def run(self, options: OptionSet, config: RuntimeConfiguration) -> RunOutcome:
        """Run the full sequence for already resolved options.

        Raises:
            UsageError: For a missing data root
        """
        configure_verbosity(config.verbose)
        outcome = RunOutcome(ExitCodes.SUCCESS, options, config)

        if options.maintenance is not None:
            return self._run_maintenance(outcome)

        try:
            self._stage(outcome, "resolve-roots",
                        lambda: resolve_roots(config, options.data_root_arg))
            self._stage(outcome, "validate-tag-tool", lambda: self.tag_tool_check(config))
        except BootstrapError as e:
            logger.error(f"ERROR: {e}")
            outcome.exit_code = ExitCodes.FAILURE
            return outcome

        try:
            self._run_stages(outcome)
        except Exception as e:
            logger.opt(exception=e if config.verbose else None).error(f"Error: [main] {e}")
            outcome.exit_code = ExitCodes.FAILURE
            return outcome

        if config.verbose:
            self._print_summary(outcome)
        return outcome

    # ------------------------------------------------------------------
    # Stage plumbing
    # ------------------------------------------------------------------

    def _stage(self, outcome: RunOutcome, name: str, action: Callable[[], Any]) -> Any:
        """Run one stage, record its result, and re-raise anything it raises."""
        start = time.time()
        try:
            value = action()
        except Exception as e:
            outcome.stages.append(StageResult(name, TaskStatus.FAILED, time.time() - start, str(e)))
            raise
        outcome.stages.append(StageResult(name, TaskStatus.SUCCESS, time.time() - start))
        return value

    def _skip(self, outcome: RunOutcome, name: str) -> None:
        outcome.stages.append(StageResult(name, TaskStatus.SKIPPED))

    @staticmethod
    def _say(config: RuntimeConfiguration, message: str) -> None:
        if config.verbose:
            console.print(message, highlight=False)

    def _run_stages(self, outcome: RunOutcome) -> None:
        options, config = outcome.options, outcome.config

        if options.search_repositories:
            self._stage(outcome, "discover-repositories", lambda: self._discover(config))
        else:
            self._skip(outcome, "discover-repositories")

        if options.add_projects or options.default_project is not None:
            self._stage(outcome, "build-project-catalog", lambda: self._catalog(options, config))
        else:
            self._skip(outcome, "build-project-catalog")

        if options.write_config is not None:
            self._stage(outcome, "write-configuration",
                        lambda: self._persist(config, Path(options.write_config)))
        else:
            self._skip(outcome, "write-configuration")

        if options.refresh_history:
            self._refresh(outcome)
        else:
            self._skip(outcome, "refresh-history")

        if options.run_index:
            engine = self.engine_factory(config)
            self._stage(outcome, "run-index", lambda: engine.run(
                config.data_root,
                config.source_root,
                options.sub_files,
                no_html=not config.generate_html,
            ))
        else:
            self._skip(outcome, "run-index")

        if options.config_hosts:
            self._push(outcome)
        else:
            self._skip(outcome, "push-configuration")

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _discover(self, config: RuntimeConfiguration) -> None:
        self._say(config, "Scanning for repositories...")
        start = time.time()
        config.repositories = discover_repositories(config.source_root, config.ignore_patterns)
        self._say(
            config,
            f"Done searching for repositories ({time.time() - start:.0f}s): "
            f"{len(config.repositories)} found",
        )

    def _catalog(self, options: OptionSet, config: RuntimeConfiguration) -> None:
        if options.add_projects:
            previous = config.default_project
            config.projects = rebuild_projects(config.source_root)
            config.default_project = (
                select_default_project(config.projects, previous.path) if previous else None
            )
            self._say(config, f"Generated {len(config.projects)} projects")

        if options.default_project is not None:
            match = select_default_project(config.projects, options.default_project)
            if match is not None:
                config.default_project = match

    def _persist(self, config: RuntimeConfiguration, path: Path) -> None:
        self._say(config, f"Writing configuration to {path}")
        write_configuration(config, path)
        self._say(config, "Done...")

    def _refresh(self, outcome: RunOutcome) -> None:
        config = outcome.config
        start = time.time()
        self._say(config, f"Refreshing history of {len(config.repositories)} repositories...")
        report = refresh_history(
            config.repositories,
            config.data_root / HISTORY_CACHE_DIR,
            workers=self.history_workers,
            verbose=config.verbose,
        )
        outcome.history = report
        status = TaskStatus.FAILED if report.failed else TaskStatus.SUCCESS
        detail = (
            f"{len(report.failed)} of {len(report.results)} repositories failed"
            if report.failed else ""
        )
        outcome.stages.append(StageResult("refresh-history", status, time.time() - start, detail))

    def _push(self, outcome: RunOutcome) -> None:
        config = outcome.config
        start = time.time()
        for target in outcome.options.config_hosts:
            self._say(config, f"Send configuration to: {target}")
            result = distribute(config, target, sender=self.sender)
            outcome.pushes.append(result)
            if result.success:
                self._say(config, "Configuration successfully updated")

        failed = [p for p in outcome.pushes if not p.success]
        status = TaskStatus.FAILED if failed else TaskStatus.SUCCESS
        detail = ", ".join(f"{p.target}: {p.error}" for p in failed)
        outcome.stages.append(StageResult("push-configuration", status, time.time() - start, detail))

    def _run_maintenance(self, outcome: RunOutcome) -> RunOutcome:
        action, target = outcome.options.maintenance
        data_root = Path(target)
        engine = self.engine_factory(outcome.config)

        def run_action() -> None:
            if action == "optimize":
                engine.optimize(data_root)
            elif action == "list":
                for path in engine.list_files(data_root):
                    print_plain(path)
            elif action == "tokens":
                for term, count in engine.frequent_tokens(data_root):
                    print_plain(f"{term} {count}")
            elif action == "dump":
                for term, path in engine.unique_terms(data_root):
                    print_plain(f"{term} {path}")

        try:
            self._stage(outcome, f"maintenance-{action}", run_action)
        except Exception as e:
            logger.opt(exception=e if outcome.config.verbose else None).error(f"Error: [main] {e}")
            outcome.exit_code = ExitCodes.FAILURE
        return outcome

    def _print_summary(self, outcome: RunOutcome) -> None:
        degraded = [s for s in outcome.stages if s.status == TaskStatus.FAILED]
        executed = outcome.executed
        if degraded:
            print_status_panel(
                "COMPLETE WITH ERRORS",
                f"{len(executed)} stages run, {len(degraded)} reported errors",
                "; ".join(f"{s.name}: {s.detail}" for s in degraded),
                level="warning",
            )
        else:
            print_status_panel(
                "COMPLETE",
                f"{len(executed)} stages run",
                ", ".join(executed),
                level="success",
            )

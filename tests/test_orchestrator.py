"""End-to-end tests for run orchestration.

The index engine, tag tool check and network sender are replaced with
doubles, so these tests exercise stage ordering and error policy without
ctags or a network.
"""

import json

import pytest

from sourcedex.config_runtime import RuntimeConfiguration
from sourcedex.exceptions import BootstrapError, HistoryError, UsageError
from sourcedex.history.repository import cache_file_name
from sourcedex.indexer import IndexEngine
from sourcedex.orchestrator import Orchestrator
from sourcedex.pipeline.structures import TaskStatus
from sourcedex.projects import Project
from sourcedex.utils.exit_codes import ExitCodes


class RecordingEngine:
    """Index engine double."""

    def __init__(self, fail=False, files=None, tokens=None, unique=None):
        self.fail = fail
        self.files = files or []
        self.tokens = tokens or []
        self.unique = unique or []
        self.calls = []

    def run(self, data_root, source_root, sub_files=None, no_html=False):
        self.calls.append(("run", data_root, source_root, list(sub_files or []), no_html))
        if self.fail:
            raise RuntimeError("index store corrupted")
        return {}

    def optimize(self, data_root):
        self.calls.append(("optimize", data_root))

    def list_files(self, data_root):
        self.calls.append(("list", data_root))
        return self.files

    def frequent_tokens(self, data_root):
        self.calls.append(("tokens", data_root))
        return self.tokens

    def unique_terms(self, data_root):
        self.calls.append(("dump", data_root))
        return self.unique


class RecordingSender:

    def __init__(self):
        self.calls = []

    def __call__(self, host, port, payload, timeout):
        self.calls.append((host, port, payload))


class StubRepository:
    """Repository double that fails on demand; deep-copies with the configuration."""

    def __init__(self, repo_id, fail=False):
        self.repo_id = repo_id
        self.fail = fail

    def create_cache(self, cache_root):
        if self.fail:
            raise HistoryError("log exploded", repository=self.repo_id)
        target = cache_root / cache_file_name(self.repo_id)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text("{}")
        return target


def ok_tag_tool(config):
    return "Universal Ctags"


@pytest.fixture
def engine():
    return RecordingEngine()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def make_orchestrator(engine, sender):
    def factory(**kwargs):
        kwargs.setdefault("engine_factory", lambda config: engine)
        kwargs.setdefault("tag_tool_check", ok_tag_tool)
        kwargs.setdefault("sender", sender)
        return Orchestrator(**kwargs)
    return factory


class TestMinimalRun:
    """Defaults: bootstrap plus the index run and nothing else."""

    def test_index_subtree(self, make_orchestrator, engine, source_tree, data_root):
        outcome = make_orchestrator().execute(["-s", str(source_tree), str(data_root), "alpha"])

        assert outcome.exit_code == ExitCodes.SUCCESS
        assert outcome.executed == ["resolve-roots", "validate-tag-tool", "run-index"]
        assert engine.calls == [
            ("run", data_root.resolve(), source_tree.resolve(), ["alpha"], False)
        ]
        assert outcome.pushes == []
        assert outcome.history is None

        index_stage = outcome.stage("run-index")
        assert index_stage.success
        assert index_stage.to_dict()["status"] == "success"

    def test_optional_stages_recorded_as_skipped(self, make_orchestrator, source_tree, data_root):
        outcome = make_orchestrator().execute(["-s", str(source_tree), str(data_root)])
        skipped = [s.name for s in outcome.stages if s.status == TaskStatus.SKIPPED]
        assert skipped == [
            "discover-repositories",
            "build-project-catalog",
            "write-configuration",
            "refresh-history",
            "push-configuration",
        ]

    def test_economical_and_no_index(self, make_orchestrator, engine, source_tree, data_root):
        make_orchestrator().execute(["-e", "-s", str(source_tree), str(data_root)])
        assert engine.calls[0][4] is True

        engine.calls.clear()
        outcome = make_orchestrator().execute(["-n", "-s", str(source_tree), str(data_root)])
        assert engine.calls == []
        assert outcome.stage("run-index").status == TaskStatus.SKIPPED

    def test_source_root_from_marker(self, make_orchestrator, engine, source_tree, data_root):
        (data_root / "SRC_ROOT").write_text(f"{source_tree}\n")
        outcome = make_orchestrator().execute([str(data_root)])
        assert outcome.exit_code == ExitCodes.SUCCESS
        assert engine.calls[0][2] == source_tree.resolve()


class TestFatalBootstrap:
    """Nothing optional runs when bootstrap fails."""

    def test_missing_data_root_directory(self, make_orchestrator, engine, sender, source_tree, tmp_path):
        outcome = make_orchestrator().execute([
            "-S", "-P", "-U", "host:1", "-s", str(source_tree), str(tmp_path / "missing"),
        ])

        assert outcome.exit_code == ExitCodes.FAILURE
        assert outcome.executed == ["resolve-roots"]
        assert outcome.stage("resolve-roots").status == TaskStatus.FAILED
        assert engine.calls == []
        assert sender.calls == []

    def test_no_data_root_is_usage_error(self, make_orchestrator, source_tree):
        with pytest.raises(UsageError):
            make_orchestrator().execute(["-s", str(source_tree)])

    def test_no_source_root(self, make_orchestrator, engine, data_root, log_messages):
        outcome = make_orchestrator().execute([str(data_root)])
        assert outcome.exit_code == ExitCodes.FAILURE
        assert engine.calls == []
        assert any("SRC_ROOT" in m for m in log_messages)

    def test_unusable_tag_tool(self, make_orchestrator, engine, source_tree, data_root):
        def broken(config):
            raise BootstrapError("ctags missing")

        outcome = make_orchestrator(tag_tool_check=broken).execute(
            ["-s", str(source_tree), str(data_root)]
        )

        assert outcome.exit_code == ExitCodes.FAILURE
        assert outcome.stage("validate-tag-tool").status == TaskStatus.FAILED
        assert engine.calls == []

    def test_unreadable_configuration_file(self, make_orchestrator, engine, tmp_path):
        outcome = make_orchestrator().execute(["-R", str(tmp_path / "none.json"), "/data"])
        assert outcome.exit_code == ExitCodes.FAILURE
        assert outcome.stages == []
        assert engine.calls == []

    def test_malformed_flag_is_usage_error(self, make_orchestrator, engine):
        with pytest.raises(UsageError):
            make_orchestrator().execute(["-Q", "bogus", "/data"])
        assert engine.calls == []


class TestFatalStages:
    """Discovery, catalog, persistence and index failures end the run."""

    def test_index_failure_skips_push(self, make_orchestrator, sender, source_tree, data_root, log_messages):
        outcome = make_orchestrator(engine_factory=lambda c: RecordingEngine(fail=True)).execute(
            ["-U", "host:1", "-s", str(source_tree), str(data_root)]
        )

        assert outcome.exit_code == ExitCodes.FAILURE
        assert outcome.stage("run-index").status == TaskStatus.FAILED
        assert outcome.stage("push-configuration") is None
        assert sender.calls == []
        assert any("index store corrupted" in m for m in log_messages)

    def test_write_failure_is_fatal(self, make_orchestrator, engine, source_tree, data_root, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        outcome = make_orchestrator().execute([
            "-W", str(blocker / "config.json"), "-s", str(source_tree), str(data_root),
        ])

        assert outcome.exit_code == ExitCodes.FAILURE
        assert outcome.stage("write-configuration").status == TaskStatus.FAILED
        assert engine.calls == []


class TestProjectsAndPersistence:

    def test_projects_written_to_file(self, make_orchestrator, source_tree, data_root, tmp_path):
        out = tmp_path / "out" / "config.json"
        outcome = make_orchestrator().execute([
            "-P", "-p", "/beta", "-W", str(out), "-n", "-s", str(source_tree), str(data_root),
        ])

        assert outcome.exit_code == ExitCodes.SUCCESS
        saved = json.loads(out.read_text())
        assert [p["path"] for p in saved["projects"]] == ["/alpha", "/beta", "/gamma"]
        assert saved["default_project"] == "/beta"
        assert saved["data_root"] == str(data_root.resolve())
        assert saved["source_root"] == str(source_tree.resolve())

    def test_unmatched_default_is_silent(self, make_orchestrator, source_tree, data_root, log_messages):
        outcome = make_orchestrator().execute([
            "-P", "-p", "/nope", "-n", "-s", str(source_tree), str(data_root),
        ])
        assert outcome.exit_code == ExitCodes.SUCCESS
        assert outcome.config.default_project is None
        assert not any("/nope" in m for m in log_messages)

    def test_rebuild_keeps_previous_default(self, make_orchestrator, source_tree, data_root):
        initial = RuntimeConfiguration(
            projects=[Project("gamma", "/gamma", "gamma")],
            default_project=Project("gamma", "/gamma", "gamma"),
        )
        outcome = make_orchestrator(initial_config=initial).execute(
            ["-P", "-n", "-s", str(source_tree), str(data_root)]
        )
        assert outcome.config.default_project.path == "/gamma"
        assert len(outcome.config.projects) == 3
        assert initial.projects == [Project("gamma", "/gamma", "gamma")]

    def test_discovered_repositories_persisted(self, make_orchestrator, source_tree, data_root, tmp_path):
        (source_tree / "alpha" / ".git").mkdir()
        out = tmp_path / "config.json"

        make_orchestrator().execute([
            "-S", "-W", str(out), "-n", "-s", str(source_tree), str(data_root),
        ])

        saved = json.loads(out.read_text())
        assert saved["repositories"] == {
            "/alpha": {"type": "git", "directory": str(source_tree.resolve() / "alpha")},
        }


class TestRecoveredStages:
    """History and push failures are per unit and never fail the run."""

    def test_history_failures_isolated(self, make_orchestrator, engine, source_tree, data_root):
        initial = RuntimeConfiguration(repositories={
            "/r1": StubRepository("/r1", fail=True),
            "/r2": StubRepository("/r2"),
            "/r3": StubRepository("/r3", fail=True),
        })

        outcome = make_orchestrator(initial_config=initial, history_workers=2).execute(
            ["-H", "-s", str(source_tree), str(data_root)]
        )

        assert outcome.exit_code == ExitCodes.SUCCESS
        assert [r.repository for r in outcome.history.failed] == ["/r1", "/r3"]
        stage = outcome.stage("refresh-history")
        assert stage.status == TaskStatus.FAILED
        assert stage.detail == "2 of 3 repositories failed"
        assert (data_root / "historycache" / cache_file_name("/r2")).exists()
        assert len(engine.calls) == 1

    def test_malformed_target_does_not_stop_later_targets(self, make_orchestrator, sender, source_tree, data_root):
        outcome = make_orchestrator().execute([
            "-U", "a:b:c", "-U", "indexhost:2424", "-n", "-s", str(source_tree), str(data_root),
        ])

        assert outcome.exit_code == ExitCodes.SUCCESS
        assert [p.success for p in outcome.pushes] == [False, True]
        assert [(h, p) for h, p, _ in sender.calls] == [("indexhost", 2424)]
        assert outcome.stage("push-configuration").status == TaskStatus.FAILED

    def test_push_reaches_listener(self, source_tree, data_root, config_listener):
        host, port, payloads = config_listener
        outcome = Orchestrator(
            engine_factory=lambda c: RecordingEngine(),
            tag_tool_check=ok_tag_tool,
        ).execute(["-P", "-U", f"{host}:{port}", "-s", str(source_tree), str(data_root)])

        assert outcome.exit_code == ExitCodes.SUCCESS
        received = json.loads(payloads.get(timeout=5))
        assert [p["path"] for p in received["projects"]] == ["/alpha", "/beta", "/gamma"]


class TestMaintenance:

    def test_list(self, make_orchestrator, data_root, capsys):
        engine = RecordingEngine(files=["a/b.c", "d.txt"])
        outcome = make_orchestrator(engine_factory=lambda c: engine).execute(["-l", str(data_root)])

        assert outcome.exit_code == ExitCodes.SUCCESS
        assert outcome.executed == ["maintenance-list"]
        assert engine.calls == [("list", data_root)]
        assert capsys.readouterr().out.splitlines() == ["a/b.c", "d.txt"]

    def test_tokens(self, make_orchestrator, data_root, capsys):
        engine = RecordingEngine(tokens=[("often", 9)])
        make_orchestrator(engine_factory=lambda c: engine).execute(["-t", str(data_root)])
        assert capsys.readouterr().out.splitlines() == ["often 9"]

    def test_dump_unique_terms(self, make_orchestrator, data_root, capsys):
        engine = RecordingEngine(unique=[("rare", "a/b.c"), ("solo", "d.txt")])
        outcome = make_orchestrator(engine_factory=lambda c: engine).execute(["-D", str(data_root)])

        assert outcome.exit_code == ExitCodes.SUCCESS
        assert outcome.executed == ["maintenance-dump"]
        assert engine.calls == [("dump", data_root)]
        assert capsys.readouterr().out.splitlines() == ["rare a/b.c", "solo d.txt"]

    def test_later_flags_never_reach_the_run(self, make_orchestrator, engine, source_tree, data_root):
        outcome = make_orchestrator().execute(
            ["-l", str(data_root), "-U", "host:1", "-s", str(source_tree), str(data_root)]
        )
        assert outcome.executed == ["maintenance-list"]
        assert outcome.options.config_hosts == []
        assert engine.calls == [("list", data_root)]

    def test_maintenance_skips_bootstrap(self, make_orchestrator, engine, tmp_path):
        def never(config):
            raise AssertionError("tag tool should not be checked")

        outcome = make_orchestrator(tag_tool_check=never).execute(["-O", str(tmp_path)])
        assert outcome.exit_code == ExitCodes.SUCCESS
        assert engine.calls == [("optimize", tmp_path)]

    def test_missing_index_fails(self, data_root):
        outcome = Orchestrator().execute(["-l", str(data_root)])
        assert outcome.exit_code == ExitCodes.FAILURE
        assert outcome.stage("maintenance-list").status == TaskStatus.FAILED


class TestRealEngine:

    def test_rerun_is_idempotent(self, source_tree, data_root):
        orchestrator = Orchestrator(tag_tool_check=ok_tag_tool)
        argv = ["-s", str(source_tree), str(data_root)]

        first_outcome = orchestrator.execute(argv)
        assert first_outcome.exit_code == ExitCodes.SUCCESS
        first = IndexEngine().list_files(data_root)
        second_outcome = orchestrator.execute(argv)
        assert second_outcome.exit_code == ExitCodes.SUCCESS

        assert IndexEngine().list_files(data_root) == first
        assert first_outcome.config.to_dict() == second_outcome.config.to_dict()
        assert (data_root / "SRC_ROOT").read_text().strip() == str(source_tree.resolve())

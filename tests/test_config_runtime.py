"""Tests for the runtime configuration object and its JSON form."""

import json
from pathlib import Path

import pytest

from sourcedex.config_runtime import RuntimeConfiguration, load_configuration, normalize_url_prefix
from sourcedex.exceptions import ConfigurationError
from sourcedex.history.repository import GitRepository, SubversionRepository
from sourcedex.projects import Project
from sourcedex.utils.constants import DEFAULT_INDEX_WORD_LIMIT, DEFAULT_URL_PREFIX


class TestDefaults:

    def test_defaults(self):
        config = RuntimeConfiguration()
        assert config.source_root is None
        assert config.data_root is None
        assert config.verbose is False
        assert config.generate_html is True
        assert config.url_prefix == DEFAULT_URL_PREFIX
        assert config.index_word_limit == DEFAULT_INDEX_WORD_LIMIT
        assert ".git" in config.ignore_patterns

    def test_ctags_from_environment(self, monkeypatch):
        monkeypatch.setenv("SOURCEDEX_CTAGS", "/env/ctags")
        assert RuntimeConfiguration().ctags == "/env/ctags"

    def test_copy_is_independent(self):
        config = RuntimeConfiguration()
        clone = config.copy()
        clone.ignore_patterns.add("only-in-clone")
        clone.projects.append(Project("a", "/a", "a"))
        assert "only-in-clone" not in config.ignore_patterns
        assert config.projects == []


class TestNormalizeUrlPrefix:

    def test_trailing_slash_not_doubled(self):
        assert normalize_url_prefix("/opengrok/") == "/opengrok/s?"

    def test_relative_gets_leading_slash(self):
        assert normalize_url_prefix("opengrok") == "/opengrok/s?"


class TestSerialization:

    def test_full_configuration_survives_save_and_load(self, tmp_path):
        alpha = Project("alpha", "/alpha", "alpha")
        config = RuntimeConfiguration(
            source_root=Path("/src"),
            data_root=Path("/data"),
            verbose=True,
            generate_html=False,
            quick_context_scan=False,
            ctags="/usr/bin/ctags",
            url_prefix="/grok/s?",
            index_word_limit=1234,
            ignore_patterns={"*.o", "build"},
            repositories={
                "/alpha": GitRepository("/alpha", Path("/src/alpha")),
                "/beta": SubversionRepository("/beta", Path("/src/beta")),
            },
            projects=[alpha, Project("beta", "/beta", None)],
            default_project=alpha,
        )
        path = tmp_path / "config.json"
        path.write_text(config.to_json())

        loaded = load_configuration(path)

        assert loaded == config
        assert loaded.default_project is loaded.projects[0]

    def test_json_keys_sorted(self):
        data = json.loads(RuntimeConfiguration().to_json())
        assert list(data) == sorted(data)

    def test_missing_keys_keep_defaults(self):
        config = RuntimeConfiguration.from_dict({"verbose": True})
        assert config.verbose is True
        assert config.generate_html is True
        assert config.url_prefix == DEFAULT_URL_PREFIX

    def test_unknown_keys_ignored(self):
        config = RuntimeConfiguration.from_dict({"verbose": True, "history_reader": "fast"})
        assert config.verbose is True

    def test_unmatched_default_project_is_none(self):
        config = RuntimeConfiguration.from_dict({
            "projects": [{"name": "a", "path": "/a", "description": "a"}],
            "default_project": "/missing",
        })
        assert config.default_project is None

    @pytest.mark.parametrize("data", [
        {"verbose": "yes"},
        {"ctags": 42},
        {"source_root": ["/src"]},
        {"index_word_limit": 0},
        {"index_word_limit": True},
        {"ignore_patterns": "*.o"},
        {"repositories": {"/a": {"type": "cvs", "directory": "/a"}}},
        {"repositories": {"/a": {"type": "git"}}},
        {"projects": [{"path": "/a"}]},
        ["not", "an", "object"],
    ])
    def test_wrong_types_rejected(self, data):
        with pytest.raises(ConfigurationError):
            RuntimeConfiguration.from_dict(data)

    def test_invalid_json_rejected(self):
        with pytest.raises(ConfigurationError):
            RuntimeConfiguration.from_json("{not json")

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_configuration(tmp_path / "absent.json")

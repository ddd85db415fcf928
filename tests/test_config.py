"""Unit tests for secresearch.config — Pydantic configuration models."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from pydantic import ValidationError

from secresearch.config import (
    AppConfig,
    NewsSourceConfig,
    SearchOptions,
    SourceConfig,
    apply_env_credentials,
    find_config,
    load_config,
)

# ── SourceConfig ─────────────────────────────────────────────────────────────


class TestSourceConfig:
    def test_defaults(self):
        s = SourceConfig()
        assert s.enabled is True
        assert s.api_key is None
        assert s.limit == 20
        assert s.timeout == 10.0

    def test_blank_key_is_none(self):
        assert SourceConfig(api_key="   ").api_key is None
        assert not SourceConfig(api_key="").has_credential

    @patch.dict(os.environ, {"MY_KEY": "secret"})
    def test_env_reference(self):
        assert SourceConfig(api_key="$MY_KEY").api_key == "secret"

    @patch.dict(os.environ, {}, clear=True)
    def test_unset_env_reference(self):
        assert SourceConfig(api_key="$MISSING").api_key is None

    @pytest.mark.parametrize("limit", [0, 101])
    def test_limit_bounds(self, limit):
        with pytest.raises(ValidationError):
            SourceConfig(limit=limit)

    @pytest.mark.parametrize("timeout", [0, -1, 61])
    def test_timeout_bounds(self, timeout):
        with pytest.raises(ValidationError):
            SourceConfig(timeout=timeout)

    def test_interval_follows_credential(self):
        s = SourceConfig(interval_with_key=0.5, interval_without_key=5.0)
        assert s.interval == 5.0
        assert s.model_copy(update={"api_key": "k"}).interval == 0.5

    def test_negative_interval_rejected(self):
        with pytest.raises(ValidationError):
            SourceConfig(interval_without_key=-1)


# ── AppConfig ────────────────────────────────────────────────────────────────


class TestAppConfig:
    def test_per_source_defaults(self):
        c = AppConfig()
        assert (c.nvd.interval_with_key, c.nvd.interval_without_key) == (0.6, 6.0)
        assert (c.github.interval_with_key, c.github.interval_without_key) == (2.0, 20.0)
        assert (c.vulners.interval_with_key, c.vulners.interval_without_key) == (0.5, 5.0)
        assert c.github.limit == 15
        assert c.news.limit == 10
        assert c.news.feeds == []

    def test_partial_section_keeps_defaults(self):
        c = AppConfig.model_validate({"nvd": {"api_key": "k"}})
        assert c.nvd.api_key == "k"
        assert c.nvd.interval_with_key == 0.6
        assert c.nvd.interval_without_key == 6.0

    def test_credentials(self):
        c = AppConfig.model_validate({"github": {"api_key": "ghp_x"}})
        assert c.credentials() == {"nvd": False, "github": True, "vulners": False}

    def test_news_feeds(self):
        c = AppConfig.model_validate({"news": {"feeds": [{"name": "A", "url": "https://a.example/feed"}]}})
        assert isinstance(c.news, NewsSourceConfig)
        assert c.news.feeds[0].name == "A"

    def test_invalid_feed(self):
        with pytest.raises(ValidationError):
            AppConfig.model_validate({"news": {"feeds": [{"name": "", "url": "x"}]}})

    def test_feed_names_unique_ignoring_case(self):
        feeds = [
            {"name": "BleepingComputer", "url": "https://a.example/feed"},
            {"name": "bleepingcomputer", "url": "https://b.example/feed"},
        ]
        with pytest.raises(ValidationError, match="duplicate news feed name"):
            AppConfig.model_validate({"news": {"feeds": feeds}})

    def test_search_options(self):
        assert SearchOptions().summary_max_length == 300
        assert SearchOptions().history_size == 10
        with pytest.raises(ValidationError):
            SearchOptions(summary_max_length=5)


# ── apply_env_credentials ────────────────────────────────────────────────────


class TestEnvCredentials:
    @patch.dict(os.environ, {"NVD_API_KEY": "nvd-k", "VULNERS_API_KEY": "v-k", "GITHUB_TOKEN": "ghp_t"}, clear=True)
    def test_fills_missing(self):
        c = apply_env_credentials(AppConfig())
        assert c.nvd.api_key == "nvd-k"
        assert c.vulners.api_key == "v-k"
        assert c.github.api_key == "ghp_t"

    @patch.dict(os.environ, {"GH_TOKEN": "ghp_gh"}, clear=True)
    def test_gh_token_fallback(self):
        assert apply_env_credentials(AppConfig()).github.api_key == "ghp_gh"

    @patch.dict(os.environ, {"NVD_API_KEY": "from-env"}, clear=True)
    def test_file_value_wins(self):
        c = apply_env_credentials(AppConfig.model_validate({"nvd": {"api_key": "from-file"}}))
        assert c.nvd.api_key == "from-file"

    @patch.dict(os.environ, {"NVD_API_KEY": "  "}, clear=True)
    def test_blank_env_ignored(self):
        assert apply_env_credentials(AppConfig()).nvd.api_key is None


# ── load_config / find_config ────────────────────────────────────────────────


class TestLoadConfig:
    @patch.dict(os.environ, {}, clear=True)
    def test_none_gives_defaults(self):
        c = load_config(None)
        assert c.nvd.enabled
        assert not any(c.credentials().values())

    @patch.dict(os.environ, {}, clear=True)
    def test_yaml(self, tmp_path: Path):
        path = tmp_path / "secresearch.yaml"
        path.write_text(yaml.safe_dump({"github": {"api_key": "ghp_file", "limit": 5}, "vulners": {"enabled": False}}))
        c = load_config(path)
        assert c.github.api_key == "ghp_file"
        assert c.github.limit == 5
        assert c.vulners.enabled is False

    @patch.dict(os.environ, {}, clear=True)
    def test_json(self, tmp_path: Path):
        path = tmp_path / "secresearch.json"
        path.write_text(json.dumps({"search": {"history_size": 3}}))
        assert load_config(path).search.history_size == 3

    @patch.dict(os.environ, {}, clear=True)
    def test_empty_yaml(self, tmp_path: Path):
        path = tmp_path / "secresearch.yaml"
        path.write_text("")
        assert load_config(path).nvd.limit == 20

    def test_invalid_rejected(self, tmp_path: Path):
        path = tmp_path / "secresearch.yaml"
        path.write_text(yaml.safe_dump({"nvd": {"limit": 1000}}))
        with pytest.raises(ValidationError):
            load_config(path)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")


class TestFindConfig:
    def test_prefers_yaml(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "secresearch.json").write_text("{}")
        (tmp_path / "secresearch.yaml").write_text("")
        assert find_config() == Path("secresearch.yaml")

    def test_none(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert find_config() is None

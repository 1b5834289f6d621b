"""Unit tests for Settings and the YAML config loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from suggestion_engine.config.loader import _deep_merge, load_config
from suggestion_engine.config.settings import Settings


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for var in ("RESULT_SIZE", "TAG_MIN_SCORE", "OPENAI_API_KEY", "ANTHROPIC_API_KEY"):
            monkeypatch.delenv(var, raising=False)
        settings = Settings(_env_file=None)
        assert settings.result_size == 12
        assert settings.tag_min_score == 0.13
        assert settings.get_available_llm_providers() == []

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RESULT_SIZE", "5")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "k")
        settings = Settings(_env_file=None)
        assert settings.result_size == 5
        assert settings.get_available_llm_providers() == ["anthropic"]


class TestLoadConfig:
    def test_repo_config_loads(self, project_root: Path) -> None:
        cfg = load_config(str(project_root / "config" / "config.yaml"), settings=Settings(_env_file=None))
        assert cfg["providers"]["tag_overlap"]["source_tag_count"] == 4
        assert "ost" in cfg["providers"]["same_developer"]["title_denylist"]
        assert cfg["providers"]["facet_embedding"]["facets"] == ["aesthetic", "mechanics", "narrative"]
        assert len(cfg["vibe_conflicts"]) == 2
        assert cfg["worker"]["stale_after_seconds"] == 0

    def test_env_values_override_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("engine:\n  result_size: 99\nproviders:\n  tag_overlap:\n    pool_size: 7\n")
        cfg = load_config(str(path), settings=Settings(_env_file=None, result_size=4, tag_min_score=0.2))
        assert cfg["engine"]["result_size"] == 4
        assert cfg["providers"]["tag_overlap"] == {"pool_size": 7, "min_score": 0.2}

    def test_yaml_value_wins_over_unset_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        for var in ("RESULT_SIZE", "TAG_MIN_SCORE", "STREAM_MAX_NO_CHANGE"):
            monkeypatch.delenv(var, raising=False)
        path = tmp_path / "config.yaml"
        path.write_text(
            "engine:\n  result_size: 20\n"
            "providers:\n  tag_overlap:\n    min_score: 0.2\n"
            "stream:\n  max_no_change: 5\n"
        )
        cfg = load_config(str(path), settings=Settings(_env_file=None))
        assert cfg["engine"]["result_size"] == 20
        assert cfg["providers"]["tag_overlap"]["min_score"] == 0.2
        assert cfg["stream"]["max_no_change"] == 5
        # Keys the YAML leaves out still get Settings defaults.
        assert cfg["engine"]["provider_timeout"] == Settings(_env_file=None).provider_timeout

    def test_env_var_still_beats_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STREAM_MAX_NO_CHANGE", "9")
        monkeypatch.delenv("RESULT_SIZE", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("engine:\n  result_size: 20\nstream:\n  max_no_change: 5\n")
        cfg = load_config(str(path), settings=Settings(_env_file=None))
        assert cfg["stream"]["max_no_change"] == 9
        assert cfg["engine"]["result_size"] == 20

    def test_missing_file_gives_env_only_config(self, tmp_path: Path) -> None:
        cfg = load_config(str(tmp_path / "absent.yaml"), settings=Settings(_env_file=None))
        assert cfg["rate_limits"]["steamspy"] == 1.1
        assert "vibe_conflicts" not in cfg


class TestDeepMerge:
    def test_nested(self) -> None:
        base = {"a": {"b": 1, "c": 2}, "d": 3}
        _deep_merge(base, {"a": {"c": 20}, "e": 5})
        assert base == {"a": {"b": 1, "c": 20}, "d": 3, "e": 5}

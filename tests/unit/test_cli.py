"""Unit tests for the suggestion engine CLI."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from suggestion_engine.cli.suggestions import _build_parser, main
from suggestion_engine.config.settings import Settings
from suggestion_engine.main import build_components
from suggestion_engine.providers.catalog.memory_catalog import InMemoryCatalogProvider

# ======================================================================
# Shared helpers
# ======================================================================


def _components_factory(tmp_path: Path, catalog_seed_path: Path):
    """Return a stand-in for ``_components`` that wires a seeded catalog and temp DB."""
    settings = Settings(
        _env_file=None,
        openai_api_key="",
        anthropic_api_key="",
        suggestions_db_path=str(tmp_path / "suggestions.db"),
    )

    def factory():
        catalog = InMemoryCatalogProvider.from_json_file(catalog_seed_path)
        return build_components(settings, {}, catalog=catalog), {}

    return factory


# ======================================================================
# Parser
# ======================================================================


class TestParser:
    def test_suggest_args(self) -> None:
        args = _build_parser().parse_args(["suggest", "367520", "--json"])
        assert args.command == "suggest"
        assert args.appid == 367520
        assert args.json is True

    def test_enqueue_retry_flag(self) -> None:
        args = _build_parser().parse_args(["enqueue", "5", "--retry"])
        assert args.retry is True

    def test_generate_missing_defaults(self) -> None:
        args = _build_parser().parse_args(["generate-missing"])
        assert args.limit is None
        assert args.run is False

    def test_non_numeric_appid_rejected(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["suggest", "abc"])

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()


# ======================================================================
# Handlers
# ======================================================================


class TestCommands:
    def test_suggest_json(self, tmp_path: Path, catalog_seed_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with patch(
            "suggestion_engine.cli.suggestions._components",
            _components_factory(tmp_path, catalog_seed_path),
        ):
            code = main(["suggest", "367520", "--json"])

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["appid"] == 367520
        ids = [row["targetId"] for row in output["suggestions"]]
        assert 1030300 in ids
        assert 1020 not in ids  # soundtrack
        assert 367520 not in ids
        assert all(row["reason"] for row in output["suggestions"])
        # Nothing was written to disk.
        assert not (tmp_path / "suggestions.db").exists()

    def test_suggest_text(self, tmp_path: Path, catalog_seed_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with patch(
            "suggestion_engine.cli.suggestions._components",
            _components_factory(tmp_path, catalog_seed_path),
        ):
            assert main(["suggest", "367520"]) == 0
        out = capsys.readouterr().out
        assert "Suggestions for Hollow Knight (367520)" in out
        assert "Hollow Knight: Silksong" in out

    def test_suggest_unknown_game(self, tmp_path: Path, catalog_seed_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with patch(
            "suggestion_engine.cli.suggestions._components",
            _components_factory(tmp_path, catalog_seed_path),
        ):
            assert main(["suggest", "1"]) == 1
        assert "not found" in capsys.readouterr().err

    def test_enqueue_then_generate_missing(
        self, tmp_path: Path, catalog_seed_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        factory = _components_factory(tmp_path, catalog_seed_path)
        with patch("suggestion_engine.cli.suggestions._components", factory):
            assert main(["enqueue", "367520"]) == 0
            first = json.loads(capsys.readouterr().out)
            assert main(["enqueue", "367520"]) == 0
            second = json.loads(capsys.readouterr().out)
            assert main(["generate-missing", "--limit", "2", "--run"]) == 0
            missing_out = capsys.readouterr().out

        assert first["status"] == "queued"
        assert first["created"] is True
        assert second["created"] is False
        assert second["jobId"] == first["jobId"]
        assert "Enqueued 2 games" in missing_out
        # The earlier queued job runs too.
        assert "Ran 3 jobs" in missing_out

"""Tests for the palimpsest command line."""

import json
import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from palimpsest.__main__ import cli


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers that setup_logging attaches during a command."""
    yield
    logger = logging.getLogger("palimpsest")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the home directory at an empty temp directory."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A config that keeps the vault and logs under tmp_path."""
    path = tmp_path / "config.yaml"
    path.write_text(f"vault_path: {tmp_path / 'vault'}\nlog_dir: {tmp_path / 'logs'}\n")
    return path


@pytest.fixture
def claude_export(tmp_path: Path) -> Path:
    """A Claude.ai export with two related conversations."""
    path = tmp_path / "claude.json"
    path.write_text(
        json.dumps(
            [
                {
                    "uuid": f"w{i}",
                    "name": f"Rust question {i}",
                    "created_at": "2025-04-01T00:00:00Z",
                    "chat_messages": [
                        {"sender": "human", "text": "Why does cargo fail to build?"},
                        {"sender": "assistant", "text": "A missing crate feature."},
                    ],
                }
                for i in (1, 2)
            ]
        )
    )
    return path


def _invoke(config_file: Path, *args: str):
    return CliRunner().invoke(cli, ["--config", str(config_file), *args])


class TestIngestCommand:
    """Tests for `palimpsest ingest`."""

    def test_ingests_export(self, config_file: Path, claude_export: Path, tmp_path: Path) -> None:
        result = _invoke(config_file, "ingest", "--source", "claude-web", "--input", str(claude_export))

        assert result.exit_code == 0, result.output
        assert "Wrote 2 claude-web conversations" in result.output
        assert len(list((tmp_path / "vault").glob("*.md"))) == 2
        assert (tmp_path / "logs" / "palimpsest.log").exists()

    def test_second_ingest_reports_skips(self, config_file: Path, claude_export: Path) -> None:
        _invoke(config_file, "ingest", "--source", "claude-web", "--input", str(claude_export))
        result = _invoke(config_file, "ingest", "--source", "claude-web", "--input", str(claude_export))

        assert result.exit_code == 0, result.output
        assert "Wrote 0 claude-web conversations" in result.output
        assert "(2 already present)" in result.output

    def test_export_without_input_is_usage_error(self, config_file: Path) -> None:
        result = _invoke(config_file, "ingest", "--source", "chatgpt")

        assert result.exit_code == 2
        assert "input file is required" in result.output

    def test_malformed_export_fails_cleanly(self, config_file: Path, tmp_path: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text("{nope")

        result = _invoke(config_file, "ingest", "--source", "chatgpt", "--input", str(bad))

        assert result.exit_code == 1
        assert "not valid JSON" in result.output

    def test_unknown_source_rejected(self, config_file: Path) -> None:
        result = _invoke(config_file, "ingest", "--source", "bard")
        assert result.exit_code == 2

    def test_vault_option_overrides_config(
        self, config_file: Path, claude_export: Path, tmp_path: Path
    ) -> None:
        other = tmp_path / "other-vault"
        result = _invoke(
            config_file, "ingest", "--source", "claude-web", "--input", str(claude_export), "--vault", str(other)
        )

        assert result.exit_code == 0, result.output
        assert len(list(other.glob("*.md"))) == 2


class TestTagAndBacklinkCommands:
    """Tests for `palimpsest tag` and `palimpsest backlink`."""

    def test_tag_reports_count(self, config_file: Path, claude_export: Path) -> None:
        _invoke(config_file, "ingest", "--source", "claude-web", "--input", str(claude_export))

        result = _invoke(config_file, "tag")

        assert result.exit_code == 0, result.output
        assert "Updated tags in 0 files" in result.output

    def test_backlink_reports_count(self, config_file: Path, claude_export: Path, tmp_path: Path) -> None:
        _invoke(config_file, "ingest", "--source", "claude-web", "--input", str(claude_export))

        result = _invoke(config_file, "backlink")

        assert result.exit_code == 0, result.output
        assert "Added backlinks to 2 files" in result.output
        for path in (tmp_path / "vault").glob("*.md"):
            assert "- [[Rust question" in path.read_text(encoding="utf-8")

    @pytest.mark.parametrize("command", ["tag", "backlink"])
    def test_missing_vault(self, config_file: Path, command: str) -> None:
        result = _invoke(config_file, command)

        assert result.exit_code == 1
        assert "Vault not found" in result.output


class TestSyncCommand:
    """Tests for `palimpsest sync`."""

    def test_sync(self, config_file: Path, claude_export: Path, home: Path) -> None:
        result = _invoke(config_file, "sync", "--claude-web", str(claude_export))

        assert result.exit_code == 0, result.output
        assert "Sync complete! 2 conversations written, 2 files backlinked." in result.output

    def test_sync_with_nothing_to_do(self, config_file: Path, home: Path, tmp_path: Path) -> None:
        result = _invoke(config_file, "sync")

        assert result.exit_code == 0, result.output
        assert "Sync complete! 0 conversations written, 0 files backlinked." in result.output
        assert (tmp_path / "vault").is_dir()

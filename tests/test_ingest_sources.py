"""Tests for input discovery and export reading."""

import zipfile
from pathlib import Path

import pytest

from palimpsest.ingest.parsers import MalformedExportError
from palimpsest.ingest.sources import (
    claude_code_roots,
    codex_roots,
    default_roots,
    find_session_files,
    read_export,
)


class TestDefaultRoots:
    """Tests for default session roots."""

    def test_claude_code_root(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        assert claude_code_roots() == [tmp_path / ".claude" / "projects"]

    def test_codex_roots(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        assert codex_roots() == [
            tmp_path / ".codex" / "sessions",
            tmp_path / ".codex" / "archived_sessions",
        ]

    def test_export_kinds_have_no_roots(self) -> None:
        assert default_roots("chatgpt") == []
        assert default_roots("claude-web") == []


class TestFindSessionFiles:
    """Tests for find_session_files."""

    def test_finds_nested_jsonl_files(self, tmp_path: Path) -> None:
        """Session logs are found recursively, in sorted order."""
        root = tmp_path / "sessions"
        (root / "2026" / "01" / "22").mkdir(parents=True)
        (root / "2026" / "01" / "22" / "rollout-b.jsonl").write_text("{}\n")
        (root / "2026" / "01" / "22" / "rollout-a.jsonl").write_text("{}\n")
        (root / "notes.txt").write_text("ignore me")

        files = find_session_files([root])

        assert [f.name for f in files] == ["rollout-a.jsonl", "rollout-b.jsonl"]

    def test_accepts_file_roots_and_skips_missing(self, tmp_path: Path) -> None:
        """A root can be a single log; missing roots are ignored."""
        log = tmp_path / "one.jsonl"
        log.write_text("{}\n")

        files = find_session_files([log, tmp_path / "missing", log])

        assert files == [log]

    def test_no_roots(self) -> None:
        assert find_session_files([]) == []


class TestReadExport:
    """Tests for read_export."""

    def test_reads_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "conversations.json"
        path.write_bytes(b"[]")
        assert read_export(path) == b"[]"

    def test_reads_member_from_zip(self, tmp_path: Path) -> None:
        """The conversations.json member is extracted, even when nested."""
        path = tmp_path / "export.zip"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("user.json", "{}")
            archive.writestr("export-2025/conversations.json", '[{"id": "x"}]')

        assert read_export(path) == b'[{"id": "x"}]'

    def test_zip_without_member_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "export.zip"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("chat.html", "<html></html>")

        with pytest.raises(MalformedExportError, match="conversations.json"):
            read_export(path)

    def test_corrupt_zip_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "export.zip"
        path.write_bytes(b"not a zip archive")

        with pytest.raises(MalformedExportError):
            read_export(path)

    def test_missing_file_raises_oserror(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            read_export(tmp_path / "missing.json")

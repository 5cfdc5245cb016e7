"""Discovery and reading of raw conversation inputs.

Session logs (Claude Code, Codex) are discovered under the user's home
directory; exports (ChatGPT, Claude.ai) are given explicitly as a
conversations.json file or the zip archive the product hands out.
"""

import zipfile
from pathlib import Path

from palimpsest.ingest.parsers import MalformedExportError
from palimpsest.logging import get_logger

logger = get_logger("sources")

EXPORT_MEMBER = "conversations.json"

# Kinds whose inputs are discovered locally rather than passed in
SESSION_SOURCES = ("claude-code", "codex")


def claude_code_roots() -> list[Path]:
    """Default Claude Code session root: ~/.claude/projects."""
    return [Path.home() / ".claude" / "projects"]


def codex_roots() -> list[Path]:
    """Default Codex session roots: ~/.codex/sessions and ~/.codex/archived_sessions."""
    return [
        Path.home() / ".codex" / "sessions",
        Path.home() / ".codex" / "archived_sessions",
    ]


def default_roots(kind: str) -> list[Path]:
    """Default session roots for a session-log source."""
    if kind == "claude-code":
        return claude_code_roots()
    if kind == "codex":
        return codex_roots()
    return []


def find_session_files(roots: list[Path]) -> list[Path]:
    """Find JSONL session logs under the given roots.

    A root may itself be a .jsonl file. Missing roots are skipped.
    """
    paths: list[Path] = []
    for root in roots:
        if root.is_file() and root.suffix == ".jsonl":
            paths.append(root)
        elif root.is_dir():
            paths.extend(p for p in root.glob("**/*.jsonl") if p.is_file())
        else:
            logger.debug("Session root not found: path=%s", root)

    return sorted(set(paths))


def read_export(path: Path) -> bytes:
    """Read the raw bytes of an export file.

    Zip archives are opened and their conversations.json member is returned.

    Raises:
        MalformedExportError: If the archive is unreadable or lacks conversations.json
        OSError: If the file cannot be read
    """
    if path.suffix.lower() != ".zip":
        return path.read_bytes()

    try:
        with zipfile.ZipFile(path) as archive:
            member = next(
                (name for name in archive.namelist() if Path(name).name == EXPORT_MEMBER),
                None,
            )
            if member is None:
                raise MalformedExportError(f"No {EXPORT_MEMBER} found in archive: {path}")
            return archive.read(member)
    except zipfile.BadZipFile as e:
        raise MalformedExportError(f"Unreadable archive: {path}: {e}") from e

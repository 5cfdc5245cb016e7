"""Base parser interface, registry, and shared extraction helpers."""

import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Any, Iterator

from palimpsest.models import Conversation, Message

__all__ = [
    "Conversation",
    "MalformedExportError",
    "Message",
    "Parser",
    "ParserRegistry",
    "UnknownSourceError",
    "derive_title",
    "iter_jsonl",
    "load_json",
    "parse_timestamp",
    "render_thinking",
    "split_content",
    "text_field",
    "unwrap_conversations",
]

TITLE_MAX_LENGTH = 60


class MalformedExportError(ValueError):
    """The top-level input could not be parsed at all."""


class UnknownSourceError(KeyError):
    """No parser is registered for the requested source."""


def load_json(raw: bytes) -> Any:
    """Decode a whole JSON document, raising MalformedExportError on failure."""
    try:
        return json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise MalformedExportError(f"Export is not valid UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise MalformedExportError(f"Export is not valid JSON: {e}") from e


def unwrap_conversations(data: Any, field: str = "conversations") -> list[Any]:
    """Return the list of conversation objects from an export.

    Exports come either as a bare array, or as an object wrapping that array
    under ``field``. Anything else is a malformed export.
    """
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get(field), list):
        return data[field]
    raise MalformedExportError(
        f"Expected a list of conversations or an object with a '{field}' list, "
        f"got {type(data).__name__}"
    )


def iter_jsonl(raw: bytes) -> Iterator[dict[str, Any]]:
    """Yield each JSON object in a line-delimited log.

    Blank lines, malformed lines, and lines that are not JSON objects are
    skipped.
    """
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedExportError(f"Session log is not valid UTF-8: {e}") from e

    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            # Skip malformed lines
            continue
        if isinstance(entry, dict):
            yield entry


def split_content(content: Any) -> tuple[str | None, list[dict[str, Any]]]:
    """Classify message content as a plain string or a list of typed blocks.

    Returns:
        Tuple of (text, blocks). Exactly one side is populated; unknown
        shapes yield (None, []).
    """
    if isinstance(content, str):
        return content, []
    if isinstance(content, list):
        return None, [block for block in content if isinstance(block, dict)]
    return None, []


def text_field(value: Any) -> str | None:
    """Return a non-empty string field, or None for anything else."""
    if isinstance(value, str) and value:
        return value
    return None


def render_thinking(thinking: str) -> str:
    """Render a thinking block as a quoted aside."""
    lines = f"*thinking:* {thinking.strip()}".splitlines()
    return "\n".join(f"> {line}" if line else ">" for line in lines)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 string or a Unix epoch number to an aware datetime.

    Args:
        value: ISO 8601 timestamp (e.g., "2026-01-26T00:38:34.590Z") or epoch seconds

    Returns:
        UTC-aware datetime, or None if missing or unparseable
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str) and value:
        try:
            # Handle ISO 8601 with optional microseconds and Z suffix
            if value.endswith("Z"):
                value = value[:-1] + "+00:00"
            dt = datetime.fromisoformat(value)
        except ValueError:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt

    return None


def derive_title(messages: list[Message], cwd: str | None = None) -> str:
    """Build a short title from the first user message of a session.

    Falls back to the first message when no user message exists. When the
    working directory is known, the title is prefixed with ``[project]``.
    """
    first = next((m for m in messages if m.role == "user"), messages[0])
    text = first.content.strip()
    title = " ".join(text[:TITLE_MAX_LENGTH].splitlines())
    if len(text) > TITLE_MAX_LENGTH:
        title += "..."

    if cwd:
        project = PurePath(cwd.rstrip("/\\")).name
        if project:
            title = f"[{project}] {title}"
    return title


class Parser(ABC):
    """Base class for export parsers.

    Subclasses must set the `source_name` class attribute and implement
    the `parse()` method to convert source-specific formats into
    Conversation instances.
    """

    source_name: str

    @abstractmethod
    def parse(self, raw: bytes, name: str = "") -> list[Conversation]:
        """Parse raw export bytes into conversations.

        Malformed individual conversations or log lines are skipped; a
        malformed top-level input raises MalformedExportError.

        Args:
            raw: Raw bytes of the export file
            name: Identifying name of the input (e.g. file stem)

        Returns:
            List of conversations, each with at least one message
        """


class ParserRegistry:
    """Registry of parsers by source name."""

    _parsers: dict[str, Parser] = {}

    @classmethod
    def register(cls, parser: Parser) -> None:
        """Register a parser."""
        cls._parsers[parser.source_name] = parser

    @classmethod
    def get(cls, source_name: str) -> Parser | None:
        """Get parser by source name."""
        return cls._parsers.get(source_name)

    @classmethod
    def all_sources(cls) -> list[str]:
        """List all registered source names."""
        return list(cls._parsers.keys())

"""Canonical data models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

Role = Literal["user", "assistant", "system"]
Source = Literal["chatgpt", "claude-web", "claude-code", "codex"]

SOURCES: tuple[str, ...] = ("chatgpt", "claude-web", "claude-code", "codex")


@dataclass(frozen=True)
class Message:
    """A single normalized message from any AI conversation source."""

    role: Role
    content: str
    timestamp: datetime | None = None


@dataclass
class Conversation:
    """A normalized conversation, ready to be written to the vault."""

    id: str  # Stable, source-scoped identifier; the dedup key
    title: str
    source: Source
    date: datetime
    messages: list[Message]
    model: str | None = None
    tags: list[str] | None = None

    @property
    def body_text(self) -> str:
        """All message contents joined with blank lines (used for tagging)."""
        return "\n\n".join(message.content for message in self.messages)

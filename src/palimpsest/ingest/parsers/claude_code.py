"""Parser for Claude Code session transcripts.

Claude Code stores sessions as JSONL files at:
    ~/.claude/projects/<encoded-project-path>/<session-id>.jsonl

Each line is a JSON object with:
- type: "user", "assistant", "file-history-snapshot", "summary", ...
- message.role: "user" or "assistant"
- message.content: string or array of content blocks
- message.model: model name (assistant messages only)
- timestamp: ISO 8601 timestamp
- sessionId: UUID session identifier
- cwd: Working directory (project path)
"""

from datetime import datetime, timezone
from typing import Any

from palimpsest.ingest.parsers.base import (
    Conversation,
    Message,
    Parser,
    derive_title,
    iter_jsonl,
    parse_timestamp,
    render_thinking,
    split_content,
    text_field,
)
from palimpsest.logging import get_logger

logger = get_logger("parsers.claude_code")

EMPTY_CONTENT = "(no content)"
SYNTHETIC_MODEL = "<synthetic>"
SNAPSHOT_TYPE = "file-history-snapshot"


class ClaudeCodeParser(Parser):
    """Parser for Claude Code JSONL session files."""

    source_name = "claude-code"

    def parse(self, raw: bytes, name: str = "") -> list[Conversation]:
        """Parse a Claude Code JSONL session into a conversation.

        Args:
            raw: Raw bytes of the JSONL file
            name: File stem, used as the id when no sessionId is recorded

        Returns:
            A list holding the session's conversation, or empty if it has no messages
        """
        messages: list[Message] = []
        session_id: str | None = None
        started_at: datetime | None = None
        cwd: str | None = None
        model: str | None = None

        for entry in iter_jsonl(raw):
            entry_type = entry.get("type")
            if entry_type == SNAPSHOT_TYPE:
                continue

            session_id = session_id or text_field(entry.get("sessionId"))
            started_at = started_at or parse_timestamp(entry.get("timestamp"))
            cwd = cwd or text_field(entry.get("cwd"))

            # Only user and assistant records carry messages
            if entry_type not in ("user", "assistant"):
                continue

            message = entry.get("message")
            if not isinstance(message, dict):
                continue

            if entry_type == "assistant" and message.get("model") != SYNTHETIC_MODEL:
                model = model or text_field(message.get("model"))

            content = self._extract_content(message.get("content"))
            if not content.strip() or content.strip() == EMPTY_CONTENT:
                continue

            messages.append(
                Message(
                    role=entry_type,
                    content=content,
                    timestamp=parse_timestamp(entry.get("timestamp")),
                )
            )

        if not messages:
            logger.debug("Skipping session without messages: name=%s", name)
            return []

        return [
            Conversation(
                id=str(session_id or name),
                title=derive_title(messages, cwd),
                source="claude-code",
                date=started_at or datetime.now(timezone.utc),
                messages=messages,
                model=model,
            )
        ]

    def _extract_content(self, content: Any) -> str:
        """Extract text content from message content field.

        Args:
            content: Either a string or array of content blocks

        Returns:
            Text and thinking blocks joined with blank lines; tool blocks dropped
        """
        text, blocks = split_content(content)
        if text is not None:
            return text

        parts: list[str] = []
        for block in blocks:
            block_type = block.get("type")
            if block_type == "text" and block.get("text"):
                parts.append(block["text"])
            elif block_type == "thinking" and (block.get("thinking") or "").strip():
                parts.append(render_thinking(block["thinking"]))
        return "\n\n".join(parts)

"""Parser for Codex (OpenAI) session transcripts.

Codex stores sessions as JSONL files at:
    ~/.codex/sessions/<year>/<month>/<day>/rollout-*.jsonl
    ~/.codex/archived_sessions/rollout-*.jsonl

Each line is a JSON object with a type field:
- session_meta: Session metadata (id, timestamp, cwd, model)
- turn_context: Turn-level context, including the active model
- response_item: Contains messages with role and content blocks
- event_msg: Event notifications (duplicates of response items, ignored)
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
    split_content,
    text_field,
)
from palimpsest.logging import get_logger

logger = get_logger("parsers.codex")

TEXT_BLOCK_TYPES = ("input_text", "output_text", "text")

# Context Codex injects into the first user turn
CONTEXT_MARKERS = ("<environment_context>", "<user_instructions>")


class CodexParser(Parser):
    """Parser for Codex JSONL session files."""

    source_name = "codex"

    def parse(self, raw: bytes, name: str = "") -> list[Conversation]:
        """Parse a Codex JSONL session into a conversation.

        Args:
            raw: Raw bytes of the JSONL file
            name: File stem, used as the id when no session_meta is recorded

        Returns:
            A list holding the session's conversation, or empty if it has no messages
        """
        messages: list[Message] = []
        meta: dict[str, Any] = {}
        turn_model: str | None = None

        for entry in iter_jsonl(raw):
            event_type = entry.get("type")
            payload = entry.get("payload")
            if not isinstance(payload, dict):
                continue

            if event_type == "session_meta":
                meta = payload
            elif event_type == "turn_context":
                turn_model = turn_model or text_field(payload.get("model"))
            elif event_type == "response_item" and payload.get("type") == "message":
                message = self._extract_message(payload, entry.get("timestamp"))
                if message is not None:
                    messages.append(message)

        if not messages:
            logger.debug("Skipping session without messages: name=%s", name)
            return []

        date = (
            parse_timestamp(meta.get("timestamp"))
            or messages[0].timestamp
            or datetime.now(timezone.utc)
        )

        return [
            Conversation(
                id=str(meta.get("id") or name),
                title=derive_title(messages, text_field(meta.get("cwd"))),
                source="codex",
                date=date,
                messages=messages,
                model=(
                    text_field(meta.get("model"))
                    or turn_model
                    or text_field(meta.get("model_provider"))
                ),
            )
        ]

    def _extract_message(self, payload: dict[str, Any], timestamp: Any) -> Message | None:
        """Extract a message from a response_item payload.

        Args:
            payload: The response_item payload
            timestamp: The record's timestamp

        Returns:
            Message, or None for non-conversational roles or empty content
        """
        role = payload.get("role")
        if role not in ("user", "assistant"):
            return None

        content = self._extract_content(payload.get("content"))
        if not content:
            return None

        return Message(role=role, content=content, timestamp=parse_timestamp(timestamp))

    def _extract_content(self, content: Any) -> str:
        """Extract text from content blocks, excluding injected context."""
        text, blocks = split_content(content)
        if text is not None:
            return "" if text.lstrip().startswith(CONTEXT_MARKERS) else text.strip()

        texts = [
            block.get("text") or ""
            for block in blocks
            if block.get("type") in TEXT_BLOCK_TYPES
        ]
        return "\n".join(
            t for t in texts if not t.lstrip().startswith(CONTEXT_MARKERS)
        ).strip()

"""Parser for Claude.ai (web) data exports.

The export is a conversations.json holding either a bare array of
conversations or an object with a "conversations" array. Messages are flat
and chronological:

    {
        "uuid": "...",
        "name": "...",
        "created_at": "2025-03-15T10:00:00Z",
        "model": "claude-3.5-sonnet",
        "chat_messages": [
            {
                "sender": "human" | "assistant",
                "text": "plain-text fallback",
                "content": [{"type": "text" | "thinking" | "tool_use" | "tool_result", ...}],
                "created_at": "..."
            }
        ]
    }
"""

from datetime import datetime, timezone
from typing import Any

from palimpsest.ingest.parsers.base import (
    Conversation,
    Message,
    Parser,
    load_json,
    parse_timestamp,
    render_thinking,
    split_content,
    text_field,
    unwrap_conversations,
)
from palimpsest.logging import get_logger

logger = get_logger("parsers.claude_web")


def render_blocks(blocks: list[dict[str, Any]]) -> str:
    """Render content blocks to text, keeping their order.

    Text blocks are kept verbatim, thinking blocks become a quoted aside,
    and tool invocations and results are dropped.
    """
    rendered: list[str] = []
    for block in blocks:
        block_type = block.get("type")
        if block_type == "text":
            text = block.get("text") or ""
            if text.strip():
                rendered.append(text)
        elif block_type == "thinking":
            thinking = block.get("thinking") or ""
            if thinking.strip():
                rendered.append(render_thinking(thinking))
    return "\n\n".join(rendered)


class ClaudeWebParser(Parser):
    """Parser for Claude.ai conversations.json exports."""

    source_name = "claude-web"

    def parse(self, raw: bytes, name: str = "") -> list[Conversation]:
        """Parse a Claude.ai export into conversations.

        Args:
            raw: Raw bytes of conversations.json
            name: Identifying name of the input (unused; ids come from the export)

        Returns:
            List of conversations with at least one message
        """
        conversations: list[Conversation] = []

        for index, item in enumerate(unwrap_conversations(load_json(raw))):
            try:
                conversation = self._parse_conversation(item)
            except (AttributeError, KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed conversation: index=%d", index, exc_info=True)
                continue
            if conversation is not None:
                conversations.append(conversation)

        return conversations

    def _parse_conversation(self, item: dict[str, Any]) -> Conversation | None:
        conv_id = item["uuid"]

        messages = [
            message
            for message in map(self._extract_message, item.get("chat_messages") or [])
            if message is not None
        ]
        if not messages:
            logger.debug("Skipping conversation without messages: id=%s", conv_id)
            return None

        date = (
            parse_timestamp(item.get("created_at"))
            or messages[0].timestamp
            or datetime.now(timezone.utc)
        )

        return Conversation(
            id=str(conv_id),
            title=text_field(item.get("name")) or "Untitled",
            source="claude-web",
            date=date,
            messages=messages,
            model=text_field(item.get("model")),
        )

    def _extract_message(self, chat_message: dict[str, Any]) -> Message | None:
        """Convert a chat message, preferring content blocks over plain text."""
        # A block list, when present, is authoritative: "text" may repeat tool output
        _, blocks = split_content(chat_message.get("content"))
        text = render_blocks(blocks) if blocks else chat_message.get("text") or ""
        if not text.strip():
            return None

        return Message(
            role="user" if chat_message.get("sender") == "human" else "assistant",
            content=text,
            timestamp=parse_timestamp(chat_message.get("created_at")),
        )

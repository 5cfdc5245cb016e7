"""Parser for ChatGPT data exports.

ChatGPT exports ship a conversations.json (optionally inside a zip) holding
an array of conversations. Each conversation stores its messages as a tree:

    {
        "id": "...",
        "title": "...",
        "create_time": 1710500000.0,
        "current_node": "node-3",
        "default_model_slug": "gpt-4o",
        "mapping": {
            "node-1": {"message": {...}, "parent": null, "children": ["node-2"]},
            ...
        }
    }

Regenerated replies and edited prompts leave forked branches in the mapping.
Only the active branch (root to current_node) is kept.
"""

from datetime import datetime, timezone
from typing import Any

from palimpsest.ingest.parsers.base import (
    Conversation,
    Message,
    Parser,
    load_json,
    parse_timestamp,
    text_field,
    unwrap_conversations,
)
from palimpsest.logging import get_logger

logger = get_logger("parsers.chatgpt")

KEPT_ROLES = ("user", "assistant")


def active_path(mapping: dict[str, Any], current_node: str | None = None) -> list[str]:
    """Return node ids on the active branch, ordered root to leaf.

    If ``current_node`` names a node in the mapping, parent links are walked
    from it back to the root. Otherwise the walk starts at the first node
    without a parent and follows the first child until a leaf is reached.
    """
    path: list[str] = []
    seen: set[str] = set()

    if current_node is not None and current_node in mapping:
        node_id: str | None = current_node
        while node_id is not None and node_id in mapping and node_id not in seen:
            seen.add(node_id)
            path.append(node_id)
            node_id = mapping[node_id].get("parent")
        path.reverse()
        return path

    root = next((nid for nid, node in mapping.items() if not node.get("parent")), None)
    node_id = root
    while node_id is not None and node_id in mapping and node_id not in seen:
        seen.add(node_id)
        path.append(node_id)
        children = mapping[node_id].get("children") or []
        node_id = children[0] if children else None
    return path


class ChatGPTParser(Parser):
    """Parser for ChatGPT conversations.json exports."""

    source_name = "chatgpt"

    def parse(self, raw: bytes, name: str = "") -> list[Conversation]:
        """Parse a ChatGPT export into conversations.

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
        conv_id = item["id"]
        mapping = item.get("mapping") or {}

        messages: list[Message] = []
        path_model: str | None = None
        for node_id in active_path(mapping, item.get("current_node")):
            node_message = mapping[node_id].get("message")
            if not node_message:
                continue
            message = self._extract_message(node_message)
            if message is None:
                continue
            messages.append(message)
            if message.role == "assistant":
                slug = (node_message.get("metadata") or {}).get("model_slug")
                path_model = text_field(slug) or path_model

        if not messages:
            logger.debug("Skipping conversation without messages: id=%s", conv_id)
            return None

        date = (
            parse_timestamp(item.get("create_time"))
            or messages[0].timestamp
            or datetime.now(timezone.utc)
        )

        return Conversation(
            id=str(conv_id),
            title=text_field(item.get("title")) or "Untitled",
            source="chatgpt",
            date=date,
            messages=messages,
            model=text_field(item.get("default_model_slug")) or path_model,
        )

    def _extract_message(self, node_message: dict[str, Any]) -> Message | None:
        """Extract a message from a mapping node, or None if it is not kept.

        System and tool authors are dropped, and assistant messages only
        count when their content is plain text (not code or tool calls).
        """
        role = (node_message.get("author") or {}).get("role")
        if role not in KEPT_ROLES:
            return None

        content = node_message.get("content") or {}
        if role == "assistant" and content.get("content_type") != "text":
            return None

        parts = content.get("parts") or []
        text = "\n".join(part for part in parts if isinstance(part, str))
        if not text.strip():
            return None

        return Message(
            role=role,
            content=text,
            timestamp=parse_timestamp(node_message.get("create_time")),
        )

"""Parsers for the supported AI conversation export formats."""

from .base import (
    MalformedExportError,
    Parser,
    ParserRegistry,
    UnknownSourceError,
)
from .chatgpt import ChatGPTParser
from .claude_code import ClaudeCodeParser
from .claude_web import ClaudeWebParser
from .codex import CodexParser
from palimpsest.models import Conversation

__all__ = [
    "ChatGPTParser",
    "ClaudeCodeParser",
    "ClaudeWebParser",
    "CodexParser",
    "MalformedExportError",
    "Parser",
    "ParserRegistry",
    "UnknownSourceError",
    "parse_source",
]

# Register parsers
ParserRegistry.register(ChatGPTParser())
ParserRegistry.register(ClaudeCodeParser())
ParserRegistry.register(ClaudeWebParser())
ParserRegistry.register(CodexParser())


def parse_source(kind: str, raw: bytes, name: str = "") -> list[Conversation]:
    """Parse raw export bytes with the parser registered for ``kind``.

    Raises:
        UnknownSourceError: If no parser handles ``kind``
        MalformedExportError: If the input cannot be parsed at all
    """
    parser = ParserRegistry.get(kind)
    if parser is None:
        raise UnknownSourceError(kind)
    return parser.parse(raw, name)

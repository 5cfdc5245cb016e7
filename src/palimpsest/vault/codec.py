"""Markdown document codec for the vault.

A document is a YAML front-matter header followed by a Markdown body:

    ---
    source: chatgpt
    date: '2025-03-15'
    model: gpt-4o
    tags: ['2025', Q1, chatgpt]
    id: 6f1c...
    ---
    # Title

    ## User

    ...

    ## Related

Header grammar: the file starts with a ``---`` line; the header ends at the
next line that is exactly ``---``. Between them, each key is written on its
own line as ``key: value``, where ``value`` is a YAML flow scalar or flow
sequence emitted by PyYAML. YAML quoting is the escaping rule: any string
containing delimiters, quotes, control characters, or text that would
otherwise load as a number, boolean, null or date is quoted, so loading the
header yields the original strings.
"""

import hashlib
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

import yaml

from palimpsest.models import Conversation

__all__ = [
    "DocumentFormatError",
    "DocumentHeader",
    "RELATED_HEADING",
    "decode_header",
    "document_filename",
    "encode_document",
    "encode_header",
    "format_date",
    "replace_header",
    "slugify",
    "split_document",
]

RELATED_HEADING = "## Related"

# Header keys owned by this system, in the order they are written
HEADER_KEYS = ("source", "date", "model", "tags", "id")

ROLE_LABELS = {"user": "User", "assistant": "Assistant", "system": "System"}
ROLE_HEADINGS = frozenset(f"## {label}" for label in ROLE_LABELS.values())

SLUG_MAX_LENGTH = 50

_HEADER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*\r?$\n?", re.DOTALL | re.MULTILINE)
_TITLE_RE = re.compile(r"^# (.+)$", re.MULTILINE)


class DocumentFormatError(ValueError):
    """A document's front-matter header is missing or not well-formed."""


@dataclass
class DocumentHeader:
    """Decoded header of a persisted document."""

    id: str
    source: str
    date: date | None
    model: str | None = None
    tags: list[str] = field(default_factory=list)
    title: str | None = None


def format_date(value: date | datetime) -> str:
    """Format a date at day precision, using UTC for aware datetimes."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        value = value.date()
    return value.isoformat()


def slugify(text: str) -> str:
    """Lowercase, collapse non-alphanumerics to dashes, and cap the length."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH].rstrip("-") or "untitled"


def short_hash(value: str) -> str:
    """First 8 hex characters of the SHA256 of ``value``."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:8]


def document_filename(conversation: Conversation) -> str:
    """Deterministic filename: <date>_<source>_<hash8>_<slug>.md."""
    return (
        f"{format_date(conversation.date)}_{conversation.source}_"
        f"{short_hash(conversation.id)}_{slugify(conversation.title)}.md"
    )


def _dump_flow(value: Any, style: str | None = None) -> str:
    return yaml.safe_dump(
        value,
        default_flow_style=True,
        default_style=style,
        allow_unicode=True,
        width=float("inf"),
    ).strip()


def _dump_scalar(value: Any) -> str:
    # Line breaks and control characters force double quotes, where they are
    # written as escapes and the value stays on one line.
    style = '"' if isinstance(value, str) and not value.isprintable() else None
    # Emitted inside a one-element flow sequence, then unwrapped
    return _dump_flow([value], style)[1:-1]


def _dump_value(value: Any) -> str:
    if isinstance(value, list):
        return "[" + ", ".join(_dump_scalar(item) for item in value) + "]"
    if isinstance(value, dict):
        return _dump_flow(value, '"')
    return _dump_scalar(value)


def encode_header(fields: dict[str, Any]) -> str:
    """Serialize header fields, owned keys first, including both delimiters.

    ``tags`` is normalized to a sorted, duplicate-free list and omitted when
    empty; ``model`` is omitted when missing; ``date`` objects are written at
    day precision. Keys not owned by this system follow in their given order.
    """
    fields = dict(fields)
    if isinstance(fields.get("date"), (date, datetime)):
        fields["date"] = format_date(fields["date"])
    if "tags" in fields:
        fields["tags"] = sorted({str(tag) for tag in fields["tags"] or []})

    lines = ["---"]
    ordered = [key for key in HEADER_KEYS if key in fields]
    ordered += [key for key in fields if key not in HEADER_KEYS]
    for key in ordered:
        value = fields[key]
        if key in ("model", "tags") and not value:
            continue
        lines.append(f"{_dump_scalar(key)}: {_dump_value(value)}")
    lines.append("---")
    return "\n".join(lines) + "\n"


def encode_document(conversation: Conversation) -> str:
    """Serialize a conversation into the persisted Markdown document."""
    header = encode_header(
        {
            "source": conversation.source,
            "date": conversation.date,
            "model": conversation.model,
            "tags": conversation.tags or [],
            "id": conversation.id,
        }
    )

    title = " ".join(conversation.title.split()) or "Untitled"
    body = [f"# {title}", ""]
    for message in conversation.messages:
        body.extend([f"## {ROLE_LABELS[message.role]}", "", message.content, ""])
    body.extend([RELATED_HEADING, ""])

    return header + "\n".join(body)


def split_document(text: str) -> tuple[dict[str, Any], str]:
    """Split a document into its header fields and its verbatim body.

    Raises:
        DocumentFormatError: If the header is missing or is not a YAML mapping
    """
    match = _HEADER_RE.match(text)
    if match is None:
        raise DocumentFormatError("Document does not start with a front-matter header")

    try:
        fields = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        raise DocumentFormatError(f"Invalid front-matter header: {e}") from e
    if not isinstance(fields, dict):
        raise DocumentFormatError("Front-matter header is not a mapping")

    return fields, text[match.end():]


def replace_header(text: str, fields: dict[str, Any]) -> str:
    """Rewrite a document's header, keeping its body byte-for-byte."""
    _, body = split_document(text)
    return encode_header(fields) + body


def _coerce_date(value: Any) -> date | None:
    # Hand-edited headers may carry an unquoted date, which YAML loads as a date
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def extract_title(body: str) -> str | None:
    """Return the text of the first level-one heading, if any."""
    match = _TITLE_RE.search(body)
    return match.group(1).strip() if match else None


def decode_header(text: str) -> DocumentHeader:
    """Decode the owned header fields and title of a persisted document.

    Raises:
        DocumentFormatError: If the header is malformed or has no id
    """
    fields, body = split_document(text)
    if fields.get("id") is None:
        raise DocumentFormatError("Front-matter header has no id")

    tags = fields.get("tags") or []
    if not isinstance(tags, list):
        tags = [tags]

    model = fields.get("model")
    return DocumentHeader(
        id=str(fields["id"]),
        source=str(fields.get("source", "")),
        date=_coerce_date(fields.get("date")),
        model=str(model) if model is not None else None,
        tags=sorted({str(tag) for tag in tags}),
        title=extract_title(body),
    )

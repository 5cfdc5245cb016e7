"""Deterministic tag derivation for vault documents."""

from datetime import date, datetime, timezone
from pathlib import Path

from palimpsest.logging import get_logger
from palimpsest.vault.codec import (
    RELATED_HEADING,
    ROLE_HEADINGS,
    DocumentFormatError,
    replace_header,
    split_document,
)
from palimpsest.vault.state import atomic_write_text, iter_documents, read_document

logger = get_logger("tagger")

# Checked in order against the lowercased model name; the first match wins
MODEL_FAMILIES: list[tuple[tuple[str, ...], str]] = [
    (("gpt-4o",), "gpt-4o"),
    (("gpt-4",), "gpt-4"),
    (("gpt-3.5",), "gpt-3.5"),
    (("claude-3.5", "claude-3-5"), "claude-3.5"),
    (("claude-3",), "claude-3"),
    (("claude",), "claude"),
    (("o1", "o3", "o4"), "o-series"),
]

TOPIC_KEYWORDS: dict[str, list[str]] = {
    "typescript": ["typescript", "tsx", ".ts", "tsc"],
    "javascript": ["javascript", ".js", "node", "npm", "pnpm", "yarn"],
    "react": ["react", "jsx", "hooks", "usestate", "useeffect", "component"],
    "python": ["python", "pip", "django", "flask", "pandas", "numpy"],
    "rust": ["rust", "cargo", "rustc", "crate"],
    "go": ["golang", "go mod", "goroutine"],
    "git": ["git", "commit", "branch", "merge", "rebase", "pull request"],
    "css": ["css", "tailwind", "scss", "sass", "styled", "flexbox", "grid"],
    "html": ["html", "dom", "element", "tag"],
    "api": ["api", "rest", "graphql", "endpoint", "fetch", "axios"],
    "database": ["database", "sql", "postgres", "mysql", "mongodb", "prisma"],
    "testing": ["test", "jest", "vitest", "pytest", "playwright", "cypress", "mock"],
    "debugging": ["debug", "error", "fix", "bug", "issue", "problem"],
    "devops": ["docker", "kubernetes", "ci/cd", "deploy", "aws", "gcp", "azure"],
    "coding": ["code", "function", "class", "refactor", "implement"],
}


def quarter(value: date) -> str:
    """Calendar quarter label (Q1-Q4) of a date."""
    return f"Q{(value.month - 1) // 3 + 1}"


def model_family(model: str) -> str | None:
    """Return the family tag of the first matching pattern, if any."""
    lowered = model.lower()
    for patterns, family in MODEL_FAMILIES:
        if any(pattern in lowered for pattern in patterns):
            return family
    return None


def extract_topics(text: str) -> list[str]:
    """Return topics whose keywords appear in the text (case-insensitive)."""
    lowered = text.lower()
    return [
        topic
        for topic, keywords in TOPIC_KEYWORDS.items()
        if any(keyword in lowered for keyword in keywords)
    ]


def generate_tags(
    source: str,
    date: date | datetime,
    model: str | None = None,
    body: str | None = None,
) -> list[str]:
    """Derive the sorted, duplicate-free tag set of a document.

    Always includes the source, the four-digit year and the quarter. Adds a
    model family tag when ``model`` matches a known family, and topic tags
    for keywords found in ``body``.
    """
    if isinstance(date, datetime) and date.tzinfo is not None:
        # Same calendar day as the header date
        date = date.astimezone(timezone.utc)

    tags = {source, f"{date.year:04d}", quarter(date)}

    if model:
        family = model_family(model)
        if family:
            tags.add(family)

    if body:
        tags.update(extract_topics(body))

    return sorted(tags)


def message_body(body: str) -> str:
    """Return the message text of a document body.

    Drops the title heading, the role headings and the trailing Related
    section, leaving what the writer tagged at ingest time.
    """
    index = body.rfind(f"\n{RELATED_HEADING}")
    if index != -1:
        body = body[:index]

    lines = body.splitlines()
    if lines and lines[0].startswith("# "):
        lines = lines[1:]
    return "\n".join(line for line in lines if line not in ROLE_HEADINGS)


def retag_collection(collection_path: Path) -> int:
    """Merge freshly derived tags into every document's header.

    Existing tags are kept; derived tags are added and the result sorted.
    Only documents whose tags change are rewritten, and their bodies are
    preserved byte-for-byte.

    Args:
        collection_path: Vault directory

    Returns:
        Number of documents rewritten
    """
    updated = 0

    for path in iter_documents(collection_path):
        text = read_document(path)
        if text is None:
            continue
        try:
            fields, body = split_document(text)
            doc_date = _header_date(fields.get("date"))
        except (DocumentFormatError, ValueError):
            logger.warning("Skipping document with unreadable header: path=%s", path)
            continue

        existing = fields.get("tags") or []
        if not isinstance(existing, list):
            existing = [existing]
        existing = [str(tag) for tag in existing]

        derived = generate_tags(
            str(fields.get("source", "")),
            doc_date,
            str(fields["model"]) if fields.get("model") else None,
            message_body(body),
        )
        merged = sorted(set(existing) | set(derived))
        if merged == fields.get("tags"):
            continue

        fields["tags"] = merged
        atomic_write_text(path, replace_header(text, fields))
        updated += 1
        logger.debug("Retagged document: path=%s tags=%s", path, merged)

    logger.info("Retagged documents: vault=%s updated=%d", collection_path, updated)
    return updated


def _header_date(value: object) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise ValueError(f"Header has no usable date: {value!r}")

"""Cross-link related documents through their shared tags.

Every document is scored against every other document by the number of tags
they share. Up to MAX_RELATED peers scoring at least MIN_SCORE are written as
``[[wikilinks]]`` into the document's ``## Related`` section.
"""

import re
from dataclasses import dataclass
from pathlib import Path

from palimpsest.logging import get_logger
from palimpsest.vault.codec import (
    RELATED_HEADING,
    DocumentFormatError,
    extract_title,
    split_document,
)
from palimpsest.vault.state import atomic_write_text, iter_documents, read_document

logger = get_logger("backlinker")

MIN_SCORE = 2
MAX_RELATED = 5

_RELATED_RE = re.compile(rf"^{re.escape(RELATED_HEADING)}[ \t]*$", re.MULTILINE)
_LINK_UNSAFE_RE = re.compile(r"[\[\]|#^]")


@dataclass
class LinkedDocument:
    """What the backlinker needs to know about one document."""

    path: Path
    title: str
    tags: frozenset[str]
    content: str


def similarity(tags_a: frozenset[str], tags_b: frozenset[str]) -> int:
    """Number of tags two documents share."""
    return len(tags_a & tags_b)


def link_target(title: str) -> str:
    """Strip characters that would break a wikilink."""
    return _LINK_UNSAFE_RE.sub("", title).strip()


def load_document(path: Path) -> LinkedDocument | None:
    """Read a document's title and tags.

    Documents with an unreadable header take part with no tags. Files that
    are not UTF-8 are skipped and give None.
    """
    content = read_document(path)
    if content is None:
        return None
    try:
        fields, body = split_document(content)
    except DocumentFormatError:
        logger.warning("Document has no readable header: path=%s", path)
        fields, body = {}, content

    tags = fields.get("tags") or []
    if not isinstance(tags, list):
        tags = [tags]

    return LinkedDocument(
        path=path,
        title=extract_title(body) or path.stem,
        tags=frozenset(str(tag) for tag in tags),
        content=content,
    )


def find_related(document: LinkedDocument, documents: list[LinkedDocument]) -> list[LinkedDocument]:
    """Rank the peers of a document by shared tags.

    Candidates scoring below MIN_SCORE are dropped. Sorting is stable, so
    equal scores keep the order in which documents were enumerated.
    """
    scored = [
        (similarity(document.tags, other.tags), other)
        for other in documents
        if other.path != document.path
    ]
    candidates = [(score, other) for score, other in scored if score >= MIN_SCORE]
    candidates.sort(key=lambda candidate: candidate[0], reverse=True)
    return [other for _, other in candidates[:MAX_RELATED]]


def render_related(related: list[LinkedDocument]) -> str:
    """Render related documents as a Markdown list of wikilinks."""
    return "\n".join(f"- [[{link_target(other.title)}]]" for other in related)


def splice_related(content: str, links: str) -> str:
    """Replace the Related section's content, keeping everything before it.

    The last ``## Related`` heading is used. Without one, a new section is
    appended to the end of the document.
    """
    matches = list(_RELATED_RE.finditer(content))
    if matches:
        return content[: matches[-1].start()] + f"{RELATED_HEADING}\n\n{links}\n"
    return content.rstrip() + f"\n\n{RELATED_HEADING}\n\n{links}\n"


def relink_collection(collection_path: Path) -> int:
    """Rewrite the Related section of every document that has related peers.

    All documents are loaded and scored before anything is written.
    Documents without related peers are left untouched.

    Args:
        collection_path: Vault directory

    Returns:
        Number of documents rewritten
    """
    documents = [
        document
        for document in map(load_document, iter_documents(collection_path))
        if document is not None
    ]
    logger.info("Backlinking documents: vault=%s count=%d", collection_path, len(documents))

    pending: list[tuple[Path, str]] = []
    for document in documents:
        related = find_related(document, documents)
        if not related:
            continue
        new_content = splice_related(document.content, render_related(related))
        if new_content != document.content:
            pending.append((document.path, new_content))

    for path, new_content in pending:
        atomic_write_text(path, new_content)
        logger.debug("Updated related links: path=%s", path)

    logger.info("Added backlinks: vault=%s updated=%d", collection_path, len(pending))
    return len(pending)

"""Deduplication state and document file access for a vault.

The vault has no separate state database: the set of known conversation ids
is rebuilt from the ``id`` field in the headers of the documents on disk.
"""

import os
import tempfile
from pathlib import Path
from typing import Self

from palimpsest.logging import get_logger
from palimpsest.vault.codec import DocumentFormatError, decode_header

logger = get_logger("state")


def iter_documents(collection_path: Path) -> list[Path]:
    """List the Markdown documents of a vault in sorted filename order.

    A missing vault has no documents.
    """
    if not collection_path.is_dir():
        return []
    return sorted(p for p in collection_path.glob("*.md") if p.is_file())


def read_document(path: Path) -> str | None:
    """Read a document as UTF-8, or None if it is not valid UTF-8."""
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        logger.warning("Skipping document that is not UTF-8: path=%s", path)
        return None


def atomic_write_text(path: Path, text: str) -> None:
    """Write text to a sibling temp file, then rename it over ``path``.

    A failure at any point leaves no partial file under ``path``.
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".partial")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        tmp_path.replace(path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


class DedupStore:
    """Set of conversation ids already materialized in one vault."""

    def __init__(self, collection_path: Path, ids: set[str] | None = None) -> None:
        """Initialize the store.

        Args:
            collection_path: Vault directory the ids are scoped to
            ids: Known ids (an empty store when omitted)
        """
        self._collection_path = collection_path
        self._ids: set[str] = set(ids or ())

    @classmethod
    def from_collection(cls, collection_path: Path) -> Self:
        """Build a store by scanning the headers of a vault's documents."""
        store = cls(collection_path)
        store.reload()
        return store

    @property
    def collection_path(self) -> Path:
        """Vault directory this store is scoped to."""
        return self._collection_path

    def reload(self) -> None:
        """Rebuild the set of known ids from the documents on disk."""
        self._ids = set()
        for path in iter_documents(self._collection_path):
            text = read_document(path)
            if text is None:
                continue
            try:
                header = decode_header(text)
            except DocumentFormatError:
                logger.warning("Skipping unreadable document header: path=%s", path)
                continue
            self._ids.add(header.id)

        logger.debug(
            "Loaded known ids: vault=%s count=%d", self._collection_path, len(self._ids)
        )

    def reset(self) -> None:
        """Forget every known id, as if the vault were empty."""
        self._ids.clear()

    def contains(self, conversation_id: str) -> bool:
        """Check whether an id is already known."""
        return conversation_id in self._ids

    def mark(self, conversation_id: str) -> None:
        """Record an id as known."""
        self._ids.add(conversation_id)

    def discard(self, conversation_id: str) -> None:
        """Drop a provisional mark, e.g. after a failed write."""
        self._ids.discard(conversation_id)

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

"""Collection writer: dedupe, tag, encode and persist conversations."""

import dataclasses
from pathlib import Path

from palimpsest.logging import get_logger
from palimpsest.models import Conversation
from palimpsest.vault.codec import document_filename, encode_document
from palimpsest.vault.state import DedupStore, atomic_write_text
from palimpsest.vault.tagger import generate_tags

logger = get_logger("writer")


class CollectionWriter:
    """Writes new conversations into one vault, skipping known ids."""

    def __init__(self, collection_path: Path, store: DedupStore | None = None) -> None:
        """Initialize the writer.

        Args:
            collection_path: Vault directory (created on first write)
            store: Dedup store to use; scanned from the vault when omitted
        """
        self._collection_path = collection_path
        self._store = store if store is not None else DedupStore.from_collection(collection_path)

    @property
    def store(self) -> DedupStore:
        """The dedup store gating writes."""
        return self._store

    def write(self, conversation: Conversation) -> Path | None:
        """Write a conversation unless its id is already in the vault.

        Args:
            conversation: Conversation to persist

        Returns:
            Path of the new document, or None if the id was already known

        Raises:
            OSError: If the document cannot be written
        """
        if self._store.contains(conversation.id):
            logger.debug("Skipping known conversation: id=%s", conversation.id)
            return None

        # Provisional until the file is in place
        self._store.mark(conversation.id)
        try:
            tagged = dataclasses.replace(
                conversation,
                tags=generate_tags(
                    conversation.source,
                    conversation.date,
                    conversation.model,
                    conversation.body_text,
                ),
            )
            document = encode_document(tagged)
            path = self._collection_path / document_filename(tagged)
            self._collection_path.mkdir(parents=True, exist_ok=True)
            atomic_write_text(path, document)
        except BaseException:
            self._store.discard(conversation.id)
            raise

        logger.info(
            "Wrote document: id=%s source=%s path=%s",
            conversation.id,
            conversation.source,
            path,
        )
        return path


def write_to_collection(conversation: Conversation, collection_path: Path) -> Path | None:
    """Write one conversation, deriving dedup state from the vault on disk.

    Each call scans the vault; use CollectionWriter to write a batch.
    """
    return CollectionWriter(collection_path).write(conversation)

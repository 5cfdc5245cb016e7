"""Pull AI conversations into one flat Markdown vault with tags and backlinks."""

from palimpsest.ingest.parsers import MalformedExportError, UnknownSourceError, parse_source
from palimpsest.models import Conversation, Message
from palimpsest.vault.backlinker import relink_collection
from palimpsest.vault.tagger import generate_tags
from palimpsest.vault.writer import write_to_collection

__version__ = "0.1.0"

__all__ = [
    "Conversation",
    "MalformedExportError",
    "Message",
    "UnknownSourceError",
    "generate_tags",
    "parse_source",
    "relink_collection",
    "write_to_collection",
]

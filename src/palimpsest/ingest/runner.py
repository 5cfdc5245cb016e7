"""Ingestion runs: parse inputs, write new conversations, then backlink."""

from pathlib import Path

from palimpsest.config import Config
from palimpsest.ingest.parsers import parse_source
from palimpsest.ingest.sources import (
    SESSION_SOURCES,
    default_roots,
    find_session_files,
    read_export,
)
from palimpsest.logging import get_logger
from palimpsest.models import SOURCES
from palimpsest.vault.backlinker import relink_collection
from palimpsest.vault.writer import CollectionWriter

logger = get_logger("runner")


def _empty_totals() -> dict[str, int]:
    return {"files": 0, "conversations": 0, "written": 0, "skipped": 0}


def ingest_file(kind: str, path: Path, writer: CollectionWriter) -> dict[str, int]:
    """Parse one input file and write its conversations to the vault.

    Args:
        kind: Source kind (e.g. 'chatgpt', 'codex')
        path: Export file (.json/.zip) or JSONL session log
        writer: Writer for the target vault

    Returns:
        Dict with counts: {"conversations": N, "written": M, "skipped": K}

    Raises:
        MalformedExportError: If the file cannot be parsed at all
        OSError: If the file cannot be read or a document cannot be written
    """
    result = {"conversations": 0, "written": 0, "skipped": 0}

    raw = read_export(path) if kind not in SESSION_SOURCES else path.read_bytes()
    conversations = parse_source(kind, raw, name=path.stem)
    result["conversations"] = len(conversations)

    for conversation in conversations:
        if writer.write(conversation) is None:
            result["skipped"] += 1
        else:
            result["written"] += 1

    logger.info(
        "Ingested file: source=%s path=%s conversations=%d written=%d skipped=%d",
        kind,
        path,
        result["conversations"],
        result["written"],
        result["skipped"],
    )
    return result


def ingest_source(
    kind: str,
    collection_path: Path,
    inputs: list[Path] | None = None,
    writer: CollectionWriter | None = None,
) -> dict[str, int]:
    """Ingest every input of one source kind into a vault.

    Session-log kinds discover their files under the default roots when
    ``inputs`` is omitted; a missing session directory yields empty totals.
    A session log that fails to parse is logged and skipped so the rest of
    the batch continues.

    Args:
        kind: Source kind
        collection_path: Vault directory
        inputs: Export files, session logs, or session roots to scan
        writer: Writer to share across sources (created when omitted)

    Returns:
        Dict with aggregate counts: {"files", "conversations", "written", "skipped"}

    Raises:
        ValueError: If an export kind is given no inputs
    """
    if kind not in SOURCES:
        raise ValueError(f"Unknown source: {kind}")

    totals = _empty_totals()
    if writer is None:
        writer = CollectionWriter(collection_path)

    if kind in SESSION_SOURCES:
        files = find_session_files(inputs if inputs else default_roots(kind))
    elif inputs:
        files = list(inputs)
    else:
        raise ValueError(f"An input file is required for source: {kind}")

    for path in files:
        totals["files"] += 1
        if kind in SESSION_SOURCES:
            try:
                result = ingest_file(kind, path, writer)
            except ValueError:
                logger.exception("Error parsing session log: source=%s path=%s", kind, path)
                continue
        else:
            result = ingest_file(kind, path, writer)

        totals["conversations"] += result["conversations"]
        totals["written"] += result["written"]
        totals["skipped"] += result["skipped"]

    logger.info(
        "Source complete: source=%s files=%d conversations=%d written=%d skipped=%d",
        kind,
        totals["files"],
        totals["conversations"],
        totals["written"],
        totals["skipped"],
    )
    return totals


def run_sync(
    config: Config,
    exports: dict[str, Path] | None = None,
) -> dict[str, int]:
    """Run every enabled ingester, then backlink the vault.

    Export sources are ingested when given in ``exports`` or configured with
    paths; session-log sources always run, scanning their configured or
    default roots.

    Args:
        config: Application configuration
        exports: Extra export files by source kind (e.g. from the CLI)

    Returns:
        Dict with aggregate counts, plus "linked" for backlinked documents
    """
    vault = config.vault_path
    vault.mkdir(parents=True, exist_ok=True)
    writer = CollectionWriter(vault)
    exports = exports or {}

    totals = _empty_totals()
    for kind in SOURCES:
        source_config = config.source(kind)
        if not source_config.enabled:
            logger.info("Source disabled: source=%s", kind)
            continue

        inputs = list(source_config.paths)
        if kind in exports:
            inputs.append(exports[kind])
        if kind not in SESSION_SOURCES and not inputs:
            continue

        result = ingest_source(kind, vault, inputs or None, writer=writer)
        for key in totals:
            totals[key] += result[key]

    totals["linked"] = relink_collection(vault)

    logger.info(
        "Sync complete: vault=%s written=%d skipped=%d linked=%d",
        vault,
        totals["written"],
        totals["skipped"],
        totals["linked"],
    )
    return totals

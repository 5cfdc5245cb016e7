"""CLI entry point.

Allows running palimpsest as a module:
    python -m palimpsest ingest --source chatgpt --input export.zip
"""

from pathlib import Path

import click

from palimpsest.config import Config, load_config
from palimpsest.ingest.parsers import MalformedExportError
from palimpsest.ingest.runner import ingest_source, run_sync
from palimpsest.logging import setup_logging
from palimpsest.models import SOURCES
from palimpsest.vault.backlinker import relink_collection
from palimpsest.vault.tagger import retag_collection

VAULT_OPTION = click.option(
    "--vault",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Vault directory (defaults to vault_path from config)",
)


def _vault(config: Config, vault: Path | None) -> Path:
    return vault if vault is not None else config.vault_path


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to a config.yaml",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """Pull AI conversations into one flat vault with tags and backlinks."""
    config = load_config(config_path)
    setup_logging("palimpsest", log_dir=config.log_dir)
    ctx.obj = config


@cli.command()
@click.option("--source", "kind", required=True, type=click.Choice(SOURCES), help="Source type")
@click.option(
    "--input",
    "input_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Input file or directory (required for chatgpt and claude-web)",
)
@VAULT_OPTION
@click.pass_obj
def ingest(config: Config, kind: str, input_path: Path | None, vault: Path | None) -> None:
    """Ingest conversations from a source."""
    vault = _vault(config, vault)
    inputs = [input_path] if input_path else list(config.source(kind).paths) or None

    try:
        totals = ingest_source(kind, vault, inputs)
    except (MalformedExportError, OSError) as e:
        raise click.ClickException(str(e))
    except ValueError as e:
        raise click.UsageError(str(e))

    click.echo(
        f"Wrote {totals['written']} {kind} conversations to {vault} "
        f"({totals['skipped']} already present)"
    )


@cli.command()
@VAULT_OPTION
@click.pass_obj
def tag(config: Config, vault: Path | None) -> None:
    """Auto-tag conversations in the vault."""
    vault = _vault(config, vault)
    if not vault.is_dir():
        raise click.ClickException(f"Vault not found at {vault}")

    updated = retag_collection(vault)
    click.echo(f"Updated tags in {updated} files")


@cli.command()
@VAULT_OPTION
@click.pass_obj
def backlink(config: Config, vault: Path | None) -> None:
    """Add backlinks between related conversations."""
    vault = _vault(config, vault)
    if not vault.is_dir():
        raise click.ClickException(f"Vault not found at {vault}")

    updated = relink_collection(vault)
    click.echo(f"Added backlinks to {updated} files")


@cli.command()
@VAULT_OPTION
@click.option(
    "--chatgpt",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="ChatGPT export ZIP or JSON file",
)
@click.option(
    "--claude-web",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Claude.ai export ZIP or JSON file",
)
@click.pass_obj
def sync(config: Config, vault: Path | None, chatgpt: Path | None, claude_web: Path | None) -> None:
    """Run all ingesters, then backlink."""
    config.vault_path = _vault(config, vault)

    exports: dict[str, Path] = {}
    if chatgpt:
        exports["chatgpt"] = chatgpt
    if claude_web:
        exports["claude-web"] = claude_web

    try:
        totals = run_sync(config, exports)
    except (MalformedExportError, OSError) as e:
        raise click.ClickException(str(e))

    click.echo(
        f"Sync complete! {totals['written']} conversations written, "
        f"{totals['linked']} files backlinked."
    )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()

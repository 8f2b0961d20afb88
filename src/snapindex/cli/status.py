"""snapindex status command - show index state."""

import json
from pathlib import Path

import click
from rich.table import Table

from snapindex.cli.utils import cli_errors, find_repo_root, load_repo_config
from snapindex.core.progress import get_console
from snapindex.index.ops import IndexCoordinator


@click.command()
@click.argument("path", default=None, required=False, type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--profile", default=None, help="Named file selection profile")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status_command(ctx: click.Context, path: Path | None, profile: str | None, as_json: bool) -> None:
    """Show manifest generation, last sync, segment count and store model.

    PATH is the repository root (default: auto-detected from the current
    directory).
    """
    repo_root = find_repo_root(path)
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    config = load_repo_config(repo_root, verbose=verbose)

    with cli_errors(), IndexCoordinator(repo_root, config, profile=profile) as coordinator:
        info = coordinator.status()

    if as_json:
        click.echo(json.dumps(info.to_dict(), indent=2))
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Repository", str(repo_root))
    table.add_row("Profile", info.profile)
    table.add_row("Index", str(info.index_dir))
    table.add_row("Generation", str(info.generation))
    table.add_row("Last sync", info.last_sync_at or "never")
    table.add_row("Segments", str(info.segments))
    table.add_row("Store items", str(info.store_items))
    model = info.store_model or "-"
    if info.store_model and info.store_model != info.configured_model:
        model = f"{model} [yellow](configured: {info.configured_model}, next sync rebuilds)[/yellow]"
    table.add_row("Model", model)
    get_console().print(table)

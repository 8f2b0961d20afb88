"""snapindex export command - write a portable index file."""

from pathlib import Path

import click

from snapindex.cli.utils import cli_errors, find_repo_root, load_repo_config
from snapindex.core.progress import pluralize, status, task
from snapindex.index.ops import IndexCoordinator


@click.command()
@click.argument("path", default=None, required=False, type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--profile", default=None, help="Named file selection profile")
@click.option(
    "-o",
    "--output",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Export file to write",
)
@click.pass_context
def export_command(ctx: click.Context, path: Path | None, profile: str | None, output: Path) -> None:
    """Export the index as a JSON array of {id, vector, metadata}.

    PATH is the repository root (default: auto-detected from the current
    directory).
    """
    repo_root = find_repo_root(path)
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    config = load_repo_config(repo_root, verbose=verbose)

    with cli_errors(), IndexCoordinator(repo_root, config, profile=profile) as coordinator:
        with task("Exporting index"):
            result = coordinator.export(output)

    status(f"{pluralize(result.items, 'segment')} written to {result.path}", style="success")
    if result.skipped:
        status(
            f"{pluralize(len(result.skipped), 'manifest entry', 'manifest entries')} "
            "missing from the store were skipped",
            style="warning",
        )

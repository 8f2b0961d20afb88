"""snapindex sync command - bring the index up to date with the working tree."""

import json
from pathlib import Path

import click

from snapindex.cli.utils import cli_errors, find_repo_root, load_repo_config
from snapindex.core.progress import pluralize, progress_bar, status, task
from snapindex.index.models import SyncReport
from snapindex.index.ops import IndexCoordinator

_MAX_LISTED = 20


def _print_report(report: SyncReport) -> None:
    if report.up_to_date:
        status(f"Index up to date ({pluralize(report.unchanged, 'segment')})", style="success")
    else:
        status(
            f"{pluralize(report.added, 'segment')} added, {report.updated} updated, "
            f"{report.deleted} deleted, {report.unchanged} unchanged",
            style="success",
        )
    if report.rebuilt:
        status("Manifest rebuilt from the vector store", style="warning")
    if report.truncated_ids:
        status(
            f"{pluralize(len(report.truncated_ids), 'segment')} truncated before embedding",
            style="warning",
        )
    if report.failed_ids:
        status(f"{pluralize(report.failed, 'segment')} failed to embed:", style="warning")
        for segment_id in report.failed_ids[:_MAX_LISTED]:
            status(segment_id, indent=4)
    if report.failed_files:
        status(
            f"{pluralize(len(report.failed_files), 'file')} could not be segmented:",
            style="warning",
        )
        for path in report.failed_files[:_MAX_LISTED]:
            status(path, indent=4)


@click.command()
@click.argument("path", default=None, required=False, type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--profile", default=None, help="Named file selection profile")
@click.option("--fail-fast", is_flag=True, help="Abort on the first segmentation error")
@click.option("--json", "as_json", is_flag=True, help="Print the sync report as JSON")
@click.pass_context
def sync_command(
    ctx: click.Context, path: Path | None, profile: str | None, fail_fast: bool, as_json: bool
) -> None:
    """Segment, embed and store changes since the last sync.

    PATH is the repository root (default: auto-detected from the current
    directory).
    """
    repo_root = find_repo_root(path)
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    config = load_repo_config(repo_root, verbose=verbose)

    with cli_errors(), IndexCoordinator(repo_root, config, profile=profile) as coordinator:
        with task("Discovering files"):
            paths = coordinator.discover()
        status(f"{pluralize(len(paths), 'file')} selected", indent=2)

        with progress_bar("Embedding") as on_progress:
            report = coordinator.sync(paths, fail_fast=fail_fast or None, on_progress=on_progress)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        _print_report(report)

"""snapindex CLI - snapindex command."""

import click

from snapindex.cli.export import export_command
from snapindex.cli.query import query_command
from snapindex.cli.status import status_command
from snapindex.cli.sync import sync_command
from snapindex.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="snapindex")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """snapindex - Incremental semantic code index for context retrieval."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "INFO")


cli.add_command(sync_command, name="sync")
cli.add_command(query_command, name="query")
cli.add_command(export_command, name="export")
cli.add_command(status_command, name="status")


if __name__ == "__main__":
    cli()

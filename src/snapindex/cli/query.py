"""snapindex query command - build a context bundle for a question."""

from pathlib import Path

import click

from snapindex.cli.utils import cli_errors, find_repo_root, load_repo_config
from snapindex.core.progress import pluralize, spinner, status
from snapindex.index.ops import IndexCoordinator
from snapindex.index.portable import import_export


@click.command()
@click.argument("text")
@click.argument("path", default=None, required=False, type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("-k", "--top-k", "top_k", type=click.IntRange(min=1), default=None, help="Segments to retrieve")
@click.option("--profile", default=None, help="Named file selection profile")
@click.option(
    "--from-export",
    "from_export",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Query a portable export instead of the local index",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the Markdown bundle here (default: stdout)",
)
@click.pass_context
def query_command(
    ctx: click.Context,
    text: str,
    path: Path | None,
    top_k: int | None,
    profile: str | None,
    from_export: Path | None,
    output: Path | None,
) -> None:
    """Retrieve the files most relevant to TEXT as a Markdown bundle.

    PATH is the repository root whose files are read into the bundle
    (default: auto-detected from the current directory).
    """
    repo_root = find_repo_root(path)
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    config = load_repo_config(repo_root, verbose=verbose)

    with cli_errors():
        store = None
        if from_export is not None:
            store = import_export(from_export)

        with IndexCoordinator(repo_root, config, profile=profile, store=store) as coordinator:
            with spinner("Searching"):
                bundle = coordinator.query(text, top_k)

    for missing in bundle.missing:
        status(f"Missing from working tree: {missing}", style="warning")
    if bundle.omitted:
        status(
            f"{pluralize(len(bundle.omitted), 'file')} omitted (bundle size limit)",
            style="warning",
        )

    rendered = bundle.render()
    if output is None:
        click.echo(rendered, nl=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(rendered, encoding="utf-8")
    status(f"Wrote {pluralize(len(bundle.files), 'file')} to {output}", style="success")

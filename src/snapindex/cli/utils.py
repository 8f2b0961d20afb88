"""CLI utilities."""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click

from snapindex.config import SnapIndexConfig, load_config
from snapindex.config.constants import DATA_DIR_NAME
from snapindex.core.errors import SnapIndexError
from snapindex.core.logging import configure_logging, get_log_file_path


def find_repo_root(start_path: Path | None = None) -> Path:
    """Find the repository root from the given path.

    Walks up the directory tree looking for a .git or .snapindex directory.
    Plain directories can be indexed too, so when neither is found the
    start path itself is the root.

    Args:
        start_path: Starting directory to search from (default: cwd)

    Returns:
        Path to repository root
    """
    if start_path is None:
        start_path = Path.cwd()

    start = start_path.resolve()
    current = start

    while True:
        if (current / ".git").exists() or (current / DATA_DIR_NAME).is_dir():
            return current
        if current == current.parent:
            return start
        current = current.parent


def load_repo_config(repo_root: Path, *, verbose: bool = False) -> SnapIndexConfig:
    """Load config for a repository and apply its logging section.

    Raises:
        click.ClickException: On invalid configuration
    """
    try:
        config = load_config(repo_root)
    except SnapIndexError as e:
        raise click.ClickException(str(e)) from e
    if verbose:
        config.logging.level = "DEBUG"
    configure_logging(config=config.logging)
    return config


@contextmanager
def cli_errors() -> Iterator[None]:
    """Turn SnapIndexError into a ClickException (exit code 1)."""
    try:
        yield
    except SnapIndexError as e:
        log_file = get_log_file_path()
        if log_file:
            raise click.ClickException(f"{e}. See {log_file} for details.") from e
        raise click.ClickException(str(e)) from e

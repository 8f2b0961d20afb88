"""Shared fixtures for index tests."""

from __future__ import annotations

from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest


@pytest.fixture
def temp_repo(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a temporary git repository with an initial commit."""
    import pygit2

    repo_path = tmp_path / "repo"
    repo_path.mkdir()
    pygit2.init_repository(str(repo_path))

    repo = pygit2.Repository(str(repo_path))
    repo.config["user.name"] = "Test User"
    repo.config["user.email"] = "test@example.com"

    (repo_path / "README.md").write_text("# Test Repo\n")
    repo.index.add("README.md")
    repo.index.write()
    tree = repo.index.write_tree()
    sig = pygit2.Signature("Test User", "test@example.com")
    repo.create_commit("HEAD", sig, sig, "Initial commit", tree, [])

    yield repo_path


@pytest.fixture
def make_segment() -> Callable[..., Any]:
    """Build a Segment with identity and hash derived from its fields."""
    from snapindex.index._internal.identity import content_hash, segment_id
    from snapindex.index.models import Segment, SegmentKind

    def _make(
        name: str = "foo",
        content: str = "function foo() { return 1; }",
        file_path: str = "a.js",
        occurrence: int = 1,
        kind: SegmentKind = SegmentKind.FUNCTION,
    ) -> Segment:
        return Segment(
            id=segment_id(file_path, name, occurrence),
            type=kind,
            name=name,
            file_path=file_path,
            content=content,
            content_hash=content_hash(content),
            occurrence=occurrence,
        )

    return _make

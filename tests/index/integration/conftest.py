"""Shared fixtures for integration tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pygit2
import pytest


@pytest.fixture
def integration_repo(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a fully initialized git repository for integration tests."""
    repo_path = tmp_path / "integration_repo"
    repo_path.mkdir()
    pygit2.init_repository(str(repo_path))

    repo = pygit2.Repository(str(repo_path))
    repo.config["user.name"] = "Integration Test"
    repo.config["user.email"] = "integration@test.com"

    (repo_path / "src").mkdir()
    (repo_path / "src" / "retry.js").write_text(
        """export function retryWithBackoff(fn, attempts) {
  for (let i = 0; i < attempts; i++) {
    try {
      return fn();
    } catch (e) {
      sleep(2 ** i);
    }
  }
}

function sleep(seconds) {
  return new Promise((resolve) => setTimeout(resolve, seconds * 1000));
}
"""
    )
    (repo_path / "src" / "config.py").write_text(
        '''"""Config loading."""


def load_config(path):
    """Read the yaml config file."""
    with open(path) as f:
        return f.read()


class Settings:
    def __init__(self, values):
        self.values = values
'''
    )
    (repo_path / "README.md").write_text("# Integration repo\n\nBakery inventory tools.\n")
    (repo_path / ".gitignore").write_text(".snapindex/\n")

    repo.index.add_all()
    repo.index.write()
    tree = repo.index.write_tree()
    sig = pygit2.Signature("Integration Test", "integration@test.com")
    repo.create_commit("HEAD", sig, sig, "Initial commit", tree, [])

    yield repo_path

"""Unit tests for file discovery (discovery.py).

Tests cover:
- Glob matching with ** and directory patterns
- Git-backed candidates: tracked, untracked, .gitignore
- Directory walk outside git with pruning
- Skip reasons: extension, binary, size, include/exclude globs
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from snapindex.config.models import IndexConfig, ProfileConfig
from snapindex.index._internal.discovery import FileDiscovery, discover_files, matches_glob


class TestMatchesGlob:
    """Tests for matches_glob()."""

    @pytest.mark.parametrize(
        ("path", "pattern", "expected"),
        [
            ("src/a.py", "src/**", True),
            ("src/deep/a.py", "src/**", True),
            ("lib/a.py", "src/**", False),
            ("src/a.py", "src/", True),
            ("a.py", "**/*.py", True),
            ("src/deep/a.py", "**/*.py", True),
            ("src/a.js", "**/*.py", False),
            ("tests/test_a.py", "tests/*", True),
        ],
    )
    def test_patterns(self, path: str, pattern: str, expected: bool) -> None:
        """Patterns match like .gitignore-style globs."""
        assert matches_glob(path, pattern) is expected


class TestGitDiscovery:
    """Discovery inside a git repository."""

    def test_tracked_and_untracked_files(
        self, temp_repo: Path, write_files: Callable[..., None]
    ) -> None:
        """Both committed and new files are candidates."""
        write_files(temp_repo, {"src/new.py": "x = 1\n"})
        result = FileDiscovery(temp_repo).discover()
        assert result.used_git
        assert result.paths == ["README.md", "src/new.py"]

    def test_gitignore_honored(self, temp_repo: Path, write_files: Callable[..., None]) -> None:
        """Ignored files never show up."""
        write_files(
            temp_repo,
            {
                ".gitignore": "generated/\n*.log\n",
                "generated/out.js": "x",
                "debug.log": "x",
                "app.js": "x",
            },
        )
        paths = discover_files(temp_repo)
        assert "app.js" in paths
        assert ".gitignore" in paths
        assert "generated/out.js" not in paths
        assert "debug.log" not in paths

    def test_deleted_tracked_file_is_missing(self, temp_repo: Path) -> None:
        """A tracked file removed from disk is skipped, not returned."""
        (temp_repo / "README.md").unlink()
        result = FileDiscovery(temp_repo).discover()
        assert result.paths == []
        assert result.skipped["README.md"] == "missing"


class TestWalkDiscovery:
    """Discovery outside git."""

    def test_walk_prunes_dependency_dirs(
        self, tmp_path: Path, write_files: Callable[..., None]
    ) -> None:
        """node_modules and friends are never walked."""
        write_files(
            tmp_path,
            {
                "src/app.ts": "x",
                "node_modules/lib/index.js": "x",
                ".snapindex/index/default/manifest.json": "{}",
                "__pycache__/m.pyc": "x",
            },
        )
        result = FileDiscovery(tmp_path).discover()
        assert not result.used_git
        assert result.paths == ["src/app.ts"]

    def test_output_is_sorted(self, tmp_path: Path, write_files: Callable[..., None]) -> None:
        """Order never depends on the filesystem."""
        write_files(tmp_path, {"z.py": "z", "a/b.py": "b", "m.py": "m"})
        assert discover_files(tmp_path) == ["a/b.py", "m.py", "z.py"]


class TestSkipReasons:
    """Per-file filtering."""

    def test_excluded_extension(self, tmp_path: Path, write_files: Callable[..., None]) -> None:
        """Minified bundles are excluded by default."""
        write_files(tmp_path, {"app.min.js": "x", "app.js": "x"})
        result = FileDiscovery(tmp_path).discover()
        assert result.paths == ["app.js"]
        assert result.skipped["app.min.js"] == "excluded_extension"

    def test_binary_by_extension_and_content(self, tmp_path: Path) -> None:
        """Known binary suffixes and null bytes are both binary."""
        (tmp_path / "logo.png").write_bytes(b"\x89PNG")
        (tmp_path / "blob.dat").write_bytes(b"abc\x00def")
        (tmp_path / "ok.txt").write_text("fine")
        result = FileDiscovery(tmp_path).discover()
        assert result.paths == ["ok.txt"]
        assert result.skipped == {"blob.dat": "binary", "logo.png": "binary"}

    def test_too_large(self, tmp_path: Path) -> None:
        """Files above max_file_size_mb are skipped."""
        (tmp_path / "big.txt").write_bytes(b"a" * (1024 * 1024 + 1))
        (tmp_path / "small.txt").write_text("a")
        result = FileDiscovery(tmp_path, IndexConfig(max_file_size_mb=1)).discover()
        assert result.paths == ["small.txt"]
        assert result.skipped["big.txt"] == "too_large"

    def test_profile_include_and_exclude(
        self, tmp_path: Path, write_files: Callable[..., None]
    ) -> None:
        """Include narrows first, exclude removes after."""
        write_files(
            tmp_path,
            {
                "src/a.py": "x",
                "src/gen/b.py": "x",
                "docs/c.md": "x",
            },
        )
        profile = ProfileConfig(include=["src/**"], exclude=["src/gen/"])
        result = FileDiscovery(tmp_path, profile=profile).discover()
        assert result.paths == ["src/a.py"]
        assert result.skipped["docs/c.md"] == "not_included"
        assert result.skipped["src/gen/b.py"] == "excluded_glob"

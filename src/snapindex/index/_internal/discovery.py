"""File discovery: which repository files a profile indexes.

Inside a git repository the candidate set is the git index plus untracked,
non-ignored files, so .gitignore is honored. Elsewhere the directory tree is
walked with PRUNABLE_DIRS pruned. Candidates are then filtered by extension,
size, a binary sniff and the profile's include/exclude globs.
"""

from __future__ import annotations

import fnmatch
import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

import pygit2
import structlog

from snapindex.config.models import IndexConfig, ProfileConfig
from snapindex.core.excludes import BINARY_EXTENSIONS, HARDCODED_DIRS, PRUNABLE_DIRS

log = structlog.get_logger()

_SNIFF_BYTES = 8192


def matches_glob(rel_path: str, pattern: str) -> bool:
    """Check if a path matches a glob pattern, with ** support."""
    if pattern.endswith("/"):
        pattern = f"{pattern}**"
    if fnmatch.fnmatch(rel_path, pattern):
        return True
    # "**/" also matches zero directories
    return "**/" in pattern and fnmatch.fnmatch(rel_path, pattern.replace("**/", ""))


def _walk_with_pruning(root: Path) -> list[str]:
    """Walk all files, pruning PRUNABLE_DIRS. Returns posix paths relative to root."""
    results: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in PRUNABLE_DIRS]
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        for filename in filenames:
            results.append(filename if rel_dir == "." else f"{rel_dir}/{filename}")
    return results


def _git_candidates(root: Path) -> list[str] | None:
    """Tracked plus untracked non-ignored files, or None outside a git work tree."""
    if not (root / ".git").exists():
        return None
    try:
        repo = pygit2.Repository(str(root))
    except pygit2.GitError:
        log.debug("discovery.not_a_repo", root=str(root))
        return None
    if repo.is_bare:
        return None

    paths = {entry.path for entry in repo.index}
    for path, flags in repo.status(untracked_files="all").items():
        if flags & pygit2.GIT_STATUS_WT_NEW:
            paths.add(path)
    return list(paths)


@dataclass
class DiscoveryResult:
    paths: list[str] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)
    used_git: bool = False


class FileDiscovery:
    """Enumerate indexable files for one profile.

    Output is sorted so segmentation order, and with it occurrence
    numbering, never depends on filesystem order.
    """

    def __init__(
        self,
        repo_root: Path,
        config: IndexConfig | None = None,
        profile: ProfileConfig | None = None,
    ) -> None:
        self._root = Path(repo_root)
        self._config = config or IndexConfig()
        self._profile = profile or ProfileConfig()

    def discover(self) -> DiscoveryResult:
        candidates = _git_candidates(self._root)
        result = DiscoveryResult(used_git=candidates is not None)
        if candidates is None:
            candidates = _walk_with_pruning(self._root)

        for rel_path in sorted(candidates):
            reason = self._skip_reason(rel_path)
            if reason is None:
                result.paths.append(rel_path)
            else:
                result.skipped[rel_path] = reason

        log.debug(
            "discovery.done",
            root=str(self._root),
            files=len(result.paths),
            skipped=len(result.skipped),
            git=result.used_git,
        )
        return result

    def _skip_reason(self, rel_path: str) -> str | None:
        parts = PurePosixPath(rel_path).parts
        if any(p in HARDCODED_DIRS for p in parts[:-1]):
            return "excluded_dir"

        lowered = rel_path.lower()
        if any(lowered.endswith(ext.lower()) for ext in self._config.excluded_extensions):
            return "excluded_extension"
        if PurePosixPath(lowered).suffix in BINARY_EXTENSIONS:
            return "binary"

        if self._profile.include and not any(
            matches_glob(rel_path, p) for p in self._profile.include
        ):
            return "not_included"
        if any(matches_glob(rel_path, p) for p in self._profile.exclude):
            return "excluded_glob"

        full_path = self._root / rel_path
        try:
            if not full_path.is_file():
                return "missing"
            if full_path.stat().st_size > self._config.max_file_size_mb * 1024 * 1024:
                return "too_large"
            with full_path.open("rb") as f:
                if b"\x00" in f.read(_SNIFF_BYTES):
                    return "binary"
        except OSError:
            # Left to the router, which reports it as a segmentation error
            return None
        return None


def discover_files(
    repo_root: Path,
    config: IndexConfig | None = None,
    profile: ProfileConfig | None = None,
) -> list[str]:
    return FileDiscovery(repo_root, config, profile).discover().paths

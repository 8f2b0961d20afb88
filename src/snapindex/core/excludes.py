"""Canonical exclude patterns for file discovery.

HARDCODED_DIRS are never traversed. DEFAULT_PRUNABLE_DIRS are dependency,
cache and build directories skipped by the directory walk; inside a git
repository .gitignore usually covers them already.
"""

from __future__ import annotations

HARDCODED_DIRS: frozenset[str] = frozenset(
    (
        # VCS internals
        ".git",
        ".svn",
        ".hg",
        ".bzr",
        # snapindex data
        ".snapindex",
    )
)

DEFAULT_PRUNABLE_DIRS: frozenset[str] = frozenset(
    (
        # JavaScript/Node.js
        "node_modules",
        ".npm",
        ".yarn",
        ".pnpm-store",
        "bower_components",
        ".next",
        ".nuxt",
        ".turbo",
        # Python
        "venv",
        ".venv",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".ruff_cache",
        ".tox",
        ".nox",
        ".eggs",
        "site-packages",
        ".ipynb_checkpoints",
        # Rust / JVM / Android
        "target",
        ".gradle",
        ".idea",
        # Generic build output
        "build",
        "dist",
        "out",
        "coverage",
        ".cache",
    )
)

PRUNABLE_DIRS: frozenset[str] = HARDCODED_DIRS | DEFAULT_PRUNABLE_DIRS

# Extensions that are never source text worth embedding
BINARY_EXTENSIONS: frozenset[str] = frozenset(
    (
        ".png",
        ".jpg",
        ".jpeg",
        ".gif",
        ".ico",
        ".webp",
        ".pdf",
        ".zip",
        ".gz",
        ".tar",
        ".jar",
        ".class",
        ".so",
        ".dll",
        ".dylib",
        ".exe",
        ".bin",
        ".woff",
        ".woff2",
        ".ttf",
        ".mp3",
        ".mp4",
        ".lock",
        ".npz",
        ".npy",
        ".pyc",
    )
)

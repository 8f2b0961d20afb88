"""Configuration constants.

Values here are format and layout constants, not user-configurable.
For configurable values, see models.py.
"""

# =============================================================================
# On-disk layout
# =============================================================================

DATA_DIR_NAME = ".snapindex"
"""Per-repository data directory."""

INDEX_DIR_NAME = "index"
"""Subdirectory of DATA_DIR_NAME holding one directory per profile."""

DEFAULT_PROFILE = "default"
"""Profile used when none is named."""

MANIFEST_FILE = "manifest.json"
MANIFEST_STATE_FILE = "manifest.state.json"
STORE_DIR = "store"
LOCK_FILE = "sync.lock"

# =============================================================================
# Embedding
# =============================================================================

DEFAULT_MODEL_NAME = "BAAI/bge-small-en-v1.5"
"""Local fastembed model (384-dim)."""

TRUNCATION_MARKER = "\n... [truncated]"
"""Appended to segment text cut down to the per-segment byte ceiling."""

# =============================================================================
# Format versions
# =============================================================================

STORE_FORMAT_VERSION = 1
"""Bumped when the store directory layout changes."""

"""Config module exports."""

from snapindex.config.loader import get_index_dir, load_config
from snapindex.config.models import (
    EmbeddingConfig,
    IndexConfig,
    LoggingConfig,
    ProfileConfig,
    RetrievalConfig,
    SegmenterConfig,
    SnapIndexConfig,
)

__all__ = [
    "load_config",
    "get_index_dir",
    "SnapIndexConfig",
    "EmbeddingConfig",
    "IndexConfig",
    "LoggingConfig",
    "ProfileConfig",
    "RetrievalConfig",
    "SegmenterConfig",
]

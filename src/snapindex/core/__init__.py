"""Core module exports."""

from snapindex.core.errors import (
    ConfigError,
    EmbeddingBatchError,
    ErrorCode,
    ExportFormatError,
    IndexNotFoundError,
    ManifestCorruptionError,
    ProviderError,
    SegmentationError,
    SnapIndexError,
    StoreWriteError,
    SyncCancelledError,
    SyncInProgressError,
)
from snapindex.core.logging import (
    clear_run_id,
    configure_logging,
    get_logger,
    get_run_id,
    set_run_id,
)
from snapindex.core.progress import pluralize, progress_bar, spinner, status, task

__all__ = [
    # Errors
    "ConfigError",
    "EmbeddingBatchError",
    "ErrorCode",
    "ExportFormatError",
    "IndexNotFoundError",
    "ManifestCorruptionError",
    "ProviderError",
    "SegmentationError",
    "SnapIndexError",
    "StoreWriteError",
    "SyncCancelledError",
    "SyncInProgressError",
    # Logging
    "clear_run_id",
    "configure_logging",
    "get_logger",
    "get_run_id",
    "set_run_id",
    # Progress
    "pluralize",
    "progress_bar",
    "spinner",
    "status",
    "task",
]

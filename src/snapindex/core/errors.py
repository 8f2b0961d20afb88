"""snapindex error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Segmentation
- 4xxx: Embedding
- 5xxx: Store / manifest / export
- 6xxx: Sync
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Segmentation (3xxx)
    SEGMENT_UNREADABLE = 3001
    SEGMENT_PARSE_FAILED = 3002

    # Embedding (4xxx)
    EMBEDDING_BATCH_FAILED = 4001
    EMBEDDING_PROVIDER_UNAVAILABLE = 4002
    EMBEDDING_RESPONSE_MISMATCH = 4003
    EMBEDDING_MODEL_MISMATCH = 4004

    # Store / manifest / export (5xxx)
    STORE_WRITE_FAILED = 5001
    MANIFEST_CORRUPT = 5002
    EXPORT_INVALID = 5003
    INDEX_NOT_FOUND = 5004

    # Sync (6xxx)
    SYNC_IN_PROGRESS = 6001
    SYNC_CANCELLED = 6002


@dataclass(frozen=True, slots=True)
class SnapIndexError(Exception):
    """Base error with structured context for reports and CLI output."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'CONFIG_PARSE_ERROR')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON reports."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(SnapIndexError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class SegmentationError(SnapIndexError):
    """A file could not be read or parsed into segments."""

    @property
    def file_path(self) -> str:
        return str(self.details.get("file_path", ""))

    @classmethod
    def unreadable(cls, file_path: str, reason: str) -> "SegmentationError":
        return cls(
            code=ErrorCode.SEGMENT_UNREADABLE,
            message=f"Failed to read {file_path}: {reason}",
            details={"file_path": file_path, "reason": reason},
        )

    @classmethod
    def parse_failed(
        cls, file_path: str, error_count: int, total_nodes: int
    ) -> "SegmentationError":
        return cls(
            code=ErrorCode.SEGMENT_PARSE_FAILED,
            message=f"Failed to parse {file_path}: {error_count} of {total_nodes} nodes are errors",
            details={
                "file_path": file_path,
                "error_count": error_count,
                "total_nodes": total_nodes,
            },
        )


class EmbeddingBatchError(SnapIndexError):
    """An embedding call failed; carries the ids of the affected batch."""

    @property
    def ids(self) -> list[str]:
        return list(self.details.get("ids", []))

    @classmethod
    def batch_failed(cls, ids: list[str], reason: str) -> "EmbeddingBatchError":
        return cls(
            code=ErrorCode.EMBEDDING_BATCH_FAILED,
            message=f"Embedding batch of {len(ids)} segments failed: {reason}",
            retryable=True,
            details={"ids": list(ids), "reason": reason},
        )

    @classmethod
    def response_mismatch(cls, ids: list[str], got: int) -> "EmbeddingBatchError":
        return cls(
            code=ErrorCode.EMBEDDING_RESPONSE_MISMATCH,
            message=f"Provider returned {got} vectors for a batch of {len(ids)}",
            retryable=True,
            details={"ids": list(ids), "got": got},
        )


class ProviderError(SnapIndexError):
    """The embedding provider is unavailable, or embeds in a different space than the index."""

    @classmethod
    def unavailable(cls, provider: str, reason: str) -> "ProviderError":
        return cls(
            code=ErrorCode.EMBEDDING_PROVIDER_UNAVAILABLE,
            message=f"Embedding provider '{provider}' unavailable: {reason}",
            retryable=True,
            details={"provider": provider, "reason": reason},
        )

    @classmethod
    def model_mismatch(
        cls, indexed: str | None, provider: str, reason: str | None = None
    ) -> "ProviderError":
        reason = reason or f"index was built with '{indexed}'"
        return cls(
            code=ErrorCode.EMBEDDING_MODEL_MISMATCH,
            message=f"Query model '{provider}' does not match the index: {reason}; resync first",
            details={"indexed_model": indexed, "query_model": provider, "reason": reason},
        )


class StoreWriteError(SnapIndexError):
    """A vector store mutation or commit failed."""

    @classmethod
    def write_failed(cls, operation: str, reason: str, **details: Any) -> "StoreWriteError":
        return cls(
            code=ErrorCode.STORE_WRITE_FAILED,
            message=f"Vector store {operation} failed: {reason}",
            retryable=True,
            details={"operation": operation, "reason": reason, **details},
        )


class ManifestCorruptionError(SnapIndexError):
    """The persisted manifest is unreadable or malformed."""

    @classmethod
    def malformed(cls, path: str, reason: str) -> "ManifestCorruptionError":
        return cls(
            code=ErrorCode.MANIFEST_CORRUPT,
            message=f"Manifest at {path} is corrupt: {reason}",
            details={"path": path, "reason": reason},
        )


class ExportFormatError(SnapIndexError):
    """A portable export file does not have the expected shape."""

    @classmethod
    def invalid(cls, path: str, reason: str) -> "ExportFormatError":
        return cls(
            code=ErrorCode.EXPORT_INVALID,
            message=f"Invalid export file {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class IndexNotFoundError(SnapIndexError):
    """A profile was queried before its first sync."""

    @classmethod
    def missing(cls, index_dir: str, profile: str) -> "IndexNotFoundError":
        return cls(
            code=ErrorCode.INDEX_NOT_FOUND,
            message=f"Index not found for profile '{profile}' at {index_dir}; run sync first",
            details={"index_dir": index_dir, "profile": profile},
        )


class SyncInProgressError(SnapIndexError):
    """Another sync holds the lock for this index."""

    @classmethod
    def locked(cls, lock_path: str, pid: int | None) -> "SyncInProgressError":
        holder = f"pid {pid}" if pid is not None else "another process"
        return cls(
            code=ErrorCode.SYNC_IN_PROGRESS,
            message=f"A sync is already running ({holder}); lock at {lock_path}",
            retryable=True,
            details={"lock_path": lock_path, "pid": pid},
        )


class SyncCancelledError(SnapIndexError):
    """A sync was cancelled before its results were written."""

    @classmethod
    def cancelled(cls, phase: str, pending: int) -> "SyncCancelledError":
        return cls(
            code=ErrorCode.SYNC_CANCELLED,
            message=f"Sync cancelled during {phase}; {pending} segments not written",
            retryable=True,
            details={"phase": phase, "pending": pending},
        )

"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (SNAPINDEX__SECTION__KEY)
3. Repo YAML (.snapindex/config.yaml)
4. Global YAML (~/.config/snapindex/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    SNAPINDEX__<SECTION>__<KEY>=<VALUE>

Examples:
    SNAPINDEX__LOGGING__LEVEL=DEBUG
    SNAPINDEX__EMBEDDING__MAX_BATCH_COUNT=32
    SNAPINDEX__SEGMENTER__MAX_WORKERS=8
    SNAPINDEX__RETRIEVAL__TOP_K=20
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from snapindex.config.constants import DEFAULT_MODEL_NAME, TRUNCATION_MARKER

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        SNAPINDEX__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every batch and segment count.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class IndexConfig(BaseModel):
    """Index storage and file selection.

    Env vars:
        SNAPINDEX__INDEX__MAX_FILE_SIZE_MB: Skip files larger than this
        SNAPINDEX__INDEX__INDEX_PATH: Override index storage location
        SNAPINDEX__INDEX__STORE_CONTENT: Keep segment source in store metadata
    """

    max_file_size_mb: int = Field(
        default=2,
        description="Skip files larger than this (MB). Large generated files dominate embedding cost.",
    )
    excluded_extensions: list[str] = Field(
        default_factory=lambda: [".min.js", ".min.css", ".map", ".svg"],
        description="File suffixes to exclude from indexing.",
    )
    index_path: str | None = Field(
        default=None,
        description="Override index storage location. Default: .snapindex/index/ in repo.",
    )
    store_content: bool = Field(
        default=False,
        description="Store segment source text in item metadata. "
        "TRADEOFF: Larger exports, but query results no longer depend on the working tree.",
    )

    @field_validator("max_file_size_mb")
    @classmethod
    def validate_max_file_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"max_file_size_mb must be positive, got {v}")
        return v


class SegmenterConfig(BaseModel):
    """Segmentation configuration.

    Env vars:
        SNAPINDEX__SEGMENTER__MAX_WORKERS: Parallel file segmentation workers
        SNAPINDEX__SEGMENTER__MAX_ERROR_RATIO: Parse error ratio treated as failure
        SNAPINDEX__SEGMENTER__FAIL_FAST: Abort the sync on the first segmentation error
    """

    max_workers: int = Field(
        default=4,
        description="Parallel segmentation workers. Reads and parses are independent per file.",
    )
    max_error_ratio: float = Field(
        default=0.3,
        description="Fraction of ERROR/missing nodes at which an AST parse is rejected "
        "instead of emitting partial segments.",
    )
    fail_fast: bool = Field(
        default=False,
        description="Abort on the first segmentation error. Default skips the file and reports it.",
    )

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_workers must be >= 1, got {v}")
        return v

    @field_validator("max_error_ratio")
    @classmethod
    def validate_error_ratio(cls, v: float) -> float:
        if not (0.0 < v <= 1.0):
            raise ValueError(f"max_error_ratio must be in (0, 1], got {v}")
        return v


class EmbeddingConfig(BaseModel):
    """Embedding provider and batching configuration.

    Env vars:
        SNAPINDEX__EMBEDDING__PROVIDER: fastembed (local ONNX) or openai (HTTP)
        SNAPINDEX__EMBEDDING__MODEL_NAME: Model identifier
        SNAPINDEX__EMBEDDING__API_BASE: Base URL for the openai provider
        SNAPINDEX__EMBEDDING__API_KEY_ENV: Env var holding the API key
        SNAPINDEX__EMBEDDING__MAX_BATCH_COUNT: Segments per embedding call
        SNAPINDEX__EMBEDDING__MAX_BATCH_BYTES: Bytes per embedding call
        SNAPINDEX__EMBEDDING__MAX_SEGMENT_BYTES: Per-segment ceiling before truncation
        SNAPINDEX__EMBEDDING__CONCURRENCY: Batches in flight
    """

    provider: Literal["fastembed", "openai"] = Field(
        default="fastembed",
        description="Embedding backend. fastembed runs locally; openai calls an "
        "OpenAI-compatible /embeddings endpoint.",
    )
    model_name: str = Field(
        default=DEFAULT_MODEL_NAME,
        description="Model name. Changing it invalidates the stored vectors and forces a rebuild.",
    )
    api_base: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL for the openai provider.",
    )
    api_key_env: str = Field(
        default="OPENAI_API_KEY",
        description="Name of the environment variable holding the API key.",
    )
    max_batch_count: int = Field(
        default=64,
        description="Maximum segments per embedding call.",
    )
    max_batch_bytes: int = Field(
        default=1_000_000,
        description="Maximum total UTF-8 bytes per embedding call.",
    )
    max_segment_bytes: int = Field(
        default=32_000,
        description="Segments above this size are truncated before embedding. "
        "Must not exceed max_batch_bytes.",
    )
    concurrency: int = Field(
        default=4,
        description="Embedding batches in flight. "
        "RISK: Remote providers may rate-limit high values.",
    )
    timeout_sec: float = Field(
        default=60.0,
        description="Per-request timeout for the openai provider.",
    )

    @field_validator("max_batch_count", "max_batch_bytes", "concurrency")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v

    @field_validator("max_segment_bytes")
    @classmethod
    def validate_segment_bytes(cls, v: int) -> int:
        if v <= len(TRUNCATION_MARKER.encode("utf-8")):
            raise ValueError(f"max_segment_bytes must exceed the truncation marker, got {v}")
        return v

    @model_validator(mode="after")
    def validate_segment_fits_batch(self) -> "EmbeddingConfig":
        if self.max_segment_bytes > self.max_batch_bytes:
            raise ValueError(
                f"max_segment_bytes ({self.max_segment_bytes}) must not exceed "
                f"max_batch_bytes ({self.max_batch_bytes})"
            )
        return self


class RetrievalConfig(BaseModel):
    """Query-time configuration.

    Env vars:
        SNAPINDEX__RETRIEVAL__TOP_K: Segments fetched per query
        SNAPINDEX__RETRIEVAL__MAX_BUNDLE_BYTES: Upper bound on assembled context
    """

    top_k: int = Field(
        default=10,
        description="Segments fetched per query before de-duplication by file.",
    )
    max_bundle_bytes: int = Field(
        default=400_000,
        description="Maximum bytes of file content in a context bundle. "
        "Files that would exceed it are listed as omitted.",
    )

    @field_validator("top_k", "max_bundle_bytes")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v


class ProfileConfig(BaseModel):
    """Named file selection. Each profile has its own manifest and store."""

    include: list[str] = Field(
        default_factory=list,
        description="Glob patterns; when non-empty only matching paths are indexed.",
    )
    exclude: list[str] = Field(
        default_factory=list,
        description="Glob patterns removed after include filtering.",
    )


class SnapIndexConfig(BaseModel):
    """Root configuration for snapindex.

    All settings can be configured via:
    1. Environment variables: SNAPINDEX__SECTION__KEY
    2. YAML config files (repo or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    segmenter: SegmenterConfig = Field(default_factory=SegmenterConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    profiles: dict[str, ProfileConfig] = Field(default_factory=dict)

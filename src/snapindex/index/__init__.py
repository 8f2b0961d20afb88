"""Index module - incremental semantic segment index.

This module provides:
- Segmentation: extension-routed AST/heuristic strategies with whole-file fallback
- Change detection: stable segment ids and content hashes against a manifest
- Embedding: bounded batches on a bounded worker pool
- Synchronization: store writes first, manifest last
- Retrieval and portable export/import

Public API is in `snapindex.index.ops`:
- IndexCoordinator: High-level orchestration
- IndexStatus, SyncReport, ContextBundle: Result types

Internal implementations are in `snapindex.index._internal/`.
"""

from snapindex.index._internal.manifest import Manifest
from snapindex.index._internal.store import LocalVectorStore, MemoryVectorStore, VectorStore
from snapindex.index.models import (
    BundleFile,
    ContextBundle,
    IndexItem,
    ManifestDiff,
    ScoredItem,
    Segment,
    SegmentKind,
    SyncPhase,
    SyncReport,
)
from snapindex.index.ops import IndexCoordinator, IndexStatus
from snapindex.index.portable import ExportResult, export_index, import_export, load_export
from snapindex.index.retrieval import RetrievalPipeline

__all__ = [
    # Coordinator
    "IndexCoordinator",
    "IndexStatus",
    # Models
    "BundleFile",
    "ContextBundle",
    "IndexItem",
    "ManifestDiff",
    "ScoredItem",
    "Segment",
    "SegmentKind",
    "SyncPhase",
    "SyncReport",
    # Storage
    "LocalVectorStore",
    "Manifest",
    "MemoryVectorStore",
    "VectorStore",
    # Retrieval and export
    "ExportResult",
    "RetrievalPipeline",
    "export_index",
    "import_export",
    "load_export",
]

"""High-level orchestration of the segment index.

This module implements the IndexCoordinator - the entry point for all index
operations on one (repository, profile). It owns component lifecycles:

    Discovery -> Router -> Synchronizer (Batcher, Store, Manifest)
    Store -> Retrieval
    Store + Manifest -> Export

Components are built lazily from configuration; the embedding provider's
model handle is released by close().
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Any

import structlog

from snapindex.config.constants import DEFAULT_PROFILE, MANIFEST_FILE, STORE_DIR
from snapindex.config.loader import get_index_dir, load_config
from snapindex.config.models import ProfileConfig, SnapIndexConfig
from snapindex.core.errors import IndexNotFoundError
from snapindex.index._internal.discovery import FileDiscovery
from snapindex.index._internal.embedding.providers import EmbeddingProvider, create_provider
from snapindex.index._internal.manifest import Manifest
from snapindex.index._internal.segmentation.router import SegmenterRouter
from snapindex.index._internal.store.base import VectorStore
from snapindex.index._internal.store.local import LocalVectorStore
from snapindex.index._internal.sync.synchronizer import IndexSynchronizer
from snapindex.index.models import ContextBundle, SyncReport
from snapindex.index.portable import ExportResult, export_index
from snapindex.index.retrieval import RetrievalPipeline

log = structlog.get_logger()


@dataclass
class IndexStatus:
    """Snapshot of one profile's index."""

    index_dir: Path
    profile: str
    generation: int
    last_sync_at: str | None
    segments: int
    store_items: int
    store_model: str | None
    configured_model: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "index_dir": str(self.index_dir),
            "profile": self.profile,
            "generation": self.generation,
            "last_sync_at": self.last_sync_at,
            "segments": self.segments,
            "store_items": self.store_items,
            "store_model": self.store_model,
            "configured_model": self.configured_model,
        }


class IndexCoordinator:
    """Sync, query, export and inspect the index of one profile.

    Only one sync runs per index directory at a time (SyncLock); queries are
    read-only and may overlap a sync.

    Usage::

        with IndexCoordinator(repo_root) as coordinator:
            report = coordinator.sync()
            bundle = coordinator.query("where are retries configured?")
    """

    def __init__(
        self,
        repo_root: Path,
        config: SnapIndexConfig | None = None,
        *,
        profile: str | None = None,
        provider: EmbeddingProvider | None = None,
        store: VectorStore | None = None,
    ) -> None:
        self.repo_root = Path(repo_root).resolve()
        self.config = config or load_config(self.repo_root)
        self.profile = profile or DEFAULT_PROFILE
        self.index_dir = get_index_dir(self.repo_root, self.config, profile)

        self._provider = provider
        self._store = store
        self._router: SegmenterRouter | None = None
        self._synchronizer: IndexSynchronizer | None = None
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    @property
    def provider(self) -> EmbeddingProvider:
        with self._lock:
            if self._provider is None:
                self._provider = create_provider(self.config.embedding)
            return self._provider

    @property
    def store(self) -> VectorStore:
        with self._lock:
            if self._store is None:
                self._store = LocalVectorStore(self.index_dir / STORE_DIR)
            return self._store

    @property
    def router(self) -> SegmenterRouter:
        with self._lock:
            if self._router is None:
                self._router = SegmenterRouter(self.repo_root, self.config.segmenter)
            return self._router

    @property
    def profile_config(self) -> ProfileConfig:
        return self.config.profiles.get(self.profile, ProfileConfig())

    def _get_synchronizer(self) -> IndexSynchronizer:
        if self._synchronizer is None:
            self._synchronizer = IndexSynchronizer(
                self.router, self.provider, self.store, self.index_dir, self.config
            )
        return self._synchronizer

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def discover(self) -> list[str]:
        return FileDiscovery(self.repo_root, self.config.index, self.profile_config).discover().paths

    def sync(
        self,
        paths: Sequence[str] | None = None,
        *,
        fail_fast: bool | None = None,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> SyncReport:
        """Synchronize the index with the working tree (or the given paths).

        Paths not listed are treated as deleted, so pass the full file set.
        """
        if paths is None:
            paths = self.discover()
        return self._get_synchronizer().sync(paths, fail_fast=fail_fast, on_progress=on_progress)

    def cancel(self) -> None:
        if self._synchronizer is not None:
            self._synchronizer.cancel()

    def _store_exists(self) -> bool:
        return self._store is not None or (self.index_dir / STORE_DIR).exists()

    def query(self, text: str, k: int | None = None) -> ContextBundle:
        """Build a context bundle for ``text`` from the synced index.

        Raises:
            IndexNotFoundError: The profile has never been synced.
            ProviderError: The configured model differs from the index's.
        """
        if not self._store_exists():
            raise IndexNotFoundError.missing(str(self.index_dir), self.profile)
        pipeline = RetrievalPipeline(self.store, self.provider, self.repo_root, self.config.retrieval)
        return pipeline.query(text, k)

    def load_manifest(self) -> Manifest:
        return Manifest.load_or_empty(self.index_dir / MANIFEST_FILE)

    def export(self, output: Path) -> ExportResult:
        return export_index(self.store, self.load_manifest(), output)

    def status(self) -> IndexStatus:
        manifest = self.load_manifest()
        if not self._store_exists():
            store_items, store_model = 0, None
        else:
            store_items, store_model = self.store.count(), self.store.model_name
        return IndexStatus(
            index_dir=self.index_dir,
            profile=self.profile,
            generation=manifest.generation,
            last_sync_at=manifest.last_sync_at,
            segments=len(manifest),
            store_items=store_items,
            store_model=store_model,
            configured_model=self.config.embedding.model_name,
        )

    def close(self) -> None:
        """Release the provider's model handle."""
        with self._lock:
            if self._provider is not None:
                self._provider.close()
                self._provider = None
            self._synchronizer = None

    def __enter__(self) -> IndexCoordinator:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

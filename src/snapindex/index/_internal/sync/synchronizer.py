"""Index synchronizer: apply a manifest diff to the vector store.

One run moves through SCANNING -> DIFFING -> EMBEDDING -> WRITING ->
PERSISTED. The manifest is written only after the store has committed every
upsert and delete; a run that fails or is cancelled leaves the previous
manifest on disk, and the next run's diff resumes from there.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from pathlib import Path

import structlog

from snapindex.config.constants import LOCK_FILE, MANIFEST_FILE
from snapindex.config.models import SnapIndexConfig
from snapindex.core.errors import StoreWriteError, SyncCancelledError
from snapindex.core.logging import clear_run_id, set_run_id
from snapindex.index._internal.embedding.batcher import EmbeddingBatcher, EmbeddingOutcome
from snapindex.index._internal.embedding.providers import EmbeddingProvider
from snapindex.index._internal.manifest import Manifest
from snapindex.index._internal.segmentation.router import SegmenterRouter
from snapindex.index._internal.store.base import VectorStore
from snapindex.index._internal.sync.lock import SyncLock
from snapindex.index.models import ManifestDiff, Segment, SyncPhase, SyncReport

log = structlog.get_logger()


class IndexSynchronizer:
    """Single writer of the store and manifest for one index directory.

    Usage::

        sync = IndexSynchronizer(router, provider, store, index_dir, config)
        report = sync.sync(paths)
    """

    def __init__(
        self,
        router: SegmenterRouter,
        provider: EmbeddingProvider,
        store: VectorStore,
        index_dir: Path,
        config: SnapIndexConfig | None = None,
    ) -> None:
        self._router = router
        self._provider = provider
        self._store = store
        self._index_dir = Path(index_dir)
        self._config = config or SnapIndexConfig()
        self._cancel = threading.Event()
        self._phase = SyncPhase.IDLE

    @property
    def phase(self) -> SyncPhase:
        return self._phase

    @property
    def manifest_path(self) -> Path:
        return self._index_dir / MANIFEST_FILE

    def cancel(self) -> None:
        """Stop dispatching embedding batches; the run raises SyncCancelledError."""
        self._cancel.set()

    def load_manifest(self) -> Manifest:
        return Manifest.load_or_empty(self.manifest_path)

    def sync(
        self,
        paths: Sequence[str],
        *,
        fail_fast: bool | None = None,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> SyncReport:
        """Bring the store and manifest in line with ``paths``.

        Per-file segmentation errors and per-batch embedding errors are
        collected into the report.

        Raises:
            SyncInProgressError: Another live sync holds the lock.
            SyncCancelledError: ``cancel()`` was called before writing.
            StoreWriteError: The store rejected a mutation; manifest untouched.
        """
        self._cancel.clear()
        self._phase = SyncPhase.IDLE
        set_run_id(index=str(self._index_dir))
        start = time.monotonic()
        report = SyncReport()
        log.info("sync.started", files=len(paths))
        try:
            with SyncLock(self._index_dir / LOCK_FILE):
                self._run(paths, report, fail_fast=fail_fast, on_progress=on_progress)
        except Exception:
            if self._phase in (SyncPhase.EMBEDDING, SyncPhase.WRITING):
                self._set_phase(SyncPhase.FAILED, report)
            raise
        finally:
            report.duration_seconds = time.monotonic() - start
            clear_run_id()
        return report

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _run(
        self,
        paths: Sequence[str],
        report: SyncReport,
        *,
        fail_fast: bool | None,
        on_progress: Callable[[int, int], None] | None,
    ) -> None:
        self._set_phase(SyncPhase.SCANNING, report)
        manifest = self.load_manifest()
        manifest, report.rebuilt = self._reconcile(manifest)

        batch = self._router.segment_many(paths, fail_fast=fail_fast)
        report.failed_files = batch.failed_files
        report.segmentation_errors = [e.to_dict() for e in batch.errors]

        self._set_phase(SyncPhase.DIFFING, report)
        diff = manifest.diff(batch.segments)
        self._protect_failed_files(diff, set(batch.failed_files))
        report.unchanged = diff.unchanged
        log.info(
            "sync.diff",
            add=len(diff.to_add),
            update=len(diff.to_update),
            delete=len(diff.to_delete),
            unchanged=diff.unchanged,
        )

        if diff.is_empty:
            if report.rebuilt:
                manifest.save(self.manifest_path)
            report.up_to_date = True
            report.generation = manifest.generation
            self._set_phase(SyncPhase.PERSISTED, report)
            log.info("sync.up_to_date", segments=diff.unchanged)
            return

        if self._cancel.is_set():
            raise SyncCancelledError.cancelled(SyncPhase.DIFFING.value, len(diff.to_embed))

        self._set_phase(SyncPhase.EMBEDDING, report)
        batcher = EmbeddingBatcher(self._provider, self._config.embedding, cancel_event=self._cancel)
        outcome = batcher.embed_segments(diff.to_embed, on_progress=on_progress)
        report.truncated_ids = outcome.truncated_ids
        report.failed_ids = outcome.failed_ids
        report.failed = len(report.failed_ids)
        report.embedding_errors = [e.to_dict() for e in outcome.errors]

        if self._cancel.is_set():
            raise SyncCancelledError.cancelled(SyncPhase.EMBEDDING.value, len(diff.to_embed))

        self._set_phase(SyncPhase.WRITING, report)
        written = self._write(diff, outcome)

        manifest.apply(
            upserted={s.id: s.content_hash for s in written},
            deleted=diff.to_delete,
        )
        try:
            manifest.save(self.manifest_path)
        except OSError as e:
            raise StoreWriteError.write_failed(
                "manifest", str(e), path=str(self.manifest_path)
            ) from e

        added_ids = {s.id for s in diff.to_add}
        report.added = sum(1 for s in written if s.id in added_ids)
        report.updated = len(written) - report.added
        report.deleted = len(diff.to_delete)
        report.generation = manifest.generation
        self._set_phase(SyncPhase.PERSISTED, report)
        log.info(
            "sync.persisted",
            added=report.added,
            updated=report.updated,
            deleted=report.deleted,
            failed=report.failed,
            generation=report.generation,
        )

    def _reconcile(self, manifest: Manifest) -> tuple[Manifest, bool]:
        """Align the manifest with the store before diffing.

        The store wins: a model change empties both, and an id-set mismatch
        rebuilds the manifest from store metadata.
        """
        model = self._provider.model_name
        stored_model = self._store.model_name
        if stored_model is None:
            self._store.set_model_name(model)
        elif stored_model != model:
            log.warning("sync.model_changed", stored=stored_model, configured=model)
            self._store.clear()
            self._store.set_model_name(model)
            return Manifest(generation=manifest.generation), True

        store_ids = self._store.ids()
        if manifest.ids() != store_ids:
            log.warning(
                "sync.manifest_mismatch",
                manifest=len(manifest),
                store=len(store_ids),
            )
            rebuilt = Manifest.from_store(
                self._store.list_items(), generation=manifest.generation
            )
            return rebuilt, True
        return manifest, False

    def _protect_failed_files(self, diff: ManifestDiff, failed_files: set[str]) -> None:
        """Keep segments of files that could not be segmented this run."""
        if not failed_files or not diff.to_delete:
            return
        keep = {
            item_id
            for item_id in diff.to_delete
            if (item := self._store.get_item(item_id)) is not None
            and item.file_path in failed_files
        }
        if keep:
            log.info("sync.kept_failed_files", files=len(failed_files), segments=len(keep))
            diff.to_delete = [i for i in diff.to_delete if i not in keep]

    def _write(self, diff: ManifestDiff, outcome: EmbeddingOutcome) -> list[Segment]:
        store_content = self._config.index.store_content
        written: list[Segment] = []
        self._store.begin_update()
        try:
            for segment in diff.to_embed:
                vector = outcome.vectors.get(segment.id)
                if vector is None:
                    continue
                self._store.upsert_item(
                    segment.id, vector, segment.metadata(include_content=store_content)
                )
                written.append(segment)
            for segment_id in diff.to_delete:
                self._store.delete_item(segment_id)
            self._store.end_update()
        except StoreWriteError:
            log.error("sync.write_failed", exc_info=True)
            self._store.abort_update()
            raise
        except Exception as e:
            log.error("sync.write_failed", exc_info=True)
            self._store.abort_update()
            raise StoreWriteError.write_failed("write", f"{type(e).__name__}: {e}") from e
        return written

    def _set_phase(self, phase: SyncPhase, report: SyncReport) -> None:
        self._phase = phase
        report.phase = phase
        log.debug("sync.phase", phase=phase.value)

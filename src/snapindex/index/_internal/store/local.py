"""Directory-persisted vector store.

Storage: <index_dir>/store/
  - items.npz      ids, float32 vector matrix, per-item metadata (JSON strings)
  - metadata.json  format version, model name, dimension, item count

items.npz is the system of record and is replaced atomically on commit;
metadata.json is written after it and only describes it.
"""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any

import numpy as np
import structlog

from snapindex.config.constants import STORE_FORMAT_VERSION
from snapindex.core.errors import StoreWriteError
from snapindex.index._internal.atomic import write_bytes_atomic, write_json_atomic
from snapindex.index._internal.store.memory import MemoryVectorStore

log = structlog.get_logger()

ITEMS_FILE = "items.npz"
META_FILE = "metadata.json"


class LocalVectorStore(MemoryVectorStore):
    """MemoryVectorStore that loads from and commits to a directory."""

    def __init__(self, path: Path, model_name: str | None = None) -> None:
        super().__init__(model_name=model_name)
        self._path = Path(path)
        self.create_index()

    @property
    def path(self) -> Path:
        return self._path

    def create_index(self) -> None:
        self._path.mkdir(parents=True, exist_ok=True)
        self.load()

    def set_model_name(self, model_name: str | None) -> None:
        super().set_model_name(model_name)
        self._autocommit()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> bool:
        """Load from disk. Returns False if no store exists or it is unreadable."""
        items_path = self._path / ITEMS_FILE
        meta_path = self._path / META_FILE

        with self._lock:
            self._vectors.clear()
            self._metadata.clear()
            self._dim = None
            self._matrix = None

            if meta_path.exists():
                try:
                    meta = json.loads(meta_path.read_text(encoding="utf-8"))
                    if meta.get("model"):
                        self._model_name = meta["model"]
                except (OSError, ValueError):
                    log.warning("store.metadata_unreadable", path=str(meta_path))

            if not items_path.exists():
                return False

            try:
                with np.load(items_path, allow_pickle=False) as data:
                    version = int(data["version"])
                    if version != STORE_FORMAT_VERSION:
                        log.warning(
                            "store.version_mismatch",
                            expected=STORE_FORMAT_VERSION,
                            got=version,
                        )
                        return False
                    ids = [str(s) for s in data["ids"]]
                    matrix = np.asarray(data["matrix"], dtype=np.float32)
                    metadata = [json.loads(str(m)) for m in data["metadata"]]
                    if "model" in data.files and str(data["model"]):
                        self._model_name = str(data["model"])
            except (OSError, ValueError, KeyError):
                log.warning("store.load_failed", path=str(items_path), exc_info=True)
                return False

            for row, (item_id, meta_item) in enumerate(zip(ids, metadata, strict=True)):
                self._vectors[item_id] = matrix[row].copy()
                self._metadata[item_id] = meta_item
            if ids:
                self._dim = int(matrix.shape[1])

            log.info("store.loaded", items=len(ids), dim=self._dim, model=self._model_name)
            return True

    def _commit(self) -> None:
        ids = sorted(self._vectors)
        if ids:
            matrix = np.stack([self._vectors[i] for i in ids]).astype(np.float32)
        else:
            matrix = np.zeros((0, 0), dtype=np.float32)

        buf = io.BytesIO()
        np.savez_compressed(
            buf,
            version=np.array(STORE_FORMAT_VERSION),
            model=np.array(self._model_name or ""),
            ids=np.array(ids, dtype="U"),
            matrix=matrix,
            metadata=np.array([json.dumps(self._metadata[i]) for i in ids], dtype="U"),
        )

        meta: dict[str, Any] = {
            "version": STORE_FORMAT_VERSION,
            "model": self._model_name,
            "dim": self._dim,
            "count": len(ids),
        }
        try:
            write_bytes_atomic(self._path / ITEMS_FILE, buf.getvalue())
            write_json_atomic(self._path / META_FILE, meta)
        except OSError as e:
            raise StoreWriteError.write_failed("commit", str(e), path=str(self._path)) from e
        log.debug("store.committed", items=len(ids), path=str(self._path))

    def _rollback(self) -> None:
        self.load()

"""In-memory vector store with numpy cosine top-k.

Used directly for imported exports, and as the in-memory state of the
directory-backed LocalVectorStore.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from typing import Any

import numpy as np

from snapindex.core.errors import StoreWriteError
from snapindex.index.models import IndexItem, ScoredItem


class MemoryVectorStore:
    """Vectors and metadata held in process memory.

    Vectors are kept as given (float32); similarity is cosine over
    L2-normalised copies built lazily on first query after a mutation.
    """

    def __init__(self, model_name: str | None = None) -> None:
        self._vectors: dict[str, np.ndarray[Any, np.dtype[np.float32]]] = {}
        self._metadata: dict[str, dict[str, Any]] = {}
        self._model_name = model_name
        self._dim: int | None = None
        self._lock = threading.RLock()
        self._in_update = False

        # Normalised matrix cache, rebuilt after mutations
        self._matrix: np.ndarray[Any, np.dtype[np.float32]] | None = None
        self._matrix_ids: list[str] = []

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def model_name(self) -> str | None:
        return self._model_name

    def set_model_name(self, model_name: str | None) -> None:
        with self._lock:
            self._model_name = model_name

    @property
    def dim(self) -> int | None:
        return self._dim

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_index(self) -> None:
        """No-op for memory; subclasses create their storage here."""

    def upsert_item(self, item_id: str, vector: Sequence[float], metadata: dict[str, Any]) -> None:
        arr = np.asarray(vector, dtype=np.float32).reshape(-1)
        with self._lock:
            if arr.size == 0:
                raise StoreWriteError.write_failed("upsert", "empty vector", id=item_id)
            if self._dim is not None and arr.size != self._dim and self._vectors:
                raise StoreWriteError.write_failed(
                    "upsert",
                    f"dimension {arr.size} does not match index dimension {self._dim}",
                    id=item_id,
                )
            self._dim = int(arr.size)
            self._vectors[item_id] = arr
            self._metadata[item_id] = dict(metadata)
            self._matrix = None
            self._autocommit()

    def delete_item(self, item_id: str) -> None:
        with self._lock:
            removed = self._vectors.pop(item_id, None)
            self._metadata.pop(item_id, None)
            if removed is not None:
                self._matrix = None
            if not self._vectors:
                self._dim = None
            self._autocommit()

    def clear(self) -> None:
        with self._lock:
            self._vectors.clear()
            self._metadata.clear()
            self._dim = None
            self._matrix = None
            self._autocommit()

    def begin_update(self) -> None:
        with self._lock:
            self._in_update = True

    def end_update(self) -> None:
        with self._lock:
            self._in_update = False
            self._commit()

    def abort_update(self) -> None:
        with self._lock:
            self._in_update = False
            self._rollback()

    def _autocommit(self) -> None:
        if not self._in_update:
            self._commit()

    def _commit(self) -> None:
        """Persist pending mutations. Memory has nothing to persist."""

    def _rollback(self) -> None:
        """Discard uncommitted mutations. Memory cannot roll back."""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_item(self, item_id: str) -> IndexItem | None:
        with self._lock:
            vec = self._vectors.get(item_id)
            if vec is None:
                return None
            return IndexItem(
                id=item_id, vector=vec.tolist(), metadata=dict(self._metadata[item_id])
            )

    def list_items(self) -> list[IndexItem]:
        with self._lock:
            return [
                IndexItem(id=i, vector=v.tolist(), metadata=dict(self._metadata[i]))
                for i, v in sorted(self._vectors.items())
            ]

    def ids(self) -> set[str]:
        with self._lock:
            return set(self._vectors)

    def count(self) -> int:
        with self._lock:
            return len(self._vectors)

    def query_items(self, vector: Sequence[float], k: int) -> list[ScoredItem]:
        """Top-k items by cosine similarity, ties broken by id."""
        if k <= 0:
            return []
        query = np.asarray(vector, dtype=np.float32).reshape(-1)
        with self._lock:
            if not self._vectors:
                return []
            if query.size != self._dim:
                raise ValueError(
                    f"Query dimension {query.size} does not match index dimension {self._dim}"
                )
            matrix, ids = self._normalized_matrix()
            norm = float(np.linalg.norm(query))
            query = query / max(norm, 1e-10)
            scores = matrix @ query

            order = sorted(range(len(ids)), key=lambda i: (-float(scores[i]), ids[i]))[:k]
            return [
                ScoredItem(
                    item=IndexItem(
                        id=ids[i],
                        vector=self._vectors[ids[i]].tolist(),
                        metadata=dict(self._metadata[ids[i]]),
                    ),
                    score=float(scores[i]),
                )
                for i in order
            ]

    def _normalized_matrix(self) -> tuple[np.ndarray[Any, np.dtype[np.float32]], list[str]]:
        if self._matrix is None:
            ids = sorted(self._vectors)
            matrix = np.stack([self._vectors[i] for i in ids]).astype(np.float32)
            norms = np.linalg.norm(matrix, axis=1, keepdims=True)
            norms = np.maximum(norms, 1e-10)
            self._matrix = matrix / norms
            self._matrix_ids = ids
        return self._matrix, self._matrix_ids

"""Vector stores: in-memory and directory-persisted."""

from snapindex.index._internal.store.base import VectorStore
from snapindex.index._internal.store.local import LocalVectorStore
from snapindex.index._internal.store.memory import MemoryVectorStore

__all__ = ["LocalVectorStore", "MemoryVectorStore", "VectorStore"]

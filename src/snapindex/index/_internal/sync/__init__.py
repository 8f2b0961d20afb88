"""Index synchronization: the single writer of store and manifest."""

from snapindex.index._internal.sync.lock import SyncLock
from snapindex.index._internal.sync.synchronizer import IndexSynchronizer

__all__ = ["IndexSynchronizer", "SyncLock"]

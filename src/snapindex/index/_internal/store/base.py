"""Vector store contract.

The store is the system of record for what has been embedded. Every item
carries its segment metadata, including ``contentHash``, so a lost or
corrupt manifest can be rebuilt from the store alone.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from snapindex.index.models import IndexItem, ScoredItem


class VectorStore(Protocol):
    """Minimal store interface used by the synchronizer, retrieval and export.

    Mutations between ``begin_update`` and ``end_update`` are committed
    together; ``end_update`` raises ``StoreWriteError`` if the commit fails.
    """

    @property
    def model_name(self) -> str | None: ...

    def set_model_name(self, model_name: str | None) -> None: ...

    @property
    def dim(self) -> int | None: ...

    def create_index(self) -> None: ...

    def upsert_item(self, item_id: str, vector: Sequence[float], metadata: dict[str, Any]) -> None: ...

    def delete_item(self, item_id: str) -> None: ...

    def get_item(self, item_id: str) -> IndexItem | None: ...

    def query_items(self, vector: Sequence[float], k: int) -> list[ScoredItem]: ...

    def list_items(self) -> list[IndexItem]: ...

    def ids(self) -> set[str]: ...

    def count(self) -> int: ...

    def begin_update(self) -> None: ...

    def end_update(self) -> None: ...

    def abort_update(self) -> None: ...

    def clear(self) -> None: ...

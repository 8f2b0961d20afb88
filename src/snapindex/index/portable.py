"""Portable export/import of an index.

The export file is a flat JSON array of ``{id, vector, metadata}`` objects,
one per manifest entry, sorted by id. Each item's metadata records the
embedding model under ``embeddingModel`` when the store knows it. Importing
yields a vector store that RetrievalPipeline can query without the original
index directory.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from snapindex.core.errors import ExportFormatError
from snapindex.index._internal.atomic import write_json_atomic
from snapindex.index._internal.manifest import Manifest
from snapindex.index._internal.store.base import VectorStore
from snapindex.index._internal.store.local import LocalVectorStore
from snapindex.index._internal.store.memory import MemoryVectorStore
from snapindex.index.models import IndexItem

log = structlog.get_logger()

MODEL_KEY = "embeddingModel"


@dataclass
class ExportResult:
    path: Path
    items: int = 0
    skipped: list[str] = field(default_factory=list)


def export_index(store: VectorStore, manifest: Manifest, output: Path) -> ExportResult:
    """Write every manifest entry the store holds to ``output``.

    Manifest ids missing from the store are skipped and logged.
    """
    result = ExportResult(path=Path(output))
    payload: list[dict[str, Any]] = []
    for item_id in sorted(manifest.ids()):
        item = store.get_item(item_id)
        if item is None:
            log.warning("export.item_missing", id=item_id)
            result.skipped.append(item_id)
            continue
        data = item.to_dict()
        if store.model_name:
            data["metadata"][MODEL_KEY] = store.model_name
        payload.append(data)

    write_json_atomic(result.path, payload, indent=None)
    result.items = len(payload)
    log.info("export.written", path=str(result.path), items=result.items, skipped=len(result.skipped))
    return result


def _parse_item(raw: Any, index: int, path: str) -> IndexItem:
    if not isinstance(raw, dict):
        raise ExportFormatError.invalid(path, f"entry {index} is not an object")
    item_id = raw.get("id")
    vector = raw.get("vector")
    metadata = raw.get("metadata", {})
    if not isinstance(item_id, str) or not item_id:
        raise ExportFormatError.invalid(path, f"entry {index} has no id")
    if (
        not isinstance(vector, list)
        or not vector
        or not all(isinstance(v, int | float) and not isinstance(v, bool) for v in vector)
    ):
        raise ExportFormatError.invalid(path, f"entry {item_id} has an invalid vector")
    if not isinstance(metadata, dict):
        raise ExportFormatError.invalid(path, f"entry {item_id} has non-object metadata")
    return IndexItem(id=item_id, vector=[float(v) for v in vector], metadata=metadata)


def load_export(path: Path) -> list[IndexItem]:
    """Read and validate an export file.

    Raises:
        ExportFormatError: Unreadable, not JSON, or wrong shape.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ExportFormatError.invalid(str(path), str(e)) from e
    if not isinstance(data, list):
        raise ExportFormatError.invalid(str(path), "expected a JSON array")

    items = [_parse_item(raw, i, str(path)) for i, raw in enumerate(data)]
    dims = {len(item.vector) for item in items}
    if len(dims) > 1:
        raise ExportFormatError.invalid(str(path), f"mixed vector dimensions {sorted(dims)}")
    return items


def _recorded_model(items: list[IndexItem], path: str) -> str | None:
    models: set[str] = set()
    for item in items:
        model = item.metadata.get(MODEL_KEY)
        if isinstance(model, str) and model:
            models.add(model)
    if len(models) > 1:
        raise ExportFormatError.invalid(path, f"mixed embedding models {sorted(models)}")
    return models.pop() if models else None


def import_export(path: Path, store_dir: Path | None = None) -> VectorStore:
    """Build a store from an export file.

    In memory by default; persisted to ``store_dir`` when given. The store
    carries the model the export records, or none if it records none.

    Raises:
        ExportFormatError: The file is malformed.
    """
    items = load_export(path)
    model_name = _recorded_model(items, str(path))
    store: MemoryVectorStore
    if store_dir is not None:
        store = LocalVectorStore(Path(store_dir))
        store.clear()
        store.set_model_name(model_name)
    else:
        store = MemoryVectorStore(model_name=model_name)

    store.begin_update()
    try:
        for item in items:
            metadata = {k: v for k, v in item.metadata.items() if k != MODEL_KEY}
            store.upsert_item(item.id, item.vector, metadata)
        store.end_update()
    except Exception:
        store.abort_update()
        raise
    log.info(
        "export.imported",
        path=str(path),
        items=len(items),
        model=model_name,
        persisted=store_dir is not None,
    )
    return store

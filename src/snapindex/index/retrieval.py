"""Retrieval: query text -> ranked segments -> whole-file context bundle.

Hits are de-duplicated by file in rank order and each file is read fresh
from the working tree, so a bundle reflects current file content even when
the index is behind. Queries may overlap a running sync and see a partially
updated store.
"""

from __future__ import annotations

import time
from pathlib import Path

import structlog

from snapindex.config.models import RetrievalConfig
from snapindex.core.errors import ProviderError
from snapindex.index._internal.embedding.providers import EmbeddingProvider
from snapindex.index._internal.store.base import VectorStore
from snapindex.index.models import BundleFile, ContextBundle, ScoredItem

log = structlog.get_logger()


def group_by_file(hits: list[ScoredItem]) -> list[tuple[str, float, list[str]]]:
    """Collapse hits to (path, best score, segment names), first-seen order."""
    order: list[str] = []
    grouped: dict[str, tuple[float, list[str]]] = {}
    for hit in hits:
        path = hit.item.file_path
        if not path:
            log.debug("retrieval.hit_without_path", id=hit.item.id)
            continue
        name = str(hit.item.metadata.get("name", "anonymous"))
        if path not in grouped:
            order.append(path)
            grouped[path] = (hit.score, [name])
        else:
            grouped[path][1].append(name)
    return [(p, grouped[p][0], grouped[p][1]) for p in order]


class RetrievalPipeline:
    """Embed a query, search the store, assemble a ContextBundle.

    Works against any VectorStore, including one built from a portable
    export.
    """

    def __init__(
        self,
        store: VectorStore,
        provider: EmbeddingProvider,
        repo_root: Path,
        config: RetrievalConfig | None = None,
    ) -> None:
        self._store = store
        self._provider = provider
        self._repo_root = Path(repo_root).resolve()
        self._config = config or RetrievalConfig()

    def query(self, text: str, k: int | None = None) -> ContextBundle:
        """Bundle the files behind the top ``k`` hits (config default when None).

        Raises:
            ProviderError: The provider's model or dimension differs from the index.
        """
        start = time.monotonic()
        if k is None:
            k = self._config.top_k
        self._check_model()
        vector = self._provider.embed_query(text)
        dim = self._store.dim
        if dim is not None and len(vector) != dim:
            raise ProviderError.model_mismatch(
                self._store.model_name,
                self._provider.model_name,
                f"query dimension {len(vector)} does not match index dimension {dim}",
            )
        hits = self._store.query_items(vector, k)

        bundle = ContextBundle(query=text)
        budget = self._config.max_bundle_bytes
        for path, score, names in group_by_file(hits):
            content = self._read(path)
            if content is None:
                log.warning("retrieval.file_missing", path=path)
                bundle.missing.append(path)
                continue
            entry = BundleFile(path=path, content=content, score=score, segment_names=names)
            if bundle.total_bytes + entry.size_bytes > budget:
                log.info("retrieval.file_omitted", path=path, bytes=entry.size_bytes)
                bundle.omitted.append(path)
                continue
            bundle.files.append(entry)

        log.info(
            "retrieval.done",
            hits=len(hits),
            files=len(bundle.files),
            missing=len(bundle.missing),
            omitted=len(bundle.omitted),
            bytes=bundle.total_bytes,
            elapsed_ms=round((time.monotonic() - start) * 1000),
        )
        return bundle

    def _check_model(self) -> None:
        indexed = self._store.model_name
        if indexed and indexed != self._provider.model_name:
            raise ProviderError.model_mismatch(indexed, self._provider.model_name)

    def _read(self, rel_path: str) -> str | None:
        full_path = (self._repo_root / rel_path).resolve()
        if not full_path.is_relative_to(self._repo_root):
            log.warning("retrieval.path_outside_repo", path=rel_path)
            return None
        try:
            return full_path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return None

"""Embedding providers.

Two backends ship:
  - FastEmbedProvider: local ONNX model via fastembed (default,
    BAAI/bge-small-en-v1.5, 384-dim). Loaded lazily on first use.
  - OpenAICompatibleProvider: POST {api_base}/embeddings over httpx.

Providers are built per session by ``create_provider`` and released with
``close()``; nothing is cached at module level.
"""

from __future__ import annotations

import gc
import os
import threading
import time
from collections.abc import Sequence
from typing import Any, Protocol

import httpx
import numpy as np
import structlog

from snapindex.config.models import EmbeddingConfig
from snapindex.core.errors import ProviderError

log = structlog.get_logger()


class EmbeddingProvider(Protocol):
    """What the batcher and retrieval need from an embedding backend."""

    @property
    def model_name(self) -> str: ...

    def embed(self, text: str) -> list[float]: ...

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]: ...

    def embed_query(self, text: str) -> list[float]: ...

    def close(self) -> None: ...


def _detect_providers() -> list[str]:
    """Detect available ONNX Runtime execution providers."""
    try:
        import onnxruntime as ort  # type: ignore[import-not-found]

        available = set(ort.get_available_providers())
    except Exception:
        return []

    providers: list[str] = []
    if "CUDAExecutionProvider" in available:
        providers.append("CUDAExecutionProvider")
    providers.append("CPUExecutionProvider")
    return providers


def _to_list(vec: Any) -> list[float]:
    return [float(x) for x in np.asarray(vec, dtype=np.float32).reshape(-1)]


class FastEmbedProvider:
    """Local fastembed model, loaded on first embed call."""

    def __init__(self, model_name: str, *, batch_size: int = 64) -> None:
        self._model_name = model_name
        self._batch_size = batch_size
        self._model: Any | None = None
        self._lock = threading.Lock()

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def _ensure_model(self) -> Any:
        """Lazy-load fastembed TextEmbedding model with GPU auto-detect."""
        with self._lock:
            if self._model is not None:
                return self._model
            try:
                from fastembed import TextEmbedding
            except ImportError as e:
                raise ProviderError.unavailable("fastembed", "pip install fastembed") from e

            providers = _detect_providers()
            threads = max(1, (os.cpu_count() or 4) // 2)
            start = time.monotonic()
            kwargs: dict[str, Any] = {"model_name": self._model_name, "threads": threads}
            if providers:
                kwargs["providers"] = providers
            try:
                self._model = TextEmbedding(**kwargs)
            except Exception as e:
                raise ProviderError.unavailable("fastembed", str(e)) from e
            log.info(
                "embedding.model_loaded",
                model=self._model_name,
                providers=providers or ["CPUExecutionProvider"],
                threads=threads,
                elapsed_s=round(time.monotonic() - start, 2),
            )
            return self._model

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        model = self._ensure_model()
        return [_to_list(v) for v in model.embed(list(texts), batch_size=self._batch_size)]

    def embed_query(self, text: str) -> list[float]:
        model = self._ensure_model()
        vecs = list(model.query_embed(text))
        return _to_list(vecs[0])

    def close(self) -> None:
        with self._lock:
            if self._model is None:
                return
            self._model = None
        gc.collect()
        log.debug("embedding.model_released", model=self._model_name)


class OpenAICompatibleProvider:
    """Remote embeddings from an OpenAI-compatible ``/embeddings`` endpoint."""

    def __init__(
        self,
        model_name: str,
        *,
        api_base: str,
        api_key: str | None = None,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._model_name = model_name
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.Client(
            base_url=api_base.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @property
    def model_name(self) -> str:
        return self._model_name

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        response = self._client.post(
            "/embeddings", json={"model": self._model_name, "input": list(texts)}
        )
        response.raise_for_status()
        data = response.json().get("data", [])
        ordered = sorted(data, key=lambda d: d.get("index", 0))
        return [_to_list(d["embedding"]) for d in ordered]

    def embed_query(self, text: str) -> list[float]:
        return self.embed(text)

    def close(self) -> None:
        self._client.close()


def create_provider(config: EmbeddingConfig) -> EmbeddingProvider:
    """Build the configured provider. Models load lazily, not here."""
    if config.provider == "openai":
        api_key = os.environ.get(config.api_key_env)
        if not api_key:
            log.warning("embedding.api_key_missing", env=config.api_key_env)
        return OpenAICompatibleProvider(
            config.model_name,
            api_base=config.api_base,
            api_key=api_key,
            timeout=config.timeout_sec,
        )
    return FastEmbedProvider(config.model_name, batch_size=config.max_batch_count)

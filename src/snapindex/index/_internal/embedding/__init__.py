"""Embedding providers and batching."""

from snapindex.index._internal.embedding.batcher import (
    BatchJob,
    EmbeddingBatcher,
    EmbeddingOutcome,
    build_batches,
    truncate_text,
)
from snapindex.index._internal.embedding.providers import (
    EmbeddingProvider,
    FastEmbedProvider,
    OpenAICompatibleProvider,
    create_provider,
)

__all__ = [
    "BatchJob",
    "EmbeddingBatcher",
    "EmbeddingOutcome",
    "EmbeddingProvider",
    "FastEmbedProvider",
    "OpenAICompatibleProvider",
    "build_batches",
    "create_provider",
    "truncate_text",
]

"""Embedding batcher: truncate, group, and embed segments under bounded concurrency.

Batches close before exceeding either ``max_batch_count`` segments or
``max_batch_bytes`` UTF-8 bytes. A segment above ``max_segment_bytes`` is cut
at a character boundary and tagged with a truncation marker; only the text
sent to the provider changes, never the segment's content or hash.

Each input id ends up in exactly one of: vectors, a batch error, or the
cancelled list.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

import structlog

from snapindex.config.constants import TRUNCATION_MARKER
from snapindex.config.models import EmbeddingConfig
from snapindex.core.errors import EmbeddingBatchError
from snapindex.index._internal.embedding.providers import EmbeddingProvider
from snapindex.index.models import Segment

log = structlog.get_logger()


@dataclass
class BatchJob:
    """Segments sent to the provider in one call."""

    ids: list[str] = field(default_factory=list)
    texts: list[str] = field(default_factory=list)
    size_bytes: int = 0

    def __len__(self) -> int:
        return len(self.ids)


@dataclass
class EmbeddingOutcome:
    vectors: dict[str, list[float]] = field(default_factory=dict)
    errors: list[EmbeddingBatchError] = field(default_factory=list)
    truncated_ids: list[str] = field(default_factory=list)
    cancelled_ids: list[str] = field(default_factory=list)
    batches: int = 0

    @property
    def failed_ids(self) -> list[str]:
        return [i for e in self.errors for i in e.ids]


def truncate_text(text: str, max_bytes: int) -> tuple[str, bool]:
    """Fit ``text`` into ``max_bytes`` UTF-8 bytes, marker included."""
    raw = text.encode("utf-8")
    if len(raw) <= max_bytes:
        return text, False
    budget = max_bytes - len(TRUNCATION_MARKER.encode("utf-8"))
    # errors="ignore" drops a multi-byte character split by the cut
    head = raw[: max(budget, 0)].decode("utf-8", errors="ignore")
    return head + TRUNCATION_MARKER, True


def embedding_text(segment: Segment) -> str:
    return segment.content if segment.content.strip() else segment.name


def build_batches(
    segments: Sequence[Segment], config: EmbeddingConfig
) -> tuple[list[BatchJob], list[str]]:
    """Group segments into bounded batches.

    Returns:
        (batches, truncated_ids)
    """
    batches: list[BatchJob] = []
    truncated: list[str] = []
    current = BatchJob()

    for segment in segments:
        text, was_truncated = truncate_text(embedding_text(segment), config.max_segment_bytes)
        if was_truncated:
            truncated.append(segment.id)
            log.info(
                "embedding.segment_truncated",
                id=segment.id,
                file=segment.file_path,
                name=segment.name,
                bytes=len(segment.content.encode("utf-8")),
                limit=config.max_segment_bytes,
            )
        size = len(text.encode("utf-8"))

        if current.ids and (
            len(current) >= config.max_batch_count
            or current.size_bytes + size > config.max_batch_bytes
        ):
            batches.append(current)
            current = BatchJob()

        current.ids.append(segment.id)
        current.texts.append(text)
        current.size_bytes += size

    if current.ids:
        batches.append(current)
    return batches, truncated


class EmbeddingBatcher:
    """Embed segments with at most ``config.concurrency`` batches in flight.

    ``cancel()`` stops dispatching new batches; calls already in flight run
    to completion and their vectors are kept.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        config: EmbeddingConfig | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._provider = provider
        self._config = config or EmbeddingConfig()
        self._cancel = cancel_event or threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        self._cancel.set()

    def embed_segments(
        self,
        segments: Sequence[Segment],
        on_progress: Callable[[int, int], None] | None = None,
    ) -> EmbeddingOutcome:
        """Embed all segments; partial failures are reported, not raised."""
        batches, truncated = build_batches(segments, self._config)
        outcome = EmbeddingOutcome(truncated_ids=truncated, batches=len(batches))
        if not batches:
            return outcome

        total = len(segments)
        done = 0
        start = time.monotonic()
        workers = min(self._config.concurrency, len(batches))

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="embed") as pool:
            futures = {pool.submit(self._run_batch, job): job for job in batches}
            for future in as_completed(futures):
                job = futures[future]
                result = future.result()
                if result is None:
                    outcome.cancelled_ids.extend(job.ids)
                elif isinstance(result, EmbeddingBatchError):
                    outcome.errors.append(result)
                else:
                    outcome.vectors.update(zip(job.ids, result, strict=True))
                done += len(job)
                if on_progress is not None:
                    on_progress(done, total)

        log.info(
            "embedding.done",
            segments=total,
            batches=len(batches),
            embedded=len(outcome.vectors),
            failed=len(outcome.failed_ids),
            cancelled=len(outcome.cancelled_ids),
            truncated=len(truncated),
            elapsed_ms=round((time.monotonic() - start) * 1000),
        )
        return outcome

    def _run_batch(self, job: BatchJob) -> list[list[float]] | EmbeddingBatchError | None:
        if self._cancel.is_set():
            return None
        try:
            vectors = self._provider.embed_batch(job.texts)
        except Exception as e:
            log.warning(
                "embedding.batch_failed",
                size=len(job),
                bytes=job.size_bytes,
                error=str(e),
            )
            return EmbeddingBatchError.batch_failed(job.ids, f"{type(e).__name__}: {e}")
        if len(vectors) != len(job):
            log.warning("embedding.batch_mismatch", size=len(job), got=len(vectors))
            return EmbeddingBatchError.response_mismatch(job.ids, len(vectors))
        log.debug("embedding.batch_done", size=len(job), bytes=job.size_bytes)
        return vectors

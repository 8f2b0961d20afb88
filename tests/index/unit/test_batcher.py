"""Tests for the embedding batcher.

Covers:
- truncate_text(): byte ceiling, character boundaries, marker
- build_batches(): count and byte bounds, exactly-once partition
- EmbeddingBatcher: partial failure, response mismatch, cancellation,
  progress callback
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from typing import Any

import pytest

from snapindex.config.constants import TRUNCATION_MARKER
from snapindex.config.models import EmbeddingConfig
from snapindex.core.errors import ErrorCode
from snapindex.index._internal.embedding.batcher import (
    EmbeddingBatcher,
    build_batches,
    truncate_text,
)


class TestTruncateText:
    """Tests for truncate_text()."""

    def test_short_text_untouched(self) -> None:
        assert truncate_text("hello", 100) == ("hello", False)

    def test_exact_limit_untouched(self) -> None:
        text = "a" * 100
        assert truncate_text(text, 100) == (text, False)

    def test_long_text_cut_with_marker(self) -> None:
        text, truncated = truncate_text("a" * 500, 100)
        assert truncated
        assert text.endswith(TRUNCATION_MARKER)
        assert len(text.encode("utf-8")) <= 100

    def test_multibyte_not_split(self) -> None:
        text, truncated = truncate_text("é" * 200, 51)
        assert truncated
        # Decodes cleanly and stays under the ceiling
        assert len(text.encode("utf-8")) <= 51
        assert set(text[: -len(TRUNCATION_MARKER)]) == {"é"}


class TestBuildBatches:
    """Tests for build_batches()."""

    def test_count_bound(self, make_segment: Callable[..., Any]) -> None:
        segments = [make_segment(name=f"f{i}", content=f"fn f{i}") for i in range(10)]
        config = EmbeddingConfig(max_batch_count=3)
        batches, truncated = build_batches(segments, config)
        assert [len(b) for b in batches] == [3, 3, 3, 1]
        assert truncated == []

    def test_byte_bound(self, make_segment: Callable[..., Any]) -> None:
        segments = [make_segment(name=f"f{i}", content="x" * 40) for i in range(5)]
        config = EmbeddingConfig(max_batch_bytes=100, max_segment_bytes=50)
        batches, _ = build_batches(segments, config)
        assert all(b.size_bytes <= 100 for b in batches)
        assert [len(b) for b in batches] == [2, 2, 1]

    def test_every_id_exactly_once_in_order(self, make_segment: Callable[..., Any]) -> None:
        segments = [make_segment(name=f"f{i}", content="y" * (i * 7)) for i in range(1, 30)]
        config = EmbeddingConfig(max_batch_count=4, max_batch_bytes=120, max_segment_bytes=60)
        batches, _ = build_batches(segments, config)
        flat = [i for b in batches for i in b.ids]
        assert flat == [s.id for s in segments]
        for batch in batches:
            assert len(batch) <= 4
            assert batch.size_bytes <= 120

    def test_oversized_segment_truncated_into_own_batch(
        self, make_segment: Callable[..., Any]
    ) -> None:
        big = make_segment(name="big", content="z" * 10_000)
        small = make_segment(name="small", content="tiny")
        config = EmbeddingConfig(max_batch_bytes=200, max_segment_bytes=200)
        batches, truncated = build_batches([big, small], config)
        assert truncated == [big.id]
        assert batches[0].texts[0].endswith(TRUNCATION_MARKER)
        assert batches[0].size_bytes <= 200
        assert [b.ids for b in batches] == [[big.id], [small.id]]

    def test_truncation_leaves_segment_untouched(self, make_segment: Callable[..., Any]) -> None:
        big = make_segment(name="big", content="z" * 1_000)
        build_batches([big], EmbeddingConfig(max_batch_bytes=200, max_segment_bytes=200))
        assert big.content == "z" * 1_000

    def test_empty_input(self) -> None:
        assert build_batches([], EmbeddingConfig()) == ([], [])


class _FlakyProvider:
    """Fails any batch containing a marked text."""

    model_name = "flaky"

    def __init__(self, bad: str, *, short: bool = False) -> None:
        self.bad = bad
        self.short = short
        self.batches: list[list[str]] = []
        self._lock = threading.Lock()

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        with self._lock:
            self.batches.append(list(texts))
        if any(self.bad in t for t in texts):
            if self.short:
                return [[1.0, 0.0]]
            raise RuntimeError("upstream 500")
        return [[float(len(t)), 1.0] for t in texts]

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_query(self, text: str) -> list[float]:
        return self.embed(text)

    def close(self) -> None:
        pass


class TestEmbeddingBatcher:
    """Tests for EmbeddingBatcher.embed_segments()."""

    def test_all_vectors_returned(
        self, make_segment: Callable[..., Any], fake_provider: Any
    ) -> None:
        segments = [make_segment(name=f"f{i}", content=f"function f{i}() {{}}") for i in range(7)]
        batcher = EmbeddingBatcher(fake_provider, EmbeddingConfig(max_batch_count=2))
        outcome = batcher.embed_segments(segments)
        assert set(outcome.vectors) == {s.id for s in segments}
        assert outcome.errors == []
        assert outcome.batches == 4
        assert len(fake_provider.calls) == 4

    def test_failed_batch_reported_others_kept(self, make_segment: Callable[..., Any]) -> None:
        segments = [make_segment(name=f"f{i}", content=f"body {i}") for i in range(6)]
        segments[4] = make_segment(name="f4", content="BAD body")
        provider = _FlakyProvider("BAD")
        config = EmbeddingConfig(max_batch_count=2, concurrency=2)
        outcome = EmbeddingBatcher(provider, config).embed_segments(segments)

        failed = set(outcome.failed_ids)
        assert failed == {segments[4].id, segments[5].id}
        assert set(outcome.vectors) == {s.id for s in segments[:4]}
        assert outcome.errors[0].code == ErrorCode.EMBEDDING_BATCH_FAILED
        assert "upstream 500" in outcome.errors[0].message

    def test_length_mismatch_is_batch_failure(self, make_segment: Callable[..., Any]) -> None:
        segments = [make_segment(name="a", content="BAD a"), make_segment(name="b", content="b")]
        provider = _FlakyProvider("BAD", short=True)
        outcome = EmbeddingBatcher(provider, EmbeddingConfig()).embed_segments(segments)
        assert outcome.vectors == {}
        assert outcome.errors[0].code == ErrorCode.EMBEDDING_RESPONSE_MISMATCH
        assert sorted(outcome.failed_ids) == sorted(s.id for s in segments)

    def test_cancel_before_start_dispatches_nothing(
        self, make_segment: Callable[..., Any], fake_provider: Any
    ) -> None:
        segments = [make_segment(name=f"f{i}") for i in range(5)]
        cancel = threading.Event()
        cancel.set()
        batcher = EmbeddingBatcher(
            fake_provider, EmbeddingConfig(max_batch_count=2), cancel_event=cancel
        )
        outcome = batcher.embed_segments(segments)
        assert fake_provider.calls == []
        assert sorted(outcome.cancelled_ids) == sorted(s.id for s in segments)
        assert batcher.cancelled

    def test_cancel_mid_run_partitions_ids(self, make_segment: Callable[..., Any]) -> None:
        segments = [make_segment(name=f"f{i}", content=f"body {i}") for i in range(6)]
        cancel = threading.Event()

        class _CancellingProvider(_FlakyProvider):
            def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
                result = super().embed_batch(texts)
                cancel.set()
                return result

        provider = _CancellingProvider("never")
        config = EmbeddingConfig(max_batch_count=2, concurrency=1)
        outcome = EmbeddingBatcher(provider, config, cancel_event=cancel).embed_segments(segments)

        assert len(provider.batches) == 1
        assert len(outcome.vectors) == 2
        assert len(outcome.cancelled_ids) == 4
        all_ids = set(outcome.vectors) | set(outcome.cancelled_ids) | set(outcome.failed_ids)
        assert all_ids == {s.id for s in segments}

    def test_progress_callback(
        self, make_segment: Callable[..., Any], fake_provider: Any
    ) -> None:
        segments = [make_segment(name=f"f{i}") for i in range(5)]
        seen: list[tuple[int, int]] = []
        batcher = EmbeddingBatcher(fake_provider, EmbeddingConfig(max_batch_count=2))
        batcher.embed_segments(segments, on_progress=lambda d, t: seen.append((d, t)))
        assert seen[-1] == (5, 5)
        assert len(seen) == 3

    def test_empty_content_embeds_name(
        self, make_segment: Callable[..., Any], fake_provider: Any
    ) -> None:
        seg = make_segment(name="empty.txt", content="")
        EmbeddingBatcher(fake_provider).embed_segments([seg])
        assert fake_provider.embedded_texts == ["empty.txt"]


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"max_segment_bytes": 2_000_000}, "must not exceed"),
        ({"max_batch_count": 0}, "must be >= 1"),
        ({"max_segment_bytes": 4}, "truncation marker"),
    ],
)
def test_config_validation(kwargs: dict[str, int], message: str) -> None:
    from pydantic import ValidationError

    with pytest.raises(ValidationError, match=message):
        EmbeddingConfig(**kwargs)

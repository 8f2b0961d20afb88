"""Segmenter router: extension -> strategy dispatch with whole-file fallback.

The router is the only entry point the synchronizer uses. It reads each
file, picks a strategy from an explicit extension table, assigns stable
identities and guarantees at least one segment per readable file.

Dispatch order for an extension:
1. ECMAScript AST strategy (js, jsx, ts, tsx, ...)
2. Tree-walker strategy (python, java, kotlin, go, ...)
3. Line heuristic when a brace language's grammar is not installed
4. Whole-file segment for everything else

A strategy whose grammar fails to load at parse time is demoted to step 3
(brace languages) or 4 for the rest of the router's life.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

import structlog

from snapindex.config.models import SegmenterConfig
from snapindex.core.errors import SegmentationError
from snapindex.index._internal.identity import assign_identities, normalize_path
from snapindex.index._internal.parsing.packs import (
    ALL_PACKS,
    HEURISTIC_ONLY_EXTENSIONS,
    SegmentPack,
)
from snapindex.index._internal.parsing.treesitter import TreeSitterParser, is_grammar_installed
from snapindex.index._internal.segmentation.base import SegmentationStrategy, SegmentUnit
from snapindex.index._internal.segmentation.ecmascript import EcmaScriptStrategy
from snapindex.index._internal.segmentation.heuristic import LineHeuristicStrategy
from snapindex.index._internal.segmentation.tree_walker import TreeWalkerStrategy
from snapindex.index.models import Segment, SegmentKind

log = structlog.get_logger()

# Raised by tree_sitter and grammar modules when a grammar cannot load or run
_GRAMMAR_ERRORS = (ValueError, TypeError, RuntimeError, OSError)


@dataclass
class SegmentationBatch:
    """Segments for many files plus the files that could not be segmented."""

    segments: list[Segment] = field(default_factory=list)
    errors: list[SegmentationError] = field(default_factory=list)
    files: int = 0

    @property
    def failed_files(self) -> list[str]:
        return [e.file_path for e in self.errors]


def _build_strategy(
    pack: SegmentPack, parser: TreeSitterParser, config: SegmenterConfig
) -> SegmentationStrategy | None:
    if not is_grammar_installed(pack):
        if pack.brace_syntax:
            log.debug("segment.grammar_missing", language=pack.name, fallback="heuristic")
            return LineHeuristicStrategy(pack.name)
        log.debug("segment.grammar_missing", language=pack.name, fallback="file")
        return None
    if pack.strategy == "ecmascript":
        return EcmaScriptStrategy(pack, parser, max_error_ratio=config.max_error_ratio)
    return TreeWalkerStrategy(pack, parser)


def build_strategy_table(
    config: SegmenterConfig, parser: TreeSitterParser | None = None
) -> dict[str, SegmentationStrategy]:
    """Map lower-case extensions (no dot) to the strategy that handles them."""
    parser = parser or TreeSitterParser()
    table: dict[str, SegmentationStrategy] = {}
    for pack in ALL_PACKS:
        strategy = _build_strategy(pack, parser, config)
        if strategy is None:
            continue
        for ext in pack.extensions:
            table[ext] = strategy
    for ext, language in HEURISTIC_ONLY_EXTENSIONS.items():
        table.setdefault(ext, LineHeuristicStrategy(language))
    return table


class SegmenterRouter:
    """Dispatch files to segmentation strategies.

    Usage::

        router = SegmenterRouter(repo_root, config.segmenter)
        segments = router.segment("src/app.js")
        batch = router.segment_many(paths)
    """

    def __init__(
        self,
        repo_root: Path,
        config: SegmenterConfig | None = None,
        *,
        strategies: dict[str, SegmentationStrategy] | None = None,
    ) -> None:
        self._repo_root = Path(repo_root)
        self._config = config or SegmenterConfig()
        self._strategies = (
            dict(strategies) if strategies is not None else build_strategy_table(self._config)
        )
        self._lock = threading.Lock()

    @property
    def strategies(self) -> dict[str, SegmentationStrategy]:
        return self._strategies

    def strategy_for(self, file_path: str) -> SegmentationStrategy | None:
        suffix = PurePosixPath(file_path).suffix.lower().lstrip(".")
        return self._strategies.get(suffix)

    def segment(self, file_path: str) -> list[Segment]:
        """Segment one repository-relative file.

        Raises:
            SegmentationError: File unreadable, or its AST parse is irrecoverable.
        """
        rel_path = normalize_path(file_path)
        try:
            raw = (self._repo_root / rel_path).read_bytes()
        except OSError as e:
            raise SegmentationError.unreadable(rel_path, str(e)) from e
        return self.segment_text(rel_path, raw.decode("utf-8", errors="replace"))

    def segment_text(self, file_path: str, text: str) -> list[Segment]:
        """Segment already-loaded text; see ``segment``."""
        rel_path = normalize_path(file_path)
        strategy = self.strategy_for(rel_path)
        language: str | None = None
        units: list[SegmentUnit] = []

        if strategy is not None:
            language = strategy.language
            units = self._run_strategy(strategy, rel_path, text)

        if not units:
            units = [
                SegmentUnit(
                    kind=SegmentKind.FILE,
                    name=PurePosixPath(rel_path).name,
                    content=text,
                    start_line=1,
                    end_line=text.count("\n") + 1,
                )
            ]

        return assign_identities(rel_path, units, language=language)

    def _run_strategy(
        self, strategy: SegmentationStrategy, rel_path: str, text: str
    ) -> list[SegmentUnit]:
        try:
            return strategy.segment(rel_path, text)
        except SegmentationError:
            raise
        except _GRAMMAR_ERRORS as e:
            fallback = self._demote(strategy, e)
        if fallback is None:
            return []
        return fallback.segment(rel_path, text)

    def _demote(
        self, strategy: SegmentationStrategy, error: Exception
    ) -> SegmentationStrategy | None:
        """Replace a strategy whose grammar failed with its no-grammar fallback."""
        pack: SegmentPack | None = getattr(strategy, "pack", None)
        fallback: SegmentationStrategy | None = None
        if pack is not None and pack.brace_syntax:
            fallback = LineHeuristicStrategy(strategy.language)
        with self._lock:
            exts = [ext for ext, s in self._strategies.items() if s is strategy]
            for ext in exts:
                if fallback is None:
                    del self._strategies[ext]
                else:
                    self._strategies[ext] = fallback
        if exts:
            log.warning(
                "segment.grammar_failed",
                language=strategy.language,
                error=str(error),
                fallback="heuristic" if fallback is not None else "file",
            )
        return fallback

    def segment_many(
        self,
        paths: Sequence[str],
        *,
        fail_fast: bool | None = None,
    ) -> SegmentationBatch:
        """Segment files on a bounded worker pool.

        Output order follows ``paths`` regardless of completion order.

        Raises:
            SegmentationError: Only when ``fail_fast`` is set (defaults to config).
        """
        fail_fast = self._config.fail_fast if fail_fast is None else fail_fast
        start = time.monotonic()
        batch = SegmentationBatch(files=len(paths))
        if not paths:
            return batch

        def _work(path: str) -> list[Segment] | SegmentationError:
            try:
                return self.segment(path)
            except SegmentationError as e:
                return e

        workers = min(self._config.max_workers, len(paths))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="segment") as pool:
            results = list(pool.map(_work, paths))

        for result in results:
            if isinstance(result, SegmentationError):
                log.warning(
                    "segment.failed",
                    file=result.file_path,
                    error=result.error_name,
                    reason=result.message,
                )
                if fail_fast:
                    raise result
                batch.errors.append(result)
            else:
                batch.segments.extend(result)

        log.debug(
            "segment.batch_done",
            files=len(paths),
            segments=len(batch.segments),
            errors=len(batch.errors),
            elapsed_ms=round((time.monotonic() - start) * 1000),
        )
        return batch

"""Segmentation: split source files into identified code units."""

from snapindex.index._internal.segmentation.base import SegmentationStrategy, SegmentUnit
from snapindex.index._internal.segmentation.router import (
    SegmentationBatch,
    SegmenterRouter,
    build_strategy_table,
)

__all__ = [
    "SegmentUnit",
    "SegmentationBatch",
    "SegmentationStrategy",
    "SegmenterRouter",
    "build_strategy_table",
]

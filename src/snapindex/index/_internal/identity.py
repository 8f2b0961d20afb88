"""Stable segment ids and content hashes.

The id depends only on where a unit lives (file, name, occurrence of that
name in the file), never on its content, so an edited function keeps its id
and shows up as an update. The content hash is the only change signal.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from typing import TYPE_CHECKING

from snapindex.index.models import Segment

if TYPE_CHECKING:
    from snapindex.index._internal.segmentation.base import SegmentUnit

ANONYMOUS = "anonymous"


def normalize_path(file_path: str) -> str:
    """Repository-relative path with forward slashes and no leading './'."""
    path = file_path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path.lstrip("/")


def segment_id(file_path: str, name: str | None, occurrence: int) -> str:
    """Deterministic id for the Nth unit called ``name`` in ``file_path``."""
    key = f"{normalize_path(file_path)}:{name or ANONYMOUS}:{occurrence}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def assign_identities(
    file_path: str,
    units: Iterable[SegmentUnit],
    *,
    language: str | None = None,
) -> list[Segment]:
    """Turn strategy output into Segments.

    Units must arrive in document order: the occurrence counter for a
    repeated name is 1 for its first appearance in the file.
    """
    path = normalize_path(file_path)
    seen: dict[str, int] = {}
    segments: list[Segment] = []
    for unit in units:
        name = unit.name or ANONYMOUS
        seen[name] = seen.get(name, 0) + 1
        occurrence = seen[name]
        segments.append(
            Segment(
                id=segment_id(path, name, occurrence),
                type=unit.kind,
                name=name,
                file_path=path,
                content=unit.content,
                content_hash=content_hash(unit.content),
                occurrence=occurrence,
                language=language,
                start_line=unit.start_line,
                end_line=unit.end_line,
                context=dict(unit.context),
            )
        )
    return segments

"""Manifest: the persisted ``segment id -> content hash`` map for one index.

The manifest records what the vector store holds as of the last successful
sync. ``diff`` compares it against freshly segmented files to decide what
must be embedded, re-embedded or removed.

Storage (per profile index directory):
  - manifest.json        flat {id: hash} object
  - manifest.state.json  {"generation": int, "last_sync_at": iso8601 | null}
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from snapindex.config.constants import MANIFEST_STATE_FILE
from snapindex.core.errors import ManifestCorruptionError
from snapindex.index._internal.atomic import write_json_atomic
from snapindex.index.models import IndexItem, ManifestDiff, Segment

log = structlog.get_logger()

_HASH_RE = re.compile(r"^[0-9a-f]{64}$")


class Manifest:
    """Typed ``id -> content_hash`` map with load / validate / save.

    Usage::

        manifest = Manifest.load_or_empty(index_dir / "manifest.json")
        diff = manifest.diff(segments)
        ...
        manifest.apply(upserted={s.id: s.content_hash for s in written}, deleted=diff.to_delete)
        manifest.save(index_dir / "manifest.json")
    """

    def __init__(
        self,
        entries: dict[str, str] | None = None,
        *,
        generation: int = 0,
        last_sync_at: str | None = None,
    ) -> None:
        self._entries: dict[str, str] = dict(entries or {})
        self.generation = generation
        self.last_sync_at = last_sync_at

    # ------------------------------------------------------------------
    # Mapping API
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, segment_id: object) -> bool:
        return segment_id in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def get(self, segment_id: str) -> str | None:
        return self._entries.get(segment_id)

    def ids(self) -> set[str]:
        return set(self._entries)

    def to_dict(self) -> dict[str, str]:
        return dict(self._entries)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def diff(self, current: Iterable[Segment]) -> ManifestDiff:
        return diff(current, self)

    def apply(self, *, upserted: dict[str, str], deleted: Iterable[str]) -> None:
        """Record a committed store write and advance the generation."""
        for segment_id in deleted:
            self._entries.pop(segment_id, None)
        self._entries.update(upserted)
        self.generation += 1
        self.last_sync_at = datetime.now(UTC).isoformat(timespec="seconds")

    @classmethod
    def from_store(cls, items: Iterable[IndexItem], *, generation: int = 0) -> Manifest:
        """Rebuild from store metadata. Items without a contentHash are skipped.

        A skipped item will not match any current hash, so the next diff
        re-embeds its segment or deletes it.
        """
        entries: dict[str, str] = {}
        for item in items:
            if item.content_hash:
                entries[item.id] = item.content_hash
        return cls(entries, generation=generation)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @staticmethod
    def validate(data: Any, path: str = "<memory>") -> dict[str, str]:
        """Check the on-disk shape.

        Raises:
            ManifestCorruptionError: Not a flat object of id -> sha256 hex.
        """
        if not isinstance(data, dict):
            raise ManifestCorruptionError.malformed(path, "expected a JSON object")
        for key, value in data.items():
            if not isinstance(key, str) or not key:
                raise ManifestCorruptionError.malformed(path, f"invalid id {key!r}")
            if not isinstance(value, str) or not _HASH_RE.match(value):
                raise ManifestCorruptionError.malformed(path, f"invalid hash for {key}")
        return data

    @classmethod
    def load(cls, path: Path) -> Manifest:
        """Load from disk. A missing file is an empty manifest.

        Raises:
            ManifestCorruptionError: Unreadable JSON or wrong shape.
        """
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ManifestCorruptionError.malformed(str(path), str(e)) from e
        entries = cls.validate(data, str(path))
        generation, last_sync_at = _load_state(path.parent / MANIFEST_STATE_FILE)
        return cls(entries, generation=generation, last_sync_at=last_sync_at)

    @classmethod
    def load_or_empty(cls, path: Path) -> Manifest:
        """Load, treating a corrupt manifest as empty (full re-add)."""
        try:
            return cls.load(path)
        except ManifestCorruptionError as e:
            log.warning("manifest.corrupt", path=str(path), reason=e.details.get("reason"))
            return cls()

    def save(self, path: Path) -> None:
        write_json_atomic(path, self._entries)
        write_json_atomic(
            path.parent / MANIFEST_STATE_FILE,
            {"generation": self.generation, "last_sync_at": self.last_sync_at},
        )
        log.debug("manifest.saved", path=str(path), entries=len(self), generation=self.generation)


def _load_state(path: Path) -> tuple[int, str | None]:
    if not path.exists():
        return 0, None
    try:
        state = json.loads(path.read_text(encoding="utf-8"))
        return int(state.get("generation", 0)), state.get("last_sync_at")
    except (OSError, ValueError, AttributeError, TypeError):
        log.warning("manifest.state_unreadable", path=str(path))
        return 0, None


def diff(current: Iterable[Segment], manifest: Manifest) -> ManifestDiff:
    """Three-way reconciliation of current segments against the manifest.

    - id absent from the manifest: add
    - id present with a different hash: update
    - manifest id no longer produced: delete
    """
    by_id: dict[str, Segment] = {}
    for segment in current:
        if segment.id in by_id:
            log.warning("manifest.duplicate_id", id=segment.id, file=segment.file_path)
        by_id[segment.id] = segment

    result = ManifestDiff()
    for segment_id, segment in by_id.items():
        previous = manifest.get(segment_id)
        if previous is None:
            result.to_add.append(segment)
        elif previous != segment.content_hash:
            result.to_update.append(segment)
        else:
            result.unchanged += 1

    result.to_delete = sorted(manifest.ids() - by_id.keys())
    return result

"""Data model for the incremental segment index.

Segment is the unit of identity and change detection. IndexItem is what the
vector store holds. ManifestDiff, SyncReport and ContextBundle are the
results handed back by the differ, the synchronizer and retrieval.

Serialized shapes use camelCase keys (filePath, contentHash, startLine,
endLine) so exported metadata matches what other tools read.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SegmentKind(str, Enum):
    """Kind of code unit a segment covers.

    FILE is the universal fallback when a strategy finds no units.
    """

    FUNCTION = "function"
    CLASS = "class"
    FILE = "file"
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    INTERFACE = "interface"
    ENUM = "enum"
    STRUCT = "struct"
    TRAIT = "trait"
    IMPL = "impl"
    MODULE = "module"
    OBJECT = "object"
    PROPERTY = "property"
    COMPANION_OBJECT = "companion_object"
    INIT_BLOCK = "init_block"


@dataclass(frozen=True)
class Segment:
    """A unit of code with a stable id and a content hash.

    ``id`` is derived from (file_path, name, occurrence) only, so the same
    unit keeps its id across runs while its content changes.
    """

    id: str
    type: SegmentKind
    name: str
    file_path: str
    content: str
    content_hash: str
    occurrence: int = 1
    language: str | None = None
    start_line: int | None = None
    end_line: int | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def metadata(self, *, include_content: bool = False) -> dict[str, Any]:
        """Store metadata: the segment without its content unless asked."""
        data = self.to_dict()
        if not include_content:
            data.pop("content", None)
        return data

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "filePath": self.file_path,
            "content": self.content,
            "contentHash": self.content_hash,
            "occurrence": self.occurrence,
        }
        if self.language is not None:
            data["language"] = self.language
        if self.start_line is not None:
            data["startLine"] = self.start_line
        if self.end_line is not None:
            data["endLine"] = self.end_line
        if self.context:
            data["context"] = dict(self.context)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Segment:
        try:
            kind = SegmentKind(data["type"])
        except ValueError:
            kind = SegmentKind.FILE
        return cls(
            id=data["id"],
            type=kind,
            name=data.get("name") or "anonymous",
            file_path=data["filePath"],
            content=data.get("content", ""),
            content_hash=data["contentHash"],
            occurrence=int(data.get("occurrence", 1)),
            language=data.get("language"),
            start_line=data.get("startLine"),
            end_line=data.get("endLine"),
            context=dict(data.get("context") or {}),
        )


@dataclass
class IndexItem:
    """A vector plus its segment metadata, as held by a vector store."""

    id: str
    vector: list[float]
    metadata: dict[str, Any]

    @property
    def file_path(self) -> str:
        return str(self.metadata.get("filePath", ""))

    @property
    def content_hash(self) -> str | None:
        value = self.metadata.get("contentHash")
        return str(value) if value is not None else None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "vector": list(self.vector), "metadata": dict(self.metadata)}


@dataclass
class ScoredItem:
    """One query hit: an item and its cosine similarity."""

    item: IndexItem
    score: float


@dataclass
class ManifestDiff:
    """Three-way reconciliation of current segments against the manifest."""

    to_add: list[Segment] = field(default_factory=list)
    to_update: list[Segment] = field(default_factory=list)
    to_delete: list[str] = field(default_factory=list)
    unchanged: int = 0

    @property
    def is_empty(self) -> bool:
        return not (self.to_add or self.to_update or self.to_delete)

    @property
    def to_embed(self) -> list[Segment]:
        return [*self.to_add, *self.to_update]


class SyncPhase(str, Enum):
    """Synchronizer state machine."""

    IDLE = "idle"
    SCANNING = "scanning"
    DIFFING = "diffing"
    EMBEDDING = "embedding"
    WRITING = "writing"
    PERSISTED = "persisted"
    FAILED = "failed"


@dataclass
class SyncReport:
    """Outcome of one synchronizer run."""

    phase: SyncPhase = SyncPhase.IDLE
    added: int = 0
    updated: int = 0
    deleted: int = 0
    unchanged: int = 0
    failed: int = 0
    failed_ids: list[str] = field(default_factory=list)
    failed_files: list[str] = field(default_factory=list)
    truncated_ids: list[str] = field(default_factory=list)
    segmentation_errors: list[dict[str, Any]] = field(default_factory=list)
    embedding_errors: list[dict[str, Any]] = field(default_factory=list)
    up_to_date: bool = False
    rebuilt: bool = False
    generation: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "added": self.added,
            "updated": self.updated,
            "deleted": self.deleted,
            "unchanged": self.unchanged,
            "failed": self.failed,
            "failed_ids": list(self.failed_ids),
            "failed_files": list(self.failed_files),
            "truncated_ids": list(self.truncated_ids),
            "segmentation_errors": list(self.segmentation_errors),
            "embedding_errors": list(self.embedding_errors),
            "up_to_date": self.up_to_date,
            "rebuilt": self.rebuilt,
            "generation": self.generation,
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass
class BundleFile:
    """A whole file pulled into a context bundle."""

    path: str
    content: str
    score: float
    segment_names: list[str] = field(default_factory=list)

    @property
    def size_bytes(self) -> int:
        return len(self.content.encode("utf-8"))


@dataclass
class ContextBundle:
    """Files relevant to a query, in rank order."""

    query: str
    files: list[BundleFile] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    omitted: list[str] = field(default_factory=list)

    @property
    def total_bytes(self) -> int:
        return sum(f.size_bytes for f in self.files)

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]

    def render(self) -> str:
        """Render as a Markdown snapshot, one tagged block per file."""
        parts = [f'# Context-Aware Snapshot for Query: "{self.query}"\n\n---\n\n']
        for f in self.files:
            parts.append(f"--- File: /{f.path} ---\n\n{f.content}\n\n")
        return "".join(parts)

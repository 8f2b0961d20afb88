"""Segmentation strategy contract and shared tree-sitter node helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from snapindex.index.models import SegmentKind

ANONYMOUS = "anonymous"

_IDENTIFIER_TYPES = frozenset(
    {
        "identifier",
        "simple_identifier",
        "type_identifier",
        "property_identifier",
        "field_identifier",
        "constant",
        "name",
    }
)

# Children never searched for a unit's name
_BODY_TYPES = frozenset(
    {
        "block",
        "body",
        "class_body",
        "enum_class_body",
        "enum_body",
        "interface_body",
        "function_body",
        "statements",
        "statement_block",
        "declaration_list",
        "field_declaration_list",
        "compound_statement",
        "formal_parameters",
        "parameters",
        "parameter_list",
        "function_value_parameters",
    }
)

_ANNOTATION_TYPES = frozenset({"annotation", "marker_annotation", "decorator"})


@dataclass
class SegmentUnit:
    """A code unit found by a strategy, before identity assignment."""

    kind: SegmentKind
    name: str
    content: str
    start_line: int | None = None
    end_line: int | None = None
    context: dict[str, Any] = field(default_factory=dict)


class SegmentationStrategy(Protocol):
    """Turns file text into code units, in document order.

    Returning an empty list means "no units found"; the router then falls
    back to a single whole-file segment. Irrecoverable input raises
    ``SegmentationError``.
    """

    name: str
    language: str

    def segment(self, file_path: str, text: str) -> list[SegmentUnit]: ...


def node_text(node: Any, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def node_name(node: Any, source: bytes) -> str:
    """Best-effort symbol name for a declaration node."""
    named = node.child_by_field_name("name")
    if named is not None:
        return node_text(named, source)

    # C-style declarators nest: function_definition > function_declarator > identifier
    declarator = node.child_by_field_name("declarator")
    while declarator is not None:
        named = declarator.child_by_field_name("name")
        if named is not None:
            return node_text(named, source)
        inner = declarator.child_by_field_name("declarator")
        if inner is None:
            break
        declarator = inner
    if declarator is not None and declarator.type in _IDENTIFIER_TYPES:
        return node_text(declarator, source)

    frontier = list(node.children)
    for _ in range(2):
        next_frontier = []
        for child in frontier:
            if child.type in _IDENTIFIER_TYPES:
                return node_text(child, source)
            if child.type not in _BODY_TYPES and child.type not in _ANNOTATION_TYPES:
                next_frontier.extend(child.children)
        frontier = next_frontier
    return ANONYMOUS


def node_context(node: Any, source: bytes) -> dict[str, Any]:
    """Modifiers, annotations and decorators attached to a declaration."""
    modifiers: list[str] = []
    annotations: list[str] = []

    for child in node.children:
        if child.type.endswith("modifiers") or child.type == "modifier":
            for part in child.children:
                text = node_text(part, source).strip()
                if not text:
                    continue
                if part.type in _ANNOTATION_TYPES:
                    annotations.append(text)
                else:
                    modifiers.extend(text.split())
        elif child.type in _ANNOTATION_TYPES:
            annotations.append(node_text(child, source).strip())

    parent = node.parent
    if parent is not None and parent.type == "decorated_definition":
        annotations.extend(
            node_text(c, source).strip() for c in parent.children if c.type == "decorator"
        )

    context: dict[str, Any] = {}
    if modifiers:
        context["modifiers"] = modifiers
    if annotations:
        context["annotations"] = annotations
    return context


def unit_from_node(node: Any, source: bytes, kind: SegmentKind) -> SegmentUnit:
    return SegmentUnit(
        kind=kind,
        name=node_name(node, source) or ANONYMOUS,
        content=node_text(node, source),
        start_line=node.start_point[0] + 1,
        end_line=node.end_point[0] + 1,
        context=node_context(node, source),
    )


def walk_matching(root: Any, node_kinds: dict[str, SegmentKind]) -> list[tuple[Any, SegmentKind]]:
    """All descendants whose type is in ``node_kinds``, in document order.

    Nested matches (a method inside a class) are returned alongside their
    container.
    """
    found: list[tuple[Any, SegmentKind]] = []
    stack = [root]
    while stack:
        node = stack.pop()
        kind = node_kinds.get(node.type)
        if kind is not None:
            found.append((node, kind))
        stack.extend(reversed(node.children))
    return found

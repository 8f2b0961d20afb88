"""Line-heuristic segmentation for brace languages without a grammar.

Used when the tree-sitter grammar for Java, Kotlin, C#, Go, Rust and
similar languages is not installed. Declaration lines are matched by regex
and a unit closes when brace depth returns to where it opened. Nested
declarations are emitted independently, like the tree walker does.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from snapindex.index._internal.segmentation.base import ANONYMOUS, SegmentUnit
from snapindex.index.models import SegmentKind

_MODIFIER = (
    r"(?:public|private|protected|internal|abstract|final|open|sealed|data|static|"
    r"export|inner|override|suspend|inline|async|synchronized|native|pub|unsafe|"
    r"virtual|partial|readonly|const|annotation|value)"
)

_TYPE_DECL = re.compile(
    rf"^(?:@\w+(?:\([^)]*\))?\s+)*(?:{_MODIFIER}(?:\([^)]*\))?\s+)*"
    r"(class|interface|object|enum|struct|trait|record|impl)\s+(?:class\s+)?([A-Za-z_]\w*)"
)
_COMPANION = re.compile(rf"^(?:{_MODIFIER}\s+)*companion\s+object\b\s*([A-Za-z_]\w*)?")
_FUNC_DECL = re.compile(
    rf"^(?:{_MODIFIER}\s+)*(?:fun|func|fn|def|function)\s+"
    r"(?:<[^>]*>\s*)?(?:\([^)]*\)\s*)?(?:[\w.]+\.)?([A-Za-z_]\w*)\s*[(<]"
)
_METHOD_DECL = re.compile(
    rf"^(?:@\w+(?:\([^)]*\))?\s+)*(?:{_MODIFIER}\s+)+"
    r"[\w<>\[\],.?\s]*?\s*([A-Za-z_]\w*)\s*\([^;]*$"
)
_NOT_NAMES = frozenset({"if", "for", "while", "switch", "catch", "return", "new", "else", "when"})

_TYPE_KINDS = {
    "class": SegmentKind.CLASS,
    "record": SegmentKind.CLASS,
    "interface": SegmentKind.INTERFACE,
    "object": SegmentKind.OBJECT,
    "enum": SegmentKind.ENUM,
    "struct": SegmentKind.STRUCT,
    "trait": SegmentKind.TRAIT,
    "impl": SegmentKind.IMPL,
}


@dataclass
class _Open:
    kind: SegmentKind
    name: str
    start: int
    depth: int
    opened: bool = False


def _match_declaration(stripped: str) -> tuple[SegmentKind, str] | None:
    if m := _COMPANION.match(stripped):
        return SegmentKind.COMPANION_OBJECT, m.group(1) or ANONYMOUS
    if m := _TYPE_DECL.match(stripped):
        return _TYPE_KINDS[m.group(1)], m.group(2)
    if m := _FUNC_DECL.match(stripped):
        return SegmentKind.FUNCTION, m.group(1)
    if (m := _METHOD_DECL.match(stripped)) and m.group(1) not in _NOT_NAMES:
        return SegmentKind.METHOD, m.group(1)
    return None


class LineHeuristicStrategy:
    def __init__(self, language: str) -> None:
        self.language = language
        self.name = f"heuristic:{language}"

    def segment(self, file_path: str, text: str) -> list[SegmentUnit]:  # noqa: ARG002
        lines = text.split("\n")
        depth = 0
        stack: list[_Open] = []
        closed: list[tuple[_Open, int]] = []
        last_code = 0

        for i, line in enumerate(lines):
            stripped = line.strip()
            if not stripped or stripped.startswith(("//", "/*", "*", "#")):
                continue

            decl = _match_declaration(stripped)
            if decl is not None:
                # A declaration that never opened a body ended on an earlier line
                while stack and not stack[-1].opened and stack[-1].depth >= depth:
                    closed.append((stack.pop(), last_code))
                stack.append(_Open(kind=decl[0], name=decl[1], start=i, depth=depth))

            depth += stripped.count("{") - stripped.count("}")
            depth = max(depth, 0)

            for entry in stack:
                if depth > entry.depth:
                    entry.opened = True

            while stack and (
                (stack[-1].opened and depth <= stack[-1].depth)
                or (not stack[-1].opened and depth < stack[-1].depth)
            ):
                entry = stack.pop()
                closed.append((entry, i if entry.opened else last_code))

            if stack and not stack[-1].opened and stripped.endswith(";"):
                closed.append((stack.pop(), i))
            last_code = i

        last = len(lines) - 1
        while stack:
            entry = stack.pop()
            closed.append((entry, last if entry.opened else entry.start))

        closed.sort(key=lambda c: (c[0].start, -c[1]))
        return [
            SegmentUnit(
                kind=entry.kind,
                name=entry.name,
                content="\n".join(lines[entry.start : max(end, entry.start) + 1]),
                start_line=entry.start + 1,
                end_line=max(end, entry.start) + 1,
                context={"heuristic": True},
            )
            for entry, end in closed
        ]

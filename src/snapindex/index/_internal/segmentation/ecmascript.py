"""AST segmentation for JavaScript, JSX, TypeScript and TSX.

Function and class declarations become segments at any nesting depth.
Tree-sitter always produces a tree, so a parse is rejected when error
recovery dominates it; a mostly-broken file raises instead of yielding a
misleading empty or partial result.
"""

from __future__ import annotations

import structlog

from snapindex.core.errors import SegmentationError
from snapindex.index._internal.parsing.packs import SegmentPack
from snapindex.index._internal.parsing.treesitter import TreeSitterParser
from snapindex.index._internal.segmentation.base import SegmentUnit, unit_from_node, walk_matching

log = structlog.get_logger()


class EcmaScriptStrategy:
    """Declaration-level segmentation for the ECMAScript family."""

    def __init__(
        self,
        pack: SegmentPack,
        parser: TreeSitterParser,
        *,
        max_error_ratio: float = 0.3,
    ) -> None:
        self.pack = pack
        self.name = f"ecmascript:{pack.name}"
        self.language = pack.name
        self._parser = parser
        self._max_error_ratio = max_error_ratio

    def segment(self, file_path: str, text: str) -> list[SegmentUnit]:
        source = text.encode("utf-8")
        result = self._parser.parse(self.pack, source)

        if result.root_is_error or (
            result.error_count and result.error_ratio >= self._max_error_ratio
        ):
            raise SegmentationError.parse_failed(
                file_path, result.error_count, result.total_nodes
            )
        if result.error_count:
            log.debug(
                "segment.parse_recovered",
                file=file_path,
                errors=result.error_count,
                nodes=result.total_nodes,
            )

        units = []
        for node, kind in walk_matching(result.root_node, self.pack.node_kinds):
            unit = unit_from_node(node, source, kind)
            parent = node.parent
            if parent is not None and parent.type == "export_statement":
                unit.context["exported"] = True
            units.append(unit)
        return units

"""Generic tree-sitter segmentation.

Walks every node of the tree and emits those whose type is in the
language's node set. Error recovery is tolerated: a broken region simply
contributes no units, and the router falls back to a whole-file segment if
nothing was found.
"""

from __future__ import annotations

from snapindex.index._internal.parsing.packs import SegmentPack
from snapindex.index._internal.parsing.treesitter import TreeSitterParser
from snapindex.index._internal.segmentation.base import SegmentUnit, unit_from_node, walk_matching


class TreeWalkerStrategy:
    def __init__(self, pack: SegmentPack, parser: TreeSitterParser) -> None:
        self.pack = pack
        self.name = f"tree:{pack.name}"
        self.language = pack.name
        self._parser = parser

    def segment(self, file_path: str, text: str) -> list[SegmentUnit]:  # noqa: ARG002
        source = text.encode("utf-8")
        result = self._parser.parse(self.pack, source)
        return [
            unit_from_node(node, source, kind)
            for node, kind in walk_matching(result.root_node, self.pack.node_kinds)
        ]

"""Tree-sitter grammar packs and parser."""

from snapindex.index._internal.parsing.packs import (
    PACKS,
    SegmentPack,
    get_pack,
    get_pack_for_ext,
)
from snapindex.index._internal.parsing.treesitter import (
    ParseResult,
    TreeSitterParser,
    is_grammar_installed,
)

__all__ = [
    "PACKS",
    "ParseResult",
    "SegmentPack",
    "TreeSitterParser",
    "get_pack",
    "get_pack_for_ext",
    "is_grammar_installed",
]

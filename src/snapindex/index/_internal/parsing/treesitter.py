"""Tree-sitter parsing for segmentation.

Grammar modules are optional installs. ``is_grammar_installed`` lets the
router decide on a fallback before any parse is attempted; ``parse`` reports
how much of the tree is error recovery so callers can reject bad parses.
"""

from __future__ import annotations

import importlib
import threading
from dataclasses import dataclass
from importlib.util import find_spec
from typing import Any

import tree_sitter

from snapindex.index._internal.parsing.packs import SegmentPack


@dataclass
class ParseResult:
    """Result of parsing a file."""

    tree: Any
    language: str
    error_count: int
    total_nodes: int
    root_node: Any

    @property
    def error_ratio(self) -> float:
        if self.total_nodes == 0:
            return 0.0
        return self.error_count / self.total_nodes

    @property
    def root_is_error(self) -> bool:
        return bool(self.root_node.type == "ERROR")


def is_grammar_installed(pack: SegmentPack) -> bool:
    """Check whether the grammar module for a pack can be imported."""
    try:
        return find_spec(pack.grammar_module) is not None
    except (ImportError, ValueError):
        return False


class TreeSitterParser:
    """Tree-sitter parser shared across worker threads.

    Language objects are cached; a fresh ``tree_sitter.Parser`` is created per
    parse since parsers are not safe to share between threads.

    Usage::

        parser = TreeSitterParser()
        result = parser.parse(PYTHON_PACK, source_bytes)
        if result.error_ratio < 0.3:
            ...
    """

    def __init__(self) -> None:
        self._languages: dict[str, Any] = {}
        self._lock = threading.Lock()

    def get_language(self, pack: SegmentPack) -> Any:
        """Get or load the tree-sitter Language for a pack.

        Raises:
            ValueError: If the grammar module is not installed.
        """
        with self._lock:
            if pack.name in self._languages:
                return self._languages[pack.name]
            try:
                mod = importlib.import_module(pack.grammar_module)
                lang_fn = getattr(mod, pack.language_func or "language")
            except (ImportError, AttributeError) as err:
                raise ValueError(f"Language not available: {pack.name}") from err
            lang = tree_sitter.Language(lang_fn())
            self._languages[pack.name] = lang
            return lang

    def parse(self, pack: SegmentPack, content: bytes) -> ParseResult:
        """Parse source bytes and count ERROR / missing nodes."""
        parser = tree_sitter.Parser(self.get_language(pack))
        tree = parser.parse(content)

        error_count = 0
        total_nodes = 0
        stack = [tree.root_node]
        while stack:
            node = stack.pop()
            total_nodes += 1
            if node.type == "ERROR" or node.is_missing:
                error_count += 1
            stack.extend(node.children)

        return ParseResult(
            tree=tree,
            language=pack.name,
            error_count=error_count,
            total_nodes=total_nodes,
            root_node=tree.root_node,
        )

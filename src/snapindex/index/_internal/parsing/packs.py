"""SegmentPack registry: one entry per tree-sitter language snapindex segments.

Each pack holds:
- Grammar install metadata (package, module, optional loader function)
- File extension detection
- The node types that become segments, mapped to a SegmentKind
- Which segmentation strategy handles the language

The PACKS registry is the canonical lookup: ``PACKS["python"]``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from snapindex.index.models import SegmentKind

Strategy = Literal["ecmascript", "tree"]


@dataclass(frozen=True)
class SegmentPack:
    """Tree-sitter configuration for a single language."""

    name: str  # Canonical language name ("python", "typescript", ...)
    grammar_package: str  # PyPI package ("tree-sitter-python")
    grammar_module: str  # Python import ("tree_sitter_python")
    # Non-standard function name (e.g. "language_typescript", "language_tsx")
    language_func: str | None = None
    extensions: frozenset[str] = field(default_factory=frozenset)
    node_kinds: dict[str, SegmentKind] = field(default_factory=dict)
    strategy: Strategy = "tree"
    # Brace-delimited syntax; the line heuristic can stand in for the grammar
    brace_syntax: bool = False


# =========================================================================
# ECMAScript family
# =========================================================================

_ECMASCRIPT_KINDS: dict[str, SegmentKind] = {
    "function_declaration": SegmentKind.FUNCTION,
    "generator_function_declaration": SegmentKind.FUNCTION,
    "class_declaration": SegmentKind.CLASS,
    "abstract_class_declaration": SegmentKind.CLASS,
}

JAVASCRIPT_PACK = SegmentPack(
    name="javascript",
    grammar_package="tree-sitter-javascript",
    grammar_module="tree_sitter_javascript",
    extensions=frozenset({"js", "jsx", "mjs", "cjs"}),
    node_kinds=_ECMASCRIPT_KINDS,
    strategy="ecmascript",
)

TYPESCRIPT_PACK = SegmentPack(
    name="typescript",
    grammar_package="tree-sitter-typescript",
    grammar_module="tree_sitter_typescript",
    language_func="language_typescript",
    extensions=frozenset({"ts", "mts", "cts"}),
    node_kinds=_ECMASCRIPT_KINDS,
    strategy="ecmascript",
)

TSX_PACK = SegmentPack(
    name="tsx",
    grammar_package="tree-sitter-typescript",
    grammar_module="tree_sitter_typescript",
    language_func="language_tsx",
    extensions=frozenset({"tsx"}),
    node_kinds=_ECMASCRIPT_KINDS,
    strategy="ecmascript",
)

# =========================================================================
# Tree-walker languages
# =========================================================================

PYTHON_PACK = SegmentPack(
    name="python",
    grammar_package="tree-sitter-python",
    grammar_module="tree_sitter_python",
    extensions=frozenset({"py", "pyi"}),
    node_kinds={
        "function_definition": SegmentKind.FUNCTION,
        "class_definition": SegmentKind.CLASS,
    },
)

JAVA_PACK = SegmentPack(
    name="java",
    grammar_package="tree-sitter-java",
    grammar_module="tree_sitter_java",
    extensions=frozenset({"java"}),
    node_kinds={
        "class_declaration": SegmentKind.CLASS,
        "record_declaration": SegmentKind.CLASS,
        "interface_declaration": SegmentKind.INTERFACE,
        "annotation_type_declaration": SegmentKind.INTERFACE,
        "enum_declaration": SegmentKind.ENUM,
        "method_declaration": SegmentKind.METHOD,
        "constructor_declaration": SegmentKind.CONSTRUCTOR,
        "field_declaration": SegmentKind.PROPERTY,
    },
    brace_syntax=True,
)

KOTLIN_PACK = SegmentPack(
    name="kotlin",
    grammar_package="tree-sitter-kotlin",
    grammar_module="tree_sitter_kotlin",
    extensions=frozenset({"kt", "kts"}),
    node_kinds={
        "class_declaration": SegmentKind.CLASS,
        "object_declaration": SegmentKind.OBJECT,
        "companion_object": SegmentKind.COMPANION_OBJECT,
        "function_declaration": SegmentKind.FUNCTION,
        "secondary_constructor": SegmentKind.CONSTRUCTOR,
        "property_declaration": SegmentKind.PROPERTY,
        "anonymous_initializer": SegmentKind.INIT_BLOCK,
    },
    brace_syntax=True,
)

GO_PACK = SegmentPack(
    name="go",
    grammar_package="tree-sitter-go",
    grammar_module="tree_sitter_go",
    extensions=frozenset({"go"}),
    node_kinds={
        "function_declaration": SegmentKind.FUNCTION,
        "method_declaration": SegmentKind.METHOD,
        "type_spec": SegmentKind.STRUCT,
    },
    brace_syntax=True,
)

RUST_PACK = SegmentPack(
    name="rust",
    grammar_package="tree-sitter-rust",
    grammar_module="tree_sitter_rust",
    extensions=frozenset({"rs"}),
    node_kinds={
        "function_item": SegmentKind.FUNCTION,
        "struct_item": SegmentKind.STRUCT,
        "enum_item": SegmentKind.ENUM,
        "trait_item": SegmentKind.TRAIT,
        "impl_item": SegmentKind.IMPL,
        "mod_item": SegmentKind.MODULE,
    },
    brace_syntax=True,
)

CSHARP_PACK = SegmentPack(
    name="csharp",
    grammar_package="tree-sitter-c-sharp",
    grammar_module="tree_sitter_c_sharp",
    extensions=frozenset({"cs"}),
    node_kinds={
        "class_declaration": SegmentKind.CLASS,
        "record_declaration": SegmentKind.CLASS,
        "interface_declaration": SegmentKind.INTERFACE,
        "struct_declaration": SegmentKind.STRUCT,
        "enum_declaration": SegmentKind.ENUM,
        "method_declaration": SegmentKind.METHOD,
        "constructor_declaration": SegmentKind.CONSTRUCTOR,
    },
    brace_syntax=True,
)

RUBY_PACK = SegmentPack(
    name="ruby",
    grammar_package="tree-sitter-ruby",
    grammar_module="tree_sitter_ruby",
    extensions=frozenset({"rb"}),
    node_kinds={
        "class": SegmentKind.CLASS,
        "module": SegmentKind.MODULE,
        "method": SegmentKind.METHOD,
        "singleton_method": SegmentKind.METHOD,
    },
)

PHP_PACK = SegmentPack(
    name="php",
    grammar_package="tree-sitter-php",
    grammar_module="tree_sitter_php",
    language_func="language_php",
    extensions=frozenset({"php"}),
    node_kinds={
        "function_definition": SegmentKind.FUNCTION,
        "class_declaration": SegmentKind.CLASS,
        "interface_declaration": SegmentKind.INTERFACE,
        "trait_declaration": SegmentKind.TRAIT,
        "method_declaration": SegmentKind.METHOD,
    },
    brace_syntax=True,
)

C_PACK = SegmentPack(
    name="c",
    grammar_package="tree-sitter-c",
    grammar_module="tree_sitter_c",
    extensions=frozenset({"c", "h"}),
    node_kinds={
        "function_definition": SegmentKind.FUNCTION,
        "struct_specifier": SegmentKind.STRUCT,
    },
    brace_syntax=True,
)

CPP_PACK = SegmentPack(
    name="cpp",
    grammar_package="tree-sitter-cpp",
    grammar_module="tree_sitter_cpp",
    extensions=frozenset({"cpp", "cc", "cxx", "hpp", "hh", "hxx"}),
    node_kinds={
        "function_definition": SegmentKind.FUNCTION,
        "class_specifier": SegmentKind.CLASS,
        "struct_specifier": SegmentKind.STRUCT,
        "namespace_definition": SegmentKind.MODULE,
    },
    brace_syntax=True,
)

ALL_PACKS: tuple[SegmentPack, ...] = (
    JAVASCRIPT_PACK,
    TYPESCRIPT_PACK,
    TSX_PACK,
    PYTHON_PACK,
    JAVA_PACK,
    KOTLIN_PACK,
    GO_PACK,
    RUST_PACK,
    CSHARP_PACK,
    RUBY_PACK,
    PHP_PACK,
    C_PACK,
    CPP_PACK,
)

PACKS: dict[str, SegmentPack] = {pack.name: pack for pack in ALL_PACKS}

# Brace languages with no pack; the line heuristic handles them directly
HEURISTIC_ONLY_EXTENSIONS: dict[str, str] = {
    "scala": "scala",
    "swift": "swift",
    "dart": "dart",
    "groovy": "groovy",
    "gradle": "groovy",
}

_EXT_TO_PACK: dict[str, SegmentPack] = {}
for _pack in ALL_PACKS:
    for _ext in _pack.extensions:
        _EXT_TO_PACK[_ext] = _pack


def get_pack_for_ext(ext: str) -> SegmentPack | None:
    """Get a SegmentPack for a file extension (with or without leading dot)."""
    return _EXT_TO_PACK.get(ext.lower().lstrip("."))


def get_pack(name: str) -> SegmentPack | None:
    """Get a SegmentPack by language name."""
    return PACKS.get(name)

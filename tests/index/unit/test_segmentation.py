"""Tests for segmentation strategies and the router.

Covers:
- EcmaScriptStrategy: declarations, nesting, export context, parse rejection
- TreeWalkerStrategy: Python functions, classes and methods
- LineHeuristicStrategy: Java and Kotlin without grammars
- SegmenterRouter: dispatch table, whole-file fallback, unreadable files,
  segment_many ordering and fail_fast, grammar load failures
"""

from __future__ import annotations

from pathlib import Path

import pytest

from snapindex.config.models import SegmenterConfig
from snapindex.core.errors import SegmentationError
from snapindex.index._internal.identity import segment_id
from snapindex.index._internal.parsing.packs import JAVASCRIPT_PACK, PYTHON_PACK, get_pack_for_ext
from snapindex.index._internal.parsing.treesitter import TreeSitterParser
from snapindex.index._internal.segmentation.ecmascript import EcmaScriptStrategy
from snapindex.index._internal.segmentation.heuristic import LineHeuristicStrategy
from snapindex.index._internal.segmentation.router import SegmenterRouter
from snapindex.index._internal.segmentation.tree_walker import TreeWalkerStrategy
from snapindex.index.models import SegmentKind

JS_SOURCE = """\
export function foo() {
  function inner() {
    return 1;
  }
  return inner();
}

class Bar {
  method() {
    return 2;
  }
}

function foo() {
  return 3;
}
"""

PY_SOURCE = '''\
import functools


@functools.cache
def foo():
    return 1


class Bar:
    def method(self):
        return 2
'''

JAVA_SOURCE = """\
public class Greeter {
    private String name;

    public Greeter(String name) {
        this.name = name;
    }

    public String greet() {
        return "hi " + name;
    }
}
"""

KOTLIN_SOURCE = """\
class Service {
    companion object {
        fun create(): Service = Service()
    }

    fun run() {
        println("run")
    }
}
"""


@pytest.fixture
def parser() -> TreeSitterParser:
    return TreeSitterParser()


class TestEcmaScriptStrategy:
    """Tests for the JavaScript/TypeScript AST strategy."""

    def test_declarations_in_document_order(self, parser: TreeSitterParser) -> None:
        pytest.importorskip("tree_sitter_javascript")
        strategy = EcmaScriptStrategy(JAVASCRIPT_PACK, parser)
        units = strategy.segment("a.js", JS_SOURCE)
        assert [(u.kind, u.name) for u in units] == [
            (SegmentKind.FUNCTION, "foo"),
            (SegmentKind.FUNCTION, "inner"),
            (SegmentKind.CLASS, "Bar"),
            (SegmentKind.FUNCTION, "foo"),
        ]

    def test_unit_content_and_lines(self, parser: TreeSitterParser) -> None:
        pytest.importorskip("tree_sitter_javascript")
        units = EcmaScriptStrategy(JAVASCRIPT_PACK, parser).segment("a.js", JS_SOURCE)
        bar = units[2]
        assert bar.content.startswith("class Bar {")
        assert bar.content.endswith("}")
        assert bar.start_line == 8
        assert bar.end_line == 12

    def test_exported_context(self, parser: TreeSitterParser) -> None:
        pytest.importorskip("tree_sitter_javascript")
        units = EcmaScriptStrategy(JAVASCRIPT_PACK, parser).segment("a.js", JS_SOURCE)
        assert units[0].context.get("exported") is True
        assert "exported" not in units[2].context

    def test_arrow_functions_are_not_units(self, parser: TreeSitterParser) -> None:
        pytest.importorskip("tree_sitter_javascript")
        source = (
            "export const add = (a, b) => a + b;\n"
            "const sub = function (a, b) { return a - b; };\n"
        )
        units = EcmaScriptStrategy(JAVASCRIPT_PACK, parser).segment("math.js", source)
        assert units == []

    def test_no_declarations_yields_nothing(self, parser: TreeSitterParser) -> None:
        pytest.importorskip("tree_sitter_javascript")
        units = EcmaScriptStrategy(JAVASCRIPT_PACK, parser).segment("a.js", "const x = 1;\n")
        assert units == []

    def test_broken_parse_rejected(self, parser: TreeSitterParser) -> None:
        pytest.importorskip("tree_sitter_javascript")
        strategy = EcmaScriptStrategy(JAVASCRIPT_PACK, parser, max_error_ratio=0.01)
        with pytest.raises(SegmentationError) as exc_info:
            strategy.segment("broken.js", "function foo( {\n  return ;;; ))\n")
        assert exc_info.value.file_path == "broken.js"


class TestTreeWalkerStrategy:
    """Tests for the generic tree-sitter strategy."""

    def test_python_functions_classes_methods(self, parser: TreeSitterParser) -> None:
        pytest.importorskip("tree_sitter_python")
        units = TreeWalkerStrategy(PYTHON_PACK, parser).segment("m.py", PY_SOURCE)
        assert [(u.kind, u.name) for u in units] == [
            (SegmentKind.FUNCTION, "foo"),
            (SegmentKind.CLASS, "Bar"),
            (SegmentKind.FUNCTION, "method"),
        ]

    def test_python_decorators_in_context(self, parser: TreeSitterParser) -> None:
        pytest.importorskip("tree_sitter_python")
        units = TreeWalkerStrategy(PYTHON_PACK, parser).segment("m.py", PY_SOURCE)
        assert units[0].content.startswith("def foo")
        assert units[0].context.get("annotations") == ["@functools.cache"]


class TestLineHeuristicStrategy:
    """Tests for the grammar-free brace heuristic."""

    def test_java_class_constructor_method(self) -> None:
        units = LineHeuristicStrategy("java").segment("Greeter.java", JAVA_SOURCE)
        assert [(u.kind, u.name) for u in units] == [
            (SegmentKind.CLASS, "Greeter"),
            (SegmentKind.METHOD, "Greeter"),
            (SegmentKind.METHOD, "greet"),
        ]
        greet = units[2]
        assert greet.start_line == 8
        assert greet.end_line == 10
        assert greet.content.strip().endswith("}")
        assert greet.context == {"heuristic": True}

    def test_field_is_not_a_method(self) -> None:
        units = LineHeuristicStrategy("java").segment("Greeter.java", JAVA_SOURCE)
        assert "name" not in {u.name for u in units}

    def test_kotlin_expression_body_closes(self) -> None:
        units = LineHeuristicStrategy("kotlin").segment("Service.kt", KOTLIN_SOURCE)
        assert [(u.kind, u.name, u.start_line, u.end_line) for u in units] == [
            (SegmentKind.CLASS, "Service", 1, 9),
            (SegmentKind.COMPANION_OBJECT, "anonymous", 2, 4),
            (SegmentKind.FUNCTION, "create", 3, 3),
            (SegmentKind.FUNCTION, "run", 6, 8),
        ]

    def test_no_declarations(self) -> None:
        assert LineHeuristicStrategy("java").segment("x.java", "// nothing\n") == []


class TestSegmenterRouter:
    """Tests for dispatch, fallback and batch segmentation."""

    def test_js_file_segments_with_stable_ids(self, tmp_path: Path) -> None:
        pytest.importorskip("tree_sitter_javascript")
        (tmp_path / "a.js").write_text(JS_SOURCE)
        router = SegmenterRouter(tmp_path)
        segments = router.segment("a.js")

        foos = [s for s in segments if s.name == "foo"]
        assert [s.occurrence for s in foos] == [1, 2]
        assert foos[0].id == segment_id("a.js", "foo", 1)
        assert all(s.language == "javascript" for s in segments)

    def test_whole_file_fallback_when_no_units(self, tmp_path: Path) -> None:
        pytest.importorskip("tree_sitter_javascript")
        (tmp_path / "consts.js").write_text("const x = 1;\n")
        segments = SegmenterRouter(tmp_path).segment("consts.js")
        assert len(segments) == 1
        assert segments[0].type == SegmentKind.FILE
        assert segments[0].name == "consts.js"
        assert segments[0].content == "const x = 1;\n"

    def test_unknown_extension_is_whole_file(self, tmp_path: Path) -> None:
        (tmp_path / "notes").mkdir()
        (tmp_path / "notes" / "todo.txt").write_text("remember the milk\n")
        segments = SegmenterRouter(tmp_path).segment("notes/todo.txt")
        assert len(segments) == 1
        assert segments[0].type == SegmentKind.FILE
        assert segments[0].file_path == "notes/todo.txt"
        assert segments[0].language is None

    def test_empty_file_still_one_segment(self, tmp_path: Path) -> None:
        (tmp_path / "empty.txt").write_text("")
        segments = SegmenterRouter(tmp_path).segment("empty.txt")
        assert len(segments) == 1
        assert segments[0].content == ""

    def test_unreadable_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(SegmentationError) as exc_info:
            SegmenterRouter(tmp_path).segment("missing.js")
        assert exc_info.value.file_path == "missing.js"

    def test_injected_strategy_table(self, tmp_path: Path) -> None:
        (tmp_path / "Greeter.java").write_text(JAVA_SOURCE)
        router = SegmenterRouter(tmp_path, strategies={"java": LineHeuristicStrategy("java")})
        segments = router.segment("Greeter.java")
        assert [s.name for s in segments] == ["Greeter", "Greeter", "greet"]
        assert [s.occurrence for s in segments] == [1, 2, 1]
        assert segments[0].language == "java"

    def test_strategy_for_is_case_insensitive(self, tmp_path: Path) -> None:
        router = SegmenterRouter(tmp_path, strategies={"java": LineHeuristicStrategy("java")})
        assert router.strategy_for("src/A.JAVA") is not None
        assert router.strategy_for("README") is None

    def test_segment_many_keeps_input_order(self, tmp_path: Path) -> None:
        for name in ("c.txt", "a.txt", "b.txt"):
            (tmp_path / name).write_text(name)
        router = SegmenterRouter(tmp_path, SegmenterConfig(max_workers=3))
        batch = router.segment_many(["c.txt", "a.txt", "b.txt"])
        assert [s.file_path for s in batch.segments] == ["c.txt", "a.txt", "b.txt"]
        assert batch.errors == []
        assert batch.files == 3

    def test_segment_many_collects_errors(self, tmp_path: Path) -> None:
        (tmp_path / "ok.txt").write_text("fine")
        batch = SegmenterRouter(tmp_path).segment_many(["ok.txt", "gone.txt"])
        assert [s.file_path for s in batch.segments] == ["ok.txt"]
        assert batch.failed_files == ["gone.txt"]

    def test_segment_many_fail_fast(self, tmp_path: Path) -> None:
        (tmp_path / "ok.txt").write_text("fine")
        router = SegmenterRouter(tmp_path)
        with pytest.raises(SegmentationError):
            router.segment_many(["ok.txt", "gone.txt"], fail_fast=True)

    def test_pack_lookup_by_extension(self) -> None:
        assert get_pack_for_ext("tsx") is not None
        assert get_pack_for_ext(".py") is PYTHON_PACK
        assert get_pack_for_ext("txt") is None


class TestGrammarLoadFailure:
    """A grammar that cannot load degrades instead of failing the batch."""

    @pytest.fixture
    def broken_parser(self, monkeypatch: pytest.MonkeyPatch) -> TreeSitterParser:
        def _raise(self: TreeSitterParser, pack: object) -> None:
            raise ValueError("Incompatible Language version 15. Must be between 13 and 14")

        monkeypatch.setattr(TreeSitterParser, "get_language", _raise)
        return TreeSitterParser()

    def test_other_files_still_segment(
        self, tmp_path: Path, broken_parser: TreeSitterParser
    ) -> None:
        (tmp_path / "a.py").write_text(PY_SOURCE)
        (tmp_path / "b.txt").write_text("plain text\n")
        router = SegmenterRouter(
            tmp_path, strategies={"py": TreeWalkerStrategy(PYTHON_PACK, broken_parser)}
        )

        batch = router.segment_many(["a.py", "b.txt"])

        assert batch.errors == []
        assert [s.file_path for s in batch.segments] == ["a.py", "b.txt"]
        py_segment = batch.segments[0]
        assert py_segment.type == SegmentKind.FILE
        assert py_segment.language == "python"
        assert router.strategy_for("a.py") is None

    def test_brace_language_demoted_to_heuristic(
        self, tmp_path: Path, broken_parser: TreeSitterParser
    ) -> None:
        (tmp_path / "Greeter.java").write_text(JAVA_SOURCE)
        strategy = TreeWalkerStrategy(get_pack_for_ext("java"), broken_parser)
        router = SegmenterRouter(tmp_path, strategies={"java": strategy})

        segments = router.segment("Greeter.java")

        assert [s.name for s in segments] == ["Greeter", "Greeter", "greet"]
        assert isinstance(router.strategy_for("Greeter.java"), LineHeuristicStrategy)

    def test_injected_table_left_untouched(
        self, tmp_path: Path, broken_parser: TreeSitterParser
    ) -> None:
        (tmp_path / "a.py").write_text(PY_SOURCE)
        table = {"py": TreeWalkerStrategy(PYTHON_PACK, broken_parser)}
        SegmenterRouter(tmp_path, strategies=table).segment("a.py")
        assert "py" in table

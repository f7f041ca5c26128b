"""Tests for the front-end driver and JSON dumps."""

from __future__ import annotations

import json

from funs.errors import LexError, ParseError, SourceError
from funs.frontend import (
    discover_sources,
    dump_ast_json,
    dump_tokens_json,
    process_file,
    process_files,
    process_source,
)
from funs.tokens import TokenKind


class TestProcessSource:
    def test_success(self):
        result = process_source("x = 1\ny = x + 1\n", "demo.fs")
        assert result.ok
        assert result.error is None
        assert result.module.name == "demo"
        assert len(result.module.declarations) == 2
        assert result.tokens[-1].kind == TokenKind.EOF

    def test_lex_error(self):
        result = process_source('x = "open', "demo.fs")
        assert not result.ok
        assert isinstance(result.error, LexError)
        assert result.module is None
        assert result.tokens == ()

    def test_parse_error_keeps_tokens(self):
        result = process_source("f = (x) -> x", "demo.fs")
        assert isinstance(result.error, ParseError)
        assert result.module is None
        assert result.tokens

    def test_explicit_module_name(self):
        result = process_source("x = 1", "<stdin>", module_name="main")
        assert result.module.name == "main"


class TestProcessFiles:
    def test_results_in_input_order(self, tmp_path):
        names = ["c", "a", "bad", "b"]
        paths = []
        for name in names:
            path = tmp_path / f"{name}.fs"
            path.write_text("x = (" if name == "bad" else f"{name} = 1\n")
            paths.append(path)

        results = process_files(paths, workers=3)
        assert [r.filename for r in results] == [str(p) for p in paths]
        assert [r.ok for r in results] == [True, True, False, True]
        assert results[0].module.name == "c"

    def test_unreadable_file_only_fails_itself(self, tmp_path):
        good = tmp_path / "good.fs"
        good.write_text("x = 1\n")
        bad = tmp_path / "bad.fs"
        bad.write_bytes(b"x = \"\xff\"\n")
        missing = tmp_path / "missing.fs"

        results = process_files([good, bad, missing], workers=2)
        assert [r.ok for r in results] == [True, False, False]
        assert isinstance(results[1].error, SourceError)
        assert results[1].error.diagnostics[0].code == "E001"
        assert results[1].tokens == ()
        assert isinstance(results[2].error, SourceError)

    def test_empty(self):
        assert process_files([]) == []

    def test_process_file_uses_stem(self, tmp_path):
        path = tmp_path / "shapes.fs"
        path.write_text("data Shape = | Circle(Float);\n")
        assert process_file(path).module.name == "shapes"

    def test_discover_sources(self, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "b.fs").write_text("")
        (tmp_path / "sub" / "a.fs").write_text("")
        (tmp_path / "notes.txt").write_text("")
        found = discover_sources(tmp_path)
        assert [p.name for p in found] == ["b.fs", "a.fs"]

    def test_discover_single_file(self, tmp_path):
        path = tmp_path / "one.fs"
        path.write_text("")
        assert discover_sources(path) == [path]


class TestJsonDumps:
    def test_tokens(self):
        result = process_source("x = 1")
        data = json.loads(dump_tokens_json(result.tokens))
        assert data[0] == {
            "kind": "IDENTIFIER",
            "lexeme": "x",
            "span": {
                "start": 0, "end": 1, "start_line": 1,
                "start_col": 0, "end_line": 1, "end_col": 1,
            },
        }
        assert [t["kind"] for t in data][-2:] == ["NEWLINE", "EOF"]

    def test_ast(self):
        result = process_source("imp { .. } of std\nx = add 1 2\n", "m.fs")
        data = json.loads(dump_ast_json(result.module))
        assert data["node"] == "Module"
        assert data["name"] == "m"
        imp, binding = data["declarations"]
        assert imp["bindings"]["node"] == "WildcardImport"
        assert imp["path"] == ["std"]
        assert binding["node"] == "Binding"
        assert binding["type_expr"] is None
        assert binding["value"]["node"] == "Call"
        assert binding["value"]["arg"]["value"] == 2

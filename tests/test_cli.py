"""Tests for the funs CLI, config, and error rendering."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from funs.cli import main
from funs.config import find_config, load_config
from funs.errors import (
    CompileError,
    Diagnostic,
    DiagnosticLabel,
    DiagnosticRenderer,
    LexError,
    LexErrorKind,
    Severity,
)
from funs.lexer import Lexer
from funs.source import SourceFile, Span


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def tmp_project(tmp_path):
    """Create a minimal funs project in a temp dir."""
    (tmp_path / "funs.toml").write_text(
        '[package]\nname = "demo"\nversion = "1.0.0"\n'
        '[frontend]\nsource_dir = "src"\nworkers = 2\n'
    )
    src = tmp_path / "src"
    src.mkdir()
    (src / "main.fs").write_text("imp std.io as io\nsquare = (x) -> x * x;\n")
    (src / "shapes.fs").write_text("data Shape = | Circle(Float) | Empty;\n")
    return tmp_path


# --- CLI tests ---


class TestCLI:
    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "funs" in result.output
        for command in ["check", "lex", "view", "lsp"]:
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_check_project(self, runner, tmp_project):
        result = runner.invoke(main, ["check", str(tmp_project)])
        assert result.exit_code == 0, result.output
        assert "checking demo..." in result.output
        assert "checked demo: 2 files, no errors" in result.output

    def test_check_reports_errors(self, runner, tmp_project):
        (tmp_project / "src" / "broken.fs").write_text('greeting = "hello\n')
        result = runner.invoke(main, ["check", str(tmp_project)])
        assert result.exit_code == 1
        assert "error[E101]" in result.output
        assert "1 of 3 files with errors" in result.output

    def test_check_reports_undecodable_file(self, runner, tmp_project):
        (tmp_project / "src" / "latin1.fs").write_bytes(b"name = \"caf\xe9\"\n")
        result = runner.invoke(main, ["check", str(tmp_project)])
        assert result.exit_code == 1
        assert "error[E001]" in result.output
        assert "1 of 3 files with errors" in result.output
        assert "Traceback" not in result.output

    def test_lex_undecodable_file(self, runner, tmp_path):
        path = tmp_path / "a.fs"
        path.write_bytes(b"\xff\n")
        result = runner.invoke(main, ["lex", str(path)])
        assert result.exit_code == 1
        assert "E001" in result.output

    def test_check_single_file(self, runner, tmp_path):
        path = tmp_path / "one.fs"
        path.write_text("x = 1\n")
        result = runner.invoke(main, ["check", str(path)])
        assert result.exit_code == 0
        assert "checked one: 1 files, no errors" in result.output

    def test_check_without_config(self, runner, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        result = runner.invoke(main, ["check", str(empty)])
        assert result.exit_code == 1
        assert "no funs.toml found" in result.output

    def test_verbose_flag(self, runner, tmp_project):
        result = runner.invoke(main, ["--verbose", "check", str(tmp_project)])
        assert result.exit_code == 0

    def test_lex(self, runner, tmp_path):
        path = tmp_path / "a.fs"
        path.write_text("x = 1\n")
        result = runner.invoke(main, ["lex", str(path)])
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0] == "1:1 IDENTIFIER 'x'"
        assert lines[2] == "1:5 INT_LIT '1'"
        assert lines[-1] == "2:1 EOF"

    def test_lex_json(self, runner, tmp_path):
        path = tmp_path / "a.fs"
        path.write_text("x = 1\n")
        result = runner.invoke(main, ["lex", "--json", str(path)])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [t["kind"] for t in data] == ["IDENTIFIER", "ASSIGN", "INT_LIT", "NEWLINE", "EOF"]

    def test_lex_error_exit(self, runner, tmp_path):
        path = tmp_path / "a.fs"
        path.write_text("x = 1abc\n")
        result = runner.invoke(main, ["lex", str(path)])
        assert result.exit_code == 1
        assert "E103" in result.output

    def test_view(self, runner, tmp_path):
        path = tmp_path / "a.fs"
        path.write_text("x = add 1 2\n")
        result = runner.invoke(main, ["view", str(path)])
        assert result.exit_code == 0
        assert "Module" in result.output
        assert "Binding" in result.output
        assert "Call" in result.output

    def test_view_json(self, runner, tmp_path):
        path = tmp_path / "a.fs"
        path.write_text("x = 1\n")
        result = runner.invoke(main, ["view", "--json", str(path)])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["declarations"][0]["value"] == {
            "node": "IntegerLit",
            "value": 1,
            "span": {
                "start": 4, "end": 5, "start_line": 1,
                "start_col": 4, "end_line": 1, "end_col": 5,
            },
        }

    def test_view_parse_error(self, runner, tmp_path):
        path = tmp_path / "a.fs"
        path.write_text("f = (x) -> x\n")
        result = runner.invoke(main, ["view", str(path)])
        assert result.exit_code == 1
        assert "E205" in result.output


# --- Config tests ---


class TestConfig:
    def test_load_config(self, tmp_project):
        config = load_config(tmp_project / "funs.toml")
        assert config.package.name == "demo"
        assert config.package.version == "1.0.0"
        assert config.frontend.source_dir == "src"
        assert config.frontend.workers == 2

    def test_defaults(self, tmp_path):
        path = tmp_path / "funs.toml"
        path.write_text("")
        config = load_config(path)
        assert config.package.name == "untitled"
        assert config.frontend.workers == 4

    def test_bad_workers(self, tmp_path):
        path = tmp_path / "funs.toml"
        path.write_text("[frontend]\nworkers = 0\n")
        with pytest.raises(ValueError):
            load_config(path)

    def test_find_config_walks_up(self, tmp_project):
        nested = tmp_project / "src"
        assert find_config(nested) == (tmp_project / "funs.toml").resolve()

    def test_find_config_from_file(self, tmp_project):
        found = find_config(tmp_project / "src" / "main.fs")
        assert found == (tmp_project / "funs.toml").resolve()


# --- Error rendering tests ---


class TestDiagnosticRenderer:
    def test_render_lex_error(self):
        source = 'x = "abc\n'
        with pytest.raises(LexError) as exc:
            Lexer(source, "t.fs").lex()
        renderer = DiagnosticRenderer(color=False, sources={"t.fs": source})
        text = renderer.render(exc.value.diagnostics[0])
        assert "error[E101]: unterminated string literal" in text
        assert "--> t.fs:1:5" in text
        assert 'x = "abc' in text
        assert "     |     ^" in text

    def test_render_notes(self):
        diag = Diagnostic(
            severity=Severity.WARNING,
            code="W001",
            message="something odd",
            labels=[DiagnosticLabel(Span("nofile.fs", 0, 3, 1, 0, 1, 3), "here")],
            notes=["look closer"],
        )
        text = DiagnosticRenderer(color=False).render(diag)
        assert text.startswith("warning[W001]: something odd")
        assert "note: look closer" in text
        assert "here" in text

    def test_color_codes(self):
        err = LexError(LexErrorKind.UNKNOWN_CHARACTER, "bad", Span("x.fs", 0, 1, 1, 0, 1, 1))
        text = DiagnosticRenderer(color=True).render(err.diagnostics[0])
        assert "\033[" in text

    def test_compile_error_message(self):
        diag = Diagnostic(Severity.ERROR, "E201", "boom")
        err = CompileError([diag])
        assert "1 error(s): boom" in str(err)


class TestSourceFile:
    def test_lines_and_span_text(self, tmp_path):
        path = tmp_path / "m.fs"
        path.write_text("x = 1\ny = 22\n")
        src = SourceFile(path)
        assert src.module_name == "m"
        assert src.line_at(2) == "y = 22"
        assert src.line_at(9) == ""
        assert src.span_text(Span(str(path), 10, 12, 2, 4, 2, 6)) == "22"

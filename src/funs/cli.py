"""funs front-end CLI."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from funs import __version__
from funs.config import FunsConfig, find_config, load_config
from funs.errors import DiagnosticRenderer
from funs.frontend import (
    FrontendResult,
    discover_sources,
    dump_ast_json,
    dump_tokens_json,
    process_file,
    process_files,
)
from funs.tokens import TokenKind


def _report(result: FrontendResult, renderer: DiagnosticRenderer) -> None:
    if result.error is not None:
        for diag in result.error.diagnostics:
            click.echo(renderer.render(diag), err=True)


def _run_one(file: str) -> FrontendResult:
    """Lex and parse a single file, exiting with status 1 on failure."""
    result = process_file(Path(file))
    if not result.ok:
        _report(result, DiagnosticRenderer(color=True))
        raise SystemExit(1)
    return result


@click.group()
@click.version_option(__version__, prog_name="funs")
@click.option("-v", "--verbose", is_flag=True, help="Log front-end phases to stderr.")
def main(verbose: bool) -> None:
    """The funs language front end."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
        )


@main.command()
@click.argument("path", default=".", type=click.Path(exists=True))
def check(path: str) -> None:
    """Lex and parse every .fs file of a project (or a single file)."""
    target = Path(path)
    if target.is_file():
        config = FunsConfig()
        files = [target]
        name = target.stem
    else:
        try:
            config_path = find_config(target)
        except FileNotFoundError:
            click.echo("error: no funs.toml found", err=True)
            raise SystemExit(1)
        config = load_config(config_path)
        name = config.package.name
        src_dir = config_path.parent / config.frontend.source_dir
        if not src_dir.is_dir():
            src_dir = config_path.parent  # fallback to project root
        files = discover_sources(src_dir)

    if not files:
        click.echo("warning: no .fs files found", err=True)
        return

    click.echo(f"checking {name}...")
    renderer = DiagnosticRenderer(color=True)
    results = process_files(files, workers=config.frontend.workers)
    failed = 0
    for result in results:
        if not result.ok:
            failed += 1
            _report(result, renderer)

    if failed:
        click.echo(f"checked {name}: {failed} of {len(results)} files with errors", err=True)
        raise SystemExit(1)
    click.echo(f"checked {name}: {len(results)} files, no errors")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Emit tokens as JSON.")
def lex(file: str, as_json: bool) -> None:
    """Print the token stream of a funs source file."""
    result = _run_one(file)
    if as_json:
        click.echo(dump_tokens_json(result.tokens))
        return
    for tok in result.tokens:
        span = tok.span
        lexeme = "" if tok.kind in (TokenKind.NEWLINE, TokenKind.EOF) else f" {tok.lexeme!r}"
        click.echo(f"{span.start_line}:{span.start_col + 1} {tok.kind.name}{lexeme}")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Emit the AST as JSON.")
def view(file: str, as_json: bool) -> None:
    """View the AST of a funs source file."""
    result = _run_one(file)
    assert result.module is not None
    if as_json:
        click.echo(dump_ast_json(result.module))
        return
    _dump_ast(result.module, 0)


@main.command()
def lsp() -> None:
    """Start the funs language server."""
    from funs.lsp import main as lsp_main

    lsp_main()


def _dump_ast(node: object, depth: int) -> None:
    """Print a readable AST dump."""
    indent = "  " * depth
    name = type(node).__name__

    if hasattr(node, "__dataclass_fields__"):
        fields = node.__dataclass_fields__  # type: ignore[union-attr]
        click.echo(f"{indent}{name}")
        for field_name in fields:
            if field_name == "span":
                continue
            value = getattr(node, field_name)
            if isinstance(value, tuple):
                if value and hasattr(value[0], "__dataclass_fields__"):
                    click.echo(f"{indent}  {field_name}:")
                    for item in value:
                        _dump_ast(item, depth + 2)
                else:
                    click.echo(f"{indent}  {field_name}: {list(value)!r}")
            elif hasattr(value, "__dataclass_fields__"):
                click.echo(f"{indent}  {field_name}:")
                _dump_ast(value, depth + 2)
            elif value is not None:
                click.echo(f"{indent}  {field_name}: {value!r}")
    else:
        click.echo(f"{indent}{name}: {node!r}")


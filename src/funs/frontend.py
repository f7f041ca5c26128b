"""Front-end driver: lex and parse one source, or many files in parallel."""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, fields, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from funs.ast_nodes import Module
from funs.errors import CompileError, SourceError
from funs.lexer import Lexer
from funs.parser import Parser
from funs.source import SourceFile, Span
from funs.tokens import Token

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".fs"


@dataclass(frozen=True)
class FrontendResult:
    """Outcome of running the front end over one module.

    ``tokens`` is filled whenever lexing succeeded, even if parsing failed.
    """

    filename: str
    module: Module | None = None
    tokens: tuple[Token, ...] = ()
    error: CompileError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def process_source(source: str, filename: str = "<stdin>",
                   module_name: str | None = None) -> FrontendResult:
    """Lex and parse ``source``; errors are captured in the result."""
    tokens: list[Token] = []
    try:
        tokens = Lexer(source, filename).lex()
        module = Parser(tokens, filename, module_name).parse()
    except CompileError as e:
        logger.debug(f"{filename}: {e}")
        return FrontendResult(filename, None, tuple(tokens), e)
    return FrontendResult(filename, module, tuple(tokens), None)


def process_file(path: Path) -> FrontendResult:
    try:
        source = SourceFile(path)
    except (OSError, UnicodeDecodeError) as e:
        error = SourceError(str(path), str(e))
        logger.debug(f"{path}: {error}")
        return FrontendResult(str(path), None, (), error)
    return process_source(source.content, str(path), source.module_name)


def process_files(paths: list[Path], workers: int = 4) -> list[FrontendResult]:
    """Run the front end over ``paths`` on a thread pool.

    Results come back in the same order as ``paths``.
    """
    if not paths:
        return []
    logger.debug(f"processing {len(paths)} files with {workers} workers")
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(process_file, paths))


def discover_sources(root: Path) -> list[Path]:
    """All ``*.fs`` files under ``root`` (or ``root`` itself), sorted."""
    if root.is_file():
        return [root]
    return sorted(root.rglob(f"*{SOURCE_SUFFIX}"))


# ── JSON dumps ───────────────────────────────────────────────────


def span_to_dict(span: Span) -> dict[str, Any]:
    return {
        "start": span.start,
        "end": span.end,
        "start_line": span.start_line,
        "start_col": span.start_col,
        "end_line": span.end_line,
        "end_col": span.end_col,
    }


def token_to_dict(tok: Token) -> dict[str, Any]:
    return {"kind": tok.kind.name, "lexeme": tok.lexeme, "span": span_to_dict(tok.span)}


def node_to_dict(node: Any) -> Any:
    """Convert an AST node to plain JSON data, tagged with its node type."""
    if isinstance(node, Span):
        return span_to_dict(node)
    if is_dataclass(node) and not isinstance(node, type):
        data: dict[str, Any] = {"node": type(node).__name__}
        for f in fields(node):
            data[f.name] = node_to_dict(getattr(node, f.name))
        return data
    if isinstance(node, (tuple, list)):
        return [node_to_dict(item) for item in node]
    if isinstance(node, Enum):
        return node.name
    return node


def dump_tokens_json(tokens: list[Token] | tuple[Token, ...], *, indent: int | None = 2) -> str:
    return json.dumps([token_to_dict(t) for t in tokens], indent=indent, ensure_ascii=False)


def dump_ast_json(module: Module, *, indent: int | None = 2) -> str:
    return json.dumps(node_to_dict(module), indent=indent, ensure_ascii=False)

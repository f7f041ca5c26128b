"""Shared test helpers for the funs front-end test suite."""

from __future__ import annotations

from funs.ast_nodes import Expr, Match, Module
from funs.lexer import Lexer
from funs.parser import Parser
from funs.source import Span
from funs.tokens import TokenKind


def lex(source: str) -> list[tuple[TokenKind, str]]:
    """Lex source and return (kind, lexeme) pairs, excluding EOF."""
    tokens = Lexer(source, "test.fs").lex()
    return [(t.kind, t.lexeme) for t in tokens if t.kind != TokenKind.EOF]


def kinds(source: str) -> list[TokenKind]:
    """Lex source and return just the token kinds, excluding EOF."""
    return [kind for kind, _ in lex(source)]


def parse(source: str, filename: str = "test.fs") -> Module:
    tokens = Lexer(source, filename).lex()
    return Parser(tokens, filename).parse()


def parse_expr(source: str) -> Expr:
    """Parse ``it = <source>`` and return the bound expression."""
    module = parse(f"it = {source}")
    return module.declarations[0].value


def parse_match(arms: str) -> Match:
    """Parse a match on ``v`` with the given arm lines."""
    expr = parse_expr(f"match v\n{arms}\n;")
    assert isinstance(expr, Match)
    return expr


def span(start: int = 0, end: int = 1, line: int = 1) -> Span:
    return Span("test.fs", start, end, line, start, line, end)

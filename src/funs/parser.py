"""Parser for the funs programming language.

Transforms a token stream into an AST using precedence climbing for
expressions and recursive descent for declarations, patterns and imports.

Function and match bodies are closed by ``;``. The parser keeps an explicit
stack of open constructs so a ``;`` always closes the innermost open body,
and so newlines can be ignored while inside brackets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from funs.ast_nodes import (
    BinaryOp,
    BindPattern,
    Binding,
    Block,
    Body,
    BooleanLit,
    Call,
    CharLit,
    Concat,
    Cons,
    ConsPattern,
    ConstructorPattern,
    Declaration,
    ExplicitImports,
    Expr,
    FieldAccess,
    FieldAssign,
    FieldInit,
    FieldPattern,
    FloatLit,
    FunctionType,
    GenericType,
    Identifier,
    If,
    Import,
    ImportName,
    IntegerLit,
    Lambda,
    ListLit,
    ListPattern,
    ListType,
    Literal,
    LiteralPattern,
    Match,
    MatchArm,
    Module,
    NamedType,
    OptionType,
    Param,
    Pattern,
    RecordField,
    RecordLit,
    RecordPattern,
    RecordShape,
    StringLit,
    TupleLit,
    TuplePattern,
    TupleType,
    TypeDecl,
    TypeExpr,
    UnaryOp,
    VariantCtor,
    VariantShape,
    WildcardImport,
    WildcardPattern,
    pattern_binders,
)
from funs.errors import ParseError, ParseErrorKind
from funs.source import Span
from funs.tokens import (
    ESCAPES,
    KEYWORDS,
    LITERAL_KINDS,
    MULTI_CHAR_OPERATORS,
    SINGLE_CHAR_TOKENS,
    Token,
    TokenKind,
)

logger = logging.getLogger(__name__)

# ── Operator bands ──────────────────────────────────────────────

_LOGICAL_OPS = frozenset({TokenKind.AND, TokenKind.OR})
_ADDITIVE_OPS = frozenset({TokenKind.PLUS, TokenKind.MINUS})
_MULTIPLICATIVE_OPS = frozenset({
    TokenKind.STAR, TokenKind.SLASH, TokenKind.SLASH_SLASH, TokenKind.PERCENT,
})

# Tokens that can begin a juxtaposed argument.
_ARGUMENT_START = frozenset({
    TokenKind.IDENTIFIER,
    TokenKind.INT_LIT,
    TokenKind.FLOAT_LIT,
    TokenKind.STRING_LIT,
    TokenKind.CHAR_LIT,
    TokenKind.TRUE,
    TokenKind.FALSE,
    TokenKind.JUST,
    TokenKind.NIL,
    TokenKind.LPAREN,
    TokenKind.LBRACKET,
    TokenKind.LBRACE,
})

# Tokens that end an `if` branch block without being consumed by it.
_BRANCH_CLOSERS = frozenset({
    TokenKind.ELSE,
    TokenKind.SEMICOLON,
    TokenKind.PIPE,
    TokenKind.RPAREN,
    TokenKind.RBRACKET,
    TokenKind.RBRACE,
    TokenKind.EOF,
})

# Where the binding lookahead gives up at bracket depth 0.
_STATEMENT_STOPS = frozenset({
    TokenKind.NEWLINE,
    TokenKind.SEMICOLON,
    TokenKind.EOF,
    TokenKind.FAT_ARROW,
    TokenKind.THEN,
    TokenKind.ELSE,
    TokenKind.PIPE,
})

_OPENERS = frozenset({TokenKind.LPAREN, TokenKind.LBRACKET, TokenKind.LBRACE})
_CLOSERS = frozenset({TokenKind.RPAREN, TokenKind.RBRACKET, TokenKind.RBRACE})

# Frame kinds on the open-construct stack.
_BRACKET_FRAMES = frozenset({"paren", "bracket", "brace", "angle"})
_BODY_FRAMES = frozenset({"function", "match", "data"})

_OPTION_TYPE_NAMES = frozenset({"option", "Option"})

_KIND_TEXT: dict[TokenKind, str] = {
    **{kind: text for text, kind in SINGLE_CHAR_TOKENS.items()},
    **{kind: text for text, kind in MULTI_CHAR_OPERATORS.items()},
    **{kind: text for text, kind in KEYWORDS.items()},
}


def _describe(tok: Token) -> str:
    if tok.kind == TokenKind.NEWLINE:
        return "end of line"
    if tok.kind == TokenKind.EOF:
        return "end of input"
    return repr(tok.lexeme)


def _kind_text(kind: TokenKind) -> str:
    text = _KIND_TEXT.get(kind)
    if text is not None and kind not in (TokenKind.TRUE, TokenKind.FALSE):
        return f"'{text}'"
    return kind.name.lower().replace("_", " ")


def decode_escapes(text: str) -> str:
    """Decode backslash escapes; unknown escapes are kept verbatim."""
    out: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == '\\' and i + 1 < len(text):
            nxt = text[i + 1]
            out.append(ESCAPES.get(nxt, ch + nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return ''.join(out)


@dataclass
class _Frame:
    kind: str
    opener: Token


class Parser:
    """Parses a list of tokens into a funs Module."""

    def __init__(self, tokens: list[Token], filename: str = "<stdin>",
                 module_name: str | None = None) -> None:
        self.tokens = tokens
        self.pos = 0
        self.filename = filename
        self.module_name = module_name or Path(filename).stem
        self._frames: list[_Frame] = []
        self._trailing_comma = False  # set by the last delimited list

    # ── Token access ─────────────────────────────────────────────

    def _current(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return self.tokens[-1]  # EOF

    def _peek(self, offset: int = 0) -> Token:
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return self.tokens[-1]

    def _previous(self) -> Token:
        return self.tokens[self.pos - 1] if self.pos > 0 else self.tokens[0]

    def _at(self, kind: TokenKind) -> bool:
        return self._current().kind == kind

    def _at_any(self, *kinds: TokenKind) -> bool:
        return self._current().kind in kinds

    def _advance(self) -> Token:
        tok = self._current()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def _expect(self, kind: TokenKind, expected: str | None = None) -> Token:
        if self._current().kind == kind:
            return self._advance()
        raise self._unexpected(expected or _kind_text(kind))

    def _skip_newlines(self) -> None:
        while self._at(TokenKind.NEWLINE):
            self._advance()

    def _skip_bracket_newlines(self) -> None:
        """Newlines inside (), [], {} and <> never end a statement."""
        if self._frames and self._frames[-1].kind in _BRACKET_FRAMES:
            self._skip_newlines()

    # ── Open-construct stack ─────────────────────────────────────

    def _push(self, kind: str, opener: Token) -> None:
        self._frames.append(_Frame(kind, opener))

    def _pop(self, kind: str) -> None:
        frame = self._frames.pop()
        assert frame.kind == kind, f"closing {kind} but innermost is {frame.kind}"

    def _innermost(self) -> _Frame | None:
        """Innermost frame, looking through `if` branch blocks."""
        for frame in reversed(self._frames):
            if frame.kind != "block":
                return frame
        return None

    # ── Errors ───────────────────────────────────────────────────

    def _unexpected(self, expected: str) -> ParseError:
        tok = self._current()
        if tok.kind == TokenKind.EOF:
            frame = self._innermost()
            if frame is not None and frame.kind in _BODY_FRAMES:
                return ParseError(
                    ParseErrorKind.UNTERMINATED_BLOCK,
                    f"{frame.kind} body opened here is never closed with ';'",
                    frame.opener.span, token=tok, expected="';'",
                )
            return ParseError(
                ParseErrorKind.UNEXPECTED_EOF,
                f"unexpected end of input, expected {expected}",
                tok.span, token=tok, expected=expected,
            )
        return ParseError(
            ParseErrorKind.UNEXPECTED_TOKEN,
            f"expected {expected}, got {_describe(tok)}",
            tok.span, token=tok, expected=expected,
        )

    def _check_unique_binders(self, pattern: Pattern) -> None:
        seen: set[str] = set()
        for binder in pattern_binders(pattern):
            if binder.name in seen:
                raise ParseError(
                    ParseErrorKind.DUPLICATE_PATTERN_BINDING,
                    f"'{binder.name}' is bound more than once in this pattern",
                    binder.span,
                )
            seen.add(binder.name)

    # ── Top-level parsing ────────────────────────────────────────

    def parse(self) -> Module:
        """Parse the entire token stream into a Module."""
        declarations: list[Declaration] = []
        self._skip_newlines()

        while not self._at(TokenKind.EOF):
            declarations.extend(self._parse_declaration())
            self._end_statement()
            self._skip_newlines()

        first = self.tokens[0].span
        span = first.to(self._current().span)
        logger.debug(
            f"parsed module {self.module_name}: {len(declarations)} declarations"
        )
        return Module(self.module_name, tuple(declarations), span)

    def _end_statement(self) -> None:
        """A statement ends at a newline or right after a closing ';'."""
        if self._at(TokenKind.NEWLINE):
            self._advance()
            return
        if self._at(TokenKind.EOF) or self._previous().kind == TokenKind.SEMICOLON:
            return
        raise self._unexpected("end of line")

    def _parse_declaration(self) -> list[Declaration]:
        tok = self._current()
        if tok.kind == TokenKind.IMP:
            return self._parse_import()
        if tok.kind == TokenKind.DATA:
            return [self._parse_data()]
        if self._looks_like_binding():
            return [self._parse_binding()]
        raise self._unexpected("a declaration ('imp', 'data' or a binding)")

    # ── Imports ──────────────────────────────────────────────────

    def _parse_import(self) -> list[Import]:
        """Parse any of the five import forms into Import declarations.

        imp test                  imp ( test as t
        imp test as t                   test2 )
        imp f1 of test            imp { a, b as c } of test
                                  imp { .. } of test
        """
        imp_tok = self._advance()

        if self._at(TokenKind.LPAREN):
            return self._parse_import_block()

        if self._at(TokenKind.LBRACE):
            bindings = self._parse_import_braces()
            self._expect(TokenKind.OF)
            path = self._parse_module_path()
            return [Import(tuple(path), bindings, imp_tok.span.to(self._previous().span))]

        if self._at(TokenKind.IDENTIFIER) and self._is_qualified_name_import():
            name = self._parse_import_name()
            self._expect(TokenKind.OF)
            path = self._parse_module_path()
            return [Import(tuple(path), ExplicitImports((name,)),
                           imp_tok.span.to(self._previous().span))]

        return [self._parse_module_entry(imp_tok.span)]

    def _is_qualified_name_import(self) -> bool:
        """`imp f1 of m` or `imp f1 as g of m`."""
        if self._peek(1).kind == TokenKind.OF:
            return True
        return (self._peek(1).kind == TokenKind.AS
                and self._peek(2).kind == TokenKind.IDENTIFIER
                and self._peek(3).kind == TokenKind.OF)

    def _parse_module_path(self) -> list[str]:
        segments = [self._expect(TokenKind.IDENTIFIER, "module name").lexeme]
        while self._at(TokenKind.DOT):
            self._advance()
            segments.append(self._expect(TokenKind.IDENTIFIER, "module name").lexeme)
        return segments

    def _parse_module_entry(self, start: Span) -> Import:
        first = self._current().span
        segments = self._parse_module_path()
        alias = None
        if self._at(TokenKind.AS):
            self._advance()
            alias = self._expect(TokenKind.IDENTIFIER, "alias").lexeme
        end = self._previous().span
        name = ImportName(segments[-1], alias, first.to(end))
        return Import(tuple(segments[:-1]), ExplicitImports((name,)), start.to(end))

    def _parse_import_block(self) -> list[Import]:
        open_tok = self._advance()  # (
        self._push("paren", open_tok)
        imports: list[Import] = []
        self._skip_newlines()
        while not self._at(TokenKind.RPAREN):
            imports.append(self._parse_module_entry(self._current().span))
            if self._at(TokenKind.COMMA):
                self._advance()
            elif not self._at_any(TokenKind.NEWLINE, TokenKind.RPAREN):
                raise self._unexpected("newline, ',' or ')'")
            self._skip_newlines()
        if not imports:
            raise self._unexpected("module name")
        self._expect(TokenKind.RPAREN)
        self._pop("paren")
        return imports

    def _parse_import_name(self) -> ImportName:
        name_tok = self._expect(TokenKind.IDENTIFIER, "name to import")
        alias = None
        if self._at(TokenKind.AS):
            self._advance()
            alias = self._expect(TokenKind.IDENTIFIER, "alias").lexeme
        return ImportName(name_tok.lexeme, alias, name_tok.span.to(self._previous().span))

    def _parse_import_braces(self) -> ExplicitImports | WildcardImport:
        open_tok = self._current()
        self._skip_newlines_after(TokenKind.LBRACE)
        if self._at(TokenKind.DOT_DOT):
            self._advance()
            self._skip_newlines()
            close = self._expect(TokenKind.RBRACE)
            self._pop("brace")
            return WildcardImport(open_tok.span.to(close.span))
        names = self._parse_delimited_tail(TokenKind.RBRACE, "brace", self._parse_import_name)
        if not names:
            raise ParseError(
                ParseErrorKind.UNEXPECTED_TOKEN,
                "import list is empty; use '{ .. }' to import everything",
                open_tok.span.to(self._previous().span),
                token=open_tok, expected="name to import",
            )
        return ExplicitImports(tuple(names))

    # ── Type declarations ────────────────────────────────────────

    def _parse_data(self) -> TypeDecl:
        data_tok = self._advance()
        name = self._expect(TokenKind.IDENTIFIER, "type name").lexeme

        type_params: list[str] = []
        if self._at(TokenKind.LESS):
            type_params = [
                tok.lexeme for tok in self._parse_delimited(
                    TokenKind.LESS, TokenKind.GREATER, "angle",
                    lambda: self._expect(TokenKind.IDENTIFIER, "type parameter"),
                )
            ]

        self._expect(TokenKind.ASSIGN)
        self._skip_newlines()

        if self._at(TokenKind.LBRACE):
            shape: RecordShape | VariantShape = self._parse_record_shape()
            if self._at(TokenKind.SEMICOLON):
                self._advance()
        elif self._at(TokenKind.PIPE):
            shape = self._parse_variant_shape(data_tok)
        else:
            raise self._unexpected("'{' or '|'")

        return TypeDecl(name, tuple(type_params), shape, data_tok.span.to(self._previous().span))

    def _parse_record_shape(self) -> RecordShape:
        open_tok = self._advance()  # {
        self._push("brace", open_tok)
        fields: list[RecordField] = []
        self._skip_newlines()
        while not self._at(TokenKind.RBRACE):
            fields.append(self._parse_record_field())
            if self._at(TokenKind.COMMA):
                self._advance()
            elif not self._at_any(TokenKind.NEWLINE, TokenKind.RBRACE):
                raise self._unexpected("',', newline or '}'")
            self._skip_newlines()
        close = self._expect(TokenKind.RBRACE)
        self._pop("brace")
        return RecordShape(tuple(fields), open_tok.span.to(close.span))

    def _parse_record_field(self) -> RecordField:
        name_tok = self._expect(TokenKind.IDENTIFIER, "field name")
        self._expect(TokenKind.COLON)
        mutable = False
        if self._at(TokenKind.MUT):
            self._advance()
            mutable = True
        type_expr = self._parse_type()
        return RecordField(name_tok.lexeme, type_expr, mutable, name_tok.span.to(type_expr.span))

    def _parse_variant_shape(self, data_tok: Token) -> VariantShape:
        self._push("data", data_tok)
        start = self._current().span
        ctors: list[VariantCtor] = []
        while self._at(TokenKind.PIPE):
            self._advance()
            name_tok = self._expect(TokenKind.IDENTIFIER, "constructor name")
            payload: list[TypeExpr] = []
            if self._at(TokenKind.LPAREN):
                payload = self._parse_delimited(
                    TokenKind.LPAREN, TokenKind.RPAREN, "paren", self._parse_type,
                )
            ctors.append(VariantCtor(name_tok.lexeme, tuple(payload),
                                     name_tok.span.to(self._previous().span)))
            self._skip_newlines()
        end = self._expect(TokenKind.SEMICOLON, "'|' or ';'")
        self._pop("data")
        return VariantShape(tuple(ctors), start.to(end.span))

    # ── Type expressions ─────────────────────────────────────────

    def _parse_type(self) -> TypeExpr:
        """Parse a type; `A -> B` and `(A, B) -> C` are function types."""
        atom, grouped = self._parse_type_atom()
        if self._at(TokenKind.ARROW):
            self._advance()
            result = self._parse_type()
            params = grouped if grouped is not None else (atom,)
            return FunctionType(params, result, atom.span.to(result.span))
        return atom

    def _parse_type_atom(self) -> tuple[TypeExpr, tuple[TypeExpr, ...] | None]:
        tok = self._current()

        if tok.kind == TokenKind.IDENTIFIER:
            self._advance()
            if self._at(TokenKind.LESS):
                args = self._parse_delimited(
                    TokenKind.LESS, TokenKind.GREATER, "angle", self._parse_type,
                )
                span = tok.span.to(self._previous().span)
                if tok.lexeme in _OPTION_TYPE_NAMES and len(args) == 1:
                    return OptionType(args[0], span), None
                return GenericType(tok.lexeme, tuple(args), span), None
            return NamedType(tok.lexeme, tok.span), None

        if tok.kind == TokenKind.LBRACKET:
            self._advance()
            self._push("bracket", tok)
            self._skip_newlines()
            element = self._parse_type()
            self._skip_newlines()
            close = self._expect(TokenKind.RBRACKET)
            self._pop("bracket")
            return ListType(element, tok.span.to(close.span)), None

        if tok.kind == TokenKind.LPAREN:
            items = tuple(self._parse_delimited(
                TokenKind.LPAREN, TokenKind.RPAREN, "paren", self._parse_type,
            ))
            span = tok.span.to(self._previous().span)
            if len(items) == 1:
                return items[0], items
            return TupleType(items, span), items

        raise self._unexpected("type")

    # ── Statements ───────────────────────────────────────────────

    def _looks_like_binding(self) -> bool:
        """Scan the rest of the statement for a top-level '='."""
        depth = 0
        annotated = False
        idx = self.pos
        while idx < len(self.tokens):
            kind = self.tokens[idx].kind
            if kind in _OPENERS:
                depth += 1
            elif kind in _CLOSERS:
                depth -= 1
                if depth < 0:
                    return False
            elif depth == 0:
                if kind == TokenKind.ASSIGN:
                    return True
                if kind == TokenKind.COLON:
                    annotated = True
                elif kind == TokenKind.ARROW and not annotated:
                    return False
                elif kind in _STATEMENT_STOPS:
                    return False
            if kind == TokenKind.EOF:
                return False
            idx += 1
        return False

    def _is_field_assign(self) -> bool:
        """`name.field... = value`"""
        if not (self._at(TokenKind.IDENTIFIER) and self._peek(1).kind == TokenKind.DOT):
            return False
        offset = 1
        while self._peek(offset).kind == TokenKind.DOT:
            if self._peek(offset + 1).kind not in (TokenKind.IDENTIFIER, TokenKind.INT_LIT):
                return False
            offset += 2
        return self._peek(offset).kind == TokenKind.ASSIGN

    def _parse_statement(self) -> Binding | FieldAssign | Expr:
        if self._looks_like_binding():
            return self._parse_binding()
        return self._parse_expression()

    def _parse_binding(self) -> Binding | FieldAssign:
        start = self._current().span

        if self._is_field_assign():
            target = self._parse_postfix()
            assert isinstance(target, FieldAccess)
            self._expect(TokenKind.ASSIGN)
            value = self._parse_expression()
            return FieldAssign(target, value, start.to(value.span))

        pattern = self._parse_binding_pattern()
        type_expr = None
        if self._at(TokenKind.COLON):
            self._advance()
            type_expr = self._parse_type()
        self._expect(TokenKind.ASSIGN, "'='")
        value = self._parse_expression()
        return Binding(pattern, type_expr, value, start.to(value.span))

    def _parse_binding_pattern(self) -> Pattern:
        """Restricted pattern on the left of '='.

        `a, b, rest` is shorthand for the cons chain `a : b : rest`.
        """
        elements = [self._parse_pattern_atom(binding=True)]
        while self._at(TokenKind.COMMA):
            self._advance()
            elements.append(self._parse_pattern_atom(binding=True))

        pattern = elements[-1]
        for head in reversed(elements[:-1]):
            pattern = ConsPattern(head, pattern, head.span.to(pattern.span))
        self._check_unique_binders(pattern)
        return pattern

    def _parse_statements(self, stops: frozenset[TokenKind]) -> list[tuple[Token, Binding | FieldAssign | Expr]]:
        """Newline-separated statements up to (not including) a stop token."""
        items: list[tuple[Token, Binding | FieldAssign | Expr]] = []
        while True:
            self._skip_newlines()
            if self._current().kind in stops or self._at(TokenKind.EOF):
                return items
            first = self._current()
            items.append((first, self._parse_statement()))
            if self._at(TokenKind.NEWLINE):
                self._advance()
            elif (self._current().kind not in stops
                  and self._previous().kind != TokenKind.SEMICOLON):
                raise self._unexpected("end of line")

    def _make_body(self, items: list[tuple[Token, Binding | FieldAssign | Expr]]) -> Body:
        """Every statement but the last is a binding; the last is the result."""
        if not items:
            raise self._unexpected("expression")
        for first, stmt in items[:-1]:
            if not isinstance(stmt, (Binding, FieldAssign)):
                raise ParseError(
                    ParseErrorKind.UNEXPECTED_TOKEN,
                    "only the last statement of a body may be a bare expression",
                    stmt.span, token=first, expected="binding",
                )
        last_first, result = items[-1]
        if isinstance(result, (Binding, FieldAssign)):
            raise ParseError(
                ParseErrorKind.UNEXPECTED_TOKEN,
                "a body must end with an expression, found a binding",
                result.span, token=last_first, expected="expression",
            )
        statements = tuple(stmt for _, stmt in items[:-1])
        span = items[0][1].span.to(result.span)
        return Body(statements, result, span)  # type: ignore[arg-type]

    # ── Expressions (precedence climbing) ────────────────────────

    def _parse_expression(self) -> Expr:
        return self._parse_logical()

    def _parse_logical(self) -> Expr:
        """`and` / `or`, one band, left to right."""
        left = self._parse_cons()
        while True:
            self._skip_bracket_newlines()
            if self._current().kind not in _LOGICAL_OPS:
                return left
            op_tok = self._advance()
            self._skip_bracket_newlines()
            right = self._parse_cons()
            left = BinaryOp(op_tok.lexeme, left, right, left.span.to(right.span))

    def _parse_cons(self) -> Expr:
        """`:` and `++`, right associative."""
        left = self._parse_additive()
        self._skip_bracket_newlines()
        if self._at(TokenKind.COLON):
            self._advance()
            self._skip_bracket_newlines()
            right = self._parse_cons()
            return Cons(left, right, left.span.to(right.span))
        if self._at(TokenKind.PLUS_PLUS):
            self._advance()
            self._skip_bracket_newlines()
            right = self._parse_cons()
            return Concat(left, right, left.span.to(right.span))
        return left

    def _parse_additive(self) -> Expr:
        left = self._parse_multiplicative()
        while True:
            self._skip_bracket_newlines()
            if self._current().kind not in _ADDITIVE_OPS:
                return left
            op_tok = self._advance()
            self._skip_bracket_newlines()
            right = self._parse_multiplicative()
            left = BinaryOp(op_tok.lexeme, left, right, left.span.to(right.span))

    def _parse_multiplicative(self) -> Expr:
        left = self._parse_unary()
        while True:
            self._skip_bracket_newlines()
            if self._current().kind not in _MULTIPLICATIVE_OPS:
                return left
            op_tok = self._advance()
            self._skip_bracket_newlines()
            right = self._parse_unary()
            left = BinaryOp(op_tok.lexeme, left, right, left.span.to(right.span))

    def _parse_unary(self) -> Expr:
        tok = self._current()
        if tok.kind in (TokenKind.NOT, TokenKind.MINUS):
            self._advance()
            operand = self._parse_unary()
            return UnaryOp(tok.lexeme, operand, tok.span.to(operand.span))
        return self._parse_application()

    def _parse_application(self) -> Expr:
        """Juxtaposition, one argument at a time: `f a b` is `(f a) b`."""
        callee = self._parse_postfix()
        while True:
            self._skip_bracket_newlines()
            if self._current().kind not in _ARGUMENT_START:
                return callee
            arg = self._parse_postfix()
            callee = Call(callee, arg, callee.span.to(arg.span))

    def _parse_postfix(self) -> Expr:
        """Field access: `record.name`, `tuple.0`."""
        expr = self._parse_primary()
        while self._at(TokenKind.DOT):
            self._advance()
            tok = self._current()
            if tok.kind == TokenKind.IDENTIFIER:
                field: str | int = tok.lexeme
            elif tok.kind == TokenKind.INT_LIT:
                field = int(tok.lexeme)
            else:
                raise self._unexpected("field name or tuple index")
            self._advance()
            expr = FieldAccess(expr, field, expr.span.to(tok.span))
        return expr

    def _parse_primary(self) -> Expr:
        tok = self._current()

        if tok.kind in LITERAL_KINDS:
            self._advance()
            return self._literal(tok)

        if tok.kind == TokenKind.IDENTIFIER:
            self._advance()
            return Identifier(tok.lexeme, tok.span)

        # Option constructors behave like any other constructor name.
        if tok.kind in (TokenKind.JUST, TokenKind.NIL):
            self._advance()
            return Identifier(tok.lexeme, tok.span)

        if tok.kind == TokenKind.LPAREN:
            if self._is_lambda_start():
                return self._parse_lambda()
            return self._parse_paren_or_tuple()

        if tok.kind == TokenKind.LBRACKET:
            elements = self._parse_delimited(
                TokenKind.LBRACKET, TokenKind.RBRACKET, "bracket", self._parse_expression,
            )
            return ListLit(tuple(elements), tok.span.to(self._previous().span))

        if tok.kind == TokenKind.LBRACE:
            fields = self._parse_delimited(
                TokenKind.LBRACE, TokenKind.RBRACE, "brace", self._parse_field_init,
            )
            return RecordLit(tuple(fields), tok.span.to(self._previous().span))

        if tok.kind == TokenKind.IF:
            return self._parse_if()

        if tok.kind == TokenKind.MATCH:
            return self._parse_match()

        raise self._unexpected("expression")

    def _literal(self, tok: Token) -> Literal:
        match tok.kind:
            case TokenKind.INT_LIT:
                return IntegerLit(int(tok.lexeme), tok.span)
            case TokenKind.FLOAT_LIT:
                return FloatLit(float(tok.lexeme), tok.span)
            case TokenKind.STRING_LIT:
                return StringLit(decode_escapes(tok.lexeme[1:-1]), tok.span)
            case TokenKind.CHAR_LIT:
                return CharLit(decode_escapes(tok.lexeme[1:-1]), tok.span)
            case TokenKind.TRUE:
                return BooleanLit(True, tok.span)
            case _:
                return BooleanLit(False, tok.span)

    def _parse_paren_or_tuple(self) -> Expr:
        open_tok = self._current()
        elements = self._parse_delimited(
            TokenKind.LPAREN, TokenKind.RPAREN, "paren", self._parse_expression,
        )
        if len(elements) == 1 and not self._trailing_comma:
            return elements[0]
        return TupleLit(tuple(elements), open_tok.span.to(self._previous().span))

    def _parse_field_init(self) -> FieldInit:
        name_tok = self._expect(TokenKind.IDENTIFIER, "field name")
        if not self._at(TokenKind.COLON):
            # `{a}` is short for `{a: a}`
            return FieldInit(name_tok.lexeme, Identifier(name_tok.lexeme, name_tok.span),
                             name_tok.span)
        self._advance()
        self._skip_newlines()
        value = self._parse_expression()
        return FieldInit(name_tok.lexeme, value, name_tok.span.to(value.span))

    # ── Functions ────────────────────────────────────────────────

    def _is_lambda_start(self) -> bool:
        """`(` ... matching `)` followed by `->`."""
        depth = 0
        idx = self.pos
        while idx < len(self.tokens):
            kind = self.tokens[idx].kind
            if kind in _OPENERS:
                depth += 1
            elif kind in _CLOSERS:
                depth -= 1
                if depth == 0:
                    nxt = self.tokens[idx + 1] if idx + 1 < len(self.tokens) else None
                    return nxt is not None and nxt.kind == TokenKind.ARROW
            elif kind == TokenKind.EOF:
                return False
            idx += 1
        return False

    def _parse_lambda(self) -> Lambda:
        open_tok = self._advance()  # (
        params: list[Param] = []
        inherits = False
        if self._at(TokenKind.DOT_DOT):
            self._advance()
            inherits = True
        else:
            while not self._at(TokenKind.RPAREN):
                if params:
                    self._expect(TokenKind.COMMA, "',' or ')'")
                name_tok = self._expect(TokenKind.IDENTIFIER, "parameter name")
                params.append(Param(name_tok.lexeme, name_tok.span))
        self._expect(TokenKind.RPAREN)
        self._expect(TokenKind.ARROW)

        self._push("function", open_tok)
        items = self._parse_statements(frozenset({TokenKind.SEMICOLON}))
        body = self._make_body(items)
        close = self._expect(TokenKind.SEMICOLON, "';'")
        self._pop("function")
        return Lambda(tuple(params), inherits, body, open_tok.span.to(close.span))

    # ── Conditionals ─────────────────────────────────────────────

    def _parse_if(self) -> If:
        if_tok = self._advance()
        condition = self._parse_expression()
        self._skip_bracket_newlines()
        self._expect(TokenKind.THEN)
        then_branch = self._parse_branch(if_tok)

        # `if c then a` newline `else b`
        if self._at(TokenKind.NEWLINE) and self._peek(1).kind == TokenKind.ELSE:
            self._advance()
        self._expect(TokenKind.ELSE)
        else_branch = self._parse_branch(if_tok)
        return If(condition, then_branch, else_branch, if_tok.span.to(else_branch.span))

    def _parse_branch(self, if_tok: Token) -> Expr:
        """Inline expression, or a block when the keyword ends the line."""
        if not self._at(TokenKind.NEWLINE):
            return self._parse_expression()
        self._push("block", if_tok)
        items = self._parse_statements(_BRANCH_CLOSERS)
        body = self._make_body(items)
        self._pop("block")
        if not body.statements:
            return body.result
        return Block(body, body.span)

    # ── Match ────────────────────────────────────────────────────

    def _parse_match(self) -> Match:
        match_tok = self._advance()
        self._push("match", match_tok)
        scrutinee = self._parse_expression()
        self._skip_newlines()

        arms: list[MatchArm] = []
        while self._at(TokenKind.PIPE):
            arms.append(self._parse_match_arm())
            self._skip_newlines()
        if not arms:
            raise self._unexpected("'|' starting a match arm")

        close = self._expect(TokenKind.SEMICOLON, "'|' or ';'")
        self._pop("match")
        logger.debug(f"parsed match with {len(arms)} arms at {match_tok.span}")
        return Match(scrutinee, tuple(arms), match_tok.span.to(close.span))

    def _parse_match_arm(self) -> MatchArm:
        pipe = self._advance()
        pattern = self._parse_pattern()
        self._check_unique_binders(pattern)
        self._expect(TokenKind.FAT_ARROW, "'=>'")
        self._skip_newlines()
        body = self._parse_expression()
        return MatchArm(pattern, body, pipe.span.to(body.span))

    # ── Patterns ─────────────────────────────────────────────────

    def _parse_pattern(self) -> Pattern:
        """Full pattern; `h : t` conses are right associative."""
        head = self._parse_pattern_atom(binding=False)
        if self._at(TokenKind.COLON):
            self._advance()
            tail = self._parse_pattern()
            return ConsPattern(head, tail, head.span.to(tail.span))
        return head

    def _parse_sub_pattern(self, binding: bool) -> Pattern:
        if binding:
            return self._parse_pattern_atom(binding=True)
        return self._parse_pattern()

    def _parse_pattern_atom(self, *, binding: bool) -> Pattern:
        tok = self._current()

        if tok.kind == TokenKind.IDENTIFIER:
            if tok.lexeme == '_':
                self._advance()
                return WildcardPattern(tok.span)
            if tok.lexeme[0].isupper():
                return self._parse_constructor_pattern(binding)
            self._advance()
            return BindPattern(tok.lexeme, tok.span)

        if tok.kind in (TokenKind.JUST, TokenKind.NIL):
            return self._parse_constructor_pattern(binding)

        if tok.kind in LITERAL_KINDS or (
                tok.kind == TokenKind.MINUS
                and self._peek(1).kind in (TokenKind.INT_LIT, TokenKind.FLOAT_LIT)):
            if binding:
                raise ParseError(
                    ParseErrorKind.INVALID_BINDING_PATTERN,
                    "literal patterns are not allowed on the left of '='",
                    tok.span, token=tok, expected="name, '_' or destructuring pattern",
                )
            return self._parse_literal_pattern()

        if tok.kind == TokenKind.LPAREN:
            elements = self._parse_delimited(
                TokenKind.LPAREN, TokenKind.RPAREN, "paren",
                lambda: self._parse_sub_pattern(binding),
            )
            if len(elements) == 1 and not self._trailing_comma:
                return elements[0]
            return TuplePattern(tuple(elements), tok.span.to(self._previous().span))

        if tok.kind == TokenKind.LBRACKET:
            elements = self._parse_delimited(
                TokenKind.LBRACKET, TokenKind.RBRACKET, "bracket",
                lambda: self._parse_sub_pattern(binding),
            )
            return ListPattern(tuple(elements), tok.span.to(self._previous().span))

        if tok.kind == TokenKind.LBRACE:
            fields = self._parse_delimited(
                TokenKind.LBRACE, TokenKind.RBRACE, "brace",
                lambda: self._parse_field_pattern(binding),
            )
            return RecordPattern(tuple(fields), tok.span.to(self._previous().span))

        raise self._unexpected("pattern")

    def _parse_literal_pattern(self) -> LiteralPattern:
        tok = self._advance()
        if tok.kind == TokenKind.MINUS:
            num = self._advance()
            lit = self._literal(num)
            negated = (IntegerLit(-lit.value, tok.span.to(num.span))
                       if isinstance(lit, IntegerLit)
                       else FloatLit(-lit.value, tok.span.to(num.span)))
            return LiteralPattern(negated, negated.span)
        lit = self._literal(tok)
        return LiteralPattern(lit, lit.span)

    def _parse_constructor_pattern(self, binding: bool) -> ConstructorPattern:
        name_tok = self._advance()
        payload = None
        if self._at(TokenKind.LPAREN):
            payload = tuple(self._parse_delimited(
                TokenKind.LPAREN, TokenKind.RPAREN, "paren",
                lambda: self._parse_sub_pattern(binding),
            ))
        return ConstructorPattern(name_tok.lexeme, payload,
                                  name_tok.span.to(self._previous().span))

    def _parse_field_pattern(self, binding: bool) -> FieldPattern:
        """`name` binds the field to itself; `name: pattern` destructures it."""
        name_tok = self._expect(TokenKind.IDENTIFIER, "field name")
        if self._at(TokenKind.COLON):
            self._advance()
            self._skip_newlines()
            sub = self._parse_sub_pattern(binding)
            return FieldPattern(name_tok.lexeme, sub, name_tok.span.to(sub.span))
        return FieldPattern(name_tok.lexeme, BindPattern(name_tok.lexeme, name_tok.span),
                            name_tok.span)

    # ── Delimited lists ──────────────────────────────────────────

    def _skip_newlines_after(self, open_kind: TokenKind) -> None:
        """Consume an opening bracket, push its frame, skip newlines."""
        open_tok = self._expect(open_kind)
        frame = {
            TokenKind.LPAREN: "paren",
            TokenKind.LBRACKET: "bracket",
            TokenKind.LBRACE: "brace",
            TokenKind.LESS: "angle",
        }[open_kind]
        self._push(frame, open_tok)
        self._skip_newlines()

    def _parse_delimited(self, open_kind, close_kind, frame, parse_item) -> list:
        """Comma-separated items between brackets; newlines are ignored."""
        self._skip_newlines_after(open_kind)
        return self._parse_delimited_tail(close_kind, frame, parse_item)

    def _parse_delimited_tail(self, close_kind, frame, parse_item) -> list:
        items: list = []
        trailing_comma = False
        while not self._at(close_kind):
            if items:
                self._expect(TokenKind.COMMA, f"',' or {_kind_text(close_kind)}")
                self._skip_newlines()
                if self._at(close_kind):
                    trailing_comma = True
                    break
            items.append(parse_item())
            self._skip_newlines()
        self._expect(close_kind)
        self._pop(frame)
        self._trailing_comma = trailing_comma
        return items


def parse(tokens: list[Token], filename: str = "<stdin>", module_name: str | None = None) -> Module:
    """Parse ``tokens`` into a Module, raising ParseError on the first problem."""
    return Parser(tokens, filename, module_name).parse()

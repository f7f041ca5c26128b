"""Lexer for the funs programming language.

Produces a stream of tokens from source text. Newlines are significant and
become NEWLINE terminators; a backslash at the end of a line joins it with
the next one.
"""

from __future__ import annotations

import logging

from funs.errors import LexError, LexErrorKind
from funs.source import Span
from funs.tokens import (
    ESCAPES,
    KEYWORDS,
    MULTI_CHAR_OPERATORS,
    SINGLE_CHAR_TOKENS,
    Token,
    TokenKind,
)

logger = logging.getLogger(__name__)

# Token kinds that indicate a value just completed; a '.' after one of these
# is field access rather than the start of a number.
_VALUE_TOKENS = frozenset({
    TokenKind.IDENTIFIER,
    TokenKind.INT_LIT,
    TokenKind.FLOAT_LIT,
    TokenKind.STRING_LIT,
    TokenKind.CHAR_LIT,
    TokenKind.TRUE,
    TokenKind.FALSE,
    TokenKind.JUST,
    TokenKind.NIL,
    TokenKind.RPAREN,
    TokenKind.RBRACKET,
    TokenKind.RBRACE,
})

_INLINE_WHITESPACE = frozenset(" \t\r\f\v")


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


class Lexer:
    """Tokenizes funs source code."""

    def __init__(self, source: str, filename: str = "<stdin>") -> None:
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.col = 0
        self.prev_token: Token | None = None
        self.tokens: list[Token] = []

    def lex(self) -> list[Token]:
        """Tokenize the entire source and return the token list."""
        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if ch in _INLINE_WHITESPACE:
                self._advance()
            elif ch == '\n':
                self._handle_newline()
            elif ch == '#':
                self._skip_line_comment()
            elif ch == '\\':
                self._handle_continuation()
            elif ch == '"':
                self._lex_string()
            elif ch == "'":
                self._lex_char()
            elif _is_digit(ch):
                self._lex_number()
            elif ch.isalpha() or ch == '_':
                self._lex_identifier()
            else:
                self._lex_operator_or_separator()

        # Implicit terminator so the parser never special-cases EOF.
        if self.prev_token is not None and self.prev_token.kind != TokenKind.NEWLINE:
            self._emit(TokenKind.NEWLINE, "", self.pos, self.line, self.col)
        self._emit(TokenKind.EOF, "", self.pos, self.line, self.col)

        logger.debug(f"lexed {len(self.tokens)} tokens from {self.filename}")
        return self.tokens

    # ── Helpers ───────────────────────────────────────────────────

    def _peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def _at_end(self) -> bool:
        return self.pos >= len(self.source)

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        if ch == '\n':
            self.line += 1
            self.col = 0
        else:
            self.col += 1
        return ch

    def _emit(self, kind: TokenKind, lexeme: str, start: int, start_line: int, start_col: int) -> Token:
        span = Span(self.filename, start, self.pos, start_line, start_col, self.line, self.col)
        tok = Token(kind, lexeme, span)
        self.tokens.append(tok)
        self.prev_token = tok
        return tok

    def _error(self, kind: LexErrorKind, message: str, start: int, line: int, col: int,
               width: int = 1) -> LexError:
        span = Span(self.filename, start, start + width, line, col, line, col + width)
        return LexError(kind, message, span)

    # ── Newlines, comments, continuation ─────────────────────────

    def _handle_newline(self) -> None:
        start, line, col = self.pos, self.line, self.col
        self._advance()
        # Blank lines and leading newlines do not terminate anything.
        if self.prev_token is None or self.prev_token.kind == TokenKind.NEWLINE:
            return
        self._emit(TokenKind.NEWLINE, "\n", start, line, col)

    def _skip_line_comment(self) -> None:
        while not self._at_end() and self.source[self.pos] != '\n':
            self._advance()

    def _handle_continuation(self) -> None:
        """Elide ``\\``, an optional trailing comment, and the newline."""
        start, line, col = self.pos, self.line, self.col
        self._advance()  # skip backslash
        while not self._at_end() and self.source[self.pos] in _INLINE_WHITESPACE:
            self._advance()
        if self._peek() == '#':
            self._skip_line_comment()
        if self._at_end():
            return
        if self.source[self.pos] != '\n':
            raise self._error(
                LexErrorKind.UNKNOWN_CHARACTER,
                "unexpected character: '\\' (a line continuation must end the line)",
                start, line, col,
            )
        self._advance()

    # ── Strings and characters ───────────────────────────────────

    def _lex_string(self) -> None:
        start, line, col = self.pos, self.line, self.col
        self._advance()  # skip opening "
        while True:
            if self._at_end() or self.source[self.pos] == '\n':
                raise self._error(
                    LexErrorKind.UNTERMINATED_STRING,
                    "unterminated string literal", start, line, col,
                )
            ch = self._advance()
            if ch == '"':
                break
            if ch == '\\' and not self._at_end() and self.source[self.pos] != '\n':
                self._advance()
        self._emit(TokenKind.STRING_LIT, self.source[start:self.pos], start, line, col)

    def _lex_char(self) -> None:
        start, line, col = self.pos, self.line, self.col
        self._advance()  # skip opening '
        scalars = 0
        while True:
            if self._at_end() or self.source[self.pos] == '\n':
                raise self._error(
                    LexErrorKind.INVALID_CHAR_LITERAL,
                    "unterminated character literal", start, line, col,
                )
            ch = self._advance()
            if ch == "'":
                break
            if ch == '\\' and not self._at_end() and self.source[self.pos] != '\n':
                if self.source[self.pos] not in ESCAPES:
                    raise self._error(
                        LexErrorKind.INVALID_CHAR_LITERAL,
                        f"unknown escape in character literal: '\\{self.source[self.pos]}'",
                        start, line, col, width=self.pos + 1 - start,
                    )
                self._advance()
            scalars += 1
        if scalars != 1:
            raise self._error(
                LexErrorKind.INVALID_CHAR_LITERAL,
                f"character literal must contain exactly one character, found {scalars}",
                start, line, col, width=self.pos - start,
            )
        self._emit(TokenKind.CHAR_LIT, self.source[start:self.pos], start, line, col)

    # ── Numbers ──────────────────────────────────────────────────

    def _lex_number(self) -> None:
        start, line, col = self.pos, self.line, self.col
        # Tuple index position (`t.0.1`) never lexes a float.
        field_position = (self.prev_token is not None
                          and self.prev_token.kind == TokenKind.DOT)
        kind = TokenKind.INT_LIT

        while not self._at_end() and _is_digit(self.source[self.pos]):
            self._advance()

        if not field_position and self._peek() == '.':
            after = self._peek(1)
            if _is_digit(after):
                self._advance()  # .
                while not self._at_end() and _is_digit(self.source[self.pos]):
                    self._advance()
                kind = TokenKind.FLOAT_LIT
            elif after != '.':
                raise self._error(
                    LexErrorKind.MALFORMED_NUMBER,
                    f"malformed number: {self.source[start:self.pos + 1]!r} "
                    "(expected digits after '.')",
                    start, line, col, width=self.pos + 1 - start,
                )

        nxt = self._peek()
        if nxt.isalpha() or nxt == '_':
            raise self._error(
                LexErrorKind.MALFORMED_NUMBER,
                f"malformed number: {self.source[start:self.pos + 1]!r}",
                start, line, col, width=self.pos + 1 - start,
            )

        self._emit(kind, self.source[start:self.pos], start, line, col)

    # ── Identifiers and keywords ─────────────────────────────────

    def _lex_identifier(self) -> None:
        start, line, col = self.pos, self.line, self.col
        while not self._at_end() and (self.source[self.pos].isalnum()
                                      or self.source[self.pos] == '_'):
            self._advance()
        word = self.source[start:self.pos]
        self._emit(KEYWORDS.get(word, TokenKind.IDENTIFIER), word, start, line, col)

    # ── Operators and separators ─────────────────────────────────

    def _lex_operator_or_separator(self) -> None:
        start, line, col = self.pos, self.line, self.col
        ch = self.source[self.pos]

        two = self.source[self.pos:self.pos + 2]
        if two in MULTI_CHAR_OPERATORS:
            self._advance()
            self._advance()
            self._emit(MULTI_CHAR_OPERATORS[two], two, start, line, col)
            return

        if (ch == '.' and _is_digit(self._peek(1))
                and (self.prev_token is None or self.prev_token.kind not in _VALUE_TOKENS)):
            raise self._error(
                LexErrorKind.MALFORMED_NUMBER,
                "malformed number: a float needs digits before '.'",
                start, line, col, width=2,
            )

        kind = SINGLE_CHAR_TOKENS.get(ch)
        if kind is None:
            raise self._error(
                LexErrorKind.UNKNOWN_CHARACTER,
                f"unexpected character: {ch!r}", start, line, col,
            )
        self._advance()
        self._emit(kind, ch, start, line, col)


def tokenize(source: str, filename: str = "<stdin>") -> list[Token]:
    """Lex ``source`` into tokens, raising LexError on the first problem."""
    return Lexer(source, filename).lex()


def detokenize(tokens: list[Token]) -> str:
    """Rebuild source text from token lexemes.

    Tokens on one line are joined by a single space, which is always enough
    to keep them apart; comments and continuations are gone. Lexing the
    result yields the same kinds and lexemes.
    """
    parts: list[str] = []
    at_line_start = True
    for tok in tokens:
        if tok.kind == TokenKind.EOF:
            break
        if tok.kind == TokenKind.NEWLINE:
            parts.append(tok.lexeme)
            at_line_start = True
            continue
        if not at_line_start:
            parts.append(" ")
        parts.append(tok.lexeme)
        at_line_start = False
    return "".join(parts)

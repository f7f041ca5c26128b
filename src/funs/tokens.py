"""Token kinds and token representation for the funs lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from funs.source import Span


class TokenKind(Enum):
    # Keywords
    IMP = auto()
    AS = auto()
    OF = auto()
    MATCH = auto()
    DATA = auto()
    MUT = auto()
    AND = auto()
    OR = auto()
    NOT = auto()
    IF = auto()
    THEN = auto()
    ELSE = auto()

    # Literals
    INT_LIT = auto()
    FLOAT_LIT = auto()
    STRING_LIT = auto()
    CHAR_LIT = auto()
    TRUE = auto()
    FALSE = auto()

    # Option constructors
    JUST = auto()
    NIL = auto()

    # Operators
    PLUS = auto()
    PLUS_PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    SLASH_SLASH = auto()
    PERCENT = auto()
    ASSIGN = auto()
    ARROW = auto()
    FAT_ARROW = auto()
    LESS = auto()
    GREATER = auto()
    DOT = auto()
    DOT_DOT = auto()

    # Separators
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LBRACE = auto()
    RBRACE = auto()
    COMMA = auto()
    COLON = auto()
    SEMICOLON = auto()
    PIPE = auto()

    # Statement terminator
    NEWLINE = auto()

    IDENTIFIER = auto()

    EOF = auto()


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    lexeme: str
    span: Span


KEYWORDS: dict[str, TokenKind] = {
    "imp": TokenKind.IMP,
    "as": TokenKind.AS,
    "of": TokenKind.OF,
    "match": TokenKind.MATCH,
    "data": TokenKind.DATA,
    "mut": TokenKind.MUT,
    "and": TokenKind.AND,
    "or": TokenKind.OR,
    "not": TokenKind.NOT,
    "if": TokenKind.IF,
    "then": TokenKind.THEN,
    "else": TokenKind.ELSE,
    "True": TokenKind.TRUE,
    "False": TokenKind.FALSE,
    "Just": TokenKind.JUST,
    "Nil": TokenKind.NIL,
}

# Greedy operators, matched before single characters.
MULTI_CHAR_OPERATORS: dict[str, TokenKind] = {
    "->": TokenKind.ARROW,
    "=>": TokenKind.FAT_ARROW,
    "//": TokenKind.SLASH_SLASH,
    "++": TokenKind.PLUS_PLUS,
    "..": TokenKind.DOT_DOT,
}

SINGLE_CHAR_TOKENS: dict[str, TokenKind] = {
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    ".": TokenKind.DOT,
    ",": TokenKind.COMMA,
    ":": TokenKind.COLON,
    ";": TokenKind.SEMICOLON,
    "|": TokenKind.PIPE,
    "=": TokenKind.ASSIGN,
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "*": TokenKind.STAR,
    "/": TokenKind.SLASH,
    "%": TokenKind.PERCENT,
    "<": TokenKind.LESS,
    ">": TokenKind.GREATER,
}

LITERAL_KINDS: frozenset[TokenKind] = frozenset({
    TokenKind.INT_LIT,
    TokenKind.FLOAT_LIT,
    TokenKind.STRING_LIT,
    TokenKind.CHAR_LIT,
    TokenKind.TRUE,
    TokenKind.FALSE,
})

# Backslash escapes valid in string and char literals, with their decoded text.
ESCAPES: dict[str, str] = {
    "n": "\n", "t": "\t", "r": "\r", "0": "\0",
    "\\": "\\", '"': '"', "'": "'",
}

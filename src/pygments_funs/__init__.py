"""Pygments lexer for the funs programming language."""

from pygments.lexer import RegexLexer, words
from pygments.token import (
    Comment,
    Keyword,
    Name,
    Number,
    Operator,
    Punctuation,
    String,
    Text,
)


class FunsLexer(RegexLexer):
    """Pygments lexer for the funs programming language."""

    name = "funs"
    aliases = ["funs"]
    filenames = ["*.fs"]
    mimetypes = ["text/x-funs"]

    tokens = {
        "root": [
            # Line continuation
            (r"\\[ \t]*(#.*)?$", Text),
            (r"\s+", Text),
            (r"#.*$", Comment.Single),
            (r'"', String, "string"),
            (r"'(\\.|[^'\\])'", String.Char),
            (r"[0-9]+\.[0-9]+", Number.Float),
            (r"[0-9]+", Number.Integer),
            (
                words(("imp", "as", "of"), prefix=r"\b", suffix=r"\b"),
                Keyword.Namespace,
            ),
            (
                words(("data", "mut"), prefix=r"\b", suffix=r"\b"),
                Keyword.Declaration,
            ),
            (
                words(("match", "if", "then", "else"), prefix=r"\b", suffix=r"\b"),
                Keyword,
            ),
            (words(("and", "or", "not"), prefix=r"\b", suffix=r"\b"), Operator.Word),
            (words(("True", "False", "Just", "Nil"), prefix=r"\b", suffix=r"\b"), Keyword.Constant),
            # Multi-char operators before single-char
            (r"=>|->|//|\+\+|\.\.", Operator),
            (r"[+\-*/%<>=.]", Operator),
            # Constructors and type names
            (r"[A-Z][a-zA-Z0-9_]*", Name.Class),
            (r"_\b", Keyword.Pseudo),
            (r"[a-z_][a-zA-Z0-9_]*", Name),
            (r"[(),;\[\]{}:|]", Punctuation),
        ],
        "string": [
            (r'\\[nrt0\\"\']', String.Escape),
            (r'[^"\\\n]+', String),
            (r"\\", String),
            (r'"', String, "#pop"),
            (r"\n", Text, "#pop"),
        ],
    }

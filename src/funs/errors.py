"""Diagnostics, the colored renderer, and the front end's error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from funs.source import Span
    from funs.tokens import Token


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    NOTE = "note"


# ANSI color codes
_COLORS = {
    Severity.ERROR: "\033[1;31m",    # bold red
    Severity.WARNING: "\033[1;33m",  # bold yellow
    Severity.NOTE: "\033[1;36m",     # bold cyan
}
_BOLD = "\033[1m"
_BLUE = "\033[1;34m"
_RESET = "\033[0m"


@dataclass(frozen=True)
class DiagnosticLabel:
    """Points to a specific source location."""

    span: Span
    message: str
    style: str = "primary"  # "primary" or "secondary"


@dataclass
class Diagnostic:
    """A single diagnostic message with optional labels and notes."""

    severity: Severity
    code: str
    message: str
    labels: list[DiagnosticLabel] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


class DiagnosticRenderer:
    """Renders diagnostics in Rust-style format with colors."""

    def __init__(self, *, color: bool = True, sources: dict[str, str] | None = None) -> None:
        self.color = color
        self._file_cache: dict[str, list[str]] = {
            name: text.splitlines() for name, text in (sources or {}).items()
        }

    def _c(self, code: str) -> str:
        return code if self.color else ""

    def _get_source_line(self, filename: str, line_num: int) -> str | None:
        """Load and cache source file, return the 1-indexed line."""
        if filename not in self._file_cache:
            try:
                path = Path(filename)
                if path.is_file():
                    self._file_cache[filename] = path.read_text(encoding="utf-8").splitlines()
                else:
                    self._file_cache[filename] = []
            except OSError:
                self._file_cache[filename] = []
        lines = self._file_cache[filename]
        if 1 <= line_num <= len(lines):
            return lines[line_num - 1]
        return None

    def render(self, diag: Diagnostic) -> str:
        lines: list[str] = []
        sev = diag.severity
        color = _COLORS[sev]

        # Header: error[E101]: message
        lines.append(
            f"{self._c(color)}{sev.value}[{diag.code}]{self._c(_RESET)}"
            f"{self._c(_BOLD)}: {diag.message}{self._c(_RESET)}"
        )

        for label in diag.labels:
            span = label.span
            # Columns are 0-based internally, 1-based for humans.
            loc = f"{span.file}:{span.start_line}:{span.start_col + 1}"
            lines.append(
                f"  {self._c(_BLUE)}-->{self._c(_RESET)} {loc}"
            )
            gutter = f"{span.start_line:>4}"
            lines.append(f"  {self._c(_BLUE)}   |{self._c(_RESET)}")

            source_line = self._get_source_line(span.file, span.start_line)
            if source_line is not None:
                lines.append(
                    f"  {self._c(_BLUE)}{gutter} |{self._c(_RESET)} {source_line}"
                )

            if span.start_line == span.end_line:
                caret_len = max(1, span.end_col - span.start_col)
                padding = " " * span.start_col
                carets = "^" * caret_len
                lines.append(
                    f"  {self._c(_BLUE)}   |{self._c(_RESET)} "
                    f"{padding}{self._c(color)}{carets}{self._c(_RESET)}"
                )
            elif source_line is None:
                lines.append(
                    f"  {self._c(_BLUE)}{gutter} |{self._c(_RESET)}"
                )

            if label.message:
                lines.append(
                    f"  {self._c(_BLUE)}   |{self._c(_RESET)}   "
                    f"{self._c(color)}{label.message}{self._c(_RESET)}"
                )

        for note in diag.notes:
            lines.append(f"  {self._c(_BLUE)}={self._c(_RESET)} note: {note}")

        return "\n".join(lines)


class CompileError(Exception):
    """Compilation error carrying one or more diagnostics."""

    def __init__(self, diagnostics: list[Diagnostic]) -> None:
        self.diagnostics = diagnostics
        messages = [d.message for d in diagnostics]
        super().__init__(f"{len(diagnostics)} error(s): {'; '.join(messages)}")


# ── Front-end error taxonomy ─────────────────────────────────────


class LexErrorKind(Enum):
    UNTERMINATED_STRING = "E101"
    INVALID_CHAR_LITERAL = "E102"
    MALFORMED_NUMBER = "E103"
    UNKNOWN_CHARACTER = "E104"


class ParseErrorKind(Enum):
    UNEXPECTED_TOKEN = "E201"
    UNEXPECTED_EOF = "E202"
    INVALID_BINDING_PATTERN = "E203"
    DUPLICATE_PATTERN_BINDING = "E204"
    UNTERMINATED_BLOCK = "E205"


def _error_diagnostic(code: str, message: str, span: Span, label: str = "") -> Diagnostic:
    return Diagnostic(
        severity=Severity.ERROR,
        code=code,
        message=message,
        labels=[DiagnosticLabel(span=span, message=label)],
    )


class LexError(CompileError):
    """The lexer rejected the source text."""

    def __init__(self, kind: LexErrorKind, message: str, span: Span) -> None:
        self.kind = kind
        self.span = span
        super().__init__([_error_diagnostic(kind.value, message, span)])


class ParseError(CompileError):
    """The parser rejected the token stream.

    ``token`` is the offending token when there is one; pattern checks run
    on already-built nodes and report only a span. ``expected`` describes
    what the parser was looking for.
    """

    def __init__(
        self,
        kind: ParseErrorKind,
        message: str,
        span: Span,
        *,
        token: Token | None = None,
        expected: str | None = None,
    ) -> None:
        self.kind = kind
        self.span = span
        self.token = token
        self.expected = expected
        label = f"expected {expected}" if expected else ""
        super().__init__([_error_diagnostic(kind.value, message, span, label)])


class SourceError(CompileError):
    """A source file could not be read or is not valid UTF-8."""

    CODE = "E001"

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__([Diagnostic(
            severity=Severity.ERROR,
            code=self.CODE,
            message=f"cannot read {path}: {reason}",
        )])

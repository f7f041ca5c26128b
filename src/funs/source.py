"""Source file representation and span tracking for diagnostics."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Span:
    """A range within a source file.

    Offsets count code points from the start of the file, end exclusive.
    Lines are 1-based, columns 0-based, end column exclusive.
    """

    file: str
    start: int
    end: int
    start_line: int
    start_col: int
    end_line: int
    end_col: int

    def __str__(self) -> str:
        return f"{self.file}:{self.start_line}:{self.start_col}"

    def to(self, other: Span) -> Span:
        """Join this span with a later one."""
        return Span(
            self.file, self.start, other.end,
            self.start_line, self.start_col,
            other.end_line, other.end_col,
        )


class SourceFile:
    """A loaded source file with line access for diagnostics."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.content = path.read_text(encoding="utf-8")
        self.lines = self.content.splitlines()

    @property
    def module_name(self) -> str:
        return self.path.stem

    def line_at(self, n: int) -> str:
        """Return the 1-indexed line, or empty string if out of range."""
        if 1 <= n <= len(self.lines):
            return self.lines[n - 1]
        return ""

    def span_text(self, span: Span) -> str:
        """Extract the text covered by a span."""
        return self.content[span.start:span.end]

"""Source positions, spans, and character classification helpers."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Position:
    """Source position, 1-based line and column, 0-based character offset."""

    line: int
    column: int
    offset: int


@dataclass(frozen=True, slots=True)
class Span:
    """Source range from start to end position."""

    start: Position
    end: Position

    @property
    def is_known(self) -> bool:
        return self.start.line > 0


# Placeholder for nodes built programmatically (no source location)
NO_SPAN = Span(Position(0, 0, 0), Position(0, 0, 0))


class LineIndex:
    """Maps character offsets of a source text to line/column positions."""

    def __init__(self, source: str) -> None:
        self.source = source
        self._starts = [0]
        for i, ch in enumerate(source):
            if ch == "\n":
                self._starts.append(i + 1)

    @property
    def line_count(self) -> int:
        return len(self._starts)

    def position(self, offset: int) -> Position:
        offset = max(0, min(offset, len(self.source)))
        line_idx = bisect_right(self._starts, offset) - 1
        return Position(line_idx + 1, offset - self._starts[line_idx] + 1, offset)

    def line_start(self, line: int) -> int:
        """Offset of the first character of 1-based *line*."""
        line = max(1, min(line, len(self._starts)))
        return self._starts[line - 1]

    def span(self, start: int, end: int) -> Span:
        return Span(self.position(start), self.position(end))


def is_ident_start(ch: str) -> bool:
    """Return True if ch may start an identifier."""
    return ch == "_" or ("a" <= ch <= "z") or ("A" <= ch <= "Z")


def is_ident_char(ch: str) -> bool:
    """Return True if ch may continue an identifier."""
    return is_ident_start(ch) or ("0" <= ch <= "9")

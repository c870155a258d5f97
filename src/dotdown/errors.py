"""Error types, compile diagnostics, and formatted source context."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from dotdown.source import NO_SPAN, Span


def format_context(
    message: str,
    span: Span | None,
    source: str,
    filename: str,
    severity: str = "error",
) -> str:
    """Render a message with a file pointer, the source line, and carets."""
    if span is None or not span.is_known:
        return f"{severity}: {message}\n  --> {filename}"

    lines = source.splitlines(keepends=True)
    line_idx = span.start.line - 1
    col = span.start.column

    if 0 <= line_idx < len(lines):
        source_line = lines[line_idx].rstrip("\n").rstrip("\r")
    else:
        source_line = ""

    # Underline the full span when on one line, otherwise to end of line
    if span.end.line == span.start.line:
        underline_len = max(1, span.end.column - col)
    else:
        underline_len = max(1, len(source_line) - col + 1)

    pad = " " * (col - 1)
    carets = "^" * underline_len

    line_num = str(span.start.line)
    gutter_width = len(line_num) + 1

    blank_gutter = " " * gutter_width + "|"
    line_gutter = f"{line_num:>{gutter_width - 1}} |"

    return (
        f"{severity}: {message}\n"
        f"{' ' * gutter_width}--> {filename}:{span.start.line}:{col}\n"
        f"{blank_gutter}\n"
        f"{line_gutter} {source_line}\n"
        f"{blank_gutter} {pad}{carets}"
    )


class ParseError(Exception):
    """A recoverable syntax problem found while parsing."""

    def __init__(self, message: str, span: Span = NO_SPAN, source: str = "") -> None:
        self.message = message
        self.span = span
        self.source = source
        super().__init__(message)

    def format(self, filename: str = "input.dd") -> str:
        return format_context(self.message, self.span, self.source, filename)


class ExpansionError(Exception):
    """Raised when expansion cannot continue (depth limits, include cycles)."""

    def __init__(
        self,
        message: str,
        span: Span = NO_SPAN,
        source: str = "",
        call_stack: list[str] | None = None,
    ) -> None:
        self.message = message
        self.span = span
        self.source = source
        self.call_stack = call_stack or []
        super().__init__(message)

    def format(self, filename: str = "input.dd") -> str:
        result = format_context(self.message, self.span, self.source, filename)
        if self.call_stack:
            chain = " -> ".join(f".{name}" for name in self.call_stack)
            result += f"\n  in expansion chain: {chain}"
        return result


class ErrorKind(Enum):
    SYNTAX = "syntax"
    SEMANTIC = "semantic"
    RUNTIME = "runtime"


class WarningKind(Enum):
    DEPRECATION = "deprecation"
    PERFORMANCE = "performance"
    STYLE = "style"


@dataclass(frozen=True, slots=True)
class CompileError:
    """An error reported by compile(); aborts output only in strict mode."""

    message: str
    kind: ErrorKind
    span: Span | None = None

    @property
    def line(self) -> int | None:
        if self.span is None or not self.span.is_known:
            return None
        return self.span.start.line

    @property
    def column(self) -> int | None:
        if self.span is None or not self.span.is_known:
            return None
        return self.span.start.column

    def format(self, source: str, filename: str = "input.dd") -> str:
        return format_context(self.message, self.span, source, filename)


@dataclass(frozen=True, slots=True)
class CompileWarning:
    """A non-fatal diagnostic reported by compile()."""

    message: str
    kind: WarningKind
    span: Span | None = None

    @property
    def line(self) -> int | None:
        if self.span is None or not self.span.is_known:
            return None
        return self.span.start.line

    @property
    def column(self) -> int | None:
        if self.span is None or not self.span.is_known:
            return None
        return self.span.start.column

    def format(self, source: str, filename: str = "input.dd") -> str:
        return format_context(self.message, self.span, source, filename, severity="warning")

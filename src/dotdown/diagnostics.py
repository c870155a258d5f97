"""Editor diagnostics: compile() errors and warnings as 0-based ranges.

The shapes mirror the Language Server Protocol (``Position``, ``Range``,
``Diagnostic``) so an editor integration can forward them unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from dotdown.compiler import CompileOptions, compile
from dotdown.errors import CompileError, CompileWarning
from dotdown.source import Span

SOURCE_TAG = "dotdown"


class DiagnosticSeverity(IntEnum):
    Error = 1
    Warning = 2


@dataclass(frozen=True, slots=True)
class Position:
    line: int
    character: int


@dataclass(frozen=True, slots=True)
class Range:
    start: Position
    end: Position


@dataclass(frozen=True, slots=True)
class Diagnostic:
    range: Range
    message: str
    severity: DiagnosticSeverity
    source: str = SOURCE_TAG

    def to_dict(self) -> dict[str, Any]:
        """LSP-compatible JSON shape."""
        return {
            "range": {
                "start": {"line": self.range.start.line, "character": self.range.start.character},
                "end": {"line": self.range.end.line, "character": self.range.end.character},
            },
            "message": self.message,
            "severity": int(self.severity),
            "source": self.source,
        }


def span_to_range(span: Span | None) -> Range:
    """Convert a 1-based span to a 0-based range; unknown spans map to 0:0."""
    if span is None or not span.is_known:
        origin = Position(0, 0)
        return Range(origin, origin)
    start = Position(span.start.line - 1, span.start.column - 1)
    end = Position(span.end.line - 1, span.end.column - 1)
    if (end.line, end.character) < (start.line, start.character):
        end = start
    return Range(start, end)


def to_diagnostic(item: CompileError | CompileWarning) -> Diagnostic:
    severity = DiagnosticSeverity.Error if isinstance(item, CompileError) else DiagnosticSeverity.Warning
    return Diagnostic(span_to_range(item.span), item.message, severity)


def get_diagnostics(
    source: str,
    filename: str = "input.dd",
    options: CompileOptions | None = None,
) -> list[Diagnostic]:
    """Compile *source* and report its errors followed by its warnings."""
    opts = CompileOptions(filename=filename, standalone=False) if options is None else options
    result = compile(source, opts)
    diagnostics = [to_diagnostic(error) for error in result.errors]
    diagnostics.extend(to_diagnostic(warning) for warning in result.warnings)
    return diagnostics

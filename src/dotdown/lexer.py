"""Call-head scanner: recognizes `.name {arg} key:{arg}` at a given offset."""

from __future__ import annotations

from dataclasses import dataclass

from dotdown.source import is_ident_char, is_ident_start


@dataclass(frozen=True, slots=True)
class ArgGroup:
    """One brace-delimited argument; name is set for key:{value} groups."""

    name: str | None
    value: str
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class CallHead:
    """Result of scanning `.name` and any following argument groups.

    `end` is the offset just past the last consumed character.  When an
    argument group is left open, `error` is set and `end` stops after the
    name so the remaining text can still be treated as prose.
    """

    name: str
    groups: tuple[ArgGroup, ...]
    start: int
    end: int
    error: str | None = None

    @property
    def is_call(self) -> bool:
        return bool(self.groups) and self.error is None

    @property
    def positional(self) -> tuple[ArgGroup, ...]:
        return tuple(g for g in self.groups if g.name is None)

    @property
    def named(self) -> tuple[ArgGroup, ...]:
        return tuple(g for g in self.groups if g.name is not None)


class UnterminatedGroup(Exception):
    def __init__(self, start: int) -> None:
        self.start = start
        super().__init__(start)


class CallScanner:
    """Scan call heads inside a piece of source text."""

    def __init__(self, text: str) -> None:
        self._text = text
        self._pos = 0

    def scan(self, start: int) -> CallHead | None:
        """Scan a call head starting at the `.` at *start*, or return None."""
        text = self._text
        if start >= len(text) or text[start] != ".":
            return None
        self._pos = start + 1
        name = self._read_ident()
        if not name:
            return None
        name_end = self._pos

        groups: list[ArgGroup] = []
        while True:
            mark = self._pos
            self._skip_blanks()
            try:
                group = self._read_group()
            except UnterminatedGroup:
                return CallHead(
                    name,
                    tuple(groups),
                    start,
                    name_end,
                    error=f"unterminated argument group in call to .{name}",
                )
            if group is None:
                self._pos = mark
                break
            groups.append(group)

        return CallHead(name, tuple(groups), start, self._pos)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _peek(self, offset: int = 0) -> str:
        idx = self._pos + offset
        if idx < len(self._text):
            return self._text[idx]
        return ""

    def _skip_blanks(self) -> None:
        while self._peek() in (" ", "\t"):
            self._pos += 1

    def _read_ident(self) -> str:
        begin = self._pos
        if not is_ident_start(self._peek()):
            return ""
        while self._peek() and is_ident_char(self._peek()):
            self._pos += 1
        return self._text[begin : self._pos]

    def _read_group(self) -> ArgGroup | None:
        """Read `{...}` or `key:{...}`; None (position unchanged) if neither."""
        begin = self._pos
        name: str | None = None
        if is_ident_start(self._peek()):
            name = self._read_ident()
            if self._peek() != ":" or self._peek(1) != "{":
                self._pos = begin
                return None
            self._pos += 1
        if self._peek() != "{":
            self._pos = begin
            return None
        value = self._read_braced()
        return ArgGroup(name, value, begin, self._pos)

    def _read_braced(self) -> str:
        open_at = self._pos
        self._pos += 1
        depth = 1
        parts: list[str] = []
        text = self._text
        while self._pos < len(text):
            ch = text[self._pos]
            if ch == "\\" and self._peek(1) in ("{", "}"):
                parts.append(self._peek(1))
                self._pos += 2
                continue
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    self._pos += 1
                    return "".join(parts)
            parts.append(ch)
            self._pos += 1
        raise UnterminatedGroup(open_at)


def scan_call(text: str, start: int) -> CallHead | None:
    """Convenience wrapper around CallScanner.scan."""
    return CallScanner(text).scan(start)

"""Loosely-typed variable values and number parsing/formatting."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

_NUMBER_PREFIX = re.compile(r"\s*([+-]?(?:Infinity|\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?))")


class ValueKind(Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"


def parse_number(text: str, default: float | None = None) -> float | None:
    """Parse the leading numeric prefix of *text*, or return *default*.

    Mirrors the usual "parse as much of a float as possible" behaviour:
    "12px" -> 12.0, "  3.5e2x" -> 350.0, "abc" -> default.
    """
    m = _NUMBER_PREFIX.match(text)
    if m is None:
        return default
    literal = m.group(1)
    if literal.lstrip("+-") == "Infinity":
        return -math.inf if literal.startswith("-") else math.inf
    return float(literal)


def format_number(value: float) -> str:
    """Shortest decimal form; integral values print without a fraction."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "-Infinity" if value < 0 else "Infinity"
    if value == int(value) and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if "e" not in text:
        return text
    mantissa, _, exponent = text.partition("e")
    power = int(exponent)
    if -7 < power < 21:
        # positional for exponents -6 through 20
        return format(Decimal(text), "f")
    return f"{mantissa}e{'+' if power > 0 else '-'}{abs(power)}"


def format_fixed(value: float, decimals: int) -> str:
    """Format with exactly *decimals* fraction digits (0-100)."""
    decimals = max(0, min(100, decimals))
    if math.isnan(value) or math.isinf(value):
        return format_number(value)
    return f"{value:.{decimals}f}"


def is_literal_truthy(text: str) -> bool:
    """Truthiness of a literal: true/false, then numbers, then non-empty."""
    stripped = text.strip()
    lowered = stripped.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    number = parse_number(stripped)
    if number is not None and _NUMBER_PREFIX.fullmatch(stripped):
        return number != 0 and not math.isnan(number)
    return stripped != ""


@dataclass(frozen=True, slots=True)
class Value:
    """A variable value: string, number, or boolean."""

    kind: ValueKind
    data: str | float | bool

    @classmethod
    def string(cls, text: str) -> Value:
        return cls(ValueKind.STRING, text)

    @classmethod
    def number(cls, number: float) -> Value:
        return cls(ValueKind.NUMBER, float(number))

    @classmethod
    def boolean(cls, flag: bool) -> Value:
        return cls(ValueKind.BOOLEAN, bool(flag))

    @classmethod
    def of(cls, raw: object) -> Value:
        """Wrap a Python value (bool/int/float/str)."""
        if isinstance(raw, Value):
            return raw
        if isinstance(raw, bool):
            return cls.boolean(raw)
        if isinstance(raw, (int, float)):
            return cls.number(raw)
        return cls.string(str(raw))

    def as_text(self) -> str:
        if self.kind is ValueKind.BOOLEAN:
            return "true" if self.data else "false"
        if self.kind is ValueKind.NUMBER:
            return format_number(float(self.data))
        return str(self.data)

    def as_number(self, default: float | None = 0.0) -> float | None:
        if self.kind is ValueKind.NUMBER:
            return float(self.data)
        if self.kind is ValueKind.BOOLEAN:
            return 1.0 if self.data else 0.0
        return parse_number(str(self.data), default)

    def is_truthy(self) -> bool:
        if self.kind is ValueKind.BOOLEAN:
            return bool(self.data)
        if self.kind is ValueKind.NUMBER:
            number = float(self.data)
            return number != 0 and not math.isnan(number)
        return is_literal_truthy(str(self.data))

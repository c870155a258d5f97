"""Shared test fixtures and helpers."""

from __future__ import annotations

from datetime import datetime

import pytest

from dotdown.ast import Document
from dotdown.compiler import CompileOptions, CompileResult, compile
from dotdown.environment import ExecutionEnvironment
from dotdown.parser import parse

# Fixed clock so date constants are predictable
NOW = datetime(2024, 3, 9, 14, 30, 0)


@pytest.fixture
def parse_source():
    """Return a helper that parses source and returns the Document."""

    def _parse(source: str) -> Document:
        result = parse(source, "test.dd")
        assert result.errors == [], [e.message for e in result.errors]
        return result.tree

    return _parse


@pytest.fixture
def compile_source():
    """Return a helper compiling source to an HTML fragment."""

    def _compile(source: str, **overrides: object) -> CompileResult:
        options = {"filename": "test.dd", "standalone": False, "now": NOW}
        options.update(overrides)
        return compile(source, CompileOptions(**options))

    return _compile


@pytest.fixture
def env() -> ExecutionEnvironment:
    return ExecutionEnvironment.create("", "test.dd", now=NOW)

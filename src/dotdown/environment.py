"""Execution environment: variables, scopes, metadata, and expansion limits."""

from __future__ import annotations

import copy
import logging
import math
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from dotdown.ast import Node, Text, text_content
from dotdown.errors import CompileError, CompileWarning, ErrorKind, ExpansionError, WarningKind
from dotdown.files import FileReader, LocalFileReader
from dotdown.source import NO_SPAN, Span
from dotdown.values import Value

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UserFunction:
    """A function defined in the document with `.function`."""

    name: str
    parameters: tuple[str, ...]
    named_parameters: tuple[str, ...]
    body: tuple[Node, ...]


@dataclass(frozen=True, slots=True)
class Limits:
    """Ceilings that guarantee expansion terminates."""

    max_call_depth: int = 64
    max_include_depth: int = 16
    max_iterations: int = 1000


def builtin_constants(now: datetime | None = None) -> dict[str, Value]:
    """Constants every environment starts with."""
    now = now or datetime.now()
    return {
        "pi": Value.number(math.pi),
        "e": Value.number(math.e),
        "today": Value.string(now.date().isoformat()),
        "now": Value.string(now.isoformat(timespec="seconds")),
        "year": Value.number(now.year),
        "month": Value.number(now.month),
        "day": Value.number(now.day),
    }


@dataclass
class ExecutionEnvironment:
    """State carried through expansion of one document."""

    source: str = ""
    filename: str = "input.dd"
    base_dir: Path = field(default_factory=lambda: Path("."))
    include_paths: list[Path] = field(default_factory=list)
    files: FileReader = field(default_factory=LocalFileReader)
    limits: Limits = field(default_factory=Limits)
    variables: dict[str, Value] = field(default_factory=dict)
    scopes: list[dict[str, Value]] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)
    functions: dict[str, UserFunction] = field(default_factory=dict)
    warnings: list[CompileWarning] = field(default_factory=list)
    errors: list[CompileError] = field(default_factory=list)
    named_args: dict[str, str] = field(default_factory=dict)
    call_stack: list[str] = field(default_factory=list)
    include_stack: list[str] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        source: str = "",
        filename: str = "input.dd",
        *,
        base_dir: Path | None = None,
        include_paths: Iterable[Path] = (),
        files: FileReader | None = None,
        limits: Limits | None = None,
        variables: Mapping[str, object] | None = None,
        now: datetime | None = None,
    ) -> ExecutionEnvironment:
        """Fresh environment seeded with the built-in constants."""
        env = cls(
            source=source,
            filename=filename,
            base_dir=base_dir if base_dir is not None else Path(filename).parent,
            include_paths=list(include_paths),
            files=files or LocalFileReader(),
            limits=limits or Limits(),
        )
        env.variables.update(builtin_constants(now))
        for name, raw in (variables or {}).items():
            env.variables[name] = Value.of(raw)
        if filename and not env.include_stack:
            env.include_stack.append(str(Path(filename).resolve()))
        return env

    # ------------------------------------------------------------------
    # Variables and scopes
    # ------------------------------------------------------------------

    def lookup(self, name: str) -> Value | None:
        """Top scope frame first, then globals."""
        if self.scopes and name in self.scopes[-1]:
            return self.scopes[-1][name]
        return self.variables.get(name)

    def set_variable(self, name: str, value: Value | str) -> None:
        """Store into the current scope (globals when no frame is active)."""
        if isinstance(value, str):
            value = Value.string(value)
        if self.scopes:
            self.scopes[-1][name] = value
        else:
            self.variables[name] = value

    @contextmanager
    def scope(self, frame: Mapping[str, Value] | None = None) -> Iterator[dict[str, Value]]:
        """Push a scope frame for the duration of the block."""
        pushed = dict(frame or {})
        self.scopes.append(pushed)
        try:
            yield pushed
        finally:
            self.scopes.pop()

    # ------------------------------------------------------------------
    # Calls and includes
    # ------------------------------------------------------------------

    @contextmanager
    def call(self, name: str, named_args: Mapping[str, str], span: Span = NO_SPAN) -> Iterator[None]:
        """Enter a function call: depth check and current named arguments."""
        if len(self.call_stack) >= self.limits.max_call_depth:
            raise ExpansionError(
                f"call depth limit ({self.limits.max_call_depth}) exceeded",
                span,
                self.source,
                call_stack=list(self.call_stack),
            )
        saved = self.named_args
        self.call_stack.append(name)
        self.named_args = dict(named_args)
        try:
            yield
        finally:
            self.named_args = saved
            self.call_stack.pop()

    @contextmanager
    def including(self, resolved: Path, display: str, span: Span = NO_SPAN) -> Iterator[None]:
        """Enter an included file: depth and cycle checks."""
        key = str(resolved)
        if len(self.include_stack) >= self.limits.max_include_depth:
            raise ExpansionError(
                f"include depth limit ({self.limits.max_include_depth}) exceeded",
                span,
                self.source,
            )
        if key in self.include_stack:
            raise ExpansionError(f"circular include detected: {display}", span, self.source)
        self.include_stack.append(key)
        try:
            yield
        finally:
            self.include_stack.pop()

    def resolve_include(self, path: str) -> tuple[Path, str] | None:
        """Find *path* relative to the document, then the include paths."""
        candidates = [self.base_dir / path]
        candidates.extend(p / path for p in self.include_paths)
        for candidate in candidates:
            text = self.files.read_text(candidate)
            if text is not None:
                return candidate.resolve(), text
        return None

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def warn(self, message: str, kind: WarningKind = WarningKind.STYLE, span: Span | None = None) -> None:
        logger.debug("warning: %s", message)
        self.warnings.append(CompileWarning(message, kind, span))

    def error(self, message: str, kind: ErrorKind = ErrorKind.SEMANTIC, span: Span | None = None) -> None:
        logger.debug("error: %s", message)
        self.errors.append(CompileError(message, kind, span))

    # ------------------------------------------------------------------
    # Expansion bridge
    # ------------------------------------------------------------------

    def expand(self, nodes: Iterable[Node]) -> tuple[Node, ...]:
        """Expand a node sequence in this environment."""
        from dotdown.expander import expand_nodes

        return expand_nodes(tuple(nodes), self)

    def resolve_argument(self, arg: Text | str | None, default: str = "") -> str:
        """Plain text of an argument, with calls and variables expanded."""
        if arg is None:
            return default
        raw = arg.content if isinstance(arg, Text) else arg
        if "." not in raw:
            return raw
        from dotdown.parser import parse_inline

        return text_content(self.expand(parse_inline(raw)))

    def named(self, name: str, default: str | None = None) -> str | None:
        """Resolved value of a named argument of the current call."""
        raw = self.named_args.get(name)
        if raw is None:
            return default
        return self.resolve_argument(raw)

    def clone(self) -> ExecutionEnvironment:
        """Independent copy for isolated sub-expansion."""
        twin = copy.copy(self)
        twin.variables = dict(self.variables)
        for frame in self.scopes:
            twin.variables.update(frame)
        twin.scopes = []
        twin.metadata = dict(self.metadata)
        twin.functions = dict(self.functions)
        twin.warnings = list(self.warnings)
        twin.errors = list(self.errors)
        twin.named_args = dict(self.named_args)
        twin.call_stack = list(self.call_stack)
        twin.include_stack = list(self.include_stack)
        twin.include_paths = list(self.include_paths)
        return twin

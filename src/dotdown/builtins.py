"""Built-in function registry: implementations plus completion metadata."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from types import MappingProxyType

from dotdown.ast import (
    Center,
    Column,
    Grid,
    Node,
    Paragraph,
    Row,
    Text,
    text_content,
)
from dotdown.environment import ExecutionEnvironment, UserFunction
from dotdown.errors import ErrorKind, WarningKind
from dotdown.source import Span
from dotdown.values import Value, format_fixed, format_number, is_literal_truthy, parse_number

logger = logging.getLogger(__name__)

Result = Node | Sequence[Node] | None
Implementation = Callable[[tuple[Text, ...], tuple[Node, ...], ExecutionEnvironment], Result]

DOCTYPES = ("slides", "paged", "plain")


@dataclass(frozen=True, slots=True)
class Signature:
    """Descriptive metadata for tooling; never used for execution."""

    parameters: tuple[str, ...]
    named_parameters: tuple[tuple[str, str], ...]
    description: str
    examples: tuple[str, ...] = ()

    def format(self, name: str) -> str:
        params = list(self.parameters)
        params.extend(f"{key}:" for key, _ in self.named_parameters)
        return f"{name}({', '.join(params)})"


@dataclass(frozen=True, slots=True)
class Builtin:
    name: str
    implementation: Implementation
    signature: Signature


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _arg(args: tuple[Text, ...], index: int) -> Text | None:
    return args[index] if index < len(args) else None


def _number(text: str | None, default: float) -> float:
    if text is None:
        return default
    value = parse_number(text)
    return default if value is None else value


def evaluate_condition(expression: str, env: ExecutionEnvironment) -> bool:
    """Evaluate an `if` condition.

    Precedence: `.name` variable lookup, literal true/false, a number
    (truthy when nonzero), otherwise any non-empty string.
    """
    text = expression.strip()
    if text.startswith("."):
        value = env.lookup(text[1:].strip())
        return value is not None and value.is_truthy()
    return is_literal_truthy(text)


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


def _row(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
    return Row(body, env.named("alignment") or "start", env.named("gap"))


def _column(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
    return Column(body, env.named("cross") or "start", env.named("gap"))


def _grid(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
    columns = _number(env.named("columns"), 2)
    if math.isnan(columns) or math.isinf(columns):
        columns = 2
    return Grid(body, max(1, int(columns)), env.named("gap"))


def _center(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
    return Center(body)


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------


def _add(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
    value = _number(env.resolve_argument(_arg(args, 0)), 0)
    to = _number(env.named("to"), 0)
    return Text(format_number(value + to))


def _multiply(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
    value = _number(env.resolve_argument(_arg(args, 0)), 0)
    by = _number(env.named("by"), 1)
    return Text(format_number(value * by))


def _pow(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
    base = _number(env.resolve_argument(_arg(args, 0)), 0)
    exponent = _number(env.named("to"), 1)
    try:
        result = math.pow(base, exponent)
    except OverflowError:
        result = math.inf
    except ValueError:
        # 0 to a negative power, or a negative base to a fractional power
        result = math.inf if base == 0 else math.nan
    return Text(format_number(result))


def _truncate(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
    decimals = _number(env.resolve_argument(_arg(args, 0)), 0)
    if math.isnan(decimals) or math.isinf(decimals):
        decimals = 0
    expanded = env.expand(body)
    content = text_content(expanded).strip()
    value = parse_number(content)
    if value is None:
        return expanded
    return Text(format_fixed(value, int(decimals)))


# ---------------------------------------------------------------------------
# Control flow and variables
# ---------------------------------------------------------------------------


def _if(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
    condition = _arg(args, 0)
    if condition is not None and evaluate_condition(condition.content, env):
        return body
    return None


def iteration_count(text: str, env: ExecutionEnvironment, span: Span | None = None) -> int:
    """Loop count: non-numeric -> 1, negative -> 0, clamped to the iteration limit."""
    count = parse_number(text)
    if count is None or math.isnan(count):
        return 1
    if count <= 0:
        return 0
    limit = env.limits.max_iterations
    if count > limit:
        env.warn(f"repeat count {format_number(count)} exceeds limit of {limit}", WarningKind.PERFORMANCE, span)
        return limit
    return int(count)


def repeat_body(body: tuple[Node, ...], times: int, variable: str, env: ExecutionEnvironment) -> list[Node]:
    """Expand *body* *times* times with *variable* set to the 0-based index."""
    result: list[Node] = []
    for index in range(times):
        env.set_variable(variable, Value.number(index))
        result.extend(env.expand(body))
    return result


def _repeat(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
    span = args[0].span if args else None
    times = iteration_count(env.resolve_argument(_arg(args, 0)), env, span)
    return repeat_body(body, times, "_index", env)


def _var(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
    name = env.resolve_argument(_arg(args, 0)).strip()
    if not name:
        env.warn("var requires a variable name", span=args[0].span if args else None)
        return None
    value = env.resolve_argument(_arg(args, 1))
    env.set_variable(name, Value.string(value))
    return None


# ---------------------------------------------------------------------------
# Strings
# ---------------------------------------------------------------------------


def _case_fold(body: tuple[Node, ...], env: ExecutionEnvironment, fold: Callable[[str], str]) -> Result:
    return [Text(fold(n.content), n.span) if isinstance(n, Text) else n for n in env.expand(body)]


def _upper(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
    return _case_fold(body, env, str.upper)


def _lower(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
    return _case_fold(body, env, str.lower)


# ---------------------------------------------------------------------------
# Document metadata
# ---------------------------------------------------------------------------


def _metadata_setter(key: str) -> Implementation:
    def setter(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
        env.metadata[key] = env.resolve_argument(_arg(args, 0)).strip()
        return None

    return setter


def _doctype(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
    value = env.resolve_argument(_arg(args, 0)).strip()
    if value not in DOCTYPES:
        env.warn(
            f"Unknown doctype: {value} (expected one of {', '.join(DOCTYPES)})",
            span=args[0].span if args else None,
        )
    env.metadata["doctype"] = value
    return None


def _theme(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
    env.metadata["theme"] = env.resolve_argument(_arg(args, 0)).strip()
    layout = env.named("layout")
    if layout:
        env.metadata["layout"] = layout.strip()
    return None


# ---------------------------------------------------------------------------
# Include
# ---------------------------------------------------------------------------


def _include(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
    from dotdown.parser import parse

    span = args[0].span if args else None
    path = env.resolve_argument(_arg(args, 0)).strip()
    if not path:
        env.warn("include requires a path", span=span)
        return None

    found = env.resolve_include(path)
    if found is None:
        env.warn(f"Included file not found: {path}", span=span)
        return Text(f"[missing include: {path}]", args[0].span)
    resolved, source = found

    isolated = is_literal_truthy(env.named("isolated") or "false")
    target = env.clone() if isolated else env

    with target.including(resolved, path, args[0].span):
        parsed = parse(source, str(resolved))
        saved = (target.source, target.filename, target.base_dir)
        target.source, target.filename, target.base_dir = source, str(resolved), resolved.parent
        try:
            for error in parsed.errors:
                target.error(f"{resolved.name}: {error.message}", ErrorKind.SYNTAX, span)
            result = target.expand(parsed.tree.children)
        finally:
            target.source, target.filename, target.base_dir = saved

    if isolated:
        env.warnings.extend(target.warnings[len(env.warnings) :])
        env.errors.extend(target.errors[len(env.errors) :])
    return result


# ---------------------------------------------------------------------------
# User functions
# ---------------------------------------------------------------------------

_PARAM_LINE = re.compile(r"^[ \t]*(?P<params>[A-Za-z_]\w*\??(?:[ \t]+[A-Za-z_]\w*\??)*)?[ \t]*:[ \t]*$")


def split_parameter_line(body: tuple[Node, ...]) -> tuple[tuple[str, ...], tuple[str, ...], tuple[Node, ...]]:
    """Split a leading `a b c?:` line off a function body.

    Returns (positional names, named-only names, remaining body).  A `?`
    suffix marks a named-only parameter.
    """
    if not body or not isinstance(body[0], Paragraph):
        return (), (), body
    first = body[0]
    if not first.children or not isinstance(first.children[0], Text):
        return (), (), body
    line, newline, remainder = first.children[0].content.partition("\n")
    m = _PARAM_LINE.match(line)
    if m is None:
        return (), (), body
    # A single text-only line is a parameter list only when it is the whole paragraph
    if not newline and len(first.children) > 1:
        return (), (), body

    positional: list[str] = []
    named: list[str] = []
    for name in (m.group("params") or "").split():
        if name.endswith("?"):
            named.append(name[:-1])
        else:
            positional.append(name)

    rest_children = first.children[1:]
    if remainder:
        rest_children = (Text(remainder, first.children[0].span),) + rest_children
    rest = body[1:]
    if rest_children:
        rest = (replace(first, children=rest_children),) + rest
    return tuple(positional), tuple(named), rest


def _function(args: tuple[Text, ...], body: tuple[Node, ...], env: ExecutionEnvironment) -> Result:
    name = env.resolve_argument(_arg(args, 0)).strip()
    span = args[0].span if args else None
    if not name:
        env.warn("function requires a name", span=span)
        return None
    positional, named, rest = split_parameter_line(body)
    if name in BUILTINS:
        env.warn(f"Function {name} shadows a built-in function", span=span)
    env.functions[name] = UserFunction(name, positional, named, rest)
    logger.debug("defined function %s(%s)", name, ", ".join(positional + named))
    return None


def call_user_function(
    fn: UserFunction,
    args: tuple[Text, ...],
    env: ExecutionEnvironment,
) -> tuple[Node, ...]:
    """Bind arguments in a fresh scope frame and expand the function body."""
    frame: dict[str, Value] = {}
    for index, param in enumerate(fn.parameters):
        frame[param] = Value.string(env.resolve_argument(_arg(args, index)))
    for param in fn.parameters + fn.named_parameters:
        value = env.named(param)
        if value is not None:
            frame[param] = Value.string(value)
    for param in fn.named_parameters:
        frame.setdefault(param, Value.string(""))
    with env.scope(frame):
        return env.expand(fn.body)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def _make_builtins() -> Mapping[str, Builtin]:
    defs: dict[str, Builtin] = {}

    def d(
        name: str,
        implementation: Implementation,
        params: tuple[str, ...] = (),
        named: tuple[tuple[str, str], ...] = (),
        *,
        description: str,
        examples: tuple[str, ...] = (),
    ) -> None:
        defs[name] = Builtin(name, implementation, Signature(params, named, description, examples))

    # Layout
    d(
        "row",
        _row,
        named=(("alignment", "start, center, end, spacebetween or spacearound"), ("gap", "CSS length")),
        description="Lays out the body horizontally.",
        examples=(".row alignment:{center} gap:{1rem}",),
    )
    d(
        "column",
        _column,
        named=(("cross", "cross-axis alignment: start, center, end or stretch"), ("gap", "CSS length")),
        description="Lays out the body vertically.",
        examples=(".column cross:{center}",),
    )
    d(
        "grid",
        _grid,
        named=(("columns", "number of columns"), ("gap", "CSS length")),
        description="Lays out the body in a grid.",
        examples=(".grid columns:{3} gap:{1rem}",),
    )
    d("center", _center, description="Centers the body.", examples=(".center",))

    # Arithmetic
    d("add", _add, ("value",), (("to", "number to add"),), description="Adds two numbers.", examples=(".add {5} to:{3}",))
    d(
        "multiply",
        _multiply,
        ("value",),
        (("by", "multiplier, default 1"),),
        description="Multiplies two numbers.",
        examples=(".multiply {6} by:{3}",),
    )
    d(
        "pow",
        _pow,
        ("base",),
        (("to", "exponent, default 1"),),
        description="Raises a number to a power.",
        examples=(".pow {2} to:{3}",),
    )
    d(
        "truncate",
        _truncate,
        ("decimals",),
        description="Formats the numeric body to a number of decimal places.",
        examples=(".truncate {2} 3.14159",),
    )

    # Control flow and variables
    d(
        "if",
        _if,
        ("condition",),
        description="Includes the body when the condition is truthy.",
        examples=(".if {.show}",),
    )
    d(
        "repeat",
        _repeat,
        ("count",),
        description="Repeats the body; ._index holds the 0-based iteration.",
        examples=(".repeat {3}",),
    )
    d(
        "var",
        _var,
        ("name", "value"),
        description="Defines a variable in the current scope.",
        examples=(".var {name} {value}",),
    )

    # Strings
    d("upper", _upper, description="Converts the body text to uppercase.", examples=(".upper {} hello",))
    d("lower", _lower, description="Converts the body text to lowercase.", examples=(".lower {} HELLO",))

    # Document metadata
    d("docname", _metadata_setter("title"), ("title",), description="Sets the document title.")
    d("docauthor", _metadata_setter("author"), ("author",), description="Sets the document author.")
    d("doclang", _metadata_setter("language"), ("language",), description="Sets the document language.")
    d(
        "doctype",
        _doctype,
        ("type",),
        description="Sets the document type: slides, paged or plain.",
        examples=(".doctype {slides}",),
    )
    d(
        "theme",
        _theme,
        ("name",),
        (("layout", "layout variant: standard, wide or narrow"),),
        description="Sets the document theme.",
        examples=(".theme {darko} layout:{wide}",),
    )

    # Files and functions
    d(
        "include",
        _include,
        ("path",),
        (("isolated", "expand in a separate environment"),),
        description="Includes another dotdown file.",
        examples=(".include {chapter1.dd}",),
    )
    d(
        "function",
        _function,
        ("name",),
        description="Defines a function; the first body line lists its parameters.",
        examples=(".function {greet}",),
    )

    return MappingProxyType(defs)


BUILTINS: Mapping[str, Builtin] = _make_builtins()


def get_builtin(name: str) -> Builtin | None:
    return BUILTINS.get(name)


def list_function_names() -> list[str]:
    return sorted(BUILTINS)


def signature_of(name: str) -> str:
    """`name(params)` for a built-in, or an empty string."""
    builtin = BUILTINS.get(name)
    return builtin.signature.format(name) if builtin else ""


def documentation_of(name: str) -> str:
    """Description of a built-in, or an empty string."""
    builtin = BUILTINS.get(name)
    return builtin.signature.description if builtin else ""

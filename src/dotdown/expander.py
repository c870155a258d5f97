"""Expander: replaces calls and variable references with their content."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from dotdown.ast import (
    CONTAINERS,
    Conditional,
    Document,
    FunctionCall,
    Loop,
    Node,
    Table,
    Text,
    VariableReference,
    with_children,
)
from dotdown.builtins import (
    BUILTINS,
    DOCTYPES,
    call_user_function,
    evaluate_condition,
    iteration_count,
    repeat_body,
)
from dotdown.environment import ExecutionEnvironment
from dotdown.errors import ErrorKind, ExpansionError, WarningKind

logger = logging.getLogger(__name__)

# call name -> metadata key, for the pre-scan
_METADATA_CALLS: dict[str, str] = {
    "docname": "title",
    "docauthor": "author",
    "doclang": "language",
    "doctype": "doctype",
    "theme": "theme",
}


def expand(tree: Document, env: ExecutionEnvironment) -> Document:
    """Expand every dynamic construct in *tree*.

    Errors raised while expanding a top-level node are recorded on the
    environment and that node is dropped; its siblings still expand.
    """
    children: list[Node] = []
    for child in tree.children:
        try:
            children.extend(_expand_node(child, env))
        except ExpansionError as exc:
            logger.debug("expansion of top-level node failed: %s", exc.message)
            env.error(exc.message, ErrorKind.SEMANTIC, exc.span)
    return Document(tuple(children), tree.span)


def expand_nodes(nodes: Sequence[Node], env: ExecutionEnvironment) -> tuple[Node, ...]:
    """Expand a node sequence, splicing multi-node results flat."""
    result: list[Node] = []
    for node in nodes:
        result.extend(_expand_node(node, env))
    return tuple(result)


def extract_metadata(tree: Document, defaults: Mapping[str, str] | None = None) -> dict[str, str]:
    """Scan top-level calls for document metadata before full expansion.

    Only the first positional argument is read, verbatim.  An invalid
    doctype is ignored here; the `doctype` call itself reports it.
    """
    metadata = dict(defaults or {})
    for child in tree.children:
        if not isinstance(child, FunctionCall) or child.name not in _METADATA_CALLS:
            continue
        if not child.args:
            continue
        key = _METADATA_CALLS[child.name]
        value = child.args[0].content.strip()
        if key == "doctype" and value not in DOCTYPES:
            continue
        metadata[key] = value
        if child.name == "theme":
            layout = child.named_value("layout")
            if layout:
                metadata["layout"] = layout.strip()
    return metadata


# ---------------------------------------------------------------------------
# Node expansion
# ---------------------------------------------------------------------------


def _expand_node(node: Node, env: ExecutionEnvironment) -> list[Node]:
    match node:
        case FunctionCall():
            return _expand_call(node, env)
        case VariableReference():
            return [_expand_variable(node, env)]
        case Conditional():
            return _expand_conditional(node, env)
        case Loop():
            return _expand_loop(node, env)
        case Table():
            return [_expand_table(node, env)]
        case _ if isinstance(node, CONTAINERS):
            return [with_children(node, expand_nodes(node.children, env))]
        case _:
            return [node]


def _expand_call(node: FunctionCall, env: ExecutionEnvironment) -> list[Node]:
    named = {arg.name: arg.value.content for arg in node.named}

    user_fn = env.functions.get(node.name)
    if user_fn is not None:
        with env.call(node.name, named, node.span):
            return list(call_user_function(user_fn, node.args, env))

    builtin = BUILTINS.get(node.name)
    if builtin is None:
        env.warn(f"Unknown function: {node.name}", WarningKind.STYLE, node.span)
        return []

    with env.call(node.name, named, node.span):
        result = builtin.implementation(node.args, node.body, env)
        # Returned content may itself contain calls; expand it in the same frame
        return list(expand_nodes(_as_nodes(result), env))


def _expand_variable(node: VariableReference, env: ExecutionEnvironment) -> Text:
    value = env.lookup(node.name)
    if value is None:
        env.warn(f"Undefined variable: {node.name}", WarningKind.STYLE, node.span)
        return Text(f"{{{{{node.name}}}}}", node.span)
    return Text(value.as_text(), node.span)


def _expand_conditional(node: Conditional, env: ExecutionEnvironment) -> list[Node]:
    branch = node.then if evaluate_condition(node.condition, env) else node.otherwise
    return list(expand_nodes(branch, env))


def _expand_loop(node: Loop, env: ExecutionEnvironment) -> list[Node]:
    times = iteration_count(env.resolve_argument(node.count), env, node.span)
    return repeat_body(node.body, times, node.variable, env)


def _expand_table(node: Table, env: ExecutionEnvironment) -> Table:
    headers = tuple(expand_nodes(cell, env) for cell in node.headers)
    rows = tuple(tuple(expand_nodes(cell, env) for cell in row) for row in node.rows)
    return Table(headers, rows, node.alignment, node.span)


def _as_nodes(result: Node | Sequence[Node] | None) -> tuple[Node, ...]:
    if result is None:
        return ()
    if isinstance(result, Sequence):
        return tuple(result)
    return (result,)

"""--debug tree dump to stderr."""

from __future__ import annotations

import sys
from typing import TextIO

from dotdown.ast import (
    Code,
    Conditional,
    Document,
    FunctionCall,
    Heading,
    Image,
    List,
    Loop,
    Math,
    Node,
    Table,
    Text,
    VariableReference,
    children_of,
)


def dump_tree(doc: Document, *, file: TextIO | None = None) -> None:
    """Print a human-readable tree to *file*."""
    _dump_node(doc, 0, file or sys.stderr)


def _indent(depth: int) -> str:
    return "  " * depth


def _label(node: Node) -> str:
    name = type(node).__name__
    match node:
        case Text():
            return f"Text({node.content!r})"
        case Code():
            lang = f" {node.language}" if node.language else ""
            return f"Code{lang}{' inline' if node.inline else ''} {node.content!r}"
        case Math():
            return f"Math{' display' if node.display else ''} {node.content!r}"
        case Image():
            return f"Image src={node.src!r} alt={node.alt!r}"
        case Heading():
            return f"Heading h{node.level}"
        case List():
            return f"List {'ordered' if node.ordered else 'bullet'}"
        case VariableReference():
            return f"VariableReference .{node.name}"
        case Conditional():
            return f"Conditional {node.condition!r}"
        case Loop():
            return f"Loop {node.count!r} as {node.variable}"
        case _:
            return name


def _dump_node(node: Node, depth: int, f: TextIO) -> None:
    if isinstance(node, FunctionCall):
        _dump_call(node, depth, f)
        return
    if isinstance(node, Table):
        _dump_table(node, depth, f)
        return
    f.write(f"{_indent(depth)}{_label(node)}\n")
    for child in children_of(node):
        _dump_node(child, depth + 1, f)


def _dump_call(node: FunctionCall, depth: int, f: TextIO) -> None:
    f.write(f"{_indent(depth)}FunctionCall .{node.name}\n")
    for arg in node.args:
        f.write(f"{_indent(depth + 1)}Arg {arg.content!r}\n")
    for named in node.named:
        f.write(f"{_indent(depth + 1)}Arg {named.name}={named.value.content!r}\n")
    if node.body:
        f.write(f"{_indent(depth + 1)}Body\n")
        for child in node.body:
            _dump_node(child, depth + 2, f)


def _dump_table(node: Table, depth: int, f: TextIO) -> None:
    f.write(f"{_indent(depth)}Table\n")
    for i, cell in enumerate(node.headers):
        f.write(f"{_indent(depth + 1)}Header {i}\n")
        for child in cell:
            _dump_node(child, depth + 2, f)
    for r, row in enumerate(node.rows):
        f.write(f"{_indent(depth + 1)}Row {r}\n")
        for cell in row:
            f.write(f"{_indent(depth + 2)}Cell\n")
            for child in cell:
                _dump_node(child, depth + 3, f)

"""Tree node types for dotdown documents."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import ClassVar

from dotdown.source import NO_SPAN, Span


class NodeKind(Enum):
    # Leaf content
    TEXT = "text"
    CODE = "code"
    MATH = "math"
    IMAGE = "image"
    LINE_BREAK = "line_break"
    THEMATIC_BREAK = "thematic_break"

    # Structural containers
    DOCUMENT = "document"
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    LIST = "list"
    LIST_ITEM = "list_item"
    BLOCKQUOTE = "blockquote"
    LINK = "link"
    EMPHASIS = "emphasis"
    TABLE = "table"

    # Layout containers
    ROW = "row"
    COLUMN = "column"
    GRID = "grid"
    CENTER = "center"

    # Dynamic constructs (pre-expansion only)
    FUNCTION_CALL = "function_call"
    VARIABLE_REFERENCE = "variable_reference"
    CONDITIONAL = "conditional"
    LOOP = "loop"


# ---------------------------------------------------------------------------
# Leaf content
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Text:
    """Literal text run."""

    kind: ClassVar[NodeKind] = NodeKind.TEXT

    content: str
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Code:
    """Code span (inline) or fenced/indented code block."""

    kind: ClassVar[NodeKind] = NodeKind.CODE

    content: str
    language: str | None = None
    inline: bool = False
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Math:
    """TeX math, inline ($...$) or display ($$...$$)."""

    kind: ClassVar[NodeKind] = NodeKind.MATH

    content: str
    display: bool = False
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Image:
    """Image with optional explicit dimensions."""

    kind: ClassVar[NodeKind] = NodeKind.IMAGE

    src: str
    alt: str = ""
    title: str | None = None
    width: str | None = None
    height: str | None = None
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class LineBreak:
    """Hard line break."""

    kind: ClassVar[NodeKind] = NodeKind.LINE_BREAK

    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class ThematicBreak:
    """Horizontal rule; separates slides in slides documents."""

    kind: ClassVar[NodeKind] = NodeKind.THEMATIC_BREAK

    span: Span = field(default=NO_SPAN, compare=False, repr=False)


# ---------------------------------------------------------------------------
# Structural containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Document:
    """Root document node."""

    kind: ClassVar[NodeKind] = NodeKind.DOCUMENT

    children: tuple[Node, ...] = ()
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Paragraph:
    kind: ClassVar[NodeKind] = NodeKind.PARAGRAPH

    children: tuple[Node, ...] = ()
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Heading:
    kind: ClassVar[NodeKind] = NodeKind.HEADING

    level: int
    children: tuple[Node, ...] = ()
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class List:
    """Ordered or bullet list; children are ListItem nodes."""

    kind: ClassVar[NodeKind] = NodeKind.LIST

    ordered: bool
    children: tuple[Node, ...] = ()
    start: int | None = None
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class ListItem:
    kind: ClassVar[NodeKind] = NodeKind.LIST_ITEM

    children: tuple[Node, ...] = ()
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Blockquote:
    """Blockquote, optionally typed (note, tip, warning, info)."""

    kind: ClassVar[NodeKind] = NodeKind.BLOCKQUOTE

    children: tuple[Node, ...] = ()
    quote_type: str | None = None
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Link:
    kind: ClassVar[NodeKind] = NodeKind.LINK

    url: str
    children: tuple[Node, ...] = ()
    title: str | None = None
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Emphasis:
    """Emphasis (<em>) or strong emphasis (<strong>)."""

    kind: ClassVar[NodeKind] = NodeKind.EMPHASIS

    children: tuple[Node, ...] = ()
    strong: bool = False
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Table:
    """Pipe table: header cells, body rows, and per-column alignment."""

    kind: ClassVar[NodeKind] = NodeKind.TABLE

    headers: tuple[tuple[Node, ...], ...]
    rows: tuple[tuple[tuple[Node, ...], ...], ...] = ()
    alignment: tuple[str | None, ...] = ()
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


# ---------------------------------------------------------------------------
# Layout containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Row:
    kind: ClassVar[NodeKind] = NodeKind.ROW

    children: tuple[Node, ...] = ()
    alignment: str = "start"
    gap: str | None = None
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Column:
    kind: ClassVar[NodeKind] = NodeKind.COLUMN

    children: tuple[Node, ...] = ()
    cross_alignment: str = "start"
    gap: str | None = None
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Grid:
    kind: ClassVar[NodeKind] = NodeKind.GRID

    children: tuple[Node, ...] = ()
    columns: int = 2
    gap: str | None = None
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Center:
    kind: ClassVar[NodeKind] = NodeKind.CENTER

    children: tuple[Node, ...] = ()
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


# ---------------------------------------------------------------------------
# Dynamic constructs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NamedArg:
    """Named argument of a call: name:{value}."""

    name: str
    value: Text
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class FunctionCall:
    """A call: .name {arg} key:{value}, with an optional body."""

    kind: ClassVar[NodeKind] = NodeKind.FUNCTION_CALL

    name: str
    args: tuple[Text, ...] = ()
    named: tuple[NamedArg, ...] = ()
    body: tuple[Node, ...] = ()
    span: Span = field(default=NO_SPAN, compare=False, repr=False)

    def named_value(self, name: str) -> str | None:
        """Raw text of the named argument *name*, or None."""
        for arg in self.named:
            if arg.name == name:
                return arg.value.content
        return None


@dataclass(frozen=True, slots=True)
class VariableReference:
    """A bare .name not followed by call syntax."""

    kind: ClassVar[NodeKind] = NodeKind.VARIABLE_REFERENCE

    name: str
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Conditional:
    kind: ClassVar[NodeKind] = NodeKind.CONDITIONAL

    condition: str
    then: tuple[Node, ...] = ()
    otherwise: tuple[Node, ...] = ()
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Loop:
    kind: ClassVar[NodeKind] = NodeKind.LOOP

    count: str
    body: tuple[Node, ...] = ()
    variable: str = "_index"
    span: Span = field(default=NO_SPAN, compare=False, repr=False)


Node = (
    Text
    | Code
    | Math
    | Image
    | LineBreak
    | ThematicBreak
    | Document
    | Paragraph
    | Heading
    | List
    | ListItem
    | Blockquote
    | Link
    | Emphasis
    | Table
    | Row
    | Column
    | Grid
    | Center
    | FunctionCall
    | VariableReference
    | Conditional
    | Loop
)

CONTAINERS = (
    Document,
    Paragraph,
    Heading,
    List,
    ListItem,
    Blockquote,
    Link,
    Emphasis,
    Row,
    Column,
    Grid,
    Center,
)

DYNAMIC = (FunctionCall, VariableReference, Conditional, Loop)

INLINE = (Text, Code, Math, Image, LineBreak, Link, Emphasis, VariableReference)


# ---------------------------------------------------------------------------
# Tree helpers
# ---------------------------------------------------------------------------


def is_dynamic(node: Node) -> bool:
    return isinstance(node, DYNAMIC)


def is_inline(node: Node) -> bool:
    """True for phrasing content; inline code and inline math included."""
    if isinstance(node, Code):
        return node.inline
    if isinstance(node, Math):
        return not node.display
    return isinstance(node, INLINE)


def children_of(node: Node) -> tuple[Node, ...]:
    """Direct child nodes, including table cells and dynamic bodies."""
    if isinstance(node, CONTAINERS):
        return node.children
    if isinstance(node, Table):
        cells = [n for cell in node.headers for n in cell]
        cells.extend(n for row in node.rows for cell in row for n in cell)
        return tuple(cells)
    if isinstance(node, FunctionCall):
        return node.args + node.body
    if isinstance(node, Conditional):
        return node.then + node.otherwise
    if isinstance(node, Loop):
        return node.body
    return ()


def with_children(node: Node, children: Iterable[Node]) -> Node:
    """Return a copy of container *node* holding *children*."""
    if not isinstance(node, CONTAINERS):
        raise TypeError(f"{type(node).__name__} has no children")
    return replace(node, children=tuple(children))


def walk(node: Node) -> Iterator[Node]:
    """Pre-order traversal."""
    yield node
    for child in children_of(node):
        yield from walk(child)


def contains_dynamic(node: Node) -> bool:
    return any(is_dynamic(n) for n in walk(node))


def text_content(nodes: Node | Iterable[Node]) -> str:
    """Flattened plain text of a node or node sequence."""
    if not isinstance(nodes, Iterable):
        nodes = (nodes,)
    parts: list[str] = []
    for node in nodes:
        match node:
            case Text(content=content) | Code(content=content) | Math(content=content):
                parts.append(content)
            case Image(alt=alt):
                parts.append(alt)
            case LineBreak():
                parts.append("\n")
            case VariableReference(name=name):
                parts.append(f".{name}")
            case FunctionCall():
                continue
            case _:
                parts.append(text_content(children_of(node)))
    return "".join(parts)

"""dotdown parser: Markdown plus call syntax, built on mistune's AST mode.

Parsing runs in three passes:

1. a textual pre-pass rewriting typed blockquote labels (``> Note:``) into
   ``[!NOTE]`` markers without changing line numbers;
2. segmentation of the source into block-level calls (a ``.name`` line at
   column 1 with its indented body) and Markdown chunks, the latter
   tokenized by mistune extended with inline rules for calls, variable
   references and sized images;
3. conversion of the token stream into tree nodes with best-effort spans.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

import mistune

from dotdown.ast import (
    Blockquote,
    Code,
    Document,
    Emphasis,
    FunctionCall,
    Heading,
    Image,
    LineBreak,
    Link,
    List,
    ListItem,
    Math,
    NamedArg,
    Node,
    Paragraph,
    Table,
    Text,
    ThematicBreak,
    VariableReference,
    text_content,
)
from dotdown.errors import ParseError
from dotdown.lexer import ArgGroup, CallHead, scan_call
from dotdown.source import NO_SPAN, LineIndex, Position, Span, is_ident_start

logger = logging.getLogger(__name__)

_TYPED_QUOTE = re.compile(r"^(?P<prefix> {0,3}>[ \t]?)(?P<label>note|tip|warning|info):[ \t]*", re.I)
_QUOTE_LINE = re.compile(r"^ {0,3}>")
_QUOTE_MARKER = re.compile(r"^\[!(?P<label>NOTE|TIP|WARNING|INFO)\][ \t]*\n?", re.I)
_FENCE_OPEN = re.compile(r"^ {0,3}(?P<fence>`{3,}|~{3,})")

# `.` preceded by a word character or another `.` never starts a construct
CALL_PATTERN = r"\.(?<![\w.]\.)(?=[A-Za-z_])"

SIZED_IMAGE_PATTERN = (
    r"!\((?P<sized_w>[^*()\n]*)\*(?P<sized_h>[^()\n]*)\)"
    r"\[(?P<sized_alt>[^\]\n]*)\]"
    r"\(\s*(?P<sized_src><[^>\n]*>|[^\s()]+)"
    r"(?:\s+\"(?P<sized_title>[^\"\n]*)\")?\s*\)"
)


@dataclass
class ParseResult:
    """Parsed document plus the recoverable syntax errors found."""

    tree: Document
    errors: list[ParseError] = field(default_factory=list)


def parse(source: str, filename: str = "input.dd") -> ParseResult:
    """Parse *source* into a Document. Never raises."""
    try:
        result = _Parser(source).parse()
    except Exception as exc:
        logger.exception("internal parser failure in %s", filename)
        error = ParseError(f"internal parser error: {exc}", NO_SPAN, source)
        return ParseResult(Document(()), [error])
    logger.debug("parsed %s: %d top-level nodes, %d errors", filename, len(result.tree.children), len(result.errors))
    return result


def parse_inline(text: str) -> tuple[Node, ...]:
    """Parse a fragment as inline markup (used for argument values)."""
    parser = _Parser(text)
    tokens = _markdown().inline(text, {})
    return parser.convert_inline(tokens, _Locator(parser.index, text, 1, 0))


def normalize_typed_quotes(source: str) -> str:
    """Rewrite `> Note: ...` style labels into `> [!NOTE] ...` markers."""
    lines = source.split("\n")
    previous_quoted = False
    for i, line in enumerate(lines):
        quoted = bool(_QUOTE_LINE.match(line))
        if quoted and not previous_quoted:
            m = _TYPED_QUOTE.match(line)
            if m:
                label = m.group("label").upper()
                lines[i] = f"{m.group('prefix')}[!{label}] {line[m.end():]}".rstrip()
        previous_quoted = quoted
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# mistune extensions
# ---------------------------------------------------------------------------


def _group_token(group: ArgGroup) -> dict[str, Any]:
    return {"name": group.name, "value": group.value}


def parse_inline_call(inline: Any, m: re.Match[str], state: Any) -> int | None:
    """Inline rule: `.name {arg}` becomes a call, a bare `.name` a variable."""
    head = scan_call(state.src, m.start())
    if head is None:
        return None
    raw = state.src[head.start : head.end]
    if head.error is not None:
        state.append_token({"type": "dd_error", "raw": raw, "message": head.error})
    elif head.is_call:
        state.append_token(
            {
                "type": "dd_call",
                "raw": raw,
                "name": head.name,
                "args": [_group_token(g) for g in head.positional],
                "named": [_group_token(g) for g in head.named],
            }
        )
    else:
        state.append_token({"type": "dd_variable", "raw": raw, "name": head.name})
    return head.end


def parse_sized_image(inline: Any, m: re.Match[str], state: Any) -> int:
    """Inline rule: `!(W*H)[alt](src "title")`."""
    src = m.group("sized_src")
    if src.startswith("<") and src.endswith(">"):
        src = src[1:-1]
    state.append_token(
        {
            "type": "sized_image",
            "raw": m.group(0),
            "src": src,
            "alt": m.group("sized_alt"),
            "title": m.group("sized_title"),
            "width": m.group("sized_w").strip() or None,
            "height": m.group("sized_h").strip() or None,
        }
    )
    return m.end()


def calls(md: Any) -> None:
    """mistune plugin registering the call and variable syntax."""
    md.inline.register("dd_call", CALL_PATTERN, parse_inline_call, before="link")


def sized_images(md: Any) -> None:
    """mistune plugin registering the sized image syntax."""
    md.inline.register("sized_image", SIZED_IMAGE_PATTERN, parse_sized_image, before="link")


@lru_cache(maxsize=1)
def _markdown() -> Any:
    return mistune.create_markdown(
        renderer=None,
        plugins=["table", "math", calls, sized_images],
    )


# ---------------------------------------------------------------------------
# Source locations
# ---------------------------------------------------------------------------


class _Locator:
    """Best-effort spans for tokens of one chunk of source.

    The chunk starts at *first_line* of the original source and every line
    of it was shifted left by *indent* columns.  Raw token text is searched
    forward from a cursor, so tokens must be located in document order.
    """

    def __init__(self, index: LineIndex, text: str, first_line: int, indent: int) -> None:
        self._index = index
        self._text = text
        self._first_line = first_line
        self._indent = indent
        self._cursor = 0

    def locate(self, raw: str) -> Span:
        pos = self._text.find(raw, self._cursor) if raw else -1
        if pos < 0:
            here = self._position(self._cursor)
            return Span(here, here)
        self._cursor = pos + len(raw)
        return Span(self._position(pos), self._position(pos + len(raw)))

    def _position(self, pos: int) -> Position:
        line = self._first_line + self._text.count("\n", 0, pos)
        column = pos - (self._text.rfind("\n", 0, pos) + 1) + 1 + self._indent
        offset = self._index.line_start(line) + column - 1
        return Position(line, column, offset)


def _cover(nodes: tuple[Node, ...], fallback: Span) -> Span:
    """Span from the first to the last located node."""
    spans = [n.span for n in nodes if n.span.is_known]
    if not spans:
        return fallback
    return Span(spans[0].start, spans[-1].end)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _Chunk:
    """Markdown lines between block calls."""

    text: str
    first_line: int


@dataclass(frozen=True, slots=True)
class _BlockCall:
    head: CallHead
    line: str
    line_no: int
    body_lines: tuple[str, ...]


class _Parser:
    def __init__(self, source: str) -> None:
        self.source = source
        self.index = LineIndex(source)
        self.errors: list[ParseError] = []

    def parse(self) -> ParseResult:
        text = normalize_typed_quotes(self.source.replace("\r\n", "\n").replace("\r", "\n"))
        children = self._parse_blocks(text, 1, 0)
        span = self.index.span(0, len(self.source))
        return ParseResult(Document(children, span), self.errors)

    # ------------------------------------------------------------------
    # Block segmentation
    # ------------------------------------------------------------------

    def _parse_blocks(self, text: str, first_line: int, indent: int) -> tuple[Node, ...]:
        nodes: list[Node] = []
        for segment in self._segment(text.split("\n"), first_line):
            if isinstance(segment, _Chunk):
                if not segment.text.strip():
                    continue
                tokens = _markdown()(segment.text)
                locator = _Locator(self.index, segment.text, segment.first_line, indent)
                nodes.extend(self._convert_blocks(tokens, locator))
            else:
                nodes.append(self._block_call(segment, indent))
        return tuple(nodes)

    def _segment(self, lines: list[str], first_line: int) -> list[_Chunk | _BlockCall]:
        segments: list[_Chunk | _BlockCall] = []
        pending: list[str] = []
        pending_start = first_line
        fence: str | None = None
        i = 0

        def flush(next_line: int) -> None:
            nonlocal pending, pending_start
            if pending:
                segments.append(_Chunk("\n".join(pending), pending_start))
            pending = []
            pending_start = next_line

        while i < len(lines):
            line = lines[i]
            line_no = first_line + i

            if fence is not None:
                pending.append(line)
                stripped = line.strip()
                if stripped.startswith(fence) and stripped.strip(fence[0]) == "":
                    fence = None
                i += 1
                continue

            m = _FENCE_OPEN.match(line)
            if m:
                fence = m.group("fence")
                pending.append(line)
                i += 1
                continue

            block = self._match_block_call(lines, i, line_no)
            if block is not None:
                flush(line_no)
                segments.append(block)
                i += 1 + len(block.body_lines)
                pending_start = first_line + i
                continue

            if not pending:
                pending_start = line_no
            pending.append(line)
            i += 1

        flush(first_line + len(lines))
        return segments

    def _match_block_call(self, lines: list[str], i: int, line_no: int) -> _BlockCall | None:
        line = lines[i]
        if len(line) < 2 or line[0] != "." or not is_ident_start(line[1]):
            return None
        head = scan_call(line, 0)
        if head is None or head.error is not None:
            return None

        body_lines = self._indented_block(lines, i + 1)
        if head.is_call:
            return _BlockCall(head, line, line_no, tuple(body_lines))
        # A bare `.name` only owns a body that starts on the very next line
        rest = line[head.end :].strip()
        if not rest and body_lines and body_lines[0].strip():
            return _BlockCall(head, line, line_no, tuple(body_lines))
        return None

    @staticmethod
    def _indented_block(lines: list[str], start: int) -> list[str]:
        """Lines after *start* that are indented or blank, minus trailing blanks."""
        end = start
        while end < len(lines) and (not lines[end].strip() or lines[end][0] in " \t"):
            end += 1
        while end > start and not lines[end - 1].strip():
            end -= 1
        return lines[start:end]

    def _block_call(self, block: _BlockCall, indent: int) -> FunctionCall:
        head = block.head
        line_start = self.index.line_start(block.line_no)

        def group_span(group: ArgGroup) -> Span:
            return self.index.span(line_start + indent + group.start, line_start + indent + group.end)

        args = tuple(Text(g.value, group_span(g)) for g in head.positional)
        named = tuple(NamedArg(g.name or "", Text(g.value, group_span(g)), group_span(g)) for g in head.named)

        body: list[Node] = []
        rest = block.line[head.end :]
        inline_text = rest.strip()
        if inline_text:
            column = indent + head.end + (len(rest) - len(rest.lstrip()))
            locator = _Locator(self.index, inline_text, block.line_no, column)
            inline = self.convert_inline(_markdown().inline(inline_text, {}), locator)
            if block.body_lines:
                body.append(Paragraph(inline, _cover(inline, NO_SPAN)))
            else:
                body.extend(inline)

        if block.body_lines:
            dedented, removed = _dedent(block.body_lines)
            body.extend(self._parse_blocks(dedented, block.line_no + 1, indent + removed))

        span = self.index.span(line_start + indent + head.start, line_start + indent + head.end)
        return FunctionCall(head.name, args, named, tuple(body), span)

    # ------------------------------------------------------------------
    # Token conversion
    # ------------------------------------------------------------------

    def _convert_blocks(self, tokens: list[dict[str, Any]], locator: _Locator) -> tuple[Node, ...]:
        nodes: list[Node] = []
        for tok in tokens:
            node = self._convert_block(tok, locator)
            if node is not None:
                nodes.append(node)
        return tuple(nodes)

    def _convert_block(self, tok: dict[str, Any], locator: _Locator) -> Node | None:
        kind = tok["type"]
        attrs = tok.get("attrs", {})

        match kind:
            case "blank_line":
                return None
            case "paragraph":
                children = self.convert_inline(tok.get("children", []), locator)
                return Paragraph(children, _cover(children, NO_SPAN))
            case "heading":
                children = self.convert_inline(tok.get("children", []), locator)
                return Heading(attrs.get("level", 1), children, _cover(children, NO_SPAN))
            case "block_code":
                raw = tok.get("raw", "")
                info = (attrs.get("info") or "").split()
                span = locator.locate(raw.split("\n", 1)[0])
                return Code(raw.rstrip("\n"), info[0] if info else None, False, span)
            case "block_math":
                raw = tok.get("raw", "")
                return Math(raw.strip(), True, locator.locate(raw))
            case "thematic_break":
                return ThematicBreak(locator.locate(""))
            case "block_quote":
                return self._blockquote(tok, locator)
            case "list":
                items = self._convert_blocks(tok.get("children", []), locator)
                return List(bool(attrs.get("ordered")), items, attrs.get("start"), _cover(items, NO_SPAN))
            case "list_item":
                children: list[Node] = []
                for child in tok.get("children", []):
                    if child["type"] == "block_text":
                        children.extend(self.convert_inline(child.get("children", []), locator))
                    else:
                        node = self._convert_block(child, locator)
                        if node is not None:
                            children.append(node)
                items = tuple(children)
                return ListItem(items, _cover(items, NO_SPAN))
            case "block_text":
                children = self.convert_inline(tok.get("children", []), locator)
                return Paragraph(children, _cover(children, NO_SPAN))
            case "table":
                return self._table(tok, locator)
            case "block_html":
                raw = tok.get("raw", "")
                return Paragraph((Text(raw.rstrip("\n"), locator.locate(raw)),))
            case _:
                logger.debug("unknown block token %r kept as text", kind)
                return self._fallback_text(tok, locator)

    def _blockquote(self, tok: dict[str, Any], locator: _Locator) -> Blockquote:
        children = list(self._convert_blocks(tok.get("children", []), locator))
        quote_type: str | None = None
        if children and isinstance(children[0], Paragraph):
            first = children[0]
            if first.children and isinstance(first.children[0], Text):
                m = _QUOTE_MARKER.match(first.children[0].content)
                if m:
                    quote_type = m.group("label").lower()
                    remainder = first.children[0].content[m.end() :].lstrip()
                    rest = first.children[1:]
                    if remainder:
                        rest = (Text(remainder, first.children[0].span),) + rest
                    rest = _strip_leading_newline(rest)
                    if rest:
                        children[0] = Paragraph(rest, first.span)
                    else:
                        children.pop(0)
        nodes = tuple(children)
        return Blockquote(nodes, quote_type, _cover(nodes, NO_SPAN))

    def _table(self, tok: dict[str, Any], locator: _Locator) -> Table:
        headers: list[tuple[Node, ...]] = []
        alignment: list[str | None] = []
        rows: list[tuple[tuple[Node, ...], ...]] = []
        for part in tok.get("children", []):
            if part["type"] == "table_head":
                for cell in part.get("children", []):
                    headers.append(self.convert_inline(cell.get("children", []), locator))
                    alignment.append(cell.get("attrs", {}).get("align"))
            elif part["type"] == "table_body":
                for row in part.get("children", []):
                    cells = tuple(self.convert_inline(cell.get("children", []), locator) for cell in row.get("children", []))
                    rows.append(cells)
        all_cells = tuple(n for cell in headers for n in cell)
        return Table(tuple(headers), tuple(rows), tuple(alignment), _cover(all_cells, NO_SPAN))

    def convert_inline(self, tokens: list[dict[str, Any]], locator: _Locator) -> tuple[Node, ...]:
        nodes: list[Node] = []
        for tok in tokens:
            node = self._convert_inline_token(tok, locator)
            if node is not None:
                nodes.append(node)
        return _merge_text(nodes)

    def _convert_inline_token(self, tok: dict[str, Any], locator: _Locator) -> Node | None:
        kind = tok["type"]
        attrs = tok.get("attrs", {})

        match kind:
            case "text":
                raw = tok.get("raw", "")
                return Text(raw, locator.locate(raw))
            case "softbreak":
                return Text("\n", locator.locate("\n"))
            case "linebreak":
                return LineBreak(locator.locate("\n"))
            case "codespan":
                raw = tok.get("raw", "")
                return Code(raw, None, True, locator.locate(raw))
            case "inline_math":
                raw = tok.get("raw", "")
                return Math(raw, False, locator.locate(raw))
            case "block_math":
                raw = tok.get("raw", "")
                return Math(raw.strip(), True, locator.locate(raw))
            case "emphasis" | "strong":
                children = self.convert_inline(tok.get("children", []), locator)
                return Emphasis(children, kind == "strong", _cover(children, NO_SPAN))
            case "link":
                children = self.convert_inline(tok.get("children", []), locator)
                return Link(attrs.get("url", ""), children, attrs.get("title"), _cover(children, NO_SPAN))
            case "image":
                alt = self.convert_inline(tok.get("children", []), locator)
                return Image(attrs.get("url", ""), text_content(alt), attrs.get("title"), span=_cover(alt, NO_SPAN))
            case "sized_image":
                return Image(
                    tok["src"],
                    tok["alt"],
                    tok.get("title"),
                    tok.get("width"),
                    tok.get("height"),
                    locator.locate(tok["raw"]),
                )
            case "dd_call":
                span = locator.locate(tok["raw"])
                args = tuple(Text(a["value"], span) for a in tok["args"])
                named = tuple(NamedArg(a["name"], Text(a["value"], span), span) for a in tok["named"])
                return FunctionCall(tok["name"], args, named, (), span)
            case "dd_variable":
                return VariableReference(tok["name"], locator.locate(tok["raw"]))
            case "dd_error":
                span = locator.locate(tok["raw"])
                self.errors.append(ParseError(tok["message"], span, self.source))
                return Text(tok["raw"], span)
            case "inline_html":
                raw = tok.get("raw", "")
                return Text(raw, locator.locate(raw))
            case _:
                logger.debug("unknown inline token %r kept as text", kind)
                return self._fallback_text(tok, locator)

    def _fallback_text(self, tok: dict[str, Any], locator: _Locator) -> Text | None:
        raw = tok.get("raw")
        if raw is None and tok.get("children"):
            raw = text_content(self.convert_inline(tok["children"], locator))
        if not raw:
            return None
        return Text(raw, locator.locate(raw))


def _merge_text(nodes: list[Node]) -> tuple[Node, ...]:
    """Coalesce adjacent Text nodes."""
    merged: list[Node] = []
    for node in nodes:
        if isinstance(node, Text) and merged and isinstance(merged[-1], Text):
            prev = merged[-1]
            span = Span(prev.span.start, node.span.end) if prev.span.is_known else node.span
            merged[-1] = Text(prev.content + node.content, span)
        else:
            merged.append(node)
    return tuple(merged)


def _strip_leading_newline(nodes: tuple[Node, ...]) -> tuple[Node, ...]:
    if nodes and isinstance(nodes[0], Text):
        content = nodes[0].content.lstrip()
        if not content:
            return nodes[1:]
        return (Text(content, nodes[0].span),) + nodes[1:]
    return nodes


def _dedent(lines: tuple[str, ...]) -> tuple[str, int]:
    """Remove the common leading whitespace; return text and columns removed."""
    widths = [len(line) - len(line.lstrip(" \t")) for line in lines if line.strip()]
    removed = min(widths) if widths else 0
    return "\n".join(line[removed:] for line in lines), removed

"""HTML renderer: converts an expanded tree to an HTML fragment or document."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from dotdown import themes
from dotdown.ast import (
    Blockquote,
    Center,
    Code,
    Column,
    Document,
    Emphasis,
    Grid,
    Heading,
    Image,
    LineBreak,
    Link,
    List,
    ListItem,
    Math,
    Node,
    Paragraph,
    Row,
    Table,
    Text,
    ThematicBreak,
    is_dynamic,
    is_inline,
    text_content,
    walk,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RenderOptions:
    """Presentation settings; usually derived from document metadata."""

    doctype: str = "plain"
    theme: str = "default"
    layout: str | None = None
    title: str = "Document"
    author: str | None = None
    language: str = "en"
    standalone: bool = True
    output_format: str = "html"
    stylesheets: tuple[str, ...] = ()
    scripts: tuple[str, ...] = ()
    meta: tuple[tuple[str, str], ...] = ()


def render(tree: Document, options: RenderOptions | None = None) -> str:
    """Render a resolved tree.

    Returns a complete page when ``options.standalone`` is set, otherwise
    just the body markup.  Output depends only on the tree and options.
    """
    options = options or RenderOptions()
    return _HtmlWriter(options).document(tree)


# ---------------------------------------------------------------------------
# HTML escaping
# ---------------------------------------------------------------------------


def _escape_html(text: str) -> str:
    """Escape text for HTML body content. Also encodes non-ASCII as entities."""
    result: list[str] = []
    for ch in text:
        if ch == "&":
            result.append("&amp;")
        elif ch == "<":
            result.append("&lt;")
        elif ch == ">":
            result.append("&gt;")
        elif ch == '"':
            result.append("&quot;")
        elif ch == "'":
            result.append("&#x27;")
        elif ord(ch) > 0x7F:
            result.append(f"&#x{ord(ch):X};")
        else:
            result.append(ch)
    return "".join(result)


def _escape_attr(text: str) -> str:
    """Escape text for HTML attribute values; newlines are encoded too."""
    return _escape_html(text).replace("\n", "&#xA;")


_NON_CLASS_CHARS = re.compile(r"[^A-Za-z0-9_-]+")
_SLUG_DROP = re.compile(r"[^\w\s-]")
_SLUG_JOIN = re.compile(r"[\s_-]+")


def _class_token(value: str) -> str:
    return _NON_CLASS_CHARS.sub("-", value.strip().lower()).strip("-")


def slugify(text: str) -> str:
    """Heading id: lowercase, punctuation dropped, runs of space/dash joined."""
    slug = _SLUG_JOIN.sub("-", _SLUG_DROP.sub("", text.lower())).strip("-")
    return slug or "section"


def _dimension(value: str) -> str:
    value = value.strip()
    return f"{value}px" if value.isdigit() else value


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------


class _HtmlWriter:
    """Per-render state: heading ids already handed out."""

    def __init__(self, options: RenderOptions) -> None:
        self.options = options
        self._ids: dict[str, int] = {}

    def document(self, tree: Document) -> str:
        if not self.options.standalone:
            body = self.blocks(tree.children)
            return body + "\n" if body else ""
        return self._page(tree)

    # -- page shell -----------------------------------------------------

    def _page(self, tree: Document) -> str:
        opts = self.options
        doctype = opts.doctype or "plain"
        diagrams = _has_diagrams(tree)

        parts: list[str] = ["<!DOCTYPE html>\n"]
        parts.append(f'<html lang="{_escape_attr(opts.language or "en")}">\n')
        parts.append("<head>\n")
        parts.append('<meta charset="utf-8">\n')
        parts.append('<meta name="viewport" content="width=device-width, initial-scale=1">\n')
        parts.append(f"<title>{_escape_html(opts.title or 'Document')}</title>\n")
        if opts.author:
            parts.append(f'<meta name="author" content="{_escape_attr(opts.author)}">\n')
        for name, content in opts.meta:
            parts.append(f'<meta name="{_escape_attr(name)}" content="{_escape_attr(content)}">\n')
        parts.append("<style>\n")
        parts.append(themes.stylesheet(opts.theme, doctype, opts.layout, opts.output_format))
        parts.append("</style>\n")
        for link in themes.dependency_links(doctype):
            parts.append(link + "\n")
        for href in opts.stylesheets:
            parts.append(f'<link rel="stylesheet" href="{_escape_attr(href)}">\n')
        parts.append("</head>\n")

        body_class = f"doctype-{_class_token(doctype)} theme-{_class_token(opts.theme or 'default')}"
        parts.append(f'<body class="{body_class}">\n')
        parts.append(self._wrapped_content(tree, doctype))
        for script in themes.dependency_scripts(doctype, diagrams):
            parts.append(script + "\n")
        for src in opts.scripts:
            parts.append(f'<script src="{_escape_attr(src)}"></script>\n')
        parts.append(themes.init_script(doctype, diagrams))
        parts.append("\n</body>\n")
        parts.append("</html>\n")
        return "".join(parts)

    def _wrapped_content(self, tree: Document, doctype: str) -> str:
        if doctype == "slides":
            sections = []
            for group in _split_slides(tree.children):
                inner = self.blocks(group)
                sections.append(f"<section>\n{inner}\n</section>\n" if inner else "<section></section>\n")
            return '<div class="reveal">\n<div class="slides">\n' + "".join(sections) + "</div>\n</div>\n"
        body = self.blocks(tree.children)
        body = body + "\n" if body else ""
        if doctype == "paged":
            return f'<article class="paged-document">\n{body}</article>\n'
        return f'<main class="document-content">\n{body}</main>\n'

    # -- block level ----------------------------------------------------

    def blocks(self, children: Sequence[Node], wrap_inline: bool = True) -> str:
        """Render block children; runs of inline nodes become paragraphs."""
        out: list[str] = []
        run: list[Node] = []

        def flush() -> None:
            if not run:
                return
            html = self.inlines(run).strip()
            run.clear()
            if not html:
                return
            out.append(f"<p>{html}</p>" if wrap_inline else html)

        for child in children:
            if is_inline(child):
                run.append(child)
                continue
            flush()
            rendered = self.block(child)
            if rendered:
                out.append(rendered)
        flush()
        return "\n".join(out)

    def block(self, node: Node) -> str:
        match node:
            case Paragraph():
                inner = self.inlines(node.children).strip()
                return f"<p>{inner}</p>" if inner else ""
            case Heading():
                return self._heading(node)
            case List():
                return self._list(node)
            case ListItem():
                return self._list_item(node)
            case Blockquote():
                return self._blockquote(node)
            case Code():
                return self._code_block(node)
            case Math():
                return f'<div class="math math-display">{_escape_html(node.content)}</div>'
            case ThematicBreak():
                return "<hr>"
            case Table():
                return self._table(node)
            case Row():
                classes = f"dd-row alignment-{_class_token(node.alignment) or 'start'}"
                return self._layout(classes, node.children, _style(gap=node.gap))
            case Column():
                classes = f"dd-column cross-{_class_token(node.cross_alignment) or 'start'}"
                return self._layout(classes, node.children, _style(gap=node.gap))
            case Grid():
                return self._layout("dd-grid", node.children, _style(columns=str(node.columns), gap=node.gap))
            case Center():
                return self._layout("dd-center", node.children, "")
            case _:
                return self._skip(node)

    def _heading(self, node: Heading) -> str:
        level = min(max(node.level, 1), 6)
        slug = self._unique_id(slugify(text_content(node.children)))
        inner = self.inlines(node.children).strip()
        return f'<h{level} id="{_escape_attr(slug)}">{inner}</h{level}>'

    def _unique_id(self, slug: str) -> str:
        count = self._ids.get(slug, 0)
        self._ids[slug] = count + 1
        return slug if count == 0 else f"{slug}-{count}"

    def _list(self, node: List) -> str:
        tag = "ol" if node.ordered else "ul"
        attrs = ""
        if node.ordered and node.start is not None and node.start != 1:
            attrs = f' start="{node.start}"'
        items: list[str] = []
        for child in node.children:
            item = child if isinstance(child, ListItem) else ListItem((child,))
            items.append(self._list_item(item))
        return f"<{tag}{attrs}>\n" + "\n".join(items) + f"\n</{tag}>"

    def _list_item(self, node: ListItem) -> str:
        if all(is_inline(child) for child in node.children):
            return f"<li>{self.inlines(node.children).strip()}</li>"
        return f"<li>{self.blocks(node.children, wrap_inline=False)}</li>"

    def _blockquote(self, node: Blockquote) -> str:
        attrs = ""
        if node.quote_type:
            attrs = f' class="quote-{_class_token(node.quote_type)}"'
        inner = self.blocks(node.children)
        return f"<blockquote{attrs}>\n{inner}\n</blockquote>"

    def _code_block(self, node: Code) -> str:
        if node.inline:
            return f"<p>{self.inline(node)}</p>"
        language = (node.language or "").strip()
        if language == "mermaid":
            return f'<pre class="mermaid">{_escape_html(node.content)}</pre>'
        attrs = f' class="language-{_escape_attr(_class_token(language))}"' if language else ""
        return f"<pre><code{attrs}>{_escape_html(node.content)}</code></pre>"

    def _table(self, node: Table) -> str:
        def cell(tag: str, content: Sequence[Node], index: int) -> str:
            align = node.alignment[index] if index < len(node.alignment) else None
            attrs = f' class="text-{_class_token(align)}"' if align else ""
            return f"<{tag}{attrs}>{self.inlines(content).strip()}</{tag}>"

        parts = ["<table>", "<thead>", "<tr>"]
        parts.extend(cell("th", content, i) for i, content in enumerate(node.headers))
        parts.extend(["</tr>", "</thead>"])
        if node.rows:
            parts.append("<tbody>")
            for row in node.rows:
                parts.append("<tr>")
                parts.extend(cell("td", content, i) for i, content in enumerate(row))
                parts.append("</tr>")
            parts.append("</tbody>")
        parts.append("</table>")
        return "\n".join(parts)

    def _layout(self, classes: str, children: Sequence[Node], style: str) -> str:
        attrs = f' class="{classes}"'
        if style:
            attrs += f' style="{_escape_attr(style)}"'
        inner = self.blocks(children, wrap_inline=False)
        return f"<div{attrs}>\n{inner}\n</div>" if inner else f"<div{attrs}></div>"

    # -- inline level ---------------------------------------------------

    def inlines(self, nodes: Sequence[Node]) -> str:
        return "".join(self.inline(node) for node in nodes)

    def inline(self, node: Node) -> str:
        match node:
            case Text():
                return _escape_html(node.content)
            case Code():
                return f"<code>{_escape_html(node.content)}</code>"
            case Math():
                cls = "math-display" if node.display else "math-inline"
                return f'<span class="math {cls}">{_escape_html(node.content)}</span>'
            case Emphasis():
                tag = "strong" if node.strong else "em"
                return f"<{tag}>{self.inlines(node.children)}</{tag}>"
            case Link():
                attrs = f' href="{_escape_attr(node.url)}"'
                if node.title:
                    attrs += f' title="{_escape_attr(node.title)}"'
                return f"<a{attrs}>{self.inlines(node.children)}</a>"
            case Image():
                return _image(node)
            case LineBreak():
                return "<br>\n"
            case Paragraph():
                return self.inlines(node.children)
            case _:
                if is_inline(node) or is_dynamic(node):
                    return self._skip(node)
                return self.block(node)

    def _skip(self, node: Node) -> str:
        logger.warning("skipping %s node during rendering", node.kind.value)
        return ""


def _image(node: Image) -> str:
    attrs = f' src="{_escape_attr(node.src)}" alt="{_escape_attr(node.alt)}"'
    if node.title:
        attrs += f' title="{_escape_attr(node.title)}"'
    style = []
    if node.width:
        style.append(f"width: {_dimension(node.width)}")
    if node.height:
        style.append(f"height: {_dimension(node.height)}")
    if style:
        attrs += f' style="{_escape_attr("; ".join(style))}"'
    return f"<img{attrs}>"


def _style(**props: str | None) -> str:
    return "; ".join(f"--{name}: {value}" for name, value in props.items() if value)


def _has_diagrams(tree: Document) -> bool:
    return any(isinstance(node, Code) and node.language == "mermaid" for node in walk(tree))


def _split_slides(children: Sequence[Node]) -> list[list[Node]]:
    """Group top-level nodes into slides separated by thematic breaks."""
    slides: list[list[Node]] = [[]]
    for child in children:
        if isinstance(child, ThematicBreak):
            slides.append([])
        else:
            slides[-1].append(child)
    return [group for group in slides if group] or [[]]

"""Renderer unit tests."""

from __future__ import annotations

import logging

import pytest

from dotdown.ast import (
    Blockquote,
    Center,
    Code,
    Column,
    Document,
    Emphasis,
    FunctionCall,
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
    VariableReference,
)
from dotdown.render import RenderOptions, render, slugify

FRAGMENT = RenderOptions(standalone=False)


def _doc(*children: Node) -> Document:
    return Document(children)


def _para(*children: Node) -> Paragraph:
    return Paragraph(children)


def _fragment(*children: Node) -> str:
    return render(_doc(*children), FRAGMENT)


class TestEscaping:
    def test_special_characters(self) -> None:
        html = _fragment(_para(Text("<a & 'b' \"c\">")))
        assert html == "<p>&lt;a &amp; &#x27;b&#x27; &quot;c&quot;&gt;</p>\n"

    def test_non_ascii_encoded(self) -> None:
        assert _fragment(_para(Text("café"))) == "<p>caf&#xE9;</p>\n"

    def test_attribute_values(self) -> None:
        html = _fragment(_para(Link('x" onclick="y', (Text("go"),))))
        assert 'href="x&quot; onclick=&quot;y"' in html

    def test_title_escaped(self) -> None:
        html = render(_doc(), RenderOptions(title="<script>"))
        assert "<title>&lt;script&gt;</title>" in html


class TestBlocks:
    def test_empty_fragment(self) -> None:
        assert _fragment() == ""

    def test_loose_inline_grouped_into_paragraph(self) -> None:
        assert _fragment(Text("a"), Emphasis((Text("b"),), strong=True)) == "<p>a<strong>b</strong></p>\n"

    def test_whitespace_only_run_dropped(self) -> None:
        assert _fragment(Text("\n"), Heading(1, (Text("T"),))) == '<h1 id="t">T</h1>\n'

    def test_heading_ids_deduplicated(self) -> None:
        html = _fragment(Heading(1, (Text("Intro"),)), Heading(2, (Text("Intro"),)))
        assert '<h1 id="intro">Intro</h1>' in html
        assert '<h2 id="intro-1">Intro</h2>' in html

    def test_slugify(self) -> None:
        assert slugify("Hello, World!") == "hello-world"
        assert slugify("  a_b -- c ") == "a-b-c"
        assert slugify("!!!") == "section"

    def test_lists(self) -> None:
        html = _fragment(List(False, (ListItem((Text("a"),)), ListItem((Text("b"),)))))
        assert html == "<ul>\n<li>a</li>\n<li>b</li>\n</ul>\n"

    def test_ordered_list_start(self) -> None:
        html = _fragment(List(True, (ListItem((Text("c"),)),), start=3))
        assert html.startswith('<ol start="3">')

    def test_loose_list_item(self) -> None:
        html = _fragment(List(False, (ListItem((_para(Text("a")), _para(Text("b")))),)))
        assert "<li><p>a</p>\n<p>b</p></li>" in html

    def test_blockquote_type(self) -> None:
        html = _fragment(Blockquote((_para(Text("x")),), "note"))
        assert html == '<blockquote class="quote-note">\n<p>x</p>\n</blockquote>\n'

    def test_code_block(self) -> None:
        html = _fragment(Code("a < b", "python"))
        assert html == '<pre><code class="language-python">a &lt; b</code></pre>\n'

    def test_code_block_without_language(self) -> None:
        assert _fragment(Code("x")) == "<pre><code>x</code></pre>\n"

    def test_mermaid_block(self) -> None:
        assert _fragment(Code("graph TD", "mermaid")) == '<pre class="mermaid">graph TD</pre>\n'

    def test_display_math(self) -> None:
        assert _fragment(Math("x^2", display=True)) == '<div class="math math-display">x^2</div>\n'

    def test_thematic_break(self) -> None:
        assert _fragment(ThematicBreak()) == "<hr>\n"

    def test_table(self) -> None:
        table = Table(((Text("A"),), (Text("B"),)), (((Text("1"),), (Text("2"),)),), ("left", None))
        html = _fragment(table)
        assert '<th class="text-left">A</th>' in html
        assert "<th>B</th>" in html
        assert "<tbody>\n<tr>\n<td class=\"text-left\">1</td>\n<td>2</td>\n</tr>\n</tbody>" in html


class TestInline:
    def test_inline_code_and_math(self) -> None:
        html = _fragment(_para(Code("x", inline=True), Math("y")))
        assert html == '<p><code>x</code><span class="math math-inline">y</span></p>\n'

    def test_link_with_title(self) -> None:
        html = _fragment(_para(Link("https://e.com", (Text("e"),), "Site")))
        assert html == '<p><a href="https://e.com" title="Site">e</a></p>\n'

    def test_image_size(self) -> None:
        html = _fragment(_para(Image("a.png", "A", None, "300", "50%")))
        assert html == '<p><img src="a.png" alt="A" style="width: 300px; height: 50%"></p>\n'

    def test_line_break(self) -> None:
        assert _fragment(_para(Text("a"), LineBreak(), Text("b"))) == "<p>a<br>\nb</p>\n"


class TestLayout:
    def test_row(self) -> None:
        html = _fragment(Row((Text("x"),), "spacebetween", "1rem"))
        assert html == '<div class="dd-row alignment-spacebetween" style="--gap: 1rem">\nx\n</div>\n'

    def test_column(self) -> None:
        html = _fragment(Column((_para(Text("x")),), "center"))
        assert html.startswith('<div class="dd-column cross-center">')

    def test_grid(self) -> None:
        html = _fragment(Grid((Text("x"),), 4, "2px"))
        assert html.startswith('<div class="dd-grid" style="--columns: 4; --gap: 2px">')

    def test_center_empty(self) -> None:
        assert _fragment(Center(())) == '<div class="dd-center"></div>\n'

    def test_class_values_sanitized(self) -> None:
        html = _fragment(Row((), 'x" onload="y'))
        assert 'class="dd-row alignment-x-onload-y"' in html


class TestUnresolvedNodes:
    def test_dynamic_nodes_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="dotdown.render"):
            html = _fragment(_para(Text("a"), VariableReference("x")), FunctionCall("f"))
        assert html == "<p>a</p>\n"
        assert len(caplog.records) == 2


class TestStandalone:
    def test_shell(self) -> None:
        html = render(_doc(_para(Text("hi"))), RenderOptions(title="T", author="Ann", language="fr"))
        assert html.startswith("<!DOCTYPE html>\n<html lang=\"fr\">\n<head>\n")
        assert '<meta charset="utf-8">' in html
        assert "<title>T</title>" in html
        assert '<meta name="author" content="Ann">' in html
        assert '<body class="doctype-plain theme-default">' in html
        assert '<main class="document-content">\n<p>hi</p>\n</main>' in html
        assert "katex" in html
        assert "highlight" in html
        assert "reveal" not in html
        assert html.endswith("</html>\n")

    def test_paged(self) -> None:
        html = render(_doc(), RenderOptions(doctype="paged"))
        assert '<article class="paged-document">' in html
        assert "page-break-inside" in html

    def test_slides_split_on_breaks(self) -> None:
        tree = _doc(_para(Text("one")), ThematicBreak(), _para(Text("two")))
        html = render(tree, RenderOptions(doctype="slides"))
        assert '<div class="reveal">\n<div class="slides">' in html
        assert "<section>\n<p>one</p>\n</section>\n<section>\n<p>two</p>\n</section>" in html
        assert "<hr>" not in html
        assert "Reveal.initialize" in html

    def test_theme_css(self) -> None:
        dark = render(_doc(), RenderOptions(theme="darko"))
        plain = render(_doc(), RenderOptions(theme="default"))
        assert "#2d2d30" in dark
        assert "#2d2d30" not in plain
        assert "theme-darko" in dark

    def test_layout_css_always_present(self) -> None:
        assert ".dd-row" in render(_doc())

    def test_pdf_print_rules(self) -> None:
        assert "@page" in render(_doc(), RenderOptions(output_format="pdf"))
        assert "@page" not in render(_doc())

    def test_extra_head_items(self) -> None:
        options = RenderOptions(
            stylesheets=("site.css",),
            scripts=("app.js",),
            meta=(("description", "A doc"),),
        )
        html = render(_doc(), options)
        assert '<link rel="stylesheet" href="site.css">' in html
        assert '<script src="app.js"></script>' in html
        assert '<meta name="description" content="A doc">' in html

    def test_diagram_script_only_when_needed(self) -> None:
        assert "mermaid" not in render(_doc(_para(Text("x"))))
        assert "mermaid.min.js" in render(_doc(Code("graph TD", "mermaid")))


class TestDeterminism:
    def test_render_twice_identical(self) -> None:
        tree = _doc(
            Heading(1, (Text("Title"),)),
            Heading(1, (Text("Title"),)),
            _para(Text("body "), Emphasis((Text("x"),))),
            Table(((Text("h"),),), (((Text("c"),),),), (None,)),
        )
        options = RenderOptions(doctype="slides", theme="minimal")
        assert render(tree, options) == render(tree, options)

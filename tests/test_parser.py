"""Parser tests: Markdown blocks, call syntax, and error recovery."""

from __future__ import annotations

from dotdown.ast import (
    Blockquote,
    Code,
    FunctionCall,
    Heading,
    Image,
    List,
    ListItem,
    Math,
    Paragraph,
    Table,
    Text,
    VariableReference,
    text_content,
)
from dotdown.parser import normalize_typed_quotes, parse, parse_inline


class TestMarkdownBlocks:
    def test_empty_source(self, parse_source) -> None:
        assert parse_source("").children == ()

    def test_paragraph(self, parse_source) -> None:
        doc = parse_source("Hello world")
        assert doc.children == (Paragraph((Text("Hello world"),)),)

    def test_heading(self, parse_source) -> None:
        doc = parse_source("## Section")
        assert doc.children == (Heading(2, (Text("Section"),)),)

    def test_bullet_list(self, parse_source) -> None:
        doc = parse_source("- a\n- b")
        (lst,) = doc.children
        assert isinstance(lst, List)
        assert not lst.ordered
        assert lst.children == (ListItem((Text("a"),)), ListItem((Text("b"),)))

    def test_ordered_list_start(self, parse_source) -> None:
        (lst,) = parse_source("3. c\n4. d").children
        assert isinstance(lst, List)
        assert lst.ordered
        assert lst.start == 3

    def test_fenced_code(self, parse_source) -> None:
        (code,) = parse_source("```python\nprint(1)\n```").children
        assert code == Code("print(1)", "python", False)

    def test_call_syntax_inside_fence_is_literal(self, parse_source) -> None:
        (code,) = parse_source("```\n.var {x} {1}\n```").children
        assert isinstance(code, Code)
        assert code.content == ".var {x} {1}"

    def test_inline_code_and_math(self, parse_source) -> None:
        (para,) = parse_source("Use `x` and $a^2$").children
        assert isinstance(para, Paragraph)
        assert Code("x", None, True) in para.children
        assert Math("a^2", False) in para.children

    def test_display_math(self, parse_source) -> None:
        (math,) = parse_source("$$\nE = mc^2\n$$").children
        assert math == Math("E = mc^2", True)

    def test_table(self, parse_source) -> None:
        (table,) = parse_source("| A | B |\n|:--|--:|\n| 1 | 2 |").children
        assert isinstance(table, Table)
        assert [text_content(c).strip() for c in table.headers] == ["A", "B"]
        assert table.alignment == ("left", "right")
        assert [text_content(c).strip() for c in table.rows[0]] == ["1", "2"]

    def test_sized_image(self, parse_source) -> None:
        (para,) = parse_source("!(300*200)[Logo](logo.png)").children
        assert isinstance(para, Paragraph)
        (image,) = para.children
        assert image == Image("logo.png", "Logo", None, "300", "200")

    def test_plain_image(self, parse_source) -> None:
        (para,) = parse_source('![Alt text](pic.png "Title")').children
        assert isinstance(para, Paragraph)
        assert para.children == (Image("pic.png", "Alt text", "Title"),)


class TestTypedQuotes:
    def test_normalize_label(self) -> None:
        assert normalize_typed_quotes("> Note: careful") == "> [!NOTE] careful"

    def test_only_first_quote_line(self) -> None:
        source = "> Tip: one\n> Note: two"
        assert normalize_typed_quotes(source) == "> [!TIP] one\n> Note: two"

    def test_label_quote(self, parse_source) -> None:
        (quote,) = parse_source("> Warning: hot surface").children
        assert isinstance(quote, Blockquote)
        assert quote.quote_type == "warning"
        assert text_content(quote.children).strip() == "hot surface"

    def test_marker_quote(self, parse_source) -> None:
        (quote,) = parse_source("> [!TIP]\n> Use it").children
        assert isinstance(quote, Blockquote)
        assert quote.quote_type == "tip"
        assert text_content(quote.children).strip() == "Use it"

    def test_plain_quote(self, parse_source) -> None:
        (quote,) = parse_source("> just a quote").children
        assert isinstance(quote, Blockquote)
        assert quote.quote_type is None


class TestInlineCalls:
    def test_call_in_paragraph(self, parse_source) -> None:
        (para,) = parse_source("Sum: .add {5} to:{3} done").children
        assert isinstance(para, Paragraph)
        first, call, last = para.children
        assert first == Text("Sum: ")
        assert isinstance(call, FunctionCall)
        assert call.name == "add"
        assert [a.content for a in call.args] == ["5"]
        assert call.named_value("to") == "3"
        assert last == Text(" done")

    def test_variable_reference(self, parse_source) -> None:
        (para,) = parse_source("Hello .name!").children
        assert isinstance(para, Paragraph)
        assert para.children == (Text("Hello "), VariableReference("name"), Text("!"))

    def test_dot_after_word_is_text(self, parse_source) -> None:
        (para,) = parse_source("See file.txt and 3.14").children
        assert isinstance(para, Paragraph)
        assert para.children == (Text("See file.txt and 3.14"),)

    def test_double_dot_is_text(self, parse_source) -> None:
        (para,) = parse_source("wait..what").children
        assert isinstance(para, Paragraph)
        assert para.children == (Text("wait..what"),)

    def test_call_in_heading(self, parse_source) -> None:
        (heading,) = parse_source("# Total .add {1} to:{2}").children
        assert isinstance(heading, Heading)
        assert isinstance(heading.children[-1], FunctionCall)

    def test_variable_span(self, parse_source) -> None:
        (para,) = parse_source("Hello .name").children
        assert isinstance(para, Paragraph)
        ref = para.children[1]
        assert ref.span.start.line == 1
        assert ref.span.start.column == 7

    def test_parse_inline(self) -> None:
        nodes = parse_inline(".x and y")
        assert nodes == (VariableReference("x"), Text(" and y"))


class TestBlockCalls:
    def test_single_line_call(self, parse_source) -> None:
        (call,) = parse_source(".var {x} {5}").children
        assert isinstance(call, FunctionCall)
        assert call.name == "var"
        assert [a.content for a in call.args] == ["x", "5"]
        assert call.body == ()

    def test_indented_body(self, parse_source) -> None:
        source = ".row alignment:{center}\n    First\n\n    Second"
        (call,) = parse_source(source).children
        assert isinstance(call, FunctionCall)
        assert call.named_value("alignment") == "center"
        assert call.body == (Paragraph((Text("First"),)), Paragraph((Text("Second"),)))

    def test_bare_name_with_body(self, parse_source) -> None:
        (call,) = parse_source(".center\n    Hi").children
        assert isinstance(call, FunctionCall)
        assert call.name == "center"
        assert call.args == ()
        assert call.body == (Paragraph((Text("Hi"),)),)

    def test_bare_name_without_body_is_variable(self, parse_source) -> None:
        (para,) = parse_source(".x").children
        assert isinstance(para, Paragraph)
        assert para.children == (VariableReference("x"),)

    def test_bare_name_before_blank_line_keeps_indented_block(self, parse_source) -> None:
        para, code = parse_source(".note\n\n    indented code").children
        assert para == Paragraph((VariableReference("note"),))
        assert isinstance(code, Code)
        assert code.content.strip() == "indented code"

    def test_call_with_arguments_owns_body_after_blank_line(self, parse_source) -> None:
        (call,) = parse_source(".row {}\n\n    Inside").children
        assert isinstance(call, FunctionCall)
        assert call.body == (Paragraph((Text("Inside"),)),)

    def test_inline_body(self, parse_source) -> None:
        (call,) = parse_source(".upper {} hello world").children
        assert isinstance(call, FunctionCall)
        assert [a.content for a in call.args] == [""]
        assert call.body == (Text("hello world"),)

    def test_nested_block_calls(self, parse_source) -> None:
        source = ".row\n    .column\n        Inner"
        (row,) = parse_source(source).children
        assert isinstance(row, FunctionCall)
        (column,) = row.body
        assert isinstance(column, FunctionCall)
        assert column.name == "column"
        assert column.body == (Paragraph((Text("Inner"),)),)

    def test_body_ends_at_unindented_line(self, parse_source) -> None:
        source = ".center\n    Inside\nOutside"
        call, para = parse_source(source).children
        assert isinstance(call, FunctionCall)
        assert para == Paragraph((Text("Outside"),))

    def test_call_span(self, parse_source) -> None:
        _, call = parse_source("intro\n\n.var {x} {1}").children
        assert call.span.start.line == 3
        assert call.span.start.column == 1

    def test_nested_arg_span(self, parse_source) -> None:
        (row,) = parse_source(".row\n    .var {x} {1}").children
        assert isinstance(row, FunctionCall)
        (inner,) = row.body
        assert isinstance(inner, FunctionCall)
        assert inner.args[0].span.start.line == 2
        assert inner.args[0].span.start.column == 10


class TestRecovery:
    def test_unterminated_call_never_raises(self) -> None:
        result = parse(".incomplete {")
        assert len(result.errors) == 1
        assert "unterminated" in result.errors[0].message
        (para,) = result.tree.children
        assert isinstance(para, Paragraph)
        assert text_content(para.children) == ".incomplete {"

    def test_error_position(self) -> None:
        result = parse("ok\n\nthen .broken {x")
        (error,) = result.errors
        assert error.span.start.line == 3
        assert error.span.start.column == 6

    def test_text_after_error_kept(self) -> None:
        result = parse("a .b {c")
        assert text_content(result.tree.children) == "a .b {c"

    def test_crlf_line_endings(self, parse_source) -> None:
        doc = parse_source("# A\r\n\r\nText")
        assert isinstance(doc.children[0], Heading)
        assert doc.children[1] == Paragraph((Text("Text"),))

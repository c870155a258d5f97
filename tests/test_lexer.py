"""Call-head scanner tests."""

from __future__ import annotations

from dotdown.lexer import CallScanner, scan_call


class TestNames:
    def test_not_a_dot(self) -> None:
        assert scan_call("abc", 0) is None

    def test_dot_without_identifier(self) -> None:
        assert scan_call(". hello", 0) is None
        assert scan_call(".5", 0) is None

    def test_bare_name(self) -> None:
        head = scan_call(".title rest", 0)
        assert head is not None
        assert head.name == "title"
        assert head.groups == ()
        assert head.end == 6
        assert not head.is_call

    def test_name_with_digits_and_underscore(self) -> None:
        head = scan_call("._index2", 0)
        assert head is not None
        assert head.name == "_index2"

    def test_scan_from_offset(self) -> None:
        text = "Sum is .add {1} to:{2}!"
        head = CallScanner(text).scan(7)
        assert head is not None
        assert head.name == "add"
        assert text[head.end :] == "!"


class TestGroups:
    def test_positional_groups(self) -> None:
        head = scan_call(".var {x} {5}", 0)
        assert head is not None
        assert head.is_call
        assert [g.value for g in head.positional] == ["x", "5"]
        assert head.named == ()

    def test_named_group(self) -> None:
        head = scan_call(".add {5} to:{3}", 0)
        assert head is not None
        assert [g.value for g in head.positional] == ["5"]
        assert [(g.name, g.value) for g in head.named] == [("to", "3")]

    def test_groups_without_spaces(self) -> None:
        head = scan_call(".row{a}gap:{1rem}", 0)
        assert head is not None
        assert [g.value for g in head.positional] == ["a"]
        assert head.named[0].name == "gap"

    def test_nested_braces_kept(self) -> None:
        head = scan_call(".if {{a} b}", 0)
        assert head is not None
        assert head.positional[0].value == "{a} b"

    def test_escaped_braces(self) -> None:
        head = scan_call(r".var {x} {a \} b}", 0)
        assert head is not None
        assert head.positional[1].value == "a } b"

    def test_word_after_name_is_not_a_group(self) -> None:
        head = scan_call(".name and more", 0)
        assert head is not None
        assert head.groups == ()
        assert head.end == 5

    def test_key_without_brace_is_not_a_group(self) -> None:
        head = scan_call(".add {1} to: 3", 0)
        assert head is not None
        assert len(head.groups) == 1
        assert head.end == len(".add {1}")

    def test_group_offsets(self) -> None:
        text = ".var {x}"
        head = scan_call(text, 0)
        assert head is not None
        group = head.groups[0]
        assert text[group.start : group.end] == "{x}"


class TestUnterminated:
    def test_unterminated_group_reports_error(self) -> None:
        head = scan_call(".incomplete {", 0)
        assert head is not None
        assert head.error == "unterminated argument group in call to .incomplete"
        assert not head.is_call
        assert head.end == len(".incomplete")

    def test_earlier_groups_kept(self) -> None:
        head = scan_call(".add {1} to:{2", 0)
        assert head is not None
        assert head.error is not None
        assert [g.value for g in head.groups] == ["1"]

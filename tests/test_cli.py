"""Tests for the CLI module: arg parsing, exit codes, variables, end-to-end."""

from __future__ import annotations

import argparse
from io import StringIO
from pathlib import Path

import pytest

from dotdown.cli import (
    CliOptions,
    build_parser,
    compile_file,
    list_functions,
    main,
    parse_meta_arg,
    parse_var_arg,
)
from dotdown.environment import Limits

# ---------------------------------------------------------------------------
# Argument parsing helpers
# ---------------------------------------------------------------------------


class TestParseHelpers:
    def test_parse_var_arg_simple(self) -> None:
        assert parse_var_arg("mode=draft") == ("mode", "draft")

    def test_parse_var_arg_with_equals_in_value(self) -> None:
        assert parse_var_arg("x=a=b") == ("x", "a=b")

    def test_parse_var_arg_empty_value(self) -> None:
        assert parse_var_arg("key=") == ("key", "")

    def test_parse_var_arg_no_equals_raises(self) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            parse_var_arg("noequals")

    def test_parse_meta_arg_simple(self) -> None:
        assert parse_meta_arg("viewport=width=device-width") == (
            "viewport",
            "width=device-width",
        )

    def test_parse_meta_arg_no_equals_raises(self) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            parse_meta_arg("noequals")


# ---------------------------------------------------------------------------
# Arg parsing via build_parser
# ---------------------------------------------------------------------------


class TestArgParsing:
    def test_input_only(self) -> None:
        ns = build_parser().parse_args(["doc.dd"])
        assert ns.input == "doc.dd"
        assert ns.output is None
        assert ns.fragment is False

    def test_output_flag(self) -> None:
        ns = build_parser().parse_args(["doc.dd", "-o", "out.html"])
        assert ns.output == "out.html"

    def test_var_and_include_flags(self) -> None:
        ns = build_parser().parse_args(["doc.dd", "-V", "a=1", "--var", "b=2", "-I", "lib"])
        assert ns.var == ["a=1", "b=2"]
        assert ns.include_path == ["lib"]

    def test_css_js_meta_flags(self) -> None:
        ns = build_parser().parse_args(["doc.dd", "--css", "s.css", "--js", "a.js", "--meta", "k=v"])
        assert ns.css == ["s.css"]
        assert ns.js == ["a.js"]
        assert ns.meta == ["k=v"]

    def test_doctype_choices(self) -> None:
        ns = build_parser().parse_args(["doc.dd", "--doctype", "slides", "--theme", "darko"])
        assert (ns.doctype, ns.theme) == ("slides", "darko")
        with pytest.raises(SystemExit):
            build_parser().parse_args(["doc.dd", "--doctype", "poster"])

    def test_watch_and_debug(self) -> None:
        ns = build_parser().parse_args(["doc.dd", "--watch", "--debug", "--strict"])
        assert ns.watch is True
        assert ns.debug is True
        assert ns.strict is True


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------


class TestExitCodes:
    def test_success(self, tmp_path: Path) -> None:
        doc = tmp_path / "ok.dd"
        doc.write_text(".docname {Hello}\n\nBody\n")
        out = tmp_path / "out.html"
        assert main([str(doc), "-o", str(out)]) == 0
        assert "<title>Hello</title>" in out.read_text()

    def test_errors_return_1(self, tmp_path: Path) -> None:
        doc = tmp_path / "bad.dd"
        doc.write_text("text .broken {\n")
        out = tmp_path / "out.html"
        assert main([str(doc), "-o", str(out)]) == 1
        assert out.exists()

    def test_strict_errors_write_nothing(self, tmp_path: Path) -> None:
        doc = tmp_path / "bad.dd"
        doc.write_text("text .broken {\n")
        out = tmp_path / "out.html"
        assert main([str(doc), "--strict", "-o", str(out)]) == 1
        assert not out.exists()

    def test_warnings_only_return_0(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        doc = tmp_path / "warn.dd"
        doc.write_text("Hi .nobody\n")
        assert main([str(doc), "--fragment"]) == 0
        captured = capsys.readouterr()
        assert captured.out == "<p>Hi {{nobody}}</p>\n"
        assert "warning: Undefined variable: nobody" in captured.err

    def test_missing_input_file_returns_2(self, tmp_path: Path) -> None:
        assert main([str(tmp_path / "absent.dd")]) == 2

    def test_no_input_returns_2(self) -> None:
        assert main([]) == 2

    def test_bad_var_returns_2(self, tmp_path: Path) -> None:
        doc = tmp_path / "doc.dd"
        doc.write_text("x\n")
        assert main([str(doc), "-V", "novalue"]) == 2


# ---------------------------------------------------------------------------
# Output shape and variables
# ---------------------------------------------------------------------------


class TestOutput:
    def test_fragment_to_stdout(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        doc = tmp_path / "doc.dd"
        doc.write_text("# Title\n")
        assert main([str(doc), "--fragment"]) == 0
        assert capsys.readouterr().out == '<h1 id="title">Title</h1>\n'

    def test_var_visible_in_output(self, tmp_path: Path) -> None:
        doc = tmp_path / "vars.dd"
        doc.write_text("Mode is .mode and .level\n")
        out = tmp_path / "out.html"
        assert main([str(doc), "-V", "mode=draft", "-V", "level=2", "--fragment", "-o", str(out)]) == 0
        assert out.read_text() == "<p>Mode is draft and 2</p>\n"

    def test_doctype_default_from_cli(self, tmp_path: Path) -> None:
        doc = tmp_path / "deck.dd"
        doc.write_text("One\n\n---\n\nTwo\n")
        out = tmp_path / "out.html"
        assert main([str(doc), "--doctype", "slides", "-o", str(out)]) == 0
        assert '<div class="reveal">' in out.read_text()

    def test_include_path_flag(self, tmp_path: Path) -> None:
        lib = tmp_path / "lib"
        lib.mkdir()
        (lib / "part.dd").write_text("from lib\n")
        doc = tmp_path / "doc.dd"
        doc.write_text(".include {part.dd}\n")
        out = tmp_path / "out.html"
        assert main([str(doc), "-I", str(lib), "--fragment", "-o", str(out)]) == 0
        assert out.read_text() == "<p>from lib</p>\n"


# ---------------------------------------------------------------------------
# CSS / JS / Meta via CLI
# ---------------------------------------------------------------------------


class TestCssJsMetaCli:
    def test_css_in_output(self, tmp_path: Path) -> None:
        doc = tmp_path / "doc.dd"
        doc.write_text(".docname {Test}\n")
        out = tmp_path / "out.html"
        assert main([str(doc), "--css", "style.css", "-o", str(out)]) == 0
        assert '<link rel="stylesheet" href="style.css">' in out.read_text()

    def test_js_in_output(self, tmp_path: Path) -> None:
        doc = tmp_path / "doc.dd"
        doc.write_text(".docname {Test}\n")
        out = tmp_path / "out.html"
        assert main([str(doc), "--js", "app.js", "-o", str(out)]) == 0
        assert '<script src="app.js"></script>' in out.read_text()

    def test_meta_in_output(self, tmp_path: Path) -> None:
        doc = tmp_path / "doc.dd"
        doc.write_text(".docname {Test}\n")
        out = tmp_path / "out.html"
        assert main([str(doc), "--meta", "keywords=a,b", "-o", str(out)]) == 0
        assert '<meta name="keywords" content="a,b">' in out.read_text()


# ---------------------------------------------------------------------------
# compile_file, --debug and --list-functions
# ---------------------------------------------------------------------------


def _options(doc: Path, **overrides: object) -> CliOptions:
    values: dict[str, object] = {
        "input_file": doc,
        "output_file": None,
        "doctype": None,
        "theme": None,
        "standalone": False,
        "strict": False,
        "include_paths": [],
        "variables": {},
        "css_files": [],
        "js_files": [],
        "meta_tags": [],
        "limits": Limits(),
        "watch": False,
        "debug": False,
    }
    values.update(overrides)
    return CliOptions(**values)  # type: ignore[arg-type]


class TestCompileFile:
    def test_basic(self, tmp_path: Path) -> None:
        doc = tmp_path / "simple.dd"
        doc.write_text("# Hello World\n")
        result = compile_file(_options(doc))
        assert '<h1 id="hello-world">Hello World</h1>' in result.html
        assert result.ok

    def test_debug_dumps_tree(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        doc = tmp_path / "debug.dd"
        doc.write_text("Hello *there*\n")
        compile_file(_options(doc, debug=True))
        err = capsys.readouterr().err
        assert "Document" in err
        assert "Emphasis" in err

    def test_list_functions(self) -> None:
        out = StringIO()
        list_functions(out)
        text = out.getvalue()
        assert ".add(value, to:)\n    Adds two numbers.\n" in text
        assert "e.g. .include {chapter1.dd}" in text

    def test_list_functions_flag(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--list-functions"]) == 0
        assert ".repeat" in capsys.readouterr().out

"""Command-line interface for dotdown."""

from __future__ import annotations

import argparse
import logging
import sys
import time
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TextIO

from dotdown.compiler import CompileOptions, CompileResult
from dotdown.environment import Limits

logger = logging.getLogger(__name__)

CONFIG_NAME = "dotdown.toml"


class ConfigError(Exception):
    """Invalid value in a config file."""


@dataclass(frozen=True, slots=True)
class CliOptions:
    """Parsed CLI options."""

    input_file: Path
    output_file: Path | None
    doctype: str | None
    theme: str | None
    standalone: bool
    strict: bool
    include_paths: list[Path]
    variables: dict[str, object]
    css_files: list[str]
    js_files: list[str]
    meta_tags: list[tuple[str, str]]
    limits: Limits
    watch: bool
    debug: bool

    def compile_options(self) -> CompileOptions:
        return CompileOptions(
            doctype=self.doctype,
            theme=self.theme,
            strict=self.strict,
            include_paths=tuple(self.include_paths),
            filename=str(self.input_file),
            variables=dict(self.variables),
            standalone=self.standalone,
            stylesheets=tuple(self.css_files),
            scripts=tuple(self.js_files),
            meta=tuple(self.meta_tags),
            limits=self.limits,
        )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser (separate function for testability)."""
    p = argparse.ArgumentParser(
        prog="dotdown",
        description="dotdown markup compiler",
    )
    p.add_argument("input", nargs="?", help="Input .dd file")
    p.add_argument("-o", "--output", help="Output file (default: stdout)")
    p.add_argument("--doctype", choices=("plain", "paged", "slides"), help="Default document type")
    p.add_argument("--theme", help="Default theme (default, darko, minimal)")
    p.add_argument("--fragment", action="store_true", help="Emit body markup only, no page shell")
    p.add_argument("--strict", action="store_true", help="Produce no output if any error occurs")
    p.add_argument(
        "-I",
        "--include-path",
        action="append",
        default=[],
        metavar="DIR",
        help="Extra directory searched by .include (repeatable)",
    )
    p.add_argument(
        "-V",
        "--var",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Set a document variable (repeatable)",
    )
    p.add_argument(
        "--css",
        action="append",
        default=[],
        metavar="FILE",
        help="Stylesheet to link (repeatable)",
    )
    p.add_argument(
        "--js",
        action="append",
        default=[],
        metavar="FILE",
        help="Script to load (repeatable)",
    )
    p.add_argument(
        "--meta",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Meta tag to add (repeatable)",
    )
    p.add_argument(
        "--config",
        metavar="FILE",
        help=f"Config file (default: auto-discover {CONFIG_NAME})",
    )
    p.add_argument("--watch", action="store_true", help="Watch for changes and recompile")
    p.add_argument("--debug", action="store_true", help="Dump the expanded tree to stderr")
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    p.add_argument(
        "--list-functions",
        action="store_true",
        help="List built-in functions and exit",
    )
    return p


def parse_var_arg(s: str) -> tuple[str, str]:
    """Parse a NAME=VALUE string into (name, value)."""
    if "=" not in s:
        raise argparse.ArgumentTypeError(f"invalid variable format (expected NAME=VALUE): {s}")
    name, _, value = s.partition("=")
    return name, value


def parse_meta_arg(s: str) -> tuple[str, str]:
    """Parse a NAME=VALUE string into (name, value) for meta tags."""
    if "=" not in s:
        raise argparse.ArgumentTypeError(f"invalid meta format (expected NAME=VALUE): {s}")
    name, _, value = s.partition("=")
    return name, value


def load_config(config_path: Path | None, input_dir: Path) -> dict[str, Any]:
    """Load a TOML config file, returning an empty dict on missing/absent file."""
    path = config_path if config_path is not None else input_dir / CONFIG_NAME

    if not path.is_file():
        return {}

    with open(path, "rb") as f:
        return tomllib.load(f)


def _table(config: dict[str, Any], name: str) -> dict[str, Any]:
    value = config.get(name)
    return value if isinstance(value, dict) else {}


def _file_list(config: dict[str, Any], name: str) -> list[str]:
    files = _table(config, name).get("files")
    if isinstance(files, list):
        return [str(f) for f in files]
    return []


def _limit(section: dict[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"[compile] {key} must be a non-negative integer, got {value!r}")
    return value


def resolve_options(args: argparse.Namespace) -> CliOptions:
    """Merge config file and CLI args into CliOptions.

    Precedence: defaults < config file < CLI flags.
    """
    input_file = Path(args.input)
    input_dir = input_file.parent
    if not input_dir.parts:
        input_dir = Path(".")

    config_path = Path(args.config) if args.config else None
    config = load_config(config_path, input_dir)
    section = _table(config, "compile")

    doctype = args.doctype or section.get("doctype")
    theme = args.theme or section.get("theme")
    strict = args.strict or bool(section.get("strict", False))

    # Include paths: config (relative to the input) < CLI
    include_paths: list[Path] = []
    cfg_paths = section.get("include_paths")
    if isinstance(cfg_paths, list):
        include_paths.extend(input_dir / str(p) for p in cfg_paths)
    include_paths.extend(Path(p) for p in args.include_path)

    # Variables: config < CLI
    variables: dict[str, object] = {str(k): v for k, v in _table(config, "variables").items()}
    for raw in args.var:
        name, value = parse_var_arg(raw)
        variables[name] = value

    css_files = _file_list(config, "css") + list(args.css)
    js_files = _file_list(config, "js") + list(args.js)

    # Meta tags: config < CLI
    meta_tags: list[tuple[str, str]] = [(str(k), str(v)) for k, v in _table(config, "meta").items()]
    for raw in args.meta:
        meta_tags.append(parse_meta_arg(raw))

    defaults = Limits()
    limits = Limits(
        max_call_depth=_limit(section, "max_call_depth", defaults.max_call_depth),
        max_include_depth=_limit(section, "max_include_depth", defaults.max_include_depth),
        max_iterations=_limit(section, "max_iterations", defaults.max_iterations),
    )

    output_file = Path(args.output) if args.output else None

    return CliOptions(
        input_file=input_file,
        output_file=output_file,
        doctype=str(doctype) if doctype else None,
        theme=str(theme) if theme else None,
        standalone=not args.fragment,
        strict=strict,
        include_paths=include_paths,
        variables=variables,
        css_files=css_files,
        js_files=js_files,
        meta_tags=meta_tags,
        limits=limits,
        watch=args.watch,
        debug=args.debug,
    )


def compile_file(options: CliOptions) -> CompileResult:
    """Read and compile the input file; OSError propagates."""
    from dotdown.compiler import compile_file as compile_path
    from dotdown.debug import dump_tree

    result = compile_path(options.input_file, options.compile_options())
    if options.debug and result.tree is not None:
        dump_tree(result.tree)
    return result


def report(result: CompileResult, options: CliOptions) -> None:
    """Print errors and warnings with source context to stderr."""
    try:
        source = options.input_file.read_text(encoding="utf-8")
    except OSError:
        source = ""
    filename = str(options.input_file)
    for error in result.errors:
        print(error.format(source, filename), file=sys.stderr)
    for warning in result.warnings:
        print(warning.format(source, filename), file=sys.stderr)


def write_output(html: str, options: CliOptions) -> None:
    if options.output_file:
        options.output_file.write_text(html, encoding="utf-8")
    else:
        sys.stdout.write(html)
        sys.stdout.flush()


def watch_loop(options: CliOptions) -> None:
    """Poll input file for changes, recompile on each modification."""
    last_mtime = 0.0
    print(f"Watching {options.input_file} for changes...", file=sys.stderr)
    try:
        while True:
            try:
                mtime = options.input_file.stat().st_mtime
            except OSError:
                time.sleep(0.5)
                continue
            if mtime != last_mtime:
                last_mtime = mtime
                try:
                    result = compile_file(options)
                except OSError as exc:
                    print(f"error: {exc}", file=sys.stderr)
                else:
                    report(result, options)
                    if result.html:
                        write_output(result.html, options)
                    print(f"Compiled {options.input_file}", file=sys.stderr)
            time.sleep(0.5)
    except KeyboardInterrupt:
        pass


def list_functions(file: TextIO | None = None) -> None:
    """Print each built-in's signature and documentation."""
    from dotdown.builtins import BUILTINS, documentation_of, list_function_names, signature_of

    out = file or sys.stdout
    for name in list_function_names():
        out.write(f".{signature_of(name)}\n")
        out.write(f"    {documentation_of(name)}\n")
        for example in BUILTINS[name].signature.examples:
            out.write(f"    e.g. {example}\n")


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns exit code (0/1/2). Does not call sys.exit()."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.list_functions:
        list_functions()
        return 0

    if args.input is None:
        print("error: an input file is required", file=sys.stderr)
        return 2

    try:
        options = resolve_options(args)
    except (argparse.ArgumentTypeError, ConfigError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except tomllib.TOMLDecodeError as exc:
        print(f"error: invalid config file: {exc}", file=sys.stderr)
        return 2

    if options.watch:
        watch_loop(options)
        return 0

    try:
        result = compile_file(options)
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    report(result, options)
    if result.html:
        write_output(result.html, options)
    logger.debug("%d error(s), %d warning(s)", len(result.errors), len(result.warnings))
    return 1 if result.errors else 0


def entry() -> None:
    sys.exit(main())

"""Compile entry point: parse, expand and render one document."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path

from dotdown.ast import Document
from dotdown.builtins import DOCTYPES
from dotdown.environment import ExecutionEnvironment, Limits
from dotdown.errors import CompileError, CompileWarning, ErrorKind
from dotdown.expander import expand, extract_metadata
from dotdown.files import FileReader
from dotdown.parser import parse
from dotdown.render import RenderOptions, render

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CompileOptions:
    """Caller-supplied settings; document metadata overrides doctype and theme."""

    doctype: str | None = None
    theme: str | None = None
    output_format: str = "html"
    strict: bool = False
    include_paths: tuple[Path, ...] = ()
    filename: str = "input.dd"
    variables: Mapping[str, object] = field(default_factory=dict)
    standalone: bool = True
    stylesheets: tuple[str, ...] = ()
    scripts: tuple[str, ...] = ()
    meta: tuple[tuple[str, str], ...] = ()
    files: FileReader | None = None
    limits: Limits = field(default_factory=Limits)
    now: datetime | None = None


@dataclass(frozen=True, slots=True)
class DocumentMetadata:
    title: str = "Document"
    author: str | None = None
    language: str = "en"
    doctype: str = "plain"
    theme: str = "default"
    layout: str | None = None
    created_at: datetime | None = field(default=None, compare=False)

    @classmethod
    def from_mapping(cls, values: Mapping[str, str], created_at: datetime | None = None) -> DocumentMetadata:
        return cls(
            title=values.get("title") or "Document",
            author=values.get("author") or None,
            language=values.get("language") or "en",
            doctype=values.get("doctype") or "plain",
            theme=values.get("theme") or "default",
            layout=values.get("layout") or None,
            created_at=created_at,
        )


@dataclass
class CompileResult:
    """Everything compile() produces; `html` is empty when compilation aborted."""

    html: str
    metadata: DocumentMetadata
    errors: list[CompileError] = field(default_factory=list)
    warnings: list[CompileWarning] = field(default_factory=list)
    tree: Document | None = None

    @property
    def ok(self) -> bool:
        return not self.errors


def compile(source: str, options: CompileOptions | None = None) -> CompileResult:
    """Compile dotdown *source* to HTML.  Never raises.

    By default errors degrade gracefully and best-effort HTML is still
    returned; with ``strict`` any error yields empty HTML.  An unexpected
    exception becomes a single runtime error with the warnings gathered
    up to that point.
    """
    run = _Compilation(source, options or CompileOptions())
    try:
        return run.execute()
    except Exception as exc:
        logger.exception("unexpected failure while compiling %s", run.options.filename)
        return CompileResult(
            html="",
            metadata=DocumentMetadata(created_at=run.created_at),
            errors=[CompileError(f"Compilation failed: {exc}", ErrorKind.RUNTIME)],
            warnings=run.warnings,
        )


def compile_file(path: Path | str, options: CompileOptions | None = None) -> CompileResult:
    """Read *path* as UTF-8 and compile it.  OSError propagates to the caller."""
    path = Path(path)
    source = path.read_text(encoding="utf-8")
    return compile(source, replace(options or CompileOptions(), filename=str(path)))


class _Compilation:
    """State of one compile() call; nothing here is shared between calls."""

    def __init__(self, source: str, options: CompileOptions) -> None:
        self.source = source
        self.options = options
        self.errors: list[CompileError] = []
        self.env: ExecutionEnvironment | None = None
        self.created_at = options.now or datetime.now()

    @property
    def warnings(self) -> list[CompileWarning]:
        return list(self.env.warnings) if self.env is not None else []

    def execute(self) -> CompileResult:
        opts = self.options

        logger.debug("parsing %s", opts.filename)
        parsed = parse(self.source, opts.filename)
        self.errors.extend(CompileError(e.message, ErrorKind.SYNTAX, e.span) for e in parsed.errors)
        if opts.strict and self.errors:
            return self._aborted(parsed.tree)

        self.env = env = ExecutionEnvironment.create(
            self.source,
            opts.filename,
            include_paths=opts.include_paths,
            files=opts.files,
            limits=opts.limits,
            variables=opts.variables,
            now=self.created_at,
        )

        defaults = {
            "title": "Document",
            "language": "en",
            "doctype": opts.doctype or "plain",
            "theme": opts.theme or "default",
        }
        metadata = extract_metadata(parsed.tree, defaults)
        env.metadata.update(metadata)

        logger.debug("expanding %s", opts.filename)
        tree = expand(parsed.tree, env)
        self.errors.extend(env.errors)
        if opts.strict and self.errors:
            return self._aborted(tree)

        for key, value in env.metadata.items():
            if key == "doctype" and value not in DOCTYPES:
                continue
            metadata[key] = value
        doc_meta = DocumentMetadata.from_mapping(metadata, self.created_at)

        logger.debug("rendering %s as %s", opts.filename, doc_meta.doctype)
        html = render(tree, self._render_options(doc_meta))
        return CompileResult(html, doc_meta, list(self.errors), self.warnings, tree)

    def _render_options(self, meta: DocumentMetadata) -> RenderOptions:
        opts = self.options
        return RenderOptions(
            doctype=meta.doctype,
            theme=meta.theme,
            layout=meta.layout,
            title=meta.title,
            author=meta.author,
            language=meta.language,
            standalone=opts.standalone,
            output_format=opts.output_format,
            stylesheets=tuple(opts.stylesheets),
            scripts=tuple(opts.scripts),
            meta=tuple(opts.meta),
        )

    def _aborted(self, tree: Document) -> CompileResult:
        logger.debug("strict mode: %d error(s), no output", len(self.errors))
        return CompileResult("", DocumentMetadata(created_at=self.created_at), list(self.errors), self.warnings, tree)

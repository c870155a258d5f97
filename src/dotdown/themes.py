"""Inlined stylesheets and client-side dependencies for standalone output."""

from __future__ import annotations

THEMES = ("default", "darko", "minimal")

KATEX_VERSION = "0.16.8"
HIGHLIGHT_VERSION = "11.9.0"
REVEAL_VERSION = "4.6.1"
MERMAID_VERSION = "10.6.1"

_CDN = "https://cdn.jsdelivr.net/npm"

BASE_CSS = """\
* { box-sizing: border-box; }
body {
  font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
  line-height: 1.6;
  color: #333;
  margin: 0;
  padding: 0;
}
.document-content { max-width: 1200px; margin: 0 auto; padding: 2rem; }
h1, h2, h3, h4, h5, h6 { margin: 2rem 0 1rem; font-weight: 600; line-height: 1.25; }
h1 { font-size: 2.5rem; }
h2 { font-size: 2rem; }
h3 { font-size: 1.5rem; }
h4 { font-size: 1.25rem; }
h5 { font-size: 1rem; }
h6 { font-size: 0.875rem; }
p { margin-bottom: 1rem; }
code {
  background-color: #f6f8fa;
  border-radius: 3px;
  font-family: SFMono-Regular, Consolas, "Liberation Mono", Menlo, monospace;
  font-size: 85%;
  padding: 0.2em 0.4em;
}
pre {
  background-color: #f6f8fa;
  border-radius: 6px;
  font-size: 85%;
  line-height: 1.45;
  margin: 1rem 0;
  overflow: auto;
  padding: 1rem;
}
pre code { background-color: transparent; border: 0; padding: 0; }
blockquote { border-left: 4px solid #dfe2e5; color: #6a737d; margin: 0 0 1rem; padding: 0 1rem; }
.quote-note { border-left-color: #0969da; background-color: #f6f8ff; }
.quote-tip { border-left-color: #1f883d; background-color: #f6ffed; }
.quote-important { border-left-color: #8250df; background-color: #fbf0ff; }
.quote-warning { border-left-color: #d1242f; background-color: #fff8f0; }
.quote-caution { border-left-color: #bf8700; background-color: #fffbea; }
.quote-info { border-left-color: #8250df; background-color: #fbf0ff; }
ul, ol { margin-bottom: 1rem; padding-left: 2em; }
li { margin-bottom: 0.25em; }
table { border-collapse: collapse; border-spacing: 0; margin-bottom: 1rem; width: 100%; }
th, td { border: 1px solid #d0d7de; padding: 6px 13px; }
th { background-color: #f6f8fa; font-weight: 600; }
.text-left { text-align: left; }
.text-center { text-align: center; }
.text-right { text-align: right; }
img { max-width: 100%; height: auto; }
a { color: #0969da; text-decoration: none; }
a:hover { text-decoration: underline; }
"""

_THEME_CSS: dict[str, str] = {
    "darko": """\
body { background: linear-gradient(135deg, #1a1a1a 0%, #2d2d30 100%); color: #fff; }
.document-content { background: rgba(255, 255, 255, 0.05); border-radius: 8px; }
h1, h2, h3, h4, h5, h6 { color: #fff; }
code { background-color: rgba(255, 255, 255, 0.1); color: #fff; }
pre { background-color: rgba(0, 0, 0, 0.3); border: 1px solid rgba(255, 255, 255, 0.1); }
blockquote { border-left-color: rgba(255, 255, 255, 0.3); color: rgba(255, 255, 255, 0.8); }
th { background-color: rgba(255, 255, 255, 0.08); }
a { color: #58a6ff; }
""",
    "minimal": """\
body {
  font-family: Georgia, Times, serif;
  font-size: 18px;
  line-height: 1.8;
  max-width: 800px;
  margin: 0 auto;
  padding: 3rem 2rem;
}
h1, h2, h3, h4, h5, h6 { font-family: -apple-system, BlinkMacSystemFont, sans-serif; font-weight: 300; margin-top: 3rem; }
h1 { border-bottom: 1px solid #eee; padding-bottom: 1rem; }
.document-content { padding: 0; }
""",
}

LAYOUT_CSS = """\
.dd-row {
  display: flex;
  flex-wrap: wrap;
  gap: var(--gap, 1rem);
  align-items: flex-start;
  margin: 1rem 0;
}
.dd-column {
  display: flex;
  flex-direction: column;
  gap: var(--gap, 1rem);
  align-items: flex-start;
  margin: 1rem 0;
}
.dd-grid {
  display: grid;
  grid-template-columns: repeat(var(--columns, 2), 1fr);
  gap: var(--gap, 1rem);
  margin: 1rem 0;
}
.dd-center {
  display: flex;
  justify-content: center;
  align-items: center;
  text-align: center;
  margin: 1rem 0;
}
.dd-row.alignment-center { align-items: center; }
.dd-row.alignment-end { align-items: flex-end; }
.dd-row.alignment-stretch { align-items: stretch; }
.dd-column.cross-center { align-items: center; }
.dd-column.cross-end { align-items: flex-end; }
.dd-column.cross-stretch { align-items: stretch; }
"""

# layout names accepted by `.theme {x} layout:{...}`
_LAYOUT_VARIANTS: dict[str, str] = {
    "standard": "",
    "wide": ".document-content { max-width: none; }\n",
    "narrow": ".document-content { max-width: 720px; }\n",
}

_DOCTYPE_CSS: dict[str, str] = {
    "slides": """\
.reveal .slides section { text-align: left; }
.reveal .slides section h1 { margin-top: 0; }
""",
    "paged": """\
.paged-document {
  max-width: 210mm;
  margin: 0 auto;
  padding: 25mm;
  background: white;
  box-shadow: 0 0 10px rgba(0, 0, 0, 0.1);
}
@media print {
  .paged-document { margin: 0; padding: 0; box-shadow: none; }
  h1, h2, h3, h4, h5, h6 { page-break-after: avoid; }
  img, table, pre { page-break-inside: avoid; }
}
""",
}

PRINT_CSS = """\
@page { size: A4; margin: 20mm; }
@media print {
  body { color: #000; background: white; }
  a { color: inherit; }
  pre, blockquote, table { page-break-inside: avoid; }
}
"""


def theme_css(theme: str | None) -> str:
    """Palette rules for *theme*; unknown and default themes add nothing."""
    return _THEME_CSS.get(theme or "default", "")


def layout_css(layout: str | None = None) -> str:
    return LAYOUT_CSS + _LAYOUT_VARIANTS.get(layout or "standard", "")


def doctype_css(doctype: str | None) -> str:
    return _DOCTYPE_CSS.get(doctype or "plain", "")


def stylesheet(
    theme: str | None,
    doctype: str | None,
    layout: str | None = None,
    output_format: str = "html",
) -> str:
    """Full inlined stylesheet for a standalone document."""
    parts = [BASE_CSS, theme_css(theme), layout_css(layout), doctype_css(doctype)]
    if output_format == "pdf":
        parts.append(PRINT_CSS)
    return "".join(parts)


def dependency_links(doctype: str | None) -> list[str]:
    """`<link>` tags for client-side stylesheets."""
    links = [
        f'<link rel="stylesheet" href="{_CDN}/katex@{KATEX_VERSION}/dist/katex.min.css">',
        f'<link rel="stylesheet" href="{_CDN}/highlight.js@{HIGHLIGHT_VERSION}/styles/github.min.css">',
    ]
    if doctype == "slides":
        links.append(f'<link rel="stylesheet" href="{_CDN}/reveal.js@{REVEAL_VERSION}/dist/reveal.css">')
        links.append(
            f'<link rel="stylesheet" href="{_CDN}/reveal.js@{REVEAL_VERSION}/dist/theme/white.css">'
        )
    return links


def dependency_scripts(doctype: str | None, diagrams: bool = False) -> list[str]:
    """`<script>` tags for client-side renderers."""
    scripts = [
        f'<script src="{_CDN}/katex@{KATEX_VERSION}/dist/katex.min.js"></script>',
        f'<script src="{_CDN}/highlight.js@{HIGHLIGHT_VERSION}/lib/highlight.min.js"></script>',
    ]
    if diagrams:
        scripts.append(f'<script src="{_CDN}/mermaid@{MERMAID_VERSION}/dist/mermaid.min.js"></script>')
    if doctype == "slides":
        scripts.append(f'<script src="{_CDN}/reveal.js@{REVEAL_VERSION}/dist/reveal.js"></script>')
    return scripts


def init_script(doctype: str | None, diagrams: bool = False) -> str:
    """Inline script that starts the client-side renderers after load."""
    lines = [
        "<script>",
        'document.addEventListener("DOMContentLoaded", function () {',
        '  if (window.hljs) { hljs.highlightAll(); }',
        "  if (window.katex) {",
        '    document.querySelectorAll(".math").forEach(function (el) {',
        "      katex.render(el.textContent, el, {",
        '        displayMode: el.classList.contains("math-display"),',
        "        throwOnError: false",
        "      });",
        "    });",
        "  }",
    ]
    if diagrams:
        lines.append("  if (window.mermaid) { mermaid.initialize({ startOnLoad: false }); mermaid.run(); }")
    if doctype == "slides":
        lines.append("  if (window.Reveal) { Reveal.initialize({ hash: true }); }")
    lines.append("});")
    lines.append("</script>")
    return "\n".join(lines)

"""dotdown markup compiler."""

from __future__ import annotations

from dotdown.compiler import CompileOptions, CompileResult, compile, compile_file
from dotdown.render import RenderOptions, render

__version__ = "0.1.0"

__all__ = [
    "CompileOptions",
    "CompileResult",
    "RenderOptions",
    "__version__",
    "compile",
    "compile_file",
    "render",
]

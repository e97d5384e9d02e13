"""Sketch → TikZ code generation helpers."""

from .generator import TikzOptions, generate_tikz_code, generate_tikz_document
from .utils import latex_escape_keep_math

__all__ = [
    "TikzOptions",
    "generate_tikz_code",
    "generate_tikz_document",
    "latex_escape_keep_math",
]

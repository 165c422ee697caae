"""Backends for cssnpm output generation (CSS text, source maps)."""

from .css_generator import generate_css, generate_css_with_map, save_css_file
from .sourcemap import SourceMap

__all__ = ["SourceMap", "generate_css", "generate_css_with_map", "save_css_file"]

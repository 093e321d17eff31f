"""Glyph caching and line layout on top of FreeType."""

from .core import (
    BackendInitError,
    FontClosedError,
    FontHandle,
    FontLoadError,
    Glyph,
    GlyphCache,
    GlyphKey,
    GlyphMetrics,
    InvalidSize,
    JsonlEventSink,
    KerningLookup,
    LayoutEngine,
    LayoutResult,
    PositionedGlyph,
    RasterizeError,
    RasterizedGlyphView,
    RenderConfig,
    UnsupportedGlyph,
    copy_glyph_view,
    layout,
    load_config,
)
from .render import TextBounds, measure_layout, render_layout

__all__ = [
    "BackendInitError",
    "FontClosedError",
    "FontHandle",
    "FontLoadError",
    "Glyph",
    "GlyphCache",
    "GlyphKey",
    "GlyphMetrics",
    "InvalidSize",
    "JsonlEventSink",
    "KerningLookup",
    "LayoutEngine",
    "LayoutResult",
    "PositionedGlyph",
    "RasterizeError",
    "RasterizedGlyphView",
    "RenderConfig",
    "TextBounds",
    "UnsupportedGlyph",
    "copy_glyph_view",
    "layout",
    "load_config",
    "measure_layout",
    "render_layout",
]

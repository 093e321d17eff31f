from .errors import (
    BackendInitError,
    FontClosedError,
    FontLoadError,
    InvalidSize,
    RasterizeError,
    UnsupportedGlyph,
)
from .types import (
    RENDER_MODES,
    Glyph,
    GlyphKey,
    GlyphMetrics,
    LayoutResult,
    PixelMode,
    PositionedGlyph,
    RasterizedGlyphView,
    RenderMode,
)
from .audit import JsonlEventSink
from .config import RenderConfig, load_config
from .font_handle import FontHandle
from .glyph_cache import GlyphCache, copy_glyph_view
from .kerning import KerningLookup
from .layout_engine import LayoutEngine, layout

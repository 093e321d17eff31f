from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

import numpy as np


RenderMode = Literal["gray", "mono", "lcd", "color"]
PixelMode = Literal["gray", "mono", "lcd", "bgra"]

RENDER_MODES: tuple[RenderMode, ...] = ("gray", "mono", "lcd", "color")


@dataclass(frozen=True)
class GlyphKey:
    """Cache address of one rasterized glyph.

    Pixel size is part of the key, never part of the font identity, so a size
    change always addresses a different entry.
    """

    font_id: int
    codepoint: int
    pixel_size: int


@dataclass(frozen=True)
class GlyphMetrics:
    advance: tuple[int, int]
    bearing: tuple[int, int]


@dataclass(frozen=True)
class RasterizedGlyphView:
    """Transient result of `FontHandle.rasterize`.

    `buffer` may alias memory owned by the backend's glyph slot. It is only
    valid until the next call on the same font handle and must be copied
    (see `glyph_cache.copy_glyph_view`) before anything else touches the font.
    """

    buffer: np.ndarray
    width: int
    rows: int
    pitch: int
    pixel_mode: PixelMode
    bearing: tuple[int, int]
    advance: tuple[int, int]


@dataclass(frozen=True, eq=False)
class Glyph:
    """Immutable, self-contained rasterized glyph.

    `bitmap` is a private read-only copy: `(h, w)` coverage for gray and mono,
    `(h, w, 3)` per-channel coverage for lcd, `(h, w, 4)` straight RGBA for
    colour glyphs.
    """

    bitmap: np.ndarray
    bearing: tuple[int, int]
    advance: tuple[int, int]
    pixel_mode: PixelMode = "gray"
    is_placeholder: bool = False

    @property
    def width(self) -> int:
        return int(self.bitmap.shape[1])

    @property
    def height(self) -> int:
        return int(self.bitmap.shape[0])

    @property
    def channels(self) -> int:
        return 1 if self.bitmap.ndim == 2 else int(self.bitmap.shape[2])

    @classmethod
    def placeholder(cls, width_px: int) -> "Glyph":
        if width_px < 0:
            raise ValueError("placeholder width must be >= 0")
        bitmap = np.zeros((0, width_px), dtype=np.uint8)
        bitmap.flags.writeable = False
        return cls(bitmap=bitmap, bearing=(0, 0), advance=(width_px, 0), is_placeholder=True)


@dataclass(frozen=True)
class PositionedGlyph:
    glyph: Glyph
    pen_x: int
    pen_y: int
    codepoint: int

    @property
    def bitmap(self) -> np.ndarray:
        return self.glyph.bitmap

    @property
    def width(self) -> int:
        return self.glyph.width

    @property
    def height(self) -> int:
        return self.glyph.height

    @property
    def is_placeholder(self) -> bool:
        return self.glyph.is_placeholder


@dataclass(frozen=True)
class LayoutResult:
    glyphs: tuple[PositionedGlyph, ...]
    total_advance: int
    line_count: int
    line_height: int
    substitutions: tuple[int, ...] = ()

    @property
    def substitution_count(self) -> int:
        return len(self.substitutions)

    @property
    def height(self) -> int:
        return self.line_count * self.line_height

    def records(self) -> list[dict[str, Any]]:
        """Flat records for a compositing stage: bitmap, size and pen position."""
        return [
            {
                "bitmap": placed.bitmap,
                "width": placed.width,
                "height": placed.height,
                "pen_x": placed.pen_x,
                "pen_y": placed.pen_y,
            }
            for placed in self.glyphs
        ]

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import numpy as np

from glyphline_core.core.types import PixelMode, RenderMode


@dataclass(frozen=True)
class GlyphSlot:
    """Snapshot of the face's single glyph slot after `load_glyph`.

    `buffer` is a view into backend memory and is overwritten by the next
    `load_glyph` on the same face. Metric fields are 26.6 fixed point except
    `bitmap_left`/`bitmap_top`, which are whole pixels.
    """

    buffer: np.ndarray
    width: int
    rows: int
    pitch: int
    pixel_mode: PixelMode
    bitmap_left: int
    bitmap_top: int
    advance_x: int
    advance_y: int
    bearing_x: int
    bearing_y: int


class FaceBackend(Protocol):
    family_name: str
    style_name: str

    @property
    def has_kerning(self) -> bool:
        ...

    def set_pixel_size(self, px: int) -> None:
        ...

    def char_index(self, codepoint: int) -> int:
        ...

    def load_glyph(self, glyph_index: int, *, render: bool) -> None:
        ...

    def slot(self) -> GlyphSlot:
        ...

    def kerning(self, left_index: int, right_index: int) -> tuple[int, int]:
        ...

    def size_metrics(self) -> tuple[int, int, int]:
        ...

    def close(self) -> None:
        ...


class RasterBackend(Protocol):
    """Process-wide backend context injected into font construction."""

    def load_face(self, data: bytes, *, face_index: int, render_mode: RenderMode) -> FaceBackend:
        ...

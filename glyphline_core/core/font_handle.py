from __future__ import annotations

import itertools
import logging
import math
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import FontClosedError, FontLoadError, InvalidSize, UnsupportedGlyph
from .types import RENDER_MODES, GlyphKey, GlyphMetrics, RasterizedGlyphView, RenderMode

if TYPE_CHECKING:
    from glyphline_core.backend.base import FaceBackend, RasterBackend


LOGGER = logging.getLogger(__name__)
DEFAULT_PIXEL_SIZE = 16
MAX_CODEPOINT = 0x10FFFF

_FONT_IDS = itertools.count(1)


class FontHandle:
    """One loaded font face and its current pixel size.

    Metrics, rasterization and kerning all take codepoints; glyph indices stay
    inside the backend. A handle is not safe for concurrent use because the
    backend keeps a single glyph slot per face: share it across threads only
    behind a caller-held lock.
    """

    def __init__(
        self,
        face: FaceBackend,
        *,
        pixel_size: int = DEFAULT_PIXEL_SIZE,
        render_mode: RenderMode = "gray",
    ) -> None:
        if render_mode not in RENDER_MODES:
            raise ValueError(f"unsupported render mode: {render_mode}")
        self._face = face
        self._font_id = next(_FONT_IDS)
        self._render_mode: RenderMode = render_mode
        self._pixel_size = 0
        self._closed = False
        self.set_pixel_size(pixel_size)

    @classmethod
    def load(
        cls,
        source: bytes | bytearray | str | Path,
        *,
        library: RasterBackend,
        face_index: int = 0,
        pixel_size: int = DEFAULT_PIXEL_SIZE,
        render_mode: RenderMode = "gray",
    ) -> "FontHandle":
        if render_mode not in RENDER_MODES:
            raise ValueError(f"unsupported render mode: {render_mode}")
        if face_index < 0:
            raise ValueError("face_index must be >= 0")
        data = _read_font_source(source)
        face = library.load_face(data, face_index=face_index, render_mode=render_mode)
        try:
            handle = cls(face, pixel_size=pixel_size, render_mode=render_mode)
        except Exception:
            face.close()
            raise
        LOGGER.debug(
            "loaded font %s %s as font_id=%d (%d bytes, %s)",
            handle.family_name,
            handle.style_name,
            handle.font_id,
            len(data),
            render_mode,
        )
        return handle

    @property
    def font_id(self) -> int:
        return self._font_id

    @property
    def pixel_size(self) -> int:
        return self._pixel_size

    @property
    def render_mode(self) -> RenderMode:
        return self._render_mode

    @property
    def family_name(self) -> str:
        return self._face.family_name

    @property
    def style_name(self) -> str:
        return self._face.style_name

    @property
    def closed(self) -> bool:
        return self._closed

    def set_pixel_size(self, px: int) -> None:
        if (
            isinstance(px, bool)
            or not isinstance(px, (int, float))
            or not math.isfinite(px)
            or px <= 0
            or int(px) != px
        ):
            raise InvalidSize(f"pixel size must be a positive integer, got {px!r}")
        self._require_open()
        size = int(px)
        self._face.set_pixel_size(size)
        if size != self._pixel_size:
            LOGGER.debug("font_id=%d pixel size %d -> %d", self._font_id, self._pixel_size, size)
        self._pixel_size = size

    def set_point_size(self, points: float, dpi: int = 72) -> None:
        if not math.isfinite(dpi) or dpi <= 0:
            raise InvalidSize(f"dpi must be > 0, got {dpi!r}")
        if not math.isfinite(points) or points <= 0:
            raise InvalidSize(f"point size must be > 0, got {points!r}")
        self.set_pixel_size(int(round(points * dpi / 72.0)))

    def glyph_key(self, codepoint: int | str) -> GlyphKey:
        return GlyphKey(self._font_id, _coerce_codepoint(codepoint), self._pixel_size)

    def metrics(self, codepoint: int | str) -> GlyphMetrics:
        index = self._glyph_index(codepoint)
        self._face.load_glyph(index, render=False)
        slot = self._face.slot()
        return GlyphMetrics(
            advance=(_f26dot6_to_px(slot.advance_x), _f26dot6_to_px(slot.advance_y)),
            bearing=(_f26dot6_to_px(slot.bearing_x), _f26dot6_to_px(slot.bearing_y)),
        )

    def rasterize(self, codepoint: int | str) -> RasterizedGlyphView:
        """Render one glyph through the backend's shared slot.

        The returned view aliases backend memory and is invalidated by the
        next call on this handle.
        """
        index = self._glyph_index(codepoint)
        self._face.load_glyph(index, render=True)
        slot = self._face.slot()
        return RasterizedGlyphView(
            buffer=slot.buffer,
            width=slot.width,
            rows=slot.rows,
            pitch=slot.pitch,
            pixel_mode=slot.pixel_mode,
            bearing=(slot.bitmap_left, slot.bitmap_top),
            advance=(_f26dot6_to_px(slot.advance_x), _f26dot6_to_px(slot.advance_y)),
        )

    def kerning(self, left: int | str, right: int | str) -> int:
        """Horizontal adjustment from the legacy kerning table; 0 when absent.

        OpenType GPOS pair positioning is not consulted.
        """
        self._require_open()
        if not self._face.has_kerning:
            return 0
        left_index = self._face.char_index(_coerce_codepoint(left))
        right_index = self._face.char_index(_coerce_codepoint(right))
        if left_index == 0 or right_index == 0:
            return 0
        dx, _ = self._face.kerning(left_index, right_index)
        return _f26dot6_to_px(dx)

    def line_metrics(self) -> tuple[int, int, int]:
        """(ascender, descender, line height) in pixels; descender is a positive depth."""
        self._require_open()
        ascender, descender, height = self._face.size_metrics()
        return (
            _f26dot6_to_px(ascender),
            abs(_f26dot6_to_px(descender)),
            max(1, _f26dot6_to_px(height)),
        )

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._face.close()

    def __enter__(self) -> "FontHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"FontHandle(font_id={self._font_id}, family={self.family_name!r}, "
            f"style={self.style_name!r}, pixel_size={self._pixel_size})"
        )

    def _glyph_index(self, codepoint: int | str) -> int:
        self._require_open()
        cp = _coerce_codepoint(codepoint)
        index = self._face.char_index(cp)
        if index == 0:
            raise UnsupportedGlyph(cp)
        return index

    def _require_open(self) -> None:
        if self._closed:
            raise FontClosedError(f"font_id={self._font_id} is closed")


def _read_font_source(source: bytes | bytearray | str | Path) -> bytes:
    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
    elif isinstance(source, (str, Path)):
        try:
            data = Path(source).read_bytes()
        except OSError as exc:
            raise FontLoadError(f"cannot read font file {source}: {exc}") from exc
    else:
        raise TypeError(f"font source must be bytes or a path, got {type(source).__name__}")
    if not data:
        raise FontLoadError("font data is empty")
    return data


def _coerce_codepoint(codepoint: int | str) -> int:
    if isinstance(codepoint, str):
        if len(codepoint) != 1:
            raise ValueError(f"expected a single character, got {codepoint!r}")
        return ord(codepoint)
    if isinstance(codepoint, bool) or not isinstance(codepoint, int):
        raise TypeError(f"codepoint must be int or str, got {type(codepoint).__name__}")
    if codepoint < 0 or codepoint > MAX_CODEPOINT:
        raise ValueError(f"codepoint out of range: {codepoint}")
    return codepoint


def _f26dot6_to_px(value: int) -> int:
    return (int(value) + 32) >> 6

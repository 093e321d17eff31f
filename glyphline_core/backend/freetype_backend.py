from __future__ import annotations

import ctypes
import io
import logging
import threading
from typing import Callable

import freetype
import freetype.raw
import numpy as np

from glyphline_core.core.errors import BackendInitError, FontLoadError, InvalidSize, RasterizeError
from glyphline_core.core.types import PixelMode, RenderMode

from .base import GlyphSlot


LOGGER = logging.getLogger(__name__)

_PIXEL_MODES: dict[int, PixelMode] = {
    freetype.FT_PIXEL_MODE_MONO: "mono",
    freetype.FT_PIXEL_MODE_GRAY: "gray",
    freetype.FT_PIXEL_MODE_LCD: "lcd",
    freetype.FT_PIXEL_MODE_BGRA: "bgra",
}

_LOAD_RENDER = freetype.FT_LOAD_FLAGS["FT_LOAD_RENDER"]
_LOAD_NO_BITMAP = freetype.FT_LOAD_FLAGS["FT_LOAD_NO_BITMAP"]

_RENDER_FLAGS: dict[str, int] = {
    "gray": _LOAD_RENDER | freetype.FT_LOAD_TARGETS["FT_LOAD_TARGET_NORMAL"],
    "mono": _LOAD_RENDER | freetype.FT_LOAD_TARGETS["FT_LOAD_TARGET_MONO"],
    "lcd": _LOAD_RENDER | freetype.FT_LOAD_TARGETS["FT_LOAD_TARGET_LCD"],
    "color": _LOAD_RENDER | freetype.FT_LOAD_FLAGS["FT_LOAD_COLOR"],
}


class FreeTypeLibrary:
    """Application-owned FreeType context.

    `init` and `close` each take effect once; fonts are only loadable between
    them. Faces opened through the library are closed with it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handle = None
        self._closed = False
        self._faces: list[FreeTypeFace] = []

    @property
    def initialized(self) -> bool:
        return self._handle is not None and not self._closed

    @property
    def open_faces(self) -> int:
        with self._lock:
            return len(self._faces)

    def init(self) -> "FreeTypeLibrary":
        with self._lock:
            if self._closed:
                raise BackendInitError("FreeType library was already torn down")
            if self._handle is not None:
                return self
            try:
                self._handle = freetype.get_handle()
            except freetype.FT_Exception as exc:
                raise BackendInitError(f"FreeType initialisation failed: {exc}") from exc
            version = ".".join(str(part) for part in freetype.version())
            LOGGER.debug("FreeType %s initialised", version)
        return self

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            faces = list(self._faces)
            self._faces.clear()
        for face in faces:
            face.close()

    def load_face(self, data: bytes, *, face_index: int = 0, render_mode: RenderMode = "gray") -> "FreeTypeFace":
        if not self.initialized:
            raise BackendInitError("FreeType library is not initialised")
        if render_mode not in _RENDER_FLAGS:
            raise ValueError(f"unsupported render mode: {render_mode}")
        try:
            face = freetype.Face(io.BytesIO(bytes(data)), index=face_index)
        except freetype.FT_Exception as exc:
            raise FontLoadError(f"backend could not parse font data: {exc}") from exc
        wrapped = FreeTypeFace(face, render_mode=render_mode, on_close=self._forget)
        with self._lock:
            self._faces.append(wrapped)
        return wrapped

    def _forget(self, face: "FreeTypeFace") -> None:
        with self._lock:
            if face in self._faces:
                self._faces.remove(face)

    def __enter__(self) -> "FreeTypeLibrary":
        return self.init()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class FreeTypeFace:
    def __init__(
        self,
        face: freetype.Face,
        *,
        render_mode: RenderMode = "gray",
        on_close: Callable[["FreeTypeFace"], None] | None = None,
    ) -> None:
        self._face: freetype.Face | None = face
        self._on_close = on_close
        self._render_flags = _RENDER_FLAGS[render_mode]
        self._render_mode = render_mode
        self._mode_mismatch_logged = False
        self.family_name = _decode_name(face.family_name)
        self.style_name = _decode_name(face.style_name)

    @property
    def has_kerning(self) -> bool:
        return bool(self._require_face().has_kerning)

    def set_pixel_size(self, px: int) -> None:
        try:
            self._require_face().set_pixel_sizes(px, px)
        except freetype.FT_Exception as exc:
            raise InvalidSize(f"backend rejected pixel size {px}: {exc}") from exc

    def char_index(self, codepoint: int) -> int:
        return int(self._require_face().get_char_index(codepoint))

    def load_glyph(self, glyph_index: int, *, render: bool) -> None:
        flags = self._render_flags if render else _LOAD_NO_BITMAP
        try:
            self._require_face().load_glyph(glyph_index, flags)
        except freetype.FT_Exception as exc:
            raise RasterizeError(f"FT_Load_Glyph failed for index {glyph_index}: {exc}") from exc

    def slot(self) -> GlyphSlot:
        glyph = self._require_face().glyph
        raw = glyph.bitmap._FT_Bitmap
        size = int(raw.rows) * abs(int(raw.pitch))
        if size == 0 or not raw.buffer:
            buffer = np.zeros(0, dtype=np.uint8)
            pixel_mode: PixelMode = _PIXEL_MODES.get(raw.pixel_mode, "gray")
        else:
            pixel_mode_or_none = _PIXEL_MODES.get(raw.pixel_mode)
            if pixel_mode_or_none is None:
                raise RasterizeError(f"unsupported FreeType pixel mode: {raw.pixel_mode}")
            pixel_mode = pixel_mode_or_none
            if self._render_mode in ("mono", "lcd") and pixel_mode != self._render_mode and not self._mode_mismatch_logged:
                self._mode_mismatch_logged = True
                LOGGER.warning(
                    "%s %s: requested %s rendering but FreeType produced %s bitmaps",
                    self.family_name,
                    self.style_name,
                    self._render_mode,
                    pixel_mode,
                )
            # Zero-copy view over the slot; FreeType reuses this memory on the next load.
            buffer = np.ctypeslib.as_array(raw.buffer, shape=(size,))
        metrics = glyph.metrics
        return GlyphSlot(
            buffer=buffer,
            width=int(raw.width),
            rows=int(raw.rows),
            pitch=int(raw.pitch),
            pixel_mode=pixel_mode,
            bitmap_left=int(glyph.bitmap_left),
            bitmap_top=int(glyph.bitmap_top),
            advance_x=int(glyph.advance.x),
            advance_y=int(glyph.advance.y),
            bearing_x=int(metrics.horiBearingX),
            bearing_y=int(metrics.horiBearingY),
        )

    def kerning(self, left_index: int, right_index: int) -> tuple[int, int]:
        face = self._require_face()
        vector = freetype.FT_Vector(0, 0)
        error = freetype.raw.FT_Get_Kerning(
            face._FT_Face,
            left_index,
            right_index,
            freetype.FT_KERNING_DEFAULT,
            ctypes.byref(vector),
        )
        if error:
            raise RasterizeError(f"FT_Get_Kerning failed with error {error}")
        return int(vector.x), int(vector.y)

    def size_metrics(self) -> tuple[int, int, int]:
        size = self._require_face().size
        return int(size.ascender), int(size.descender), int(size.height)

    def close(self) -> None:
        if self._face is None:
            return
        # freetype-py calls FT_Done_Face when the Face object is collected.
        self._face = None
        if self._on_close is not None:
            self._on_close(self)

    def _require_face(self) -> freetype.Face:
        if self._face is None:
            raise RasterizeError("FreeType face is closed")
        return self._face


def _decode_name(value: bytes | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Any, Callable

import numpy as np

from .types import Glyph, GlyphKey, RasterizedGlyphView

if TYPE_CHECKING:
    from .font_handle import FontHandle


LOGGER = logging.getLogger(__name__)
EventLogger = Callable[[dict[str, object]], None]


def copy_glyph_view(view: RasterizedGlyphView) -> Glyph:
    """Detach a transient rasterization result from backend memory.

    Gray and lcd coverage are copied as-is, mono bits are expanded to 0/255
    and premultiplied BGRA is converted to straight RGBA. The returned bitmap
    is read-only.
    """
    bitmap = _owned_bitmap(view)
    bitmap.flags.writeable = False
    return Glyph(bitmap=bitmap, bearing=view.bearing, advance=view.advance, pixel_mode=view.pixel_mode)


def _owned_bitmap(view: RasterizedGlyphView) -> np.ndarray:
    rows, width, pitch, mode = view.rows, view.width, view.pitch, view.pixel_mode
    if mode == "lcd":
        px_width = width // 3
        empty_shape: tuple[int, ...] = (rows, px_width, 3)
    elif mode == "bgra":
        px_width = width
        empty_shape = (rows, width, 4)
    else:
        px_width = width
        empty_shape = (rows, width)
    if rows == 0 or px_width == 0:
        return np.zeros(empty_shape, dtype=np.uint8)

    stride = abs(pitch)
    flat = np.asarray(view.buffer, dtype=np.uint8).reshape(-1)
    if flat.size < rows * stride:
        raise ValueError(f"glyph buffer too small: {flat.size} < {rows * stride}")
    lines = flat[: rows * stride].reshape(rows, stride)
    if pitch < 0:
        lines = lines[::-1]

    if mode == "gray":
        return np.array(lines[:, :width], dtype=np.uint8, copy=True)
    if mode == "mono":
        bits = np.unpackbits(lines, axis=1)[:, :width]
        return np.ascontiguousarray(bits * np.uint8(255))
    if mode == "lcd":
        return np.array(lines[:, : px_width * 3].reshape(rows, px_width, 3), dtype=np.uint8, copy=True)
    bgra = lines[:, : width * 4].reshape(rows, width, 4).astype(np.float32)
    alpha = bgra[..., 3:4]
    rgb = bgra[..., 2::-1]
    safe_alpha = np.where(alpha > 0.0, alpha, 1.0)
    straight = np.where(alpha > 0.0, np.clip(rgb * 255.0 / safe_alpha, 0.0, 255.0), 0.0)
    out = np.concatenate([straight, alpha], axis=2)
    return np.rint(out).astype(np.uint8)


class GlyphCache:
    """Unbounded map from `GlyphKey` to owned, immutable glyphs.

    Entries are never evicted; memory grows with the set of distinct keys
    seen. With `thread_safe=True` lookups and inserts run under one lock, and
    rasterization happens inside it, so concurrent callers also serialise
    their use of the font handle.
    """

    def __init__(self, *, thread_safe: bool = False, event_logger: EventLogger | None = None) -> None:
        self._entries: dict[GlyphKey, Glyph] = {}
        self._lock = threading.Lock() if thread_safe else None
        self._event_logger = event_logger
        self._hits = 0
        self._misses = 0
        self._rasterizations = 0

    def key_for(self, font: FontHandle, codepoint: int | str) -> GlyphKey:
        return font.glyph_key(codepoint)

    def get(self, key: GlyphKey) -> Glyph | None:
        return self._entries.get(key)

    def get_or_rasterize(self, font: FontHandle, key: GlyphKey) -> Glyph:
        if self._lock is None:
            return self._get_or_rasterize(font, key)
        with self._lock:
            return self._get_or_rasterize(font, key)

    def clear(self) -> None:
        if self._lock is None:
            self._reset()
            return
        with self._lock:
            self._reset()

    def stats(self) -> dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "entries": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "rasterizations": self._rasterizations,
            "hit_rate": (self._hits / lookups) if lookups else 0.0,
        }

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _get_or_rasterize(self, font: FontHandle, key: GlyphKey) -> Glyph:
        cached = self._entries.get(key)
        if cached is not None:
            self._hits += 1
            return cached
        if key.font_id != font.font_id or key.pixel_size != font.pixel_size:
            raise ValueError(
                f"key {key} does not match font_id={font.font_id} at pixel_size={font.pixel_size}"
            )
        self._misses += 1
        view = font.rasterize(key.codepoint)
        # Copy before the font handle is touched again; the view aliases its slot.
        glyph = copy_glyph_view(view)
        self._entries[key] = glyph
        self._rasterizations += 1
        LOGGER.debug(
            "rasterized U+%04X font_id=%d px=%d (%dx%d %s)",
            key.codepoint,
            key.font_id,
            key.pixel_size,
            glyph.width,
            glyph.height,
            glyph.pixel_mode,
        )
        self._emit(
            {
                "ts_ns": time.time_ns(),
                "action": "glyph_rasterized",
                "font_id": key.font_id,
                "codepoint": key.codepoint,
                "pixel_size": key.pixel_size,
                "width": glyph.width,
                "height": glyph.height,
            }
        )
        return glyph

    def _reset(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        self._rasterizations = 0

    def _emit(self, entry: dict[str, object]) -> None:
        if self._event_logger is not None:
            self._event_logger(entry)

from __future__ import annotations

import threading
import unittest

import numpy as np

from glyphline_core.backend.base import GlyphSlot
from glyphline_core.core.errors import UnsupportedGlyph
from glyphline_core.core.font_handle import FontHandle
from glyphline_core.core.glyph_cache import GlyphCache, copy_glyph_view
from glyphline_core.core.types import GlyphKey, RasterizedGlyphView


class _SharedSlotFace:
    """Renders every glyph into one reused buffer, the way FreeType's slot behaves."""

    family_name = "Slot Sans"
    style_name = "Regular"
    has_kerning = False

    def __init__(self, codepoints: str = "ABC") -> None:
        self._index = {ord(ch): i + 1 for i, ch in enumerate(codepoints)}
        self._slot_memory = bytearray(512)
        self._slot = np.frombuffer(self._slot_memory, dtype=np.uint8)
        self._px = 0
        self._shape = (0, 0)
        self._index_loaded = 0
        self.render_calls = 0

    def set_pixel_size(self, px: int) -> None:
        self._px = px

    def char_index(self, codepoint: int) -> int:
        return self._index.get(codepoint, 0)

    def load_glyph(self, glyph_index: int, *, render: bool) -> None:
        self._index_loaded = glyph_index
        width = self._px // 2
        rows = self._px
        self._shape = (rows, width)
        if render:
            self.render_calls += 1
            pattern = (np.arange(rows * width) * glyph_index + self._px) % 251
            self._slot[: rows * width] = pattern.astype(np.uint8)

    def slot(self) -> GlyphSlot:
        rows, width = self._shape
        return GlyphSlot(
            buffer=self._slot[: rows * width],
            width=width,
            rows=rows,
            pitch=width,
            pixel_mode="gray",
            bitmap_left=0,
            bitmap_top=rows,
            advance_x=(width + 1) * 64,
            advance_y=0,
            bearing_x=0,
            bearing_y=rows * 64,
        )

    def kerning(self, left_index: int, right_index: int) -> tuple[int, int]:
        return 0, 0

    def size_metrics(self) -> tuple[int, int, int]:
        return self._px * 48, -self._px * 16, self._px * 80

    def close(self) -> None:
        pass


def _view(buffer: np.ndarray, *, width: int, rows: int, pitch: int, pixel_mode: str) -> RasterizedGlyphView:
    return RasterizedGlyphView(
        buffer=buffer,
        width=width,
        rows=rows,
        pitch=pitch,
        pixel_mode=pixel_mode,  # type: ignore[arg-type]
        bearing=(1, rows),
        advance=(width + 1, 0),
    )


class GlyphCacheTests(unittest.TestCase):
    def test_repeat_lookups_rasterize_once(self) -> None:
        face = _SharedSlotFace()
        font = FontHandle(face, pixel_size=12)
        cache = GlyphCache()
        key = cache.key_for(font, "A")
        first = cache.get_or_rasterize(font, key)
        for _ in range(5):
            self.assertIs(cache.get_or_rasterize(font, key), first)
        self.assertEqual(face.render_calls, 1)
        stats = cache.stats()
        self.assertEqual(stats["entries"], 1)
        self.assertEqual(stats["hits"], 5)
        self.assertEqual(stats["misses"], 1)
        self.assertEqual(stats["rasterizations"], 1)

    def test_rasterization_is_deterministic(self) -> None:
        face = _SharedSlotFace()
        font = FontHandle(face, pixel_size=12)
        a = GlyphCache().get_or_rasterize(font, font.glyph_key("B"))
        b = GlyphCache().get_or_rasterize(font, font.glyph_key("B"))
        self.assertIsNot(a, b)
        self.assertEqual(a.bitmap.tobytes(), b.bitmap.tobytes())

    def test_cached_bitmap_survives_slot_reuse(self) -> None:
        face = _SharedSlotFace()
        font = FontHandle(face, pixel_size=12)
        cache = GlyphCache()
        glyph_a = cache.get_or_rasterize(font, font.glyph_key("A"))
        before = glyph_a.bitmap.tobytes()
        cache.get_or_rasterize(font, font.glyph_key("B"))
        font.rasterize("C")
        self.assertEqual(glyph_a.bitmap.tobytes(), before)
        self.assertFalse(np.shares_memory(glyph_a.bitmap, face._slot))

    def test_cached_bitmap_is_read_only(self) -> None:
        font = FontHandle(_SharedSlotFace(), pixel_size=8)
        glyph = GlyphCache().get_or_rasterize(font, font.glyph_key("A"))
        with self.assertRaises(ValueError):
            glyph.bitmap[0, 0] = 7

    def test_size_change_creates_distinct_entries(self) -> None:
        face = _SharedSlotFace()
        font = FontHandle(face, pixel_size=12)
        cache = GlyphCache()
        key_12 = font.glyph_key("A")
        small = cache.get_or_rasterize(font, key_12)
        small_bytes = small.bitmap.tobytes()
        font.set_pixel_size(24)
        key_24 = font.glyph_key("A")
        large = cache.get_or_rasterize(font, key_24)
        self.assertNotEqual(key_12, key_24)
        self.assertEqual(len(cache), 2)
        self.assertEqual(small.bitmap.shape, (12, 6))
        self.assertEqual(large.bitmap.shape, (24, 12))
        self.assertIs(cache.get(key_12), small)
        self.assertEqual(cache.get(key_12).bitmap.tobytes(), small_bytes)
        self.assertEqual(face.render_calls, 2)

    def test_get_does_not_rasterize(self) -> None:
        face = _SharedSlotFace()
        font = FontHandle(face, pixel_size=12)
        cache = GlyphCache()
        key = font.glyph_key("A")
        self.assertIsNone(cache.get(key))
        self.assertNotIn(key, cache)
        self.assertEqual(face.render_calls, 0)

    def test_mismatched_key_is_rejected(self) -> None:
        font = FontHandle(_SharedSlotFace(), pixel_size=12)
        cache = GlyphCache()
        with self.assertRaises(ValueError):
            cache.get_or_rasterize(font, GlyphKey(font.font_id, ord("A"), 30))
        with self.assertRaises(ValueError):
            cache.get_or_rasterize(font, GlyphKey(font.font_id + 1000, ord("A"), 12))
        self.assertEqual(len(cache), 0)

    def test_unsupported_glyph_propagates_without_insert(self) -> None:
        font = FontHandle(_SharedSlotFace(), pixel_size=12)
        cache = GlyphCache()
        with self.assertRaises(UnsupportedGlyph):
            cache.get_or_rasterize(font, font.glyph_key("Z"))
        self.assertEqual(len(cache), 0)

    def test_clear_drops_entries_and_counters(self) -> None:
        font = FontHandle(_SharedSlotFace(), pixel_size=12)
        cache = GlyphCache()
        cache.get_or_rasterize(font, font.glyph_key("A"))
        cache.clear()
        self.assertEqual(len(cache), 0)
        self.assertEqual(cache.stats()["misses"], 0)

    def test_event_logger_receives_rasterizations(self) -> None:
        events: list[dict[str, object]] = []
        font = FontHandle(_SharedSlotFace(), pixel_size=10)
        cache = GlyphCache(event_logger=events.append)
        key = font.glyph_key("C")
        cache.get_or_rasterize(font, key)
        cache.get_or_rasterize(font, key)
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0]["action"], "glyph_rasterized")
        self.assertEqual(events[0]["codepoint"], ord("C"))
        self.assertEqual(events[0]["pixel_size"], 10)
        self.assertEqual(events[0]["font_id"], font.font_id)

    def test_thread_safe_cache_rasterizes_each_key_once(self) -> None:
        face = _SharedSlotFace()
        font = FontHandle(face, pixel_size=12)
        cache = GlyphCache(thread_safe=True)
        keys = [font.glyph_key(ch) for ch in "ABC"]
        errors: list[BaseException] = []

        def worker() -> None:
            try:
                for _ in range(20):
                    for key in keys:
                        cache.get_or_rasterize(font, key)
            except BaseException as exc:  # pragma: no cover
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(errors, [])
        self.assertEqual(face.render_calls, 3)
        expected = GlyphCache().get_or_rasterize(font, keys[0]).bitmap.tobytes()
        self.assertEqual(cache.get(keys[0]).bitmap.tobytes(), expected)


class CopyGlyphViewTests(unittest.TestCase):
    def test_gray_copy_drops_row_padding(self) -> None:
        buffer = np.arange(12, dtype=np.uint8)
        glyph = copy_glyph_view(_view(buffer, width=3, rows=3, pitch=4, pixel_mode="gray"))
        np.testing.assert_array_equal(glyph.bitmap, [[0, 1, 2], [4, 5, 6], [8, 9, 10]])
        buffer[:] = 0
        self.assertEqual(int(glyph.bitmap.sum()), 45)
        self.assertEqual(glyph.bearing, (1, 3))
        self.assertEqual(glyph.advance, (4, 0))

    def test_negative_pitch_flips_rows(self) -> None:
        buffer = np.array([1, 1, 2, 2], dtype=np.uint8)
        glyph = copy_glyph_view(_view(buffer, width=2, rows=2, pitch=-2, pixel_mode="gray"))
        np.testing.assert_array_equal(glyph.bitmap, [[2, 2], [1, 1]])

    def test_mono_bits_expand_to_coverage(self) -> None:
        buffer = np.array([0b10100000, 0b01000000], dtype=np.uint8)
        glyph = copy_glyph_view(_view(buffer, width=3, rows=2, pitch=1, pixel_mode="mono"))
        np.testing.assert_array_equal(glyph.bitmap, [[255, 0, 255], [0, 255, 0]])
        self.assertEqual(glyph.bitmap.dtype, np.uint8)

    def test_lcd_groups_subpixels(self) -> None:
        buffer = np.arange(6, dtype=np.uint8)
        glyph = copy_glyph_view(_view(buffer, width=6, rows=1, pitch=6, pixel_mode="lcd"))
        self.assertEqual(glyph.bitmap.shape, (1, 2, 3))
        self.assertEqual(glyph.width, 2)
        self.assertEqual(glyph.channels, 3)

    def test_bgra_is_unpremultiplied(self) -> None:
        buffer = np.array([0, 64, 128, 128, 0, 0, 0, 0], dtype=np.uint8)
        glyph = copy_glyph_view(_view(buffer, width=2, rows=1, pitch=8, pixel_mode="bgra"))
        np.testing.assert_array_equal(glyph.bitmap[0, 0], [255, 128, 0, 128])
        np.testing.assert_array_equal(glyph.bitmap[0, 1], [0, 0, 0, 0])

    def test_empty_view_yields_empty_bitmap(self) -> None:
        glyph = copy_glyph_view(_view(np.zeros(0, dtype=np.uint8), width=0, rows=0, pitch=0, pixel_mode="gray"))
        self.assertEqual(glyph.bitmap.shape, (0, 0))
        self.assertEqual(glyph.advance, (1, 0))
        self.assertFalse(glyph.bitmap.flags.writeable)


if __name__ == "__main__":
    unittest.main()

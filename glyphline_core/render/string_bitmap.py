from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from glyphline_core.core.types import LayoutResult


RGBA = tuple[int, int, int, int]


@dataclass(frozen=True)
class TextBounds:
    """Pixel box around a layout, relative to the first line's pen origin.

    `top` is negative above the first baseline; `left` goes negative when a
    glyph's bearing reaches behind the pen start.
    """

    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def baseline(self) -> int:
        """Row of the first baseline inside a bitmap of these bounds."""
        return -self.top


def measure_layout(result: LayoutResult, *, ascender: int, descender: int) -> TextBounds:
    left = 0
    top = -ascender
    right = result.total_advance
    bottom = (result.line_count - 1) * result.line_height + descender
    for placed in result.glyphs:
        if placed.width == 0 or placed.height == 0:
            continue
        gx = placed.pen_x + placed.glyph.bearing[0]
        gy = placed.pen_y - placed.glyph.bearing[1]
        left = min(left, gx)
        top = min(top, gy)
        right = max(right, gx + placed.width)
        bottom = max(bottom, gy + placed.height)
    return TextBounds(left=left, top=top, right=right, bottom=bottom)


def new_canvas(width: int, height: int, color: RGBA = (0, 0, 0, 0)) -> np.ndarray:
    canvas = np.zeros((height, width, 4), dtype=np.uint8)
    canvas[:, :] = np.asarray(color, dtype=np.uint8)
    return canvas


def render_layout(
    result: LayoutResult,
    *,
    ascender: int,
    descender: int,
    color: RGBA = (255, 255, 255, 255),
    background: RGBA = (0, 0, 0, 0),
) -> np.ndarray:
    """Composite a layout into a fresh `(H, W, 4)` uint8 RGBA array.

    Gray and mono glyphs tint `color` by coverage, lcd glyphs blend per
    channel and colour glyphs keep their own RGBA. The array is at least
    1x1 so an empty layout still yields an image.
    """
    bounds = measure_layout(result, ascender=ascender, descender=descender)
    canvas = new_canvas(max(1, bounds.width), max(1, bounds.height), background)
    tint = np.asarray(color[:3], dtype=np.float32)
    opacity = color[3] / 255.0
    for placed in result.glyphs:
        glyph = placed.glyph
        if glyph.width == 0 or glyph.height == 0:
            continue
        x = placed.pen_x + glyph.bearing[0] - bounds.left
        y = placed.pen_y - glyph.bearing[1] - bounds.top
        if glyph.channels == 4:
            _blend(canvas, x, y, glyph.bitmap[:, :, 3], glyph.bitmap[:, :, :3].astype(np.float32), 1.0)
        else:
            _blend(canvas, x, y, glyph.bitmap, tint, opacity)
    return canvas


def _blend(
    dst: np.ndarray,
    x: int,
    y: int,
    coverage: np.ndarray,
    src_rgb: np.ndarray,
    opacity: float,
) -> None:
    h, w = coverage.shape[:2]
    x0 = max(0, x)
    y0 = max(0, y)
    x1 = min(dst.shape[1], x + w)
    y1 = min(dst.shape[0], y + h)
    if x1 <= x0 or y1 <= y0:
        return

    sx0 = x0 - x
    sy0 = y0 - y
    sx1 = sx0 + (x1 - x0)
    sy1 = sy0 + (y1 - y0)

    cov = coverage[sy0:sy1, sx0:sx1].astype(np.float32) * (opacity / 255.0)
    if cov.ndim == 2:
        cov = cov[:, :, None]
    if not np.any(cov > 0):
        return
    if src_rgb.ndim == 3:
        rgb = src_rgb[sy0:sy1, sx0:sx1]
    else:
        rgb = src_rgb.reshape(1, 1, 3)

    patch = dst[y0:y1, x0:x1]
    dst_rgb = patch[:, :, :3].astype(np.float32)
    dst_alpha = patch[:, :, 3:4].astype(np.float32) / 255.0

    # lcd coverage is per channel; the strongest channel drives alpha.
    src_alpha = cov.max(axis=2, keepdims=True)
    out_alpha = src_alpha + dst_alpha * (1.0 - src_alpha)
    out_rgb_num = rgb * cov + dst_rgb * dst_alpha * (1.0 - cov)
    safe_alpha = np.where(out_alpha > 1e-6, out_alpha, 1.0)
    out_rgb = out_rgb_num / safe_alpha

    patch[:, :, :3] = np.clip(np.rint(out_rgb), 0, 255).astype(np.uint8)
    patch[:, :, 3] = np.clip(np.rint(out_alpha[:, :, 0] * 255.0), 0, 255).astype(np.uint8)

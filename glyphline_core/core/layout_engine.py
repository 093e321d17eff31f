from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import logging
import time
from typing import TYPE_CHECKING, Callable
import unicodedata

from .errors import UnsupportedGlyph
from .kerning import KerningLookup
from .types import Glyph, LayoutResult, PositionedGlyph

if TYPE_CHECKING:
    from .config import RenderConfig
    from .font_handle import FontHandle
    from .glyph_cache import GlyphCache


LOGGER = logging.getLogger(__name__)
EventLogger = Callable[[dict[str, object]], None]

NEWLINE = 0x0A
DEFAULT_PLACEHOLDER_WIDTH_PX = 8
MAX_CODEPOINT = 0x10FFFF


@dataclass
class LayoutEngine:
    """Turns a codepoint sequence into pen-positioned cached glyphs.

    One codepoint yields at most one glyph: no shaping, ligatures or
    reordering. Newline moves the pen to the start of the next line; other
    control characters are dropped and break the kerning pair chain.
    """

    placeholder_width_px: int = DEFAULT_PLACEHOLDER_WIDTH_PX
    line_height_px: int | None = None
    kerning: KerningLookup = field(default_factory=KerningLookup)
    event_logger: EventLogger | None = None

    def __post_init__(self) -> None:
        if self.placeholder_width_px < 0:
            raise ValueError("placeholder_width_px must be >= 0")
        if self.line_height_px is not None and self.line_height_px <= 0:
            raise ValueError("line_height_px must be > 0")
        self._placeholder = Glyph.placeholder(self.placeholder_width_px)

    @classmethod
    def from_config(cls, config: RenderConfig, *, event_logger: EventLogger | None = None) -> "LayoutEngine":
        return cls(
            placeholder_width_px=config.placeholder_width_px,
            line_height_px=config.line_height_px,
            kerning=KerningLookup(enabled=config.kerning),
            event_logger=event_logger,
        )

    @property
    def placeholder(self) -> Glyph:
        return self._placeholder

    def layout(
        self,
        font: FontHandle,
        cache: GlyphCache,
        text: str | Sequence[int],
        line_height: int | None = None,
    ) -> LayoutResult:
        codepoints = _coerce_codepoints(text)
        step = self._resolve_line_height(font, line_height)

        glyphs: list[PositionedGlyph] = []
        substitutions: list[int] = []
        pen_x = 0
        pen_y = 0
        widest = 0
        line_count = 1
        previous: int | None = None

        for cp in codepoints:
            if cp == NEWLINE:
                widest = max(widest, pen_x)
                pen_x = 0
                pen_y += step
                line_count += 1
                previous = None
                continue
            if _is_control(cp):
                previous = None
                continue
            try:
                glyph = cache.get_or_rasterize(font, font.glyph_key(cp))
            except UnsupportedGlyph:
                glyph = self._placeholder
                substitutions.append(cp)
                self._emit_substitution(font, cp)
            if previous is not None:
                pen_x += self.kerning.adjustment(font, previous, cp)
            glyphs.append(PositionedGlyph(glyph=glyph, pen_x=pen_x, pen_y=pen_y, codepoint=cp))
            pen_x += glyph.advance[0]
            previous = cp

        widest = max(widest, pen_x)
        if substitutions:
            LOGGER.warning(
                "substituted %d missing glyph(s) in font_id=%d: %s",
                len(substitutions),
                font.font_id,
                " ".join(f"U+{cp:04X}" for cp in substitutions),
            )
        return LayoutResult(
            glyphs=tuple(glyphs),
            total_advance=widest,
            line_count=line_count,
            line_height=step,
            substitutions=tuple(substitutions),
        )

    def _resolve_line_height(self, font: FontHandle, line_height: int | None) -> int:
        if line_height is not None:
            if line_height <= 0:
                raise ValueError("line_height must be > 0")
            return int(line_height)
        if self.line_height_px is not None:
            return self.line_height_px
        return font.line_metrics()[2]

    def _emit_substitution(self, font: FontHandle, codepoint: int) -> None:
        if self.event_logger is None:
            return
        self.event_logger(
            {
                "ts_ns": time.time_ns(),
                "action": "glyph_substituted",
                "font_id": font.font_id,
                "codepoint": codepoint,
                "pixel_size": font.pixel_size,
            }
        )


def layout(
    font: FontHandle,
    cache: GlyphCache,
    text: str | Sequence[int],
    line_height: int | None = None,
    *,
    placeholder_width_px: int = DEFAULT_PLACEHOLDER_WIDTH_PX,
) -> LayoutResult:
    return LayoutEngine(placeholder_width_px=placeholder_width_px).layout(font, cache, text, line_height)


def _coerce_codepoints(text: str | Sequence[int]) -> list[int]:
    if isinstance(text, str):
        return [ord(ch) for ch in text]
    out: list[int] = []
    for cp in text:
        if isinstance(cp, bool) or not isinstance(cp, int):
            raise TypeError(f"codepoints must be ints, got {type(cp).__name__}")
        if cp < 0 or cp > MAX_CODEPOINT:
            raise ValueError(f"codepoint out of range: {cp}")
        out.append(cp)
    return out


def _is_control(codepoint: int) -> bool:
    if 0xD800 <= codepoint <= 0xDFFF:
        return False
    return unicodedata.category(chr(codepoint)) == "Cc"

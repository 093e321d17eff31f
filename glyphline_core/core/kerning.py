from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .font_handle import FontHandle


@dataclass(frozen=True)
class KerningLookup:
    """Pen adjustment for an ordered codepoint pair.

    Backed by the face's legacy `kern` table only. Fonts that kern solely
    through OpenType GPOS yield 0 for every pair. `enabled=False` turns
    kerning off entirely without touching the font.
    """

    enabled: bool = True

    def adjustment(self, font: FontHandle, left: int, right: int) -> int:
        if not self.enabled:
            return 0
        return font.kerning(left, right)

from __future__ import annotations

from pathlib import Path
import sys

import numpy as np
from PIL import Image

from glyphline_core.backend import FreeTypeLibrary
from glyphline_core.core import FontHandle, GlyphCache, LayoutEngine
from glyphline_core.render import render_layout


TEXT = "Hello, world!\nAVATAR Wave 0123\nmissing: ☃\U0010fffd"


def _render(library: FreeTypeLibrary, font_path: Path, *, render_mode: str, pixel_size: int) -> np.ndarray:
    with FontHandle.load(font_path, library=library, pixel_size=pixel_size, render_mode=render_mode) as font:  # type: ignore[arg-type]
        cache = GlyphCache()
        result = LayoutEngine().layout(font, cache, TEXT)
        ascender, descender, _ = font.line_metrics()
        print(
            f"{render_mode:>5} {pixel_size:>3}px: glyphs={len(result.glyphs)} "
            f"substituted={result.substitution_count} cache={cache.stats()['entries']}"
        )
        return render_layout(
            result,
            ascender=ascender,
            descender=descender,
            color=(20, 20, 20, 255),
            background=(250, 250, 245, 255),
        )


def main() -> None:
    if len(sys.argv) < 2:
        raise SystemExit("usage: render_hello.py FONT.ttf [OUT_DIR]")
    font_path = Path(sys.argv[1])
    out_dir = Path(sys.argv[2]) if len(sys.argv) > 2 else Path.cwd() / "glyphline_out"
    out_dir.mkdir(parents=True, exist_ok=True)

    with FreeTypeLibrary() as library:
        for render_mode in ("gray", "mono", "lcd"):
            for pixel_size in (12, 24, 48):
                frame = _render(library, font_path, render_mode=render_mode, pixel_size=pixel_size)
                path = out_dir / f"hello_{render_mode}_{pixel_size}.png"
                Image.fromarray(frame).save(path)
                print(f"wrote {path}")


if __name__ == "__main__":
    main()

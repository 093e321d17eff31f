from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Sequence

from PIL import Image

from glyphline_core.backend import FreeTypeLibrary
from glyphline_core.core import (
    BackendInitError,
    FontHandle,
    FontLoadError,
    GlyphCache,
    InvalidSize,
    JsonlEventSink,
    LayoutEngine,
    LayoutResult,
    RENDER_MODES,
    RasterizeError,
    RenderConfig,
    load_config,
)
from glyphline_core.render import measure_layout, render_layout


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="glyphline")
    sub = parser.add_subparsers(dest="command", required=True)

    render = sub.add_parser("render", help="Lay out TEXT with FONT and write an RGBA PNG.")
    render.add_argument("font", type=Path)
    render.add_argument("text")
    render.add_argument("output", type=Path)
    _add_layout_arguments(render)
    render.add_argument("--color", default="#FFFFFFFF", help="Text colour as #RRGGBB or #RRGGBBAA.")
    render.add_argument("--background", default="#00000000", help="Background as #RRGGBB or #RRGGBBAA.")

    measure = sub.add_parser("measure", help="Lay out TEXT with FONT and print a JSON summary.")
    measure.add_argument("font", type=Path)
    measure.add_argument("text")
    _add_layout_arguments(measure)

    report = sub.add_parser("events-report", help="Print a summary of a JSONL event log.")
    report.add_argument("--events-jsonl", type=Path, required=True)
    report.add_argument("--max-rows", type=int, default=None, help="Prune the log to this many rows first.")
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(args, "log_level", "WARNING"), format="%(levelname)s %(name)s: %(message)s")

    if args.command == "events-report":
        sink = JsonlEventSink(args.events_jsonl)
        if args.max_rows is not None:
            print(f"pruned rows={sink.prune(max_rows=args.max_rows)}")
        print(json.dumps(sink.summarize(), indent=2, sort_keys=True))
        return 0

    if args.command not in ("render", "measure"):
        raise RuntimeError(f"unsupported command: {args.command}")

    try:
        config = _resolve_config(args)
        if args.command == "render":
            color = _parse_color(args.color)
            background = _parse_color(args.background)
    except (ValueError, FileNotFoundError) as exc:
        print(f"glyphline: {exc}", file=sys.stderr)
        return 1
    sink = JsonlEventSink(args.events_jsonl) if args.events_jsonl is not None else None
    library = FreeTypeLibrary()
    try:
        library.init()
    except BackendInitError as exc:
        print(f"glyphline: {exc}", file=sys.stderr)
        return 2
    try:
        try:
            font = FontHandle.load(
                args.font,
                library=library,
                face_index=config.face_index,
                pixel_size=config.effective_pixel_size,
                render_mode=config.render_mode,
            )
        except (FontLoadError, InvalidSize) as exc:
            print(f"glyphline: {exc}", file=sys.stderr)
            return 1
        with font:
            cache = GlyphCache(event_logger=sink)
            engine = LayoutEngine.from_config(config, event_logger=sink)
            try:
                result = engine.layout(font, cache, _unescape(args.text))
            except RasterizeError as exc:
                print(f"glyphline: {exc}", file=sys.stderr)
                return 1
            ascender, descender, _ = font.line_metrics()
            if args.command == "measure":
                print(json.dumps(_summary(font, result, ascender, descender, cache), indent=2, sort_keys=True))
                return 0
            pixels = render_layout(
                result,
                ascender=ascender,
                descender=descender,
                color=color,
                background=background,
            )
        args.output.parent.mkdir(parents=True, exist_ok=True)
        Image.fromarray(pixels).save(args.output)
        print(
            f"render complete: {pixels.shape[1]}x{pixels.shape[0]} glyphs={len(result.glyphs)} "
            f"lines={result.line_count} substitutions={result.substitution_count} -> {args.output}"
        )
        return 0
    finally:
        library.close()


def _add_layout_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--pixel-size", type=int, default=None)
    parser.add_argument("--point-size", type=float, default=None)
    parser.add_argument("--dpi", type=int, default=None)
    parser.add_argument("--render-mode", choices=list(RENDER_MODES), default=None)
    parser.add_argument("--face-index", type=int, default=None)
    parser.add_argument("--line-height", type=int, default=None)
    parser.add_argument("--placeholder-width", type=int, default=None)
    parser.add_argument("--no-kerning", action="store_true")
    parser.add_argument("--config", type=Path, default=None, help="TOML file with a [render] table.")
    parser.add_argument("--events-jsonl", type=Path, default=None)
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])


def _resolve_config(args: argparse.Namespace) -> RenderConfig:
    base = load_config(args.config) if args.config is not None else RenderConfig()
    config = RenderConfig.from_env(base)
    return config.merged(
        pixel_size=args.pixel_size,
        point_size=args.point_size,
        dpi=args.dpi,
        render_mode=args.render_mode,
        face_index=args.face_index,
        line_height_px=args.line_height,
        placeholder_width_px=args.placeholder_width,
        kerning=False if args.no_kerning else None,
    )


def _summary(
    font: FontHandle,
    result: LayoutResult,
    ascender: int,
    descender: int,
    cache: GlyphCache,
) -> dict[str, object]:
    bounds = measure_layout(result, ascender=ascender, descender=descender)
    return {
        "font": {
            "family": font.family_name,
            "style": font.style_name,
            "pixel_size": font.pixel_size,
            "render_mode": font.render_mode,
        },
        "glyphs": len(result.glyphs),
        "total_advance": result.total_advance,
        "line_count": result.line_count,
        "line_height": result.line_height,
        "substitutions": [f"U+{cp:04X}" for cp in result.substitutions],
        "bounds": {
            "left": bounds.left,
            "top": bounds.top,
            "width": bounds.width,
            "height": bounds.height,
            "baseline": bounds.baseline,
        },
        "cache": cache.stats(),
    }


def _parse_color(value: str) -> tuple[int, int, int, int]:
    raw = value.strip().lstrip("#")
    if len(raw) == 6:
        raw += "FF"
    if len(raw) != 8:
        raise ValueError(f"colour must be #RRGGBB or #RRGGBBAA, got {value!r}")
    try:
        parts = [int(raw[i : i + 2], 16) for i in range(0, 8, 2)]
    except ValueError as exc:
        raise ValueError(f"colour must be hexadecimal, got {value!r}") from exc
    return (parts[0], parts[1], parts[2], parts[3])


def _unescape(text: str) -> str:
    return text.replace("\\n", "\n")


if __name__ == "__main__":
    sys.exit(main())

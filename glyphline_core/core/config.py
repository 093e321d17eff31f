from __future__ import annotations

from dataclasses import dataclass, fields, replace
import math
import os
from pathlib import Path
import tomllib

from .types import RENDER_MODES, RenderMode


@dataclass(frozen=True)
class RenderConfig:
    pixel_size: int = 16
    render_mode: RenderMode = "gray"
    line_height_px: int | None = None
    placeholder_width_px: int = 8
    face_index: int = 0
    kerning: bool = True
    point_size: float | None = None
    dpi: int | None = None

    def __post_init__(self) -> None:
        if self.pixel_size <= 0:
            raise ValueError("pixel_size must be > 0")
        if self.render_mode not in RENDER_MODES:
            raise ValueError(f"render_mode must be one of {', '.join(RENDER_MODES)}")
        if self.line_height_px is not None and self.line_height_px <= 0:
            raise ValueError("line_height_px must be > 0")
        if self.placeholder_width_px < 0:
            raise ValueError("placeholder_width_px must be >= 0")
        if self.face_index < 0:
            raise ValueError("face_index must be >= 0")
        if self.point_size is not None and (not math.isfinite(self.point_size) or self.point_size <= 0):
            raise ValueError("point_size must be > 0")
        if self.dpi is not None and self.dpi <= 0:
            raise ValueError("dpi must be > 0")

    @property
    def effective_pixel_size(self) -> int:
        """Pixel size to apply; a point size wins over `pixel_size` when set."""
        if self.point_size is None:
            return self.pixel_size
        dpi = self.dpi if self.dpi is not None else 72
        return max(1, int(round(self.point_size * dpi / 72.0)))

    def merged(self, **overrides: object) -> "RenderConfig":
        """Copy with every non-None override applied.

        An explicit `pixel_size` without a `point_size` drops any inherited
        point size (and its dpi), so the pixel size actually takes effect.
        """
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"unknown config field: {unknown[0]}")
        changes = {name: value for name, value in overrides.items() if value is not None}
        if not changes:
            return self
        if "pixel_size" in changes and "point_size" not in changes:
            changes["point_size"] = None
            changes.setdefault("dpi", None)
        return replace(self, **changes)

    @classmethod
    def from_env(
        cls,
        base: "RenderConfig | None" = None,
        *,
        pixel_size_env_var: str = "GLYPHLINE_PIXEL_SIZE",
        render_mode_env_var: str = "GLYPHLINE_RENDER_MODE",
        line_height_env_var: str = "GLYPHLINE_LINE_HEIGHT",
        placeholder_width_env_var: str = "GLYPHLINE_PLACEHOLDER_WIDTH",
    ) -> "RenderConfig":
        config = base if base is not None else cls()
        render_mode = os.getenv(render_mode_env_var, "").strip().lower()
        return config.merged(
            pixel_size=_parse_positive_int(pixel_size_env_var),
            render_mode=render_mode if render_mode in RENDER_MODES else None,
            line_height_px=_parse_positive_int(line_height_env_var),
            placeholder_width_px=_parse_positive_int(placeholder_width_env_var, allow_zero=True),
        )


def load_config(path: str | Path) -> RenderConfig:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"config file not found: {config_path}")
    with config_path.open("rb") as f:
        raw = tomllib.load(f)
    section = raw.get("render", {})
    if not isinstance(section, dict):
        raise ValueError("`render` must be a table")
    known = {f.name for f in fields(RenderConfig)}
    for name in section:
        if name not in known:
            raise ValueError(f"unknown config field: render.{name}")
    values: dict[str, object] = {}
    for name in ("pixel_size", "placeholder_width_px", "face_index"):
        if name in section:
            values[name] = _coerce_int(section[name], name)
    if "line_height_px" in section:
        values["line_height_px"] = _coerce_int(section["line_height_px"], "line_height_px")
    if "dpi" in section:
        values["dpi"] = _coerce_int(section["dpi"], "dpi")
    if "point_size" in section:
        values["point_size"] = _coerce_float(section["point_size"], "point_size")
    if "render_mode" in section:
        mode = section["render_mode"]
        if not isinstance(mode, str):
            raise ValueError("render_mode must be a string")
        values["render_mode"] = mode
    if "kerning" in section:
        if not isinstance(section["kerning"], bool):
            raise ValueError("kerning must be a boolean")
        values["kerning"] = section["kerning"]
    return RenderConfig(**values)  # type: ignore[arg-type]


def _coerce_int(value: object, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer")
    return value


def _coerce_float(value: object, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{field_name} must be a number")
    return float(value)


def _parse_positive_int(env_var: str, *, allow_zero: bool = False) -> int | None:
    raw = os.getenv(env_var, "").strip()
    if raw == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    if value < 0 or (value == 0 and not allow_zero):
        return None
    return value

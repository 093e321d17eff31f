from __future__ import annotations

import os
from pathlib import Path
import tempfile
import unittest
from unittest import mock

from glyphline_core.core.config import RenderConfig, load_config


class RenderConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        config = RenderConfig()
        self.assertEqual(config.pixel_size, 16)
        self.assertEqual(config.render_mode, "gray")
        self.assertIsNone(config.line_height_px)
        self.assertEqual(config.placeholder_width_px, 8)
        self.assertTrue(config.kerning)
        self.assertEqual(config.effective_pixel_size, 16)

    def test_validation(self) -> None:
        with self.assertRaises(ValueError):
            RenderConfig(pixel_size=0)
        with self.assertRaises(ValueError):
            RenderConfig(render_mode="subpixel")  # type: ignore[arg-type]
        with self.assertRaises(ValueError):
            RenderConfig(line_height_px=0)
        with self.assertRaises(ValueError):
            RenderConfig(placeholder_width_px=-1)
        with self.assertRaises(ValueError):
            RenderConfig(dpi=0)

    def test_point_size_wins_over_pixel_size(self) -> None:
        self.assertEqual(RenderConfig(point_size=12, dpi=96).effective_pixel_size, 16)
        self.assertEqual(RenderConfig(point_size=9).effective_pixel_size, 9)

    def test_merged_skips_none(self) -> None:
        config = RenderConfig(pixel_size=20)
        merged = config.merged(pixel_size=None, render_mode="mono", line_height_px=None)
        self.assertEqual(merged.pixel_size, 20)
        self.assertEqual(merged.render_mode, "mono")
        self.assertIs(config.merged(pixel_size=None), config)
        with self.assertRaises(ValueError):
            config.merged(colour="red")

    def test_explicit_pixel_size_drops_inherited_point_size(self) -> None:
        config = RenderConfig(point_size=12.0, dpi=96)
        self.assertEqual(config.effective_pixel_size, 16)
        merged = config.merged(pixel_size=40)
        self.assertIsNone(merged.point_size)
        self.assertIsNone(merged.dpi)
        self.assertEqual(merged.effective_pixel_size, 40)
        both = config.merged(pixel_size=40, point_size=24.0)
        self.assertEqual(both.effective_pixel_size, 32)
        self.assertEqual(config.merged(render_mode="mono").effective_pixel_size, 16)

    def test_point_size_must_be_finite(self) -> None:
        for bad in (float("nan"), float("inf"), 0.0):
            with self.assertRaises(ValueError):
                RenderConfig(point_size=bad)

    def test_from_env_reads_overrides_and_ignores_garbage(self) -> None:
        env = {
            "GLYPHLINE_PIXEL_SIZE": "24",
            "GLYPHLINE_RENDER_MODE": "LCD",
            "GLYPHLINE_LINE_HEIGHT": "tall",
            "GLYPHLINE_PLACEHOLDER_WIDTH": "0",
        }
        with mock.patch.dict(os.environ, env):
            config = RenderConfig.from_env(RenderConfig(line_height_px=30))
        self.assertEqual(config.pixel_size, 24)
        self.assertEqual(config.render_mode, "lcd")
        self.assertEqual(config.line_height_px, 30)
        self.assertEqual(config.placeholder_width_px, 0)

    def test_from_env_ignores_unknown_mode_and_negative_size(self) -> None:
        env = {"GLYPHLINE_PIXEL_SIZE": "-3", "GLYPHLINE_RENDER_MODE": "vector"}
        with mock.patch.dict(os.environ, env):
            config = RenderConfig.from_env()
        self.assertEqual(config, RenderConfig())


class LoadConfigTests(unittest.TestCase):
    def _write(self, td: str, text: str) -> Path:
        path = Path(td) / "glyphline.toml"
        path.write_text(text, encoding="utf-8")
        return path

    def test_load_render_table(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = self._write(
                td,
                '[render]\npixel_size = 18\nrender_mode = "mono"\nline_height_px = 22\n'
                "placeholder_width_px = 5\nkerning = false\npoint_size = 10.5\ndpi = 144\n",
            )
            config = load_config(path)
        self.assertEqual(config.pixel_size, 18)
        self.assertEqual(config.render_mode, "mono")
        self.assertEqual(config.line_height_px, 22)
        self.assertEqual(config.placeholder_width_px, 5)
        self.assertFalse(config.kerning)
        self.assertEqual(config.effective_pixel_size, 21)

    def test_missing_table_gives_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            config = load_config(self._write(td, 'title = "unused"\n'))
        self.assertEqual(config, RenderConfig())

    def test_unknown_and_mistyped_fields_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ValueError):
                load_config(self._write(td, "[render]\nhinting = true\n"))
            with self.assertRaises(ValueError):
                load_config(self._write(td, '[render]\npixel_size = "big"\n'))
            with self.assertRaises(ValueError):
                load_config(self._write(td, "[render]\nkerning = 1\n"))

    def test_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(FileNotFoundError):
                load_config(Path(td) / "absent.toml")


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import json
from pathlib import Path
import threading
from typing import Any


class JsonlEventSink:
    """Append-only JSONL log for cache and layout events.

    Usable directly as the `event_logger` callable of `GlyphCache` and
    `LayoutEngine`.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def __call__(self, entry: dict[str, Any]) -> None:
        self.log(entry)

    def log(self, entry: dict[str, Any]) -> None:
        with self._lock:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(entry, separators=(",", ":"), sort_keys=True))
                f.write("\n")

    def summarize(self) -> dict[str, Any]:
        """Counts per action and font, plus glyph tallies.

        `substitutions` counts `glyph_substituted` rows per codepoint, keyed
        `U+XXXX`. `rasterized_by_size` counts `glyph_rasterized` rows per
        pixel size.
        """
        action_counts: dict[str, int] = {}
        font_counts: dict[str, int] = {}
        substitutions: dict[int, int] = {}
        by_size: dict[int, int] = {}
        total = 0
        if self.path.exists():
            with self.path.open("r", encoding="utf-8") as f:
                for line in f:
                    row = _parse_row(line)
                    if row is None:
                        continue
                    total += 1
                    action = str(row.get("action", ""))
                    font = str(row.get("font_id", ""))
                    action_counts[action] = action_counts.get(action, 0) + 1
                    font_counts[font] = font_counts.get(font, 0) + 1
                    if action == "glyph_substituted":
                        _tally(substitutions, row.get("codepoint"))
                    elif action == "glyph_rasterized":
                        _tally(by_size, row.get("pixel_size"))
        return {
            "total": total,
            "by_action": action_counts,
            "by_font": font_counts,
            "substitutions": {f"U+{cp:04X}": n for cp, n in sorted(substitutions.items())},
            "rasterized_by_size": {str(size): n for size, n in sorted(by_size.items())},
        }

    def prune(self, *, max_rows: int | None = None) -> int:
        if max_rows is None or max_rows <= 0 or not self.path.exists():
            return 0
        with self._lock:
            rows = [line for line in self.path.read_text(encoding="utf-8").splitlines() if line.strip()]
            if len(rows) <= max_rows:
                return 0
            kept = rows[-max_rows:]
            with self.path.open("w", encoding="utf-8") as f:
                for row in kept:
                    f.write(row)
                    f.write("\n")
        return len(rows) - len(kept)


def _parse_row(line: str) -> dict[str, Any] | None:
    line = line.strip()
    if not line:
        return None
    try:
        row = json.loads(line)
    except json.JSONDecodeError:
        return None
    return row if isinstance(row, dict) else None


def _tally(counts: dict[int, int], value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return
    counts[value] = counts.get(value, 0) + 1

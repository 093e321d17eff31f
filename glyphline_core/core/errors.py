from __future__ import annotations


class BackendInitError(RuntimeError):
    """The rasterization backend could not be initialised (fatal at startup)."""


class FontLoadError(RuntimeError):
    pass


class InvalidSize(ValueError):
    pass


class UnsupportedGlyph(LookupError):
    def __init__(self, codepoint: int, message: str | None = None) -> None:
        self.codepoint = codepoint
        super().__init__(message or f"font has no outline for U+{codepoint:04X}")


class RasterizeError(RuntimeError):
    pass


class FontClosedError(RuntimeError):
    pass

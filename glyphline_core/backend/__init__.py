from .base import FaceBackend, GlyphSlot, RasterBackend
from .freetype_backend import FreeTypeFace, FreeTypeLibrary

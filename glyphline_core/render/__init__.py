from .string_bitmap import TextBounds, measure_layout, new_canvas, render_layout

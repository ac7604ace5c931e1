from textbehind.render.compositor import composite, overlay_debug, render_mask_overlay
from textbehind.render.image_modes import fit_size, resize_to_fit
from textbehind.render.text_layer import layout_lines, line_offsets, rasterize_text

__all__ = [
    "composite",
    "fit_size",
    "layout_lines",
    "line_offsets",
    "overlay_debug",
    "rasterize_text",
    "render_mask_overlay",
    "resize_to_fit",
]

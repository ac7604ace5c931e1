from __future__ import annotations

import logging

from PIL import Image, ImageDraw, ImageFont

from textbehind.errors import InvalidDimensions, RenderingContextUnavailable
from textbehind.models import ImageBuffer, TextSpec
from textbehind.render.typography import load_font

LOGGER = logging.getLogger(__name__)


def line_offsets(line_count: int, line_height: float) -> list[float]:
    """Vertical offset of each line's centre from the anchor, block centred on it."""
    return [(index - line_count / 2 + 0.5) * line_height for index in range(line_count)]


def anchor_point(spec: TextSpec, width: int, height: int) -> tuple[float, float]:
    return spec.x / 100.0 * width, spec.y / 100.0 * height


def layout_lines(spec: TextSpec, width: int, height: int) -> list[tuple[str, float, float]]:
    anchor_x, anchor_y = anchor_point(spec, width, height)
    lines = spec.lines
    return [
        (line, anchor_x, anchor_y + offset)
        for line, offset in zip(lines, line_offsets(len(lines), spec.line_height))
    ]


def new_layer(width: int, height: int) -> Image.Image:
    if width <= 0 or height <= 0:
        raise InvalidDimensions(width, height, "text layer")
    try:
        return Image.new("RGBA", (width, height), (0, 0, 0, 0))
    except (MemoryError, ValueError, Image.DecompressionBombError) as exc:
        raise RenderingContextUnavailable(f"cannot allocate {width}x{height} layer: {exc}") from exc


def _draw_centered(
    draw: ImageDraw.ImageDraw,
    text: str,
    center: tuple[float, float],
    font: ImageFont.ImageFont | ImageFont.FreeTypeFont,
    fill: tuple[int, int, int, int],
) -> None:
    if isinstance(font, ImageFont.FreeTypeFont):
        draw.text(center, text, font=font, fill=fill, anchor="mm")
        return
    # 位图字体不支持 anchor，按包围盒手动居中
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    x = center[0] - (left + right) / 2.0
    y = center[1] - (top + bottom) / 2.0
    draw.text((x, y), text, font=font, fill=fill)


def render_text_image(spec: TextSpec, width: int, height: int) -> Image.Image:
    layer = new_layer(width, height)
    draw = ImageDraw.Draw(layer)
    font = load_font(spec.font, int(round(spec.size)))
    fill = spec.rgba
    for line, x, y in layout_lines(spec, width, height):
        if not line:
            continue
        _draw_centered(draw, line, (x, y), font, fill)
    return layer


def rasterize_text(spec: TextSpec, width: int, height: int) -> ImageBuffer:
    """Render ``spec`` onto a transparent ``width`` x ``height`` RGBA layer.

    Lines are never wrapped; anything past the canvas edge is clipped.
    """
    return ImageBuffer.from_image(render_text_image(spec, width, height))

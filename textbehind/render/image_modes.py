from __future__ import annotations

from PIL import Image

from textbehind.errors import InvalidDimensions
from textbehind.models import ImageBuffer


def fit_size(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    """Bound the long edge to ``max_dimension``, keeping aspect ratio.

    The scaled short edge is floored, then clamped to at least 1 px.
    """
    if width <= 0 or height <= 0:
        raise InvalidDimensions(width, height, "resize")
    if max_dimension <= 0:
        raise InvalidDimensions(max_dimension, max_dimension, "max dimension")
    if width <= max_dimension and height <= max_dimension:
        return width, height
    if width > height:
        ratio = max_dimension / float(width)
        new_width, new_height = max_dimension, int(height * ratio)
    else:
        ratio = max_dimension / float(height)
        new_width, new_height = int(width * ratio), max_dimension
    return max(1, new_width), max(1, new_height)


def resize_image(image: Image.Image, max_dimension: int) -> Image.Image:
    width, height = image.size
    new_size = fit_size(width, height, max_dimension)
    if new_size == (width, height):
        return image
    return image.resize(new_size, Image.Resampling.LANCZOS)


def resize_to_fit(source: ImageBuffer | Image.Image, max_dimension: int) -> ImageBuffer:
    if isinstance(source, ImageBuffer):
        if source.is_empty:
            raise InvalidDimensions(source.width, source.height, "resize")
        new_size = fit_size(source.width, source.height, max_dimension)
        if new_size == source.size:
            return source
        return ImageBuffer.from_image(source.to_image().resize(new_size, Image.Resampling.LANCZOS))
    return ImageBuffer.from_image(resize_image(source, max_dimension))


def resize_to_canvas(buffer: ImageBuffer, size: tuple[int, int]) -> ImageBuffer:
    """Stretch ``buffer`` to exactly ``size`` (used to line a cutout up with the canvas)."""
    width, height = size
    if width <= 0 or height <= 0:
        raise InvalidDimensions(width, height, "canvas")
    if buffer.is_empty:
        raise InvalidDimensions(buffer.width, buffer.height, "resize")
    if buffer.size == (width, height):
        return buffer
    return ImageBuffer.from_image(buffer.to_image().resize((width, height), Image.Resampling.LANCZOS))

"""Merge the original image, its mask and a text layer into one frame.

The mask's origin picks the strategy:

- ``GRADIENT_EDGE``: the mask itself is the occluder. Foreground pixels keep
  the original, background pixels show text wherever the text layer has any
  coverage.
- ``ALPHA_THRESHOLD``: text goes onto background pixels the same way, then the
  segmentation cutout is alpha-blended over the whole canvas. The cutout's own
  alpha, not the binary mask, shapes the subject's edge.
"""
from __future__ import annotations

import logging

import numpy as np
from PIL import Image

from textbehind.models import CompositeResult, ImageBuffer, Mask, MaskOrigin, parse_color

LOGGER = logging.getLogger(__name__)


def _text_on_background(image: ImageBuffer, mask: Mask, text_layer: ImageBuffer) -> np.ndarray:
    show_text = (mask.values != 255) & (text_layer.alpha > 0)
    return np.where(show_text[:, :, None], text_layer.pixels, image.pixels)


def _dimensions_match(image: ImageBuffer, mask: Mask, text_layer: ImageBuffer) -> bool:
    return image.size == (mask.width, mask.height) == text_layer.size


def composite_edge(image: ImageBuffer, mask: Mask, text_layer: ImageBuffer) -> ImageBuffer:
    return ImageBuffer(image.width, image.height, _text_on_background(image, mask, text_layer))


def composite_cutout(
    image: ImageBuffer,
    mask: Mask,
    text_layer: ImageBuffer,
    cutout: ImageBuffer,
) -> ImageBuffer:
    base = Image.fromarray(_text_on_background(image, mask, text_layer))
    base.alpha_composite(cutout.to_image())
    return ImageBuffer.from_image(base)


def composite(
    image: ImageBuffer,
    mask: Mask,
    text_layer: ImageBuffer,
    cutout: ImageBuffer | None = None,
) -> CompositeResult:
    if mask.is_empty or image.is_empty:
        LOGGER.info("composite skipped: no mask for %sx%s image", image.width, image.height)
        return CompositeResult.empty(mask)
    if not _dimensions_match(image, mask, text_layer):
        LOGGER.warning(
            "composite skipped: size mismatch image=%s mask=%s text=%s",
            image.size,
            (mask.width, mask.height),
            text_layer.size,
        )
        return CompositeResult.empty(mask)

    if mask.origin is MaskOrigin.GRADIENT_EDGE:
        return CompositeResult(composite_edge(image, mask, text_layer), mask)

    if cutout is None:
        raise ValueError("alpha-threshold masks composite with their cutout; none was given")
    if cutout.size != image.size:
        LOGGER.warning("composite skipped: cutout %s does not match canvas %s", cutout.size, image.size)
        return CompositeResult.empty(mask)
    return CompositeResult(composite_cutout(image, mask, text_layer, cutout), mask)


def render_mask_overlay(
    mask: Mask,
    color: str | tuple[int, ...] = (255, 0, 0),
    opacity: float = 0.5,
) -> ImageBuffer:
    """Debug view: foreground pixels in ``color`` at ``opacity``, background clear."""
    if mask.is_empty:
        return ImageBuffer.empty()
    red, green, blue, _ = parse_color(color)
    alpha = int(round(255 * max(0.0, min(1.0, opacity))))
    pixels = np.zeros((mask.height, mask.width, 4), dtype=np.uint8)
    pixels[:, :, 0] = red
    pixels[:, :, 1] = green
    pixels[:, :, 2] = blue
    pixels[:, :, 3] = np.where(mask.foreground, alpha, 0)
    return ImageBuffer(mask.width, mask.height, pixels)


def overlay_debug(
    result: CompositeResult,
    color: str | tuple[int, ...] = (255, 0, 0),
    opacity: float = 0.5,
) -> ImageBuffer:
    if result.is_empty or result.mask.is_empty:
        return ImageBuffer.empty()
    overlay = render_mask_overlay(result.mask, color=color, opacity=opacity)
    if overlay.size != result.image.size:
        return ImageBuffer.empty()
    frame = result.image.to_image()
    frame.alpha_composite(overlay.to_image())
    return ImageBuffer.from_image(frame)

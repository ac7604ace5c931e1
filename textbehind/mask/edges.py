"""Gradient-edge foreground masks.

Both passes read the whole source as one immutable snapshot, so they are safe
to split by row range if ever parallelised.
"""
from __future__ import annotations

import logging

import numpy as np

from textbehind.constants import DEFAULT_EDGE_THRESHOLD, DEFAULT_FAST_EDGE_THRESHOLD
from textbehind.models import ImageBuffer, Mask, MaskOrigin

LOGGER = logging.getLogger(__name__)

FAST_STRIDE = 2


def luminance(image: ImageBuffer) -> np.ndarray:
    """Unweighted mean of R, G and B as float32, shape ``(height, width)``."""
    return image.pixels[:, :, :3].astype(np.float32).mean(axis=2)


def sobel_magnitude(lum: np.ndarray) -> np.ndarray:
    """Sobel gradient magnitude clamped to [0, 255]; the 1 px border stays 0."""
    height, width = lum.shape
    magnitude = np.zeros((height, width), dtype=np.float32)
    if height < 3 or width < 3:
        return magnitude

    top_left, top, top_right = lum[:-2, :-2], lum[:-2, 1:-1], lum[:-2, 2:]
    left, right = lum[1:-1, :-2], lum[1:-1, 2:]
    bottom_left, bottom, bottom_right = lum[2:, :-2], lum[2:, 1:-1], lum[2:, 2:]

    gx = (top_right + 2.0 * right + bottom_right) - (top_left + 2.0 * left + bottom_left)
    gy = (bottom_left + 2.0 * bottom + bottom_right) - (top_left + 2.0 * top + top_right)
    magnitude[1:-1, 1:-1] = np.minimum(np.sqrt(gx * gx + gy * gy), 255.0)
    return magnitude


def sobel_edge_mask(image: ImageBuffer, threshold: float = DEFAULT_EDGE_THRESHOLD) -> Mask:
    if image.is_empty:
        LOGGER.warning("edge mask skipped: empty image %sx%s", image.width, image.height)
        return Mask.empty(MaskOrigin.GRADIENT_EDGE)
    magnitude = sobel_magnitude(luminance(image))
    return Mask.from_bool(magnitude > threshold, MaskOrigin.GRADIENT_EDGE)


def fast_edge_mask(image: ImageBuffer, threshold: float = DEFAULT_FAST_EDGE_THRESHOLD) -> Mask:
    """Coarse edge mask sampled every 2nd pixel.

    Each sample compares its RGB with the pixel 2 to the right and 2 below;
    a hit marks the whole 3x3 neighbourhood, which stands in for one round of
    dilation.
    """
    if image.is_empty:
        LOGGER.warning("fast edge mask skipped: empty image %sx%s", image.width, image.height)
        return Mask.empty(MaskOrigin.GRADIENT_EDGE)

    height, width = image.height, image.width
    foreground = np.zeros((height, width), dtype=bool)
    s = FAST_STRIDE
    if height <= 2 * s or width <= 2 * s:
        return Mask.from_bool(foreground, MaskOrigin.GRADIENT_EDGE)

    rgb = image.pixels[:, :, :3].astype(np.int16)
    rows = slice(s, height - s, s)
    cols = slice(s, width - s, s)
    sample = rgb[rows, cols]
    right = rgb[rows, 2 * s :: s][:, : sample.shape[1]]
    below = rgb[2 * s :: s, cols][: sample.shape[0]]

    diff_x = np.abs(sample - right).sum(axis=2)
    diff_y = np.abs(sample - below).sum(axis=2)
    hits = np.maximum(diff_x, diff_y) > threshold

    for dy in (-1, 0, 1):
        for dx in (-1, 0, 1):
            target = foreground[s + dy : height - s + dy : s, s + dx : width - s + dx : s]
            target |= hits[: target.shape[0], : target.shape[1]]
    return Mask.from_bool(foreground, MaskOrigin.GRADIENT_EDGE)

import numpy as np
import pytest

from textbehind.mask import alpha_threshold_mask, generate_mask
from textbehind.models import ImageBuffer, MaskOrigin


def _cutout(alpha: list[list[int]]) -> ImageBuffer:
    values = np.array(alpha, dtype=np.uint8)
    height, width = values.shape
    pixels = np.full((height, width, 4), 120, dtype=np.uint8)
    pixels[:, :, 3] = values
    return ImageBuffer(width, height, pixels)


def test_alpha_above_threshold_is_foreground() -> None:
    cutout = _cutout([[200, 128, 129], [0, 255, 1]])

    mask = alpha_threshold_mask(cutout)

    assert mask.origin is MaskOrigin.ALPHA_THRESHOLD
    assert mask.values.tolist() == [[255, 0, 255], [0, 255, 0]]


def test_generate_mask_segment_mode_needs_cutout() -> None:
    image = _cutout([[255, 255]])

    with pytest.raises(ValueError):
        generate_mask(image, "segment")


def test_generate_mask_segment_mode_ignores_gradients() -> None:
    image = ImageBuffer(2, 1, np.array([[[0, 0, 0, 255], [255, 255, 255, 255]]], dtype=np.uint8))
    cutout = _cutout([[0, 0]])

    mask = generate_mask(image, "segment", cutout=cutout)

    assert mask.foreground_count() == 0

from __future__ import annotations

import numpy as np

from textbehind.models import Mask


def _grow_once(foreground: np.ndarray) -> np.ndarray:
    # 只计算内部像素，边框保持上一轮的值
    grown = foreground.copy()
    center = foreground[1:-1, 1:-1]
    neighbours = (
        foreground[:-2, :-2]
        | foreground[:-2, 1:-1]
        | foreground[:-2, 2:]
        | foreground[1:-1, :-2]
        | foreground[1:-1, 2:]
        | foreground[2:, :-2]
        | foreground[2:, 1:-1]
        | foreground[2:, 2:]
    )
    grown[1:-1, 1:-1] = center | neighbours
    return grown


def dilate(mask: Mask, iterations: int) -> Mask:
    """Grow foreground by ``iterations`` rounds of 8-neighbour dilation.

    Every round reads the previous round's complete result, so growth inside
    a round does not depend on scan order. Zero rounds return the mask as is.
    """
    if iterations < 0:
        raise ValueError(f"iterations must be >= 0, got: {iterations}")
    if iterations == 0 or mask.is_empty or mask.width < 3 or mask.height < 3:
        return mask

    foreground = mask.foreground
    for _ in range(iterations):
        grown = _grow_once(foreground)
        if np.array_equal(grown, foreground):
            break
        foreground = grown
    return Mask.from_bool(foreground, mask.origin)

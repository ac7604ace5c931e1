from __future__ import annotations

import logging

from textbehind.config import PipelineSettings
from textbehind.constants import MODE_FAST, MODE_SEGMENT, MODE_STANDARD
from textbehind.mask.alpha import alpha_threshold_mask
from textbehind.mask.dilate import dilate
from textbehind.mask.edges import fast_edge_mask, sobel_edge_mask
from textbehind.models import ImageBuffer, Mask

LOGGER = logging.getLogger(__name__)

__all__ = [
    "alpha_threshold_mask",
    "dilate",
    "fast_edge_mask",
    "generate_mask",
    "sobel_edge_mask",
]


def generate_mask(
    image: ImageBuffer,
    mode: str = MODE_STANDARD,
    settings: PipelineSettings | None = None,
    cutout: ImageBuffer | None = None,
) -> Mask:
    """Build the foreground mask for ``image`` with the strategy ``mode`` selects.

    Edge modes are dilated here; ``segment`` mode binarises ``cutout`` and
    never looks at gradients.
    """
    settings = settings or PipelineSettings()
    mode = mode.lower()
    if mode == MODE_SEGMENT:
        if cutout is None:
            raise ValueError("segment mode needs a cutout")
        return alpha_threshold_mask(cutout, settings.alpha_threshold)

    if mode == MODE_FAST:
        mask = fast_edge_mask(image, settings.threshold_for(mode))
    elif mode == MODE_STANDARD:
        mask = sobel_edge_mask(image, settings.threshold_for(mode))
    else:
        raise ValueError(f"unsupported mask mode: {mode}")

    if mask.is_empty:
        return mask
    iterations = settings.iterations_for(mode)
    dilated = dilate(mask, iterations)
    LOGGER.debug(
        "mask %s: %d foreground px before dilation, %d after %d iteration(s)",
        mode,
        mask.foreground_count(),
        dilated.foreground_count(),
        iterations,
    )
    return dilated

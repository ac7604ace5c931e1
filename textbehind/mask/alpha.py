from __future__ import annotations

import logging

from textbehind.constants import DEFAULT_ALPHA_THRESHOLD
from textbehind.models import ImageBuffer, Mask, MaskOrigin

LOGGER = logging.getLogger(__name__)


def alpha_threshold_mask(cutout: ImageBuffer, threshold: int = DEFAULT_ALPHA_THRESHOLD) -> Mask:
    """Binarise a segmentation cutout: foreground where alpha > threshold."""
    if cutout.is_empty:
        LOGGER.warning("alpha mask skipped: empty cutout %sx%s", cutout.width, cutout.height)
        return Mask.empty(MaskOrigin.ALPHA_THRESHOLD)
    return Mask.from_bool(cutout.alpha > threshold, MaskOrigin.ALPHA_THRESHOLD)

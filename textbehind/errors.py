from __future__ import annotations


class TextBehindError(RuntimeError):
    """Base class for pipeline failures."""


class InvalidDimensions(TextBehindError, ValueError):
    def __init__(self, width: int, height: int, stage: str = "") -> None:
        self.width = width
        self.height = height
        self.stage = stage
        where = f" ({stage})" if stage else ""
        super().__init__(f"invalid dimensions{where}: {width}x{height}")


class RenderingContextUnavailable(TextBehindError):
    """A drawing surface could not be allocated."""


class SegmentationFailed(TextBehindError):
    """The segmentation backend produced no usable cutout."""


class DecodeFailed(TextBehindError):
    """The source image could not be decoded."""

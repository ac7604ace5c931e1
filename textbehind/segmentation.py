"""Foreground extraction backends.

A segmenter turns the source image into a cutout whose alpha channel is zero
over the background. Backends are slow and may fail; the session awaits them
without blocking its loop and treats any failure as terminal for that image.
"""
from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable, Protocol

from PIL import Image

from textbehind.decoders.image_decoder import decode_image
from textbehind.errors import DecodeFailed, SegmentationFailed
from textbehind.models import ForegroundResult, ImageBuffer

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class Segmenter(Protocol):
    async def segment(
        self,
        image: ImageBuffer,
        progress: ProgressCallback | None = None,
    ) -> ForegroundResult: ...


def _report(progress: ProgressCallback | None, fraction: float) -> None:
    if progress is not None:
        progress(max(0.0, min(1.0, float(fraction))))


def _check_cutout(cutout: ImageBuffer, label: str) -> ForegroundResult:
    if cutout.is_empty:
        raise SegmentationFailed(f"{label} returned an empty cutout")
    return cutout


class RembgSegmenter:
    """Background removal with rembg (U²-Net family models)."""

    def __init__(self, model_name: str = "u2net") -> None:
        self.model_name = model_name
        self._session = None

    def _load_session(self):
        try:
            from rembg import new_session
        except ImportError as exc:
            raise SegmentationFailed("rembg is not installed (`pip install textbehind[segment]`)") from exc
        if self._session is None:
            self._session = new_session(self.model_name)
        return self._session

    def _remove(self, image: ImageBuffer) -> ImageBuffer:
        try:
            from rembg import remove
        except ImportError as exc:
            raise SegmentationFailed("rembg is not installed (`pip install textbehind[segment]`)") from exc
        session = self._load_session()
        started = time.perf_counter()
        try:
            output = remove(image.to_image(), session=session)
        except Exception as exc:
            raise SegmentationFailed(f"rembg failed: {exc}") from exc
        if not isinstance(output, Image.Image):
            raise SegmentationFailed(f"rembg returned {type(output).__name__}, expected an image")
        LOGGER.info("background removal completed in %.2fs", time.perf_counter() - started)
        return ImageBuffer.from_image(output)

    async def segment(
        self,
        image: ImageBuffer,
        progress: ProgressCallback | None = None,
    ) -> ForegroundResult:
        _report(progress, 0.0)
        cutout = await asyncio.to_thread(self._remove, image)
        _report(progress, 1.0)
        return _check_cutout(cutout, "rembg")


class CutoutFileSegmenter:
    """Use a cutout produced ahead of time (e.g. exported from another tool)."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    async def segment(
        self,
        image: ImageBuffer,
        progress: ProgressCallback | None = None,
    ) -> ForegroundResult:
        _report(progress, 0.0)
        try:
            cutout = await asyncio.to_thread(decode_image, self.path)
        except DecodeFailed as exc:
            raise SegmentationFailed(f"cutout unusable: {exc}") from exc
        _report(progress, 1.0)
        return _check_cutout(cutout, str(self.path))


def build_segmenter(cutout_path: Path | None = None, model_name: str = "u2net") -> Segmenter:
    if cutout_path is not None:
        return CutoutFileSegmenter(cutout_path)
    return RembgSegmenter(model_name)

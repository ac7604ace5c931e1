"""One image's trip through the pipeline, plus re-rendering on text edits.

``load`` runs decode → resize → mask → first render with a short sleep between
phases so the host can repaint its progress indicator. Each load takes a new
generation number; a load that notices it is no longer the newest stops at
the next phase boundary, so a slow, stale load can never install its mask
over a newer image's state.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable

from PIL import Image

from textbehind.config import PipelineSettings
from textbehind.constants import MODE_SEGMENT
from textbehind.decoders.image_decoder import decode_source
from textbehind.errors import InvalidDimensions, RenderingContextUnavailable, SegmentationFailed
from textbehind.interaction import InteractionScheduler, TimerHost
from textbehind.mask import generate_mask
from textbehind.models import CompositeResult, ImageBuffer, SessionState, TextSpec
from textbehind.render.compositor import composite, render_mask_overlay
from textbehind.render.image_modes import resize_to_canvas, resize_to_fit
from textbehind.render.text_layer import rasterize_text
from textbehind.segmentation import Segmenter

LOGGER = logging.getLogger(__name__)

ImageSource = Path | str | bytes | Image.Image | ImageBuffer

# (progress 0-100)
PROGRESS_DECODED = 10
PROGRESS_RESIZED = 20
PROGRESS_MASK_STARTED = 30
PROGRESS_MASK_SPAN = 50
PROGRESS_STATE_READY = 90
PROGRESS_DONE = 100


def _source_name(source: ImageSource) -> str:
    if isinstance(source, (str, Path)):
        return Path(source).name
    return f"<{type(source).__name__}>"


class OverlaySession:
    def __init__(
        self,
        settings: PipelineSettings | None = None,
        *,
        segmenter: Segmenter | None = None,
        text: TextSpec | None = None,
        on_progress: Callable[[int], Any] | None = None,
        on_render: Callable[[CompositeResult], Any] | None = None,
    ) -> None:
        self.settings = settings or PipelineSettings()
        self.segmenter = segmenter
        self.text = text or TextSpec()
        self.state: SessionState | None = None
        self.last_result = CompositeResult.empty()
        self.progress = 0
        self._on_progress = on_progress
        self._on_render = on_render
        self._generation = 0
        self._task: asyncio.Task[CompositeResult] | None = None
        self._scheduler: InteractionScheduler | None = None

    @property
    def is_processing(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def generation(self) -> int:
        return self._generation

    def _set_progress(self, value: int) -> None:
        self.progress = max(0, min(100, int(value)))
        if self._on_progress is not None:
            self._on_progress(self.progress)

    async def _phase_boundary(self, generation: int) -> None:
        await asyncio.sleep(self.settings.phase_delay)
        if generation != self._generation:
            LOGGER.info("load #%d superseded by #%d, stopping", generation, self._generation)
            raise asyncio.CancelledError()

    def _set_enabled(self, enabled: bool) -> None:
        if self._scheduler is not None:
            self._scheduler.set_enabled(enabled)

    # Loading -------------------------------------------------------------
    def start_load(self, source: ImageSource, mode: str | None = None) -> asyncio.Task[CompositeResult]:
        """Cancel any in-flight load and schedule a new one on the running loop."""
        self.cancel()
        self._set_enabled(False)
        self._task = asyncio.get_running_loop().create_task(self.load(source, mode))
        return self._task

    async def load(self, source: ImageSource, mode: str | None = None) -> CompositeResult:
        self._generation += 1
        generation = self._generation
        mode = (mode or self.settings.mode).lower()
        name = _source_name(source)
        LOGGER.info("load #%d %s mode=%s", generation, name, mode)
        self._set_enabled(False)
        self._set_progress(0)
        try:
            original = decode_source(source)
            self._set_progress(PROGRESS_DECODED)
            canvas = resize_to_fit(original, self.settings.max_dimension)
            self._set_progress(PROGRESS_RESIZED)
            LOGGER.info("canvas %sx%s (source %sx%s)", canvas.width, canvas.height, original.width, original.height)
            await self._phase_boundary(generation)

            self._set_progress(PROGRESS_MASK_STARTED)
            cutout = None
            if mode == MODE_SEGMENT:
                cutout = await self._segment(canvas, generation)
            mask = generate_mask(canvas, mode, self.settings, cutout=cutout)
            await self._phase_boundary(generation)

            self.state = SessionState(
                generation=generation,
                source_name=name,
                original=canvas,
                mask=mask,
                cutout=cutout,
            )
            self._set_progress(PROGRESS_STATE_READY)
            await self._phase_boundary(generation)

            result = self.render()
            self._set_progress(PROGRESS_DONE)
            return result
        finally:
            if generation == self._generation:
                self._set_enabled(True)

    async def _segment(self, canvas: ImageBuffer, generation: int) -> ImageBuffer:
        if self.segmenter is None:
            raise SegmentationFailed("segment mode needs a segmenter")

        def _forward(fraction: float) -> None:
            if generation == self._generation:
                self._set_progress(PROGRESS_MASK_STARTED + int(fraction * PROGRESS_MASK_SPAN))

        cutout = await self.segmenter.segment(canvas, progress=_forward)
        if generation != self._generation:
            raise asyncio.CancelledError()
        try:
            return resize_to_canvas(cutout, canvas.size)
        except InvalidDimensions as exc:
            raise SegmentationFailed(f"cutout unusable: {exc}") from exc

    def cancel(self) -> None:
        """Invalidate any running load and cancel the in-flight task.

        The previous image's state stays installed, so pointer input is
        accepted again right away.
        """
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._set_enabled(True)

    # Rendering -----------------------------------------------------------
    def render(self, spec: TextSpec | None = None) -> CompositeResult:
        if spec is not None:
            self.text = spec
            if self._scheduler is not None:
                self._scheduler.spec = spec
        state = self.state
        if state is None:
            return CompositeResult.empty()
        width, height = state.canvas_size
        try:
            text_layer = rasterize_text(self.text, width, height)
            result = composite(state.original, state.mask, text_layer, state.cutout)
        except (InvalidDimensions, RenderingContextUnavailable) as exc:
            LOGGER.warning("render skipped: %s", exc)
            result = CompositeResult.empty(state.mask)
        self.last_result = result
        if self._on_render is not None:
            self._on_render(result)
        return result

    def mask_overlay(self) -> ImageBuffer:
        if self.state is None:
            return ImageBuffer.empty()
        return render_mask_overlay(
            self.state.mask,
            color=self.settings.mask_overlay_color,
            opacity=self.settings.mask_overlay_opacity,
        )

    def scheduler(self, host: TimerHost) -> InteractionScheduler:
        """Drag/edit scheduler whose renders land on this session."""
        if self._scheduler is None:
            self._scheduler = InteractionScheduler(
                host,
                self.render,
                self.text,
                frame_interval=self.settings.frame_interval,
                drag_delay=self.settings.drag_delay,
            )
            self._scheduler.set_enabled(not self.is_processing)
        return self._scheduler

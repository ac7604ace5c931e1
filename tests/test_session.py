import asyncio

import numpy as np
import pytest

from conftest import split_image
from textbehind.config import PipelineSettings
from textbehind.errors import DecodeFailed, SegmentationFailed
from textbehind.models import ImageBuffer, MaskOrigin, TextSpec
from textbehind.session import OverlaySession


def _settings(**kwargs) -> PipelineSettings:
    return PipelineSettings(phase_delay=0.0, **kwargs)


class _RectSegmenter:
    """Cutout opaque inside a rectangle, transparent elsewhere."""

    def __init__(self, box: tuple[int, int, int, int], size: tuple[int, int] | None = None) -> None:
        self.box = box
        self.size = size
        self.calls = 0

    async def segment(self, image: ImageBuffer, progress=None) -> ImageBuffer:
        self.calls += 1
        width, height = self.size or image.size
        pixels = np.zeros((height, width, 4), dtype=np.uint8)
        left, top, right, bottom = self.box
        pixels[top:bottom, left:right] = (0, 255, 0, 255)
        if progress is not None:
            progress(0.5)
            progress(1.0)
        await asyncio.sleep(0)
        return ImageBuffer(width, height, pixels)


class _FailingSegmenter:
    async def segment(self, image: ImageBuffer, progress=None) -> ImageBuffer:
        raise SegmentationFailed("model crashed")


def test_edge_load_builds_state_and_first_render() -> None:
    progress: list[int] = []
    session = OverlaySession(_settings(), text=TextSpec(content="HI", size=12), on_progress=progress.append)

    result = asyncio.run(session.load(split_image(40, 30)))

    assert not result.is_empty
    assert result.image.size == (40, 30)
    assert session.state is not None
    assert session.state.mask.origin is MaskOrigin.GRADIENT_EDGE
    assert session.state.mask.foreground_count() > 0
    assert progress[-1] == 100
    assert progress == sorted(progress)


def test_load_resizes_to_max_dimension() -> None:
    session = OverlaySession(_settings(max_dimension=20))

    result = asyncio.run(session.load(split_image(80, 40), "fast"))

    assert result.image.size == (20, 10)
    assert (session.state.mask.width, session.state.mask.height) == (20, 10)


def test_segment_load_uses_cutout_as_occluder() -> None:
    progress: list[int] = []
    segmenter = _RectSegmenter((10, 5, 30, 25))
    session = OverlaySession(
        _settings(),
        segmenter=segmenter,
        text=TextSpec(content="MMMM", size=30, color="#ff0000"),
        on_progress=progress.append,
    )

    result = asyncio.run(session.load(split_image(40, 30), "segment"))

    state = session.state
    assert state is not None and state.cutout is not None
    assert state.mask.origin is MaskOrigin.ALPHA_THRESHOLD
    assert state.mask.values[15, 20] == 255
    assert state.mask.values[0, 0] == 0
    assert tuple(result.image.pixels[15, 20]) == (0, 255, 0, 255)
    assert 55 in progress and 80 in progress


def test_cutout_is_stretched_to_canvas() -> None:
    session = OverlaySession(_settings(), segmenter=_RectSegmenter((0, 0, 80, 60), size=(80, 60)))

    asyncio.run(session.load(split_image(40, 30), "segment"))

    assert session.state.cutout.size == (40, 30)
    assert session.state.mask.foreground_count() == 40 * 30


def test_segmentation_failure_propagates() -> None:
    session = OverlaySession(_settings(), segmenter=_FailingSegmenter())

    with pytest.raises(SegmentationFailed):
        asyncio.run(session.load(split_image(10, 10), "segment"))
    assert session.state is None


def test_segment_mode_without_segmenter_fails() -> None:
    session = OverlaySession(_settings())

    with pytest.raises(SegmentationFailed):
        asyncio.run(session.load(split_image(10, 10), "segment"))


def test_decode_failure_propagates() -> None:
    session = OverlaySession(_settings())

    with pytest.raises(DecodeFailed):
        asyncio.run(session.load(b"definitely not an image"))


def test_newer_load_wins_over_stale_one() -> None:
    session = OverlaySession(_settings())
    first = split_image(20, 20)
    second = split_image(30, 10)

    async def scenario():
        return await asyncio.gather(session.load(first), session.load(second), return_exceptions=True)

    outcome = asyncio.run(scenario())

    assert isinstance(outcome[0], asyncio.CancelledError)
    assert outcome[1].image.size == (30, 10)
    assert session.state.generation == session.generation
    assert session.state.original.size == (30, 10)


def test_start_load_cancels_in_flight_task() -> None:
    class _SlowSegmenter:
        def __init__(self) -> None:
            self.started = asyncio.Event()

        async def segment(self, image, progress=None):
            self.started.set()
            await asyncio.sleep(10)
            raise AssertionError("should have been cancelled")

    async def scenario():
        segmenter = _SlowSegmenter()
        session = OverlaySession(_settings(), segmenter=segmenter)
        slow = session.start_load(split_image(20, 20), "segment")
        await segmenter.started.wait()
        fast = session.start_load(split_image(12, 12), "standard")
        result = await fast
        await asyncio.gather(slow, return_exceptions=True)
        return session, slow, result

    session, slow, result = asyncio.run(scenario())

    assert slow.cancelled()
    assert result.image.size == (12, 12)
    assert session.state.original.size == (12, 12)
    assert not session.is_processing


def test_text_edits_reuse_the_mask() -> None:
    session = OverlaySession(_settings())
    asyncio.run(session.load(split_image(40, 30)))
    mask_before = session.state.mask

    result = session.render(TextSpec(content="moved", x=10, y=90))

    assert session.state.mask is mask_before
    assert result.mask is mask_before
    assert session.last_result is result


def test_render_before_load_is_empty() -> None:
    assert OverlaySession().render().is_empty


def test_scheduler_is_disabled_while_loading(timer_host) -> None:
    session = OverlaySession(_settings())
    scheduler = session.scheduler(timer_host)
    seen: list[bool] = []

    async def scenario():
        task = session.start_load(split_image(20, 20))
        await asyncio.sleep(0)
        seen.append(scheduler.enabled)
        await task

    asyncio.run(scenario())

    assert seen == [False]
    assert scheduler.enabled
    scheduler.pointer_down(0, 0)
    timer_host.advance(1.0)
    assert session.text.x == 0.0
    assert not session.last_result.is_empty


def test_mask_overlay_matches_canvas() -> None:
    session = OverlaySession(_settings())
    asyncio.run(session.load(split_image(16, 8)))

    overlay = session.mask_overlay()

    assert overlay.size == (16, 8)
    assert overlay.alpha.max() == 128


def test_cancel_keeps_previous_image_interactive(timer_host) -> None:
    session = OverlaySession(_settings())
    scheduler = session.scheduler(timer_host)
    asyncio.run(session.load(split_image(20, 20)))

    async def scenario():
        task = session.start_load(split_image(30, 30))
        await asyncio.sleep(0)
        assert not scheduler.enabled
        session.cancel()
        await asyncio.gather(task, return_exceptions=True)

    asyncio.run(scenario())

    assert session.state.original.size == (20, 20)
    assert not session.is_processing
    assert scheduler.enabled
    scheduler.pointer_down(10, 10)
    timer_host.advance(1.0)
    assert session.text.x == 10.0


def test_direct_render_is_seen_by_later_drags(timer_host) -> None:
    session = OverlaySession(_settings())
    scheduler = session.scheduler(timer_host)
    asyncio.run(session.load(split_image(20, 20)))

    session.render(TextSpec(content="NEW", color="#00ff00"))
    scheduler.pointer_down(10, 10)
    timer_host.advance(1.0)

    assert session.text.content == "NEW"
    assert session.text.color == "#00ff00"
    assert (session.text.x, session.text.y) == (10.0, 10.0)


@pytest.mark.parametrize("cancel_at", [10, 20, 30, 90])
def test_cancel_at_each_phase_boundary(cancel_at, timer_host) -> None:
    rendered = []
    session = None

    def on_progress(value: int) -> None:
        if value == cancel_at:
            session.cancel()

    session = OverlaySession(_settings(), on_progress=on_progress, on_render=rendered.append)
    scheduler = session.scheduler(timer_host)

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(session.load(split_image(24, 16)))

    assert rendered == []
    assert session.last_result.is_empty
    assert scheduler.enabled
    if cancel_at < 90:
        assert session.state is None
    else:
        assert session.state.mask.foreground_count() > 0

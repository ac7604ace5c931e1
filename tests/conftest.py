from __future__ import annotations

import numpy as np
import pytest

from textbehind.models import ImageBuffer


class _FakeHandle:
    def __init__(self, when: float, callback, args) -> None:
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimerHost:
    """Deterministic stand-in for an event loop's ``call_later``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.handles: list[_FakeHandle] = []

    def call_later(self, delay: float, callback, *args) -> _FakeHandle:
        handle = _FakeHandle(self.now + delay, callback, args)
        self.handles.append(handle)
        return handle

    @property
    def active(self) -> list[_FakeHandle]:
        return [handle for handle in self.handles if not handle.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self.handles if not h.cancelled and h.when <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self.handles.remove(handle)
            self.now = max(self.now, handle.when)
            handle.callback(*handle.args)
        self.now = target


@pytest.fixture
def timer_host() -> FakeTimerHost:
    return FakeTimerHost()


def solid_image(width: int, height: int, rgba: tuple[int, int, int, int]) -> ImageBuffer:
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[:, :] = rgba
    return ImageBuffer(width, height, pixels)


def split_image(width: int, height: int) -> ImageBuffer:
    """Left half black, right half white, fully opaque."""
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[:, :, 3] = 255
    pixels[:, width // 2 :, :3] = 255
    return ImageBuffer(width, height, pixels)

"""Recomposition scheduling for interactive text edits.

Idle: a change renders on the next frame tick. Dragging: a change renders one
frame tick plus ``drag_delay`` later. In both states a new request replaces
the pending one and cancels its timer, so superseded positions are dropped
and at most one render happens per window.

The host only needs ``call_later(delay, callback)`` returning something with
``cancel()``; an asyncio event loop works as is.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Protocol

from textbehind.models import TextSpec, clamp_percent

LOGGER = logging.getLogger(__name__)

RenderCallback = Callable[[TextSpec], Any]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerHost(Protocol):
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


def position_from_pixels(px: float, py: float, width: float, height: float) -> tuple[float, float]:
    """Pointer position on a displayed canvas → clamped (x%, y%)."""
    if width <= 0 or height <= 0:
        return 50.0, 50.0
    return clamp_percent(px / width * 100.0), clamp_percent(py / height * 100.0)


class InteractionScheduler:
    def __init__(
        self,
        host: TimerHost,
        render: RenderCallback,
        spec: TextSpec | None = None,
        *,
        frame_interval: float = 1 / 60,
        drag_delay: float = 0.05,
    ) -> None:
        self._host = host
        self._render = render
        self._spec = spec or TextSpec()
        self.frame_interval = max(0.0, float(frame_interval))
        self.drag_delay = max(0.0, float(drag_delay))
        self._state = DragState.IDLE
        self._enabled = True
        self._pending: TextSpec | None = None
        self._deferred = False
        self._handle: TimerHandle | None = None
        self.render_count = 0

    @property
    def state(self) -> DragState:
        return self._state

    @property
    def spec(self) -> TextSpec:
        return self._spec

    @spec.setter
    def spec(self, spec: TextSpec) -> None:
        """Adopt a spec rendered elsewhere without scheduling a render."""
        self._spec = spec

    @property
    def pending(self) -> TextSpec | None:
        return self._pending

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        """While disabled (image still processing) pointer input is ignored.

        Style edits made while disabled are kept and rendered once re-enabled.
        """
        self._enabled = bool(enabled)
        if not self._enabled:
            if self._state is DragState.DRAGGING:
                self._state = DragState.IDLE
            if self._pending is not None:
                self._cancel_timer()
                self._pending = None
                self._deferred = True
            return
        if self._deferred:
            self._deferred = False
            self._request(self._spec)

    # Pointer input -------------------------------------------------------
    def pointer_down(self, x: float, y: float) -> None:
        if not self._enabled:
            return
        self._state = DragState.DRAGGING
        self._request(self._spec.with_position(x, y))

    def pointer_move(self, x: float, y: float) -> None:
        if not self._enabled or self._state is not DragState.DRAGGING:
            return
        self._request(self._spec.with_position(x, y))

    def pointer_up(self) -> None:
        self._state = DragState.IDLE

    pointer_leave = pointer_up

    # Non-positional edits ------------------------------------------------
    def update(self, spec: TextSpec) -> None:
        if not self._enabled:
            self._spec = spec
            self._deferred = True
            return
        self._request(spec)

    def update_style(self, **changes: Any) -> None:
        self.update(self._spec.with_changes(**changes))

    # Slot handling -------------------------------------------------------
    def _delay(self) -> float:
        if self._state is DragState.DRAGGING:
            return self.frame_interval + self.drag_delay
        return self.frame_interval

    def _request(self, spec: TextSpec) -> None:
        self._spec = spec
        self._pending = spec
        self._cancel_timer()
        self._handle = self._host.call_later(self._delay(), self._drain)

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _drain(self) -> None:
        self._handle = None
        spec, self._pending = self._pending, None
        if spec is None:
            return
        self.render_count += 1
        LOGGER.debug("recompose #%d (%s) at x=%.1f y=%.1f", self.render_count, self._state.value, spec.x, spec.y)
        self._render(spec)

    def flush(self) -> None:
        """Render the pending request now instead of waiting for its tick."""
        self._cancel_timer()
        self._drain()

    def cancel(self) -> None:
        self._cancel_timer()
        self._pending = None

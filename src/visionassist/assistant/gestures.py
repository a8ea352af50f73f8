"""Gesture events and multi-tap detection."""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from visionassist.common import get_logger

Action = Callable[[], Optional[Awaitable[Any]]]


class GestureKind(Enum):
    """Semantic gestures delivered by the presentation surface."""

    TAP = "tap"  # main surface tap, subject to multi-tap detection
    DESCRIBE = "describe"  # explicit describe button
    ASK = "ask"  # spoken or typed question
    SETTINGS = "settings"  # explicit settings button
    VOICE_TOGGLE = "voice_toggle"


@dataclass(frozen=True)
class Gesture:
    """A user gesture, optionally carrying a question."""

    kind: GestureKind
    query: str | None = None


class TapDetector:
    """Turns a burst of taps into exactly one action.

    Every tap restarts the window. Reaching ``settings_taps`` fires
    ``on_settings`` at once; otherwise ``on_single`` fires when the window
    runs out. Coroutine actions are scheduled as tasks.
    """

    def __init__(
        self,
        on_single: Action,
        on_settings: Action,
        window_ms: int = 400,
        settings_taps: int = 3,
    ) -> None:
        self.on_single = on_single
        self.on_settings = on_settings
        self.window = window_ms / 1000
        self.settings_taps = settings_taps
        self._count = 0
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Future] = set()
        self.logger = get_logger("tap_detector")

    @property
    def pending_taps(self) -> int:
        return self._count

    def tap(self) -> None:
        """Register one tap. Must be called from the event loop."""
        self._cancel_timer()
        self._count += 1

        if self._count >= self.settings_taps:
            self.logger.debug("multi_tap_detected", taps=self._count)
            self._count = 0
            self._fire(self.on_settings)
            return

        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.window, self._expire)

    def reset(self) -> None:
        """Forget pending taps without firing anything."""
        self._cancel_timer()
        self._count = 0

    def _expire(self) -> None:
        self._timer = None
        taps, self._count = self._count, 0
        if taps:
            self.logger.debug("tap_window_elapsed", taps=taps)
            self._fire(self.on_single)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, action: Action) -> None:
        result = action()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

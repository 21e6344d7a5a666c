"""Shared fixtures for the livescribe test-suite."""

from __future__ import annotations

import heapq
import itertools
from typing import Any, Callable, List, Tuple

import pytest


class ManualTimerHandle:
    def __init__(self, when: float, callback: Callable[..., Any], args: Tuple[Any, ...]) -> None:
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualLoop:
    """Just enough of an event loop for timer-driven code, advanced by hand."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: List[Tuple[float, int, ManualTimerHandle]] = []
        self._sequence = itertools.count()

    def time(self) -> float:
        return self.now

    def call_at(self, when: float, callback: Callable[..., Any], *args: Any) -> ManualTimerHandle:
        handle = ManualTimerHandle(when, callback, args)
        heapq.heappush(self._timers, (when, next(self._sequence), handle))
        return handle

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> ManualTimerHandle:
        return self.call_at(self.now + delay, callback, *args)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while self._timers and self._timers[0][0] <= target + 1e-9:
            when, _, handle = heapq.heappop(self._timers)
            if handle.cancelled:
                continue
            self.now = max(self.now, when)
            handle.callback(*handle.args)
        self.now = target

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle in self._timers if not handle.cancelled)


@pytest.fixture
def manual_loop() -> ManualLoop:
    return ManualLoop()

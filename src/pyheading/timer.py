"""Single-shot timeout timer bound to an asyncio event loop.

Each arming gets a new generation number. Cancelling bumps the
generation, so a callback that was already queued by the loop when the
timer was cancelled sees a stale generation and does nothing.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable

_logger = logging.getLogger(__name__)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class TimeoutTimer:
    """At most one pending single-shot callback."""

    def __init__(self, *, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._lock = threading.Lock()
        self._handle: asyncio.TimerHandle | None = None
        self._generation = 0
        self._armed = False

    @property
    def is_armed(self) -> bool:
        return self._armed

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        return self._armed and generation == self._generation

    def start(self, delay: float, callback: Callable[[int], None]) -> int:
        """Arm the timer and return its generation.

        ``callback`` receives the generation it was armed with. Calling
        ``start`` while armed is an error; callers check :attr:`is_armed`.
        The loop is the one given at construction, else the running loop.
        """
        with self._lock:
            if self._armed:
                raise RuntimeError("timer is already armed")
            loop = self._loop or _running_loop()
            if loop is None:
                raise RuntimeError("TimeoutTimer.start() requires a running event loop or an explicit loop")
            self._loop = loop
            self._generation += 1
            self._armed = True
            generation = self._generation

        if _running_loop() is loop:
            self._arm(generation, delay, callback)
        else:
            loop.call_soon_threadsafe(self._arm, generation, delay, callback)
        return generation

    def _arm(self, generation: int, delay: float, callback: Callable[[int], None]) -> None:
        with self._lock:
            if not self.is_current(generation) or self._loop is None:
                return
            self._handle = self._loop.call_later(delay, self._fire, generation, callback)
        _logger.debug("Timeout armed generation=%d delay=%.3fs", generation, delay)

    def _fire(self, generation: int, callback: Callable[[int], None]) -> None:
        with self._lock:
            if not self.is_current(generation):
                return
            self._handle = None
            self._armed = False
        _logger.debug("Timeout fired generation=%d", generation)
        callback(generation)

    def cancel(self) -> bool:
        """Invalidate any pending callback. Returns ``True`` if one was pending."""
        with self._lock:
            was_armed = self._armed
            handle = self._handle
            self._handle = None
            self._armed = False
            self._generation += 1
        if handle is not None:
            handle.cancel()
        if was_armed:
            _logger.debug("Timeout cancelled")
        return was_armed

"""
Debounce timer: collapses bursts of triggers into one delayed callback.
"""

import asyncio
from typing import Callable, Optional


class Debouncer:
    """Keeps at most one pending timer on the event loop.

    ``trigger()`` while a timer is pending cancels it and starts a new one, so the
    callback runs once, ``delay`` seconds after the last trigger of a burst.
    """

    def __init__(self, delay: float, callback: Callable[[], None], loop: Optional[asyncio.AbstractEventLoop] = None):
        if delay < 0:
            raise ValueError(f"Debounce delay must be non-negative, got {delay}")
        self.delay = delay
        self._callback = callback
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        """Restart the timer. Must be called from the loop thread."""
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback()

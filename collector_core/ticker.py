"""
Ticker — fires on_tick(now) every TICK_INTERVAL_SEC on the running asyncio loop.

Re-arms itself with loop.call_later after each fire, so a delayed loop
simply produces fewer ticks. Missed ticks are never caught up.
"""

import asyncio
import time

from .config import log
from .constants import TICK_INTERVAL_SEC
from .signals import Signal


class Ticker:
    def __init__(self, interval=TICK_INTERVAL_SEC, clock=time.time):
        self._interval = interval
        self._clock = clock
        self._loop = None
        self._handle = None
        self.on_tick = Signal("tick")

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self):
        if self._handle is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._handle = self._loop.call_later(self._interval, self._fire)

    def stop(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self):
        if self._handle is None:
            return
        try:
            self.on_tick.emit(self._clock())
        except Exception as e:
            log.error("_tick error: %s", e, exc_info=True)
        # stop() may have run inside a subscriber
        if self._handle is not None:
            self._handle = self._loop.call_later(self._interval, self._fire)

"""
Signal — a minimal typed observer used for the core's subscription points.

Subscribers run in registration order on the event-loop thread. A failing
subscriber is logged and skipped; it never stops delivery to the others.
"""

import inspect

from .config import log


class Signal:
    def __init__(self, name):
        self.name = name
        self._subscribers = []

    def subscribe(self, callback):
        """Register a callback. Returns a zero-arg function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self):
        return len(self._subscribers)

    def emit(self, *args):
        """Call synchronous subscribers. Coroutine results are closed unawaited."""
        for callback in list(self._subscribers):
            try:
                result = callback(*args)
            except Exception as e:
                log.error("%s subscriber %r failed: %s", self.name, callback, e, exc_info=True)
                continue
            if inspect.iscoroutine(result):
                log.warning("%s subscriber %r is async — use emit_async", self.name, callback)
                result.close()

    async def emit_async(self, *args):
        """Call subscribers, awaiting any that return a coroutine."""
        for callback in list(self._subscribers):
            try:
                result = callback(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                log.error("%s subscriber %r failed: %s", self.name, callback, e, exc_info=True)

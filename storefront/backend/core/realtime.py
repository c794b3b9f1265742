"""Debounced, coalescing invalidation queue for table change notifications."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

# absorbs float rounding in clock differences (2.3 - 1.8 < 0.5)
_CLOCK_TOLERANCE = 1e-9

ChangeCallback = Callable[[str, list[Any]], None]


class InvalidationQueue:
    """Collect change events per table and deliver them in batches.

    Events for a table are held until ``debounce`` seconds have passed since
    the *last* event for it; :meth:`flush` then calls each subscriber of that
    table once with every event collected in the meantime.
    """

    def __init__(self, debounce: float = 0.5, clock: Callable[[], float] = time.monotonic):
        self.debounce = debounce
        self.clock = clock
        self._subscribers: dict[str, list[ChangeCallback]] = {}
        self._pending: dict[str, list[Any]] = {}
        self._last_event: dict[str, float] = {}
        self._lock = threading.Lock()

    def subscribe(self, table: str, callback: ChangeCallback) -> Callable[[], None]:
        """Register ``callback`` for ``table``; returns an unsubscribe function."""
        with self._lock:
            self._subscribers.setdefault(table, []).append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(table, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return _unsubscribe

    def notify(self, table: str, event: Any = None, now: float | None = None) -> None:
        now = self.clock() if now is None else now
        with self._lock:
            self._pending.setdefault(table, []).append(event)
            self._last_event[table] = now

    def pending(self) -> dict[str, int]:
        """Table → number of events waiting."""
        with self._lock:
            return {table: len(events) for table, events in self._pending.items()}

    def flush(self, now: float | None = None, force: bool = False) -> list[str]:
        """Deliver every table whose debounce window has elapsed.

        Returns:
            The tables that were delivered.
        """
        now = self.clock() if now is None else now
        with self._lock:
            ready = [
                table
                for table, last in self._last_event.items()
                if force or now - last + _CLOCK_TOLERANCE >= self.debounce
            ]
            batches = []
            for table in ready:
                events = self._pending.pop(table, [])
                del self._last_event[table]
                batches.append((table, events, list(self._subscribers.get(table, []))))

        for table, events, callbacks in batches:
            for callback in callbacks:
                try:
                    callback(table, events)
                except Exception:
                    logger.exception("Change subscriber for %s failed", table)
            logger.debug("Flushed %d %s change(s) to %d subscriber(s)", len(events), table, len(callbacks))
        return ready

"""Keyed work queue feeding the reconciliation workers.

A key is never handed to two workers at once. Adding a key that is already
pending is a no-op, and adding a key while it is being processed schedules
exactly one more run once the current one is done.
"""

from __future__ import annotations

import logging
from collections import deque
from threading import Condition, Timer
from typing import Deque, Dict, Optional, Set

LOG = logging.getLogger(__name__)


class WorkQueue:
    def __init__(self, base_backoff: float = 1.0, max_backoff: float = 300.0) -> None:
        self._cond = Condition()
        self._queue: Deque[str] = deque()
        self._dirty: Set[str] = set()
        self._processing: Set[str] = set()
        self._failures: Dict[str, int] = {}
        self._timers: Set[Timer] = set()
        self._shutting_down = False
        self._base_backoff = base_backoff
        self._max_backoff = max_backoff

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def add(self, key: str) -> None:
        with self._cond:
            if self._shutting_down or key in self._dirty:
                return
            self._dirty.add(key)
            if key in self._processing:
                return
            self._queue.append(key)
            self._cond.notify()

    def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """Return the next key, or ``None`` on shutdown or timeout."""

        with self._cond:
            if not self._cond.wait_for(
                lambda: self._queue or self._shutting_down, timeout=timeout
            ):
                return None
            if self._shutting_down:
                return None
            key = self._queue.popleft()
            self._dirty.discard(key)
            self._processing.add(key)
            return key

    def done(self, key: str) -> None:
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty and not self._shutting_down:
                self._queue.append(key)
                self._cond.notify()

    # ------------------------------------------------------------------
    # Delayed / rate limited adds
    # ------------------------------------------------------------------
    def backoff_for(self, key: str) -> float:
        with self._cond:
            failures = self._failures.get(key, 0)
        return min(self._base_backoff * (2 ** failures), self._max_backoff)

    def add_after(self, key: str, delay: float) -> None:
        if delay <= 0:
            self.add(key)
            return

        def _fire() -> None:
            with self._cond:
                self._timers.discard(timer)
            self.add(key)

        timer = Timer(delay, _fire)
        timer.daemon = True
        with self._cond:
            if self._shutting_down:
                return
            self._timers.add(timer)
        timer.start()

    def add_rate_limited(self, key: str) -> float:
        """Re-add ``key`` after an exponential backoff and return the delay."""

        delay = self.backoff_for(key)
        with self._cond:
            self._failures[key] = self._failures.get(key, 0) + 1
        LOG.debug("requeueing %s in %.1fs", key, delay)
        self.add_after(key, delay)
        return delay

    def forget(self, key: str) -> None:
        with self._cond:
            self._failures.pop(key, None)

    def shutdown(self) -> None:
        with self._cond:
            self._shutting_down = True
            timers = list(self._timers)
            self._timers.clear()
            self._cond.notify_all()
        for timer in timers:
            timer.cancel()

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable

__all__ = ["ClientRateLimiter"]


class ClientRateLimiter:
    """
    Per-client sliding-window limiter.

    - Allows at most `max_calls` per client key within any `per_seconds`
      window; `allow()` never blocks, it only answers yes or no.
    - `max_calls == 0` disables limiting.
    - Idle clients are dropped on access so the map does not grow without
      bound.
    """

    def __init__(
        self, max_calls: int, per_seconds: float, *, clock: Callable[[], float] = time.monotonic
    ) -> None:
        if max_calls < 0:
            raise ValueError("max_calls must be >= 0")
        if per_seconds <= 0:
            raise ValueError("per_seconds must be > 0")
        self._max_calls = max_calls
        self._per_seconds = per_seconds
        self._clock = clock
        self._events: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._max_calls > 0

    def _prune(self, now: float) -> None:
        window_start = now - self._per_seconds
        for key in list(self._events):
            events = self._events[key]
            while events and events[0] <= window_start:
                events.popleft()
            if not events:
                del self._events[key]

    def retry_after(self, key: str) -> float:
        """Seconds until `key` gets a free slot again (0 if it has one)."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            events = self._events.get(key)
            if not events or len(events) < self._max_calls:
                return 0.0
            return max(0.0, events[0] + self._per_seconds - now)

    def allow(self, key: str) -> bool:
        """Record a call for `key` if a slot is free; return whether it was."""
        if not self.enabled:
            return True
        with self._lock:
            now = self._clock()
            self._prune(now)
            events = self._events.setdefault(key, deque())
            if len(events) >= self._max_calls:
                return False
            events.append(now)
            return True

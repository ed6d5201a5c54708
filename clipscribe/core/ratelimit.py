from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """Per-key fixed-window counter, e.g. 10 requests per 60 s per client IP.

    Process-local and best effort: separate worker processes each keep their
    own counts, so this deters abuse but guarantees nothing. Threads within
    one process share a lock.
    """

    def __init__(
        self,
        limit: int,
        window_s: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self.window_s = window_s
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._next_prune = clock() + window_s
        self._lock = Lock()

    def hit(self, key: str) -> bool:
        """Count one request for ``key``; return False when it is over the limit."""
        with self._lock:
            now = self._clock()
            if now >= self._next_prune:
                self._prune(now)
            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + self.window_s)
                return True
            window.count += 1
            return window.count <= self.limit

    def remaining(self, key: str) -> int:
        with self._lock:
            window = self._windows.get(key)
            if window is None or self._clock() >= window.reset_at:
                return self.limit
            return max(self.limit - window.count, 0)

    def prune(self, now: Optional[float] = None) -> int:
        with self._lock:
            return self._prune(self._clock() if now is None else now)

    def _prune(self, now: float) -> int:
        expired = [k for k, w in self._windows.items() if now >= w.reset_at]
        for key in expired:
            del self._windows[key]
        self._next_prune = now + self.window_s
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

from __future__ import annotations

import time
from collections import OrderedDict
from threading import Lock
from typing import Callable, Generic, Hashable, Optional, Tuple, TypeVar


V = TypeVar("V")


class TTLCache(Generic[V]):
    """Small in-memory cache with per-entry expiry and oldest-first eviction.

    Safe to share between request threads.
    """

    def __init__(
        self,
        ttl_s: float,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_s = ttl_s
        self.max_entries = max_entries
        self._clock = clock
        self._data: "OrderedDict[Hashable, Tuple[float, V]]" = OrderedDict()
        self._lock = Lock()

    def get(self, key: Hashable) -> Optional[V]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._data[key]
                return None
            return value

    def set(self, key: Hashable, value: V) -> None:
        with self._lock:
            if key in self._data:
                del self._data[key]
            elif len(self._data) >= self.max_entries:
                self._prune()
                while len(self._data) >= self.max_entries:
                    self._data.popitem(last=False)
            self._data[key] = (self._clock() + self.ttl_s, value)

    def prune(self) -> int:
        with self._lock:
            return self._prune()

    def _prune(self) -> int:
        now = self._clock()
        expired = [k for k, (expires_at, _) in self._data.items() if now >= expires_at]
        for key in expired:
            del self._data[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

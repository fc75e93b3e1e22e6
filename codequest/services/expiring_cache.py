"""Thread-safe key/value store with per-entry expiry."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple


class ExpiringCache:
    """
    Entries expire ``ttl_seconds`` after they are stored.

    Expired entries are swept lazily on ``get``/``set`` and on demand via
    ``sweep()``; there is no background thread.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[float, Any]] = {}

    def _sweep_locked(self, now: float) -> int:
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        now = self._clock()
        with self._lock:
            self._sweep_locked(now)
            self._entries[key] = (now + (ttl_seconds or self.ttl_seconds), value)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            self._sweep_locked(self._clock())
            entry = self._entries.get(key)
            return default if entry is None else entry[1]

    def pop(self, key: str, default: Any = None) -> Any:
        """Remove and return a live entry."""
        with self._lock:
            self._sweep_locked(self._clock())
            entry = self._entries.pop(key, None)
            return default if entry is None else entry[1]

    def sweep(self) -> int:
        """Drop expired entries; returns how many were removed."""
        with self._lock:
            return self._sweep_locked(self._clock())

    def __len__(self) -> int:
        with self._lock:
            self._sweep_locked(self._clock())
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING


_MISSING = object()

"""In-memory sliding-window rate limiting for the run-tests endpoints."""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Optional

from codequest.config import settings
from codequest.core.exceptions import RateLimitExceededError


@dataclass
class _Window:
    hits: Deque[float] = field(default_factory=deque)


class InMemoryRateLimiter:
    """Sliding-window limiter keyed by arbitrary strings; single process only."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._windows: Dict[str, _Window] = {}

    def _trim(self, key: str, now: float, window_seconds: int) -> _Window:
        window = self._windows.setdefault(key, _Window())
        cutoff = now - window_seconds
        while window.hits and window.hits[0] <= cutoff:
            window.hits.popleft()
        return window

    def allow(self, key: str, limit: int, window_seconds: int) -> bool:
        """Record a hit for ``key`` unless ``limit`` hits already fall inside the window."""
        now = time.time()
        with self._lock:
            window = self._trim(key, now, window_seconds)
            if len(window.hits) >= limit:
                return False
            window.hits.append(now)
            return True

    def remaining(self, key: str, limit: int, window_seconds: int) -> int:
        with self._lock:
            window = self._trim(key, time.time(), window_seconds)
            return max(0, limit - len(window.hits))

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def check_run(self, scope: str, client: str, username: Optional[str] = None) -> None:
        """
        Enforce the per-minute and per-hour run budgets.

        Args:
            scope: Endpoint family, e.g. ``execution`` or ``learning``
            client: Client address
            username: Learner name when the request carries one

        Raises:
            RateLimitExceededError: When either budget is exhausted
        """
        subject = f"{client}:{username or '-'}"
        if not self.allow(f"run:min:{scope}:{subject}", settings.RUN_RATE_LIMIT_PER_MINUTE, 60):
            raise RateLimitExceededError("Too many code runs. Please wait a minute.")
        if not self.allow(f"run:hour:{scope}:{subject}", settings.RUN_RATE_LIMIT_PER_HOUR, 3600):
            raise RateLimitExceededError("Hourly code-run limit reached. Please try later.")


rate_limiter = InMemoryRateLimiter()

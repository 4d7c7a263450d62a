"""
FILE: src/auth/rate_limit.py
Per-email failed-login counter (process-local, lock-guarded)
"""

import threading
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict

from src.core.config import settings

# Upper bound on how often record_failure scans for keys whose window has passed
SWEEP_INTERVAL_SECONDS = 60


class FailureCounter:
    """Sliding-window count of failed password checks per key."""

    def __init__(
        self,
        max_failures: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_failures = max_failures
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._failures: Dict[str, Deque[float]] = defaultdict(deque)
        self._sweep_interval = min(SWEEP_INTERVAL_SECONDS, window_seconds)
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._failures)

    def _prune(self, key: str, now: float) -> Deque[float]:
        events = self._failures[key]
        while events and now - events[0] >= self.window_seconds:
            events.popleft()
        return events

    def _sweep(self, now: float) -> None:
        """Drop every key whose newest failure has left the window."""
        stale = [
            key for key, events in self._failures.items()
            if not events or now - events[-1] >= self.window_seconds
        ]
        for key in stale:
            del self._failures[key]
        self._last_sweep = now

    def is_blocked(self, key: str) -> bool:
        with self._lock:
            events = self._prune(key, self._clock())
            blocked = len(events) >= self.max_failures
            if not events:
                del self._failures[key]
            return blocked

    def record_failure(self, key: str) -> int:
        with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self._sweep_interval:
                self._sweep(now)
            events = self._prune(key, now)
            events.append(now)
            return len(events)

    def reset(self, key: str) -> None:
        with self._lock:
            self._failures.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._failures.clear()


login_failures = FailureCounter(
    max_failures=settings.LOGIN_MAX_FAILURES,
    window_seconds=settings.LOGIN_FAILURE_WINDOW_SECONDS,
)

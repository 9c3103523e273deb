import threading
import time
from typing import Callable, Dict, List

from ...application.ports.rate_limiter import RateLimiter


class InMemoryRateLimiter(RateLimiter):
    """Sliding-window limiter for a single process.

    Safe to call from the request threadpool. Keys whose requests have all
    left the window are dropped on a periodic sweep.
    """

    def __init__(self, clock: Callable[[], float] = time.time, sweep_interval: float = 60.0) -> None:
        self._store: Dict[str, List[float]] = {}
        self._windows: Dict[str, int] = {}
        self._clock = clock
        self._lock = threading.Lock()
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    def _sweep(self, now: float) -> None:
        for key in list(self._store):
            window_start = now - self._windows.get(key, 0)
            if not any(t > window_start for t in self._store[key]):
                del self._store[key]
                self._windows.pop(key, None)
        self._next_sweep = now + self._sweep_interval

    def allow(self, key: str, max_requests: int, window_seconds: int) -> bool:
        with self._lock:
            now = self._clock()
            if now >= self._next_sweep:
                self._sweep(now)
            window_start = now - window_seconds
            # prune
            times = [t for t in self._store.get(key, []) if t > window_start]
            self._windows[key] = max(window_seconds, self._windows.get(key, 0))
            if len(times) >= max_requests:
                self._store[key] = times
                return False
            times.append(now)
            self._store[key] = times
            return True

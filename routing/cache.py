from __future__ import annotations

import threading
import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from pooling.models import Route, Waypoint

RouteKey = Tuple[Tuple[float, float], ...]


def route_key(waypoints: Sequence[Waypoint]) -> RouteKey:
    """
    Cache key = the exact coordinate sequence (order matters).
    """
    return tuple((w.latitude, w.longitude) for w in waypoints)


class RouteCache:
    """
    In-memory TTL cache for computed routes, safe to share between
    flights processed on different threads.

    Entries expire ttl_seconds after they were stored. The clock is
    injectable so tests can move time forward.
    """
    def __init__(self, ttl_seconds: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries = {}  # type: Dict[RouteKey, Tuple[float, Route]]

    def get(self, key: RouteKey) -> Optional[Route]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, route = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return route

    def set(self, key: RouteKey, route: Route) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl_seconds, route)

    def expire(self, key: RouteKey) -> bool:
        """Drop one entry. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            stale: List[RouteKey] = [k for k, (exp, _) in self._entries.items() if now >= exp]
            for k in stale:
                del self._entries[k]
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

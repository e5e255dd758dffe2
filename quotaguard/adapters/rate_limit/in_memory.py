"""In-memory counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: INCR and PEXPIRE run under a single lock, which gives the
  same atomicity guarantees as Redis within one process.
- Expired counters are swept during INCR at most once per sweep interval,
  so buckets of past windows do not accumulate.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

DEFAULT_SWEEP_INTERVAL_MS = 1_000


@dataclass
class _Counter:
    value: int
    expires_at_ms: int | None = None


class InMemoryCounterStore:
    """Counter store keeping expiring integer counters in a dict.

    An expired key behaves exactly like a missing one (the next INCR
    recreates it at 1).
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        sweep_interval_ms: int = DEFAULT_SWEEP_INTERVAL_MS,
    ) -> None:
        """Initialize the store.

        Args:
            clock: Time source function returning UNIX time in seconds.
            sweep_interval_ms: Minimum time between two sweeps of expired counters.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._counters: dict[str, _Counter] = {}
        self._sweep_interval_ms = sweep_interval_ms
        self._next_sweep_ms = 0

    def __len__(self) -> int:
        """Number of stored counters, including expired ones not yet swept."""
        with self._lock:
            return len(self._counters)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _get_live_locked(self, name: str) -> _Counter | None:
        counter = self._counters.get(name)
        if counter is None:
            return None
        if counter.expires_at_ms is not None and counter.expires_at_ms <= self._now_ms():
            del self._counters[name]
            return None
        return counter

    def _sweep_expired_locked(self, now_ms: int) -> None:
        if now_ms < self._next_sweep_ms:
            return
        self._next_sweep_ms = now_ms + self._sweep_interval_ms
        expired = [
            name
            for name, counter in self._counters.items()
            if counter.expires_at_ms is not None and counter.expires_at_ms <= now_ms
        ]
        for name in expired:
            del self._counters[name]

    def incr(self, name: str) -> int:
        """Increment ``name`` by one, creating it at 1 when missing."""
        with self._lock:
            self._sweep_expired_locked(self._now_ms())
            counter = self._get_live_locked(name)
            if counter is None:
                counter = _Counter(value=0)
                self._counters[name] = counter
            counter.value += 1
            return counter.value

    def pexpire(self, name: str, time: int) -> bool:
        """Expire ``name`` after ``time`` milliseconds.

        Returns:
            False when the key does not exist, True otherwise.
        """
        with self._lock:
            counter = self._get_live_locked(name)
            if counter is None:
                return False
            counter.expires_at_ms = self._now_ms() + int(time)
            return True

    def get(self, name: str) -> int | None:
        with self._lock:
            counter = self._get_live_locked(name)
            return None if counter is None else counter.value

    def pttl(self, name: str) -> int:
        """Remaining time-to-live in milliseconds, Redis style.

        Returns:
            -2 when the key does not exist, -1 when it has no TTL.
        """
        with self._lock:
            counter = self._get_live_locked(name)
            if counter is None:
                return -2
            if counter.expires_at_ms is None:
                return -1
            return counter.expires_at_ms - self._now_ms()

    def clear(self) -> None:
        with self._lock:
            self._counters.clear()

"""Fixed-window connection-attempt limiter keyed by source address."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict


@dataclass
class RateLimitRecord:
    count: int
    window_start: float


class RateLimiter:
    """
    Hard fixed window per source address:
      - the first attempt opens a window of ``window_s`` seconds
      - attempts beyond ``max_attempts`` keep counting and keep failing
      - the window only resets once it has fully elapsed
    Expired records are swept on every call.
    """

    def __init__(
        self,
        max_attempts: int = 10,
        window_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if window_s <= 0:
            raise ValueError("window_s must be positive")
        self.max_attempts = max_attempts
        self.window_s = window_s
        self._clock = clock
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()

    def admit_attempt(self, source_address: str) -> bool:
        now = self._clock()
        with self._lock:
            self._sweep(now)
            record = self._records.get(source_address)
            if record is None or now - record.window_start >= self.window_s:
                record = RateLimitRecord(count=0, window_start=now)
                self._records[source_address] = record
            record.count += 1
            return record.count <= self.max_attempts

    def _sweep(self, now: float) -> None:
        expired = [
            addr for addr, rec in self._records.items() if now - rec.window_start >= self.window_s
        ]
        for addr in expired:
            del self._records[addr]

    def blocked_sources(self) -> int:
        """Number of addresses currently over their limit."""

        now = self._clock()
        with self._lock:
            self._sweep(now)
            return sum(1 for rec in self._records.values() if rec.count > self.max_attempts)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

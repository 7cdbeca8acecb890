from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass
class Bucket:
    tokens: float
    last_ts: float


class InMemoryRateLimiter:
    """
    Token bucket:
      capacity tokens; refill rate tokens/sec.

    Keyed by (actor_id, route_key). Once more than ``max_buckets`` keys are
    tracked, buckets that have refilled to capacity are dropped; a fresh
    bucket starts full, so dropping them changes no decision.
    """
    def __init__(self, capacity: int, refill_per_sec: float, max_buckets: int = 10_000):
        self.capacity = float(capacity)
        self.refill_per_sec = float(refill_per_sec)
        self.max_buckets = max_buckets
        self._buckets: Dict[Tuple[str, str], Bucket] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._buckets)

    def _refilled(self, b: Bucket, now: float) -> float:
        elapsed = max(0.0, now - b.last_ts)
        return min(self.capacity, b.tokens + elapsed * self.refill_per_sec)

    def _prune(self, now: float) -> None:
        idle = [k for k, b in self._buckets.items() if self._refilled(b, now) >= self.capacity]
        for k in idle:
            del self._buckets[k]

    def allow(
        self, actor_id: str, route_key: str, cost: float = 1.0, now: Optional[float] = None
    ) -> bool:
        now = time.monotonic() if now is None else now
        k = (actor_id, route_key)
        with self._lock:
            b = self._buckets.get(k)
            if b is None:
                if len(self._buckets) >= self.max_buckets:
                    self._prune(now)
                b = Bucket(tokens=self.capacity, last_ts=now)
                self._buckets[k] = b

            # refill
            b.tokens = self._refilled(b, now)
            b.last_ts = now

            if b.tokens >= cost:
                b.tokens -= cost
                return True
            return False


def bid_limiter(capacity: int, per_minute: int) -> InMemoryRateLimiter:
    # e.g. 10 submissions per minute per selection per actor
    return InMemoryRateLimiter(capacity=capacity, refill_per_sec=per_minute / 60.0)

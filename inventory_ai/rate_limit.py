"""Fixed-window rate limiter keyed by client identity."""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from loguru import logger

from .config import RATE_LIMIT_POINTS, RATE_LIMIT_WINDOW_SECONDS
from .errors import RateLimitExceeded


@dataclass(frozen=True)
class RateLimitBucket:
    client_id: str
    remaining_tokens: int
    window_reset_at: float


class RateLimiter:
    """
    ``points`` tokens per client per ``window_seconds``.

    A client's window opens on its first request and resets in full at
    ``window_reset_at``. Buckets are replaced, never edited, and only this
    class touches them.
    """

    def __init__(
        self,
        points: int = RATE_LIMIT_POINTS,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if points <= 0 or window_seconds <= 0:
            raise ValueError("points and window_seconds must be positive")
        self.points = points
        self.window_seconds = window_seconds
        self._clock = clock
        self._buckets: Dict[str, RateLimitBucket] = {}
        self._lock = threading.Lock()

    def consume(self, client_id: str) -> RateLimitBucket:
        """Take one token or raise ``RateLimitExceeded`` with the seconds left in the window."""
        now = self._clock()
        with self._lock:
            bucket = self._buckets.get(client_id)
            if bucket is None or now >= bucket.window_reset_at:
                self._drop_expired(now)
                bucket = RateLimitBucket(client_id, self.points, now + self.window_seconds)

            if bucket.remaining_tokens <= 0:
                self._buckets[client_id] = bucket
                retry_after = max(1, math.ceil(bucket.window_reset_at - now))
                logger.info("Rate limit hit for {}; retry in {}s", client_id, retry_after)
                raise RateLimitExceeded(retry_after=retry_after, client_id=client_id)

            bucket = RateLimitBucket(client_id, bucket.remaining_tokens - 1, bucket.window_reset_at)
            self._buckets[client_id] = bucket
            return bucket

    def _drop_expired(self, now: float) -> None:
        # caller holds the lock; runs only when a new window opens
        expired = [cid for cid, b in self._buckets.items() if now >= b.window_reset_at]
        for cid in expired:
            del self._buckets[cid]

    def peek(self, client_id: str) -> Optional[RateLimitBucket]:
        with self._lock:
            bucket = self._buckets.get(client_id)
        if bucket is None or self._clock() >= bucket.window_reset_at:
            return None
        return bucket

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

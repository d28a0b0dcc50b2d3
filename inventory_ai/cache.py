"""Time-bounded result cache for enrichment and analysis payloads.

Entries are keyed by normalized phrase and expire after a TTL. There is no
capacity bound; an expired entry is dropped on the lookup that finds it.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from loguru import logger

from .config import CACHE_TTL_SECONDS


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: Any
    expires_at: float


class ResultCache:
    """TTL cache, last-writer-wins.

    Entries are never mutated in place, only replaced. ``clock`` is injectable
    so tests can move time forward.
    """

    def __init__(
        self,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._entries: Dict[str, CacheEntry] = {}
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def get(self, key: str) -> Optional[Any]:
        """Stored payload if ``now < expires_at``, else None (a miss)."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if self._clock() < entry.expires_at:
                    self._hits += 1
                    return entry.payload
                del self._entries[key]
                logger.debug("Cache entry expired: {}", key)
            self._misses += 1
            return None

    def set(self, key: str, payload: Any, ttl: Optional[float] = None) -> CacheEntry:
        """Store or overwrite unconditionally."""
        ttl = self._ttl_seconds if ttl is None else ttl
        entry = CacheEntry(key=key, payload=payload, expires_at=self._clock() + ttl)
        with self._lock:
            self._entries[key] = entry
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"entries": len(self._entries), "hits": self._hits, "misses": self._misses}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

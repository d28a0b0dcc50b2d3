from __future__ import annotations

"""
Caller-side flow for a single typing session.

The browser re-parses its text box after input has been stable for a short
interval. ``Debouncer`` models that as a cancellable scheduled task with
restart-on-input semantics, ``PendingSet`` keeps one session from asking for
the same text twice at once, and ``InputSession`` ties both to an
``ItemResolver``.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

from loguru import logger

from .config import DEBOUNCE_SECONDS, MatchedItem, ParseResponse, ResolvedItem
from .enrichment import utc_timestamp
from .errors import InventoryError, RateLimitExceeded
from .normalize import normalize_key
from .pipeline import ItemResolver

T = TypeVar("T")
R = TypeVar("R")


class PendingSet:
    """Lowercased texts currently being resolved by this session. Advisory only."""

    def __init__(self) -> None:
        self._keys: set[str] = set()

    def claim(self, text: str) -> bool:
        key = text.lower()
        if key in self._keys:
            return False
        self._keys.add(key)
        return True

    def release(self, text: str) -> None:
        self._keys.discard(text.lower())

    def __contains__(self, text: object) -> bool:
        return isinstance(text, str) and text.lower() in self._keys

    def __len__(self) -> int:
        return len(self._keys)


class Debouncer(Generic[T, R]):
    """
    Run ``callback(value)`` once input has been quiet for ``delay`` seconds.

    A new ``schedule`` cancels the previous task if its timer has not fired
    yet. Once fired, an invocation runs to completion; invocations never
    overlap.
    """

    def __init__(self, callback: Callable[[T], Awaitable[R]], delay: float = DEBOUNCE_SECONDS):
        self.callback = callback
        self.delay = delay
        self._pending: Optional[asyncio.Task] = None
        self._running = asyncio.Lock()

    @property
    def pending(self) -> Optional[asyncio.Task]:
        return self._pending

    def schedule(self, value: T) -> asyncio.Task:
        self.cancel()
        task = asyncio.ensure_future(self._fire_after_delay(value))
        self._pending = task
        return task

    def cancel(self) -> bool:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
            self._pending = None
            return True
        return False

    async def _fire_after_delay(self, value: T) -> R:
        await asyncio.sleep(self.delay)
        # fired: later input can no longer cancel this one
        if self._pending is asyncio.current_task():
            self._pending = None
        async with self._running:
            return await self.callback(value)


class InputSession:
    """
    One user's text box: debounced parsing, per-session pending set and the
    working set of items already resolved.
    """

    def __init__(
        self,
        resolver: ItemResolver,
        client_id: str = "local",
        delay: float = DEBOUNCE_SECONDS,
    ):
        self.resolver = resolver
        self.client_id = client_id
        self.pending = PendingSet()
        self.matched: Dict[int, MatchedItem] = {}
        self.resolved: Dict[str, ResolvedItem] = {}
        self.debouncer: Debouncer[str, ParseResponse] = Debouncer(self.process, delay=delay)

    def on_input(self, text: str) -> asyncio.Task:
        """Text box changed: (re)start the debounce timer."""
        return self.debouncer.schedule(text)

    def working_set(self) -> List[str]:
        return [r.item.name for r in self.resolved.values()]

    async def _analyze_one(self, phrase: str) -> Optional[ResolvedItem]:
        if not self.pending.claim(phrase):
            logger.debug("'{}' already pending in this session", phrase)
            return None
        try:
            resp = await self.resolver.analyze(phrase, self.client_id)
            return ResolvedItem(original_text=phrase, item=resp.item, sources=resp.sources)
        finally:
            self.pending.release(phrase)

    async def process(self, text: str) -> ParseResponse:
        """Parse ``text`` and fold new results into the session state."""
        if not text or not text.strip():
            return ParseResponse(timestamp=utc_timestamp())

        new_matches: List[MatchedItem] = []
        for m in self.resolver.match_known(text):
            if m.item.id in self.matched:
                continue
            line = MatchedItem(item=m.item, quantity=m.quantity, start=m.start, end=m.end, matched_text=m.matched_text)
            self.matched[m.item.id] = line
            new_matches.append(line)

        items: List[ResolvedItem] = []
        skipped: List[str] = []
        for cand in self.resolver.detect_unknown(text, basket=self.working_set()):
            if cand.normalized_key in self.resolved:
                skipped.append(cand.phrase)
                continue
            try:
                resolved = await self._analyze_one(cand.phrase)
            except RateLimitExceeded as e:
                logger.warning("Session {} rate limited; retry in {}s", self.client_id, e.retry_after)
                skipped.append(cand.phrase)
                break
            except InventoryError as e:
                logger.warning("Couldn't analyze '{}': {}", cand.phrase, e.message)
                skipped.append(cand.phrase)
                continue
            if resolved is None:
                skipped.append(cand.phrase)
                continue
            self.resolved[normalize_key(cand.phrase)] = resolved
            items.append(resolved)

        return ParseResponse(matches=new_matches, items=items, skipped=skipped, timestamp=utc_timestamp())

    def snapshot(self) -> Dict[str, Any]:
        return {
            "matches": [m.model_dump(by_alias=True) for m in self.matched.values()],
            "items": [r.model_dump(by_alias=True) for r in self.resolved.values()],
        }

from __future__ import annotations

"""
Item resolution pipeline.

    free text -> known catalog matches + unknown candidates
    candidate -> rate limit -> cache -> single-flight
              -> enrichment fan-out -> structured extraction
              -> (on failure) heuristic fallback -> cache

``ItemResolver`` owns the cache, rate limiter, aggregator and extractor. It is
created once per process (or per test) and closed with ``aclose()``.
"""

import asyncio
from typing import Dict, Iterable, List, Optional, Sequence

from loguru import logger

from .cache import ResultCache
from .catalog import build_vocabulary, load_catalog
from .config import (
    ITEM_NAME_MAX_CHARS,
    ITEM_NAME_MIN_CHARS,
    MAX_INPUT_CHARS,
    PREFER_KNOWN_PATTERNS,
    AnalyzeResponse,
    CatalogItem,
    MatchedItem,
    ParseResponse,
    ResolvedItem,
)
from .detect import Candidate, find_unknown_items
from .enrichment import EnrichmentAggregator, utc_timestamp
from .errors import InvalidInputError
from .extraction import StructuredExtractor, ValidExtraction
from .heuristics import estimate_item, known_item_estimate
from .normalize import normalize_key
from .rate_limit import RateLimiter
from .text_match import CatalogMatch, find_catalog_matches

CACHE_PREFIX = "item:"


def validate_item_name(item_name: object) -> str:
    """Trimmed item name, or InvalidInputError when not a 2-100 char string."""
    if not isinstance(item_name, str):
        raise InvalidInputError("itemName must be a string")
    name = item_name.strip()
    if len(name) < ITEM_NAME_MIN_CHARS:
        raise InvalidInputError(f"itemName must be at least {ITEM_NAME_MIN_CHARS} characters")
    if len(name) > ITEM_NAME_MAX_CHARS:
        raise InvalidInputError(f"itemName must be at most {ITEM_NAME_MAX_CHARS} characters")
    return name


class ItemResolver:
    def __init__(
        self,
        catalog: Optional[Sequence[CatalogItem]] = None,
        cache: Optional[ResultCache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        aggregator: Optional[EnrichmentAggregator] = None,
        extractor: Optional[StructuredExtractor] = None,
        prefer_known_patterns: bool = PREFER_KNOWN_PATTERNS,
    ):
        self.catalog: List[CatalogItem] = list(catalog) if catalog is not None else load_catalog()
        self.vocabulary = build_vocabulary(self.catalog)
        self.cache = cache if cache is not None else ResultCache()
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self.aggregator = aggregator if aggregator is not None else EnrichmentAggregator(self.cache)
        self.extractor = extractor if extractor is not None else StructuredExtractor()
        self.prefer_known_patterns = prefer_known_patterns
        self._inflight: Dict[str, asyncio.Task] = {}

    async def __aenter__(self) -> "ItemResolver":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        for task in list(self._inflight.values()):
            task.cancel()
        self._inflight.clear()
        await self.aggregator.aclose()
        await self.extractor.aclose()
        self.cache.clear()
        self.rate_limiter.reset()

    # -----------------------
    # Text side
    # -----------------------

    def known_names(self, basket: Iterable[str] = ()) -> List[str]:
        return [i.name for i in self.catalog] + [b for b in basket if b]

    def match_known(self, text: str) -> List[CatalogMatch]:
        return find_catalog_matches(text, self.vocabulary)

    def detect_unknown(self, text: str, basket: Iterable[str] = ()) -> List[Candidate]:
        return find_unknown_items(text, known=self.known_names(basket))

    # -----------------------
    # Single item
    # -----------------------

    async def analyze(self, item_name: object, client_id: str) -> AnalyzeResponse:
        """
        Entry point for POST /api/inventory/analyze.

        Input is validated before the rate limiter is touched, so invalid
        requests cost the client nothing.
        """
        name = validate_item_name(item_name)
        self.rate_limiter.consume(client_id)
        return await self.resolve(name)

    async def resolve(self, phrase: str) -> AnalyzeResponse:
        """Cached, single-flight resolution of one phrase. Never rate limited."""
        key = CACHE_PREFIX + normalize_key(phrase)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Analysis cache hit for '{}'", phrase)
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._resolve_and_cache(phrase, key))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            logger.debug("Joining in-flight resolution for '{}'", phrase)

        # a disconnecting caller must not abort the shared computation
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _resolve_and_cache(self, phrase: str, key: str) -> AnalyzeResponse:
        response = await self._resolve_uncached(phrase)
        self.cache.set(key, response)
        return response

    async def _resolve_uncached(self, phrase: str) -> AnalyzeResponse:
        if self.prefer_known_patterns:
            known = known_item_estimate(phrase)
            if known is not None:
                logger.info("Resolved '{}' from known item patterns", phrase)
                return AnalyzeResponse(item=known, sources=[], timestamp=utc_timestamp())

        enrichment = await self.aggregator.aggregate(phrase)
        outcome = await self.extractor.extract(phrase, enrichment)
        if isinstance(outcome, ValidExtraction):
            item = outcome.record
        else:
            logger.info("Falling back to heuristics for '{}': {}", phrase, outcome.reason)
            item = estimate_item(phrase)

        return AnalyzeResponse(item=item, sources=enrichment.sources, timestamp=utc_timestamp())

    # -----------------------
    # Free text
    # -----------------------

    async def parse_text(
        self,
        text: object,
        basket: Iterable[str] = (),
        client_id: Optional[str] = None,
    ) -> ParseResponse:
        """
        Resolve a whole free-text description.

        Catalog matches come back with quantities. Unknown candidates are
        resolved one at a time in detection order; candidates already in the
        working set (``basket``, compared by normalized text) are skipped.
        Costs one rate-limit token when ``client_id`` is given.
        """
        if text is None:
            text = ""
        if not isinstance(text, str):
            raise InvalidInputError("text must be a string")
        text = text[:MAX_INPUT_CHARS]
        basket = [b for b in basket if isinstance(b, str) and b.strip()]

        if client_id is not None:
            self.rate_limiter.consume(client_id)

        matches = [
            MatchedItem(item=m.item, quantity=m.quantity, start=m.start, end=m.end, matched_text=m.matched_text)
            for m in self.match_known(text)
        ]

        working_set = {normalize_key(b) for b in basket}
        items: List[ResolvedItem] = []
        skipped: List[str] = []
        for cand in self.detect_unknown(text, basket):
            if cand.normalized_key in working_set or len(cand.phrase) < ITEM_NAME_MIN_CHARS:
                skipped.append(cand.phrase)
                continue
            resp = await self.resolve(cand.phrase[:ITEM_NAME_MAX_CHARS])
            working_set.add(cand.normalized_key)
            items.append(ResolvedItem(original_text=cand.phrase, item=resp.item, sources=resp.sources))

        logger.info(
            "Parsed text: {} catalog matches, {} resolved, {} skipped", len(matches), len(items), len(skipped)
        )
        return ParseResponse(matches=matches, items=items, skipped=skipped, timestamp=utc_timestamp())

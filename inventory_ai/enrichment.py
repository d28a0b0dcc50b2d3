from __future__ import annotations

"""
Fan-out enrichment: query every source concurrently, keep whatever answers.

Each source call gets its own timeout. Failures and timeouts are logged and
dropped, so the aggregate never raises; it may come back empty. Results are
cached per normalized phrase, and a cache hit skips the network entirely.
"""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import httpx
from loguru import logger

from .cache import ResultCache
from .config import CACHE_TTL_SECONDS, SOURCE_TIMEOUT_SECONDS, EnrichmentResult, SourceResult
from .errors import UpstreamError, UpstreamFailure, UpstreamTimeout
from .normalize import normalize_key
from .sources import EnrichmentSource, build_http_client, build_sources

CACHE_PREFIX = "sources:"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class EnrichmentAggregator:
    def __init__(
        self,
        cache: ResultCache,
        sources: Optional[Sequence[EnrichmentSource]] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = SOURCE_TIMEOUT_SECONDS,
        ttl: float = CACHE_TTL_SECONDS,
    ):
        self.cache = cache
        self.sources = list(sources) if sources is not None else build_sources()
        self.timeout = timeout
        self.ttl = ttl
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = build_http_client(self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _query_source(self, source: EnrichmentSource, query: str) -> Optional[SourceResult]:
        try:
            payload = await asyncio.wait_for(source.fetch(self.client, query), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise UpstreamTimeout(source.name, f"{source.name} timed out after {self.timeout}s") from e
        except UpstreamError:
            raise
        except Exception as e:
            raise UpstreamFailure(source.name, f"{source.name}: {e}") from e
        if not payload:
            return None
        return SourceResult(source=source.name, payload=payload)

    async def aggregate(self, phrase: str) -> EnrichmentResult:
        """
        Enrich ``phrase`` from every source. Never raises for source problems.
        """
        key = CACHE_PREFIX + normalize_key(phrase)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Enrichment cache hit for '{}'", phrase)
            return cached

        outcomes = await asyncio.gather(
            *(self._query_source(s, phrase) for s in self.sources),
            return_exceptions=True,
        )

        results: List[SourceResult] = []
        for outcome in outcomes:
            if isinstance(outcome, UpstreamError):
                logger.warning("Enrichment source dropped: {}", outcome.message)
            elif isinstance(outcome, BaseException):
                # cancellation is not a source failure
                raise outcome
            elif outcome is not None:
                results.append(outcome)

        # merge by source tag, in configured source order
        result = EnrichmentResult(query=phrase, sources=results, timestamp=utc_timestamp())
        logger.info(
            "Enriched '{}' from {}/{} sources", phrase, len(results), len(self.sources)
        )
        self.cache.set(key, result, self.ttl)
        return result

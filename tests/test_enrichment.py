import asyncio
import re

import pytest

from inventory_ai.cache import ResultCache
from inventory_ai.enrichment import CACHE_PREFIX, EnrichmentAggregator, utc_timestamp
from inventory_ai.errors import UpstreamFailure

from conftest import StaticSource


def _aggregate(aggregator, phrase):
    async def go():
        try:
            return await aggregator.aggregate(phrase)
        finally:
            await aggregator.aclose()

    return asyncio.run(go())


def test_partial_failure_keeps_the_one_good_source(clock):
    good = StaticSource("wikipedia", {"title": "Grand piano"})
    broken = StaticSource("duckduckgo", exc=UpstreamFailure("duckduckgo", "HTTP 500"))
    slow = StaticSource("wikidata", {"entities": []}, delay=1.0)
    agg = EnrichmentAggregator(ResultCache(clock=clock), sources=[good, broken, slow], timeout=0.05)

    result = _aggregate(agg, "grand piano")
    assert [s.source for s in result.sources] == ["wikipedia"]
    assert result.sources[0].payload == {"title": "Grand piano"}
    assert result.query == "grand piano"


def test_unexpected_source_exceptions_are_dropped(clock):
    crashing = StaticSource("wikipedia", exc=KeyError("query"))
    agg = EnrichmentAggregator(ResultCache(clock=clock), sources=[crashing])
    assert _aggregate(agg, "lamp").sources == []


def test_all_sources_empty_gives_empty_result(clock):
    agg = EnrichmentAggregator(
        ResultCache(clock=clock),
        sources=[StaticSource("wikipedia", None), StaticSource("duckduckgo", {})],
    )
    assert _aggregate(agg, "zzz").sources == []


def test_cache_hit_skips_sources(clock):
    cache = ResultCache(clock=clock)
    src = StaticSource("wikipedia", {"title": "Piano"})
    agg = EnrichmentAggregator(cache, sources=[src])

    first = _aggregate(agg, "Piano")
    second = _aggregate(agg, "  piano ")
    assert src.calls == 1
    assert second == first
    assert cache.get(CACHE_PREFIX + "piano") == first


def test_results_expire_with_ttl(clock):
    src = StaticSource("wikipedia", {"title": "Piano"})
    agg = EnrichmentAggregator(ResultCache(clock=clock), sources=[src], ttl=60)

    _aggregate(agg, "piano")
    clock.advance(61)
    _aggregate(agg, "piano")
    assert src.calls == 2


def test_cancellation_is_not_swallowed(clock):
    src = StaticSource("wikipedia", {"title": "Piano"}, delay=5)
    agg = EnrichmentAggregator(ResultCache(clock=clock), sources=[src], timeout=10)

    async def go():
        task = asyncio.ensure_future(agg.aggregate("piano"))
        await asyncio.sleep(0.01)
        task.cancel()
        await task

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(go())


def test_utc_timestamp_is_iso_zulu():
    assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?Z$", utc_timestamp())

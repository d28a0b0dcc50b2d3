import asyncio
import json
from types import SimpleNamespace

import pytest

from inventory_ai.cache import ResultCache
from inventory_ai.catalog import load_catalog
from inventory_ai.enrichment import EnrichmentAggregator
from inventory_ai.extraction import StructuredExtractor
from inventory_ai.pipeline import ItemResolver
from inventory_ai.rate_limit import RateLimiter
from inventory_ai.sources import EnrichmentSource


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StaticSource(EnrichmentSource):
    """Source stub: returns ``payload``, raises ``exc`` or sleeps ``delay`` first."""

    def __init__(self, name, payload=None, exc=None, delay=0.0):
        super().__init__(base_url=f"https://{name}.invalid")
        self.name = name
        self.payload = payload
        self.exc = exc
        self.delay = delay
        self.calls = 0

    async def fetch(self, client, query):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return self.payload


class FakeCompletions:
    def __init__(self, content=None, exc=None, delay=0.0):
        self.content = content
        self.exc = exc
        self.delay = delay
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAI:
    def __init__(self, content=None, exc=None, delay=0.0):
        self.chat = SimpleNamespace(completions=FakeCompletions(content, exc, delay))
        self.closed = False

    async def close(self):
        self.closed = True


VALID_EXTRACTION = json.dumps(
    {
        "name": "Grandfather Clock",
        "weight_kg": 45,
        "dimensions": "50 x 30 x 200 cm",
        "category": "misc",
        "confidence": 0.82,
        "reasoning": "Tall wooden longcase clock",
    }
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def catalog():
    return load_catalog()


@pytest.fixture
def make_resolver(catalog, clock):
    """Build an ItemResolver wired to fake sources and a fake model client."""

    def _make(sources=None, content=VALID_EXTRACTION, exc=None, extractor_client="fake", **kwargs):
        cache = ResultCache(clock=clock)
        if sources is None:
            sources = [StaticSource("wikipedia", {"title": "Longcase clock", "snippets": ["A tall clock"]})]
        aggregator = EnrichmentAggregator(cache, sources=sources, timeout=0.5)
        client = FakeOpenAI(content=content, exc=exc) if extractor_client == "fake" else extractor_client
        extractor = StructuredExtractor(client=client, api_key=None)
        return ItemResolver(
            catalog=catalog,
            cache=cache,
            rate_limiter=kwargs.pop("rate_limiter", RateLimiter(clock=clock)),
            aggregator=aggregator,
            extractor=extractor,
            **kwargs,
        )

    return _make

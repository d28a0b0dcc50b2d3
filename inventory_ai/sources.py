from __future__ import annotations

"""
External knowledge sources used to ground item extraction.

Each source issues one JSON GET with httpx and condenses the answer into a
small payload dict. A source that finds nothing returns None; HTTP or decode
problems raise ``UpstreamFailure`` and the aggregator drops them.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from loguru import logger

from . import config
from .errors import UpstreamFailure
from .normalize import basic_clean


class EnrichmentSource:
    """Base class: subclasses set ``name`` and implement ``fetch``."""

    name: str = "source"

    def __init__(self, base_url: str):
        self.base_url = base_url

    async def fetch(self, client: httpx.AsyncClient, query: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def _get_json(self, client: httpx.AsyncClient, params: Dict[str, Any]) -> Any:
        try:
            r = await client.get(self.base_url, params=params)
        except httpx.TimeoutException:
            raise
        except httpx.HTTPError as e:
            raise UpstreamFailure(self.name, f"{self.name} request failed: {e}") from e

        if r.status_code >= 400:
            raise UpstreamFailure(self.name, f"{self.name}: HTTP {r.status_code}")
        try:
            return r.json()
        except ValueError as e:
            raise UpstreamFailure(self.name, f"{self.name}: invalid JSON") from e

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.base_url!r})"


def _cap(text: str) -> str:
    return text[: config.SOURCE_MAX_CHARS]


class WikipediaSource(EnrichmentSource):
    name = "wikipedia"

    def __init__(self, base_url: str = config.WIKIPEDIA_API_URL):
        super().__init__(base_url)

    async def fetch(self, client: httpx.AsyncClient, query: str) -> Optional[Dict[str, Any]]:
        data = await self._get_json(
            client,
            {
                "action": "query",
                "list": "search",
                "srsearch": query,
                "srlimit": config.SOURCE_MAX_SNIPPETS,
                "format": "json",
            },
        )
        hits = ((data or {}).get("query") or {}).get("search") or []
        if not hits:
            return None
        title = str(hits[0].get("title", "")).strip()
        snippets = [_cap(basic_clean(h.get("snippet", ""))) for h in hits]
        return {
            "title": title,
            "url": f"https://en.wikipedia.org/wiki/{quote(title.replace(' ', '_'))}" if title else "",
            "snippets": [s for s in snippets if s],
        }


class DuckDuckGoSource(EnrichmentSource):
    name = "duckduckgo"

    def __init__(self, base_url: str = config.DUCKDUCKGO_API_URL):
        super().__init__(base_url)

    async def fetch(self, client: httpx.AsyncClient, query: str) -> Optional[Dict[str, Any]]:
        data = await self._get_json(
            client,
            {"q": query, "format": "json", "no_html": 1, "skip_disambig": 1},
        )
        data = data or {}
        abstract = _cap(basic_clean(data.get("AbstractText", "")))
        related: List[str] = []
        for topic in data.get("RelatedTopics") or []:
            text = basic_clean(topic.get("Text", "")) if isinstance(topic, dict) else ""
            if text:
                related.append(_cap(text))
            if len(related) >= config.SOURCE_MAX_SNIPPETS:
                break
        if not abstract and not related:
            return None
        return {
            "heading": data.get("Heading", ""),
            "abstract": abstract,
            "url": data.get("AbstractURL", ""),
            "related": related,
        }


class WikidataSource(EnrichmentSource):
    name = "wikidata"

    def __init__(self, base_url: str = config.WIKIDATA_API_URL):
        super().__init__(base_url)

    async def fetch(self, client: httpx.AsyncClient, query: str) -> Optional[Dict[str, Any]]:
        data = await self._get_json(
            client,
            {
                "action": "wbsearchentities",
                "search": query,
                "language": "en",
                "limit": config.SOURCE_MAX_SNIPPETS,
                "format": "json",
            },
        )
        entities = []
        for hit in (data or {}).get("search") or []:
            label = basic_clean(hit.get("label", ""))
            if not label:
                continue
            entities.append(
                {
                    "id": hit.get("id", ""),
                    "label": label,
                    "description": _cap(basic_clean(hit.get("description", ""))),
                }
            )
        if not entities:
            return None
        return {"entities": entities}


SOURCE_REGISTRY = {
    WikipediaSource.name: WikipediaSource,
    DuckDuckGoSource.name: DuckDuckGoSource,
    WikidataSource.name: WikidataSource,
}


def build_sources(names: Optional[List[str]] = None) -> List[EnrichmentSource]:
    """Instantiate the configured sources; unknown names are logged and skipped."""
    out: List[EnrichmentSource] = []
    for name in names if names is not None else config.ENABLED_SOURCES:
        cls = SOURCE_REGISTRY.get(name)
        if cls is None:
            logger.warning("Unknown enrichment source '{}' ignored", name)
            continue
        out.append(cls())
    return out


def build_http_client(timeout: float = config.SOURCE_TIMEOUT_SECONDS) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(timeout, connect=min(timeout, 3.0)),
        headers={"User-Agent": config.HTTP_USER_AGENT},
    )

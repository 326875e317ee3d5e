"""GetMCP registry backend.

The registry publishes a single JSON object mapping server keys to entries.
The map is fetched once per cache window and indexed into a private vector
engine; searches run locally against that index.
"""

import asyncio
from typing import Any

import httpx

from mcpadvisor.contracts.server_search_v1 import RawResult, SearchQuery
from mcpadvisor.core.cache import MemoryCache
from mcpadvisor.core.config import config
from mcpadvisor.core.embeddings import Embedder, HashingEmbedder
from mcpadvisor.core.errors import ProviderError
from mcpadvisor.core.logger import logger
from mcpadvisor.orchestrators.search.interface import SearchProvider
from mcpadvisor.orchestrators.search.offline import record_to_result
from mcpadvisor.orchestrators.search.similarity import InMemoryVectorEngine


def searchable_text(entry: dict[str, Any]) -> str:
    """Display name, description, categories, tags and author joined by spaces."""
    parts: list[str] = [entry.get("display_name") or "", entry.get("description") or ""]
    for field in ("categories", "tags"):
        value = entry.get(field)
        if isinstance(value, list):
            parts.extend(str(v) for v in value)
        elif isinstance(value, str):
            parts.append(value)
    author = entry.get("author")
    if isinstance(author, dict) and author.get("name"):
        parts.append(str(author["name"]))
    return " ".join(p for p in parts if p)


class GetMcpSearchProvider(SearchProvider):
    name = "getmcp"

    def __init__(
        self,
        api_url: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        embedder: Embedder | None = None,
        cache_ttl_seconds: float | None = None,
        limit: int = 10,
        timeout: float = 10.0,
    ) -> None:
        self._api_url = api_url or config.getmcp_api_url
        self._client = client
        self._embedder = embedder or HashingEmbedder(config.embedding_dim)
        ttl = config.getmcp_cache_ttl_seconds if cache_ttl_seconds is None else cache_ttl_seconds
        self._cache: MemoryCache[dict[str, RawResult]] = MemoryCache(ttl)
        self._engine = InMemoryVectorEngine()
        self._lock = asyncio.Lock()
        self._limit = limit
        self._timeout = timeout

    async def _fetch(self) -> dict[str, Any]:
        if self._client is not None:
            response = await self._client.get(self._api_url, timeout=self._timeout)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(self._api_url, follow_redirects=True)
        if response.status_code >= 400:
            raise ProviderError(
                f"GetMCP API request failed with status {response.status_code}",
                provider=self.name,
                operation="fetch",
            )
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"invalid JSON: {e}", provider=self.name, operation="fetch") from e
        if not isinstance(data, dict):
            raise ProviderError(
                f"expected a JSON object, got {type(data).__name__}",
                provider=self.name,
                operation="fetch",
            )
        logger.info("Fetched %s MCP servers from %s", len(data), self._api_url)
        return data

    async def _ensure_index(self) -> None:
        if self._cache.is_valid():
            return
        async with self._lock:
            if self._cache.is_valid():
                return
            data = await self._fetch()
            servers: dict[str, RawResult] = {}
            self._engine.clear()
            for key, entry in data.items():
                if not isinstance(entry, dict):
                    continue
                result = record_to_result(entry).model_copy(update={"id": key, "fallback": False})
                vector = await self._embedder.embed(searchable_text(entry))
                self._engine.add_entry(key, vector, result)
                servers[key] = result
            self._cache.set(servers)

    async def search(self, query: SearchQuery) -> list[RawResult]:
        await self._ensure_index()
        text = query.combined_text()
        query_vector = await self._embedder.embed(text)
        results = self._engine.search(
            query_vector, self._limit, min_similarity=None, text_query=text
        )
        logger.debug("GetMCP search found %s results", len(results))
        return [r.model_copy(update={"similarity": max(r.similarity, 0.0)}) for r in results]

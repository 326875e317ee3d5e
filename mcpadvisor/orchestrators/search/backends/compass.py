"""Compass registry backend (``GET /recommend``). Returns RawResult."""

from typing import Any

import httpx

from mcpadvisor.contracts.server_search_v1 import RawResult, SearchQuery
from mcpadvisor.core.config import config
from mcpadvisor.core.errors import ProviderError
from mcpadvisor.core.logger import logger
from mcpadvisor.orchestrators.search.interface import SearchProvider

# Compass scores run low compared to the other providers
SCORE_OFFSET = 0.3


class CompassSearchProvider(SearchProvider):
    name = "compass"

    def __init__(
        self,
        api_base: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._api_base = (api_base or config.compass_api_base).rstrip("/")
        self._client = client
        self._timeout = timeout
        logger.info("CompassSearchProvider initialized with API base: %s", self._api_base)

    async def _get(self, url: str, params: dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, params=params, timeout=self._timeout)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.get(url, params=params, follow_redirects=True)

    @staticmethod
    def _to_result(item: dict[str, Any]) -> RawResult:
        score = float(item.get("score") or 0.0)
        return RawResult(
            title=item.get("title") or "",
            description=item.get("description") or "",
            source_url=item.get("github_url") or "",
            categories=item.get("categories"),
            tags=item.get("tags"),
            similarity=min(score + SCORE_OFFSET, 1.0),
        )

    async def search(self, query: SearchQuery) -> list[RawResult]:
        text = query.combined_text()
        url = f"{self._api_base}/recommend"
        response = await self._get(url, {"description": text})
        if response.status_code >= 400:
            raise ProviderError(
                f"Compass API request failed with status {response.status_code}",
                provider=self.name,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"invalid JSON from {url}: {e}", provider=self.name) from e
        if not isinstance(data, list):
            raise ProviderError(
                f"expected a JSON array, got {type(data).__name__}", provider=self.name
            )

        results = [self._to_result(item) for item in data if isinstance(item, dict)]
        logger.debug("Received %s results from Compass API", len(results))
        return results

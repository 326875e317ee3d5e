"""Per-process search context: owns the shared HTTP client and the embedder."""

import httpx

from mcpadvisor.core.config import Config, config as default_config
from mcpadvisor.core.embeddings import Embedder, create_embedder
from mcpadvisor.core.logger import logger


class SearchContext:
    """Explicitly opened and closed; usable as ``async with SearchContext() as ctx``.

    A client or embedder passed in by the caller is used as-is and not closed here.
    """

    def __init__(
        self,
        cfg: Config | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        embedder: Embedder | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.config = cfg or default_config
        self._client = http_client
        self._owns_client = http_client is None
        self._embedder = embedder
        self._timeout = timeout

    @property
    def is_open(self) -> bool:
        return self._client is not None and self._embedder is not None

    async def open(self) -> "SearchContext":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
            self._owns_client = True
        if self._embedder is None:
            self._embedder = create_embedder(self.config, self._client)
        return self

    @property
    def http(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("SearchContext is not open")
        return self._client

    @property
    def embedder(self) -> Embedder:
        if self._embedder is None:
            raise RuntimeError("SearchContext is not open")
        return self._embedder

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            try:
                await self._client.aclose()
            except Exception as e:
                logger.warning("Error closing HTTP client: %s", e)
            self._client = None

    async def __aenter__(self) -> "SearchContext":
        return await self.open()

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

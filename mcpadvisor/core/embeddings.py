"""Text embedders used by the offline corpus and the GetMCP index.

HashingEmbedder needs no network and is the default. HttpEmbedder talks to an
OpenAI-compatible ``/embeddings`` endpoint.
"""

import hashlib
import logging
import re
from typing import Protocol, runtime_checkable

import httpx

from mcpadvisor.core.config import Config

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


@runtime_checkable
class Embedder(Protocol):
    dimension: int

    async def embed(self, text: str) -> list[float]: ...


def tokenize(text: str) -> list[str]:
    return [t for t in _TOKEN_RE.findall((text or "").lower()) if len(t) > 1]


class HashingEmbedder:
    """Signed feature hashing over unigrams and adjacent bigrams."""

    def __init__(self, dimension: int = 384) -> None:
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        self.dimension = dimension

    def _bucket(self, feature: str) -> tuple[int, float]:
        digest = hashlib.sha1(feature.encode("utf-8")).digest()
        index = int.from_bytes(digest[:8], byteorder="big") % self.dimension
        sign = 1.0 if digest[8] & 1 else -1.0
        return index, sign

    def embed_sync(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        tokens = tokenize(text)
        features = tokens + [f"{a} {b}" for a, b in zip(tokens, tokens[1:])]
        for feature in features:
            index, sign = self._bucket(feature)
            vector[index] += sign
        return vector

    async def embed(self, text: str) -> list[float]:
        return self.embed_sync(text)


class HttpEmbedder:
    """Client for an OpenAI-compatible embeddings endpoint."""

    def __init__(
        self,
        base_url: str,
        model: str,
        dimension: int,
        *,
        api_key: str = "",
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        url = base_url.rstrip("/")
        if not url.endswith("/embeddings"):
            url = url + "/embeddings"
        self._url = url
        self._model = model
        self.dimension = dimension
        self._headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = client
        self._timeout = timeout

    async def embed(self, text: str) -> list[float]:
        payload = {"model": self._model, "input": text[:30000]}
        if self._client is not None:
            response = await self._client.post(
                self._url, json=payload, headers=self._headers, timeout=self._timeout
            )
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._url, json=payload, headers=self._headers)
        response.raise_for_status()
        data = response.json()
        items = data.get("data") or []
        if not items or not isinstance(items[0], dict):
            raise ValueError(f"Embedding response from {self._url} has no data")
        embedding = items[0].get("embedding") or []
        if len(embedding) != self.dimension:
            logger.warning(
                "Unexpected embedding dim from %s: %s vs %s",
                self._url,
                len(embedding),
                self.dimension,
            )
        return [float(x) for x in embedding]


def create_embedder(cfg: Config, client: httpx.AsyncClient | None = None) -> Embedder:
    if cfg.embedding_url:
        logger.info("Using HTTP embedder at %s (model=%s)", cfg.embedding_url, cfg.embedding_model)
        return HttpEmbedder(
            cfg.embedding_url,
            cfg.embedding_model,
            cfg.embedding_dim,
            api_key=cfg.embedding_api_key,
            client=client,
        )
    return HashingEmbedder(cfg.embedding_dim)

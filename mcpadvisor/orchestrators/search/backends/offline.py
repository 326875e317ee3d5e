"""Offline corpus provider: hybrid vector + keyword search over the bundled server list.

Needs no network. The corpus is embedded into a private engine on first use
and re-indexed when the loader's freshness window expires, or on the next
search when some records could not be embedded. The keyword pass always
covers the whole corpus.
"""

import asyncio
from pathlib import Path

from mcpadvisor.contracts.server_search_v1 import RawResult, SearchQuery
from mcpadvisor.core.config import config
from mcpadvisor.core.embeddings import Embedder, HashingEmbedder, tokenize
from mcpadvisor.core.logger import logger
from mcpadvisor.orchestrators.search.interface import SearchProvider
from mcpadvisor.orchestrators.search.offline import OfflineDataLoader, corpus_entry_id
from mcpadvisor.orchestrators.search.similarity import InMemoryVectorEngine


def _term_fraction(terms: list[str], text: str) -> float:
    if not terms or not text:
        return 0.0
    lowered = text.lower()
    return sum(1 for t in terms if t in lowered) / len(terms)


def keyword_similarity(terms: list[str], result: RawResult) -> float:
    """Title 0.5, description 0.3, best category or tag 0.2."""
    title = _term_fraction(terms, result.title)
    desc = _term_fraction(terms, result.description)
    labels = [*result.categories, *result.tags]
    label = max((_term_fraction(terms, lab) for lab in labels), default=0.0)
    return title * 0.5 + desc * 0.3 + label * 0.2


class OfflineSearchProvider(SearchProvider):
    def __init__(
        self,
        loader: OfflineDataLoader | None = None,
        *,
        embedder: Embedder | None = None,
        fallback_data_path: str | Path | None = None,
        min_similarity: float | None = None,
        text_match_weight: float = 0.7,
        vector_search_weight: float = 0.3,
        limit: int = 10,
    ) -> None:
        self._embedder = embedder or HashingEmbedder(config.embedding_dim)
        self._loader = loader or OfflineDataLoader(
            fallback_data_path or config.fallback_data_path, embedder=self._embedder
        )
        self._engine = InMemoryVectorEngine()
        self._records: list[RawResult] = []
        self._index_lock = asyncio.Lock()
        self._indexed = False
        self._min_similarity = (
            config.offline_min_similarity if min_similarity is None else min_similarity
        )
        self._text_weight = text_match_weight
        self._vector_weight = vector_search_weight
        self._limit = limit

    @property
    def loader(self) -> OfflineDataLoader:
        return self._loader

    async def _ensure_indexed(self) -> None:
        if self._indexed and self._loader.is_fresh():
            return
        async with self._index_lock:
            if self._indexed and self._loader.is_fresh():
                return
            records = await self._loader.load_fallback_data()
            entries = await self._loader.load_fallback_data_with_embeddings()
            self._engine.clear()
            for entry in entries:
                self._engine.add_entry(entry.id, entry.vector, entry.payload)
            self._records = [r.model_copy(update={"id": r.id or corpus_entry_id(r)}) for r in records]
            missing = len(records) - len(entries)
            self._indexed = missing == 0
            if missing:
                logger.warning(
                    "Offline index built with %s of %s records; retrying embeddings on next search",
                    len(entries),
                    len(records),
                )
            else:
                logger.info("Offline index built with %s entries", len(self._engine))

    async def prepare(self) -> int:
        """Load and index the corpus now; returns the number of corpus records.

        Raises CorpusFormatError when the corpus file is malformed.
        """
        await self._ensure_indexed()
        return len(self._records)

    def _text_search(self, terms: list[str]) -> dict[str, RawResult]:
        out: dict[str, RawResult] = {}
        if not terms:
            return out
        for record in self._records:
            sim = keyword_similarity(terms, record)
            if sim >= self._min_similarity and sim > 0:
                out[record.id or record.dedup_key()] = record.model_copy(update={"similarity": sim})
        return out

    async def search(self, query: SearchQuery) -> list[RawResult]:
        text = query.combined_text()
        await self._ensure_indexed()
        if not self._records:
            return []

        vector_hits: list[RawResult] = []
        try:
            query_vector = await self._embedder.embed(text)
        except Exception as e:
            logger.error("Offline query embedding failed; keyword matches only", exception=e)
        else:
            vector_hits = self._engine.search(
                query_vector, self._limit, min_similarity=self._min_similarity, text_query=text
            )
        text_hits = self._text_search(tokenize(text))

        # Each pass is weighted; a record found by both keeps the larger value.
        blended: dict[str, RawResult] = {}
        for r in vector_hits:
            key = r.id or r.dedup_key()
            blended[key] = r.model_copy(update={"similarity": r.similarity * self._vector_weight})
        for key, r in text_hits.items():
            weighted = r.similarity * self._text_weight
            existing = blended.get(key)
            if existing is None:
                blended[key] = r.model_copy(update={"similarity": weighted})
            elif weighted > existing.similarity:
                blended[key] = existing.model_copy(update={"similarity": weighted})

        results = [r.model_copy(update={"fallback": True}) for r in blended.values()]
        results.sort(key=lambda r: -r.similarity)
        logger.debug("Offline search found %s results for %r", len(results), text[:80])
        return results[: self._limit]

    def set_fallback_data_path(self, path: str | Path) -> None:
        self._loader.set_fallback_data_path(path)
        self._indexed = False

"""Offline corpus loader: resolves the bundled server list and embeds it.

Resolution order: explicit path, packaged default, project-level sibling,
then a few ancestor directories of the working directory. The first
existing file wins. A missing corpus is not an error (empty list); a corpus
that exists but is not a JSON array is.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

from mcpadvisor.contracts.server_search_v1 import RawResult
from mcpadvisor.core.cache import MemoryCache
from mcpadvisor.core.config import config
from mcpadvisor.core.embeddings import Embedder, HashingEmbedder
from mcpadvisor.core.errors import CorpusFormatError
from mcpadvisor.core.logger import logger
from mcpadvisor.orchestrators.search.similarity import VectorEntry, normalize_vector

CORPUS_FILENAME = "mcp_server_list.json"
DEFAULT_FALLBACK_DATA_PATH = config.data_dir / CORPUS_FILENAME
ANCESTOR_PROBES = 3


def record_to_result(item: dict[str, Any]) -> RawResult:
    """Convert one corpus record to the canonical result shape."""
    repository = item.get("repository")
    repo_url = repository.get("url") if isinstance(repository, dict) else None
    return RawResult(
        id=item.get("id"),
        title=item.get("display_name") or item.get("name") or "",
        description=item.get("description") or "",
        source_url=repo_url or item.get("homepage") or "",
        categories=item.get("categories"),
        tags=item.get("tags"),
        installations=item.get("installations") if isinstance(item.get("installations"), dict) else {},
        fallback=True,
    )


def corpus_entry_id(result: RawResult) -> str:
    return result.source_url or f"fallback-{result.title}"


def embedding_text(result: RawResult) -> str:
    return (
        f"{result.title}. {result.description}. "
        f"{', '.join(result.categories)}. {', '.join(result.tags)}"
    )


class OfflineDataLoader:
    """Loads the offline corpus once and caches it for ``freshness_seconds``."""

    def __init__(
        self,
        fallback_data_path: str | Path | None = None,
        *,
        embedder: Embedder | None = None,
        freshness_seconds: float | None = None,
        search_roots: list[Path] | None = None,
    ) -> None:
        self._explicit_path = Path(fallback_data_path) if fallback_data_path else None
        self._embedder = embedder or HashingEmbedder(config.embedding_dim)
        ttl = config.corpus_freshness_seconds if freshness_seconds is None else freshness_seconds
        self._cache: MemoryCache[list[RawResult]] = MemoryCache(ttl)
        self._search_roots = search_roots
        self._lock = asyncio.Lock()
        self.resolved_path: Path | None = None
        logger.info(
            "Offline data loader initialized (path=%s)",
            self._explicit_path or DEFAULT_FALLBACK_DATA_PATH,
        )

    def candidate_paths(self) -> list[Path]:
        """Every path the loader will probe, in order, without duplicates."""
        candidates: list[Path] = []
        if self._explicit_path is not None:
            candidates.append(self._explicit_path)
        candidates.append(DEFAULT_FALLBACK_DATA_PATH)
        candidates.append(config.project_root / "data" / CORPUS_FILENAME)

        roots = self._search_roots if self._search_roots is not None else [Path.cwd()]
        for root in roots:
            candidates.append(root / "data" / CORPUS_FILENAME)
            for parent in list(root.parents)[:ANCESTOR_PROBES]:
                candidates.append(parent / "data" / CORPUS_FILENAME)

        seen: set[str] = set()
        unique: list[Path] = []
        for path in candidates:
            key = str(path.expanduser().absolute())
            if key in seen:
                continue
            seen.add(key)
            unique.append(path)
        return unique

    def _resolve(self) -> Path | None:
        for path in self.candidate_paths():
            if path.is_file():
                return path
        return None

    @staticmethod
    def _parse(path: Path) -> list[RawResult]:
        try:
            raw = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise CorpusFormatError(f"not valid UTF-8: {e}", path=str(path)) from e
        except OSError as e:
            raise CorpusFormatError(f"unreadable file: {e}", path=str(path)) from e
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorpusFormatError(f"malformed JSON: {e}", path=str(path)) from e
        if not isinstance(parsed, list):
            raise CorpusFormatError(
                f"expected a JSON array, got {type(parsed).__name__}", path=str(path)
            )
        return [record_to_result(item) for item in parsed if isinstance(item, dict)]

    async def load_fallback_data(self) -> list[RawResult]:
        """Return the corpus records, loading them on first use.

        Raises CorpusFormatError when the resolved file is not a JSON array.
        """
        cached = self._cache.get()
        if cached is not None:
            return list(cached)

        async with self._lock:
            cached = self._cache.get()
            if cached is not None:
                return list(cached)

            path = self._resolve()
            if path is None:
                logger.warning(
                    "Fallback data file not found in any of %s candidate paths",
                    len(self.candidate_paths()),
                )
                self.resolved_path = None
                self._cache.set([])
                return []

            logger.info("Loading fallback data from: %s", path)
            results = await asyncio.to_thread(self._parse, path)
            self.resolved_path = path
            self._cache.set(results)
            logger.info("Loaded %s fallback MCP servers", len(results))
            return list(results)

    async def load_fallback_data_with_embeddings(self) -> list[VectorEntry]:
        """Corpus records paired with normalized embeddings.

        A record whose embedding fails is logged and skipped.
        """
        records = await self.load_fallback_data()
        entries: list[VectorEntry] = []
        for record in records:
            try:
                vector = await self._embedder.embed(embedding_text(record))
            except Exception as e:
                logger.error(
                    "Error generating embedding for server %s", record.title, exception=e
                )
                continue
            entries.append(
                VectorEntry(id=corpus_entry_id(record), vector=normalize_vector(vector), payload=record)
            )
        logger.info("Generated embeddings for %s fallback servers", len(entries))
        return entries

    def invalidate(self) -> None:
        self._cache.clear()

    def is_fresh(self) -> bool:
        return self._cache.is_valid()

    def set_fallback_data_path(self, path: str | Path) -> None:
        self._explicit_path = Path(path)
        self.invalidate()
        logger.info("Updated fallback data path to: %s", path)

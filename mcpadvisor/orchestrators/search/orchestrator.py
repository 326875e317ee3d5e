"""Server search orchestrator: provider fan-out, cross-provider merge, rerank.

Pipeline:
  1. Dispatch the query to every provider, offline corpus included, concurrently
     (a malformed corpus fails the request, whichever provider reads it)
  2. Merge batches by canonical key, attaching provider priorities
  3. Rerank: derive scores, filter, sort, limit
  4. Return ranked results with per-provider diagnostics
"""

import time
from collections.abc import Mapping, Sequence
from typing import Any

from mcpadvisor.contracts.server_search_v1 import RerankOptions, SearchQuery
from mcpadvisor.core.config import Config, config as default_config
from mcpadvisor.core.embeddings import HashingEmbedder
from mcpadvisor.core.errors import CorpusFormatError, SearchPipelineError
from mcpadvisor.core.logger import logger
from mcpadvisor.orchestrators.search.backends.offline import OfflineSearchProvider
from mcpadvisor.orchestrators.search.context import SearchContext
from mcpadvisor.orchestrators.search.dispatcher import ProviderDispatcher
from mcpadvisor.orchestrators.search.interface import RegisteredProvider
from mcpadvisor.orchestrators.search.models import ServerSearchResponse
from mcpadvisor.orchestrators.search.offline import OfflineDataLoader
from mcpadvisor.orchestrators.search.rerank import RerankPipeline, Reranker

OFFLINE_PROVIDER_NAME = "offline"

DEFAULT_SEARCH_OPTIONS: dict[str, Any] = {"limit": 5, "min_similarity": 0.5}


def _as_query(query: SearchQuery | str | Mapping[str, Any]) -> SearchQuery:
    if isinstance(query, SearchQuery):
        return query
    if isinstance(query, str):
        return SearchQuery(task_description=query)
    return SearchQuery.model_validate(dict(query))


class ServerSearchOrchestrator:
    """Fans a query out to registered providers and returns one ranked list."""

    def __init__(
        self,
        providers: Sequence[RegisteredProvider] = (),
        *,
        config: Config | None = None,
        context: SearchContext | None = None,
        offline_provider: OfflineSearchProvider | None = None,
        pipeline: RerankPipeline | None = None,
    ):
        self._config = config or default_config
        self._context = context
        self._dispatcher = ProviderDispatcher()
        for p in providers:
            self._dispatcher.register(p.name, p.impl)

        self._offline: OfflineSearchProvider | None = None
        if self._config.offline_enabled and not self._dispatcher.has_provider(OFFLINE_PROVIDER_NAME):
            self._offline = offline_provider or self._default_offline_provider()
        self._reranker = Reranker(self._config.provider_priorities, pipeline)

    def _default_offline_provider(self) -> OfflineSearchProvider:
        if self._context is not None and self._context.is_open:
            embedder = self._context.embedder
        else:
            embedder = HashingEmbedder(self._config.embedding_dim)
        loader = OfflineDataLoader(
            self._config.fallback_data_path,
            embedder=embedder,
            freshness_seconds=self._config.corpus_freshness_seconds,
        )
        return OfflineSearchProvider(
            loader,
            embedder=embedder,
            min_similarity=self._config.offline_min_similarity,
        )

    @property
    def dispatcher(self) -> ProviderDispatcher:
        return self._dispatcher

    @property
    def offline_provider(self) -> OfflineSearchProvider | None:
        return self._offline

    def provider_names(self) -> list[str]:
        names = self._dispatcher.provider_names()
        if self._offline is not None:
            names.append(OFFLINE_PROVIDER_NAME)
        return names

    def resolve_options(
        self, options: RerankOptions | Mapping[str, Any] | None = None
    ) -> RerankOptions:
        """Built-in defaults, then config, then fields the caller set explicitly."""
        merged: dict[str, Any] = dict(DEFAULT_SEARCH_OPTIONS)
        merged["limit"] = self._config.search_limit
        if self._config.search_min_similarity is not None:
            merged["min_similarity"] = self._config.search_min_similarity
        if self._config.search_min_score is not None:
            merged["min_score"] = self._config.search_min_score

        if options is not None:
            if not isinstance(options, RerankOptions):
                options = RerankOptions.model_validate(dict(options))
            for name in options.model_fields_set:
                merged[name] = getattr(options, name)
        return RerankOptions(**merged)

    async def search(
        self,
        query: SearchQuery | str | Mapping[str, Any],
        options: RerankOptions | Mapping[str, Any] | None = None,
    ) -> ServerSearchResponse:
        """Run one search request end to end.

        Provider failures are reported in ``errors``; a malformed offline
        corpus or a failing merge/rerank stage raises SearchPipelineError.
        """
        pipeline_start = time.monotonic()
        search_query = _as_query(query)
        opts = self.resolve_options(options)
        providers = self.provider_names()
        timing_ms: dict[str, float] = {}

        logger.search_started(search_query.task_description, providers)

        t0 = time.monotonic()
        extra = (
            [RegisteredProvider(name=OFFLINE_PROVIDER_NAME, impl=self._offline)]
            if self._offline is not None
            else []
        )
        try:
            batches = await self._dispatcher.run(
                search_query,
                extra=extra,
                timeout=self._config.provider_timeout,
                fatal=(CorpusFormatError,),
            )
        except CorpusFormatError as e:
            logger.error("Offline corpus could not be loaded", exception=e)
            raise SearchPipelineError(e.message, operation=e.operation) from e
        timing_ms["dispatch"] = round((time.monotonic() - t0) * 1000, 1)

        errors: list[str] = []
        provider_counts: dict[str, int] = {}
        for batch in batches:
            provider_counts[batch.provider_name] = len(batch.results)
            logger.provider_result(
                batch.provider_name,
                len(batch.results),
                batch.ok,
                elapsed_ms=batch.elapsed_ms,
                error_reason=batch.error,
            )
            if not batch.ok:
                errors.append(f"{batch.provider_name}: {batch.error}")

        t0 = time.monotonic()
        try:
            results = self._reranker.rerank(batches, opts)
        except Exception as e:
            logger.error("Rerank pipeline failed", exception=e)
            raise SearchPipelineError(f"{type(e).__name__}: {e}", operation="rerank") from e
        timing_ms["rerank"] = round((time.monotonic() - t0) * 1000, 1)
        timing_ms["total"] = round((time.monotonic() - pipeline_start) * 1000, 1)

        logger.search_finished(len(results), len(errors))
        return ServerSearchResponse(
            results=results,
            errors=errors,
            meta={
                "query": search_query.combined_text(),
                "providers_queried": providers,
                "provider_counts": provider_counts,
                "total_results": len(results),
                "options": opts.model_dump(mode="json"),
                "timing_ms": timing_ms,
            },
        )

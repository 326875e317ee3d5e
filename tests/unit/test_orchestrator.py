from __future__ import annotations

import asyncio
import dataclasses
import time
from pathlib import Path

import pytest

from mcpadvisor.contracts.server_search_v1 import RawResult, RerankOptions, SearchQuery
from mcpadvisor.core.config import Config
from mcpadvisor.core.embeddings import HashingEmbedder
from mcpadvisor.core.errors import SearchPipelineError
from mcpadvisor.orchestrators.search.backends.offline import OfflineSearchProvider
from mcpadvisor.orchestrators.search.interface import RegisteredProvider, SearchProvider
from mcpadvisor.orchestrators.search.offline import OfflineDataLoader
from mcpadvisor.orchestrators.search.orchestrator import ServerSearchOrchestrator
from mcpadvisor.orchestrators.search.rerank import RerankPipeline


class StaticProvider(SearchProvider):
    def __init__(self, *results: RawResult):
        self.results = list(results)
        self.queries: list[SearchQuery] = []

    async def search(self, query: SearchQuery) -> list[RawResult]:
        self.queries.append(query)
        return list(self.results)


class FailingProvider(SearchProvider):
    async def search(self, query: SearchQuery) -> list[RawResult]:
        raise ConnectionError("upstream refused connection")


def _online_only(cfg: Config, **overrides) -> Config:
    return dataclasses.replace(cfg, offline_enabled=False, **overrides)


@pytest.mark.asyncio
async def test_merges_duplicates_and_ranks_by_priority_score(test_config):
    cfg = _online_only(test_config, provider_priorities={"p1": 1, "p2": 10, "p3": 1})
    providers = [
        RegisteredProvider("p1", StaticProvider(RawResult(title="A", source_url="u://a", similarity=0.9))),
        RegisteredProvider("p2", StaticProvider(RawResult(title="A", source_url="u://a", similarity=0.95))),
        RegisteredProvider("p3", StaticProvider(RawResult(title="B", source_url="u://b", similarity=0.8))),
    ]
    orchestrator = ServerSearchOrchestrator(providers, config=cfg)

    response = await orchestrator.search("find servers")

    assert [r.title for r in response.results] == ["A", "B"]
    assert response.results[0].similarity == 0.95
    assert response.results[0].provider_name == "p2"
    assert response.errors == []
    assert response.meta["provider_counts"] == {"p1": 1, "p2": 1, "p3": 1}
    assert response.meta["providers_queried"] == ["p1", "p2", "p3"]
    assert response.meta["total_results"] == 2
    assert "total" in response.meta["timing_ms"]


@pytest.mark.asyncio
async def test_failing_provider_is_reported_not_raised(test_config):
    cfg = _online_only(test_config)
    providers = [
        RegisteredProvider("good", StaticProvider(RawResult(title="A", similarity=0.9))),
        RegisteredProvider("bad", FailingProvider()),
    ]

    response = await ServerSearchOrchestrator(providers, config=cfg).search("anything")

    assert [r.title for r in response.results] == ["A"]
    assert len(response.errors) == 1
    assert response.errors[0].startswith("bad: ConnectionError")
    assert response.meta["provider_counts"]["bad"] == 0


@pytest.mark.asyncio
async def test_no_providers_returns_empty_response(test_config):
    response = await ServerSearchOrchestrator([], config=_online_only(test_config)).search("x")
    assert response.results == []
    assert response.errors == []


@pytest.mark.asyncio
async def test_string_and_mapping_queries_are_wrapped(test_config):
    provider = StaticProvider()
    orchestrator = ServerSearchOrchestrator(
        [RegisteredProvider("p", provider)], config=_online_only(test_config)
    )

    await orchestrator.search("plain text")
    await orchestrator.search({"taskDescription": "mapped", "keywords": ["k"]})

    assert provider.queries[0].task_description == "plain text"
    assert provider.queries[1].keywords == ("k",)


class TestOptionLayering:
    def test_defaults_come_from_config(self, test_config):
        cfg = _online_only(test_config, search_limit=7, search_min_similarity=0.4, search_min_score=None)
        opts = ServerSearchOrchestrator([], config=cfg).resolve_options()
        assert opts.limit == 7
        assert opts.min_similarity == 0.4
        assert opts.min_score is None

    def test_missing_config_similarity_keeps_builtin_default(self, test_config):
        cfg = _online_only(test_config, search_min_similarity=None)
        opts = ServerSearchOrchestrator([], config=cfg).resolve_options()
        assert opts.min_similarity == 0.5

    def test_caller_overrides_only_fields_it_sets(self, test_config):
        cfg = _online_only(test_config, search_limit=7, search_min_similarity=0.4)
        orchestrator = ServerSearchOrchestrator([], config=cfg)

        opts = orchestrator.resolve_options({"minScore": 2.0, "limit": 1})

        assert opts.limit == 1
        assert opts.min_score == 2.0
        assert opts.min_similarity == 0.4

    @pytest.mark.asyncio
    async def test_caller_limit_applies_to_search(self, test_config):
        provider = StaticProvider(*(RawResult(title=f"T{i}", similarity=0.1 * i) for i in range(1, 6)))
        orchestrator = ServerSearchOrchestrator(
            [RegisteredProvider("p", provider)], config=_online_only(test_config)
        )

        response = await orchestrator.search("x", RerankOptions(limit=2))

        assert [r.title for r in response.results] == ["T5", "T4"]


@pytest.mark.asyncio
async def test_offline_provider_is_appended_when_enabled(test_config):
    orchestrator = ServerSearchOrchestrator([], config=test_config)

    response = await orchestrator.search(SearchQuery(task_description="web search"))

    assert orchestrator.provider_names() == ["offline"]
    assert response.results[0].title == "Brave Search"
    assert response.results[0].fallback is True
    assert response.results[0].provider_name == "offline"
    assert "dispatch" in response.meta["timing_ms"]


def test_offline_registered_explicitly_is_not_added_twice(test_config):
    orchestrator = ServerSearchOrchestrator(
        [RegisteredProvider("offline", StaticProvider())], config=test_config
    )
    assert orchestrator.provider_names() == ["offline"]
    assert orchestrator.offline_provider is None


@pytest.mark.asyncio
async def test_malformed_corpus_fails_request(test_config, tmp_path: Path):
    bad = tmp_path / "bad.json"
    bad.write_text("[{broken", encoding="utf-8")
    cfg = dataclasses.replace(test_config, fallback_data_path=bad)

    with pytest.raises(SearchPipelineError) as exc:
        await ServerSearchOrchestrator([], config=cfg).search("x")

    assert exc.value.operation == "load_fallback_data"


@pytest.mark.asyncio
async def test_failing_stage_is_wrapped(test_config):
    def exploding(results, options):
        raise KeyError("score")

    pipeline = RerankPipeline().with_stage(exploding)
    orchestrator = ServerSearchOrchestrator(
        [RegisteredProvider("p", StaticProvider(RawResult(title="A", similarity=0.9)))],
        config=_online_only(test_config),
        pipeline=pipeline,
    )

    with pytest.raises(SearchPipelineError, match="rerank") as exc:
        await orchestrator.search("x")

    assert exc.value.operation == "rerank"
    assert isinstance(exc.value.__cause__, KeyError)


def _broken_corpus(tmp_path: Path, payload: bytes) -> Path:
    path = tmp_path / "broken.json"
    path.write_bytes(payload)
    return path


@pytest.mark.asyncio
async def test_malformed_corpus_fails_request_when_offline_registered_by_name(test_config, tmp_path: Path):
    bad = _broken_corpus(tmp_path, b"[{broken")
    cfg = dataclasses.replace(test_config, fallback_data_path=bad)
    offline = OfflineSearchProvider(fallback_data_path=bad, embedder=HashingEmbedder(16))
    orchestrator = ServerSearchOrchestrator(
        [
            RegisteredProvider("good", StaticProvider(RawResult(title="A", similarity=0.9))),
            RegisteredProvider("offline", offline),
        ],
        config=cfg,
    )

    with pytest.raises(SearchPipelineError) as exc:
        await orchestrator.search("x")

    assert exc.value.operation == "load_fallback_data"
    assert orchestrator.offline_provider is None


@pytest.mark.asyncio
async def test_non_utf8_corpus_fails_request_with_operation(test_config, tmp_path: Path):
    bad = _broken_corpus(tmp_path, b'[{"name": "\xff"}]')
    cfg = dataclasses.replace(test_config, fallback_data_path=bad)

    with pytest.raises(SearchPipelineError, match="UTF-8") as exc:
        await ServerSearchOrchestrator([], config=cfg).search("x")

    assert exc.value.operation == "load_fallback_data"


class SlowEmbedder:
    dimension = 8

    async def embed(self, text: str) -> list[float]:
        await asyncio.sleep(5)
        return [1.0] * self.dimension


@pytest.mark.asyncio
async def test_offline_indexing_runs_alongside_providers_under_timeout(test_config, corpus_file: Path):
    cfg = dataclasses.replace(test_config, provider_timeout=0.1)
    embedder = SlowEmbedder()
    offline = OfflineSearchProvider(
        OfflineDataLoader(corpus_file, embedder=embedder), embedder=embedder
    )
    orchestrator = ServerSearchOrchestrator(
        [RegisteredProvider("p", StaticProvider(RawResult(title="A", similarity=0.9)))],
        config=cfg,
        offline_provider=offline,
    )

    started = time.monotonic()
    response = await orchestrator.search("web search")

    assert time.monotonic() - started < 2.0
    assert [r.title for r in response.results] == ["A"]
    assert response.errors == ["offline: timed out after 0.1s"]

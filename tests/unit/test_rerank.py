from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from mcpadvisor.contracts.server_search_v1 import (
    MergedResult,
    ProviderBatch,
    RawResult,
    RerankOptions,
    SortOrder,
)
from mcpadvisor.orchestrators.search.rerank import (
    RerankPipeline,
    Reranker,
    derive_scores,
    filter_by_threshold,
    limit_results,
    make_specialized_rerank,
    sort_results,
)


def _merged(title: str, similarity: float = 0.5, priority: int = 0, score: float | None = None) -> MergedResult:
    return MergedResult(
        title=title,
        similarity=similarity,
        provider_priority=priority,
        score=score,
    )


class TestStages:
    def test_derive_scores_multiplies_priority(self) -> None:
        out = derive_scores([_merged("a", 0.5, priority=10)], RerankOptions())
        assert out[0].score == pytest.approx(5.0)

    def test_derive_scores_zero_priority_counts_as_one(self) -> None:
        out = derive_scores([_merged("a", 0.4, priority=0)], RerankOptions())
        assert out[0].score == pytest.approx(0.4)

    def test_derive_scores_keeps_explicit_score(self) -> None:
        out = derive_scores([_merged("a", 0.4, priority=10, score=0.1)], RerankOptions())
        assert out[0].score == 0.1

    def test_derive_scores_returns_copies(self) -> None:
        original = _merged("a", 0.4, priority=2)
        derive_scores([original], RerankOptions())
        assert original.score is None

    def test_threshold_prefers_min_score_over_min_similarity(self) -> None:
        results = [_merged("low", score=0.2), _merged("high", score=0.8)]
        opts = RerankOptions(min_score=0.5, min_similarity=0.1)
        assert [r.title for r in filter_by_threshold(results, opts)] == ["high"]

    def test_threshold_uses_similarity_when_score_missing(self) -> None:
        results = [_merged("low", 0.3), _merged("high", 0.7)]
        opts = RerankOptions(min_similarity=0.5)
        assert [r.title for r in filter_by_threshold(results, opts)] == ["high"]

    def test_threshold_none_is_noop(self) -> None:
        results = [_merged("a", 0.0)]
        assert filter_by_threshold(results, RerankOptions()) == results

    def test_sort_descending_by_score_by_default(self) -> None:
        results = [_merged("a", score=0.1), _merged("b", score=0.9), _merged("c", 0.5)]
        assert [r.title for r in sort_results(results, RerankOptions())] == ["b", "c", "a"]

    def test_sort_ascending(self) -> None:
        results = [_merged("a", score=0.1), _merged("b", score=0.9)]
        opts = RerankOptions(sort_order=SortOrder.ASC)
        assert [r.title for r in sort_results(results, opts)] == ["a", "b"]

    def test_sort_coerces_numeric_strings(self) -> None:
        results = [_merged("9"), _merged("10"), _merged("n/a")]
        opts = RerankOptions(sort_by="title")
        assert [r.title for r in sort_results(results, opts)] == ["10", "9", "n/a"]

    def test_sort_unknown_field_keeps_input_order(self) -> None:
        results = [_merged("a"), _merged("b"), _merged("c")]
        opts = RerankOptions(sort_by="downloads")
        assert [r.title for r in sort_results(results, opts)] == ["a", "b", "c"]

    def test_sort_is_stable_for_ties(self) -> None:
        results = [_merged("a", score=0.5), _merged("b", score=0.5), _merged("c", score=0.5)]
        assert [r.title for r in sort_results(results, RerankOptions())] == ["a", "b", "c"]

    def test_limit_truncates(self) -> None:
        results = [_merged(str(i)) for i in range(5)]
        assert len(limit_results(results, RerankOptions(limit=2))) == 2
        assert len(limit_results(results, RerankOptions(limit=0))) == 5
        assert len(limit_results(results, RerankOptions())) == 5

    def test_specialized_rerank_enabled_applies_model(self) -> None:
        stage = make_specialized_rerank(lambda rs, opts: list(reversed(rs)), enabled=True)
        results = [_merged("a"), _merged("b")]
        assert [r.title for r in stage(results, RerankOptions())] == ["b", "a"]

    def test_specialized_rerank_disabled_passes_through(self) -> None:
        stage = make_specialized_rerank(lambda rs, opts: [], enabled=False)
        results = [_merged("a"), _merged("b")]
        assert stage(results, RerankOptions()) == results


class TestPipeline:
    def test_limit_two_over_five_distinct_scores(self) -> None:
        results = [_merged(f"r{i}", score=s) for i, s in enumerate([0.3, 0.9, 0.1, 0.7, 0.5])]

        out = RerankPipeline().run(results, RerankOptions(limit=2))

        assert [r.score for r in out] == [0.9, 0.7]

    def test_run_does_not_mutate_input(self) -> None:
        results = [_merged("a", 0.5, priority=3), _merged("b", 0.2)]
        snapshot = [r.model_dump() for r in results]

        RerankPipeline().run(results, RerankOptions(limit=1, min_score=0.3))

        assert [r.model_dump() for r in results] == snapshot
        assert len(results) == 2

    def test_with_and_without_stage_return_new_pipelines(self) -> None:
        base = RerankPipeline()

        def drop_all(results, options):
            return []

        extended = base.with_stage(drop_all, index=0)
        assert extended.stages[0] is drop_all
        assert drop_all not in base.stages
        assert extended.run([_merged("a")]) == []
        assert extended.without_stage(drop_all).stages == base.stages

    def test_custom_stage_order(self) -> None:
        pipeline = RerankPipeline([limit_results, sort_results])
        results = [_merged("low", score=0.1), _merged("high", score=0.9)]
        out = pipeline.run(results, RerankOptions(limit=1))
        assert [r.title for r in out] == ["low"]


scores = st.lists(st.floats(min_value=0.0, max_value=1.0), max_size=8)


@pytest.mark.property
@given(scores, st.integers(min_value=0, max_value=10), st.sampled_from(list(SortOrder)))
def test_disabled_specialized_stage_equals_removing_it(sims, limit, order) -> None:
    results = [_merged(f"r{i}", s, priority=i % 3) for i, s in enumerate(sims)]
    opts = RerankOptions(limit=limit, sort_order=order, min_score=0.2)
    hook = make_specialized_rerank(lambda rs, o: [], enabled=False)

    with_hook = RerankPipeline().with_stage(hook, index=2).run(results, opts)
    without = RerankPipeline().run(results, opts)

    assert [r.model_dump() for r in with_hook] == [r.model_dump() for r in without]


class TestReranker:
    def test_merge_then_rerank_scenario(self) -> None:
        batches = [
            ProviderBatch(provider_name="p1", results=[RawResult(title="A", source_url="u://a", similarity=0.9)]),
            ProviderBatch(provider_name="p2", results=[RawResult(title="A", source_url="u://a", similarity=0.95)]),
            ProviderBatch(provider_name="p3", results=[RawResult(title="B", source_url="u://b", similarity=0.8)]),
        ]
        reranker = Reranker({"p1": 1, "p2": 10, "p3": 1})

        out = reranker.rerank(batches, RerankOptions())

        assert [r.title for r in out] == ["A", "B"]
        assert out[0].similarity == 0.95
        assert out[0].score == pytest.approx(9.5)

    def test_min_similarity_applies_at_merge(self) -> None:
        batches = [
            ProviderBatch(
                provider_name="p",
                results=[RawResult(title="A", similarity=0.4), RawResult(title="B", similarity=0.6)],
            )
        ]
        # priority 10 would lift A's score above 0.5, but merge drops it first
        out = Reranker({"p": 10}).rerank(batches, RerankOptions(min_similarity=0.5))
        assert [r.title for r in out] == ["B"]

    def test_empty_batches(self) -> None:
        assert Reranker().rerank([], RerankOptions()) == []
        assert Reranker().rerank([ProviderBatch(provider_name="p", error="down")]) == []

    def test_provider_priorities_are_copied(self) -> None:
        priorities = {"p": 1}
        reranker = Reranker(priorities)
        reranker.provider_priorities["p"] = 99
        assert reranker.provider_priorities == {"p": 1}

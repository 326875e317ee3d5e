"""Rerank pipeline: an ordered list of pure stages applied after merging.

Each stage is a function ``(results, options) -> results`` that returns a new
list and never touches state outside its arguments. The default order is:

  1. derive_scores        score = priority * similarity unless already set
  2. filter_by_threshold  drop below min_score (or legacy min_similarity)
  3. specialized rerank   pluggable model hook, pass-through when disabled
  4. sort_results         by sort_by / sort_order
  5. limit_results        truncate to limit

``score`` takes precedence over ``similarity`` wherever both could apply.
"""

import logging
from collections.abc import Callable, Mapping, Sequence
from functools import reduce
from typing import Any

from mcpadvisor.contracts.server_search_v1 import (
    MergedResult,
    ProviderBatch,
    RerankOptions,
    SortOrder,
)
from mcpadvisor.orchestrators.search.merge import merge_batches

logger = logging.getLogger(__name__)

RerankStage = Callable[[list[MergedResult], RerankOptions], list[MergedResult]]


def derive_scores(results: list[MergedResult], options: RerankOptions) -> list[MergedResult]:
    out: list[MergedResult] = []
    for r in results:
        if r.score is not None:
            out.append(r)
            continue
        priority = r.provider_priority or 1
        out.append(r.model_copy(update={"score": priority * r.similarity}))
    return out


def filter_by_threshold(results: list[MergedResult], options: RerankOptions) -> list[MergedResult]:
    threshold = options.threshold
    if threshold is None:
        return list(results)
    return [r for r in results if r.effective_score >= threshold]


def make_specialized_rerank(
    reranker: RerankStage | None = None,
    *,
    enabled: bool = False,
) -> RerankStage:
    """Build the hook stage for an external reranking model.

    With ``enabled=False`` or no ``reranker`` the stage returns its input unchanged.
    """

    def specialized_rerank(results: list[MergedResult], options: RerankOptions) -> list[MergedResult]:
        if not enabled or reranker is None:
            return list(results)
        logger.info("Specialized rerank over %s results", len(results))
        return list(reranker(list(results), options))

    return specialized_rerank


def _coerce_number(value: Any) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return 0.0
    return 0.0


def _sort_value(result: MergedResult, sort_by: str) -> float:
    if sort_by == "score":
        return result.effective_score
    return _coerce_number(getattr(result, sort_by, None))


def sort_results(results: list[MergedResult], options: RerankOptions) -> list[MergedResult]:
    sort_by = options.sort_by or "score"
    descending = options.sort_order != SortOrder.ASC
    return sorted(results, key=lambda r: _sort_value(r, sort_by), reverse=descending)


def limit_results(results: list[MergedResult], options: RerankOptions) -> list[MergedResult]:
    if options.limit and options.limit > 0:
        return list(results[: options.limit])
    return list(results)


def default_stages(specialized: RerankStage | None = None) -> list[RerankStage]:
    return [
        derive_scores,
        filter_by_threshold,
        specialized or make_specialized_rerank(),
        sort_results,
        limit_results,
    ]


class RerankPipeline:
    """Applies stages in order. Instances are immutable; ``with_*`` return copies."""

    def __init__(self, stages: Sequence[RerankStage] | None = None) -> None:
        self._stages: tuple[RerankStage, ...] = tuple(
            default_stages() if stages is None else stages
        )

    @property
    def stages(self) -> tuple[RerankStage, ...]:
        return self._stages

    def with_stage(self, stage: RerankStage, index: int | None = None) -> "RerankPipeline":
        stages = list(self._stages)
        if index is None:
            stages.append(stage)
        else:
            stages.insert(index, stage)
        return RerankPipeline(stages)

    def without_stage(self, stage: RerankStage) -> "RerankPipeline":
        return RerankPipeline([s for s in self._stages if s is not stage])

    def run(self, results: Sequence[MergedResult], options: RerankOptions | None = None) -> list[MergedResult]:
        opts = options or RerankOptions()
        return reduce(lambda acc, stage: stage(acc, opts), self._stages, list(results))


class Reranker:
    """Merges provider batches and runs the rerank pipeline over the result."""

    def __init__(
        self,
        provider_priorities: Mapping[str, int] | None = None,
        pipeline: RerankPipeline | None = None,
    ) -> None:
        self._priorities = dict(provider_priorities or {})
        self._pipeline = pipeline or RerankPipeline()

    @property
    def provider_priorities(self) -> dict[str, int]:
        return dict(self._priorities)

    def rerank(
        self,
        batches: Sequence[ProviderBatch],
        options: RerankOptions | None = None,
    ) -> list[MergedResult]:
        """Merge and rerank. Returns an empty list when there is nothing to rank."""
        opts = options or RerankOptions()
        outcome = merge_batches(batches, self._priorities, min_similarity=opts.min_similarity)
        if not outcome.results:
            return []

        ranked = self._pipeline.run(outcome.results, opts)

        avg = sum(r.effective_score for r in ranked) / len(ranked) if ranked else 0.0
        logger.info(
            "Rerank: %s merged -> %s ranked | avg_score=%.3f",
            len(outcome.results),
            len(ranked),
            avg,
        )
        return ranked

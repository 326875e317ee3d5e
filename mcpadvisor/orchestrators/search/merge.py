"""Cross-provider deduplication.

Results are keyed by ``source_url`` (or ``title:<title>`` when there is no
locator). On a collision the higher similarity wins; equal similarity falls
back to the higher provider priority; a full tie keeps the first one seen.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from mcpadvisor.contracts.server_search_v1 import MergedResult, ProviderBatch, RawResult

logger = logging.getLogger(__name__)


@dataclass
class MergeOutcome:
    results: list[MergedResult] = field(default_factory=list)
    # Keys that appeared more than once; diagnostics only.
    collisions: list[str] = field(default_factory=list)


def to_merged(result: RawResult, provider_name: str, priority: int) -> MergedResult:
    data = result.model_dump()
    data.update(provider_name=provider_name, provider_priority=priority)
    return MergedResult(**data)


def _replaces(incumbent: MergedResult, candidate: MergedResult) -> bool:
    if candidate.similarity != incumbent.similarity:
        return candidate.similarity > incumbent.similarity
    return candidate.provider_priority > incumbent.provider_priority


def merge_batches(
    batches: Sequence[ProviderBatch],
    priorities: Mapping[str, int] | None = None,
    *,
    min_similarity: float | None = None,
) -> MergeOutcome:
    """Collapse provider batches into one result per server."""
    priorities = priorities or {}
    merged: dict[str, MergedResult] = {}
    collisions: list[str] = []

    for batch in batches:
        priority = int(priorities.get(batch.provider_name, 0))
        for result in batch.results:
            if min_similarity is not None and result.similarity < min_similarity:
                continue
            candidate = to_merged(result, batch.provider_name, priority)
            key = candidate.dedup_key()
            incumbent = merged.get(key)
            if incumbent is None:
                merged[key] = candidate
                continue
            collisions.append(key)
            if _replaces(incumbent, candidate):
                merged[key] = candidate

    logger.info(
        "Merge: %s unique results from %s batches (%s duplicates removed)",
        len(merged),
        len(batches),
        len(collisions),
    )
    return MergeOutcome(results=list(merged.values()), collisions=collisions)

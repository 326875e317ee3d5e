"""Server search contract v1: shared types for queries, provider payloads, and rerank controls."""

from mcpadvisor.contracts.server_search_v1 import (
    MergedResult,
    ProviderBatch,
    RawResult,
    RerankOptions,
    SearchQuery,
    SortOrder,
)

__all__ = [
    "MergedResult",
    "ProviderBatch",
    "RawResult",
    "RerankOptions",
    "SearchQuery",
    "SortOrder",
]

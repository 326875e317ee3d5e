"""Orchestrators: multi-provider pipelines (e.g. server search)."""

from mcpadvisor.contracts.server_search_v1 import MergedResult
from mcpadvisor.orchestrators.search import (
    SearchProvider,
    ServerSearchOrchestrator,
    ServerSearchResponse,
)

__all__ = [
    "MergedResult",
    "SearchProvider",
    "ServerSearchOrchestrator",
    "ServerSearchResponse",
]

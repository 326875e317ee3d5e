"""Server search: provider fan-out, cross-provider merge, and rerank."""

from mcpadvisor.contracts.server_search_v1 import MergedResult
from mcpadvisor.orchestrators.search.backends import build_providers
from mcpadvisor.orchestrators.search.context import SearchContext
from mcpadvisor.orchestrators.search.interface import RegisteredProvider, SearchProvider
from mcpadvisor.orchestrators.search.models import ServerSearchResponse
from mcpadvisor.orchestrators.search.orchestrator import ServerSearchOrchestrator

__all__ = [
    "MergedResult",
    "RegisteredProvider",
    "SearchContext",
    "SearchProvider",
    "ServerSearchOrchestrator",
    "ServerSearchResponse",
    "build_providers",
]

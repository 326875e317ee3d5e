"""Standard interface for search providers used by the orchestrator.

Every provider (HTTP registries, the offline corpus) implements SearchProvider
and returns RawResult. Providers are registered under an explicit name.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from mcpadvisor.contracts.server_search_v1 import RawResult, SearchQuery


class SearchProvider(ABC):
    """Base class for all search providers."""

    @abstractmethod
    async def search(self, query: SearchQuery) -> list[RawResult]:
        """Execute search and return raw results. May raise on failure."""


@dataclass(frozen=True)
class RegisteredProvider:
    """A provider tagged with the name used for priorities and diagnostics."""

    name: str
    impl: SearchProvider

"""Provider dispatcher: fans a query out to every registered provider.

Each provider runs concurrently. A provider that raises (or exceeds the
caller-supplied timeout) yields an empty batch carrying the error. Only
exception types the caller passes as ``fatal`` escape, and only after every
provider has settled.
"""

import asyncio
import logging
import time
from collections.abc import Sequence

from mcpadvisor.contracts.server_search_v1 import ProviderBatch, SearchQuery
from mcpadvisor.orchestrators.search.interface import RegisteredProvider, SearchProvider

logger = logging.getLogger(__name__)


class ProviderDispatcher:
    """Runs registered providers in parallel and tags each batch with its provider name."""

    def __init__(self) -> None:
        self._providers: dict[str, RegisteredProvider] = {}

    def register(self, name: str, provider: SearchProvider) -> None:
        """Register ``provider`` under ``name``; re-registering a name replaces it."""
        if not name or not name.strip():
            raise ValueError("provider name must not be empty")
        self._providers[name] = RegisteredProvider(name=name, impl=provider)
        logger.info("Dispatcher: registered provider '%s'", name)

    def unregister(self, name: str) -> None:
        if self._providers.pop(name, None) is None:
            logger.warning("Dispatcher: no provider named '%s'", name)

    def has_provider(self, name: str) -> bool:
        return name in self._providers

    def provider_names(self) -> list[str]:
        return list(self._providers)

    def providers(self) -> list[RegisteredProvider]:
        return list(self._providers.values())

    async def _run_one(
        self,
        provider: RegisteredProvider,
        query: SearchQuery,
        timeout: float | None,
        fatal: tuple[type[BaseException], ...] = (),
    ) -> ProviderBatch:
        t0 = time.monotonic()
        try:
            if timeout is not None:
                results = await asyncio.wait_for(provider.impl.search(query), timeout)
            else:
                results = await provider.impl.search(query)
        except asyncio.TimeoutError as e:
            elapsed_ms = round((time.monotonic() - t0) * 1000, 1)
            # A provider may raise TimeoutError itself when no deadline was set.
            reason = f"timed out after {timeout}s" if timeout is not None else f"{type(e).__name__}: {e}"
            logger.warning("Dispatcher: provider '%s' %s (%.1fms)", provider.name, reason, elapsed_ms)
            return ProviderBatch(provider_name=provider.name, error=reason, elapsed_ms=elapsed_ms)
        except fatal:
            raise
        except Exception as e:
            elapsed_ms = round((time.monotonic() - t0) * 1000, 1)
            logger.warning("Dispatcher: provider '%s' failed: %s", provider.name, e)
            return ProviderBatch(
                provider_name=provider.name,
                error=f"{type(e).__name__}: {e}",
                elapsed_ms=elapsed_ms,
            )

        elapsed_ms = round((time.monotonic() - t0) * 1000, 1)
        results = list(results or [])
        logger.info(
            "Dispatcher: provider '%s' returned %s results in %.1fms",
            provider.name,
            len(results),
            elapsed_ms,
        )
        return ProviderBatch(provider_name=provider.name, results=results, elapsed_ms=elapsed_ms)

    async def run(
        self,
        query: SearchQuery,
        *,
        extra: Sequence[RegisteredProvider] = (),
        timeout: float | None = None,
        fatal: tuple[type[BaseException], ...] = (),
    ) -> list[ProviderBatch]:
        """Search every registered provider plus ``extra`` and wait for all of them.

        Batches come back in registration order (``extra`` last). The first
        ``fatal`` exception raised by any provider is re-raised.
        """
        targets = [*self._providers.values(), *extra]
        if not targets:
            logger.warning("Dispatcher: no search providers available")
            return []
        settled = await asyncio.gather(
            *(self._run_one(p, query, timeout, fatal) for p in targets),
            return_exceptions=True,
        )
        for outcome in settled:
            if isinstance(outcome, BaseException):
                raise outcome
        return list(settled)

from mcpadvisor.core.config import Config
from mcpadvisor.orchestrators.search.backends.compass import CompassSearchProvider
from mcpadvisor.orchestrators.search.backends.getmcp import GetMcpSearchProvider
from mcpadvisor.orchestrators.search.backends.offline import OfflineSearchProvider
from mcpadvisor.orchestrators.search.context import SearchContext
from mcpadvisor.orchestrators.search.interface import RegisteredProvider
from mcpadvisor.orchestrators.search.offline import OfflineDataLoader

PROVIDER_NAMES = ("compass", "getmcp", "offline")


def build_providers(
    names: list[str],
    context: SearchContext,
    cfg: Config,
) -> list[RegisteredProvider]:
    """Instantiate the named providers against an open context.

    Raises ValueError for a name with no backend.
    """
    out: list[RegisteredProvider] = []
    for name in names:
        if name == "compass":
            impl = CompassSearchProvider(cfg.compass_api_base, client=context.http)
        elif name == "getmcp":
            impl = GetMcpSearchProvider(
                cfg.getmcp_api_url,
                client=context.http,
                embedder=context.embedder,
                cache_ttl_seconds=cfg.getmcp_cache_ttl_seconds,
            )
        elif name == "offline":
            loader = OfflineDataLoader(
                cfg.fallback_data_path,
                embedder=context.embedder,
                freshness_seconds=cfg.corpus_freshness_seconds,
            )
            impl = OfflineSearchProvider(
                loader,
                embedder=context.embedder,
                min_similarity=cfg.offline_min_similarity,
            )
        else:
            raise ValueError(f"Unknown provider '{name}' (known: {', '.join(PROVIDER_NAMES)})")
        out.append(RegisteredProvider(name=name, impl=impl))
    return out


__all__ = [
    "CompassSearchProvider",
    "GetMcpSearchProvider",
    "OfflineSearchProvider",
    "PROVIDER_NAMES",
    "build_providers",
]

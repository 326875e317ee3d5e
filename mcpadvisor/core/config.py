"""Configuration from environment variables (.env)."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DEFAULT_PROVIDER_PRIORITIES: dict[str, int] = {
    "offline": 5,
    "getmcp": 5,
    "compass": 10,
    "meilisearch": 9,
}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float | None = None) -> float | None:
    raw = (os.getenv(name) or "").strip()
    return float(raw) if raw else default


def _env_priorities(name: str) -> dict[str, int]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return dict(DEFAULT_PROVIDER_PRIORITIES)
    parsed = json.loads(raw)
    if not isinstance(parsed, dict):
        raise ValueError(f"{name} must be a JSON object of provider -> priority")
    return {str(k): int(v) for k, v in parsed.items()}


@dataclass
class Config:
    project_root: Path
    data_dir: Path
    logs_dir: Path
    offline_enabled: bool
    fallback_data_path: Path | None
    offline_min_similarity: float
    corpus_freshness_seconds: float
    provider_priorities: dict[str, int]
    search_limit: int
    search_min_similarity: float | None
    search_min_score: float | None
    provider_timeout: float | None
    providers: list[str]
    compass_api_base: str
    getmcp_api_url: str
    getmcp_cache_ttl_seconds: float
    embedding_url: str
    embedding_model: str
    embedding_dim: int
    embedding_api_key: str = field(default="", repr=False)

    @classmethod
    def load(cls) -> "Config":
        project_root = Path(__file__).parent.parent.parent
        fallback_path = (os.getenv("MCPADVISOR_FALLBACK_DATA_PATH") or "").strip()
        return cls(
            project_root=project_root,
            data_dir=Path(__file__).parent.parent / "data",
            logs_dir=Path(os.getenv("MCPADVISOR_LOGS_DIR") or project_root / "logs"),
            offline_enabled=_env_bool("MCPADVISOR_OFFLINE_ENABLED", True),
            fallback_data_path=Path(fallback_path) if fallback_path else None,
            offline_min_similarity=float(os.getenv("MCPADVISOR_OFFLINE_MIN_SIMILARITY", "0.3")),
            corpus_freshness_seconds=float(os.getenv("MCPADVISOR_CORPUS_FRESHNESS_SECONDS", "3600")),
            provider_priorities=_env_priorities("MCPADVISOR_PROVIDER_PRIORITIES"),
            search_limit=int(os.getenv("MCPADVISOR_SEARCH_LIMIT", "5")),
            search_min_similarity=_env_float("MCPADVISOR_SEARCH_MIN_SIMILARITY", 0.5),
            search_min_score=_env_float("MCPADVISOR_SEARCH_MIN_SCORE"),
            provider_timeout=_env_float("MCPADVISOR_PROVIDER_TIMEOUT"),
            providers=[p.strip().lower() for p in os.getenv("MCPADVISOR_PROVIDERS", "compass").split(",") if p.strip()],
            compass_api_base=os.getenv("COMPASS_API_BASE", "https://registry.mcphub.io"),
            getmcp_api_url=os.getenv("GETMCP_API_URL", "https://getmcp.io/api/servers.json"),
            getmcp_cache_ttl_seconds=float(os.getenv("GETMCP_CACHE_TTL_SECONDS", "3600")),
            embedding_url=os.getenv("EMBEDDING_URL", ""),
            embedding_model=os.getenv("EMBEDDING_MODEL", ""),
            embedding_dim=int(os.getenv("EMBEDDING_DIM", "384")),
            embedding_api_key=os.getenv("EMBEDDING_API_KEY", ""),
        )

    def validate(self) -> list[str]:
        errors = []
        if self.fallback_data_path is not None and not self.fallback_data_path.exists():
            errors.append(f"Fallback data file not found: {self.fallback_data_path}")
        if self.search_limit < 0:
            errors.append(f"Search limit must not be negative: {self.search_limit}")
        if not 0.0 <= self.offline_min_similarity <= 1.0:
            errors.append(f"Offline min similarity out of range: {self.offline_min_similarity}")
        if self.provider_timeout is not None and self.provider_timeout <= 0:
            errors.append(f"Provider timeout must be positive: {self.provider_timeout}")
        return errors


config = Config.load()

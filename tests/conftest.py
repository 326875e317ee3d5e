import dataclasses
import json
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path

import pytest

# Keep the JSONL event log out of the source tree during test runs.
os.environ.setdefault("MCPADVISOR_LOGS_DIR", tempfile.mkdtemp(prefix="mcpadvisor-logs-"))

from mcpadvisor.core.config import Config, config  # noqa: E402

SAMPLE_CORPUS = [
    {
        "name": "brave-search",
        "display_name": "Brave Search",
        "description": "Web and local search using the Brave Search API.",
        "repository": {"type": "git", "url": "https://github.com/brave/brave-search-mcp-server"},
        "categories": ["Search", "Web"],
        "tags": ["web search", "news"],
    },
    {
        "name": "postgres",
        "description": "Read-only database access with schema inspection.",
        "homepage": "https://example.com/postgres",
        "categories": "Databases",
        "tags": ["sql"],
    },
    {
        "name": "time",
        "display_name": "Time",
        "categories": ["Utilities"],
    },
]


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Also run tests that query live MCP registries.",
    )


def pytest_configure(config: pytest.Config) -> None:
    for marker in (
        "integration: talks to a live MCP registry over the network",
        "e2e: full search pipeline against real providers",
        "property: hypothesis-driven invariant checks",
    ):
        config.addinivalue_line("markers", marker)


def pytest_collection_modifyitems(config: pytest.Config, items: Sequence[pytest.Item]) -> None:
    if config.getoption("--run-integration"):
        return
    opt_in = pytest.mark.skip(reason="needs --run-integration")
    for item in items:
        if "e2e" in item.path.parts:
            item.add_marker("e2e")
            item.add_marker("integration")
        if item.get_closest_marker("integration") is not None or item.get_closest_marker("e2e") is not None:
            item.add_marker(opt_in)


@pytest.fixture
def corpus_file(tmp_path: Path) -> Path:
    path = tmp_path / "data" / "mcp_server_list.json"
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps(SAMPLE_CORPUS), encoding="utf-8")
    return path


@pytest.fixture
def test_config(tmp_path: Path, corpus_file: Path) -> Config:
    """Process config pointed at the sample corpus, no network providers."""
    return dataclasses.replace(
        config,
        logs_dir=tmp_path / "logs",
        offline_enabled=True,
        fallback_data_path=corpus_file,
        offline_min_similarity=0.0,
        provider_timeout=None,
        providers=[],
        search_limit=5,
        search_min_similarity=0.0,
        search_min_score=None,
        embedding_url="",
    )

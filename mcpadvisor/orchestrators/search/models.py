"""Response model for the search orchestrator.

Uses MergedResult from the server search contract as the result type.
"""

from typing import Any

from pydantic import BaseModel, Field

from mcpadvisor.contracts.server_search_v1 import MergedResult


class ServerSearchResponse(BaseModel):
    """Final response from the search orchestrator."""

    results: list[MergedResult] = Field(default_factory=list, description="Ordered search results")
    errors: list[str] = Field(default_factory=list, description="Partial failures, one per provider")
    meta: dict[str, Any] = Field(
        default_factory=lambda: {
            "query": "",
            "providers_queried": [],
            "provider_counts": {},
            "total_results": 0,
            "timing_ms": {},
        },
        description="Pipeline metadata: query, providers, per-provider counts, timing",
    )

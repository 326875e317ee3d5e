"""Server Search Contract v1.

Defines the canonical types exchanged inside the search core:
  - Structured query (SearchQuery)
  - Provider payloads (RawResult, ProviderBatch)
  - Post-merge records (MergedResult)
  - Rerank controls (RerankOptions)

Field names are snake_case; the camelCase spellings used by external
registries and older callers are accepted as aliases.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalize_labels(value: Any) -> list[str]:
    """Coerce a categories/tags value into a list of non-empty strings.

    Accepts None, a single string (comma separated values are split), or any
    iterable of values.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items: list[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
    else:
        items = [value]
    out: list[str] = []
    for item in items:
        if item is None:
            continue
        label = str(item).strip()
        if label:
            out.append(label)
    return out


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------


class SearchQuery(BaseModel):
    """One structured search request. Immutable once constructed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    task_description: str = Field(
        validation_alias=AliasChoices("task_description", "taskDescription"),
        description="Free-text description of what the user wants to do",
    )
    keywords: tuple[str, ...] = Field(default=())
    capabilities: tuple[str, ...] = Field(default=())

    @field_validator("task_description")
    @classmethod
    def _validate_task(cls, value: str) -> str:
        text = str(value).strip()
        if not text:
            raise ValueError("task_description must not be empty")
        return text

    @field_validator("keywords", "capabilities", mode="before")
    @classmethod
    def _validate_terms(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        return tuple(t for t in (str(v).strip() for v in value) if t)

    def combined_text(self) -> str:
        """Task, keywords and capabilities joined into one plain query string."""
        parts = [self.task_description, *self.keywords, *self.capabilities]
        return " ".join(p for p in parts if p).strip()


# ---------------------------------------------------------------------------
# Provider payloads
# ---------------------------------------------------------------------------


class RawResult(BaseModel):
    """One server record as returned by a provider."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = Field(default=None)
    title: str = Field(default="")
    description: str = Field(default="")
    source_url: str = Field(
        default="",
        validation_alias=AliasChoices("source_url", "sourceUrl", "github_url"),
        description="Canonical locator (repository or homepage); may be empty",
    )
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    similarity: float = Field(default=0.0, description="Provider-assigned relevance in [0, 1]")
    installations: dict[str, Any] = Field(default_factory=dict)
    fallback: bool = Field(default=False, description="True for offline corpus records")

    @field_validator("categories", "tags", mode="before")
    @classmethod
    def _validate_labels(cls, value: Any) -> list[str]:
        return normalize_labels(value)

    @field_validator("title", "description", "source_url", mode="before")
    @classmethod
    def _validate_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("similarity", mode="before")
    @classmethod
    def _validate_similarity(cls, value: Any) -> float:
        if value is None or value == "":
            return 0.0
        return float(value)

    def dedup_key(self) -> str:
        """Identity used to collapse the same server across providers."""
        return self.source_url if self.source_url else f"title:{self.title}"


class ProviderBatch(BaseModel):
    """Everything one provider returned for one query."""

    provider_name: str
    results: list[RawResult] = Field(default_factory=list)
    error: str | None = Field(default=None, description="Failure reason when the provider failed")
    elapsed_ms: float = Field(default=0.0)

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Merge / rerank
# ---------------------------------------------------------------------------


class MergedResult(RawResult):
    """A deduplicated result carrying its provider priority and working score."""

    provider_name: str = Field(default="")
    provider_priority: int = Field(default=0)
    score: float | None = Field(default=None)

    @property
    def effective_score(self) -> float:
        """``score`` when set, otherwise ``similarity``."""
        return self.score if self.score is not None else self.similarity


class RerankOptions(BaseModel):
    """Controls for the rerank pipeline."""

    model_config = ConfigDict(populate_by_name=True)

    min_score: float | None = Field(
        default=None, validation_alias=AliasChoices("min_score", "minScore")
    )
    min_similarity: float | None = Field(
        default=None,
        validation_alias=AliasChoices("min_similarity", "minSimilarity"),
        description="Legacy alias for min_score; also applied at merge time",
    )
    limit: int | None = Field(default=None)
    sort_by: str = Field(default="score", validation_alias=AliasChoices("sort_by", "sortBy"))
    sort_order: SortOrder = Field(
        default=SortOrder.DESC, validation_alias=AliasChoices("sort_order", "sortOrder")
    )

    @property
    def threshold(self) -> float | None:
        return self.min_score if self.min_score is not None else self.min_similarity

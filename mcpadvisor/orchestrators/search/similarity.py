"""In-memory vector store with cosine and hybrid (vector + keyword) scoring.

Stored vectors are unit-normalized on insert. Vectors of different lengths
are compared over their shared prefix instead of raising.
"""

import logging
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np

from mcpadvisor.contracts.server_search_v1 import RawResult
from mcpadvisor.core.embeddings import tokenize
from mcpadvisor.core.errors import ReadOnlyEngineError

logger = logging.getLogger(__name__)

VECTOR_WEIGHT = 0.7
TEXT_WEIGHT = 0.3

# Per-keyword field weights for the text overlap score
TEXT_FIELD_WEIGHTS: dict[str, float] = {
    "title": 0.5,
    "description": 0.3,
    "category": 0.2,
    "tag": 0.2,
}

DEFAULT_MIN_SIMILARITY = 0.5


def normalize_vector(vector: Sequence[float] | np.ndarray) -> np.ndarray:
    """Return a unit-length float copy of ``vector``; zero vectors come back unchanged."""
    arr = np.array(vector, dtype=np.float64, copy=True).reshape(-1)
    norm = float(np.linalg.norm(arr))
    if norm == 0.0:
        return arr
    return arr / norm


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine similarity over the shared prefix of ``a`` and ``b``. 0.0 if either is zero."""
    va = np.asarray(a, dtype=np.float64).reshape(-1)
    vb = np.asarray(b, dtype=np.float64).reshape(-1)
    length = min(va.size, vb.size)
    if length == 0:
        return 0.0
    va = va[:length]
    vb = vb[:length]
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def text_overlap_score(
    keywords: Sequence[str],
    title: str,
    description: str,
    categories: Sequence[str],
    tags: Sequence[str],
) -> float:
    """Weighted keyword overlap in [0, 1], averaged over ``keywords``."""
    if not keywords:
        return 0.0
    title_l = (title or "").lower()
    desc_l = (description or "").lower()
    cats_l = [c.lower() for c in categories]
    tags_l = [t.lower() for t in tags]
    total = 0.0
    for kw in keywords:
        s = 0.0
        if kw in title_l:
            s += TEXT_FIELD_WEIGHTS["title"]
        if kw in desc_l:
            s += TEXT_FIELD_WEIGHTS["description"]
        if any(kw in c for c in cats_l):
            s += TEXT_FIELD_WEIGHTS["category"]
        if any(kw in t for t in tags_l):
            s += TEXT_FIELD_WEIGHTS["tag"]
        total += min(s, 1.0)
    return total / len(keywords)


def _matches_any(values: Sequence[str], wanted: Sequence[str]) -> bool:
    lowered = [v.lower() for v in values]
    return any(w.lower() in v for w in wanted for v in lowered)


@dataclass(frozen=True)
class VectorEntry:
    id: str
    vector: np.ndarray
    payload: RawResult


class InMemoryVectorEngine:
    """Vector store kept in process memory.

    ``writable=False`` builds a read-only engine: entries passed to the
    constructor are indexed, later ``add_entry``/``clear`` calls raise.
    """

    def __init__(
        self,
        entries: Iterable[VectorEntry] = (),
        *,
        writable: bool = True,
    ) -> None:
        self._entries: dict[str, VectorEntry] = {}
        self._lock = threading.Lock()
        self.writable = writable
        for entry in entries:
            self._put(entry.id, entry.vector, entry.payload)

    def __len__(self) -> int:
        return len(self._entries)

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def _put(self, entry_id: str, vector: Sequence[float] | np.ndarray, payload: RawResult) -> None:
        entry = VectorEntry(id=entry_id, vector=normalize_vector(vector), payload=payload)
        with self._lock:
            self._entries[entry_id] = entry

    def _check_writable(self, operation: str) -> None:
        if not self.writable:
            raise ReadOnlyEngineError("vector engine is read-only", operation=operation)

    def add_entry(self, entry_id: str, vector: Sequence[float] | np.ndarray, payload: RawResult) -> None:
        """Store a normalized copy of ``vector``; an existing ``entry_id`` is replaced."""
        self._check_writable("add_entry")
        self._put(entry_id, vector, payload)
        logger.debug("Added vector entry %s (%s)", entry_id, payload.title)

    def clear(self) -> None:
        self._check_writable("clear")
        with self._lock:
            self._entries = {}
        logger.debug("Cleared in-memory vector entries")

    def search(
        self,
        query_vector: Sequence[float] | np.ndarray,
        limit: int = 10,
        *,
        min_similarity: float | None = DEFAULT_MIN_SIMILARITY,
        categories: Sequence[str] | None = None,
        tags: Sequence[str] | None = None,
        text_query: str | None = None,
    ) -> list[RawResult]:
        """Score every candidate against ``query_vector`` and return the best ``limit``.

        Candidates are first narrowed by ``categories``/``tags`` (case-insensitive
        substring, any-of). With ``text_query`` the score becomes
        ``0.7 * cosine + 0.3 * keyword overlap``. Results below
        ``min_similarity`` are dropped; the returned records carry the final
        score in ``similarity``.
        """
        with self._lock:
            candidates = list(self._entries.values())
        if not candidates:
            return []

        if categories:
            candidates = [e for e in candidates if _matches_any(e.payload.categories, categories)]
        if tags:
            candidates = [e for e in candidates if _matches_any(e.payload.tags, tags)]

        query = normalize_vector(query_vector)
        keywords = tokenize(text_query) if text_query else []

        scored: list[tuple[float, VectorEntry]] = []
        for entry in candidates:
            similarity = cosine_similarity(query, entry.vector)
            if text_query:
                p = entry.payload
                text_score = text_overlap_score(keywords, p.title, p.description, p.categories, p.tags)
                similarity = VECTOR_WEIGHT * similarity + TEXT_WEIGHT * text_score
            if min_similarity is not None and similarity < min_similarity:
                continue
            scored.append((similarity, entry))

        scored.sort(key=lambda x: -x[0])
        if limit and limit > 0:
            scored = scored[:limit]

        results = [
            entry.payload.model_copy(
                update={"similarity": score, "id": entry.payload.id or entry.id}
            )
            for score, entry in scored
        ]
        logger.debug(
            "Vector search: %s candidates -> %s results (min_similarity=%s)",
            len(candidates),
            len(results),
            min_similarity,
        )
        return results

"""
Vector Store Interface - Capability protocol shared by both backends

Backends differ only in performance and consistency characteristics; from
the caller's view they behave identically:
- store / store_many: upsert by chunk id, all-or-nothing per call
- search_similar: at most k results, most similar first, k <= 0 means 5
- delete_source: remove every chunk of a resource
- close: flush/checkpoint, then release resources
"""

from typing import List, Protocol, Sequence, runtime_checkable

from greyseal.errors import DimensionMismatchError
from greyseal.models import Chunk, SearchResult

DEFAULT_SEARCH_LIMIT = 5


@runtime_checkable
class VectorStore(Protocol):
    """Protocol for vector store backends."""

    dimensions: int

    def store(self, chunk: Chunk) -> None:
        """Upsert one chunk atomically."""
        ...

    def store_many(self, chunks: Sequence[Chunk]) -> None:
        """Upsert several chunks in one commit."""
        ...

    def search_similar(self, query_vector: Sequence[float], k: int = DEFAULT_SEARCH_LIMIT) -> List[SearchResult]:
        """Return up to k chunks ranked by similarity (descending)."""
        ...

    def delete_source(self, source_id: str) -> int:
        """Delete all chunks belonging to a resource; returns rows removed."""
        ...

    def count(self) -> int:
        """Number of stored chunks."""
        ...

    def close(self) -> None:
        """Flush pending state and release resources."""
        ...


def normalize_limit(k: int) -> int:
    return k if k and k > 0 else DEFAULT_SEARCH_LIMIT


def check_dimensions(vector: Sequence[float], dimensions: int) -> None:
    if len(vector) != dimensions:
        raise DimensionMismatchError(dimensions, len(vector))

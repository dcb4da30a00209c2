"""
Domain Models - Resources, questions, answers and embedded chunks

Chunks are immutable once created by the ingestion pipeline. Answers carry
the deduplicated set of resource ids whose chunks grounded the response.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SourceKind(Enum):
    """Kind of content a resource points at"""
    UNSPECIFIED = "unspecified"
    WEBSITE = "website"
    PDF = "pdf"
    FILE = "file"

    @classmethod
    def parse(cls, value) -> "SourceKind":
        """Accept an enum member, its value or its name (case-insensitive)"""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.UNSPECIFIED
        text = str(value).strip().lower()
        if text.startswith("source_"):
            text = text[len("source_"):]
        for kind in cls:
            if kind.value == text:
                return kind
        raise ValueError(f"Unknown source kind: {value!r}")


@dataclass
class Resource:
    """A unit of ingestible content (website, PDF, local file)"""
    id: str
    service: str = ""
    entity: str = ""
    source_kind: SourceKind = SourceKind.UNSPECIFIED
    locator: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Question:
    """A natural-language question plus the role the answer should take"""
    id: str
    content: str
    role_description: str = ""


@dataclass
class Answer:
    """Generated answer with the resource ids it drew from"""
    id: str
    question_id: str
    message: str
    references: Tuple[str, ...] = ()
    degraded: bool = False


@dataclass(frozen=True)
class Chunk:
    """Immutable unit of searchable text with its embedding"""
    id: str
    source_id: str
    sequence_index: int
    content: str
    vector: Tuple[float, ...]
    created_at: datetime = field(default_factory=utcnow)

    @staticmethod
    def make_id(source_id: str, sequence_index: int) -> str:
        return f"{source_id}:{sequence_index}"

    @classmethod
    def create(
        cls,
        source_id: str,
        sequence_index: int,
        content: str,
        vector: Iterable[float],
        created_at: Optional[datetime] = None
    ) -> "Chunk":
        return cls(
            id=cls.make_id(source_id, sequence_index),
            source_id=source_id,
            sequence_index=sequence_index,
            content=content,
            vector=tuple(float(v) for v in vector),
            created_at=created_at or utcnow(),
        )


@dataclass
class SearchResult:
    """A chunk returned by similarity search; higher score = more similar"""
    chunk: Chunk
    score: float


@dataclass
class EmbeddingResult:
    """Embedding vector plus whether it came from the degraded fallback path"""
    vector: List[float]
    degraded: bool = False


def collect_references(results: Iterable[SearchResult]) -> Tuple[str, ...]:
    """Deduplicate source ids across retrieved chunks.

    Built from a set; sorted so the output order is canonical.
    """
    references = {result.chunk.source_id for result in results}
    return tuple(sorted(references))

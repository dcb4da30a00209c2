"""
pgvector Vector Store - Transactional backend on PostgreSQL

Every search computes the exact cosine distance (`embedding <=> :query`)
over all rows inside PostgreSQL; no ANN index is used, so results are exact
even right after writes. Concurrency control is PostgreSQL's own.

Table layout (created on open):

    resource_embeddings(
        id TEXT PRIMARY KEY,
        resource_uuid TEXT NOT NULL,
        chunk_index INT NOT NULL,
        content TEXT NOT NULL,
        embedding VECTOR(<dimensions>) NOT NULL,
        created_at TIMESTAMPTZ NOT NULL
    )
"""

import logging
from typing import Dict, List, Optional, Sequence

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    func,
    select,
    text,
)
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from greyseal.errors import StorageError
from greyseal.models import Chunk, SearchResult
from greyseal.storage.interface import check_dimensions, normalize_limit

logger = logging.getLogger(__name__)


class PgVectorStore:
    """Exact cosine-distance search over a pgvector column"""

    def __init__(
        self,
        url: str,
        dimensions: int,
        table_name: str = "resource_embeddings",
        engine: Optional[Engine] = None
    ):
        """
        Connect and ensure the pgvector extension and table exist

        Args:
            url: SQLAlchemy URL (postgresql+psycopg://...)
            dimensions: Vector length; must match the embedder
            table_name: Table holding the chunks
            engine: Shared engine (optional)
        """
        self.dimensions = dimensions
        self.table_name = table_name
        self.engine = engine or create_engine(url, pool_pre_ping=True)
        self.metadata = MetaData()
        self.table = Table(
            table_name,
            self.metadata,
            Column("id", String, primary_key=True),
            Column("resource_uuid", String, nullable=False, index=True),
            Column("chunk_index", Integer, nullable=False),
            Column("content", Text, nullable=False),
            Column("embedding", Vector(dimensions), nullable=False),
            Column("created_at", DateTime(timezone=True), nullable=False),
        )

        try:
            with self.engine.begin() as conn:
                conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            self.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to initialise pgvector store: {e}") from e

        logger.info(f"pgvector store ready (table={table_name}, dimensions={dimensions})")

    def _to_record(self, chunk: Chunk) -> Dict:
        check_dimensions(chunk.vector, self.dimensions)
        return {
            "id": chunk.id,
            "resource_uuid": chunk.source_id,
            "chunk_index": chunk.sequence_index,
            "content": chunk.content,
            "embedding": list(chunk.vector),
            "created_at": chunk.created_at,
        }

    @staticmethod
    def _to_chunk(row) -> Chunk:
        return Chunk(
            id=row.id,
            source_id=row.resource_uuid,
            sequence_index=row.chunk_index,
            content=row.content,
            vector=tuple(float(v) for v in row.embedding),
            created_at=row.created_at,
        )

    def store(self, chunk: Chunk) -> None:
        self.store_many([chunk])

    def store_many(self, chunks: Sequence[Chunk]) -> None:
        """Upsert chunks inside one transaction (INSERT ... ON CONFLICT DO UPDATE)"""
        if not chunks:
            return
        records = [self._to_record(c) for c in chunks]
        stmt = pg_insert(self.table).values(records)
        stmt = stmt.on_conflict_do_update(
            index_elements=[self.table.c.id],
            set_={
                "resource_uuid": stmt.excluded.resource_uuid,
                "chunk_index": stmt.excluded.chunk_index,
                "content": stmt.excluded.content,
                "embedding": stmt.excluded.embedding,
                "created_at": stmt.excluded.created_at,
            },
        )
        try:
            with self.engine.begin() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to store {len(records)} chunks: {e}") from e
        logger.debug(f"Upserted {len(records)} chunks into '{self.table_name}'")

    def search_similar(self, query_vector: Sequence[float], k: int = 5) -> List[SearchResult]:
        check_dimensions(query_vector, self.dimensions)
        limit = normalize_limit(k)
        distance = self.table.c.embedding.cosine_distance(list(query_vector)).label("distance")
        query = select(self.table, distance).order_by(distance, self.table.c.id).limit(limit)

        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Vector search failed: {e}") from e

        return [SearchResult(chunk=self._to_chunk(row), score=1.0 - float(row.distance)) for row in rows]

    def get_chunks(self, source_id: str) -> List[Chunk]:
        query = (
            select(self.table)
            .where(self.table.c.resource_uuid == source_id)
            .order_by(self.table.c.chunk_index)
        )
        try:
            with self.engine.connect() as conn:
                return [self._to_chunk(row) for row in conn.execute(query)]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read chunks for {source_id}: {e}") from e

    def delete_source(self, source_id: str) -> int:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(delete(self.table).where(self.table.c.resource_uuid == source_id))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete chunks for {source_id}: {e}") from e
        logger.info(f"Deleted {result.rowcount} chunks for resource {source_id}")
        return result.rowcount

    def count(self) -> int:
        try:
            with self.engine.connect() as conn:
                return conn.execute(select(func.count()).select_from(self.table)).scalar_one()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to count chunks: {e}") from e

    def get_stats(self) -> Dict:
        return {
            'backend': 'transactional',
            'table': self.table_name,
            'dimensions': self.dimensions,
            'total_chunks': self.count(),
        }

    def close(self) -> None:
        """Commits are durable on return; release pooled connections"""
        self.engine.dispose()
        logger.info("Closed pgvector store")

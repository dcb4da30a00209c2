"""
LanceDB Vector Store - Embedded analytical backend

Stores resource chunks in a local LanceDB table for read-heavy, bulk
workloads:
- Upserts go through merge_insert on the chunk id (one atomic commit)
- Search uses cosine distance; score = 1 - distance
- Optional graph-based ANN index (IVF_HNSW_SQ), persisted with the dataset

Index durability is explicit configuration (`persist_index`): when false,
no ANN index is written and every search is an exact flat scan.

The store is single-writer: writes are serialised by a lock, reads are not.
"""

import logging
import math
import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import lancedb
import pyarrow as pa
from lancedb.index import HnswSq

from greyseal.errors import StorageError
from greyseal.models import Chunk, SearchResult
from greyseal.security import sanitize_sql_value
from greyseal.storage.interface import check_dimensions, normalize_limit

logger = logging.getLogger(__name__)

ANN_INDEX_TYPE = "IVF_HNSW_SQ"


class LanceDBVectorStore:
    """Manage resource chunks in a LanceDB table"""

    def __init__(
        self,
        db_path: str,
        dimensions: int,
        persist_index: bool,
        table_name: str = "resource_chunks",
        index_min_rows: int = 256
    ):
        """
        Open (or create) the chunk table

        Args:
            db_path: Directory of the LanceDB database
            dimensions: Vector length; must match the embedder
            persist_index: Build and persist the ANN index (explicit, no default)
            table_name: Table holding the chunks
            index_min_rows: Row count at which the ANN index is first built
        """
        self.db_path = Path(db_path).expanduser()
        self.dimensions = dimensions
        self.persist_index = persist_index
        self.table_name = table_name
        self.index_min_rows = index_min_rows
        self._write_lock = threading.Lock()
        self._index_built = False

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self.db = lancedb.connect(str(self.db_path))
            # Opens the table when it already exists, whatever the table count
            self.table = self.db.create_table(self.table_name, schema=self._create_schema(), exist_ok=True)
            self._verify_schema()
            self._index_built = self._has_vector_index()
            logger.info(f"Opened table '{self.table_name}' at {self.db_path} ({self.table.count_rows()} chunks)")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to open LanceDB at {self.db_path}: {e}") from e

        logger.info(
            f"LanceDB vector store ready (dimensions={dimensions}, "
            f"persist_index={persist_index}, index_type={ANN_INDEX_TYPE if persist_index else 'flat'})"
        )

    def _create_schema(self) -> pa.Schema:
        return pa.schema([
            pa.field("id", pa.string()),
            pa.field("source_id", pa.string()),
            pa.field("sequence_index", pa.int32()),
            pa.field("content", pa.string()),
            pa.field("vector", pa.list_(pa.float32(), self.dimensions)),
            pa.field("created_at", pa.timestamp("us", tz="UTC")),
        ])

    def _verify_schema(self) -> None:
        vector_type = self.table.schema.field("vector").type
        existing = getattr(vector_type, "list_size", None)
        if existing != self.dimensions:
            raise StorageError(
                f"Table '{self.table_name}' stores {existing}-dim vectors but {self.dimensions} are configured; "
                f"re-ingest into a fresh table after changing embedding models"
            )

    def _has_vector_index(self) -> bool:
        try:
            return any("vector" in list(idx.columns) for idx in self.table.list_indices())
        except Exception as e:
            logger.debug(f"Could not list indices: {e}")
            return False

    def _to_record(self, chunk: Chunk) -> Dict:
        check_dimensions(chunk.vector, self.dimensions)
        return {
            "id": chunk.id,
            "source_id": chunk.source_id,
            "sequence_index": chunk.sequence_index,
            "content": chunk.content,
            "vector": list(chunk.vector),
            "created_at": chunk.created_at,
        }

    @staticmethod
    def _to_chunk(row: Dict) -> Chunk:
        return Chunk(
            id=row["id"],
            source_id=row["source_id"],
            sequence_index=int(row["sequence_index"]),
            content=row["content"],
            vector=tuple(float(v) for v in row["vector"]),
            created_at=row["created_at"],
        )

    def store(self, chunk: Chunk) -> None:
        self.store_many([chunk])

    def store_many(self, chunks: Sequence[Chunk]) -> None:
        """
        Upsert chunks in a single merge_insert commit

        Every vector is validated before anything is written, so a bad
        vector never leaves a partial write behind.
        """
        if not chunks:
            return
        records = [self._to_record(c) for c in chunks]
        data = pa.Table.from_pylist(records, schema=self._create_schema())

        with self._write_lock:
            try:
                (
                    self.table.merge_insert("id")
                    .when_matched_update_all()
                    .when_not_matched_insert_all()
                    .execute(data)
                )
            except Exception as e:
                raise StorageError(f"Failed to store {len(records)} chunks: {e}") from e
            logger.debug(f"Upserted {len(records)} chunks into '{self.table_name}'")
            self._maybe_build_index()

    def _maybe_build_index(self) -> None:
        if not self.persist_index or self._index_built:
            return
        rows = self.table.count_rows()
        if rows < self.index_min_rows:
            return
        num_partitions = max(1, int(math.sqrt(rows)))
        try:
            self.table.create_index(
                "vector",
                config=HnswSq(distance_type="cosine", num_partitions=num_partitions),
                replace=True,
            )
            self._index_built = True
            logger.info(f"Built {ANN_INDEX_TYPE} index over {rows} chunks ({num_partitions} partitions)")
        except Exception as e:
            # Searches stay correct (flat scan) without the index
            logger.warning(f"ANN index build failed, continuing with flat search: {e}")

    def search_similar(self, query_vector: Sequence[float], k: int = 5) -> List[SearchResult]:
        """
        Search chunks by cosine similarity

        Args:
            query_vector: Query embedding
            k: Maximum results (k <= 0 means 5)

        Returns:
            SearchResult list, most similar first

        Raises:
            StorageError: If the query fails
        """
        check_dimensions(query_vector, self.dimensions)
        limit = normalize_limit(k)

        try:
            rows = (
                self.table
                .search(list(query_vector), vector_column_name="vector")
                .distance_type("cosine")
                .limit(limit)
                .to_list()
            )
        except Exception as e:
            raise StorageError(f"Vector search failed: {e}") from e

        results = [SearchResult(chunk=self._to_chunk(row), score=1.0 - float(row["_distance"])) for row in rows]
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    def get_chunks(self, source_id: str) -> List[Chunk]:
        """All chunks of a resource in sequence order"""
        predicate = f"source_id = '{sanitize_sql_value(source_id)}'"
        try:
            total = self.table.count_rows(predicate)
            if not total:
                return []
            rows = self.table.search().where(predicate).limit(total).to_list()
        except Exception as e:
            raise StorageError(f"Failed to read chunks for {source_id}: {e}") from e
        return sorted((self._to_chunk(r) for r in rows), key=lambda c: c.sequence_index)

    def delete_source(self, source_id: str) -> int:
        """
        Delete all chunks from a specific resource

        Args:
            source_id: Resource id

        Returns:
            Number of chunks deleted
        """
        safe_id = sanitize_sql_value(source_id)
        predicate = f"source_id = '{safe_id}'"
        with self._write_lock:
            try:
                count = self.table.count_rows(predicate)
                if count:
                    self.table.delete(predicate)
            except Exception as e:
                raise StorageError(f"Failed to delete chunks for {source_id}: {e}") from e
        logger.info(f"Deleted {count} chunks for resource {source_id}")
        return count

    def count(self) -> int:
        try:
            return self.table.count_rows()
        except Exception as e:
            raise StorageError(f"Failed to count chunks: {e}") from e

    def get_stats(self) -> Dict:
        return {
            'backend': 'analytical',
            'db_path': str(self.db_path),
            'table': self.table_name,
            'dimensions': self.dimensions,
            'persist_index': self.persist_index,
            'index_built': self._index_built,
            'total_chunks': self.count(),
        }

    def close(self) -> None:
        """Compact and checkpoint the table, then drop the handles"""
        if self.table is None:
            return
        with self._write_lock:
            try:
                self.table.optimize()
            except Exception as e:
                raise StorageError(f"Failed to checkpoint LanceDB table: {e}") from e
            finally:
                self.table = None
                self.db = None
        logger.info(f"Closed LanceDB vector store at {self.db_path}")

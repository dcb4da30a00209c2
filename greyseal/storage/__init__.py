"""
Grey Seal Storage Module

Vector store backends selected by configuration:
- analytical: embedded LanceDB table with optional persisted ANN index
- transactional: PostgreSQL + pgvector with exact distance search
"""

import logging

from greyseal.config import VectorStoreConfig
from greyseal.errors import ValidationError
from greyseal.storage.interface import VectorStore, DEFAULT_SEARCH_LIMIT

logger = logging.getLogger(__name__)


def create_vector_store(config: VectorStoreConfig, dimensions: int) -> VectorStore:
    """
    Create the configured vector store backend

    Args:
        config: vector_store config section
        dimensions: Embedding dimensionality shared with the embedder

    Returns:
        An open VectorStore
    """
    if config.backend == "analytical":
        from greyseal.storage.analytical import LanceDBVectorStore

        if config.analytical.persist_index is None:
            raise ValidationError("vector_store.analytical.persist_index must be set explicitly")
        return LanceDBVectorStore(
            db_path=config.analytical.path,
            dimensions=dimensions,
            persist_index=config.analytical.persist_index,
            table_name=config.analytical.table,
            index_min_rows=config.analytical.index_min_rows,
        )

    if config.backend == "transactional":
        from greyseal.storage.transactional import PgVectorStore

        return PgVectorStore(
            url=config.transactional.url,
            dimensions=dimensions,
            table_name=config.transactional.table,
        )

    raise ValidationError(f"Unknown vector store backend: {config.backend!r}")


__all__ = [
    "VectorStore",
    "DEFAULT_SEARCH_LIMIT",
    "create_vector_store",
]

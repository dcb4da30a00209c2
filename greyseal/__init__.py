"""
Grey Seal - Retrieval-Augmented Question Answering over Ingested Resources

A RAG service that:
- Ingests websites, PDFs and local files into vector embeddings (Ollama)
- Stores chunks in PostgreSQL + pgvector or an embedded LanceDB table
- Answers questions from the most similar chunks with a local chat model
- Tracks which resources every answer drew from
- Runs synchronously or behind a message bus (in-memory or Redis Streams)

Version: 1.0.0
"""

__version__ = "1.0.0"

from greyseal.app import GreySealApp
from greyseal.config import GreySealConfig, load_config

__all__ = [
    "GreySealApp",
    "GreySealConfig",
    "load_config",
]

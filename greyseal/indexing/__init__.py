"""
Grey Seal Indexing Module

Handles content loading, chunking, embedding and ingestion of resources.
"""

from greyseal.indexing.chunker import TextChunk, WordChunker, chunk_text
from greyseal.indexing.content_loader import ContentLoader, FileLoader, WebsiteLoader, html_to_text
from greyseal.indexing.embedder import Embedder, fallback_embedding
from greyseal.indexing.ingestion import IngestionPipeline, IngestionReport

__all__ = [
    "TextChunk",
    "WordChunker",
    "chunk_text",
    "ContentLoader",
    "FileLoader",
    "WebsiteLoader",
    "html_to_text",
    "Embedder",
    "fallback_embedding",
    "IngestionPipeline",
    "IngestionReport",
]

"""
Ingestion Pipeline - Turn a resource into stored, searchable chunks

Orchestrates the write path for a single resource:
1. Validate the resource (locator required for website/pdf/file kinds)
2. Load raw text through the loader registered for its source kind
3. Chunk the text on word boundaries
4. Embed every chunk (degraded fallback vectors allowed unless disabled)
5. Stage the chunks and commit them with one store_many call

Steps 3-5 are one unit: if anything fails after a write may have started,
the resource's chunks are deleted again before the error is re-raised.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from greyseal.cancellation import CancellationContext, ensure_context
from greyseal.errors import TransientBackendError, ValidationError
from greyseal.indexing.chunker import WordChunker
from greyseal.indexing.content_loader import ContentLoader
from greyseal.indexing.embedder import Embedder
from greyseal.models import Chunk, Resource, SourceKind
from greyseal.notifications import IngestionStage, NotifierInterface, NullNotifier, ProgressEvent
from greyseal.storage.interface import VectorStore

logger = logging.getLogger(__name__)

LOCATOR_REQUIRED = {SourceKind.WEBSITE, SourceKind.PDF, SourceKind.FILE}


@dataclass
class IngestionReport:
    """Outcome of ingesting one resource"""
    resource_id: str
    chunks_stored: int = 0
    degraded_chunks: int = 0
    skipped: bool = False


class IngestionPipeline:
    """Load, chunk, embed and store a resource's content"""

    def __init__(
        self,
        embedder: Embedder,
        vector_store: VectorStore,
        chunker: WordChunker,
        loaders: Dict[SourceKind, ContentLoader],
        store_degraded: bool = True,
        notifier: Optional[NotifierInterface] = None
    ):
        """
        Args:
            embedder: Embedding gateway
            vector_store: Destination store (shared handle)
            chunker: Word chunker
            loaders: Content loader per source kind
            store_degraded: Accept fallback vectors; when False a degraded
                embedding aborts the resource with TransientBackendError
            notifier: Progress notifier (NullNotifier if None)
        """
        self.embedder = embedder
        self.vector_store = vector_store
        self.chunker = chunker
        self.loaders = dict(loaders)
        self.store_degraded = store_degraded
        self.notifier = notifier or NullNotifier()

    def _validate(self, resource: Resource) -> None:
        if not resource.id:
            raise ValidationError("resource id must be set")
        if resource.source_kind in LOCATOR_REQUIRED and not resource.locator:
            raise ValidationError(
                f"path must be set for {resource.source_kind.value} resource"
            )

    def _notify(self, stage: IngestionStage, message: str, resource_id: str, current: int = 0, total: int = 0) -> None:
        self.notifier.notify(ProgressEvent(
            stage=stage,
            message=message,
            current=current,
            total=total,
            resource_id=resource_id,
        ))

    def _load(self, resource: Resource, ctx: CancellationContext) -> str:
        loader = self.loaders.get(resource.source_kind)
        if loader is None:
            logger.info(
                f"No loader for source kind {resource.source_kind.value}; "
                f"resource {resource.id} has no content"
            )
            return ""
        ctx.check("loading")
        self._notify(IngestionStage.LOADING, f"Loading {resource.locator}", resource.id)
        return loader.load(resource.locator, ctx=ctx)

    def ingest_resource(self, resource: Resource, ctx: Optional[CancellationContext] = None) -> IngestionReport:
        """
        Ingest one resource into the vector store

        Args:
            resource: Resource already recorded in the repository
            ctx: Cancellation/deadline context

        Returns:
            IngestionReport (skipped=True when there was no content)

        Raises:
            ValidationError: Resource is missing its locator
            TransientBackendError: Loader failed, or degraded vectors are not allowed
            StorageError: The vector store rejected the write
        """
        self._validate(resource)
        ctx = ensure_context(ctx)
        self.notifier.start(resource.id, resource.locator or "")

        try:
            content = self._load(resource, ctx)
        except Exception as e:
            self._fail(resource, e)
            raise

        if not content or not content.strip():
            logger.info(f"Resource {resource.id} produced no content, nothing to ingest")
            self.notifier.finish(success=True, message="No content to ingest")
            return IngestionReport(resource_id=resource.id, skipped=True)

        write_started = False
        try:
            ctx.check("chunking")
            text_chunks = self.chunker.chunk(content)
            self._notify(
                IngestionStage.CHUNKING,
                f"Split into {len(text_chunks)} chunks",
                resource.id,
                current=len(text_chunks),
                total=len(text_chunks),
            )

            embeddings = self.embedder.embed_many(
                [tc.text for tc in text_chunks],
                ctx=ctx,
                notifier=self.notifier,
            )
            degraded = sum(1 for e in embeddings if e.degraded)
            if degraded and not self.store_degraded:
                raise TransientBackendError(
                    f"{degraded}/{len(embeddings)} embeddings for resource {resource.id} "
                    f"came from the fallback path and storing degraded vectors is disabled"
                )

            staged: List[Chunk] = [
                Chunk.create(resource.id, tc.sequence_index, tc.text, emb.vector)
                for tc, emb in zip(text_chunks, embeddings)
            ]

            ctx.check("storing")
            self._notify(IngestionStage.STORING, f"Storing {len(staged)} chunks", resource.id, total=len(staged))
            write_started = True
            self.vector_store.store_many(staged)
        except Exception as e:
            if write_started:
                self._compensate(resource.id)
            self._fail(resource, e)
            raise

        report = IngestionReport(
            resource_id=resource.id,
            chunks_stored=len(staged),
            degraded_chunks=degraded,
        )
        self._notify(
            IngestionStage.COMPLETE,
            f"Stored {report.chunks_stored} chunks",
            resource.id,
            current=report.chunks_stored,
            total=report.chunks_stored,
        )
        self.notifier.finish(success=True, message=f"Stored {report.chunks_stored} chunks")
        logger.info(
            f"Ingested resource {resource.id}: {report.chunks_stored} chunks "
            f"({report.degraded_chunks} degraded)"
        )
        return report

    def _compensate(self, resource_id: str) -> None:
        try:
            removed = self.vector_store.delete_source(resource_id)
            logger.warning(f"Rolled back {removed} chunks for resource {resource_id}")
        except Exception as e:
            # The original error is re-raised by the caller
            logger.error(f"Compensating delete failed for resource {resource_id}: {e}")

    def _fail(self, resource: Resource, error: Exception) -> None:
        logger.error(f"Ingestion failed for resource {resource.id}: {error}")
        self.notifier.notify(ProgressEvent(
            stage=IngestionStage.ERROR,
            message="Ingestion failed",
            resource_id=resource.id,
            error=str(error),
        ))
        self.notifier.finish(success=False, message=str(error))

"""
Application Wiring - Build the full Grey Seal object graph from configuration

    config = load_config()
    app = GreySealApp.from_config(config)
    try:
        app.resources.create(resource)
        answer = app.questions.ask(question)
    finally:
        app.close()

The vector store handle is shared by ingestion, answering and the delete
cascade.
"""

import logging
from typing import List, Optional

from greyseal.config import GreySealConfig
from greyseal.generation import OllamaGenerator
from greyseal.indexing.chunker import WordChunker
from greyseal.indexing.content_loader import FileLoader, WebsiteLoader
from greyseal.indexing.embedder import Embedder
from greyseal.indexing.ingestion import IngestionPipeline
from greyseal.messaging.bus import InMemoryMessageBus, MessageBus, RedisStreamBus
from greyseal.messaging.consumer import ConsumerWorker, QuestionConsumer, ResourceConsumer
from greyseal.models import SourceKind
from greyseal.notifications import NotifierInterface, create_notifier_from_config
from greyseal.repository import QuestionRepository, ResourceRepository, create_db_engine
from greyseal.retrieval.answer import AnswerPipeline
from greyseal.security import resolve_allowed_base_paths
from greyseal.services import QuestionService, ResourceService
from greyseal.storage import VectorStore, create_vector_store

logger = logging.getLogger(__name__)


def create_bus(config: GreySealConfig) -> MessageBus:
    if config.bus.backend == "redis":
        return RedisStreamBus(url=config.bus.url, block_ms=config.bus.block_ms)
    return InMemoryMessageBus()


class GreySealApp:
    """Owns every long-lived component and closes them in order"""

    def __init__(
        self,
        config: GreySealConfig,
        embedder: Embedder,
        vector_store: VectorStore,
        generator: OllamaGenerator,
        engine,
        notifier: NotifierInterface,
        bus: Optional[MessageBus] = None
    ):
        self.config = config
        self.embedder = embedder
        self.vector_store = vector_store
        self.generator = generator
        self.engine = engine
        self.notifier = notifier
        self._bus = bus

        allowed = resolve_allowed_base_paths(config.security.allowed_base_paths)
        file_loader = FileLoader(allowed_base_paths=allowed)
        self.ingestion = IngestionPipeline(
            embedder=embedder,
            vector_store=vector_store,
            chunker=WordChunker(config.chunking.max_size, config.chunking.overlap),
            loaders={
                SourceKind.WEBSITE: WebsiteLoader(),
                SourceKind.PDF: file_loader,
                SourceKind.FILE: file_loader,
            },
            store_degraded=config.ingestion.store_degraded,
            notifier=notifier,
        )
        self.answering = AnswerPipeline(
            embedder=embedder,
            vector_store=vector_store,
            generator=generator,
            top_k=config.answer.top_k,
            fallback_summary=config.answer.fallback_summary,
        )
        self.resources = ResourceService(ResourceRepository(engine), self.ingestion, vector_store)
        self.questions = QuestionService(QuestionRepository(engine), self.answering)

    @classmethod
    def from_config(
        cls,
        config: GreySealConfig,
        notifier: Optional[NotifierInterface] = None,
        bus: Optional[MessageBus] = None
    ) -> "GreySealApp":
        embedder = Embedder(
            model=config.embedding.model,
            dimensions=config.embedding.dimensions,
            host=config.embedding.host,
            timeout=config.embedding.timeout,
            force_fallback=config.embedding.force_fallback,
        )
        vector_store = create_vector_store(config.vector_store, config.dimensions)
        generator = OllamaGenerator(
            model=config.generation.model,
            host=config.generation.host,
            timeout=config.generation.timeout,
            temperature=config.generation.temperature,
        )
        engine = create_db_engine(config.database.url)
        if notifier is None:
            notifier = create_notifier_from_config(config.notifications)
        return cls(config, embedder, vector_store, generator, engine, notifier, bus)

    @property
    def bus(self) -> MessageBus:
        if self._bus is None:
            self._bus = create_bus(self.config)
        return self._bus

    def consumers(self) -> List[ConsumerWorker]:
        """One worker per domain, bound to the configured topics and groups"""
        return [
            ResourceConsumer(
                self.bus,
                self.resources,
                topic=self.config.bus.resource_topic,
                group_id=self.config.bus.resource_group,
            ),
            QuestionConsumer(
                self.bus,
                self.questions,
                topic=self.config.bus.question_topic,
                group_id=self.config.bus.question_group,
            ),
        ]

    def close(self) -> None:
        if self._bus is not None:
            self._bus.close()
        try:
            self.vector_store.close()
        finally:
            self.engine.dispose()
        logger.info("Grey Seal shut down")

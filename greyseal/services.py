"""
Domain Services - Resource and question operations over repository + pipelines

ResourceService.create records the resource, then runs ingestion.
ResourceService.delete cascades to the resource's chunks in the vector store.
QuestionService.ask records the question, answers it, then saves the answer
and its references.
"""

import logging
from typing import List, Optional, Tuple

from greyseal.cancellation import CancellationContext
from greyseal.indexing.ingestion import IngestionPipeline, IngestionReport
from greyseal.models import Answer, Question, Resource
from greyseal.repository import QuestionRepository, ResourceRepository
from greyseal.retrieval.answer import AnswerPipeline
from greyseal.storage.interface import VectorStore

logger = logging.getLogger(__name__)


class ResourceService:
    """Create, read, list and delete resources"""

    def __init__(self, repo: ResourceRepository, pipeline: IngestionPipeline, vector_store: VectorStore):
        self.repo = repo
        self.pipeline = pipeline
        self.vector_store = vector_store

    def create(self, resource: Resource, ctx: Optional[CancellationContext] = None) -> Tuple[Resource, IngestionReport]:
        """Record the resource, then ingest its content

        The resource row stays when ingestion fails; its chunks do not.
        """
        self.repo.create(resource)
        logger.info(f"Created resource {resource.id} ({resource.source_kind.value}: {resource.locator})")
        report = self.pipeline.ingest_resource(resource, ctx=ctx)
        return resource, report

    def get(self, resource_id: str) -> Resource:
        return self.repo.get(resource_id)

    def list(self, cursor: Optional[str] = None, limit: Optional[int] = None) -> List[Resource]:
        return self.repo.list(cursor=cursor, limit=limit)

    def delete(self, resource_id: str) -> int:
        """Delete a resource and every chunk derived from it

        Returns:
            Number of chunks removed from the vector store
        """
        removed = self.vector_store.delete_source(resource_id)
        self.repo.delete(resource_id)
        logger.info(f"Deleted resource {resource_id} and {removed} chunks")
        return removed


class QuestionService:
    """Ask, read and list questions"""

    def __init__(self, repo: QuestionRepository, pipeline: AnswerPipeline):
        self.repo = repo
        self.pipeline = pipeline

    def ask(self, question: Question, ctx: Optional[CancellationContext] = None) -> Answer:
        self.repo.create(question)
        answer = self.pipeline.answer(question, ctx=ctx)
        self.repo.save_answer(question.id, answer.message, answer.references)
        logger.info(f"Answered question {question.id} with {len(answer.references)} references")
        return answer

    def get(self, question_id: str) -> Question:
        return self.repo.get(question_id)

    def list(self, cursor: Optional[str] = None, limit: Optional[int] = None) -> List[Question]:
        return self.repo.list(cursor=cursor, limit=limit)

    def get_answer(self, question_id: str) -> Tuple[str, Tuple[str, ...]]:
        return self.repo.get_answer(question_id)

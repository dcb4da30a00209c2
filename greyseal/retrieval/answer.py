"""
Answer Pipeline - Retrieval-augmented question answering

Workflow:
1. Embed the question content
2. Retrieve the top-k most similar chunks from the vector store
3. Build a role-conditioned prompt listing the retrieved contexts
4. Generate with the chat backend and join the returned segments
5. Attach the deduplicated set of resource ids the contexts came from

Generation failures propagate unless the labelled fallback summary is
enabled, in which case the answer is flagged as degraded.
"""

import logging
import uuid
from typing import List, Optional, Sequence

from greyseal.cancellation import CancellationContext, ensure_context
from greyseal.errors import TransientBackendError
from greyseal.generation import OllamaGenerator
from greyseal.indexing.embedder import Embedder
from greyseal.models import Answer, Question, SearchResult, collect_references
from greyseal.storage.interface import DEFAULT_SEARCH_LIMIT, VectorStore

logger = logging.getLogger(__name__)

FALLBACK_LABEL = "[UNGROUNDED FALLBACK] "
FALLBACK_CONTEXTS = 2


def build_prompt(question: Question, contexts: Sequence[str]) -> str:
    """Role line, question line, then the numbered contexts"""
    prompt = f"You are going to take the role of {question.role_description}.\n"
    prompt += f"Based on the following contexts, please answer this question: {question.content}\n\nContexts:\n"
    for i, context in enumerate(contexts, start=1):
        prompt += f"{i}. {context}\n"
    return prompt


def summarize_fallback(question: Question, results: Sequence[SearchResult]) -> str:
    """Labelled, ungrounded summary of the top retrieved passages"""
    passages = "\n\n".join(r.chunk.content for r in results[:FALLBACK_CONTEXTS])
    return (
        f"{FALLBACK_LABEL}Based on the retrieved context, here are the most relevant "
        f"passages for '{question.content}':\n\n{passages}"
    )


class AnswerPipeline:
    """Embed, retrieve, prompt and generate an answer for a question"""

    def __init__(
        self,
        embedder: Embedder,
        vector_store: VectorStore,
        generator: OllamaGenerator,
        top_k: int = DEFAULT_SEARCH_LIMIT,
        fallback_summary: bool = False
    ):
        """
        Args:
            embedder: Embedding gateway (degraded vectors allowed)
            vector_store: Store to retrieve contexts from
            generator: Generation backend
            top_k: Number of contexts to retrieve
            fallback_summary: On generation failure return a labelled summary
                of the top contexts instead of raising
        """
        self.embedder = embedder
        self.vector_store = vector_store
        self.generator = generator
        self.top_k = top_k
        self.fallback_summary = fallback_summary

    def retrieve(self, question: Question, ctx: Optional[CancellationContext] = None) -> List[SearchResult]:
        ctx = ensure_context(ctx)
        embedding = self.embedder.embed(question.content, ctx=ctx)
        if embedding.degraded:
            logger.warning(f"Question {question.id} embedded with fallback vector; retrieval quality is reduced")
        ctx.check("vector search")
        return self.vector_store.search_similar(embedding.vector, self.top_k)

    def answer(self, question: Question, ctx: Optional[CancellationContext] = None) -> Answer:
        """
        Answer a question from retrieved context

        Args:
            question: Persisted question
            ctx: Cancellation/deadline context

        Returns:
            Answer with its sorted, deduplicated references

        Raises:
            TransientBackendError: Generation failed and fallback_summary is off
            StorageError: Vector search failed
        """
        ctx = ensure_context(ctx)
        results = self.retrieve(question, ctx)
        references = collect_references(results)
        logger.info(f"Retrieved {len(results)} contexts from {len(references)} resources for question {question.id}")

        prompt = build_prompt(question, [r.chunk.content for r in results])

        try:
            segments = self.generator.generate(prompt, ctx=ctx)
        except TransientBackendError as e:
            if not self.fallback_summary:
                raise
            logger.warning(f"Generation failed for question {question.id}, returning fallback summary: {e}")
            return Answer(
                id=str(uuid.uuid4()),
                question_id=question.id,
                message=summarize_fallback(question, results),
                references=references,
                degraded=True,
            )

        message = "".join(f"{segment}\n" for segment in segments)
        return Answer(
            id=str(uuid.uuid4()),
            question_id=question.id,
            message=message,
            references=references,
        )

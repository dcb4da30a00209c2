"""
Embedder - Generate embeddings via Ollama with deterministic fallback

Uses an Ollama embedding model (default all-minilm, 384 dimensions):
- Every call is bounded by the client timeout
- When Ollama is down, times out or errors, the embedder degrades to a
  deterministic hash-derived vector instead of failing; results carry a
  `degraded` flag so callers can tell the two paths apart
- `strict=True` turns degradation off and raises TransientBackendError

A live vector of the wrong length is a configuration error and is never
masked by the fallback.
"""

import logging
from typing import List, Optional, Sequence, TYPE_CHECKING

import numpy as np
import ollama

from greyseal.cancellation import CancellationContext, ensure_context
from greyseal.errors import DimensionMismatchError, TransientBackendError
from greyseal.models import EmbeddingResult

if TYPE_CHECKING:
    from greyseal.notifications import NotifierInterface

logger = logging.getLogger(__name__)

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
UINT32_MASK = 0xFFFFFFFF


def fnv1a_32(text: str) -> int:
    """32-bit FNV-1a over the text's code points"""
    h = FNV_OFFSET_BASIS
    for ch in text:
        h ^= ord(ch)
        h = (h * FNV_PRIME) & UINT32_MASK
    return h


def fallback_embedding(text: str, dimensions: int) -> List[float]:
    """
    Deterministic pseudo-random vector for a text.

    Pure function of (text, dimensions): identical inputs give bit-identical
    vectors across calls and processes. Components lie in [-1, 1).
    """
    h = fnv1a_32(text)
    return [(((h * (i + 1)) & UINT32_MASK) % 1000 - 500) / 500.0 for i in range(dimensions)]


class Embedder:
    """Generate embeddings via Ollama, degrading to fallback_embedding on failure"""

    def __init__(
        self,
        model: str = "all-minilm",
        dimensions: int = 384,
        host: Optional[str] = None,
        timeout: float = 30.0,
        force_fallback: bool = False,
        client: Optional[ollama.Client] = None,
        verify_model: bool = False,
    ):
        """
        Initialize embedder

        Args:
            model: Ollama embedding model name
            dimensions: Expected vector length (must match the vector store)
            host: Ollama URL (default: OLLAMA_HOST or localhost)
            timeout: Per-request timeout in seconds
            force_fallback: Never call Ollama; always use the deterministic fallback
            client: Pre-built client (tests inject fakes here)
            verify_model: Check that the model is pulled on startup
        """
        self.model = model
        self.expected_dimensions = dimensions
        self.force_fallback = force_fallback
        self.embedding_count = 0
        self.fallback_count = 0
        self.client = client
        if self.client is None and not force_fallback:
            self.client = ollama.Client(host=host, timeout=timeout)

        if verify_model and not force_fallback:
            self._verify_model()

    def _verify_model(self) -> None:
        try:
            models = self.client.list()
            model_list = models.get('models', []) or []
            available = []
            for m in model_list:
                name = m.get('name') or m.get('model', '') if isinstance(m, dict) else getattr(m, 'model', '')
                if name:
                    available.append(name)

            if available and not any(self.model in name for name in available):
                raise ValueError(f"Model {self.model} not found. Run: ollama pull {self.model}")
        except ValueError:
            raise
        except Exception as e:
            logger.warning(f"Could not verify Ollama model availability: {e}")

    def _check_dimensions(self, vector: Sequence[float]) -> List[float]:
        if len(vector) != self.expected_dimensions:
            raise DimensionMismatchError(self.expected_dimensions, len(vector))
        return [float(v) for v in vector]

    def _fallback(self, text: str) -> EmbeddingResult:
        self.fallback_count += 1
        self.embedding_count += 1
        return EmbeddingResult(fallback_embedding(text, self.expected_dimensions), degraded=True)

    def embed(
        self,
        text: str,
        strict: bool = False,
        ctx: Optional[CancellationContext] = None
    ) -> EmbeddingResult:
        """
        Embed a single text

        Args:
            text: Text to embed
            strict: Raise instead of degrading to the fallback vector
            ctx: Cancellation/deadline context

        Returns:
            EmbeddingResult (degraded=True when the fallback path was used)

        Raises:
            TransientBackendError: Backend failed and strict=True
            DimensionMismatchError: Backend returned a vector of the wrong length
        """
        ensure_context(ctx).check("embedding")

        if self.force_fallback:
            return self._fallback(text)

        try:
            # Same endpoint as embed_many so single and batch vectors agree
            response = self.client.embed(model=self.model, input=text)
            embeddings = response['embeddings']
            if not embeddings or not embeddings[0]:
                raise ValueError("empty embedding received")
            embedding = embeddings[0]
        except Exception as e:
            if strict:
                raise TransientBackendError(f"Embedding backend failed: {e}") from e
            logger.warning(f"Ollama unavailable, using fallback embedding: {e}")
            return self._fallback(text)

        vector = self._check_dimensions(embedding)
        self.embedding_count += 1
        return EmbeddingResult(vector, degraded=False)

    def embed_many(
        self,
        texts: List[str],
        strict: bool = False,
        ctx: Optional[CancellationContext] = None,
        notifier: Optional["NotifierInterface"] = None
    ) -> List[EmbeddingResult]:
        """
        Embed several texts, batched through Ollama's embed endpoint

        Each entry equals what embed() would return for that text. If the
        batch call fails, texts are embedded one by one (and may degrade
        individually).

        Args:
            texts: Texts to embed
            strict: Raise instead of degrading to the fallback vector
            ctx: Cancellation/deadline context
            notifier: Optional progress notifier

        Returns:
            List of EmbeddingResult, aligned with texts
        """
        from greyseal.notifications import ProgressEvent, IngestionStage, NullNotifier

        if notifier is None:
            notifier = NullNotifier()
        ctx = ensure_context(ctx)
        total = len(texts)
        if total == 0:
            return []

        notifier.notify(ProgressEvent(
            stage=IngestionStage.EMBEDDING,
            message=f"Generating {total} embeddings",
            current=0,
            total=total
        ))

        results: Optional[List[EmbeddingResult]] = None
        if not self.force_fallback:
            ctx.check("embedding")
            try:
                response = self.client.embed(model=self.model, input=texts)
                embeddings = response['embeddings']
                if len(embeddings) != total:
                    raise ValueError(f"expected {total} embeddings, got {len(embeddings)}")
            except Exception as e:
                logger.warning(f"Batch embedding failed, embedding individually: {e}")
            else:
                results = [EmbeddingResult(self._check_dimensions(e), degraded=False) for e in embeddings]
                self.embedding_count += total

        if results is None:
            results = []
            for i, text in enumerate(texts):
                results.append(self.embed(text, strict=strict, ctx=ctx))
                if (i + 1) % 10 == 0 and (i + 1) < total:
                    notifier.notify(ProgressEvent(
                        stage=IngestionStage.EMBEDDING,
                        message="Generating embeddings",
                        current=i + 1,
                        total=total
                    ))

        notifier.notify(ProgressEvent(
            stage=IngestionStage.EMBEDDING,
            message="Generated embeddings",
            current=total,
            total=total
        ))

        degraded = sum(1 for r in results if r.degraded)
        if degraded:
            logger.info(f"Generated {total} embeddings ({degraded} degraded)")
        return results

    def cosine_similarity(self, embedding1: Sequence[float], embedding2: Sequence[float]) -> float:
        vec1 = np.asarray(embedding1, dtype=np.float64)
        vec2 = np.asarray(embedding2, dtype=np.float64)
        norm1 = np.linalg.norm(vec1)
        norm2 = np.linalg.norm(vec2)
        if norm1 == 0 or norm2 == 0:
            return 0.0
        return float(np.dot(vec1, vec2) / (norm1 * norm2))

    def get_stats(self):
        return {
            'total_embeddings': self.embedding_count,
            'fallback_embeddings': self.fallback_count,
            'model': self.model,
            'dimensions': self.expected_dimensions,
            'force_fallback': self.force_fallback,
        }

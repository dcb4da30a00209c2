"""
Generation Backend - Text generation via a local Ollama chat model

The prompt is sent as a single user turn. The backend returns the response
as a list of text segments; callers join them.
"""

import logging
from typing import List, Optional

import ollama

from greyseal.cancellation import CancellationContext, ensure_context
from greyseal.errors import TransientBackendError

logger = logging.getLogger(__name__)


class OllamaGenerator:
    """Generate answers with an Ollama chat model"""

    def __init__(
        self,
        model: str = "llama3.2",
        host: Optional[str] = None,
        timeout: float = 60.0,
        temperature: float = 0.3,
        client: Optional[ollama.Client] = None
    ):
        """
        Args:
            model: Ollama chat model
            host: Ollama URL (default: OLLAMA_HOST or localhost)
            timeout: Per-request timeout in seconds
            temperature: Sampling temperature
            client: Pre-built client (tests inject fakes here)
        """
        self.model = model
        self.temperature = temperature
        self.client = client or ollama.Client(host=host, timeout=timeout)
        self.generation_count = 0

    def generate(self, prompt: str, ctx: Optional[CancellationContext] = None) -> List[str]:
        """
        Generate a response for a prompt

        Returns:
            Response segments (one per returned message)

        Raises:
            TransientBackendError: Ollama unreachable, timed out or returned nothing
        """
        ensure_context(ctx).check("generation")

        try:
            response = self.client.chat(
                model=self.model,
                messages=[{'role': 'user', 'content': prompt}],
                options={'temperature': self.temperature},
            )
            content = response['message']['content']
        except Exception as e:
            raise TransientBackendError(f"Generation backend failed: {e}") from e

        if not content or not content.strip():
            raise TransientBackendError("Generation backend returned an empty response")

        self.generation_count += 1
        return [content.strip()]

    def get_stats(self):
        return {
            'total_generations': self.generation_count,
            'model': self.model,
            'temperature': self.temperature,
        }

"""
Grey Seal Retrieval Module

Retrieval-augmented answering over the vector store.
"""

from greyseal.retrieval.answer import AnswerPipeline, build_prompt

__all__ = [
    "AnswerPipeline",
    "build_prompt",
]

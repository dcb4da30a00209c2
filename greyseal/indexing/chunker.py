"""
Word Chunker - Word-boundary document chunking

Splits raw text into bounded windows of whitespace-delimited words:
- Fixed-size windows (overlap = 0): consecutive, non-overlapping
- Overlapping windows (0 < overlap < max_size): each window starts
  max_size - overlap words after the previous one so ideas are not cut
  at window boundaries

Chunking is pure and deterministic; words are never split.
"""

import math
from dataclasses import dataclass
from typing import Dict, List

from greyseal.errors import ValidationError


@dataclass(frozen=True)
class TextChunk:
    """Represents a window of source words"""
    text: str
    sequence_index: int
    start_word: int
    end_word: int  # exclusive

    @property
    def word_count(self) -> int:
        return self.end_word - self.start_word


def word_count(text: str) -> int:
    return len(text.split())


class WordChunker:
    """Word-boundary chunker with optional overlap"""

    def __init__(self, max_size: int = 200, overlap: int = 0):
        if max_size <= 0:
            raise ValidationError(f"max_size must be positive, got {max_size}")
        if not 0 <= overlap < max_size:
            raise ValidationError(f"overlap must be in [0, {max_size}), got {overlap}")
        self.max_size = max_size
        self.overlap = overlap

    @property
    def stride(self) -> int:
        return self.max_size - self.overlap

    def expected_chunks(self, words: int) -> int:
        """Number of windows produced for a text of the given word count"""
        if words == 0:
            return 0
        if words <= self.max_size:
            return 1
        return 1 + math.ceil((words - self.max_size) / self.stride)

    def chunk(self, text: str) -> List[TextChunk]:
        """
        Chunk text on word boundaries

        Args:
            text: Raw document text (empty input yields no chunks)

        Returns:
            List of TextChunk objects in source order
        """
        words = text.split() if text else []
        chunks: List[TextChunk] = []
        start = 0

        while start < len(words):
            end = min(start + self.max_size, len(words))
            chunks.append(TextChunk(
                text=" ".join(words[start:end]),
                sequence_index=len(chunks),
                start_word=start,
                end_word=end,
            ))
            if end == len(words):
                break
            start += self.stride

        return chunks

    def get_stats(self, chunks: List[TextChunk]) -> Dict:
        """Get chunking statistics"""
        if not chunks:
            return {}

        counts = [c.word_count for c in chunks]

        return {
            'total_chunks': len(chunks),
            'avg_words': sum(counts) / len(counts),
            'min_words': min(counts),
            'max_words': max(counts),
            'overlap': self.overlap,
        }


def chunk_text(text: str, max_size: int, overlap: int = 0) -> List[TextChunk]:
    """Functional form of WordChunker(max_size, overlap).chunk(text)"""
    return WordChunker(max_size=max_size, overlap=overlap).chunk(text)

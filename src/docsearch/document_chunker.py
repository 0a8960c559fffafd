"""Document chunking for retrieval indexing.

This module provides three chunking strategies sharing the
``ChunkingStrategy`` protocol: fixed-size windows, sliding windows, and
sentence-aware chunks that carry a sentence-level overlap into the next chunk.
"""

import logging
import re
from enum import Enum
from typing import List, Optional

from .interfaces import ChunkingStrategy
from .types import Chunk, ChunkingOptions, Document


logger = logging.getLogger(__name__)

SENTENCE_END_PATTERN = re.compile(r"[.!?]+\s+")

# Band around the overlap target used when seeding the next sentence-aware chunk
OVERLAP_LOWER_FACTOR = 0.8
OVERLAP_UPPER_FACTOR = 1.2


class ChunkingStrategyType(str, Enum):
    """Available chunking strategies."""

    FIXED_SIZE = "fixed_size"
    SLIDING_WINDOW = "sliding_window"
    SENTENCE_AWARE = "sentence_aware"


def _is_blank(text: Optional[str]) -> bool:
    return text is None or not text.strip()


class FixedSizeChunkingStrategy:
    """Chunks text into fixed-size character windows with optional overlap.

    Attributes:
        options: Chunking options (chunk_size, overlap_size)
    """

    def __init__(self, options: Optional[ChunkingOptions] = None):
        self.options = options or ChunkingOptions()

    def chunk(self, document: Document) -> List[Chunk]:
        """Split a document into fixed-size chunks.

        Each chunk is ``text[start:start + chunk_size]``; the next window
        starts ``overlap_size`` characters before the previous end. A window
        that reaches the end of the text is the last one.

        Args:
            document: Document to chunk

        Returns:
            Ordered list of chunks (empty for blank content)
        """
        size = self.options.chunk_size
        overlap = self.options.overlap_size
        logger.debug(
            f"Chunking document {document.document_id} with fixed-size strategy "
            f"(chunk_size={size}, overlap={overlap})"
        )

        text = document.content
        if _is_blank(text):
            logger.warning(f"Document {document.document_id} has empty content, returning no chunks")
            return []

        chunks = []
        start = 0
        index = 0
        length = len(text)

        while start < length:
            end = min(start + size, length)
            chunks.append(Chunk.create(text[start:end], index, document.document_id, document.metadata))
            index += 1

            if end >= length:
                break

            next_start = end - overlap
            if next_start <= start:
                next_start = end
            start = next_start

        logger.info(
            f"Document {document.document_id} split into {len(chunks)} chunks using fixed-size strategy"
        )
        return chunks


class SlidingWindowChunkingStrategy:
    """Chunks text with a window of ``chunk_size`` moved by a fixed step.

    The step is ``chunk_size - overlap_size``, falling back to half the
    chunk size when the overlap is not smaller than the chunk.
    """

    def __init__(self, options: Optional[ChunkingOptions] = None):
        self.options = options or ChunkingOptions()

    @property
    def step(self) -> int:
        step = self.options.chunk_size - self.options.overlap_size
        if step <= 0:
            step = self.options.chunk_size // 2
        return max(1, step)

    def chunk(self, document: Document) -> List[Chunk]:
        """Split a document using a sliding window.

        Args:
            document: Document to chunk

        Returns:
            Ordered list of chunks (empty for blank content)
        """
        size = self.options.chunk_size
        logger.debug(
            f"Chunking document {document.document_id} with sliding window strategy "
            f"(chunk_size={size}, overlap={self.options.overlap_size}, step={self.step})"
        )

        text = document.content
        if _is_blank(text):
            logger.warning(f"Document {document.document_id} has empty content, returning no chunks")
            return []

        chunks = []
        length = len(text)

        for index, start in enumerate(range(0, length, self.step)):
            end = min(start + size, length)
            chunks.append(Chunk.create(text[start:end], index, document.document_id, document.metadata))
            if end >= length:
                break

        logger.info(
            f"Document {document.document_id} split into {len(chunks)} chunks using sliding window strategy"
        )
        return chunks


class SentenceAwareChunkingStrategy:
    """Chunks text on sentence boundaries.

    Sentences are accumulated until the next one would push the chunk past
    ``chunk_size`` or the chunk holds ``max_sentences_per_chunk`` sentences.
    When ``overlap_size`` is positive, the next chunk is seeded with trailing
    sentences of the finalized chunk: at least one sentence, growing while
    the seed stays within 1.2x the overlap and stopping once it reaches 0.8x.
    """

    def __init__(self, options: Optional[ChunkingOptions] = None):
        self.options = options or ChunkingOptions()

    def split_sentences(self, text: str) -> List[str]:
        """Split text on terminal punctuation followed by whitespace."""
        return [s for s in SENTENCE_END_PATTERN.split(text) if s.strip()]

    def _overlap_seed(self, sentences: List[str]):
        """Select trailing sentences to carry into the next chunk.

        Returns:
            Tuple of (seed sentences, seed size in characters)
        """
        target = self.options.overlap_size
        seed: List[str] = []
        seed_size = 0

        for sentence in reversed(sentences):
            sentence_size = len(sentence) + 1

            if not seed:
                seed.insert(0, sentence)
                seed_size += sentence_size
                continue

            if seed_size + sentence_size > target * OVERLAP_UPPER_FACTOR:
                break

            seed.insert(0, sentence)
            seed_size += sentence_size

            if seed_size >= target * OVERLAP_LOWER_FACTOR:
                break

        return seed, seed_size

    def chunk(self, document: Document) -> List[Chunk]:
        """Split a document into sentence-aligned chunks.

        Args:
            document: Document to chunk

        Returns:
            Ordered list of chunks (empty for blank content)
        """
        size_limit = self.options.chunk_size
        logger.debug(
            f"Chunking document {document.document_id} with sentence-aware strategy "
            f"(chunk_size={size_limit}, overlap={self.options.overlap_size})"
        )

        text = document.content
        if _is_blank(text):
            logger.warning(f"Document {document.document_id} has empty content, returning no chunks")
            return []

        sentences = self.split_sentences(text)
        logger.debug(f"Document {document.document_id} split into {len(sentences)} sentences")

        max_sentences = self.options.max_sentences_per_chunk
        chunks = []
        current: List[str] = []
        current_size = 0

        for sentence in sentences:
            sentence_size = len(sentence)
            trimmed = sentence.strip()

            over_size = current_size + sentence_size > size_limit
            over_count = max_sentences is not None and len(current) >= max_sentences

            if current and (over_size or over_count):
                chunk_text = " ".join(current).strip()
                if chunk_text:
                    chunks.append(
                        Chunk.create(chunk_text, len(chunks), document.document_id, document.metadata)
                    )

                if self.options.overlap_size > 0:
                    current, current_size = self._overlap_seed(current)
                else:
                    current, current_size = [], 0

            current.append(trimmed)
            current_size += sentence_size + 1

        if current:
            chunks.append(
                Chunk.create(" ".join(current), len(chunks), document.document_id, document.metadata)
            )

        logger.info(
            f"Document {document.document_id} split into {len(chunks)} chunks using sentence-aware strategy"
        )
        return chunks


_STRATEGIES = {
    ChunkingStrategyType.FIXED_SIZE: FixedSizeChunkingStrategy,
    ChunkingStrategyType.SLIDING_WINDOW: SlidingWindowChunkingStrategy,
    ChunkingStrategyType.SENTENCE_AWARE: SentenceAwareChunkingStrategy,
}


def create_chunking_strategy(
    options: Optional[ChunkingOptions] = None,
    strategy_type: Optional[ChunkingStrategyType] = None,
) -> ChunkingStrategy:
    """Create a chunking strategy.

    Args:
        options: Chunking options (default: ChunkingOptions())
        strategy_type: Strategy to build; when None, sentence-aware if
            ``options.respect_sentence_boundaries`` else fixed-size

    Returns:
        Chunking strategy instance

    Raises:
        ValueError: If the strategy type is unknown
    """
    options = options or ChunkingOptions()

    if strategy_type is None:
        strategy_type = (
            ChunkingStrategyType.SENTENCE_AWARE
            if options.respect_sentence_boundaries
            else ChunkingStrategyType.FIXED_SIZE
        )

    try:
        strategy_class = _STRATEGIES[ChunkingStrategyType(strategy_type)]
    except ValueError:
        raise ValueError(f"Unknown chunking strategy: {strategy_type}") from None

    logger.debug(f"Created {strategy_class.__name__} (chunk_size={options.chunk_size})")
    return strategy_class(options)

"""
Pytest configuration and fixtures for docsearch tests.
"""
import hashlib
import re
import sys
from pathlib import Path
from typing import List

import numpy as np
import pytest

# Add src to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from docsearch.types import Chunk, Document  # noqa: E402
from docsearch.vector_store import InMemoryVectorStore  # noqa: E402


class HashingEmbeddingProvider:
    """Deterministic bag-of-words embedding provider for tests.

    Each lowercase word is hashed into one of ``dimension`` buckets, so texts
    sharing words have positive cosine similarity and identical texts embed
    identically.
    """

    def __init__(self, dimension: int = 64):
        self._dimension = dimension
        self.calls: List[str] = []

    @property
    def dimension(self) -> int:
        return self._dimension

    def _vector(self, text: str) -> np.ndarray:
        vector = np.zeros(self._dimension, dtype=np.float32)
        for word in re.findall(r"\w+", text.lower()):
            bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % self._dimension
            vector[bucket] += 1.0
        return vector

    async def embed(self, text: str) -> np.ndarray:
        self.calls.append(text)
        return self._vector(text)

    async def embed_many(self, texts: List[str]) -> List[np.ndarray]:
        self.calls.extend(texts)
        return [self._vector(text) for text in texts]


@pytest.fixture
def embedding_provider():
    """Deterministic hashing embedding provider."""
    return HashingEmbeddingProvider()


@pytest.fixture
def memory_store():
    """Empty in-memory vector store."""
    return InMemoryVectorStore()


@pytest.fixture
def sample_document():
    """A short multi-sentence document."""
    return Document(
        document_id="doc1",
        content=(
            "Photosynthesis converts light energy into chemical energy. "
            "It takes place in the chloroplasts of plant cells. "
            "Chlorophyll absorbs mostly blue and red light. "
            "The process releases oxygen as a byproduct. "
            "Glucose produced by photosynthesis fuels plant growth."
        ),
        source="biology.txt",
        page=3,
        metadata={"subject": "biology"},
    )


@pytest.fixture
def make_chunk():
    """Factory for chunks with generated IDs."""
    def _make(text: str, index: int = 0, document_id: str = "doc1", **metadata) -> Chunk:
        return Chunk.create(text, index, document_id, metadata)
    return _make

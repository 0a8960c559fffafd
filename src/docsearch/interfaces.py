"""Structural interfaces between pipeline components.

The retrieval engine and pipeline depend only on these protocols, so any
embedding model or vector database with matching methods can be plugged in.
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from .types import Chunk, Document, MetadataFilter, VectorData, VectorSearchResult


@runtime_checkable
class ChunkingStrategy(Protocol):
    """Splits a document into ordered chunks with contiguous indices from 0."""

    def chunk(self, document: Document) -> List[Chunk]:
        ...


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Produces fixed-dimension embedding vectors for text."""

    @property
    def dimension(self) -> int:
        ...

    async def embed(self, text: str) -> Sequence[float]:
        ...

    async def embed_many(self, texts: List[str]) -> List[Sequence[float]]:
        ...


@runtime_checkable
class VectorStore(Protocol):
    """Stores vectors and answers ranked similarity searches.

    ``search`` returns results sorted by similarity (highest first) and
    already restricted to the threshold and metadata filter it was given.
    """

    async def upsert(
        self,
        vector_id: str,
        vector: Sequence[float],
        metadata: Dict[str, Any],
    ) -> None:
        ...

    async def upsert_batch(self, vectors: List[VectorData]) -> None:
        ...

    async def delete(self, vector_id: str) -> None:
        ...

    async def delete_by_document_id(self, document_id: str) -> None:
        ...

    async def search(
        self,
        query_vector: Sequence[float],
        top_k: int,
        threshold: float = 0.0,
        metadata_filter: Optional[MetadataFilter] = None,
    ) -> List[VectorSearchResult]:
        ...

    async def clear(self) -> None:
        ...

    async def count(self) -> int:
        ...

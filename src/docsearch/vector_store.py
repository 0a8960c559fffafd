"""Vector store implementations.

``InMemoryVectorStore`` keeps normalized numpy vectors in a lock-guarded
dict and is meant for development and tests. ``ChromaVectorStore`` wraps a
persistent ChromaDB collection using cosine distance.
"""

import asyncio
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import chromadb
from chromadb.config import Settings
import numpy as np

from .types import MetadataFilter, VectorData, VectorSearchResult
from .vector_math import cosine_similarity, normalize


logger = logging.getLogger(__name__)

DOCUMENT_ID_KEY = "document_id"


class InMemoryVectorStore:
    """In-memory vector store using brute-force cosine similarity."""

    def __init__(self):
        self._vectors: Dict[str, Tuple[np.ndarray, Dict[str, Any]]] = {}
        self._lock = threading.Lock()
        logger.info("InMemoryVectorStore initialized")

    async def upsert(
        self,
        vector_id: str,
        vector: Sequence[float],
        metadata: Dict[str, Any],
    ) -> None:
        """Insert or replace a vector; the stored copy is L2-normalized."""
        logger.debug(f"Upserting vector {vector_id} with dimension {len(vector)}")
        normalized = normalize(vector)
        with self._lock:
            self._vectors[vector_id] = (normalized, dict(metadata))

    async def upsert_batch(self, vectors: List[VectorData]) -> None:
        for item in vectors:
            await self.upsert(item.vector_id, item.vector, item.metadata)
        logger.info(f"Upserted batch of {len(vectors)} vectors")

    async def delete(self, vector_id: str) -> None:
        with self._lock:
            self._vectors.pop(vector_id, None)

    async def delete_by_document_id(self, document_id: str) -> None:
        with self._lock:
            doomed = [
                vector_id for vector_id, (_, metadata) in self._vectors.items()
                if str(metadata.get(DOCUMENT_ID_KEY)) == document_id
            ]
            for vector_id in doomed:
                del self._vectors[vector_id]
        logger.info(f"Deleted {len(doomed)} vectors for document {document_id}")

    async def search(
        self,
        query_vector: Sequence[float],
        top_k: int,
        threshold: float = 0.0,
        metadata_filter: Optional[MetadataFilter] = None,
    ) -> List[VectorSearchResult]:
        """Search for the most similar vectors.

        Args:
            query_vector: Query embedding
            top_k: Maximum number of results
            threshold: Minimum cosine similarity
            metadata_filter: Optional exact-match metadata filter

        Returns:
            Results sorted by similarity, highest first

        Raises:
            DimensionMismatchError: If the query dimension differs from stored vectors
        """
        logger.debug(f"Searching for top {top_k} vectors with threshold {threshold}")
        query = normalize(query_vector)
        results = []

        with self._lock:
            total = len(self._vectors)
            for vector_id, (vector, metadata) in self._vectors.items():
                if metadata_filter is not None and not metadata_filter.matches(metadata):
                    continue

                similarity = cosine_similarity(query, vector)
                if similarity < threshold:
                    continue

                results.append(VectorSearchResult(
                    vector_id=vector_id,
                    similarity=similarity,
                    metadata=dict(metadata),
                ))

        results.sort(key=lambda r: r.similarity, reverse=True)
        results = results[:top_k]

        logger.debug(f"Search found {len(results)} results from {total} vectors")
        return results

    async def clear(self) -> None:
        with self._lock:
            self._vectors.clear()
        logger.info("Cleared all vectors from in-memory store")

    async def count(self) -> int:
        with self._lock:
            return len(self._vectors)


class ChromaVectorStore:
    """ChromaDB-backed vector store.

    The collection is created with cosine distance, so similarity is
    ``1 - distance`` clamped to [0, 1].

    Attributes:
        persist_dir: Directory to persist ChromaDB data
        collection_name: Name of the ChromaDB collection
    """

    def __init__(
        self,
        persist_dir: str,
        collection_name: str = "documents",
    ):
        """Initialize the vector store.

        Args:
            persist_dir: Directory to persist ChromaDB data
            collection_name: Name of the collection (default: documents)
        """
        self.persist_dir = Path(persist_dir)
        self.collection_name = collection_name
        self._client = None
        self._collection = None

        self.persist_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"ChromaVectorStore initialized: persist_dir={persist_dir}, collection={collection_name}")

    @property
    def client(self):
        """Lazy-load the ChromaDB client.

        Raises:
            RuntimeError: If client initialization fails
        """
        if self._client is None:
            try:
                logger.info("Initializing ChromaDB client")
                self._client = chromadb.PersistentClient(
                    path=str(self.persist_dir),
                    settings=Settings(anonymized_telemetry=False),
                )
            except Exception as e:
                logger.error(f"Failed to initialize ChromaDB client: {e}")
                raise RuntimeError(f"Could not initialize ChromaDB: {e}") from e

        return self._client

    @property
    def collection(self):
        """Get or create the collection.

        Raises:
            RuntimeError: If collection access fails
        """
        if self._collection is None:
            try:
                logger.info(f"Getting or creating collection: {self.collection_name}")
                self._collection = self.client.get_or_create_collection(
                    name=self.collection_name,
                    metadata={"hnsw:space": "cosine"},
                )
            except Exception as e:
                logger.error(f"Failed to get/create collection: {e}")
                raise RuntimeError(f"Could not access collection: {e}") from e

        return self._collection

    @staticmethod
    def _to_chroma_metadata(metadata: Dict[str, Any]) -> Dict[str, Any]:
        """Coerce metadata to the scalar types ChromaDB accepts."""
        converted = {}
        for key, value in metadata.items():
            if value is None:
                continue
            if isinstance(value, (str, int, float, bool)):
                converted[key] = value
            else:
                converted[key] = str(value)
        return converted

    @staticmethod
    def _build_where_clause(metadata_filter: Optional[MetadataFilter]) -> Optional[Dict[str, Any]]:
        """Build a ChromaDB where clause from an exact-match filter."""
        if metadata_filter is None or not metadata_filter.filters:
            return None

        conditions = [{key: {"$eq": value}} for key, value in metadata_filter.filters.items()]
        if len(conditions) == 1:
            return conditions[0]
        return {"$and": conditions}

    def _upsert_sync(self, vectors: List[VectorData]) -> None:
        try:
            self.collection.upsert(
                ids=[v.vector_id for v in vectors],
                embeddings=[np.asarray(v.vector, dtype=np.float32).tolist() for v in vectors],
                metadatas=[self._to_chroma_metadata(v.metadata) for v in vectors],
            )
        except Exception as e:
            logger.error(f"Failed to upsert {len(vectors)} vectors: {e}")
            raise RuntimeError(f"Vector upsert failed: {e}") from e

    async def upsert(
        self,
        vector_id: str,
        vector: Sequence[float],
        metadata: Dict[str, Any],
    ) -> None:
        await asyncio.to_thread(self._upsert_sync, [VectorData(vector_id, vector, metadata)])

    async def upsert_batch(self, vectors: List[VectorData]) -> None:
        if not vectors:
            return
        logger.info(f"Upserting {len(vectors)} vectors to collection {self.collection_name}")
        await asyncio.to_thread(self._upsert_sync, vectors)

    async def delete(self, vector_id: str) -> None:
        await asyncio.to_thread(self.collection.delete, ids=[vector_id])

    async def delete_by_document_id(self, document_id: str) -> None:
        logger.info(f"Deleting vectors for document_id: {document_id}")
        await asyncio.to_thread(
            self.collection.delete,
            where={DOCUMENT_ID_KEY: {"$eq": document_id}},
        )

    def _search_sync(
        self,
        query_vector: Sequence[float],
        top_k: int,
        threshold: float,
        metadata_filter: Optional[MetadataFilter],
    ) -> List[VectorSearchResult]:
        available = self.collection.count()
        n_results = min(top_k, available)
        if n_results <= 0:
            return []

        try:
            results = self.collection.query(
                query_embeddings=[np.asarray(query_vector, dtype=np.float32).tolist()],
                n_results=n_results,
                where=self._build_where_clause(metadata_filter),
                include=["metadatas", "distances"],
            )
        except Exception as e:
            logger.error(f"Search failed: {e}")
            raise RuntimeError(f"Similarity search failed: {e}") from e

        search_results = []
        if results and results["ids"]:
            ids = results["ids"][0]
            metadatas = results["metadatas"][0]
            distances = results["distances"][0]

            for vector_id, metadata, distance in zip(ids, metadatas, distances):
                similarity = min(1.0, max(0.0, 1.0 - float(distance)))
                if similarity < threshold:
                    continue
                search_results.append(VectorSearchResult(
                    vector_id=vector_id,
                    similarity=similarity,
                    metadata=dict(metadata or {}),
                ))

        search_results.sort(key=lambda r: r.similarity, reverse=True)
        return search_results

    async def search(
        self,
        query_vector: Sequence[float],
        top_k: int,
        threshold: float = 0.0,
        metadata_filter: Optional[MetadataFilter] = None,
    ) -> List[VectorSearchResult]:
        """Search the collection for vectors similar to the query.

        Returns:
            Results above ``threshold`` sorted by similarity, highest first

        Raises:
            RuntimeError: If the ChromaDB query fails
        """
        logger.debug(f"Searching for top {top_k} chunks with filter: {metadata_filter}")
        results = await asyncio.to_thread(
            self._search_sync, query_vector, top_k, threshold, metadata_filter,
        )
        logger.debug(f"Found {len(results)} similar chunks")
        return results

    def _reset_sync(self) -> None:
        try:
            logger.warning(f"Resetting collection: {self.collection_name}")

            # Collection must exist before it can be deleted
            _ = self.collection
            self.client.delete_collection(name=self.collection_name)

            self._collection = None
            _ = self.collection

            logger.info("Collection reset successfully")
        except Exception as e:
            logger.error(f"Failed to reset collection: {e}")
            raise RuntimeError(f"Could not reset collection: {e}") from e

    async def clear(self) -> None:
        """Delete and recreate the collection.

        Raises:
            RuntimeError: If the collection cannot be deleted or recreated
        """
        await asyncio.to_thread(self._reset_sync)

    async def count(self) -> int:
        return await asyncio.to_thread(self.collection.count)

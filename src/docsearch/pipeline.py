"""
Ingestion and query pipeline.

This module wires text cleanup, chunking, embedding, vector storage and
retrieval into one object: documents go in through ``ingest``, ranked
context comes out of ``query``.
"""

import dataclasses
import logging
import threading
import time
from typing import Dict, List, Optional

import tiktoken

from .config import RAGConfig
from .document_chunker import create_chunking_strategy
from .interfaces import ChunkingStrategy, EmbeddingProvider, VectorStore
from .metrics import MetricsCollector
from .retrieval_engine import RetrievalEngine
from .text_cleanup import TextCleanupOptions, clean_text
from .types import (
    Chunk,
    Document,
    IngestResult,
    QueryResult,
    RetrievalOptions,
    VectorData,
)


logger = logging.getLogger(__name__)


class RAGPipeline:
    """
    Document ingestion and retrieval pipeline.

    Ingestion workflow:
    1. Record the document (for source/page attribution)
    2. Clean the text (if cleanup is enabled)
    3. Chunk the cleaned document
    4. Generate embeddings for all chunks in one batch
    5. Upsert vectors with chunk metadata
    6. Register chunks with the retrieval engine
    7. Drop chunks left over from a previous ingest of the same document

    Errors from the embedding provider and vector store propagate to the
    caller; a failed ingest leaves the chunks of that document unregistered.
    """

    def __init__(
        self,
        chunking_strategy: ChunkingStrategy,
        embedding_provider: EmbeddingProvider,
        vector_store: VectorStore,
        retrieval_engine: Optional[RetrievalEngine] = None,
        cleanup_options: Optional[TextCleanupOptions] = None,
        metrics: Optional[MetricsCollector] = None,
        default_options: Optional[RetrievalOptions] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            chunking_strategy: Strategy used to split documents
            embedding_provider: Provider used for chunk and query embeddings
            vector_store: Store receiving chunk vectors
            retrieval_engine: Optional engine (created over the same provider and store if None)
            cleanup_options: Text cleanup toggles (default: all enabled)
            metrics: Optional metrics collector (no metrics recorded if None)
            default_options: Retrieval options used by queries that pass none
        """
        self.chunking_strategy = chunking_strategy
        self.embedding_provider = embedding_provider
        self.vector_store = vector_store
        self.retrieval_engine = retrieval_engine or RetrievalEngine(embedding_provider, vector_store)
        self.cleanup_options = cleanup_options or TextCleanupOptions()
        self.metrics = metrics
        self.default_options = default_options or RetrievalOptions()

        self._documents: Dict[str, Document] = {}
        self._chunks: Dict[str, List[Chunk]] = {}
        self._lock = threading.Lock()

        try:
            self.tokenizer = tiktoken.get_encoding("cl100k_base")
        except Exception as e:
            logger.warning(f"Failed to load tiktoken encoding: {e}, using approximate counting")
            self.tokenizer = None

        logger.info(f"RAGPipeline initialized with {type(chunking_strategy).__name__}")

    @classmethod
    def from_config(
        cls,
        config: RAGConfig,
        embedding_provider: Optional[EmbeddingProvider] = None,
        vector_store: Optional[VectorStore] = None,
    ) -> "RAGPipeline":
        """
        Build a pipeline from configuration.

        Args:
            config: Pipeline configuration
            embedding_provider: Optional provider (EmbeddingService created if None)
            vector_store: Optional store (built from ``config.vector_store_backend`` if None)

        Returns:
            Configured RAGPipeline
        """
        if embedding_provider is None:
            from .embedding_service import EmbeddingService

            embedding_provider = EmbeddingService(
                model_name=config.model_name,
                cache_dir=str(config.model_cache_dir) if config.model_cache_dir else None,
                device=config.device,
                batch_size=config.batch_size,
            )

        if vector_store is None:
            from .vector_store import ChromaVectorStore, InMemoryVectorStore

            if config.vector_store_backend == "memory":
                vector_store = InMemoryVectorStore()
            else:
                vector_store = ChromaVectorStore(
                    persist_dir=str(config.vector_store_dir),
                    collection_name=config.collection_name,
                )

        strategy = create_chunking_strategy(config.chunking_options(), config.chunking_strategy)
        engine = RetrievalEngine(
            embedding_provider,
            vector_store,
            default_top_k=config.default_top_k,
            default_similarity_threshold=config.similarity_threshold,
        )
        metrics = MetricsCollector(enabled=config.metrics_enabled)

        return cls(
            chunking_strategy=strategy,
            embedding_provider=embedding_provider,
            vector_store=vector_store,
            retrieval_engine=engine,
            cleanup_options=config.cleanup,
            metrics=metrics,
            default_options=config.retrieval_options(),
        )

    def _count_tokens(self, text: str) -> int:
        if self.tokenizer:
            return len(self.tokenizer.encode(text))
        return len(text) // 4

    async def ingest(self, document: Document) -> IngestResult:
        """
        Ingest a document into the vector store and retrieval engine.

        Args:
            document: Document to ingest

        Returns:
            IngestResult with chunk, embedding and token counts
        """
        start_time = time.time()
        logger.info(f"Ingesting document {document.document_id} (source={document.source!r})")

        with self._lock:
            self._documents[document.document_id] = document

        if self.cleanup_options.enabled:
            cleaned = clean_text(document.content, self.cleanup_options)
            document = dataclasses.replace(document, content=cleaned or "")

        chunks = self.chunking_strategy.chunk(document)
        if not chunks:
            logger.warning(f"No chunks created for document {document.document_id}")
            await self._drop_stale_chunks(document.document_id, [])
            return IngestResult(
                document_id=document.document_id,
                processing_time_seconds=time.time() - start_time,
            )

        logger.debug(f"Generating embeddings for {len(chunks)} chunks")
        embeddings = await self.embedding_provider.embed_many([chunk.text for chunk in chunks])

        token_counts = [self._count_tokens(chunk.text) for chunk in chunks]
        vectors = [
            VectorData(
                vector_id=chunk.chunk_id,
                vector=embedding,
                metadata={
                    **chunk.metadata,
                    "chunk_id": chunk.chunk_id,
                    "document_id": chunk.document_id,
                    "chunk_index": chunk.index,
                    "token_count": tokens,
                },
            )
            for chunk, embedding, tokens in zip(chunks, embeddings, token_counts)
        ]

        logger.debug(f"Storing {len(vectors)} vectors")
        await self.vector_store.upsert_batch(vectors)

        self.retrieval_engine.register_chunks(chunks)
        await self._drop_stale_chunks(document.document_id, chunks)

        result = IngestResult(
            document_id=document.document_id,
            chunks_created=len(chunks),
            embeddings_generated=len(embeddings),
            tokens_indexed=sum(token_counts),
            processing_time_seconds=time.time() - start_time,
        )
        logger.info(
            f"Ingested document {document.document_id}: {result.chunks_created} chunks, "
            f"{result.tokens_indexed} tokens in {result.processing_time_seconds:.2f}s"
        )
        return result

    async def _drop_stale_chunks(self, document_id: str, chunks: List[Chunk]) -> None:
        """Record the document's current chunks and remove those from a previous ingest."""
        current_ids = {chunk.chunk_id for chunk in chunks}
        with self._lock:
            previous = self._chunks.get(document_id, [])
            self._chunks[document_id] = list(chunks)

        stale_ids = [c.chunk_id for c in previous if c.chunk_id not in current_ids]
        if not stale_ids:
            return

        for vector_id in stale_ids:
            await self.vector_store.delete(vector_id)
        self.retrieval_engine.unregister_chunks(stale_ids)
        logger.info(f"Removed {len(stale_ids)} stale chunks for document {document_id}")

    async def ingest_batch(self, documents: List[Document]) -> List[IngestResult]:
        """Ingest documents one after another, stopping at the first failure."""
        results = []
        for i, document in enumerate(documents, 1):
            logger.debug(f"Ingesting document {i}/{len(documents)}")
            results.append(await self.ingest(document))
        logger.info(f"Batch ingestion complete: {len(results)} documents")
        return results

    async def query(self, query: str, options: Optional[RetrievalOptions] = None) -> QueryResult:
        """
        Retrieve context for a query.

        Each result is decorated with the source and page of the document
        that produced its chunk.

        Args:
            query: Search query
            options: Retrieval options (default: self.default_options)

        Returns:
            QueryResult with ranked context and retrieval metadata
        """
        start_time = time.time()
        if options is None:
            options = self.default_options

        try:
            results, metadata = await self.retrieval_engine.retrieve_with_metadata(query, options)
        except Exception as e:
            if self.metrics is not None:
                self.metrics.record_query(
                    None,
                    total_time_ms=(time.time() - start_time) * 1000,
                    error=e,
                )
            raise

        query_time_ms = (time.time() - start_time) * 1000

        with self._lock:
            for result in results:
                document = self._documents.get(result.chunk.document_id)
                if document is not None:
                    result.source = document.source
                    result.page = document.page

        if self.metrics is not None:
            self.metrics.record_query(
                metadata,
                similarity_scores=[r.similarity for r in results],
                query_time_ms=query_time_ms,
                total_time_ms=(time.time() - start_time) * 1000,
            )

        return QueryResult(context=results, metadata=metadata)

    def indexed_documents(self) -> List[Document]:
        with self._lock:
            return list(self._documents.values())

    def get_chunks(self, document_id: str) -> List[Chunk]:
        """Chunks produced for a document, ordered by index."""
        with self._lock:
            chunks = list(self._chunks.get(document_id, []))
        return sorted(chunks, key=lambda c: c.index)

    async def clear(self) -> None:
        """Clear the vector store, then forget all documents and chunks.

        If the store fails to clear, the error propagates and the pipeline
        keeps its documents and chunks.
        """
        await self.vector_store.clear()
        with self._lock:
            self._documents.clear()
            self._chunks.clear()
        self.retrieval_engine.clear_cache()
        logger.info("Pipeline cleared")

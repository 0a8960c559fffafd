"""Document retrieval for retrieval-augmented generation.

This package turns documents into embedded, searchable chunks and answers
queries with a small, ranked, non-redundant set of context chunks.

Core Components:
- config: Configuration management and environment loading
- text_cleanup: Removal of timestamps, URLs and navigation debris
- document_chunker: Fixed-size, sliding-window and sentence-aware chunking
- embedding_service: Text embedding generation using sentence-transformers
- vector_store: In-memory and ChromaDB vector stores
- retrieval_engine: Query classification, dynamic top-k, filtering and deduplication
- metrics: Retrieval quality metrics and performance tracking
- pipeline: Ingestion and query pipeline over all of the above
"""

from .config import RAGConfig, load_config_from_env
from .document_chunker import (
    ChunkingStrategyType,
    FixedSizeChunkingStrategy,
    SentenceAwareChunkingStrategy,
    SlidingWindowChunkingStrategy,
    create_chunking_strategy,
)
from .embedding_service import EmbeddingService
from .interfaces import ChunkingStrategy, EmbeddingProvider, VectorStore
from .metrics import MetricsCollector, QueryMetrics, get_metrics_collector
from .pipeline import RAGPipeline
from .retrieval_engine import ChunkCache, RetrievalEngine, classify_query
from .text_cleanup import TextCleanupOptions, clean_text
from .types import (
    Chunk,
    ChunkingOptions,
    Document,
    IngestResult,
    MetadataFilter,
    QueryResult,
    QuestionType,
    RetrievalMetadata,
    RetrievalOptions,
    RetrievalResult,
    VectorData,
    VectorSearchResult,
)
from .vector_math import DimensionMismatchError, cosine_similarity, normalize
from .vector_store import ChromaVectorStore, InMemoryVectorStore

__all__ = [
    "__version__",
    "RAGConfig",
    "load_config_from_env",
    "ChunkingStrategyType",
    "FixedSizeChunkingStrategy",
    "SlidingWindowChunkingStrategy",
    "SentenceAwareChunkingStrategy",
    "create_chunking_strategy",
    "EmbeddingService",
    "ChunkingStrategy",
    "EmbeddingProvider",
    "VectorStore",
    "MetricsCollector",
    "QueryMetrics",
    "get_metrics_collector",
    "RAGPipeline",
    "ChunkCache",
    "RetrievalEngine",
    "classify_query",
    "TextCleanupOptions",
    "clean_text",
    "Chunk",
    "ChunkingOptions",
    "Document",
    "IngestResult",
    "MetadataFilter",
    "QueryResult",
    "QuestionType",
    "RetrievalMetadata",
    "RetrievalOptions",
    "RetrievalResult",
    "VectorData",
    "VectorSearchResult",
    "DimensionMismatchError",
    "cosine_similarity",
    "normalize",
    "ChromaVectorStore",
    "InMemoryVectorStore",
]

__version__ = "0.1.0"

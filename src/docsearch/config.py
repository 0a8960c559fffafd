"""Configuration management for the retrieval pipeline.

This module provides the configuration dataclass and environment variable
loading for chunking, cleanup, embedding, vector storage and retrieval.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .document_chunker import ChunkingStrategyType
from .text_cleanup import TextCleanupOptions
from .types import ChunkingOptions, RetrievalOptions


VECTOR_STORE_BACKENDS = ("chroma", "memory")


@dataclass
class RAGConfig:
    """Configuration for the retrieval pipeline.

    Attributes:
        chunking_strategy: Chunking strategy to use
        chunk_size: Target chunk size in characters
        chunk_overlap: Overlap between consecutive chunks in characters
        respect_sentence_boundaries: Prefer sentence-aware chunking
        max_sentences_per_chunk: Sentence cap per chunk (0 disables the cap)
        cleanup: Text cleanup toggles applied before chunking
        model_name: Name of the sentence-transformer model to use
        model_cache_dir: Directory to cache downloaded models
        device: Compute device for the model (None to auto-detect)
        batch_size: Batch size for embedding generation
        vector_store_backend: "chroma" or "memory"
        vector_store_dir: Directory to persist ChromaDB data
        collection_name: Name of the ChromaDB collection
        similarity_threshold: Minimum similarity score for retrieval (0-1)
        default_top_k: Result count when dynamic sizing does not apply
        enable_dynamic_top_k: Size results from the query classification
        enable_deduplication: Suppress near-duplicate results
        metrics_enabled: Record per-query retrieval metrics
    """

    chunking_strategy: ChunkingStrategyType = ChunkingStrategyType.SENTENCE_AWARE
    chunk_size: int = 600
    chunk_overlap: int = 100
    respect_sentence_boundaries: bool = True
    max_sentences_per_chunk: int = 5
    cleanup: TextCleanupOptions = field(default_factory=TextCleanupOptions)
    model_name: str = "all-mpnet-base-v2"
    model_cache_dir: Optional[Path] = None
    device: Optional[str] = None
    batch_size: int = 32
    vector_store_backend: str = "chroma"
    vector_store_dir: Path = Path(".chroma_db")
    collection_name: str = "documents"
    similarity_threshold: float = 0.35
    default_top_k: int = 3
    enable_dynamic_top_k: bool = True
    enable_deduplication: bool = True
    metrics_enabled: bool = True

    def __post_init__(self):
        """Normalize paths and enums, validate the backend name."""
        if self.model_cache_dir is not None and not isinstance(self.model_cache_dir, Path):
            self.model_cache_dir = Path(self.model_cache_dir)
        if not isinstance(self.vector_store_dir, Path):
            self.vector_store_dir = Path(self.vector_store_dir)
        self.chunking_strategy = ChunkingStrategyType(self.chunking_strategy)
        if self.vector_store_backend not in VECTOR_STORE_BACKENDS:
            raise ValueError(
                f"vector_store_backend must be one of {VECTOR_STORE_BACKENDS}, "
                f"got {self.vector_store_backend!r}"
            )

    def chunking_options(self) -> ChunkingOptions:
        return ChunkingOptions(
            chunk_size=self.chunk_size,
            overlap_size=self.chunk_overlap,
            respect_sentence_boundaries=self.respect_sentence_boundaries,
            max_sentences_per_chunk=self.max_sentences_per_chunk or None,
        )

    def retrieval_options(self) -> RetrievalOptions:
        return RetrievalOptions(
            top_k=0 if self.enable_dynamic_top_k else self.default_top_k,
            similarity_threshold=self.similarity_threshold,
            enable_dynamic_top_k=self.enable_dynamic_top_k,
            enable_deduplication=self.enable_deduplication,
        )


def load_config_from_env() -> RAGConfig:
    """Load pipeline configuration from environment variables.

    Environment variables:
        RAG_CHUNKING_STRATEGY: fixed_size, sliding_window or sentence_aware
            (default: sentence_aware)
        RAG_CHUNK_SIZE: Chunk size in characters (default: 600)
        RAG_CHUNK_OVERLAP: Overlap in characters (default: 100)
        RAG_RESPECT_SENTENCES: Prefer sentence boundaries (default: true)
        RAG_MAX_SENTENCES: Sentence cap per chunk, 0 for none (default: 5)
        RAG_CLEANUP_ENABLED: Apply text cleanup before chunking (default: true)
        RAG_MODEL: Sentence-transformer model name (default: all-mpnet-base-v2)
        RAG_MODEL_CACHE_DIR: Model cache directory path
        RAG_DEVICE: Model device (default: auto-detect)
        RAG_BATCH_SIZE: Embedding batch size (default: 32)
        RAG_VECTOR_STORE: chroma or memory (default: chroma)
        RAG_VECTOR_STORE_DIR: ChromaDB persistence directory
        RAG_COLLECTION_NAME: ChromaDB collection name (default: documents)
        RAG_SIMILARITY_THRESHOLD: Minimum similarity score (default: 0.35)
        RAG_TOP_K: Default result count (default: 3)
        RAG_DYNAMIC_TOP_K: Enable query-aware result sizing (default: true)
        RAG_DEDUPLICATION: Enable near-duplicate suppression (default: true)
        RAG_METRICS_ENABLED: Record retrieval metrics (default: true)

    Invalid numeric or enum values fall back to the defaults.

    Returns:
        RAGConfig: Configuration object with values from environment
    """

    def str_to_bool(value: Optional[str], default: bool = True) -> bool:
        """Convert string to boolean, handling various formats."""
        if value is None:
            return default
        return value.lower() in ('true', '1', 'yes', 'on', 'enabled')

    def str_to_float(value: Optional[str], default: float) -> float:
        """Convert string to float with error handling."""
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            return default

    def str_to_int(value: Optional[str], default: int) -> int:
        """Convert string to int with error handling."""
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            return default

    strategy_str = os.getenv('RAG_CHUNKING_STRATEGY', ChunkingStrategyType.SENTENCE_AWARE.value)
    try:
        chunking_strategy = ChunkingStrategyType(strategy_str.lower())
    except ValueError:
        chunking_strategy = ChunkingStrategyType.SENTENCE_AWARE

    backend = os.getenv('RAG_VECTOR_STORE', 'chroma').lower()
    if backend not in VECTOR_STORE_BACKENDS:
        backend = 'chroma'

    model_cache_dir_str = os.getenv('RAG_MODEL_CACHE_DIR')
    vector_store_dir_str = os.getenv('RAG_VECTOR_STORE_DIR')

    return RAGConfig(
        chunking_strategy=chunking_strategy,
        chunk_size=str_to_int(os.getenv('RAG_CHUNK_SIZE'), 600),
        chunk_overlap=str_to_int(os.getenv('RAG_CHUNK_OVERLAP'), 100),
        respect_sentence_boundaries=str_to_bool(os.getenv('RAG_RESPECT_SENTENCES'), default=True),
        max_sentences_per_chunk=str_to_int(os.getenv('RAG_MAX_SENTENCES'), 5),
        cleanup=TextCleanupOptions(
            enabled=str_to_bool(os.getenv('RAG_CLEANUP_ENABLED'), default=True),
        ),
        model_name=os.getenv('RAG_MODEL', 'all-mpnet-base-v2'),
        model_cache_dir=Path(model_cache_dir_str) if model_cache_dir_str else None,
        device=os.getenv('RAG_DEVICE') or None,
        batch_size=str_to_int(os.getenv('RAG_BATCH_SIZE'), 32),
        vector_store_backend=backend,
        vector_store_dir=Path(vector_store_dir_str) if vector_store_dir_str else Path(".chroma_db"),
        collection_name=os.getenv('RAG_COLLECTION_NAME', 'documents'),
        similarity_threshold=str_to_float(os.getenv('RAG_SIMILARITY_THRESHOLD'), 0.35),
        default_top_k=str_to_int(os.getenv('RAG_TOP_K'), 3),
        enable_dynamic_top_k=str_to_bool(os.getenv('RAG_DYNAMIC_TOP_K'), default=True),
        enable_deduplication=str_to_bool(os.getenv('RAG_DEDUPLICATION'), default=True),
        metrics_enabled=str_to_bool(os.getenv('RAG_METRICS_ENABLED'), default=True),
    )

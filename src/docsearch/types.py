"""
Common data types for the retrieval pipeline.

These types define the values passed between the chunking strategies,
the vector stores, the retrieval engine and the pipeline.
"""

import os
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


@dataclass(frozen=True)
class Document:
    """A source document handed to chunking.

    Attributes:
        document_id: Unique identifier of the document
        content: Text content of the document
        source: Source identifier (file name, URL)
        page: Page number for multi-page sources
        metadata: Arbitrary key/value metadata copied onto every chunk
    """

    document_id: str
    content: str
    source: str = ""
    page: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_text(
        cls,
        text: str,
        source: str,
        document_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "Document":
        """Create a document from raw text.

        Args:
            text: Document text
            source: Source identifier; only the basename of a path is kept
            document_id: Document ID (default: generated uuid4)
            metadata: Optional metadata

        Returns:
            New Document instance
        """
        if "/" in source or os.sep in source:
            source = os.path.basename(source.rstrip("/" + os.sep)) or source
        return cls(
            document_id=document_id or str(uuid.uuid4()),
            content=text,
            source=source,
            metadata=dict(metadata or {}),
        )


@dataclass(frozen=True)
class Chunk:
    """A contiguous span of a document's cleaned text."""

    chunk_id: str
    text: str
    index: int
    document_id: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate chunk."""
        if not self.chunk_id:
            raise ValueError("chunk_id cannot be empty")
        if self.index < 0:
            raise ValueError(f"index must be non-negative, got {self.index}")

    @classmethod
    def create(
        cls,
        text: str,
        index: int,
        document_id: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "Chunk":
        """Build a chunk with an ID derived from its document and index."""
        return cls(
            chunk_id=f"{document_id}_chunk_{index}",
            text=text,
            index=index,
            document_id=document_id,
            metadata=dict(metadata or {}),
        )


@dataclass
class ChunkingOptions:
    """Options controlling how documents are split into chunks.

    Attributes:
        chunk_size: Target chunk size in characters
        overlap_size: Characters of overlap between consecutive chunks
        respect_sentence_boundaries: Prefer sentence-aware chunking
        max_sentences_per_chunk: Upper bound on sentences per chunk (None for no cap)
    """

    chunk_size: int = 600
    overlap_size: int = 100
    respect_sentence_boundaries: bool = True
    max_sentences_per_chunk: Optional[int] = 5

    def __post_init__(self):
        """Validate sizes so the chunking loops always terminate."""
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.overlap_size < 0:
            raise ValueError(f"overlap_size cannot be negative, got {self.overlap_size}")


@dataclass
class MetadataFilter:
    """Exact-match conjunction of metadata constraints."""

    filters: Dict[str, Any] = field(default_factory=dict)

    def matches(self, metadata: Dict[str, Any]) -> bool:
        for key, value in self.filters.items():
            if key not in metadata or metadata[key] != value:
                return False
        return True


class QuestionType(str, Enum):
    """Heuristic classification of a query."""

    FACT = "Fact"
    EXPLANATORY = "Explanatory"
    LIST = "List"
    GENERAL = "General"


@dataclass
class RetrievalOptions:
    """Options for a single retrieval request.

    Attributes:
        top_k: Maximum results to return; 0 selects dynamic sizing
        similarity_threshold: Minimum similarity; <= 0 selects the engine default
        enable_dynamic_top_k: Size top_k from the query classification
        enable_deduplication: Suppress near-duplicate chunks
        filter: Optional metadata filter forwarded to the vector store
    """

    top_k: int = 0
    similarity_threshold: float = 0.35
    enable_dynamic_top_k: bool = True
    enable_deduplication: bool = True
    filter: Optional[MetadataFilter] = None


@dataclass
class RetrievalResult:
    """A retrieved chunk with its similarity to the query."""

    chunk: Chunk
    similarity: float
    source: Optional[str] = None
    page: Optional[int] = None


@dataclass
class RetrievalMetadata:
    """Diagnostic snapshot of the parameters used for a retrieval.

    ``chunks_before_deduplication`` counts cache hits before the low-value
    filter runs, not only before deduplication.
    """

    effective_top_k: int
    similarity_threshold: float
    question_type: QuestionType
    chunks_before_deduplication: int
    dynamic_top_k_used: bool
    deduplication_applied: bool

    def to_dict(self) -> Dict[str, Any]:
        """Convert metadata to dictionary for logging."""
        return {
            'effective_top_k': self.effective_top_k,
            'similarity_threshold': self.similarity_threshold,
            'question_type': self.question_type.value,
            'chunks_before_deduplication': self.chunks_before_deduplication,
            'dynamic_top_k_used': self.dynamic_top_k_used,
            'deduplication_applied': self.deduplication_applied,
        }


@dataclass
class VectorData:
    """A vector with its ID and metadata, ready for upsert."""

    vector_id: str
    vector: Sequence[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VectorSearchResult:
    """Result from a vector store similarity search."""

    vector_id: str
    similarity: float
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class QueryResult:
    """Context chunks returned for a query plus retrieval diagnostics."""

    context: List[RetrievalResult] = field(default_factory=list)
    metadata: Optional[RetrievalMetadata] = None


@dataclass
class IngestResult:
    """Result from ingesting a single document."""

    document_id: str
    chunks_created: int = 0
    embeddings_generated: int = 0
    tokens_indexed: int = 0
    processing_time_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            'document_id': self.document_id,
            'chunks_created': self.chunks_created,
            'embeddings_generated': self.embeddings_generated,
            'tokens_indexed': self.tokens_indexed,
            'processing_time_seconds': self.processing_time_seconds,
        }

"""Unit tests for common data types."""

import pytest

from docsearch.types import (
    Chunk,
    Document,
    IngestResult,
    MetadataFilter,
    QuestionType,
    RetrievalMetadata,
)


class TestDocument:
    """Tests for Document dataclass."""

    def test_from_text_generates_id(self):
        """Test that an ID is generated when none is given."""
        first = Document.from_text("content", "notes.txt")
        second = Document.from_text("content", "notes.txt")

        assert first.document_id
        assert first.document_id != second.document_id

    def test_from_text_keeps_basename(self):
        """Test that only the file name of a path source is kept."""
        document = Document.from_text("content", "/data/reports/q3.pdf", document_id="q3")

        assert document.source == "q3.pdf"
        assert document.document_id == "q3"

    def test_from_text_copies_metadata(self):
        """Test that metadata is copied."""
        metadata = {"author": "lab"}

        document = Document.from_text("content", "a.txt", metadata=metadata)
        metadata["author"] = "changed"

        assert document.metadata == {"author": "lab"}


class TestChunk:
    """Tests for Chunk dataclass."""

    def test_create(self):
        """Test creating a chunk with a derived ID."""
        chunk = Chunk.create("text", 4, "doc", {"k": "v"})

        assert chunk.chunk_id == "doc_chunk_4"
        assert chunk.index == 4
        assert chunk.document_id == "doc"
        assert chunk.metadata == {"k": "v"}

    def test_empty_id_rejected(self):
        """Test chunk ID validation."""
        with pytest.raises(ValueError, match="chunk_id cannot be empty"):
            Chunk(chunk_id="", text="text", index=0, document_id="doc")

    def test_negative_index_rejected(self):
        """Test index validation."""
        with pytest.raises(ValueError, match="index must be non-negative"):
            Chunk(chunk_id="c", text="text", index=-1, document_id="doc")


class TestMetadataFilter:
    """Tests for MetadataFilter dataclass."""

    def test_matches_all_constraints(self):
        """Test conjunction of exact matches."""
        metadata_filter = MetadataFilter({"lang": "en", "year": 2024})

        assert metadata_filter.matches({"lang": "en", "year": 2024, "extra": 1})
        assert not metadata_filter.matches({"lang": "en", "year": 2023})
        assert not metadata_filter.matches({"lang": "en"})

    def test_empty_filter_matches_everything(self):
        """Test that an empty filter accepts any metadata."""
        assert MetadataFilter().matches({})


class TestSerialization:
    """Tests for to_dict helpers."""

    def test_retrieval_metadata_to_dict(self):
        """Test retrieval metadata conversion."""
        metadata = RetrievalMetadata(
            effective_top_k=5,
            similarity_threshold=0.35,
            question_type=QuestionType.EXPLANATORY,
            chunks_before_deduplication=9,
            dynamic_top_k_used=True,
            deduplication_applied=False,
        )

        assert metadata.to_dict() == {
            'effective_top_k': 5,
            'similarity_threshold': 0.35,
            'question_type': "Explanatory",
            'chunks_before_deduplication': 9,
            'dynamic_top_k_used': True,
            'deduplication_applied': False,
        }

    def test_ingest_result_to_dict(self):
        """Test ingest result conversion."""
        data = IngestResult(document_id="doc", chunks_created=3).to_dict()

        assert data['document_id'] == "doc"
        assert data['chunks_created'] == 3
        assert data['tokens_indexed'] == 0

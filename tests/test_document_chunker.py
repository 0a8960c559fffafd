"""Unit tests for document chunking module."""

import pytest

from docsearch.document_chunker import (
    ChunkingStrategyType,
    FixedSizeChunkingStrategy,
    SentenceAwareChunkingStrategy,
    SlidingWindowChunkingStrategy,
    create_chunking_strategy,
)
from docsearch.interfaces import ChunkingStrategy
from docsearch.types import ChunkingOptions, Document


def make_document(content, document_id="doc", **metadata):
    return Document(document_id=document_id, content=content, source="test.txt", metadata=metadata)


def numbered_sentences(count):
    """Uniform sentences of 57 characters plus terminator."""
    return "".join(
        f"Sentence number {i:02d} talks about a topic in moderate detail. "
        for i in range(count)
    )


class TestChunkingOptions:
    """Tests for ChunkingOptions validation."""

    def test_defaults(self):
        """Test default option values."""
        options = ChunkingOptions()

        assert options.chunk_size == 600
        assert options.overlap_size == 100
        assert options.respect_sentence_boundaries is True
        assert options.max_sentences_per_chunk == 5

    @pytest.mark.parametrize("chunk_size", [0, -10])
    def test_non_positive_chunk_size_rejected(self, chunk_size):
        """Test that a non-positive chunk size fails fast."""
        with pytest.raises(ValueError, match="chunk_size must be positive"):
            ChunkingOptions(chunk_size=chunk_size)

    def test_negative_overlap_rejected(self):
        """Test that a negative overlap fails fast."""
        with pytest.raises(ValueError, match="overlap_size cannot be negative"):
            ChunkingOptions(overlap_size=-1)


class TestFixedSizeChunkingStrategy:
    """Tests for FixedSizeChunkingStrategy."""

    def test_windows_with_overlap(self):
        """Test window positions with overlap."""
        strategy = FixedSizeChunkingStrategy(ChunkingOptions(chunk_size=4, overlap_size=1))

        chunks = strategy.chunk(make_document("abcdefghij"))

        assert [c.text for c in chunks] == ["abcd", "defg", "ghij"]

    def test_terminates_when_last_window_is_clipped(self):
        """Test that a clipped final window ends chunking."""
        strategy = FixedSizeChunkingStrategy(ChunkingOptions(chunk_size=4, overlap_size=2))

        chunks = strategy.chunk(make_document("abcdefghi"))

        assert [c.text for c in chunks] == ["abcd", "cdef", "efgh", "ghi"]

    def test_overlap_not_smaller_than_chunk_size(self):
        """Test forced advance when overlap would not move the window."""
        strategy = FixedSizeChunkingStrategy(ChunkingOptions(chunk_size=4, overlap_size=4))

        chunks = strategy.chunk(make_document("abcdefghij"))

        assert [c.text for c in chunks] == ["abcd", "efgh", "ij"]

    @pytest.mark.parametrize("chunk_size", [1, 3, 7, 50, 1000])
    def test_coverage_without_overlap(self, chunk_size):
        """Test that chunks reconstruct the text exactly when overlap is zero."""
        text = "The quick brown fox jumps over the lazy dog.\nPack my box with five dozen liquor jugs."
        strategy = FixedSizeChunkingStrategy(ChunkingOptions(chunk_size=chunk_size, overlap_size=0))

        chunks = strategy.chunk(make_document(text))

        assert "".join(c.text for c in chunks) == text

    def test_short_text_single_chunk(self):
        """Test text shorter than the chunk size."""
        strategy = FixedSizeChunkingStrategy(ChunkingOptions(chunk_size=100, overlap_size=10))

        chunks = strategy.chunk(make_document("short text"))

        assert len(chunks) == 1
        assert chunks[0].text == "short text"

    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_blank_content(self, content):
        """Test that blank content yields no chunks."""
        assert FixedSizeChunkingStrategy().chunk(make_document(content)) == []

    def test_chunk_ids_and_metadata(self):
        """Test chunk IDs, indices and copied document metadata."""
        strategy = FixedSizeChunkingStrategy(ChunkingOptions(chunk_size=5, overlap_size=0))

        chunks = strategy.chunk(make_document("0123456789abc", document_id="report", lang="en"))

        assert [c.index for c in chunks] == [0, 1, 2]
        assert [c.chunk_id for c in chunks] == ["report_chunk_0", "report_chunk_1", "report_chunk_2"]
        assert all(c.document_id == "report" for c in chunks)
        assert all(c.metadata == {"lang": "en"} for c in chunks)

    def test_restartable(self):
        """Test that repeated calls give identical results."""
        strategy = FixedSizeChunkingStrategy(ChunkingOptions(chunk_size=6, overlap_size=2))
        document = make_document("a fairly ordinary line of text")

        assert strategy.chunk(document) == strategy.chunk(document)


class TestSlidingWindowChunkingStrategy:
    """Tests for SlidingWindowChunkingStrategy."""

    def test_step(self):
        """Test step derived from size and overlap."""
        strategy = SlidingWindowChunkingStrategy(ChunkingOptions(chunk_size=10, overlap_size=3))

        assert strategy.step == 7

    def test_step_falls_back_to_half_chunk(self):
        """Test fallback when overlap is not smaller than the chunk."""
        strategy = SlidingWindowChunkingStrategy(ChunkingOptions(chunk_size=10, overlap_size=12))

        assert strategy.step == 5

    def test_step_never_below_one(self):
        """Test minimum step for a one-character chunk."""
        strategy = SlidingWindowChunkingStrategy(ChunkingOptions(chunk_size=1, overlap_size=1))

        assert strategy.step == 1

    def test_windows(self):
        """Test window positions."""
        strategy = SlidingWindowChunkingStrategy(ChunkingOptions(chunk_size=4, overlap_size=1))

        chunks = strategy.chunk(make_document("abcdefghij"))

        assert [c.text for c in chunks] == ["abcd", "defg", "ghij"]

    def test_stops_after_window_reaching_end(self):
        """Test that no chunk follows the window that reaches the end."""
        strategy = SlidingWindowChunkingStrategy(ChunkingOptions(chunk_size=6, overlap_size=4))

        chunks = strategy.chunk(make_document("abcdefghij"))

        assert [c.text for c in chunks] == ["abcdef", "cdefgh", "efghij"]
        assert [c.index for c in chunks] == [0, 1, 2]

    def test_blank_content(self):
        """Test that blank content yields no chunks."""
        assert SlidingWindowChunkingStrategy().chunk(make_document("  ")) == []


class TestSentenceAwareChunkingStrategy:
    """Tests for SentenceAwareChunkingStrategy."""

    def test_split_sentences(self):
        """Test splitting on terminal punctuation followed by whitespace."""
        strategy = SentenceAwareChunkingStrategy()

        sentences = strategy.split_sentences("One. Two!  Three?! Four")

        assert sentences == ["One", "Two", "Three", "Four"]

    def test_split_keeps_inner_punctuation(self):
        """Test that punctuation without following whitespace does not split."""
        strategy = SentenceAwareChunkingStrategy()

        assert strategy.split_sentences("Version 2.5 is out. Try it") == ["Version 2.5 is out", "Try it"]

    def test_single_chunk_for_short_text(self):
        """Test that a short text becomes one chunk."""
        strategy = SentenceAwareChunkingStrategy(ChunkingOptions(chunk_size=600, overlap_size=0))

        chunks = strategy.chunk(make_document("First sentence. Second sentence. Third"))

        assert len(chunks) == 1
        assert chunks[0].text == "First sentence Second sentence Third"

    def test_max_sentences_per_chunk(self):
        """Test the sentence cap without overlap."""
        options = ChunkingOptions(chunk_size=1000, overlap_size=0, max_sentences_per_chunk=2)
        strategy = SentenceAwareChunkingStrategy(options)

        chunks = strategy.chunk(make_document("A one. B two. C three. D four. E five"))

        assert [c.text for c in chunks] == ["A one B two", "C three D four", "E five"]

    def test_no_sentence_cap(self):
        """Test that None disables the sentence cap."""
        options = ChunkingOptions(chunk_size=1000, overlap_size=0, max_sentences_per_chunk=None)
        strategy = SentenceAwareChunkingStrategy(options)

        chunks = strategy.chunk(make_document(numbered_sentences(10)))

        assert len(chunks) == 1

    def test_size_limit(self):
        """Test that chunks are finalized before exceeding the size limit."""
        options = ChunkingOptions(chunk_size=120, overlap_size=0, max_sentences_per_chunk=None)
        strategy = SentenceAwareChunkingStrategy(options)

        chunks = strategy.chunk(make_document(numbered_sentences(6)))

        assert len(chunks) == 3
        assert all(len(c.text) <= 120 for c in chunks)

    def test_overlap_seeds_next_chunk(self):
        """Test that the last sentence of a chunk starts the next one."""
        options = ChunkingOptions(chunk_size=1000, overlap_size=10, max_sentences_per_chunk=2)
        strategy = SentenceAwareChunkingStrategy(options)

        chunks = strategy.chunk(make_document("Alpha one. Beta two. Gamma three. Delta four"))

        assert [c.text for c in chunks] == [
            "Alpha one Beta two",
            "Beta two Gamma three",
            "Gamma three Delta four",
        ]

    def test_overlap_seed_band(self):
        """Test that the seed grows within the upper band and stops at the lower band."""
        strategy = SentenceAwareChunkingStrategy(ChunkingOptions(overlap_size=20))

        # Sizes include the joining space: 10, 10, 10
        seed, size = strategy._overlap_seed(["aaaaaaaaa", "bbbbbbbbb", "ccccccccc"])

        assert seed == ["bbbbbbbbb", "ccccccccc"]
        assert size == 20

    def test_overlap_seed_keeps_long_last_sentence(self):
        """Test that the last sentence is kept even when above the band."""
        strategy = SentenceAwareChunkingStrategy(ChunkingOptions(overlap_size=5))

        seed, size = strategy._overlap_seed(["short", "a much longer closing sentence"])

        assert seed == ["a much longer closing sentence"]
        assert size == len("a much longer closing sentence") + 1

    def test_end_to_end_scenario(self):
        """Test a 1500 character document with default options."""
        text = numbered_sentences(26)[:1500]
        assert len(text) == 1500
        strategy = SentenceAwareChunkingStrategy(
            ChunkingOptions(
                chunk_size=600,
                overlap_size=100,
                respect_sentence_boundaries=True,
                max_sentences_per_chunk=5,
            )
        )

        chunks = strategy.chunk(make_document(text))

        assert len(chunks) >= 2
        assert all(len(c.text) <= 720 for c in chunks)
        assert [c.index for c in chunks] == list(range(len(chunks)))

    def test_chunk_count_monotonic_in_chunk_size(self):
        """Test that shrinking the chunk size never reduces the chunk count."""
        text = (
            "Short one. A slightly longer sentence follows here. Tiny. "
            "This sentence is considerably longer than the others in the text. "
            + numbered_sentences(12)
        )
        counts = []
        for chunk_size in [2000, 800, 400, 250, 150, 100, 60, 30, 10]:
            options = ChunkingOptions(chunk_size=chunk_size, overlap_size=0, max_sentences_per_chunk=5)
            counts.append(len(SentenceAwareChunkingStrategy(options).chunk(make_document(text))))

        assert counts == sorted(counts)

    def test_blank_content(self):
        """Test that blank content yields no chunks."""
        assert SentenceAwareChunkingStrategy().chunk(make_document("\n \t")) == []


class TestCreateChunkingStrategy:
    """Tests for create_chunking_strategy factory."""

    @pytest.mark.parametrize("strategy_type,expected", [
        (ChunkingStrategyType.FIXED_SIZE, FixedSizeChunkingStrategy),
        (ChunkingStrategyType.SLIDING_WINDOW, SlidingWindowChunkingStrategy),
        (ChunkingStrategyType.SENTENCE_AWARE, SentenceAwareChunkingStrategy),
        ("sliding_window", SlidingWindowChunkingStrategy),
    ])
    def test_explicit_type(self, strategy_type, expected):
        """Test creating each strategy type."""
        strategy = create_chunking_strategy(ChunkingOptions(), strategy_type)

        assert isinstance(strategy, expected)
        assert isinstance(strategy, ChunkingStrategy)

    def test_default_respects_sentence_boundaries(self):
        """Test default selection from options."""
        assert isinstance(create_chunking_strategy(), SentenceAwareChunkingStrategy)
        assert isinstance(
            create_chunking_strategy(ChunkingOptions(respect_sentence_boundaries=False)),
            FixedSizeChunkingStrategy,
        )

    def test_options_passed_through(self):
        """Test that options reach the strategy."""
        options = ChunkingOptions(chunk_size=42, overlap_size=7)

        strategy = create_chunking_strategy(options, ChunkingStrategyType.FIXED_SIZE)

        assert strategy.options is options

    def test_unknown_type(self):
        """Test that an unknown strategy is rejected."""
        with pytest.raises(ValueError, match="Unknown chunking strategy"):
            create_chunking_strategy(ChunkingOptions(), "paragraph")

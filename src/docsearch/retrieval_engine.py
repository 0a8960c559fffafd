"""Semantic retrieval with query-aware sizing, filtering and deduplication.

The engine classifies each query, embeds it, over-fetches candidates from
the vector store, maps candidate IDs back to registered chunks, drops
low-value chunks and suppresses near-duplicates before returning a bounded,
ranked result list.

Chunks are registered with the engine separately from the vector store
upsert; keeping the two in sync is the caller's job. Candidates the store
returns without a registered chunk are skipped.
"""

import logging
import re
import threading
from typing import Dict, Iterable, List, Optional, Tuple

from .interfaces import EmbeddingProvider, VectorStore
from .types import (
    Chunk,
    QuestionType,
    RetrievalMetadata,
    RetrievalOptions,
    RetrievalResult,
)


logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 3
DEFAULT_SIMILARITY_THRESHOLD = 0.35
MIN_SEARCH_CANDIDATES = 15
OVERFETCH_FACTOR = 3

MIN_CHUNK_CHARS = 20
MIN_NON_WHITESPACE_CHARS = 10

TEXT_OVERLAP_DUPLICATE_THRESHOLD = 0.75
FINGERPRINT_DUPLICATE_THRESHOLD = 0.7
FINGERPRINT_MAX_TOKENS = 10

FACT_QUESTION_PATTERN = re.compile(
    r"\b(what|who|when|where|which|how many|how much)\b", re.IGNORECASE
)
EXPLANATORY_QUESTION_PATTERN = re.compile(
    r"\b(how|why|explain|describe|tell me about|what is|what are)\b", re.IGNORECASE
)
LIST_QUESTION_PATTERN = re.compile(
    r"\b(list|name|enumerate|all|examples?)\b", re.IGNORECASE
)

DYNAMIC_TOP_K = {
    QuestionType.FACT: 2,
    QuestionType.EXPLANATORY: 5,
    QuestionType.LIST: 4,
}

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "from", "as", "is", "was", "are", "were", "been", "be", "have", "has", "had",
    "do", "does", "did", "will", "would", "could", "should", "may", "might", "must",
    "this", "that", "these", "those", "it", "its", "they", "them", "their", "there",
    "what", "which", "who", "whom", "whose", "where", "when", "why", "how",
})

_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"\W+")


class ChunkCache:
    """Thread-safe ``chunk_id -> Chunk`` map.

    Every operation holds an internal lock, so registrations from an
    ingestion thread may interleave with lookups from concurrent queries.
    ``get_many`` resolves a whole candidate list under one lock acquisition,
    giving each retrieval a consistent view of the cache.
    """

    def __init__(self):
        self._chunks: Dict[str, Chunk] = {}
        self._lock = threading.RLock()

    def register(self, chunk: Chunk) -> None:
        with self._lock:
            self._chunks[chunk.chunk_id] = chunk

    def register_many(self, chunks: Iterable[Chunk]) -> int:
        count = 0
        with self._lock:
            for chunk in chunks:
                self._chunks[chunk.chunk_id] = chunk
                count += 1
        return count

    def remove_many(self, chunk_ids: Iterable[str]) -> int:
        removed = 0
        with self._lock:
            for chunk_id in chunk_ids:
                if self._chunks.pop(chunk_id, None) is not None:
                    removed += 1
        return removed

    def get(self, chunk_id: str) -> Optional[Chunk]:
        with self._lock:
            return self._chunks.get(chunk_id)

    def get_many(self, chunk_ids: Iterable[str]) -> List[Optional[Chunk]]:
        with self._lock:
            return [self._chunks.get(chunk_id) for chunk_id in chunk_ids]

    def clear(self) -> None:
        with self._lock:
            self._chunks.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._chunks)

    def __contains__(self, chunk_id: object) -> bool:
        with self._lock:
            return chunk_id in self._chunks


def classify_query(query: str) -> QuestionType:
    """Classify a query by its question words.

    Fact is checked before Explanatory, so "What is X?" is a Fact question.
    """
    if FACT_QUESTION_PATTERN.search(query):
        return QuestionType.FACT
    if EXPLANATORY_QUESTION_PATTERN.search(query):
        return QuestionType.EXPLANATORY
    if LIST_QUESTION_PATTERN.search(query):
        return QuestionType.LIST
    return QuestionType.GENERAL


def determine_top_k(question_type: QuestionType, default_top_k: int = DEFAULT_TOP_K) -> int:
    """Map a question type to a result count."""
    if question_type in DYNAMIC_TOP_K:
        return DYNAMIC_TOP_K[question_type]
    return default_top_k if default_top_k > 0 else DEFAULT_TOP_K


def normalize_for_comparison(text: str) -> str:
    """Lowercase, collapse whitespace runs to single spaces and trim."""
    return _WHITESPACE.sub(" ", text.lower()).strip()


def calculate_text_overlap(text1: str, text2: str) -> float:
    """Jaccard overlap of the whitespace-separated word sets of two texts."""
    if not text1 or not text2:
        return 0.0

    words1 = set(text1.lower().split())
    words2 = set(text2.lower().split())
    if not words1 or not words2:
        return 0.0

    union = words1 | words2
    return len(words1 & words2) / len(union)


def create_semantic_fingerprint(text: str) -> str:
    """Build an order-independent signature of a text's salient words.

    Tokens longer than two characters that are not stop words are sorted
    alphabetically; the first ten are joined with spaces.
    """
    words = sorted(
        word for word in _NON_WORD.split(text.lower())
        if word.strip() and len(word) > 2 and word not in STOP_WORDS
    )
    return " ".join(words[:FINGERPRINT_MAX_TOKENS])


def _is_duplicate(
    normalized: str,
    fingerprint: str,
    seen_texts: List[str],
    seen_fingerprints: List[str],
) -> bool:
    if normalized in seen_texts:
        return True

    for seen in seen_texts:
        if calculate_text_overlap(normalized, seen) > TEXT_OVERLAP_DUPLICATE_THRESHOLD:
            return True

    for seen in seen_fingerprints:
        if calculate_text_overlap(fingerprint, seen) > FINGERPRINT_DUPLICATE_THRESHOLD:
            return True

    return False


def deduplicate_results(results: List[RetrievalResult], max_results: int) -> List[RetrievalResult]:
    """Suppress near-duplicate results.

    Candidates are visited by descending similarity. A candidate is skipped
    when its normalized text equals an accepted one, its word-set overlap
    with an accepted text exceeds 0.75, or its fingerprint overlap with an
    accepted fingerprint exceeds 0.7.

    Args:
        results: Candidate results
        max_results: Maximum number of results to accept

    Returns:
        Accepted results, highest similarity first
    """
    if not results:
        return []

    accepted: List[RetrievalResult] = []
    seen_texts: List[str] = []
    seen_fingerprints: List[str] = []

    for result in sorted(results, key=lambda r: r.similarity, reverse=True):
        if len(accepted) >= max_results:
            break

        text = result.chunk.text.strip()
        normalized = normalize_for_comparison(text)
        fingerprint = create_semantic_fingerprint(text)

        if _is_duplicate(normalized, fingerprint, seen_texts, seen_fingerprints):
            logger.debug(f"Skipping near-duplicate chunk {result.chunk.chunk_id}")
            continue

        seen_texts.append(normalized)
        seen_fingerprints.append(fingerprint)
        accepted.append(result)

    return accepted


def filter_low_value_chunks(results: List[RetrievalResult], threshold: float) -> List[RetrievalResult]:
    """Drop results that are too short or too weakly similar to be useful context."""
    filtered = []
    for result in results:
        text = result.chunk.text
        if len(text.strip()) < MIN_CHUNK_CHARS:
            continue
        if result.similarity < threshold:
            continue
        if len(_WHITESPACE.sub("", text)) < MIN_NON_WHITESPACE_CHARS:
            continue
        filtered.append(result)
    return filtered


class RetrievalEngine:
    """Retrieves ranked chunks for a query.

    Attributes:
        embedding_provider: Provider used to embed queries
        vector_store: Store searched for candidate vectors
        default_top_k: Result count when none is requested
        default_similarity_threshold: Threshold when none is requested
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        vector_store: VectorStore,
        default_top_k: int = DEFAULT_TOP_K,
        default_similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        cache: Optional[ChunkCache] = None,
    ):
        if embedding_provider is None:
            raise ValueError("embedding_provider is required")
        if vector_store is None:
            raise ValueError("vector_store is required")

        self.embedding_provider = embedding_provider
        self.vector_store = vector_store
        self.default_top_k = default_top_k if default_top_k > 0 else DEFAULT_TOP_K
        self.default_similarity_threshold = (
            default_similarity_threshold if default_similarity_threshold > 0
            else DEFAULT_SIMILARITY_THRESHOLD
        )
        self.cache = cache if cache is not None else ChunkCache()
        logger.info(
            f"RetrievalEngine initialized (default_top_k={self.default_top_k}, "
            f"threshold={self.default_similarity_threshold})"
        )

    def register_chunk(self, chunk: Chunk) -> None:
        """Register a chunk so search hits on its ID can be resolved."""
        self.cache.register(chunk)
        logger.debug(f"Registered chunk {chunk.chunk_id} for document {chunk.document_id}")

    def register_chunks(self, chunks: Iterable[Chunk]) -> None:
        count = self.cache.register_many(chunks)
        logger.debug(f"Registered {count} chunks")

    def unregister_chunks(self, chunk_ids: Iterable[str]) -> None:
        """Remove chunks so search hits on their IDs are dropped."""
        count = self.cache.remove_many(chunk_ids)
        logger.debug(f"Unregistered {count} chunks")

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Chunk cache cleared")

    @property
    def cached_chunk_count(self) -> int:
        return len(self.cache)

    def resolve_parameters(self, query: str, options: RetrievalOptions) -> Tuple[QuestionType, int, float, bool]:
        """Compute the question type, effective top-k and threshold for a query.

        Returns:
            Tuple of (question_type, effective_top_k, effective_threshold, dynamic_top_k_used)
        """
        question_type = classify_query(query)
        dynamic = options.enable_dynamic_top_k and options.top_k == 0

        if dynamic:
            top_k = determine_top_k(question_type, self.default_top_k)
        else:
            top_k = options.top_k if options.top_k > 0 else self.default_top_k

        threshold = (
            options.similarity_threshold if options.similarity_threshold > 0
            else self.default_similarity_threshold
        )
        return question_type, top_k, threshold, dynamic

    async def retrieve_with_metadata(
        self,
        query: str,
        options: Optional[RetrievalOptions] = None,
    ) -> Tuple[List[RetrievalResult], RetrievalMetadata]:
        """Retrieve relevant chunks together with retrieval diagnostics.

        Embedding-provider and vector-store errors propagate unchanged.

        Args:
            query: Search query
            options: Retrieval options (default: RetrievalOptions())

        Returns:
            Tuple of (ranked results, retrieval metadata)
        """
        options = options or RetrievalOptions()
        logger.info(f"Retrieving results for query: {query}")

        question_type, top_k, threshold, dynamic = self.resolve_parameters(query, options)
        logger.debug(
            f"Question type: {question_type.value}, effective top_k: {top_k}, threshold: {threshold}"
        )

        query_embedding = await self.embedding_provider.embed(query)
        logger.debug(f"Generated query embedding with dimension {len(query_embedding)}")

        search_top_k = max(top_k * OVERFETCH_FACTOR, MIN_SEARCH_CANDIDATES)
        search_results = await self.vector_store.search(
            query_embedding,
            search_top_k,
            threshold,
            options.filter,
        )
        logger.debug(f"Vector store returned {len(search_results)} search results")

        chunks = self.cache.get_many(r.vector_id for r in search_results)
        candidates = [
            RetrievalResult(chunk=chunk, similarity=hit.similarity)
            for hit, chunk in zip(search_results, chunks)
            if chunk is not None
        ]

        chunks_before_deduplication = len(candidates)
        logger.debug(f"Found {chunks_before_deduplication} chunks in cache before filtering")

        filtered = filter_low_value_chunks(candidates, threshold)
        logger.debug(f"Filtered to {len(filtered)} chunks after low-value filtering")

        if options.enable_deduplication:
            results = deduplicate_results(filtered, top_k)
        else:
            results = filtered[:top_k]

        metadata = RetrievalMetadata(
            effective_top_k=top_k,
            similarity_threshold=threshold,
            question_type=question_type,
            chunks_before_deduplication=chunks_before_deduplication,
            dynamic_top_k_used=dynamic,
            deduplication_applied=options.enable_deduplication,
        )

        logger.info(
            f"Retrieved {len(results)} results for query "
            f"(deduplication: {options.enable_deduplication})"
        )
        return results, metadata

    async def retrieve(
        self,
        query: str,
        options: Optional[RetrievalOptions] = None,
    ) -> List[RetrievalResult]:
        """Retrieve relevant chunks for a query, ranked by similarity."""
        results, _ = await self.retrieve_with_metadata(query, options)
        return results

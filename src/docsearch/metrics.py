"""Retrieval quality and latency metrics.

This module records per-query retrieval metrics (question type, result
counts, similarity scores, timings) and aggregates them for reporting.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .types import QuestionType, RetrievalMetadata


logger = logging.getLogger(__name__)


@dataclass
class QueryMetrics:
    """Metrics for a single retrieval.

    Attributes:
        question_type: Detected question type
        effective_top_k: Result bound used
        results_returned: Number of results returned
        chunks_before_deduplication: Cache hits before filtering
        query_time_ms: Time spent in retrieval (milliseconds)
        total_time_ms: Total time including result decoration (milliseconds)
        similarity_scores: Similarity scores of returned results
        error_occurred: Whether the query raised
        error_message: Error message if the query raised
        timestamp: When metrics were recorded
    """

    question_type: Optional[QuestionType] = None
    effective_top_k: int = 0
    results_returned: int = 0
    chunks_before_deduplication: int = 0
    query_time_ms: float = 0.0
    total_time_ms: float = 0.0
    similarity_scores: List[float] = field(default_factory=list)
    error_occurred: bool = False
    error_message: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict:
        """Convert metrics to dictionary for logging."""
        return {
            'question_type': self.question_type.value if self.question_type else None,
            'effective_top_k': self.effective_top_k,
            'results_returned': self.results_returned,
            'chunks_before_deduplication': self.chunks_before_deduplication,
            'query_time_ms': self.query_time_ms,
            'total_time_ms': self.total_time_ms,
            'avg_similarity': self._avg_similarity(),
            'min_similarity': min(self.similarity_scores) if self.similarity_scores else 0.0,
            'max_similarity': max(self.similarity_scores) if self.similarity_scores else 0.0,
            'error_occurred': self.error_occurred,
            'error_message': self.error_message,
            'timestamp': self.timestamp,
        }

    def _avg_similarity(self) -> float:
        if not self.similarity_scores:
            return 0.0
        return sum(self.similarity_scores) / len(self.similarity_scores)


@dataclass
class AggregatedMetrics:
    """Aggregated metrics across recorded queries."""

    total_queries: int = 0
    queries_by_type: Dict[str, int] = field(default_factory=dict)
    total_results: int = 0
    empty_result_count: int = 0
    error_count: int = 0
    avg_similarity: float = 0.0
    avg_query_time_ms: float = 0.0
    p95_query_time_ms: float = 0.0
    p99_query_time_ms: float = 0.0

    def to_dict(self) -> Dict:
        """Convert to dictionary."""
        return {
            'total_queries': self.total_queries,
            'queries_by_type': dict(self.queries_by_type),
            'total_results': self.total_results,
            'avg_results_per_query': self.total_results / self.total_queries if self.total_queries > 0 else 0.0,
            'empty_result_rate': self.empty_result_count / self.total_queries if self.total_queries > 0 else 0.0,
            'error_rate': self.error_count / self.total_queries if self.total_queries > 0 else 0.0,
            'avg_similarity': self.avg_similarity,
            'avg_query_time_ms': self.avg_query_time_ms,
            'p95_query_time_ms': self.p95_query_time_ms,
            'p99_query_time_ms': self.p99_query_time_ms,
        }


def _percentile(sorted_values: List[float], fraction: float) -> float:
    index = int(len(sorted_values) * fraction)
    return sorted_values[index] if index < len(sorted_values) else sorted_values[-1]


class MetricsCollector:
    """Collects and aggregates retrieval metrics.

    Attributes:
        metrics_history: List of all recorded metrics
        enabled: Whether metrics collection is enabled
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.metrics_history: List[QueryMetrics] = []
        logger.info(f"MetricsCollector initialized (enabled={enabled})")

    def record_query(
        self,
        metadata: Optional[RetrievalMetadata],
        similarity_scores: Optional[List[float]] = None,
        query_time_ms: float = 0.0,
        total_time_ms: float = 0.0,
        error: Optional[Exception] = None,
    ) -> QueryMetrics:
        """Record metrics for a retrieval.

        Args:
            metadata: Retrieval metadata (None when the query failed)
            similarity_scores: Similarity scores of returned results
            query_time_ms: Retrieval time in milliseconds
            total_time_ms: Total time in milliseconds
            error: Exception if the query failed

        Returns:
            QueryMetrics with the recorded values
        """
        scores = list(similarity_scores or [])
        metrics = QueryMetrics(
            question_type=metadata.question_type if metadata else None,
            effective_top_k=metadata.effective_top_k if metadata else 0,
            results_returned=len(scores),
            chunks_before_deduplication=metadata.chunks_before_deduplication if metadata else 0,
            query_time_ms=query_time_ms,
            total_time_ms=total_time_ms,
            similarity_scores=scores,
            error_occurred=error is not None,
            error_message=str(error) if error else None,
        )

        if not self.enabled:
            return metrics

        self.metrics_history.append(metrics)
        logger.debug(
            f"Recorded query: {metrics.results_returned} results in {total_time_ms:.2f}ms"
        )
        return metrics

    def get_aggregated_metrics(self) -> AggregatedMetrics:
        """Calculate aggregated metrics across all recorded queries."""
        if not self.metrics_history:
            return AggregatedMetrics()

        queries_by_type: Dict[str, int] = {}
        for m in self.metrics_history:
            if m.question_type is not None:
                key = m.question_type.value
                queries_by_type[key] = queries_by_type.get(key, 0) + 1

        all_scores = [s for m in self.metrics_history for s in m.similarity_scores]
        query_times = sorted(m.query_time_ms for m in self.metrics_history if m.query_time_ms > 0)

        if query_times:
            avg_query_time = sum(query_times) / len(query_times)
            p95 = _percentile(query_times, 0.95)
            p99 = _percentile(query_times, 0.99)
        else:
            avg_query_time = p95 = p99 = 0.0

        return AggregatedMetrics(
            total_queries=len(self.metrics_history),
            queries_by_type=queries_by_type,
            total_results=sum(m.results_returned for m in self.metrics_history),
            empty_result_count=sum(
                1 for m in self.metrics_history if m.results_returned == 0 and not m.error_occurred
            ),
            error_count=sum(1 for m in self.metrics_history if m.error_occurred),
            avg_similarity=sum(all_scores) / len(all_scores) if all_scores else 0.0,
            avg_query_time_ms=avg_query_time,
            p95_query_time_ms=p95,
            p99_query_time_ms=p99,
        )

    def print_summary(self):
        """Print a human-readable summary of metrics."""
        aggregated = self.get_aggregated_metrics()
        summary = aggregated.to_dict()

        print("\n" + "=" * 80)
        print("RETRIEVAL METRICS SUMMARY")
        print("=" * 80)

        print(f"\nTotal Queries: {aggregated.total_queries}")
        for question_type, count in sorted(aggregated.queries_by_type.items()):
            print(f"  - {question_type}: {count}")

        print(f"\nResults:")
        print(f"  - Total returned: {aggregated.total_results}")
        print(f"  - Avg per query: {summary['avg_results_per_query']:.2f}")
        print(f"  - Avg similarity: {aggregated.avg_similarity:.3f}")

        print(f"\nPerformance:")
        print(f"  - Avg query time: {aggregated.avg_query_time_ms:.2f}ms")
        print(f"  - P95 query time: {aggregated.p95_query_time_ms:.2f}ms")
        print(f"  - P99 query time: {aggregated.p99_query_time_ms:.2f}ms")

        print(f"\nReliability:")
        print(f"  - Empty result rate: {summary['empty_result_rate'] * 100:.1f}%")
        print(f"  - Error rate: {summary['error_rate'] * 100:.1f}%")
        print("=" * 80)

    def reset(self):
        """Reset all collected metrics."""
        self.metrics_history.clear()
        logger.info("Metrics history reset")


_global_collector: Optional[MetricsCollector] = None


def get_metrics_collector(enabled: bool = True) -> MetricsCollector:
    """Get the global metrics collector instance."""
    global _global_collector
    if _global_collector is None:
        _global_collector = MetricsCollector(enabled=enabled)
    return _global_collector

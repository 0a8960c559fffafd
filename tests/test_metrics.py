"""Unit tests for metrics module."""

import pytest

from docsearch import metrics as metrics_module
from docsearch.metrics import MetricsCollector, QueryMetrics, get_metrics_collector
from docsearch.types import QuestionType, RetrievalMetadata


def make_metadata(question_type=QuestionType.FACT, top_k=2, before=4):
    return RetrievalMetadata(
        effective_top_k=top_k,
        similarity_threshold=0.35,
        question_type=question_type,
        chunks_before_deduplication=before,
        dynamic_top_k_used=True,
        deduplication_applied=True,
    )


class TestQueryMetrics:
    """Tests for QueryMetrics dataclass."""

    def test_to_dict(self):
        """Test conversion to dictionary."""
        metrics = QueryMetrics(
            question_type=QuestionType.LIST,
            effective_top_k=4,
            results_returned=2,
            similarity_scores=[0.8, 0.6],
            query_time_ms=12.5,
        )

        data = metrics.to_dict()

        assert data['question_type'] == "List"
        assert data['avg_similarity'] == pytest.approx(0.7)
        assert data['min_similarity'] == 0.6
        assert data['max_similarity'] == 0.8
        assert data['error_occurred'] is False
        assert 'timestamp' in data

    def test_to_dict_empty_scores(self):
        """Test conversion without similarity scores."""
        data = QueryMetrics().to_dict()

        assert data['question_type'] is None
        assert data['avg_similarity'] == 0.0
        assert data['min_similarity'] == 0.0


class TestMetricsCollector:
    """Tests for MetricsCollector class."""

    def test_record_query(self):
        """Test recording a successful query."""
        collector = MetricsCollector()

        metrics = collector.record_query(
            make_metadata(),
            similarity_scores=[0.9, 0.7],
            query_time_ms=10.0,
            total_time_ms=11.0,
        )

        assert metrics.question_type == QuestionType.FACT
        assert metrics.effective_top_k == 2
        assert metrics.results_returned == 2
        assert metrics.chunks_before_deduplication == 4
        assert collector.metrics_history == [metrics]

    def test_record_error(self):
        """Test recording a failed query."""
        collector = MetricsCollector()

        metrics = collector.record_query(None, error=RuntimeError("store down"))

        assert metrics.error_occurred is True
        assert metrics.error_message == "store down"
        assert metrics.question_type is None

    def test_disabled_collector(self):
        """Test that a disabled collector keeps no history."""
        collector = MetricsCollector(enabled=False)

        collector.record_query(make_metadata(), similarity_scores=[0.5])

        assert collector.metrics_history == []

    def test_aggregated_metrics(self):
        """Test aggregation across queries."""
        collector = MetricsCollector()
        collector.record_query(make_metadata(QuestionType.FACT), [0.9, 0.7], query_time_ms=10.0)
        collector.record_query(make_metadata(QuestionType.FACT), [], query_time_ms=20.0)
        collector.record_query(make_metadata(QuestionType.EXPLANATORY, 5), [0.5], query_time_ms=30.0)
        collector.record_query(None, error=ValueError("bad"))

        aggregated = collector.get_aggregated_metrics()
        summary = aggregated.to_dict()

        assert aggregated.total_queries == 4
        assert aggregated.queries_by_type == {"Fact": 2, "Explanatory": 1}
        assert aggregated.total_results == 3
        assert aggregated.empty_result_count == 1
        assert aggregated.error_count == 1
        assert aggregated.avg_similarity == pytest.approx(0.7)
        assert aggregated.avg_query_time_ms == pytest.approx(20.0)
        assert aggregated.p95_query_time_ms == 30.0
        assert summary['empty_result_rate'] == pytest.approx(0.25)
        assert summary['error_rate'] == pytest.approx(0.25)

    def test_aggregated_metrics_empty(self):
        """Test aggregation with no history."""
        aggregated = MetricsCollector().get_aggregated_metrics()

        assert aggregated.total_queries == 0
        assert aggregated.to_dict()['error_rate'] == 0.0

    def test_reset(self):
        """Test clearing history."""
        collector = MetricsCollector()
        collector.record_query(make_metadata(), [0.5])

        collector.reset()

        assert collector.metrics_history == []

    def test_print_summary(self, capsys):
        """Test the printed summary."""
        collector = MetricsCollector()
        collector.record_query(make_metadata(QuestionType.LIST, 4), [0.8], query_time_ms=5.0)

        collector.print_summary()

        output = capsys.readouterr().out
        assert "RETRIEVAL METRICS SUMMARY" in output
        assert "Total Queries: 1" in output
        assert "List: 1" in output


class TestGetMetricsCollector:
    """Tests for the global collector accessor."""

    def test_returns_singleton(self, monkeypatch):
        """Test that the same collector is returned each time."""
        monkeypatch.setattr(metrics_module, "_global_collector", None)

        first = get_metrics_collector()

        assert get_metrics_collector() is first

"""Metrics collection for the search engine.

Provides a thin convenience wrapper around ``prometheus_client`` so the engine
records search, retrieval and fusion metrics with consistent label sets.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- Each collector owns its registry unless one is injected, so several engines
  (or test cases) never collide on metric names
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
import structlog

logger = structlog.get_logger("vector_search.metrics")


class SearchMetrics:
    """Centralized metrics for one or more ``SearchEngine`` instances.

    Parameters
    - registry: Optional custom ``CollectorRegistry`` (e.g. the process-wide
      ``prometheus_client.REGISTRY`` when exporting from an application)
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.search_requests = Counter(
            'vs_search_requests_total',
            'Total search calls partitioned by outcome',
            ['status'],
            registry=self.registry
        )

        self.search_duration = Histogram(
            'vs_search_duration_seconds',
            'End-to-end search duration',
            registry=self.registry
        )

        self.retrieval_duration = Histogram(
            'vs_retrieval_duration_seconds',
            'Single retriever query duration',
            ['table'],
            registry=self.registry
        )

        self.retrieval_candidates = Counter(
            'vs_retrieval_candidates_total',
            'Candidates returned by retrievers',
            ['table'],
            registry=self.registry
        )

        self.fusion_duration = Histogram(
            'vs_fusion_duration_seconds',
            'Rank fusion duration',
            ['algorithm'],
            registry=self.registry
        )

    def record_search(self, status: str, duration: float) -> None:
        """Record a finished search; duration is in seconds."""
        self.search_requests.labels(status=status).inc()
        self.search_duration.observe(duration)

    def record_retrieval(self, table: str, duration: float, count: int) -> None:
        """Record one retriever call."""
        self.retrieval_duration.labels(table=table).observe(duration)
        self.retrieval_candidates.labels(table=table).inc(count)

    def record_fusion(self, algorithm: str, duration: float) -> None:
        """Record one fusion step."""
        self.fusion_duration.labels(algorithm=algorithm).observe(duration)

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')


_metrics: Optional[SearchMetrics] = None


def get_search_metrics() -> SearchMetrics:
    """Get or create the process-wide metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = SearchMetrics()
        logger.debug("Search metrics collector created")
    return _metrics

"""
Metrics Collection for DocuIntel

Tracks query latency, ingestion volume, provider fallbacks and streaming
session outcomes for monitoring.
"""

import time
import logging
from dataclasses import dataclass, field
from typing import Optional
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)


@dataclass
class QueryMetrics:
    """Metrics for a single query."""
    query_id: str
    query_text: str
    start_time: float
    end_time: float = 0
    latency_ms: float = 0
    results_count: int = 0
    embedding_degraded: bool = False
    generation_degraded: bool = False
    error: Optional[str] = None


@dataclass
class SystemMetrics:
    """Aggregated system metrics."""
    # Query metrics
    total_queries: int = 0
    successful_queries: int = 0
    failed_queries: int = 0

    # Latency tracking (in ms)
    total_latency_ms: float = 0
    min_latency_ms: float = float('inf')
    max_latency_ms: float = 0
    latencies: list = field(default_factory=list)

    # Ingestion metrics
    documents_ingested: int = 0
    chunks_created: int = 0
    total_ingestion_time_ms: float = 0

    # Provider fallbacks
    embedding_fallbacks: int = 0
    generation_fallbacks: int = 0

    # Streaming sessions
    streams_started: int = 0
    streams_completed: int = 0
    streams_errored: int = 0
    streams_cancelled: int = 0

    @property
    def avg_latency_ms(self) -> float:
        """Calculate average query latency."""
        if self.total_queries == 0:
            return 0
        return self.total_latency_ms / self.total_queries

    @property
    def p95_latency_ms(self) -> float:
        """Calculate 95th percentile latency."""
        return self._percentile(0.95)

    @property
    def p99_latency_ms(self) -> float:
        """Calculate 99th percentile latency."""
        return self._percentile(0.99)

    def _percentile(self, fraction: float) -> float:
        if not self.latencies:
            return 0
        sorted_latencies = sorted(self.latencies)
        index = int(len(sorted_latencies) * fraction)
        return sorted_latencies[min(index, len(sorted_latencies) - 1)]

    @property
    def error_rate(self) -> float:
        """Calculate error rate."""
        if self.total_queries == 0:
            return 0
        return self.failed_queries / self.total_queries

    def to_dict(self) -> dict:
        """Convert to dictionary for display."""
        return {
            "queries": {
                "total": self.total_queries,
                "successful": self.successful_queries,
                "failed": self.failed_queries,
                "error_rate": f"{self.error_rate:.2%}",
            },
            "latency_ms": {
                "avg": round(self.avg_latency_ms, 2),
                "min": round(self.min_latency_ms, 2) if self.min_latency_ms != float('inf') else 0,
                "max": round(self.max_latency_ms, 2),
                "p95": round(self.p95_latency_ms, 2),
                "p99": round(self.p99_latency_ms, 2),
            },
            "ingestion": {
                "documents": self.documents_ingested,
                "chunks": self.chunks_created,
                "avg_time_ms": round(
                    self.total_ingestion_time_ms / max(self.documents_ingested, 1), 2
                ),
            },
            "fallbacks": {
                "embedding": self.embedding_fallbacks,
                "generation": self.generation_fallbacks,
            },
            "streams": {
                "started": self.streams_started,
                "completed": self.streams_completed,
                "errored": self.streams_errored,
                "cancelled": self.streams_cancelled,
            },
        }


class MetricsCollector:
    """
    Collects and aggregates system metrics.

    Usage:
        collector = get_metrics_collector()

        with collector.track_query(query_text) as tracker:
            result = service.query(query_text)
            tracker.set_results(len(result.response.citations))
    """

    _instance = None

    def __new__(cls):
        """Singleton pattern for global metrics collection."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self.metrics = SystemMetrics()
        self._query_history: list[QueryMetrics] = []
        self._max_history = 1000
        self._start_time = datetime.now()
        self._initialized = True

    def reset(self):
        """Reset all metrics (for testing)."""
        self.metrics = SystemMetrics()
        self._query_history = []
        self._start_time = datetime.now()

    class QueryTracker:
        """Context manager for tracking query metrics."""

        def __init__(self, collector: 'MetricsCollector', query_text: str):
            self.collector = collector
            self.query = QueryMetrics(
                query_id=f"q_{int(time.time() * 1000)}",
                query_text=query_text[:200],
                start_time=time.time(),
            )

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc_val, exc_tb):
            self.query.end_time = time.time()
            self.query.latency_ms = (self.query.end_time - self.query.start_time) * 1000

            if exc_type:
                self.query.error = str(exc_val)

            self.collector._record_query(self.query)
            return False  # Don't suppress exceptions

        def set_results(
            self,
            count: int,
            embedding_degraded: bool = False,
            generation_degraded: bool = False,
        ):
            """Set query result metadata."""
            self.query.results_count = count
            self.query.embedding_degraded = embedding_degraded
            self.query.generation_degraded = generation_degraded

    def track_query(self, query_text: str) -> QueryTracker:
        return self.QueryTracker(self, query_text)

    def _record_query(self, query: QueryMetrics):
        """Record completed query metrics."""
        self.metrics.total_queries += 1

        if query.error:
            self.metrics.failed_queries += 1
        else:
            self.metrics.successful_queries += 1

        self.metrics.total_latency_ms += query.latency_ms
        self.metrics.min_latency_ms = min(self.metrics.min_latency_ms, query.latency_ms)
        self.metrics.max_latency_ms = max(self.metrics.max_latency_ms, query.latency_ms)
        self.metrics.latencies.append(query.latency_ms)

        # Keep latencies list bounded
        if len(self.metrics.latencies) > self._max_history:
            self.metrics.latencies = self.metrics.latencies[-self._max_history:]

        if query.embedding_degraded:
            self.metrics.embedding_fallbacks += 1
        if query.generation_degraded:
            self.metrics.generation_fallbacks += 1

        self._query_history.append(query)
        if len(self._query_history) > self._max_history:
            self._query_history = self._query_history[-self._max_history:]

    def record_ingestion(self, chunks_count: int, duration_ms: float, degraded: bool = False):
        """Record document ingestion metrics."""
        self.metrics.documents_ingested += 1
        self.metrics.chunks_created += chunks_count
        self.metrics.total_ingestion_time_ms += duration_ms
        if degraded:
            self.metrics.embedding_fallbacks += 1

    def record_stream_started(self):
        self.metrics.streams_started += 1

    def record_stream_finished(self, outcome: str):
        """Record a terminated session: 'completed', 'errored' or 'cancelled'."""
        if outcome == "completed":
            self.metrics.streams_completed += 1
        elif outcome == "errored":
            self.metrics.streams_errored += 1
        elif outcome == "cancelled":
            self.metrics.streams_cancelled += 1
        else:
            logger.warning(f"Unknown stream outcome: {outcome}")

    def get_metrics(self) -> SystemMetrics:
        return self.metrics

    def get_metrics_dict(self) -> dict:
        return self.metrics.to_dict()

    def get_recent_queries(self, limit: int = 10) -> list[QueryMetrics]:
        return self._query_history[-limit:]

    def get_uptime(self) -> timedelta:
        return datetime.now() - self._start_time


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    return MetricsCollector()

"""Metrics collection for the embedding service.

Provides a thin convenience wrapper around ``prometheus_client`` so the
service can consistently record HTTP, embedding, rerank and model lifecycle
metrics.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- A single registry is kept per collector (can be injected for tests)
"""

from typing import Optional

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, generate_latest
import structlog

logger = structlog.get_logger("metrics")


class MetricsCollector:
    """Centralized metrics collection.

    Parameters
    - service_name: Logical name used for scoping/labels if desired
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.request_count = Counter(
            'http_requests_total',
            'Total HTTP requests',
            ['method', 'endpoint', 'status'],
            registry=self.registry
        )

        self.request_duration = Histogram(
            'http_request_duration_seconds',
            'HTTP request duration',
            ['method', 'endpoint'],
            registry=self.registry
        )

        self.embedding_requests = Counter(
            'ml_embedding_requests_total',
            'Total embedding generation requests',
            ['model_name', 'dimensions'],
            registry=self.registry
        )

        self.embedding_texts = Counter(
            'ml_embedding_texts_total',
            'Total texts embedded',
            ['model_name'],
            registry=self.registry
        )

        self.embedding_duration = Histogram(
            'ml_embedding_duration_seconds',
            'Embedding generation duration',
            ['model_name'],
            registry=self.registry
        )

        self.rerank_requests = Counter(
            'ml_rerank_requests_total',
            'Total rerank requests',
            ['model_name'],
            registry=self.registry
        )

        self.rerank_documents = Histogram(
            'ml_rerank_documents',
            'Documents per rerank request',
            ['model_name'],
            buckets=(1, 2, 5, 10, 25, 50, 100, 250, 500, 1000),
            registry=self.registry
        )

        self.rerank_duration = Histogram(
            'ml_rerank_duration_seconds',
            'Rerank duration',
            ['model_name'],
            registry=self.registry
        )

        self.model_ready = Gauge(
            'ml_model_ready',
            'Whether the embedding model is loaded (1) or not (0)',
            ['model_name'],
            registry=self.registry
        )

        self.model_load_duration = Gauge(
            'ml_model_load_duration_seconds',
            'Time spent loading the embedding model',
            ['model_name'],
            registry=self.registry
        )

    def record_http_request(
        self,
        method: str,
        endpoint: str,
        status: int,
        duration: float
    ) -> None:
        """Record HTTP request metrics.

        duration is expected in seconds to match Prometheus histogram units.
        """
        self.request_count.labels(method=method, endpoint=endpoint, status=status).inc()
        self.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def record_embedding(
        self,
        model_name: str,
        dimensions: int,
        count: int,
        duration: float
    ) -> None:
        """Record embedding generation metrics."""
        self.embedding_requests.labels(model_name=model_name, dimensions=str(dimensions)).inc()
        self.embedding_texts.labels(model_name=model_name).inc(count)
        self.embedding_duration.labels(model_name=model_name).observe(duration)

    def record_rerank(
        self,
        model_name: str,
        documents: int,
        duration: float
    ) -> None:
        """Record rerank metrics."""
        self.rerank_requests.labels(model_name=model_name).inc()
        self.rerank_documents.labels(model_name=model_name).observe(documents)
        self.rerank_duration.labels(model_name=model_name).observe(duration)

    def set_model_state(
        self,
        model_name: str,
        ready: bool,
        load_duration: Optional[float] = None
    ) -> None:
        """Publish readiness (and load time once known) for a model."""
        self.model_ready.labels(model_name=model_name).set(1 if ready else 0)
        if load_duration is not None:
            self.model_load_duration.labels(model_name=model_name).set(load_duration)

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')


# Global metrics collector instance
_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector(service_name: str) -> MetricsCollector:
    """Get or create metrics collector for a service.

    Returns a process-wide singleton to avoid duplicate collectors/labels.
    """
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector(service_name)
    return _metrics_collector

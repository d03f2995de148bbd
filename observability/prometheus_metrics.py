"""Prometheus metrics for index builds and search queries."""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client.core import CollectorRegistry
from typing import Dict
import logging

logger = logging.getLogger(__name__)

# Custom registry so embedding applications keep their own default registry clean
search_registry = CollectorRegistry()

# Search metrics
search_requests = Counter(
    'handbook_search_requests_total',
    'Total number of search requests',
    ['status'],
    registry=search_registry
)

search_duration = Histogram(
    'handbook_search_duration_seconds',
    'Search duration in seconds',
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0],
    registry=search_registry
)

search_results_count = Histogram(
    'handbook_search_results_count',
    'Number of search results returned',
    buckets=[0, 1, 5, 10, 25, 50, 100, 250],
    registry=search_registry
)

# Indexing metrics
index_blocks = Counter(
    'handbook_index_blocks_total',
    'Total number of blocks loaded into search indexes',
    ['kind'],
    registry=search_registry
)

index_build_duration = Histogram(
    'handbook_index_build_duration_seconds',
    'Index build duration in seconds',
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0],
    registry=search_registry
)

index_documents_failed = Counter(
    'handbook_index_documents_failed_total',
    'Documents skipped because loading or extraction failed',
    ['stage'],
    registry=search_registry
)


def record_search_metrics(duration: float, result_count: int, status: str = "success") -> None:
    """Record metrics for one search call."""
    try:
        search_requests.labels(status=status).inc()
        search_duration.observe(duration)
        search_results_count.observe(result_count)
    except Exception as e:
        logger.error(f"Error recording search metrics: {e}")


def record_indexing_metrics(duration: float, blocks_by_kind: Dict[str, int]) -> None:
    """Record metrics for one index build."""
    try:
        index_build_duration.observe(duration)
        for kind, count in blocks_by_kind.items():
            index_blocks.labels(kind=kind).inc(count)
    except Exception as e:
        logger.error(f"Error recording indexing metrics: {e}")


def record_document_failure(stage: str) -> None:
    """Count a document skipped at ``stage`` (``load`` or ``extract``)."""
    index_documents_failed.labels(stage=stage).inc()


def get_metrics_payload() -> bytes:
    """Render the registry in the Prometheus text exposition format."""
    return generate_latest(search_registry)


METRICS_CONTENT_TYPE = CONTENT_TYPE_LATEST

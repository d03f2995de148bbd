"""Observability package for handbook search."""

from .logging import setup_logging, get_logger, log_performance, JSONFormatter, ColoredFormatter
from .prometheus_metrics import (
    record_search_metrics,
    record_indexing_metrics,
    record_document_failure,
    get_metrics_payload,
    METRICS_CONTENT_TYPE,
    search_registry
)

__all__ = [
    'setup_logging',
    'get_logger',
    'log_performance',
    'JSONFormatter',
    'ColoredFormatter',
    'record_search_metrics',
    'record_indexing_metrics',
    'record_document_failure',
    'get_metrics_payload',
    'METRICS_CONTENT_TYPE',
    'search_registry'
]

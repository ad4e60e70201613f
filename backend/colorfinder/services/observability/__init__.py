"""
Observability module for ColorFinder matching and extraction.

Provides performance monitoring, metrics collection and per-extraction
stage logging.
"""

from .metrics import (
    PerformanceMetrics,
    ExtractionMetrics,
    MetricsCollector,
    ExtractionLogger,
    get_metrics_collector,
    reset_metrics,
    performance_monitor,
    performance_tracked,
    log_memory_usage,
    generate_extraction_id
)

__all__ = [
    'PerformanceMetrics',
    'ExtractionMetrics',
    'MetricsCollector',
    'ExtractionLogger',
    'get_metrics_collector',
    'reset_metrics',
    'performance_monitor',
    'performance_tracked',
    'log_memory_usage',
    'generate_extraction_id'
]

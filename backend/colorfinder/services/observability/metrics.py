"""
Observability metrics collection for ColorFinder.

This module provides metrics, logging, and performance monitoring for
palette matching and dominant-color extraction.
"""

import threading
import time
import uuid
from collections import defaultdict, deque
from contextlib import contextmanager
from dataclasses import dataclass, asdict, field
from functools import wraps
from typing import Dict, Any, Optional, List

import numpy as np
import psutil
from loguru import logger


def generate_extraction_id() -> str:
    """Time-prefixed extraction ID (ext-YYYYmmddHHMMSS-xxxxxxxx) for log correlation."""
    return f"ext-{time.strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:8]}"


@dataclass
class PerformanceMetrics:
    """Performance metrics for a monitored operation."""
    operation_name: str
    duration_ms: float
    memory_usage_mb: float
    sample_count: int
    strategy: Optional[str]
    timestamp: float
    error: Optional[str] = None


@dataclass
class ExtractionMetrics:
    """Summary of one dominant-color extraction."""
    extraction_id: str
    strategy: str
    metric: str
    total_duration_ms: float
    sampled_pixel_count: int
    color_count: int
    stages: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


class MetricsCollector:
    """Thread-safe metrics collector for matching and extraction operations."""
    
    def __init__(self, max_history: int = 1000):
        self.max_history = max_history
        self._lock = threading.Lock()
        self._metrics_history: deque = deque(maxlen=max_history)
        self._operation_counts = defaultdict(int)
        self._error_counts = defaultdict(int)
        self._durations = defaultdict(lambda: deque(maxlen=100))
    
    def record_performance(self, metrics: PerformanceMetrics) -> None:
        """Record performance metrics for an operation."""
        with self._lock:
            self._metrics_history.append(metrics)
            self._operation_counts[metrics.operation_name] += 1
            
            if metrics.error:
                self._error_counts[metrics.operation_name] += 1
            
            self._durations[metrics.operation_name].append(metrics.duration_ms)
    
    def _operation_stats(self, operation_name: str) -> Dict[str, Any]:
        durations = list(self._durations.get(operation_name, ()))
        if not durations:
            return {}
        
        calls = self._operation_counts[operation_name]
        return {
            'operation_name': operation_name,
            'total_calls': calls,
            'error_count': self._error_counts[operation_name],
            'error_rate': self._error_counts[operation_name] / max(1, calls),
            'duration_stats': {
                'mean_ms': float(np.mean(durations)),
                'median_ms': float(np.median(durations)),
                'p95_ms': float(np.percentile(durations, 95)),
                'min_ms': float(np.min(durations)),
                'max_ms': float(np.max(durations))
            }
        }
    
    def get_operation_stats(self, operation_name: str) -> Dict[str, Any]:
        """Get aggregated statistics for a specific operation."""
        with self._lock:
            return self._operation_stats(operation_name)
    
    def get_all_stats(self) -> Dict[str, Any]:
        """Get aggregated statistics for all operations."""
        with self._lock:
            total_ops = sum(self._operation_counts.values())
            total_errors = sum(self._error_counts.values())
            return {
                'operations': {name: self._operation_stats(name) for name in self._operation_counts},
                'total_operations': total_ops,
                'total_errors': total_errors,
                'overall_error_rate': total_errors / max(1, total_ops)
            }
    
    def get_recent_metrics(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Get the most recent performance metrics."""
        with self._lock:
            recent = list(self._metrics_history)[-limit:]
            return [asdict(metric) for metric in recent]
    
    def reset(self) -> None:
        with self._lock:
            self._metrics_history.clear()
            self._operation_counts.clear()
            self._error_counts.clear()
            self._durations.clear()


# Global metrics collector instance
_metrics_collector = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    return _metrics_collector


def reset_metrics() -> None:
    """Clear all recorded metrics (used by tests)."""
    _metrics_collector.reset()


def _rss_mb() -> float:
    return psutil.Process().memory_info().rss / 1024 / 1024


@contextmanager
def performance_monitor(operation_name: str, sample_count: int = 0, strategy: Optional[str] = None):
    """
    Context manager for monitoring performance of operations.
    
    Yields a mutable dict holding sample_count and strategy; callers that
    only learn the sample count inside the block update it there.
    """
    context = {'sample_count': sample_count, 'strategy': strategy}
    start_time = time.time()
    start_memory = _rss_mb()
    
    error_msg = None
    
    try:
        yield context
    except Exception as e:
        error_msg = str(e) or type(e).__name__
        raise
    finally:
        end_time = time.time()
        end_memory = _rss_mb()
        
        metrics = PerformanceMetrics(
            operation_name=operation_name,
            duration_ms=(end_time - start_time) * 1000,
            memory_usage_mb=max(end_memory, start_memory),
            sample_count=int(context['sample_count']),
            strategy=context['strategy'],
            timestamp=end_time,
            error=error_msg
        )
        
        _metrics_collector.record_performance(metrics)
        
        if error_msg:
            logger.error(f"Operation {operation_name} failed after {metrics.duration_ms:.1f}ms: {error_msg}")
        else:
            logger.debug(f"Operation {operation_name} completed in {metrics.duration_ms:.1f}ms "
                         f"(memory: {metrics.memory_usage_mb:.1f}MB)")


def performance_tracked(operation_name: str):
    """Decorator for automatically tracking function performance."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            with performance_monitor(operation_name):
                return func(*args, **kwargs)
        return wrapper
    return decorator


class ExtractionLogger:
    """Stage logger for a single dominant-color extraction."""
    
    def __init__(self):
        self._current: Optional[Dict[str, Any]] = None
    
    def start_extraction(self, strategy: str, metric: str, sample_count: int) -> str:
        """Start logging a new extraction and return its ID."""
        extraction_id = generate_extraction_id()
        
        self._current = {
            'id': extraction_id,
            'strategy': strategy,
            'metric': metric,
            'start_time': time.time(),
            'sample_count': sample_count,
            'warnings': [],
            'stages': {}
        }
        
        logger.info(f"Starting extraction {extraction_id} "
                    f"(strategy: {strategy}, metric: {metric}, samples: {sample_count})")
        
        return extraction_id
    
    def log_stage(self, stage_name: str, duration_ms: float, **kwargs):
        """Log completion of an extraction stage."""
        if self._current:
            self._current['stages'][stage_name] = {
                'duration_ms': duration_ms,
                **kwargs
            }
            
            logger.debug(f"Extraction {self._current['id']} - "
                         f"{stage_name} completed in {duration_ms:.1f}ms")
    
    def log_warning(self, message: str):
        """Log a warning for the current extraction."""
        if self._current:
            self._current['warnings'].append(message)
        logger.warning(f"Extraction warning: {message}")
    
    def finish_extraction(self, color_count: int) -> ExtractionMetrics:
        """Finish logging and return the extraction summary."""
        if not self._current:
            raise ValueError("No active extraction to finish")
        
        total_duration = (time.time() - self._current['start_time']) * 1000
        stages = self._current['stages']
        
        metrics = ExtractionMetrics(
            extraction_id=self._current['id'],
            strategy=self._current['strategy'],
            metric=self._current['metric'],
            total_duration_ms=total_duration,
            sampled_pixel_count=stages.get('sampling', {}).get('sample_count', 0),
            color_count=color_count,
            stages=stages,
            warnings=self._current['warnings']
        )
        
        logger.info(f"Extraction {metrics.extraction_id} completed in {total_duration:.1f}ms "
                    f"({color_count} colors from {metrics.sampled_pixel_count} samples)")
        
        self._current = None
        return metrics


def log_memory_usage(stage_name: str) -> Dict[str, Any]:
    """Log current memory usage for a specific stage."""
    memory_mb = _rss_mb()
    logger.debug(f"Memory usage at {stage_name}: {memory_mb:.1f}MB")
    
    return {
        'stage': stage_name,
        'memory_mb': memory_mb,
        'timestamp': time.time()
    }

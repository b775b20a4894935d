"""
Performance Metrics

Counters owned by one quote calculation service instance.
"""

import threading

from .models import PerformanceMetrics


class PerformanceTracker:
    """Accumulates calculation counters; snapshots are PerformanceMetrics copies"""

    def __init__(self):
        self._lock = threading.Lock()
        self._metrics = PerformanceMetrics()

    def record_hit(self, latency_ms: float) -> None:
        with self._lock:
            self._metrics.total_calculations += 1
            self._metrics.cache_hits += 1
            self._metrics.cumulative_latency_ms += latency_ms

    def record_miss(self, latency_ms: float) -> None:
        with self._lock:
            self._metrics.total_calculations += 1
            self._metrics.cache_misses += 1
            self._metrics.cumulative_latency_ms += latency_ms

    def record_failure(self, latency_ms: float, cache_consulted: bool = True) -> None:
        """
        A failed calculation counts as a miss only if the cache was consulted.

        Input rejected before the lookup leaves the hit rate untouched.
        """
        with self._lock:
            self._metrics.total_calculations += 1
            if cache_consulted:
                self._metrics.cache_misses += 1
            self._metrics.failed_calculations += 1
            self._metrics.cumulative_latency_ms += latency_ms

    def snapshot(self) -> PerformanceMetrics:
        with self._lock:
            return self._metrics.model_copy()

    def reset(self) -> None:
        with self._lock:
            self._metrics = PerformanceMetrics()


__all__ = ["PerformanceTracker"]

"""
Request metrics — rolling latency window, counters and percentiles.

Every finished HTTP response is recorded here. Percentiles are derived on
read from a sorted copy of the window; counters and rates cover the whole
process lifetime.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import psutil

from mendwell.core.types import PerformanceSnapshot, Percentiles, RequestSample

if TYPE_CHECKING:
    from mendwell.resilience.health import HealthMonitor

logger = logging.getLogger("mendwell.metrics")

DEFAULT_WINDOW = 1000
SLOW_REQUEST_THRESHOLD_MS = 2000.0


def process_rss_bytes() -> int:
    return psutil.Process().memory_info().rss


def percentile(sorted_values: list[float], p: float) -> float:
    if not sorted_values:
        return 0.0
    return sorted_values[min(int(len(sorted_values) * p), len(sorted_values) - 1)]


class MetricsCollector:
    """Bounded ring buffer of request samples plus lifetime counters.

    Args:
        window: Number of samples kept for percentiles; the oldest is evicted.
        slow_request_ms: Responses slower than this count as slow.
        health_monitor: Receives request and error counts for every sample.
        memory_fn: Returns current process memory in bytes (peak tracking).
    """

    def __init__(
        self,
        window: int = DEFAULT_WINDOW,
        slow_request_ms: float = SLOW_REQUEST_THRESHOLD_MS,
        health_monitor: HealthMonitor | None = None,
        memory_fn: Callable[[], int] = process_rss_bytes,
    ):
        self.window = window
        self.slow_request_ms = slow_request_ms
        self._health_monitor = health_monitor
        self._memory_fn = memory_fn
        self._samples: deque[RequestSample] = deque(maxlen=window)
        self.request_count = 0
        self.error_count = 0
        self.slow_request_count = 0
        self.average_response_time_ms = 0.0
        self.peak_memory_bytes = 0

    def sample_memory(self) -> int:
        """Read process memory and keep the peak. Called at request start."""
        try:
            current = self._memory_fn()
        except Exception as e:
            logger.debug(f"Memory sample failed: {e}")
            return self.peak_memory_bytes
        if current > self.peak_memory_bytes:
            self.peak_memory_bytes = current
        return current

    def record_request(self, response_time_ms: float, status_code: int) -> None:
        sample = RequestSample(response_time_ms=response_time_ms, status_code=status_code)
        self._samples.append(sample)
        self.request_count += 1

        # Incremental mean over every recorded request, not the window
        self.average_response_time_ms += (response_time_ms - self.average_response_time_ms) / self.request_count

        if response_time_ms > self.slow_request_ms:
            self.slow_request_count += 1
        if sample.is_error:
            self.error_count += 1

        if self._health_monitor is not None:
            self._health_monitor.record_request(response_time_ms)
            if sample.is_error:
                self._health_monitor.record_error()

    @property
    def window_size(self) -> int:
        return len(self._samples)

    def get_snapshot(self) -> PerformanceSnapshot:
        ordered = sorted(s.response_time_ms for s in self._samples)
        total = self.request_count
        return PerformanceSnapshot(
            request_count=total,
            error_count=self.error_count,
            average_response_time_ms=self.average_response_time_ms,
            slow_request_count=self.slow_request_count,
            peak_memory_bytes=self.peak_memory_bytes,
            percentiles=Percentiles(
                p50=percentile(ordered, 0.5),
                p90=percentile(ordered, 0.9),
                p95=percentile(ordered, 0.95),
                p99=percentile(ordered, 0.99),
            ),
            error_rate_pct=(self.error_count / total) * 100 if total else 0.0,
            slow_request_rate_pct=(self.slow_request_count / total) * 100 if total else 0.0,
        )

    def get_detailed_stats(self) -> dict[str, Any]:
        return self.get_snapshot().to_dict()

    def reset(self) -> None:
        self._samples.clear()
        self.request_count = 0
        self.error_count = 0
        self.slow_request_count = 0
        self.average_response_time_ms = 0.0
        self.peak_memory_bytes = 0

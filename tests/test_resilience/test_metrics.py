"""Tests for the request metrics collector."""

from unittest.mock import MagicMock

import pytest

from mendwell.resilience.metrics import MetricsCollector, percentile


class TestPercentile:
    def test_empty_is_zero(self):
        assert percentile([], 0.5) == 0.0

    def test_index_is_floor_of_n_times_p(self):
        values = [float(v) for v in range(1, 11)]
        assert percentile(values, 0.5) == 6.0
        assert percentile(values, 0.99) == 10.0

    def test_single_value(self):
        assert percentile([7.0], 0.99) == 7.0


class TestMetricsCollector:
    @pytest.fixture
    def collector(self):
        return MetricsCollector(memory_fn=lambda: 50 * 1024 * 1024)

    def test_empty_snapshot(self, collector):
        snap = collector.get_snapshot()
        assert snap.request_count == 0
        assert snap.error_rate_pct == 0.0
        assert snap.percentiles.p99 == 0.0

    def test_one_to_hundred(self, collector):
        for ms in range(1, 101):
            collector.record_request(float(ms), 200)

        stats = collector.get_detailed_stats()
        assert stats["requestCount"] == 100
        assert stats["errorRate"] == 0
        assert stats["responseTimePercentiles"]["p50"] == 51
        assert stats["responseTimePercentiles"]["p90"] == 91
        assert stats["responseTimePercentiles"]["p99"] == 100
        assert stats["averageResponseTime"] == pytest.approx(50.5)

    def test_percentiles_are_monotonic(self, collector):
        for ms in (900, 3, 250, 41, 41, 7000, 12):
            collector.record_request(float(ms), 200)
        p = collector.get_snapshot().percentiles
        assert p.p50 <= p.p90 <= p.p95 <= p.p99

    def test_window_evicts_oldest_but_counts_everything(self):
        collector = MetricsCollector(window=3, memory_fn=lambda: 0)
        for ms in (1000, 1000, 1, 2, 3):
            collector.record_request(float(ms), 200)

        assert collector.window_size == 3
        assert collector.get_snapshot().percentiles.p99 == 3
        assert collector.request_count == 5

    def test_errors_and_slow_requests(self, collector):
        collector.record_request(2500.0, 200)
        collector.record_request(2000.0, 200)
        collector.record_request(10.0, 503)
        collector.record_request(10.0, 404)

        snap = collector.get_snapshot()
        assert snap.slow_request_count == 1
        assert snap.error_count == 2
        assert snap.error_rate_pct == 50.0
        assert snap.slow_request_rate_pct == 25.0

    def test_peak_memory_tracked(self):
        readings = iter([10, 30, 20])
        collector = MetricsCollector(memory_fn=lambda: next(readings))
        for _ in range(3):
            collector.sample_memory()
        assert collector.peak_memory_bytes == 30

    def test_failed_memory_sample_keeps_peak(self):
        def broken():
            raise OSError("gone")

        collector = MetricsCollector(memory_fn=broken)
        collector.peak_memory_bytes = 5
        assert collector.sample_memory() == 5

    def test_forwards_to_health_monitor(self):
        monitor = MagicMock()
        collector = MetricsCollector(health_monitor=monitor, memory_fn=lambda: 0)

        collector.record_request(12.0, 200)
        collector.record_request(30.0, 500)

        assert monitor.record_request.call_count == 2
        monitor.record_error.assert_called_once()

    def test_reset(self, collector):
        collector.sample_memory()
        collector.record_request(5.0, 500)
        collector.reset()
        assert collector.get_snapshot().request_count == 0
        assert collector.window_size == 0
        assert collector.peak_memory_bytes == 0

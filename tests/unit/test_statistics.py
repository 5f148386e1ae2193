"""Unit tests for latency, throughput and resource statistics."""

import random
from datetime import datetime, timezone

import pytest

from perfbench.analysis.statistics import (
    aggregate_resources,
    distribution,
    measured_window,
    percentile,
    service_stats,
    summary_stats,
    throughput,
    throughput_consistency,
)
from perfbench.analysis.models import Status
from perfbench.monitoring.resources import ResourceSnapshot


class TestPercentile:
    """Nearest-rank percentile without interpolation."""

    @pytest.mark.unit
    def test_empty_sample_yields_zero(self):
        assert percentile([], 0.95) == 0.0

    @pytest.mark.unit
    def test_floor_index_rule(self):
        values = [10, 20, 30, 40]
        assert percentile(values, 0.5) == 30
        assert percentile(values, 0.0) == 10
        assert percentile(values, 0.95) == 40

    @pytest.mark.unit
    def test_index_clamped_to_last_element(self):
        assert percentile([1, 2, 3], 1.0) == 3

    @pytest.mark.unit
    def test_ten_samples(self):
        values = list(range(1, 11))
        assert percentile(values, 0.5) == 6
        assert percentile(values, 0.95) == 10
        assert percentile(values, 0.99) == 10

    @pytest.mark.unit
    def test_deterministic_regardless_of_input_order(self):
        values = [float(v) for v in range(500)]
        shuffled = list(values)
        random.Random(7).shuffle(shuffled)
        for pct in (0.5, 0.95, 0.99):
            assert percentile(values, pct) == percentile(shuffled, pct)

    @pytest.mark.unit
    def test_out_of_range_percentile_rejected(self):
        with pytest.raises(ValueError):
            percentile([1.0], 1.5)


class TestDistribution:

    @pytest.mark.unit
    def test_distribution_of_latencies(self):
        result = distribution([5.0, 1.0, 3.0, 2.0, 4.0])
        assert result.min_ms == 1.0
        assert result.median_ms == 3.0
        assert result.p95_ms == 5.0
        assert result.max_ms == 5.0

    @pytest.mark.unit
    def test_empty_distribution_is_all_zero(self):
        result = distribution([])
        assert result.p95_ms == 0.0
        assert result.max_ms == 0.0


class TestThroughput:

    @pytest.mark.unit
    def test_configured_window_wins(self):
        assert measured_window([0.0, 2.0], 10.0) == 10.0
        assert throughput(500, 10.0) == 50.0

    @pytest.mark.unit
    def test_observed_span_used_without_configuration(self):
        assert measured_window([3.0, 1.0, 5.0], None) == 4.0

    @pytest.mark.unit
    def test_zero_window_yields_zero_throughput(self):
        assert measured_window([1.0], None) == 0.0
        assert throughput(10, 0.0) == 0.0


class TestAggregateResources:

    @pytest.mark.unit
    def test_no_snapshots(self):
        usage = aggregate_resources([])
        assert usage.sample_count == 0
        assert usage.peak_task_count is None

    @pytest.mark.unit
    def test_unavailable_fields_count_as_zero_in_averages(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        snapshots = [
            ResourceSnapshot(timestamp=now, cpu_percent=40.0, memory_used_mb=100.0, task_count=8,
                             gc_pauses_ms=(1.5, 0.5)),
            ResourceSnapshot(timestamp=now, cpu_percent=None, memory_used_mb=300.0, task_count=None),
        ]
        usage = aggregate_resources(snapshots)
        assert usage.avg_cpu_percent == 20.0
        assert usage.peak_cpu_percent == 40.0
        assert usage.avg_memory_mb == 200.0
        assert usage.peak_memory_mb == 300.0
        assert usage.peak_task_count == 8
        assert usage.peak_open_handles is None
        assert usage.total_gc_pause_ms == 2.0
        assert usage.sample_count == 2


class TestSessionStatistics:

    @pytest.mark.unit
    def test_summary_counts_statuses(self, make_result):
        results = [
            make_result(status=Status.PASS),
            make_result(status=Status.WARNING),
            make_result(status=Status.FAIL, total_requests=100, total_errors=10),
        ]
        summary = summary_stats(results)
        assert summary.passed_tests == 1
        assert summary.warning_tests == 1
        assert summary.failed_tests == 1
        assert summary.total_requests == 2100
        assert summary.total_errors == 10
        assert summary.success_rate == pytest.approx(100.0 / 3)

    @pytest.mark.unit
    def test_service_stats_grouped_by_service_and_endpoint(self, make_result):
        results = [
            make_result(service='orders', endpoint='/orders', rps=100.0),
            make_result(service='orders', endpoint='/orders/1', rps=300.0),
            make_result(service='users', endpoint='/users', rps=50.0),
        ]
        stats = service_stats(results)
        assert list(stats) == ['orders', 'users']
        assert stats['orders'].average_rps == 200.0
        assert set(stats['orders'].endpoint_stats) == {'GET /orders', 'GET /orders/1'}
        assert stats['users'].endpoint_stats['GET /users'].rps == 50.0

    @pytest.mark.unit
    def test_methods_on_one_path_are_separate_endpoints(self, make_result):
        results = [
            make_result(endpoint='/orders', rps=100.0),
            make_result(endpoint='/orders', method='POST', rps=20.0),
        ]
        endpoints = service_stats(results)['orders'].endpoint_stats
        assert set(endpoints) == {'GET /orders', 'POST /orders'}
        assert endpoints['POST /orders'].method == 'POST'
        assert endpoints['POST /orders'].endpoint == '/orders'
        assert endpoints['POST /orders'].rps == 20.0


class TestTailPercentile:

    @pytest.mark.unit
    def test_p999_of_latencies(self):
        values = [float(v) for v in range(1, 2001)]
        result = distribution(values)
        assert result.p99_ms == 1981.0
        assert result.p999_ms == 1999.0
        assert result.p999_ms <= result.max_ms


class TestThroughputConsistency:

    @pytest.mark.unit
    def test_even_rate_is_fully_consistent(self):
        timestamps = [i / 10 for i in range(51)]
        assert throughput_consistency(timestamps) == pytest.approx(1.0)

    @pytest.mark.unit
    def test_stalled_second_lowers_ratio(self):
        timestamps = [0.0, 0.5, 2.0, 2.5, 3.0, 3.5, 4.0]
        # buckets [0,1) [1,2) [2,3) [3,4) hold 2, 0, 2, 2 requests
        assert throughput_consistency(timestamps) == 0.0

        timestamps = [0.0, 0.5, 1.2, 2.0, 2.5, 3.0, 3.5, 4.0]
        assert throughput_consistency(timestamps) == pytest.approx(1 / 1.75)

    @pytest.mark.unit
    def test_short_runs_are_not_rated(self):
        assert throughput_consistency([]) is None
        assert throughput_consistency([1.0]) is None
        assert throughput_consistency([0.0, 0.5, 1.0, 2.5]) is None

"""Unit tests for optimization recommendations."""

import pytest

from perfbench.analysis.models import PerformanceTrend, TrendDirection, TrendLine
from perfbench.analysis.recommendations import WITHIN_RANGES, generate_recommendations


def _trend(service, metric, direction):
    line = TrendLine(slope=1.0, intercept=0.0, correlation=0.9, p_value=0.01, direction=direction,
                     significance='high', confidence=0.99)
    return PerformanceTrend(service=service, metric=metric, timeframe='', data_points=(), trend_line=line)


class TestGenerateRecommendations:

    @pytest.mark.unit
    def test_healthy_results_yield_single_affirmation(self, make_result):
        assert generate_recommendations([make_result()]) == [WITHIN_RANGES]
        assert generate_recommendations([]) == [WITHIN_RANGES]

    @pytest.mark.unit
    def test_one_line_per_category_with_unique_services(self, make_result):
        results = [
            make_result(service='orders', cpu=85.0),
            make_result(service='orders', endpoint='/orders/1', cpu=90.0),
            make_result(service='users', cpu=75.0, memory_mb=512.0),
            make_result(service='search', p95_ms=350.0, rps=120.0),
        ]
        recommendations = generate_recommendations(results)
        assert recommendations == [
            "Optimize CPU-intensive operations in services: orders, users",
            "Investigate memory usage in services: users",
            "Reduce response times for services: search",
            "Improve throughput for services: search",
        ]

    @pytest.mark.unit
    def test_boundaries_are_exclusive(self, make_result):
        result = make_result(cpu=70.0, memory_mb=400.0, p95_ms=200.0, rps=500.0)
        assert generate_recommendations([result]) == [WITHIN_RANGES]

    @pytest.mark.unit
    def test_degrading_trends_add_recommendations(self, make_result):
        trends = [
            _trend('orders', 'p95_latency', TrendDirection.DEGRADING),
            _trend('users', 'p95_latency', TrendDirection.DEGRADING),
            _trend('orders', 'rps', TrendDirection.IMPROVING),
        ]
        recommendations = generate_recommendations([make_result()], trends)
        assert recommendations == ["Investigate degrading p95 latency trend in services: orders, users"]

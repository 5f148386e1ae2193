"""Unit tests for trend fitting, projection and anomaly detection."""

from datetime import timedelta

import pytest

from perfbench.analysis.models import Severity, TrendDataPoint, TrendDirection
from perfbench.analysis.trends import (
    TrendAnalyzer,
    classify_direction,
    merge_series,
    series_from_results,
)


def _points(base_time, values, step_seconds=3600):
    return [TrendDataPoint(base_time + timedelta(seconds=step_seconds * index), float(value))
            for index, value in enumerate(values)]


class TestClassifyDirection:

    @pytest.mark.unit
    def test_metric_polarity(self):
        assert classify_direction(1.0, 0.9, 5, 'rps') is TrendDirection.IMPROVING
        assert classify_direction(-1.0, -0.9, 5, 'rps') is TrendDirection.DEGRADING
        assert classify_direction(1.0, 0.9, 5, 'p95_latency') is TrendDirection.DEGRADING
        assert classify_direction(-1.0, -0.9, 5, 'memory_usage') is TrendDirection.IMPROVING

    @pytest.mark.unit
    def test_weak_or_short_series_is_stable(self):
        assert classify_direction(1.0, 0.3, 10, 'rps') is TrendDirection.STABLE
        assert classify_direction(1.0, 0.99, 2, 'rps') is TrendDirection.STABLE
        assert classify_direction(0.0, 0.99, 10, 'rps') is TrendDirection.STABLE


class TestTrendAnalyzer:

    @pytest.mark.unit
    def test_rising_latency_is_degrading(self, base_time):
        trend = TrendAnalyzer().analyze_series('orders', 'p95_latency',
                                               _points(base_time, [100, 110, 121, 130, 141, 150]))
        line = trend.trend_line
        assert line.direction is TrendDirection.DEGRADING
        assert line.slope > 0
        assert line.significance == 'high'
        assert 0.0 <= line.confidence <= 1.0

    @pytest.mark.unit
    def test_projection_extends_past_last_point(self, base_time):
        points = _points(base_time, [100, 110, 121, 130, 141, 150])
        trend = TrendAnalyzer(projection_steps=3).analyze_series('orders', 'p95_latency', points)

        assert len(trend.predictions) == 3
        timestamps = [prediction.timestamp for prediction in trend.predictions]
        assert timestamps[0] > points[-1].timestamp
        assert timestamps == sorted(timestamps)
        for prediction in trend.predictions:
            assert prediction.lower_bound <= prediction.predicted_value <= prediction.upper_bound
        assert trend.predictions[-1].predicted_value > 150

    @pytest.mark.unit
    def test_short_series_is_stable_without_predictions(self, base_time):
        trend = TrendAnalyzer().analyze_series('orders', 'rps', _points(base_time, [100, 200]))
        assert trend.trend_line.direction is TrendDirection.STABLE
        assert trend.predictions == ()
        assert trend.trend_line.intercept == 150.0

    @pytest.mark.unit
    def test_identical_timestamps_are_stable(self, base_time):
        points = [TrendDataPoint(base_time, value) for value in (1.0, 2.0, 3.0)]
        trend = TrendAnalyzer().analyze_series('orders', 'rps', points)
        assert trend.trend_line.direction is TrendDirection.STABLE

    @pytest.mark.unit
    def test_spike_detected(self, base_time):
        values = [100.0] * 20 + [1000.0]
        anomalies = TrendAnalyzer.detect_anomalies(_points(base_time, values))
        assert len(anomalies) == 1
        assert anomalies[0].type == 'spike'
        assert anomalies[0].value == 1000.0
        assert anomalies[0].severity is Severity.HIGH

    @pytest.mark.unit
    def test_flat_series_has_no_anomalies(self, base_time):
        assert TrendAnalyzer.detect_anomalies(_points(base_time, [5.0] * 10)) == ()


class TestSeries:

    @pytest.mark.unit
    def test_series_keyed_by_service_and_metric(self, make_result):
        series = series_from_results([make_result(rps=10.0), make_result(service='users', rps=20.0)], 's1')
        assert series[('orders', 'rps')][0].value == 10.0
        assert series[('users', 'rps')][0].session_id == 's1'
        assert ('orders', 'error_rate') in series

    @pytest.mark.unit
    def test_merge_orders_points_by_time(self, base_time):
        early = {('orders', 'rps'): _points(base_time, [1.0])}
        late = {('orders', 'rps'): _points(base_time + timedelta(days=1), [2.0])}
        merged = merge_series(late, early)
        assert [point.value for point in merged[('orders', 'rps')]] == [1.0, 2.0]

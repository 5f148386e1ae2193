"""Unit tests for baseline regression detection and severity classification."""

from datetime import datetime, timezone

import pytest

from perfbench.analysis.models import BaselineMetrics, EndpointBaseline, Impact, Severity
from perfbench.analysis.regressions import (
    detect_regressions,
    determine_severity,
    regression_percentage,
)
from perfbench.utils.exceptions import ConfigurationError


def _baseline(**overrides) -> BaselineMetrics:
    entry = dict(expected_rps=1000.0, expected_p95=100.0, expected_p99=150.0,
                 max_cpu_percent=50.0, max_memory_mb=300.0, max_error_rate=1.0,
                 path='/orders')
    entry.update(overrides)
    return BaselineMetrics(
        version='1.0.0',
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        services={'orders': {'/orders': EndpointBaseline(**entry)}},
    )


class TestDetermineSeverity:

    @pytest.mark.unit
    @pytest.mark.parametrize('pct, expected', [
        (0.0, Severity.LOW),
        (9.99, Severity.LOW),
        (10.0, Severity.MEDIUM),
        (24.99, Severity.MEDIUM),
        (25.0, Severity.HIGH),
        (49.99, Severity.HIGH),
        (50.0, Severity.CRITICAL),
        (250.0, Severity.CRITICAL),
    ])
    def test_inclusive_lower_bounds(self, pct, expected):
        assert determine_severity(pct) is expected

    @pytest.mark.unit
    def test_severity_is_monotonic(self):
        ranks = [determine_severity(pct).rank for pct in range(0, 120, 3)]
        assert ranks == sorted(ranks)


class TestRegressionPercentage:

    @pytest.mark.unit
    def test_lower_is_worse_metric(self):
        assert regression_percentage(700.0, 1000.0, lower_is_worse=True) == 30.0

    @pytest.mark.unit
    def test_higher_is_worse_metric(self):
        assert regression_percentage(150.0, 100.0, lower_is_worse=False) == 50.0

    @pytest.mark.unit
    def test_non_positive_baseline_is_skipped(self):
        assert regression_percentage(10.0, 0.0, lower_is_worse=False) is None

    @pytest.mark.unit
    def test_worse_values_never_decrease_percentage(self):
        values = [regression_percentage(rps, 1000.0, True) for rps in (950, 900, 700, 400, 0)]
        assert values == sorted(values)


class TestDetectRegressions:

    @pytest.mark.unit
    def test_throughput_drop_of_thirty_percent(self, make_result):
        regressions = detect_regressions([make_result(rps=700.0)], _baseline(), 10.0)

        assert len(regressions) == 1
        regression = regressions[0]
        assert regression.metric == 'rps'
        assert regression.regression_pct == 30.0
        assert regression.severity is Severity.HIGH
        assert regression.impact is Impact.THROUGHPUT
        assert regression.recommendations

    @pytest.mark.unit
    def test_exactly_twenty_five_percent_is_high(self, make_result):
        regressions = detect_regressions([make_result(rps=750.0)], _baseline(), 10.0)
        assert regressions[0].regression_pct == 25.0
        assert regressions[0].severity is Severity.HIGH

    @pytest.mark.unit
    def test_threshold_is_exclusive(self, make_result):
        assert detect_regressions([make_result(rps=900.0)], _baseline(), 10.0) == []
        assert len(detect_regressions([make_result(rps=899.0)], _baseline(), 10.0)) == 1

    @pytest.mark.unit
    def test_improvements_are_not_regressions(self, make_result):
        result = make_result(rps=2000.0, p95_ms=10.0, cpu=5.0, memory_mb=50.0)
        assert detect_regressions([result], _baseline(), 0.0) == []

    @pytest.mark.unit
    def test_sorted_by_severity_then_percentage(self, make_result):
        result = make_result(rps=880.0, p95_ms=200.0, cpu=60.0, memory_mb=345.0)
        regressions = detect_regressions([result], _baseline(), 5.0)

        assert [r.metric for r in regressions] == ['p95_latency', 'cpu_usage', 'memory_usage', 'rps']
        assert regressions[0].severity is Severity.CRITICAL
        assert regressions[1].severity is Severity.MEDIUM
        assert regressions[1].regression_pct > regressions[2].regression_pct

    @pytest.mark.unit
    def test_results_without_baseline_entry_are_skipped(self, make_result):
        result = make_result(service='users', endpoint='/users', rps=1.0)
        assert detect_regressions([result], _baseline(), 10.0) == []

    @pytest.mark.unit
    def test_no_baseline_yields_no_regressions(self, make_result):
        assert detect_regressions([make_result(rps=1.0)], None, 10.0) == []

    @pytest.mark.unit
    def test_zero_baseline_value_is_skipped(self, make_result):
        regressions = detect_regressions([make_result(cpu=90.0)], _baseline(max_cpu_percent=0.0), 10.0)
        assert [r.metric for r in regressions] == []

    @pytest.mark.unit
    def test_negative_threshold_rejected(self, make_result):
        with pytest.raises(ConfigurationError):
            detect_regressions([make_result()], _baseline(), -1.0)

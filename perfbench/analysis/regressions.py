"""
Regression detection against a baseline.

For metrics where lower is worse (RPS) the regression percentage is
(expected - current) / expected * 100; for metrics where higher is worse
(P95 latency, CPU, memory) it is (current - expected) / expected * 100.
A regression is reported only when the percentage is strictly greater than
the threshold.

Severity uses inclusive lower bounds: 50% or more is CRITICAL, 25% or more
HIGH, 10% or more MEDIUM, anything else LOW. A regression of exactly 25.0%
is therefore HIGH.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from perfbench.analysis.models import (
    BaselineMetrics,
    BenchmarkResult,
    EndpointBaseline,
    Impact,
    PerformanceRegression,
    Severity,
    utc_now,
)
from perfbench.utils.exceptions import ConfigurationError


CRITICAL_THRESHOLD_PCT = 50.0
HIGH_THRESHOLD_PCT = 25.0
MEDIUM_THRESHOLD_PCT = 10.0


@dataclass(frozen=True)
class RegressionMetric:
    name: str
    lower_is_worse: bool
    impact: Impact
    current: Callable[[BenchmarkResult], float]
    expected: Callable[[EndpointBaseline], float]
    recommendations: tuple


REGRESSION_METRICS = (
    RegressionMetric(
        'rps', True, Impact.THROUGHPUT,
        lambda result: result.rps,
        lambda baseline: baseline.expected_rps,
        ('Profile application performance', 'Check for resource bottlenecks', 'Review recent code changes'),
    ),
    RegressionMetric(
        'p95_latency', False, Impact.USER_EXPERIENCE,
        lambda result: result.response_times.p95_ms,
        lambda baseline: baseline.expected_p95,
        ('Optimize slow database queries', 'Add response caching', 'Check network latency'),
    ),
    RegressionMetric(
        'cpu_usage', False, Impact.RESOURCE_EFFICIENCY,
        lambda result: result.resources.avg_cpu_percent,
        lambda baseline: baseline.max_cpu_percent,
        ('Profile CPU hotspots', 'Optimize algorithms', 'Consider horizontal scaling'),
    ),
    RegressionMetric(
        'memory_usage', False, Impact.RESOURCE_EFFICIENCY,
        lambda result: result.resources.peak_memory_mb,
        lambda baseline: baseline.max_memory_mb,
        ('Check for memory leaks', 'Review object allocation patterns', 'Tune garbage collection'),
    ),
)


def determine_severity(regression_pct: float) -> Severity:
    """Map a regression percentage to a severity (inclusive lower bounds)."""
    if regression_pct >= CRITICAL_THRESHOLD_PCT:
        return Severity.CRITICAL
    if regression_pct >= HIGH_THRESHOLD_PCT:
        return Severity.HIGH
    if regression_pct >= MEDIUM_THRESHOLD_PCT:
        return Severity.MEDIUM
    return Severity.LOW


def regression_percentage(current: float, expected: float, lower_is_worse: bool) -> Optional[float]:
    """Degradation of ``current`` relative to ``expected``; None when expected is not positive."""
    if expected <= 0:
        return None
    if lower_is_worse:
        return (expected - current) * 100.0 / expected
    return (current - expected) * 100.0 / expected


def validate_threshold(threshold_percent: float) -> float:
    if threshold_percent is None or threshold_percent < 0:
        raise ConfigurationError(
            "Regression threshold must be a non-negative percentage",
            details={'threshold_percent': threshold_percent}
        )
    return float(threshold_percent)


def compare_result(result: BenchmarkResult, baseline: EndpointBaseline,
                   threshold_percent: float) -> List[PerformanceRegression]:
    regressions = []
    for metric in REGRESSION_METRICS:
        current = metric.current(result)
        expected = metric.expected(baseline)
        pct = regression_percentage(current, expected, metric.lower_is_worse)
        if pct is None or pct <= threshold_percent:
            continue
        regressions.append(PerformanceRegression(
            test_name=result.test_name,
            service=result.service,
            endpoint=result.endpoint,
            metric=metric.name,
            current=current,
            baseline=expected,
            regression_pct=pct,
            threshold=threshold_percent,
            severity=determine_severity(pct),
            impact=metric.impact,
            recommendations=metric.recommendations,
            timestamp=utc_now(),
        ))
    return regressions


def sort_regressions(regressions: Sequence[PerformanceRegression]) -> List[PerformanceRegression]:
    """CRITICAL first, then by regression percentage descending."""
    return sorted(regressions, key=lambda r: (-r.severity.rank, -r.regression_pct))


def detect_regressions(results: Sequence[BenchmarkResult], baseline: Optional[BaselineMetrics],
                       threshold_percent: float) -> List[PerformanceRegression]:
    """Compare every result with its baseline entry; results without one are skipped."""
    threshold = validate_threshold(threshold_percent)
    if baseline is None:
        return []

    regressions: List[PerformanceRegression] = []
    for result in results:
        entry = baseline.get(result.service, result.endpoint, result.method)
        if entry is None:
            continue
        regressions.extend(compare_result(result, entry, threshold))
    return sort_regressions(regressions)

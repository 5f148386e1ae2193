"""Optimization recommendations derived from a result set."""

from typing import Iterable, List, Sequence

from perfbench.analysis.models import BenchmarkResult, PerformanceTrend, TrendDirection


HIGH_CPU_PERCENT = 70.0
HIGH_MEMORY_MB = 400.0
HIGH_P95_LATENCY_MS = 200.0
LOW_THROUGHPUT_RPS = 500.0

WITHIN_RANGES = "Performance is within acceptable ranges"


def _join_unique(names: Iterable[str]) -> str:
    seen: List[str] = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return ', '.join(seen)


def generate_recommendations(results: Sequence[BenchmarkResult],
                             trends: Sequence[PerformanceTrend] = ()) -> List[str]:
    """
    One recommendation per exceeded category, naming the affected services.

    Categories are CPU above 70%, peak memory above 400 MB, P95 latency above
    200 ms and throughput below 500 RPS. Degrading trends add one line per
    metric. When nothing is exceeded a single affirmative line is returned.
    """
    high_cpu = [r.service for r in results if r.resources.avg_cpu_percent > HIGH_CPU_PERCENT]
    high_memory = [r.service for r in results if r.resources.peak_memory_mb > HIGH_MEMORY_MB]
    high_latency = [r.service for r in results if r.response_times.p95_ms > HIGH_P95_LATENCY_MS]
    low_throughput = [r.service for r in results if r.rps < LOW_THROUGHPUT_RPS]

    recommendations = []
    if high_cpu:
        recommendations.append(f"Optimize CPU-intensive operations in services: {_join_unique(high_cpu)}")
    if high_memory:
        recommendations.append(f"Investigate memory usage in services: {_join_unique(high_memory)}")
    if high_latency:
        recommendations.append(f"Reduce response times for services: {_join_unique(high_latency)}")
    if low_throughput:
        recommendations.append(f"Improve throughput for services: {_join_unique(low_throughput)}")

    degrading = {}
    for trend in trends:
        if trend.trend_line.direction is TrendDirection.DEGRADING:
            degrading.setdefault(trend.metric, []).append(trend.service)
    for metric, services in degrading.items():
        recommendations.append(
            f"Investigate degrading {metric.replace('_', ' ')} trend in services: {_join_unique(services)}"
        )

    if not recommendations:
        recommendations.append(WITHIN_RANGES)
    return recommendations

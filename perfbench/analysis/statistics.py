"""
Latency, throughput and resource statistics.

Percentiles use the nearest-rank rule without interpolation: sort the
samples ascending and pick index floor(N * p), clamped to N - 1. An empty
sample yields 0. The same rule is applied everywhere (per-result
distributions, per-endpoint, per-service and session summaries) so that
repeated computation over the same samples is deterministic regardless of the
order workers produced them in.
"""

import math
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence

from perfbench.analysis.models import (
    BenchmarkResult,
    EndpointStats,
    ResourceUsage,
    ResponseTimeDistribution,
    ServiceStats,
    Status,
    SummaryStats,
)
from perfbench.monitoring.resources import ResourceSnapshot


def percentile(values: Iterable[float], pct: float) -> float:
    """
    Nearest-rank percentile of ``values`` for ``pct`` in [0, 1].

    >>> percentile([10, 20, 30, 40], 0.5)
    30
    """
    if not 0.0 <= pct <= 1.0:
        raise ValueError(f"percentile must be within [0, 1], got {pct}")
    ordered = sorted(values)
    if not ordered:
        return 0.0
    index = min(int(math.floor(len(ordered) * pct)), len(ordered) - 1)
    return ordered[index]


def distribution(latencies_ms: Sequence[float]) -> ResponseTimeDistribution:
    if not latencies_ms:
        return ResponseTimeDistribution()
    return ResponseTimeDistribution(
        min_ms=float(min(latencies_ms)),
        median_ms=float(percentile(latencies_ms, 0.5)),
        p95_ms=float(percentile(latencies_ms, 0.95)),
        p99_ms=float(percentile(latencies_ms, 0.99)),
        max_ms=float(max(latencies_ms)),
        p999_ms=float(percentile(latencies_ms, 0.999)),
    )


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def aggregate_resources(snapshots: Sequence[ResourceSnapshot]) -> ResourceUsage:
    """Collapse monitor snapshots into one ResourceUsage; None counts as zero."""
    if not snapshots:
        return ResourceUsage()

    cpu = [snapshot.value_or_zero('cpu_percent') for snapshot in snapshots]
    memory = [snapshot.value_or_zero('memory_used_mb') for snapshot in snapshots]
    tasks = [snapshot.task_count for snapshot in snapshots if snapshot.task_count is not None]
    handles = [snapshot.open_handles for snapshot in snapshots if snapshot.open_handles is not None]

    return ResourceUsage(
        avg_cpu_percent=_mean(cpu),
        peak_cpu_percent=max(cpu),
        avg_memory_mb=_mean(memory),
        peak_memory_mb=max(memory),
        peak_task_count=max(tasks) if tasks else None,
        peak_open_handles=max(handles) if handles else None,
        total_gc_pause_ms=sum(snapshot.value_or_zero('gc_pauses_ms') for snapshot in snapshots),
        avg_network_in_kbps=_mean([s.value_or_zero('network_in_kbps') for s in snapshots]),
        avg_network_out_kbps=_mean([s.value_or_zero('network_out_kbps') for s in snapshots]),
        avg_disk_read_kbps=_mean([s.value_or_zero('disk_read_kbps') for s in snapshots]),
        avg_disk_write_kbps=_mean([s.value_or_zero('disk_write_kbps') for s in snapshots]),
        sample_count=len(snapshots),
    )


def _stable_groups(results: Sequence[BenchmarkResult], key) -> Dict[str, List[BenchmarkResult]]:
    groups: Dict[str, List[BenchmarkResult]] = OrderedDict()
    for result in results:
        groups.setdefault(key(result), []).append(result)
    return groups


def _error_rate(total_requests: int, total_errors: int) -> float:
    return total_errors / total_requests * 100.0 if total_requests else 0.0


def summary_stats(results: Sequence[BenchmarkResult]) -> SummaryStats:
    """Session-wide statistics over the median/P95/P99 of every result."""
    if not results:
        return SummaryStats()

    total_requests = sum(result.total_requests for result in results)
    total_errors = sum(result.total_errors for result in results)
    latencies: List[float] = []
    for result in results:
        latencies.extend((result.response_times.median_ms, result.response_times.p95_ms,
                          result.response_times.p99_ms))

    passed = sum(1 for result in results if result.status is Status.PASS)
    warning = sum(1 for result in results if result.status is Status.WARNING)
    failed = sum(1 for result in results if result.status is Status.FAIL)

    return SummaryStats(
        total_requests=total_requests,
        total_errors=total_errors,
        error_rate=_error_rate(total_requests, total_errors),
        average_rps=_mean([result.rps for result in results]),
        median_latency_ms=percentile(latencies, 0.5),
        p95_latency_ms=percentile(latencies, 0.95),
        p99_latency_ms=percentile(latencies, 0.99),
        average_cpu_percent=_mean([result.resources.avg_cpu_percent for result in results]),
        average_memory_mb=_mean([result.resources.peak_memory_mb for result in results]),
        passed_tests=passed,
        warning_tests=warning,
        failed_tests=failed,
        success_rate=passed / len(results) * 100.0,
    )


def endpoint_stats(results: Sequence[BenchmarkResult]) -> EndpointStats:
    latencies: List[float] = []
    for result in results:
        latencies.extend((result.response_times.median_ms, result.response_times.p95_ms,
                          result.response_times.p99_ms))

    total_requests = sum(result.total_requests for result in results)
    total_errors = sum(result.total_errors for result in results)
    first = results[0]

    return EndpointStats(
        endpoint=first.endpoint,
        method=first.method,
        total_requests=total_requests,
        total_errors=total_errors,
        error_rate=_error_rate(total_requests, total_errors),
        rps=_mean([result.rps for result in results]),
        median_latency_ms=percentile(latencies, 0.5),
        p95_latency_ms=percentile(latencies, 0.95),
        p99_latency_ms=percentile(latencies, 0.99),
        min_latency_ms=min(result.response_times.min_ms for result in results),
        max_latency_ms=max(result.response_times.max_ms for result in results),
        average_cpu_percent=_mean([result.resources.avg_cpu_percent for result in results]),
        average_memory_mb=_mean([result.resources.peak_memory_mb for result in results]),
        tags=first.tags,
    )


def service_stats(results: Sequence[BenchmarkResult]) -> Dict[str, ServiceStats]:
    """Per-service statistics with a per-endpoint breakdown."""
    stats: Dict[str, ServiceStats] = {}
    for service, service_results in _stable_groups(results, lambda r: r.service).items():
        latencies: List[float] = []
        for result in service_results:
            latencies.extend((result.response_times.median_ms, result.response_times.p95_ms))

        total_requests = sum(result.total_requests for result in service_results)
        total_errors = sum(result.total_errors for result in service_results)
        endpoints = {
            key: endpoint_stats(endpoint_results)
            for key, endpoint_results in _stable_groups(service_results, lambda r: r.endpoint_key).items()
        }

        stats[service] = ServiceStats(
            service_name=service,
            endpoint_stats=endpoints,
            total_requests=total_requests,
            total_errors=total_errors,
            error_rate=_error_rate(total_requests, total_errors),
            average_rps=_mean([result.rps for result in service_results]),
            median_latency_ms=percentile(latencies, 0.5),
            p95_latency_ms=percentile(latencies, 0.95),
            average_cpu_percent=_mean([result.resources.avg_cpu_percent for result in service_results]),
            average_memory_mb=_mean([result.resources.peak_memory_mb for result in service_results]),
            violation_count=sum(len(result.violations) for result in service_results),
        )
    return stats


def throughput(request_count: int, window_seconds: float) -> float:
    if window_seconds <= 0:
        return 0.0
    return request_count / window_seconds


def measured_window(timestamps: Sequence[float], configured_seconds: Optional[float]) -> float:
    """
    Length of the measurement window in seconds.

    The configured measurement duration wins when given; otherwise the span
    between the first and last observed request is used.
    """
    if configured_seconds is not None and configured_seconds > 0:
        return configured_seconds
    if len(timestamps) < 2:
        return 0.0
    return max(timestamps) - min(timestamps)



def throughput_consistency(timestamps: Sequence[float], bucket_seconds: float = 1.0,
                           min_buckets: int = 3) -> Optional[float]:
    """
    Ratio of the slowest to the mean per-bucket request count.

    Only whole buckets between the first and last request are counted; runs
    shorter than ``min_buckets`` buckets yield None.
    """
    if len(timestamps) < 2:
        return None
    start = min(timestamps)
    buckets = int(math.floor((max(timestamps) - start) / bucket_seconds))
    if buckets < min_buckets:
        return None

    counts = [0] * buckets
    for timestamp in timestamps:
        index = int((timestamp - start) // bucket_seconds)
        if index < buckets:
            counts[index] += 1
    mean = sum(counts) / buckets
    return min(counts) / mean if mean > 0 else None

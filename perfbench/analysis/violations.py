"""
Quality target evaluation.

Each benchmark result is checked against the configured Targets when it is
built. Every breached target yields one Violation; the overall status is
FAIL when any violation is HIGH or CRITICAL, WARNING when only MEDIUM or LOW
violations exist, and PASS otherwise.

A breach of 50% or more relative to its target escalates the violation to
CRITICAL regardless of the metric's base severity.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from perfbench.analysis.models import (
    Impact,
    MetricValue,
    ResourceUsage,
    ResponseTimeDistribution,
    Severity,
    Status,
    Violation,
)
from perfbench.config.benchmark import Targets


ESCALATION_BREACH_PCT = 50.0


@dataclass(frozen=True)
class TargetCheck:
    """One metric checked against one target."""

    type: str
    label: str
    severity: Severity
    impact: Impact
    lower_is_breach: bool
    make_value: Callable[[float], MetricValue]
    suggestions: Tuple[str, ...]


_duration = MetricValue.duration


def _percent(value: float) -> MetricValue:
    return MetricValue.numeric(value, '%')


def _megabytes(value: float) -> MetricValue:
    return MetricValue.numeric(value, 'MB')


def _rps(value: float) -> MetricValue:
    return MetricValue.numeric(value, 'req/s')


def _kbps(value: float) -> MetricValue:
    return MetricValue.numeric(value, 'KB/s')


def _count(value: float) -> MetricValue:
    return MetricValue.numeric(value)


CHECKS = {
    'p50_latency': TargetCheck(
        'p50_latency', 'Median latency', Severity.LOW, Impact.USER_EXPERIENCE, False, _duration,
        ('Profile the common request path', 'Reduce per-request serialization work'),
    ),
    'p95_latency': TargetCheck(
        'p95_latency', 'P95 latency', Severity.HIGH, Impact.USER_EXPERIENCE, False, _duration,
        ('Optimize slow database queries', 'Add response caching', 'Check network latency'),
    ),
    'p99_latency': TargetCheck(
        'p99_latency', 'P99 latency', Severity.MEDIUM, Impact.USER_EXPERIENCE, False, _duration,
        ('Investigate tail latency outliers', 'Review lock contention and GC pauses'),
    ),
    'p999_latency': TargetCheck(
        'p999_latency', 'P99.9 latency', Severity.LOW, Impact.USER_EXPERIENCE, False, _duration,
        ('Inspect the slowest requests for retries or cold caches', 'Review GC pauses'),
    ),
    'max_latency': TargetCheck(
        'max_latency', 'Maximum latency', Severity.LOW, Impact.USER_EXPERIENCE, False, _duration,
        ('Review request timeouts', 'Inspect slowest requests for retries or cold paths'),
    ),
    'cpu_usage': TargetCheck(
        'cpu_usage', 'CPU usage', Severity.MEDIUM, Impact.COST, False, _percent,
        ('Profile CPU hotspots', 'Optimize algorithms', 'Consider horizontal scaling'),
    ),
    'memory_usage': TargetCheck(
        'memory_usage', 'Memory usage', Severity.MEDIUM, Impact.COST, False, _megabytes,
        ('Check for memory leaks', 'Reduce object allocation in hot paths', 'Tune cache sizes'),
    ),
    'throughput': TargetCheck(
        'throughput', 'Throughput', Severity.HIGH, Impact.SCALABILITY, True, _rps,
        ('Profile application performance', 'Check for resource bottlenecks', 'Review recent code changes'),
    ),
    'throughput_target': TargetCheck(
        'throughput_target', 'Throughput', Severity.LOW, Impact.SCALABILITY, True, _rps,
        ('Review connection pool sizing', 'Check for lock contention under load'),
    ),
    'throughput_consistency': TargetCheck(
        'throughput_consistency', 'Throughput consistency', Severity.LOW, Impact.SCALABILITY, True, _count,
        ('Look for periodic stalls such as GC or cache expiry', 'Check upstream rate limiting'),
    ),
    'scalability': TargetCheck(
        'scalability', 'Throughput at higher concurrency', Severity.MEDIUM, Impact.SCALABILITY, True, _rps,
        ('Look for shared locks or single-threaded bottlenecks', 'Review connection and worker pool limits'),
    ),
    'error_rate': TargetCheck(
        'error_rate', 'Error rate', Severity.HIGH, Impact.USER_EXPERIENCE, False, _percent,
        ('Inspect failing responses', 'Check upstream dependencies and timeouts'),
    ),
    'open_handles': TargetCheck(
        'open_handles', 'Open handles', Severity.LOW, Impact.SCALABILITY, False, _count,
        ('Close connections and files promptly', 'Review connection pool limits'),
    ),
    'task_count': TargetCheck(
        'task_count', 'Task count', Severity.LOW, Impact.SCALABILITY, False, _count,
        ('Bound worker pools', 'Look for leaked threads'),
    ),
    'disk_io': TargetCheck(
        'disk_io', 'Disk I/O', Severity.LOW, Impact.COST, False, _kbps,
        ('Batch disk writes', 'Move temporary data off disk'),
    ),
    'network_io': TargetCheck(
        'network_io', 'Network I/O', Severity.LOW, Impact.COST, False, _kbps,
        ('Compress responses', 'Trim payload sizes'),
    ),
}


def breach_percentage(current: float, target: float, lower_is_breach: bool) -> float:
    """How far ``current`` is past ``target`` in percent of the target."""
    if target <= 0:
        return 100.0 if (current < target if lower_is_breach else current > target) else 0.0
    if lower_is_breach:
        return (target - current) / target * 100.0
    return (current - target) / target * 100.0


def check_target(check: TargetCheck, current: Optional[float],
                 target: float) -> Optional[Violation]:
    """Return a Violation when ``current`` breaches ``target``, else None."""
    if current is None:
        return None
    breached = current < target if check.lower_is_breach else current > target
    if not breached:
        return None

    breach_pct = breach_percentage(current, target, check.lower_is_breach)
    severity = Severity.CRITICAL if breach_pct >= ESCALATION_BREACH_PCT else check.severity
    current_value = check.make_value(current)
    expected_value = check.make_value(target)
    relation = 'below minimum' if check.lower_is_breach else 'exceeds target'

    return Violation(
        type=check.type,
        current=current_value,
        expected=expected_value,
        severity=severity,
        impact=check.impact,
        message=f"{check.label} {current_value.format()} {relation} {expected_value.format()}",
        suggestions=check.suggestions,
    )


def evaluate_violations(response_times: ResponseTimeDistribution, rps: float, error_rate: float,
                        resources: ResourceUsage, targets: Targets,
                        measured_requests: int = 1,
                        consistency: Optional[float] = None,
                        reference_rps: Optional[float] = None) -> Tuple[Violation, ...]:
    """
    Compare one result's measurements against ``targets``.

    Latency and throughput are only checked when the run measured at least
    one request; resource limits are only checked when samples were taken.
    The throughput target is only checked once the minimum is met, so a run
    below the minimum yields a single throughput violation.

    ``consistency`` is the ratio of the slowest to the mean per-second
    request count and ``reference_rps`` the best throughput the same
    endpoint reached at a lower concurrency level; either is skipped when
    None.
    """
    response_targets = targets.response_time
    throughput_targets = targets.throughput
    resource_targets = targets.resources

    measurements: List[Tuple[str, Optional[float], float]] = []
    if measured_requests > 0:
        measurements.extend([
            ('p50_latency', response_times.median_ms, response_targets.p50_ms),
            ('p95_latency', response_times.p95_ms, response_targets.p95_ms),
            ('p99_latency', response_times.p99_ms, response_targets.p99_ms),
            ('p999_latency', response_times.p999_ms, response_targets.p999_ms),
            ('max_latency', response_times.max_ms, response_targets.max_ms),
            ('throughput', rps, throughput_targets.min_rps),
            ('error_rate', error_rate, resource_targets.max_error_rate),
        ])
        if rps >= throughput_targets.min_rps:
            measurements.append(('throughput_target', rps, throughput_targets.target_rps))
        if consistency is not None:
            measurements.append(('throughput_consistency', consistency, throughput_targets.consistency_ratio))
        if reference_rps is not None and reference_rps > 0:
            measurements.append(('scalability', rps, reference_rps * throughput_targets.scalability_ratio))
    if resources.sample_count > 0:
        measurements.extend([
            ('cpu_usage', resources.avg_cpu_percent, resource_targets.max_cpu_percent),
            ('memory_usage', resources.peak_memory_mb, resource_targets.max_memory_mb),
            ('open_handles', resources.peak_open_handles, resource_targets.max_open_handles),
            ('task_count', resources.peak_task_count, resource_targets.max_task_count),
            ('disk_io', resources.avg_disk_read_kbps + resources.avg_disk_write_kbps,
             resource_targets.max_disk_io_kbps),
            ('network_io', resources.avg_network_in_kbps + resources.avg_network_out_kbps,
             resource_targets.max_network_io_kbps),
        ])

    violations = []
    for check_type, current, target in measurements:
        violation = check_target(CHECKS[check_type], current, target)
        if violation is not None:
            violations.append(violation)
    return tuple(violations)


def determine_status(violations: Sequence[Violation]) -> Status:
    if any(v.severity in (Severity.HIGH, Severity.CRITICAL) for v in violations):
        return Status.FAIL
    if violations:
        return Status.WARNING
    return Status.PASS

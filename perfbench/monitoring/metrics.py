"""
Prometheus self-instrumentation for the benchmarking engine.

Tracks what the engine itself does during a session: requests issued by load
workers, request failures, per-phase request latency, resource samples taken
and regressions detected. Each collector owns its own CollectorRegistry so
that concurrent sessions (and tests) never share metric state.
"""

from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


REQUEST_LATENCY_BUCKETS = (
    0.005, 0.01, 0.025, 0.05, 0.1, 0.2, 0.3, 0.5, 0.75, 1.0, 2.0, 5.0, 10.0
)


class EngineMetricsCollector:
    """
    Prometheus metrics describing one benchmarking session.

    The collector is constructed per session and passed explicitly to the
    load generator, resource monitor and analyzer.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.requests_total = Counter(
            'perfbench_load_requests_total',
            'Requests issued by load workers',
            ['target', 'status_class'],
            registry=self.registry
        )
        self.request_failures_total = Counter(
            'perfbench_load_request_failures_total',
            'Requests that ended in a transport error or timeout',
            ['target'],
            registry=self.registry
        )
        self.request_duration = Histogram(
            'perfbench_load_request_duration_seconds',
            'End-to-end request duration observed by load workers',
            ['target'],
            buckets=REQUEST_LATENCY_BUCKETS,
            registry=self.registry
        )
        self.active_workers = Gauge(
            'perfbench_load_active_workers',
            'Load workers currently running',
            registry=self.registry
        )
        self.resource_samples_total = Counter(
            'perfbench_resource_samples_total',
            'Resource snapshots captured by the monitor',
            registry=self.registry
        )
        self.resource_sample_field_failures = Counter(
            'perfbench_resource_sample_field_failures_total',
            'Resource snapshot fields that could not be measured',
            ['field'],
            registry=self.registry
        )
        self.results_recorded = Counter(
            'perfbench_results_recorded_total',
            'Benchmark results added to the analyzer',
            ['service', 'status'],
            registry=self.registry
        )
        self.regressions_detected = Gauge(
            'perfbench_regressions_detected',
            'Regressions found by the last regression scan',
            ['severity'],
            registry=self.registry
        )

    @staticmethod
    def status_class(status_code: int) -> str:
        """Collapse an HTTP status code into a label value (2xx, 4xx, error...)."""
        if status_code <= 0:
            return 'error'
        return f"{status_code // 100}xx"

    def observe_request(self, target: str, status_code: int, duration_seconds: float,
                        failed: bool) -> None:
        self.requests_total.labels(target=target, status_class=self.status_class(status_code)).inc()
        self.request_duration.labels(target=target).observe(max(duration_seconds, 0.0))
        if failed:
            self.request_failures_total.labels(target=target).inc()

    def exposition(self) -> bytes:
        """Render the collector's registry in Prometheus text format."""
        return generate_latest(self.registry)

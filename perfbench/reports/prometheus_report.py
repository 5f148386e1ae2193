"""
Prometheus text exposition of a report.

Each render builds its own CollectorRegistry, so rendering is free of global
metric state and the output can be served by a pushgateway or a textfile
collector.
"""

from prometheus_client import CollectorRegistry, Gauge, generate_latest

from perfbench.analysis.models import PerformanceReport, Status


def render(report: PerformanceReport) -> bytes:
    registry = CollectorRegistry()
    summary = report.summary

    session_labels = ['session_id']
    session = report.session_id

    Gauge('perfbench_report_total_tests', 'Benchmark results in the report',
          session_labels, registry=registry).labels(session).set(report.total_tests)
    Gauge('perfbench_report_success_rate_percent', 'Share of results with PASS status',
          session_labels, registry=registry).labels(session).set(summary.success_rate)
    Gauge('perfbench_report_average_rps', 'Average requests per second across results',
          session_labels, registry=registry).labels(session).set(summary.average_rps)
    Gauge('perfbench_report_p95_latency_ms', 'Session P95 latency in milliseconds',
          session_labels, registry=registry).labels(session).set(summary.p95_latency_ms)
    Gauge('perfbench_report_error_rate_percent', 'Session error rate',
          session_labels, registry=registry).labels(session).set(summary.error_rate)
    Gauge('perfbench_report_average_cpu_percent', 'Average CPU utilization across results',
          session_labels, registry=registry).labels(session).set(summary.average_cpu_percent)
    Gauge('perfbench_report_average_memory_mb', 'Average peak memory across results',
          session_labels, registry=registry).labels(session).set(summary.average_memory_mb)

    result_labels = ['service', 'endpoint', 'concurrency']
    result_rps = Gauge('perfbench_result_rps', 'Requests per second of one result',
                       result_labels, registry=registry)
    result_p95 = Gauge('perfbench_result_p95_latency_ms', 'P95 latency of one result',
                       result_labels, registry=registry)
    result_p99 = Gauge('perfbench_result_p99_latency_ms', 'P99 latency of one result',
                       result_labels, registry=registry)
    result_errors = Gauge('perfbench_result_error_rate_percent', 'Error rate of one result',
                          result_labels, registry=registry)
    result_status = Gauge('perfbench_result_passed', '1 when the result passed its quality gate',
                          result_labels, registry=registry)
    result_violations = Gauge('perfbench_result_violations', 'Violations attached to one result',
                              result_labels, registry=registry)

    for result in report.results:
        labels = (result.service, result.endpoint, str(result.concurrency))
        result_rps.labels(*labels).set(result.rps)
        result_p95.labels(*labels).set(result.response_times.p95_ms)
        result_p99.labels(*labels).set(result.response_times.p99_ms)
        result_errors.labels(*labels).set(result.error_rate)
        result_status.labels(*labels).set(1 if result.status is Status.PASS else 0)
        result_violations.labels(*labels).set(len(result.violations))

    regression_pct = Gauge('perfbench_regression_percent', 'Regression relative to baseline',
                           ['service', 'endpoint', 'metric', 'severity'], registry=registry)
    for regression in report.regressions:
        regression_pct.labels(regression.service, regression.endpoint, regression.metric,
                              regression.severity.value).set(regression.regression_pct)

    return generate_latest(registry)

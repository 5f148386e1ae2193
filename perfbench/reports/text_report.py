"""Tabular console report."""

from typing import List, Sequence

from perfbench.analysis.models import MetricValue, PerformanceReport


RULE_WIDTH = 96


def _table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> List[str]:
    widths = [len(header) for header in headers]
    for row in rows:
        widths = [max(width, len(cell)) for width, cell in zip(widths, row)]

    def line(cells: Sequence[str]) -> str:
        return '  '.join(cell.ljust(width) for cell, width in zip(cells, widths)).rstrip()

    output = [line(headers), line(['-' * width for width in widths])]
    output.extend(line(row) for row in rows)
    return output


def render(report: PerformanceReport) -> bytes:
    summary = report.summary
    lines = [
        '=' * RULE_WIDTH,
        'PERFORMANCE BENCHMARK REPORT',
        '=' * RULE_WIDTH,
        f"Session ID:   {report.session_id}",
        f"Generated:    {report.timestamp.isoformat()}",
        f"Total Tests:  {report.total_tests}  "
        f"(passed {summary.passed_tests}, warning {summary.warning_tests}, failed {summary.failed_tests})",
        f"Requests:     {summary.total_requests} total, {summary.total_errors} errors",
        '',
        'SUMMARY',
        '-' * RULE_WIDTH,
    ]
    for label, value in summary.headline():
        lines.append(f"{label + ':':<16}{value.format()}")

    lines.extend(['', 'SERVICES', '-' * RULE_WIDTH])
    service_rows = [
        [
            name,
            str(stats.total_requests),
            MetricValue.numeric(stats.average_rps).format(),
            MetricValue.duration(stats.p95_latency_ms).format(),
            MetricValue.numeric(stats.error_rate, '%').format(),
            MetricValue.numeric(stats.average_cpu_percent, '%').format(),
            MetricValue.numeric(stats.average_memory_mb, 'MB').format(),
            str(stats.violation_count),
        ]
        for name, stats in report.service_stats.items()
    ]
    lines.extend(_table(
        ['Service', 'Requests', 'Avg RPS', 'P95', 'Errors', 'CPU', 'Memory', 'Violations'],
        service_rows
    ))

    for name, stats in report.service_stats.items():
        if not stats.endpoint_stats:
            continue
        lines.extend(['', f"Endpoints of {name}"])
        lines.extend(_table(
            ['Endpoint', 'Method', 'RPS', 'P50', 'P95', 'P99', 'Errors'],
            [
                [
                    endpoint_stats.endpoint,
                    endpoint_stats.method,
                    MetricValue.numeric(endpoint_stats.rps).format(),
                    MetricValue.duration(endpoint_stats.median_latency_ms).format(),
                    MetricValue.duration(endpoint_stats.p95_latency_ms).format(),
                    MetricValue.duration(endpoint_stats.p99_latency_ms).format(),
                    MetricValue.numeric(endpoint_stats.error_rate, '%').format(),
                ]
                for endpoint_stats in stats.endpoint_stats.values()
            ]
        ))

    if report.regressions:
        lines.extend(['', 'REGRESSIONS', '-' * RULE_WIDTH])
        lines.extend(_table(
            ['Severity', 'Service', 'Endpoint', 'Metric', 'Current', 'Baseline', 'Change'],
            [
                [
                    regression.severity.value,
                    regression.service,
                    regression.endpoint,
                    regression.metric,
                    f"{regression.current:.2f}",
                    f"{regression.baseline:.2f}",
                    f"{regression.regression_pct:+.1f}%",
                ]
                for regression in report.regressions
            ]
        ))

    lines.extend(['', 'RECOMMENDATIONS', '-' * RULE_WIDTH])
    lines.extend(f"{index}. {text}" for index, text in enumerate(report.recommendations, start=1))
    lines.append('=' * RULE_WIDTH)
    return ('\n'.join(lines) + '\n').encode('utf-8')

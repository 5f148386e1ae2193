"""
Delimited per-result rows for spreadsheet import.

One row per benchmark result; an empty report renders the header row only.
Latencies are milliseconds, error rate is percent.
"""

import csv
import io

from perfbench.analysis.models import PerformanceReport


CSV_HEADERS = [
    'TestName',
    'Service',
    'Endpoint',
    'Method',
    'Concurrency',
    'RPS',
    'P95Latency',
    'P99Latency',
    'ErrorRate',
    'CPUPercent',
    'MemoryMB',
    'Status',
    'ViolationCount',
]


def render(report: PerformanceReport) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerow(CSV_HEADERS)
    for result in report.results:
        writer.writerow([
            result.test_name,
            result.service,
            result.endpoint,
            result.method,
            result.concurrency,
            f"{result.rps:.2f}",
            f"{result.response_times.p95_ms:.2f}",
            f"{result.response_times.p99_ms:.2f}",
            f"{result.error_rate:.2f}",
            f"{result.resources.avg_cpu_percent:.2f}",
            f"{result.resources.peak_memory_mb:.2f}",
            result.status.value,
            len(result.violations),
        ])
    return buffer.getvalue().encode('utf-8')

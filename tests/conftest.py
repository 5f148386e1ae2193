"""
Global pytest configuration and fixtures for the perfbench test suite.

Provides factories for benchmark results, worker results and reports, a
temporary report directory and httpx MockTransport helpers so that load
generation and the runner can be exercised without a network.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import httpx
import pytest

from perfbench.analysis.models import (
    BenchmarkResult,
    PerformanceReport,
    ResourceUsage,
    ResponseTimeDistribution,
    Status,
    SummaryStats,
)
from perfbench.config.benchmark import Targets
from perfbench.load.generator import WorkerResult


BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Unit tests with isolated component testing")
    config.addinivalue_line("markers", "integration: End-to-end runner tests over a mock transport")
    config.addinivalue_line("markers", "performance: Timing-sensitive load generation tests")


@pytest.fixture
def base_time() -> datetime:
    return BASE_TIME


@pytest.fixture
def default_targets() -> Targets:
    return Targets()


@pytest.fixture
def make_result() -> Callable[..., BenchmarkResult]:
    """Factory for BenchmarkResult instances with sensible defaults."""

    def factory(service: str = 'orders', endpoint: str = '/orders', rps: float = 1000.0,
                p95_ms: float = 100.0, p99_ms: float = 150.0, cpu: float = 40.0,
                memory_mb: float = 200.0, total_requests: int = 1000, total_errors: int = 0,
                status: Status = Status.PASS, timestamp: Optional[datetime] = None,
                concurrency: int = 10, violations=(), method: str = 'GET') -> BenchmarkResult:
        return BenchmarkResult(
            test_name=f"{service}:{endpoint}:c{concurrency}",
            service=service,
            endpoint=endpoint,
            method=method,
            timestamp=timestamp or BASE_TIME,
            duration_seconds=10.0,
            concurrency=concurrency,
            total_requests=total_requests,
            total_errors=total_errors,
            rps=rps,
            response_times=ResponseTimeDistribution(
                min_ms=p95_ms / 4, median_ms=p95_ms / 2, p95_ms=p95_ms, p99_ms=p99_ms, max_ms=p99_ms * 2
            ),
            resources=ResourceUsage(
                avg_cpu_percent=cpu, peak_cpu_percent=cpu, avg_memory_mb=memory_mb,
                peak_memory_mb=memory_mb, sample_count=5
            ),
            violations=tuple(violations),
            status=status,
        )

    return factory


@pytest.fixture
def make_worker_results() -> Callable[..., List[WorkerResult]]:
    """Factory for sequences of WorkerResult one second apart."""

    def factory(durations_ms: List[float], status_code: int = 200, warmup: bool = False,
                start: Optional[datetime] = None, error: Optional[str] = None) -> List[WorkerResult]:
        origin = start or BASE_TIME
        return [
            WorkerResult(
                worker_id=index % 4,
                request_id=f"req-{index}",
                timestamp=origin + timedelta(seconds=index),
                duration_ms=duration,
                status_code=status_code,
                error=error,
                warmup=warmup,
            )
            for index, duration in enumerate(durations_ms)
        ]

    return factory


@pytest.fixture
def empty_report() -> PerformanceReport:
    return PerformanceReport(
        session_id='empty-session',
        timestamp=BASE_TIME,
        total_tests=0,
        summary=SummaryStats(),
        service_stats={},
        regressions=(),
        trends=(),
        recommendations=(),
        metadata={},
        results=(),
    )


@pytest.fixture
def report_dir(tmp_path):
    return tmp_path / 'reports'


@pytest.fixture
def ok_transport() -> httpx.MockTransport:
    """Transport answering every request with 200 and a small JSON body."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={'path': request.url.path})

    return httpx.MockTransport(handler)

"""
Baseline document parsing and derivation.

A baseline document is a versioned JSON object keyed by service and endpoint:

    {
      "version": "1.4.0",
      "timestamp": "2024-05-01T12:00:00+00:00",
      "environment": "production",
      "test_suite": "performance_benchmark",
      "services": {
        "orders": {
          "service_name": "orders",
          "endpoints": {
            "GET /orders": {
              "expected_rps": 950.0, "expected_p95": 190.0, "expected_p99": 380.0,
              "max_cpu_percent": 66.0, "max_memory_mb": 440.0, "max_error_rate": 0.5,
              "tags": ["read"]
            }
          }
        }
      }
    }

Latencies are milliseconds, error rates percent. The whole document is
validated before a BaselineMetrics is returned, so a malformed document is
never partially applied.
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Sequence

from perfbench.analysis.models import (
    BaselineMetrics,
    BenchmarkResult,
    EndpointBaseline,
    parse_timestamp,
    utc_now,
)


SAFETY_MARGIN = 0.95
CPU_HEADROOM = 1.1
MEMORY_HEADROOM = 1.1
ERROR_RATE_HEADROOM = 2.0

ENDPOINT_NUMERIC_FIELDS = (
    'expected_rps',
    'expected_p95',
    'expected_p99',
    'max_cpu_percent',
    'max_memory_mb',
    'max_error_rate',
)


class BaselineValidationError(ValueError):
    """Raised by parse_baseline with the list of problems found."""

    def __init__(self, problems: List[str]):
        self.problems = problems
        super().__init__('; '.join(problems))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _method_from_key(name: str) -> str:
    method, _, path = name.partition(' ')
    return method if path.startswith('/') else 'GET'


def _validate_endpoint(location: str, entry: Any, problems: List[str]) -> None:
    if not isinstance(entry, dict):
        problems.append(f"{location}: endpoint entry must be an object")
        return
    for name in ENDPOINT_NUMERIC_FIELDS:
        value = entry.get(name)
        if value is None:
            problems.append(f"{location}.{name}: missing")
        elif not _is_number(value):
            problems.append(f"{location}.{name}: must be a number")
        elif not math.isfinite(value):
            problems.append(f"{location}.{name}: must be finite")
        elif value < 0:
            problems.append(f"{location}.{name}: must be non-negative")
    tags = entry.get('tags', [])
    if tags is not None and (not isinstance(tags, list) or not all(isinstance(t, str) for t in tags)):
        problems.append(f"{location}.tags: must be a list of strings")


def validate_baseline_document(data: Any) -> List[str]:
    """Return every problem found in a decoded baseline document."""
    problems: List[str] = []
    if not isinstance(data, dict):
        return ["baseline document must be a JSON object"]

    version = data.get('version')
    if not isinstance(version, str) or not version.strip():
        problems.append("version: must be a non-empty string")

    if 'timestamp' in data:
        try:
            parse_timestamp(data['timestamp'])
        except (TypeError, ValueError):
            problems.append("timestamp: must be an ISO 8601 timestamp")

    services = data.get('services')
    if not isinstance(services, dict):
        problems.append("services: must be an object keyed by service name")
        return problems

    for service_name, service in services.items():
        if not isinstance(service, dict) or not isinstance(service.get('endpoints'), dict):
            problems.append(f"services.{service_name}: must contain an 'endpoints' object")
            continue
        for endpoint_name, entry in service['endpoints'].items():
            _validate_endpoint(f"services.{service_name}.endpoints.{endpoint_name}", entry, problems)

    return problems


def parse_baseline(data: Any) -> BaselineMetrics:
    """
    Build BaselineMetrics from a decoded document.

    Raises:
        BaselineValidationError: The document failed validation
    """
    problems = validate_baseline_document(data)
    if problems:
        raise BaselineValidationError(problems)

    services: Dict[str, Dict[str, EndpointBaseline]] = {}
    for service_name, service in data['services'].items():
        services[service_name] = {
            endpoint_name: EndpointBaseline(
                expected_rps=float(entry['expected_rps']),
                expected_p95=float(entry['expected_p95']),
                expected_p99=float(entry['expected_p99']),
                max_cpu_percent=float(entry['max_cpu_percent']),
                max_memory_mb=float(entry['max_memory_mb']),
                max_error_rate=float(entry['max_error_rate']),
                path=str(entry.get('path', '')),
                method=str(entry.get('method') or _method_from_key(endpoint_name)).upper(),
                tags=tuple(entry.get('tags') or ()),
            )
            for endpoint_name, entry in service['endpoints'].items()
        }

    timestamp = parse_timestamp(data['timestamp']) if 'timestamp' in data else utc_now()
    return BaselineMetrics(
        version=data['version'],
        timestamp=timestamp,
        services=services,
        environment=str(data.get('environment', 'production')),
        test_suite=str(data.get('test_suite', 'performance_benchmark')),
    )


def derive_baseline(results: Sequence[BenchmarkResult], version: str,
                    environment: str = 'production',
                    timestamp: datetime = None) -> BaselineMetrics:
    """
    Derive a baseline from observed results.

    Expected RPS and latencies are set to 95% of the observed values;
    resource limits get 10% headroom over observed usage and the error rate
    limit is twice the observed rate. When an endpoint has several results
    (one per concurrency level) the last one wins.
    """
    services: Dict[str, Dict[str, EndpointBaseline]] = {}
    for result in results:
        services.setdefault(result.service, {})[result.endpoint_key] = EndpointBaseline(
            expected_rps=result.rps * SAFETY_MARGIN,
            expected_p95=result.response_times.p95_ms * SAFETY_MARGIN,
            expected_p99=result.response_times.p99_ms * SAFETY_MARGIN,
            max_cpu_percent=result.resources.avg_cpu_percent * CPU_HEADROOM,
            max_memory_mb=result.resources.peak_memory_mb * MEMORY_HEADROOM,
            max_error_rate=result.error_rate * ERROR_RATE_HEADROOM,
            path=result.endpoint,
            method=result.method,
            tags=result.tags,
        )

    return BaselineMetrics(
        version=version,
        timestamp=timestamp or utc_now(),
        services=services,
        environment=environment,
        test_suite='performance_benchmark',
    )

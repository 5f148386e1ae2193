"""
Benchmark Data Model

Immutable records exchanged between the load generator, resource monitor,
analyzer, trend engine and report generators. Every record serializes to a
JSON-native dictionary with ``to_dict()`` and is rebuilt with ``from_dict()``
so that a report written in the structured format can be read back and
compared field for field.

Key Features:
- Frozen dataclasses with invariant checks in __post_init__
- Closed MetricValue variant (numeric, duration, text) for report cells and
  violation values
- Severity, status, impact and trend direction enumerations
- Baseline document model keyed by service and endpoint

All latencies are float milliseconds; all timestamps are timezone-aware UTC.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def endpoint_key(method: str, path: str) -> str:
    """Identity of an endpoint within a service, e.g. ``"GET /orders"``."""
    return f"{method.upper()} {path}"


DISTRIBUTION_FIELDS = ('min_ms', 'median_ms', 'p95_ms', 'p99_ms', 'p999_ms', 'max_ms')


class Status(Enum):
    """Quality gate verdict of one benchmark result."""

    PASS = "PASS"
    WARNING = "WARNING"
    FAIL = "FAIL"


class Severity(Enum):
    """Severity of a violation or regression."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class Impact(Enum):
    """Impact category attached to violations and regressions."""

    USER_EXPERIENCE = "user_experience"
    COST = "cost"
    SCALABILITY = "scalability"
    THROUGHPUT = "throughput"
    RESOURCE_EFFICIENCY = "resource_efficiency"


class TrendDirection(Enum):
    """Direction of a metric over time."""

    IMPROVING = "improving"
    DEGRADING = "degrading"
    STABLE = "stable"


class MetricKind(Enum):
    """Tag of a MetricValue."""

    NUMERIC = "numeric"
    DURATION = "duration"
    TEXT = "text"


@dataclass(frozen=True)
class MetricValue:
    """
    Closed tagged value used for violation values and report cells.

    NUMERIC and DURATION carry a float (DURATION always in milliseconds);
    TEXT carries a string. Consumers dispatch on ``kind``.
    """

    kind: MetricKind
    value: Union[float, str]
    unit: str = ''

    def __post_init__(self):
        if self.kind is MetricKind.TEXT:
            if not isinstance(self.value, str):
                raise TypeError("TEXT metric values must be strings")
        elif isinstance(self.value, (str, bytes)) or isinstance(self.value, bool):
            raise TypeError(f"{self.kind.value} metric values must be numbers")
        else:
            object.__setattr__(self, 'value', float(self.value))

    @classmethod
    def numeric(cls, value: float, unit: str = '') -> 'MetricValue':
        return cls(MetricKind.NUMERIC, value, unit)

    @classmethod
    def duration(cls, milliseconds: float) -> 'MetricValue':
        return cls(MetricKind.DURATION, milliseconds, 'ms')

    @classmethod
    def text(cls, value: str) -> 'MetricValue':
        return cls(MetricKind.TEXT, value)

    @property
    def as_float(self) -> float:
        if self.kind is MetricKind.TEXT:
            raise TypeError("TEXT metric value has no numeric form")
        return float(self.value)

    def format(self, precision: int = 2) -> str:
        """Human-readable rendering used by the text and HTML reports."""
        if self.kind is MetricKind.TEXT:
            return str(self.value)
        if self.kind is MetricKind.DURATION:
            return f"{self.value:.{precision}f}ms"
        suffix = self.unit if self.unit in ('%',) else (f" {self.unit}" if self.unit else '')
        return f"{self.value:.{precision}f}{suffix}"

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': self.kind.value, 'value': self.value, 'unit': self.unit}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MetricValue':
        return cls(MetricKind(data['kind']), data['value'], data.get('unit', ''))


@dataclass(frozen=True)
class ResponseTimeDistribution:
    """Latency distribution of one result, in milliseconds."""

    min_ms: float = 0.0
    median_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0
    max_ms: float = 0.0
    p999_ms: float = 0.0

    def __post_init__(self):
        for name in DISTRIBUTION_FIELDS:
            value = getattr(self, name)
            if value is None or math.isnan(value) or value < 0:
                raise ValueError(f"{name} must be a non-negative number, got {value!r}")

    def to_dict(self) -> Dict[str, float]:
        return {
            'min_ms': self.min_ms,
            'median_ms': self.median_ms,
            'p95_ms': self.p95_ms,
            'p99_ms': self.p99_ms,
            'p999_ms': self.p999_ms,
            'max_ms': self.max_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ResponseTimeDistribution':
        return cls(**{key: float(data.get(key, 0.0)) for key in DISTRIBUTION_FIELDS})


@dataclass(frozen=True)
class ResourceUsage:
    """
    Resource usage aggregated over the snapshots of one run.

    Averages and totals treat unavailable samples as zero. Peak task and
    handle counts stay None when no sample could measure them.
    """

    avg_cpu_percent: float = 0.0
    peak_cpu_percent: float = 0.0
    avg_memory_mb: float = 0.0
    peak_memory_mb: float = 0.0
    peak_task_count: Optional[int] = None
    peak_open_handles: Optional[int] = None
    total_gc_pause_ms: float = 0.0
    avg_network_in_kbps: float = 0.0
    avg_network_out_kbps: float = 0.0
    avg_disk_read_kbps: float = 0.0
    avg_disk_write_kbps: float = 0.0
    sample_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'avg_cpu_percent': self.avg_cpu_percent,
            'peak_cpu_percent': self.peak_cpu_percent,
            'avg_memory_mb': self.avg_memory_mb,
            'peak_memory_mb': self.peak_memory_mb,
            'peak_task_count': self.peak_task_count,
            'peak_open_handles': self.peak_open_handles,
            'total_gc_pause_ms': self.total_gc_pause_ms,
            'avg_network_in_kbps': self.avg_network_in_kbps,
            'avg_network_out_kbps': self.avg_network_out_kbps,
            'avg_disk_read_kbps': self.avg_disk_read_kbps,
            'avg_disk_write_kbps': self.avg_disk_write_kbps,
            'sample_count': self.sample_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ResourceUsage':
        return cls(
            avg_cpu_percent=float(data.get('avg_cpu_percent', 0.0)),
            peak_cpu_percent=float(data.get('peak_cpu_percent', 0.0)),
            avg_memory_mb=float(data.get('avg_memory_mb', 0.0)),
            peak_memory_mb=float(data.get('peak_memory_mb', 0.0)),
            peak_task_count=data.get('peak_task_count'),
            peak_open_handles=data.get('peak_open_handles'),
            total_gc_pause_ms=float(data.get('total_gc_pause_ms', 0.0)),
            avg_network_in_kbps=float(data.get('avg_network_in_kbps', 0.0)),
            avg_network_out_kbps=float(data.get('avg_network_out_kbps', 0.0)),
            avg_disk_read_kbps=float(data.get('avg_disk_read_kbps', 0.0)),
            avg_disk_write_kbps=float(data.get('avg_disk_write_kbps', 0.0)),
            sample_count=int(data.get('sample_count', 0)),
        )


@dataclass(frozen=True)
class Violation:
    """Single-metric breach of a configured target."""

    type: str
    current: MetricValue
    expected: MetricValue
    severity: Severity
    impact: Impact
    message: str
    suggestions: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'current': self.current.to_dict(),
            'expected': self.expected.to_dict(),
            'severity': self.severity.value,
            'impact': self.impact.value,
            'message': self.message,
            'suggestions': list(self.suggestions),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Violation':
        return cls(
            type=data['type'],
            current=MetricValue.from_dict(data['current']),
            expected=MetricValue.from_dict(data['expected']),
            severity=Severity(data['severity']),
            impact=Impact(data['impact']),
            message=data['message'],
            suggestions=tuple(data.get('suggestions', ())),
        )


@dataclass(frozen=True)
class BenchmarkResult:
    """
    Immutable record of one test execution (one endpoint at one concurrency).

    Invariants: total_errors <= total_requests and every latency field >= 0.
    """

    test_name: str
    service: str
    endpoint: str
    method: str = 'GET'
    timestamp: datetime = field(default_factory=utc_now)
    duration_seconds: float = 0.0
    concurrency: int = 1
    total_requests: int = 0
    total_errors: int = 0
    rps: float = 0.0
    response_times: ResponseTimeDistribution = field(default_factory=ResponseTimeDistribution)
    resources: ResourceUsage = field(default_factory=ResourceUsage)
    violations: Tuple[Violation, ...] = ()
    status: Status = Status.PASS
    tags: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.total_requests < 0 or self.total_errors < 0:
            raise ValueError("request and error counts must be non-negative")
        if self.total_errors > self.total_requests:
            raise ValueError(
                f"total_errors ({self.total_errors}) exceeds total_requests ({self.total_requests})"
            )
        if self.rps < 0:
            raise ValueError("rps must be non-negative")

    @property
    def endpoint_key(self) -> str:
        return endpoint_key(self.method, self.endpoint)

    @property
    def error_rate(self) -> float:
        """Error rate in percent."""
        if self.total_requests == 0:
            return 0.0
        return self.total_errors / self.total_requests * 100.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'test_name': self.test_name,
            'service': self.service,
            'endpoint': self.endpoint,
            'method': self.method,
            'timestamp': self.timestamp.isoformat(),
            'duration_seconds': self.duration_seconds,
            'concurrency': self.concurrency,
            'total_requests': self.total_requests,
            'total_errors': self.total_errors,
            'rps': self.rps,
            'response_times': self.response_times.to_dict(),
            'resources': self.resources.to_dict(),
            'violations': [violation.to_dict() for violation in self.violations],
            'status': self.status.value,
            'tags': list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BenchmarkResult':
        return cls(
            test_name=data['test_name'],
            service=data['service'],
            endpoint=data['endpoint'],
            method=data.get('method', 'GET'),
            timestamp=parse_timestamp(data['timestamp']),
            duration_seconds=float(data.get('duration_seconds', 0.0)),
            concurrency=int(data.get('concurrency', 1)),
            total_requests=int(data['total_requests']),
            total_errors=int(data['total_errors']),
            rps=float(data['rps']),
            response_times=ResponseTimeDistribution.from_dict(data.get('response_times', {})),
            resources=ResourceUsage.from_dict(data.get('resources', {})),
            violations=tuple(Violation.from_dict(item) for item in data.get('violations', ())),
            status=Status(data.get('status', Status.PASS.value)),
            tags=tuple(data.get('tags', ())),
        )


@dataclass(frozen=True)
class EndpointBaseline:
    """Accepted reference values for one endpoint."""

    expected_rps: float
    expected_p95: float
    expected_p99: float
    max_cpu_percent: float
    max_memory_mb: float
    max_error_rate: float
    path: str = ''
    method: str = 'GET'
    tags: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'method': self.method,
            'expected_rps': self.expected_rps,
            'expected_p95': self.expected_p95,
            'expected_p99': self.expected_p99,
            'max_cpu_percent': self.max_cpu_percent,
            'max_memory_mb': self.max_memory_mb,
            'max_error_rate': self.max_error_rate,
            'tags': list(self.tags),
        }


@dataclass(frozen=True)
class BaselineMetrics:
    """
    Versioned baseline document.

    ``services`` maps service name to endpoint key (``"GET /orders"``) to
    EndpointBaseline. Documents keyed by bare path are still accepted; such
    an entry only matches requests with the method stored on the entry.
    """

    version: str
    timestamp: datetime
    services: Dict[str, Dict[str, EndpointBaseline]]
    environment: str = 'production'
    test_suite: str = 'performance_benchmark'

    def get(self, service: str, endpoint: str, method: str = 'GET') -> Optional[EndpointBaseline]:
        endpoints = self.services.get(service, {})
        entry = endpoints.get(endpoint_key(method, endpoint))
        if entry is None:
            entry = endpoints.get(endpoint)
            if entry is not None and entry.method.upper() != method.upper():
                return None
        return entry

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.version,
            'timestamp': self.timestamp.isoformat(),
            'environment': self.environment,
            'test_suite': self.test_suite,
            'services': {
                service: {
                    'service_name': service,
                    'endpoints': {name: entry.to_dict() for name, entry in endpoints.items()},
                }
                for service, endpoints in self.services.items()
            },
        }


@dataclass(frozen=True)
class PerformanceRegression:
    """Degradation of one metric relative to its baseline beyond the threshold."""

    test_name: str
    service: str
    endpoint: str
    metric: str
    current: float
    baseline: float
    regression_pct: float
    threshold: float
    severity: Severity
    impact: Impact
    recommendations: Tuple[str, ...] = ()
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'test_name': self.test_name,
            'service': self.service,
            'endpoint': self.endpoint,
            'metric': self.metric,
            'current': self.current,
            'baseline': self.baseline,
            'regression_pct': self.regression_pct,
            'threshold': self.threshold,
            'severity': self.severity.value,
            'impact': self.impact.value,
            'recommendations': list(self.recommendations),
            'timestamp': self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PerformanceRegression':
        return cls(
            test_name=data['test_name'],
            service=data['service'],
            endpoint=data['endpoint'],
            metric=data['metric'],
            current=float(data['current']),
            baseline=float(data['baseline']),
            regression_pct=float(data['regression_pct']),
            threshold=float(data['threshold']),
            severity=Severity(data['severity']),
            impact=Impact(data['impact']),
            recommendations=tuple(data.get('recommendations', ())),
            timestamp=parse_timestamp(data['timestamp']),
        )


@dataclass(frozen=True)
class TrendDataPoint:
    timestamp: datetime
    value: float
    session_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'timestamp': self.timestamp.isoformat(), 'value': self.value, 'session_id': self.session_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TrendDataPoint':
        return cls(parse_timestamp(data['timestamp']), float(data['value']), data.get('session_id'))


@dataclass(frozen=True)
class TrendLine:
    """Linear fit of a metric series."""

    slope: float
    intercept: float
    correlation: float
    p_value: float
    direction: TrendDirection
    significance: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'slope': self.slope,
            'intercept': self.intercept,
            'correlation': self.correlation,
            'p_value': self.p_value,
            'direction': self.direction.value,
            'significance': self.significance,
            'confidence': self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TrendLine':
        return cls(
            slope=float(data['slope']),
            intercept=float(data['intercept']),
            correlation=float(data['correlation']),
            p_value=float(data['p_value']),
            direction=TrendDirection(data['direction']),
            significance=data['significance'],
            confidence=float(data['confidence']),
        )


@dataclass(frozen=True)
class PredictionPoint:
    timestamp: datetime
    predicted_value: float
    lower_bound: float
    upper_bound: float
    confidence: float = 0.95

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'predicted_value': self.predicted_value,
            'lower_bound': self.lower_bound,
            'upper_bound': self.upper_bound,
            'confidence': self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PredictionPoint':
        return cls(
            timestamp=parse_timestamp(data['timestamp']),
            predicted_value=float(data['predicted_value']),
            lower_bound=float(data['lower_bound']),
            upper_bound=float(data['upper_bound']),
            confidence=float(data.get('confidence', 0.95)),
        )


@dataclass(frozen=True)
class Anomaly:
    """A data point deviating from the series mean by three or more standard deviations."""

    timestamp: datetime
    value: float
    expected_value: float
    deviation: float
    type: str  # spike, drop
    severity: Severity

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'value': self.value,
            'expected_value': self.expected_value,
            'deviation': self.deviation,
            'type': self.type,
            'severity': self.severity.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Anomaly':
        return cls(
            timestamp=parse_timestamp(data['timestamp']),
            value=float(data['value']),
            expected_value=float(data['expected_value']),
            deviation=float(data['deviation']),
            type=data['type'],
            severity=Severity(data['severity']),
        )


@dataclass(frozen=True)
class PerformanceTrend:
    """Trend of one metric of one service across sessions."""

    service: str
    metric: str
    timeframe: str
    data_points: Tuple[TrendDataPoint, ...]
    trend_line: TrendLine
    predictions: Tuple[PredictionPoint, ...] = ()
    anomalies: Tuple[Anomaly, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'service': self.service,
            'metric': self.metric,
            'timeframe': self.timeframe,
            'data_points': [point.to_dict() for point in self.data_points],
            'trend_line': self.trend_line.to_dict(),
            'predictions': [point.to_dict() for point in self.predictions],
            'anomalies': [anomaly.to_dict() for anomaly in self.anomalies],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PerformanceTrend':
        return cls(
            service=data['service'],
            metric=data['metric'],
            timeframe=data['timeframe'],
            data_points=tuple(TrendDataPoint.from_dict(item) for item in data.get('data_points', ())),
            trend_line=TrendLine.from_dict(data['trend_line']),
            predictions=tuple(PredictionPoint.from_dict(item) for item in data.get('predictions', ())),
            anomalies=tuple(Anomaly.from_dict(item) for item in data.get('anomalies', ())),
        )


@dataclass(frozen=True)
class SummaryStats:
    """Session-wide statistics. Latencies in milliseconds, rates in percent."""

    total_requests: int = 0
    total_errors: int = 0
    error_rate: float = 0.0
    average_rps: float = 0.0
    median_latency_ms: float = 0.0
    p95_latency_ms: float = 0.0
    p99_latency_ms: float = 0.0
    average_cpu_percent: float = 0.0
    average_memory_mb: float = 0.0
    passed_tests: int = 0
    warning_tests: int = 0
    failed_tests: int = 0
    success_rate: float = 0.0

    def headline(self) -> List[Tuple[str, MetricValue]]:
        """Labelled values shown at the top of the text and HTML reports."""
        return [
            ('Success Rate', MetricValue.numeric(self.success_rate, '%')),
            ('Average RPS', MetricValue.numeric(self.average_rps, 'req/s')),
            ('P95 Latency', MetricValue.duration(self.p95_latency_ms)),
            ('Error Rate', MetricValue.numeric(self.error_rate, '%')),
            ('Average CPU', MetricValue.numeric(self.average_cpu_percent, '%')),
            ('Average Memory', MetricValue.numeric(self.average_memory_mb, 'MB')),
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_requests': self.total_requests,
            'total_errors': self.total_errors,
            'error_rate': self.error_rate,
            'average_rps': self.average_rps,
            'median_latency_ms': self.median_latency_ms,
            'p95_latency_ms': self.p95_latency_ms,
            'p99_latency_ms': self.p99_latency_ms,
            'average_cpu_percent': self.average_cpu_percent,
            'average_memory_mb': self.average_memory_mb,
            'passed_tests': self.passed_tests,
            'warning_tests': self.warning_tests,
            'failed_tests': self.failed_tests,
            'success_rate': self.success_rate,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SummaryStats':
        return cls(**data)


@dataclass(frozen=True)
class EndpointStats:
    endpoint: str
    method: str
    total_requests: int
    total_errors: int
    error_rate: float
    rps: float
    median_latency_ms: float
    p95_latency_ms: float
    p99_latency_ms: float
    min_latency_ms: float
    max_latency_ms: float
    average_cpu_percent: float
    average_memory_mb: float
    tags: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'endpoint': self.endpoint,
            'method': self.method,
            'total_requests': self.total_requests,
            'total_errors': self.total_errors,
            'error_rate': self.error_rate,
            'rps': self.rps,
            'median_latency_ms': self.median_latency_ms,
            'p95_latency_ms': self.p95_latency_ms,
            'p99_latency_ms': self.p99_latency_ms,
            'min_latency_ms': self.min_latency_ms,
            'max_latency_ms': self.max_latency_ms,
            'average_cpu_percent': self.average_cpu_percent,
            'average_memory_mb': self.average_memory_mb,
            'tags': list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EndpointStats':
        values = dict(data)
        values['tags'] = tuple(values.get('tags', ()))
        return cls(**values)


@dataclass(frozen=True)
class ServiceStats:
    service_name: str
    endpoint_stats: Dict[str, EndpointStats]
    total_requests: int
    total_errors: int
    error_rate: float
    average_rps: float
    median_latency_ms: float
    p95_latency_ms: float
    average_cpu_percent: float
    average_memory_mb: float
    violation_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'service_name': self.service_name,
            'endpoint_stats': {name: stats.to_dict() for name, stats in self.endpoint_stats.items()},
            'total_requests': self.total_requests,
            'total_errors': self.total_errors,
            'error_rate': self.error_rate,
            'average_rps': self.average_rps,
            'median_latency_ms': self.median_latency_ms,
            'p95_latency_ms': self.p95_latency_ms,
            'average_cpu_percent': self.average_cpu_percent,
            'average_memory_mb': self.average_memory_mb,
            'violation_count': self.violation_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ServiceStats':
        values = dict(data)
        values['endpoint_stats'] = {
            name: EndpointStats.from_dict(stats) for name, stats in data.get('endpoint_stats', {}).items()
        }
        return cls(**values)


@dataclass(frozen=True)
class PerformanceReport:
    """
    One-shot aggregate of a session, immutable once built.

    ``results`` carries the rows the report was built from so renderers
    that emit per-result output stay pure functions of the report.
    """

    session_id: str
    timestamp: datetime
    total_tests: int
    summary: SummaryStats
    service_stats: Dict[str, ServiceStats]
    regressions: Tuple[PerformanceRegression, ...]
    trends: Tuple[PerformanceTrend, ...]
    recommendations: Tuple[str, ...]
    metadata: Dict[str, Any]
    results: Tuple[BenchmarkResult, ...] = ()

    @property
    def primary_service(self) -> str:
        """Service name used in report file names."""
        if len(self.service_stats) == 1:
            return next(iter(self.service_stats))
        return 'all'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'timestamp': self.timestamp.isoformat(),
            'total_tests': self.total_tests,
            'summary': self.summary.to_dict(),
            'service_stats': {name: stats.to_dict() for name, stats in self.service_stats.items()},
            'regressions': [regression.to_dict() for regression in self.regressions],
            'trends': [trend.to_dict() for trend in self.trends],
            'recommendations': list(self.recommendations),
            'metadata': dict(self.metadata),
            'results': [result.to_dict() for result in self.results],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PerformanceReport':
        return cls(
            session_id=data['session_id'],
            timestamp=parse_timestamp(data['timestamp']),
            total_tests=int(data['total_tests']),
            summary=SummaryStats.from_dict(data['summary']),
            service_stats={
                name: ServiceStats.from_dict(stats) for name, stats in data.get('service_stats', {}).items()
            },
            regressions=tuple(PerformanceRegression.from_dict(item) for item in data.get('regressions', ())),
            trends=tuple(PerformanceTrend.from_dict(item) for item in data.get('trends', ())),
            recommendations=tuple(data.get('recommendations', ())),
            metadata=dict(data.get('metadata', {})),
            results=tuple(BenchmarkResult.from_dict(item) for item in data.get('results', ())),
        )

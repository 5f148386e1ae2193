"""
Benchmark Configuration Models

Pydantic models describing one benchmark session: which services and
endpoints to load, at which concurrency levels, for how long, and the
response-time, throughput and resource targets every result is evaluated
against. Validation errors are raised as ConfigurationError so callers see a
single, explicit error type for any invalid configuration.

Model Categories:
    Targets:
        ResponseTimeTargets: P50/P95/P99/P999/max latency in milliseconds
        ThroughputTargets: min/target/max RPS, scalability and consistency ratios
        ResourceTargets: CPU, memory, I/O, handle, task-count and error-rate limits
    Endpoints:
        EndpointDefinition: method, path, expected status, weight, tags
        ServiceDefinition: base URL and endpoint list of one service
    Session:
        BenchmarkConfig: complete session configuration
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
    model_validator,
)

from perfbench.utils.exceptions import ConfigurationError


SUPPORTED_OUTPUT_FORMATS = ('json', 'text', 'html', 'csv', 'prometheus')
HTTP_METHODS = ('GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'HEAD', 'OPTIONS')


class ResponseTimeTargets(BaseModel):
    """Response-time targets in milliseconds."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    p50_ms: float = Field(default=100.0, gt=0)
    p95_ms: float = Field(default=200.0, gt=0)
    p99_ms: float = Field(default=500.0, gt=0)
    p999_ms: float = Field(default=1000.0, gt=0)
    max_ms: float = Field(default=2000.0, gt=0)

    @model_validator(mode='after')
    def _percentiles_ascending(self) -> 'ResponseTimeTargets':
        ordered = [self.p50_ms, self.p95_ms, self.p99_ms, self.p999_ms, self.max_ms]
        if ordered != sorted(ordered):
            raise ValueError("response time targets must be ascending (p50 <= p95 <= p99 <= p999 <= max)")
        return self


class ThroughputTargets(BaseModel):
    """Throughput targets in requests per second."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    min_rps: float = Field(default=500.0, ge=0)
    target_rps: float = Field(default=1000.0, ge=0)
    max_rps: float = Field(default=5000.0, ge=0)
    scalability_ratio: float = Field(default=0.8, gt=0, le=1.0)
    consistency_ratio: float = Field(default=0.9, gt=0, le=1.0)

    @model_validator(mode='after')
    def _rps_ordering(self) -> 'ThroughputTargets':
        if not (self.min_rps <= self.target_rps <= self.max_rps):
            raise ValueError("throughput targets must satisfy min_rps <= target_rps <= max_rps")
        return self


class ResourceTargets(BaseModel):
    """Resource utilization limits."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    max_cpu_percent: float = Field(default=70.0, gt=0)
    max_memory_mb: float = Field(default=512.0, gt=0)
    max_disk_io_kbps: float = Field(default=100 * 1024.0, gt=0)
    max_network_io_kbps: float = Field(default=100 * 1024.0, gt=0)
    max_open_handles: int = Field(default=1024, gt=0)
    max_task_count: int = Field(default=1000, gt=0)
    max_error_rate: float = Field(default=1.0, ge=0, le=100.0)


class Targets(BaseModel):
    """All quality targets a result is evaluated against."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    response_time: ResponseTimeTargets = Field(default_factory=ResponseTimeTargets)
    throughput: ThroughputTargets = Field(default_factory=ThroughputTargets)
    resources: ResourceTargets = Field(default_factory=ResourceTargets)


class EndpointDefinition(BaseModel):
    """One endpoint to put under load."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    name: Optional[str] = None
    method: str = 'GET'
    path: str
    expected_status: int = Field(default=200, ge=100, le=599)
    weight: float = Field(default=1.0, gt=0)
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator('method')
    @classmethod
    def _valid_method(cls, value: str) -> str:
        method = value.upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"unsupported HTTP method: {value}")
        return method

    @field_validator('path')
    @classmethod
    def _absolute_path(cls, value: str) -> str:
        if not value.startswith('/'):
            raise ValueError("endpoint path must start with '/'")
        return value

    @property
    def display_name(self) -> str:
        return self.name or f"{self.method} {self.path}"


class ServiceDefinition(BaseModel):
    """A service under test and its endpoints."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    name: str = Field(min_length=1)
    base_url: str = Field(min_length=1)
    endpoints: List[EndpointDefinition] = Field(min_length=1)
    tags: List[str] = Field(default_factory=list)


class BenchmarkConfig(BaseModel):
    """
    Complete benchmark session configuration.

    Durations are in seconds. ``regression_threshold`` is a percentage.
    ``target_rps`` is the offered rate per endpoint before its weight is
    applied; ``targets.throughput.max_rps`` caps the offered rate, and an
    unthrottled session (target_rps 0) is paced at that cap.
    """

    model_config = ConfigDict(frozen=True, extra='forbid')

    services: List[ServiceDefinition] = Field(default_factory=list)
    concurrency_levels: List[int] = Field(default_factory=lambda: [10])
    target_rps: float = Field(default=100.0, ge=0)
    duration: float = Field(default=30.0, gt=0)
    warmup_duration: float = Field(default=5.0, ge=0)
    request_timeout: float = Field(default=10.0, gt=0)
    keep_alive: bool = True
    targets: Targets = Field(default_factory=Targets)
    output_formats: List[str] = Field(default_factory=lambda: ['json', 'text'])
    baseline_file: Optional[str] = None
    report_dir: Optional[str] = None
    history_db: Optional[str] = None
    regression_threshold: float = Field(default=10.0, ge=0, le=1000.0)
    monitor_interval: float = Field(default=1.0, gt=0)
    continuous_mode: bool = False
    continuous_interval: float = Field(default=300.0, gt=0)
    environment: str = 'development'
    tags: List[str] = Field(default_factory=list)

    @field_validator('concurrency_levels')
    @classmethod
    def _positive_concurrency(cls, value: List[int]) -> List[int]:
        if not value:
            raise ValueError("at least one concurrency level is required")
        if any(level < 1 for level in value):
            raise ValueError("concurrency levels must be >= 1")
        return value

    @field_validator('output_formats')
    @classmethod
    def _known_formats(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("output_formats must not be empty")
        normalized = [fmt.lower() for fmt in value]
        unknown = [fmt for fmt in normalized if fmt not in SUPPORTED_OUTPUT_FORMATS]
        if unknown:
            raise ValueError(f"unsupported output formats: {', '.join(unknown)}")
        return normalized

    @model_validator(mode='after')
    def _warmup_shorter_than_run(self) -> 'BenchmarkConfig':
        if self.warmup_duration >= self.duration:
            raise ValueError("warmup_duration must be shorter than duration")
        return self

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BenchmarkConfig':
        """Validate a configuration mapping, raising ConfigurationError."""
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ConfigurationError(
                "Invalid benchmark configuration",
                details={'errors': [
                    {'location': '.'.join(str(part) for part in err['loc']), 'message': err['msg']}
                    for err in e.errors()
                ]}
            ) from e

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'BenchmarkConfig':
        """Load and validate a JSON configuration file."""
        config_path = Path(path)
        try:
            data = json.loads(config_path.read_text(encoding='utf-8'))
        except FileNotFoundError as e:
            raise ConfigurationError(
                f"Configuration file not found: {config_path}",
                details={'path': str(config_path)}
            ) from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Configuration file is not valid JSON: {config_path}",
                details={'path': str(config_path), 'line': e.lineno, 'column': e.colno}
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                "Configuration document must be a JSON object",
                details={'path': str(config_path)}
            )
        return cls.from_dict(data)

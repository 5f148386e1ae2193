"""Configuration package: environment settings and benchmark session models."""

from perfbench.config.benchmark import (
    BenchmarkConfig,
    EndpointDefinition,
    ResourceTargets,
    ResponseTimeTargets,
    ServiceDefinition,
    Targets,
    ThroughputTargets,
    SUPPORTED_OUTPUT_FORMATS,
)
from perfbench.config.settings import (
    BaseConfig,
    CIConfig,
    DevelopmentConfig,
    get_config,
)

__all__ = [
    'BenchmarkConfig',
    'EndpointDefinition',
    'ResourceTargets',
    'ResponseTimeTargets',
    'ServiceDefinition',
    'Targets',
    'ThroughputTargets',
    'SUPPORTED_OUTPUT_FORMATS',
    'BaseConfig',
    'CIConfig',
    'DevelopmentConfig',
    'get_config',
]

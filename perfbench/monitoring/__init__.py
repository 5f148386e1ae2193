"""Logging, self-instrumentation and resource sampling."""

from perfbench.monitoring.logging import (
    LoggingConfig,
    bind_session,
    get_logger,
    setup_structured_logging,
)
from perfbench.monitoring.metrics import EngineMetricsCollector
from perfbench.monitoring.resources import ResourceMonitor, ResourceSnapshot

__all__ = [
    'LoggingConfig',
    'bind_session',
    'get_logger',
    'setup_structured_logging',
    'EngineMetricsCollector',
    'ResourceMonitor',
    'ResourceSnapshot',
]

"""Shared utilities for the benchmarking engine."""

from perfbench.utils.exceptions import (
    PerfBenchError,
    ErrorCategory,
    ErrorSeverity,
    ConfigurationError,
    BaselineError,
    BaselineFormatError,
    BaselineNotFoundError,
    ReportError,
    UnsupportedReportFormatError,
    ReportRenderError,
    ReportPersistenceError,
    ReportFormatError,
    LoadGenerationError,
)

__all__ = [
    'PerfBenchError',
    'ErrorCategory',
    'ErrorSeverity',
    'ConfigurationError',
    'BaselineError',
    'BaselineFormatError',
    'BaselineNotFoundError',
    'ReportError',
    'UnsupportedReportFormatError',
    'ReportRenderError',
    'ReportPersistenceError',
    'ReportFormatError',
    'LoadGenerationError',
]

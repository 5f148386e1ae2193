"""
Base exception classes for the benchmarking engine.

This module implements the exception hierarchy used by the analyzer, report
generators and configuration layer. Individual request failures during a load
run are never raised; they are recorded as data on the worker result. Only
conditions a caller must act on (malformed baselines, invalid configuration,
unsupported report formats, report persistence failures) surface as
exceptions.

Key Features:
- Hierarchical exception classes for consistent error categorization
- Structured logging of every raised error through structlog
- Prometheus counter of raised errors by type and category
- Dictionary serialization for CLI and JSON output
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog
from prometheus_client import Counter


error_counter = Counter(
    'perfbench_errors_total',
    'Total number of benchmarking engine errors by type',
    ['error_type', 'error_category']
)

logger = structlog.get_logger(__name__)


class ErrorCategory(Enum):
    """Error categories for hierarchical classification."""

    CONFIGURATION = "configuration"
    BASELINE = "baseline"
    REPORT = "report"
    LOAD_GENERATION = "load_generation"
    SYSTEM = "system"


class ErrorSeverity(Enum):
    """Error severity levels for logging."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PerfBenchError(Exception):
    """
    Base exception class for all benchmarking engine errors.

    Attributes:
        message: Human-readable error message
        code: Error code, defaults to the class name
        category: Error category for classification
        severity: Error severity level
        details: Additional error context
        error_id: Unique identifier for error tracking
    """

    default_category = ErrorCategory.SYSTEM
    default_severity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        category: Optional[ErrorCategory] = None,
        severity: Optional[ErrorSeverity] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.category = category or self.default_category
        self.severity = severity or self.default_severity
        self.details = details or {}
        self.error_id = str(uuid4())
        self.timestamp = datetime.now(timezone.utc).isoformat()

        self._log_error()
        error_counter.labels(
            error_type=self.code,
            error_category=self.category.value
        ).inc()

    def _log_error(self) -> None:
        log_data = {
            'error_code': self.code,
            'error_category': self.category.value,
            'error_severity': self.severity.value,
            'error_id': self.error_id,
            'details': self.details,
        }

        if self.severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL):
            logger.error(self.message, **log_data)
        elif self.severity == ErrorSeverity.MEDIUM:
            logger.warning(self.message, **log_data)
        else:
            logger.info(self.message, **log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format for CLI/JSON output."""
        return {
            'error': True,
            'message': self.message,
            'code': self.code,
            'category': self.category.value,
            'severity': self.severity.value,
            'error_id': self.error_id,
            'timestamp': self.timestamp,
            'details': self.details,
        }


class ConfigurationError(PerfBenchError):
    """Invalid benchmark configuration (out-of-range thresholds, empty format list)."""

    default_category = ErrorCategory.CONFIGURATION
    default_severity = ErrorSeverity.HIGH


class BaselineError(PerfBenchError):
    """Base class for baseline document errors."""

    default_category = ErrorCategory.BASELINE
    default_severity = ErrorSeverity.HIGH


class BaselineFormatError(BaselineError):
    """Baseline document could not be parsed or failed validation."""


class BaselineNotFoundError(BaselineError):
    """Baseline document source does not exist."""


class ReportError(PerfBenchError):
    """Base class for report generation errors."""

    default_category = ErrorCategory.REPORT


class UnsupportedReportFormatError(ReportError):
    """Requested report format has no registered renderer."""

    def __init__(self, requested_format: Any, supported: Optional[list] = None):
        self.requested_format = requested_format
        super().__init__(
            f"Unsupported report format: {requested_format}",
            details={
                'requested_format': str(requested_format),
                'supported_formats': supported or [],
            }
        )


class ReportRenderError(ReportError):
    """A renderer failed; no partial output was produced."""

    default_severity = ErrorSeverity.HIGH


class ReportPersistenceError(ReportError):
    """Report output directory or file could not be written."""

    default_severity = ErrorSeverity.HIGH


class LoadGenerationError(PerfBenchError):
    """Load generator could not be started with the given configuration."""

    default_category = ErrorCategory.LOAD_GENERATION
    default_severity = ErrorSeverity.HIGH


class ReportFormatError(ReportError):
    """A saved report document is not valid report JSON."""

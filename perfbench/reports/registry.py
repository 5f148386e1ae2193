"""
Report format registry.

Every renderer is a pure function ``render(report) -> bytes``. A renderer
either returns the complete document or raises; render_report never returns
partial output.
"""

from enum import Enum
from typing import Callable, Dict, Union

from perfbench.analysis.models import PerformanceReport
from perfbench.monitoring.logging import get_logger
from perfbench.reports import csv_report, html_report, json_report, prometheus_report, text_report
from perfbench.utils.exceptions import (
    ReportError,
    ReportRenderError,
    UnsupportedReportFormatError,
)


logger = get_logger(__name__)


class ReportFormat(Enum):
    """Report output format enumeration for multi-format support."""

    JSON = "json"
    TEXT = "text"
    HTML = "html"
    CSV = "csv"
    PROMETHEUS = "prometheus"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]


_EXTENSIONS = {
    ReportFormat.JSON: 'json',
    ReportFormat.TEXT: 'txt',
    ReportFormat.HTML: 'html',
    ReportFormat.CSV: 'csv',
    ReportFormat.PROMETHEUS: 'prom',
}

RENDERERS: Dict[ReportFormat, Callable[[PerformanceReport], bytes]] = {
    ReportFormat.JSON: json_report.render,
    ReportFormat.TEXT: text_report.render,
    ReportFormat.HTML: html_report.render,
    ReportFormat.CSV: csv_report.render,
    ReportFormat.PROMETHEUS: prometheus_report.render,
}


def supported_formats():
    return [fmt.value for fmt in RENDERERS]


def resolve_format(fmt: Union[str, ReportFormat]) -> ReportFormat:
    """Normalize a format name; unknown names raise UnsupportedReportFormatError."""
    if isinstance(fmt, ReportFormat):
        resolved = fmt
    else:
        try:
            resolved = ReportFormat(str(fmt).strip().lower())
        except ValueError:
            raise UnsupportedReportFormatError(fmt, supported_formats()) from None
    if resolved not in RENDERERS:
        raise UnsupportedReportFormatError(fmt, supported_formats())
    return resolved


def render_report(report: PerformanceReport, fmt: Union[str, ReportFormat]) -> bytes:
    """Render ``report`` in ``fmt``; raises instead of producing partial output."""
    report_format = resolve_format(fmt)
    try:
        content = RENDERERS[report_format](report)
    except ReportError:
        raise
    except Exception as e:
        raise ReportRenderError(
            f"Failed to render {report_format.value} report",
            details={'session_id': report.session_id, 'format': report_format.value, 'error': str(e)}
        ) from e

    logger.debug("Report rendered", format=report_format.value, size_bytes=len(content),
                 session_id=report.session_id)
    return content

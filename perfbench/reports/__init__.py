"""Report generators: pure renderers from PerformanceReport to bytes."""

from perfbench.reports.registry import (
    RENDERERS,
    ReportFormat,
    render_report,
    resolve_format,
    supported_formats,
)

__all__ = [
    'RENDERERS',
    'ReportFormat',
    'render_report',
    'resolve_format',
    'supported_formats',
]

"""Structured (JSON) report rendering and parsing."""

import json
from typing import Union

from perfbench.analysis.models import PerformanceReport
from perfbench.utils.exceptions import ReportFormatError


def render(report: PerformanceReport) -> bytes:
    return json.dumps(report.to_dict(), indent=2, ensure_ascii=False).encode('utf-8')


def parse(content: Union[bytes, str]) -> PerformanceReport:
    """
    Rebuild a PerformanceReport from rendered JSON.

    Raises:
        ReportFormatError: content is not JSON or lacks report fields
    """
    try:
        if isinstance(content, bytes):
            content = content.decode('utf-8')
        data = json.loads(content)
    except (UnicodeDecodeError, ValueError) as e:
        raise ReportFormatError(
            "Report is not valid JSON",
            details={'error': str(e)}
        ) from e

    if not isinstance(data, dict):
        raise ReportFormatError(
            "Report document must be a JSON object",
            details={'type': type(data).__name__}
        )
    try:
        return PerformanceReport.from_dict(data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ReportFormatError(
            "Report document is missing or has invalid fields",
            details={'error': repr(e)}
        ) from e

"""
Performance Analyzer

Central aggregation point of a benchmark session. One PerformanceAnalyzer is
constructed per session and passed explicitly to the components that feed
it; there is no module-level analyzer.

Key Features:
- Thread-safe result ingestion under a short-held lock (no I/O while held)
- Baseline loading from a path, JSON text, bytes or a mapping, validated in
  full before it replaces the current baseline
- Baseline derivation from observed results with a 5% safety margin
- Regression detection sorted by severity, then by regression percentage
- Report generation with summary, per-service and per-endpoint statistics,
  trends, recommendations and environment metadata
- Report persistence with scoped failure handling

Readers copy the result list under the lock and compute outside it, so
report generation never blocks ingestion for longer than a list copy.
"""

import collections.abc
import json
import os
import platform
import re
import tempfile
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import psutil

from perfbench import __version__
from perfbench.analysis.baseline import BaselineValidationError, derive_baseline, parse_baseline
from perfbench.analysis.history import HistoryStore
from perfbench.analysis.models import (
    BaselineMetrics,
    BenchmarkResult,
    PerformanceRegression,
    PerformanceReport,
    Severity,
    endpoint_key,
    utc_now,
)
from perfbench.analysis.recommendations import generate_recommendations
from perfbench.analysis.regressions import detect_regressions, validate_threshold
from perfbench.analysis.statistics import (
    aggregate_resources,
    distribution,
    measured_window,
    service_stats,
    summary_stats,
    throughput,
    throughput_consistency,
)
from perfbench.analysis.trends import TrendAnalyzer, merge_series, series_from_results
from perfbench.analysis.violations import determine_status, evaluate_violations
from perfbench.config.benchmark import Targets
from perfbench.load.generator import WorkerResult
from perfbench.monitoring.logging import get_logger
from perfbench.monitoring.metrics import EngineMetricsCollector
from perfbench.monitoring.resources import ResourceSnapshot
from perfbench.reports.registry import render_report, resolve_format
from perfbench.utils.exceptions import (
    BaselineError,
    BaselineFormatError,
    BaselineNotFoundError,
    ReportPersistenceError,
)


logger = get_logger(__name__)

DEFAULT_REGRESSION_THRESHOLD = 10.0

BaselineSource = Union[str, bytes, os.PathLike, Mapping[str, Any]]


def build_benchmark_result(
    test_name: str,
    service: str,
    endpoint: str,
    worker_results: Sequence[WorkerResult],
    snapshots: Sequence[ResourceSnapshot] = (),
    targets: Optional[Targets] = None,
    method: str = 'GET',
    concurrency: int = 1,
    measured_seconds: Optional[float] = None,
    tags: Sequence[str] = (),
    expected_status: Optional[int] = None,
    timestamp: Optional[datetime] = None,
    reference_rps: Optional[float] = None,
) -> BenchmarkResult:
    """
    Aggregate raw worker results and resource snapshots into a BenchmarkResult.

    Warmup results are excluded. Every measured request counts towards
    total_requests; transport failures and unexpected statuses count as
    errors. Latency percentiles and RPS use only requests that received a
    response. Violations are evaluated against ``targets`` here, once.
    """
    measured = [result for result in worker_results if not result.warmup]
    responded = [result for result in measured if result.status_code > 0]
    total_errors = sum(1 for result in measured if result.is_error(expected_status))

    started_at = [result.timestamp.timestamp() for result in responded]
    window = measured_window(started_at, measured_seconds)
    rps = throughput(len(responded), window)
    response_times = distribution([result.duration_ms for result in responded])
    resources = aggregate_resources(snapshots)
    error_rate = total_errors / len(measured) * 100.0 if measured else 0.0

    violations = evaluate_violations(
        response_times, rps, error_rate, resources, targets or Targets(),
        measured_requests=len(measured),
        consistency=throughput_consistency(started_at),
        reference_rps=reference_rps,
    )

    return BenchmarkResult(
        test_name=test_name,
        service=service,
        endpoint=endpoint,
        method=method,
        timestamp=timestamp or utc_now(),
        duration_seconds=window,
        concurrency=concurrency,
        total_requests=len(measured),
        total_errors=total_errors,
        rps=rps,
        response_times=response_times,
        resources=resources,
        violations=violations,
        status=determine_status(violations),
        tags=tuple(tags),
    )


def _safe_filename_part(value: str) -> str:
    return re.sub(r'[^A-Za-z0-9_.-]+', '_', value).strip('_') or 'unnamed'


def _atomic_write(path: Path, content: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix='.tmp')
    try:
        with os.fdopen(fd, 'wb') as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class PerformanceAnalyzer:
    """
    Owns the result set and baseline of one benchmark session.

    Args:
        session_id: Session identifier, generated when omitted
        targets: Quality targets used by build_result()
        report_dir: Directory report files are written to
        regression_threshold: Default threshold for generate_report()
        metrics: Session metrics collector
        history: Optional history store used for cross-session trends
        metadata: Extra JSON-serializable report metadata (e.g. the config)
    """

    def __init__(self, session_id: Optional[str] = None,
                 targets: Optional[Targets] = None,
                 report_dir: Union[str, Path] = 'performance_reports',
                 regression_threshold: float = DEFAULT_REGRESSION_THRESHOLD,
                 metrics: Optional[EngineMetricsCollector] = None,
                 history: Optional[HistoryStore] = None,
                 metadata: Optional[Dict[str, Any]] = None,
                 trend_analyzer: Optional[TrendAnalyzer] = None):
        self.session_id = session_id or str(uuid.uuid4())
        self.targets = targets or Targets()
        self.report_dir = Path(report_dir)
        self.regression_threshold = validate_threshold(regression_threshold)
        self.metrics = metrics
        self.history = history
        self.metadata = dict(metadata or {})
        self.trend_analyzer = trend_analyzer or TrendAnalyzer()

        self._lock = threading.Lock()
        self._results: List[BenchmarkResult] = []
        self._baseline: Optional[BaselineMetrics] = None

    # Ingestion

    def add_result(self, result: BenchmarkResult) -> None:
        """Append a result; safe to call from any thread."""
        with self._lock:
            self._results.append(result)
        if self.metrics is not None:
            self.metrics.results_recorded.labels(service=result.service, status=result.status.value).inc()

    def build_result(self, test_name: str, service: str, endpoint: str,
                     worker_results: Sequence[WorkerResult],
                     snapshots: Sequence[ResourceSnapshot] = (),
                     **kwargs) -> BenchmarkResult:
        """
        Build a result against this session's targets and add it.

        Throughput is also checked against the best result the same endpoint
        reached at a lower concurrency level in this session.
        """
        method = kwargs.get('method', 'GET')
        concurrency = kwargs.get('concurrency', 1)
        key = endpoint_key(method, endpoint)
        reference = [
            existing.rps for existing in self.results
            if existing.service == service and existing.endpoint_key == key
            and existing.concurrency < concurrency
        ]
        kwargs.setdefault('reference_rps', max(reference) if reference else None)

        result = build_benchmark_result(
            test_name, service, endpoint, worker_results, snapshots,
            targets=self.targets, **kwargs
        )
        self.add_result(result)
        logger.info(
            "Benchmark result recorded",
            test_name=test_name,
            service=service,
            endpoint=endpoint,
            status=result.status.value,
            rps=round(result.rps, 2),
            p95_ms=round(result.response_times.p95_ms, 2),
            violations=len(result.violations)
        )
        return result

    @property
    def results(self) -> List[BenchmarkResult]:
        with self._lock:
            return list(self._results)

    @property
    def baseline(self) -> Optional[BaselineMetrics]:
        return self._baseline

    # Baselines

    def _read_baseline_source(self, source: BaselineSource) -> Any:
        if isinstance(source, collections.abc.Mapping):
            return dict(source)

        if isinstance(source, bytes):
            text = source.decode('utf-8', errors='strict')
            origin = '<bytes>'
        elif isinstance(source, str) and source.lstrip().startswith(('{', '[')):
            text = source
            origin = '<text>'
        else:
            path = Path(source)
            if not path.is_file():
                raise BaselineNotFoundError(
                    f"Baseline file not found: {path}",
                    details={'path': str(path)}
                )
            text = path.read_text(encoding='utf-8')
            origin = str(path)

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise BaselineFormatError(
                "Baseline document is not valid JSON",
                details={'source': origin, 'line': e.lineno, 'column': e.colno, 'error': e.msg}
            ) from e

    def load_baseline(self, source: BaselineSource) -> BaselineMetrics:
        """
        Parse and install a baseline document.

        The document is validated in full first; on any error the previously
        loaded baseline stays in place.

        Raises:
            BaselineNotFoundError: ``source`` names a file that does not exist
            BaselineFormatError: The document is not JSON or fails validation
        """
        try:
            data = self._read_baseline_source(source)
        except UnicodeDecodeError as e:
            raise BaselineFormatError("Baseline document is not UTF-8", details={'error': str(e)}) from e

        try:
            baseline = parse_baseline(data)
        except BaselineValidationError as e:
            raise BaselineFormatError(
                "Baseline document failed validation",
                details={'problems': e.problems}
            ) from e

        self._baseline = baseline
        logger.info(
            "Baseline loaded",
            version=baseline.version,
            services=len(baseline.services),
            endpoints=sum(len(endpoints) for endpoints in baseline.services.values())
        )
        return baseline

    def save_baseline(self, version: str, path: Optional[Union[str, Path]] = None,
                      environment: str = 'production') -> BaselineMetrics:
        """
        Derive a baseline from the current results and persist it as JSON.

        Without ``path`` the baseline is only returned.
        """
        baseline = derive_baseline(self.results, version, environment=environment)

        if path is not None:
            target = Path(path)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                _atomic_write(target, json.dumps(baseline.to_dict(), indent=2).encode('utf-8'))
            except OSError as e:
                raise BaselineError(
                    f"Failed to write baseline file: {target}",
                    details={'path': str(target), 'error': str(e)}
                ) from e
            logger.info("Baseline saved", version=version, path=str(target))
        return baseline

    # Analysis

    def _publish_regressions(self, regressions: Sequence[PerformanceRegression], threshold: float) -> None:
        if self.metrics is not None:
            for severity in Severity:
                self.metrics.regressions_detected.labels(severity=severity.value).set(
                    sum(1 for regression in regressions if regression.severity is severity)
                )
        if regressions:
            logger.warning(
                "Performance regressions detected",
                count=len(regressions),
                worst_severity=regressions[0].severity.value,
                threshold_percent=threshold
            )

    def detect_regressions(self, threshold_percent: Optional[float] = None) -> List[PerformanceRegression]:
        """Regressions beyond ``threshold_percent`` (default: the session threshold)."""
        threshold = self.regression_threshold if threshold_percent is None else threshold_percent
        regressions = detect_regressions(self.results, self._baseline, threshold)
        self._publish_regressions(regressions, threshold)
        return regressions

    def _collect_metadata(self) -> Dict[str, Any]:
        metadata = {
            'engine_version': __version__,
            'python_version': platform.python_version(),
            'platform': platform.platform(),
            'cpu_count': psutil.cpu_count(logical=True),
            'regression_threshold': self.regression_threshold,
            'baseline_version': self._baseline.version if self._baseline is not None else None,
        }
        metadata.update(self.metadata)
        return metadata

    def generate_report(self) -> PerformanceReport:
        """Build an immutable report from a snapshot of the current session."""
        results = self.results
        regressions = detect_regressions(results, self._baseline, self.regression_threshold)
        self._publish_regressions(regressions, self.regression_threshold)

        series = series_from_results(results, self.session_id)
        if self.history is not None:
            series = merge_series(self.history.load_series(exclude_session=self.session_id), series)
        trends = self.trend_analyzer.analyze(series)

        report = PerformanceReport(
            session_id=self.session_id,
            timestamp=utc_now(),
            total_tests=len(results),
            summary=summary_stats(results),
            service_stats=service_stats(results),
            regressions=tuple(regressions),
            trends=tuple(trends),
            recommendations=tuple(generate_recommendations(results, trends)),
            metadata=self._collect_metadata(),
            results=tuple(results),
        )
        logger.info(
            "Performance report generated",
            total_tests=report.total_tests,
            success_rate=round(report.summary.success_rate, 2),
            regressions=len(report.regressions)
        )
        return report

    # Persistence

    def report_path(self, report: PerformanceReport, fmt) -> Path:
        report_format = resolve_format(fmt)
        filename = "performance_report_{service}_{session}_{timestamp}.{ext}".format(
            service=_safe_filename_part(report.primary_service),
            session=_safe_filename_part(report.session_id),
            timestamp=report.timestamp.strftime('%Y%m%d_%H%M%S'),
            ext=report_format.extension,
        )
        return self.report_dir / filename

    def _write_artifact(self, path: Path, content: bytes) -> Path:
        try:
            self.report_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ReportPersistenceError(
                f"Cannot create report directory: {self.report_dir}",
                details={'report_dir': str(self.report_dir), 'error': str(e)}
            ) from e

        try:
            _atomic_write(path, content)
        except OSError as e:
            raise ReportPersistenceError(
                f"Cannot write report file: {path}",
                details={'path': str(path), 'error': str(e)}
            ) from e
        return path

    def save_report(self, report: PerformanceReport, fmt) -> Path:
        """
        Render and write one report file.

        Raises:
            UnsupportedReportFormatError: ``fmt`` has no renderer
            ReportRenderError: Rendering failed; nothing was written
            ReportPersistenceError: The report directory or file could not be written
        """
        path = self.report_path(report, fmt)
        content = render_report(report, fmt)
        self._write_artifact(path, content)
        logger.info("Report saved", path=str(path), size_bytes=len(content))
        return path

    def save_reports(self, report: PerformanceReport, formats: Sequence[str]) -> List[Path]:
        return [self.save_report(report, fmt) for fmt in formats]

    def save_engine_metrics(self) -> Optional[Path]:
        """
        Write the session's engine metrics in Prometheus text format next to
        the reports; returns None when the session has no metrics collector.
        """
        if self.metrics is None:
            return None
        path = self.report_dir / f"perfbench_engine_{_safe_filename_part(self.session_id)}.prom"
        self._write_artifact(path, self.metrics.exposition())
        logger.info("Engine metrics saved", path=str(path))
        return path

    def record_history(self) -> int:
        """Store this session's results in the history store, if configured."""
        if self.history is None:
            return 0
        return self.history.record_session(self.session_id, self.results)

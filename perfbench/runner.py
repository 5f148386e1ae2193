"""
Benchmark Runner

Executes the configured benchmark matrix (services x endpoints x concurrency
levels). For every cell a LoadGenerator drives the endpoint while a
ResourceMonitor samples the process in parallel; the raw results and
snapshots are handed to the session's PerformanceAnalyzer, which builds and
evaluates one BenchmarkResult per cell.

After the matrix completes the runner generates the session report, writes
it in every configured format together with the engine metrics, and records
the session in the history store. A report that cannot be written is logged
and kept on the SessionOutcome; it never prevents the history record.

Each endpoint is paced at the session target_rps scaled by its weight and
capped at the throughput target max_rps.
In continuous mode the matrix is repeated every ``continuous_interval``
seconds, each iteration as its own session, until stop() is called.
"""

import threading
import uuid
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple, Type

import httpx

from perfbench.analysis.analyzer import PerformanceAnalyzer
from perfbench.analysis.history import HistoryStore
from perfbench.analysis.models import BenchmarkResult, PerformanceReport, Status
from perfbench.config.benchmark import BenchmarkConfig, EndpointDefinition, ServiceDefinition
from perfbench.config.settings import BaseConfig, get_config
from perfbench.load.generator import LoadGenerator, LoadGeneratorConfig
from perfbench.monitoring.logging import bind_session, get_logger
from perfbench.monitoring.metrics import EngineMetricsCollector
from perfbench.monitoring.resources import ResourceMonitor
from perfbench.utils.exceptions import ReportError


logger = get_logger(__name__)

EXIT_OK = 0
EXIT_QUALITY_GATE = 1
EXIT_ERROR = 2


@dataclass
class SessionOutcome:
    """Report and written artifacts of one completed session."""

    report: PerformanceReport
    analyzer: PerformanceAnalyzer
    report_paths: List[str] = field(default_factory=list)
    metrics_path: Optional[str] = None
    report_errors: List[ReportError] = field(default_factory=list)

    @property
    def failed_results(self) -> List[BenchmarkResult]:
        return [result for result in self.report.results if result.status is Status.FAIL]

    def exit_code(self, fail_on_regression: bool = False) -> int:
        """
        2 when a report could not be written, otherwise the quality gate:
        1 when any result failed its targets or, with ``fail_on_regression``,
        when any regression was detected.
        """
        if self.report_errors:
            return EXIT_ERROR
        if self.failed_results:
            return EXIT_QUALITY_GATE
        if fail_on_regression and self.report.regressions:
            return EXIT_QUALITY_GATE
        return EXIT_OK


def _join_url(base_url: str, path: str) -> str:
    return base_url.rstrip('/') + path


def offered_rps(config: BenchmarkConfig, endpoint: EndpointDefinition) -> float:
    """
    Pacing target for one endpoint: the session target_rps scaled by the
    endpoint weight, capped at the throughput target's max_rps. An
    unthrottled session (target_rps 0) is paced at max_rps.
    """
    ceiling = config.targets.throughput.max_rps
    rate = config.target_rps * endpoint.weight
    if ceiling <= 0:
        return max(rate, 0.0)
    if rate <= 0:
        return ceiling
    return min(rate, ceiling)


class BenchmarkRunner:
    """
    Runs benchmark sessions for a BenchmarkConfig.

    Args:
        config: Validated benchmark configuration
        settings: Environment settings class supplying defaults
        transport: Optional httpx transport (tests use httpx.MockTransport)
        monitor_factory: Callable returning a fresh ResourceMonitor per cell
        compare_baseline: Load the configured baseline for regression detection
    """

    def __init__(self, config: BenchmarkConfig,
                 settings: Optional[Type[BaseConfig]] = None,
                 transport: Optional[httpx.BaseTransport] = None,
                 monitor_factory=None,
                 compare_baseline: bool = True):
        self.config = config
        self.compare_baseline = compare_baseline
        self.settings = settings or get_config(config.environment)
        self.transport = transport
        self.stop_event = threading.Event()

        self._monitor_factory = monitor_factory or ResourceMonitor
        self._generator_lock = threading.Lock()
        self._active_generator: Optional[LoadGenerator] = None

    # Settings resolution

    @property
    def report_dir(self) -> str:
        return self.config.report_dir or self.settings.REPORT_DIR

    @property
    def baseline_file(self) -> Optional[str]:
        return self.config.baseline_file or self.settings.BASELINE_FILE

    @property
    def history_db(self) -> Optional[str]:
        return self.config.history_db or self.settings.HISTORY_DB

    def matrix(self) -> Iterator[Tuple[ServiceDefinition, EndpointDefinition, int]]:
        for service in self.config.services:
            for endpoint in service.endpoints:
                for concurrency in self.config.concurrency_levels:
                    yield service, endpoint, concurrency

    # Lifecycle

    def stop(self) -> None:
        """Stop the running cell and leave continuous mode; safe from any thread."""
        self.stop_event.set()
        with self._generator_lock:
            generator = self._active_generator
        if generator is not None:
            generator.stop()
        logger.info("Benchmark runner stop requested")

    def create_analyzer(self, session_id: Optional[str] = None,
                        metrics: Optional[EngineMetricsCollector] = None) -> PerformanceAnalyzer:
        history = HistoryStore(self.history_db) if self.history_db else None
        analyzer = PerformanceAnalyzer(
            session_id=session_id,
            targets=self.config.targets,
            report_dir=self.report_dir,
            regression_threshold=self.config.regression_threshold,
            metrics=metrics,
            history=history,
            metadata={
                'environment': self.config.environment,
                'tags': list(self.config.tags),
                'concurrency_levels': list(self.config.concurrency_levels),
                'duration_seconds': self.config.duration,
                'warmup_seconds': self.config.warmup_duration,
            },
        )
        if self.compare_baseline and self.baseline_file:
            analyzer.load_baseline(self.baseline_file)
        return analyzer

    def run_cell(self, analyzer: PerformanceAnalyzer, service: ServiceDefinition,
                 endpoint: EndpointDefinition, concurrency: int) -> Optional[BenchmarkResult]:
        """Load one endpoint at one concurrency level and record the result."""
        if self.stop_event.is_set():
            return None

        config = self.config
        generator = LoadGenerator(
            LoadGeneratorConfig(
                url=_join_url(service.base_url, endpoint.path),
                method=endpoint.method,
                headers=dict(endpoint.headers),
                body=endpoint.body,
                concurrency=concurrency,
                target_rps=offered_rps(config, endpoint),
                duration=config.duration,
                warmup=config.warmup_duration,
                timeout=config.request_timeout,
                keep_alive=config.keep_alive,
                verify_tls=self.settings.VERIFY_TLS,
                expected_status=endpoint.expected_status,
            ),
            metrics=analyzer.metrics,
            transport=self.transport,
            target_label=f"{service.name} {endpoint.display_name}",
        )
        monitor = self._monitor_factory(metrics=analyzer.metrics)

        with self._generator_lock:
            self._active_generator = generator
        if self.stop_event.is_set():
            generator.stop()
        monitor.start(config.monitor_interval)
        try:
            worker_results = list(generator.run())
        finally:
            monitor.stop()
            with self._generator_lock:
                self._active_generator = None

        return analyzer.build_result(
            f"{service.name}:{endpoint.display_name}:c{concurrency}",
            service.name,
            endpoint.path,
            worker_results,
            monitor.get_metrics(),
            method=endpoint.method,
            concurrency=concurrency,
            measured_seconds=config.duration - config.warmup_duration,
            tags=list(service.tags) + list(endpoint.tags) + list(config.tags),
            expected_status=endpoint.expected_status,
        )

    def run_session(self, session_id: Optional[str] = None,
                    write_reports: bool = True) -> SessionOutcome:
        """Run the full matrix once and produce the session report."""
        session_id = session_id or str(uuid.uuid4())
        metrics = EngineMetricsCollector()

        with bind_session(session_id):
            analyzer = self.create_analyzer(session_id, metrics)
            logger.info(
                "Benchmark session started",
                services=len(self.config.services),
                concurrency_levels=list(self.config.concurrency_levels)
            )

            for service, endpoint, concurrency in self.matrix():
                if self.stop_event.is_set():
                    logger.info("Benchmark session interrupted")
                    break
                self.run_cell(analyzer, service, endpoint, concurrency)

            report = analyzer.generate_report()
            outcome = SessionOutcome(report=report, analyzer=analyzer)

            if write_reports:
                formats = self.config.output_formats or self.settings.OUTPUT_FORMATS
                self._save_artifacts(outcome, formats)
            analyzer.record_history()

            logger.info(
                "Benchmark session completed",
                total_tests=report.total_tests,
                failed_tests=report.summary.failed_tests,
                regressions=len(report.regressions),
                reports=len(outcome.report_paths),
                report_errors=len(outcome.report_errors)
            )
        return outcome

    def _save_artifacts(self, outcome: SessionOutcome, formats: List[str]) -> None:
        """Write every report format and the engine metrics; failures are recorded, not raised."""
        analyzer = outcome.analyzer
        for fmt in formats:
            try:
                outcome.report_paths.append(str(analyzer.save_report(outcome.report, fmt)))
            except ReportError as e:
                outcome.report_errors.append(e)
                logger.error("Report not saved", report_format=fmt, error=e.message)

        try:
            metrics_path = analyzer.save_engine_metrics()
        except ReportError as e:
            outcome.report_errors.append(e)
            logger.error("Engine metrics not saved", error=e.message)
        else:
            outcome.metrics_path = str(metrics_path) if metrics_path is not None else None

    def run(self) -> List[SessionOutcome]:
        """
        Run one session, or repeat sessions until stop() in continuous mode.
        """
        outcomes = [self.run_session()]
        while self.config.continuous_mode and not self.stop_event.is_set():
            logger.info("Waiting for next continuous session",
                        interval_seconds=self.config.continuous_interval)
            if self.stop_event.wait(self.config.continuous_interval):
                break
            outcomes.append(self.run_session())
        return outcomes

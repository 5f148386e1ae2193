"""
perfbench command line interface.

Subcommands:
    run       Execute the configured benchmark matrix and write reports
    baseline  Execute the matrix and save the observed performance as a baseline
    report    Re-render a saved JSON report into other formats

Exit status: 0 on success, 1 when the quality gate fails (any FAIL result,
or any regression with --fail-on-regression), 2 on configuration, baseline
or report errors and 130 when interrupted.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from perfbench import __version__
from perfbench.analysis.analyzer import PerformanceAnalyzer
from perfbench.config.benchmark import SUPPORTED_OUTPUT_FORMATS, BenchmarkConfig
from perfbench.config.settings import get_config
from perfbench.monitoring.logging import get_logger, setup_structured_logging
from perfbench.reports import json_report
from perfbench.runner import EXIT_ERROR, EXIT_OK, BenchmarkRunner, SessionOutcome
from perfbench.utils.exceptions import ConfigurationError, PerfBenchError


logger = get_logger(__name__)

EXIT_INTERRUPTED = 130
DEFAULT_BASELINE_FILE = 'performance_baseline.json'


def _format_list(value: str) -> List[str]:
    formats = [fmt.strip().lower() for fmt in value.split(',') if fmt.strip()]
    unknown = [fmt for fmt in formats if fmt not in SUPPORTED_OUTPUT_FORMATS]
    if not formats or unknown:
        raise argparse.ArgumentTypeError(
            f"formats must be a comma-separated subset of: {', '.join(SUPPORTED_OUTPUT_FORMATS)}"
        )
    return formats


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='perfbench',
        description="Service load benchmarking and performance regression analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  perfbench run --config benchmark.json
  perfbench run --config benchmark.json --baseline baseline.json --fail-on-regression
  perfbench baseline --config benchmark.json --version 2.3.0 --output baseline.json
  perfbench report performance_reports/performance_report_api_abc_20240101_120000.json --formats html,csv
        """
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    parser.add_argument(
        '--environment',
        help='Settings environment (development, ci; default: PERFBENCH_ENV)'
    )
    parser.add_argument('--log-level', help='Log level override (default: LOG_LEVEL)')
    parser.add_argument('--log-format', choices=['json', 'console'], help='Log output format')

    subparsers = parser.add_subparsers(dest='command', required=True)

    run_parser = subparsers.add_parser('run', help='Run the benchmark matrix and write reports')
    _add_session_arguments(run_parser)
    run_parser.add_argument('--baseline', help='Baseline file to compare against')
    run_parser.add_argument(
        '--threshold',
        type=float,
        help='Regression threshold in percent (default: from configuration)'
    )
    run_parser.add_argument(
        '--fail-on-regression',
        action='store_true',
        default=None,
        help='Exit with status 1 when any regression is detected'
    )
    run_parser.add_argument(
        '--continuous',
        action='store_true',
        help='Repeat sessions every continuous_interval seconds until interrupted'
    )

    baseline_parser = subparsers.add_parser('baseline', help='Run the matrix and save a baseline')
    _add_session_arguments(baseline_parser)
    baseline_parser.add_argument('--version', dest='baseline_version', required=True,
                                 help='Version label stored in the baseline')
    baseline_parser.add_argument('--output', help=f'Baseline output file (default: {DEFAULT_BASELINE_FILE})')

    report_parser = subparsers.add_parser('report', help='Re-render a saved JSON report')
    report_parser.add_argument('report_file', help='JSON report produced by a previous run')
    report_parser.add_argument('--formats', type=_format_list, default=['text'],
                               help='Comma-separated output formats (default: text)')
    report_parser.add_argument('--report-dir', help='Output directory (default: next to the input)')

    return parser


def _add_session_arguments(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument('--config', required=True, help='Benchmark configuration JSON file')
    subparser.add_argument('--report-dir', help='Directory for report files')
    subparser.add_argument('--formats', type=_format_list, help='Comma-separated output formats')


def _load_config(args: argparse.Namespace) -> BenchmarkConfig:
    config = BenchmarkConfig.from_file(args.config)
    overrides = {}
    if args.report_dir:
        overrides['report_dir'] = args.report_dir
    if args.formats:
        overrides['output_formats'] = args.formats
    if getattr(args, 'baseline', None):
        overrides['baseline_file'] = args.baseline
    if getattr(args, 'threshold', None) is not None:
        if args.threshold < 0:
            raise ConfigurationError(
                "Regression threshold must not be negative",
                details={'threshold': args.threshold}
            )
        overrides['regression_threshold'] = args.threshold
    if getattr(args, 'continuous', False):
        overrides['continuous_mode'] = True
    if args.environment:
        overrides['environment'] = args.environment
    return config.model_copy(update=overrides) if overrides else config


def _print_outcome(outcome: SessionOutcome) -> None:
    report = outcome.report
    summary = report.summary
    print("\n" + "=" * 80)
    print(f"BENCHMARK SESSION {report.session_id}")
    print("=" * 80)
    print(f"Tests: {report.total_tests}  passed: {summary.passed_tests}  "
          f"warning: {summary.warning_tests}  failed: {summary.failed_tests}")
    for label, value in summary.headline():
        print(f"  {label}: {value.format()}")
    if report.regressions:
        print()
        print("REGRESSIONS:")
        for regression in report.regressions:
            print(f"  [{regression.severity.value}] {regression.service} {regression.endpoint} "
                  f"{regression.metric}: {regression.regression_pct:.1f}%")
    if report.recommendations:
        print()
        print("RECOMMENDATIONS:")
        for recommendation in report.recommendations:
            print(f"  - {recommendation}")
    if outcome.report_paths:
        print()
        for path in outcome.report_paths:
            print(f"Report written: {path}")
    if outcome.metrics_path:
        print(f"Engine metrics written: {outcome.metrics_path}")
    for error in outcome.report_errors:
        print(f"error: {error.message}", file=sys.stderr)
    print("=" * 80)


def _command_run(args: argparse.Namespace) -> int:
    settings = get_config(args.environment)
    config = _load_config(args)
    fail_on_regression = settings.FAIL_ON_REGRESSION if args.fail_on_regression is None else True

    runner = BenchmarkRunner(config, settings=settings)
    try:
        outcomes = runner.run()
    except KeyboardInterrupt:
        runner.stop()
        raise

    exit_code = EXIT_OK
    for outcome in outcomes:
        _print_outcome(outcome)
        exit_code = max(exit_code, outcome.exit_code(fail_on_regression))
    return exit_code


def _command_baseline(args: argparse.Namespace) -> int:
    settings = get_config(args.environment)
    config = _load_config(args)
    runner = BenchmarkRunner(config, settings=settings, compare_baseline=False)
    outcome = runner.run_session()
    _print_outcome(outcome)

    output = args.output or config.baseline_file or settings.BASELINE_FILE or DEFAULT_BASELINE_FILE
    baseline = outcome.analyzer.save_baseline(args.baseline_version, path=output,
                                              environment=config.environment)
    endpoints = sum(len(service_endpoints) for service_endpoints in baseline.services.values())
    print(f"Baseline {baseline.version} with {endpoints} endpoints saved to: {output}")
    return EXIT_ERROR if outcome.report_errors else EXIT_OK


def _command_report(args: argparse.Namespace) -> int:
    source = Path(args.report_file)
    try:
        content = source.read_bytes()
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read report file: {source}",
            details={'path': str(source), 'error': str(e)}
        ) from e

    report = json_report.parse(content)
    analyzer = PerformanceAnalyzer(session_id=report.session_id,
                                   report_dir=args.report_dir or source.parent)
    for path in analyzer.save_reports(report, args.formats):
        print(f"Report written: {path}")
    return EXIT_OK


COMMANDS = {
    'run': _command_run,
    'baseline': _command_baseline,
    'report': _command_report,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Console entry point; returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_structured_logging(level=args.log_level, log_format=args.log_format)

    try:
        return COMMANDS[args.command](args)
    except KeyboardInterrupt:
        logger.warning("Benchmark interrupted by user")
        return EXIT_INTERRUPTED
    except PerfBenchError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == '__main__':
    sys.exit(main())

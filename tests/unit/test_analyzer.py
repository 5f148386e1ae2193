"""Unit tests for the PerformanceAnalyzer session aggregate."""

import json
import threading

import pytest

from perfbench.analysis.analyzer import PerformanceAnalyzer, build_benchmark_result
from perfbench.analysis.models import Severity, Status
from perfbench.config.benchmark import ThroughputTargets, Targets
from perfbench.monitoring.metrics import EngineMetricsCollector
from perfbench.reports import json_report
from perfbench.utils.exceptions import (
    BaselineFormatError,
    BaselineNotFoundError,
    ConfigurationError,
    ReportPersistenceError,
    UnsupportedReportFormatError,
)


VALID_BASELINE = {
    'version': '2.0.0',
    'timestamp': '2024-01-01T00:00:00Z',
    'environment': 'staging',
    'services': {
        'orders': {
            'service_name': 'orders',
            'endpoints': {
                '/orders': {
                    'expected_rps': 1000.0,
                    'expected_p95': 100.0,
                    'expected_p99': 150.0,
                    'max_cpu_percent': 60.0,
                    'max_memory_mb': 400.0,
                    'max_error_rate': 1.0,
                    'tags': ['read'],
                }
            }
        }
    }
}


class TestBuildBenchmarkResult:

    @pytest.mark.unit
    def test_warmup_results_are_excluded(self, make_worker_results):
        worker_results = (make_worker_results([500.0] * 5, warmup=True)
                          + make_worker_results([10.0] * 10))
        result = build_benchmark_result('t', 'orders', '/orders', worker_results, measured_seconds=10.0)

        assert result.total_requests == 10
        assert result.response_times.max_ms == 10.0
        assert result.rps == 1.0

    @pytest.mark.unit
    def test_errors_counted_from_status_and_transport(self, make_worker_results):
        worker_results = (make_worker_results([10.0] * 8)
                          + make_worker_results([20.0], status_code=500)
                          + make_worker_results([0.0], status_code=0, error='ConnectError: refused'))
        result = build_benchmark_result('t', 'orders', '/orders', worker_results, measured_seconds=9.0)

        assert result.total_requests == 10
        assert result.total_errors == 2
        assert result.error_rate == pytest.approx(20.0)
        assert result.rps == 1.0
        assert result.response_times.max_ms == 20.0

    @pytest.mark.unit
    def test_expected_status_overrides_success_range(self, make_worker_results):
        worker_results = make_worker_results([10.0] * 4, status_code=201)
        result = build_benchmark_result('t', 'orders', '/orders', worker_results,
                                        measured_seconds=4.0, expected_status=200)
        assert result.total_errors == 4

    @pytest.mark.unit
    def test_violations_evaluated_against_targets(self, make_worker_results):
        targets = Targets(throughput=ThroughputTargets(min_rps=500.0))
        result = build_benchmark_result('t', 'orders', '/orders', make_worker_results([10.0] * 4),
                                        targets=targets, measured_seconds=1.0)
        assert [v.type for v in result.violations] == ['throughput']
        assert result.status is Status.FAIL

    @pytest.mark.unit
    def test_empty_run_has_no_violations(self):
        result = build_benchmark_result('t', 'orders', '/orders', [], measured_seconds=5.0)
        assert result.total_requests == 0
        assert result.violations == ()
        assert result.status is Status.PASS


class TestBaselineLoading:

    @pytest.mark.unit
    def test_load_from_mapping_text_and_file(self, tmp_path):
        analyzer = PerformanceAnalyzer(report_dir=tmp_path)
        assert analyzer.load_baseline(VALID_BASELINE).version == '2.0.0'
        assert analyzer.load_baseline(json.dumps(VALID_BASELINE)).environment == 'staging'

        path = tmp_path / 'baseline.json'
        path.write_text(json.dumps(VALID_BASELINE), encoding='utf-8')
        baseline = analyzer.load_baseline(str(path))
        assert baseline.get('orders', '/orders').expected_rps == 1000.0
        assert baseline.get('orders', '/orders').tags == ('read',)

    @pytest.mark.unit
    def test_missing_file_raises_not_found(self, tmp_path):
        analyzer = PerformanceAnalyzer(report_dir=tmp_path)
        with pytest.raises(BaselineNotFoundError):
            analyzer.load_baseline(str(tmp_path / 'missing.json'))

    @pytest.mark.unit
    def test_malformed_json_keeps_previous_baseline(self, tmp_path):
        analyzer = PerformanceAnalyzer(report_dir=tmp_path)
        analyzer.load_baseline(VALID_BASELINE)

        with pytest.raises(BaselineFormatError):
            analyzer.load_baseline('{"version": "3.0.0", "services": ')
        assert analyzer.baseline.version == '2.0.0'

    @pytest.mark.unit
    def test_invalid_document_reports_every_problem(self, tmp_path):
        document = json.loads(json.dumps(VALID_BASELINE))
        endpoint = document['services']['orders']['endpoints']['/orders']
        endpoint['expected_rps'] = 'fast'
        del endpoint['max_memory_mb']

        analyzer = PerformanceAnalyzer(report_dir=tmp_path)
        with pytest.raises(BaselineFormatError) as exc_info:
            analyzer.load_baseline(document)
        problems = exc_info.value.details['problems']
        assert len(problems) == 2
        assert analyzer.baseline is None

    @pytest.mark.unit
    def test_non_utf8_bytes_rejected(self, tmp_path):
        analyzer = PerformanceAnalyzer(report_dir=tmp_path)
        with pytest.raises(BaselineFormatError):
            analyzer.load_baseline(b'\xff\xfe{')


class TestSaveBaseline:

    @pytest.mark.unit
    def test_derived_values_use_safety_margin(self, tmp_path, make_result):
        analyzer = PerformanceAnalyzer(report_dir=tmp_path)
        analyzer.add_result(make_result(rps=1000.0, p95_ms=100.0, p99_ms=200.0, cpu=50.0, memory_mb=300.0,
                                        total_requests=1000, total_errors=5))
        path = tmp_path / 'out' / 'baseline.json'

        baseline = analyzer.save_baseline('1.2.3', path=path)
        entry = baseline.get('orders', '/orders')
        assert entry.expected_rps == pytest.approx(950.0)
        assert entry.expected_p95 == pytest.approx(95.0)
        assert entry.expected_p99 == pytest.approx(190.0)
        assert entry.max_cpu_percent == pytest.approx(55.0)
        assert entry.max_memory_mb == pytest.approx(330.0)
        assert entry.max_error_rate == pytest.approx(1.0)

        written = json.loads(path.read_text(encoding='utf-8'))
        assert written['version'] == '1.2.3'
        assert written['services']['orders']['service_name'] == 'orders'
        assert written['services']['orders']['endpoints']['GET /orders']['expected_rps'] == pytest.approx(950.0)

    @pytest.mark.unit
    def test_saved_baseline_loads_back(self, tmp_path, make_result):
        analyzer = PerformanceAnalyzer(report_dir=tmp_path)
        analyzer.add_result(make_result())
        path = tmp_path / 'baseline.json'
        analyzer.save_baseline('1.0.0', path=path)

        other = PerformanceAnalyzer(report_dir=tmp_path)
        assert other.load_baseline(str(path)).get('orders', '/orders') is not None


class TestRegressionsAndReports:

    @pytest.mark.unit
    def test_negative_threshold_rejected(self, tmp_path):
        with pytest.raises(ConfigurationError):
            PerformanceAnalyzer(report_dir=tmp_path, regression_threshold=-5.0)

    @pytest.mark.unit
    def test_concurrent_add_result_keeps_every_result(self, tmp_path, make_result):
        analyzer = PerformanceAnalyzer(report_dir=tmp_path)
        result = make_result()

        def add_many():
            for _ in range(200):
                analyzer.add_result(result)

        threads = [threading.Thread(target=add_many) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(analyzer.results) == 1600

    @pytest.mark.unit
    def test_report_contains_regressions_and_metadata(self, tmp_path, make_result):
        analyzer = PerformanceAnalyzer(session_id='s-1', report_dir=tmp_path, metadata={'team': 'core'})
        analyzer.load_baseline(VALID_BASELINE)
        analyzer.add_result(make_result(rps=700.0))

        report = analyzer.generate_report()
        assert report.total_tests == 1
        assert [r.metric for r in report.regressions] == ['rps']
        assert report.metadata['team'] == 'core'
        assert report.metadata['baseline_version'] == '2.0.0'
        assert 'engine_version' in report.metadata
        assert report.results[0].rps == 700.0

    @pytest.mark.unit
    def test_save_report_file_name(self, report_dir, make_result):
        analyzer = PerformanceAnalyzer(session_id='abc', report_dir=report_dir)
        analyzer.add_result(make_result())
        report = analyzer.generate_report()

        path = analyzer.save_report(report, 'json')
        expected = "performance_report_orders_abc_{}.json".format(report.timestamp.strftime('%Y%m%d_%H%M%S'))
        assert path.name == expected
        assert json_report.parse(path.read_bytes()).session_id == 'abc'

    @pytest.mark.unit
    def test_save_reports_in_every_format(self, report_dir, make_result):
        analyzer = PerformanceAnalyzer(session_id='abc', report_dir=report_dir)
        analyzer.add_result(make_result())
        paths = analyzer.save_reports(analyzer.generate_report(), ['json', 'text', 'html', 'csv', 'prometheus'])
        assert sorted(path.suffix for path in paths) == ['.csv', '.html', '.json', '.prom', '.txt']

    @pytest.mark.unit
    def test_unsupported_format_raises(self, report_dir):
        analyzer = PerformanceAnalyzer(report_dir=report_dir)
        with pytest.raises(UnsupportedReportFormatError):
            analyzer.save_report(analyzer.generate_report(), 'pdf')

    @pytest.mark.unit
    def test_unwritable_report_dir_raises_persistence_error(self, tmp_path):
        blocker = tmp_path / 'not-a-dir'
        blocker.write_text('occupied', encoding='utf-8')
        analyzer = PerformanceAnalyzer(report_dir=blocker)
        with pytest.raises(ReportPersistenceError):
            analyzer.save_report(analyzer.generate_report(), 'json')


class TestBaselineEndpointMethods:

    @pytest.mark.unit
    def test_methods_on_one_path_get_separate_entries(self, tmp_path, make_result):
        analyzer = PerformanceAnalyzer(report_dir=tmp_path)
        analyzer.add_result(make_result(endpoint='/orders', rps=1000.0))
        analyzer.add_result(make_result(endpoint='/orders', method='POST', rps=100.0))

        baseline = analyzer.save_baseline('1.0.0', path=tmp_path / 'baseline.json')
        assert set(baseline.services['orders']) == {'GET /orders', 'POST /orders'}
        assert baseline.get('orders', '/orders', 'GET').expected_rps == pytest.approx(950.0)
        assert baseline.get('orders', '/orders', 'POST').expected_rps == pytest.approx(95.0)

        other = PerformanceAnalyzer(report_dir=tmp_path)
        other.load_baseline(str(tmp_path / 'baseline.json'))
        other.add_result(make_result(endpoint='/orders', rps=1000.0))
        other.add_result(make_result(endpoint='/orders', method='POST', rps=100.0))
        assert other.generate_report().regressions == ()

    @pytest.mark.unit
    def test_path_keyed_entry_matches_its_own_method_only(self, tmp_path):
        document = json.loads(json.dumps(VALID_BASELINE))
        document['services']['orders']['endpoints']['/orders']['method'] = 'post'

        baseline = PerformanceAnalyzer(report_dir=tmp_path).load_baseline(document)
        assert baseline.get('orders', '/orders', 'POST') is not None
        assert baseline.get('orders', '/orders', 'GET') is None

    @pytest.mark.unit
    def test_method_parsed_from_entry_key(self, tmp_path):
        document = json.loads(json.dumps(VALID_BASELINE))
        endpoints = document['services']['orders']['endpoints']
        endpoints['DELETE /orders'] = endpoints.pop('/orders')

        baseline = PerformanceAnalyzer(report_dir=tmp_path).load_baseline(document)
        assert baseline.get('orders', '/orders', 'DELETE').method == 'DELETE'
        assert baseline.get('orders', '/orders') is None


class TestBaselineNumericValues:

    @pytest.mark.unit
    @pytest.mark.parametrize('field_name,value', [
        ('expected_rps', float('nan')),
        ('expected_p95', float('inf')),
        ('max_error_rate', float('-inf')),
    ])
    def test_non_finite_values_rejected(self, tmp_path, field_name, value):
        document = json.loads(json.dumps(VALID_BASELINE))
        document['services']['orders']['endpoints']['/orders'][field_name] = value

        analyzer = PerformanceAnalyzer(report_dir=tmp_path)
        with pytest.raises(BaselineFormatError) as exc_info:
            analyzer.load_baseline(document)
        assert any('must be finite' in problem for problem in exc_info.value.details['problems'])
        assert analyzer.baseline is None

    @pytest.mark.unit
    def test_nan_literal_in_json_text_rejected(self, tmp_path):
        text = json.dumps(VALID_BASELINE).replace('"expected_rps": 1000.0', '"expected_rps": NaN')
        assert 'NaN' in text
        with pytest.raises(BaselineFormatError):
            PerformanceAnalyzer(report_dir=tmp_path).load_baseline(text)


class TestEngineMetricsArtifact:

    @pytest.mark.unit
    def test_engine_metrics_written_next_to_reports(self, report_dir, make_result):
        metrics = EngineMetricsCollector()
        analyzer = PerformanceAnalyzer(session_id='abc', report_dir=report_dir, metrics=metrics)
        analyzer.add_result(make_result())

        path = analyzer.save_engine_metrics()
        assert path == report_dir / 'perfbench_engine_abc.prom'
        assert b'perfbench_results_recorded' in path.read_bytes()

    @pytest.mark.unit
    def test_no_collector_writes_nothing(self, report_dir):
        assert PerformanceAnalyzer(report_dir=report_dir).save_engine_metrics() is None
        assert not report_dir.exists()

    @pytest.mark.unit
    def test_unwritable_directory_raises_persistence_error(self, tmp_path):
        blocker = tmp_path / 'not-a-dir'
        blocker.write_text('occupied', encoding='utf-8')
        analyzer = PerformanceAnalyzer(report_dir=blocker / 'reports', metrics=EngineMetricsCollector())
        with pytest.raises(ReportPersistenceError):
            analyzer.save_engine_metrics()


class TestRegressionGauges:

    @pytest.mark.unit
    def test_generate_report_publishes_regression_counts(self, tmp_path, make_result):
        metrics = EngineMetricsCollector()
        analyzer = PerformanceAnalyzer(report_dir=tmp_path, metrics=metrics)
        analyzer.load_baseline(VALID_BASELINE)
        analyzer.add_result(make_result(rps=700.0))

        report = analyzer.generate_report()
        assert [r.severity for r in report.regressions] == [Severity.HIGH]
        registry = metrics.registry
        assert registry.get_sample_value('perfbench_regressions_detected', {'severity': 'HIGH'}) == 1.0
        assert registry.get_sample_value('perfbench_regressions_detected', {'severity': 'CRITICAL'}) == 0.0


class TestScalabilityReference:

    @pytest.mark.unit
    def test_throughput_compared_with_lower_concurrency(self, tmp_path, make_worker_results):
        targets = Targets(throughput=ThroughputTargets(min_rps=1.0, target_rps=1.0, max_rps=100.0,
                                                       scalability_ratio=0.8))
        analyzer = PerformanceAnalyzer(report_dir=tmp_path, targets=targets)

        low = analyzer.build_result('c1', 'orders', '/orders', make_worker_results([10.0] * 10),
                                    concurrency=1, measured_seconds=1.0)
        assert low.rps == 10.0
        assert low.violations == ()

        high = analyzer.build_result('c4', 'orders', '/orders', make_worker_results([10.0] * 5),
                                     concurrency=4, measured_seconds=1.0)
        scalability = [v for v in high.violations if v.type == 'scalability']
        assert len(scalability) == 1
        assert scalability[0].expected.as_float == pytest.approx(8.0)
        assert scalability[0].severity is Severity.MEDIUM
        assert high.status is Status.WARNING

    @pytest.mark.unit
    def test_other_methods_are_not_a_reference(self, tmp_path, make_worker_results):
        targets = Targets(throughput=ThroughputTargets(min_rps=1.0, target_rps=1.0, max_rps=100.0))
        analyzer = PerformanceAnalyzer(report_dir=tmp_path, targets=targets)
        analyzer.build_result('c1', 'orders', '/orders', make_worker_results([10.0] * 10),
                              concurrency=1, measured_seconds=1.0, method='POST')

        high = analyzer.build_result('c4', 'orders', '/orders', make_worker_results([10.0] * 5),
                                     concurrency=4, measured_seconds=1.0)
        assert [v.type for v in high.violations] == []

"""Unit tests for the SQLite session history store."""

from datetime import timedelta

import pytest

from perfbench.analysis.analyzer import PerformanceAnalyzer
from perfbench.analysis.history import HistoryStore
from perfbench.analysis.models import TrendDirection


class TestHistoryStore:

    @pytest.mark.unit
    def test_record_and_load_one_point_per_session(self, tmp_path, make_result, base_time):
        store = HistoryStore(tmp_path / 'history' / 'sessions.db')
        written = store.record_session('s1', [
            make_result(endpoint='/a', rps=100.0, timestamp=base_time),
            make_result(endpoint='/b', rps=300.0, timestamp=base_time),
        ])
        assert written == 10

        series = store.load_series()
        points = series[('orders', 'rps')]
        assert len(points) == 1
        assert points[0].value == 200.0
        assert points[0].session_id == 's1'

    @pytest.mark.unit
    def test_exclude_and_limit_sessions(self, tmp_path, make_result, base_time):
        store = HistoryStore(tmp_path / 'sessions.db')
        for index in range(4):
            store.record_session(f"s{index}", [
                make_result(rps=100.0 + index, timestamp=base_time + timedelta(hours=index))
            ])

        assert store.session_ids() == ['s0', 's1', 's2', 's3']
        assert len(store.load_series(exclude_session='s3')[('orders', 'rps')]) == 3
        latest = store.load_series(limit_sessions=2)[('orders', 'rps')]
        assert [point.session_id for point in latest] == ['s2', 's3']
        since = store.load_series(since=base_time + timedelta(hours=2))[('orders', 'rps')]
        assert len(since) == 2

    @pytest.mark.unit
    def test_empty_session_writes_nothing(self, tmp_path):
        store = HistoryStore(tmp_path / 'sessions.db')
        assert store.record_session('s1', []) == 0
        assert store.load_series() == {}

    @pytest.mark.unit
    def test_analyzer_uses_history_for_trends(self, tmp_path, make_result, base_time):
        store = HistoryStore(tmp_path / 'sessions.db')
        for index, p95 in enumerate([100.0, 120.0, 140.0, 160.0]):
            store.record_session(f"old-{index}", [
                make_result(p95_ms=p95, timestamp=base_time + timedelta(hours=index))
            ])

        analyzer = PerformanceAnalyzer(session_id='current', report_dir=tmp_path, history=store)
        analyzer.add_result(make_result(p95_ms=180.0, timestamp=base_time + timedelta(hours=4)))
        report = analyzer.generate_report()

        latency = next(t for t in report.trends if t.service == 'orders' and t.metric == 'p95_latency')
        assert len(latency.data_points) == 5
        assert latency.trend_line.direction is TrendDirection.DEGRADING
        assert any('degrading p95 latency' in text for text in report.recommendations)

        assert analyzer.record_history() == 5
        assert 'current' in store.session_ids()

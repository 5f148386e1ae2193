"""Unit tests for engine self-instrumentation and structured logging helpers."""

import pytest

from perfbench.monitoring.logging import bind_session, create_session_processor, session_id_context
from perfbench.monitoring.metrics import EngineMetricsCollector


class TestEngineMetricsCollector:

    @pytest.mark.unit
    @pytest.mark.parametrize('status_code,expected', [
        (200, '2xx'), (204, '2xx'), (404, '4xx'), (503, '5xx'), (0, 'error'),
    ])
    def test_status_class(self, status_code, expected):
        assert EngineMetricsCollector.status_class(status_code) == expected

    @pytest.mark.unit
    def test_observe_request(self):
        metrics = EngineMetricsCollector()
        metrics.observe_request('GET /orders', 200, 0.01, failed=False)
        metrics.observe_request('GET /orders', 0, 0.5, failed=True)

        registry = metrics.registry
        assert registry.get_sample_value(
            'perfbench_load_requests_total', {'target': 'GET /orders', 'status_class': '2xx'}) == 1.0
        assert registry.get_sample_value(
            'perfbench_load_requests_total', {'target': 'GET /orders', 'status_class': 'error'}) == 1.0
        assert registry.get_sample_value(
            'perfbench_load_request_failures_total', {'target': 'GET /orders'}) == 1.0
        assert b'perfbench_load_request_duration_seconds' in metrics.exposition()

    @pytest.mark.unit
    def test_collectors_do_not_share_state(self):
        first = EngineMetricsCollector()
        second = EngineMetricsCollector()
        first.resource_samples_total.inc()
        assert second.registry.get_sample_value('perfbench_resource_samples_total') == 0.0


class TestSessionLogging:

    @pytest.mark.unit
    def test_session_processor_adds_bound_session(self):
        processor = create_session_processor()
        with bind_session('abc-123'):
            event = processor(None, 'info', {'event': 'sampled'})
        assert event['session_id'] == 'abc-123'
        assert session_id_context.get() is None

    @pytest.mark.unit
    def test_session_processor_keeps_explicit_value(self):
        processor = create_session_processor()
        with bind_session('abc-123'):
            event = processor(None, 'info', {'event': 'sampled', 'session_id': 'other'})
        assert event['session_id'] == 'other'

    @pytest.mark.unit
    def test_without_session(self):
        event = create_session_processor()(None, 'info', {'event': 'sampled'})
        assert 'session_id' not in event

"""Unit tests for benchmark runner helpers."""

import pytest

from perfbench.config.benchmark import BenchmarkConfig
from perfbench.runner import offered_rps


def _config(target_rps=100.0, max_rps=5000.0, weights=(1.0,)) -> BenchmarkConfig:
    return BenchmarkConfig.from_dict({
        'services': [{
            'name': 'orders',
            'base_url': 'http://orders.test',
            'endpoints': [{'path': f'/orders/{index}', 'weight': weight}
                          for index, weight in enumerate(weights)],
        }],
        'target_rps': target_rps,
        'targets': {'throughput': {'min_rps': 0.0, 'target_rps': 0.0, 'max_rps': max_rps}},
    })


class TestOfferedRate:

    @pytest.mark.unit
    def test_weight_scales_session_rate(self):
        config = _config(weights=(1.0, 0.25, 3.0))
        endpoints = config.services[0].endpoints
        assert [offered_rps(config, endpoint) for endpoint in endpoints] == [100.0, 25.0, 300.0]

    @pytest.mark.unit
    def test_capped_at_max_rps(self):
        config = _config(target_rps=400.0, max_rps=500.0, weights=(2.0,))
        assert offered_rps(config, config.services[0].endpoints[0]) == 500.0

    @pytest.mark.unit
    def test_unthrottled_session_paced_at_max_rps(self):
        config = _config(target_rps=0.0, max_rps=750.0)
        assert offered_rps(config, config.services[0].endpoints[0]) == 750.0

    @pytest.mark.unit
    def test_zero_ceiling_leaves_rate_uncapped(self):
        config = _config(target_rps=80.0, max_rps=0.0)
        assert offered_rps(config, config.services[0].endpoints[0]) == 80.0

        unthrottled = _config(target_rps=0.0, max_rps=0.0)
        assert offered_rps(unthrottled, unthrottled.services[0].endpoints[0]) == 0.0

"""
perfbench - Service Load Benchmarking and Regression Analysis
==============================================================

Drives configurable concurrent HTTP load against service endpoints, samples
resource utilization in parallel, computes latency and throughput statistics,
evaluates results against quality targets, compares them with stored
baselines to detect regressions and renders multi-format reports.

Package Structure:
- perfbench.load: bounded-concurrency HTTP load generation
- perfbench.monitoring: structured logging, Prometheus self-instrumentation
  and resource sampling
- perfbench.analysis: results, baselines, regressions, trends, history
- perfbench.reports: JSON, text, HTML, CSV and Prometheus renderers
- perfbench.config: environment settings and benchmark configuration models
- perfbench.runner / perfbench.cli: session orchestration and command line
"""

__version__ = "1.0.0"
__title__ = "perfbench"
__description__ = "Service load benchmarking and performance regression analysis"
__license__ = "Proprietary"

PACKAGE_NAME = "perfbench"
DEFAULT_CONFIG_ENV = "development"
SUPPORTED_ENVIRONMENTS = ["development", "ci"]

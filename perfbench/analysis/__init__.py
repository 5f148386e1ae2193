"""
Result aggregation, baselines, regressions, trends and session history.

PerformanceAnalyzer lives in perfbench.analysis.analyzer; it is not
re-exported here because it depends on the report renderers, which in turn
import the models of this package.
"""

from perfbench.analysis.history import HistoryStore
from perfbench.analysis.models import (
    BaselineMetrics,
    BenchmarkResult,
    EndpointBaseline,
    Impact,
    MetricKind,
    MetricValue,
    PerformanceRegression,
    PerformanceReport,
    PerformanceTrend,
    ResourceUsage,
    ResponseTimeDistribution,
    Severity,
    Status,
    TrendDirection,
    Violation,
)
from perfbench.analysis.regressions import determine_severity
from perfbench.analysis.statistics import percentile
from perfbench.analysis.trends import TrendAnalyzer

__all__ = [
    'HistoryStore',
    'BaselineMetrics',
    'BenchmarkResult',
    'EndpointBaseline',
    'Impact',
    'MetricKind',
    'MetricValue',
    'PerformanceRegression',
    'PerformanceReport',
    'PerformanceTrend',
    'ResourceUsage',
    'ResponseTimeDistribution',
    'Severity',
    'Status',
    'TrendDirection',
    'Violation',
    'determine_severity',
    'percentile',
    'TrendAnalyzer',
]

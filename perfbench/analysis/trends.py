"""
Performance Trend Analysis

Linear trend fitting over timestamped metric series, typically one point per
benchmark session read back from the history store plus the results of the
current session.

Key Features:
- Least-squares fit with scipy.stats.linregress (slope, intercept, r, p-value)
- Direction classification honoring metric polarity: higher RPS is an
  improvement, higher latency, CPU, memory or error rate is a degradation
- Correlation significance threshold below which a trend counts as stable
- Forward projection with a 95% confidence band from the residual spread
- Spike and drop detection for points three or more standard deviations
  from the series mean
"""

from collections import OrderedDict
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from scipy import stats

from perfbench.analysis.models import (
    Anomaly,
    BenchmarkResult,
    PerformanceTrend,
    PredictionPoint,
    Severity,
    TrendDataPoint,
    TrendDirection,
    TrendLine,
)
from perfbench.monitoring.logging import get_logger


logger = get_logger(__name__)

MIN_TREND_POINTS = 3
CORRELATION_SIGNIFICANCE = 0.5
HIGH_SIGNIFICANCE = 0.8
ANOMALY_Z_SCORE = 3.0
CONFIDENCE_Z = 1.96

HIGHER_IS_BETTER = frozenset({'rps'})

RESULT_METRICS = OrderedDict([
    ('rps', lambda result: result.rps),
    ('p95_latency', lambda result: result.response_times.p95_ms),
    ('cpu_usage', lambda result: result.resources.avg_cpu_percent),
    ('memory_usage', lambda result: result.resources.peak_memory_mb),
    ('error_rate', lambda result: result.error_rate),
])


def series_from_results(results: Iterable[BenchmarkResult],
                        session_id: Optional[str] = None) -> Dict[Tuple[str, str], List[TrendDataPoint]]:
    """Group result metrics into per-(service, metric) series."""
    series: Dict[Tuple[str, str], List[TrendDataPoint]] = OrderedDict()
    for result in results:
        for metric, extract in RESULT_METRICS.items():
            series.setdefault((result.service, metric), []).append(
                TrendDataPoint(result.timestamp, float(extract(result)), session_id)
            )
    return series


def merge_series(*sources: Dict[Tuple[str, str], List[TrendDataPoint]]) -> Dict[Tuple[str, str], List[TrendDataPoint]]:
    merged: Dict[Tuple[str, str], List[TrendDataPoint]] = OrderedDict()
    for source in sources:
        for key, points in source.items():
            merged.setdefault(key, []).extend(points)
    for key in merged:
        merged[key].sort(key=lambda point: point.timestamp)
    return merged


def classify_direction(slope: float, correlation: float, point_count: int, metric: str) -> TrendDirection:
    if point_count < MIN_TREND_POINTS or abs(correlation) < CORRELATION_SIGNIFICANCE or slope == 0:
        return TrendDirection.STABLE
    rising = slope > 0
    if metric in HIGHER_IS_BETTER:
        return TrendDirection.IMPROVING if rising else TrendDirection.DEGRADING
    return TrendDirection.DEGRADING if rising else TrendDirection.IMPROVING


def _significance(correlation: float) -> str:
    strength = abs(correlation)
    if strength >= HIGH_SIGNIFICANCE:
        return 'high'
    if strength >= CORRELATION_SIGNIFICANCE:
        return 'medium'
    return 'low'


class TrendAnalyzer:
    """Fits trends over metric series and projects them forward."""

    def __init__(self, projection_steps: int = 3):
        self.projection_steps = projection_steps

    def fit(self, points: Sequence[TrendDataPoint], metric: str) -> Tuple[TrendLine, Optional[np.ndarray], np.ndarray]:
        """Return the trend line, the x offsets in seconds (None if unfit) and the values."""
        values = np.array([point.value for point in points], dtype=float)
        if len(points) < MIN_TREND_POINTS:
            return self._flat_line(values), None, values

        origin = points[0].timestamp
        offsets = np.array([(point.timestamp - origin).total_seconds() for point in points], dtype=float)
        if np.ptp(offsets) == 0:
            return self._flat_line(values), None, values

        fit = stats.linregress(offsets, values)
        correlation = 0.0 if np.isnan(fit.rvalue) else float(fit.rvalue)
        p_value = 1.0 if np.isnan(fit.pvalue) else float(fit.pvalue)
        line = TrendLine(
            slope=float(fit.slope),
            intercept=float(fit.intercept),
            correlation=correlation,
            p_value=p_value,
            direction=classify_direction(float(fit.slope), correlation, len(points), metric),
            significance=_significance(correlation),
            confidence=max(0.0, min(1.0, 1.0 - p_value)),
        )
        return line, offsets, values

    @staticmethod
    def _flat_line(values: np.ndarray) -> TrendLine:
        mean = float(values.mean()) if len(values) else 0.0
        return TrendLine(
            slope=0.0,
            intercept=mean,
            correlation=0.0,
            p_value=1.0,
            direction=TrendDirection.STABLE,
            significance='low',
            confidence=0.0,
        )

    def project(self, points: Sequence[TrendDataPoint], line: TrendLine,
                offsets: np.ndarray, values: np.ndarray) -> Tuple[PredictionPoint, ...]:
        """Project ``projection_steps`` points ahead at the mean sampling interval."""
        if self.projection_steps <= 0:
            return ()
        fitted = line.intercept + line.slope * offsets
        residuals = values - fitted
        ddof = 2 if len(values) > 2 else 0
        residual_std = float(np.sqrt(np.sum(residuals ** 2) / (len(values) - ddof)))
        step = float(np.mean(np.diff(offsets)))
        band = CONFIDENCE_Z * residual_std
        origin = points[0].timestamp

        predictions = []
        for index in range(1, self.projection_steps + 1):
            offset = offsets[-1] + step * index
            predicted = line.intercept + line.slope * offset
            predictions.append(PredictionPoint(
                timestamp=origin + timedelta(seconds=float(offset)),
                predicted_value=float(predicted),
                lower_bound=float(predicted - band),
                upper_bound=float(predicted + band),
                confidence=0.95,
            ))
        return tuple(predictions)

    @staticmethod
    def detect_anomalies(points: Sequence[TrendDataPoint]) -> Tuple[Anomaly, ...]:
        if len(points) < MIN_TREND_POINTS:
            return ()
        values = np.array([point.value for point in points], dtype=float)
        mean = float(values.mean())
        std = float(values.std(ddof=1))
        if std == 0:
            return ()

        anomalies = []
        for point in points:
            z_score = (point.value - mean) / std
            if abs(z_score) < ANOMALY_Z_SCORE:
                continue
            anomalies.append(Anomaly(
                timestamp=point.timestamp,
                value=point.value,
                expected_value=mean,
                deviation=float(z_score),
                type='spike' if z_score > 0 else 'drop',
                severity=Severity.HIGH if abs(z_score) >= ANOMALY_Z_SCORE + 1 else Severity.MEDIUM,
            ))
        return tuple(anomalies)

    def analyze_series(self, service: str, metric: str,
                       points: Sequence[TrendDataPoint]) -> PerformanceTrend:
        ordered = sorted(points, key=lambda point: point.timestamp)
        line, offsets, values = self.fit(ordered, metric)
        predictions: Tuple[PredictionPoint, ...] = ()
        if offsets is not None:
            predictions = self.project(ordered, line, offsets, values)

        timeframe = ''
        if ordered:
            timeframe = f"{ordered[0].timestamp.isoformat()}/{ordered[-1].timestamp.isoformat()}"

        return PerformanceTrend(
            service=service,
            metric=metric,
            timeframe=timeframe,
            data_points=tuple(ordered),
            trend_line=line,
            predictions=predictions,
            anomalies=self.detect_anomalies(ordered),
        )

    def analyze(self, series: Dict[Tuple[str, str], List[TrendDataPoint]]) -> List[PerformanceTrend]:
        trends = [self.analyze_series(service, metric, points)
                  for (service, metric), points in series.items() if points]
        logger.debug(
            "Trend analysis completed",
            series=len(trends),
            degrading=sum(1 for t in trends if t.trend_line.direction is TrendDirection.DEGRADING)
        )
        return trends

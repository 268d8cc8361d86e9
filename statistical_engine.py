import logging
import math
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy import stats

from statistical_analysis.confidence_interval_builder import BootstrapEstimator

logger = logging.getLogger(__name__)

# FPS-like metrics are worst at the low tail, time-like metrics at the high tail
FPS_PERCENTILES = (1.0, 0.1, 0.01)
TIME_PERCENTILES = (99.0, 99.9, 99.99)
LOW_FRACTIONS = (0.01, 0.001, 0.0001)

# Guessing heuristic for unnamed samples; can misclassify unusual metrics
FPS_HEURISTIC_MIN_AVG = 30.0
FPS_HEURISTIC_MIN_VALUE = 20.0


@dataclass(frozen=True)
class StatisticsResult:
    max: float
    min: float
    avg: float
    stdev: float
    p1: float
    p01: float
    p001: float
    low1: float
    low01: float
    low001: float

    @classmethod
    def empty(cls) -> "StatisticsResult":
        nan = float("nan")
        return cls(max=nan, min=nan, avg=nan, stdev=nan, p1=nan, p01=nan,
                   p001=nan, low1=nan, low01=nan, low001=nan)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


class StatisticalEngine:
    """Descriptive statistics for frame-timing samples"""

    def __init__(self, default_alpha: float = 0.05):
        self.default_alpha = default_alpha

    def compute_statistics(self, sample: Sequence[float], metric_name: str = "") -> StatisticsResult:
        """
        Max/min/avg/stdev, tail percentiles and "X% low" averages.

        Direction follows the metric: for FPS-like metrics the worst frames are
        the lowest values, for time-like metrics the highest.
        """
        data = np.asarray(sample, dtype=np.float64)
        if data.size == 0:
            return StatisticsResult.empty()

        sorted_values = np.sort(data)
        n = sorted_values.size
        explicit_fps = self._name_mentions_fps(metric_name)
        fps_like = self.is_fps_metric(metric_name, sorted_values)

        avg = self.harmonic_mean(sorted_values) if explicit_fps else float(sorted_values.mean())
        stdev = float(sorted_values.std(ddof=1)) if n > 1 else float("nan")

        percentiles = FPS_PERCENTILES if fps_like else TIME_PERCENTILES
        p1, p01, p001 = (self.percentile(sorted_values, p) for p in percentiles)
        low1, low01, low001 = (
            self.low_average(sorted_values, fraction, fps_like) for fraction in LOW_FRACTIONS
        )

        return StatisticsResult(
            max=float(sorted_values[-1]),
            min=float(sorted_values[0]),
            avg=avg,
            stdev=stdev,
            p1=p1,
            p01=p01,
            p001=p001,
            low1=low1,
            low01=low01,
            low001=low001
        )

    def is_fps_metric(self, metric_name: str, sorted_values: Optional[np.ndarray] = None) -> bool:
        """Named FPS metrics are FPS-like; unnamed samples fall back to a value-range guess"""
        if self._name_mentions_fps(metric_name):
            return True
        if metric_name or sorted_values is None or len(sorted_values) == 0:
            return False

        values = np.asarray(sorted_values, dtype=np.float64)
        return bool(values.mean() > FPS_HEURISTIC_MIN_AVG and values.min() > FPS_HEURISTIC_MIN_VALUE)

    def percentile(self, sorted_values: Sequence[float], percentile: float) -> float:
        """Nearest-rank percentile of an ascending sample"""
        n = len(sorted_values)
        if n == 0:
            return float("nan")
        rank = math.ceil(round(percentile / 100.0 * n, 9))
        index = min(max(rank - 1, 0), n - 1)
        return float(sorted_values[index])

    def interpolated_percentile(self, sorted_values: Sequence[float], percentile: float) -> float:
        """Linear-interpolated percentile, used for medians and IQRs in reports"""
        if len(sorted_values) == 0:
            return float("nan")
        return float(np.percentile(sorted_values, percentile))

    def interquartile_range(self, sorted_values: Sequence[float]) -> float:
        return (self.interpolated_percentile(sorted_values, 75)
                - self.interpolated_percentile(sorted_values, 25))

    def low_average(self, sorted_values: Sequence[float], fraction: float, fps_like: bool) -> float:
        """Mean of the worst ceil(n * fraction) frames, at least one"""
        n = len(sorted_values)
        if n == 0:
            return float("nan")
        count = max(1, math.ceil(round(n * fraction, 9)))
        worst = sorted_values[:count] if fps_like else sorted_values[n - count:]
        return float(np.mean(worst))

    def harmonic_mean(self, values: Sequence[float]) -> float:
        data = np.asarray(values, dtype=np.float64)
        if data.size == 0:
            return float("nan")
        with np.errstate(divide="ignore"):
            reciprocal_sum = np.sum(1.0 / data)
        return float(data.size / reciprocal_sum)

    def calculate_skewness(self, values: Sequence[float]) -> float:
        """Third standardised moment; 0 for fewer than 3 values or zero spread"""
        data = np.asarray(values, dtype=np.float64)
        if data.size < 3 or np.ptp(data) == 0:
            return 0.0
        return float(stats.skew(data, bias=True))

    def correct_multiple_comparisons(
        self,
        p_values: List[float],
        method: str = 'bonferroni'
    ) -> List[float]:
        """Adjusted p-values in input order, each capped at 1"""
        p = np.asarray(p_values, dtype=np.float64)
        n = p.size
        if method == 'bonferroni':
            adjusted = p * n
        elif method == 'benjamini_hochberg':
            order = np.argsort(p, kind="stable")
            scaled = p[order] * n / np.arange(1, n + 1)
            # step-up: adjusted value never exceeds the one ranked above it
            stepped = np.minimum.accumulate(scaled[::-1])[::-1]
            adjusted = np.empty(n, dtype=np.float64)
            adjusted[order] = stepped
        else:
            raise ValueError(f"Unknown correction method: {method}")
        return np.minimum(adjusted, 1.0).tolist()

    def calculate_confidence_interval(
        self,
        data: Sequence[float],
        confidence_level: float = 0.95,
        method: str = 'bootstrap',
        seed: Optional[int] = None
    ) -> Tuple[float, float]:
        """Confidence interval for the sample mean"""
        values = np.asarray(data, dtype=np.float64)

        if method == 'bootstrap':
            estimator = BootstrapEstimator(confidence_level=confidence_level, seed=seed)
            interval = estimator.estimate(values, np.mean)
            return (interval.lower, interval.upper)

        elif method == 'parametric':
            if values.size < 2:
                return (float("nan"), float("nan"))
            mean = values.mean()
            sem = stats.sem(values)
            if sem == 0:
                return (float(mean), float(mean))
            lower, upper = stats.t.interval(confidence_level, values.size - 1, loc=mean, scale=sem)
            return (float(lower), float(upper))

        else:
            raise ValueError(f"Unknown CI method: {method}")

    @staticmethod
    def _name_mentions_fps(metric_name: str) -> bool:
        return bool(metric_name) and "fps" in metric_name.lower()

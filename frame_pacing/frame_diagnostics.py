import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from statistical_engine import StatisticalEngine

MIN_DIAGNOSTIC_SAMPLES = 10
MIN_MULTIMODALITY_SAMPLES = 50


@dataclass(frozen=True)
class DistributionCharacteristics:
    mean: float
    median: float
    variance: float
    skewness: float
    outlier_percentage: float
    is_multimodal: bool
    diff_median: float
    diff_variance: float
    transition_variability: float


def analyze_distribution_characteristics(
    sample: Sequence[float],
    engine: Optional[StatisticalEngine] = None
) -> Optional[DistributionCharacteristics]:
    """Shape, outlier and pacing characteristics of one frametime sample"""
    engine = engine or StatisticalEngine()
    data = np.asarray(sample, dtype=np.float64)
    if data.size < MIN_DIAGNOSTIC_SAMPLES:
        return None

    sorted_values = np.sort(data)
    mean = float(sorted_values.mean())
    median = engine.interpolated_percentile(sorted_values, 50)
    variance = float(sorted_values.var())

    # Tukey fences
    q1 = engine.interpolated_percentile(sorted_values, 25)
    q3 = engine.interpolated_percentile(sorted_values, 75)
    iqr = q3 - q1
    outliers = (sorted_values < q1 - 1.5 * iqr) | (sorted_values > q3 + 1.5 * iqr)

    # Transitions are measured around their median, in frame order
    diffs = np.abs(np.diff(data))
    diff_median = float(np.median(diffs))
    diff_variance = float(np.mean((diffs - diff_median) ** 2))
    if diff_median > 0:
        transition_variability = math.sqrt(diff_variance) / diff_median
    elif diff_variance > 0:
        transition_variability = float("inf")
    else:
        transition_variability = 0.0

    return DistributionCharacteristics(
        mean=mean,
        median=median,
        variance=variance,
        skewness=engine.calculate_skewness(sorted_values),
        outlier_percentage=float(outliers.sum()) / data.size * 100.0,
        is_multimodal=detect_multimodality(sorted_values),
        diff_median=diff_median,
        diff_variance=diff_variance,
        transition_variability=transition_variability
    )


def detect_multimodality(sorted_values: Sequence[float]) -> bool:
    """Count histogram peaks over Sturges bins; more than one peak is multimodal"""
    data = np.asarray(sorted_values, dtype=np.float64)
    n = data.size
    if n < MIN_MULTIMODALITY_SAMPLES:
        return False

    value_range = data[-1] - data[0]
    if value_range <= 0:
        return False

    bin_count = math.ceil(math.log2(n) + 1)
    bin_width = value_range / bin_count
    indices = np.minimum(((data - data[0]) / bin_width).astype(int), bin_count - 1)
    bins = np.bincount(indices, minlength=bin_count)

    peak_count = 0
    rising = False
    for i in range(1, bin_count):
        if not rising and bins[i] > bins[i - 1]:
            rising = True
        elif rising and bins[i] < bins[i - 1]:
            peak_count += 1
            rising = False

    if rising:
        peak_count += 1

    return peak_count > 1


def stutter_risk_score(characteristics: DistributionCharacteristics) -> int:
    """0..7, higher means more likely to be perceived as stuttery"""
    score = 0

    if characteristics.skewness > 0.5:
        score += 2
    elif characteristics.skewness > 0.2:
        score += 1

    if characteristics.outlier_percentage > 1:
        score += 2
    elif characteristics.outlier_percentage > 0.5:
        score += 1

    if characteristics.is_multimodal:
        score += 1

    if characteristics.transition_variability > 0.3:
        score += 2
    elif characteristics.transition_variability > 0.1:
        score += 1

    return score


def stutter_risk_label(characteristics: DistributionCharacteristics) -> str:
    score = stutter_risk_score(characteristics)
    if score >= 5:
        return "High"
    elif score >= 3:
        return "Medium"
    elif score >= 1:
        return "Low"
    return "Very Low"

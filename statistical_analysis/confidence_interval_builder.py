import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

MIN_BOOTSTRAP_SAMPLES = 10


@dataclass(frozen=True)
class ConfidenceInterval:
    lower: float
    upper: float
    mean: float  # statistic of the original, non-resampled sample

    @property
    def width(self) -> float:
        return self.upper - self.lower

    def overlaps(self, other: "ConfidenceInterval") -> bool:
        return self.lower <= other.upper and self.upper >= other.lower

    @classmethod
    def undefined(cls) -> "ConfidenceInterval":
        return cls(lower=float("nan"), upper=float("nan"), mean=float("nan"))


@dataclass(frozen=True)
class IntervalComparison:
    """Bootstrap intervals of one metric for two datasets"""
    metric: str
    interval_a: ConfidenceInterval
    interval_b: ConfidenceInterval
    higher_is_better: bool = False

    @property
    def undefined(self) -> bool:
        return any(math.isnan(value) for value in (
            self.interval_a.lower, self.interval_a.upper,
            self.interval_b.lower, self.interval_b.upper
        ))

    def better_dataset(self) -> Optional[str]:
        """'A' or 'B' when the intervals are disjoint, else None"""
        if self.undefined or self.interval_a.overlaps(self.interval_b):
            return None
        a_above = self.interval_a.lower > self.interval_b.upper
        if self.higher_is_better:
            return 'A' if a_above else 'B'
        return 'B' if a_above else 'A'

    def relative_widths(self) -> Tuple[float, float]:
        return (_relative_width(self.interval_a), _relative_width(self.interval_b))


def _relative_width(interval: ConfidenceInterval) -> float:
    if interval.mean == 0:
        return 0.0 if interval.width == 0 else float("inf")
    return interval.width / abs(interval.mean)


class BootstrapEstimator:
    """Percentile bootstrap confidence intervals for arbitrary scalar statistics"""

    def __init__(
        self,
        iterations: int = 1000,
        confidence_level: float = 0.95,
        seed: Optional[int] = None
    ):
        self.iterations = iterations
        self.confidence_level = confidence_level
        self.seed = seed

    def estimate(
        self,
        sample: Sequence[float],
        stat_fn: Callable[[np.ndarray], float],
        iterations: Optional[int] = None,
        confidence_level: Optional[float] = None,
        rng: Optional[np.random.Generator] = None
    ) -> ConfidenceInterval:
        """
        Resample ``sample`` with replacement ``iterations`` times and return
        the empirical interval of ``stat_fn``.

        Samples shorter than 10 values give an all-NaN interval. Without a
        seed or generator the result is non-deterministic.
        """
        if iterations is None:
            iterations = self.iterations
        if confidence_level is None:
            confidence_level = self.confidence_level
        if iterations < 1:
            raise ValueError(f"iterations must be positive, got {iterations}")
        if not 0.0 < confidence_level < 1.0:
            raise ValueError(f"confidence_level must be in (0, 1), got {confidence_level}")

        data = np.asarray(sample, dtype=np.float64)
        n = data.size
        if n < MIN_BOOTSTRAP_SAMPLES:
            logger.debug("Bootstrap skipped: %d values, need %d", n, MIN_BOOTSTRAP_SAMPLES)
            return ConfidenceInterval.undefined()

        rng = rng if rng is not None else np.random.default_rng(self.seed)
        original_stat = float(stat_fn(data))

        boot_stats = np.empty(iterations, dtype=np.float64)
        for idx in range(iterations):
            resampled = data[rng.integers(0, n, size=n)]
            boot_stats[idx] = stat_fn(resampled)

        boot_stats.sort()

        alpha = 1 - confidence_level
        lower_index = _floor_index(iterations * (alpha / 2), iterations)
        upper_index = _floor_index(iterations * (1 - alpha / 2), iterations)

        return ConfidenceInterval(
            lower=float(boot_stats[lower_index]),
            upper=float(boot_stats[upper_index]),
            mean=original_stat
        )


def _floor_index(position: float, size: int) -> int:
    # 1000 * 0.975 must land on 975, not 974
    index = int(math.floor(round(position, 9)))
    return min(max(index, 0), size - 1)

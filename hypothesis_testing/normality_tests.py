import logging
from typing import Optional, Sequence

import numpy as np
from scipy import stats

from hypothesis_testing.result_types import NormalityResult

logger = logging.getLogger(__name__)

SHAPIRO_MIN_SAMPLES = 3
SHAPIRO_MAX_SAMPLES = 5000


def run_shapiro_wilk(sample: Sequence[float], alpha: float = 0.05) -> Optional[NormalityResult]:
    """Shapiro-Wilk normality check; None outside 3..5000 values"""
    data = np.asarray(sample, dtype=np.float64)
    n = data.size
    if n < SHAPIRO_MIN_SAMPLES or n > SHAPIRO_MAX_SAMPLES:
        logger.debug("Shapiro-Wilk skipped for %d values", n)
        return None

    caveats = []
    if np.ptp(data) == 0:
        # W is undefined for a constant sample
        caveats.append("All values are identical; normality cannot be assessed")
        return NormalityResult(statistic=float("nan"), p_value=float("nan"),
                               is_normal=False, n=int(n), caveats=caveats)

    statistic, p_value = stats.shapiro(data)
    return NormalityResult(
        statistic=float(statistic),
        p_value=float(p_value),
        is_normal=bool(p_value > alpha),
        n=int(n),
        caveats=caveats
    )

import logging
import math
import warnings
from typing import Callable, List, Optional, Sequence

import numpy as np
from scipy import stats
from statsmodels.stats.power import ttest_power

from frame_pacing.pacing_analyzer import FramePacingAnalyzer, MIN_PACING_FRAMES
from hypothesis_testing.result_types import (
    FramePacingTestResult,
    KolmogorovSmirnovResult,
    MannWhitneyResult,
    PairedTTestResult,
    VarianceTestResult,
    WilcoxonResult,
)
from statistical_engine import StatisticalEngine

logger = logging.getLogger(__name__)

P_VALUE_FLOOR = 1e-15
NORMAL_TAIL_Z = 6.0
KS_SERIES_Z_LIMIT = 1.18


class LengthMismatchError(ValueError):
    """Paired test given samples of different lengths"""


class SmallSampleWarning(UserWarning):
    """A test ran on fewer values than it needs to be reliable"""


def _ratio(numerator: float, denominator: float) -> float:
    # x/0 -> +-inf and 0/0 -> nan instead of ZeroDivisionError
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.float64(numerator) / np.float64(denominator))


def _two_tailed_normal_p(z: float) -> float:
    if not math.isfinite(z):
        return float("nan")
    abs_z = abs(z)
    if abs_z > NORMAL_TAIL_Z:
        # Mills-ratio tail, the CDF route loses all precision out here
        p_value = 2 * math.exp(-0.5 * z * z) / (abs_z * math.sqrt(2 * math.pi))
    else:
        p_value = 2 * stats.norm.sf(abs_z)
    return min(1.0, max(float(p_value), P_VALUE_FLOOR))


def kolmogorov_p_value(z: float) -> float:
    """Asymptotic two-sample K-S p-value for the scaled statistic z"""
    if not math.isfinite(z):
        return float("nan")
    if z <= 0:
        return 1.0
    if z < KS_SERIES_Z_LIMIT:
        # full Kolmogorov series, so p-values differ from the simplified 1 - 2*sum form
        y = math.exp(-math.pi ** 2 / (8 * z * z))
        p_value = 1 - math.sqrt(2 * math.pi) / z * (y + y ** 9 + y ** 25 + y ** 49)
    else:
        p_value = 2 * math.exp(-2 * z * z)
    return min(1.0, max(p_value, P_VALUE_FLOOR))


def build_ecdf(sorted_values: np.ndarray) -> Callable[[np.ndarray], np.ndarray]:
    """Empirical CDF over an ascending sample, evaluated by binary search"""
    n = sorted_values.size

    def ecdf(x: np.ndarray) -> np.ndarray:
        return np.searchsorted(sorted_values, x, side="right") / n

    return ecdf


class HypothesisTestSuite:
    """Two-sample tests tuned for comparing frame-timing captures"""

    def __init__(
        self,
        significance_level: float = 0.05,
        min_reliable_size: int = 5,
        ks_sampling_threshold: int = 10000,
        ks_sample_size: int = 5000,
        pacing_analyzer: Optional[FramePacingAnalyzer] = None,
        engine: Optional[StatisticalEngine] = None
    ):
        self.significance_level = significance_level
        self.min_reliable_size = min_reliable_size
        self.ks_sampling_threshold = ks_sampling_threshold
        self.ks_sample_size = ks_sample_size
        self.pacing_analyzer = pacing_analyzer or FramePacingAnalyzer()
        self.engine = engine or StatisticalEngine(default_alpha=significance_level)

    def run_paired_t_test(self, sample_a: Sequence[float], sample_b: Sequence[float]) -> PairedTTestResult:
        """Paired t-test on per-frame differences A - B; Cohen's d = mean / sd"""
        a = np.asarray(sample_a, dtype=np.float64)
        b = np.asarray(sample_b, dtype=np.float64)
        if a.size != b.size:
            raise LengthMismatchError(
                f"Paired t-test requires samples of equal length, got {a.size} and {b.size}"
            )

        n = a.size
        caveats = []
        if n < 2:
            caveats.append(f"Paired t-test needs at least 2 pairs, got {n}")
            logger.debug("Paired t-test on %d pairs", n)

        if n == 0:
            nan = float("nan")
            return PairedTTestResult(
                statistic=nan, p_value=nan, effect_size=nan, n=0, dof=0,
                mean_diff=nan, sd_diff=nan, standard_error=nan,
                confidence_interval=(nan, nan), statistical_power=nan, caveats=caveats
            )

        diffs = a - b
        mean_diff = float(diffs.mean())
        sd_diff = float(diffs.std(ddof=1)) if n > 1 else float("nan")
        se = sd_diff / math.sqrt(n)
        t = _ratio(mean_diff, se)
        dof = n - 1
        p_value = float(2 * stats.t.sf(abs(t), dof)) if dof > 0 else float("nan")
        cohen_d = _ratio(mean_diff, sd_diff)

        # 95% CI of the mean difference
        t_critical = float(stats.t.ppf(0.975, dof)) if dof > 0 else float("nan")
        margin = t_critical * se
        confidence_interval = (mean_diff - margin, mean_diff + margin)

        if n > 1 and math.isfinite(cohen_d):
            power = float(ttest_power(
                effect_size=abs(cohen_d),
                nobs=n,
                alpha=self.significance_level,
                alternative='two-sided'
            ))
        else:
            power = float("nan")

        if not math.isfinite(t):
            caveats.append("Differences have zero spread; t and Cohen's d are undefined")

        return PairedTTestResult(
            statistic=t,
            p_value=p_value,
            effect_size=cohen_d,
            n=n,
            dof=dof,
            mean_diff=mean_diff,
            sd_diff=sd_diff,
            standard_error=se,
            confidence_interval=confidence_interval,
            statistical_power=power,
            caveats=caveats
        )

    def run_mann_whitney(self, sample_a: Sequence[float], sample_b: Sequence[float]) -> Optional[MannWhitneyResult]:
        """
        Mann-Whitney U with average ranks for ties.

        z is taken from U1, so the sign of the effect size r says which sample
        ranks higher (positive: A). The reported statistic is min(U1, U2).
        """
        a = np.asarray(sample_a, dtype=np.float64)
        b = np.asarray(sample_b, dtype=np.float64)
        n1, n2 = a.size, b.size

        caveats = self._small_sample_caveats("Mann-Whitney test", n1, n2)
        if n1 < 1 or n2 < 1:
            return None

        combined = np.concatenate([a, b])
        ranks = stats.rankdata(combined, method="average")
        _, tie_counts = np.unique(combined, return_counts=True)
        tie_counts = tie_counts.astype(np.float64)
        tie_correction = float(np.sum(tie_counts ** 3 - tie_counts)) / 12

        rank_sum_a = float(ranks[:n1].sum())
        rank_sum_b = float(ranks[n1:].sum())

        u1 = rank_sum_a - n1 * (n1 + 1) / 2
        u2 = n1 * n2 - u1
        u = min(u1, u2)
        mean_u = n1 * n2 / 2

        big_n = n1 + n2
        if tie_counts.size > 1:
            base_variance = n1 * n2 * (big_n + 1) / 12
            adjusted_variance = base_variance - tie_correction * (n1 * n2 / (big_n * (big_n - 1)))
            sigma_u = math.sqrt(max(adjusted_variance, 0.0))
        else:
            # a single tie group leaves no variance, only rounding noise
            sigma_u = 0.0

        if sigma_u > 0:
            continuity = 0.5 * np.sign(u1 - mean_u)
            z = float((u1 - mean_u - continuity) / sigma_u)
            p_value = _two_tailed_normal_p(z)
        else:
            z = float("nan")
            p_value = float("nan")
            caveats.append("All values are tied; the rank test is undefined")

        effect_size = z / math.sqrt(big_n)

        sorted_a = np.sort(a)
        sorted_b = np.sort(b)

        return MannWhitneyResult(
            statistic=u,
            p_value=p_value,
            effect_size=effect_size,
            z=z,
            u1=u1,
            u2=u2,
            n1=n1,
            n2=n2,
            median_a=self.engine.interpolated_percentile(sorted_a, 50),
            median_b=self.engine.interpolated_percentile(sorted_b, 50),
            iqr_a=self.engine.interquartile_range(sorted_a),
            iqr_b=self.engine.interquartile_range(sorted_b),
            higher_group='A' if rank_sum_a / n1 > rank_sum_b / n2 else 'B',
            common_language_effect=u1 / (n1 * n2) * 100,
            tie_correction=tie_correction,
            caveats=caveats
        )

    def run_kolmogorov_smirnov(self, sample_a: Sequence[float], sample_b: Sequence[float]) -> Optional[KolmogorovSmirnovResult]:
        """Two-sample K-S test; the supremum is searched over every observed value"""
        a = np.asarray(sample_a, dtype=np.float64)
        b = np.asarray(sample_b, dtype=np.float64)
        n1, n2 = a.size, b.size

        caveats = self._small_sample_caveats("K-S test", n1, n2)
        if n1 < 1 or n2 < 1:
            return None

        sampling_applied = n1 > self.ks_sampling_threshold or n2 > self.ks_sampling_threshold
        a_subset = self._systematic_sample(a) if n1 > self.ks_sampling_threshold else a
        b_subset = self._systematic_sample(b) if n2 > self.ks_sampling_threshold else b
        if sampling_applied:
            logger.debug("K-S sub-sampled %d/%d values to %d/%d", n1, n2, a_subset.size, b_subset.size)
            caveats.append(
                f"Sampling was applied to handle large dataset size (original sizes: A={n1}, B={n2})"
            )

        sorted_a = np.sort(a_subset)
        sorted_b = np.sort(b_subset)
        ecdf_a = build_ecdf(sorted_a)
        ecdf_b = build_ecdf(sorted_b)

        values = np.union1d(sorted_a, sorted_b)
        ecdf_diffs = np.abs(ecdf_a(values) - ecdf_b(values))
        max_index = int(np.argmax(ecdf_diffs))
        d = float(ecdf_diffs[max_index])
        max_diff_value = float(values[max_index]) if d > 0 else 0.0

        z = d * math.sqrt((n1 * n2) / (n1 + n2))

        return KolmogorovSmirnovResult(
            statistic=d,
            p_value=kolmogorov_p_value(z),
            effect_size=d,
            z=z,
            max_diff_value=max_diff_value,
            n1=int(sorted_a.size),
            n2=int(sorted_b.size),
            original_n1=n1,
            original_n2=n2,
            sampling_applied=sampling_applied,
            median_a=self.engine.interpolated_percentile(sorted_a, 50),
            median_b=self.engine.interpolated_percentile(sorted_b, 50),
            iqr_a=self.engine.interquartile_range(sorted_a),
            iqr_b=self.engine.interquartile_range(sorted_b),
            skew_a=self.engine.calculate_skewness(sorted_a),
            skew_b=self.engine.calculate_skewness(sorted_b),
            caveats=caveats
        )

    def run_variance_test(self, sample_a: Sequence[float], sample_b: Sequence[float]) -> Optional[VarianceTestResult]:
        """F-test with the larger variance on top; effect size is ln(F)"""
        a = np.asarray(sample_a, dtype=np.float64)
        b = np.asarray(sample_b, dtype=np.float64)
        n1, n2 = a.size, b.size

        if n1 < 2 or n2 < 2:
            logger.debug("Variance test needs 2 values per group, got %d/%d", n1, n2)
            return None

        var_a = float(a.var(ddof=1))
        var_b = float(b.var(ddof=1))
        cv_a = _ratio(math.sqrt(var_a), float(a.mean())) * 100
        cv_b = _ratio(math.sqrt(var_b), float(b.mean())) * 100

        if var_a > var_b:
            f_stat = _ratio(var_a, var_b)
            df_numerator, df_denominator = n1 - 1, n2 - 1
            larger_dataset = 'A'
        else:
            f_stat = _ratio(var_b, var_a)
            df_numerator, df_denominator = n2 - 1, n1 - 1
            larger_dataset = 'B'

        p_value = float(2 * stats.f.sf(f_stat, df_numerator, df_denominator))
        if p_value > 1:
            p_value = 2 - p_value

        with np.errstate(divide="ignore", invalid="ignore"):
            effect_size = float(np.log(f_stat))

        caveats = []
        if not math.isfinite(f_stat):
            caveats.append("At least one sample has zero variance; F is undefined")

        return VarianceTestResult(
            statistic=f_stat,
            p_value=p_value,
            effect_size=effect_size,
            var_a=var_a,
            var_b=var_b,
            cv_a=cv_a,
            cv_b=cv_b,
            df_numerator=df_numerator,
            df_denominator=df_denominator,
            larger_dataset=larger_dataset,
            caveats=caveats
        )

    def run_frame_pacing_test(self, sample_a: Sequence[float], sample_b: Sequence[float]) -> FramePacingTestResult:
        """Pacing differential B - A; judged by effect bands, no p-value"""
        pacing_a = self.pacing_analyzer.analyze(sample_a)
        pacing_b = self.pacing_analyzer.analyze(sample_b)

        caveats = []
        for label, pacing in (('A', pacing_a), ('B', pacing_b)):
            if pacing.frame_count < MIN_PACING_FRAMES:
                caveats.append(
                    f"Dataset {label} has fewer than {MIN_PACING_FRAMES} frames; pacing is neutral"
                )

        consistency_diff = pacing_b.consistency - pacing_a.consistency

        return FramePacingTestResult(
            statistic=consistency_diff,
            p_value=None,
            effect_size=consistency_diff,
            pacing_a=pacing_a,
            pacing_b=pacing_b,
            consistency_diff=consistency_diff,
            median_transition_diff=pacing_b.median_transition - pacing_a.median_transition,
            bad_transitions_diff=pacing_b.bad_transition_count - pacing_a.bad_transition_count,
            caveats=caveats
        )

    def run_wilcoxon_signed_rank(self, sample_a: Sequence[float], sample_b: Sequence[float]) -> Optional[WilcoxonResult]:
        """Signed-rank test on paired differences; zero differences are dropped"""
        a = np.asarray(sample_a, dtype=np.float64)
        b = np.asarray(sample_b, dtype=np.float64)
        if a.size != b.size:
            raise LengthMismatchError(
                f"Wilcoxon signed-rank requires samples of equal length, got {a.size} and {b.size}"
            )

        diffs = a - b
        non_zero = diffs[diffs != 0]
        n_used = non_zero.size
        if n_used == 0:
            logger.debug("Wilcoxon signed-rank: all differences are zero")
            return None

        ranks = stats.rankdata(np.abs(non_zero), method="average")
        w_plus = float(ranks[non_zero > 0].sum())
        w_minus = float(ranks[non_zero < 0].sum())
        t_stat = min(w_plus, w_minus)

        mean_t = n_used * (n_used + 1) / 4
        sd_t = math.sqrt(n_used * (n_used + 1) * (2 * n_used + 1) / 24)
        z = (t_stat - mean_t) / sd_t
        rank_total = n_used * (n_used + 1) / 2

        caveats = []
        if n_used < self.min_reliable_size:
            caveats.append(
                f"Wilcoxon signed-rank works best with at least {self.min_reliable_size} non-zero differences"
            )

        return WilcoxonResult(
            statistic=t_stat,
            p_value=_two_tailed_normal_p(z),
            effect_size=1 - (2 * w_minus) / rank_total,
            z=z,
            w_plus=w_plus,
            w_minus=w_minus,
            n_used=int(n_used),
            caveats=caveats
        )

    def _systematic_sample(self, values: np.ndarray) -> np.ndarray:
        """Every k-th value in capture order, keeps the distribution's shape"""
        step = values.size // self.ks_sample_size
        return values[::step][:self.ks_sample_size]

    def _small_sample_caveats(self, test_name: str, n1: int, n2: int) -> List[str]:
        caveats = []
        if n1 < self.min_reliable_size or n2 < self.min_reliable_size:
            message = (f"{test_name} works best with at least "
                       f"{self.min_reliable_size} data points per group")
            caveats.append(message)
            warnings.warn(message, SmallSampleWarning, stacklevel=3)
        return caveats

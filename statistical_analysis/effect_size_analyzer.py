import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from frame_pacing.frame_diagnostics import DistributionCharacteristics, stutter_risk_score
from hypothesis_testing.result_types import (
    FramePacingTestResult,
    KolmogorovSmirnovResult,
    MannWhitneyResult,
    NormalityResult,
    PairedTTestResult,
    VarianceTestResult,
    WilcoxonResult,
)
from statistical_analysis.confidence_interval_builder import IntervalComparison

DEFAULT_ALPHA = 0.05


class EffectMagnitude(Enum):
    NEGLIGIBLE = "negligible"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    UNDETERMINED = "undetermined"


# Upper bounds (exclusive) of negligible, small and medium; anything above is large
EFFECT_SIZE_THRESHOLDS: Dict[str, Tuple[float, float, float]] = {
    'cohen_d': (0.2, 0.5, 0.8),
    'mann_whitney_r': (0.1, 0.3, 0.5),
    'ks_d': (0.15, 0.3, 0.5),
    'log_f': (0.5, 1.0, 1.5),
    'pacing_percent': (2.0, 5.0, 10.0),
    'rank_biserial': (0.1, 0.3, 0.5),
}


@dataclass
class EffectInterpretation:
    magnitude: EffectMagnitude
    direction: str
    significant: Optional[bool]  # None when the test has no p-value
    summary: str
    details: List[str] = field(default_factory=list)


def classify_effect(effect_size: Optional[float], measure: str) -> EffectMagnitude:
    """Map an effect size onto its band; the sign is ignored"""
    if measure not in EFFECT_SIZE_THRESHOLDS:
        raise ValueError(f"Unknown effect size measure: {measure}")
    if effect_size is None or not math.isfinite(effect_size):
        return EffectMagnitude.UNDETERMINED

    negligible, small, medium = EFFECT_SIZE_THRESHOLDS[measure]
    magnitude = abs(effect_size)
    if magnitude < negligible:
        return EffectMagnitude.NEGLIGIBLE
    elif magnitude < small:
        return EffectMagnitude.SMALL
    elif magnitude < medium:
        return EffectMagnitude.MEDIUM
    return EffectMagnitude.LARGE


def is_significant(p_value: Optional[float], alpha: float = DEFAULT_ALPHA) -> Optional[bool]:
    if p_value is None or math.isnan(p_value):
        return None
    return p_value <= alpha


def _describe(label: str, effect_size: float, magnitude: EffectMagnitude) -> str:
    if magnitude is EffectMagnitude.UNDETERMINED:
        return f"The effect size ({label}) cannot be determined for this data"
    return f"The effect size ({label} = {effect_size:.2f}) indicates a {magnitude.value} effect"


def _significance_text(significant: Optional[bool], alpha: float) -> str:
    if significant is None:
        return "Statistical significance could not be assessed"
    if significant:
        return f"The difference is statistically significant (p <= {alpha})"
    return f"The difference is not statistically significant (p > {alpha})"


def interpret_t_test(result: PairedTTestResult, alpha: float = DEFAULT_ALPHA) -> EffectInterpretation:
    magnitude = classify_effect(result.effect_size, 'cohen_d')
    significant = is_significant(result.p_value, alpha)

    if not math.isfinite(result.mean_diff) or result.mean_diff == 0:
        direction = "none"
    else:
        direction = "A > B" if result.mean_diff > 0 else "B > A"

    details = [_significance_text(significant, alpha)]
    if math.isfinite(result.statistical_power) and result.statistical_power < 0.8:
        details.append(f"Statistical power is low ({result.statistical_power:.2f}); "
                       "a real difference may have been missed")

    return EffectInterpretation(
        magnitude=magnitude,
        direction=direction,
        significant=significant,
        summary=_describe("Cohen's d", result.effect_size, magnitude),
        details=details + list(result.caveats)
    )


def interpret_mann_whitney(result: MannWhitneyResult, alpha: float = DEFAULT_ALPHA) -> EffectInterpretation:
    magnitude = classify_effect(result.effect_size, 'mann_whitney_r')
    significant = is_significant(result.p_value, alpha)

    details = [_significance_text(significant, alpha)]
    if significant:
        details.append(f"Dataset {result.higher_group} has systematically higher values")
    details.append(f"Probability that a random value from A exceeds one from B: "
                   f"{result.common_language_effect:.1f}%")

    return EffectInterpretation(
        magnitude=magnitude,
        direction=f"{result.higher_group} higher",
        significant=significant,
        summary=_describe("r", result.effect_size, magnitude),
        details=details + list(result.caveats)
    )


def ks_meaning(effect_size: float, p_value: float, skew_difference: float, alpha: float = DEFAULT_ALPHA) -> str:
    """Plain-language reading of a K-S result for frame time data"""
    if not p_value <= alpha:
        return ("There is no strong evidence that the two frame time distributions differ. "
                "Users would likely not perceive a difference in smoothness between these two conditions.")

    if effect_size < 0.15:
        return ("Although statistically significant with this large sample size, the actual difference "
                "between frame time distributions is tiny and would not be noticeable to users.")

    if effect_size < 0.3:
        return ("There is a small but real difference between frame time distributions. "
                "Very sensitive users might perceive a slight difference in smoothness, but most would not notice.")

    meaning = ("There is a substantial difference between frame time distributions. "
               "Most users would likely notice a difference in perceived smoothness.")
    if abs(skew_difference) > 0.3:
        spiky = 'A' if skew_difference > 0 else 'B'
        meaning += (f" Dataset {spiky} exhibits more frame time spikes, "
                    "which typically results in a less smooth experience.")
    return meaning


def interpret_kolmogorov_smirnov(result: KolmogorovSmirnovResult, alpha: float = DEFAULT_ALPHA) -> EffectInterpretation:
    magnitude = classify_effect(result.effect_size, 'ks_d')
    significant = is_significant(result.p_value, alpha)
    skew_difference = result.skew_difference

    details = [_significance_text(significant, alpha)]
    if result.statistic > 0:
        details.append(f"The largest gap between the distributions is at {result.max_diff_value:.2f}")
    if abs(skew_difference) > 0.3:
        spiky, other = ('A', 'B') if skew_difference > 0 else ('B', 'A')
        details.append(f"Dataset {spiky} has more high frame time spikes (right-skewed) "
                       f"compared to Dataset {other}.")
    details.append(ks_meaning(result.effect_size, result.p_value, skew_difference, alpha))

    if result.median_a == result.median_b:
        direction = "none"
    else:
        direction = "A higher" if result.median_a > result.median_b else "B higher"

    return EffectInterpretation(
        magnitude=magnitude,
        direction=direction,
        significant=significant,
        summary=_describe("D", result.effect_size, magnitude),
        details=details + list(result.caveats)
    )


def interpret_variance_test(result: VarianceTestResult, alpha: float = DEFAULT_ALPHA) -> EffectInterpretation:
    magnitude = classify_effect(result.effect_size, 'log_f')
    significant = is_significant(result.p_value, alpha)

    details = [_significance_text(significant, alpha)]
    if significant:
        details.append(f"Dataset {result.larger_dataset} has the more variable frame times")

    return EffectInterpretation(
        magnitude=magnitude,
        direction=f"{result.larger_dataset} more variable",
        significant=significant,
        summary=_describe("ln(F)", result.effect_size, magnitude),
        details=details + list(result.caveats)
    )


def pacing_assessment(consistency_diff: float) -> str:
    """How B's pacing compares to A's, from the consistency difference B - A"""
    if consistency_diff > 5:
        return "significant improvement"
    elif consistency_diff > 2:
        return "moderate improvement"
    elif consistency_diff > 0:
        return "slight improvement"
    elif consistency_diff > -2:
        return "negligible change"
    return "degradation"


def interpret_frame_pacing(result: FramePacingTestResult) -> EffectInterpretation:
    magnitude = classify_effect(result.consistency_diff, 'pacing_percent')
    assessment = pacing_assessment(result.consistency_diff)

    if result.consistency_diff > 0:
        direction = "B more consistent"
    elif result.consistency_diff < 0:
        direction = "A more consistent"
    else:
        direction = "none"

    details = [f"Dataset B shows a {assessment} in frame pacing compared to Dataset A."]
    if result.bad_transitions_diff:
        details.append(f"Bad transitions changed by {result.bad_transitions_diff:+d} (B - A)")

    return EffectInterpretation(
        magnitude=magnitude,
        direction=direction,
        significant=None,
        summary=(f"The difference in frame pacing consistency ({result.consistency_diff:.2f}%) "
                 f"indicates a {magnitude.value} effect"),
        details=details + list(result.caveats)
    )


def interpret_wilcoxon(result: WilcoxonResult, alpha: float = DEFAULT_ALPHA) -> EffectInterpretation:
    magnitude = classify_effect(result.effect_size, 'rank_biserial')
    significant = is_significant(result.p_value, alpha)

    if result.w_plus == result.w_minus:
        direction = "none"
    else:
        direction = "A > B" if result.w_plus > result.w_minus else "B > A"

    return EffectInterpretation(
        magnitude=magnitude,
        direction=direction,
        significant=significant,
        summary=_describe("Rank-Biserial Correlation", result.effect_size, magnitude),
        details=[_significance_text(significant, alpha)] + list(result.caveats)
    )


def interpret_normality(result: NormalityResult) -> str:
    if math.isnan(result.p_value):
        return "undetermined"
    if result.p_value > 0.5:
        return "strongly normal"
    elif result.p_value > 0.05:
        return "normal"
    elif result.p_value > 0.01:
        return "moderately non-normal"
    return "strongly non-normal"


def interpret_skewness(skewness: float) -> str:
    if skewness > 1:
        return "highly right-skewed, many frame spikes"
    elif skewness > 0.5:
        return "moderately right-skewed, some frame spikes"
    elif skewness > 0.2:
        return "slightly right-skewed"
    elif skewness < -1:
        return "highly left-skewed, unusual for frame times"
    elif skewness < -0.5:
        return "moderately left-skewed, unusual for frame times"
    elif skewness < -0.2:
        return "slightly left-skewed"
    return "approximately symmetric"


def comparative_verdict(diag_a: DistributionCharacteristics, diag_b: DistributionCharacteristics) -> str:
    """Which frametime capture is better, weighing typical frametime against smoothness"""
    lower_frametime_a = diag_a.median < diag_b.median
    smallest_median = min(diag_a.median, diag_b.median)
    if smallest_median > 0:
        median_diff_percent = abs(diag_a.median - diag_b.median) / smallest_median * 100
    else:
        median_diff_percent = 0.0 if diag_a.median == diag_b.median else float("inf")

    risk_a = stutter_risk_score(diag_a)
    risk_b = stutter_risk_score(diag_b)
    risk_gap = abs(risk_a - risk_b)
    smoother_a = risk_a < risk_b

    if median_diff_percent < 2 and risk_gap <= 1:
        return ("The two datasets show very similar performance characteristics with no "
                "meaningful differences in typical frametime or smoothness.")

    if lower_frametime_a and smoother_a:
        verdict = "Dataset A appears superior with both lower frametimes and better smoothness."
    elif not lower_frametime_a and not smoother_a:
        verdict = "Dataset B appears superior with both lower frametimes and better smoothness."
    elif lower_frametime_a:
        verdict = "Dataset A has lower average frametimes, but Dataset B shows better smoothness."
    else:
        verdict = "Dataset B has lower average frametimes, but Dataset A shows better smoothness."

    if median_diff_percent >= 5:
        verdict += f" There is a substantial difference in typical frametime ({median_diff_percent:.1f}%)."
    elif median_diff_percent >= 2:
        verdict += f" There is a noticeable difference in typical frametime ({median_diff_percent:.1f}%)."

    if risk_gap >= 3:
        verdict += " There is a major difference in smoothness characteristics."
    elif risk_gap >= 2:
        verdict += " There is a meaningful difference in smoothness characteristics."

    return verdict


def interpret_bootstrap_comparison(comparisons: Sequence[IntervalComparison]) -> List[str]:
    """One line per metric: overlap, which dataset is reliably better, interval width"""
    if not comparisons:
        return ["No confidence interval data available."]

    lines = []
    for comparison in comparisons:
        interval_a, interval_b = comparison.interval_a, comparison.interval_b
        if comparison.undefined:
            lines.append(f"Not enough data to bootstrap {comparison.metric}.")
            continue

        if interval_a.overlaps(interval_b):
            line = (f"The {comparison.metric} measurements show overlapping confidence intervals, "
                    "suggesting the difference between datasets may not be reliable.")
        else:
            line = (f"The {comparison.metric} is reliably better in Dataset "
                    f"{comparison.better_dataset()} (non-overlapping CIs).")

        if max(comparison.relative_widths()) > 0.2:
            line += " The wide confidence intervals suggest high variability in the data."
        lines.append(line)

    return lines

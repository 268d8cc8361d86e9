"""Tests for effect-size bands and result interpretation."""

import pytest

from frame_pacing.frame_diagnostics import DistributionCharacteristics
from frame_pacing.pacing_analyzer import PacingResult
from hypothesis_testing.result_types import (
    FramePacingTestResult,
    KolmogorovSmirnovResult,
    NormalityResult,
    PairedTTestResult,
)
from statistical_analysis.confidence_interval_builder import ConfidenceInterval, IntervalComparison
from statistical_analysis.effect_size_analyzer import (
    EffectMagnitude,
    classify_effect,
    comparative_verdict,
    interpret_bootstrap_comparison,
    interpret_frame_pacing,
    interpret_kolmogorov_smirnov,
    interpret_normality,
    interpret_skewness,
    interpret_t_test,
    is_significant,
    ks_meaning,
    pacing_assessment,
)

NEGLIGIBLE = EffectMagnitude.NEGLIGIBLE
SMALL = EffectMagnitude.SMALL
MEDIUM = EffectMagnitude.MEDIUM
LARGE = EffectMagnitude.LARGE


@pytest.mark.parametrize("measure, value, expected", [
    ('cohen_d', 0.19, NEGLIGIBLE),
    ('cohen_d', 0.2, SMALL),
    ('cohen_d', 0.5, MEDIUM),
    ('cohen_d', 0.8, LARGE),
    ('cohen_d', -0.85, LARGE),
    ('mann_whitney_r', 0.1, SMALL),
    ('mann_whitney_r', -0.29, SMALL),
    ('mann_whitney_r', 0.5, LARGE),
    ('ks_d', 0.149, NEGLIGIBLE),
    ('ks_d', 0.3, MEDIUM),
    ('log_f', 0.99, SMALL),
    ('log_f', 1.5, LARGE),
    ('pacing_percent', -4.0, SMALL),
    ('pacing_percent', 10.0, LARGE),
    ('rank_biserial', 0.35, MEDIUM),
])
def test_band_boundaries(measure, value, expected):
    assert classify_effect(value, measure) is expected


@pytest.mark.parametrize("value", [float("nan"), float("inf"), None])
def test_non_finite_effect_is_undetermined(value):
    assert classify_effect(value, 'cohen_d') is EffectMagnitude.UNDETERMINED


def test_unknown_measure():
    with pytest.raises(ValueError, match="Unknown effect size measure"):
        classify_effect(0.5, 'eta_squared')


def test_significance_is_inclusive_at_alpha():
    assert is_significant(0.05) is True
    assert is_significant(0.0501) is False
    assert is_significant(None) is None
    assert is_significant(float("nan")) is None


def _t_result(effect_size, p_value=0.01, mean_diff=1.0, power=0.9):
    return PairedTTestResult(
        statistic=3.0, p_value=p_value, effect_size=effect_size, n=20, dof=19,
        mean_diff=mean_diff, sd_diff=1.0, standard_error=0.2,
        confidence_interval=(0.5, 1.5), statistical_power=power
    )


class TestTTestInterpretation:

    def test_medium_significant_effect(self):
        interpretation = interpret_t_test(_t_result(0.6))
        assert interpretation.magnitude is MEDIUM
        assert interpretation.significant is True
        assert interpretation.direction == "A > B"
        assert "0.60" in interpretation.summary

    def test_undefined_effect(self):
        interpretation = interpret_t_test(_t_result(float("nan"), p_value=float("nan"), mean_diff=0.0,
                                                    power=float("nan")))
        assert interpretation.magnitude is EffectMagnitude.UNDETERMINED
        assert interpretation.significant is None
        assert "cannot be determined" in interpretation.summary

    def test_low_power_is_reported(self):
        interpretation = interpret_t_test(_t_result(0.3, p_value=0.2, power=0.4))
        assert any("power is low" in detail for detail in interpretation.details)


class TestFramePacingInterpretation:

    @pytest.mark.parametrize("diff, expected", [
        (6.0, "significant improvement"),
        (5.0, "moderate improvement"),
        (1.0, "slight improvement"),
        (0.0, "negligible change"),
        (-1.9, "negligible change"),
        (-2.0, "degradation"),
    ])
    def test_assessment_wording(self, diff, expected):
        assert pacing_assessment(diff) == expected

    def test_has_no_significance(self):
        pacing = PacingResult.neutral(frame_count=10)
        result = FramePacingTestResult(
            statistic=-7.0, p_value=None, effect_size=-7.0, pacing_a=pacing, pacing_b=pacing,
            consistency_diff=-7.0, median_transition_diff=0.0, bad_transitions_diff=3
        )
        interpretation = interpret_frame_pacing(result)
        assert interpretation.significant is None
        assert interpretation.magnitude is MEDIUM
        assert interpretation.direction == "A more consistent"
        assert "degradation" in interpretation.details[0]


class TestKolmogorovSmirnovInterpretation:

    def test_meaning_when_not_significant(self):
        assert ks_meaning(0.4, 0.2, 0.0).startswith("There is no strong evidence")

    def test_meaning_names_spikier_dataset(self):
        meaning = ks_meaning(0.6, 0.001, -0.5)
        assert "substantial difference" in meaning
        assert "Dataset B exhibits more frame time spikes" in meaning

    def test_skew_insight_in_details(self):
        result = KolmogorovSmirnovResult(
            statistic=0.35, p_value=0.001, effect_size=0.35, z=2.5, max_diff_value=17.0,
            n1=100, n2=100, original_n1=100, original_n2=100, sampling_applied=False,
            median_a=17.0, median_b=16.0, iqr_a=1.0, iqr_b=1.0, skew_a=1.2, skew_b=0.1
        )
        interpretation = interpret_kolmogorov_smirnov(result)
        assert interpretation.magnitude is MEDIUM
        assert interpretation.direction == "A higher"
        assert any("Dataset A has more high frame time spikes" in d for d in interpretation.details)


@pytest.mark.parametrize("p_value, expected", [
    (0.6, "strongly normal"),
    (0.3, "normal"),
    (0.03, "moderately non-normal"),
    (0.001, "strongly non-normal"),
])
def test_normality_bands(p_value, expected):
    assert interpret_normality(NormalityResult(statistic=0.95, p_value=p_value, is_normal=p_value > 0.05, n=50)) == expected


@pytest.mark.parametrize("skewness, expected", [
    (1.5, "highly right-skewed, many frame spikes"),
    (0.3, "slightly right-skewed"),
    (0.0, "approximately symmetric"),
    (-0.7, "moderately left-skewed, unusual for frame times"),
])
def test_skewness_description(skewness, expected):
    assert interpret_skewness(skewness) == expected


def _diagnostics(median, skewness=0.0, outliers=0.0, variability=0.0):
    return DistributionCharacteristics(
        mean=median, median=median, variance=1.0, skewness=skewness, outlier_percentage=outliers,
        is_multimodal=False, diff_median=0.5, diff_variance=0.1, transition_variability=variability
    )


class TestComparativeVerdict:

    def test_similar(self):
        verdict = comparative_verdict(_diagnostics(16.7), _diagnostics(16.8))
        assert verdict.startswith("The two datasets show very similar performance")

    def test_a_better_on_both_counts(self):
        verdict = comparative_verdict(
            _diagnostics(15.0),
            _diagnostics(17.0, skewness=1.0, outliers=2.0, variability=0.5)
        )
        assert verdict.startswith("Dataset A appears superior")
        assert "substantial difference in typical frametime" in verdict
        assert "major difference in smoothness" in verdict

    def test_trade_off(self):
        verdict = comparative_verdict(_diagnostics(17.0), _diagnostics(16.0, skewness=1.0, outliers=2.0))
        assert verdict.startswith("Dataset B has lower average frametimes, but Dataset A shows better smoothness.")


class TestBootstrapInterpretation:

    def test_empty(self):
        assert interpret_bootstrap_comparison([]) == ["No confidence interval data available."]

    def test_reliable_and_overlapping(self):
        lines = interpret_bootstrap_comparison([
            IntervalComparison("Median", ConfidenceInterval(9.9, 10.1, 10.0), ConfidenceInterval(11.9, 12.1, 12.0)),
            IntervalComparison("1% Low", ConfidenceInterval(20.0, 30.0, 25.0), ConfidenceInterval(22.0, 26.0, 24.0)),
        ])
        assert lines[0] == "The Median is reliably better in Dataset A (non-overlapping CIs)."
        assert "overlapping confidence intervals" in lines[1]
        assert lines[1].endswith("The wide confidence intervals suggest high variability in the data.")

    def test_undefined_interval(self):
        lines = interpret_bootstrap_comparison([
            IntervalComparison("Median", ConfidenceInterval.undefined(), ConfidenceInterval.undefined())
        ])
        assert lines == ["Not enough data to bootstrap Median."]

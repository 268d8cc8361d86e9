"""Tests for frame pacing consistency and transition analysis."""

import math

import pytest

from frame_pacing.pacing_analyzer import FramePacingAnalyzer, PacingResult


@pytest.fixture
def analyzer():
    return FramePacingAnalyzer()


class TestAnalyze:

    def test_constant_frametimes_are_perfectly_paced(self, analyzer):
        result = analyzer.analyze([16.67] * 100)
        assert result.consistency == 100.0
        assert result.bad_transitions == ()
        assert result.frame_count == 100

    def test_too_few_frames_is_neutral(self, analyzer):
        result = analyzer.analyze([16.0, 17.0])
        assert result.consistency == 0.0
        assert result.bad_transition_count == 0
        assert result.frame_count == 2

    def test_spike_is_flagged(self, analyzer):
        frames = [10.0] * 100
        frames[50] = 100.0
        result = analyzer.analyze(frames)
        assert result.bad_transition_count >= 1
        assert [t.index for t in result.bad_transitions] == [50, 51]
        assert all(math.isinf(t.ratio) for t in result.bad_transitions)
        assert result.bad_transitions[0].value == pytest.approx(90.0)

    def test_flagged_transition_ratio_relative_to_median(self, analyzer):
        frames = [10.0, 11.0] * 20 + [30.0]
        result = analyzer.analyze(frames)
        assert result.median_transition == pytest.approx(1.0)
        assert result.bad_transitions[-1].ratio == pytest.approx(19.0)

    def test_consistency_score_formula(self, analyzer):
        # median 10, median relative deviation 0.1 -> 100 * (1 - 3 * 0.1)
        frames = [9.0, 10.0, 11.0, 9.0, 10.0, 11.0, 10.0]
        result = analyzer.analyze(frames)
        assert result.median_frametime == 10.0
        assert result.consistency == pytest.approx(100.0 * (1 - 3 * (1.0 / 10.0)))

    def test_consistency_clamped_at_zero(self, analyzer):
        assert analyzer.analyze([1.0, 10.0, 1.0, 10.0, 1.0, 10.0]).consistency == 0.0

    def test_non_positive_median_scores_zero(self, analyzer):
        assert analyzer.analyze([0.0, 0.0, 0.0]).consistency == 0.0

    def test_sensitivity_is_configurable(self):
        frames = [9.0, 10.0, 11.0, 9.0, 10.0, 11.0, 10.0]
        assert FramePacingAnalyzer(sensitivity=1.0).analyze(frames).consistency == pytest.approx(90.0)

    def test_input_not_mutated(self, analyzer):
        frames = [10.0, 12.0, 10.0, 40.0]
        analyzer.analyze(frames)
        assert frames == [10.0, 12.0, 10.0, 40.0]


class TestBadTransitionRate:

    def test_rate_and_wilson_interval(self, analyzer):
        frames = [10.0] * 100
        frames[50] = 100.0
        result = analyzer.analyze(frames)
        assert result.bad_transition_rate() == pytest.approx(2 / 99)
        lower, upper = result.bad_transition_rate_interval()
        assert 0.0 < lower < 2 / 99 < upper < 1.0

    def test_neutral_result_has_empty_interval(self):
        assert PacingResult.neutral().bad_transition_rate_interval() == (0.0, 0.0)
        assert PacingResult.neutral().bad_transition_rate() == 0.0


class TestStuttering:

    def test_counts_frames_over_one_and_a_half_medians(self, analyzer):
        result = analyzer.analyze_stuttering([10.0] * 8 + [20.0, 25.0])
        assert result.count == 2
        assert result.percentage == pytest.approx(20.0)
        # threshold 15: excess (5 + 10) / 2 over a median of 10
        assert result.severity == pytest.approx(0.75)

    def test_empty(self, analyzer):
        result = analyzer.analyze_stuttering([])
        assert result.count == 0
        assert result.severity == 0.0


class TestTransitions:

    def test_repeated_and_out_of_sequence(self, analyzer):
        summary = analyzer.calculate_transitions([10.0, 10.0, 10.005, 50.0, 10.0])
        assert summary.diffs == pytest.approx([0.0, 0.005, 39.995, 40.0])
        assert summary.repeated_frames == 2
        assert summary.out_of_sequence == 2

    def test_single_frame(self, analyzer):
        summary = analyzer.calculate_transitions([10.0])
        assert summary.diffs == []
        assert summary.repeated_frames == 0

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from capture_data.capture_dataset import Dataset
from capture_data.metric_accessor import FRAME_TIME, available_metrics, metric_display_name
from frame_pacing.frame_diagnostics import (
    DistributionCharacteristics,
    analyze_distribution_characteristics,
    stutter_risk_label,
)
from frame_pacing.pacing_analyzer import FramePacingAnalyzer, StutterResult, TransitionSummary
from hypothesis_testing.hypothesis_test_suite import HypothesisTestSuite
from hypothesis_testing.normality_tests import run_shapiro_wilk
from hypothesis_testing.result_types import NormalityResult
from statistical_analysis.confidence_interval_builder import BootstrapEstimator, IntervalComparison
from statistical_analysis.effect_size_analyzer import (
    EffectInterpretation,
    comparative_verdict,
    interpret_bootstrap_comparison,
    interpret_frame_pacing,
    interpret_kolmogorov_smirnov,
    interpret_mann_whitney,
    interpret_normality,
    interpret_skewness,
    interpret_t_test,
    interpret_variance_test,
    interpret_wilcoxon,
)
from statistical_engine import StatisticalEngine

logger = logging.getLogger(__name__)


class ComparisonType(Enum):
    PAIRED_T_TEST = "ttest"
    MANN_WHITNEY = "mannwhitney"
    KOLMOGOROV_SMIRNOV = "kstest"
    VARIANCE = "variance"
    FRAME_PACING = "framepacing"
    WILCOXON = "wilcoxon"

    @property
    def is_paired(self) -> bool:
        return self in (ComparisonType.PAIRED_T_TEST, ComparisonType.WILCOXON)


@dataclass
class AnalysisConfig:
    significance_level: float = 0.05
    pacing_sensitivity: float = 3.0
    bad_transition_ratio: float = 2.5
    ks_sampling_threshold: int = 10000
    ks_sample_size: int = 5000
    min_reliable_size: int = 5
    bootstrap_iterations: int = 1000
    bootstrap_confidence: float = 0.95
    bootstrap_seed: Optional[int] = None
    correction_method: str = 'bonferroni'


@dataclass
class ComparisonResult:
    test_type: ComparisonType
    metric: str
    test_result: Optional[Any]
    interpretation: Optional[EffectInterpretation]
    truncated: bool = False
    adjusted_p_value: Optional[float] = None
    notes: List[str] = field(default_factory=list)

    @property
    def p_value(self) -> Optional[float]:
        if self.test_result is None:
            return None
        return self.test_result.p_value


@dataclass
class DiagnosticsReport:
    characteristics_a: DistributionCharacteristics
    characteristics_b: DistributionCharacteristics
    stutter_risk_a: str
    stutter_risk_b: str
    skewness_a: str
    skewness_b: str
    stutter_a: StutterResult
    stutter_b: StutterResult
    transitions_a: TransitionSummary
    transitions_b: TransitionSummary
    verdict: str


@dataclass
class BootstrapReport:
    comparisons: List[IntervalComparison]
    interpretation: List[str]


class FrameAnalysisFramework:
    """Runs frame-timing comparisons between captures and interprets them"""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()
        self.statistical_engine = StatisticalEngine(default_alpha=self.config.significance_level)
        self.pacing_analyzer = FramePacingAnalyzer(
            sensitivity=self.config.pacing_sensitivity,
            bad_transition_ratio=self.config.bad_transition_ratio
        )
        self.test_suite = HypothesisTestSuite(
            significance_level=self.config.significance_level,
            min_reliable_size=self.config.min_reliable_size,
            ks_sampling_threshold=self.config.ks_sampling_threshold,
            ks_sample_size=self.config.ks_sample_size,
            pacing_analyzer=self.pacing_analyzer,
            engine=self.statistical_engine
        )
        self.bootstrap = BootstrapEstimator(
            iterations=self.config.bootstrap_iterations,
            confidence_level=self.config.bootstrap_confidence,
            seed=self.config.bootstrap_seed
        )

    def run_comparison(
        self,
        dataset_a: Dataset,
        dataset_b: Dataset,
        test_type: Union[ComparisonType, str],
        metric: str = FRAME_TIME
    ) -> ComparisonResult:
        """Compare one metric between two captures"""
        test_type = self._resolve_test_type(test_type)
        sample_a = dataset_a.values(metric)
        sample_b = dataset_b.values(metric)

        if not sample_a or not sample_b:
            return ComparisonResult(
                test_type=test_type, metric=metric, test_result=None, interpretation=None,
                notes=["One or both datasets had no valid data for that metric."]
            )

        return self._run(sample_a, sample_b, test_type, metric)

    def run_against_value(
        self,
        dataset: Dataset,
        value: float,
        test_type: Union[ComparisonType, str],
        metric: str = FRAME_TIME
    ) -> ComparisonResult:
        """Compare one capture against a fixed target value, e.g. 16.67ms"""
        test_type = self._resolve_test_type(test_type)
        sample = dataset.values(metric)

        if not sample:
            return ComparisonResult(
                test_type=test_type, metric=metric, test_result=None, interpretation=None,
                notes=["Dataset had no valid data for that metric."]
            )

        return self._run(sample, [float(value)] * len(sample), test_type, metric)

    def run_test_battery(
        self,
        dataset_a: Dataset,
        dataset_b: Dataset,
        metric: str = FRAME_TIME,
        test_types: Optional[Sequence[ComparisonType]] = None
    ) -> List[ComparisonResult]:
        """Run several tests on the same pair and adjust their p-values for multiplicity"""
        test_types = list(test_types or ComparisonType)
        results = [self.run_comparison(dataset_a, dataset_b, test_type, metric) for test_type in test_types]

        tested = [r for r in results if r.p_value is not None and math.isfinite(r.p_value)]
        if tested:
            adjusted = self.statistical_engine.correct_multiple_comparisons(
                [r.p_value for r in tested], method=self.config.correction_method
            )
            for result, p_value in zip(tested, adjusted):
                result.adjusted_p_value = p_value

        logger.debug("Test battery on %s: %d of %d tests produced p-values",
                     metric, len(tested), len(results))
        return results

    def summarize_statistics(self, dataset: Dataset, metrics: Optional[Sequence[str]] = None) -> pd.DataFrame:
        """Descriptive statistics table, one row per metric, with a t-interval for the arithmetic mean"""
        metrics = list(metrics) if metrics is not None else available_metrics([dataset])

        records = []
        for metric in metrics:
            values = dataset.values(metric)
            stats_result = self.statistical_engine.compute_statistics(values, metric)
            record = {'metric': metric, 'name': metric_display_name(metric)}
            record.update(stats_result.to_dict())
            record['mean_ci_lower'], record['mean_ci_upper'] = (
                self.statistical_engine.calculate_confidence_interval(
                    values, confidence_level=1 - self.config.significance_level, method='parametric'
                )
            )
            records.append(record)

        columns = ['metric', 'name', 'max', 'min', 'avg', 'stdev',
                   'p1', 'p01', 'p001', 'low1', 'low01', 'low001',
                   'mean_ci_lower', 'mean_ci_upper']
        return pd.DataFrame(records, columns=columns).set_index('metric')

    def run_normality(self, dataset: Dataset, metric: str = FRAME_TIME) -> Optional[NormalityResult]:
        return run_shapiro_wilk(dataset.values(metric), alpha=self.config.significance_level)

    def describe_normality(self, dataset: Dataset, metric: str = FRAME_TIME) -> Optional[str]:
        result = self.run_normality(dataset, metric)
        if result is None:
            return None
        return interpret_normality(result)

    def run_diagnostics(
        self,
        dataset_a: Dataset,
        dataset_b: Dataset,
        metric: str = FRAME_TIME
    ) -> Optional[DiagnosticsReport]:
        """Distribution shape and stutter risk of both captures plus a verdict"""
        values_a = dataset_a.values(metric)
        values_b = dataset_b.values(metric)
        characteristics_a = analyze_distribution_characteristics(values_a, self.statistical_engine)
        characteristics_b = analyze_distribution_characteristics(values_b, self.statistical_engine)
        if characteristics_a is None or characteristics_b is None:
            logger.debug("Diagnostics skipped for %s: not enough values", metric)
            return None

        return DiagnosticsReport(
            characteristics_a=characteristics_a,
            characteristics_b=characteristics_b,
            stutter_risk_a=stutter_risk_label(characteristics_a),
            stutter_risk_b=stutter_risk_label(characteristics_b),
            skewness_a=interpret_skewness(characteristics_a.skewness),
            skewness_b=interpret_skewness(characteristics_b.skewness),
            stutter_a=self.pacing_analyzer.analyze_stuttering(values_a),
            stutter_b=self.pacing_analyzer.analyze_stuttering(values_b),
            transitions_a=self.pacing_analyzer.calculate_transitions(values_a),
            transitions_b=self.pacing_analyzer.calculate_transitions(values_b),
            verdict=comparative_verdict(characteristics_a, characteristics_b)
        )

    def bootstrap_comparison(
        self,
        dataset_a: Dataset,
        dataset_b: Dataset,
        metric: str = FRAME_TIME
    ) -> BootstrapReport:
        """Bootstrap intervals for median, 1% low and pacing consistency of both captures"""
        sample_a = np.asarray(dataset_a.values(metric), dtype=np.float64)
        sample_b = np.asarray(dataset_b.values(metric), dtype=np.float64)
        fps_like = self.statistical_engine.is_fps_metric(metric)
        # One generator for the whole report so a seed gives one reproducible run
        rng = np.random.default_rng(self.config.bootstrap_seed)

        statistics: List[tuple] = [
            ('Median', np.median, fps_like),
            ('1% Low', self._one_percent_low(fps_like), fps_like),
            ('Frame Pacing Consistency',
             lambda data: self.pacing_analyzer.analyze(data).consistency, True),
        ]

        comparisons = []
        for name, stat_fn, higher_is_better in statistics:
            comparisons.append(IntervalComparison(
                metric=name,
                interval_a=self.bootstrap.estimate(sample_a, stat_fn, rng=rng),
                interval_b=self.bootstrap.estimate(sample_b, stat_fn, rng=rng),
                higher_is_better=higher_is_better
            ))

        return BootstrapReport(
            comparisons=comparisons,
            interpretation=interpret_bootstrap_comparison(comparisons)
        )

    def _one_percent_low(self, fps_like: bool) -> Callable[[np.ndarray], float]:
        engine = self.statistical_engine

        def one_percent_low(data: np.ndarray) -> float:
            return engine.low_average(np.sort(data), 0.01, fps_like)

        return one_percent_low

    def _run(
        self,
        sample_a: List[float],
        sample_b: List[float],
        test_type: ComparisonType,
        metric: str
    ) -> ComparisonResult:
        notes = []
        truncated = False

        if test_type.is_paired and len(sample_a) != len(sample_b):
            n = min(len(sample_a), len(sample_b))
            notes.append(f"Arrays differ in length. Truncating to length {n} for paired test.")
            logger.debug("Truncating %s samples %d/%d to %d for %s",
                         metric, len(sample_a), len(sample_b), n, test_type.value)
            sample_a, sample_b = sample_a[:n], sample_b[:n]
            truncated = True

        alpha = self.config.significance_level
        suite = self.test_suite
        interpretation = None

        if test_type is ComparisonType.PAIRED_T_TEST:
            test_result = suite.run_paired_t_test(sample_a, sample_b)
            interpretation = interpret_t_test(test_result, alpha)
        elif test_type is ComparisonType.MANN_WHITNEY:
            test_result = suite.run_mann_whitney(sample_a, sample_b)
            if test_result is not None:
                interpretation = interpret_mann_whitney(test_result, alpha)
        elif test_type is ComparisonType.KOLMOGOROV_SMIRNOV:
            test_result = suite.run_kolmogorov_smirnov(sample_a, sample_b)
            if test_result is not None:
                interpretation = interpret_kolmogorov_smirnov(test_result, alpha)
        elif test_type is ComparisonType.VARIANCE:
            test_result = suite.run_variance_test(sample_a, sample_b)
            if test_result is not None:
                interpretation = interpret_variance_test(test_result, alpha)
            else:
                notes.append("Variance test requires at least 2 values per dataset.")
        elif test_type is ComparisonType.FRAME_PACING:
            test_result = suite.run_frame_pacing_test(sample_a, sample_b)
            interpretation = interpret_frame_pacing(test_result)
        else:
            test_result = suite.run_wilcoxon_signed_rank(sample_a, sample_b)
            if test_result is not None:
                interpretation = interpret_wilcoxon(test_result, alpha)
            else:
                notes.append("All differences are zero; Wilcoxon signed-rank is undefined.")

        return ComparisonResult(
            test_type=test_type,
            metric=metric,
            test_result=test_result,
            interpretation=interpretation,
            truncated=truncated,
            notes=notes
        )

    @staticmethod
    def _resolve_test_type(test_type: Union[ComparisonType, str]) -> ComparisonType:
        if isinstance(test_type, ComparisonType):
            return test_type
        try:
            return ComparisonType(test_type)
        except ValueError:
            raise ValueError(f"Unknown test type: {test_type}") from None

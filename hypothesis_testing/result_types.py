from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Tuple

from frame_pacing.pacing_analyzer import PacingResult


@dataclass
class PairedTTestResult:
    statistic: float  # t
    p_value: float
    effect_size: float  # Cohen's d
    n: int
    dof: int
    mean_diff: float
    sd_diff: float
    standard_error: float
    confidence_interval: Tuple[float, float]
    statistical_power: float
    caveats: List[str] = field(default_factory=list)

    @property
    def cohen_d(self) -> float:
        return self.effect_size

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MannWhitneyResult:
    statistic: float  # U = min(U1, U2)
    p_value: float
    effect_size: float  # r = z / sqrt(N)
    z: float
    u1: float
    u2: float
    n1: int
    n2: int
    median_a: float
    median_b: float
    iqr_a: float
    iqr_b: float
    higher_group: str
    common_language_effect: float  # percent
    tie_correction: float
    caveats: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class KolmogorovSmirnovResult:
    statistic: float  # D
    p_value: float
    effect_size: float
    z: float
    max_diff_value: float
    n1: int
    n2: int
    original_n1: int
    original_n2: int
    sampling_applied: bool
    median_a: float
    median_b: float
    iqr_a: float
    iqr_b: float
    skew_a: float
    skew_b: float
    caveats: List[str] = field(default_factory=list)

    @property
    def skew_difference(self) -> float:
        return self.skew_a - self.skew_b

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class VarianceTestResult:
    statistic: float  # F, larger variance over smaller
    p_value: float
    effect_size: float  # ln(F)
    var_a: float
    var_b: float
    cv_a: float
    cv_b: float
    df_numerator: int
    df_denominator: int
    larger_dataset: str
    caveats: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FramePacingTestResult:
    statistic: float  # consistency difference, B - A
    p_value: Optional[float]
    effect_size: float
    pacing_a: PacingResult
    pacing_b: PacingResult
    consistency_diff: float
    median_transition_diff: float
    bad_transitions_diff: int
    caveats: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class WilcoxonResult:
    statistic: float  # T = min(W+, W-)
    p_value: float
    effect_size: float  # rank-biserial correlation
    z: float
    w_plus: float
    w_minus: float
    n_used: int
    caveats: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class NormalityResult:
    statistic: float  # W
    p_value: float
    is_normal: bool
    n: int
    caveats: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

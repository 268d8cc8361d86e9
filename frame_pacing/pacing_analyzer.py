import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np
from statsmodels.stats.proportion import proportion_confint

logger = logging.getLogger(__name__)

DEFAULT_SENSITIVITY = 3.0
DEFAULT_BAD_TRANSITION_RATIO = 2.5
MIN_PACING_FRAMES = 3

STUTTER_THRESHOLD_RATIO = 1.5
REPEATED_FRAME_TOLERANCE_MS = 0.01
OUT_OF_SEQUENCE_RATIO = 3.0


@dataclass(frozen=True)
class BadTransition:
    index: int  # later frame of the transition
    value: float
    ratio: float


@dataclass(frozen=True)
class PacingResult:
    consistency: float
    median_frametime: float
    mad_frametime: float
    median_transition: float
    mad_transition: float
    bad_transitions: Tuple[BadTransition, ...] = ()
    frame_count: int = 0

    @property
    def bad_transition_count(self) -> int:
        return len(self.bad_transitions)

    def bad_transition_rate(self) -> float:
        transitions = self.frame_count - 1
        if transitions <= 0:
            return 0.0
        return self.bad_transition_count / transitions

    def bad_transition_rate_interval(self, alpha: float = 0.05) -> Tuple[float, float]:
        """Wilson interval for the share of transitions flagged as bad"""
        transitions = self.frame_count - 1
        if transitions <= 0:
            return (0.0, 0.0)
        lower, upper = proportion_confint(
            self.bad_transition_count, transitions, alpha=alpha, method='wilson'
        )
        return (float(lower), float(upper))

    @classmethod
    def neutral(cls, frame_count: int = 0) -> "PacingResult":
        return cls(consistency=0.0, median_frametime=0.0, mad_frametime=0.0,
                   median_transition=0.0, mad_transition=0.0, frame_count=frame_count)


@dataclass(frozen=True)
class StutterResult:
    count: int
    percentage: float
    severity: float


@dataclass
class TransitionSummary:
    diffs: List[float] = field(default_factory=list)
    repeated_frames: int = 0
    out_of_sequence: int = 0


class FramePacingAnalyzer:
    """
    Robust frame-pacing consistency.

    Medians and MADs keep a handful of large stutters from dominating the
    score, and relative deviation makes the score comparable across target
    framerates. ``sensitivity`` is a tuned constant, not a derived one.
    """

    def __init__(
        self,
        sensitivity: float = DEFAULT_SENSITIVITY,
        bad_transition_ratio: float = DEFAULT_BAD_TRANSITION_RATIO
    ):
        self.sensitivity = sensitivity
        self.bad_transition_ratio = bad_transition_ratio

    def analyze(self, frametimes: Sequence[float]) -> PacingResult:
        """Consistency score and anomalous transitions; order of frames matters"""
        data = np.asarray(frametimes, dtype=np.float64)
        if data.size < MIN_PACING_FRAMES:
            logger.debug("Frame pacing needs %d frames, got %d", MIN_PACING_FRAMES, data.size)
            return PacingResult.neutral(frame_count=int(data.size))

        median_ft = float(np.median(data))
        mad_ft = float(np.median(np.abs(data - median_ft)))

        if median_ft > 0:
            median_rel_dev = float(np.median(np.abs(data - median_ft) / median_ft))
            penalty = min(1.0, self.sensitivity * median_rel_dev)
            consistency = float(np.clip(100.0 * (1.0 - penalty), 0.0, 100.0))
        else:
            consistency = 0.0

        diffs = np.abs(np.diff(data))
        median_diff = float(np.median(diffs))
        mad_diff = float(np.median(np.abs(diffs - median_diff)))

        threshold = self.bad_transition_ratio * median_diff
        bad_transitions = []
        for i in np.flatnonzero(diffs > threshold):
            diff = float(diffs[i])
            ratio = diff / median_diff if median_diff > 0 else float("inf")
            bad_transitions.append(BadTransition(index=int(i) + 1, value=diff, ratio=ratio))

        return PacingResult(
            consistency=consistency,
            median_frametime=median_ft,
            mad_frametime=mad_ft,
            median_transition=median_diff,
            mad_transition=mad_diff,
            bad_transitions=tuple(bad_transitions),
            frame_count=int(data.size)
        )

    def analyze_stuttering(self, frametimes: Sequence[float]) -> StutterResult:
        """Frames longer than 1.5x the median and their mean excess over the threshold"""
        data = np.asarray(frametimes, dtype=np.float64)
        if data.size == 0:
            return StutterResult(count=0, percentage=0.0, severity=0.0)

        median = float(np.median(data))
        threshold = median * STUTTER_THRESHOLD_RATIO
        stutters = data[data > threshold]

        count = int(stutters.size)
        if count == 0 or median <= 0:
            severity = 0.0
        else:
            severity = float(np.mean((stutters - threshold) / median))

        return StutterResult(
            count=count,
            percentage=count / data.size * 100.0,
            severity=severity
        )

    def calculate_transitions(self, frametimes: Sequence[float]) -> TransitionSummary:
        """Consecutive transitions with repeated-frame and out-of-sequence counts"""
        data = np.asarray(frametimes, dtype=np.float64)
        if data.size < 2:
            return TransitionSummary()

        diffs = np.abs(np.diff(data))
        median = float(np.median(data))

        return TransitionSummary(
            diffs=diffs.tolist(),
            repeated_frames=int(np.sum(diffs < REPEATED_FRAME_TOLERANCE_MS)),
            out_of_sequence=int(np.sum(diffs > OUT_OF_SEQUENCE_RATIO * median))
        )

import logging
import math
import numbers
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)

Row = Mapping[str, Union[float, int, str, None]]

FRAME_TIME = "FrameTime"
FPS = "FPS"

# (canonical alias, scale to milliseconds), first match wins
FRAME_TIME_ALIASES: List[Tuple[str, float]] = [
    ("frametime", 1.0),
    ("frametime(ms)", 1.0),
    ("frametime(us)", 0.001),
    ("msbetweenpresents", 1.0),
    ("framedeltatime(ms)", 1.0),
]

METRIC_BLACKLIST = frozenset({
    "Application", "GPU", "CPU", "Resolution", "Runtime", "ProcessID",
    "SwapChainAddress", "PresentFlags", "FlipToken", "AllowsTearing",
    "SyncInterval", "Dropped", "TimeInSeconds", "CPUStartTime", "PresentMode",
})

METRIC_DISPLAY_NAMES: Dict[str, str] = {
    "FrameTime": "Frame Time (ms)",
    "FPS": "FPS",
    "MsBetweenPresents": "Time Between Presents (ms)",
    "MsBetweenDisplayChange": "Time Between Display Changes (ms)",
    "MsInPresentAPI": "Time in Present API (ms)",
    "MsRenderPresentLatency": "Render-Present Latency (ms)",
    "MsUntilDisplayed": "Time Until Displayed (ms)",
    "MsPCLatency": "PC Latency (ms)",
    "CPUBusy": "CPU Busy Time (ms)",
    "CPUWait": "CPU Wait Time (ms)",
    "CPUUtil(%)": "CPU Utilization (%)",
    "GPUBusy": "GPU Busy Time (ms)",
    "GPUWait": "GPU Wait Time (ms)",
    "GPU0Util(%)": "GPU Utilization (%)",
}


def canonical_key(key: str) -> str:
    """Lower-case a column name and strip all whitespace"""
    return re.sub(r"\s+", "", str(key).lower())


def is_numeric(value: Any) -> bool:
    """True for real numbers that carry data, numpy scalars included (bools and NaN excluded)"""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return not math.isnan(value)


def _coerce_number(value: Any) -> Optional[float]:
    if is_numeric(value):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _find_key_insensitive(row: Row, key: str) -> Optional[str]:
    target = key.lower()
    for candidate in row:
        if str(candidate).lower() == target:
            return candidate
    return None


class MetricAccessor:
    """Resolves named metrics on captured frame rows"""

    def resolve(self, row: Row, metric_key: str) -> Optional[float]:
        """Numeric value of ``metric_key`` for one row, or None when absent"""
        if metric_key == FRAME_TIME:
            value = row.get(FRAME_TIME)
            if is_numeric(value):
                return float(value)
            mbp_key = _find_key_insensitive(row, "msbetweenpresents")
            if mbp_key is not None and is_numeric(row[mbp_key]):
                return float(row[mbp_key])
            return None

        if metric_key == FPS:
            frame_time = row.get(FRAME_TIME)
            if is_numeric(frame_time) and frame_time > 0:
                return 1000.0 / float(frame_time)
            mbp_key = _find_key_insensitive(row, "msbetweenpresents")
            if mbp_key is not None and is_numeric(row[mbp_key]) and row[mbp_key] > 0:
                return 1000.0 / float(row[mbp_key])
            return None

        value = row.get(metric_key)
        if is_numeric(value):
            return float(value)

        matching_key = _find_key_insensitive(row, metric_key)
        if matching_key is not None and is_numeric(row[matching_key]):
            return float(row[matching_key])
        return None

    def resolve_series(self, rows: Iterable[Row], metric_key: str) -> List[float]:
        """Resolved values in row order with missing entries dropped"""
        values = []
        for row in rows:
            value = self.resolve(row, metric_key)
            if value is not None:
                values.append(value)
        return values


def normalise_row(row: Row) -> Dict[str, Any]:
    """
    Return a copy of ``row`` with canonical FrameTime and FPS columns.

    FrameTime comes from the first recognised alias (microsecond columns are
    scaled to ms). FPS comes from a literal fps column or 1000/FrameTime, and
    FrameTime is back-filled from FPS when no alias was present.
    """
    normalised = dict(row)
    key_map = {canonical_key(k): k for k in normalised}

    if normalised.get(FRAME_TIME) is None:
        for alias, scale in FRAME_TIME_ALIASES:
            source = key_map.get(alias)
            if source is None:
                continue
            number = _coerce_number(normalised[source])
            if number is not None:
                normalised[FRAME_TIME] = number * scale
                break

    if normalised.get(FPS) is None:
        fps_key = key_map.get("fps")
        fps_value = _coerce_number(normalised[fps_key]) if fps_key is not None else None
        frame_time = normalised.get(FRAME_TIME)
        if fps_value is not None:
            normalised[FPS] = fps_value
        elif is_numeric(frame_time) and frame_time > 0:
            normalised[FPS] = 1000.0 / float(frame_time)

    fps = normalised.get(FPS)
    if normalised.get(FRAME_TIME) is None and is_numeric(fps) and fps > 0:
        normalised[FRAME_TIME] = 1000.0 / float(fps)

    return normalised


def available_metrics(datasets: Iterable[Any], advanced: bool = False) -> List[str]:
    """Metrics offered for analysis; basic mode keeps FPS and FrameTime only"""
    metrics = {FPS, FRAME_TIME}
    if not advanced:
        return sorted(metrics)

    for dataset in datasets:
        if not dataset.rows:
            continue
        first_row = dataset.rows[0]
        for key, value in first_row.items():
            if is_numeric(value) and key not in METRIC_BLACKLIST:
                metrics.add(key)

    return sorted(metrics)


def metric_display_name(metric: str) -> str:
    return METRIC_DISPLAY_NAMES.get(metric, metric)

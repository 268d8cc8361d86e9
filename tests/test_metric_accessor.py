"""Tests for metric resolution and row normalisation."""

import math

import numpy as np
import pytest

from capture_data.capture_dataset import Dataset
from capture_data.metric_accessor import (
    FPS,
    FRAME_TIME,
    MetricAccessor,
    available_metrics,
    canonical_key,
    is_numeric,
    metric_display_name,
    normalise_row,
)


@pytest.fixture
def accessor():
    return MetricAccessor()


def test_frametime_read_directly(accessor):
    assert accessor.resolve({"FrameTime": 16.5}, FRAME_TIME) == 16.5


def test_frametime_falls_back_to_ms_between_presents_any_case(accessor):
    assert accessor.resolve({"msBetweenPRESENTS": 20.0}, FRAME_TIME) == 20.0


def test_fps_derived_from_frametime(accessor):
    assert accessor.resolve({"FrameTime": 16.667}, FPS) == pytest.approx(60.0, rel=1e-3)


def test_fps_derived_from_ms_between_presents(accessor):
    assert accessor.resolve({"MsBetweenPresents": 25.0}, FPS) == pytest.approx(40.0)


def test_fps_undefined_for_non_positive_frametime(accessor):
    assert accessor.resolve({"FrameTime": 0.0}, FPS) is None


def test_other_metric_exact_then_case_insensitive(accessor):
    assert accessor.resolve({"GPUBusy": 4.0}, "GPUBusy") == 4.0
    assert accessor.resolve({"gpubusy": 4.5}, "GPUBusy") == 4.5


@pytest.mark.parametrize("value", [None, "12.0", True, float("nan")])
def test_non_numeric_values_are_absent(accessor, value):
    assert accessor.resolve({"GPUBusy": value}, "GPUBusy") is None


def test_missing_metric_is_absent(accessor):
    assert accessor.resolve({}, FRAME_TIME) is None
    assert accessor.resolve({}, FPS) is None
    assert accessor.resolve({}, "CPUBusy") is None


def test_resolve_series_drops_missing_and_keeps_order(accessor):
    rows = [{"FrameTime": 3.0}, {"FrameTime": None}, {"FrameTime": 1.0}, {"Other": 2.0}]
    assert accessor.resolve_series(rows, FRAME_TIME) == [3.0, 1.0]


def test_is_numeric():
    assert is_numeric(1)
    assert is_numeric(2.5)
    assert not is_numeric(False)
    assert not is_numeric(float("nan"))
    assert not is_numeric("3")


def test_canonical_key_strips_whitespace_and_case():
    assert canonical_key("Frame Delta Time (ms)") == "framedeltatime(ms)"


class TestNormaliseRow:

    def test_ms_between_presents_becomes_frametime_and_fps(self):
        row = normalise_row({"MsBetweenPresents": 20.0})
        assert row[FRAME_TIME] == 20.0
        assert row[FPS] == pytest.approx(50.0)

    def test_microsecond_column_is_scaled(self):
        row = normalise_row({"FrameTime (us)": 16670})
        assert row[FRAME_TIME] == pytest.approx(16.67)

    def test_numeric_strings_are_coerced(self):
        row = normalise_row({"frame delta time(ms)": " 8.0 "})
        assert row[FRAME_TIME] == 8.0

    def test_frametime_backfilled_from_fps(self):
        row = normalise_row({"fps": 50})
        assert row[FPS] == 50.0
        assert row[FRAME_TIME] == pytest.approx(20.0)

    def test_input_row_not_mutated(self):
        original = {"MsBetweenPresents": 20.0}
        normalise_row(original)
        assert original == {"MsBetweenPresents": 20.0}

    def test_row_without_timing_columns_is_left_alone(self):
        row = normalise_row({"Application": "game.exe"})
        assert FRAME_TIME not in row
        assert FPS not in row


def test_available_metrics_basic_mode():
    assert available_metrics([]) == [FPS, FRAME_TIME]


def test_available_metrics_advanced_skips_blacklist_and_text():
    dataset = Dataset.from_rows("capture", [
        {"MsBetweenPresents": 16.0, "GPUBusy": 3.0, "CPU": 5.0, "Application": "game.exe"},
    ])
    metrics = available_metrics([dataset], advanced=True)
    assert metrics == ["FPS", "FrameTime", "GPUBusy", "MsBetweenPresents"]


def test_metric_display_name():
    assert metric_display_name("MsBetweenPresents") == "Time Between Presents (ms)"
    assert metric_display_name("SomethingCustom") == "SomethingCustom"


def test_numpy_scalars_are_numeric(accessor):
    assert is_numeric(np.float32(16.5))
    assert is_numeric(np.int64(16))
    assert not is_numeric(np.float64("nan"))
    assert accessor.resolve({"MsBetweenPresents": np.int64(16)}, FRAME_TIME) == 16.0
    assert accessor.resolve({"FrameTime": np.float32(20.0)}, FPS) == pytest.approx(50.0)

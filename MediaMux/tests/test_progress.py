from __future__ import annotations

import pytest

from mediamux.core.progress import ProgressEstimator, parse_timemark


@pytest.mark.parametrize(
    ("text", "seconds"),
    [
        ("00:00:00", 0.0),
        ("00:01:30", 90.0),
        ("01:00:00.50", 3600.5),
        ("10:02:03.25", 36123.25),
    ],
)
def test_parse_timemark(text, seconds):
    assert parse_timemark(text) == pytest.approx(seconds)


@pytest.mark.parametrize("text", ["", "N/A", "1:2", "-00:00:01", "abc:00:00"])
def test_parse_timemark_rejects_garbage(text):
    assert parse_timemark(text) is None


def test_explicit_percent_is_used_directly():
    estimator = ProgressEstimator()

    assert estimator.update(percent=42.4) == 42
    assert estimator.update(percent=99.9) == 100


def test_rounds_half_up():
    assert ProgressEstimator().update(percent=12.5) == 13


def test_timemark_needs_known_duration():
    estimator = ProgressEstimator(total_duration=0)

    assert estimator.update(timemark="00:00:30") == 0


def test_timemark_is_capped_below_completion():
    estimator = ProgressEstimator(total_duration=60)

    assert estimator.update(timemark="00:00:30") == 50
    assert estimator.update(timemark="00:01:00") == 95
    assert estimator.update(timemark="00:05:00") == 95


def test_value_never_decreases():
    estimator = ProgressEstimator(total_duration=100)

    assert estimator.update(percent=70) == 70
    assert estimator.update(percent=30) == 70
    assert estimator.update(timemark="00:00:10") == 70
    assert estimator.update() == 70


def test_unknown_signal_reports_zero():
    assert ProgressEstimator().update() == 0


def test_complete_forces_100_from_any_value():
    estimator = ProgressEstimator(total_duration=100)
    estimator.update(timemark="00:00:20")

    assert estimator.complete() == 100
    assert estimator.value == 100


def test_out_of_range_percent_is_clamped():
    estimator = ProgressEstimator()

    assert estimator.update(percent=-5) == 0
    assert estimator.update(percent=250) == 100


def test_reset_starts_over():
    estimator = ProgressEstimator()
    estimator.update(percent=80)
    estimator.reset()

    assert estimator.value == 0
    assert estimator.update(percent=10) == 10


@pytest.mark.parametrize("total", [None, -3, float("nan"), "abc"])
def test_bad_total_duration_means_unknown(total):
    estimator = ProgressEstimator()
    estimator.set_total_duration(total)

    assert estimator.total_duration == 0.0

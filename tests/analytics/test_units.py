import math

import pytest

from runinsight.analytics.units import format_pace, round_half_up, safe_div


@pytest.mark.parametrize(
    ("pace_seconds", "expected"),
    [
        (480, "8:00"),
        (485.4, "8:05"),
        (485.5, "8:06"),
        (299.6, "5:00"),
        (359.5, "6:00"),
        (59.4, "0:59"),
        (3725, "62:05"),
    ],
)
def test_format_pace(pace_seconds, expected):
    assert format_pace(pace_seconds) == expected


@pytest.mark.parametrize("pace_seconds", [0, -12.0, math.inf, math.nan])
def test_format_pace_degenerate_input(pace_seconds):
    assert format_pace(pace_seconds) == "0:00"


def test_format_pace_seconds_never_reach_sixty():
    for tenth in range(0, 36000, 7):
        seconds = int(format_pace(tenth / 10 + 60).split(":")[1])
        assert 0 <= seconds <= 59


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.125, 2) == 0.13
    assert round_half_up(3.14159, 2) == 3.14


def test_safe_div_zero_denominator():
    assert safe_div(5, 0) == 0.0
    assert safe_div(6, 4) == 1.5

import pytest

from strive.tracking.formatting import format_distance, format_duration, format_speed


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (0, "0:00"),
        (59, "0:59"),
        (90, "1:30"),
        (3599, "59:59"),
        (3600, "1:00:00"),
        (3725, "1:02:05"),
        (-5, "0:00"),
    ],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_format_distance():
    assert format_distance(0) == "0.00 km"
    assert format_distance(299.9) == "0.30 km"
    assert format_distance(5034) == "5.03 km"


def test_format_speed():
    assert format_speed(9.0) == "9.0 km/h"
    assert format_speed(12.345) == "12.3 km/h"

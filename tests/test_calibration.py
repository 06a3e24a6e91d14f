import math

import pytest

from sem_editor.calibration import Calibration, PickState, PointPicker, parse_scale_text


def test_three_clicks_restart_the_measurement():
    picker = PointPicker()
    assert picker.state is PickState.EMPTY

    picker = picker.click((10, 10))
    assert picker.state is PickState.HAS_START
    picker = picker.click((20, 10))
    assert picker.state is PickState.HAS_BOTH
    assert picker.pixel_distance == pytest.approx(10.0)

    picker = picker.click((5, 6))
    assert picker.start == (5.0, 6.0)
    assert picker.end is None
    assert picker.pixel_distance == 0.0


def test_pixel_distance_is_euclidean():
    picker = PointPicker().click((0, 0)).click((30, 40))
    assert picker.pixel_distance == 50.0


def test_reset_clears_points():
    picker = PointPicker().click((0, 0)).click((30, 40)).reset()
    assert picker == PointPicker()


def test_ratio_from_pixels_and_known_distance():
    cal = Calibration(pixel_distance=50.0, known_distance=10.0, unit="µm")
    assert cal.pixels_per_unit == 5.0
    assert cal.is_valid


@pytest.mark.parametrize(
    "pixels, known",
    [(0.0, 10.0), (50.0, 0.0), (0.0, 0.0), (50.0, -10.0)],
)
def test_degenerate_calibrations_are_not_valid(pixels, known):
    assert not Calibration(pixel_distance=pixels, known_distance=known).is_valid


def test_zero_known_distance_gives_non_finite_ratio():
    assert math.isinf(Calibration(50.0, 0.0).pixels_per_unit)
    assert math.isnan(Calibration(0.0, 0.0).pixels_per_unit)


def test_known_distance_parses_leniently():
    cal = Calibration().with_known_distance("2.5 um")
    assert cal.known_distance == 2.5
    assert Calibration().with_known_distance("abc").known_distance == 0.0


def test_clearing_pixels_keeps_distance_and_unit():
    cal = Calibration(50.0, 200.0, "nm").with_pixels(0.0)
    assert (cal.pixel_distance, cal.known_distance, cal.unit) == (0.0, 200.0, "nm")


@pytest.mark.parametrize(
    "text, expected",
    [
        ("10 µm", (10.0, "µm")),
        ("200 nm", (200.0, "nm")),
        (" 2.5  micro meter ", (2.5, "micro meter")),
        ("10", None),
        ("ten µm", None),
        ("inf µm", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_scale_text(text, expected):
    assert parse_scale_text(text) == expected

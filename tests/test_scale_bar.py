import math

import numpy as np
import pytest
from PIL import Image

from sem_editor.scale_bar import (
    LABEL_GAP_PX,
    MAX_FONT_SIZE_PX,
    Corner,
    ScaleBarSettings,
    compute_geometry,
    draw_scale_bar,
    format_label,
    load_label_font,
)

REF = (0, 0, 1000, 700)


def test_bar_width_follows_ratio():
    geom = compute_geometry(ScaleBarSettings(length_value=5.0), 5.0, REF)
    assert geom.width == 25.0
    assert geom.label == "5 µm"


@pytest.mark.parametrize(
    "corner, xy",
    [
        (Corner.BOTTOM_RIGHT, (1000 - 25 - 40, 700 - 40)),
        (Corner.BOTTOM_LEFT, (40, 700 - 40)),
        (Corner.TOP_RIGHT, (1000 - 25 - 40, 40 + 24)),
        (Corner.TOP_LEFT, (40, 40 + 24)),
    ],
)
def test_corner_placement(corner, xy):
    geom = compute_geometry(ScaleBarSettings(length_value=5.0, corner=corner), 5.0, REF)
    assert (geom.x, geom.y) == xy


def test_corner_placement_inside_offset_rectangle():
    geom = compute_geometry(ScaleBarSettings(corner=Corner.TOP_LEFT, padding_px=10), 2.0, (100, 50, 600, 450))
    assert (geom.x, geom.y) == (110, 50 + 10 + 24)


def test_bar_sits_above_its_anchor():
    geom = compute_geometry(ScaleBarSettings(length_value=5.0, bar_thickness_px=8), 5.0, REF)
    assert geom.bar_box == (935, 652, 960, 660)
    assert geom.label_anchor == (947.5, 652 - LABEL_GAP_PX)


@pytest.mark.parametrize("ppu", [0.0, -1.0, math.inf, math.nan])
def test_no_geometry_without_usable_ratio(ppu):
    assert compute_geometry(ScaleBarSettings(), ppu, REF) is None


def test_no_geometry_for_zero_length():
    assert compute_geometry(ScaleBarSettings(length_value=0.0), 5.0, REF) is None


def test_label_text():
    assert format_label(ScaleBarSettings(length_value=2.5, length_unit="nm")) == "2.5 nm"
    assert format_label(ScaleBarSettings(length_value=10.0, length_unit="µm")) == "10 µm"


def test_settings_accept_corner_names():
    assert ScaleBarSettings().updated(corner="top-left").corner is Corner.TOP_LEFT


def test_draw_fills_exactly_the_bar():
    img = Image.new("RGB", (200, 100), (0, 0, 0))
    settings = ScaleBarSettings(
        length_value=5.0,
        bar_thickness_px=8,
        label_font_size_px=12,
        bar_color="#ff0000",
        label_color="#00ff00",
        padding_px=10,
    )
    geom = compute_geometry(settings, 10.0, (0, 0, 200, 100))
    draw_scale_bar(img, geom, settings)

    arr = np.asarray(img)
    red = (arr[..., 0] == 255) & (arr[..., 1] == 0) & (arr[..., 2] == 0)
    ys, xs = np.nonzero(red)
    assert red.sum() == 50 * 8
    assert (xs.min(), xs.max(), ys.min(), ys.max()) == (140, 189, 82, 89)
    # label pixels exist above the bar
    assert arr[:82, :, 1].max() > 0


def test_draw_none_geometry_is_a_no_op():
    img = Image.new("RGB", (50, 50), (1, 2, 3))
    draw_scale_bar(img, None, ScaleBarSettings())
    assert img.getcolors() == [(2500, (1, 2, 3))]


def test_label_font_always_loads():
    assert load_label_font(16) is not None


def test_oversized_font_is_clamped():
    assert load_label_font(100000).size == MAX_FONT_SIZE_PX
    assert load_label_font(-5).size == 1
    s = ScaleBarSettings(length_value=5.0, label_font_size_px=100000)
    geom = compute_geometry(s, 5.0, REF)
    img = Image.new("RGB", (1000, 700))
    draw_scale_bar(img, geom, s)
    assert img.getpixel((945, 655)) == (255, 255, 255)

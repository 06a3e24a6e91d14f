import random

import pytest

from sem_editor.crop import (
    MIN_CROP_SIZE,
    CropRect,
    Edge,
    edit_inset,
    format_inset,
    initial_crop,
    inset_of,
    parse_inset_input,
    parse_number,
    with_inset,
)

SIZE = (1000, 800)


def test_initial_crop_uses_suggested_footer_line():
    rect = initial_crop(1000, 800, 700)
    assert rect == CropRect(0, 0, 1000, 700)
    assert inset_of(rect, Edge.BOTTOM, SIZE) == 100


@pytest.mark.parametrize("suggested, height", [(None, 800), (0, 800), (5000, 800), (3, MIN_CROP_SIZE)])
def test_initial_crop_clamps_suggestion(suggested, height):
    assert initial_crop(1000, 800, suggested) == CropRect(0, 0, 1000, height)


@pytest.mark.parametrize(
    "text, expected",
    [("12.5", 12.5), ("12.5px", 12.5), ("  -3", -3.0), (".5", 0.5), ("abc", 0.0), ("", 0.0), (None, 0.0), ("1e999", 0.0), (7, 7.0)],
)
def test_parse_number_is_lenient(text, expected):
    assert parse_number(text) == expected


def test_bottom_inset_in_pixels():
    rect = edit_inset(initial_crop(*SIZE), Edge.BOTTOM, "100", SIZE)
    assert rect == CropRect(0, 0, 1000, 700)
    assert format_inset(inset_of(rect, Edge.BOTTOM, SIZE), 800, False) == "100"


def test_bottom_inset_in_percent():
    rect = edit_inset(initial_crop(*SIZE), Edge.BOTTOM, "12.5", SIZE, use_percent=True)
    assert inset_of(rect, Edge.BOTTOM, SIZE) == 100
    assert format_inset(100, 800, True) == "12.5"


def test_percent_round_trip_is_within_a_tenth():
    rect = initial_crop(*SIZE)
    for pct in ("3.3", "17.9", "42.1", "0.1"):
        rect = edit_inset(rect, Edge.LEFT, pct, SIZE, use_percent=True)
        shown = float(format_inset(inset_of(rect, Edge.LEFT, SIZE), 1000, True))
        assert abs(shown - float(pct)) <= 0.1


def test_percent_input_rounds_half_up():
    assert parse_inset_input("0.05", 1000, True) == 1
    assert parse_inset_input("2.5", 0, False) == 3


def test_non_numeric_inset_reads_as_zero():
    rect = CropRect(30, 40, 500, 500)
    assert edit_inset(rect, Edge.TOP, "abc", SIZE) == CropRect(30, 0, 500, 540)
    assert edit_inset(rect, Edge.LEFT, "", SIZE) == CropRect(0, 40, 530, 500)


def test_negative_inset_clamps_to_image_edge():
    rect = CropRect(30, 40, 500, 500)
    assert edit_inset(rect, Edge.TOP, "-20", SIZE).y == 0
    assert edit_inset(rect, Edge.RIGHT, "-20", SIZE).right == 1000


def test_top_edit_keeps_bottom_and_minimum_height():
    rect = CropRect(0, 0, 1000, 700)
    moved = with_inset(rect, Edge.TOP, 5000, SIZE)
    assert moved.bottom == 700
    assert moved.height == MIN_CROP_SIZE
    assert moved.y == 690


def test_left_edit_keeps_right_edge():
    rect = CropRect(0, 0, 600, 800)
    moved = with_inset(rect, Edge.LEFT, 100, SIZE)
    assert (moved.x, moved.right) == (100, 600)


def test_right_and_bottom_respect_minimum():
    rect = CropRect(900, 700, 100, 100)
    assert with_inset(rect, Edge.RIGHT, 500, SIZE).width == MIN_CROP_SIZE
    assert with_inset(rect, Edge.BOTTOM, 500, SIZE).height == MIN_CROP_SIZE


def test_random_edits_never_break_the_rectangle():
    rnd = random.Random(20240611)
    sizes = [(1000, 800), (10, 10), (37, 2000), (640, 11)]
    junk = ["abc", "", "-15", "1e9", "99.99", "50%", " 7 "]
    for size in sizes:
        rect = initial_crop(*size, rnd.randint(0, size[1] * 2))
        for _ in range(500):
            edge = rnd.choice(list(Edge))
            use_percent = rnd.random() < 0.3
            if rnd.random() < 0.2:
                text = rnd.choice(junk)
            elif use_percent:
                text = f"{rnd.uniform(-20, 120):.1f}"
            else:
                text = str(rnd.randint(-100, max(size) + 100))
            rect = edit_inset(rect, edge, text, size, use_percent=use_percent)
            assert rect.is_valid_for(size), (size, edge, text, rect)

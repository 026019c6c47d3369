from __future__ import annotations

import math

import pytest

from core.errors import ValidationError
from core.models import FrameSpec, HangHeight, Wall
from core.services import geometry


@pytest.mark.parametrize(
    "value,unit,feet",
    [(3, "ft", 3.0), (24, "in", 2.0), (30.48, "cm", 1.0), (1, "m", 3.28084)],
)
def test_to_feet(value, unit, feet):
    assert geometry.to_feet(value, unit) == pytest.approx(feet)


def test_to_feet_rejects_unknown_unit():
    with pytest.raises(ValidationError):
        geometry.to_feet(1, "yd")


@pytest.mark.parametrize("raw", ["abc", "", "nan", "inf", "-2", "0", None])
def test_parse_dimension_rejects_bad_input(raw):
    with pytest.raises(ValidationError):
        geometry.parse_dimension(raw)


def test_parse_dimension_accepts_numeric_text():
    assert geometry.parse_dimension(" 12.5 ") == 12.5


def test_wall_scale_fits_the_tighter_axis():
    # avail_w = 1280 - 340 = 940, avail_h = 800 - 60 = 740
    assert geometry.compute_wall_scale(12, 10, "ft", 1280, 800) == pytest.approx(min(940 / 12, 740 / 10))
    assert geometry.compute_wall_scale(40, 2, "ft", 1280, 800) == pytest.approx(940 / 40)


def test_wall_scale_converts_units():
    in_ft = geometry.compute_wall_scale(12, 10, "ft", 1280, 800)
    in_inches = geometry.compute_wall_scale(144, 120, "in", 1280, 800)
    assert in_ft == pytest.approx(in_inches)


def test_wall_scale_rejects_non_positive():
    with pytest.raises(ValidationError):
        geometry.compute_wall_scale(0, 10, "ft", 1280, 800)
    with pytest.raises(ValidationError):
        geometry.compute_wall_scale(math.nan, 10, "ft", 1280, 800)


def test_frame_border_follows_wall_scale_only_when_visible():
    frame = FrameSpec(enabled=True, matte=12, frame=6, unit="in")
    hidden = Wall(scale=50, visible=False)
    shown = Wall(scale=50, visible=True)
    assert geometry.frame_border_px(frame, hidden) == pytest.approx((4.0, 2.0))
    assert geometry.frame_border_px(frame, shown) == pytest.approx((50.0, 25.0))
    assert geometry.frame_border_px(FrameSpec(), shown) == (0.0, 0.0)


def test_hang_line_and_snap():
    wall = Wall(width=10, height=8, unit="ft", visible=True, scale=10, hang_height=HangHeight(24, "in"))
    # 80 px tall wall, line 20 px above the floor
    assert geometry.hang_line_y(wall) == pytest.approx(60)
    line_canvas = geometry.WALL_TOP + 60
    assert geometry.snap_to_hang_line(line_canvas + 5, wall) == pytest.approx(-5)
    assert geometry.snap_to_hang_line(line_canvas + 30, wall) == 0.0
    wall.hang_height.enabled = False
    assert geometry.hang_line_y(wall) is None


@pytest.mark.parametrize("handle", ["nw", "ne", "sw", "se"])
def test_resize_never_drops_below_min_size(handle):
    x, y, w, h = geometry.resize_from_handle(handle, (100, 100, 200, 100), 5000, 5000, 2.0)
    x2, y2, w2, h2 = geometry.resize_from_handle(handle, (100, 100, 200, 100), -5000, -5000, 2.0)
    for width, height in ((w, h), (w2, h2)):
        assert width >= geometry.MIN_SIZE
        assert height >= geometry.MIN_SIZE
        assert width / height == pytest.approx(2.0)


def test_resize_keeps_opposite_corner_fixed():
    x, y, w, h = geometry.resize_from_handle("nw", (100, 100, 200, 100), 0, 20, 2.0)
    assert (w, h) == pytest.approx((160, 80))
    assert (x + w, y + h) == pytest.approx((300, 200))
    x, y, w, h = geometry.resize_from_handle("se", (100, 100, 200, 100), 0, 20, 2.0)
    assert (x, y) == (100, 100)
    assert (w, h) == pytest.approx((240, 120))


def test_resize_rejects_bad_input():
    with pytest.raises(ValidationError):
        geometry.resize_from_handle("se", (0, 0, 100, 100), 1, 1, 0)
    with pytest.raises(ValidationError):
        geometry.resize_from_handle("x", (0, 0, 100, 100), 1, 1, 1)


def test_rotation_from_pointer_quarter_turn():
    angle = geometry.rotation_from_pointer((0, 0), (0, 10), (10, 0), 0)
    assert angle == pytest.approx(90)
    assert geometry.rotation_from_pointer((0, 0), (10, 0), (0, 10), 30) == pytest.approx(300)


def test_fit_natural_size_caps_long_side():
    assert geometry.fit_natural_size(4000, 3000) == (1000, 750)
    assert geometry.fit_natural_size(800, 600) == (800, 600)


def test_rect_helpers():
    assert geometry.normalize_rect((10, 20), (0, 5)) == (0, 5, 10, 20)
    assert geometry.rects_intersect((0, 0, 10, 10), (10, 10, 20, 20))
    assert not geometry.rects_intersect((0, 0, 10, 10), (11, 0, 20, 10))


def test_clamp_size_keeps_aspect_ratio():
    assert geometry.clamp_size(220, 44) == pytest.approx((250.0, 50.0))
    assert geometry.clamp_size(30, 120) == pytest.approx((50.0, 200.0))
    assert geometry.clamp_size(220, 146) == (220, 146)


def test_px_to_unit_formats_label_units():
    assert geometry.px_to_unit(96, "in") == "1.00"
    assert geometry.px_to_unit(96, "mm") == "25.40"
    assert geometry.px_to_unit(219.6, "px") == "220"
    with pytest.raises(ValidationError):
        geometry.px_to_unit(96, "yd")


def test_dimension_label_adds_matte_and_frame_on_both_sides():
    label = geometry.dimension_label(192, 96, (24.0, 24.0), "in")
    assert label == "2.00 in × 1.00 in\n3.00 in × 2.00 in"

import pytest

from wt_core.geometry import (
    Point,
    Size,
    clamp_point,
    fit_rect,
    is_inside,
    to_display,
    to_original,
    validate_image_size,
)


@pytest.mark.parametrize(
    "original, displayed",
    [
        (Size(400, 300), Size(800, 600)),  # идеальное совпадение
        (Size(400, 300), Size(390, 300)),  # почти совпадает (разница < 0.2)
        (Size(1000, 500), Size(400, 400)),  # letterbox
        (Size(500, 1000), Size(400, 400)),  # pillarbox
    ],
)
@pytest.mark.parametrize("point", [Point(0, 0), Point(123.5, 77.25), Point(-15, 420)])
def test_round_trip_in_every_branch(original, displayed, point):
    back = to_original(to_display(point, original, displayed), original, displayed)
    assert back.x == pytest.approx(point.x, abs=1e-6)
    assert back.y == pytest.approx(point.y, abs=1e-6)


def test_pillarbox_left_edge_maps_to_bar_offset():
    original = Size(100, 200)
    displayed = Size(200, 200)
    assert to_display(Point(0, 50), original, displayed) == Point(50, 50)
    assert to_original(Point(50, 50), original, displayed) == Point(0, 50)


def test_letterbox_offsets_vertically():
    rect = fit_rect(Size(1000, 500), Size(400, 400))
    assert rect.x == 0
    assert rect.y == pytest.approx(100)
    assert rect.height == pytest.approx(200)
    assert to_display(Point(0, 0), Size(1000, 500), Size(400, 400)) == Point(0, 100)


def test_wide_image_letterbox_edge_point():
    original = Size(400, 100)
    displayed = Size(200, 100)
    rect = fit_rect(original, displayed)
    assert (rect.x, rect.y, rect.width, rect.height) == (0, 25, 200, 50)
    assert to_display(Point(0, 50), original, displayed) == Point(0, 50)
    assert to_original(Point(0, 50), original, displayed) == Point(0, 50)


def test_perfect_fit_scales_axes_independently():
    original = Size(400, 300)
    displayed = Size(390, 300)
    mapped = to_display(Point(400, 300), original, displayed)
    assert mapped.x == pytest.approx(390)
    assert mapped.y == pytest.approx(300)


def test_tolerance_threshold_selects_branch():
    # 2.25 vs 2.0 - уже letterbox
    assert fit_rect(Size(225, 100), Size(200, 100)).y > 0
    # 2.15 vs 2.0 - ещё идеальное совпадение, без полос
    rect = fit_rect(Size(215, 100), Size(200, 100))
    assert (rect.x, rect.y) == (0, 0)
    assert rect.height == 100


@pytest.mark.parametrize("displayed", [Size(0, 300), Size(300, 0), Size(-1, 10)])
def test_degenerate_display_returns_origin(displayed):
    original = Size(400, 300)
    assert to_display(Point(10, 10), original, displayed) == Point(0, 0)
    assert to_original(Point(10, 10), original, displayed) == Point(0, 0)


def test_tap_in_bar_is_not_clamped():
    original = Size(100, 200)
    displayed = Size(200, 200)
    point = to_original(Point(10, 50), original, displayed)
    assert point.x < 0
    assert not is_inside(point, original)
    assert clamp_point(point, original) == Point(0, point.y)


def test_validate_image_size_rejects_zero():
    with pytest.raises(ValueError):
        validate_image_size(Size(0, 100))
    validate_image_size(Size(1, 1))

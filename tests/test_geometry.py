from __future__ import annotations

import pytest

from image_engine.exceptions import InvalidGeometryError
from image_engine.geometry import (
    Point,
    Size,
    center_square,
    fit_box,
    resize_box,
    round_half_away_from_zero,
    validate_crop,
    validate_target,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [(2.5, 3), (-2.5, -3), (2.4, 2), (62.5, 63), (0.5, 1), (0.0, 0), (7.0, 7)],
)
def test_round_half_away_from_zero(value: float, expected: int) -> None:
    assert round_half_away_from_zero(value) == expected


def test_ratio_of_zero_height_is_invalid() -> None:
    with pytest.raises(InvalidGeometryError):
        Size(10, 0).ratio()


def test_resize_box_landscape_and_portrait() -> None:
    assert resize_box(Size(200, 100), 100) == Size(100, 50)
    assert resize_box(Size(100, 200), 100) == Size(50, 100)
    assert resize_box(Size(300, 200), 125) == Size(125, 83)


def test_resize_box_square_uses_max_size_for_both_sides() -> None:
    assert resize_box(Size(640, 640), 64) == Size(64, 64)


def test_resize_box_rounds_ties_away_from_zero() -> None:
    # 5 / 2 = 2.5 becomes 3, banker's rounding would give 2
    assert resize_box(Size(4, 2), 5) == Size(5, 3)


def test_resize_box_rejects_zero_area() -> None:
    with pytest.raises(InvalidGeometryError):
        resize_box(Size(0, 0), 100)


def test_fit_box_matches_ratio() -> None:
    assert fit_box(Size(400, 200), 100, 50) == Size(100, 50)
    assert fit_box(Size(200, 50), 100, 100) == Size(100, 25)


def test_fit_box_scales_small_images_up() -> None:
    assert fit_box(Size(50, 50), 200, 100) == Size(100, 100)


def test_fit_box_rejects_zero_width() -> None:
    with pytest.raises(InvalidGeometryError):
        fit_box(Size(0, 20), 100, 100)


def test_center_square_landscape() -> None:
    assert center_square(Size(400, 200)) == (Point(100, 0), Size(200, 200))


def test_center_square_portrait_floors_midpoint() -> None:
    assert center_square(Size(200, 401)) == (Point(0, 100), Size(200, 200))


def test_validate_target_rejects_non_positive() -> None:
    with pytest.raises(InvalidGeometryError):
        validate_target(Size(0, 10))


@pytest.mark.parametrize(
    ("origin", "size"),
    [
        (Point(-1, 0), Size(10, 10)),
        (Point(0, -5), Size(10, 10)),
        (Point(95, 0), Size(10, 10)),
        (Point(0, 0), Size(0, 10)),
    ],
)
def test_validate_crop_rejects_invalid_rectangles(origin: Point, size: Size) -> None:
    with pytest.raises(InvalidGeometryError):
        validate_crop(Size(100, 50), origin, size)


def test_validate_crop_accepts_full_image() -> None:
    validate_crop(Size(100, 50), Point(0, 0), Size(100, 50))

from __future__ import annotations

import random
from collections.abc import Callable

import pytest

from pysentinel.geometry import point_in_polygon
from pysentinel.models.zone import Point

UNIT_SQUARE = [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)]


@pytest.mark.parametrize(
    ("point", "expected"),
    [
        ((0.5, 0.5), True),
        ((1.5, 0.5), False),
        ((-0.1, 0.5), False),
        ((0.5, 1.5), False),
        ((0.5, -0.5), False),
    ],
)
def test_unit_square_containment(point: tuple[float, float], expected: bool) -> None:
    assert point_in_polygon(point, UNIT_SQUARE) is expected


def test_boundary_is_half_open() -> None:
    # Left and bottom edges belong to the polygon, right and top edges do not.
    assert point_in_polygon((0.0, 0.5), UNIT_SQUARE)
    assert point_in_polygon((0.5, 0.0), UNIT_SQUARE)
    assert not point_in_polygon((1.0, 0.5), UNIT_SQUARE)
    assert not point_in_polygon((0.5, 1.0), UNIT_SQUARE)


def test_accepts_models_and_tuples() -> None:
    polygon = [Point(x=x, y=y) for x, y in UNIT_SQUARE]
    assert point_in_polygon(Point(x=0.25, y=0.75), polygon)
    assert point_in_polygon((0.25, 0.75), polygon)


def test_concave_polygon() -> None:
    # "U" shape: the notch between the arms is outside.
    polygon = [(0, 0), (3, 0), (3, 3), (2, 3), (2, 1), (1, 1), (1, 3), (0, 3)]
    assert point_in_polygon((0.5, 2.0), polygon)
    assert point_in_polygon((2.5, 2.0), polygon)
    assert not point_in_polygon((1.5, 2.0), polygon)
    assert point_in_polygon((1.5, 0.5), polygon)


def test_degenerate_polygons_contain_nothing() -> None:
    assert not point_in_polygon((0.0, 0.0), [])
    assert not point_in_polygon((0.0, 0.0), [(0.0, 0.0)])
    assert not point_in_polygon((0.5, 0.0), [(0.0, 0.0), (1.0, 0.0)])


def test_matches_axis_aligned_rectangle_check() -> None:
    rng = random.Random(7)
    x0, y0, x1, y1 = -2.0, 1.0, 3.0, 4.5
    rectangle = [(x0, y0), (x1, y0), (x1, y1), (x0, y1)]
    for _ in range(500):
        px = rng.uniform(-5, 5)
        py = rng.uniform(-2, 7)
        expected = x0 <= px < x1 and y0 <= py < y1
        assert point_in_polygon((px, py), rectangle) is expected


L_SHAPE = [(0.0, 0.0), (2.0, 0.0), (2.0, 1.0), (1.0, 1.0), (1.0, 3.0), (0.0, 3.0)]
RIGHT_TRIANGLE = [(0.0, 0.0), (4.0, 0.0), (0.0, 4.0)]


def _in_l_shape(x: float, y: float) -> bool:
    # Union of the foot and the upright, both half-open.
    return (0 <= x < 2 and 0 <= y < 1) or (0 <= x < 1 and 1 <= y < 3)


def _in_right_triangle(x: float, y: float) -> bool:
    return x >= 0 and y >= 0 and x + y < 4


def _quarter_grid(lo: float, hi: float) -> list[float]:
    return [lo + step * 0.25 for step in range(int((hi - lo) * 4) + 1)]


@pytest.mark.parametrize(
    ("polygon", "reference"),
    [(L_SHAPE, _in_l_shape), (RIGHT_TRIANGLE, _in_right_triangle)],
    ids=["l-shape", "right-triangle"],
)
def test_grid_including_edges_matches_reference(
    polygon: list[tuple[float, float]], reference: Callable[[float, float], bool]
) -> None:
    # Quarter steps are exact in binary, so the grid lands on every vertical
    # edge, the inner corner of the L and the slanted hypotenuse.
    for px in _quarter_grid(-1.0, 5.0):
        for py in _quarter_grid(-1.0, 5.0):
            assert point_in_polygon((px, py), polygon) is reference(px, py), (px, py)


@pytest.mark.parametrize(
    ("polygon", "reference"),
    [(L_SHAPE, _in_l_shape), (RIGHT_TRIANGLE, _in_right_triangle)],
    ids=["l-shape", "right-triangle"],
)
def test_random_points_match_reference(
    polygon: list[tuple[float, float]], reference: Callable[[float, float], bool]
) -> None:
    rng = random.Random(11)
    for _ in range(2000):
        px = rng.uniform(-1, 5)
        py = rng.uniform(-1, 5)
        assert point_in_polygon((px, py), polygon) is reference(px, py), (px, py)


def test_points_on_slanted_and_vertical_edges() -> None:
    # Hypotenuse x + y = 4 is a right-hand edge: outside.
    assert not point_in_polygon((1.0, 3.0), RIGHT_TRIANGLE)
    assert not point_in_polygon((3.5, 0.5), RIGHT_TRIANGLE)
    assert point_in_polygon((0.0, 2.0), RIGHT_TRIANGLE)
    # The L's inner vertical edge at x = 1 bounds the upright on the right.
    assert not point_in_polygon((1.0, 2.0), L_SHAPE)
    assert point_in_polygon((1.0, 0.5), L_SHAPE)
    assert not point_in_polygon((2.0, 0.5), L_SHAPE)

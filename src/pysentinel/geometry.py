"""Planar containment test used by the occupancy engine."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol


class _HasXY(Protocol):
    @property
    def x(self) -> float: ...

    @property
    def y(self) -> float: ...


PointLike = _HasXY | tuple[float, float]


def _xy(point: PointLike) -> tuple[float, float]:
    if isinstance(point, tuple):
        return float(point[0]), float(point[1])
    return float(point.x), float(point.y)


def point_in_polygon(point: PointLike, polygon: Sequence[PointLike]) -> bool:
    """Horizontal ray-crossing containment test.

    An edge counts as a crossing when exactly one of its endpoints lies
    strictly above ``point.y`` and the edge's x at that height is strictly
    greater than ``point.x``. Horizontal edges therefore never count, and
    points on a left or bottom edge are inside while points on a right or
    top edge are outside.

    Polygons with fewer than three vertices are expected to be rejected by
    the caller; here they simply never contain anything.
    """
    px, py = _xy(point)
    vertices = [_xy(vertex) for vertex in polygon]
    inside = False
    j = len(vertices) - 1
    for i in range(len(vertices)):
        xi, yi = vertices[i]
        xj, yj = vertices[j]
        if (yi > py) != (yj > py):
            x_cross = (xj - xi) * (py - yi) / (yj - yi) + xi
            if px < x_cross:
                inside = not inside
        j = i
    return inside

"""Radar-plane geometry records: points, targets, zones and occupancy logs."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from pysentinel.models._base import Identifier, SentinelBaseModel


class Point(SentinelBaseModel):
    """A vertex on the radar plane (meters)."""

    x: float
    y: float


class Target(SentinelBaseModel):
    """Instantaneous position of a tracked object."""

    id: Identifier
    x: float
    y: float


class Zone(SentinelBaseModel):
    """A named polygon on the radar plane.

    The model accepts any number of points because the server may push
    degenerate shapes; such zones are simply never active. Client-side
    creation is validated by :func:`pysentinel.client.build_zone`.
    """

    id: Identifier
    name: str = ""
    points: tuple[Point, ...] = ()

    @property
    def is_valid_polygon(self) -> bool:
        return len(self.points) >= 3


class OccupancyType(StrEnum):
    OCCUPIED = "occupied"
    UNOCCUPIED = "unoccupied"


class TargetSnapshot(SentinelBaseModel):
    """Target position captured at the moment of an occupancy transition."""

    id: Identifier
    x: float
    y: float


class ZoneLogEntry(SentinelBaseModel):
    """One occupancy transition of a zone.

    Serializes with the ``targetCount`` key used by the server's logs.
    """

    timestamp: str
    type: OccupancyType
    target_count: int = Field(default=0, ge=0, alias="targetCount")
    targets: tuple[TargetSnapshot, ...] = ()

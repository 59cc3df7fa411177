"""Edge-triggered zone occupancy.

The engine recomputes the full active-zone set from the current zones and
targets and emits exactly one log entry per zone whose occupancy flipped
since the previous computation. It never patches the active set
incrementally; the previous snapshot is kept only for edge detection.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from pysentinel.geometry import point_in_polygon
from pysentinel.models._base import utc_timestamp
from pysentinel.models.zone import OccupancyType, Target, TargetSnapshot, Zone, ZoneLogEntry

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class OccupancyUpdate:
    """Result of one evaluation that produced at least one transition."""

    active_zone_ids: frozenset[str]
    entries: dict[str, tuple[ZoneLogEntry, ...]] = field(default_factory=dict)

    @property
    def transition_count(self) -> int:
        return sum(len(items) for items in self.entries.values())


def targets_in_zone(zone: Zone, targets: Sequence[Target]) -> list[Target]:
    """Targets contained in *zone*; degenerate polygons contain nothing."""
    if not zone.is_valid_polygon:
        return []
    return [target for target in targets if point_in_polygon(target, zone.points)]


class OccupancyEngine:
    """Derives occupancy transitions from full zone/target snapshots."""

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._previous_active: frozenset[str] = frozenset()

    @property
    def previous_active(self) -> frozenset[str]:
        return self._previous_active

    def evaluate(self, zones: Sequence[Zone], targets: Sequence[Target]) -> OccupancyUpdate | None:
        """Recompute occupancy for every zone.

        Returns ``None`` without touching the previous snapshot when either
        input is empty, and ``None`` when no zone flipped.
        """
        if not zones or not targets:
            return None

        current_active: set[str] = set()
        entries: dict[str, tuple[ZoneLogEntry, ...]] = {}
        timestamp = utc_timestamp(self._clock())

        for zone in zones:
            contained = targets_in_zone(zone, targets)
            is_active = bool(contained)
            was_active = zone.id in self._previous_active
            if is_active:
                current_active.add(zone.id)
            if is_active == was_active:
                continue

            entry = ZoneLogEntry(
                timestamp=timestamp,
                type=OccupancyType.OCCUPIED if is_active else OccupancyType.UNOCCUPIED,
                target_count=len(contained),
                targets=tuple(TargetSnapshot(id=t.id, x=t.x, y=t.y) for t in contained),
            )
            entries[zone.id] = entries.get(zone.id, ()) + (entry,)

        active = frozenset(current_active)
        self._previous_active = active
        if not entries:
            return None

        _logger.debug("Occupancy transitions=%s active=%s", sorted(entries), sorted(active))
        return OccupancyUpdate(active_zone_ids=active, entries=entries)

    def forget(self, zone_id: str) -> None:
        """Drop a deleted zone from the edge-detection snapshot."""
        if zone_id in self._previous_active:
            self._previous_active = self._previous_active - {zone_id}

    def reset(self) -> None:
        self._previous_active = frozenset()

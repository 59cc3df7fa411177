from __future__ import annotations

from datetime import UTC, datetime

from pysentinel.models.zone import OccupancyType, Point, Target, Zone
from pysentinel.occupancy import OccupancyEngine, targets_in_zone


def _dt() -> datetime:
    return datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


def _square(zone_id: str, x0: float = 0.0, y0: float = 0.0, size: float = 1.0) -> Zone:
    points = [(x0, y0), (x0 + size, y0), (x0 + size, y0 + size), (x0, y0 + size)]
    return Zone(id=zone_id, name=zone_id, points=tuple(Point(x=x, y=y) for x, y in points))


def _target(target_id: str, x: float, y: float) -> Target:
    return Target(id=target_id, x=x, y=y)


def test_one_entry_per_flip() -> None:
    engine = OccupancyEngine(clock=_dt)
    zones = [_square("bed")]

    entered = engine.evaluate(zones, [_target("t1", 0.5, 0.5)])
    assert entered is not None
    assert entered.active_zone_ids == frozenset({"bed"})
    (entry,) = entered.entries["bed"]
    assert entry.type is OccupancyType.OCCUPIED
    assert entry.target_count == 1
    assert entry.targets[0].id == "t1"
    assert entry.timestamp == "2026-01-01T12:00:00.000Z"

    # Still inside: no new entry.
    assert engine.evaluate(zones, [_target("t1", 0.6, 0.6)]) is None

    left = engine.evaluate(zones, [_target("t1", 5.0, 5.0)])
    assert left is not None
    assert left.active_zone_ids == frozenset()
    (exit_entry,) = left.entries["bed"]
    assert exit_entry.type is OccupancyType.UNOCCUPIED
    assert exit_entry.target_count == 0
    assert exit_entry.targets == ()


def test_only_flipped_zones_are_logged() -> None:
    engine = OccupancyEngine(clock=_dt)
    zones = [_square("a"), _square("b", x0=5.0)]

    engine.evaluate(zones, [_target("1", 0.5, 0.5)])
    update = engine.evaluate(zones, [_target("1", 0.5, 0.5), _target("2", 5.5, 0.5)])

    assert update is not None
    assert set(update.entries) == {"b"}
    assert update.active_zone_ids == frozenset({"a", "b"})
    assert update.transition_count == 1


def test_empty_inputs_leave_snapshot_untouched() -> None:
    engine = OccupancyEngine(clock=_dt)
    zones = [_square("bed")]
    engine.evaluate(zones, [_target("t1", 0.5, 0.5)])

    assert engine.evaluate(zones, []) is None
    assert engine.evaluate([], [_target("t1", 0.5, 0.5)]) is None
    assert engine.previous_active == frozenset({"bed"})


def test_degenerate_zone_is_never_active() -> None:
    engine = OccupancyEngine(clock=_dt)
    line = Zone(id="line", points=(Point(x=0, y=0), Point(x=1, y=1)))

    assert targets_in_zone(line, [_target("t1", 0.5, 0.5)]) == []
    assert engine.evaluate([line], [_target("t1", 0.5, 0.5)]) is None


def test_forget_drops_zone_from_snapshot() -> None:
    engine = OccupancyEngine(clock=_dt)
    zones = [_square("bed")]
    engine.evaluate(zones, [_target("t1", 0.5, 0.5)])

    engine.forget("bed")
    assert engine.previous_active == frozenset()

    # Re-entering after forget counts as a new transition.
    update = engine.evaluate(zones, [_target("t1", 0.5, 0.5)])
    assert update is not None
    assert update.entries["bed"][0].type is OccupancyType.OCCUPIED

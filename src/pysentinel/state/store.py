"""In-memory session store.

This is the only component allowed to mutate session state. Every change
arrives as a :mod:`pysentinel.state.events` event through :meth:`StateStore.apply`;
occupancy is recomputed after every zone or target change and folded back
in as a single :class:`~pysentinel.state.events.OccupancyUpdated` transition.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from pysentinel._constants import MAX_CONNECTION_EVENTS, MAX_RECENT_MESSAGES, MAX_SERVER_ERRORS, MAX_TARGETS
from pysentinel.models.connection import ConnectionEvent, ConnectionStatus
from pysentinel.models.fall import FallDetectionSettings, FallEvent, FallLogEntry
from pysentinel.models.zone import Target, Zone, ZoneLogEntry
from pysentinel.occupancy import OccupancyEngine
from pysentinel.state.events import (
    ConnectionChanged,
    FallAlertDismissed,
    FallAlertRaised,
    FallLogsReplaced,
    FallsAcknowledged,
    FallSettingsReceived,
    MessageReceived,
    OccupancyUpdated,
    ServerErrorReceived,
    StoreEvent,
    TargetsReplaced,
    ZoneAdded,
    ZoneCreationSent,
    ZoneDeleteAborted,
    ZoneDeleteConfirmed,
    ZoneDeleteRequested,
    ZoneEventReceived,
    ZoneLogsReplaced,
    ZonesReplaced,
    ZoneSelected,
)

_logger = logging.getLogger(__name__)

StoreListener = Callable[[StoreEvent], None]
Scheduler = Callable[[Callable[[], None]], None]


def next_tick(callback: Callable[[], None]) -> None:
    """Run *callback* on the next loop iteration, or now when no loop is running."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        callback()
        return
    loop.call_soon(callback)


def immediate(callback: Callable[[], None]) -> None:
    callback()


def _dedupe_zones(zones: tuple[Zone, ...]) -> list[Zone]:
    seen: set[str] = set()
    unique: list[Zone] = []
    for zone in zones:
        if zone.id in seen:
            continue
        seen.add(zone.id)
        unique.append(zone)
    return unique


class StateStore:
    """Authoritative in-memory record of one session.

    Parameters
    ----------
    max_targets : int
        Cap applied to every target list; the oldest entries are dropped.
    occupancy : OccupancyEngine or None
        Engine used for edge detection. A fresh one is created by default.
    schedule : callable
        How the occupancy transition is deferred. Defaults to the next loop
        tick so consumers never observe a half-applied update.
    clock : callable
        Monotonic clock used to age pending zone creations.
    """

    def __init__(
        self,
        *,
        max_targets: int = MAX_TARGETS,
        occupancy: OccupancyEngine | None = None,
        schedule: Scheduler = next_tick,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_targets = max_targets
        self._occupancy = occupancy or OccupancyEngine()
        self._schedule = schedule
        self._clock = clock
        self._listeners: list[StoreListener] = []

        self._zones: list[Zone] = []
        self._targets: tuple[Target, ...] = ()
        self._active_zone_ids: frozenset[str] = frozenset()
        self._deleting: set[str] = set()
        self._pending: dict[str, float] = {}
        self._occupancy_logs: dict[str, list[ZoneLogEntry]] = {}
        self._zone_logs: dict[str, tuple[ZoneLogEntry, ...]] = {}
        self._zone_logs_received = False
        self._fall_logs: tuple[FallLogEntry, ...] = ()
        self._fall_alert = False
        self._new_fall_detected = False
        self._last_fall_event: FallEvent | None = None
        self._fall_settings: FallDetectionSettings | None = None
        self._selected_zone_id: str | None = None
        self._server_errors: deque[ServerErrorReceived] = deque(maxlen=MAX_SERVER_ERRORS)
        self._zone_events: deque[dict[str, Any]] = deque(maxlen=MAX_RECENT_MESSAGES)
        self._recent_messages: deque[tuple[datetime, str]] = deque(maxlen=MAX_RECENT_MESSAGES)
        self._connection = ConnectionStatus()
        self._connection_events: deque[ConnectionEvent] = deque(maxlen=MAX_CONNECTION_EVENTS)

        self._handlers: dict[type[StoreEvent], Callable[[Any], bool]] = {
            ZonesReplaced: self._apply_zones_replaced,
            ZoneAdded: self._apply_zone_added,
            ZoneCreationSent: self._apply_zone_creation_sent,
            ZoneDeleteRequested: self._apply_zone_delete_requested,
            ZoneDeleteAborted: self._apply_zone_delete_aborted,
            ZoneDeleteConfirmed: self._apply_zone_delete_confirmed,
            ZoneSelected: self._apply_zone_selected,
            ZoneLogsReplaced: self._apply_zone_logs_replaced,
            FallLogsReplaced: self._apply_fall_logs_replaced,
            TargetsReplaced: self._apply_targets_replaced,
            OccupancyUpdated: self._apply_occupancy_updated,
            FallAlertRaised: self._apply_fall_alert_raised,
            FallAlertDismissed: self._apply_fall_alert_dismissed,
            FallsAcknowledged: self._apply_falls_acknowledged,
            FallSettingsReceived: self._apply_fall_settings,
            ZoneEventReceived: self._apply_zone_event,
            ServerErrorReceived: self._apply_server_error,
            MessageReceived: self._apply_message_received,
            ConnectionChanged: self._apply_connection_changed,
        }

    # ------------------------------------------------------------------
    # Applying events
    # ------------------------------------------------------------------

    def apply(self, event: StoreEvent) -> None:
        """Apply a store event.

        Zone and target changes trigger an occupancy recomputation whose
        result is applied later through the scheduler.
        """
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unsupported store event: {type(event).__name__}")
        reevaluate = handler(event)
        self._notify(event)
        if reevaluate:
            self._reevaluate_occupancy()

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register *listener* for every applied event; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                _logger.warning("Store listener failed for %s", type(event).__name__, exc_info=True)

    def _reevaluate_occupancy(self) -> None:
        update = self._occupancy.evaluate(self._zones, self._targets)
        if update is None:
            return
        event = OccupancyUpdated(active_zone_ids=update.active_zone_ids, entries=update.entries)
        self._schedule(lambda: self.apply(event))

    def _apply_zones_replaced(self, event: ZonesReplaced) -> bool:
        incoming = _dedupe_zones(event.zones)
        incoming_ids = {zone.id for zone in incoming}

        confirmed = incoming_ids & self._pending.keys()
        for zone_id in confirmed:
            self._pending.pop(zone_id, None)
        if confirmed:
            _logger.debug("Zone creations confirmed by server: %s", sorted(confirmed))

        # Local creations the server has not echoed yet survive the replace.
        retained = [zone for zone in self._zones if zone.id in self._pending and zone.id not in incoming_ids]
        previous = {zone.id for zone in self._zones}
        self._zones = incoming + retained
        present = {zone.id for zone in self._zones}
        self._deleting &= present
        # Dropped zones leave the active set even when no other zone flips.
        self._active_zone_ids = self._active_zone_ids & present
        for zone_id in previous - present:
            self._occupancy.forget(zone_id)
        return True

    def _apply_zone_added(self, event: ZoneAdded) -> bool:
        if any(zone.id == event.zone.id for zone in self._zones):
            _logger.debug("Zone %s already exists, skipping creation", event.zone.id)
            return False
        self._zones.append(event.zone)
        return True

    def _apply_zone_creation_sent(self, event: ZoneCreationSent) -> bool:
        if any(zone.id == event.zone_id for zone in self._zones):
            self._pending.setdefault(event.zone_id, self._clock())
        return False

    def _apply_zone_delete_requested(self, event: ZoneDeleteRequested) -> bool:
        if any(zone.id == event.zone_id for zone in self._zones):
            self._deleting.add(event.zone_id)
        return False

    def _apply_zone_delete_aborted(self, event: ZoneDeleteAborted) -> bool:
        self._deleting.discard(event.zone_id)
        return False

    def _apply_zone_delete_confirmed(self, event: ZoneDeleteConfirmed) -> bool:
        zone_id = event.zone_id
        self._zones = [zone for zone in self._zones if zone.id != zone_id]
        self._active_zone_ids = self._active_zone_ids - {zone_id}
        self._deleting.discard(zone_id)
        self._pending.pop(zone_id, None)
        self._occupancy_logs.pop(zone_id, None)
        self._zone_logs.pop(zone_id, None)
        if self._selected_zone_id == zone_id:
            self._selected_zone_id = None
        self._occupancy.forget(zone_id)
        _logger.info("Zone %s and its logs deleted", zone_id)
        return False

    def _apply_zone_selected(self, event: ZoneSelected) -> bool:
        self._selected_zone_id = event.zone_id
        return False

    def _apply_zone_logs_replaced(self, event: ZoneLogsReplaced) -> bool:
        if event.zone_id is not None:
            self._zone_logs[event.zone_id] = event.logs.get(event.zone_id, ())
        else:
            self._zone_logs = dict(event.logs)
        self._zone_logs_received = True
        return False

    def _apply_fall_logs_replaced(self, event: FallLogsReplaced) -> bool:
        self._fall_logs = event.logs
        return False

    def _apply_targets_replaced(self, event: TargetsReplaced) -> bool:
        targets = event.targets
        if len(targets) > self._max_targets:
            targets = targets[-self._max_targets :]
        self._targets = targets
        return True

    def _apply_occupancy_updated(self, event: OccupancyUpdated) -> bool:
        present = {zone.id for zone in self._zones}
        for zone_id, entries in event.entries.items():
            if zone_id not in present:
                continue
            self._occupancy_logs.setdefault(zone_id, []).extend(entries)
        self._active_zone_ids = event.active_zone_ids & present
        return False

    def _apply_fall_alert_raised(self, event: FallAlertRaised) -> bool:
        self._fall_alert = True
        self._new_fall_detected = True
        self._last_fall_event = event.event
        return False

    def _apply_fall_alert_dismissed(self, event: FallAlertDismissed) -> bool:
        self._fall_alert = False
        return False

    def _apply_falls_acknowledged(self, event: FallsAcknowledged) -> bool:
        self._new_fall_detected = False
        return False

    def _apply_fall_settings(self, event: FallSettingsReceived) -> bool:
        self._fall_settings = event.settings
        return False

    def _apply_zone_event(self, event: ZoneEventReceived) -> bool:
        self._zone_events.append(event.payload)
        return False

    def _apply_server_error(self, event: ServerErrorReceived) -> bool:
        self._server_errors.append(event)
        return False

    def _apply_message_received(self, event: MessageReceived) -> bool:
        self._recent_messages.append((event.observed_at, event.message_type))
        return False

    def _apply_connection_changed(self, event: ConnectionChanged) -> bool:
        self._connection = event.status
        if event.event is not None:
            self._connection_events.append(
                ConnectionEvent(event=event.event, at=event.observed_at, close_code=event.close_code)
            )
        return False

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def zones(self) -> tuple[Zone, ...]:
        return tuple(self._zones)

    def get_zone(self, zone_id: str) -> Zone | None:
        for zone in self._zones:
            if zone.id == zone_id:
                return zone
        return None

    @property
    def targets(self) -> tuple[Target, ...]:
        return self._targets

    @property
    def active_zone_ids(self) -> frozenset[str]:
        return self._active_zone_ids

    @property
    def deleting_zone_ids(self) -> frozenset[str]:
        return frozenset(self._deleting)

    @property
    def pending_zone_ids(self) -> frozenset[str]:
        return frozenset(self._pending)

    def oldest_pending_age(self) -> float | None:
        """Seconds since the oldest unconfirmed zone creation was sent."""
        if not self._pending:
            return None
        return self._clock() - min(self._pending.values())

    @property
    def occupancy_logs(self) -> Mapping[str, tuple[ZoneLogEntry, ...]]:
        """Client-derived transition logs, per zone, oldest first."""
        return {zone_id: tuple(entries) for zone_id, entries in self._occupancy_logs.items()}

    def occupancy_log(self, zone_id: str) -> tuple[ZoneLogEntry, ...]:
        return tuple(self._occupancy_logs.get(zone_id, ()))

    @property
    def zone_logs(self) -> Mapping[str, tuple[ZoneLogEntry, ...]]:
        """Zone history as last reported by the server."""
        return dict(self._zone_logs)

    @property
    def zone_logs_received(self) -> bool:
        return self._zone_logs_received

    @property
    def fall_logs(self) -> tuple[FallLogEntry, ...]:
        return self._fall_logs

    def sorted_fall_logs(self) -> list[FallLogEntry]:
        """Fall logs, newest first."""
        return sorted(self._fall_logs, key=lambda entry: entry.sort_key(), reverse=True)

    @property
    def fall_alert(self) -> bool:
        return self._fall_alert

    @property
    def new_fall_detected(self) -> bool:
        return self._new_fall_detected

    @property
    def last_fall_event(self) -> FallEvent | None:
        return self._last_fall_event

    @property
    def fall_settings(self) -> FallDetectionSettings | None:
        return self._fall_settings

    @property
    def selected_zone_id(self) -> str | None:
        return self._selected_zone_id

    @property
    def server_errors(self) -> tuple[ServerErrorReceived, ...]:
        return tuple(self._server_errors)

    @property
    def zone_events(self) -> tuple[dict[str, Any], ...]:
        return tuple(self._zone_events)

    @property
    def recent_messages(self) -> tuple[tuple[datetime, str], ...]:
        return tuple(self._recent_messages)

    @property
    def connection(self) -> ConnectionStatus:
        return self._connection

    @property
    def connection_events(self) -> tuple[ConnectionEvent, ...]:
        return tuple(self._connection_events)

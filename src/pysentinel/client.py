"""High-level async client for the radar server."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Any

import aiohttp
from pydantic import ValidationError

from pysentinel._codec import decode_message
from pysentinel._redact import summarize_for_log
from pysentinel._transport import AiohttpTransport, Transport
from pysentinel.config import SentinelConfig
from pysentinel.connection import ConnectionManager
from pysentinel.exceptions import SentinelDecodeError, SentinelError, SentinelServerError, SentinelZoneError
from pysentinel.ingestion.dispatch import MessageDispatcher
from pysentinel.models.fall import DeviceSettings, FallEvent
from pysentinel.models.messages import (
    DeleteZone,
    NewZone,
    Ping,
    RequestFallDetectionSettings,
    RequestLogs,
    RequestZones,
    UpdateConfig,
    UpdateFallDetectionSettings,
)
from pysentinel.models.zone import Point, Zone
from pysentinel.state.events import (
    FallAlertDismissed,
    FallsAcknowledged,
    ZoneAdded,
    ZoneCreationSent,
    ZoneDeleteAborted,
    ZoneDeleteRequested,
    ZoneSelected,
)
from pysentinel.state.store import StateStore

_logger = logging.getLogger(__name__)

PointLike = Point | tuple[float, float] | dict[str, Any]


def _as_point(value: PointLike) -> Point:
    if isinstance(value, Point):
        return value
    if isinstance(value, dict):
        return Point.model_validate(value)
    x, y = value
    return Point(x=x, y=y)


def build_zone(
    name: str,
    points: Sequence[PointLike],
    *,
    zone_id: str,
    existing: Iterable[Zone] = (),
) -> Zone:
    """Validate a locally drawn zone.

    Raises :class:`SentinelZoneError` when the name is empty or already
    used by another zone (case-insensitive), or when fewer than three
    points were given.
    """
    stripped = name.strip()
    if not stripped:
        raise SentinelZoneError("Zone name must not be empty")
    if any(zone.name.strip().lower() == stripped.lower() for zone in existing):
        raise SentinelZoneError(f"A zone named {stripped!r} already exists")
    if len(points) < 3:
        raise SentinelZoneError("A zone needs at least 3 points")
    try:
        vertices = tuple(_as_point(point) for point in points)
    except (TypeError, ValueError, ValidationError) as exc:
        raise SentinelZoneError(f"Invalid zone point: {exc}") from exc
    return Zone(id=zone_id, name=stripped, points=vertices)


class SentinelClient:
    """Async client for one radar server session.

    Usage::

        async with SentinelClient(SentinelConfig(host="192.168.1.10")) as client:
            await client.create_zone("Bed", [(0, 0), (2, 0), (2, 1)])
            print(client.store.active_zone_ids)

    Parameters
    ----------
    config : SentinelConfig
        Endpoint and timing configuration.
    session : aiohttp.ClientSession or None
        HTTP session used for the websocket. The client creates and closes
        its own when omitted.
    transport : Transport or None
        Overrides the aiohttp transport (tests pass an in-memory fake).
    on_fall_event : callable or None
        Called for every ``fall_event`` frame.
    on_server_error : callable or None
        Called for every error reported by the server.
    """

    def __init__(
        self,
        config: SentinelConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        store: StateStore | None = None,
        on_fall_event: Callable[[FallEvent], None] | None = None,
        on_server_error: Callable[[SentinelServerError], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._wall_clock = wall_clock
        self._store = store or StateStore(max_targets=config.max_targets)
        self._dispatcher = MessageDispatcher(
            self._store.apply,
            on_fall_event=on_fall_event,
            on_server_error=on_server_error,
        )
        self._manager: ConnectionManager | None = None
        self._clock = clock

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SentinelClient:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def start(self) -> None:
        """Open the connection; failures are retried in the background."""
        if self._manager is not None:
            return
        transport = self._transport
        if transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            transport = AiohttpTransport(self._http_session)
        self._manager = ConnectionManager(
            self._config,
            transport,
            self._store,
            on_frame=self._handle_frame,
            clock=self._clock,
            wall_clock=self._wall_clock,
        )
        await self._manager.start()

    async def close(self) -> None:
        if self._manager is not None:
            await self._manager.stop()
            self._manager = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> SentinelConfig:
        return self._config

    @property
    def store(self) -> StateStore:
        return self._store

    @property
    def connection(self) -> ConnectionManager:
        return self._require_manager()

    def _require_manager(self) -> ConnectionManager:
        if self._manager is None:
            raise SentinelError("Client not started. Use 'async with SentinelClient(...) as client:'")
        return self._manager

    def _handle_frame(self, payload: dict[str, Any]) -> None:
        try:
            message = decode_message(payload)
        except SentinelDecodeError as exc:
            _logger.warning("%s: %s", exc, summarize_for_log(payload))
            return
        self._dispatcher.dispatch(message)

    # ------------------------------------------------------------------
    # Zones
    # ------------------------------------------------------------------

    def _new_zone_id(self) -> str:
        taken = {zone.id for zone in self._store.zones}
        stamp = int(self._wall_clock() * 1000)
        while f"zone_{stamp}" in taken:
            stamp += 1
        return f"zone_{stamp}"

    async def create_zone(self, name: str, points: Sequence[PointLike]) -> Zone:
        """Add a zone locally and send it to the server.

        The zone is shown immediately and kept across server zone pushes
        until the server echoes it back. Returns the created zone even when
        the send failed; the periodic data check and the zone confirmation
        check recover from that.
        """
        manager = self._require_manager()
        zone = build_zone(name, points, zone_id=self._new_zone_id(), existing=self._store.zones)
        self._store.apply(ZoneAdded(zone=zone))
        _logger.info("Creating zone %s (%s)", zone.id, zone.name)
        if await manager.send(NewZone(zone=zone)):
            self._store.apply(ZoneCreationSent(zone_id=zone.id))
            manager.watch_pending_zones()
        return zone

    async def delete_zone(self, zone_id: str) -> bool:
        """Ask the server to delete a zone.

        The zone stays in the store (marked as deleting) until the server
        confirms with ``zone_deleted``.
        """
        manager = self._require_manager()
        if self._store.get_zone(zone_id) is None:
            raise SentinelZoneError(f"Unknown zone {zone_id!r}")
        self._store.apply(ZoneDeleteRequested(zone_id=zone_id))
        sent = await manager.send(DeleteZone(zone_id=zone_id))
        if not sent:
            self._store.apply(ZoneDeleteAborted(zone_id=zone_id))
        return sent

    async def select_zone(self, zone_id: str) -> bool:
        """Select a zone and fetch its server-side history."""
        self._store.apply(ZoneSelected(zone_id=zone_id))
        return await self.request_zone_logs(zone_id)

    def clear_selection(self) -> None:
        self._store.apply(ZoneSelected(zone_id=None))

    async def request_zones(self) -> bool:
        return await self._require_manager().send(RequestZones())

    async def request_zone_logs(self, zone_id: str | None = None) -> bool:
        return await self._require_manager().send(RequestLogs(zone_id=zone_id))

    # ------------------------------------------------------------------
    # Falls
    # ------------------------------------------------------------------

    async def request_fall_logs(self) -> bool:
        manager = self._require_manager()
        return await manager.send(manager.fall_logs_request())

    async def request_fall_detection_settings(self) -> bool:
        return await self._require_manager().send(RequestFallDetectionSettings())

    def dismiss_fall_alert(self) -> None:
        self._store.apply(FallAlertDismissed())

    async def acknowledge_falls(self) -> bool:
        """Clear the new-fall indicator and refresh the fall history."""
        self._store.apply(FallsAcknowledged())
        return await self.request_fall_logs()

    async def save_settings(self, settings: DeviceSettings) -> bool:
        """Push device settings; reconnects when the endpoint changed."""
        manager = self._require_manager()
        sent = await manager.send(UpdateFallDetectionSettings(settings=settings.fall_detection))
        sent = await manager.send(UpdateConfig(config=settings.to_server_config())) and sent

        if (settings.host, settings.port) != (self._config.host, self._config.port):
            self._config = self._config.with_endpoint(settings.host, settings.port)
            manager.set_endpoint(self._config)
        return sent

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def ensure_data_loaded(self) -> None:
        """Request whatever the session is still missing and refresh fall logs.

        Zones and zone logs are only requested while absent; fall logs and a
        ping go out on every call.
        """
        manager = self._require_manager()
        if not manager.is_open:
            _logger.info("Not connected, forcing reconnect to load data")
            manager.force_reconnect("data requested while disconnected")
            return
        if not self._store.zones:
            await manager.send(RequestZones())
        if not self._store.zone_logs_received:
            await manager.send(RequestLogs())
        await manager.send(manager.fall_logs_request())
        await manager.send(Ping())

    def force_reconnect(self) -> None:
        self._require_manager().force_reconnect("requested by user")

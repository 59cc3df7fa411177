"""Connection lifecycle for the radar server websocket.

Owns:
- the single live transport connection and its reader task
- the connect / backoff / forced-reconnect state machine
- liveness supervision (heartbeat, staleness, data completeness,
  pending-response escalation, periodic failure-counter reset)
- the post-connect resync sequence
- the send primitive every outbound intent goes through

Every timer role is an owned asyncio task; arming a role replaces the
previous task for that role, and every transition that supersedes the
connection cancels all of them.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Coroutine
from enum import StrEnum
from typing import Any

from pysentinel._codec import encode_intent, parse_frame
from pysentinel._constants import (
    CLOSE_ABNORMAL,
    CLOSE_FORCED_RECONNECT,
    CLOSE_NORMAL,
    EXPECTED_CLOSE_CODES,
)
from pysentinel._transport import Connection, FrameKind, Transport
from pysentinel.config import SentinelConfig
from pysentinel.exceptions import SentinelDecodeError, SentinelError
from pysentinel.models.connection import ConnectionState, ConnectionStatus
from pysentinel.models.messages import OutboundIntent, Ping, RequestFallLogs, RequestLogs, RequestZones
from pysentinel.state.events import ConnectionChanged
from pysentinel.state.store import StateStore

_logger = logging.getLogger(__name__)

FrameHandler = Callable[[dict[str, Any]], None]
TimerCallback = Callable[[], Awaitable[Any] | None]


class TimerRole(StrEnum):
    HEARTBEAT = "heartbeat"
    STALENESS = "staleness"
    DATA_CHECK = "data_check"
    RETRY = "retry"
    RESPONSE_TIMEOUT = "response_timeout"
    FAILURE_RESET = "failure_reset"
    RESYNC = "resync"
    ZONE_CONFIRMATION = "zone_confirmation"


def backoff_delay(failures: int, *, base: float, factor: float, cap: float) -> float:
    """Reconnect delay after *failures* consecutive abnormal closes (seconds)."""
    return min(base * factor ** max(failures, 0), cap)


class ConnectionManager:
    """Drives one long-lived websocket to the radar server.

    Parameters
    ----------
    config : SentinelConfig
        Endpoint and timing configuration.
    transport : Transport
        Opens websocket connections.
    store : StateStore
        Receives connection status changes; read for the data-completeness
        and pending-zone checks.
    on_frame : callable or None
        Receives every successfully parsed inbound JSON object, after the
        liveness bookkeeping has been updated.
    clock : callable
        Monotonic clock for liveness bookkeeping.
    wall_clock : callable
        Epoch clock (seconds) for fall-log query windows.
    """

    def __init__(
        self,
        config: SentinelConfig,
        transport: Transport,
        store: StateStore,
        *,
        on_frame: FrameHandler | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._transport = transport
        self._store = store
        self._on_frame = on_frame
        self._clock = clock
        self._wall_clock = wall_clock

        self._conn: Connection | None = None
        self._timers: dict[TimerRole, asyncio.Task[None]] = {}
        self._background: set[asyncio.Task[Any]] = set()
        self._state = ConnectionState.DISCONNECTED
        self._failures = 0
        self._connecting = False
        self._stopped = False
        self._last_attempt: float | None = None
        self._last_received = clock()
        self._last_sent: float | None = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def url(self) -> str:
        return self._config.url

    @property
    def is_open(self) -> bool:
        return self._conn is not None and self._conn.is_open

    @property
    def last_received(self) -> float:
        return self._last_received

    @property
    def last_sent(self) -> float | None:
        return self._last_sent

    @property
    def active_timers(self) -> frozenset[TimerRole]:
        return frozenset(role for role, task in self._timers.items() if not task.done())

    def set_frame_handler(self, handler: FrameHandler | None) -> None:
        self._on_frame = handler

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """Initial connection attempt."""
        self._stopped = False
        return await self.connect()

    async def connect(self) -> bool:
        """Try to open the connection.

        Returns ``True`` when the connection is open afterwards. Attempts
        are skipped while another attempt is in flight or when the previous
        attempt was less than ``min_connect_interval`` ago.
        """
        if self._stopped:
            return False
        if self._connecting:
            _logger.debug("Already attempting to connect, skipping duplicate attempt")
            return False
        if self.is_open:
            return True
        if self._interval_remaining() > 0:
            _logger.debug("Skipping connection attempt - too soon since last attempt")
            return False
        if self._failures >= self._config.max_reconnect_attempts:
            _logger.warning("Max reconnection attempts reached, waiting for a forced reconnect")
            self._set_state(ConnectionState.EXHAUSTED)
            return False

        self._connecting = True
        self._last_attempt = self._clock()
        self._cancel(TimerRole.RETRY)
        self._set_state(ConnectionState.CONNECTING)
        _logger.info("Connecting to %s", self.url)

        try:
            conn = await self._transport.open(self.url)
        except SentinelError as exc:
            _logger.warning("Connection attempt failed: %s", exc)
            self._connecting = False
            self._handle_close(getattr(exc, "close_code", None) or CLOSE_ABNORMAL, str(exc))
            return False
        except Exception:
            _logger.warning("Unexpected error opening %s", self.url, exc_info=True)
            self._connecting = False
            self._handle_close(CLOSE_ABNORMAL, "open failed")
            return False
        finally:
            self._connecting = False

        if self._stopped:
            await conn.close(code=CLOSE_NORMAL, reason="Client stopped")
            return False
        self._on_open(conn)
        return True

    async def stop(self) -> None:
        """Tear down: cancel every timer and close the connection."""
        self._stopped = True
        self._cancel_all()
        conn = self._conn
        self._conn = None
        if conn is not None:
            await conn.close(code=CLOSE_NORMAL, reason="Client closing")
        background = list(self._background)
        for task in background:
            task.cancel()
        if background:
            await asyncio.gather(*background, return_exceptions=True)
        self._background.clear()
        self._connecting = False
        if self._state != ConnectionState.DISCONNECTED:
            self._set_state(ConnectionState.DISCONNECTED, event="Stopped")

    def force_reconnect(self, reason: str = "requested") -> None:
        """Drop the current connection and reconnect after a short delay.

        Also the way out of ``exhausted``: the minimum-interval gate is
        rewound and the failure counter is clamped so a long-degraded
        session does not inherit the maximal backoff.
        """
        if self._stopped:
            return
        _logger.info("Force reconnecting websocket (%s)", reason)
        conn = self._conn
        self._conn = None
        if conn is not None:
            self._spawn(conn.close(code=CLOSE_FORCED_RECONNECT, reason="Force reconnection"))
        self._cancel_all()
        self._last_attempt = None
        self._failures = min(self._failures, self._config.force_reconnect_failure_clamp)
        self._set_state(ConnectionState.CONNECTING, event="Force reconnect")
        self._arm(TimerRole.RETRY, self._config.force_reconnect_delay, self._on_retry_timer)

    def set_endpoint(self, config: SentinelConfig) -> None:
        """Point at a new endpoint; reconnects when the URL changed."""
        previous = self.url
        self._config = config
        if config.url != previous and not self._stopped:
            _logger.info("Endpoint changed from %s to %s", previous, config.url)
            self.force_reconnect("endpoint changed")

    def _interval_remaining(self) -> float:
        if self._last_attempt is None:
            return 0.0
        return self._config.min_connect_interval - (self._clock() - self._last_attempt)

    def _on_open(self, conn: Connection) -> None:
        cfg = self._config
        self._conn = conn
        self._failures = 0
        self._last_received = self._clock()
        _logger.info("Websocket connected to %s", self.url)
        self._set_state(ConnectionState.CONNECTED, event="Connected")

        self._spawn(self._read_loop(conn))
        self._arm(TimerRole.RESYNC, cfg.resync_delay, self._resync)
        self._arm(TimerRole.HEARTBEAT, cfg.heartbeat_interval, self._heartbeat, repeat=True)
        self._arm(TimerRole.DATA_CHECK, cfg.data_check_interval, self._check_data, repeat=True)
        self._arm(TimerRole.STALENESS, cfg.staleness_check_interval, self._check_staleness, repeat=True)
        self._arm(TimerRole.FAILURE_RESET, cfg.failure_reset_interval, self._reset_failures, repeat=True)
        if self._store.pending_zone_ids:
            self.watch_pending_zones()

    def _handle_close(self, code: int | None, reason: str = "") -> None:
        cfg = self._config
        self._conn = None
        self._connecting = False
        self._cancel_all()
        _logger.info("Websocket disconnected, code: %s, reason: %s", code, reason or "-")

        if code in EXPECTED_CLOSE_CODES or self._failures >= cfg.max_reconnect_attempts:
            self._set_state(ConnectionState.DISCONNECTED, event="Disconnected", close_code=code)
            return

        delay = backoff_delay(
            self._failures,
            base=cfg.reconnect_base_delay,
            factor=cfg.reconnect_backoff_factor,
            cap=cfg.reconnect_max_delay,
        )
        self._failures += 1
        _logger.info(
            "Scheduling reconnection in %.1fs (failure %d/%d)",
            delay,
            self._failures,
            cfg.max_reconnect_attempts,
        )
        self._set_state(
            ConnectionState.RECONNECTING,
            retry_delay=delay,
            event="Disconnected",
            close_code=code,
        )
        self._arm(TimerRole.RETRY, delay, self._on_retry_timer)

    async def _on_retry_timer(self) -> None:
        wait = self._interval_remaining()
        if wait > 0:
            self._arm(TimerRole.RETRY, wait, self._on_retry_timer)
            return
        await self.connect()

    def _set_state(
        self,
        state: ConnectionState,
        *,
        retry_delay: float | None = None,
        event: str | None = None,
        close_code: int | None = None,
    ) -> None:
        self._state = state
        status = ConnectionStatus(state=state, retry_delay=retry_delay, failures=self._failures)
        self._store.apply(ConnectionChanged(status=status, event=event, close_code=close_code))

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def _read_loop(self, conn: Connection) -> None:
        try:
            while True:
                frame = await conn.receive()
                if conn is not self._conn:
                    return
                if frame.kind == FrameKind.TEXT:
                    self._handle_frame(frame.data)
                elif frame.kind == FrameKind.ERROR:
                    _logger.warning("Websocket error: %s", frame.reason)
                else:
                    self._handle_close(frame.close_code, frame.reason)
                    return
        except asyncio.CancelledError:
            raise
        except Exception:
            _logger.warning("Websocket receive failed", exc_info=True)
            if conn is self._conn:
                self._handle_close(CLOSE_ABNORMAL, "receive failed")

    def _handle_frame(self, text: str | bytes) -> None:
        try:
            payload = parse_frame(text)
        except SentinelDecodeError as exc:
            _logger.warning("Dropping undecodable frame: %s", exc)
            return

        self._last_received = self._clock()
        self._cancel(TimerRole.RESPONSE_TIMEOUT)

        handler = self._on_frame
        if handler is None:
            return
        try:
            handler(payload)
        except Exception:
            _logger.warning("Frame handler failed for %s", payload.get("type"), exc_info=True)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send(self, intent: OutboundIntent) -> bool:
        """Write one intent to the socket.

        Never queues: returns ``False`` (and logs a warning) when the
        connection is not open or the write fails. A successful write
        re-arms the single pending-response timer.
        """
        conn = self._conn
        if conn is None or not conn.is_open:
            _logger.warning("Cannot send %s, websocket not connected", intent.type)
            return False
        try:
            await conn.send_text(encode_intent(intent))
        except (SentinelError, ValueError) as exc:
            _logger.warning("Error sending %s: %s", intent.type, exc)
            return False

        self._last_sent = self._clock()
        _logger.debug("Sent %s", intent.type)
        self._arm(TimerRole.RESPONSE_TIMEOUT, self._config.response_timeout, self._on_response_timeout)
        return True

    def fall_logs_request(self) -> RequestFallLogs:
        """Fall-log query covering the configured look-back window."""
        now_ms = int(self._wall_clock() * 1000)
        return RequestFallLogs(start_time=now_ms - int(self._config.fall_log_window * 1000), end_time=now_ms)

    def watch_pending_zones(self) -> None:
        """Arm the zone-confirmation check unless it is already armed."""
        if TimerRole.ZONE_CONFIRMATION in self.active_timers:
            return
        self._arm(TimerRole.ZONE_CONFIRMATION, self._config.zone_confirmation_timeout, self._check_pending_zones)

    # ------------------------------------------------------------------
    # Supervision
    # ------------------------------------------------------------------

    async def _resync(self) -> None:
        if not self.is_open:
            return
        _logger.info("Requesting zones from server")
        await self.send(RequestZones())
        await asyncio.sleep(self._config.resync_stagger)
        if not self.is_open:
            return
        _logger.info("Requesting logs from server")
        await self.send(RequestLogs())
        await self.send(self.fall_logs_request())

    async def _heartbeat(self) -> None:
        if self.is_open:
            await self.send(Ping())
        elif self._state == ConnectionState.CONNECTED:
            _logger.warning("Heartbeat detected closed socket despite connected status, reconnecting")
            self.force_reconnect("heartbeat")

    async def _check_data(self) -> None:
        if not self.is_open:
            return
        if not self._store.zones:
            _logger.info("No zones loaded, requesting from server")
            await self.send(RequestZones())
        if not self._store.zone_logs_received:
            _logger.info("No logs received, requesting from server")
            await self.send(RequestLogs())

    def _check_staleness(self) -> None:
        silence = self._clock() - self._last_received
        if self.is_open and silence > self._config.stale_after:
            _logger.warning("No messages received for %.0fs, forcing reconnect", silence)
            self.force_reconnect("stale")

    def _on_response_timeout(self) -> None:
        _logger.info("No response received for message within timeout period")
        if self._clock() - self._last_received > self._config.response_grace:
            _logger.warning("Server appears to be stuck, forcing reconnect")
            self.force_reconnect("response timeout")

    def _reset_failures(self) -> None:
        if self._state == ConnectionState.CONNECTED and self._failures:
            _logger.debug("Resetting failure counter after sustained connection")
            self._failures = 0

    def _check_pending_zones(self) -> None:
        pending = self._store.pending_zone_ids
        age = self._store.oldest_pending_age()
        if not pending or age is None or self._state != ConnectionState.CONNECTED:
            return
        timeout = self._config.zone_confirmation_timeout
        if age < timeout:
            self._arm(TimerRole.ZONE_CONFIRMATION, timeout - age, self._check_pending_zones)
            return
        _logger.warning("Zones pending for too long (%d zones), forcing server reconnection", len(pending))
        self.force_reconnect("zone confirmation timeout")

    # ------------------------------------------------------------------
    # Timer plumbing
    # ------------------------------------------------------------------

    def _arm(self, role: TimerRole, delay: float, callback: TimerCallback, *, repeat: bool = False) -> None:
        self._cancel(role)
        task = asyncio.get_running_loop().create_task(
            self._run_timer(role, delay, callback, repeat),
            name=f"pysentinel-{role}",
        )
        self._timers[role] = task

    async def _run_timer(self, role: TimerRole, delay: float, callback: TimerCallback, repeat: bool) -> None:
        me = asyncio.current_task()
        try:
            while True:
                await asyncio.sleep(delay)
                if self._timers.get(role) is not me:
                    return
                try:
                    result = callback()
                    if inspect.isawaitable(result):
                        await result
                except asyncio.CancelledError:
                    raise
                except Exception:
                    _logger.warning("Timer %s callback failed", role, exc_info=True)
                if not repeat or self._timers.get(role) is not me:
                    return
        finally:
            if self._timers.get(role) is me:
                del self._timers[role]

    def _cancel(self, role: TimerRole) -> None:
        task = self._timers.pop(role, None)
        if task is None or task.done():
            return
        # A timer that supersedes itself (e.g. a retry that reconnects) keeps running to completion.
        if task is not asyncio.current_task():
            task.cancel()

    def _cancel_all(self) -> None:
        for role in list(self._timers):
            self._cancel(role)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)


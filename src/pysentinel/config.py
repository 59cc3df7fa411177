"""Client configuration for pysentinel."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pysentinel._constants import DEFAULT_HOST, DEFAULT_PORT, MAX_TARGETS
from pysentinel.exceptions import SentinelConfigError


@dataclasses.dataclass(frozen=True)
class SentinelConfig:
    """Client configuration.

    All durations are in seconds.

    Parameters
    ----------
    host : str
        Hostname or IP of the radar server.
    port : int
        Websocket port of the radar server.
    path : str
        Request path appended to ``ws://host:port``.
    max_targets : int
        Upper bound on targets kept from a single ``target_update``. When a
        frame carries more, the oldest (leading) entries are dropped.
    min_connect_interval : float
        Minimum spacing between two connection attempts.
    max_reconnect_attempts : int
        Consecutive abnormal closes tolerated before automatic reconnection
        stops.
    reconnect_base_delay : float
        Backoff delay after the first abnormal close.
    reconnect_backoff_factor : float
        Multiplier applied per consecutive failure.
    reconnect_max_delay : float
        Backoff ceiling.
    force_reconnect_delay : float
        Delay between a forced reconnect request and the new attempt.
    force_reconnect_failure_clamp : int
        Failure counter ceiling applied by a forced reconnect.
    resync_delay : float
        Delay between ``connected`` and the zone-list request.
    resync_stagger : float
        Delay between the zone-list request and the log requests.
    heartbeat_interval : float
        Ping period.
    data_check_interval : float
        Period of the zones/logs completeness check.
    staleness_check_interval : float
        Period of the inbound-silence check.
    stale_after : float
        Inbound silence after which an open connection is presumed dead.
    response_timeout : float
        Time after a send before the pending-response check fires.
    response_grace : float
        Recent-traffic window that keeps the pending-response check quiet.
    failure_reset_interval : float
        While connected, the failure counter is zeroed at this period.
    zone_confirmation_timeout : float
        Time a locally created zone may wait for the server echo before a
        reconnect is forced.
    fall_log_window : float
        Look-back window used by fall-log requests.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    path: str = ""
    max_targets: int = MAX_TARGETS
    min_connect_interval: float = 5.0
    max_reconnect_attempts: int = 5
    reconnect_base_delay: float = 5.0
    reconnect_backoff_factor: float = 1.5
    reconnect_max_delay: float = 30.0
    force_reconnect_delay: float = 1.0
    force_reconnect_failure_clamp: int = 3
    resync_delay: float = 0.1
    resync_stagger: float = 0.5
    heartbeat_interval: float = 30.0
    data_check_interval: float = 30.0
    staleness_check_interval: float = 30.0
    stale_after: float = 120.0
    response_timeout: float = 15.0
    response_grace: float = 15.0
    failure_reset_interval: float = 300.0
    zone_confirmation_timeout: float = 30.0
    fall_log_window: float = 24 * 3600

    def __post_init__(self) -> None:
        if not self.host.strip():
            raise SentinelConfigError("host must be non-empty")
        if not 0 < self.port < 65536:
            raise SentinelConfigError(f"port must be in 1-65535, got {self.port}")
        if self.max_reconnect_attempts < 1:
            raise SentinelConfigError("max_reconnect_attempts must be at least 1")
        if self.reconnect_backoff_factor < 1.0:
            raise SentinelConfigError("reconnect_backoff_factor must be >= 1.0")
        if self.max_targets < 1:
            raise SentinelConfigError("max_targets must be at least 1")

    @property
    def url(self) -> str:
        """Websocket URL of the configured endpoint."""
        path = self.path if not self.path or self.path.startswith("/") else f"/{self.path}"
        return f"ws://{self.host}:{self.port}{path}"

    def with_endpoint(self, host: str, port: int) -> SentinelConfig:
        """Return a copy pointing at another endpoint."""
        return dataclasses.replace(self, host=host, port=port)

    @classmethod
    def from_env(cls, **overrides: Any) -> SentinelConfig:
        """Create configuration from environment variables.

        Reads ``SENTINEL_HOST``, ``SENTINEL_PORT``, ``SENTINEL_PATH`` and the
        timing knobs ``SENTINEL_HEARTBEAT_INTERVAL``,
        ``SENTINEL_STALE_AFTER``, ``SENTINEL_RESPONSE_TIMEOUT`` and
        ``SENTINEL_MAX_RECONNECT_ATTEMPTS``. Explicit keyword arguments
        override environment values.

        Raises
        ------
        SentinelConfigError
            If a numeric variable cannot be parsed.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        for env_key, field_name in (("SENTINEL_HOST", "host"), ("SENTINEL_PATH", "path")):
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type]] = {
            "SENTINEL_PORT": ("port", int),
            "SENTINEL_MAX_RECONNECT_ATTEMPTS": ("max_reconnect_attempts", int),
            "SENTINEL_HEARTBEAT_INTERVAL": ("heartbeat_interval", float),
            "SENTINEL_STALE_AFTER": ("stale_after", float),
            "SENTINEL_RESPONSE_TIMEOUT": ("response_timeout", float),
        }
        for env_key, (field_name, caster) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = caster(val)
            except ValueError as exc:
                raise SentinelConfigError(f"{env_key} is not a valid {caster.__name__}: {val!r}") from exc

        config_kwargs.update(overrides)

        return cls(**config_kwargs)

"""pysentinel - Async Python client for a radar zone-occupancy and fall-detection server."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pysentinel")
except PackageNotFoundError:
    __version__ = "0+local"
from pysentinel.client import SentinelClient, build_zone
from pysentinel.config import SentinelConfig
from pysentinel.connection import ConnectionManager, TimerRole, backoff_delay
from pysentinel.exceptions import (
    SentinelConfigError,
    SentinelDecodeError,
    SentinelError,
    SentinelServerError,
    SentinelTransportError,
    SentinelZoneError,
)
from pysentinel.geometry import point_in_polygon
from pysentinel.models import (
    ConnectionState,
    ConnectionStatus,
    DeviceSettings,
    FallDetectionSettings,
    FallEvent,
    FallLogEntry,
    OccupancyType,
    Point,
    Target,
    Zone,
    ZoneLogEntry,
)
from pysentinel.occupancy import OccupancyEngine
from pysentinel.state.store import StateStore

__all__ = [
    "__version__",
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    "DeviceSettings",
    "FallDetectionSettings",
    "FallEvent",
    "FallLogEntry",
    "OccupancyEngine",
    "OccupancyType",
    "Point",
    "SentinelClient",
    "SentinelConfig",
    "SentinelConfigError",
    "SentinelDecodeError",
    "SentinelError",
    "SentinelServerError",
    "SentinelTransportError",
    "SentinelZoneError",
    "StateStore",
    "Target",
    "TimerRole",
    "Zone",
    "ZoneLogEntry",
    "backoff_delay",
    "build_zone",
    "point_in_polygon",
]

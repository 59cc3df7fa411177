"""Internal constants shared across the library."""

DEFAULT_HOST = "192.168.29.28"
DEFAULT_PORT = 9001

# Websocket close codes that mean "the peer hung up on purpose".
CLOSE_NORMAL = 1000
CLOSE_GOING_AWAY = 1001
CLOSE_ABNORMAL = 1006
CLOSE_FORCED_RECONNECT = 3001
EXPECTED_CLOSE_CODES: frozenset[int] = frozenset({CLOSE_NORMAL, CLOSE_GOING_AWAY})

MAX_TARGETS = 20
MAX_RECENT_MESSAGES = 50
MAX_CONNECTION_EVENTS = 10
MAX_SERVER_ERRORS = 20

# ------------------------------------------------------------------
# Fall-detection sensitivity  (server 0-1  <->  settings slider 0-100)
# ------------------------------------------------------------------

_SLIDER_MAX = 100


def sensitivity_to_slider(sensitivity: float) -> int:
    """Convert a server-side sensitivity (0-1) to the settings slider scale (0-100)."""
    return max(0, min(_SLIDER_MAX, int(round(float(sensitivity) * _SLIDER_MAX))))


def slider_to_sensitivity(value: float) -> float:
    """Convert a slider position (0-100) back to the server range (0-1).

    Raises :class:`ValueError` if *value* is outside the slider range.
    """
    rounded = int(round(float(value)))
    if not 0 <= rounded <= _SLIDER_MAX:
        raise ValueError(f"slider value must be between 0 and {_SLIDER_MAX}, got {value}")
    return rounded / _SLIDER_MAX

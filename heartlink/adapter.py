"""Bluetooth adapter power and authorization state."""

import logging
import sys
from collections.abc import Callable
from enum import Enum

logger = logging.getLogger(__name__)


class AdapterState(Enum):
    UNKNOWN = "unknown"
    UNSUPPORTED = "unsupported"
    UNAUTHORIZED = "unauthorized"
    POWERED_OFF = "powered_off"
    POWERED_ON = "powered_on"


class Authorization(Enum):
    ALLOWED = "allowed"
    NOT_DETERMINED = "not_determined"
    DENIED = "denied"


# Substrings of backend error messages, checked in order
_ERROR_PATTERNS: list[tuple[str, AdapterState]] = [
    ("unsupported", AdapterState.UNSUPPORTED),
    ("no bluetooth adapter", AdapterState.UNSUPPORTED),
    ("not authorized", AdapterState.UNAUTHORIZED),
    ("notauthorized", AdapterState.UNAUTHORIZED),
    ("permission", AdapterState.UNAUTHORIZED),
    ("access denied", AdapterState.UNAUTHORIZED),
    ("turned off", AdapterState.POWERED_OFF),
    ("not powered", AdapterState.POWERED_OFF),
    ("notready", AdapterState.POWERED_OFF),
    ("radio is off", AdapterState.POWERED_OFF),
]


def classify_adapter_error(error: BaseException) -> AdapterState | None:
    """Map a backend error to the adapter state it implies.

    Returns:
        The implied AdapterState, or None if the error says nothing about
        adapter availability
    """
    message = str(error).lower()
    for pattern, state in _ERROR_PATTERNS:
        if pattern in message:
            return state
    return None


def authorization_status() -> Authorization:
    """Ask the platform whether this process may use Bluetooth.

    Platforms without an authorization API always answer ALLOWED.
    """
    if sys.platform != "darwin":
        return Authorization.ALLOWED

    try:
        from CoreBluetooth import CBManager
    except ImportError:
        return Authorization.ALLOWED

    # CBManager.authorization only exists on macOS 10.15+
    if not hasattr(CBManager, "authorization"):
        return Authorization.ALLOWED

    # CBManagerAuthorization: 0 not determined, 1 restricted, 2 denied, 3 allowed always
    value = CBManager.authorization()
    if value == 3:
        return Authorization.ALLOWED
    if value == 0:
        return Authorization.NOT_DETERMINED
    return Authorization.DENIED


class AdapterObserver:
    """Tracks adapter state and answers whether radio operations are permitted."""

    def __init__(self, authorization: Callable[[], Authorization] = authorization_status):
        self._authorization = authorization
        self.state = AdapterState.UNKNOWN

    @property
    def is_powered_on(self) -> bool:
        return self.state is AdapterState.POWERED_ON

    @property
    def is_authorized(self) -> bool:
        return self._authorization() is Authorization.ALLOWED

    def may_scan(self) -> bool:
        """Scanning needs power and an authorization that is allowed or still pending."""
        if not self.is_powered_on:
            return False
        return self._authorization() is not Authorization.DENIED

    def update(self, state: AdapterState) -> AdapterState | None:
        """Record a new adapter state.

        Returns:
            The previous state if it changed, otherwise None
        """
        if state is self.state:
            return None
        previous, self.state = self.state, state
        logger.info("Adapter state: %s -> %s", previous.value, state.value)
        return previous

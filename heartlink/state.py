"""Observable session state published to the UI collaborator."""

from dataclasses import dataclass, field
from enum import Enum

from .adapter import AdapterState
from .registry import Device


class ConnectionState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    DISCOVERING_SERVICES = "discovering_services"
    DISCOVERING_CHARACTERISTICS = "discovering_characteristics"
    SUBSCRIBED = "subscribed"


@dataclass(frozen=True)
class PublishedState:
    """Immutable snapshot of everything the collaborator may display."""

    devices: tuple[Device, ...] = field(default_factory=tuple)
    selected: Device | None = None
    heart_rate: int | None = None  # Only set while SUBSCRIBED
    is_scanning: bool = False
    adapter_state: AdapterState = AdapterState.UNKNOWN
    connection_state: ConnectionState = ConnectionState.IDLE

    def to_message(self) -> dict:
        """Build the JSON-serializable form sent to clients."""
        return {
            "type": "state",
            "devices": [_device_dict(d) for d in self.devices],
            "selected": _device_dict(self.selected) if self.selected else None,
            "heart_rate": self.heart_rate,
            "scanning": self.is_scanning,
            "adapter": self.adapter_state.value,
            "connection": self.connection_state.value,
        }


def _device_dict(device: Device) -> dict[str, str | None]:
    return {"id": device.identifier, "name": device.display_name}

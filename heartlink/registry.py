"""Discovered device registry, deduplicated by identifier."""

from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class Device:
    """A discovered heart rate peripheral."""

    identifier: str
    display_name: str | None = None  # None if the device never advertised a name

    @property
    def sort_key(self) -> tuple[str, str]:
        return (self.display_name or "", self.identifier)


class DeviceRegistry:
    """Devices seen during the current scan session, keyed by identifier.

    Entries are only ever removed all at once via reset().
    """

    def __init__(self) -> None:
        self._devices: dict[str, Device] = {}

    def reset(self) -> None:
        """Forget every device."""
        self._devices.clear()

    def upsert(self, identifier: str, display_name: str | None = None) -> bool:
        """Insert or refresh a device.

        A missing name does not erase a name already known for the device.

        Returns:
            True if the registry contents changed
        """
        existing = self._devices.get(identifier)
        if display_name is None and existing is not None:
            display_name = existing.display_name

        device = Device(identifier, display_name)
        if device == existing:
            return False
        self._devices[identifier] = device
        return True

    def get(self, identifier: str) -> Device | None:
        return self._devices.get(identifier)

    def sorted(self) -> Iterator[Device]:
        """Iterate devices by display name, ties broken by identifier.

        Each call returns a fresh iterator over a snapshot of the registry.
        """
        return iter(sorted(self._devices.values(), key=lambda d: d.sort_key))

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._devices

    def __len__(self) -> int:
        return len(self._devices)

"""Shared test helper functions for heartlink tests."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

from heartlink.adapter import AdapterState
from heartlink.events import (
    AdapterStateChanged,
    Advertisement,
    LinkEstablished,
    SelectDevice,
    SubscribeSucceeded,
)


def make_hr_packet(
    bpm: int,
    *,
    is_16bit: bool = False,
    sensor_contact: bool | None = None,
    energy: int | None = None,
    rr_intervals: list[int] | None = None,
) -> bytes:
    """Build a BLE HR measurement packet.

    Args:
        bpm: Heart rate in BPM
        is_16bit: If True, use 16-bit BPM format
        sensor_contact: None=not supported, True=detected, False=not detected
        energy: Energy expended in joules (if supported)
        rr_intervals: RR intervals in 1/1024 second units

    Returns:
        Raw bytes for HR measurement characteristic
    """
    flags = 0
    if is_16bit:
        flags |= 0b1
    if sensor_contact is not None:
        flags |= 0b100
        if sensor_contact:
            flags |= 0b10
    if energy is not None:
        flags |= 0b1000
    if rr_intervals:
        flags |= 0b10000

    data = bytearray([flags])
    data.extend(bpm.to_bytes(2 if is_16bit else 1, "little"))
    if energy is not None:
        data.extend(energy.to_bytes(2, "little"))
    for rr in rr_intervals or []:
        data.extend(rr.to_bytes(2, "little"))
    return bytes(data)


class FakeSession:
    """Stand-in for BleakSession that records what the manager asked of it."""

    def __init__(self, generation: int, post):
        self.generation = generation
        self.post = post
        self.opened = False
        self.closed = False
        self.scanning = False
        self.scan_starts = 0
        self.connects: list[str] = []
        self.cancelled_links = 0
        self.subscriptions: list[str] = []
        self.service: object | None = MagicMock(name="hr_service")
        self.characteristic: object | None = MagicMock(name="hr_measurement")

    def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.closed = True
        self.scanning = False

    async def start_scan(self) -> None:
        self.scanning = True
        self.scan_starts += 1

    async def stop_scan(self) -> None:
        self.scanning = False

    def connect(self, identifier: str) -> None:
        self.connects.append(identifier)

    def cancel_link(self) -> None:
        self.cancelled_links += 1

    def find_hr_service(self):
        return self.service

    def find_hr_characteristic(self, service):
        return self.characteristic

    def subscribe(self, identifier: str, characteristic) -> None:
        self.subscriptions.append(identifier)


async def drain(manager) -> None:
    """Let zero-delay timers fire, then handle everything queued."""
    await asyncio.sleep(0.01)
    while not manager._events.empty():
        await manager.handle(manager._events.get_nowait())


async def power_on(manager, session: FakeSession) -> None:
    await manager.handle(AdapterStateChanged(session.generation, AdapterState.POWERED_ON))


async def subscribe_device(
    manager,
    session: FakeSession,
    identifier: str = "AA:BB:CC:DD:EE:FF",
    name: str | None = "Polar H10",
) -> None:
    """Drive the manager from power-on to SUBSCRIBED for one device."""
    await power_on(manager, session)
    await manager.handle(Advertisement(session.generation, identifier, name))
    await manager.handle(SelectDevice(identifier))
    await manager.handle(LinkEstablished(session.generation, identifier))
    await manager.handle(SubscribeSucceeded(session.generation, identifier))


def recording_factory(sessions: list[FakeSession]):
    """Session factory that appends every FakeSession it builds to ``sessions``."""

    def factory(generation: int, post) -> FakeSession:
        session = FakeSession(generation, post)
        sessions.append(session)
        return session

    return factory

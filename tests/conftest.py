"""Shared test fixtures for heartlink tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from heartlink.adapter import AdapterObserver, Authorization
from heartlink.manager import HeartRateManager
from tests.helpers import FakeSession, make_hr_packet, recording_factory


@pytest.fixture
def hr_packet_simple() -> bytes:
    """Simple 8-bit BPM packet (72 bpm)."""
    return make_hr_packet(72)


@pytest.fixture
def hr_packet_16bit() -> bytes:
    """16-bit BPM packet (180 bpm)."""
    return make_hr_packet(180, is_16bit=True)


@pytest.fixture
def hr_packet_full() -> bytes:
    """Packet with all fields populated."""
    return make_hr_packet(
        150,
        is_16bit=True,
        sensor_contact=True,
        energy=1500,
        rr_intervals=[800, 850],
    )


# Manager fixtures
@pytest.fixture
def sessions() -> list[FakeSession]:
    """Every session the manager has created, oldest first."""
    return []


@pytest.fixture
def on_state():
    return AsyncMock()


@pytest.fixture
def manager(sessions, on_state) -> HeartRateManager:
    """Manager with fake radio sessions, zero delays and an opened first session."""
    mgr = HeartRateManager(
        on_state=on_state,
        disconnect_restart_delay=0,
        scan_restart_delay=0,
        session_recreate_delay=0,
        session_factory=recording_factory(sessions),
        adapter=AdapterObserver(authorization=lambda: Authorization.ALLOWED),
    )
    mgr.open()
    return mgr


# Mock fixtures for BLE
@pytest.fixture
def mock_ble_device():
    """Create a mock BLEDevice."""
    device = MagicMock()
    device.address = "AA:BB:CC:DD:EE:FF"
    device.name = "HR Monitor"
    return device


@pytest.fixture
def mock_advertisement_data():
    """Create mock AdvertisementData with HR service UUID."""
    from bleak.uuids import normalize_uuid_str

    adv = MagicMock()
    adv.service_uuids = [normalize_uuid_str("180D")]
    adv.local_name = None
    return adv


# Mock fixtures for WebSocket
@pytest.fixture
def mock_websocket():
    """Create a mock WebSocket connection."""
    ws = AsyncMock()
    ws.send = AsyncMock()
    ws.close = AsyncMock()
    ws.remote_address = ("127.0.0.1", 50000)
    return ws


# Config fixtures
@pytest.fixture
def sample_config_dict() -> dict:
    """Sample config dict as would be parsed from TOML."""
    return {
        "server": {
            "host": "0.0.0.0",
            "port": 9000,
            "broadcast_timeout": 1.0,
            "log_level": "DEBUG",
        },
        "ble": {
            "scan_timeout": 10.0,
            "connect_timeout": 15.0,
            "adapter_poll_interval": 2.0,
            "disconnect_restart_delay": 0.2,
            "scan_restart_delay": 1.0,
            "session_recreate_delay": 1.5,
        },
        "device": {
            "address": "11:22:33:44:55:66",
        },
    }


@pytest.fixture
def partial_config_dict() -> dict:
    """Partial config dict with some values missing."""
    return {
        "server": {"port": 8080},
        "ble": {"scan_timeout": 3.0},
    }

"""BLE heart rate session manager."""

from .adapter import AdapterObserver, AdapterState, Authorization, authorization_status
from .ble import BleakSession, scan_hr_devices
from .config import Config, load_config
from .log import setup_logging
from .manager import HeartRateManager
from .parser import decode_heart_rate
from .registry import Device, DeviceRegistry
from .server import StateServer
from .state import ConnectionState, PublishedState

__all__ = [
    "decode_heart_rate",
    "Device",
    "DeviceRegistry",
    "AdapterObserver",
    "AdapterState",
    "Authorization",
    "authorization_status",
    "BleakSession",
    "scan_hr_devices",
    "HeartRateManager",
    "ConnectionState",
    "PublishedState",
    "Config",
    "load_config",
    "setup_logging",
    "StateServer",
]

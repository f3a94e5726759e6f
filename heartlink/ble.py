"""BLE radio session: scanning, connection and adapter probing via bleak."""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from functools import partial
from typing import Any

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.backends.service import BleakGATTService
from bleak.exc import BleakError
from bleak.uuids import normalize_uuid_str

from .adapter import AdapterState, classify_adapter_error
from .events import (
    AdapterStateChanged,
    Advertisement,
    ConnectFailed,
    Event,
    LinkEstablished,
    LinkLost,
    Notification,
    SubscribeFailed,
    SubscribeSucceeded,
)
from .registry import Device, DeviceRegistry

logger = logging.getLogger(__name__)

HR_SERVICE_UUID = normalize_uuid_str("180D")
HR_CHAR_UUID = normalize_uuid_str("2A37")

EventSink = Callable[[Event], None]


async def scan_hr_devices(timeout: float = 5.0) -> list[Device]:
    """Scan once for BLE devices advertising the Heart Rate service.

    Args:
        timeout: Scan duration in seconds

    Returns:
        Discovered devices sorted by name
    """
    registry = DeviceRegistry()

    def detection_callback(device: BLEDevice, adv: AdvertisementData) -> None:
        if HR_SERVICE_UUID in (adv.service_uuids or []):
            if registry.upsert(device.address, adv.local_name or device.name):
                logger.debug("Discovered: %s (%s)", device.name, device.address)

    scanner = BleakScanner(detection_callback=detection_callback, service_uuids=[HR_SERVICE_UUID])
    await scanner.start()
    await asyncio.sleep(timeout)
    await scanner.stop()

    logger.debug("Scan complete, found %d device(s)", len(registry))
    return list(registry.sorted())


class BleakSession:
    """One adapter session: a scanner, at most one client, and an adapter probe.

    The session performs radio I/O only. Every outcome is handed to ``post``
    as an event tagged with this session's generation; the session never
    decides what happens next.
    """

    def __init__(
        self,
        generation: int,
        post: EventSink,
        connect_timeout: float = 10.0,
        poll_interval: float = 5.0,
    ):
        self.generation = generation
        self._post = post
        self._connect_timeout = connect_timeout
        self._poll_interval = poll_interval
        self._scanner: BleakScanner | None = None
        self._scan_wanted = False
        self._scan_lock = asyncio.Lock()
        self._client: BleakClient | None = None
        self._link_wanted = False
        self._seen: dict[str, BLEDevice] = {}
        self._adapter_state: AdapterState | None = None
        self._watch_task: asyncio.Task | None = None
        self._link_tasks: set[asyncio.Task] = set()
        self._background: set[asyncio.Task] = set()

    # Lifecycle

    def open(self) -> None:
        """Start observing the adapter; the first probe reports its state."""
        if self._watch_task is None:
            self._watch_task = asyncio.create_task(self._watch_adapter())

    async def close(self) -> None:
        """Tear down everything this session owns."""
        logger.debug("Closing session %d", self.generation)
        if self._watch_task is not None:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
            self._watch_task = None
        self.cancel_link()
        await self.stop_scan()
        for task in list(self._background):
            try:
                await task
            except asyncio.CancelledError:
                pass

    # Scanning

    @property
    def is_scanning(self) -> bool:
        return self._scanner is not None

    def _detection_callback(self, device: BLEDevice, adv: AdvertisementData) -> None:
        """Forward HR advertisements to the manager."""
        if HR_SERVICE_UUID not in (adv.service_uuids or []):
            return
        self._seen[device.address] = device
        self._post(Advertisement(self.generation, device.address, adv.local_name or device.name))

    async def _start_scanner(self) -> None:
        scanner = BleakScanner(
            detection_callback=self._detection_callback,
            service_uuids=[HR_SERVICE_UUID],
        )
        await scanner.start()
        self._scanner = scanner

    async def _stop_scanner(self) -> None:
        scanner, self._scanner = self._scanner, None
        if scanner is None:
            return
        try:
            await scanner.stop()
        except Exception as e:
            logger.debug("Error stopping scanner: %s", e)

    async def start_scan(self) -> None:
        """Start scanning for HR devices; no-op if already scanning."""
        self._scan_wanted = True
        async with self._scan_lock:
            if self._scanner is not None:
                return
            try:
                await self._start_scanner()
                logger.debug("Scanning started")
            except Exception as e:
                # The adapter probe retries while the scan is still wanted
                logger.warning("Failed to start scan: %s", e)
                self._report_adapter_error(e)

    async def stop_scan(self) -> None:
        """Stop scanning; no-op if not scanning."""
        self._scan_wanted = False
        async with self._scan_lock:
            if self._scanner is not None:
                await self._stop_scanner()
                logger.debug("Scanning stopped")

    # Connection

    def connect(self, identifier: str) -> None:
        """Connect to a device in the background.

        The outcome arrives as LinkEstablished or ConnectFailed; a later link
        loss arrives as LinkLost.
        """
        self.cancel_link()
        self._link_wanted = True
        self._spawn_link(self._connect(identifier))

    async def _connect(self, identifier: str) -> None:
        target = self._seen.get(identifier, identifier)
        client = BleakClient(
            target,
            disconnected_callback=self._on_disconnected,
            services=[HR_SERVICE_UUID],
            timeout=self._connect_timeout,
        )
        self._client = client
        try:
            # Waits out an in-flight probe scan; no scan may run during connect
            async with self._scan_lock:
                logger.debug("Connecting to %s...", identifier)
                await client.connect()
        except Exception as e:
            logger.warning("Connection to %s failed: %s", identifier, e)
            if self._client is client:
                self._client = None
                self._link_wanted = False
                self._post(ConnectFailed(self.generation, identifier, str(e)))
            return
        if self._client is client:
            self._post(LinkEstablished(self.generation, identifier))

    def _on_disconnected(self, client: BleakClient) -> None:
        """Report link loss for the current client only."""
        if client is not self._client:
            return
        self._client = None
        self._link_wanted = False
        self._post(LinkLost(self.generation, client.address))

    def cancel_link(self) -> None:
        """Abort any pending connect or subscribe and drop the current link."""
        self._link_wanted = False
        for task in list(self._link_tasks):
            task.cancel()
        client, self._client = self._client, None
        if client is not None:
            task = asyncio.create_task(self._disconnect_client(client))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    async def _disconnect_client(self, client: BleakClient) -> None:
        try:
            if client.is_connected:
                await client.disconnect()
                logger.debug("Disconnected from %s", client.address)
        except Exception as e:
            logger.debug("Error while disconnecting: %s", e)

    # GATT

    def find_hr_service(self) -> BleakGATTService | None:
        """Return the Heart Rate service of the connected device, if present."""
        if self._client is None:
            return None
        try:
            return self._client.services.get_service(HR_SERVICE_UUID)
        except BleakError as e:
            logger.debug("Service lookup failed: %s", e)
            return None

    @staticmethod
    def find_hr_characteristic(service: BleakGATTService) -> BleakGATTCharacteristic | None:
        """Return the Heart Rate Measurement characteristic within ``service``."""
        return service.get_characteristic(HR_CHAR_UUID)

    def subscribe(self, identifier: str, characteristic: BleakGATTCharacteristic) -> None:
        """Enable notifications in the background."""
        self._spawn_link(self._subscribe(identifier, characteristic))

    async def _subscribe(self, identifier: str, characteristic: BleakGATTCharacteristic) -> None:
        client = self._client
        if client is None:
            return
        try:
            await client.start_notify(characteristic, partial(self._on_notify, identifier))
        except Exception as e:
            logger.warning("Subscribe to HR notifications failed: %s", e)
            self._post(SubscribeFailed(self.generation, identifier, str(e)))
            return
        self._post(SubscribeSucceeded(self.generation, identifier))

    def _on_notify(self, identifier: str, _: BleakGATTCharacteristic, data: bytearray) -> None:
        self._post(Notification(self.generation, identifier, bytes(data)))

    # Adapter observation

    def _report_adapter_error(self, error: BaseException) -> None:
        state = classify_adapter_error(error)
        if state is not None:
            self._set_adapter_state(state)

    def _set_adapter_state(self, state: AdapterState) -> None:
        if state is self._adapter_state:
            return
        self._adapter_state = state
        self._post(AdapterStateChanged(self.generation, state))

    @property
    def _link_active(self) -> bool:
        """True from connect() until the link is cancelled, fails or is lost."""
        return self._link_wanted or self._client is not None

    async def _probe(self) -> AdapterState | None:
        """Check that the radio still works.

        Restarts the active scanner, or runs a very short scan when idle.
        Skipped while a link exists.
        """
        if self._link_active:
            return None
        async with self._scan_lock:
            if self._link_active:
                return None
            try:
                if self._scan_wanted:
                    await self._stop_scanner()
                    await self._start_scanner()
                else:
                    probe = BleakScanner(service_uuids=[HR_SERVICE_UUID])
                    await probe.start()
                    await probe.stop()
            except Exception as e:
                state = classify_adapter_error(e)
                if state is None:
                    logger.warning("Adapter probe failed: %s", e)
                return state
        return AdapterState.POWERED_ON

    async def _watch_adapter(self) -> None:
        """Probe the adapter periodically and post state changes."""
        while True:
            state = await self._probe()
            if state is not None:
                self._set_adapter_state(state)
            await asyncio.sleep(self._poll_interval)

    def _spawn_link(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._link_tasks.add(task)
        task.add_done_callback(self._link_tasks.discard)

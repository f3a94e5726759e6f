"""Heart rate session manager.

Owns the single selected device and drives it through connect, discovery
and subscription. Every input, whether a command from the UI or a result
from the radio, arrives on one queue and is handled serially by ``run()``.

Recovery is a full reset: a failed connect, a lost link or an explicit
disconnect of the selected device tears the radio session down and builds a new
one after a short delay. There is no same-session reconnect and no backoff.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import partial

from .adapter import AdapterObserver, AdapterState
from .ble import BleakSession, EventSink
from .events import (
    AdapterStateChanged,
    Advertisement,
    ConnectFailed,
    Disconnect,
    Event,
    LinkEstablished,
    LinkLost,
    Notification,
    RecreateSession,
    RestartScan,
    ResumeScan,
    SelectDevice,
    StartScan,
    StopScan,
    SubscribeFailed,
    SubscribeSucceeded,
)
from .parser import decode_heart_rate
from .registry import Device, DeviceRegistry
from .state import ConnectionState, PublishedState

logger = logging.getLogger(__name__)

StateCallback = Callable[[PublishedState], Awaitable[None]]
SessionFactory = Callable[[int, EventSink], BleakSession]

# Delays (seconds) used to sequence teardown before restart
DISCONNECT_RESTART_DELAY = 0.1
SCAN_RESTART_DELAY = 0.5
SESSION_RECREATE_DELAY = 0.6


class HeartRateManager:
    """BLE heart rate session manager with full-reset recovery."""

    def __init__(
        self,
        on_state: StateCallback | None = None,
        auto_select: str | None = None,
        connect_timeout: float = 10.0,
        adapter_poll_interval: float = 5.0,
        disconnect_restart_delay: float = DISCONNECT_RESTART_DELAY,
        scan_restart_delay: float = SCAN_RESTART_DELAY,
        session_recreate_delay: float = SESSION_RECREATE_DELAY,
        session_factory: SessionFactory | None = None,
        adapter: AdapterObserver | None = None,
    ):
        self.on_state = on_state
        self.auto_select = auto_select
        self._disconnect_restart_delay = disconnect_restart_delay
        self._scan_restart_delay = scan_restart_delay
        self._session_recreate_delay = session_recreate_delay
        self._session_factory = session_factory or partial(
            BleakSession,
            connect_timeout=connect_timeout,
            poll_interval=adapter_poll_interval,
        )
        self._adapter = adapter or AdapterObserver()
        self._registry = DeviceRegistry()
        self._events: asyncio.Queue[Event] = asyncio.Queue()
        self._timers: set[asyncio.TimerHandle] = set()
        self._generation = 0
        self._session: BleakSession | None = None
        self._running = False

        self._selected: Device | None = None
        self._connection = ConnectionState.IDLE
        self._heart_rate: int | None = None
        self._scanning = False
        self._published = PublishedState()

        self._handlers: dict[type, Callable[[Event], Awaitable[None]]] = {
            StartScan: self._on_start_scan,
            StopScan: self._on_stop_scan,
            RestartScan: self._on_restart_scan,
            SelectDevice: self._on_select_device,
            Disconnect: self._on_disconnect,
            ResumeScan: self._on_resume_scan,
            RecreateSession: self._on_recreate_session,
            AdapterStateChanged: self._on_adapter_state,
            Advertisement: self._on_advertisement,
            LinkEstablished: self._on_link_established,
            ConnectFailed: self._on_link_failure,
            LinkLost: self._on_link_failure,
            SubscribeSucceeded: self._on_subscribe_succeeded,
            SubscribeFailed: self._on_subscribe_failed,
            Notification: self._on_notification,
        }

    # Public API

    @property
    def state(self) -> PublishedState:
        """Snapshot of the published state."""
        return PublishedState(
            devices=tuple(self._registry.sorted()),
            selected=self._selected,
            heart_rate=self._heart_rate,
            is_scanning=self._scanning,
            adapter_state=self._adapter.state,
            connection_state=self._connection,
        )

    def submit(self, event: Event) -> None:
        """Queue a command or event for serial handling. Never blocks."""
        self._events.put_nowait(event)

    def start_scan(self) -> None:
        self.submit(StartScan())

    def stop_scan(self) -> None:
        self.submit(StopScan())

    def restart_scan(self) -> None:
        self.submit(RestartScan())

    def select_device(self, identifier: str) -> None:
        self.submit(SelectDevice(identifier))

    def disconnect(self) -> None:
        self.submit(Disconnect())

    async def run(self) -> None:
        """Open the radio session and handle events until stopped."""
        self._running = True
        self.open()
        await self._publish()
        try:
            while self._running:
                event = await self._events.get()
                await self.handle(event)
        finally:
            await self._close()

    def open(self) -> None:
        """Open the first radio session; no-op if one is already open."""
        if self._session is None:
            self._generation += 1
            self._open_session()

    async def stop(self) -> None:
        """Stop handling events and release the radio."""
        logger.debug("Stopping manager...")
        self._running = False
        await self._close()

    async def handle(self, event: Event) -> None:
        """Apply one event, then publish the resulting state if it changed."""
        if self._session is None:
            return
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.warning("Ignoring unknown event: %r", event)
            return
        await handler(event)
        await self._publish()

    # Session lifecycle

    def _open_session(self) -> None:
        """Open a session for the current generation."""
        logger.debug("Opening radio session %d", self._generation)
        self._session = self._session_factory(self._generation, self.submit)
        self._session.open()

    async def _close(self) -> None:
        for handle in list(self._timers):
            handle.cancel()
        self._timers.clear()
        session, self._session = self._session, None
        if session is not None:
            await session.close()

    def _schedule(self, delay: float, event: Event) -> None:
        """Post ``event`` after ``delay`` seconds, fire-and-forget."""
        loop = asyncio.get_running_loop()
        handle: asyncio.TimerHandle | None = None

        def fire() -> None:
            self._timers.discard(handle)
            self._events.put_nowait(event)

        handle = loop.call_later(delay, fire)
        self._timers.add(handle)

    async def _publish(self) -> None:
        state = self.state
        if state == self._published:
            return
        self._published = state
        if self.on_state is None:
            return
        try:
            await self.on_state(state)
        except Exception as e:
            logger.warning("State listener failed: %s", e)

    def _is_current(self, event: Event) -> bool:
        return getattr(event, "generation", None) == self._generation

    def _is_target(self, event: Event) -> bool:
        """True if a radio event belongs to this session and the selected device."""
        return (
            self._is_current(event)
            and self._selected is not None
            and getattr(event, "identifier", None) == self._selected.identifier
        )

    # Scanning

    async def _start_scan(self) -> None:
        if not self._adapter.may_scan():
            logger.debug("Scan request ignored, adapter %s", self._adapter.state.value)
            return
        if self._selected is not None:
            logger.debug("Scan request ignored while a device is selected")
            return
        if self._scanning:
            return
        self._scanning = True
        self._registry.reset()
        logger.info("Scanning for HR devices...")
        await self._session.start_scan()

    async def _stop_scan(self) -> None:
        if not self._scanning:
            return
        self._scanning = False
        await self._session.stop_scan()

    async def _restart_scan(self, delay: float) -> None:
        """Scan-only restart: clear the device list, scan again after ``delay``."""
        await self._stop_scan()
        self._registry.reset()
        self._schedule(delay, ResumeScan())

    async def _on_start_scan(self, _: StartScan) -> None:
        await self._start_scan()

    async def _on_stop_scan(self, _: StopScan) -> None:
        await self._stop_scan()

    async def _on_restart_scan(self, _: RestartScan) -> None:
        if self._selected is not None:
            logger.debug("Scan restart ignored while a device is selected")
            return
        await self._restart_scan(self._scan_restart_delay)

    async def _on_resume_scan(self, _: ResumeScan) -> None:
        await self._start_scan()

    async def _on_advertisement(self, event: Advertisement) -> None:
        if not self._is_current(event) or not self._scanning:
            return
        self._registry.upsert(event.identifier, event.name)
        if self.auto_select == event.identifier and self._selected is None:
            logger.info("Auto-selecting %s", event.identifier)
            await self._select(event.identifier)

    # Adapter

    async def _on_adapter_state(self, event: AdapterStateChanged) -> None:
        if not self._is_current(event):
            return
        if self._adapter.update(event.state) is None:
            return
        if self._adapter.is_powered_on:
            await self._start_scan()
        else:
            await self._power_down()

    async def _power_down(self) -> None:
        """Drop everything that needs a working radio."""
        await self._stop_scan()
        self._session.cancel_link()
        self._registry.reset()
        self._clear_selection()

    # Connection state machine

    def _clear_selection(self) -> None:
        self._selected = None
        self._heart_rate = None
        self._connection = ConnectionState.IDLE

    async def _select(self, identifier: str) -> None:
        if not self._adapter.is_powered_on:
            logger.debug("Select ignored, adapter %s", self._adapter.state.value)
            return
        device = self._registry.get(identifier)
        if device is None:
            logger.debug("Select ignored, unknown device %s", identifier)
            return
        if (
            self._selected is not None
            and self._selected.identifier == identifier
            and self._connection is not ConnectionState.IDLE
        ):
            return

        if self._selected is not None:
            logger.info("Leaving %s", self._selected.identifier)
            self._session.cancel_link()
        await self._stop_scan()
        self._selected = device
        self._heart_rate = None
        self._connection = ConnectionState.CONNECTING
        logger.info("Connecting to %s (%s)", device.display_name or "Unknown", device.identifier)
        self._session.connect(identifier)

    async def _on_select_device(self, event: SelectDevice) -> None:
        await self._select(event.identifier)

    async def _on_link_established(self, event: LinkEstablished) -> None:
        if not self._is_target(event) or self._connection is not ConnectionState.CONNECTING:
            return
        self._connection = ConnectionState.DISCOVERING_SERVICES
        service = self._session.find_hr_service()
        if service is None:
            logger.warning("Heart Rate service not found on %s", event.identifier)
            return

        self._connection = ConnectionState.DISCOVERING_CHARACTERISTICS
        characteristic = self._session.find_hr_characteristic(service)
        if characteristic is None:
            logger.warning("Heart Rate Measurement characteristic not found on %s", event.identifier)
            return
        self._session.subscribe(event.identifier, characteristic)

    async def _on_subscribe_succeeded(self, event: SubscribeSucceeded) -> None:
        if not self._is_target(event) or self._connection is not ConnectionState.DISCOVERING_CHARACTERISTICS:
            return
        self._connection = ConnectionState.SUBSCRIBED
        logger.info("Subscribed to HR notifications from %s", event.identifier)

    async def _on_subscribe_failed(self, event: SubscribeFailed) -> None:
        if self._is_target(event):
            logger.debug("Staying in %s after subscribe failure: %s", self._connection.value, event.reason)

    async def _on_notification(self, event: Notification) -> None:
        if not self._is_target(event):
            return
        if self._connection is not ConnectionState.SUBSCRIBED:
            logger.debug("HR sample dropped in %s: %s", self._connection.value, event.data.hex())
            return
        bpm = decode_heart_rate(event.data)
        if bpm is None:
            logger.debug("Malformed HR packet dropped: %s", event.data.hex())
            return
        logger.debug("HR: %d bpm", bpm)
        self._heart_rate = bpm

    async def _on_disconnect(self, _: Disconnect) -> None:
        self._heart_rate = None
        if self._selected is not None:
            logger.info("Disconnecting from %s", self._selected.identifier)
            await self._hard_reset()
        else:
            await self._restart_scan(self._disconnect_restart_delay)

    # Recovery

    async def _on_link_failure(self, event: ConnectFailed | LinkLost) -> None:
        if not self._is_target(event):
            return
        if isinstance(event, ConnectFailed):
            logger.warning("Connect to %s failed (%s), resetting session", event.identifier, event.reason)
        else:
            logger.warning("Lost link to %s, resetting session", event.identifier)
        await self._hard_reset()

    async def _hard_reset(self) -> None:
        """Tear everything down and rebuild the radio session after a delay."""
        await self._stop_scan()
        self._session.cancel_link()
        self._clear_selection()
        self._registry.reset()
        self._schedule(self._session_recreate_delay, RecreateSession())

    async def _on_recreate_session(self, _: RecreateSession) -> None:
        old = self._session
        # Anything the old session posts from here on is stale
        self._generation += 1
        self._scanning = False
        self._adapter.update(AdapterState.UNKNOWN)
        await old.close()
        self._open_session()

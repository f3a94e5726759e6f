"""Entry point for heartlink."""

import argparse
import asyncio
import logging
import signal
from pathlib import Path

from .ble import scan_hr_devices
from .config import Config, load_config
from .log import setup_logging
from .manager import HeartRateManager
from .registry import Device
from .server import StateServer

logger = logging.getLogger(__name__)

# Shutdown event for graceful termination
_shutdown_event: asyncio.Event | None = None


def _signal_handler() -> None:
    """Handle shutdown signals."""
    if _shutdown_event:
        logger.info("Shutdown requested...")
        _shutdown_event.set()


def _print_devices(devices: list[Device]) -> None:
    if not devices:
        print("No HR devices found.")
        return
    print("Found devices:")
    for i, device in enumerate(devices, 1):
        print(f"  {i}. {device.display_name or 'Unknown'} ({device.identifier})")


async def list_devices(config: Config) -> list[Device]:
    """Scan once and print the HR devices in range."""
    logger.info("Scanning for HR devices (%.0fs)...", config.ble.scan_timeout)
    devices = await scan_hr_devices(timeout=config.ble.scan_timeout)
    _print_devices(devices)
    return devices


async def run(config: Config, host: str, port: int, device: str | None) -> None:
    """Run the session manager behind the WebSocket server."""
    global _shutdown_event
    _shutdown_event = asyncio.Event()

    # Set up signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    manager = HeartRateManager(
        auto_select=device,
        connect_timeout=config.ble.connect_timeout,
        adapter_poll_interval=config.ble.adapter_poll_interval,
        disconnect_restart_delay=config.ble.disconnect_restart_delay,
        scan_restart_delay=config.ble.scan_restart_delay,
        session_recreate_delay=config.ble.session_recreate_delay,
    )
    server = StateServer(
        host=host,
        port=port,
        broadcast_timeout=config.server.broadcast_timeout,
        on_command=manager.submit,
        get_state=lambda: manager.state,
    )
    manager.on_state = server.broadcast_state

    # Start server first so clients see the initial scan
    await server.start()
    logger.info("WebSocket server running on ws://%s:%d", host, port)

    try:
        manager_task = asyncio.create_task(manager.run())
        shutdown_task = asyncio.create_task(_shutdown_event.wait())

        # Wait for either shutdown signal or manager to exit
        done, pending = await asyncio.wait(
            [manager_task, shutdown_task],
            return_when=asyncio.FIRST_COMPLETED,
        )

        for task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
    finally:
        await manager.stop()
        await server.stop()
        logger.info("Shutdown complete")


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="BLE heart rate session manager with WebSocket state feed")
    parser.add_argument("-c", "--config", type=Path, help="Config file (default: ./config.toml, then ~/.config/heartlink)")
    parser.add_argument("-H", "--host", help="Server host")
    parser.add_argument("-p", "--port", type=int, help="Server port")
    parser.add_argument(
        "-d",
        "--device",
        help="Device identifier to connect to as soon as it is discovered",
    )
    parser.add_argument("-l", "--list", action="store_true", help="Scan once, list HR devices and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--radio-debug", action="store_true", help="Enable bleak debug logging")
    args = parser.parse_args()

    # Command-line flags override the config file
    config = load_config(args.config)
    host = args.host or config.server.host
    port = args.port if args.port is not None else config.server.port
    device = args.device or config.device.address or None

    log_level = "DEBUG" if args.verbose else config.server.log_level
    setup_logging(log_level, radio_level="DEBUG" if args.radio_debug else None)

    if args.list:
        asyncio.run(list_devices(config))
        return

    asyncio.run(run(config, host, port, device))


if __name__ == "__main__":
    main()

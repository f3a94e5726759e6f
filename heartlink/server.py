"""WebSocket server publishing session state and accepting commands."""

import asyncio
import json
import logging
from collections.abc import Callable
from time import time_ns

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosedError

from .events import Command, Disconnect, RestartScan, SelectDevice, StartScan, StopScan
from .state import PublishedState

logger = logging.getLogger(__name__)

CommandCallback = Callable[[Command], None]
StateGetter = Callable[[], PublishedState]

_SIMPLE_COMMANDS: dict[str, type] = {
    "start_scan": StartScan,
    "stop_scan": StopScan,
    "restart_scan": RestartScan,
    "disconnect": Disconnect,
}


def parse_command(raw: str | bytes) -> Command | None:
    """Parse a client message into a command.

    Expected forms: {"command": "start_scan"} or
    {"command": "select", "device": "<identifier>"}.

    Returns:
        The command, or None if the message is not a valid command
    """
    try:
        message = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(message, dict):
        return None

    name = message.get("command")
    if not isinstance(name, str):
        return None
    if name in _SIMPLE_COMMANDS:
        return _SIMPLE_COMMANDS[name]()
    if name == "select":
        device = message.get("device")
        if isinstance(device, str) and device:
            return SelectDevice(device)
    return None


class StateServer:
    """WebSocket server that broadcasts state to all clients and relays their commands."""

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8765,
        broadcast_timeout: float = 0.5,
        on_command: CommandCallback | None = None,
        get_state: StateGetter | None = None,
    ):
        self.host = host
        self.port = port
        self.on_command = on_command
        self.get_state = get_state
        self._broadcast_timeout = broadcast_timeout
        self._clients: set[ServerConnection] = set()
        self._server = None

    def _client_info(self, websocket: ServerConnection) -> str:
        """Get client info string for logging."""
        addr = websocket.remote_address
        if addr:
            return f"{addr[0]}:{addr[1]}"
        return "unknown"

    async def _handler(self, websocket: ServerConnection) -> None:
        """Handle a WebSocket connection."""
        self._clients.add(websocket)
        logger.info("Client connected: %s (%d total)", self._client_info(websocket), len(self._clients))
        try:
            if self.get_state is not None:
                await websocket.send(json.dumps(self._state_message(self.get_state())))
            async for raw in websocket:
                self._handle_message(websocket, raw)
        except ConnectionClosedError:
            pass  # Client disconnected abruptly, this is normal
        finally:
            self._clients.discard(websocket)
            logger.info("Client disconnected: %s (%d total)", self._client_info(websocket), len(self._clients))

    def _handle_message(self, websocket: ServerConnection, raw: str | bytes) -> None:
        command = parse_command(raw)
        if command is None:
            logger.warning("Ignoring invalid message from %s: %.80r", self._client_info(websocket), raw)
            return
        logger.debug("Command from %s: %r", self._client_info(websocket), command)
        if self.on_command is not None:
            self.on_command(command)

    async def broadcast(self, message: dict) -> None:
        """Broadcast a message to all connected clients."""
        if not self._clients:
            return
        # Snapshot clients to avoid RuntimeError if set changes during iteration
        clients = list(self._clients)
        data = json.dumps(message)
        try:
            results = await asyncio.wait_for(
                asyncio.gather(
                    *[client.send(data) for client in clients],
                    return_exceptions=True,
                ),
                timeout=self._broadcast_timeout,
            )
            self._remove_failed_clients(clients, results)
        except TimeoutError:
            logger.warning("Broadcast timeout, slow client(s) skipped")

    def _remove_failed_clients(self, clients: list[ServerConnection], results: list) -> None:
        """Remove clients that failed to receive a message."""
        for client, result in zip(clients, results, strict=True):
            if isinstance(result, Exception):
                self._clients.discard(client)
                logger.debug("Removed failed client: %s", result)

    @staticmethod
    def _state_message(state: PublishedState) -> dict:
        message = state.to_message()
        message["timestamp"] = time_ns() // 1_000_000
        return message

    async def broadcast_state(self, state: PublishedState) -> None:
        """Broadcast a published state snapshot."""
        await self.broadcast(self._state_message(state))

    async def start(self) -> None:
        """Start the WebSocket server."""
        self._server = await serve(self._handler, self.host, self.port)
        logger.debug("Server started on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Stop the WebSocket server."""
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            logger.debug("Server stopped")

    @property
    def client_count(self) -> int:
        """Number of connected clients."""
        return len(self._clients)

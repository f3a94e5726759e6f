"""Events delivered to the session manager's single consumer queue.

Radio events carry the generation of the session that produced them so the
manager can drop events from a session it has already replaced.
"""

from dataclasses import dataclass

from .adapter import AdapterState


# Commands from the UI collaborator


@dataclass(frozen=True)
class StartScan:
    pass


@dataclass(frozen=True)
class StopScan:
    pass


@dataclass(frozen=True)
class RestartScan:
    pass


@dataclass(frozen=True)
class SelectDevice:
    identifier: str


@dataclass(frozen=True)
class Disconnect:
    pass


# Scheduled continuations


@dataclass(frozen=True)
class ResumeScan:
    """Delayed scan start after a scan-only restart."""


@dataclass(frozen=True)
class RecreateSession:
    """Delayed replacement of the radio session after a hard reset."""


# Radio events


@dataclass(frozen=True)
class AdapterStateChanged:
    generation: int
    state: AdapterState


@dataclass(frozen=True)
class Advertisement:
    generation: int
    identifier: str
    name: str | None


@dataclass(frozen=True)
class LinkEstablished:
    generation: int
    identifier: str


@dataclass(frozen=True)
class ConnectFailed:
    generation: int
    identifier: str
    reason: str


@dataclass(frozen=True)
class LinkLost:
    generation: int
    identifier: str


@dataclass(frozen=True)
class SubscribeSucceeded:
    generation: int
    identifier: str


@dataclass(frozen=True)
class SubscribeFailed:
    generation: int
    identifier: str
    reason: str


@dataclass(frozen=True)
class Notification:
    generation: int
    identifier: str
    data: bytes


Command = StartScan | StopScan | RestartScan | SelectDevice | Disconnect

Event = (
    Command
    | ResumeScan
    | RecreateSession
    | AdapterStateChanged
    | Advertisement
    | LinkEstablished
    | ConnectFailed
    | LinkLost
    | SubscribeSucceeded
    | SubscribeFailed
    | Notification
)

"""Type definitions for the vegaview push pipeline.

Defines the data structures shared by the registry, the session state
machine, the server lifecycle and the public dispatch API: session states,
send failures, the channel protocol, and the records returned to callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class SessionState(str, Enum):
    """What the single visualization slot currently shows."""

    READY = "ready"
    LOADING = "loading"
    SERVED = "served"


class SendFailure(str, Enum):
    """Why a document send did not reach the browser."""

    NO_CHANNEL = "no_channel"
    """No browser has completed the WebSocket handshake."""

    CHANNEL_CLOSED = "channel_closed"
    """The registered channel was closed or unreachable at send time."""


@runtime_checkable
class Channel(Protocol):
    """A live, message-oriented connection to one browser tab.

    Closure can happen at any time (tab closed, network drop). Callers only
    learn about it when ``send()`` returns False.
    """

    channel_id: str

    @property
    def is_open(self) -> bool: ...

    def send(self, text: str) -> bool: ...

    def close(self) -> None: ...


@dataclass
class PlotResult:
    """Outcome of a single ``plot()`` call.

    Returned on success and attached to ``LostConnectionError`` on failure,
    so the caller can inspect port, server and channel either way.
    """

    port: int | None
    """Port of the listener the document was dispatched through."""

    server: Any
    """The running PlotServer, or None."""

    channel: Channel | None
    """The channel the document was handed to, or None."""

    send_succeeded: bool
    """True when the document was handed to the channel's transport."""

    failure: SendFailure | None = None
    """Reason for a failed send; None on success."""

    @property
    def ok(self) -> bool:
        return self.send_succeeded

    def to_dict(self) -> dict[str, Any]:
        return {
            "port": self.port,
            "server": self.server,
            "channel": self.channel,
            "send_succeeded": self.send_succeeded,
            "failure": self.failure.value if self.failure else None,
        }

    def __repr__(self) -> str:
        channel_id = self.channel.channel_id if self.channel is not None else None
        reason = self.failure.value if self.failure else "unknown"
        status = "ok" if self.send_succeeded else f"failed ({reason})"
        return f"PlotResult(port={self.port}, channel={channel_id}, {status})"


@dataclass
class ServerInfo:
    """Describes a started server: where it listens and who is connected."""

    port: int
    server: Any
    channel: Channel | None
    url: str

    @property
    def connected(self) -> bool:
        return self.channel is not None

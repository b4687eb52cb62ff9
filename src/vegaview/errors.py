"""Exception hierarchy for vegaview."""

from __future__ import annotations

from vegaview._types import Channel, PlotResult


class VegaviewError(Exception):
    """Base class for all vegaview errors."""


class LostConnectionError(VegaviewError):
    """Raised by ``plot()`` when the document could not be sent.

    The browser may keep showing an older rendering (or the Loading screen),
    so this is never swallowed. ``result`` carries port, server and channel
    state for the caller to decide whether to reopen the tab or restart.
    """

    def __init__(self, result: PlotResult, message: str | None = None) -> None:
        self.result = result
        if message is None:
            message = (
                "vegaview's WebSocket connection to the browser was lost. "
                "Either re-open the browser tab or re-start the vegaview server."
            )
        super().__init__(message)

    @property
    def port(self) -> int | None:
        return self.result.port

    @property
    def channel(self) -> Channel | None:
        return self.result.channel


class PortInUseError(VegaviewError):
    """The requested port could not be bound."""

    def __init__(self, host: str, port: int) -> None:
        self.host = host
        self.port = port
        super().__init__(f"Port {port} on {host} is not available")


class DocumentEncodingError(VegaviewError, ValueError):
    """The document cannot be represented in the JSON wire format."""


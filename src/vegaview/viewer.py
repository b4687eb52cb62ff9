"""Dispatch API: sequences lifecycle, state machine and send for one viewer.

Each ``Viewer`` owns its own channel registry, session state and server, so
independent viewers (and tests) never share state. The module-level
functions in ``vegaview`` operate on a default instance.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from vegaview._types import PlotResult, SendFailure, ServerInfo, SessionState
from vegaview.config import ViewerConfig
from vegaview.errors import LostConnectionError
from vegaview.lifecycle import ServerLifecycle
from vegaview.registry import ChannelRegistry
from vegaview.session import SessionStateMachine

logger = logging.getLogger(__name__)


class Viewer:
    """One browser tab showing one visualization at a time.

    Args:
        config: Viewer settings; read from the environment when omitted.
        opener: Browser launcher called with the page URL.
    """

    def __init__(
        self,
        config: ViewerConfig | None = None,
        opener: Callable[[str], Any] | None = None,
    ) -> None:
        self.config = config if config is not None else ViewerConfig.from_env()
        self.registry = ChannelRegistry(close_superseded=self.config.close_superseded)
        self.session = SessionStateMachine()
        self.lifecycle = ServerLifecycle(
            self.registry, self.session, self.config, opener=opener
        )
        self._lock = threading.RLock()

    # --- Lifecycle ---

    def start_server(self, port: int | None = None) -> ServerInfo:
        """Start (or restart) the server and wait for the browser to connect."""
        return self.lifecycle.start(port)

    def stop_server(self) -> bool:
        """Stop the server. Safe to call repeatedly and while plotting."""
        return self.lifecycle.stop()

    def _needs_start(self, port: int | None) -> bool:
        if not self.lifecycle.is_running or not self.registry.has_channel:
            return True
        return bool(port) and port != self.lifecycle.port

    # --- Dispatch ---

    def try_plot(self, document: Any, port: int | None = None) -> PlotResult:
        """Send ``document`` to the browser and report the outcome.

        Starts the server when none is running, when no browser has
        connected yet, or when ``port`` differs from the running port.
        Never raises on a lost connection; check ``result.ok``.

        Raises:
            DocumentEncodingError: If the document cannot be encoded.
            PortInUseError: If a needed server start cannot bind its port.
        """
        with self._lock:
            if self._needs_start(port):
                logger.debug(f"Starting plot server (requested port: {port})")
                self.lifecycle.start(port or None)
            server = self.lifecycle.server
            channel = self.registry.get_channel()
            sent = self.session.dispatch(channel, document)

        failure = None
        if not sent:
            failure = (
                SendFailure.NO_CHANNEL
                if channel is None
                else SendFailure.CHANNEL_CLOSED
            )
        return PlotResult(
            port=server.port if server is not None else None,
            server=server,
            channel=channel,
            send_succeeded=sent,
            failure=failure,
        )

    def plot(self, document: Any, port: int | None = None) -> PlotResult:
        """Send ``document`` to the browser, starting a server if needed.

        Raises:
            LostConnectionError: If the document could not be sent. The
                error's ``result`` holds port, server and channel state.
        """
        result = self.try_plot(document, port)
        if not result.ok:
            raise LostConnectionError(result)
        return result

    # --- Inspection ---

    @property
    def last_spec(self) -> str | None:
        return self.session.last_spec

    @property
    def last_document(self) -> Any:
        return self.session.last_document

    @property
    def state(self) -> SessionState:
        return self.session.state

    def status(self) -> dict[str, Any] | None:
        """Return info about the running server, or None."""
        server = self.lifecycle.server
        if server is None or not server.is_running:
            return None
        channel = self.registry.get_channel()
        return {
            "port": server.port,
            "url": server.url,
            "connected": channel is not None and channel.is_open,
            "channel_id": channel.channel_id if channel is not None else None,
            "state": self.session.state.value,
        }

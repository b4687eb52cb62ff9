"""Server lifecycle: at most one listener per viewer.

``start()`` always tears down the previous listener first, so only one port
is ever live. It then opens the browser and waits (bounded) for the first
WebSocket handshake before putting the Ready placeholder on screen.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from vegaview._types import ServerInfo
from vegaview.config import ViewerConfig
from vegaview.registry import ChannelRegistry
from vegaview.server import PlotServer
from vegaview.session import SessionStateMachine

logger = logging.getLogger(__name__)


class ServerLifecycle:
    """Owns the single PlotServer of a viewer.

    Args:
        registry: Channel slot shared with the server and the dispatch path.
        session: State machine that sends the Ready placeholder.
        config: Host, default port, timeouts and browser settings.
        opener: Browser launcher called with the root URL; defaults to the
            system browser.
    """

    def __init__(
        self,
        registry: ChannelRegistry,
        session: SessionStateMachine,
        config: ViewerConfig,
        opener: Callable[[str], Any] | None = None,
    ) -> None:
        self.registry = registry
        self.session = session
        self.config = config
        self.opener = opener
        self._lock = threading.RLock()
        self._server: PlotServer | None = None

    @property
    def server(self) -> PlotServer | None:
        with self._lock:
            return self._server

    @property
    def port(self) -> int | None:
        server = self.server
        return server.port if server is not None else None

    @property
    def is_running(self) -> bool:
        server = self.server
        return server is not None and server.is_running

    def start(self, port: int | None = None) -> ServerInfo:
        """Stop any running server, start a new one and wait for the browser.

        Args:
            port: Port to bind; defaults to ``config.port``.

        Returns:
            ServerInfo. ``channel`` is None if no browser connected within
            ``config.connect_timeout``.

        Raises:
            PortInUseError: If the port cannot be bound.
        """
        with self._lock:
            self.stop()
            server = PlotServer(
                self.registry,
                session=self.session,
                port=self.config.port if port is None else port,
                host=self.config.host,
                send_timeout=self.config.send_timeout,
                stop_grace=self.config.stop_grace,
                static_dir=self.config.static_dir,
            )
            server.start(open_browser=self.config.open_browser, opener=self.opener)
            self._server = server
            logger.debug(f"Plot server started on port {server.port}")

        # Outside the lock so a concurrent stop() is not held up by the wait
        timeout = self.config.connect_timeout
        channel = self.registry.wait_for_channel(timeout)
        if channel is None:
            logger.warning(
                f"No browser connected to {server.url} within {timeout}s; "
                "open it manually or call plot() again"
            )
        else:
            self.session.show_ready(channel)

        return ServerInfo(port=server.port, server=server, channel=channel, url=server.url)

    def stop(self) -> bool:
        """Stop the server and forget the channel. No-op if nothing runs.

        Returns:
            True if a server was stopped.
        """
        with self._lock:
            server = self._server
            if server is None:
                return False
            self._server = None
            server.stop()
            self.registry.clear()
        return True

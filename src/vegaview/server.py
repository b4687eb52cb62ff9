"""Plot server: Starlette + WebSocket listener for one browser tab.

Runs uvicorn on its own event loop in a background daemon thread. The
Python API talks to the browser through the channel registered by the
most recent WebSocket handshake.

Endpoints:
    GET  /              → HTML shell (Vega-Embed + WebSocket bootstrap)
    GET  /api/health    → liveness, bound port, connection state
    WS   /ws            → push channel (server → browser)
    GET  /{path}        → static files (override dir, then bundled), 404 if absent
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import sys
import threading
import uuid
from pathlib import Path
from typing import Any, Callable

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, Response
from starlette.routing import Mount, Route, WebSocketRoute
from starlette.staticfiles import StaticFiles
from starlette.websockets import WebSocket, WebSocketDisconnect

from vegaview._utils import open_in_browser, resolve_port, wait_for_port
from vegaview.config import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_SEND_TIMEOUT,
    DEFAULT_STOP_GRACE,
)
from vegaview.errors import PortInUseError
from vegaview.page import page
from vegaview.registry import ChannelRegistry
from vegaview.session import SessionStateMachine

logger = logging.getLogger(__name__)

ACK_TEXT = "vegaview: websocket connection established."


class WebSocketChannel:
    """Channel backed by a Starlette WebSocket living on the server loop.

    ``send()`` is called from API threads; it schedules the write on the
    server loop and waits up to ``send_timeout`` for the transport to take
    it. Never call it from the server loop itself.
    """

    def __init__(
        self,
        ws: WebSocket,
        loop: asyncio.AbstractEventLoop,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
    ) -> None:
        self.channel_id = uuid.uuid4().hex[:8]
        self._ws = ws
        self._loop = loop
        self._send_timeout = send_timeout
        self._closed = threading.Event()

    @property
    def is_open(self) -> bool:
        return not self._closed.is_set() and not self._loop.is_closed()

    def mark_closed(self) -> None:
        self._closed.set()

    def send(self, text: str) -> bool:
        """Hand ``text`` to the transport. Returns False instead of raising."""
        if not self.is_open:
            return False
        try:
            future = asyncio.run_coroutine_threadsafe(
                self._ws.send_text(text), self._loop
            )
        except RuntimeError:
            # Loop closed between the check and the call
            self.mark_closed()
            return False
        try:
            future.result(timeout=self._send_timeout)
            return True
        except concurrent.futures.TimeoutError:
            future.cancel()
            logger.warning(
                f"Send on channel {self.channel_id} timed out after "
                f"{self._send_timeout}s"
            )
            return False
        except Exception:
            logger.debug(f"Send on channel {self.channel_id} failed", exc_info=True)
            self.mark_closed()
            return False

    def close(self, code: int = 1000) -> None:
        """Close the WebSocket without waiting for the close handshake."""
        if self._closed.is_set():
            return
        self._closed.set()
        try:
            asyncio.run_coroutine_threadsafe(self._close(code), self._loop)
        except RuntimeError:
            pass

    async def _close(self, code: int) -> None:
        try:
            await self._ws.close(code=code)
        except Exception:
            logger.debug(f"Channel {self.channel_id} already closed")

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"WebSocketChannel({self.channel_id}, {state})"


class PlotServer:
    """HTTP + WebSocket listener for the push pipeline.

    Registers every completed WebSocket handshake in ``registry``. Designed
    to run in a background thread via ``start()``.

    Args:
        registry: Where handshakes register their channel.
        session: State machine reported by the health endpoint.
        port: Port to bind; 0 picks a free one. Never auto-increments.
        host: Host to bind to (default: 127.0.0.1).
        send_timeout: Seconds a single channel send may take.
        stop_grace: Seconds connections get to drain on ``stop()``.
        static_dir: Extra directory searched before the bundled static files.
    """

    def __init__(
        self,
        registry: ChannelRegistry,
        session: SessionStateMachine | None = None,
        port: int = DEFAULT_PORT,
        host: str = DEFAULT_HOST,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
        stop_grace: float = DEFAULT_STOP_GRACE,
        static_dir: Path | None = None,
    ) -> None:
        self.registry = registry
        self.session = session
        self.host = host
        self.port = port
        self.send_timeout = send_timeout
        self.stop_grace = stop_grace
        self.static_dir = static_dir
        self._connections: list[WebSocketChannel] = []
        self._lock = threading.Lock()
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None
        self._started = threading.Event()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._app = self._build_app()

    def _build_app(self) -> Starlette:
        """Build the Starlette application with all routes."""
        routes = [
            Route("/", self._index),
            Route("/api/health", self._api_health),
            WebSocketRoute("/ws", self._ws_endpoint),
            Mount(
                "/",
                app=StaticFiles(
                    directory=self.static_dir,
                    packages=[("vegaview", "static")],
                    check_dir=False,
                ),
            ),
        ]
        return Starlette(routes=routes)

    # --- HTTP Endpoints ---

    async def _index(self, request: Request) -> Response:
        """Serve the HTML shell, pointed at the port the request came in on."""
        port = request.url.port or self.port
        return HTMLResponse(page(port))

    async def _api_health(self, request: Request) -> JSONResponse:
        """Health check endpoint."""
        return JSONResponse(
            {
                "status": "ok",
                "port": self.port,
                "connected": self._channel_open(),
                "state": self.session.state.value if self.session else None,
            }
        )

    def _channel_open(self) -> bool:
        channel = self.registry.get_channel()
        return channel is not None and channel.is_open

    # --- WebSocket ---

    async def _ws_endpoint(self, ws: WebSocket) -> None:
        """Accept a browser connection and make it the registered channel."""
        await ws.accept()
        channel = WebSocketChannel(ws, asyncio.get_running_loop(), self.send_timeout)
        with self._lock:
            self._connections.append(channel)

        try:
            await ws.send_text(ACK_TEXT)
        except Exception:
            logger.debug("Could not acknowledge WebSocket handshake")
        self.registry.set_channel(channel)
        logger.debug(f"WebSocket client connected (channel {channel.channel_id})")

        try:
            while True:
                message = await ws.receive()
                if message["type"] == "websocket.disconnect":
                    break
                logger.debug(
                    f"Ignoring inbound message on channel {channel.channel_id}"
                )
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.debug("WebSocket connection closed", exc_info=True)
        finally:
            channel.mark_closed()
            with self._lock:
                if channel in self._connections:
                    self._connections.remove(channel)
            logger.debug(f"WebSocket client disconnected (channel {channel.channel_id})")

    # --- Lifecycle ---

    def start(
        self,
        open_browser: bool = True,
        opener: Callable[[str], Any] | None = None,
    ) -> None:
        """Start the server in a background daemon thread.

        Args:
            open_browser: Point a browser at the root page once bound.
            opener: Replaces the default browser launcher (called with the URL).

        Raises:
            PortInUseError: If the port cannot be bound.
        """
        if self.is_running:
            return

        self.port = resolve_port(self.host, self.port)

        config = uvicorn.Config(
            app=self._app,
            host=self.host,
            port=self.port,
            log_level="warning",
            access_log=False,
            timeout_graceful_shutdown=self.stop_grace,
        )
        self._server = uvicorn.Server(config)

        def _run() -> None:
            self._loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self._loop)
            self._started.set()
            try:
                self._loop.run_until_complete(self._server.serve())
            finally:
                self._loop.close()

        self._thread = threading.Thread(target=_run, daemon=True)
        self._thread.start()
        self._started.wait(timeout=5)

        if not wait_for_port(self.host, self.port):
            self.stop()
            raise PortInUseError(self.host, self.port)

        print(f"vegaview: {self.url}", file=sys.stderr)

        if open_browser:
            (opener or open_in_browser)(self.url)

    def stop(self) -> None:
        """Close open connections, stop accepting and wait for the thread."""
        with self._lock:
            connections = list(self._connections)
            self._connections.clear()
        for channel in connections:
            channel.close(code=1001)
        if self._server:
            self._server.should_exit = True
        if self._thread:
            self._thread.join(timeout=self.stop_grace + 3)
            if self._thread.is_alive():
                logger.warning(f"Plot server on port {self.port} did not stop in time")
            self._thread = None
        self._server = None
        self._started.clear()
        logger.debug(f"Plot server on port {self.port} stopped")

    @property
    def is_running(self) -> bool:
        """Check if the server thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def url(self) -> str:
        """Browser URL of the root page."""
        host = "localhost" if self.host in ("127.0.0.1", "0.0.0.0", "") else self.host
        return f"http://{host}:{self.port}"

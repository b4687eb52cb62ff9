"""vegaview: push Vega / Vega-Lite specs from Python to a browser tab.

Starts a local server on first use, opens a browser tab and renders every
spec you send with Vega-Embed. One tab, one chart at a time: each new spec
replaces the last, with a Loading screen in between so an old chart is
never mistaken for the current one.

Quick Start:
    import vegaview

    vegaview.plot({
        "data": {"values": [{"a": "A", "b": 28}, {"a": "B", "b": 55}]},
        "mark": "bar",
        "encoding": {
            "x": {"field": "a", "type": "nominal"},
            "y": {"field": "b", "type": "quantitative"},
        },
    })
    vegaview.plot(spec, port=8081)   # moves the viewer to another port
    vegaview.stop_server()
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from vegaview._types import PlotResult, SendFailure, ServerInfo, SessionState
from vegaview.config import ViewerConfig
from vegaview.errors import (
    DocumentEncodingError,
    LostConnectionError,
    PortInUseError,
    VegaviewError,
)
from vegaview.viewer import Viewer

__all__ = [
    "DocumentEncodingError",
    "LostConnectionError",
    "PlotResult",
    "PortInUseError",
    "SendFailure",
    "ServerInfo",
    "SessionState",
    "VegaviewError",
    "Viewer",
    "ViewerConfig",
    "configure",
    "last_document",
    "last_spec",
    "plot",
    "server_status",
    "session_state",
    "start_server",
    "stop_server",
    "try_plot",
]

logger = logging.getLogger(__name__)

# Module-level state (thread-safe via _lock)
_lock = threading.Lock()
_viewer: Viewer | None = None


def _get_viewer() -> Viewer:
    """Return the default viewer, creating it from the environment if needed."""
    global _viewer
    with _lock:
        if _viewer is None:
            _viewer = Viewer()
        return _viewer


def configure(config: ViewerConfig | None = None, **overrides: Any) -> Viewer:
    """Replace the default viewer with one using the given settings.

    Any running default server is stopped first.

    Args:
        config: Base configuration (default: from environment).
        **overrides: ViewerConfig fields to change, e.g. ``port=8081``.

    Returns:
        The new default Viewer.
    """
    global _viewer
    base = config if config is not None else ViewerConfig.from_env()
    with _lock:
        old, _viewer = _viewer, Viewer(base.with_overrides(**overrides))
        new = _viewer
    if old is not None:
        old.stop_server()
    logger.debug(f"Default viewer reconfigured (port {new.config.port})")
    return new


def start_server(port: int | None = None) -> ServerInfo:
    """Start the viewer server (stopping any running one) and open a browser.

    Blocks until the browser connects or the configured connect timeout
    passes, then shows the Ready placeholder.

    Args:
        port: Port to bind (default 8080, or ``VEGAVIEW_PORT``).

    Returns:
        ServerInfo with port, server, channel and URL.
    """
    return _get_viewer().start_server(port)


def stop_server() -> bool:
    """Stop the viewer server. Does nothing if none is running.

    Returns:
        True if a server was stopped.
    """
    with _lock:
        viewer = _viewer
    if viewer is None:
        return False
    return viewer.stop_server()


def plot(spec: Any, port: int | None = None) -> PlotResult:
    """Send a Vega / Vega-Lite spec to the browser.

    Starts a server if none exists. If ``port`` is given, any server
    running on another port is stopped and a new one started there.
    Each spec is saved for debugging (see ``last_spec()``).

    Args:
        spec: The spec as a dict (or any object with ``to_dict()``).
        port: Optional port for the viewer.

    Returns:
        PlotResult with port, server, channel and send status.

    Raises:
        LostConnectionError: If the WebSocket connection to the browser was
            lost. Re-open the browser tab or restart the server.
    """
    return _get_viewer().plot(spec, port)


def try_plot(spec: Any, port: int | None = None) -> PlotResult:
    """Like ``plot()``, but returns a failed PlotResult instead of raising."""
    return _get_viewer().try_plot(spec, port)


def last_spec() -> str | None:
    """JSON text of the most recent spec passed to ``plot()``."""
    with _lock:
        viewer = _viewer
    return viewer.last_spec if viewer is not None else None


def last_document() -> Any:
    """The most recent spec passed to ``plot()``, as given."""
    with _lock:
        viewer = _viewer
    return viewer.last_document if viewer is not None else None


def server_status() -> dict[str, Any] | None:
    """Return info about the running viewer server, or None."""
    with _lock:
        viewer = _viewer
    return viewer.status() if viewer is not None else None


def session_state() -> SessionState | None:
    """What the browser slot shows (READY, LOADING or SERVED), or None."""
    with _lock:
        viewer = _viewer
    return viewer.state if viewer is not None else None

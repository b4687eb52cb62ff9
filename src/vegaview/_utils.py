"""Shared utilities for the vegaview package.

Port binding checks, listener readiness polling and the default browser
launcher.
"""

from __future__ import annotations

import json
import logging
import socket
import time

from vegaview.errors import PortInUseError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Port handling
# ---------------------------------------------------------------------------


def resolve_port(host: str, port: int) -> int:
    """Check that ``port`` can be bound on ``host`` and return it.

    Port 0 asks the OS for a free ephemeral port. Unlike a scan over a port
    range, the requested port is never silently swapped for another one.

    Raises:
        PortInUseError: If the port is already bound.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            # Same option uvicorn binds with; a restart must not trip over
            # TIME_WAIT connections left by the previous listener.
            s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            s.bind((host, port))
            return s.getsockname()[1]
    except OSError as e:
        raise PortInUseError(host, port) from e


def wait_for_port(host: str, port: int, timeout: float = 3.0) -> bool:
    """Wait until something accepts TCP connections on host:port."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.settimeout(0.1)
                s.connect((host, port))
                return True
        except OSError:
            time.sleep(0.05)
    return False


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------


def health_check(url: str) -> dict | None:
    """GET /api/health and return the payload, or None if unreachable."""
    try:
        import urllib.request

        req = urllib.request.Request(f"{url}/api/health", method="GET")
        with urllib.request.urlopen(req, timeout=2) as resp:
            data = json.loads(resp.read())
    except Exception:
        return None
    if data.get("status") != "ok":
        return None
    return data


# ---------------------------------------------------------------------------
# Browser launch
# ---------------------------------------------------------------------------


def open_in_browser(url: str) -> None:
    """Point the default browser at ``url``; failures are only logged."""
    try:
        import webbrowser

        if not webbrowser.open(url):
            logger.warning(f"Could not open a browser; visit {url} manually")
    except Exception:
        logger.warning(f"Could not open a browser; visit {url} manually")

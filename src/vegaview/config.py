"""Viewer configuration.

Defaults can be overridden per call, per ``Viewer`` or through environment
variables read by ``ViewerConfig.from_env()``:

    VEGAVIEW_HOST             bind host (default 127.0.0.1)
    VEGAVIEW_PORT             listener port (default 8080)
    VEGAVIEW_NO_BROWSER       any non-empty value disables opening a tab
    VEGAVIEW_CONNECT_TIMEOUT  seconds to wait for the browser ("none" = forever)
    VEGAVIEW_SEND_TIMEOUT     seconds to wait for a single WebSocket send
    VEGAVIEW_STATIC_DIR       extra directory served for GET /<path>
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_SEND_TIMEOUT = 5.0
DEFAULT_STOP_GRACE = 0.1


@dataclass(frozen=True)
class ViewerConfig:
    """Settings for one viewer (server, browser launch and channel waits)."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    open_browser: bool = True
    connect_timeout: float | None = DEFAULT_CONNECT_TIMEOUT
    """Upper bound on waiting for the first browser handshake; None waits forever."""

    send_timeout: float = DEFAULT_SEND_TIMEOUT
    stop_grace: float = DEFAULT_STOP_GRACE
    """Time the listener gets to drain connections on stop."""

    close_superseded: bool = True
    """Close the previous channel when a newer handshake replaces it."""

    static_dir: Path | None = None

    @classmethod
    def from_env(cls) -> ViewerConfig:
        """Build a config from ``VEGAVIEW_*`` environment variables."""
        static_dir = os.getenv("VEGAVIEW_STATIC_DIR")
        return cls(
            host=os.getenv("VEGAVIEW_HOST") or DEFAULT_HOST,
            port=_env_port("VEGAVIEW_PORT", DEFAULT_PORT),
            open_browser=not os.getenv("VEGAVIEW_NO_BROWSER"),
            connect_timeout=_env_timeout(
                "VEGAVIEW_CONNECT_TIMEOUT", DEFAULT_CONNECT_TIMEOUT
            ),
            send_timeout=_env_timeout("VEGAVIEW_SEND_TIMEOUT", DEFAULT_SEND_TIMEOUT)
            or DEFAULT_SEND_TIMEOUT,
            static_dir=Path(static_dir) if static_dir else None,
        )

    def with_overrides(self, **changes: object) -> ViewerConfig:
        """Return a copy with the given fields replaced.

        Only fields passed are changed, so ``connect_timeout=None`` really
        means "wait forever" rather than "keep the default".
        """
        return replace(self, **changes)


def _env_port(name: str, default: int) -> int:
    """Return a port number from ``name`` if it is well-formed."""
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        port = int(raw)
    except ValueError:
        return default
    return port if 0 <= port <= 65535 else default


def _env_timeout(name: str, default: float | None) -> float | None:
    """Return a positive float from ``name``; "none" means no timeout."""
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    if raw.lower() == "none":
        return None
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default

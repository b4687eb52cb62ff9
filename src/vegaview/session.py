"""State machine for the single visualization slot.

The slot moves READY -> LOADING -> SERVED -> LOADING -> SERVED ... and only
as a side effect of a dispatch. Every document is preceded by the Loading
placeholder, so a slow or broken render never leaves the previous chart on
screen looking current.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Callable
from typing import Any

from vegaview import codec
from vegaview._types import Channel, SessionState

logger = logging.getLogger(__name__)

READY_SPEC: dict[str, Any] = {
    "title": {
        "text": "vegaview",
        "font": "Helvetica",
        "color": "#333333",
        "fontSize": 32,
        "dy": 200,
        "dx": 100,
        "subtitle": "Waiting for specs to plot...",
        "subtitleFontSize": 18,
        "subtitlePadding": 25,
    },
    "width": 450,
    "height": 450,
}
"""Minimal Vega-Lite spec shown when the page first connects."""


def _loading_spec() -> dict[str, Any]:
    spec = copy.deepcopy(READY_SPEC)
    spec["title"]["text"] = "Loading next spec..."
    spec["title"]["subtitle"] = (
        "If you're seeing this, then either your spec is very large, or it "
        "caused an error. Check your spec (see `vegaview.last_spec()`) and "
        "the browser console."
    )
    return spec


LOADING_SPEC: dict[str, Any] = _loading_spec()
"""Minimal Vega-Lite spec shown while a user spec is loading."""

READY_TEXT = codec.encode(READY_SPEC)
LOADING_TEXT = codec.encode(LOADING_SPEC)

TransitionCallback = Callable[[SessionState, SessionState], None]


class SessionStateMachine:
    """Tracks what the browser shows and sends the payload of each transition.

    Keeps the most recent dispatched document (and its wire text) for
    inspection, whether or not it reached the browser.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = SessionState.READY
        self._last_document: Any = None
        self._last_spec: str | None = None
        self._callbacks: list[TransitionCallback] = []

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def last_document(self) -> Any:
        """The last document handed to the channel (even if the send failed)."""
        with self._lock:
            return self._last_document

    @property
    def last_spec(self) -> str | None:
        """Wire text of ``last_document``."""
        with self._lock:
            return self._last_spec

    def on_transition(self, callback: TransitionCallback) -> None:
        """Register ``callback(old_state, new_state)`` for every transition."""
        with self._lock:
            self._callbacks.append(callback)

    def _transition(self, new_state: SessionState) -> None:
        with self._lock:
            old_state = self._state
            self._state = new_state
            callbacks = list(self._callbacks)
        for cb in callbacks:
            try:
                cb(old_state, new_state)
            except Exception:
                logger.debug("Transition callback error", exc_info=True)

    def show_ready(self, channel: Channel | None) -> bool:
        """Send the Ready placeholder and reset the slot to READY."""
        self._transition(SessionState.READY)
        return _send(channel, READY_TEXT)

    def dispatch(self, channel: Channel | None, document: Any) -> bool:
        """Send Loading, then ``document``, through ``channel``.

        The document is encoded first, so an unencodable document fails
        before the browser is touched.

        Returns:
            True if the document itself was handed to the channel.

        Raises:
            DocumentEncodingError: If the document cannot be encoded.
        """
        text = codec.encode(document)

        self._transition(SessionState.LOADING)
        if not _send(channel, LOADING_TEXT):
            logger.debug("Loading placeholder was not delivered")
        sent = _send(channel, text)

        with self._lock:
            self._last_document = document
            self._last_spec = text
        self._transition(SessionState.SERVED)

        if not sent:
            logger.warning("Document was not delivered to the browser")
        return sent


def _send(channel: Channel | None, text: str) -> bool:
    if channel is None:
        return False
    return channel.send(text)

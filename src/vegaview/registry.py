"""Single-slot registry for the browser channel.

Holds at most one channel. The most recent WebSocket handshake always
wins; there is no negotiation and no multiplexing. All reads and writes go
through one condition variable, so a reader never sees a half-replaced slot
and ``wait_for_channel`` can block without polling.
"""

from __future__ import annotations

import logging
import threading

from vegaview._types import Channel

logger = logging.getLogger(__name__)


class ChannelRegistry:
    """Holds the current browser channel, if any.

    Args:
        close_superseded: Close the previous channel when a new one is
            registered. With False the old reference is simply dropped and
            left to time out on its own.
    """

    def __init__(self, close_superseded: bool = True) -> None:
        self.close_superseded = close_superseded
        self._channel: Channel | None = None
        self._cond = threading.Condition()

    def set_channel(self, channel: Channel) -> None:
        """Register ``channel``, replacing any previous one."""
        with self._cond:
            previous = self._channel
            self._channel = channel
            self._cond.notify_all()
        if previous is not None and previous is not channel:
            logger.debug(
                f"Channel {channel.channel_id} supersedes {previous.channel_id}"
            )
            if self.close_superseded:
                previous.close()

    def get_channel(self) -> Channel | None:
        """Return the current channel, or None."""
        with self._cond:
            return self._channel

    def clear(self) -> None:
        """Reset the slot to None without closing the channel."""
        with self._cond:
            self._channel = None

    def wait_for_channel(self, timeout: float | None = None) -> Channel | None:
        """Block until a channel is registered or ``timeout`` seconds pass.

        Returns:
            The registered channel, or None on timeout.
        """
        with self._cond:
            self._cond.wait_for(lambda: self._channel is not None, timeout=timeout)
            return self._channel

    @property
    def has_channel(self) -> bool:
        return self.get_channel() is not None

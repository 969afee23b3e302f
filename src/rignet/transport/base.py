"""Channel interface.

This is the (small) contract that channel implementations should follow.
It lives outside :mod:`rignet.protocol` so the framing stays independent of
the socket details.
"""

from __future__ import annotations

import enum
import time
from abc import ABC, abstractmethod
from typing import Optional


# Transport exceptions

class ChannelError(Exception):
    """Base class for all channel-layer errors."""


class TryAgain(ChannelError):
    """A non-blocking operation could not make progress yet; retry later."""


class ChannelClosed(ChannelError):
    """The peer closed the connection, or the channel was closed locally."""


class Status(enum.Enum):
    """ Outcome of one non-blocking accept or connect attempt. Fatal
        outcomes are not represented here, they raise :class:`ChannelError`.
    """

    OK = 'ok'
    TRY_AGAIN = 'try again'
    OTHER_ERROR = 'other error'


class State(enum.Enum):

    CLOSED = 'closed'
    OPEN = 'open'
    LISTENING = 'listening'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'


class Clock:
    """ Time source for the bring-up retry loops. Tests substitute their own
        instance so that many retry cycles can be simulated without waiting
        on the wall clock.
    """

    def time(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class Channel(ABC):
    """Minimal contract for a connected byte-stream transport."""

    state = State.CLOSED

    @abstractmethod
    def send(self, data: bytes) -> int:
        """Write as much of *data* as possible, return the byte count."""

    @abstractmethod
    def receive(self, timeout: Optional[float] = 0) -> bytes:
        """Return the next available bytes, waiting up to *timeout* seconds."""

    @abstractmethod
    def close(self) -> None:
        """Tear down the underlying connection."""

    def wait_writable(self, timeout: Optional[float]) -> bool:
        """Block up to *timeout* seconds until :func:`send` can make progress."""
        return True

    @property
    def is_connected(self) -> bool:
        return self.state == State.CONNECTED


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

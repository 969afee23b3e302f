"""Transport layer implementations."""

from .base import (
    Channel,
    ChannelError,
    ChannelClosed,
    Clock,
    State,
    Status,
    TryAgain,
)

from . import tcp
from .tcp import StreamChannel, TCPClient, TCPServer, socket_pair


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

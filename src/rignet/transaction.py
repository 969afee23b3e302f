"""Synchronous request/reply on top of :class:`rignet.process.Process`."""

from __future__ import annotations

import structlog

from .protocol.message import ServiceMessage


logger = structlog.get_logger(__name__)

default_timeout = 10000


class ServiceTransaction:
    """Pair a request and a reply message with the standard call pattern.

    The reply must be registered as a handler on *process* so that
    :func:`rignet.process.Process.receive_wait` decodes into it. Both
    messages are long-lived; each call overwrites them.
    """

    def __init__(self, process, channel, request: ServiceMessage, reply: ServiceMessage,
                 timeout_ms: int = default_timeout):
        self.process = process
        self.channel = channel
        self.request = request
        self.reply = reply
        self.timeout_ms = timeout_ms

    def send_wait_receive(self) -> ServiceMessage:
        """Send the request and block until the reply arrives.

        The reply is reset before waiting, so a stale answer from an earlier
        round can never be mistaken for this one. Timeouts propagate as
        :class:`rignet.process.TransactionTimeout`.
        """

        process = self.process

        process.enqueue_message(self.channel, self.request, False, False)
        process.send_wait(self.timeout_ms)
        self.reply.reset()
        process.receive_wait(self.timeout_ms, 1)

        if self.reply.request_id != self.request.request_id:
            logger.warning("request id mismatch",
                           process=process.name,
                           expected=self.request.request_id,
                           received=self.reply.request_id)

        return self.reply


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

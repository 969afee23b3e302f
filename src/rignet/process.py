""" The :class:`Process` is the per-process hub of rignet: it owns the
    channels to its peers, an outgoing queue per channel, and the registry
    of long-lived payload objects that incoming messages are decoded into.

    Everything is single-threaded and synchronous. The one thread that owns
    a :class:`Process` drives it through :func:`Process.enqueue_message`,
    :func:`Process.send_wait`, and :func:`Process.receive_wait`; the latter
    two are the only places it blocks, and only up to their deadline.
"""

from __future__ import annotations

import collections
from typing import Dict

import structlog

from .protocol import wire
from .protocol.registry import Registry
from .transport import Clock, TryAgain


logger = structlog.get_logger(__name__)


class TransactionError(Exception):
    """Base class for send/receive failures that leave the process usable."""


class TransactionTimeout(TransactionError):
    """A send or receive did not complete before its deadline."""


class QueueFull(TransactionError):
    """The outgoing queue for a channel is at its limit."""


class _Sink:

    __slots__ = ('channel', 'priority', 'outgoing', 'offset')

    def __init__(self, channel, priority):
        self.channel = channel
        self.priority = priority
        self.outgoing = collections.deque()
        self.offset = 0


class _Source:

    __slots__ = ('channel', 'priority', 'inbox', 'peer_order')

    def __init__(self, channel, priority):
        self.channel = channel
        self.priority = priority
        self.inbox = bytearray()
        self.peer_order = None


class Process:
    """ A rig process endpoint. The *name* shows up in log messages; *role*
        is the :class:`rignet.netconfig.ProcessRole` this process plays.
        Outgoing messages are written in the *endian* byte order. With
        *endian_detect* set, the byte order of each source is taken from
        the first frame received on it; otherwise every source is expected
        to use the same order as this process.

        :ivar messages_sent: Frames fully written to a channel.
        :ivar messages_received: Frames read off a channel, dispatched or not.
    """

    poll_interval = 0.01
    queue_limit = 64
    blocking_timeout = 1000

    def __init__(self, name, role=None, endian=wire.NATIVE, endian_detect=False,
                 queue_limit=None, clock=None, blocking_timeout=None):

        self.name = name
        self.role = role
        self.endian = wire.resolve(endian)
        self.endian_detect = bool(endian_detect)

        if queue_limit is not None:
            self.queue_limit = int(queue_limit)

        if blocking_timeout is not None:
            self.blocking_timeout = int(blocking_timeout)

        if clock is None:
            clock = Clock()

        self.clock = clock
        self.registry = Registry()
        self.messages_sent = 0
        self.messages_received = 0

        self._sinks: Dict[object, _Sink] = {}
        self._sources: Dict[object, _Source] = {}

        self.logger = logger.bind(process=name)


    def __repr__(self):
        return 'Process(%r, role=%s)' % (self.name, self.role)


    # --- setup ---

    def add_sink(self, channel, priority=0):
        """ Allow messages to be enqueued for *channel*. Higher *priority*
            sinks are drained first by :func:`send_wait`.
        """

        if channel in self._sinks:
            raise ValueError('channel already added as a sink: ' + repr(channel))
        self._sinks[channel] = _Sink(channel, priority)


    def add_source(self, channel, priority=0):
        """ Read messages from *channel* during :func:`receive_wait`. Higher
            *priority* sources are read first.
        """

        if channel in self._sources:
            raise ValueError('channel already added as a source: ' + repr(channel))
        self._sources[channel] = _Source(channel, priority)


    def create_handler(self, type_id, name, payload):
        """ Register *payload* as the object that incoming messages of
            *type_id* are decoded into.
        """

        return self.registry.add(type_id, name, payload)


    def handle_message_payload(self, type_id):
        """ Called after a message of *type_id* has been decoded into its
            payload. The default does nothing; subclasses react to the
            messages they care about here.
        """

        pass


    def pending(self, channel=None):
        """ Return the number of frames not yet fully written, either for a
            single *channel* or for all of them.
        """

        if channel is not None:
            return len(self._sink(channel).outgoing)

        total = 0
        for sink in self._sinks.values():
            total += len(sink.outgoing)
        return total


    def _sink(self, channel):
        try:
            return self._sinks[channel]
        except KeyError:
            raise ValueError('channel is not a sink of %r: %r' % (self.name, channel))


    def _ordered(self, links):
        return sorted(links.values(), key=lambda link: -link.priority)


    # --- sending ---

    def enqueue_message(self, channel, message, urgent=False, blocking=False):
        """ Encode a snapshot of *message* and queue it for *channel*. An
            *urgent* message goes to the front of the queue, though never
            ahead of a frame that is already partially written. If the queue
            is full, a *blocking* enqueue drains it with :func:`send_wait`
            first, for at most :attr:`blocking_timeout` milliseconds, and
            raises :class:`TransactionTimeout` if the peer does not keep
            up; a non-blocking enqueue raises :class:`QueueFull` instead.
        """

        sink = self._sink(channel)

        if len(sink.outgoing) >= self.queue_limit:
            if blocking:
                self.send_wait(self.blocking_timeout)
            else:
                raise QueueFull('%s: %d messages already queued for %r' % (self.name, len(sink.outgoing), channel))

        frame = wire.encode(message, self.endian)

        if urgent:
            if sink.offset > 0:
                sink.outgoing.insert(1, frame)
            else:
                sink.outgoing.appendleft(frame)
        else:
            sink.outgoing.append(frame)


    def send_wait(self, timeout_ms):
        """ Write every queued frame to its channel, blocking up to
            *timeout_ms* milliseconds; None blocks until done. Raises
            :class:`TransactionTimeout` if anything is left over; a partially
            written frame stays at the head of its queue and is completed by
            the next call.
        """

        deadline = self._deadline(timeout_ms)

        for sink in self._ordered(self._sinks):
            channel = sink.channel
            outgoing = sink.outgoing

            while outgoing:
                remaining = self._remaining(deadline)

                if remaining is not None and remaining <= 0:
                    raise TransactionTimeout('%s: send_wait(%s) timed out with %d frames queued' % (
                        self.name, timeout_ms, self.pending()))

                frame = outgoing[0]

                try:
                    sent = channel.send(memoryview(frame)[sink.offset:])
                except TryAgain:
                    channel.wait_writable(self._slice(remaining))
                    continue

                sink.offset += sent

                if sink.offset >= len(frame):
                    outgoing.popleft()
                    sink.offset = 0
                    self.messages_sent += 1


    # --- receiving ---

    def receive_wait(self, timeout_ms, min_count=1):
        """ Read and dispatch incoming messages until at least *min_count*
            of them have been absorbed by registered handlers, blocking up
            to *timeout_ms* milliseconds. Returns the number dispatched.
            Messages of unregistered types are read and dropped but do not
            count. Complete frames beyond *min_count* stay buffered for the
            next call. Raises :class:`TransactionTimeout` if the deadline
            passes first.
        """

        sources = self._ordered(self._sources)

        if not sources:
            raise TransactionError('%s: receive_wait() without any source channels' % (self.name))

        deadline = self._deadline(timeout_ms)
        dispatched = 0

        # One non-blocking pass first, so that a zero timeout still picks
        # up whatever already arrived.

        for source in sources:
            if dispatched >= min_count:
                break
            dispatched += self._read(source, 0, min_count - dispatched)

        while dispatched < min_count:
            remaining = self._remaining(deadline)

            if remaining is not None and remaining <= 0:
                raise TransactionTimeout('%s: receive_wait(%s, %d) timed out after %d messages' % (
                    self.name, timeout_ms, min_count, dispatched))

            if len(sources) == 1:
                wait = remaining
            else:
                wait = self._slice(remaining) / len(sources)

            for source in sources:
                dispatched += self._read(source, wait, min_count - dispatched)
                if dispatched >= min_count:
                    break

        return dispatched


    def _read(self, source, wait, wanted):

        # Frames left over from an earlier call go first.

        dispatched = self._dispatch(source, wanted)
        if dispatched >= wanted:
            return dispatched

        try:
            data = source.channel.receive(wait)
        except TryAgain:
            return dispatched

        source.inbox.extend(data)
        return dispatched + self._dispatch(source, wanted - dispatched)


    def _dispatch(self, source, wanted):
        """ Decode complete frames in the inbox of *source* until *wanted*
            of them have been handled or the inbox runs dry.
        """

        inbox = source.inbox
        dispatched = 0

        while dispatched < wanted:
            try:
                header = wire.parse_header(inbox)
            except wire.ProtocolError:
                # There is no way to find the next frame boundary.
                inbox.clear()
                raise

            if header is None or len(inbox) < header.frame_size:
                break

            frame = bytes(inbox[:header.frame_size])
            del inbox[:header.frame_size]
            self.messages_received += 1

            self._check_order(source, header)

            handler = self.registry.dispatch(header, frame)
            if handler is None:
                continue

            dispatched += 1
            self.handle_message_payload(header.type_id)

        return dispatched


    def _check_order(self, source, header):

        if source.peer_order is None:
            if self.endian_detect:
                source.peer_order = header.order
                self.logger.debug('peer byte order detected', channel=repr(source.channel), order=header.order)
            else:
                source.peer_order = self.endian

        if header.order != source.peer_order:
            raise wire.ProtocolError('%s: frame of type %d is %s-endian, channel is %s-endian' % (
                self.name, header.type_id, header.order, source.peer_order))


    # --- timing ---

    def _deadline(self, timeout_ms):
        if timeout_ms is None:
            return None
        return self.clock.time() + timeout_ms / 1000.0


    def _remaining(self, deadline):
        if deadline is None:
            return None
        return deadline - self.clock.time()


    def _slice(self, remaining):
        if remaining is None:
            return self.poll_interval
        return max(0.0, min(remaining, self.poll_interval))


    # --- teardown ---

    def close(self):
        """ Close every channel exactly once and forget them.
        """

        channels = list()

        for channel in list(self._sinks) + list(self._sources):
            if channel not in channels:
                channels.append(channel)

        self._sinks.clear()
        self._sources.clear()

        for channel in channels:
            channel.close()


# end of class Process


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

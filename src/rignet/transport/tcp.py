""" TCP implementation of the :class:`rignet.transport.base.Channel`
    contract. A :class:`TCPServer` binds a fixed port and waits for exactly
    one peer; a :class:`TCPClient` connects to it. Both sides end up as a
    connected, non-blocking :class:`StreamChannel`.
"""

import errno
import os
import select
import socket
import sys

import structlog

from .base import Channel, ChannelClosed, ChannelError, Clock, State, Status, TryAgain


logger = structlog.get_logger(__name__)

retry_interval = 0.25

_try_again = set((errno.EAGAIN, errno.EWOULDBLOCK, errno.EINPROGRESS, errno.EALREADY))

# Connect failures that are expected while the server side is still coming
# up, or restarting. The socket is discarded and the attempt repeated.

_transient = set((
    errno.ECONNREFUSED,
    errno.ECONNRESET,
    errno.ECONNABORTED,
    errno.ETIMEDOUT,
    errno.EHOSTUNREACH,
    errno.ENETUNREACH,
))


class StreamChannel(Channel):
    """ A connected, non-blocking TCP (or local stream) socket. The *peer*
        is informational only, it shows up in log messages and errors.
    """

    chunk = 65536

    def __init__(self, sock=None, peer=None):

        self.socket = None
        self.peer = peer
        self.state = State.CLOSED

        if sock is not None:
            sock.setblocking(False)
            self.socket = sock
            self.state = State.CONNECTED


    def __repr__(self):
        return '%s(%s, %s)' % (self.__class__.__name__, self.peer, self.state.value)


    def _connected(self):
        if self.state != State.CONNECTED or self.socket is None:
            raise ChannelClosed('channel is not connected: ' + repr(self))
        return self.socket


    def fileno(self):
        return self._connected().fileno()


    def send(self, data):

        sock = self._connected()

        if not data:
            return 0

        try:
            sent = sock.send(data)
        except BlockingIOError:
            raise TryAgain('send would block')
        except (BrokenPipeError, ConnectionResetError) as e:
            self.close()
            raise ChannelClosed('peer went away during send: ' + str(e)) from e
        except OSError as e:
            raise ChannelError('send failed: ' + str(e)) from e

        return sent


    def receive(self, timeout=0):
        """ Return whatever bytes are available. With a positive *timeout*
            (in seconds) wait that long for data to show up; a *timeout* of
            None waits indefinitely. :class:`TryAgain` is raised if there is
            still nothing to read.
        """

        sock = self._connected()

        if timeout is None or timeout > 0:
            try:
                readable, _, _ = select.select((sock,), (), (), timeout)
            except (OSError, ValueError) as e:
                raise ChannelError('select failed: ' + str(e)) from e

            if not readable:
                raise TryAgain('no data within %.3f sec' % (timeout))

        try:
            data = sock.recv(self.chunk)
        except BlockingIOError:
            raise TryAgain('no data available')
        except ConnectionResetError as e:
            self.close()
            raise ChannelClosed('connection reset by peer') from e
        except OSError as e:
            raise ChannelError('receive failed: ' + str(e)) from e

        if data == b'':
            self.close()
            raise ChannelClosed('peer closed the connection')

        return data


    def wait_writable(self, timeout):

        sock = self._connected()

        try:
            _, writable, _ = select.select((), (sock,), (), timeout)
        except (OSError, ValueError) as e:
            raise ChannelError('select failed: ' + str(e)) from e

        return bool(writable)


    def close(self):

        sock = self.socket
        self.socket = None
        self.state = State.CLOSED

        if sock is not None:
            try:
                sock.close()
            except OSError:
                pass


# end of class StreamChannel



class _BringUp(StreamChannel):
    """ Common machinery for the two bring-up roles: the retry interval, the
        injectable clock, and the progress indicators written for the
        operator while waiting on the other side.
    """

    def __init__(self, address, port, clock=None, progress=None, interval=None):

        StreamChannel.__init__(self, peer='%s:%d' % (address, port))

        self.address = address
        self.port = int(port)

        if clock is None:
            clock = Clock()
        if interval is None:
            interval = retry_interval

        self.clock = clock
        self.interval = interval
        self._progress = progress


    def _write(self, text):

        # Resolved on every call so that a redirected (or captured) stdout
        # is honored.

        progress = self._progress
        if progress is None:
            progress = sys.stdout

        progress.write(text)
        progress.flush()


    def _open_socket(self):
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError as e:
            raise ChannelError('socket() failed: ' + str(e)) from e

        sock.setblocking(False)
        return sock


# end of class _BringUp



class TCPServer(_BringUp):
    """ Bind to *address* and *port*, listen, and accept a single peer. The
        listening socket is retained until :func:`close` so that the port
        stays reserved for the life of the channel.
    """

    backlog = 1

    def __init__(self, address, port, **kwargs):
        _BringUp.__init__(self, address, port, **kwargs)
        self.listener = None


    def open(self):

        if self.listener is not None:
            raise ChannelError('server channel already open: ' + repr(self))

        sock = self._open_socket()
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        self.listener = sock
        self.state = State.OPEN


    def bind_listen(self, backlog=None):

        if self.listener is None:
            self.open()

        if backlog is None:
            backlog = self.backlog

        try:
            self.listener.bind((self.address, self.port))
            self.listener.listen(backlog)
        except OSError as e:
            self.close()
            raise ChannelError('bind/listen on %s:%d failed: %s' % (self.address, self.port, e)) from e

        self.state = State.LISTENING
        logger.debug('listening', address=self.address, port=self.port, backlog=backlog)


    def accept(self):
        """ Make one non-blocking attempt to accept the peer.
        """

        if self.state != State.LISTENING:
            raise ChannelError('accept() requires a listening channel: ' + repr(self))

        try:
            sock, peer = self.listener.accept()
        except BlockingIOError:
            return Status.TRY_AGAIN
        except OSError as e:
            raise ChannelError('accept on port %d failed: %s' % (self.port, e)) from e

        sock.setblocking(False)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        self.socket = sock
        self.peer = '%s:%d' % (peer[0], peer[1])
        self.state = State.CONNECTED

        logger.debug('accepted', port=self.port, peer=self.peer)
        return Status.OK


    def bring_up(self, label=None):
        """ Open, bind, listen, and keep trying to accept until a peer shows
            up. One progress dot is written for every retry interval spent
            waiting. Failures other than 'try again' are fatal.
        """

        if label is None:
            label = repr(self)

        self.bind_listen()
        self._write(label + ': accepting ')

        status = self.accept()
        while status == Status.TRY_AGAIN:
            self._write('.')
            self.clock.sleep(self.interval)
            status = self.accept()

        self._write('OK\n')
        return self


    def close(self):

        StreamChannel.close(self)

        listener = self.listener
        self.listener = None

        if listener is not None:
            try:
                listener.close()
            except OSError:
                pass


# end of class TCPServer



class TCPClient(_BringUp):
    """ Connect to a :class:`TCPServer` listening on *address* and *port*.
    """

    def open(self):

        if self.socket is not None:
            raise ChannelError('client channel already open: ' + repr(self))

        self.socket = self._open_socket()
        self.state = State.OPEN


    def _discard(self):
        StreamChannel.close(self)


    def connect(self):
        """ Make one non-blocking connection attempt. A transient failure
            discards the socket; the next attempt starts over with a fresh
            one, since a refused socket cannot be reused.
        """

        if self.socket is None:
            self.open()

        try:
            result = self.socket.connect_ex((self.address, self.port))
        except OSError as e:
            # Name resolution failures and the like land here.
            self._discard()
            raise ChannelError('connect to %s:%d failed: %s' % (self.address, self.port, e)) from e

        if result == 0 or result == errno.EISCONN:
            self.socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            self.state = State.CONNECTED
            logger.debug('connected', address=self.address, port=self.port)
            return Status.OK

        if result in _try_again:
            self.state = State.CONNECTING
            return Status.TRY_AGAIN

        if result in _transient:
            logger.debug('connect retry', address=self.address, port=self.port, reason=os.strerror(result))
            self._discard()
            return Status.OTHER_ERROR

        self._discard()
        raise ChannelError('connect to %s:%d failed: %s' % (self.address, self.port, os.strerror(result)))


    def bring_up(self, label=None):
        """ Keep trying to connect until the server accepts. Each retry
            writes one progress indicator: a dot while the attempt is still
            pending, an 'x' when it was refused or otherwise failed in a
            way that is expected to clear up.
        """

        if label is None:
            label = repr(self)

        self._write(label + ': connecting ')

        status = self.connect()
        while status != Status.OK:
            if status == Status.TRY_AGAIN:
                self._write('.')
            else:
                self._write('x')
            self.clock.sleep(self.interval)
            status = self.connect()

        self._write('OK\n')
        return self


# end of class TCPClient



def socket_pair():
    """ Return two :class:`StreamChannel` instances connected to each other,
        suitable for running both ends of a link within one Python process.
    """

    left, right = socket.socketpair()
    return StreamChannel(left, 'pair:left'), StreamChannel(right, 'pair:right')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

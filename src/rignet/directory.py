""" The directory service answers one question: which behaviors does the
    servo process offer? Clients fetch the list once and cache it for the
    life of the process, unless told to :func:`DirectoryClient.invalidate`.

    Two clients are provided. :class:`CmdDirectoryClient` asks through the
    regular rignet service messages, over an existing channel to the servo
    process. :class:`RemoteDirectoryClient` makes an independent call to a
    :class:`DirectoryServer`, which exposes any other directory client over
    a ZeroMQ REQ/REP socket.
"""

import sys
import traceback

import structlog
import zmq

from . import json
from .process import TransactionError
from .protocol import service
from .protocol.wire import ProtocolError
from .transport import ChannelError


logger = structlog.get_logger(__name__)

default_port = 8080
zmq_context = zmq.Context()


class DirectoryError(Exception):
    """The directory round trip failed; nothing was cached."""


class DirectoryClient:
    """ Lazily fetch and cache the behavior listing. Subclasses implement
        :func:`_fetch_behaviors`, which performs exactly one round trip and
        raises :class:`DirectoryError` on failure.

        :ivar round_trips: Number of fetch attempts made so far.
    """

    def __init__(self):
        self._behaviors = None
        self.round_trips = 0


    def list_behaviors(self):
        """ Return the ordered behavior names. Only the first call after
            construction or :func:`invalidate` goes to the network.
        """

        if self._behaviors is None:
            self.round_trips += 1
            behaviors = self._fetch_behaviors()
            self._behaviors = tuple(_check_names(behaviors))

        return self._behaviors


    def invalidate(self):
        self._behaviors = None


    @property
    def cached(self):
        return self._behaviors is not None


    def _fetch_behaviors(self):
        raise NotImplementedError


# end of class DirectoryClient



def _check_names(names):

    if not isinstance(names, (list, tuple)):
        raise DirectoryError('behavior listing is not a list: %r' % (names,))

    for name in names:
        if not isinstance(name, str):
            raise DirectoryError('behavior name is not a string: %r' % (name,))

    return names



class CmdDirectoryClient(DirectoryClient):
    """ Ask the servo process directly, using the service messages of the
        supplied :class:`rignet.transaction.ServiceTransaction`. The reply
        carries the names as a JSON list in its text payload.
    """

    def __init__(self, transaction):
        DirectoryClient.__init__(self)
        self.transaction = transaction


    def _fetch_behaviors(self):

        service.list_behaviors(self.transaction.request)

        try:
            reply = self.transaction.send_wait_receive()
        except (TransactionError, ChannelError, ProtocolError) as e:
            raise DirectoryError('list_behaviors round trip failed: ' + str(e)) from e

        status = reply.status

        if status != service.Result.SUCCESS:
            raise DirectoryError('list_behaviors failed: ' + service.result_to_string(status))

        try:
            names = json.loads(reply.blob.tobytes())
        except json.DecodeError as e:
            raise DirectoryError('cannot decode behavior listing: ' + str(e)) from e

        return names


# end of class CmdDirectoryClient



class RemoteDirectoryClient(DirectoryClient):
    """ Ask a :class:`DirectoryServer` listening on *address* and *port*.
        A fresh REQ socket is used for each round trip, so that a timed out
        request does not leave the socket stuck in the wrong state.
    """

    def __init__(self, address, port=default_port, timeout=10.0):
        DirectoryClient.__init__(self)
        self.address = address
        self.port = int(port)
        self.timeout = timeout


    def _call(self, method):

        server = 'tcp://%s:%d' % (self.address, self.port)
        socket = zmq_context.socket(zmq.REQ)
        socket.setsockopt(zmq.LINGER, 0)

        try:
            socket.connect(server)
            socket.send(json.dumps({'method': method}))

            if socket.poll(int(self.timeout * 1000), zmq.POLLIN) == 0:
                raise DirectoryError('%s: no response from %s in %.2f sec' % (method, server, self.timeout))

            raw = socket.recv()
        except zmq.ZMQError as e:
            raise DirectoryError('%s: %s' % (method, e)) from e
        finally:
            socket.close()

        try:
            response = json.loads(raw)
        except json.DecodeError as e:
            raise DirectoryError('%s: malformed response: %s' % (method, e)) from e

        try:
            error = response['error']
        except (KeyError, TypeError):
            pass
        else:
            raise DirectoryError('%s: %s: %s' % (method, error.get('type'), error.get('text')))

        try:
            return response['result']
        except (KeyError, TypeError):
            raise DirectoryError('%s: response has no result: %r' % (method, response))


    def _fetch_behaviors(self):
        return self._call('list_behaviors')


# end of class RemoteDirectoryClient



class DirectoryServer:
    """ Serve the listing of *directory*, any :class:`DirectoryClient`, on a
        ZeroMQ REP socket. The server is driven by :func:`run` in the
        calling thread; :func:`stop` makes it return within one poll period.
    """

    poll_period = 250

    def __init__(self, directory, port=default_port, address='*'):

        self.directory = directory
        self.port = int(port)
        self.address = address
        self.shutdown = False

        self.socket = zmq_context.socket(zmq.REP)
        self.socket.setsockopt(zmq.LINGER, 0)

        try:
            self.socket.bind('tcp://%s:%d' % (address, self.port))
        except zmq.ZMQError as e:
            self.socket.close()
            raise ChannelError('directory server cannot bind port %d: %s' % (self.port, e)) from e

        self.methods = dict()
        self.methods['list_behaviors'] = self.directory.list_behaviors


    def req_handler(self, request):
        """ Look up and invoke the requested method. Exceptions propagate to
            :func:`req_incoming`, which packages them up for the caller.
        """

        method = request['method']

        try:
            handler = self.methods[method]
        except KeyError:
            raise KeyError('unknown method: ' + repr(method))

        result = handler()

        if isinstance(result, tuple):
            result = list(result)

        return result


    def req_incoming(self, raw):
        """ All inbound requests are filtered through this method. Any error
            raised while handling the request is returned to the caller
            rather than taking down the server.
        """

        response = dict()

        try:
            request = json.loads(raw)
            response['result'] = self.req_handler(request)
        except Exception:
            e_class, e_instance, e_traceback = sys.exc_info()
            error = dict()
            error['type'] = e_class.__name__
            error['text'] = str(e_instance)
            error['debug'] = traceback.format_exc()
            response = dict(error=error)
            logger.warning('directory request failed', error=error['text'])

        return json.dumps(response)


    def run(self):
        """ Answer requests until :func:`stop` is called.
        """

        poller = zmq.Poller()
        poller.register(self.socket, zmq.POLLIN)

        logger.debug('directory server running', port=self.port)

        while self.shutdown == False:
            sockets = dict(poller.poll(self.poll_period))
            if self.socket in sockets:
                raw = self.socket.recv()
                self.socket.send(self.req_incoming(raw))

        logger.debug('directory server stopped', port=self.port)


    def stop(self):
        self.shutdown = True


    def close(self):
        self.shutdown = True
        self.socket.close()


# end of class DirectoryServer


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

""" Topology policy: which TCP port links two process roles, and which end
    of that link listens. Everything above this module deals in roles and
    connected :class:`rignet.transport.Channel` instances, never in
    addresses or ports.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod

import structlog

from . import config
from .transport import tcp


logger = structlog.get_logger(__name__)


class ConfigError(Exception):
    """ A role pair with no port assignment, or a configuration that cannot
        produce a channel at all. Never retried.
    """


class UnsupportedError(ConfigError):
    """Networking is disabled in this configuration."""


class ProcessRole(enum.Enum):

    SERVO = 'servo'
    MODEL = 'model'
    USER = 'user'

    def __str__(self):
        return self.value


def port_table(configuration=None):
    """ Return the port table as a dictionary keyed by
        (:class:`ProcessRole`, :class:`ProcessRole`).
    """

    if configuration is None:
        configuration = config.get()

    table = dict()

    for (origin, destination), port in configuration.port_table().items():
        try:
            key = (ProcessRole(origin), ProcessRole(destination))
        except ValueError as e:
            raise ConfigError('unknown process role in port table: ' + str(e)) from e
        table[key] = port

    return table


def get_tcp_port(origin, destination, table=None):
    """ Map the (*origin*, *destination*) pair to its TCP port. A pair with
        no assignment is a :class:`ConfigError`.
    """

    try:
        origin = ProcessRole(origin)
        destination = ProcessRole(destination)
    except ValueError as e:
        raise ConfigError(str(e)) from e

    if table is None:
        table = port_table()

    try:
        return table[(origin, destination)]
    except KeyError:
        raise ConfigError('no port for %s -> %s' % (origin, destination))


class NetConfig(ABC):
    """ Immutable policy producing connected channels for role pairs.
    """

    def __init__(self, table=None, retry_interval=None, clock=None, progress=None):

        if table is None or retry_interval is None:
            configuration = config.get()
            if table is None:
                table = port_table(configuration)
            if retry_interval is None:
                retry_interval = configuration['retry_interval']

        self._table = dict(table)
        self._retry_interval = retry_interval
        self._clock = clock
        self._progress = progress

    def port(self, origin, destination) -> int:
        return get_tcp_port(origin, destination, self._table)

    def _channel_args(self):
        return dict(clock=self._clock, progress=self._progress, interval=self._retry_interval)

    @staticmethod
    def _label(kind, origin, destination):
        return '%s.create_channel(%s, %s)' % (kind, ProcessRole(origin), ProcessRole(destination))

    @abstractmethod
    def create_channel(self, origin, destination):
        """Return a connected channel from *origin* to *destination*."""


class TCPServerNetConfig(NetConfig):
    """ Play the listening side of every link: bind, listen, accept.
    """

    def __init__(self, bind_address='0.0.0.0', **kwargs):
        NetConfig.__init__(self, **kwargs)
        self.bind_address = bind_address

    def create_channel(self, origin, destination):

        port = self.port(origin, destination)
        label = self._label('TCPServerNetConfig', origin, destination)

        logger.debug("creating server channel", origin=str(origin), destination=str(destination),
                     address=self.bind_address, port=port)

        channel = tcp.TCPServer(self.bind_address, port, **self._channel_args())

        try:
            channel.bring_up(label)
        except BaseException:
            channel.close()
            raise

        return channel


class TCPClientNetConfig(NetConfig):
    """ Play the connecting side of every link.
    """

    def __init__(self, server_address='127.0.0.1', **kwargs):
        NetConfig.__init__(self, **kwargs)
        self.server_address = server_address

    def create_channel(self, origin, destination):

        port = self.port(origin, destination)
        label = self._label('TCPClientNetConfig', origin, destination)

        logger.debug("creating client channel", origin=str(origin), destination=str(destination),
                     address=self.server_address, port=port)

        channel = tcp.TCPClient(self.server_address, port, **self._channel_args())

        try:
            channel.bring_up(label)
        except BaseException:
            channel.close()
            raise

        return channel


class UnsupportedNetConfig(NetConfig):
    """ Stand-in used when networking is disabled by configuration. Port
        lookups still work, channel creation never does.
    """

    def create_channel(self, origin, destination):
        self.port(origin, destination)
        raise UnsupportedError('%s: no networking support in this configuration' % (
            self._label('UnsupportedNetConfig', origin, destination)))


def create(kind, address=None, configuration=None, **kwargs):
    """ Build a :class:`NetConfig` from the *kind* string: ``server``,
        ``client``, or ``none``. The *address* defaults to the configured
        bind or server address. If networking is disabled in the
        configuration every kind yields an :class:`UnsupportedNetConfig`.
    """

    if configuration is None:
        configuration = config.get()

    kwargs.setdefault('table', port_table(configuration))
    kwargs.setdefault('retry_interval', configuration['retry_interval'])

    if kind == 'none' or not configuration['networking']:
        return UnsupportedNetConfig(**kwargs)

    if kind == 'server':
        if address is None:
            address = configuration['bind_address']
        return TCPServerNetConfig(address, **kwargs)

    if kind == 'client':
        if address is None:
            address = configuration['server_address']
        return TCPClientNetConfig(address, **kwargs)

    raise ConfigError('unknown netconfig kind: ' + repr(kind))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

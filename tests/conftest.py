import io
import pytest
import socket

import rignet


@pytest.fixture(scope="session", autouse=True)
def debug_logging():

    # Configure structlog before any process binds its logger, so that the
    # debug-level trace notes are exercised by every test.

    rignet.log.setup('DEBUG')
    yield


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):

    # Never pick up a configuration file from the home directory of
    # whoever runs the tests.

    monkeypatch.setenv('RIGNET_HOME', str(tmp_path))
    rignet.config.directory.found = None
    rignet.config.clear()

    yield

    rignet.config.directory.found = None
    rignet.config.clear()


@pytest.fixture
def free_port():

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(('127.0.0.1', 0))
    port = sock.getsockname()[1]
    sock.close()

    return port


@pytest.fixture
def configuration(free_port):

    values = dict()
    values['ports'] = [
        ['servo', 'model', 9999],
        ['model', 'servo', 9999],
        ['servo', 'user', free_port],
        ['user', 'servo', free_port],
    ]
    values['transaction_timeout'] = 2000

    return rignet.config.Configuration(values)


@pytest.fixture
def pair():

    left, right = rignet.transport.socket_pair()
    yield left, right

    left.close()
    right.close()


class FakeClock:
    """ Stand-in for :class:`rignet.transport.Clock` that only advances when
        something sleeps on it. The optional *on_sleep* callable is invoked
        with the clock after every sleep.
    """

    def __init__(self, on_sleep=None):
        self.now = 1000.0
        self.sleeps = list()
        self.on_sleep = on_sleep

    def time(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep is not None:
            self.on_sleep(self)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def progress():
    return io.StringIO()

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

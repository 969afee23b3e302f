import pytest
import threading

import rignet

from rignet import directory
from rignet.process import Process
from rignet.protocol import service
from rignet.protocol.fields import MsgType
from rignet.protocol.message import ServiceMessage
from rignet.transaction import ServiceTransaction


class CountingDirectory(directory.DirectoryClient):

    def __init__(self, names, failures=0):
        directory.DirectoryClient.__init__(self)
        self.names = names
        self.failures = failures

    def _fetch_behaviors(self):
        if self.failures > 0:
            self.failures -= 1
            raise directory.DirectoryError('servo process unreachable')
        return self.names


def test_cached():

    client = CountingDirectory(['float', 'joint_posture'])
    assert not client.cached

    assert client.list_behaviors() == ('float', 'joint_posture')
    assert client.list_behaviors() == ('float', 'joint_posture')
    assert client.round_trips == 1
    assert client.cached

    client.invalidate()
    assert not client.cached

    client.list_behaviors()
    assert client.round_trips == 2


def test_failure_not_cached():

    client = CountingDirectory(['float'], failures=1)

    with pytest.raises(rignet.DirectoryError):
        client.list_behaviors()

    assert not client.cached
    assert client.list_behaviors() == ('float',)
    assert client.round_trips == 2


def test_malformed_listing():

    for names in ({'float': 0}, ['float', 3], 'float'):
        client = CountingDirectory(names)

        with pytest.raises(rignet.DirectoryError):
            client.list_behaviors()

        assert not client.cached


def command_client(channel, timeout_ms=1000):

    process = Process('user')
    process.add_sink(channel)
    process.add_source(channel)

    request = ServiceMessage(MsgType.USER_REQUEST)
    reply = ServiceMessage(MsgType.USER_REPLY)
    process.create_handler(MsgType.USER_REPLY, 'UserReply', reply)

    transaction = ServiceTransaction(process, channel, request, reply, timeout_ms)
    return directory.CmdDirectoryClient(transaction)


def listing_reply(request_id, code, text):

    reply = ServiceMessage(MsgType.USER_REPLY, request_id=request_id)
    reply.set_code(code)
    reply.text = text
    return reply.encode()


def test_command_client(pair):

    left, right = pair
    client = command_client(left)

    right.send(listing_reply(1, service.Result.SUCCESS, '["float", "joint_posture", "ope_space"]'))

    assert client.list_behaviors() == ('float', 'joint_posture', 'ope_space')
    assert client.list_behaviors() == ('float', 'joint_posture', 'ope_space')
    assert client.round_trips == 1

    data = right.receive(1.0)
    request = ServiceMessage(MsgType.USER_REQUEST)
    rignet.protocol.wire.decode_into(request, rignet.protocol.wire.parse_header(data), data)
    assert request.code.tolist() == [service.Request.LIST_BEHAVIORS]


def test_command_client_errors(pair):

    left, right = pair
    client = command_client(left, timeout_ms=100)

    with pytest.raises(rignet.DirectoryError):
        client.list_behaviors()

    right.send(listing_reply(2, service.Result.NOT_IMPLEMENTED, ''))

    with pytest.raises(rignet.DirectoryError):
        client.list_behaviors()

    right.send(listing_reply(3, service.Result.SUCCESS, '["float", '))

    with pytest.raises(rignet.DirectoryError):
        client.list_behaviors()

    assert not client.cached


def test_request_handling(free_port):

    server = directory.DirectoryServer(CountingDirectory(['float']), free_port, '127.0.0.1')

    response = rignet.json.loads(server.req_incoming(b'{"method": "list_behaviors"}'))
    assert response == {'result': ['float']}

    response = rignet.json.loads(server.req_incoming(b'{"method": "reboot"}'))
    assert response['error']['type'] == 'KeyError'
    assert 'reboot' in response['error']['text']
    assert 'Traceback' in response['error']['debug']

    response = rignet.json.loads(server.req_incoming(b'not json'))
    assert 'error' in response

    server.close()


def serve(server):

    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()
    return thread


def test_remote_round_trip(free_port):

    local = CountingDirectory(['float', 'joint_posture'])
    server = directory.DirectoryServer(local, free_port, '127.0.0.1')
    thread = serve(server)

    try:
        client = directory.RemoteDirectoryClient('127.0.0.1', free_port, timeout=5)
        assert client.list_behaviors() == ('float', 'joint_posture')
        assert client.list_behaviors() == ('float', 'joint_posture')
        assert client.round_trips == 1
        assert local.round_trips == 1
    finally:
        server.stop()
        thread.join(5)
        server.close()

    assert not thread.is_alive()


def test_remote_error(free_port):

    server = directory.DirectoryServer(CountingDirectory(['float'], failures=5), free_port, '127.0.0.1')
    thread = serve(server)

    try:
        client = directory.RemoteDirectoryClient('127.0.0.1', free_port, timeout=5)

        with pytest.raises(rignet.DirectoryError) as caught:
            client.list_behaviors()

        assert 'servo process unreachable' in str(caught.value)
        assert not client.cached
    finally:
        server.stop()
        thread.join(5)
        server.close()


def test_remote_timeout(free_port):

    client = directory.RemoteDirectoryClient('127.0.0.1', free_port, timeout=0.2)

    with pytest.raises(rignet.DirectoryError):
        client.list_behaviors()

    assert not client.cached


def test_bind_conflict(free_port):

    server = directory.DirectoryServer(CountingDirectory([]), free_port, '127.0.0.1')

    with pytest.raises(rignet.ChannelError):
        directory.DirectoryServer(CountingDirectory([]), free_port, '127.0.0.1')

    server.close()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

import pytest
import time

import rignet

from rignet.process import Process
from rignet.protocol import service
from rignet.protocol.fields import MsgType
from rignet.protocol.message import ServiceMessage
from rignet.transaction import ServiceTransaction


def requester(channel, timeout_ms=1000):

    process = Process('requester')
    process.add_sink(channel)
    process.add_source(channel)

    request = ServiceMessage(MsgType.USER_REQUEST)
    reply = ServiceMessage(MsgType.USER_REPLY)
    process.create_handler(MsgType.USER_REPLY, 'UserReply', reply)

    return ServiceTransaction(process, channel, request, reply, timeout_ms)


def canned_reply(request_id, *codes):

    reply = ServiceMessage(MsgType.USER_REPLY, request_id=request_id)
    reply.set_code(*codes)
    return reply.encode()


def test_round_trip(pair):

    left, right = pair
    transaction = requester(left)

    # Stale contents from an earlier round must not survive.

    transaction.reply.set_matrix([9.0, 9.0])

    # The peer answers before the request is even sent; the reply waits in
    # the socket buffer until receive_wait() picks it up.

    right.send(canned_reply(1, service.Result.SUCCESS))

    service.get_pos(transaction.request)
    reply = transaction.send_wait_receive()

    assert reply is transaction.reply
    assert reply.request_id == 1
    assert reply.status == service.Result.SUCCESS
    assert reply.matrix.size == 0

    # The request went out.

    data = right.receive(1.0)
    header = rignet.protocol.wire.parse_header(data)
    assert header.type_id == MsgType.USER_REQUEST
    assert header.request_id == 1


def test_request_id_mismatch(pair, caplog):

    left, right = pair
    transaction = requester(left)

    right.send(canned_reply(41, service.Result.SUCCESS))

    service.get_vel(transaction.request)
    reply = transaction.send_wait_receive()

    # Delivered anyway, with a warning.

    assert reply.request_id == 41
    assert 'request id mismatch' in caplog.text


def test_timeout(pair):

    left, right = pair
    transaction = requester(left, timeout_ms=100)

    service.get_pos(transaction.request)
    start = time.monotonic()

    with pytest.raises(rignet.TransactionTimeout):
        transaction.send_wait_receive()

    assert time.monotonic() - start < 0.1 + 0.5

    # The channel survives a timed out transaction.

    right.send(canned_reply(2, service.Result.SUCCESS))
    service.get_pos(transaction.request)
    assert transaction.send_wait_receive().request_id == 2


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

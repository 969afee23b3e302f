import numpy
import pytest
import rignet

from rignet.protocol import wire
from rignet.protocol.fields import Matrix, MsgType, Vector
from rignet.protocol.message import RobotState, ServiceMessage, TaskSpec, WireMessage


def decode(frame, message):

    header = wire.parse_header(frame)
    assert header is not None
    assert header.frame_size == len(frame)

    wire.decode_into(message, header, frame)
    return header


class Shapes(WireMessage):

    fields = (
        Vector('column', numpy.float64),
        Matrix('grid', numpy.int16),
        Vector('bytes', numpy.uint8),
        Matrix('fixed', numpy.float32, (2, 3)),
    )

    def __init__(self, request_id=0):
        WireMessage.__init__(self, 42, request_id)


def test_service_message_both_orders():

    for order in (wire.LITTLE, wire.BIG):
        sent = ServiceMessage(MsgType.USER_REPLY, request_id=77)
        sent.set_code(0, -5, 123456)
        sent.set_matrix([[1.5, -2.25, 3.0], [4.0, 5.0, 6.125]])
        sent.text = 'joint_posture'

        frame = sent.encode(order)

        received = ServiceMessage(MsgType.USER_REPLY)
        header = decode(frame, received)

        assert header.order == order
        assert header.type_id == MsgType.USER_REPLY
        assert received.request_id == 77
        assert received.code.tolist() == [0, -5, 123456]
        assert received.matrix.shape == (2, 3)
        assert numpy.array_equal(received.matrix, sent.matrix)
        assert received.text == 'joint_posture'
        assert received.status == 0


def test_native_order_matches_host():

    message = TaskSpec()
    header = wire.parse_header(message.encode(wire.NATIVE))
    assert header.order == wire.resolve('native')


def test_every_shape():

    shapes = (
        (0, (0, 0), 0),
        (1, (1, 1), 1),
        (7, (3, 4), 16),
        (100, (1, 9), 3),
        (3, (9, 1), 0),
    )

    for order in (wire.LITTLE, wire.BIG):
        for length, grid, blob in shapes:
            sent = Shapes(request_id=length)
            sent.column = numpy.arange(length, dtype=numpy.float64) / 3.0
            sent.grid = numpy.arange(grid[0] * grid[1], dtype=numpy.int16).reshape(grid) - 7
            sent.bytes = numpy.arange(blob, dtype=numpy.uint8)
            sent.fixed = numpy.arange(6, dtype=numpy.float32).reshape(2, 3) * 0.5

            received = Shapes()
            decode(sent.encode(order), received)

            assert received.request_id == length
            assert received.column.shape == (length,)
            assert numpy.array_equal(received.column, sent.column)
            assert received.grid.shape == grid
            assert numpy.array_equal(received.grid, sent.grid)
            assert received.bytes.shape == (blob,)
            assert numpy.array_equal(received.bytes, sent.bytes)
            assert numpy.array_equal(received.fixed, sent.fixed)

            # Decoded values are stored in the declared type, not the
            # byte order they travelled in.

            assert received.column.dtype == numpy.dtype(numpy.float64)
            assert received.grid.dtype == numpy.dtype(numpy.int16)


def test_encode_is_a_snapshot():

    message = ServiceMessage(MsgType.USER_REQUEST)
    message.set_code(100)
    frame = message.encode()

    message.set_code(101, 1, 2)

    received = ServiceMessage(MsgType.USER_REQUEST)
    decode(frame, received)
    assert received.code.tolist() == [100]


def test_header_layout():

    message = TaskSpec(request_id=3)
    message.behavior_id = 2
    frame = message.encode(wire.BIG)

    assert frame[0:2] == b'\xfe\xff'
    assert frame[2:4] == b'\x00\x03'
    assert frame[4:8] == b'\x00\x00\x00\x03'
    assert frame[8:10] == b'\x00\x01'
    assert frame[10:12] == b'\x00\x00'
    assert frame[12:16] == b'\x00\x00\x00\x01'
    assert frame[16:24] == b'\x00\x00\x00\x01\x00\x00\x00\x01'
    assert frame[24:] == b'\x02'

    little = message.encode(wire.LITTLE)
    assert little[0:2] == b'\xff\xfe'


def test_task_spec_defaults():

    task_spec = TaskSpec()
    assert task_spec.request_id == 0
    assert task_spec.behavior_id == TaskSpec.no_behavior == 255

    task_spec.request_id = 9
    task_spec.behavior_id = 4

    received = TaskSpec()
    decode(task_spec.encode(wire.swapped('native')), received)
    assert received.request_id == 9
    assert received.behavior_id == 4


def test_partial_header():

    frame = TaskSpec().encode()

    assert wire.parse_header(b'') is None
    assert wire.parse_header(frame[:wire.HEADER_SIZE - 1]) is None
    assert wire.parse_header(frame[:wire.HEADER_SIZE]) is not None


def test_bad_magic():

    frame = bytearray(TaskSpec().encode())
    frame[0:2] = b'\x12\x34'

    with pytest.raises(rignet.ProtocolError):
        wire.parse_header(frame)


def test_fixed_shape_mismatch():

    sent = RobotState(6)
    sent.position[:] = numpy.arange(6)
    frame = sent.encode()

    received = RobotState(7)
    received.position[:] = 1.0
    received.acquisition_time = 12.5

    with pytest.raises(rignet.ProtocolError):
        decode(frame, received)

    # Nothing was assigned.

    assert numpy.array_equal(received.position, numpy.ones(7))
    assert received.acquisition_time == 12.5


def test_field_count_mismatch():

    frame = TaskSpec().encode()
    received = ServiceMessage(MsgType.TASK_SPEC)

    with pytest.raises(rignet.ProtocolError):
        decode(frame, received)


def test_vector_as_matrix_rejected():

    # Same layout as a ServiceMessage, except that the code travels as a
    # 1x2 matrix, which cannot be decoded into a vector.

    class Swapped(WireMessage):
        fields = (
            Matrix('code', numpy.int32),
            Matrix('matrix', numpy.float64),
            Vector('blob', numpy.uint8),
        )

    source = Swapped(MsgType.USER_REQUEST)
    source.code = numpy.array([[1, 2]], dtype=numpy.int32)

    with pytest.raises(rignet.ProtocolError):
        decode(source.encode(), ServiceMessage(MsgType.USER_REQUEST))


def test_truncated_data():

    frame = bytearray(RobotState(3).encode(wire.LITTLE))

    # Claim less data than the fields need.

    frame[12:16] = (8).to_bytes(4, 'little')
    frame = bytes(frame[:wire.parse_header(frame).frame_size])

    with pytest.raises(rignet.ProtocolError):
        decode(frame, RobotState(3))


def test_reset():

    message = ServiceMessage(MsgType.USER_REPLY)
    message.set_code(0, 1)
    message.set_matrix([1.0, 2.0])
    message.text = 'x'

    message.reset()

    assert message.code.size == 0
    assert message.matrix.size == 0
    assert message.text == ''
    assert message.status is None

    state = RobotState(3)
    state.position[:] = 5.0
    state.reset()
    assert state.position.shape == (3,)
    assert not state.position.any()


def test_dump():

    import io

    message = ServiceMessage(MsgType.USER_REPLY, request_id=5)
    message.set_code(0)
    message.set_matrix([1.0, 2.0, 3.0])

    stream = io.StringIO()
    message.dump(stream, '  ')

    text = stream.getvalue()
    assert 'ServiceMessage(type=2, request_id=5)' in text
    assert 'code: [0]' in text
    assert 'matrix:' in text


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

import numpy
import rignet

from rignet.protocol import service
from rignet.protocol.fields import MsgType
from rignet.protocol.message import ServiceMessage


def test_request_ids_increase():

    request = ServiceMessage(MsgType.USER_REQUEST)

    service.get_pos(request)
    assert request.request_id == 1
    assert request.code.tolist() == [service.Request.GET_POS]

    service.get_vel(request)
    assert request.request_id == 2
    assert request.code.tolist() == [service.Request.GET_VEL]

    request.request_id = 0xFFFFFFFF
    service.get_torques(request)
    assert request.request_id == 0


def test_builders_clear_previous_arguments():

    request = ServiceMessage(MsgType.USER_REQUEST)

    service.set_goal(request, [0.1, 0.2, 0.3, 0.0, 0.0, 1.0, 0.5])
    assert request.matrix.shape == (7, 1)
    assert request.code.tolist() == [service.Request.SET_GOAL]

    service.float_command(request)
    assert request.matrix.size == 0
    assert request.code.tolist() == [service.Request.FLOAT]


def test_gains_and_keys():

    request = ServiceMessage(MsgType.USER_REQUEST)

    service.set_gains(request, (1, 100.0, 20.0, 0.5))
    assert numpy.array_equal(request.matrix.reshape(-1), [1.0, 100.0, 20.0, 0.5])

    service.key_press(request, ord('w'))
    assert request.code.tolist() == [service.Request.KEY_PRESS, ord('w')]


def test_result_strings():

    assert service.result_to_string(service.Result.SUCCESS) == 'success'
    assert service.result_to_string(3) == 'invalid dimension'
    assert 'unknown' in service.result_to_string(77)

    # Transient network conditions are never reported as a result code.

    assert 'unknown' in service.result_to_string(5)
    assert service.result_to_string(6) == 'other error'


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

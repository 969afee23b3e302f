""" Request and result codes carried in the leading entry of a
    :class:`rignet.protocol.message.ServiceMessage` code vector, plus the
    helpers that fill in a request for each query the operator can issue.
"""

import enum

import numpy


class Request(enum.IntEnum):

    GET_POS = 100
    GET_END_POS = 101
    GET_VEL = 102
    GET_TORQUES = 103
    SET_GOAL = 104
    FLOAT = 105
    ACTIVATE = 106
    TOGGLE_RECORDER = 107
    KEY_PRESS = 108
    SET_GAINS = 109
    LIST_BEHAVIORS = 110


class Result(enum.IntEnum):

    SUCCESS = 0
    NOT_IMPLEMENTED = 1
    INVALID_REQUEST = 2
    INVALID_DIMENSION = 3
    OUT_OF_RANGE = 4
    OTHER_ERROR = 6


_result_strings = {
    Result.SUCCESS: 'success',
    Result.NOT_IMPLEMENTED: 'not implemented',
    Result.INVALID_REQUEST: 'invalid request',
    Result.INVALID_DIMENSION: 'invalid dimension',
    Result.OUT_OF_RANGE: 'out of range',
    Result.OTHER_ERROR: 'other error',
}


def result_to_string(code):
    """ Return a short description of the result *code*, which may be an
        integer that is not a known :class:`Result`.
    """

    try:
        code = Result(code)
    except ValueError:
        return 'unknown result code %r' % (code,)

    return _result_strings[code]


def _prepare(request, code, *arguments):
    """ Fill in a fresh request. Every request gets a new request id so that
        the reply can be matched against it.
    """

    request.reset()
    request.request_id = (request.request_id + 1) & 0xFFFFFFFF
    request.set_code(int(code), *arguments)


def get_pos(request):
    _prepare(request, Request.GET_POS)

def get_end_pos(request):
    _prepare(request, Request.GET_END_POS)

def get_vel(request):
    _prepare(request, Request.GET_VEL)

def get_torques(request):
    _prepare(request, Request.GET_TORQUES)

def float_command(request):
    _prepare(request, Request.FLOAT)

def activate_command(request):
    _prepare(request, Request.ACTIVATE)

def toggle_recorder(request):
    _prepare(request, Request.TOGGLE_RECORDER)

def list_behaviors(request):
    _prepare(request, Request.LIST_BEHAVIORS)

def key_press(request, key):
    _prepare(request, Request.KEY_PRESS, int(key))


def set_goal(request, goal):
    """ The goal travels as a column vector; seven numbers are a position
        and an axis-angle orientation, six are position plus Euler angles.
    """

    _prepare(request, Request.SET_GOAL)
    request.set_matrix(numpy.asarray(goal, dtype=numpy.float64).reshape(-1))


def set_gains(request, gains):
    _prepare(request, Request.SET_GAINS)
    request.set_matrix(numpy.asarray(gains, dtype=numpy.float64).reshape(-1))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

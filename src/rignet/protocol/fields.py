"""Protocol constants and field declarations.

Message type ids live here so that both ends of a link agree on them, and
so that nothing else in the code base deals in bare integers.
"""

from __future__ import annotations

import enum

import numpy

from .wire import ProtocolError


class MsgType(enum.IntEnum):

    USER_REQUEST = 1
    USER_REPLY = 2
    TASK_SPEC = 3
    ROBOT_STATE = 4
    SERVO_COMMAND = 5


class Field:
    """ A named numeric field of a message. The value lives on the message
        instance as an attribute of the same name; the field only knows how
        to present it as a two-dimensional array and how to store a decoded
        array back. A *shape* of None means the dimensions travel with each
        message and the receiver resizes its storage to match.
    """

    def __init__(self, name, dtype, shape=None):
        self.name = name
        self.dtype = numpy.dtype(dtype)
        if shape is not None:
            shape = tuple(int(size) for size in shape)
        self.shape = shape

    def __repr__(self):
        return '%s(%r, %s, %r)' % (self.__class__.__name__, self.name, self.dtype, self.shape)

    @property
    def fixed(self):
        return self.shape is not None

    def empty(self):
        raise NotImplementedError

    def initialize(self, message):
        setattr(message, self.name, self.empty())

    def reset(self, message):
        """ Variable fields shrink to zero size, fixed ones are zeroed.
        """
        setattr(message, self.name, self.empty())

    def matrix(self, message):
        raise NotImplementedError

    def check_shape(self, rows, columns):
        if self.shape is not None and (rows, columns) != self._wire_shape():
            raise ProtocolError('field %r: received %dx%d, expected %dx%d' % (
                (self.name, rows, columns) + self._wire_shape()))

    def _wire_shape(self):
        return self.shape

    def assign(self, message, value):
        raise NotImplementedError


class Scalar(Field):
    """ A single number, stored on the message as a plain Python value.
    """

    def __init__(self, name, dtype, default=0):
        Field.__init__(self, name, dtype, (1, 1))
        self.default = default

    def empty(self):
        return self.default

    def reset(self, message):
        pass

    def matrix(self, message):
        value = getattr(message, self.name)
        return numpy.array([[value]], dtype=self.dtype)

    def assign(self, message, value):
        setattr(message, self.name, value[0, 0].item())


class Vector(Field):
    """ A one-dimensional array, travelling as an N x 1 matrix. A *length*
        of None makes it variable-length.
    """

    def __init__(self, name, dtype, length=None):
        shape = None
        if length is not None:
            shape = (int(length),)
        Field.__init__(self, name, dtype, shape)

    def _wire_shape(self):
        return (self.shape[0], 1)

    def check_shape(self, rows, columns):
        if columns != 1 and rows * columns != 0:
            raise ProtocolError('field %r: vector received as %dx%d matrix' % (self.name, rows, columns))
        if self.shape is not None and rows != self.shape[0]:
            raise ProtocolError('field %r: received %d elements, expected %d' % (self.name, rows, self.shape[0]))

    def empty(self):
        if self.shape is None:
            return numpy.zeros(0, dtype=self.dtype)
        return numpy.zeros(self.shape, dtype=self.dtype)

    def matrix(self, message):
        value = numpy.asarray(getattr(message, self.name), dtype=self.dtype)

        if value.ndim != 1:
            value = value.reshape(-1)
        if self.shape is not None and value.shape != self.shape:
            raise ValueError('field %r: has %d elements, expected %d' % (self.name, value.size, self.shape[0]))

        return value.reshape(value.size, 1)

    def assign(self, message, value):
        value = value.reshape(-1)
        existing = getattr(message, self.name)

        # Reuse the storage when the size did not change.

        if isinstance(existing, numpy.ndarray) and existing.shape == value.shape and existing.dtype == self.dtype:
            existing[...] = value
        else:
            setattr(message, self.name, value)


class Matrix(Field):
    """ A two-dimensional array. A *shape* of None makes it variable-size.
    """

    def empty(self):
        if self.shape is None:
            return numpy.zeros((0, 0), dtype=self.dtype)
        return numpy.zeros(self.shape, dtype=self.dtype)

    def matrix(self, message):
        value = numpy.asarray(getattr(message, self.name), dtype=self.dtype)

        if value.ndim == 1:
            value = value.reshape(value.size, 1)
        elif value.ndim != 2:
            raise ValueError('field %r: expected a matrix, got %d dimensions' % (self.name, value.ndim))

        if self.shape is not None and value.shape != tuple(self.shape):
            raise ValueError('field %r: shape %r, expected %r' % (self.name, value.shape, self.shape))

        return value

    def assign(self, message, value):
        existing = getattr(message, self.name)

        if isinstance(existing, numpy.ndarray) and existing.shape == value.shape and existing.dtype == self.dtype:
            existing[...] = value
        else:
            setattr(message, self.name, value)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

""" A class representation of a rignet message, including subclasses for
    the specific messages exchanged between the rig processes.
"""

import numpy

from . import wire
from .fields import Matrix, MsgType, Scalar, Vector


class WireMessage:
    """ The :class:`WireMessage` is a long-lived container: a process keeps
        one instance per message type, fills it in before each send, and
        has it overwritten in place by each receive. The *type_id* selects
        the handler on the receiving side; the *request_id* correlates a
        reply with the request that caused it.

        Subclasses declare their payload in *fields*, an ordered sequence
        of :class:`rignet.protocol.fields.Field` instances. The order is
        the order on the wire.

        :ivar type_id: Message type, one of :class:`MsgType`.
        :ivar request_id: Correlation number, an unsigned 32-bit integer.
    """

    fields = ()

    def __init__(self, type_id, request_id=0):

        self.type_id = int(type_id)
        self.request_id = request_id

        for field in self.fields:
            field.initialize(self)


    def __repr__(self):
        name = self.__class__.__name__
        return '%s(type=%d, request_id=%d)' % (name, self.type_id, self.request_id)


    def encode(self, order=wire.NATIVE):
        return wire.encode(self, order)


    def reset(self):
        """ Clear the payload ahead of a fresh receive, so that nothing from
            a prior round can be mistaken for a new answer.
        """

        for field in self.fields:
            field.reset(self)


    def dump(self, stream, prefix=''):
        """ Write a human readable rendition of this message to *stream*.
        """

        stream.write('%s%s\n' % (prefix, repr(self)))

        for field in self.fields:
            value = getattr(self, field.name)
            if isinstance(value, numpy.ndarray):
                text = numpy.array2string(value, precision=4, suppress_small=True)
                text = text.replace('\n', '\n' + prefix + '    ')
            else:
                text = str(value)
            stream.write('%s  %s: %s\n' % (prefix, field.name, text))


# end of class WireMessage


class ServiceMessage(WireMessage):
    """ The request/reply message used for every query-style command. The
        *code* vector starts with the request code (in a request) or the
        result code (in a reply); any further entries are integer
        arguments. The *matrix* carries numeric arguments or results, and
        *blob* carries UTF-8 text, used for listings.
    """

    fields = (
        Vector('code', numpy.int32),
        Matrix('matrix', numpy.float64),
        Vector('blob', numpy.uint8),
    )

    def set_code(self, *codes):
        self.code = numpy.array(codes, dtype=numpy.int32)

    def set_matrix(self, values):
        values = numpy.asarray(values, dtype=numpy.float64)
        if values.ndim == 1:
            values = values.reshape(values.size, 1)
        self.matrix = values

    @property
    def text(self):
        return self.blob.tobytes().decode('utf-8')

    @text.setter
    def text(self, value):
        if isinstance(value, str):
            value = value.encode('utf-8')
        self.blob = numpy.frombuffer(value, dtype=numpy.uint8).copy()

    @property
    def status(self):
        """ The leading code, or None if the message carries no codes.
        """

        if self.code.size == 0:
            return None
        return int(self.code[0])


# end of class ServiceMessage



class TaskSpec(WireMessage):
    """ Fire-and-forget behavior switch. The *request_id* strictly increases
        for the life of the sending process; the receiver applies a task
        spec only if it is newer than the last one it applied.
    """

    no_behavior = 255

    fields = (
        Scalar('behavior_id', numpy.uint8, default=no_behavior),
    )

    def __init__(self, type_id=MsgType.TASK_SPEC, request_id=0):
        WireMessage.__init__(self, type_id, request_id)


# end of class TaskSpec



class RobotState(WireMessage):
    """ Joint-space state of a robot with *ndof* degrees of freedom, as
        reported by the control loop. The joint vectors are fixed-size: a
        frame with a different number of joints is a protocol error. The
        end effector pose is position followed by a unit quaternion.
    """

    def __init__(self, ndof, type_id=MsgType.ROBOT_STATE, request_id=0):

        self.ndof = int(ndof)
        self.fields = (
            Scalar('acquisition_time', numpy.float64, default=0.0),
            Vector('position', numpy.float64, self.ndof),
            Vector('velocity', numpy.float64, self.ndof),
            Vector('end_position', numpy.float64, 7),
        )

        WireMessage.__init__(self, type_id, request_id)


# end of class RobotState



class ServoCommand(WireMessage):
    """ Joint torques produced by the control law for *ndof* joints.
    """

    def __init__(self, ndof, type_id=MsgType.SERVO_COMMAND, request_id=0):

        self.ndof = int(ndof)
        self.fields = (
            Vector('torque', numpy.float64, self.ndof),
        )

        WireMessage.__init__(self, type_id, request_id)


# end of class ServoCommand


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

""" The servo side of the USER <-> SERVO link. The real control loop is out
    of scope; :class:`ServoProcess` keeps the state the operator can query
    and the settings the operator can change, and answers every request
    with a reply carrying the same request id.
"""

import structlog

from . import config
from . import json
from .netconfig import ProcessRole
from .process import Process, TransactionError, TransactionTimeout
from .protocol import ProtocolError, service
from .protocol.fields import MsgType
from .protocol.message import RobotState, ServiceMessage, ServoCommand, TaskSpec
from .transport import ChannelClosed


logger = structlog.get_logger(__name__)


class ServoProcess(Process):
    """ Answer operator queries out of a :class:`RobotState` and a
        :class:`ServoCommand`, and switch among the named *behaviors* on
        receipt of a :class:`TaskSpec`.

        :ivar active_behavior: Index of the selected behavior, or None.
        :ivar goal: The last goal accepted, as a flat array.
        :ivar gains: Dictionary mapping axis number to (kp, kd, ki).
        :ivar recording: Recorder state, flipped by each toggle request.
        :ivar last_key: The last key code received, or None.
    """

    gain_axes = (1, 2, 3)

    def __init__(self, behaviors, ndof=7, configuration=None, **kwargs):

        if configuration is None:
            configuration = config.get()

        kwargs.setdefault('endian', configuration['endian'])
        kwargs.setdefault('endian_detect', configuration['endian_detect'])
        kwargs.setdefault('queue_limit', configuration['queue_limit'])
        kwargs.setdefault('blocking_timeout', configuration['transaction_timeout'])

        Process.__init__(self, 'servo', ProcessRole.SERVO, **kwargs)

        self.behaviors = tuple(str(name) for name in behaviors)
        self.timeout = configuration['transaction_timeout']

        self.state = RobotState(ndof)
        self.command = ServoCommand(ndof)
        self.user_request = ServiceMessage(MsgType.USER_REQUEST)
        self.user_reply = ServiceMessage(MsgType.USER_REPLY)
        self.task_spec = TaskSpec()

        self.channel = None
        self.shutdown = False

        self.active_behavior = None
        self.last_task_id = 0
        self.goal = None
        self.gains = dict()
        self.recording = False
        self.mode = None
        self.last_key = None

        self.requests = dict()
        self.requests[service.Request.GET_POS] = self.get_pos
        self.requests[service.Request.GET_END_POS] = self.get_end_pos
        self.requests[service.Request.GET_VEL] = self.get_vel
        self.requests[service.Request.GET_TORQUES] = self.get_torques
        self.requests[service.Request.SET_GOAL] = self.set_goal
        self.requests[service.Request.FLOAT] = self.float_command
        self.requests[service.Request.ACTIVATE] = self.activate_command
        self.requests[service.Request.TOGGLE_RECORDER] = self.toggle_recorder
        self.requests[service.Request.KEY_PRESS] = self.key_press
        self.requests[service.Request.SET_GAINS] = self.set_gains
        self.requests[service.Request.LIST_BEHAVIORS] = self.list_behaviors


    def init(self, netconfig):
        """ Wait for the user process to connect.
        """

        if self.channel is not None:
            raise RuntimeError('ServoProcess.init(): already initialized')

        channel = netconfig.create_channel(ProcessRole.SERVO, ProcessRole.USER)
        self.attach(channel)


    def attach(self, channel):

        if self.channel is not None:
            raise RuntimeError('ServoProcess.attach(): already initialized')

        self.channel = channel
        self.add_sink(channel, 100)
        self.add_source(channel, 100)

        self.create_handler(MsgType.USER_REQUEST, 'UserRequest', self.user_request)
        self.create_handler(MsgType.TASK_SPEC, 'TaskSpec', self.task_spec)


    def step(self, timeout_ms=None):
        """ Wait up to *timeout_ms* for incoming messages, dispatch them,
            and flush any replies. Returns the number of messages handled;
            an idle period is not an error.
        """

        if timeout_ms is None:
            timeout_ms = self.timeout

        try:
            count = self.receive_wait(timeout_ms, 1)
        except TransactionTimeout:
            count = 0

        self.send_wait(self.timeout)
        return count


    def run(self, period_ms=250):
        """ Handle messages until :func:`stop` is called or the peer hangs
            up. A malformed frame or a stalled peer is logged and the loop
            carries on.
        """

        while self.shutdown == False:
            try:
                self.step(period_ms)
            except ChannelClosed:
                logger.info('user process disconnected')
                break
            except (ProtocolError, TransactionError) as e:
                logger.warning('servo step failed', error_type=type(e).__name__, error=str(e))


    def stop(self):
        self.shutdown = True


    def handle_message_payload(self, type_id):

        if type_id == MsgType.USER_REQUEST:
            self.handle_request()
        elif type_id == MsgType.TASK_SPEC:
            self.handle_task_spec()


    def handle_task_spec(self):

        task_spec = self.task_spec

        if task_spec.request_id <= self.last_task_id:
            logger.debug('stale task spec ignored', request_id=task_spec.request_id, last=self.last_task_id)
            return

        self.last_task_id = task_spec.request_id
        behavior = task_spec.behavior_id

        if behavior >= len(self.behaviors):
            logger.warning('task spec selects unknown behavior', behavior_id=behavior,
                           known=len(self.behaviors))
            return

        self.active_behavior = behavior
        logger.info('behavior switched', behavior_id=behavior, name=self.behaviors[behavior])


    def handle_request(self):

        request = self.user_request
        reply = self.user_reply

        reply.reset()
        reply.request_id = request.request_id

        code = request.status

        if code is None:
            reply.set_code(service.Result.INVALID_REQUEST)
        else:
            try:
                method = self.requests[code]
            except KeyError:
                logger.debug('unknown request code', code=code)
                reply.set_code(service.Result.NOT_IMPLEMENTED)
            else:
                method(request, reply)

        self.enqueue_message(self.channel, reply, False, True)


    # --- requests ---

    def _state_reply(self, reply, values):
        reply.set_code(service.Result.SUCCESS)
        reply.set_matrix(values)

    def get_pos(self, request, reply):
        self._state_reply(reply, self.state.position)

    def get_end_pos(self, request, reply):
        self._state_reply(reply, self.state.end_position)

    def get_vel(self, request, reply):
        self._state_reply(reply, self.state.velocity)

    def get_torques(self, request, reply):
        self._state_reply(reply, self.command.torque)


    def set_goal(self, request, reply):
        """ Six numbers are position plus Euler angles, seven are position
            plus axis-angle.
        """

        goal = request.matrix.reshape(-1)

        if goal.size not in (6, 7):
            reply.set_code(service.Result.INVALID_DIMENSION)
            return

        self.goal = goal.copy()
        reply.set_code(service.Result.SUCCESS)


    def set_gains(self, request, reply):

        gains = request.matrix.reshape(-1)

        if gains.size != 4:
            reply.set_code(service.Result.INVALID_DIMENSION)
            return

        axis = int(gains[0])
        if gains[0] != axis or axis not in self.gain_axes:
            reply.set_code(service.Result.OUT_OF_RANGE)
            return

        self.gains[axis] = tuple(float(gain) for gain in gains[1:])
        reply.set_code(service.Result.SUCCESS)


    def float_command(self, request, reply):
        self.mode = 'float'
        reply.set_code(service.Result.SUCCESS)

    def activate_command(self, request, reply):
        self.mode = 'active'
        reply.set_code(service.Result.SUCCESS)


    def toggle_recorder(self, request, reply):
        self.recording = not self.recording
        reply.set_code(service.Result.SUCCESS, int(self.recording))


    def key_press(self, request, reply):

        if request.code.size != 2:
            reply.set_code(service.Result.INVALID_REQUEST)
            return

        self.last_key = int(request.code[1])
        reply.set_code(service.Result.SUCCESS)


    def list_behaviors(self, request, reply):
        reply.set_code(service.Result.SUCCESS)
        reply.text = json.dumps(list(self.behaviors))


    def update_state(self, position=None, velocity=None, end_position=None, torque=None):
        """ Overwrite parts of the reported state, typically from the
            control loop or a test.
        """

        if position is not None:
            self.state.position[...] = position
        if velocity is not None:
            self.state.velocity[...] = velocity
        if end_position is not None:
            self.state.end_position[...] = end_position
        if torque is not None:
            self.command.torque[...] = torque

        self.state.acquisition_time = self.clock.time()


# end of class ServoProcess


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

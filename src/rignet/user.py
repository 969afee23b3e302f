""" The operator's process: a line-oriented command loop that turns typed
    commands into service requests and behavior switches for the servo
    process, and prints the replies.
"""

import math
import sys
import time

import structlog

from . import config
from . import directory
from .netconfig import ProcessRole
from .process import Process, TransactionError
from .protocol import service
from .protocol.fields import MsgType
from .protocol.message import ServiceMessage, TaskSpec
from .protocol.wire import ProtocolError
from .transaction import ServiceTransaction
from .transport import ChannelError


logger = structlog.get_logger(__name__)


class CommandError(Exception):
    """Malformed operator input. Nothing was sent."""


class CommandContext:
    """ Interactive state of the command loop, handed to whichever sub-mode
        needs it rather than kept in module globals.

        :ivar keyboard_query: True while the current request was typed at
            the prompt; only those replies are printed.
        :ivar screen_active: True while the full-screen keystroke mode owns
            the terminal, so nothing else may print.
    """

    def __init__(self, stdin=None, stdout=None):

        if stdin is None:
            stdin = sys.stdin
        if stdout is None:
            stdout = sys.stdout

        self.stdin = stdin
        self.stdout = stdout
        self.keyboard_query = False
        self.screen_active = False


    def write(self, text):
        self.stdout.write(text)
        self.stdout.flush()


    def readline(self, prompt):
        """ Show *prompt* and return the next line without its newline, or
            None at the end of input.
        """

        self.write(prompt)
        line = self.stdin.readline()

        if line == '':
            return None

        return line.rstrip('\r\n')


# end of class CommandContext



usage = '''SYNTAX ERROR: unknown command "%s"
 known commands:
  pos        -  show position data
  endpos     -  show end effector position and orientation
  vel        -  show velocity data
  tau        -  show torque command
  go         -  enter and send goal
  float      -  send a FLOAT request (not understood by all behaviors)
  activate   -  send an ACTIVATE request (not understood by all behaviors)
  setgoal    -  send goal position (7-D vector: x y z and axis angle)
  setgains   -  send control gains (axis kp kd ki, axis 1(x) 2(y) 3(yaw))
  b?         -  list available behaviors
  b   <N>    -  switch to behavior number <N>
  B   <N>    -  switch to behavior number <N> even if it is already active
  r          -  toggle recorder state
  k          -  enter interactive key press mode (use 'q' to leave it again)
  directory  -  serve the behavior directory until Ctrl-C
  quit       -  leave
'''

# Commands that are a plain query without arguments.

_queries = {
    'pos': service.get_pos,
    'endpos': service.get_end_pos,
    'vel': service.get_vel,
    'tau': service.get_torques,
    'float': service.float_command,
    'activate': service.activate_command,
    'r': service.toggle_recorder,
}

_goal_fields = ('x [m]', 'y [m]', 'z [m]', 'psi [deg]', 'theta [deg]', 'phi [deg]')


def parse_numbers(tokens, count, what):
    """ Convert exactly *count* tokens to floats, raising
        :class:`CommandError` otherwise.
    """

    if len(tokens) != count:
        raise CommandError('SYNTAX ERROR reading %s: expected %d numbers, got %d' % (what, count, len(tokens)))

    numbers = list()
    for token in tokens:
        try:
            number = float(token)
        except ValueError:
            raise CommandError('SYNTAX ERROR reading %s: %r is not a number' % (what, token))

        if not math.isfinite(number):
            raise CommandError('SYNTAX ERROR reading %s: %r is not a finite number' % (what, token))

        numbers.append(number)

    return numbers



class UserProcess(Process):
    """ The operator side of the USER <-> SERVO link. Call :func:`init` with
        a :class:`rignet.netconfig.NetConfig` to connect, then :func:`step`
        once per command, or :func:`run` to loop until the operator quits.
    """

    def __init__(self, context=None, configuration=None, **kwargs):

        if configuration is None:
            configuration = config.get()

        kwargs.setdefault('endian', configuration['endian'])
        kwargs.setdefault('endian_detect', configuration['endian_detect'])
        kwargs.setdefault('queue_limit', configuration['queue_limit'])
        kwargs.setdefault('blocking_timeout', configuration['transaction_timeout'])

        Process.__init__(self, 'user', ProcessRole.USER, **kwargs)

        if context is None:
            context = CommandContext()

        self.context = context
        self.configuration = configuration
        self.timeout = configuration['transaction_timeout']

        self.channel = None
        self.user_request = ServiceMessage(MsgType.USER_REQUEST)
        self.user_reply = ServiceMessage(MsgType.USER_REPLY)
        self.task_spec = TaskSpec()
        self.transaction = None
        self.directory_client = None


    def init(self, netconfig, directory_client=None):
        """ Connect to the servo process and register the reply handler.
            A process can only be initialized once.
        """

        if self.channel is not None:
            raise RuntimeError('UserProcess.init(): already initialized')

        channel = netconfig.create_channel(ProcessRole.USER, ProcessRole.SERVO)
        self.attach(channel, directory_client)


    def attach(self, channel, directory_client=None):
        """ Adopt an already connected *channel* to the servo process.
        """

        if self.channel is not None:
            raise RuntimeError('UserProcess.attach(): already initialized')

        self.channel = channel
        self.add_sink(channel, 100)
        self.add_source(channel, 100)

        self.create_handler(MsgType.USER_REPLY, 'UserReply', self.user_reply)

        self.transaction = ServiceTransaction(self, channel, self.user_request, self.user_reply, self.timeout)

        if directory_client is None:
            directory_client = directory.CmdDirectoryClient(self.transaction)

        self.directory_client = directory_client

        self.task_spec.request_id = 0
        self.task_spec.behavior_id = TaskSpec.no_behavior


    def handle_message_payload(self, type_id):

        reply = self.user_reply

        if type_id != MsgType.USER_REPLY:
            logger.debug('unexpected message type', type_id=type_id)
            return

        status = reply.status
        if status is None:
            logger.debug('no status info in user reply', request_id=reply.request_id)
        else:
            logger.debug('user reply', request_id=reply.request_id,
                         status=status, meaning=service.result_to_string(status))

        context = self.context
        if context.keyboard_query and not context.screen_active:
            reply.dump(context.stdout, '  ')


    def behaviors(self):
        """ Return the cached behavior list, fetching it on first use.
        """

        return self.directory_client.list_behaviors()


    # --- commands ---

    def query(self, prepare, *arguments):
        """ Fill in the request with *prepare* and run the transaction.
        """

        prepare(self.user_request, *arguments)
        return self.transaction.send_wait_receive()


    def switch_behavior(self, number, force=False):
        """ Send a task spec selecting behavior *number*. Without *force*,
            asking for the behavior that is already selected is a no-op.
            Returns True if a task spec was sent.
        """

        behaviors = self.behaviors()

        if number < 0:
            raise CommandError('ERROR behavior number %d is negative' % (number))

        if number >= len(behaviors):
            raise CommandError('ERROR behavior number %d is too large (max %d)' % (number, len(behaviors) - 1))

        task_spec = self.task_spec

        if not force and number == task_spec.behavior_id:
            self.context.write('already running behavior %d, skipping (use capital B to override)\n' % (number))
            return False

        task_spec.request_id += 1
        task_spec.behavior_id = number
        self.enqueue_message(self.channel, task_spec, False, False)
        self.send_wait(self.timeout)

        # No receive_wait(): task specs are fire-and-forget.

        return True


    def step(self):
        """ Read and execute one command. Returns False when the loop should
            end: at the end of input, or on 'quit'.
        """

        context = self.context
        context.keyboard_query = False

        line = context.readline('user> ')
        if line is None:
            return False

        context.keyboard_query = True
        tokens = line.split()

        if not tokens:
            context.write('SYNTAX ERROR reading first token\n')
            return True

        try:
            return self.execute(tokens)
        except CommandError as e:
            context.write(str(e) + '\n')
        except (TransactionError, ProtocolError, ChannelError, directory.DirectoryError) as e:
            context.write('ERROR %s: %s\n' % (e.__class__.__name__, e))
        finally:
            context.keyboard_query = False

        return True


    def execute(self, tokens):

        command = tokens[0]
        arguments = tokens[1:]
        context = self.context

        if command in _queries:
            self.query(_queries[command])
            return True

        if command == 'go':
            goal = self.interactive_goal()
            if goal is not None:
                self.query(service.set_goal, goal)
            return True

        if command == 'b?':
            context.write('available behaviors:\n')
            for index, name in enumerate(self.behaviors()):
                context.write('  [%d] %s\n' % (index, name))
            return True

        if command == 'b' or command == 'B':
            if len(arguments) != 1:
                raise CommandError('SYNTAX ERROR reading behavior number')
            try:
                number = int(arguments[0])
            except ValueError:
                raise CommandError('SYNTAX ERROR reading behavior number')

            self.switch_behavior(number, force=(command == 'B'))
            return True

        if command == 'setgoal':
            goal = parse_numbers(arguments, 7, 'goal pos and orientation')
            self.query(service.set_goal, goal)
            return True

        if command == 'setgains':
            gains = parse_numbers(arguments, 4, 'gains')
            self.query(service.set_gains, gains)
            return True

        if command == 'k':
            self.key_press_loop()
            return True

        if command == 'directory':
            self.directory_loop()
            return True

        if command == 'quit':
            return False

        context.write(usage % (command))
        return True


    def run(self):
        """ Execute commands until the operator quits.
        """

        while self.step():
            pass

        self.context.write('see you later\n')


    # --- sub-modes ---

    def interactive_goal(self):
        """ Prompt for the six goal coordinates, re-asking for any entry
            that does not parse. Angles are entered in degrees and sent in
            radians. Returns None at the end of input.
        """

        context = self.context
        context.write('interactive goal request\n')

        goal = list()

        while len(goal) < len(_goal_fields):
            line = context.readline('  enter %s: ' % (_goal_fields[len(goal)]))
            if line is None:
                context.write('ERROR reading standard input\n')
                return None

            try:
                value = parse_numbers(line.split(), 1, 'field')[0]
            except CommandError:
                context.write('ERROR reading field\n')
                continue

            goal.append(value)

        for index in range(3, 6):
            goal[index] = math.radians(goal[index])

        return goal


    def key_press_loop(self, screen=None):
        """ Forward raw keystrokes to the servo process until 'q' or 'Q'.
            This takes over the terminal via curses; *screen* may be given
            to reuse an existing curses window.
        """

        try:
            import curses
        except ImportError:
            self.context.write('Sorry, the curses module is not available, '
                               'so the interactive key press mode is not either.\n')
            return

        if screen is None:
            curses.wrapper(self._key_press_screen)
        else:
            self._key_press_screen(screen)


    def _key_press_screen(self, screen):

        import curses

        context = self.context
        context.screen_active = True
        errors = list()

        try:
            screen.nodelay(True)
            screen.addstr(0, 0,
                          '---> interactive key press mode <---\n'
                          'each key code is sent to the servo process and echoed here\n'
                          "press 'q' or 'Q' to quit this mode\n")

            while True:
                key = screen.getch()

                if key == curses.ERR:
                    time.sleep(0.01)
                    continue

                if key in (ord('q'), ord('Q')):
                    break

                try:
                    self.query(service.key_press, key)
                except (TransactionError, ChannelError, ProtocolError) as e:
                    errors.append('EXCEPTION during send or receive: ' + str(e))
                    break

                screen.addstr(5, 5, 'sent: %d    ' % (key))
                screen.refresh()
        finally:
            context.screen_active = False

        for error in errors:
            logger.error('error during key press mode', error=error)
            context.write(error + '\n')


    def directory_loop(self, port=None):
        """ Serve this process's behavior directory to other programs until
            the operator hits Ctrl-C.
        """

        if port is None:
            port = self.configuration['directory_port']

        server = directory.DirectoryServer(self.directory_client, port)
        self.context.write('Spawning directory server on port %d.\n  Press Ctrl-C to quit.\n' % (port))

        try:
            server.run()
        except KeyboardInterrupt:
            pass
        finally:
            server.close()

        self.context.write('Directory server has exited.\n')


# end of class UserProcess


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

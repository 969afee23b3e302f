""" Command-line entry points for the reference processes. The user process
    connects to a running servo process; start ``rignet-servo`` first, or
    let ``rignet-user`` retry until it appears.
"""

import argparse
import sys

import structlog

from . import config
from . import log
from . import netconfig
from .servo import ServoProcess
from .transport import ChannelError
from .user import UserProcess


logger = structlog.get_logger(__name__)

default_behaviors = ('float', 'joint_posture', 'ope_space')


def _common_arguments(parser):

    parser.add_argument('--log-level', default='WARNING',
                        help='Standard library log level name (default: %(default)s)')
    parser.add_argument('--log-json', action='store_true',
                        help='Emit log entries as JSON instead of console text')
    parser.add_argument('--config', default=None,
                        help='JSON configuration file (default: rignet.json in $RIGNET_HOME)')


def _setup(arguments):
    """ Apply the logging and configuration arguments common to both
        entry points, and return the active configuration.
    """

    log.setup(arguments.log_level, json=arguments.log_json)

    if arguments.config is not None:
        config.install(config.load(arguments.config))

    return config.get()


def main_user(argv=None):
    """ Run the operator command loop against a servo process.
    """

    parser = argparse.ArgumentParser(description='rignet operator command loop')
    parser.add_argument('--server', default=None,
                        help='Address of the servo process (default: configured server_address)')
    _common_arguments(parser)

    arguments = parser.parse_args(argv)

    try:
        configuration = _setup(arguments)
        net = netconfig.create('client', arguments.server, configuration)
    except (ValueError, OSError, netconfig.ConfigError) as e:
        parser.error(str(e))

    process = UserProcess(configuration=configuration)

    try:
        process.init(net)
        process.run()
    except (netconfig.ConfigError, ChannelError) as e:
        logger.error('cannot start user process', error=str(e))
        return 1
    except KeyboardInterrupt:
        pass
    finally:
        process.close()

    return 0


def main_servo(argv=None):
    """ Serve operator queries until the user process disconnects.
    """

    parser = argparse.ArgumentParser(description='rignet reference servo process')
    parser.add_argument('--bind', default=None,
                        help='Address to listen on (default: configured bind_address)')
    parser.add_argument('--behavior', action='append', default=None, dest='behaviors',
                        help='Name of an available behavior; repeat for more')
    _common_arguments(parser)

    arguments = parser.parse_args(argv)

    try:
        configuration = _setup(arguments)
        net = netconfig.create('server', arguments.bind, configuration)
    except (ValueError, OSError, netconfig.ConfigError) as e:
        parser.error(str(e))

    behaviors = arguments.behaviors
    if not behaviors:
        behaviors = default_behaviors

    process = ServoProcess(behaviors, configuration=configuration)

    try:
        process.init(net)
        process.run()
    except (netconfig.ConfigError, ChannelError) as e:
        logger.error('cannot start servo process', error=str(e))
        return 1
    except KeyboardInterrupt:
        pass
    finally:
        process.close()

    return 0


if __name__ == '__main__':
    sys.exit(main_user())


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

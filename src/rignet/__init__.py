""" Python implementation of rignet, the messaging substrate linking the
    processes of a robot-control rig. This includes the channel, framing and
    dispatch layers, the request/reply transaction built on them, and the
    reference user and servo processes.
"""

# Utility components.

from . import json
from . import log
from . import config
home = config.directory

# Layers, leaves first.

from . import transport
from . import netconfig
from . import protocol
from . import process
from . import transaction
from . import directory

# Reference processes.

from . import servo
from . import user

# Primary public-facing interfaces.

from .netconfig import ProcessRole, ConfigError, UnsupportedError
from .transport import ChannelError, TryAgain, ChannelClosed
from .process import Process, TransactionError, TransactionTimeout, QueueFull
from .protocol import ProtocolError, MsgType
from .transaction import ServiceTransaction
from .directory import DirectoryError
from .user import CommandError, UserProcess
from .servo import ServoProcess

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

"""
rignet Protocol Layer
=====================

This package defines the binary messages exchanged between rig processes,
independent of how the bytes travel.

Layer Architecture Overview
---------------------------

Process (rignet.process)
    Queues, sends, receives, and dispatches messages

    │
    ▼
Handler Registry (registry.py)
    Message type id -> long-lived payload object
    - Unknown ids are dropped, never an error

    │
    ▼
Message Model (message.py, service.py)
    Concrete message classes and service codes
    - ServiceMessage, TaskSpec, RobotState, ServoCommand

    │
    ▼
Field Vocabulary (fields.py)
    Message type ids and scalar/vector/matrix field declarations

    │
    ▼
Framing (wire.py)
    Header + dimensions + raw data, in either byte order

Below the protocol layer, rignet.transport moves the bytes.
"""

from . import wire
from . import fields
from . import message
from . import registry
from . import service

from .wire import ProtocolError
from .fields import MsgType
from .message import WireMessage, ServiceMessage, TaskSpec, RobotState, ServoCommand


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

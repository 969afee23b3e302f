"""Per-process table mapping message type ids to the payload they update."""

from __future__ import annotations

from typing import Dict, Iterator, Optional

import structlog

from . import wire
from .message import WireMessage


logger = structlog.get_logger(__name__)


class Handler:
    """One registry entry: the payload that absorbs messages of one type."""

    __slots__ = ('type_id', 'name', 'payload', 'count')

    def __init__(self, type_id: int, name: str, payload: WireMessage):
        self.type_id = int(type_id)
        self.name = name
        self.payload = payload
        self.count = 0

    def __repr__(self) -> str:
        return f"Handler({self.type_id}, {self.name!r}, count={self.count})"


class Registry:
    """Dispatch incoming frames to the registered payload objects.

    There is exactly one handler per type id. A frame of an unknown type is
    dropped with a debug note; it never touches any registered payload.
    """

    def __init__(self):
        self._handlers: Dict[int, Handler] = {}

    def __contains__(self, type_id) -> bool:
        return int(type_id) in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def __iter__(self) -> Iterator[Handler]:
        return iter(self._handlers.values())

    def add(self, type_id, name: str, payload: WireMessage) -> Handler:
        type_id = int(type_id)

        if type_id in self._handlers:
            existing = self._handlers[type_id]
            raise ValueError(f"duplicate handler for message type {type_id}: {existing.name!r}")

        handler = Handler(type_id, name, payload)
        self._handlers[type_id] = handler
        return handler

    def get(self, type_id) -> Optional[Handler]:
        return self._handlers.get(int(type_id))

    def dispatch(self, header: wire.Header, frame) -> Optional[Handler]:
        """Decode *frame* into the payload registered for its type.

        Returns the :class:`Handler` that absorbed the frame, or None if the
        type is not registered. A frame that conflicts with the payload's
        layout raises :class:`rignet.protocol.wire.ProtocolError`.
        """

        handler = self._handlers.get(header.type_id)

        if handler is None:
            logger.debug("unknown message type dropped",
                         type_id=header.type_id,
                         request_id=header.request_id,
                         size=header.frame_size)
            return None

        wire.decode_into(handler.payload, header, frame)
        handler.count += 1
        return handler


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

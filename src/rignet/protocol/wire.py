"""Binary framing for :class:`rignet.protocol.message.WireMessage`.

Layout, every integer written in the sender's byte order::

    magic (uint16) | type id (uint16) | request id (uint32)
    field count (uint16) | reserved (uint16) | data length (uint32)
    rows, columns (2 x uint32 per field)
    raw field data, row-major, in field order

The magic number doubles as the byte-order mark: a receiver can tell from
the first two bytes which order the rest of the frame was written in. The
data length lets a receiver step over frames it has no handler for.
"""

from __future__ import annotations

import struct
import sys
from typing import NamedTuple, Optional

import numpy


MAGIC = 0xFEFF

LITTLE = 'little'
BIG = 'big'
NATIVE = 'native'

_prefix = {LITTLE: '<', BIG: '>'}
_marks = {b'\xff\xfe': LITTLE, b'\xfe\xff': BIG}

HEADER_FORMAT = 'HHIHHI'
HEADER_SIZE = struct.calcsize('<' + HEADER_FORMAT)
DIMS_SIZE = 8

# Frames this large are far beyond anything exchanged on a control rig;
# treat them as a corrupted stream rather than trying to buffer them.

maximum_frame = 64 * 1024 * 1024


class ProtocolError(Exception):
    """A frame could not be decoded, or conflicts with the receiver's layout."""


class Header(NamedTuple):

    order: str
    type_id: int
    request_id: int
    field_count: int
    data_length: int

    @property
    def dims_size(self) -> int:
        return self.field_count * DIMS_SIZE

    @property
    def frame_size(self) -> int:
        return HEADER_SIZE + self.dims_size + self.data_length


def resolve(order: str) -> str:
    """Map an endianness name, including ``native``, to ``little`` or ``big``."""

    if order == NATIVE:
        return sys.byteorder
    if order in _prefix:
        return order
    raise ValueError('unknown byte order: %r' % (order,))


def swapped(order: str) -> str:
    order = resolve(order)
    if order == LITTLE:
        return BIG
    return LITTLE


def wire_dtype(dtype, order: str) -> numpy.dtype:
    return numpy.dtype(dtype).newbyteorder(_prefix[resolve(order)])


def encode(message, order: str = NATIVE) -> bytes:
    """ Serialize *message* in the requested byte *order*. The current
        contents of the message are copied; later changes to the message
        do not affect the returned bytes.
    """

    order = resolve(order)
    prefix = _prefix[order]

    dims = list()
    chunks = list()

    for field in message.fields:
        value = field.matrix(message)
        rows, columns = value.shape
        dims.append(rows)
        dims.append(columns)
        converted = numpy.ascontiguousarray(value, dtype=wire_dtype(field.dtype, order))
        chunks.append(converted.tobytes())

    data = b''.join(chunks)
    count = len(message.fields)

    header = struct.pack(prefix + HEADER_FORMAT,
                         MAGIC,
                         int(message.type_id),
                         int(message.request_id) & 0xFFFFFFFF,
                         count, 0, len(data))

    packed_dims = struct.pack(prefix + '%dI' % (2 * count), *dims)

    return header + packed_dims + data


def parse_header(buffer) -> Optional[Header]:
    """ Parse the fixed header at the start of *buffer*. Returns None if
        the buffer does not yet hold a complete header.
    """

    if len(buffer) < HEADER_SIZE:
        return None

    mark = bytes(buffer[0:2])

    try:
        order = _marks[mark]
    except KeyError:
        raise ProtocolError('bad magic number %r, stream is not aligned on a frame' % (mark,))

    fields = struct.unpack_from(_prefix[order] + HEADER_FORMAT, buffer, 0)
    magic, type_id, request_id, field_count, reserved, data_length = fields

    header = Header(order, type_id, request_id, field_count, data_length)

    if header.frame_size > maximum_frame:
        raise ProtocolError('frame of %d bytes exceeds the %d byte limit' % (header.frame_size, maximum_frame))

    return header


def decode_into(message, header: Header, frame) -> None:
    """ Overwrite the fields of *message* with the contents of *frame*,
        a complete frame described by *header*. Every field is decoded and
        checked before any of them is assigned, so a frame that conflicts
        with the message layout leaves the message untouched.
    """

    fields = message.fields

    if header.field_count != len(fields):
        raise ProtocolError('type %d: frame carries %d fields, %s expects %d' % (
            header.type_id, header.field_count, message.__class__.__name__, len(fields)))

    if len(frame) < header.frame_size:
        raise ProtocolError('type %d: truncated frame' % (header.type_id))

    prefix = _prefix[header.order]
    dims = struct.unpack_from(prefix + '%dI' % (2 * header.field_count), frame, HEADER_SIZE)

    offset = HEADER_SIZE + header.dims_size
    end = offset + header.data_length
    decoded = list()

    for index, field in enumerate(fields):
        rows = dims[2 * index]
        columns = dims[2 * index + 1]

        field.check_shape(rows, columns)

        count = rows * columns
        dtype = wire_dtype(field.dtype, header.order)
        size = count * dtype.itemsize

        if offset + size > end:
            raise ProtocolError('type %d: field %r overruns the declared data length' % (header.type_id, field.name))

        if count == 0:
            value = numpy.zeros((rows, columns), dtype=field.dtype)
        else:
            value = numpy.frombuffer(frame, dtype=dtype, count=count, offset=offset)
            value = value.reshape(rows, columns).astype(field.dtype)

        decoded.append(value)
        offset += size

    if offset != end:
        raise ProtocolError('type %d: %d unused bytes in frame' % (header.type_id, end - offset))

    for field, value in zip(fields, decoded):
        field.assign(message, value)

    message.request_id = header.request_id


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

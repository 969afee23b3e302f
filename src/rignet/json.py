''' JSON helpers for the parts of rignet that are not binary frames: the
    configuration file, the behavior listing carried as text in a service
    reply, and the directory server payloads. :func:`dumps` always returns
    bytes, and :func:`loads` raises :class:`DecodeError` on malformed input,
    whichever backend is in use.
'''

# Only the first backend found is imported; msgspec is preferred, then
# orjson, then the standard library.

msgspec = None
orjson = None
json = None

try:
    import msgspec
except ImportError:
    pass

if msgspec is None:
    try:
        import orjson
    except ImportError:
        pass

if msgspec is None and orjson is None:
    import json


def _stdlib_dumps(*args, **kwargs):
    return json.dumps(*args, **kwargs).encode()

if msgspec is not None:
    encoder = msgspec.json.Encoder()
    decoder = msgspec.json.Decoder()
    dumps = encoder.encode
    loads = decoder.decode
    DecodeError = msgspec.DecodeError
elif orjson is not None:
    dumps = orjson.dumps
    loads = orjson.loads
    DecodeError = orjson.JSONDecodeError
else:
    dumps = _stdlib_dumps
    loads = json.loads
    DecodeError = json.JSONDecodeError

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

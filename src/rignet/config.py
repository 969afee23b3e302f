import os
import threading

from . import json


filename = 'rignet.json'

# Defaults for every recognized setting. A configuration file only needs to
# mention the settings it changes.

defaults = dict()
defaults['ports'] = [
    ['servo', 'model', 9999],
    ['model', 'servo', 9999],
    ['servo', 'user', 8888],
    ['user', 'servo', 8888],
]
defaults['retry_interval'] = 0.25
defaults['transaction_timeout'] = 10000
defaults['directory_port'] = 8080
defaults['bind_address'] = '0.0.0.0'
defaults['server_address'] = '127.0.0.1'
defaults['queue_limit'] = 64
defaults['endian'] = 'native'
defaults['endian_detect'] = True
defaults['networking'] = True


_cache = dict()
_cache_lock = threading.Lock()


class Configuration:
    """ A convenience class to represent rignet configuration data. To first
        order an instance acts like a read-only dictionary; unknown keys are
        rejected both on lookup and on :func:`update`, so that a typo in a
        configuration file is caught at startup instead of silently ignored.
    """

    def __init__(self, values=None, origin=None):

        self.origin = origin
        self._values = dict()

        for key, value in defaults.items():
            self._values[key] = _copy(value)

        if values:
            self.update(values)


    def __contains__(self, key):
        return key in self._values


    def __getitem__(self, key):
        try:
            return self._values[key]
        except KeyError:
            raise KeyError('unknown rignet setting: ' + repr(key))


    def __repr__(self):
        return 'config.Configuration(%r, origin=%r)' % (self._values, self.origin)


    def get(self, key, default=None):
        return self._values.get(key, default)


    def keys(self):
        return tuple(self._values.keys())


    def update(self, values):
        """ Merge the *values* dictionary into this configuration after
            checking each setting.
        """

        for key, value in values.items():
            if key not in defaults:
                raise ValueError('unknown rignet setting: ' + repr(key))

            if key == 'ports':
                value = _check_ports(value)
            elif key in ('retry_interval',):
                value = float(value)
                if value < 0:
                    raise ValueError('%s must not be negative' % (key))
            elif key in ('transaction_timeout', 'directory_port', 'queue_limit'):
                value = int(value)
                if value <= 0:
                    raise ValueError('%s must be positive' % (key))
            elif key in ('endian_detect', 'networking'):
                value = bool(value)
            elif key == 'endian':
                if value not in ('native', 'little', 'big'):
                    raise ValueError('endian must be one of native, little, big')

            self._values[key] = value


    def port_table(self):
        """ Return the port assignments as a dictionary keyed by
            (origin, destination) role names.
        """

        table = dict()
        for origin, destination, port in self._values['ports']:
            table[(origin, destination)] = port

        return table


# end of class Configuration



def _copy(value):
    if isinstance(value, list):
        return [_copy(element) for element in value]
    return value


def _check_ports(entries):

    checked = list()

    for entry in entries:
        try:
            origin, destination, port = entry
        except (TypeError, ValueError):
            raise ValueError('port entries are [origin, destination, port], not ' + repr(entry))

        origin = str(origin).lower()
        destination = str(destination).lower()
        port = int(port)

        if port <= 0 or port > 65535:
            raise ValueError('port out of range: ' + repr(entry))

        checked.append([origin, destination, port])

    return checked



def directory(default=None):
    """ Return the directory location where we should be loading
        configuration files. This defaults to ``$HOME/.rignet``, but can be
        overridden by calling this method with a valid path, or by setting
        the ``RIGNET_HOME`` environment variable. Note that changes to the
        environment variable will be ignored unless it is set prior to the
        first invocation of this method.
    """

    if default is not None:
        default = str(default)
        default = os.path.expandvars(default)

        if os.path.isabs(default):
            pass
        else:
            raise ValueError('the default directory must be an absolute path')

        os.environ['RIGNET_HOME'] = default
        directory.found = default


    found = directory.found

    if found is not None:
        return found

    try:
        found = os.environ['RIGNET_HOME']
    except KeyError:
        pass
    else:
        directory.found = found
        return found

    try:
        home = os.environ['HOME']
    except KeyError:
        raise RuntimeError('RIGNET_HOME and HOME environment variables not set, cannot determine rignet configuration directory')

    found = os.path.join(home, '.rignet')

    directory.found = found
    return found

directory.found = None



def load(path):
    """ Read the JSON configuration file at *path* and return a new
        :class:`Configuration` with its contents applied over the defaults.
    """

    with open(path, 'rb') as file:
        raw = file.read()

    try:
        values = json.loads(raw)
    except json.DecodeError as e:
        raise ValueError('cannot parse %s: %s' % (path, e)) from e

    if not isinstance(values, dict):
        raise ValueError('%s does not contain a JSON object' % (path))

    return Configuration(values, origin=path)



def get():
    """ Retrieve the cached :class:`Configuration`, loading it from the
        configuration directory on first use. Missing files are not an
        error; the defaults apply.
    """

    _cache_lock.acquire()

    try:
        configuration = _cache['default']
    except KeyError:
        path = os.path.join(directory(), filename)

        if os.path.exists(path):
            configuration = load(path)
        else:
            configuration = Configuration()

        _cache['default'] = configuration
    finally:
        _cache_lock.release()

    return configuration



def install(configuration):
    """ Make *configuration* the one returned by :func:`get`, typically
        after loading an explicit file named on the command line.
    """

    _cache_lock.acquire()

    try:
        _cache['default'] = configuration
    finally:
        _cache_lock.release()



def clear():
    """ Discard the cached configuration, so the next :func:`get` reloads it.
    """

    _cache.clear()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

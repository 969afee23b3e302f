import os
import pytest
import socket

import rignet

from rignet import cli


def offline_config(tmp_path):

    path = os.path.join(str(tmp_path), 'offline.json')

    with open(path, 'wb') as file:
        file.write(rignet.json.dumps({'networking': False}))

    return path


def test_user_without_networking(tmp_path):

    path = offline_config(tmp_path)
    assert cli.main_user(['--config', path, '--log-level', 'DEBUG']) == 1
    assert rignet.config.get()['networking'] == False


def test_servo_without_networking(tmp_path):

    path = offline_config(tmp_path)
    assert cli.main_servo(['--config', path, '--log-level', 'DEBUG', '--behavior', 'float']) == 1


def test_bad_arguments(tmp_path):

    with pytest.raises(SystemExit):
        cli.main_user(['--log-level', 'CHATTY'])

    with pytest.raises(SystemExit):
        cli.main_servo(['--config', os.path.join(str(tmp_path), 'missing.json'), '--log-level', 'DEBUG'])


def test_servo_port_taken(tmp_path, free_port):

    values = dict()
    values['ports'] = [
        ['servo', 'user', free_port],
        ['user', 'servo', free_port],
    ]

    path = os.path.join(str(tmp_path), 'taken.json')

    with open(path, 'wb') as file:
        file.write(rignet.json.dumps(values))

    occupied = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    occupied.bind(('127.0.0.1', free_port))
    occupied.listen(1)

    try:
        assert cli.main_servo(['--config', path, '--bind', '127.0.0.1', '--log-level', 'DEBUG']) == 1
    finally:
        occupied.close()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

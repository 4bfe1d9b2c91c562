"""Tests for sozu_acme._internal.channel."""
import json
import os
import socket
import struct
import sys
import tempfile
import unittest
from unittest import mock

import pytest

from sozu_acme import errors
from sozu_acme import messages
from sozu_acme._internal import channel
from sozu_acme._internal.tests import test_util

ANSWER = b'{"id": "ID-abc123-1", "version": 0, "status": "OK", "message": "", "data": null}'


class LengthPrefixFramerTest(unittest.TestCase):
    """Tests for sozu_acme._internal.channel.LengthPrefixFramer."""

    def setUp(self):
        self.framer = channel.LengthPrefixFramer()

    def test_frame(self):
        assert self.framer.frame(b'{}') == b'\x02\x00\x00\x00\x00\x00\x00\x00{}'

    def test_unframe(self):
        buf = bytearray(self.framer.frame(b'{"a": 1}') + self.framer.frame(b'{}'))
        assert self.framer.unframe(buf, 100) == b'{"a": 1}'
        assert self.framer.unframe(buf, 100) == b'{}'
        assert not buf

    def test_unframe_incomplete(self):
        buf = bytearray(self.framer.frame(b'{"a": 1}')[:-1])
        assert self.framer.unframe(buf, 100) is None
        assert self.framer.unframe(bytearray(b'\x02\x00'), 100) is None

    def test_unframe_too_large(self):
        with pytest.raises(errors.ChannelError):
            self.framer.unframe(bytearray(struct.pack('<Q', 101)), 100)


class NulDelimitedFramerTest(unittest.TestCase):
    """Tests for sozu_acme._internal.channel.NulDelimitedFramer."""

    def setUp(self):
        self.framer = channel.NulDelimitedFramer()

    def test_frame(self):
        assert self.framer.frame(b'{}') == b'{}\0'

    def test_unframe(self):
        buf = bytearray(b'{"a": 1}\0{}\0{"b"')
        assert self.framer.unframe(buf, 100) == b'{"a": 1}'
        assert self.framer.unframe(buf, 100) == b'{}'
        assert self.framer.unframe(buf, 100) is None
        assert buf == bytearray(b'{"b"')

    def test_unframe_too_large(self):
        with pytest.raises(errors.ChannelError):
            self.framer.unframe(bytearray(b'x' * 11), 10)
        with pytest.raises(errors.ChannelError):
            self.framer.unframe(bytearray(b'x' * 11 + b'\0'), 10)


class ChannelTest(unittest.TestCase):
    """Tests for sozu_acme._internal.channel.Channel."""

    def setUp(self):
        self.sock, self.proxy = socket.socketpair()
        self.logger = mock.MagicMock()
        self.channel = channel.Channel(self.sock, logger=self.logger)

    def tearDown(self):
        self.channel.close()
        self.proxy.close()

    def _read_frame(self):
        size, = struct.unpack('<Q', self.proxy.recv(8))
        return json.loads(self.proxy.recv(size))

    def test_send(self):
        self.channel.send(messages.ConfigMessage(
            id='ID-abc123-1',
            data=messages.AddHttpFront(app_id='app', hostname='example.test', path_begin='/')))
        assert self._read_frame() == {
            'id': 'ID-abc123-1',
            'version': 0,
            'type': 'PROXY',
            'data': {
                'type': 'ADD_HTTP_FRONT',
                'data': {'app_id': 'app', 'hostname': 'example.test', 'path_begin': '/'},
            },
        }

    def test_send_too_large(self):
        self.channel.max_message_size = 10
        with pytest.raises(errors.ChannelWriteError):
            self.channel.send(messages.ConfigMessage(
                id='ID-abc123-1',
                data=messages.RemoveCertificate(fingerprint='ab12', names=())))

    def test_send_closed(self):
        self.sock.close()
        with pytest.raises(errors.ChannelWriteError):
            self.channel.send(messages.ConfigMessage(
                id='ID-abc123-1',
                data=messages.RemoveCertificate(fingerprint='ab12', names=())))

    def test_receive(self):
        self.proxy.sendall(channel.LengthPrefixFramer().frame(ANSWER))
        answer = self.channel.receive()
        assert answer == test_util.answer('ID-abc123-1')

    def test_receive_in_pieces(self):
        self.channel.buffer_size = 7
        frame = channel.LengthPrefixFramer().frame(ANSWER)
        self.proxy.sendall(frame + frame)
        assert self.channel.receive().id == 'ID-abc123-1'
        assert self.channel.receive().id == 'ID-abc123-1'

    def test_receive_closed(self):
        self.proxy.close()
        assert self.channel.receive() is None

    def test_receive_invalid_json(self):
        self.proxy.sendall(channel.LengthPrefixFramer().frame(b'{"id": '))
        assert self.channel.receive() is None
        assert self.logger.error.called

    def test_receive_invalid_answer(self):
        self.proxy.sendall(channel.LengthPrefixFramer().frame(b'{"id": "x", "status": "DONE"}'))
        assert self.channel.receive() is None
        assert self.logger.error.called

    def test_receive_too_large(self):
        self.channel.max_message_size = 10
        self.proxy.sendall(channel.LengthPrefixFramer().frame(ANSWER))
        assert self.channel.receive() is None
        assert self.logger.error.called

    def test_receive_timeout(self):
        self.sock.settimeout(0.01)
        with pytest.raises(errors.ChannelTimeout):
            self.channel.receive()

    def test_context_manager(self):
        with self.channel as chan:
            assert chan is self.channel
        assert self.sock.fileno() == -1


class NulChannelTest(unittest.TestCase):
    """Tests for sozu_acme._internal.channel.Channel with NUL framing."""

    def setUp(self):
        self.sock, self.proxy = socket.socketpair()
        self.channel = channel.Channel(self.sock, channel.NulDelimitedFramer())

    def tearDown(self):
        self.channel.close()
        self.proxy.close()

    def test_round_trip(self):
        self.channel.send(messages.ConfigMessage(
            id='ID-abc123-1',
            data=messages.RemoveCertificate(fingerprint='ab12', names=())))
        data = self.proxy.recv(1000)
        assert data.endswith(b'\0')
        assert json.loads(data[:-1])['data']['type'] == 'REMOVE_CERTIFICATE'

        self.proxy.sendall(ANSWER + b'\0')
        assert self.channel.receive().status == messages.STATUS_OK


class ConnectTest(unittest.TestCase):
    """Tests for sozu_acme._internal.channel.connect."""

    def setUp(self):
        self.tempdir = tempfile.mkdtemp()
        self.path = os.path.join(self.tempdir, 'sock')

    def tearDown(self):
        if os.path.exists(self.path):
            os.remove(self.path)
        os.rmdir(self.tempdir)

    def test_connect(self):
        server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        server.bind(self.path)
        server.listen(1)
        try:
            with channel.connect(self.path, framing='nul', timeout=5) as chan:
                assert isinstance(chan.framer, channel.NulDelimitedFramer)
                assert chan.sock.gettimeout() == 5
        finally:
            server.close()

    def test_default_framing(self):
        server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        server.bind(self.path)
        server.listen(1)
        try:
            with channel.connect(self.path, timeout=5) as chan:
                assert isinstance(chan.framer, channel.LengthPrefixFramer)
                proxy, _ = server.accept()
                with proxy:
                    chan.send(messages.ConfigMessage(
                        id='ID-abc123-1', data=messages.RemoveBackend(
                            app_id='app', backend_id='app-0', ip_address='127.0.0.1',
                            port=8080)))
                    header = proxy.recv(8)
                    size, = struct.unpack('<Q', header)
                    payload = proxy.recv(size)
                    assert len(payload) == size
                    assert json.loads(payload)['id'] == 'ID-abc123-1'
        finally:
            server.close()

    def test_connect_failure(self):
        with pytest.raises(errors.ChannelConnectionError):
            channel.connect(self.path)

    def test_unknown_framing(self):
        with pytest.raises(errors.ConfigurationError):
            channel.connect(self.path, framing='xml')


if __name__ == '__main__':
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover

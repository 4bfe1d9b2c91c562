"""Blocking message channel over the proxy's command socket.

Messages are JSON documents, one per frame. Only one request is in
flight at a time: callers `Channel.send` an envelope, then call
`Channel.receive` until a terminal answer arrives.

"""
import logging
import socket
import struct
from typing import Dict
from typing import Optional
from typing import Type

import josepy as jose

from sozu_acme import errors
from sozu_acme import messages
from sozu_acme._internal import constants

logger = logging.getLogger(__name__)


class Framer:
    """Splits a byte stream into messages.

    :ivar str name: name used to select the framing in the configuration

    """
    name: str = NotImplemented

    def frame(self, payload: bytes) -> bytes:
        """Wrap `payload` into a frame ready to be written."""
        raise NotImplementedError()

    def unframe(self, buf: bytearray, max_size: int) -> Optional[bytes]:
        """Remove the first complete message from `buf`.

        :param bytearray buf: bytes read so far, consumed in place
        :param int max_size: largest acceptable payload

        :returns: the message payload or `None` if `buf` does not hold a
            complete frame yet
        :rtype: bytes

        :raises errors.ChannelError: if the frame is larger than `max_size`

        """
        raise NotImplementedError()


class LengthPrefixFramer(Framer):
    """Payload preceded by its length, as an unsigned 64-bit little endian."""
    name = 'length'
    header = struct.Struct('<Q')

    def frame(self, payload: bytes) -> bytes:
        return self.header.pack(len(payload)) + payload

    def unframe(self, buf: bytearray, max_size: int) -> Optional[bytes]:
        if len(buf) < self.header.size:
            return None
        size, = self.header.unpack_from(buf)
        if size > max_size:
            raise errors.ChannelError(
                'message of {0} bytes exceeds the {1} bytes limit'.format(size, max_size))
        end = self.header.size + size
        if len(buf) < end:
            return None
        payload = bytes(buf[self.header.size:end])
        del buf[:end]
        return payload


class NulDelimitedFramer(Framer):
    """Payload terminated by a NUL byte."""
    name = 'nul'
    delimiter = b'\0'

    def frame(self, payload: bytes) -> bytes:
        return payload + self.delimiter

    def unframe(self, buf: bytearray, max_size: int) -> Optional[bytes]:
        end = buf.find(self.delimiter)
        if end == -1:
            if len(buf) > max_size:
                raise errors.ChannelError(
                    'no message delimiter in the first {0} bytes'.format(max_size))
            return None
        payload = bytes(buf[:end])
        del buf[:end + 1]
        if len(payload) > max_size:
            raise errors.ChannelError(
                'message of {0} bytes exceeds the {1} bytes limit'.format(
                    len(payload), max_size))
        return payload


FRAMERS: Dict[str, Type[Framer]] = {
    framer_cls.name: framer_cls for framer_cls in (LengthPrefixFramer, NulDelimitedFramer)
}


class Channel:
    """Command socket connection.

    :ivar socket.socket sock: connected stream socket
    :ivar Framer framer:
    :ivar int buffer_size: size of a single read
    :ivar int max_message_size: largest message accepted in either direction

    """
    def __init__(self, sock: socket.socket, framer: Optional[Framer] = None,
                 buffer_size: int = constants.CHANNEL_BUFFER_SIZE,
                 max_message_size: int = constants.CHANNEL_MAX_MESSAGE_SIZE,
                 timeout: Optional[float] = None,
                 logger: Optional[logging.Logger] = None) -> None:
        self.sock = sock
        self.framer = framer if framer is not None else LengthPrefixFramer()
        self.buffer_size = buffer_size
        self.max_message_size = max_message_size
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self._buffer = bytearray()
        # None puts the socket in blocking mode
        self.sock.settimeout(timeout)

    def __enter__(self) -> 'Channel':
        return self

    def __exit__(self, *unused_exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying socket."""
        self.sock.close()

    def send(self, message: jose.JSONDeSerializable) -> None:
        """Write one message.

        :raises errors.ChannelWriteError: if the message is too large or
            the socket cannot be written

        """
        payload = message.json_dumps().encode()
        if len(payload) > self.max_message_size:
            raise errors.ChannelWriteError(
                'message of {0} bytes exceeds the {1} bytes limit'.format(
                    len(payload), self.max_message_size))
        try:
            self.sock.sendall(self.framer.frame(payload))
        except OSError as error:
            raise errors.ChannelWriteError(
                'could not write to the command socket: {0}'.format(error))
        self.logger.debug('Sent %s', payload)

    def receive(self) -> Optional[messages.ConfigMessageAnswer]:
        """Read one answer, blocking until it is complete.

        :returns: the answer, or `None` if the socket was closed, failed,
            or delivered a message that could not be decoded
        :rtype: messages.ConfigMessageAnswer

        :raises errors.ChannelTimeout: if a read deadline is configured
            and expires

        """
        payload = self._read_payload()
        if payload is None:
            return None
        self.logger.debug('Received %s', payload)
        try:
            return messages.ConfigMessageAnswer.json_loads(payload)
        except (ValueError, jose.DeserializationError) as error:
            self.logger.error('could not decode answer from the proxy: %s', error)
            return None

    def _read_payload(self) -> Optional[bytes]:
        while True:
            try:
                payload = self.framer.unframe(self._buffer, self.max_message_size)
            except errors.ChannelError as error:
                self.logger.error('invalid message on the command socket: %s', error)
                return None
            if payload is not None:
                return payload
            try:
                chunk = self.sock.recv(self.buffer_size)
            except socket.timeout:
                raise errors.ChannelTimeout(
                    'the proxy did not answer within {0} seconds'.format(
                        self.sock.gettimeout()))
            except OSError as error:
                self.logger.error('could not read from the command socket: %s', error)
                return None
            if not chunk:
                self.logger.debug('Command socket closed by the proxy')
                return None
            self._buffer += chunk


def connect(path: str, framing: str = constants.DEFAULT_FRAMING,
            max_message_size: int = constants.CHANNEL_MAX_MESSAGE_SIZE,
            timeout: Optional[float] = None) -> Channel:
    """Connect to the proxy's command unix socket.

    :param str path: socket path
    :param str framing: key of `FRAMERS`, ``length`` by default, ``nul`` for
        early sozu releases
    :param int max_message_size: largest message accepted
    :param float timeout: read deadline in seconds, `None` to block

    :raises errors.ChannelConnectionError: if the socket is unreachable

    """
    try:
        framer = FRAMERS[framing]()
    except KeyError:
        raise errors.ConfigurationError('unknown framing: {0}'.format(framing))
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.connect(path)
    except OSError as error:
        sock.close()
        raise errors.ChannelConnectionError(
            'could not connect to the command unix socket {0}: {1}'.format(path, error))
    logger.debug('Connected to command socket %s', path)
    return Channel(sock, framer, max_message_size=max_message_size, timeout=timeout)

"""Proxy configuration orders.

`OrderSequencer.order` sends one order over the command channel and
reads answers until the proxy reports a terminal status::

    AWAITING_ANSWER --PROCESSING--> AWAITING_ANSWER
    AWAITING_ANSWER --OK----------> success
    AWAITING_ANSWER --ERROR-------> failure
    AWAITING_ANSWER --no answer---> failure

An answer carrying another id than the request aborts the run with
`errors.ProtocolError`. There is no deadline on this loop unless the
channel itself was created with one.

"""
import itertools
import logging
import secrets
import string
import threading
from typing import Optional
from typing import Tuple

from sozu_acme import errors
from sozu_acme import messages
from sozu_acme._internal import channel as channel_mod
from sozu_acme._internal import crypto_util
from sozu_acme._internal import storage


class IdGenerator:
    """Request ids, unique within a run.

    Ids look like ``ID-Xy12ab-1``: a random token drawn once per
    generator, then a counter.

    """
    ALPHABET = string.ascii_letters + string.digits

    def __init__(self, token: Optional[str] = None) -> None:
        if token is None:
            token = ''.join(secrets.choice(self.ALPHABET) for _ in range(6))
        self.prefix = 'ID-{0}'.format(token)
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            count = next(self._counter)
        return '{0}-{1}'.format(self.prefix, count)


class OrderSequencer:
    """Runs orders against the proxy, one at a time.

    :ivar channel: `.Channel` to the proxy
    :ivar IdGenerator ids: request id source
    :ivar logging.Logger logger:

    """
    def __init__(self, channel: channel_mod.Channel, ids: Optional[IdGenerator] = None,
                 logger: Optional[logging.Logger] = None) -> None:
        self.channel = channel
        self.ids = ids if ids is not None else IdGenerator()
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    def order(self, order: messages.Order) -> bool:
        """Execute an order and wait for its outcome.

        :param messages.Order order: order to send

        :returns: `True` if the proxy executed the order
        :rtype: bool

        :raises errors.ProtocolError: if an answer does not carry the
            request id
        :raises errors.ChannelWriteError: if the order cannot be sent

        """
        request_id = self.ids()
        self.channel.send(messages.ConfigMessage(id=request_id, data=order))

        while True:
            answer = self.channel.receive()
            if answer is None:
                self.logger.error('the proxy did not answer to %s', order.typ)
                return False
            if answer.id != request_id:
                raise errors.ProtocolError(request_id, answer)
            if answer.status == messages.STATUS_PROCESSING:
                # more answers will follow for the same request
                continue
            if answer.status == messages.STATUS_ERROR:
                self.logger.error('could not execute order %s: %s', order.typ, answer.message)
                return False
            self.logger.info('%s: %s', order.done_msg, answer.message)
            return True

    def set_up_proxying(self, app_id: str, hostname: str, path_begin: str,
                        address: Tuple[str, int]) -> bool:
        """Route ``hostname + path_begin`` to `address`.

        The backend is only added if the frontend was.

        """
        return self.order(messages.AddHttpFront(
            app_id=app_id, hostname=hostname, path_begin=path_begin,
        )) and self.order(messages.AddBackend.for_app(app_id, address))

    def remove_proxying(self, app_id: str, hostname: str, path_begin: str,
                        address: Tuple[str, int]) -> bool:
        """Undo `set_up_proxying`.

        Both removals are attempted even if the first one fails.

        :returns: `True` if both were executed
        :rtype: bool

        """
        front_removed = self.order(messages.RemoveHttpFront(
            app_id=app_id, hostname=hostname, path_begin=path_begin,
        ))
        backend_removed = self.order(messages.RemoveBackend.for_app(app_id, address))
        return front_removed and backend_removed

    def install_certificate(self, app_id: str, hostname: str, cert_path: str,
                            chain_path: str, key_path: str, path_begin: str = '') -> bool:
        """Load a certificate from disk and serve `hostname` over HTTPS with it.

        Nothing is sent to the proxy if the files cannot be loaded or
        the fingerprint cannot be calculated.

        :returns: `True` if both the certificate and the HTTPS frontend
            were added
        :rtype: bool

        """
        try:
            certificate = storage.load_file(cert_path)
            fingerprint = crypto_util.calculate_fingerprint(certificate)
            chain = crypto_util.split_certificate_chain(storage.load_file(chain_path))
            key = storage.load_file(key_path)
        except (errors.StorageError, errors.FingerprintError) as error:
            self.logger.error(str(error))
            return False

        return self.order(messages.AddCertificate(
            certificate=messages.CertificateAndKey(
                certificate=certificate, certificate_chain=tuple(chain), key=key),
            fingerprint=fingerprint,
            names=(hostname,),
        )) and self.order(messages.AddHttpsFront(
            app_id=app_id, hostname=hostname, path_begin=path_begin,
            fingerprint=fingerprint,
        ))

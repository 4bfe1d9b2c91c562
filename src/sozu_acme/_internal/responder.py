"""Single-shot HTTP-01 challenge responder.

The responder serves one resource, the key authorization at the
challenge path, on a loopback port picked by the OS. The proxy forwards
the CA's validation request to it through a temporary route. Serving
stops as soon as that resource has been delivered.

"""
import concurrent.futures
import http.client as http_client
import http.server as BaseHTTPServer
import logging
import threading
from typing import Any
from typing import Optional
from typing import Tuple

from sozu_acme import errors
from sozu_acme._internal import constants


class ChallengeServer(BaseHTTPServer.HTTPServer):
    """HTTP server answering a single challenge path.

    Requests are handled one after the other on the serving thread.

    :ivar str challenge_path: path of the challenge resource
    :ivar str key_authorization: body served at `challenge_path`
    :ivar bool answered: the challenge resource was delivered
    :ivar bool failed: a transport error occurred

    """
    allow_reuse_address = True
    server_version = "sozu-acme challenge responder"
    # select() timeout, so that a stop request is noticed
    timeout = 0.5

    def __init__(self, server_address: Tuple[str, int], challenge_path: str,
                 key_authorization: str, logger: Optional[logging.Logger] = None) -> None:
        self.challenge_path = challenge_path
        self.key_authorization = key_authorization
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.answered = False
        self.failed = False
        super().__init__(server_address, ChallengeRequestHandler)

    def get_request(self) -> Tuple[Any, Any]:
        try:
            return super().get_request()
        except OSError as error:
            self.logger.error('could not accept connection: %s', error)
            self.failed = True
            raise

    def handle_error(self, request: Any, client_address: Any) -> None:
        self.logger.error('error while answering %s', client_address[0], exc_info=True)
        self.failed = True


class ChallengeRequestHandler(BaseHTTPServer.BaseHTTPRequestHandler):
    """Serves the key authorization at the challenge path, 404 elsewhere."""
    server: ChallengeServer

    def log_message(self, format: str, *args: Any) -> None:  # pylint: disable=redefined-builtin
        """Log arbitrary message."""
        self.server.logger.debug("%s - - %s", self.client_address[0], format % args)

    def handle_challenge(self) -> None:
        """Answer a request, whatever its method.

        The challenge path gets the key authorization and ends serving,
        any other path gets a 404.

        """
        self.server.logger.info('got request to URL: %s', self.path)
        length = self.headers.get('Content-Length', '')
        if length.isdigit():
            # request bodies are ignored but must be consumed
            self.rfile.read(int(length))
        if self.path == self.server.challenge_path:
            self._respond(http_client.OK, self.server.key_authorization.encode())
            self.server.answered = True
            self.server.logger.info('challenge request answered, stopping HTTP server')
        else:
            self._respond(http_client.NOT_FOUND, b'not found')

    # pylint: disable=invalid-name
    do_GET = do_HEAD = do_POST = do_PUT = do_DELETE = do_OPTIONS = handle_challenge

    def _respond(self, code: int, body: bytes) -> None:
        self.send_response(code)
        self.send_header('Content-Type', 'text/plain')
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        if self.command != 'HEAD':
            self.wfile.write(body)


class ChallengeResponder:
    """Runs a `ChallengeServer` on its own thread.

    The server is bound on construction so that `address` can be
    routed to before serving starts. `start` returns a future resolved
    with `True` once the challenge was answered, or `False` if serving
    ended without it.

    :param str path: challenge path, e.g. ``/.well-known/acme-challenge/<token>``
    :param str key_authorization: challenge key authorization
    :param tuple address: bind address

    """
    def __init__(self, path: str, key_authorization: str,
                 address: Tuple[str, int] = constants.RESPONDER_ADDRESS,
                 logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self._server = ChallengeServer(address, path, key_authorization, self.logger)
        self._stop = threading.Event()
        self._future: 'concurrent.futures.Future[bool]' = concurrent.futures.Future()
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> Tuple[str, int]:
        """Bound ``(host, port)``."""
        host, port = self._server.server_address[:2]
        return str(host), port

    def start(self) -> 'concurrent.futures.Future[bool]':
        """Start serving on a new thread.

        :returns: completion signal
        :rtype: concurrent.futures.Future

        """
        if self._thread is not None:
            raise RuntimeError('challenge responder already started')
        self._thread = threading.Thread(target=self._run, name='challenge-responder',
                                        daemon=True)
        self._thread.start()
        self.logger.info('HTTP server started on %s:%d', *self.address)
        return self._future

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until serving ended.

        :param float timeout: seconds to wait, `None` to wait forever

        :returns: `True` if the challenge was answered
        :rtype: bool

        :raises errors.ResponderTimeout: if `timeout` expired first

        """
        try:
            return self._future.result(timeout)
        except concurrent.futures.TimeoutError:
            raise errors.ResponderTimeout(
                'challenge request not received within {0} seconds'.format(timeout))

    def stop(self) -> None:
        """Ask the serving thread to finish without waiting for a request."""
        self._stop.set()
        if self._thread is None:
            self._server.server_close()
            if not self._future.done():
                self._future.set_result(False)

    def _run(self) -> None:
        try:
            answered = self._serve()
        except Exception as error:  # pylint: disable=broad-except
            self._future.set_exception(error)
        else:
            self._future.set_result(answered)

    def _serve(self) -> bool:
        server = self._server
        try:
            while not (server.answered or server.failed or self._stop.is_set()):
                server.handle_request()
        finally:
            server.server_close()
        return server.answered

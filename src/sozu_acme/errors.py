"""sozu-acme errors."""


class Error(Exception):
    """Generic sozu-acme error."""


class ConfigurationError(Error):
    """Invalid or incomplete configuration."""


# Control channel errors
class ChannelError(Error):
    """Generic control channel error."""


class ChannelConnectionError(ChannelError):
    """The proxy's command socket could not be reached."""


class ChannelWriteError(ChannelError):
    """A message could not be written to the command socket."""


class ChannelTimeout(ChannelError):
    """The proxy did not answer before the configured deadline."""


class ProtocolError(Error):
    """The proxy answered with a message that does not correlate.

    Once request and answer ids disagree, no later answer on the same
    channel can be trusted.

    :ivar str expected_id: id of the outstanding request
    :ivar answer: the offending `.ConfigMessageAnswer`

    """
    def __init__(self, expected_id, answer):
        self.expected_id = expected_id
        self.answer = answer
        super().__init__(expected_id, answer)

    def __str__(self):
        return 'received message with invalid id (expected {0}): {1!r}'.format(
            self.expected_id, self.answer)


class ProxyingError(Error):
    """The temporary route to the challenge responder could not be set up."""


# Collaborator errors
class AuthorityError(Error):
    """The ACME exchange with the certificate authority failed."""


class StorageError(Error):
    """A certificate, chain or key file could not be read or written."""


class FingerprintError(Error):
    """The fingerprint of a certificate could not be calculated."""


class ResponderTimeout(Error):
    """The challenge responder did not finish before the deadline."""

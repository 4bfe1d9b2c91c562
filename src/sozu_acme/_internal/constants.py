"""sozu-acme constants."""
import logging
from typing import Any
from typing import Dict

LETS_ENCRYPT_DIRECTORY = 'https://acme-v02.api.letsencrypt.org/directory'
"""Let's Encrypt production ACME directory."""

LETS_ENCRYPT_STAGING_DIRECTORY = 'https://acme-staging-v02.api.letsencrypt.org/directory'
"""Let's Encrypt staging ACME directory, used with --staging."""

CLI_DEFAULTS: Dict[str, Any] = dict(  # noqa
    config_files=[],

    verbose_count=0,
    quiet=False,
    debug=False,

    command_socket=None,
    server=LETS_ENCRYPT_DIRECTORY,
    staging=False,
    settle_delay=0.1,
    channel_timeout=None,
    validation_timeout=None,
    framing='length',
    max_message_size=20000,
)
"""Defaults for CLI flags and `.NamespaceConfig` attributes."""

USER_AGENT = 'sozu-acme'

RESPONDER_ADDRESS = ('127.0.0.1', 0)
"""Challenge responder bind address, the OS picks the port."""

DEFAULT_FRAMING = CLI_DEFAULTS['framing']

CHANNEL_BUFFER_SIZE = 10000
"""Size of a single read on the command socket."""

CHANNEL_MAX_MESSAGE_SIZE = CLI_DEFAULTS['max_message_size']
"""Largest message exchanged on the command socket."""

ACCOUNT_KEY_BITS = 2048
CERT_KEY_BITS = 2048

AUTHORIZATION_DEADLINE = 90
"""Seconds to wait for the CA to validate the challenge."""

FINALIZATION_DEADLINE = 90
"""Seconds to wait for the CA to issue the certificate."""

QUIET_LOGGING_LEVEL = logging.ERROR
"""Logging level to use in quiet mode."""

DEFAULT_LOGGING_LEVEL = logging.INFO
"""Default logging level, lowered by each -v."""

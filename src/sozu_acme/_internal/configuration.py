"""sozu-acme user-supplied configuration."""
import argparse
from typing import Any

from sozu_acme import errors
from sozu_acme._internal import constants


class NamespaceConfig:
    """Configuration wrapper around :class:`argparse.Namespace`.

    Attributes not defined here are delegated to the namespace.

    :ivar namespace: Namespace typically produced by
        :meth:`argparse.ArgumentParser.parse_args`.
    :type namespace: :class:`argparse.Namespace`

    """

    def __init__(self, namespace: argparse.Namespace) -> None:
        self.namespace: argparse.Namespace
        # Avoid recursion loop because of the delegation defined in __setattr__
        object.__setattr__(self, 'namespace', namespace)

        # Check command line parameters sanity, and error out in case of problem.
        _check_config_sanity(self)

    def __getattr__(self, name: str) -> Any:
        return getattr(self.namespace, name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self.namespace, name, value)

    @property
    def server(self) -> str:
        """ACME directory URL, the staging one when --staging was given."""
        if self.namespace.staging:
            return constants.LETS_ENCRYPT_STAGING_DIRECTORY
        return self.namespace.server

    @property
    def app_id(self) -> str:
        """Application identifier in the proxy."""
        return self.namespace.id


def _check_config_sanity(config: NamespaceConfig) -> None:
    """Validate command line options and raise an error if
    requirements are not met.

    :param config: NamespaceConfig instance holding user configuration

    """
    if not config.command_socket:
        raise errors.ConfigurationError(
            'the command socket path is required, set command_socket in the '
            'configuration file or use --command-socket')

    domain = config.namespace.domain
    if not domain or '*' in domain or '/' in domain or ':' in domain:
        raise errors.ConfigurationError(
            'invalid domain name: {0!r}'.format(domain))

    if config.namespace.settle_delay < 0:
        raise errors.ConfigurationError('--settle-delay must not be negative')

    for name in ('channel_timeout', 'validation_timeout'):
        value = getattr(config.namespace, name)
        if value is not None and value <= 0:
            raise errors.ConfigurationError(
                '--{0} must be positive'.format(name.replace('_', '-')))

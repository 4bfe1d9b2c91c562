"""sozu-acme main entry point."""
import logging
import sys
import time
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Tuple

from sozu_acme import errors
from sozu_acme._internal import authority as authority_mod
from sozu_acme._internal import channel as channel_mod
from sozu_acme._internal import cli
from sozu_acme._internal import configuration
from sozu_acme._internal import constants
from sozu_acme._internal import log
from sozu_acme._internal import orders
from sozu_acme._internal import responder as responder_mod
from sozu_acme._internal import storage

logger = logging.getLogger(__name__)


class ChallengeContext(NamedTuple):
    """Everything needed to route and answer the HTTP challenge."""
    token: str
    key_authorization: str
    url_path: str
    responder_address: Tuple[str, int]


class RunReport:
    """Outcome of a `run`.

    :ivar bool challenge_received: the CA fetched the challenge
    :ivar bool proxying_removed: the temporary route was removed
    :ivar bool certificate_saved: the certificate was written to disk
    :ivar bool certificate_installed: the proxy serves the certificate

    """
    def __init__(self) -> None:
        self.challenge_received = False
        self.proxying_removed = False
        self.certificate_saved = False
        self.certificate_installed = False

    @property
    def succeeded(self) -> bool:
        """The certificate was obtained and installed."""
        return (self.challenge_received and self.certificate_saved
                and self.certificate_installed)

    def __repr__(self) -> str:
        return ('RunReport(challenge_received={0.challenge_received}, '
                'proxying_removed={0.proxying_removed}, '
                'certificate_saved={0.certificate_saved}, '
                'certificate_installed={0.certificate_installed})'.format(self))


def _obtain_challenge(config: configuration.NamespaceConfig,
                      authority: authority_mod.Authority,
                      ) -> Tuple[authority_mod.Account, authority_mod.HttpChallenge]:
    account = authority.register_account(config.email)
    authorization = account.authorize(config.domain)
    return account, authorization.http_challenge()


def _route_and_validate(config: configuration.NamespaceConfig,
                        sequencer: orders.OrderSequencer,
                        challenge: authority_mod.HttpChallenge,
                        responder: responder_mod.ChallengeResponder,
                        context: ChallengeContext) -> bool:
    """Route the challenge to `responder` and have the CA fetch it.

    :returns: `True` if the challenge request was answered
    :rtype: bool

    :raises errors.ProxyingError: if the route cannot be added

    """
    if not sequencer.set_up_proxying(config.app_id, config.domain, context.url_path,
                                     context.responder_address):
        raise errors.ProxyingError('could not set up proxying to HTTP challenge server')

    time.sleep(config.settle_delay)
    logger.info('launching validation')
    try:
        challenge.validate()
    except errors.AuthorityError as error:
        logger.error(str(error))
        responder.stop()

    try:
        return responder.wait(config.validation_timeout)
    except errors.ResponderTimeout as error:
        logger.error(str(error))
        return False


def _save_certificate(config: configuration.NamespaceConfig,
                      account: authority_mod.Account) -> bool:
    try:
        signed = account.sign_certificate(config.domain)
        storage.save_certificate(signed, config.cert_path, config.chain_path, config.key_path)
    except (errors.AuthorityError, errors.StorageError) as error:
        logger.error(str(error))
        return False
    logger.info('new certificate saved to %s', config.cert_path)
    return True


def run(config: configuration.NamespaceConfig,
        authority: Optional[authority_mod.Authority] = None,
        channel: Optional[channel_mod.Channel] = None) -> RunReport:
    """Obtain a certificate for ``config.domain`` and install it in the proxy.

    The CA's validation request reaches a local responder through a
    temporary route added to the proxy. That route is removed once the
    challenge was fetched, then the certificate is saved and installed.

    :param config: Configuration object
    :param authority: ACME authority, built from ``config.server`` if
        not given
    :param channel: command channel, connected to
        ``config.command_socket`` if not given

    :returns: what was achieved
    :rtype: RunReport

    :raises errors.Error: if the run cannot go on

    """
    if authority is None:
        authority = authority_mod.Authority(config.server, constants.USER_AGENT)
    if channel is None:
        channel = channel_mod.connect(
            config.command_socket, framing=config.framing,
            max_message_size=config.max_message_size, timeout=config.channel_timeout)

    report = RunReport()
    with channel:
        sequencer = orders.OrderSequencer(channel)
        account, challenge = _obtain_challenge(config, authority)

        responder = responder_mod.ChallengeResponder(challenge.path, challenge.key_authorization)
        context = ChallengeContext(
            token=challenge.token,
            key_authorization=challenge.key_authorization,
            url_path=challenge.path,
            responder_address=responder.address,
        )
        responder.start()
        try:
            report.challenge_received = _route_and_validate(
                config, sequencer, challenge, responder, context)
        finally:
            # no-op once serving ended
            responder.stop()

        if not report.challenge_received:
            logger.error('did not receive challenge request')
            report.proxying_removed = sequencer.remove_proxying(
                config.app_id, config.domain, context.url_path, context.responder_address)
            return report

        report.proxying_removed = sequencer.remove_proxying(
            config.app_id, config.domain, context.url_path, context.responder_address)
        if not report.proxying_removed:
            logger.error('could not deactivate proxying')

        report.certificate_saved = _save_certificate(config, account)
        if not report.certificate_saved:
            return report

        report.certificate_installed = sequencer.install_certificate(
            config.app_id, config.domain, config.cert_path, config.chain_path, config.key_path)
        if report.certificate_installed:
            logger.info('new certificate set up')
        else:
            logger.error('could not add new certificate')
    return report


def main(cli_args: Optional[List[str]] = None) -> int:
    """Run sozu-acme.

    :param cli_args: command line to sozu-acme, defaults to ``sys.argv[1:]``
    :type cli_args: `list` of `str`

    :returns: process exit status
    :rtype: int

    """
    log.pre_arg_parse_setup()

    if cli_args is None:
        cli_args = sys.argv[1:]

    config = cli.prepare_and_parse_args(cli_args)
    log.post_arg_parse_setup(config)

    logger.info('starting up')
    report = run(config)
    logger.debug('%r', report)
    return 0 if report.succeeded else 1

"""ACME exchange with the certificate authority.

Thin layer over `acme.client.ClientV2` exposing the steps of a single
issuance: register an account, open an order for a domain, obtain its
HTTP-01 challenge, trigger validation, then finalize the order.

"""
import contextlib
import datetime
import logging
from typing import Dict
from typing import Iterator
from typing import NamedTuple

from cryptography.hazmat.primitives.asymmetric import rsa
import josepy as jose
import requests

from acme import challenges
from acme import client
from acme import crypto_util as acme_crypto_util
from acme import errors as acme_errors
from acme import messages
from sozu_acme import errors
from sozu_acme._internal import constants
from sozu_acme._internal import crypto_util

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def _wrap_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (acme_errors.Error, requests.exceptions.RequestException) as error:
        raise errors.AuthorityError('could not {0}: {1}'.format(action, error))


def _deadline(seconds: int) -> datetime.datetime:
    return datetime.datetime.now() + datetime.timedelta(seconds=seconds)


class SignedCertificate(NamedTuple):
    """Issued certificate, its chain and the private key, all PEM."""
    cert_pem: str
    chain_pem: str
    key_pem: str


class HttpChallenge:
    """HTTP-01 challenge of an `Authorization`.

    :ivar str token: challenge token
    :ivar str path: path the CA will fetch
    :ivar str key_authorization: body the CA expects at `path`

    """
    def __init__(self, authorization: 'Authorization', challb: messages.ChallengeBody) -> None:
        self.authorization = authorization
        self.challb = challb
        acme = authorization.account.acme
        self.response, self.key_authorization = challb.response_and_validation(acme.net.key)
        self.token: str = challb.chall.encode('token')
        self.path: str = challb.chall.path

    def validate(self) -> None:
        """Ask the CA to fetch the challenge and wait for its verdict.

        :raises errors.AuthorityError: if the CA could not validate it

        """
        acme = self.authorization.account.acme
        with _wrap_errors('validate HTTP challenge'):
            acme.answer_challenge(self.challb, self.response)
            self.authorization.orderr = acme.poll_authorizations(
                self.authorization.orderr, _deadline(constants.AUTHORIZATION_DEADLINE))
        logger.info('challenge validated for %s', self.authorization.domain)


class Authorization:
    """Pending order for a single domain.

    :ivar Account account:
    :ivar str domain:
    :ivar bytes key_pem: private key of the future certificate
    :ivar messages.OrderResource orderr:

    """
    def __init__(self, account: 'Account', domain: str, key_pem: bytes,
                 orderr: messages.OrderResource) -> None:
        self.account = account
        self.domain = domain
        self.key_pem = key_pem
        self.orderr = orderr

    def http_challenge(self) -> HttpChallenge:
        """Find the HTTP-01 challenge offered by the CA.

        :raises errors.AuthorityError: if none was offered

        """
        for authzr in self.orderr.authorizations:
            for challb in authzr.body.challenges:
                if isinstance(challb.chall, challenges.HTTP01):
                    return HttpChallenge(self, challb)
        raise errors.AuthorityError(
            'HTTP challenge not found for {0}'.format(self.domain))


class Account:
    """Registered ACME account.

    :ivar client.ClientV2 acme:
    :ivar messages.RegistrationResource regr:

    """
    def __init__(self, acme: client.ClientV2, regr: messages.RegistrationResource) -> None:
        self.acme = acme
        self.regr = regr
        self._authorizations: Dict[str, Authorization] = {}

    def authorize(self, domain: str) -> Authorization:
        """Open an order for `domain` with a freshly generated key.

        :raises errors.AuthorityError: if the CA refused the order

        """
        key_pem = crypto_util.make_key_pem(constants.CERT_KEY_BITS)
        csr_pem = acme_crypto_util.make_csr(key_pem, [domain])
        with _wrap_errors('generate authorization'):
            orderr = self.acme.new_order(csr_pem)
        authorization = Authorization(self, domain, key_pem, orderr)
        self._authorizations[domain] = authorization
        return authorization

    def sign_certificate(self, domain: str) -> SignedCertificate:
        """Finalize the validated order of `domain`.

        :raises errors.AuthorityError: if no order was opened for
            `domain` or the CA did not issue the certificate

        """
        try:
            authorization = self._authorizations[domain]
        except KeyError:
            raise errors.AuthorityError('no authorization for {0}'.format(domain))
        with _wrap_errors('sign certificate'):
            orderr = self.acme.finalize_order(
                authorization.orderr, _deadline(constants.FINALIZATION_DEADLINE))
        certs = crypto_util.split_certificate_chain(orderr.fullchain_pem)
        if not certs:
            raise errors.AuthorityError('the CA returned no certificate')
        return SignedCertificate(
            cert_pem=certs[0],
            chain_pem=''.join(certs[1:]),
            key_pem=authorization.key_pem.decode(),
        )


class Authority:
    """ACME certificate authority.

    :param str directory_url: ACME directory
    :param str user_agent:

    """
    def __init__(self, directory_url: str, user_agent: str = constants.USER_AGENT) -> None:
        self.directory_url = directory_url
        self.user_agent = user_agent

    def register_account(self, email: str) -> Account:
        """Register a new account, agreeing to the terms of service.

        :raises errors.AuthorityError: if registration failed

        """
        key = jose.JWKRSA(key=rsa.generate_private_key(
            public_exponent=65537, key_size=constants.ACCOUNT_KEY_BITS))
        net = client.ClientNetwork(key, user_agent=self.user_agent)
        with _wrap_errors('generate account'):
            directory = client.ClientV2.get_directory(self.directory_url, net)
            acme = client.ClientV2(directory, net=net)
            regr = acme.new_account(messages.NewRegistration.from_data(
                email=email, terms_of_service_agreed=True))
        logger.info('account registered with %s', self.directory_url)
        return Account(acme, regr)

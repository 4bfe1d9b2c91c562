"""sozu-acme crypto utilities.

Fingerprints computed here identify a certificate in the proxy, so they
must agree with the proxy's own calculation: SHA-256 over the DER
encoding, as lowercase hex.

"""
import re
from typing import List

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from sozu_acme import errors

CERT_PEM_REGEX = re.compile(
    b'-----BEGIN CERTIFICATE-----\r?\n'
    b'.+?\r?\n'
    b'-----END CERTIFICATE-----(?:\r?\n)?',
    re.DOTALL  # base64 body spans lines
)


def calculate_fingerprint(cert_pem: str) -> str:
    """Calculate the fingerprint of a PEM certificate.

    :param str cert_pem: certificate in PEM format

    :returns: hex encoded SHA-256 digest of the DER certificate
    :rtype: str

    :raises errors.FingerprintError: if the certificate cannot be parsed

    """
    try:
        cert = x509.load_pem_x509_certificate(cert_pem.encode())
    except ValueError as error:
        raise errors.FingerprintError(
            'could not calculate fingerprint for certificate: {0}'.format(error))
    return cert.fingerprint(hashes.SHA256()).hex()


def split_certificate_chain(chain_pem: str) -> List[str]:
    """Split a PEM chain into its certificates, keeping their order.

    Text between certificates is dropped.

    :param str chain_pem: concatenated PEM certificates

    :returns: one PEM string per certificate
    :rtype: list

    """
    return [cert.decode() for cert in CERT_PEM_REGEX.findall(chain_pem.encode())]


def make_key_pem(bits: int = 2048) -> bytes:
    """Generate a new RSA private key.

    :param int bits: key size

    :returns: PKCS#8 private key in PEM format
    :rtype: bytes

    """
    key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )

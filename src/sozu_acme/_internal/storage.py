"""Certificate, chain and key files."""
import logging
import os

from sozu_acme import errors

logger = logging.getLogger(__name__)


def load_file(path: str) -> str:
    """Read a whole PEM file.

    :raises errors.StorageError: if the file cannot be read

    """
    try:
        with open(path, encoding='utf-8') as pem_file:
            return pem_file.read()
    except (IOError, UnicodeDecodeError) as error:
        raise errors.StorageError('could not load {0}: {1}'.format(path, error))


def _write(path: str, content: str, chmod: int) -> None:
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, chmod)
        with os.fdopen(fd, 'w', encoding='utf-8') as pem_file:
            pem_file.write(content)
        os.chmod(path, chmod)
    except IOError as error:
        raise errors.StorageError('could not write {0}: {1}'.format(path, error))
    logger.debug('Wrote %s', path)


def write_certificate(path: str, cert_pem: str) -> None:
    """Save the signed certificate."""
    _write(path, cert_pem, 0o644)


def write_chain(path: str, chain_pem: str) -> None:
    """Save the intermediate certificate chain."""
    _write(path, chain_pem, 0o644)


def write_key(path: str, key_pem: str) -> None:
    """Save the private key, readable by its owner only."""
    _write(path, key_pem, 0o600)


def save_certificate(signed, cert_path: str, chain_path: str, key_path: str) -> None:
    """Save a `.SignedCertificate` to its three files.

    :raises errors.StorageError: if any of the files cannot be written

    """
    write_certificate(cert_path, signed.cert_pem)
    write_chain(chain_path, signed.chain_pem)
    write_key(key_path, signed.key_pem)

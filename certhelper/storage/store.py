# certhelper/storage/store.py
"""PEM / PKCS#12 encoding and the load side of the trust store.

Writes are plain open-write-close: an interrupted write can leave a
truncated file, which the loaders report as a decode failure.
"""
import logging
import os
from typing import Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from certhelper.crypto.keys import KeyMaterial
from certhelper.errors import EncodingFailure, IOFailure

logger = logging.getLogger(__name__)

CERT_FILE_MODE = 0o644
KEY_FILE_MODE = 0o600
PFX_FILE_MODE = 0o644


def write_file(path, data, mode=KEY_FILE_MODE):
    # the mode applies at creation, chmod covers files that already existed
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(path, mode)
    except OSError as e:
        raise IOFailure(f"failed to write {path}") from e
    logger.debug("wrote %s (%d bytes)", path, len(data))


def write_certificate_pem(path: str, cert: Union[x509.Certificate, bytes]) -> None:
    """Write a CERTIFICATE block. Accepts a parsed certificate or its DER bytes."""
    if isinstance(cert, (bytes, bytearray)):
        try:
            cert = x509.load_der_x509_certificate(bytes(cert))
        except ValueError as e:
            raise EncodingFailure(f"invalid certificate DER for {path}") from e
    write_file(path, cert.public_bytes(serialization.Encoding.PEM), mode=CERT_FILE_MODE)


def private_key_pem(key) -> bytes:
    """RSA PRIVATE KEY / EC PRIVATE KEY for the supported variants, PRIVATE KEY otherwise."""
    if not isinstance(key, KeyMaterial):
        try:
            key = KeyMaterial.from_private_key(key)
        except TypeError:
            try:
                return key.private_bytes(
                    encoding=serialization.Encoding.PEM,
                    format=serialization.PrivateFormat.PKCS8,
                    encryption_algorithm=serialization.NoEncryption(),
                )
            except (ValueError, TypeError, AttributeError) as e:
                raise EncodingFailure("failed to marshal private key") from e
    return key.private_bytes()


def write_private_key_pem(path: str, key) -> None:
    write_file(path, private_key_pem(key), mode=KEY_FILE_MODE)


def _pfx_encryption(password: str):
    if not password:
        # Empty password: the bundle is written without protection.
        return serialization.NoEncryption()
    # 3DES + SHA1 MAC, readable by older Windows and Java keystores
    return (
        serialization.PrivateFormat.PKCS12.encryption_builder()
        .kdf_rounds(2048)
        .key_cert_algorithm(pkcs12.PBES.PBESv1SHA1And3KeyTripleDESCBC)
        .hmac_hash(hashes.SHA1())
        .build(password.encode())
    )


def write_pfx(path: str, key, cert: x509.Certificate, password: str = "") -> None:
    """Write a PKCS#12 bundle holding the certificate and its key (no chain)."""
    private_key = key.private_key if isinstance(key, KeyMaterial) else key
    attrs = cert.subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)
    friendly_name = attrs[0].value.encode() if attrs else None
    try:
        data = pkcs12.serialize_key_and_certificates(
            name=friendly_name,
            key=private_key,
            cert=cert,
            cas=None,
            encryption_algorithm=_pfx_encryption(password),
        )
    except (ValueError, TypeError) as e:
        raise EncodingFailure(f"failed to encode PKCS#12 bundle {path}") from e
    write_file(path, data, mode=PFX_FILE_MODE)


def _read(path: str) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        raise IOFailure(f"cannot read {path}") from e


def load_ca_certificate(path: str) -> x509.Certificate:
    data = _read(path)
    try:
        return x509.load_pem_x509_certificate(data)
    except ValueError as e:
        raise EncodingFailure(f"failed to decode certificate {path}") from e


def load_ca_private_key(path: str) -> KeyMaterial:
    data = _read(path)
    try:
        key = serialization.load_pem_private_key(data, password=None)
        return KeyMaterial.from_private_key(key)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise EncodingFailure(f"failed to decode private key {path}") from e


__all__ = [
    "write_file",
    "write_certificate_pem",
    "write_private_key_pem",
    "write_pfx",
    "private_key_pem",
    "load_ca_certificate",
    "load_ca_private_key",
]

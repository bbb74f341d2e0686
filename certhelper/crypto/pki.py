# certhelper/crypto/pki.py
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple

from cryptography import x509
from cryptography.x509.oid import NameOID

from certhelper.crypto.sign import verify_signature


def get_common_name(name: x509.Name) -> str:
    attrs = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    return attrs[0].value if attrs else ""


def basic_constraints(cert: x509.Certificate) -> Optional[x509.BasicConstraints]:
    try:
        return cert.extensions.get_extension_for_class(x509.BasicConstraints).value
    except x509.ExtensionNotFound:
        return None


def is_ca(cert: x509.Certificate) -> bool:
    bc = basic_constraints(cert)
    return bc is not None and bc.ca


def verify_cert_against_ca(cert: x509.Certificate, ca_cert: x509.Certificate, now: Optional[datetime] = None) -> Tuple[bool, str]:
    """
    Verify one link of a chain:
    - issuer name equals the CA subject
    - CA certificate is marked as a CA
    - signature verifies under the CA public key
    - cert is inside its validity window
    Returns (ok, reason) where reason is 'OK' or 'ISSUER_MISMATCH', 'NOT_A_CA', 'BAD_SIGNATURE', 'EXPIRED_CERT'
    """
    if cert.issuer != ca_cert.subject:
        return False, f"ISSUER_MISMATCH: expected={ca_cert.subject.rfc4514_string()} got={cert.issuer.rfc4514_string()}"

    if not is_ca(ca_cert):
        return False, f"NOT_A_CA: {ca_cert.subject.rfc4514_string()}"

    if not verify_signature(ca_cert.public_key(), cert):
        return False, "BAD_SIGNATURE"

    now = now or datetime.now(timezone.utc)
    if cert.not_valid_before_utc > now or cert.not_valid_after_utc < now:
        return False, "EXPIRED_CERT"

    return True, "OK"


def verify_chain(cert: x509.Certificate, intermediates: Sequence[x509.Certificate], root: x509.Certificate, now: Optional[datetime] = None) -> Tuple[bool, str]:
    """Walk cert -> intermediates... -> root, honouring path length constraints."""
    chain = [cert, *intermediates, root]
    for depth, (child, parent) in enumerate(zip(chain, chain[1:])):
        ok, reason = verify_cert_against_ca(child, parent, now)
        if not ok:
            return False, reason
        # depth == number of CA certificates between parent and the leaf
        bc = basic_constraints(parent)
        if bc.path_length is not None and depth > bc.path_length:
            return False, f"PATH_LEN_EXCEEDED: {parent.subject.rfc4514_string()}"

    ok, reason = verify_cert_against_ca(root, root, now)
    if not ok:
        return False, f"UNTRUSTED_ROOT: {reason}"
    return True, "OK"


__all__ = ["get_common_name", "basic_constraints", "is_ca", "verify_cert_against_ca", "verify_chain"]

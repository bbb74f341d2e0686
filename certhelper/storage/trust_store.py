"""Discovery of the CAs and certificates present in a trust store.

CA listing is a plain directory walk: a directory is reported as a CA even
if its key or certificate is missing or corrupt; issuing from such a CA
fails later when it is loaded.
"""
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import List, NamedTuple, Optional

from cryptography import x509

from certhelper.crypto.pki import get_common_name, is_ca
from certhelper.storage.layout import (
    DEFAULT_ROOT_NAME,
    INTERMEDIATE_CA_FOLDER,
    ROOT_CA_FOLDER,
    resolve_root_paths,
    sanitize_name,
)
from certhelper.errors import IOFailure

logger = logging.getLogger(__name__)

EXPIRING_SOON_DAYS = 30


class IntermediateCAInfo(NamedTuple):
    root_name: str
    name: str


def _subdirectories(path: str) -> List[str]:
    try:
        with os.scandir(path) as it:
            return [entry.name for entry in it if entry.is_dir()]
    except FileNotFoundError:
        return []
    except OSError as e:
        raise IOFailure(f"cannot list {path}") from e


def list_root_cas(base: str) -> List[str]:
    roots = _subdirectories(os.path.join(base, ROOT_CA_FOLDER))
    cert_path, key_path = resolve_root_paths(base, DEFAULT_ROOT_NAME)
    if os.path.exists(cert_path) and os.path.exists(key_path):
        roots.append(DEFAULT_ROOT_NAME)
    return sorted(roots)


def list_intermediate_cas(base: str, root_name: Optional[str]) -> List[str]:
    root_name = sanitize_name(root_name, DEFAULT_ROOT_NAME)
    return sorted(_subdirectories(os.path.join(base, INTERMEDIATE_CA_FOLDER, root_name)))


def list_all_intermediate_cas(base: str) -> List[IntermediateCAInfo]:
    found = []
    for root_name in _subdirectories(os.path.join(base, INTERMEDIATE_CA_FOLDER)):
        for name in _subdirectories(os.path.join(base, INTERMEDIATE_CA_FOLDER, root_name)):
            found.append(IntermediateCAInfo(root_name, name))
    return sorted(found)


class CertificateEntry(NamedTuple):
    name: str
    type: str
    issuer: str
    not_before: datetime
    not_after: datetime
    days_left: int
    status: str
    path: str


class CertificateSummary(NamedTuple):
    total: int
    valid: int
    expiring: int
    expired: int
    next_expiry: Optional[CertificateEntry]


def certificate_status(not_after: datetime, now: datetime):
    """Return (status, days_left) for a certificate expiring at not_after."""
    days_left = max(0, int((not_after - now).total_seconds() // 86400))
    if not_after < now:
        return "Expired", days_left
    if not_after < now + timedelta(days=EXPIRING_SOON_DAYS):
        return "Expiring Soon", days_left
    return "Valid", days_left


def _certificate_type(cert: x509.Certificate, rel_path: str) -> str:
    if is_ca(cert):
        if rel_path.replace(os.sep, "/").startswith("ca/intermediate/"):
            return "Intermediate CA"
        return "Root CA"
    return "Certificate"


def collect_certificates(base: str, now: Optional[datetime] = None) -> List[CertificateEntry]:
    """Parse every *.pem certificate under base, soonest expiry first.

    Files that are not certificates (or do not decode) are skipped.
    """
    now = now or datetime.now(timezone.utc)
    entries = []
    for dirpath, _dirnames, filenames in os.walk(base):
        for filename in filenames:
            if not filename.lower().endswith(".pem"):
                continue
            path = os.path.join(dirpath, filename)
            try:
                with open(path, "rb") as f:
                    cert = x509.load_pem_x509_certificate(f.read())
            except (OSError, ValueError):
                logger.debug("skipping %s: not a readable certificate", path)
                continue
            status, days_left = certificate_status(cert.not_valid_after_utc, now)
            entries.append(CertificateEntry(
                name=get_common_name(cert.subject) or filename,
                type=_certificate_type(cert, os.path.relpath(path, base)),
                issuer=get_common_name(cert.issuer) or cert.issuer.rfc4514_string(),
                not_before=cert.not_valid_before_utc,
                not_after=cert.not_valid_after_utc,
                days_left=days_left,
                status=status,
                path=path,
            ))
    entries.sort(key=lambda e: e.not_after)
    return entries


def summarize_certificates(entries: List[CertificateEntry]) -> CertificateSummary:
    expired = sum(1 for e in entries if e.status == "Expired")
    expiring = sum(1 for e in entries if e.status == "Expiring Soon")
    next_expiry = next((e for e in entries if e.status != "Expired"), None)
    return CertificateSummary(
        total=len(entries),
        valid=len(entries) - expired - expiring,
        expiring=expiring,
        expired=expired,
        next_expiry=next_expiry,
    )


__all__ = [
    "IntermediateCAInfo",
    "CertificateEntry",
    "CertificateSummary",
    "list_root_cas",
    "list_intermediate_cas",
    "list_all_intermediate_cas",
    "certificate_status",
    "collect_certificates",
    "summarize_certificates",
]

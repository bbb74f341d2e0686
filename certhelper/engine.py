# certhelper/engine.py
"""
Root CA, intermediate CA and leaf certificate issuance.

Each issuance is one forward pass:
    validate -> resolve issuer -> generate key -> build template -> sign -> persist
There is no retry and no rollback; a failure leaves whatever earlier steps
already wrote. Issuer material is reloaded from disk on every call.
"""
import logging
import os
from contextlib import nullcontext
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from certhelper.common.models import (
    DEFAULT_CA_KEY_USAGE,
    CertificateOptions,
    CertificateRecord,
    IssuerRef,
    KeyUsage,
    default_certificate_options,
    default_ext_key_usage,
)
from certhelper.common.subject import Subject
from certhelper.crypto.keys import (
    KeyMaterial,
    generate_key_pair,
    generate_private_key_with_bits,
    generate_serial_number,
)
from certhelper.crypto.san import normalize_sans
from certhelper.crypto.sign import sign_certificate
from certhelper.errors import EncodingFailure, IOFailure, IssuerUnavailable, ValidationError
from certhelper.storage.layout import (
    DEFAULT_INTERMEDIATE_NAME,
    DEFAULT_ROOT_NAME,
    ROLE_INTERMEDIATE,
    ROLE_LEAF,
    ROLE_ROOT,
    ensure_parent_dir,
    resolve_cert_dir,
    resolve_intermediate_paths,
    resolve_leaf_paths,
    resolve_root_paths,
    sanitize_name,
)
from certhelper.storage.locks import NameLocks
from certhelper.storage.store import (
    load_ca_certificate,
    load_ca_private_key,
    write_certificate_pem,
    write_pfx,
    write_private_key_pem,
)

logger = logging.getLogger(__name__)

# NotBefore is backdated to tolerate clock skew between issuer and relying party
CLOCK_SKEW = timedelta(hours=24)


def _hold(locks: Optional[NameLocks], role: str, *names: str):
    if locks is None:
        return nullcontext()
    return locks.hold(role, *names)


def _validate(subject: Subject, validity_days: int, role: str, name: str) -> None:
    if not subject.common_name:
        raise ValidationError("common name is required", role=role, name=name)
    if validity_days <= 0:
        raise ValidationError(f"validity must be a positive number of days, got {validity_days}", role=role, name=name)
    try:
        subject.to_x509_name()
    except ValidationError as e:
        e.role, e.name = role, name
        raise


def _validity_window(validity_days: int) -> Tuple[datetime, datetime]:
    not_before = datetime.now(timezone.utc).replace(microsecond=0) - CLOCK_SKEW
    return not_before, not_before + timedelta(days=validity_days)


def _make_parent_dir(path: str, role: str, name: str) -> None:
    try:
        ensure_parent_dir(path)
    except OSError as e:
        raise IOFailure(f"failed to create directory for {path}", role=role, name=name) from e


def _load_issuer(cert_path: str, key_path: str, role: str, name: str) -> Tuple[x509.Certificate, KeyMaterial]:
    # key first: a CA with a certificate but no key must fail here, never be regenerated
    try:
        ca_key = load_ca_private_key(key_path)
    except (IOFailure, EncodingFailure) as e:
        raise IssuerUnavailable(f"failed to load {role} CA private key", role=role, name=name) from e
    try:
        ca_cert = load_ca_certificate(cert_path)
    except (IOFailure, EncodingFailure) as e:
        raise IssuerUnavailable(f"failed to load {role} CA certificate", role=role, name=name) from e
    return ca_cert, ca_key


def _authority_key_identifier(issuer_cert: x509.Certificate) -> x509.AuthorityKeyIdentifier:
    try:
        ski = issuer_cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value
    except x509.ExtensionNotFound:
        return x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_cert.public_key())
    return x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(ski)


def _base_builder(subject: Subject, issuer_name: x509.Name, key: KeyMaterial, validity_days: int) -> x509.CertificateBuilder:
    not_before, not_after = _validity_window(validity_days)
    return (
        x509.CertificateBuilder()
        .subject_name(subject.to_x509_name())
        .issuer_name(issuer_name)
        .public_key(key.public_key())
        .serial_number(generate_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
    )


def _ca_builder(subject: Subject, issuer_name: x509.Name, key: KeyMaterial, validity_days: int,
                path_length: Optional[int], key_usage: KeyUsage) -> x509.CertificateBuilder:
    return (
        _base_builder(subject, issuer_name, key, validity_days)
        .add_extension(x509.BasicConstraints(ca=True, path_length=path_length), critical=True)
        .add_extension(key_usage.to_extension(), critical=True)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
    )


def _record(cert: x509.Certificate, name: str, role: str, issuer: Optional[IssuerRef],
            cert_path: str, key_path: str = "", pfx_path: str = "") -> CertificateRecord:
    return CertificateRecord(
        name=name,
        role=role,
        issuer=issuer,
        serial_number=cert.serial_number,
        not_before=cert.not_valid_before_utc,
        not_after=cert.not_valid_after_utc,
        der=cert.public_bytes(serialization.Encoding.DER),
        cert_path=cert_path,
        key_path=key_path,
        pfx_path=pfx_path,
    )


def issue_root(base: str, name: Optional[str], subject: Subject, validity_days: int,
               key_bits: int = 0, key_usage: KeyUsage = KeyUsage(0),
               locks: Optional[NameLocks] = None) -> CertificateRecord:
    """Create a self-signed root CA with an unconstrained path length."""
    root_name = sanitize_name(name, DEFAULT_ROOT_NAME)
    _validate(subject, validity_days, ROLE_ROOT, root_name)

    with _hold(locks, ROLE_ROOT, root_name):
        cert_path, key_path = resolve_root_paths(base, root_name)
        _make_parent_dir(cert_path, ROLE_ROOT, root_name)

        key = generate_private_key_with_bits(key_bits)
        key_usage = key_usage or DEFAULT_CA_KEY_USAGE

        builder = _ca_builder(subject, subject.to_x509_name(), key, validity_days, None, key_usage)
        cert = sign_certificate(builder, key)

        # certificate before key: an interrupted run leaves a cert without key,
        # which the loaders reject
        write_certificate_pem(cert_path, cert)
        write_private_key_pem(key_path, key)

    logger.info("Issued root CA %s (serial %x): %s", root_name, cert.serial_number, cert_path)
    return _record(cert, root_name, ROLE_ROOT, None, cert_path, key_path)


def issue_intermediate(base: str, root_name: Optional[str], name: Optional[str], subject: Subject,
                       validity_days: int, key_bits: int = 0, key_usage: KeyUsage = KeyUsage(0),
                       locks: Optional[NameLocks] = None) -> CertificateRecord:
    """Create an intermediate CA under a root; it may sign leaves but no further CAs."""
    root_name = sanitize_name(root_name, DEFAULT_ROOT_NAME)
    intermediate_name = sanitize_name(name, DEFAULT_INTERMEDIATE_NAME)
    _validate(subject, validity_days, ROLE_INTERMEDIATE, intermediate_name)

    root_cert_path, root_key_path = resolve_root_paths(base, root_name)
    root_cert, root_key = _load_issuer(root_cert_path, root_key_path, ROLE_ROOT, root_name)

    with _hold(locks, ROLE_INTERMEDIATE, root_name, intermediate_name):
        cert_path, key_path = resolve_intermediate_paths(base, root_name, intermediate_name)
        _make_parent_dir(cert_path, ROLE_INTERMEDIATE, intermediate_name)

        key = generate_private_key_with_bits(key_bits)
        key_usage = key_usage or DEFAULT_CA_KEY_USAGE

        builder = (
            _ca_builder(subject, root_cert.subject, key, validity_days, 0, key_usage)
            .add_extension(_authority_key_identifier(root_cert), critical=False)
        )
        cert = sign_certificate(builder, root_key)

        write_certificate_pem(cert_path, cert)
        write_private_key_pem(key_path, key)

    logger.info("Issued intermediate CA %s under root %s (serial %x): %s",
                intermediate_name, root_name, cert.serial_number, cert_path)
    issuer = IssuerRef(role=ROLE_ROOT, root_name=root_name, name=root_name)
    return _record(cert, intermediate_name, ROLE_INTERMEDIATE, issuer, cert_path, key_path)


def _resolve_issuer(base: str, issuer_type: str, root_name: Optional[str], issuer_name: Optional[str]) -> Tuple[IssuerRef, str, str, str]:
    """Return (issuer ref, CA cert path, CA key path, leaf directory)."""
    issuer_type = (issuer_type or "").strip().lower() or ROLE_ROOT
    if issuer_type == ROLE_INTERMEDIATE:
        if not (issuer_name or "").strip():
            raise ValidationError("intermediate CA name is required", role=ROLE_INTERMEDIATE)
        root_name = sanitize_name(root_name, DEFAULT_ROOT_NAME)
        name = sanitize_name(issuer_name, DEFAULT_INTERMEDIATE_NAME)
        cert_path, key_path = resolve_intermediate_paths(base, root_name, name)
        cert_dir = resolve_cert_dir(base, ROLE_INTERMEDIATE, root_name, name)
        return IssuerRef(role=ROLE_INTERMEDIATE, root_name=root_name, name=name), cert_path, key_path, cert_dir
    # anything other than "intermediate" signs with a root
    name = sanitize_name(issuer_name, DEFAULT_ROOT_NAME)
    cert_path, key_path = resolve_root_paths(base, name)
    cert_dir = resolve_cert_dir(base, ROLE_ROOT, name)
    return IssuerRef(role=ROLE_ROOT, root_name=name, name=name), cert_path, key_path, cert_dir


def issue_certificate(base: str, issuer_type: str, root_name: Optional[str], issuer_name: Optional[str],
                      subject: Subject, sans: Iterable[str], validity_days: int, pfx_password: str = "",
                      options: Optional[CertificateOptions] = None,
                      locks: Optional[NameLocks] = None) -> CertificateRecord:
    """Issue a leaf certificate signed by a root or intermediate CA.

    Returns a record whose key_path and pfx_path are empty when
    options.export_private_key is False; in that mode no key material is
    written at all.
    """
    options = options or default_certificate_options()
    _validate(subject, validity_days, ROLE_LEAF, subject.common_name)

    issuer, ca_cert_path, ca_key_path, cert_dir = _resolve_issuer(base, issuer_type, root_name, issuer_name)
    ca_cert, ca_key = _load_issuer(ca_cert_path, ca_key_path, issuer.role, issuer.name)

    key = generate_key_pair(options.key_type, options.key_bits)

    alt_names = normalize_sans([subject.common_name, *(sans or ())])

    builder = (
        _base_builder(subject, ca_cert.subject, key, validity_days)
        .add_extension(x509.ExtendedKeyUsage(options.ext_key_usage or default_ext_key_usage()), critical=False)
        .add_extension(alt_names.to_extension(), critical=False)
        .add_extension(_authority_key_identifier(ca_cert), critical=False)
    )
    if options.key_usage:
        builder = builder.add_extension(options.key_usage.to_extension(), critical=True)
    cert = sign_certificate(builder, ca_key)

    cert_path, key_path, pfx_path = resolve_leaf_paths(cert_dir, subject.common_name)
    with _hold(locks, ROLE_LEAF, issuer.role, issuer.root_name, issuer.name, os.path.basename(cert_path)):
        _make_parent_dir(cert_path, ROLE_LEAF, subject.common_name)
        write_certificate_pem(cert_path, cert)
        if options.export_private_key:
            write_private_key_pem(key_path, key)
            write_pfx(pfx_path, key, cert, pfx_password)
        else:
            key_path = pfx_path = ""

    logger.info("Issued certificate %s by %s CA %s (serial %x): %s",
                subject.common_name, issuer.role, issuer.name, cert.serial_number, cert_path)
    return _record(cert, subject.common_name, ROLE_LEAF, issuer, cert_path, key_path, pfx_path)


__all__ = ["CLOCK_SKEW", "issue_root", "issue_intermediate", "issue_certificate"]

"""
Issuance options and results.

CertificateOptions carries the per-leaf knobs (key type/size, usages, key
export); CertificateRecord is what every issuance hands back.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntFlag
from typing import Iterable, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict
from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID

from certhelper.crypto.keys import DEFAULT_KEY_BITS, KeyType
from certhelper.errors import ValidationError

logger = logging.getLogger(__name__)

Role = Literal["root", "intermediate", "leaf"]


class KeyUsage(IntFlag):
	DIGITAL_SIGNATURE = 1
	CONTENT_COMMITMENT = 2
	KEY_ENCIPHERMENT = 4
	DATA_ENCIPHERMENT = 8
	KEY_AGREEMENT = 16
	CERT_SIGN = 32
	CRL_SIGN = 64
	ENCIPHER_ONLY = 128
	DECIPHER_ONLY = 256

	def to_extension(self) -> x509.KeyUsage:
		try:
			return x509.KeyUsage(
				digital_signature=bool(self & KeyUsage.DIGITAL_SIGNATURE),
				content_commitment=bool(self & KeyUsage.CONTENT_COMMITMENT),
				key_encipherment=bool(self & KeyUsage.KEY_ENCIPHERMENT),
				data_encipherment=bool(self & KeyUsage.DATA_ENCIPHERMENT),
				key_agreement=bool(self & KeyUsage.KEY_AGREEMENT),
				key_cert_sign=bool(self & KeyUsage.CERT_SIGN),
				crl_sign=bool(self & KeyUsage.CRL_SIGN),
				encipher_only=bool(self & KeyUsage.ENCIPHER_ONLY),
				decipher_only=bool(self & KeyUsage.DECIPHER_ONLY),
			)
		except ValueError as e:
			raise ValidationError(f"invalid key usage {self!r}") from e


DEFAULT_CA_KEY_USAGE = KeyUsage.DIGITAL_SIGNATURE | KeyUsage.CERT_SIGN | KeyUsage.CRL_SIGN

KEY_USAGE_NAMES = {
	"digital_signature": KeyUsage.DIGITAL_SIGNATURE,
	"content_commitment": KeyUsage.CONTENT_COMMITMENT,
	"key_encipherment": KeyUsage.KEY_ENCIPHERMENT,
	"data_encipherment": KeyUsage.DATA_ENCIPHERMENT,
	"key_agreement": KeyUsage.KEY_AGREEMENT,
	"cert_sign": KeyUsage.CERT_SIGN,
	"crl_sign": KeyUsage.CRL_SIGN,
}

EXT_KEY_USAGE_NAMES = {
	"server_auth": ExtendedKeyUsageOID.SERVER_AUTH,
	"client_auth": ExtendedKeyUsageOID.CLIENT_AUTH,
	"code_signing": ExtendedKeyUsageOID.CODE_SIGNING,
	"email_protection": ExtendedKeyUsageOID.EMAIL_PROTECTION,
	"time_stamping": ExtendedKeyUsageOID.TIME_STAMPING,
	"ocsp_signing": ExtendedKeyUsageOID.OCSP_SIGNING,
}


def default_ext_key_usage() -> List[x509.ObjectIdentifier]:
	return [ExtendedKeyUsageOID.CLIENT_AUTH, ExtendedKeyUsageOID.SERVER_AUTH]


def parse_key_usage(values: Iterable[str], fallback: KeyUsage = KeyUsage(0)) -> KeyUsage:
	"""Combine key usage names; unknown names are skipped, nothing known -> fallback."""
	usage = KeyUsage(0)
	for value in values or ():
		usage |= KEY_USAGE_NAMES.get(value.strip().lower(), KeyUsage(0))
	return usage or fallback


def parse_ext_key_usage(values: Iterable[str]) -> List[x509.ObjectIdentifier]:
	usages = []
	for value in values or ():
		cleaned = " ".join(value.split()).lower()
		oid = EXT_KEY_USAGE_NAMES.get(cleaned)
		if oid is not None:
			usages.append(oid)
		elif cleaned:
			logger.warning("Ignoring unknown extended key usage value: %s", cleaned)
	return usages


@dataclass(frozen=True)
class CertificateOptions:
	key_bits: int = DEFAULT_KEY_BITS
	key_type: str = KeyType.RSA.value
	key_usage: KeyUsage = KeyUsage(0)
	ext_key_usage: List[x509.ObjectIdentifier] = field(default_factory=list)
	export_private_key: bool = True


def default_certificate_options() -> CertificateOptions:
	return CertificateOptions()


def parse_issuer_selection(value: str) -> Tuple[str, str, str]:
	"""Split "root:<name>" or "intermediate:<root>:<name>" into (type, root, name)."""
	parts = (value or "").split(":")
	if len(parts) < 2:
		raise ValidationError(f"invalid issuer {value!r}")
	if parts[0] == "root":
		return "root", "", parts[1]
	if parts[0] == "intermediate":
		if len(parts) < 3:
			raise ValidationError(f"invalid intermediate issuer {value!r}")
		return "intermediate", parts[1], parts[2]
	raise ValidationError(f"invalid issuer type {parts[0]!r}")


class IssuerRef(BaseModel):
	model_config = ConfigDict(frozen=True)

	role: Role
	root_name: str
	name: str


class CertificateRecord(BaseModel):
	"""A signed certificate and where it was written. Never modified after issuance."""
	model_config = ConfigDict(frozen=True)

	name: str
	role: Role
	issuer: Optional[IssuerRef] = None  # None for self-signed roots
	serial_number: int
	not_before: datetime
	not_after: datetime
	der: bytes
	cert_path: str
	key_path: str = ""
	pfx_path: str = ""

	def certificate(self) -> x509.Certificate:
		return x509.load_der_x509_certificate(self.der)


__all__ = [
	"KeyUsage",
	"DEFAULT_CA_KEY_USAGE",
	"KEY_USAGE_NAMES",
	"EXT_KEY_USAGE_NAMES",
	"default_ext_key_usage",
	"parse_key_usage",
	"parse_ext_key_usage",
	"CertificateOptions",
	"default_certificate_options",
	"parse_issuer_selection",
	"IssuerRef",
	"CertificateRecord",
]

"""Subject alternative name normalization.

IP addresses become iPAddress entries; everything else is converted to its
IDNA ASCII (punycode) form and becomes a dNSName entry.
"""
import ipaddress
from typing import Iterable, List, NamedTuple, Union

from cryptography import x509

from certhelper.errors import EncodingFailure

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class SubjectAltNames(NamedTuple):
	dns_names: List[str]
	ip_addresses: List[IPAddress]

	def to_extension(self) -> x509.SubjectAlternativeName:
		entries = [x509.DNSName(name) for name in self.dns_names]
		entries.extend(x509.IPAddress(ip) for ip in self.ip_addresses)
		return x509.SubjectAlternativeName(entries)


def to_ascii(hostname: str) -> str:
	try:
		return hostname.encode("idna").decode("ascii")
	except UnicodeError as e:
		raise EncodingFailure(f"failed to convert SAN {hostname} to ASCII") from e


def normalize_sans(values: Iterable[str]) -> SubjectAltNames:
	"""Classify and convert SAN candidates, dropping blanks and duplicates.

	The whole list is converted before anything is returned, so a single bad
	hostname fails the call without a partial result.
	"""
	dns_names: List[str] = []
	ip_addresses: List[IPAddress] = []
	for value in values:
		trimmed = (value or "").strip()
		if not trimmed:
			continue
		try:
			ip = ipaddress.ip_address(trimmed)
		except ValueError:
			name = to_ascii(trimmed)
			if name not in dns_names:
				dns_names.append(name)
			continue
		if ip not in ip_addresses:
			ip_addresses.append(ip)
	return SubjectAltNames(dns_names, ip_addresses)


def parse_san_list(text: str) -> List[str]:
	"""Split a comma-separated SAN value (CLI flag or form field)."""
	return [part.strip() for part in (text or "").split(",") if part.strip()]


__all__ = ["SubjectAltNames", "normalize_sans", "parse_san_list", "to_ascii"]

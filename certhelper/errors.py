"""Error kinds raised by the issuance engine and its stores.

Every error carries the logical name and role it was raised for (when known)
so callers can render a message without parsing strings. The underlying
exception, if any, is chained as ``__cause__``.
"""
from typing import Optional


class CertHelperError(Exception):
	def __init__(self, message: str, role: Optional[str] = None, name: Optional[str] = None):
		super().__init__(message)
		self.role = role
		self.name = name

	def __str__(self) -> str:
		msg = super().__str__()
		if self.__cause__ is not None:
			msg = f"{msg}: {self.__cause__}"
		return msg


class ValidationError(CertHelperError):
	"""Missing or invalid input (common name, issuer selector, validity)."""


class IssuerUnavailable(CertHelperError):
	"""Issuer key or certificate is missing or cannot be decoded."""


class KeyGenerationFailure(CertHelperError):
	pass


class EncodingFailure(CertHelperError):
	"""IDNA conversion, PEM or PKCS#12 marshalling/decoding failed."""


class IOFailure(CertHelperError):
	pass


__all__ = [
	"CertHelperError",
	"ValidationError",
	"IssuerUnavailable",
	"KeyGenerationFailure",
	"EncodingFailure",
	"IOFailure",
]

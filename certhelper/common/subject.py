"""
Certificate subject (distinguished name) model.

A Subject is built either from a compact "CN=..,O=.." string or from
individual form/flag values, and is converted to an x509.Name at signing time.
"""
from pydantic import BaseModel, ConfigDict
from cryptography import x509
from cryptography.x509.oid import NameOID

from certhelper.errors import ValidationError


_SUBJECT_KEYS = {
	"CN": "common_name",
	"O": "organization",
	"OU": "organizational_unit",
	"C": "country",
	"ST": "province",
	"L": "locality",
}

# RDN order used for the encoded name: C, ST, L, O, OU, CN
_NAME_ORDER = (
	("country", NameOID.COUNTRY_NAME),
	("province", NameOID.STATE_OR_PROVINCE_NAME),
	("locality", NameOID.LOCALITY_NAME),
	("organization", NameOID.ORGANIZATION_NAME),
	("organizational_unit", NameOID.ORGANIZATIONAL_UNIT_NAME),
	("common_name", NameOID.COMMON_NAME),
)


class Subject(BaseModel):
	model_config = ConfigDict(frozen=True)

	common_name: str = ""
	organization: str = ""
	organizational_unit: str = ""
	country: str = ""
	province: str = ""
	locality: str = ""

	def with_overrides(self, **fields) -> "Subject":
		"""Return a copy where every non-empty override replaces the field."""
		update = {k: v.strip() for k, v in fields.items() if v and v.strip()}
		return self.model_copy(update=update)

	def to_x509_name(self) -> x509.Name:
		"""Build the X.500 name; empty fields are left out entirely."""
		attrs = []
		for field, oid in _NAME_ORDER:
			value = getattr(self, field)
			if not value:
				continue
			try:
				attrs.append(x509.NameAttribute(oid, value))
			except ValueError as e:
				raise ValidationError(f"invalid subject field {field}={value!r}") from e
		return x509.Name(attrs)


def parse_subject(text: str) -> Subject:
	trimmed = (text or "").strip()
	if not trimmed:
		return Subject()
	if "=" not in trimmed:
		return Subject(common_name=trimmed)

	fields = {}
	for part in trimmed.split(","):
		key, sep, value = part.strip().partition("=")
		if not sep:
			continue
		field = _SUBJECT_KEYS.get(key.strip().upper())
		if field:
			fields[field] = value.strip()
	return Subject(**fields)


__all__ = ["Subject", "parse_subject"]

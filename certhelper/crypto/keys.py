"""Key pair generation.

Keys are modelled as a tagged variant (KeyMaterial) so signing and PEM
encoding dispatch on the tag instead of on the runtime key class:
 - normalize_key_type(value) -> KeyType
 - normalize_key_bits(bits) -> int in {2048, 3072, 4096}
 - generate_key_pair(key_type, key_bits) -> KeyMaterial
 - generate_private_key_with_bits(bits) -> KeyMaterial (RSA, used for CAs)
 - generate_serial_number() -> random 128-bit serial
"""
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Union

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from certhelper.errors import KeyGenerationFailure

DEFAULT_KEY_BITS = 2048
SUPPORTED_KEY_BITS = (2048, 3072, 4096)
SERIAL_NUMBER_BITS = 128


class KeyType(str, Enum):
	RSA = "rsa"
	ECDSA_P256 = "ecdsa-p256"


_KEY_TYPE_ALIASES = {
	"ecdsa": KeyType.ECDSA_P256,
	"ecdsa_p256": KeyType.ECDSA_P256,
	"ecdsa-p256": KeyType.ECDSA_P256,
	"ec": KeyType.ECDSA_P256,
}


def normalize_key_type(value) -> KeyType:
	if isinstance(value, KeyType):
		return value
	return _KEY_TYPE_ALIASES.get(str(value or "").strip().lower(), KeyType.RSA)


def normalize_key_bits(bits) -> int:
	if bits in SUPPORTED_KEY_BITS:
		return bits
	return DEFAULT_KEY_BITS


PrivateKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]


@dataclass(frozen=True)
class KeyMaterial:
	key_type: KeyType
	private_key: PrivateKey
	bits: int

	def public_key(self):
		return self.private_key.public_key()

	@property
	def hash_algorithm(self) -> hashes.HashAlgorithm:
		# SHA256WithRSA / ECDSAWithSHA256
		return hashes.SHA256()

	def private_bytes(self) -> bytes:
		"""PEM-encode the private key (PKCS#1 for RSA, SEC1 for EC)."""
		return self.private_key.private_bytes(
			encoding=serialization.Encoding.PEM,
			format=serialization.PrivateFormat.TraditionalOpenSSL,
			encryption_algorithm=serialization.NoEncryption(),
		)

	@classmethod
	def from_private_key(cls, private_key) -> "KeyMaterial":
		"""Tag an already loaded private key (e.g. a CA key read from disk)."""
		if isinstance(private_key, rsa.RSAPrivateKey):
			return cls(KeyType.RSA, private_key, private_key.key_size)
		if isinstance(private_key, ec.EllipticCurvePrivateKey) and isinstance(private_key.curve, ec.SECP256R1):
			return cls(KeyType.ECDSA_P256, private_key, private_key.curve.key_size)
		raise TypeError(f"unsupported private key type: {type(private_key).__name__}")


def generate_private_key_with_bits(bits: int) -> KeyMaterial:
	bits = normalize_key_bits(bits)
	try:
		key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
	except Exception as e:
		raise KeyGenerationFailure(f"failed to generate {bits}-bit RSA key") from e
	return KeyMaterial(KeyType.RSA, key, bits)


def generate_key_pair(key_type, key_bits: int = DEFAULT_KEY_BITS) -> KeyMaterial:
	if normalize_key_type(key_type) is KeyType.ECDSA_P256:
		try:
			key = ec.generate_private_key(ec.SECP256R1())
		except Exception as e:
			raise KeyGenerationFailure("failed to generate ECDSA P-256 key") from e
		return KeyMaterial(KeyType.ECDSA_P256, key, 256)
	return generate_private_key_with_bits(key_bits)


def generate_serial_number() -> int:
	serial = 0
	# X.509 serials must be positive
	while serial == 0:
		serial = secrets.randbits(SERIAL_NUMBER_BITS)
	return serial


__all__ = [
	"DEFAULT_KEY_BITS",
	"KeyType",
	"KeyMaterial",
	"normalize_key_type",
	"normalize_key_bits",
	"generate_key_pair",
	"generate_private_key_with_bits",
	"generate_serial_number",
]

"""Certificate signing and signature checks for the supported key variants.

 - sign_certificate(builder, issuer_key) -> x509.Certificate
 - verify_signature(public_key, cert) -> bool
"""
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

from certhelper.crypto.keys import KeyMaterial
from certhelper.errors import EncodingFailure


def sign_certificate(builder: x509.CertificateBuilder, issuer_key: KeyMaterial) -> x509.Certificate:
	"""Sign builder with the issuer key (RSA PKCS#1 v1.5 or ECDSA, SHA-256)."""
	try:
		return builder.sign(private_key=issuer_key.private_key, algorithm=issuer_key.hash_algorithm)
	except (ValueError, TypeError) as e:
		raise EncodingFailure("failed to sign certificate") from e


def verify_signature(public_key, cert: x509.Certificate) -> bool:
	"""Return True if cert's signature verifies under public_key."""
	try:
		if isinstance(public_key, rsa.RSAPublicKey):
			public_key.verify(
				cert.signature,
				cert.tbs_certificate_bytes,
				padding.PKCS1v15(),
				cert.signature_hash_algorithm,
			)
		elif isinstance(public_key, ec.EllipticCurvePublicKey):
			public_key.verify(
				cert.signature,
				cert.tbs_certificate_bytes,
				ec.ECDSA(cert.signature_hash_algorithm),
			)
		else:
			return False
	except InvalidSignature:
		return False
	return True


__all__ = ["sign_certificate", "verify_signature"]

"""Trust-store side of a SCEP server.

A SCEP library drives the protocol; it only needs the CA keypair, fresh
serial numbers, a "already issued for this CN" check and a way to persist
the certificates it signs. Depot provides exactly that on top of the
trust-store layout, storing certificates next to the root's other leaves.
"""
import os
from typing import List, Tuple

from cryptography import x509

from certhelper.crypto.keys import KeyMaterial, generate_serial_number
from certhelper.crypto.pki import get_common_name
from certhelper.errors import EncodingFailure, IOFailure, IssuerUnavailable
from certhelper.storage.layout import (
	DEFAULT_ROOT_NAME,
	ROLE_ROOT,
	ensure_parent_dir,
	resolve_cert_dir,
	resolve_leaf_paths,
	resolve_root_paths,
	sanitize_name,
)
from certhelper.storage.store import load_ca_certificate, load_ca_private_key, write_certificate_pem


class Depot:
	def __init__(self, base: str, root_name: str = DEFAULT_ROOT_NAME):
		self.base = base
		self.root_name = sanitize_name(root_name, DEFAULT_ROOT_NAME)
		self.cert_dir = resolve_cert_dir(base, ROLE_ROOT, self.root_name)

	def ca(self, password: bytes = b"") -> Tuple[List[x509.Certificate], KeyMaterial]:
		"""Load the CA certificate and key; the password is unused (keys are stored unencrypted)."""
		cert_path, key_path = resolve_root_paths(self.base, self.root_name)
		try:
			key = load_ca_private_key(key_path)
			cert = load_ca_certificate(cert_path)
		except (IOFailure, EncodingFailure) as e:
			raise IssuerUnavailable("failed to load CA for SCEP", role=ROLE_ROOT, name=self.root_name) from e
		return [cert], key

	def serial(self) -> int:
		return generate_serial_number()

	def cert_path(self, common_name: str) -> str:
		return resolve_leaf_paths(self.cert_dir, common_name)[0]

	def has_cn(self, common_name: str, allow_time: int = 0, cert: x509.Certificate = None, revoke_old: bool = False) -> bool:
		"""True if a certificate was already stored for this common name.

		allow_time and revoke_old are accepted for the SCEP depot interface;
		renewal windows and revocation are not supported.
		"""
		if cert is not None:
			common_name = get_common_name(cert.subject)
		return os.path.exists(self.cert_path(common_name))

	def put(self, name: str, cert: x509.Certificate) -> str:
		path = self.cert_path(get_common_name(cert.subject) or name)
		try:
			ensure_parent_dir(path)
		except OSError as e:
			raise IOFailure(f"failed to create directory for {path}") from e
		write_certificate_pem(path, cert)
		return path


__all__ = ["Depot"]

"""Trust-store directory layout.

	<base>/ca.pem, <base>/ca.key                                  default root CA
	<base>/ca/root/<root>/ca.pem|ca.key                           named root CAs
	<base>/ca/intermediate/<root>/<name>/ca.pem|ca.key            intermediate CAs
	<base>/certs/root/<root>/cert_<cn>.pem|.key|.pfx              leaves of a root
	<base>/certs/intermediate/<root>/<name>/cert_<cn>.pem|.key|.pfx

Every component that comes from a user-supplied name goes through
sanitize_name(), so a name can never escape <base>.
"""
import os
import re
from typing import Optional, Tuple

ROOT_CA_FOLDER = os.path.join("ca", "root")
INTERMEDIATE_CA_FOLDER = os.path.join("ca", "intermediate")
CERTS_FOLDER = "certs"

DEFAULT_ROOT_NAME = "default"
DEFAULT_INTERMEDIATE_NAME = "intermediate"
DEFAULT_CERT_NAME = "certificate"

ROLE_ROOT = "root"
ROLE_INTERMEDIATE = "intermediate"
ROLE_LEAF = "leaf"

_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_\-]+")


def sanitize_name(raw: Optional[str], fallback: str) -> str:
	trimmed = (raw or "").strip()
	if not trimmed:
		return fallback
	sanitized = _INVALID_CHARS.sub("_", trimmed).strip("_")
	return sanitized or fallback


def resolve_root_paths(base: str, name: Optional[str]) -> Tuple[str, str]:
	"""Return (cert_path, key_path) of a root CA.

	The default root lives directly in <base> rather than under
	ca/root/default; existing single-CA trust stores rely on this.
	"""
	root_name = sanitize_name(name, DEFAULT_ROOT_NAME)
	if root_name == DEFAULT_ROOT_NAME:
		return os.path.join(base, "ca.pem"), os.path.join(base, "ca.key")
	ca_dir = os.path.join(base, ROOT_CA_FOLDER, root_name)
	return os.path.join(ca_dir, "ca.pem"), os.path.join(ca_dir, "ca.key")


def resolve_intermediate_paths(base: str, root_name: Optional[str], name: Optional[str]) -> Tuple[str, str]:
	ca_dir = os.path.join(
		base,
		INTERMEDIATE_CA_FOLDER,
		sanitize_name(root_name, DEFAULT_ROOT_NAME),
		sanitize_name(name, DEFAULT_INTERMEDIATE_NAME),
	)
	return os.path.join(ca_dir, "ca.pem"), os.path.join(ca_dir, "ca.key")


def resolve_cert_dir(base: str, role: str, root_name: Optional[str], name: Optional[str] = None) -> str:
	"""Directory holding the leaves issued by the CA (role, root_name, name)."""
	root_name = sanitize_name(root_name, DEFAULT_ROOT_NAME)
	if role == ROLE_INTERMEDIATE:
		return os.path.join(base, CERTS_FOLDER, ROLE_INTERMEDIATE, root_name, sanitize_name(name, DEFAULT_INTERMEDIATE_NAME))
	return os.path.join(base, CERTS_FOLDER, ROLE_ROOT, root_name)


def resolve_leaf_paths(cert_dir: str, common_name: Optional[str]) -> Tuple[str, str, str]:
	"""Return (cert_path, key_path, pfx_path) for a leaf named after its CN."""
	stem = "cert_" + sanitize_name(common_name, DEFAULT_CERT_NAME)
	return (
		os.path.join(cert_dir, stem + ".pem"),
		os.path.join(cert_dir, stem + ".key"),
		os.path.join(cert_dir, stem + ".pfx"),
	)


def ensure_parent_dir(path: str) -> None:
	os.makedirs(os.path.dirname(path) or ".", mode=0o700, exist_ok=True)


__all__ = [
	"DEFAULT_ROOT_NAME",
	"DEFAULT_INTERMEDIATE_NAME",
	"DEFAULT_CERT_NAME",
	"ROLE_ROOT",
	"ROLE_INTERMEDIATE",
	"ROLE_LEAF",
	"sanitize_name",
	"resolve_root_paths",
	"resolve_intermediate_paths",
	"resolve_cert_dir",
	"resolve_leaf_paths",
	"ensure_parent_dir",
]

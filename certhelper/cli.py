#!/usr/bin/env python3
# certhelper/cli.py
import argparse
import logging
import os
import sys

from certhelper.config import Settings, __version__
from certhelper.common.models import (
    DEFAULT_CA_KEY_USAGE,
    CertificateOptions,
    parse_ext_key_usage,
    parse_issuer_selection,
    parse_key_usage,
)
from certhelper.common.subject import Subject, parse_subject
from certhelper.crypto.keys import normalize_key_bits, normalize_key_type
from certhelper.crypto.pki import verify_chain
from certhelper.crypto.san import parse_san_list
from certhelper.engine import issue_certificate, issue_intermediate, issue_root
from certhelper.errors import CertHelperError, ValidationError
from certhelper.storage.layout import resolve_intermediate_paths, resolve_root_paths
from certhelper.storage.store import load_ca_certificate
from certhelper.storage.trust_store import (
    collect_certificates,
    list_all_intermediate_cas,
    list_root_cas,
    summarize_certificates,
)

logger = logging.getLogger(__name__)


def add_subject_flags(parser):
    parser.add_argument("--common-name", default="", help="Common Name (CN)")
    parser.add_argument("--organization", default="", help="Organization (O)")
    parser.add_argument("--organizational-unit", default="", help="Organizational Unit (OU)")
    parser.add_argument("--country", default="", help="Country (C)")
    parser.add_argument("--state", default="", help="State/Province (ST)")
    parser.add_argument("--locality", default="", help="Locality (L)")


def subject_from_args(args, base=None) -> Subject:
    return (base or Subject()).with_overrides(
        common_name=args.common_name,
        organization=args.organization,
        organizational_unit=args.organizational_unit,
        country=args.country,
        province=args.state,
        locality=args.locality,
    )


def add_key_flags(parser, settings):
    parser.add_argument("--key-bits", type=int, default=settings.key_bits, help="RSA key size: 2048, 3072 or 4096")
    parser.add_argument("--key-usage", action="append", default=[],
                        help="Key usage (digital_signature, key_encipherment, cert_sign, ...); repeatable")


def cmd_ca_generate(args, settings):
    subject = subject_from_args(args, parse_subject(args.subject))
    if not subject.organization:
        subject = subject.with_overrides(organization="cert-helper CA")

    record = issue_root(
        args.output_dir, args.name, subject, args.validity,
        key_bits=normalize_key_bits(args.key_bits),
        key_usage=parse_key_usage(args.key_usage, DEFAULT_CA_KEY_USAGE),
    )
    print(f"CA certificate generated successfully: {record.cert_path}")
    print(f"CA private key generated successfully: {record.key_path}")


def cmd_ca_intermediate(args, settings):
    subject = subject_from_args(args, parse_subject(args.subject))
    name = args.name or subject.common_name

    record = issue_intermediate(
        args.output_dir, args.root, name, subject, args.validity,
        key_bits=normalize_key_bits(args.key_bits),
        key_usage=parse_key_usage(args.key_usage, DEFAULT_CA_KEY_USAGE),
    )
    print(f"Intermediate CA certificate generated successfully: {record.cert_path}")
    print(f"Intermediate CA private key generated successfully: {record.key_path}")


def cmd_ca_list(args, settings):
    for root in list_root_cas(args.output_dir):
        print(f"root:{root}")
    for info in list_all_intermediate_cas(args.output_dir):
        print(f"intermediate:{info.root_name}:{info.name}")


def issuer_from_args(args):
    if args.issuer:
        return parse_issuer_selection(args.issuer)
    issuer_root = args.issuer_root
    if args.issuer_type == "intermediate" and not issuer_root:
        issuer_root = "default"
    return args.issuer_type, issuer_root, args.issuer_name


def cmd_cert_generate(args, settings):
    subject = subject_from_args(args)
    if not subject.common_name and args.name:
        subject = subject.with_overrides(common_name=args.name)
    if not subject.common_name:
        raise ValidationError("common name is required", role="leaf")

    issuer_type, issuer_root, issuer_name = issuer_from_args(args)
    sans = [san for value in args.subject_alt_names for san in parse_san_list(value)]
    options = CertificateOptions(
        key_bits=normalize_key_bits(args.key_bits),
        key_type=normalize_key_type(args.key_type).value,
        key_usage=parse_key_usage(args.key_usage),
        ext_key_usage=parse_ext_key_usage(args.ext_key_usage),
        export_private_key=not args.no_export_private_key,
    )

    record = issue_certificate(
        args.output_dir, issuer_type, issuer_root, issuer_name, subject, sans,
        args.validity_days, args.pfx_password, options,
    )
    print(f"Certificate generated successfully: {record.cert_path}")
    if record.key_path:
        print(f"Certificate private key: {record.key_path}")
        print(f"Certificate PFX bundle: {record.pfx_path}")
    else:
        print("Private key was not exported")


def cmd_cert_list(args, settings):
    entries = collect_certificates(args.output_dir)
    for entry in entries:
        print(f"{entry.status:<14} {entry.not_after:%Y-%m-%d} {entry.type:<16} {entry.name} (issuer: {entry.issuer})")
    summary = summarize_certificates(entries)
    print(f"{summary.total} certificates: {summary.valid} valid, {summary.expiring} expiring, {summary.expired} expired")
    if summary.next_expiry is not None:
        print(f"Next expiry: {summary.next_expiry.name} on {summary.next_expiry.not_after:%Y-%m-%d}")


def cmd_cert_verify(args, settings):
    issuer_type, issuer_root, issuer_name = issuer_from_args(args)
    cert = load_ca_certificate(args.path)
    intermediates = []
    if issuer_type == "intermediate":
        intermediates.append(load_ca_certificate(resolve_intermediate_paths(args.output_dir, issuer_root, issuer_name)[0]))
        root = load_ca_certificate(resolve_root_paths(args.output_dir, issuer_root)[0])
    else:
        root = load_ca_certificate(resolve_root_paths(args.output_dir, issuer_name)[0])

    ok, reason = verify_chain(cert, intermediates, root)
    print(f"{args.path}: {reason}")
    return 0 if ok else 1


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cert-helper", description="Certificate generation helper")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-o", "--output-dir", default=settings.output_dir, help="Directory to write output files to")
    commands = parser.add_subparsers(dest="command", required=True)

    ca = commands.add_parser("ca", help="Manage certificate authorities").add_subparsers(dest="ca_command", required=True)

    p = ca.add_parser("generate", help="Generate a new Certificate Authority")
    p.add_argument("-v", "--validity", type=int, default=3600, help="Validity period in days")
    p.add_argument("-s", "--subject", default="CN=Test CA", help="CA subject (e.g. CN=Example CA,O=Org)")
    p.add_argument("--name", default="", help="Name for storing the CA (defaults to 'default')")
    add_subject_flags(p)
    add_key_flags(p, settings)
    p.set_defaults(func=cmd_ca_generate, action_name="generate CA")

    p = ca.add_parser("intermediate", help="Generate a new Intermediate Certificate Authority")
    p.add_argument("-v", "--validity", type=int, default=1800, help="Validity period in days")
    p.add_argument("-s", "--subject", default="CN=Intermediate CA", help="Intermediate CA subject")
    p.add_argument("--name", default="", help="Name for storing the intermediate CA (defaults to its CN)")
    p.add_argument("--root", default="default", help="Root CA name to sign the intermediate CA")
    add_subject_flags(p)
    add_key_flags(p, settings)
    p.set_defaults(func=cmd_ca_intermediate, action_name="generate intermediate CA")

    p = ca.add_parser("list", help="List root and intermediate CAs")
    p.set_defaults(func=cmd_ca_list, action_name="list CAs")

    cert = commands.add_parser("cert", help="Manage certificates").add_subparsers(dest="cert_command", required=True)

    p = cert.add_parser("generate", help="Generate a new Certificate")
    p.add_argument("name", nargs="?", default="", help="Common Name, if --common-name is not given")
    p.add_argument("--subject-alt-names", action="append", default=[], help="Comma-separated Subject Alternative Names")
    p.add_argument("--pfx-password", default="", help="Password for PFX file (empty writes an unprotected bundle)")
    p.add_argument("-v", "--validity-days", type=int, default=365, help="Validity period in days")
    p.add_argument("--issuer-type", default="root", choices=["root", "intermediate"], help="Issuer type")
    p.add_argument("--issuer-name", default="default", help="Issuer name (root CA name or intermediate CA name)")
    p.add_argument("--issuer-root", default="default", help="Root CA name when issuer type is intermediate")
    p.add_argument("--issuer", default="", help="Issuer selector: root:<name> or intermediate:<root>:<name>")
    p.add_argument("--key-type", default="rsa", help="Key type: rsa or ecdsa_p256")
    p.add_argument("--ext-key-usage", action="append", default=[],
                   help="Extended key usage (server_auth, client_auth, code_signing, ...); repeatable")
    p.add_argument("--no-export-private-key", action="store_true", help="Do not write the private key or PFX bundle")
    add_subject_flags(p)
    add_key_flags(p, settings)
    p.set_defaults(func=cmd_cert_generate, action_name="generate certificate")

    p = cert.add_parser("list", help="List certificates in the output directory with their expiry status")
    p.set_defaults(func=cmd_cert_list, action_name="list certificates")

    p = cert.add_parser("verify", help="Verify a certificate chains up to a CA in the output directory")
    p.add_argument("path", help="Certificate PEM file")
    p.add_argument("--issuer-type", default="root", choices=["root", "intermediate"])
    p.add_argument("--issuer-name", default="default")
    p.add_argument("--issuer-root", default="default")
    p.add_argument("--issuer", default="", help="Issuer selector: root:<name> or intermediate:<root>:<name>")
    p.set_defaults(func=cmd_cert_verify, action_name="verify certificate")

    return parser


def main(argv=None) -> int:
    try:
        settings = Settings.load()
    except CertHelperError as e:
        print(f"Failed to load settings: {e}", file=sys.stderr)
        return 1
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    args = build_parser(settings).parse_args(argv)

    try:
        os.makedirs(args.output_dir, mode=0o700, exist_ok=True)
        return args.func(args, settings) or 0
    except CertHelperError as e:
        print(f"Failed to {args.action_name}: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Failed to {args.action_name}: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
